"""Custom exceptions for the repository layer.

Store failures (``pymongo.errors.*``) are not wrapped: they propagate to the
caller unchanged.
"""


class RepositoryError(Exception):
    """Base exception for repository errors."""

    def __init__(self, message: str, collection: str | None = None):
        super().__init__(message)
        self.collection = collection


class ConfigurationError(RepositoryError):
    """Invalid collection name, connection URL or credentials."""

    pass


class MissingIdentifierError(RepositoryError):
    """Entity has no id and its key type has no generator."""

    pass


class UnsupportedPredicateError(RepositoryError):
    """Typed predicate reaches below a polymorphic field.

    Use a raw field-path filter instead, e.g.
    ``{"wrapped_entity.property1": "PropA"}``.
    """

    pass


class SingleResultError(RepositoryError):
    """Query expected exactly one document."""

    def __init__(self, message: str, collection: str | None = None, matched: int = 0):
        super().__init__(message, collection)
        self.matched = matched
