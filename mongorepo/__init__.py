"""mongorepo: generic async repositories over MongoDB collections."""

__version__ = "0.1.0"

from mongorepo.entity import Entity, Identifiable, Model  # noqa: E402
from mongorepo.exceptions import (  # noqa: E402
    ConfigurationError,
    MissingIdentifierError,
    RepositoryError,
    SingleResultError,
    UnsupportedPredicateError,
)
from mongorepo.manager import DatabaseManager, RepositoryManager  # noqa: E402
from mongorepo.naming import (  # noqa: E402
    CollectionBinding,
    bind,
    collection_name,
    resolve_collection_name,
)
from mongorepo.query import Query, fields  # noqa: E402
from mongorepo.repository import Repository  # noqa: E402
from mongorepo.serialization import registry  # noqa: E402

__all__ = [
    "__version__",
    # Entities
    "Entity",
    "Identifiable",
    "Model",
    # Collection naming
    "CollectionBinding",
    "bind",
    "collection_name",
    "resolve_collection_name",
    # Repositories
    "Repository",
    "RepositoryManager",
    "DatabaseManager",
    "Query",
    "fields",
    # Serialization
    "registry",
    # Errors
    "RepositoryError",
    "ConfigurationError",
    "MissingIdentifierError",
    "UnsupportedPredicateError",
    "SingleResultError",
]
