"""
Collection binding shared by repositories and repository managers.

An instance is wired to one collection for its whole lifetime:
- the entity type comes from the constructor or from the generic
  parameters of a subclass (``class Orders(Repository[Order, str])``)
- the collection name comes from an explicit override or the resolver
- the database comes from a handle or a connection URL
"""

import logging
from typing import Any, ClassVar, get_args

from pydantic import BaseModel

from mongorepo.config import ConnectionSettings
from mongorepo.connection import connection_settings, get_database
from mongorepo.exceptions import ConfigurationError
from mongorepo.naming import CollectionBinding, bind

logger = logging.getLogger(__name__)


class BoundCollection:
    """Base class that wires an entity type to its collection.

    Accepts exactly one source for the database:

        Repository(Customer)                                   # default URL
        Repository(Customer, connection="mongodb://host/shop")
        Repository(Customer, database=motor_client["shop"])

    ``collection_name`` replaces the resolved name.
    """

    entity_type: ClassVar[type[BaseModel] | None] = None

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        if cls.__dict__.get("entity_type") is not None:
            return
        for base in cls.__dict__.get("__orig_bases__", ()):
            args = get_args(base)
            if args and isinstance(args[0], type) and issubclass(args[0], BaseModel):
                cls.entity_type = args[0]
                return

    def __init__(
        self,
        entity_type: type[BaseModel] | None = None,
        *,
        database: Any = None,
        connection: ConnectionSettings | str | None = None,
        collection_name: str | None = None,
    ):
        entity_type = entity_type or type(self).entity_type
        if entity_type is None:
            raise ConfigurationError(f"{type(self).__name__} needs an entity type")

        if database is not None and connection is not None:
            raise ConfigurationError("Pass either a database or a connection, not both")

        if database is None:
            settings = connection_settings(connection, collection_name)
            database = get_database(settings)
            collection_name = settings.collection_name

        self.entity_type = entity_type
        self.binding: CollectionBinding = bind(entity_type, collection_name)
        self._database = database
        self._collection = database[self.binding.name]
        logger.debug(f"{type(self).__name__} bound {entity_type.__name__} -> {self.binding.name}")

    @property
    def name(self) -> str:
        """Resolved collection name."""
        return self.binding.name

    @property
    def database(self) -> Any:
        return self._database

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.entity_type.__name__!s}, collection={self.name!r})"
