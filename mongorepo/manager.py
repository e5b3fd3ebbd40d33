"""
RepositoryManager

Administrative operations on the collection a Repository of the same entity
type uses. Index and statistics calls are pass-throughs to the driver and
return (or raise) whatever it does.

DatabaseManager lists the collections of a database.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any, Generic, TypeVar

import logfire
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING

from mongorepo.base import BoundCollection
from mongorepo.cancellation import run_cancellable
from mongorepo.config import ConnectionSettings
from mongorepo.connection import connection_settings, get_database
from mongorepo.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

TEntity = TypeVar("TEntity", bound=BaseModel)
TKey = TypeVar("TKey")


class RepositoryManager(BoundCollection, Generic[TEntity, TKey]):
    """Existence, drop, index and statistics for one bound collection."""

    async def exists(self) -> bool:
        """Whether the collection is present in the database."""
        names = await self._database.list_collection_names(filter={"name": self.name})
        return self.name in names

    async def drop(self, *, cancel: asyncio.Event | None = None) -> None:
        """Drop the whole collection, indexes included."""
        with logfire.span("repository_manager.drop", collection=self.name):
            await run_cancellable(lambda: self._database.drop_collection(self.name), cancel)
        logger.info(f"Dropped collection {self.name}")

    # ========================================================================
    # Indexes
    # ========================================================================

    async def ensure_index(
        self,
        key: str,
        descending: bool = False,
        unique: bool = False,
        sparse: bool = False,
    ) -> str:
        """Create a single-field index if missing; returns the index name."""
        return await self.ensure_indexes([key], descending, unique, sparse)

    async def ensure_indexes(
        self,
        keys: Iterable[str],
        descending: bool = False,
        unique: bool = False,
        sparse: bool = False,
    ) -> str:
        """Create one compound index over ``keys``; returns its name."""
        direction = DESCENDING if descending else ASCENDING
        spec = [(str(key), direction) for key in keys]
        return await self._collection.create_index(spec, unique=unique, sparse=sparse)

    async def drop_index(self, name: str) -> None:
        await self._collection.drop_index(name)

    async def drop_indexes(self, names: Iterable[str]) -> None:
        for name in names:
            await self.drop_index(name)

    async def drop_all_indexes(self) -> None:
        """Drop every index except the one on ``_id``."""
        await self._collection.drop_indexes()

    async def index_exists(self, name: str) -> bool:
        return name in await self._collection.index_information()

    async def indexes_exist(self, names: Iterable[str]) -> bool:
        existing = await self._collection.index_information()
        return all(name in existing for name in names)

    async def reindex(self) -> dict[str, Any]:
        return await self._database.command("reIndex", self.name)

    # ========================================================================
    # Statistics
    # ========================================================================

    async def get_stats(self) -> dict[str, Any]:
        return await self._database.command("collStats", self.name)

    async def total_data_size(self) -> int:
        """Uncompressed size of the documents, in bytes."""
        return (await self.get_stats())["size"]

    async def total_storage_size(self) -> int:
        """Storage allocated to the collection, in bytes."""
        return (await self.get_stats())["storageSize"]


class DatabaseManager:
    """Database-level view: which collections exist."""

    def __init__(
        self,
        *,
        database: Any = None,
        connection: ConnectionSettings | str | None = None,
    ):
        if database is not None and connection is not None:
            raise ConfigurationError("Pass either a database or a connection, not both")
        if database is None:
            database = get_database(connection_settings(connection))
        self._database = database

    async def list_collections(self) -> list[str]:
        return list(await self._database.list_collection_names())
