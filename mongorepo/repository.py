"""
Repository

Generic CRUD and query access to the collection of one entity type.

Methods:
- get_by_id(id) -> entity or None
- add(entity) / add_many(entities): insert, generating missing ids
- update(entity) / update_many(entities): upsert by id
- delete(id_or_entity_or_filter) / delete_where(predicate) / delete_all()
- count(predicate=None) / exists(predicate)
- query() / where(...) / of_type(...) / find(...): lazy server-side queries

Every store call accepts ``cancel=asyncio.Event()``; see
``mongorepo.cancellation.run_cancellable``.

``update_many`` replaces one document at a time. If item *i* fails, items
before *i* stay written and the rest are not attempted; nothing is rolled
back. ``add_many`` is a single ``insert_many`` call and fails as a whole.
"""

import asyncio
import logging
from collections.abc import AsyncIterator, Iterable, Mapping
from typing import Any, Generic, TypeVar

import logfire
from pydantic import BaseModel

from mongorepo.base import BoundCollection
from mongorepo.cancellation import raise_if_cancelled, run_cancellable
from mongorepo.codec import DocumentCodec
from mongorepo.entity import ensure_identifier
from mongorepo.query import Predicate, Query, to_filter

logger = logging.getLogger(__name__)

TEntity = TypeVar("TEntity", bound=BaseModel)
TKey = TypeVar("TKey")


class Repository(BoundCollection, Generic[TEntity, TKey]):
    """CRUD surface and query source over one collection.

        customers = Repository(Customer, database=db)
        await customers.add(Customer(first_name="Bob"))
        bob = await customers.where(fields(Customer).first_name == "Bob").single()
    """

    def __init__(self, entity_type: type[TEntity] | None = None, **kwargs: Any):
        super().__init__(entity_type, **kwargs)
        self._codec: DocumentCodec[TEntity] = DocumentCodec(self.entity_type)

    @property
    def collection(self) -> Any:
        """Raw driver collection for store-native work in subclasses.

        Prefer the repository methods, or ``RepositoryManager`` for
        administrative operations.
        """
        return self._collection

    # ========================================================================
    # Reads
    # ========================================================================

    async def get_by_id(self, id: TKey, *, cancel: asyncio.Event | None = None) -> TEntity | None:
        """Return the entity with ``id``, or ``None`` when there is none."""
        with logfire.span("repository.get_by_id", collection=self.name):
            document = await run_cancellable(
                lambda: self._collection.find_one(self._codec.id_filter(id)), cancel
            )
        if document is None:
            return None
        return self._codec.decode(document)

    async def count(
        self,
        predicate: Predicate | None = None,
        *,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Number of documents, or of documents matching ``predicate``."""
        filter = to_filter(predicate)
        with logfire.span("repository.count", collection=self.name):
            return await run_cancellable(
                lambda: self._collection.count_documents(filter), cancel
            )

    async def exists(self, predicate: Predicate, *, cancel: asyncio.Event | None = None) -> bool:
        """Whether at least one document matches, via a server-side limit-1 find."""
        with logfire.span("repository.exists", collection=self.name):
            return await run_cancellable(self.where(predicate).exists, cancel)

    # ========================================================================
    # Writes
    # ========================================================================

    async def add(self, entity: TEntity, *, cancel: asyncio.Event | None = None) -> TEntity:
        """Insert ``entity``; a missing id is generated and set on it."""
        raise_if_cancelled(cancel)
        ensure_identifier(entity, self.name)
        document = self._codec.encode(entity)
        with logfire.span("repository.add", collection=self.name):
            await run_cancellable(lambda: self._collection.insert_one(document), cancel)
        return entity

    async def add_many(
        self,
        entities: Iterable[TEntity],
        *,
        cancel: asyncio.Event | None = None,
    ) -> list[TEntity]:
        """Insert ``entities`` in one batch. The batch fails as a whole."""
        entities = list(entities)
        if not entities:
            return entities

        raise_if_cancelled(cancel)
        for entity in entities:
            ensure_identifier(entity, self.name)
        documents = [self._codec.encode(entity) for entity in entities]

        with logfire.span("repository.add_many", collection=self.name, count=len(documents)):
            await run_cancellable(lambda: self._collection.insert_many(documents), cancel)
        return entities

    async def update(self, entity: TEntity, *, cancel: asyncio.Event | None = None) -> TEntity:
        """Replace the stored entity with the same id, inserting it if absent."""
        raise_if_cancelled(cancel)
        key = ensure_identifier(entity, self.name)
        document = self._codec.encode(entity)
        with logfire.span("repository.update", collection=self.name):
            await run_cancellable(
                lambda: self._collection.replace_one(
                    self._codec.id_filter(key), document, upsert=True
                ),
                cancel,
            )
        return entity

    async def update_many(
        self,
        entities: Iterable[TEntity],
        *,
        cancel: asyncio.Event | None = None,
    ) -> list[TEntity]:
        """Upsert ``entities`` one by one. Not atomic: see module docstring."""
        entities = list(entities)
        with logfire.span("repository.update_many", collection=self.name, count=len(entities)):
            for applied, entity in enumerate(entities):
                try:
                    await self.update(entity, cancel=cancel)
                except (Exception, asyncio.CancelledError):
                    logger.warning(
                        f"update_many on {self.name} stopped after {applied} of "
                        f"{len(entities)} entities; earlier updates are kept"
                    )
                    raise
        return entities

    async def delete(
        self,
        target: TEntity | TKey | Predicate,
        *,
        cancel: asyncio.Event | None = None,
    ) -> int:
        """Delete by id; an entity is deleted by its id. Returns 0 or 1.

        A filter mapping deletes every match, like ``delete_where``.
        """
        if isinstance(target, Mapping):
            return await self.delete_where(target, cancel=cancel)
        key = target.id if isinstance(target, BaseModel) else target
        with logfire.span("repository.delete", collection=self.name):
            result = await run_cancellable(
                lambda: self._collection.delete_one(self._codec.id_filter(key)), cancel
            )
        return result.deleted_count

    async def delete_where(self, predicate: Predicate, *, cancel: asyncio.Event | None = None) -> int:
        """Delete every document matching ``predicate``; returns how many."""
        filter = to_filter(predicate)
        with logfire.span("repository.delete_where", collection=self.name):
            result = await run_cancellable(
                lambda: self._collection.delete_many(filter), cancel
            )
        logger.debug(f"Deleted {result.deleted_count} document(s) from {self.name}")
        return result.deleted_count

    async def delete_all(self, *, cancel: asyncio.Event | None = None) -> int:
        """Empty the collection (the collection itself remains)."""
        with logfire.span("repository.delete_all", collection=self.name):
            result = await run_cancellable(lambda: self._collection.delete_many({}), cancel)
        return result.deleted_count

    # ========================================================================
    # Queryable passthrough
    # ========================================================================

    def query(self) -> Query[TEntity]:
        """Lazy query over the whole collection."""
        return Query(self._collection, self._codec)

    def where(self, *predicates: Predicate) -> Query[TEntity]:
        return self.query().where(*predicates)

    def of_type(self, entity_type: type) -> Query[TEntity]:
        """Documents stored as ``entity_type`` or one of its subtypes."""
        return self.query().of_type(entity_type)

    def find(
        self,
        filter: Predicate | None = None,
        projection: Iterable[str] | None = None,
    ) -> Query[TEntity]:
        query = self.where(filter) if filter else self.query()
        if projection is not None:
            query = query.select(*projection)
        return query

    def __aiter__(self) -> AsyncIterator[TEntity]:
        return self.query().__aiter__()
