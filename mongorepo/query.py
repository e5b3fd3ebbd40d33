"""Predicates and lazy, composable queries over one collection.

A predicate is any MongoDB filter mapping. Three ways to write one:

    c = fields(Customer)
    c.home_address.country == "Alaska"            # typed field path
    RegEx(c.first_name, "^Client")                 # beanie query operator
    {"wrapped_entity.property1": "PropA"}          # raw field path

Typed paths are checked against the pydantic model. They stop at
polymorphic fields (unions, abstract or protocol types, ``Any``): the
concrete type is only known per document, so use a raw path there.

Nothing here evaluates a predicate; filters are handed to the store.
"""

from __future__ import annotations

import asyncio
import inspect
import types
from collections.abc import AsyncIterator, Mapping
from enum import Enum
from typing import Any, Generic, TypeVar, Union, get_args, get_origin

from beanie.odm.fields import ExpressionField
from pydantic import BaseModel

from mongorepo.cancellation import run_cancellable
from mongorepo.codec import TYPE_FIELD, DocumentCodec
from mongorepo.exceptions import SingleResultError, UnsupportedPredicateError
from mongorepo.serialization import registry

TEntity = TypeVar("TEntity", bound=BaseModel)

Predicate = Mapping[str, Any]

ASCENDING = 1
DESCENDING = -1


# ============================================================================
# Typed field paths
# ============================================================================


def _unwrap_optional(annotation: Any) -> Any:
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        if len(args) == 1:
            return args[0]
    return annotation


def _element_type(annotation: Any) -> Any:
    """``list[Address]`` addresses its elements with the same dotted path."""
    annotation = _unwrap_optional(annotation)
    if get_origin(annotation) in (list, tuple, set, frozenset):
        args = [arg for arg in get_args(annotation) if arg is not Ellipsis]
        if len(args) == 1:
            return _unwrap_optional(args[0])
    return annotation


def _is_polymorphic(annotation: Any) -> bool:
    if annotation is Any or annotation is object:
        return True
    if get_origin(annotation) in (Union, types.UnionType):
        return True
    if isinstance(annotation, type):
        return inspect.isabstract(annotation) or getattr(annotation, "_is_protocol", False)
    return False


def _storage_key(model: type[BaseModel], name: str) -> str:
    if name not in model.model_fields:
        raise AttributeError(f"{model.__name__} has no field {name!r}")
    field = model.model_fields[name]
    return field.alias or name


class FieldPath(ExpressionField):
    """Dotted storage path that knows the annotation it points at.

    Supports ``==``, ``!=``, ``<``, ``<=``, ``>``, ``>=`` (each builds a
    filter) and attribute access into embedded models.
    """

    def __new__(cls, path: str, annotation: Any = Any):
        obj = super().__new__(cls, path)
        obj.__dict__["annotation"] = annotation
        return obj

    def __getattr__(self, item: str) -> FieldPath:
        if item.startswith("_"):
            raise AttributeError(item)

        annotation = self.__dict__.get("annotation", Any)
        target = _element_type(annotation)
        if _is_polymorphic(target):
            raise UnsupportedPredicateError(
                f"Cannot address {self}.{item}: {self} is polymorphic; "
                f'use a raw filter such as {{"{self}.{item}": ...}}'
            )
        if not (isinstance(target, type) and issubclass(target, BaseModel)):
            raise AttributeError(f"{self} is not an embedded model")

        key = _storage_key(target, item)
        return FieldPath(f"{self}.{key}", target.model_fields[item].annotation)


class Fields:
    """Entry point for typed field paths of one model."""

    def __init__(self, model: type[BaseModel]):
        self._model = model

    def __getattr__(self, item: str) -> FieldPath:
        if item.startswith("_"):
            raise AttributeError(item)
        key = _storage_key(self._model, item)
        return FieldPath(key, self._model.model_fields[item].annotation)

    def __repr__(self) -> str:
        return f"Fields({self._model.__name__})"


def fields(model: type[BaseModel]) -> Fields:
    """Typed field paths for ``model``; ``fields(Customer).id`` is ``"_id"``."""
    return Fields(model)


def to_filter(predicate: Predicate | None) -> dict[str, Any]:
    """Copy ``predicate`` into plain dicts and lists for the driver.

    beanie operators and ``FieldPath`` keys are mappings and ``str``
    subclasses; the wire encoder and in-memory stores expect plain types.
    Values are encoded the same way as stored documents, so an enum or
    ``Decimal`` compares against what was written. The meaning of the filter
    is unchanged.
    """
    if predicate is None:
        return {}
    if not isinstance(predicate, Mapping):
        raise TypeError(
            f"Predicate must be a filter mapping, got {type(predicate).__name__}"
        )
    return _plain(predicate)


def _plain(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {str(key): _plain(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [_plain(item) for item in value]
    if isinstance(value, Enum):
        return registry.encode(value)
    if isinstance(value, str) and type(value) is not str:
        return str(value)
    return registry.encode(value)


def combine(*predicates: Predicate | None) -> dict[str, Any]:
    """AND together predicates, skipping empty ones."""
    filters = [to_filter(p) for p in predicates if p]
    filters = [f for f in filters if f]
    if not filters:
        return {}
    if len(filters) == 1:
        return filters[0]
    return {"$and": filters}


# ============================================================================
# Query
# ============================================================================


class Query(Generic[TEntity]):
    """Lazy query over a collection; each call returns a new ``Query``.

    Executed by the store cursor only when awaited or iterated:

        lions = await repo.of_type(Lion).order_by("name").limit(5).to_list()
        async for customer in repo.where(c.last_name == "Dillon"):
            ...
    """

    def __init__(
        self,
        collection: Any,
        codec: DocumentCodec[TEntity],
        filter: dict[str, Any] | None = None,
        projection: dict[str, int] | None = None,
        sort: tuple[tuple[str, int], ...] = (),
        skip: int = 0,
        limit: int = 0,
    ):
        self._collection = collection
        self._codec = codec
        self._filter = filter or {}
        self._projection = projection
        self._sort = sort
        self._skip = skip
        self._limit = limit

    def _with(self, **changes: Any) -> Query[TEntity]:
        state = {
            "filter": self._filter,
            "projection": self._projection,
            "sort": self._sort,
            "skip": self._skip,
            "limit": self._limit,
        }
        state.update(changes)
        return Query(self._collection, self._codec, **state)

    @property
    def filter(self) -> dict[str, Any]:
        return dict(self._filter)

    # ------------------------------------------------------------------
    # Composition
    # ------------------------------------------------------------------

    def where(self, *predicates: Predicate) -> Query[TEntity]:
        return self._with(filter=combine(self._filter, *predicates))

    def of_type(self, entity_type: type) -> Query[TEntity]:
        """Restrict to documents stored as ``entity_type`` or its subtypes."""
        return self.where({TYPE_FIELD: entity_type.__name__})

    def select(self, *paths: str) -> Query[TEntity]:
        """Project onto ``paths``. Results become raw documents (dicts)."""
        return self._with(projection={str(path): 1 for path in paths})

    def order_by(self, path: str, descending: bool = False) -> Query[TEntity]:
        direction = DESCENDING if descending else ASCENDING
        return self._with(sort=self._sort + ((str(path), direction),))

    def skip(self, count: int) -> Query[TEntity]:
        if count < 0:
            raise ValueError("skip must be >= 0")
        return self._with(skip=count)

    def limit(self, count: int) -> Query[TEntity]:
        if count < 0:
            raise ValueError("limit must be >= 0")
        return self._with(limit=count)

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def cursor(self) -> Any:
        """Build the driver cursor for this query."""
        options: dict[str, Any] = {}
        if self._sort:
            options["sort"] = list(self._sort)
        if self._skip:
            options["skip"] = self._skip
        if self._limit:
            options["limit"] = self._limit
        return self._collection.find(self._filter, self._projection, **options)

    def _convert(self, document: Mapping[str, Any]) -> Any:
        if self._projection is not None:
            return dict(document)
        return self._codec.decode(document)

    async def __aiter__(self) -> AsyncIterator[TEntity]:
        async for document in self.cursor():
            yield self._convert(document)

    async def to_list(self, cancel: asyncio.Event | None = None) -> list[TEntity]:
        async def collect() -> list[TEntity]:
            return [item async for item in self]

        return await run_cancellable(collect, cancel)

    async def first(self) -> TEntity | None:
        """First match, or ``None``."""
        found = await self.limit(1).to_list()
        return found[0] if found else None

    async def single(self) -> TEntity:
        """The only match; raises ``SingleResultError`` otherwise."""
        found = [item async for item in self.limit(2)]
        if len(found) != 1:
            raise SingleResultError(
                f"Expected exactly one document, matched {'none' if not found else 'several'}",
                getattr(self._collection, "name", None),
                matched=len(found),
            )
        return found[0]

    async def count(self) -> int:
        options: dict[str, int] = {}
        if self._skip:
            options["skip"] = self._skip
        if self._limit:
            options["limit"] = self._limit
        return await self._collection.count_documents(self._filter, **options)

    async def exists(self) -> bool:
        async for _ in self._collection.find(self._filter, limit=1):
            return True
        return False
