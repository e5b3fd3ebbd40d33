"""Entity type to collection name resolution.

Rules, in order:

1. The nearest class in the MRO that declares ``@collection_name`` wins.
2. A direct child of the root base (``Entity``, ``Model`` or ``BaseModel``)
   uses its own class name.
3. Deeper subtypes share the collection of their base-level ancestor, the
   direct child of the root base.

    class Animal(Entity): ...          # "Animal"
    class Dog(Animal): ...             # "Animal"

    @collection_name("Catlikes")
    class Catlike(Animal): ...         # "Catlikes"
    class Lion(Catlike): ...           # "Catlikes"
"""

from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, TypeVar

from pydantic import BaseModel

from mongorepo.entity import Entity, Model
from mongorepo.exceptions import ConfigurationError

T = TypeVar("T", bound=type)

OVERRIDE_ATTRIBUTE = "__collection_name__"

ROOT_TYPES: tuple[type, ...] = (Entity, Model, BaseModel)


def collection_name(name: str) -> Callable[[T], T]:
    """Class decorator storing ``name`` as the explicit collection name."""

    def decorate(cls: T) -> T:
        setattr(cls, OVERRIDE_ATTRIBUTE, name)
        return cls

    return decorate


def _parent(entity_type: type) -> type | None:
    """Primary pydantic base of ``entity_type``, skipping plain mixins."""
    for base in entity_type.__bases__:
        if isinstance(base, type) and issubclass(base, BaseModel):
            return base
    return None


def base_level_type(entity_type: type) -> type:
    """Walk up to the direct child of the root base."""
    current = entity_type
    while True:
        parent = _parent(current)
        if parent is None or parent in ROOT_TYPES:
            return current
        # pydantic parametrized generics (``Foo[int]``) stand in for their origin
        origin = getattr(parent, "__pydantic_generic_metadata__", {}).get("origin")
        if origin in ROOT_TYPES:
            return current
        current = parent


def _declared_override(entity_type: type) -> str | None:
    for klass in entity_type.__mro__:
        if klass in ROOT_TYPES:
            break
        if OVERRIDE_ATTRIBUTE in vars(klass):
            return vars(klass)[OVERRIDE_ATTRIBUTE]
    return None


@lru_cache(maxsize=None)
def resolve_collection_name(entity_type: type) -> str:
    """Return the collection name for ``entity_type``. Never empty."""
    name = _declared_override(entity_type)
    if name is None:
        name = base_level_type(entity_type).__name__

    if not name:
        raise ConfigurationError(
            f"Collection name cannot be empty for {entity_type.__name__}"
        )
    return name


def type_chain(entity_type: type) -> list[str]:
    """Class names from the base-level type down to ``entity_type``."""
    root = base_level_type(entity_type)
    chain: list[str] = []
    current: type | None = entity_type
    while current is not None:
        chain.append(current.__name__)
        if current is root:
            break
        current = _parent(current)
    chain.reverse()
    return chain


@dataclass(frozen=True)
class CollectionBinding:
    """Resolved (entity type -> collection name) pair, fixed at construction."""

    entity_type: type
    name: str


def bind(entity_type: type, collection: str | None = None) -> CollectionBinding:
    """Bind ``entity_type`` to ``collection`` or to its resolved name."""
    if collection is not None:
        if not collection:
            raise ConfigurationError(
                f"Collection name cannot be empty for {entity_type.__name__}"
            )
        return CollectionBinding(entity_type, collection)
    return CollectionBinding(entity_type, resolve_collection_name(entity_type))
