"""Entity base classes and identifier generation.

An entity is a pydantic model with an ``id`` field stored under ``_id``.
The default key type is ``str``; a subclass picks another key type by
redeclaring the field:

    class Invoice(Entity):
        id: int | None = Field(default=None, alias="_id")
"""

import types
from typing import Any, Callable, Protocol, TypeVar, Union, get_args, get_origin

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, Field, model_validator

from mongorepo.exceptions import MissingIdentifierError
from mongorepo.serialization import registry

K = TypeVar("K")

ID_FIELD = "_id"


class Identifiable(Protocol[K]):
    """Anything carrying a comparable identifier."""

    id: K | None


class Model(BaseModel):
    """Base for entities and the value objects embedded in them."""

    model_config = ConfigDict(
        populate_by_name=True,
        arbitrary_types_allowed=True,
    )

    @model_validator(mode="before")
    @classmethod
    def restore_registered_enums(cls, data: Any) -> Any:
        """Turn enum member names written by the registry back into members."""
        if not isinstance(data, dict) or not registry.enum_types:
            return data

        restored = dict(data)
        for name, field in cls.model_fields.items():
            key = field.alias or name
            if key in restored:
                restored[key] = registry.restore_enum(field.annotation, restored[key])
        return restored


class Entity(Model):
    """Root of every stored entity. Direct subclasses get their own collection."""

    id: str | None = Field(default=None, alias=ID_FIELD)


# ============================================================================
# Identifier generation
# ============================================================================

KEY_GENERATORS: dict[type, Callable[[], Any]] = {
    str: lambda: str(ObjectId()),
    ObjectId: ObjectId,
}


def key_type(entity_type: type[BaseModel]) -> type | None:
    """Return the declared type of ``entity_type.id`` with Optional removed."""
    field = entity_type.model_fields.get("id")
    if field is None:
        return None
    annotation = field.annotation
    if get_origin(annotation) in (Union, types.UnionType):
        args = [arg for arg in get_args(annotation) if arg is not type(None)]
        annotation = args[0] if len(args) == 1 else None
    return annotation if isinstance(annotation, type) else None


def ensure_identifier(entity: BaseModel, collection: str | None = None) -> Any:
    """Generate an id for ``entity`` when it has none; return the id.

    The generated value is assigned onto the entity so callers see it.
    """
    current = getattr(entity, "id", None)
    if current is not None:
        return current

    kind = key_type(type(entity))
    generator = KEY_GENERATORS.get(kind)
    if generator is None:
        raise MissingIdentifierError(
            f"{type(entity).__name__} has no id and key type "
            f"{getattr(kind, '__name__', kind)} cannot be generated",
            collection,
        )

    entity.id = generator()
    return entity.id
