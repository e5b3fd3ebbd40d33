"""Entity <-> store document conversion.

Every stored document carries a ``_t`` discriminator: the class names from
the base-level type down to the concrete class. Subtypes sharing a
collection decode back into their own class, and ``of_type`` filters on it.
"""

import logging
from collections.abc import Mapping
from typing import Any, Generic, TypeVar

from pydantic import BaseModel

from mongorepo.entity import ID_FIELD
from mongorepo.naming import base_level_type, type_chain
from mongorepo.serialization import registry

logger = logging.getLogger(__name__)

TYPE_FIELD = "_t"

TEntity = TypeVar("TEntity", bound=BaseModel)


def _subclasses(klass: type) -> list[type]:
    found: list[type] = []
    for sub in klass.__subclasses__():
        found.append(sub)
        found.extend(_subclasses(sub))
    return found


class DocumentCodec(Generic[TEntity]):
    """Encodes entities of one repository and decodes its documents."""

    def __init__(self, entity_type: type[TEntity]):
        self.entity_type = entity_type
        self._root = base_level_type(entity_type)

    def encode(self, entity: TEntity) -> dict[str, Any]:
        document = registry.encode(entity.model_dump(by_alias=True))
        document[TYPE_FIELD] = type_chain(type(entity))
        return document

    def decode(self, document: Mapping[str, Any]) -> TEntity:
        data = registry.decode(dict(document))
        klass = self.resolve_type(data.pop(TYPE_FIELD, None))
        return klass.model_validate(data)

    def resolve_type(self, chain: list[str] | None) -> type[TEntity]:
        """Find the concrete class stored with discriminator ``chain``.

        Classes are matched on name; same-named classes are told apart by
        their whole chain of ancestors.
        """
        if not chain or chain == type_chain(self.entity_type):
            return self.entity_type

        name = chain[-1]
        matches: list[type] = []
        for candidate in (self.entity_type, self._root):
            for sub in _subclasses(candidate):
                if sub.__name__ == name and sub not in matches:
                    matches.append(sub)

        if len(matches) > 1:
            matches = [sub for sub in matches if type_chain(sub) == chain] or matches
        if len(matches) > 1:
            logger.warning(
                f"Discriminator {chain!r} matches {len(matches)} classes "
                f"({', '.join(sub.__module__ + '.' + sub.__qualname__ for sub in matches)}); "
                f"decoding as {matches[0].__qualname__}"
            )
        if matches:
            return matches[0]

        logger.debug(
            f"Unknown discriminator {name!r}; decoding as {self.entity_type.__name__}"
        )
        return self.entity_type

    def id_filter(self, key: Any) -> dict[str, Any]:
        return {ID_FIELD: registry.encode(key)}
