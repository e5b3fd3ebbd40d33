"""Process-wide serialization settings.

Configured once at startup, before any repository reads or writes documents
with the affected types:

- datetimes are read back as timezone-aware local time
- enums registered with ``register_enum()`` are stored by member name

Usage:
    from mongorepo import registry

    registry.register_enum(OrderStatus)
    registry.initialize()
"""

import collections.abc
import logging
import threading
import types
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Union, get_args, get_origin

from bson.decimal128 import Decimal128

logger = logging.getLogger(__name__)


class SerializationRegistry:
    """Initialize-once converter configuration shared by every repository."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: list[type[Enum]] = []
        self._enums: frozenset[type[Enum]] = frozenset()
        self._initialized = False

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def enum_types(self) -> frozenset[type[Enum]]:
        """Enum types stored by name (empty until initialized)."""
        return self._enums

    def register_enum(self, enum_type: type[Enum]) -> None:
        """Store ``enum_type`` by member name once ``initialize()`` runs.

        Registering the same type twice is a no-op.
        """
        if not (isinstance(enum_type, type) and issubclass(enum_type, Enum)):
            raise TypeError(f"{enum_type!r} is not an Enum type")

        with self._lock:
            if enum_type in self._pending:
                return
            self._pending.append(enum_type)
            if self._initialized:
                logger.warning(
                    f"Enum {enum_type.__name__} registered after initialize(); "
                    "it will keep being stored by value"
                )

    def initialize(self) -> None:
        """Activate the converters. Calls after the first one are no-ops."""
        if self._initialized:
            return

        with self._lock:
            if self._initialized:
                return
            self._enums = frozenset(self._pending)
            self._initialized = True

        logger.info(
            f"Serialization initialized (local datetimes, "
            f"{len(self._enums)} enum type(s) stored by name)"
        )

    # ------------------------------------------------------------------
    # Document conversion
    # ------------------------------------------------------------------

    def encode(self, value: Any) -> Any:
        """Convert a dumped model into values the BSON encoder accepts."""
        if isinstance(value, dict):
            return {key: self.encode(item) for key, item in value.items()}
        if isinstance(value, (list, tuple, set, frozenset)):
            return [self.encode(item) for item in value]
        if isinstance(value, Enum):
            if type(value) in self._enums:
                return value.name
            return value.value
        if isinstance(value, Decimal):
            return Decimal128(value)
        if isinstance(value, datetime) and self._initialized and value.tzinfo is None:
            # Naive values are wall-clock local time
            return value.astimezone()
        return value

    def decode(self, value: Any) -> Any:
        """Convert a raw store document before model validation."""
        if isinstance(value, dict):
            return {key: self.decode(item) for key, item in value.items()}
        if isinstance(value, list):
            return [self.decode(item) for item in value]
        if isinstance(value, Decimal128):
            return value.to_decimal()
        if isinstance(value, datetime) and self._initialized:
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value.astimezone()
        return value

    def restore_enum(self, annotation: Any, value: Any) -> Any:
        """Map stored member names back onto registered enums.

        Follows ``annotation`` into unions, sequences, sets and dict values,
        the same shapes ``encode`` walks when writing names.
        """
        if not self._enums:
            return value

        origin = get_origin(annotation)
        if origin is Union or origin is types.UnionType:
            for arg in get_args(annotation):
                restored = self.restore_enum(arg, value)
                if restored is not value:
                    return restored
            return value

        if isinstance(value, list) and origin in _SEQUENCE_ORIGINS:
            args = [arg for arg in get_args(annotation) if arg is not Ellipsis]
            if origin is tuple and len(args) > 1:
                if len(args) != len(value):
                    return value
                return [self.restore_enum(arg, item) for arg, item in zip(args, value)]
            if len(args) == 1:
                return [self.restore_enum(args[0], item) for item in value]
            return value

        if isinstance(value, dict) and origin in _MAPPING_ORIGINS:
            args = get_args(annotation)
            if len(args) == 2:
                return {key: self.restore_enum(args[1], item) for key, item in value.items()}
            return value

        if (
            isinstance(value, str)
            and isinstance(annotation, type)
            and annotation in self._enums
            and value in annotation.__members__
        ):
            return annotation[value]
        return value

    def reset(self) -> None:
        """Drop all registrations. Intended for test isolation only."""
        with self._lock:
            self._pending = []
            self._enums = frozenset()
            self._initialized = False


_SEQUENCE_ORIGINS = (
    list,
    tuple,
    set,
    frozenset,
    collections.abc.Sequence,
    collections.abc.MutableSequence,
    collections.abc.Set,
    collections.abc.MutableSet,
)

_MAPPING_ORIGINS = (dict, collections.abc.Mapping, collections.abc.MutableMapping)

registry = SerializationRegistry()
