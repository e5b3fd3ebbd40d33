"""Tests for document encoding and polymorphic decoding."""

import logging

from mongorepo import Entity
from mongorepo.codec import DocumentCodec


def test_encode_adds_type_chain() -> None:
    class Vehicle(Entity):
        wheels: int = 0

    class Bike(Vehicle):
        pass

    document = DocumentCodec(Vehicle).encode(Bike(id="b1", wheels=2))

    assert document == {"_id": "b1", "wheels": 2, "_t": ["Vehicle", "Bike"]}


def test_unknown_discriminator_decodes_as_repository_type() -> None:
    class Vessel(Entity):
        pass

    decoded = DocumentCodec(Vessel).decode({"_id": "v1", "_t": ["Vessel", "Submarine"]})

    assert type(decoded) is Vessel


def test_same_named_classes_resolved_by_chain() -> None:
    class Machine(Entity):
        pass

    class Engine(Machine):
        pass

    class Turbine(Machine):
        pass

    class Rotor(Engine):
        pass

    engine_rotor = Rotor

    class Rotor(Turbine):  # noqa: F811
        pass

    turbine_rotor = Rotor
    codec = DocumentCodec(Machine)

    assert type(codec.decode({"_id": "1", "_t": ["Machine", "Engine", "Rotor"]})) is engine_rotor
    assert type(codec.decode({"_id": "2", "_t": ["Machine", "Turbine", "Rotor"]})) is turbine_rotor


def test_indistinguishable_classes_log_warning(caplog) -> None:
    class Gadget(Entity):
        pass

    class Widget(Gadget):
        pass

    first_widget = Widget

    class Widget(Gadget):  # noqa: F811
        pass

    with caplog.at_level(logging.WARNING, logger="mongorepo.codec"):
        decoded = DocumentCodec(Gadget).decode({"_id": "1", "_t": ["Gadget", "Widget"]})

    assert type(decoded) is first_widget
    assert "matches 2 classes" in caplog.text
