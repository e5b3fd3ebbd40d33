"""Shared fixtures: an in-memory MongoDB per test and a clean registry."""

import uuid

import logfire
import pytest
from mongomock_motor import AsyncMongoMockClient

from mongorepo import registry

logfire.configure(send_to_logfire=False, console=False)


@pytest.fixture
def database():
    """Fresh in-memory database, unique per test."""
    client = AsyncMongoMockClient()
    return client[f"MongoRepositoryTests_{uuid.uuid4().hex[:8]}"]


@pytest.fixture(autouse=True)
def clean_registry():
    registry.reset()
    yield
    registry.reset()
