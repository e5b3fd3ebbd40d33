"""Tests for settings and connection handling."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from pydantic import ValidationError
from pymongo.errors import ServerSelectionTimeoutError

from mongorepo import ConfigurationError, Repository
from mongorepo.config import ConnectionSettings, Settings
from mongorepo.connection import (
    _sanitize_mongodb_url,
    check_connection,
    close_clients,
    connection_settings,
    get_client,
    get_database,
)
from tests.entities import Customer


@pytest.fixture(autouse=True)
def clients():
    yield
    close_clients()


def test_settings_defaults(monkeypatch) -> None:
    monkeypatch.delenv("MONGOREPO_MONGO_URL", raising=False)
    settings = Settings(_env_file=None)

    assert settings.mongo_url == "mongodb://localhost:27017/mongorepo"
    assert settings.log_level == "INFO"
    assert settings.connection().collection_name is None


def test_settings_from_environment(monkeypatch) -> None:
    monkeypatch.setenv("MONGOREPO_MONGO_URL", "mongodb://db.internal:27017/shop")
    monkeypatch.setenv("MONGOREPO_LOG_LEVEL", "debug")
    settings = Settings(_env_file=None)

    assert settings.mongo_url == "mongodb://db.internal:27017/shop"
    assert settings.log_level == "DEBUG"
    assert settings.connection("Orders").collection_name == "Orders"


def test_connection_settings_validation() -> None:
    with pytest.raises(ValidationError):
        ConnectionSettings(url="http://localhost/shop")
    with pytest.raises(ValidationError):
        ConnectionSettings(url="mongodb://localhost/shop", collection_name="  ")
    with pytest.raises(ValidationError):
        ConnectionSettings(url="mongodb://localhost/shop", username="admin")


def test_connection_settings_from_string() -> None:
    resolved = connection_settings("mongodb://localhost:27017/shop", "Orders")

    assert resolved.url == "mongodb://localhost:27017/shop"
    assert resolved.collection_name == "Orders"


def test_invalid_connection_is_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        connection_settings("localhost:27017/shop")
    with pytest.raises(ConfigurationError):
        connection_settings("mongodb://localhost/shop", "")


def test_url_must_name_database() -> None:
    with pytest.raises(ConfigurationError):
        get_client(ConnectionSettings(url="mongodb://localhost:27017"))


def test_clients_are_cached() -> None:
    settings = ConnectionSettings(url="mongodb://localhost:27017/shop")

    assert get_client(settings) is get_client(settings)
    assert get_database(settings).name == "shop"


def test_repository_from_connection_url() -> None:
    repo = Repository(Customer, connection="mongodb://localhost:27017/shop")

    assert repo.name == "Customer"
    assert repo.database.name == "shop"


def test_repository_collection_from_connection_settings() -> None:
    settings = ConnectionSettings(url="mongodb://localhost:27017/shop", collection_name="Buyers")
    repo = Repository(Customer, connection=settings)

    assert repo.name == "Buyers"


def test_repository_rejects_url_without_database() -> None:
    with pytest.raises(ConfigurationError):
        Repository(Customer, connection="mongodb://localhost:27017")


def test_sanitize_mongodb_url() -> None:
    assert _sanitize_mongodb_url("mongodb://admin:secret@db:27017/shop") == "mongodb://admin:***@db:27017/shop"
    assert _sanitize_mongodb_url("mongodb://db:27017/shop") == "mongodb://db:27017/shop"


def test_check_connection() -> None:
    settings = ConnectionSettings(url="mongodb://localhost:27017/shop")
    healthy = MagicMock()
    healthy.admin.command = AsyncMock(return_value={"ok": 1})
    down = MagicMock()
    down.admin.command = AsyncMock(side_effect=ServerSelectionTimeoutError("no servers"))

    with patch("mongorepo.connection.get_client", return_value=healthy):
        assert asyncio.run(check_connection(settings))
    with patch("mongorepo.connection.get_client", return_value=down):
        assert not asyncio.run(check_connection(settings))
