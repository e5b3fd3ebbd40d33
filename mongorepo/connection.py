"""
MongoDB client connections via Motor (async driver).

This module provides:
- One cached client per (url, username)
- Database lookup from a connection URL (the URL must name the database)
- Health check and shutdown utilities
"""

import logging
import threading

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pydantic import ValidationError
from pymongo.errors import ConfigurationError as PyMongoConfigurationError
from pymongo.errors import PyMongoError
from pymongo.uri_parser import parse_uri

from mongorepo.config import ConnectionSettings, get_settings
from mongorepo.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

_clients: dict[tuple[str, str | None], AsyncIOMotorClient] = {}
_clients_lock = threading.Lock()


def connection_settings(
    connection: ConnectionSettings | str | None = None,
    collection_name: str | None = None,
) -> ConnectionSettings:
    """Normalize the accepted connection forms into ``ConnectionSettings``.

    ``None`` falls back to the configured default URL.
    """
    try:
        if connection is None:
            resolved = get_settings().connection()
        elif isinstance(connection, str):
            resolved = ConnectionSettings(url=connection)
        else:
            resolved = connection
        if collection_name is not None:
            resolved = ConnectionSettings(
                url=resolved.url,
                collection_name=collection_name,
                username=resolved.username,
                password=resolved.password,
            )
    except (ValidationError, ValueError) as e:
        raise ConfigurationError(f"Invalid connection settings: {e}") from e
    return resolved


def get_client(settings: ConnectionSettings) -> AsyncIOMotorClient:
    """
    Get the cached client for ``settings``, creating it on first use.

    Clients connect lazily; a malformed URL fails here, an unreachable server
    fails on the first operation.
    """
    key = (settings.url, settings.username)
    with _clients_lock:
        client = _clients.get(key)
        if client is not None:
            return client

        try:
            parsed = parse_uri(settings.url)
        except PyMongoConfigurationError as e:
            raise ConfigurationError(
                f"Invalid MongoDB URL {_sanitize_mongodb_url(settings.url)}: {e}"
            ) from e
        if not parsed.get("database"):
            raise ConfigurationError(
                f"MongoDB URL {_sanitize_mongodb_url(settings.url)} must contain the database name"
            )

        options = {}
        if settings.username is not None:
            options["username"] = settings.username
            options["password"] = settings.password.get_secret_value()
            if "authsource" not in parsed["options"]:
                # Credentials belong to the URL's database
                options["authSource"] = parsed["database"]

        client = AsyncIOMotorClient(settings.url, **options)
        _clients[key] = client
        logger.info(f"Connected client for {_sanitize_mongodb_url(settings.url)}")
        return client


def get_database(settings: ConnectionSettings) -> AsyncIOMotorDatabase:
    """Get the database named in the connection URL."""
    return get_client(settings).get_default_database()


async def check_connection(settings: ConnectionSettings) -> bool:
    """
    Check if the MongoDB server answers a ping.
    """
    try:
        await get_client(settings).admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed for {_sanitize_mongodb_url(settings.url)}: {e}")
        return False


def close_clients() -> None:
    """
    Close every cached client.
    """
    with _clients_lock:
        for client in _clients.values():
            client.close()
        _clients.clear()


def _sanitize_mongodb_url(url: str) -> str:
    """
    Hide password in MongoDB URL for safe logging.
    """
    if "@" not in url:
        return url

    try:
        # Handle mongodb+srv:// or mongodb://
        if "://" in url:
            protocol, rest = url.split("://", 1)
            if "@" in rest:
                credentials, host = rest.split("@", 1)
                if ":" in credentials:
                    username = credentials.split(":", 1)[0]
                    return f"{protocol}://{username}:***@{host}"
        return url
    except ValueError:
        return url
