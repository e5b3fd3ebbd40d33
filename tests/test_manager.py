"""Tests for RepositoryManager and DatabaseManager."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from mongorepo import ConfigurationError, DatabaseManager, Repository, RepositoryManager
from tests.entities import Customer, Lion, Product


def test_exists_and_drop(database) -> None:
    repo = Repository(Customer, database=database)
    manager = RepositoryManager(Customer, database=database)

    async def run() -> None:
        assert not await manager.exists()

        await repo.add(Customer(first_name="Bob"))
        assert await manager.exists()

        await manager.drop()
        assert not await manager.exists()
        assert await repo.count() == 0

    asyncio.run(run())


def test_manager_binds_same_collection_as_repository(database) -> None:
    assert RepositoryManager(Lion, database=database).name == Repository(Lion, database=database).name
    assert RepositoryManager(Customer, database=database, collection_name="Other").name == "Other"


def test_indexes(database) -> None:
    repo = Repository(Customer, database=database)
    manager = RepositoryManager(Customer, database=database)

    async def run() -> None:
        await repo.add(Customer(first_name="Bob", last_name="Dillon"))

        first_name_index = await manager.ensure_index("first_name")
        compound = await manager.ensure_indexes(["last_name", "email"], descending=True)

        assert first_name_index == "first_name_1"
        assert compound == "last_name_-1_email_-1"
        assert await manager.index_exists(first_name_index)
        assert await manager.indexes_exist([first_name_index, compound])

        await manager.drop_index(first_name_index)
        assert not await manager.index_exists(first_name_index)
        assert await manager.index_exists(compound)

        await manager.drop_all_indexes()
        assert not await manager.indexes_exist([compound])
        assert await manager.index_exists("_id_")

    asyncio.run(run())


def test_drop_indexes_by_name(database) -> None:
    repo = Repository(Product, database=database)
    manager = RepositoryManager(Product, database=database)

    async def run() -> None:
        await repo.add(Product(name="Paper"))
        names = [await manager.ensure_index("name"), await manager.ensure_index("price", unique=False)]

        await manager.drop_indexes(names)
        assert not await manager.indexes_exist(names)

    asyncio.run(run())


def _stats_database() -> MagicMock:
    database = MagicMock()
    database.command = AsyncMock(return_value={"ok": 1, "size": 2048, "storageSize": 8192})
    return database


def test_stats() -> None:
    database = _stats_database()
    manager = RepositoryManager(Customer, database=database)

    async def run() -> None:
        assert (await manager.get_stats())["ok"] == 1
        assert await manager.total_data_size() == 2048
        assert await manager.total_storage_size() == 8192

    asyncio.run(run())
    database.command.assert_awaited_with("collStats", "Customer")


def test_reindex() -> None:
    database = _stats_database()
    manager = RepositoryManager(Customer, database=database)

    asyncio.run(manager.reindex())
    database.command.assert_awaited_once_with("reIndex", "Customer")


def test_database_manager_lists_collections(database) -> None:
    async def run() -> None:
        await Repository(Customer, database=database).add(Customer())
        await Repository(Product, database=database).add(Product())

        names = await DatabaseManager(database=database).list_collections()
        assert sorted(names) == ["Customer", "Product"]

    asyncio.run(run())


def test_database_manager_needs_one_source(database) -> None:
    with pytest.raises(ConfigurationError):
        DatabaseManager(database=database, connection="mongodb://localhost/shop")
