"""
Test the local cache store, the remote store and the record mappings.
"""

# Path setup handled by conftest.py
import asyncio
import sqlite3

from weekplan.core.exceptions import (
    BackingStoreError,
    CategoryNotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from weekplan.core.local_store import LocalCacheStore
from weekplan.core.models import Category, Task
from weekplan.core.remote import SQLiteRemoteStore
import pytest


@pytest.fixture
def cache(tmp_path):
    return LocalCacheStore(tmp_path / "cache.db")


@pytest.fixture
def remote(tmp_path):
    return SQLiteRemoteStore(tmp_path / "remote.db")


def _user(remote, email="ana@example.com"):
    return asyncio.run(remote.create_user(email, "Ana", "x"))["id"]


# --- Mappings ---


def test_task_cache_mapping_round_trip():
    """Every field survives to_cache/from_cache under camelCase keys."""
    task = Task(
        id="t1",
        title="Buy milk",
        category_id="1",
        day="Mon",
        status="in-progress",
        order=3,
        due_date="2025-01-06",
        due_time="09:30",
        description="2 liters",
        created_at="2025-01-01T10:00:00",
        completed_at=None,
        updated_at="2025-01-01T11:00:00",
        source_ref="guest-1",
    )
    entry = task.to_cache()

    assert entry["categoryId"] == "1"
    assert entry["dueTime"] == "09:30"
    assert "category_id" not in entry
    assert Task.from_cache(entry) == task


def test_task_row_mapping_uses_order_index():
    task = Task(id="t1", title="Buy milk", category_id="c", day="Tue", order=2)
    row = task.to_row()

    assert row["order_index"] == 2
    assert "order" not in row
    assert Task.from_row(row) == task


def test_category_from_cache_defaults_icon():
    category = Category.from_cache({"id": "9", "name": "Garden", "color": "#00ff00"})
    assert category.icon == "\U0001F4C1"


# --- Local cache store ---


def test_cache_get_set_remove(cache):
    assert cache.get("missing") is None

    cache.set("key", "one")
    cache.set("key", "two")
    assert cache.get("key") == "two"

    cache.remove("key")
    cache.remove("key")
    assert cache.get("key") is None


def test_cache_json_round_trip(cache):
    cache.set_json("todos", [{"id": "1", "title": "Café"}])
    assert cache.get_json("todos") == [{"id": "1", "title": "Café"}]
    assert cache.get_json("absent") is None


def test_cache_corrupt_json_raises(cache):
    cache.set("todos", "{not json")
    with pytest.raises(BackingStoreError):
        cache.get_json("todos")


def test_cache_unreadable_file_raises(tmp_path):
    path = tmp_path / "cache.db"
    path.write_text("this is not a sqlite database" * 100)

    with pytest.raises(BackingStoreError):
        LocalCacheStore(path).get("todos")


def test_cache_closes_connection_when_table_setup_fails(cache, monkeypatch):
    closed = []

    class LockedConnection:
        def execute(self, *args):
            raise sqlite3.OperationalError("database is locked")

        def close(self):
            closed.append(True)

    monkeypatch.setattr(sqlite3, "connect", lambda path: LockedConnection())

    with pytest.raises(BackingStoreError):
        cache.get("todos")
    assert closed == [True]


# --- Remote store ---


def test_remote_create_task_appends_per_user_and_day(remote):
    """order_index is max + 1 within (user, day), regardless of the client's order."""
    ana = _user(remote)
    ben = _user(remote, "ben@example.com")

    async def scenario():
        [category] = (await remote.seed_default_categories(ana))[:1]
        first = await remote.create_task(ana, Task("a", "A", category.id, "Mon", order=5))
        second = await remote.create_task(ana, Task("b", "B", category.id, "Mon", order=0))
        other_day = await remote.create_task(ana, Task("c", "C", category.id, "Tue"))
        return first, second, other_day, await remote.list_tasks(ben)

    first, second, other_day, ben_tasks = asyncio.run(scenario())

    assert (first.order, second.order, other_day.order) == (0, 1, 0)
    assert first.updated_at is not None
    assert ben_tasks == []


def test_remote_update_and_scoping(remote):
    ana = _user(remote)
    ben = _user(remote, "ben@example.com")

    async def scenario():
        category = (await remote.seed_default_categories(ana))[0]
        await remote.create_task(ana, Task("a", "A", category.id, "Mon"))
        updated = await remote.update_task(ana, "a", {"title": "A2", "status": "done"})

        with pytest.raises(TaskNotFoundError):
            await remote.update_task(ben, "a", {"title": "stolen"})
        return updated

    updated = asyncio.run(scenario())
    assert updated.title == "A2"
    assert updated.status == "done"


def test_remote_commit_order(remote):
    ana = _user(remote)

    async def scenario():
        category = (await remote.seed_default_categories(ana))[0]
        for task_id in ("a", "b", "c"):
            await remote.create_task(ana, Task(task_id, task_id.upper(), category.id, "Wed"))
        await remote.commit_order(ana, "Wed", ["c", "a", "b"])
        return await remote.list_tasks(ana)

    tasks = asyncio.run(scenario())
    assert [t.id for t in tasks] == ["c", "a", "b"]
    assert [t.order for t in tasks] == [0, 1, 2]


def test_remote_delete_category_reassigns_tasks(remote):
    ana = _user(remote)

    async def scenario():
        categories = await remote.seed_default_categories(ana)
        work = categories[1]
        await remote.create_task(ana, Task("a", "A", work.id, "Mon"))
        fallback = await remote.delete_category(ana, work.id)
        return categories, fallback, await remote.list_tasks(ana), await remote.list_categories(ana)

    categories, fallback, tasks, remaining = asyncio.run(scenario())

    assert fallback == categories[0].id
    assert tasks[0].category_id == fallback
    assert len(remaining) == 4


def test_remote_delete_last_category_rejected(remote):
    ana = _user(remote)

    async def scenario():
        only = await remote.create_category(ana, Category("only", "Only", "#000000"))
        with pytest.raises(ValidationError):
            await remote.delete_category(ana, only.id)
        with pytest.raises(CategoryNotFoundError):
            await remote.delete_category(ana, "missing")
        return await remote.list_categories(ana)

    assert [c.id for c in asyncio.run(scenario())] == ["only"]


def test_remote_duplicate_email_rejected(remote):
    _user(remote)
    with pytest.raises(ValidationError):
        _user(remote)


def test_remote_storage_failure_is_backing_store_error(remote, monkeypatch):
    def broken_connection():
        raise sqlite3.OperationalError("disk I/O error")

    monkeypatch.setattr(remote, "get_connection", broken_connection)
    with pytest.raises(BackingStoreError):
        asyncio.run(remote.list_tasks("anyone"))
