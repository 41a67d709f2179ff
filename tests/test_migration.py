"""
Test moving guest data into an account on sign-in.
"""

# Path setup handled by conftest.py
import asyncio

from weekplan.core.backing import GuestBacking
from weekplan.core.constants import CATEGORIES_KEY, TASKS_KEY
from weekplan.core.exceptions import BackingStoreError, MigrationError, ValidationError
from weekplan.core.migration import MigrationTransactor
from weekplan.core.registry import TaskRegistry
import pytest


async def _guest_with_data(context):
    """Guest with one task in a default category and one in a custom category."""
    registry = TaskRegistry(context)
    await registry.load()
    garden = await registry.add_category("Garden", "#22c55e")
    await registry.add_task("Plant tulips", "Sat", category_id=garden.id)
    await registry.add_task("Write report", "Mon", category_id="2")
    return registry


def test_login_migrates_guest_data(context):
    """Custom category and both tasks land in the account; guest keys are gone."""

    async def scenario():
        registry = await _guest_with_data(context)
        await context.session.signup("ana@example.com", "Ana", "1234")
        user_id = registry.identity.user_id
        remote = context.remote_store
        return (
            registry,
            await remote.list_categories(user_id),
            await remote.list_tasks(user_id),
        )

    registry, categories, tasks = asyncio.run(scenario())

    names = [c.name for c in categories]
    assert names.count("Garden") == 1
    assert names.count("Work") == 1
    assert len(categories) == 6

    by_title = {t.title: t for t in tasks}
    assert set(by_title) == {"Plant tulips", "Write report"}
    by_id = {c.id: c.name for c in categories}
    assert by_id[by_title["Plant tulips"].category_id] == "Garden"
    assert by_id[by_title["Write report"].category_id] == "Work"
    assert all(t.source_ref for t in tasks)

    assert context.local_store.get(TASKS_KEY) is None
    assert context.local_store.get(CATEGORIES_KEY) is None

    assert not registry.pending_migration
    assert registry.last_migration.tasks_created == 2
    assert registry.last_migration.categories_created == 1
    assert {t.title for t in registry.list_tasks()} == {"Plant tulips", "Write report"}


def test_edited_default_category_is_copied_not_mapped(context):
    """A renamed default keeps its name and color in the account."""

    async def scenario():
        registry = TaskRegistry(context)
        await registry.load()
        await registry.edit_category("1", name="Home", color="#123456")
        await registry.add_task("Fix sink", "Tue", category_id="1")
        await context.session.signup("ana@example.com", "Ana", "1234")
        user_id = registry.identity.user_id
        remote = context.remote_store
        return registry, await remote.list_categories(user_id), await remote.list_tasks(user_id)

    registry, categories, tasks = asyncio.run(scenario())

    by_id = {c.id: c for c in categories}
    [task] = tasks
    assert (by_id[task.category_id].name, by_id[task.category_id].color) == ("Home", "#123456")
    assert [c.name for c in categories].count("Personal") == 1
    assert registry.last_migration.categories_created == 1
    assert registry.last_migration.categories_mapped == 4


def test_migration_keeps_day_order(context):
    async def scenario():
        registry = TaskRegistry(context)
        await registry.load()
        first = await registry.add_task("First", "Wed")
        await registry.add_task("Second", "Wed")
        await registry.add_task("Third", "Wed")
        await registry.reorder("Wed", first.id, registry.list_by_day("Wed")[2].id)
        before = [t.title for t in registry.list_by_day("Wed")]

        await context.session.signup("ana@example.com", "Ana", "1234")
        return before, registry.list_by_day("Wed")

    before, after = asyncio.run(scenario())
    assert before == ["Second", "Third", "First"]
    assert [t.title for t in after] == before
    assert [t.order for t in after] == [0, 1, 2]


def test_failed_migration_preserves_guest_and_retry_does_not_duplicate(context, monkeypatch):
    async def scenario():
        registry = await _guest_with_data(context)
        guest_tasks = context.local_store.get(TASKS_KEY)
        remote = context.remote_store
        real_create = remote.create_task
        calls = []

        async def flaky_create(user_id, task):
            calls.append(task.title)
            if len(calls) == 2:
                raise BackingStoreError("connection reset")
            return await real_create(user_id, task)

        monkeypatch.setattr(remote, "create_task", flaky_create)
        with pytest.raises(MigrationError) as error:
            await context.session.signup("ana@example.com", "Ana", "1234")

        assert error.value.failed
        assert registry.pending_migration
        assert not registry.identity.is_guest
        assert context.local_store.get(TASKS_KEY) == guest_tasks

        monkeypatch.setattr(remote, "create_task", real_create)
        report = await registry.retry_migration()
        user_id = registry.identity.user_id
        return registry, report, await remote.list_tasks(user_id), await remote.list_categories(user_id)

    registry, report, tasks, categories = asyncio.run(scenario())

    assert sorted(t.title for t in tasks) == ["Plant tulips", "Write report"]
    assert [c.name for c in categories].count("Garden") == 1
    assert report.tasks_created == 1
    assert report.tasks_skipped == 1
    assert not registry.pending_migration
    assert context.local_store.get(TASKS_KEY) is None


def test_empty_guest_migrates_nothing(context):
    async def scenario():
        remote = context.remote_store
        user = await remote.create_user("ana@example.com", "Ana", "x")
        await remote.seed_default_categories(user["id"])
        report = await MigrationTransactor(remote).migrate(
            GuestBacking(context.local_store), user["id"]
        )
        return report, await remote.list_categories(user["id"])

    report, categories = asyncio.run(scenario())
    assert (report.tasks_created, report.categories_created) == (0, 0)
    assert len(categories) == 5


def test_unreadable_guest_data_is_migration_error(context):
    context.local_store.set(TASKS_KEY, "not json")

    async def scenario():
        remote = context.remote_store
        user = await remote.create_user("ana@example.com", "Ana", "x")
        await MigrationTransactor(remote).migrate(GuestBacking(context.local_store), user["id"])

    with pytest.raises(MigrationError):
        asyncio.run(scenario())
    assert context.local_store.get(TASKS_KEY) == "not json"


def test_retry_migration_requires_account(context):
    async def scenario():
        registry = TaskRegistry(context)
        await registry.load()
        with pytest.raises(ValidationError):
            await registry.retry_migration()

    asyncio.run(scenario())
