"""
FILE: weekplan/core/backing.py
PURPOSE: One persistence interface over the guest cache and the account store
EXPORTS:
  - GuestBacking (mirror of the guest scope in the local cache)
  - RemoteBacking (RemoteStore bound to one user_id)
  - backing_for(identity, local_store, remote_store) -> GuestBacking | RemoteBacking
DEPENDENCIES:
  - weekplan.core.local_store (LocalCacheStore)
  - weekplan.core.remote (RemoteStore)
  - weekplan.core.models (Task, Category, Identity)
NOTES:
  - Both backings expose the same coroutines so TaskRegistry never branches on identity
  - update_* take the full in-memory record; the backing decides what to send
  - GuestBacking rewrites the whole collection blob on every change, like localStorage
  - A blob that failed to parse is never written over until a load reads it
  - Neither backing is a source of truth; TaskRegistry owns the view
"""

import logging
from dataclasses import asdict
from typing import Dict, List, Optional, Sequence, Tuple, Union

from .constants import CATEGORIES_KEY, TASKS_KEY
from .exceptions import BackingStoreError, CategoryNotFoundError, TaskNotFoundError
from .local_store import LocalCacheStore
from .models import GUEST, Category, Identity, Task, default_categories
from .remote import RemoteStore


logger = logging.getLogger(__name__)

# Fields the account store never takes from an update
_SERVER_OWNED = ("id", "created_at", "updated_at")


class GuestBacking:
    """Guest scope persisted as two JSON blobs in the local cache."""

    def __init__(self, store: LocalCacheStore):
        self.store = store
        self.identity = GUEST
        self._tasks: Dict[str, Task] = {}
        self._categories: List[Category] = []
        # Blobs never read successfully are not written over
        self._loaded = {TASKS_KEY: False, CATEGORIES_KEY: False}

    async def load(self) -> Tuple[List[Task], List[Category]]:
        """
        Read both blobs into the mirror.

        Each blob is parsed on its own. One that is corrupt stays untouched
        on disk and refuses writes until a later load reads it cleanly.

        Returns:
            (tasks, categories); categories fall back to the defaults
            when none were ever saved

        Raises:
            BackingStoreError: If the cache can't be read or a blob is corrupt
        """
        errors: List[BackingStoreError] = []

        try:
            tasks = self._parse(TASKS_KEY, Task.from_cache) or []
        except BackingStoreError as e:
            errors.append(e)
        else:
            self._tasks = {task.id: task for task in tasks}
            self._loaded[TASKS_KEY] = True

        try:
            categories = self._parse(CATEGORIES_KEY, Category.from_cache) or default_categories()
        except BackingStoreError as e:
            errors.append(e)
        else:
            self._categories = categories
            self._loaded[CATEGORIES_KEY] = True

        if errors:
            raise errors[0]

        logger.debug("Loaded %d guest task(s), %d categories", len(tasks), len(categories))
        return list(tasks), list(categories)

    def _parse(self, key: str, factory) -> Optional[list]:
        self._loaded[key] = False
        raw = self.store.get_json(key)
        if raw is None:
            return None
        try:
            return [factory(entry) for entry in raw]
        except (TypeError, KeyError, AttributeError) as e:
            raise BackingStoreError(f"Guest data under '{key}' has an unexpected shape: {e}") from e

    def is_empty(self) -> bool:
        return (
            self.store.get(TASKS_KEY) is None and self.store.get(CATEGORIES_KEY) is None
        )

    def clear(self) -> None:
        """Remove both guest keys."""
        self.store.remove(TASKS_KEY)
        self.store.remove(CATEGORIES_KEY)
        self._tasks = {}
        self._categories = []
        self._loaded = {TASKS_KEY: True, CATEGORIES_KEY: True}

    # --- Tasks ---

    async def create_task(self, task: Task) -> Task:
        self._tasks[task.id] = task
        self._flush_tasks()
        return task

    async def update_task(self, task: Task) -> Task:
        if task.id not in self._tasks:
            raise TaskNotFoundError(task.id)
        self._tasks[task.id] = task
        self._flush_tasks()
        return task

    async def delete_task(self, task_id: str) -> None:
        if self._tasks.pop(task_id, None) is not None:
            self._flush_tasks()

    async def commit_order(self, day: str, ordered_ids: Sequence[str]) -> None:
        for index, task_id in enumerate(ordered_ids):
            task = self._tasks.get(task_id)
            if task and task.day == day:
                self._tasks[task_id] = task.copy(order=index)
        self._flush_tasks()

    # --- Categories ---

    async def create_category(self, category: Category) -> Category:
        self._categories.append(category)
        self._flush_categories()
        return category

    async def update_category(self, category: Category) -> Category:
        for index, existing in enumerate(self._categories):
            if existing.id == category.id:
                self._categories[index] = category
                self._flush_categories()
                return category
        raise CategoryNotFoundError(category.id)

    async def delete_category(self, category_id: str, fallback_id: str) -> str:
        # Tasks are rewritten before the category goes, so no reference dangles
        for task_id, task in list(self._tasks.items()):
            if task.category_id == category_id:
                self._tasks[task_id] = task.copy(category_id=fallback_id)
        self._flush_tasks()

        self._categories = [c for c in self._categories if c.id != category_id]
        self._flush_categories()
        return fallback_id

    def _flush_tasks(self) -> None:
        self._check_loaded(TASKS_KEY)
        self.store.set_json(TASKS_KEY, [task.to_cache() for task in self._tasks.values()])

    def _flush_categories(self) -> None:
        self._check_loaded(CATEGORIES_KEY)
        self.store.set_json(CATEGORIES_KEY, [c.to_cache() for c in self._categories])

    def _check_loaded(self, key: str) -> None:
        if not self._loaded[key]:
            raise BackingStoreError(f"Guest data under '{key}' was not read; refusing to overwrite it")


class RemoteBacking:
    """Account store calls pre-bound to the signed-in user."""

    def __init__(self, store: RemoteStore, identity: Identity):
        self.store = store
        self.identity = identity

    @property
    def user_id(self) -> str:
        return self.identity.user_id

    async def load(self) -> Tuple[List[Task], List[Category]]:
        tasks = await self.store.list_tasks(self.user_id)
        categories = await self.store.list_categories(self.user_id)
        if not categories:
            logger.info("Account %s has no categories, seeding defaults", self.user_id)
            categories = await self.store.seed_default_categories(self.user_id)
        return tasks, categories

    async def create_task(self, task: Task) -> Task:
        return await self.store.create_task(self.user_id, task)

    async def update_task(self, task: Task) -> Task:
        return await self.store.update_task(self.user_id, task.id, _partial(task))

    async def delete_task(self, task_id: str) -> None:
        await self.store.delete_task(self.user_id, task_id)

    async def commit_order(self, day: str, ordered_ids: Sequence[str]) -> None:
        await self.store.commit_order(self.user_id, day, ordered_ids)

    async def create_category(self, category: Category) -> Category:
        return await self.store.create_category(self.user_id, category)

    async def update_category(self, category: Category) -> Category:
        return await self.store.update_category(self.user_id, category.id, _partial(category))

    async def delete_category(self, category_id: str, fallback_id: str) -> str:
        # Server picks its own fallback; caller compares with fallback_id
        return await self.store.delete_category(self.user_id, category_id)


def _partial(record: Union[Task, Category]) -> Dict[str, object]:
    return {name: value for name, value in asdict(record).items() if name not in _SERVER_OWNED}


def backing_for(
    identity: Identity,
    local_store: LocalCacheStore,
    remote_store: Optional[RemoteStore],
) -> Union[GuestBacking, RemoteBacking]:
    """Pick the backing store for an identity."""
    if identity.is_guest:
        return GuestBacking(local_store)
    if remote_store is None:
        raise BackingStoreError("No account store configured")
    return RemoteBacking(remote_store, identity)
