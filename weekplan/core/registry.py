"""
FILE: weekplan/core/registry.py
PURPOSE: In-memory authoritative view of tasks and categories for the current identity
EXPORTS:
  - PlannerContext (dataclass): explicit collaborators handed to a registry
  - TaskRegistry (class)
    - load() -> None
    - add_task(title, day, ...) -> Task
    - edit_task(task_id, **updates) -> Task
    - set_status(task_id, status) -> Task / cycle_status(task_id) -> Task
    - delete_task(task_id) -> None
    - reorder(day, moved_id, target_id) -> List[Task]
    - list_by_day(day) -> List[Task] / list_tasks() -> List[Task]
    - add_category / edit_category / delete_category / list_categories
    - dirty_ids() / retry_dirty() / retry_migration()
    - weekly_summary() -> WeeklySummary
DEPENDENCIES:
  - asyncio (stdlib, single write queue)
  - weekplan.core.backing (GuestBacking, RemoteBacking)
  - weekplan.core.ordering (Order Reindexer)
  - weekplan.core.migration (MigrationTransactor)
  - weekplan.core.session (IdentitySession)
NOTES:
  - Every intent mutates the in-memory view before its first await, so intents
    apply in the order issued
  - Backing writes go through one FIFO lock and send the record's state at the
    moment the write runs, never an older snapshot
  - Responses only carry server-owned fields back, and only when the record's
    revision is unchanged since the write started
  - Failed writes keep the in-memory change and mark the record dirty;
    retry_dirty() replays them
  - Each day partition always holds orders 0..n-1 (delete re-contiguates)
  - load() reads behind the write lock; records changed while it reads keep
    their in-memory state
  - Guest -> account runs the MigrationTransactor under the write lock; guest
    intents during that window raise MigrationInProgressError
"""

import asyncio
import logging
import re
import uuid
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from . import ordering
from .backing import GuestBacking, backing_for
from .constants import (
    CATEGORY_NAME_MAX,
    CATEGORY_NAME_MAX_LETTERS,
    CATEGORY_NAME_MAX_WIDE,
    DAYS,
    DEFAULT_ICON,
    STATUS_CYCLE,
    STATUS_DONE,
    STATUS_PENDING,
    VALID_STATUSES,
)
from .exceptions import (
    BackingStoreError,
    CategoryNotFoundError,
    MigrationError,
    MigrationInProgressError,
    NotFoundError,
    TaskNotFoundError,
    ValidationError,
)
from .local_store import LocalCacheStore
from .migration import MigrationReport, MigrationTransactor
from .models import Category, Identity, Task, default_categories
from .remote import RemoteStore, SQLiteRemoteStore
from .session import IdentitySession, LocalAuthenticator
from .summary import WeeklySummary, summarize


logger = logging.getLogger(__name__)

EDITABLE_TASK_FIELDS = ("title", "category_id", "day", "description", "due_date", "due_time")
EDITABLE_CATEGORY_FIELDS = ("name", "color", "icon")

# Dirty record kinds
_TASK = "task"
_TASK_DELETE = "task-delete"
_CATEGORY = "category"
_CATEGORY_DELETE = "category-delete"
_ORDER = "order"

_COLOR_PATTERN = re.compile(r"^#[0-9a-fA-F]{6}$")


@dataclass
class PlannerContext:
    """Collaborators a TaskRegistry works against."""

    local_store: LocalCacheStore
    remote_store: RemoteStore
    session: IdentitySession

    @classmethod
    def open(cls, data_dir: Path) -> "PlannerContext":
        """Build the default SQLite-backed context rooted at data_dir."""
        data_dir = Path(data_dir)
        local_store = LocalCacheStore(data_dir / "cache.db")
        remote_store = SQLiteRemoteStore(data_dir / "remote.db")
        session = IdentitySession(local_store, LocalAuthenticator(remote_store))
        return cls(local_store, remote_store, session)


# --- Validation ---


def _now() -> str:
    return datetime.now().isoformat()


def _clean(text: Optional[str]) -> Optional[str]:
    text = text.strip() if text else None
    return text or None


def _merge_categories(
    loaded: Sequence[Category], current: Sequence[Category], touched: set
) -> List[Category]:
    """Loaded categories, with the touched ones taken from the current view."""
    in_view = {category.id: category for category in current}
    merged = [
        in_view.get(category.id, category) if category.id in touched else category
        for category in loaded
        if category.id not in touched or category.id in in_view
    ]
    seen = {category.id for category in merged}
    merged.extend(c for c in current if c.id in touched and c.id not in seen)
    return merged


def validate_title(title: str) -> str:
    title = (title or "").strip()
    if not title:
        raise ValidationError("Task title cannot be empty")
    return title


def validate_day(day: str) -> str:
    if day not in DAYS:
        raise ValidationError(f"Invalid day '{day}'. Must be one of: {', '.join(DAYS)}")
    return day


def validate_status(status: str) -> str:
    if status not in VALID_STATUSES:
        raise ValidationError(
            f"Invalid status '{status}'. Must be one of: {', '.join(VALID_STATUSES)}"
        )
    return status


def validate_category_name(name: str) -> str:
    """
    Trim and check a category name.

    Names fit a small badge: at most 12 characters, of which at most
    12 ASCII letters and at most 5 anything else (wide scripts, digits,
    spaces, emoji).
    """
    name = (name or "").strip()
    if not name:
        raise ValidationError("Category name cannot be empty")

    letters = sum(1 for ch in name if ch.isascii() and ch.isalpha())
    others = len(name) - letters
    if (
        len(name) > CATEGORY_NAME_MAX
        or letters > CATEGORY_NAME_MAX_LETTERS
        or others > CATEGORY_NAME_MAX_WIDE
    ):
        raise ValidationError(
            f"Category name '{name}' is too long "
            f"(max {CATEGORY_NAME_MAX_LETTERS} letters or {CATEGORY_NAME_MAX_WIDE} other characters)"
        )
    return name


def validate_color(color: str) -> str:
    if not color or not _COLOR_PATTERN.match(color):
        raise ValidationError(f"Invalid color '{color}'. Use #rrggbb")
    return color.lower()


class TaskRegistry:
    """Sole mutator of the current identity's tasks and categories."""

    def __init__(self, context: PlannerContext):
        self.context = context
        self.pending_migration = False
        self.last_migration: Optional[MigrationReport] = None

        self._migrator = MigrationTransactor(context.remote_store)
        self._write_lock = asyncio.Lock()
        self._migrating = False
        self._backing = backing_for(
            context.session.current_identity(), context.local_store, context.remote_store
        )
        self._reset_view()

        context.session.subscribe(self._on_identity_change)

    # --- View State ---

    @property
    def identity(self) -> Identity:
        return self._backing.identity

    @property
    def is_migrating(self) -> bool:
        return self._migrating

    def _reset_view(self) -> None:
        self._tasks: Dict[str, Task] = {}
        self._categories: List[Category] = default_categories()
        self._revisions: Dict[str, int] = {}
        self._dirty: Dict[Tuple[str, str], None] = {}

    async def load(self) -> None:
        """
        Replace the view with the backing store's contents.

        The read waits behind queued writes. Records changed by intents
        issued while it was in flight keep their in-memory state.

        Raises:
            BackingStoreError: If the read fails; the last known view is kept
        """
        backing = self._backing
        revisions = dict(self._revisions)
        try:
            async with self._write_lock:
                tasks, categories = await backing.load()
        except BackingStoreError as e:
            logger.warning("Keeping last known view for %s: %s", backing.identity, e)
            raise

        if backing is not self._backing:
            return  # identity changed while loading

        touched = {
            record_id
            for record_id, revision in self._revisions.items()
            if revisions.get(record_id) != revision
        }
        if touched:
            logger.debug("Keeping %d record(s) changed during load", len(touched))

        merged = {task.id: task for task in tasks}
        for record_id in touched:
            if record_id in self._tasks:
                merged[record_id] = self._tasks[record_id]
            else:
                merged.pop(record_id, None)

        self._tasks = merged
        self._categories = (
            _merge_categories(categories, self._categories, touched) or default_categories()
        )
        touched_days = {
            self._tasks[record_id].day for record_id in touched if record_id in self._tasks
        }
        self._dirty = {
            key: None
            for key in self._dirty
            if key[1] in touched or (key[0] == _ORDER and key[1] in touched_days)
        }

        # Repair partitions saved with gaps or duplicates
        broken = [day for day in DAYS if not ordering.is_contiguous(self._partition(day))]
        for day in broken:
            logger.info("Renumbering %s, stored order was not contiguous", day)
            self._apply(ordering.renumber(self._partition(day)))
        await self._flush(*(self._commit_day(day) for day in broken))

    def _guard(self) -> None:
        if self._migrating and self._backing.identity.is_guest:
            raise MigrationInProgressError()

    def _bump(self, record_id: str) -> int:
        self._revisions[record_id] = self._revisions.get(record_id, 0) + 1
        return self._revisions[record_id]

    def _partition(self, day: str) -> List[Task]:
        return sorted((t for t in self._tasks.values() if t.day == day), key=lambda t: t.order)

    def _apply(self, tasks: Sequence[Task]) -> None:
        for task in tasks:
            self._tasks[task.id] = task

    def _require_task(self, task_id: str) -> Task:
        task = self._tasks.get(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _require_category(self, category_id: str) -> Category:
        for category in self._categories:
            if category.id == category_id:
                return category
        raise CategoryNotFoundError(category_id)

    # --- Reads ---

    def get_task(self, task_id: str) -> Task:
        return self._require_task(task_id)

    def list_by_day(self, day: str) -> List[Task]:
        """Tasks of one day bucket, ascending by order."""
        return self._partition(day)

    def list_tasks(self) -> List[Task]:
        """All tasks, bucket by bucket in week order."""
        result = []
        for day in DAYS:
            result.extend(self._partition(day))
        return result

    def get_category(self, category_id: str) -> Category:
        return self._require_category(category_id)

    def list_categories(self) -> List[Category]:
        return list(self._categories)

    def weekly_summary(self) -> WeeklySummary:
        return summarize(self.list_tasks(), self._categories)

    def dirty_ids(self) -> List[Tuple[str, str]]:
        """(kind, id) of every record whose last write did not reach the backing store."""
        return list(self._dirty)

    # --- Task Intents ---

    async def add_task(
        self,
        title: str,
        day: str,
        category_id: Optional[str] = None,
        description: Optional[str] = None,
        due_date: Optional[str] = None,
        due_time: Optional[str] = None,
    ) -> Task:
        """
        Append a new pending task to a day.

        Args:
            title: Task title (required, must not be empty)
            day: Day bucket
            category_id: Defaults to the first category

        Returns:
            The new task as held in the view

        Raises:
            ValidationError: If title is empty or day is unknown
            CategoryNotFoundError: If category_id doesn't exist
            BackingStoreError: If saving failed (task stays in the view, marked dirty)
        """
        self._guard()
        title = validate_title(title)
        validate_day(day)
        if category_id is None:
            category_id = self._categories[0].id
        self._require_category(category_id)

        task = Task(
            id=uuid.uuid4().hex,
            title=title,
            category_id=category_id,
            day=day,
            status=STATUS_PENDING,
            order=ordering.next_order(self._partition(day)),
            due_date=_clean(due_date),
            due_time=_clean(due_time),
            description=_clean(description),
            created_at=_now(),
        )
        self._tasks[task.id] = task
        self._bump(task.id)
        logger.debug("Added task %s to %s at %d", task.id, day, task.order)

        await self._sync_task(task.id, create=True)
        return self._tasks.get(task.id, task)

    async def edit_task(self, task_id: str, **updates) -> Task:
        """
        Merge field updates into a task.

        Changing day moves the task to the end of the new day and closes
        the gap in the old one.

        Raises:
            TaskNotFoundError: If task_id doesn't exist
            ValidationError: If a field is not editable or a value is invalid
        """
        self._guard()
        current = self._require_task(task_id)

        unknown = set(updates) - set(EDITABLE_TASK_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        changes = dict(updates)
        if "title" in changes:
            changes["title"] = validate_title(changes["title"])
        if "day" in changes:
            validate_day(changes["day"])
        if "category_id" in changes:
            self._require_category(changes["category_id"])
        for name in ("description", "due_date", "due_time"):
            if name in changes:
                changes[name] = _clean(changes[name])

        old_day = current.day
        day_changed = changes.get("day", old_day) != old_day
        if day_changed:
            changes["order"] = ordering.next_order(self._partition(changes["day"]))

        updated = current.copy(**changes)
        self._tasks[task_id] = updated
        self._bump(task_id)

        if day_changed:
            self._apply(ordering.renumber(self._partition(old_day)))
            await self._flush(self._sync_task(task_id), self._commit_day(old_day))
        else:
            await self._sync_task(task_id)
        return self._tasks.get(task_id, updated)

    async def set_status(self, task_id: str, status: str) -> Task:
        """
        Change a task's status.

        completed_at is stamped when entering done and cleared on any
        other status. Ordering is untouched.
        """
        self._guard()
        validate_status(status)
        current = self._require_task(task_id)

        if status == STATUS_DONE:
            if current.status == STATUS_DONE and current.completed_at:
                completed_at = current.completed_at
            else:
                completed_at = _now()
        else:
            completed_at = None

        updated = current.copy(status=status, completed_at=completed_at)
        self._tasks[task_id] = updated
        self._bump(task_id)

        await self._sync_task(task_id)
        return self._tasks.get(task_id, updated)

    async def cycle_status(self, task_id: str) -> Task:
        """Advance pending -> in-progress -> done -> pending (cancelled -> pending)."""
        current = self._require_task(task_id)
        return await self.set_status(task_id, STATUS_CYCLE[current.status])

    async def delete_task(self, task_id: str) -> None:
        """Remove a task and renumber the rest of its day."""
        self._guard()
        task = self._require_task(task_id)

        remaining = ordering.remove(self._partition(task.day), task_id)
        del self._tasks[task_id]
        self._bump(task_id)
        self._apply(remaining)

        await self._flush(self._delete_remote(task_id), self._commit_day(task.day))

    async def reorder(self, day: str, moved_id: str, target_id: str) -> List[Task]:
        """
        Drag moved_id onto target_id's position within one day.

        The moved task takes the target's index. Unknown ids or
        moved_id == target_id leave everything unchanged.

        Returns:
            The day's tasks in their new order
        """
        self._guard()
        partition = self._partition(day)
        ids = [task.id for task in partition]

        if moved_id == target_id or moved_id not in ids or target_id not in ids:
            return partition

        self._apply(ordering.move(partition, ids.index(moved_id), ids.index(target_id)))
        await self._commit_day(day)
        return self._partition(day)

    # --- Category Intents ---

    async def add_category(self, name: str, color: str, icon: str = DEFAULT_ICON) -> Category:
        self._guard()
        category = Category(
            id=uuid.uuid4().hex,
            name=validate_category_name(name),
            color=validate_color(color),
            icon=icon or DEFAULT_ICON,
            created_at=_now(),
        )
        self._categories.append(category)
        self._bump(category.id)

        await self._sync_category(category.id, create=True)
        return category

    async def edit_category(self, category_id: str, **updates) -> Category:
        self._guard()
        current = self._require_category(category_id)

        unknown = set(updates) - set(EDITABLE_CATEGORY_FIELDS)
        if unknown:
            raise ValidationError(f"Cannot edit field(s): {', '.join(sorted(unknown))}")

        changes = dict(updates)
        if "name" in changes:
            changes["name"] = validate_category_name(changes["name"])
        if "color" in changes:
            changes["color"] = validate_color(changes["color"])
        if "icon" in changes:
            changes["icon"] = changes["icon"] or DEFAULT_ICON

        updated = current.copy(**changes)
        self._categories = [updated if c.id == category_id else c for c in self._categories]
        self._bump(category_id)

        await self._sync_category(category_id)
        return updated

    async def delete_category(self, category_id: str) -> str:
        """
        Delete a category, moving its tasks to the first remaining category.

        Returns:
            Id of the category the tasks now reference

        Raises:
            CategoryNotFoundError: If category_id doesn't exist
            ValidationError: If it is the only category left
        """
        self._guard()
        self._require_category(category_id)

        remaining = [c for c in self._categories if c.id != category_id]
        if not remaining:
            raise ValidationError("At least one category must remain")
        fallback_id = remaining[0].id

        tasks = dict(self._tasks)
        reassigned = []
        for task_id, task in self._tasks.items():
            if task.category_id == category_id:
                tasks[task_id] = task.copy(category_id=fallback_id)
                reassigned.append(task_id)

        # Both collections swap together, no await in between
        self._tasks, self._categories = tasks, remaining
        for task_id in reassigned:
            self._bump(task_id)
        self._bump(category_id)

        await self._remove_category(category_id, fallback_id, reassigned)
        return fallback_id

    # --- Backing Writes ---

    async def _write(self, key: Tuple[str, str], operation: Callable[[], Awaitable]):
        async with self._write_lock:
            try:
                result = await operation()
            except BackingStoreError as e:
                self._dirty[key] = None
                logger.warning("Saving %s %s failed, kept locally: %s", key[0], key[1], e)
                if e.record_id is None:
                    e.record_id = key[1]
                raise
            except NotFoundError as e:
                self._dirty[key] = None
                logger.warning("Saving %s %s failed, kept locally: %s", key[0], key[1], e)
                raise BackingStoreError(str(e), record_id=key[1]) from e
            self._dirty.pop(key, None)
            return result

    async def _flush(self, *writes: Awaitable) -> None:
        # Every write is attempted; the first failure is re-raised afterwards
        error = None
        for write in writes:
            try:
                await write
            except BackingStoreError as e:
                error = error or e
        if error is not None:
            raise error

    def _ordered_ids(self, day: str) -> List[str]:
        return [task.id for task in self._partition(day)]

    async def _sync_task(self, task_id: str, create: bool = False) -> Optional[Task]:
        async def operation():
            task = self._tasks.get(task_id)
            if task is None:
                return None  # deleted while queued
            revision = self._revisions.get(task_id, 0)
            backing = self._backing

            if create:
                stored = await backing.create_task(task)
            else:
                try:
                    stored = await backing.update_task(task)
                except NotFoundError:
                    stored = await backing.create_task(task)

            current = self._tasks.get(task_id)
            if current is None or self._revisions.get(task_id, 0) != revision:
                logger.debug("Dropping stale response for task %s", task_id)
                return stored

            self._tasks[task_id] = current.copy(updated_at=stored.updated_at)
            if stored.order != current.order:
                # Store appended on its own count; the view decides
                await backing.commit_order(current.day, self._ordered_ids(current.day))
            return stored

        return await self._write((_TASK, task_id), operation)

    async def _delete_remote(self, task_id: str) -> None:
        async def operation():
            await self._backing.delete_task(task_id)
            self._dirty.pop((_TASK, task_id), None)

        await self._write((_TASK_DELETE, task_id), operation)

    async def _commit_day(self, day: str) -> None:
        async def operation():
            await self._backing.commit_order(day, self._ordered_ids(day))

        await self._write((_ORDER, day), operation)

    async def _sync_category(self, category_id: str, create: bool = False) -> Optional[Category]:
        async def operation():
            category = next((c for c in self._categories if c.id == category_id), None)
            if category is None:
                return None
            backing = self._backing

            if create:
                return await backing.create_category(category)
            try:
                return await backing.update_category(category)
            except NotFoundError:
                return await backing.create_category(category)

        return await self._write((_CATEGORY, category_id), operation)

    async def _remove_category(
        self, category_id: str, fallback_id: str, reassigned: List[str]
    ) -> None:
        async def operation():
            try:
                used_id = await self._backing.delete_category(category_id, fallback_id)
            except CategoryNotFoundError:
                used_id = fallback_id  # never reached the store
            self._dirty.pop((_CATEGORY, category_id), None)

            if used_id != fallback_id:
                logger.warning(
                    "Store moved tasks of %s to %s, expected %s", category_id, used_id, fallback_id
                )
                for task_id in reassigned:
                    task = self._tasks.get(task_id)
                    if task and task.category_id == fallback_id:
                        self._tasks[task_id] = task.copy(category_id=used_id)

        await self._write((_CATEGORY_DELETE, category_id), operation)

    async def retry_dirty(self) -> int:
        """
        Replay the current state of every dirty record.

        Returns:
            Number of records that were retried

        Raises:
            BackingStoreError: If any record still could not be saved
        """
        pending = list(self._dirty)
        errors = []

        for kind, record_id in pending:
            try:
                if kind == _TASK:
                    await self._sync_task(record_id)
                elif kind == _TASK_DELETE:
                    await self._delete_remote(record_id)
                elif kind == _CATEGORY:
                    await self._sync_category(record_id)
                elif kind == _CATEGORY_DELETE:
                    await self._remove_category(record_id, self._categories[0].id, [])
                elif kind == _ORDER:
                    await self._commit_day(record_id)
            except BackingStoreError as e:
                errors.append(e)

        if errors:
            raise BackingStoreError(f"{len(errors)} record(s) still not saved: {errors[-1]}")
        return len(pending)

    # --- Identity Transitions ---

    def _switch(self, identity: Identity) -> None:
        if self._dirty:
            logger.warning(
                "Discarding %d unsaved change(s) of %s", len(self._dirty), self._backing.identity
            )
        self._backing = backing_for(identity, self.context.local_store, self.context.remote_store)
        self._reset_view()

    async def _on_identity_change(self, previous: Identity, current: Identity) -> None:
        if previous.is_guest and not current.is_guest:
            await self._enter_account(current)
        elif current.is_guest:
            self._switch(current)
            await self.load()

    async def _enter_account(self, identity: Identity) -> None:
        failure = None
        self._migrating = True
        try:
            async with self._write_lock:
                try:
                    self.last_migration = await self._migrator.migrate(
                        GuestBacking(self.context.local_store), identity.user_id
                    )
                    self.pending_migration = False
                except MigrationError as e:
                    logger.error("Guest data kept on this device: %s", e)
                    failure = e
                    self.pending_migration = True
                self._switch(identity)
        finally:
            self._migrating = False

        await self.load()
        if failure is not None:
            raise failure

    async def retry_migration(self) -> MigrationReport:
        """
        Copy leftover guest data into the signed-in account.

        Raises:
            ValidationError: If no account is signed in
            MigrationError: If the copy failed again
        """
        identity = self.identity
        if identity.is_guest:
            raise ValidationError("Sign in before migrating guest data")

        async with self._write_lock:
            try:
                report = await self._migrator.migrate(
                    GuestBacking(self.context.local_store), identity.user_id
                )
            except MigrationError:
                self.pending_migration = True
                raise
            self.pending_migration = False
            self.last_migration = report

        await self.load()
        return report
