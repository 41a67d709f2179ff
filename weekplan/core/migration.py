"""
FILE: weekplan/core/migration.py
PURPOSE: Copy guest data into a freshly signed-in account, then clear the guest scope
EXPORTS:
  - MigrationReport (dataclass)
  - MigrationTransactor (class)
    - migrate(guest, user_id) -> MigrationReport
DEPENDENCIES:
  - uuid (stdlib)
  - weekplan.core.backing (GuestBacking)
  - weekplan.core.remote (RemoteStore)
  - weekplan.core.exceptions (MigrationError, BackingStoreError)
NOTES:
  - Guest keys are removed only after every category and task was copied
  - Each copied record keeps the guest id in source_ref; a retry skips records
    the account already holds, so nothing is duplicated
  - Guest default categories still as seeded map onto the account's default
    of the same name; edited ones are copied like any other category
  - Copied tasks are appended per day in guest order (server assigns order_index)
  - Records already copied are never rolled back on failure
"""

import logging
import uuid
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .backing import GuestBacking
from .constants import DAYS, DEFAULT_CATEGORIES, DEFAULT_ICON
from .exceptions import BackingStoreError, MigrationError, NotFoundError
from .models import Task
from .remote import RemoteStore


logger = logging.getLogger(__name__)

# guest default id -> (name, color, icon) it was seeded with
_DEFAULTS = {cat_id: (name, color, DEFAULT_ICON) for cat_id, name, color in DEFAULT_CATEGORIES}


@dataclass
class MigrationReport:
    """What one migration run copied, reused and skipped."""

    user_id: str
    categories_created: int = 0
    categories_mapped: int = 0
    tasks_created: int = 0
    tasks_skipped: int = 0
    category_ids: Dict[str, str] = field(default_factory=dict)


class MigrationTransactor:
    """Moves the guest scope into one account's remote store."""

    def __init__(self, remote_store: RemoteStore):
        self.remote_store = remote_store

    async def migrate(self, guest: GuestBacking, user_id: str) -> MigrationReport:
        """
        Copy every guest category and task into the account.

        Args:
            guest: Guest backing to read from and clear afterwards
            user_id: Account receiving the data

        Returns:
            MigrationReport describing the run

        Raises:
            MigrationError: If anything could not be read or copied;
                the guest scope is left untouched for a retry
        """
        report = MigrationReport(user_id=user_id)

        try:
            if guest.is_empty():
                logger.info("No guest data to migrate for %s", user_id)
                return report
            guest_tasks, guest_categories = await guest.load()
            remote_categories = await self.remote_store.list_categories(user_id)
            remote_tasks = await self.remote_store.list_tasks(user_id)
        except BackingStoreError as e:
            raise MigrationError(user_id, ["<read>"], cause=e) from e

        failed: List[str] = []
        last_error: Optional[Exception] = None

        # Step 1: categories
        by_ref = {c.source_ref: c for c in remote_categories if c.source_ref}
        by_name = {c.name: c for c in remote_categories}

        for category in guest_categories:
            existing = by_ref.get(category.id)
            if existing is None and _is_unedited_default(category):
                existing = by_name.get(category.name)

            if existing is not None:
                report.category_ids[category.id] = existing.id
                report.categories_mapped += 1
                continue

            try:
                created = await self.remote_store.create_category(
                    user_id,
                    category.copy(id=uuid.uuid4().hex, created_at=None, source_ref=category.id),
                )
            except (BackingStoreError, NotFoundError) as e:
                logger.warning("Could not copy category %s: %s", category.id, e)
                failed.append(category.id)
                last_error = e
                continue

            report.category_ids[category.id] = created.id
            report.categories_created += 1

        # Step 2: tasks, in guest display order so per-day order survives
        copied_refs = {t.source_ref for t in remote_tasks if t.source_ref}
        fallback_id = remote_categories[0].id if remote_categories else None

        for task in sorted(guest_tasks, key=_display_key):
            if task.id in copied_refs:
                report.tasks_skipped += 1
                continue

            if task.category_id in failed:
                failed.append(task.id)
                continue

            category_id = report.category_ids.get(task.category_id, fallback_id)
            try:
                await self.remote_store.create_task(
                    user_id,
                    task.copy(
                        id=uuid.uuid4().hex,
                        category_id=category_id,
                        updated_at=None,
                        source_ref=task.id,
                    ),
                )
            except (BackingStoreError, NotFoundError) as e:
                logger.warning("Could not copy task %s: %s", task.id, e)
                failed.append(task.id)
                last_error = e
                continue

            report.tasks_created += 1

        if failed:
            raise MigrationError(user_id, failed, cause=last_error)

        # Step 3: only now is the guest copy redundant
        try:
            guest.clear()
        except BackingStoreError as e:
            # Records are copied; a retry only has to clear
            raise MigrationError(user_id, ["<clear>"], cause=e) from e

        logger.info(
            "Migrated guest data to %s: %d categories created, %d mapped, %d tasks",
            user_id,
            report.categories_created,
            report.categories_mapped,
            report.tasks_created,
        )
        return report


def _display_key(task: Task):
    day_index = DAYS.index(task.day) if task.day in DAYS else len(DAYS)
    return (day_index, task.order)


def _is_unedited_default(category) -> bool:
    return _DEFAULTS.get(category.id) == (category.name, category.color.lower(), category.icon)
