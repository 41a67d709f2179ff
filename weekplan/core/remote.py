"""
FILE: weekplan/core/remote.py
PURPOSE: Durable multi-tenant store for authenticated accounts
EXPORTS:
  - RemoteStore (contract every remote backend implements)
  - SQLiteRemoteStore (RemoteStore over a shared SQLite file)
DEPENDENCIES:
  - asyncio (stdlib, requests run off the caller's loop)
  - sqlite3 (stdlib)
  - uuid, datetime, pathlib (stdlib)
  - weekplan.core.models (Task, Category)
  - weekplan.core.exceptions
NOTES:
  - Every call is scoped by user_id; rows of other users are never visible
  - Boundary uses snake_case columns (order_index, category_id, user_id)
  - create_task assigns order_index = max + 1 within (user, day) server-side
  - delete_category reassigns dependent tasks and deletes in one transaction
  - sqlite3 errors surface as BackingStoreError
"""

import asyncio
import logging
import sqlite3
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence

from .constants import DEFAULT_CATEGORIES, DEFAULT_ICON, REMOTE_DB_PATH
from .exceptions import (
    BackingStoreError,
    CategoryNotFoundError,
    TaskNotFoundError,
    ValidationError,
    WeekplanError,
)
from .models import CATEGORY_COLUMNS, TASK_COLUMNS, Category, Task


logger = logging.getLogger(__name__)

# Schema file ships inside the package
SCHEMA_PATH = Path(__file__).parent / "schema.sql"


class RemoteStore:
    """
    Contract of the durable account store.

    All methods are coroutines. Failures of the transport or storage
    raise BackingStoreError; missing records raise the matching
    NotFoundError subclass.
    """

    async def list_tasks(self, user_id: str) -> List[Task]:
        raise NotImplementedError

    async def create_task(self, user_id: str, task: Task) -> Task:
        raise NotImplementedError

    async def update_task(self, user_id: str, task_id: str, partial: Dict[str, Any]) -> Task:
        raise NotImplementedError

    async def delete_task(self, user_id: str, task_id: str) -> None:
        raise NotImplementedError

    async def commit_order(self, user_id: str, day: str, ordered_ids: Sequence[str]) -> None:
        raise NotImplementedError

    async def list_categories(self, user_id: str) -> List[Category]:
        raise NotImplementedError

    async def create_category(self, user_id: str, category: Category) -> Category:
        raise NotImplementedError

    async def update_category(
        self, user_id: str, category_id: str, partial: Dict[str, Any]
    ) -> Category:
        raise NotImplementedError

    async def delete_category(self, user_id: str, category_id: str) -> str:
        """Delete category, returning the id its tasks were reassigned to."""
        raise NotImplementedError

    async def seed_default_categories(self, user_id: str) -> List[Category]:
        raise NotImplementedError

    async def create_user(self, email: str, name: str, password_hash: str) -> Dict[str, Any]:
        raise NotImplementedError

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class SQLiteRemoteStore(RemoteStore):
    """RemoteStore backed by one SQLite file shared by all accounts."""

    def __init__(self, db_path: Path = REMOTE_DB_PATH):
        self.db_path = Path(db_path)

    # --- Connection Handling ---

    def get_connection(self) -> sqlite3.Connection:
        """
        Get SQLite connection to the remote database.

        Creates the parent directory, enables foreign keys and
        initializes the schema on first connection.
        """
        self.db_path.parent.mkdir(parents=True, exist_ok=True)

        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA foreign_keys = ON")

        tables_exist = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name='todos'"
        ).fetchone() is not None
        if not tables_exist:
            with open(SCHEMA_PATH, "r", encoding="utf-8") as f:
                conn.executescript(f.read())
            conn.commit()

        return conn

    def _call(self, operation: Callable[..., Any], *args) -> Any:
        # Runs on a worker thread; the connection never crosses threads
        try:
            conn = self.get_connection()
        except sqlite3.Error as e:
            raise BackingStoreError(f"Remote store unavailable: {e}") from e

        try:
            result = operation(conn, *args)
            conn.commit()
            return result
        except sqlite3.Error as e:
            conn.rollback()
            logger.warning("Remote %s failed: %s", operation.__name__, e)
            raise BackingStoreError(f"Remote {operation.__name__} failed: {e}") from e
        except WeekplanError:
            conn.rollback()
            raise
        finally:
            conn.close()

    async def _run(self, operation: Callable[..., Any], *args) -> Any:
        return await asyncio.to_thread(self._call, operation, *args)

    # --- Tasks ---

    async def list_tasks(self, user_id: str) -> List[Task]:
        return await self._run(_list_tasks, user_id)

    async def create_task(self, user_id: str, task: Task) -> Task:
        return await self._run(_create_task, user_id, task)

    async def update_task(self, user_id: str, task_id: str, partial: Dict[str, Any]) -> Task:
        return await self._run(_update_task, user_id, task_id, partial)

    async def delete_task(self, user_id: str, task_id: str) -> None:
        await self._run(_delete_task, user_id, task_id)

    async def commit_order(self, user_id: str, day: str, ordered_ids: Sequence[str]) -> None:
        await self._run(_commit_order, user_id, day, list(ordered_ids))

    # --- Categories ---

    async def list_categories(self, user_id: str) -> List[Category]:
        return await self._run(_list_categories, user_id)

    async def create_category(self, user_id: str, category: Category) -> Category:
        return await self._run(_create_category, user_id, category)

    async def update_category(
        self, user_id: str, category_id: str, partial: Dict[str, Any]
    ) -> Category:
        return await self._run(_update_category, user_id, category_id, partial)

    async def delete_category(self, user_id: str, category_id: str) -> str:
        return await self._run(_delete_category, user_id, category_id)

    async def seed_default_categories(self, user_id: str) -> List[Category]:
        return await self._run(_seed_default_categories, user_id)

    # --- Users ---

    async def create_user(self, email: str, name: str, password_hash: str) -> Dict[str, Any]:
        return await self._run(_create_user, email, name, password_hash)

    async def get_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        return await self._run(_get_user_by_email, email)


# --- Statements (run inside SQLiteRemoteStore._call) ---


def _now() -> str:
    return datetime.now().isoformat()


def _fetch_task(conn: sqlite3.Connection, user_id: str, task_id: str) -> Task:
    row = conn.execute(
        "SELECT * FROM todos WHERE id = ? AND user_id = ?", (task_id, user_id)
    ).fetchone()
    if not row:
        raise TaskNotFoundError(task_id)
    return Task.from_row(row)


def _fetch_category(conn: sqlite3.Connection, user_id: str, category_id: str) -> Category:
    row = conn.execute(
        "SELECT * FROM categories WHERE id = ? AND user_id = ?", (category_id, user_id)
    ).fetchone()
    if not row:
        raise CategoryNotFoundError(category_id)
    return Category.from_row(row)


def _list_tasks(conn: sqlite3.Connection, user_id: str) -> List[Task]:
    rows = conn.execute(
        "SELECT * FROM todos WHERE user_id = ? ORDER BY day, order_index, created_at",
        (user_id,),
    ).fetchall()
    return [Task.from_row(row) for row in rows]


def _create_task(conn: sqlite3.Connection, user_id: str, task: Task) -> Task:
    max_order = conn.execute(
        "SELECT MAX(order_index) FROM todos WHERE user_id = ? AND day = ?",
        (user_id, task.day),
    ).fetchone()[0]
    now = _now()

    row = task.to_row()
    row.update(
        user_id=user_id,
        order_index=0 if max_order is None else max_order + 1,
        created_at=task.created_at or now,
        updated_at=now,
    )

    columns = ", ".join(row)
    placeholders = ", ".join("?" for _ in row)
    conn.execute(f"INSERT INTO todos ({columns}) VALUES ({placeholders})", tuple(row.values()))
    return _fetch_task(conn, user_id, task.id)


def _update_task(
    conn: sqlite3.Connection, user_id: str, task_id: str, partial: Dict[str, Any]
) -> Task:
    updates = {
        TASK_COLUMNS[name]: value
        for name, value in partial.items()
        if name in TASK_COLUMNS and name not in ("id", "created_at", "updated_at")
    }
    updates["updated_at"] = _now()

    assignments = ", ".join(f"{column} = ?" for column in updates)
    cursor = conn.execute(
        f"UPDATE todos SET {assignments} WHERE id = ? AND user_id = ?",
        (*updates.values(), task_id, user_id),
    )
    if cursor.rowcount == 0:
        raise TaskNotFoundError(task_id)
    return _fetch_task(conn, user_id, task_id)


def _delete_task(conn: sqlite3.Connection, user_id: str, task_id: str) -> None:
    conn.execute("DELETE FROM todos WHERE id = ? AND user_id = ?", (task_id, user_id))


def _commit_order(
    conn: sqlite3.Connection, user_id: str, day: str, ordered_ids: List[str]
) -> None:
    now = _now()
    conn.executemany(
        "UPDATE todos SET order_index = ?, updated_at = ? WHERE id = ? AND user_id = ? AND day = ?",
        [(index, now, task_id, user_id, day) for index, task_id in enumerate(ordered_ids)],
    )


def _list_categories(conn: sqlite3.Connection, user_id: str) -> List[Category]:
    rows = conn.execute(
        "SELECT * FROM categories WHERE user_id = ? ORDER BY created_at, rowid",
        (user_id,),
    ).fetchall()
    return [Category.from_row(row) for row in rows]


def _create_category(conn: sqlite3.Connection, user_id: str, category: Category) -> Category:
    row = category.to_row()
    row.update(user_id=user_id, created_at=category.created_at or _now())

    columns = ", ".join(row)
    placeholders = ", ".join("?" for _ in row)
    conn.execute(
        f"INSERT INTO categories ({columns}) VALUES ({placeholders})", tuple(row.values())
    )
    return _fetch_category(conn, user_id, category.id)


def _update_category(
    conn: sqlite3.Connection, user_id: str, category_id: str, partial: Dict[str, Any]
) -> Category:
    updates = {
        CATEGORY_COLUMNS[name]: value
        for name, value in partial.items()
        if name in CATEGORY_COLUMNS and name not in ("id", "created_at")
    }
    if updates:
        assignments = ", ".join(f"{column} = ?" for column in updates)
        cursor = conn.execute(
            f"UPDATE categories SET {assignments} WHERE id = ? AND user_id = ?",
            (*updates.values(), category_id, user_id),
        )
        if cursor.rowcount == 0:
            raise CategoryNotFoundError(category_id)
    return _fetch_category(conn, user_id, category_id)


def _delete_category(conn: sqlite3.Connection, user_id: str, category_id: str) -> str:
    _fetch_category(conn, user_id, category_id)

    remaining = [c for c in _list_categories(conn, user_id) if c.id != category_id]
    if not remaining:
        raise ValidationError("At least one category must remain")
    fallback_id = remaining[0].id

    conn.execute(
        "UPDATE todos SET category_id = ?, updated_at = ? WHERE user_id = ? AND category_id = ?",
        (fallback_id, _now(), user_id, category_id),
    )
    conn.execute("DELETE FROM categories WHERE id = ? AND user_id = ?", (category_id, user_id))
    return fallback_id


def _seed_default_categories(conn: sqlite3.Connection, user_id: str) -> List[Category]:
    for _, name, color in DEFAULT_CATEGORIES:
        _create_category(
            conn,
            user_id,
            Category(id=uuid.uuid4().hex, name=name, color=color, icon=DEFAULT_ICON),
        )
    return _list_categories(conn, user_id)


def _create_user(
    conn: sqlite3.Connection, email: str, name: str, password_hash: str
) -> Dict[str, Any]:
    now = _now()
    user_id = uuid.uuid4().hex
    try:
        conn.execute(
            """
            INSERT INTO users (id, email, name, password_hash, created_at, updated_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, email, name, password_hash, now, now),
        )
    except sqlite3.IntegrityError as e:
        raise ValidationError(f"Email {email} is already registered") from e
    return _get_user_by_email(conn, email)


def _get_user_by_email(conn: sqlite3.Connection, email: str) -> Optional[Dict[str, Any]]:
    row = conn.execute("SELECT * FROM users WHERE email = ?", (email,)).fetchone()
    return dict(row) if row else None
