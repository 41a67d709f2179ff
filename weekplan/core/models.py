"""
FILE: weekplan/core/models.py
PURPOSE: Domain models for tasks, categories, and identities
EXPORTS:
  - Task (dataclass)
  - Category (dataclass)
  - Identity (dataclass), GUEST
  - default_categories() -> List[Category]
  - TASK_CACHE_KEYS / TASK_COLUMNS: field name mappings for both stores
DEPENDENCIES:
  - dataclasses (stdlib)
  - json (stdlib)
  - typing (stdlib)
NOTES:
  - from_row()/to_row() convert remote rows (snake_case columns)
  - from_cache()/to_cache() convert local cache entries (camelCase keys)
  - Both mappings are total and invertible
  - Timestamps stored as ISO-8601 strings
"""

from dataclasses import dataclass, asdict, replace
from typing import Any, Dict, List, Optional
import json

from .constants import STATUS_PENDING, DEFAULT_CATEGORIES, DEFAULT_ICON


# In-memory field -> local cache key
TASK_CACHE_KEYS = {
    "id": "id",
    "title": "title",
    "category_id": "categoryId",
    "day": "day",
    "status": "status",
    "order": "order",
    "due_date": "dueDate",
    "due_time": "dueTime",
    "description": "description",
    "created_at": "createdAt",
    "completed_at": "completedAt",
    "updated_at": "updatedAt",
    "source_ref": "sourceRef",
}

# In-memory field -> remote column
TASK_COLUMNS = {
    "id": "id",
    "title": "title",
    "category_id": "category_id",
    "day": "day",
    "status": "status",
    "order": "order_index",
    "due_date": "due_date",
    "due_time": "due_time",
    "description": "description",
    "created_at": "created_at",
    "completed_at": "completed_at",
    "updated_at": "updated_at",
    "source_ref": "source_ref",
}

CATEGORY_CACHE_KEYS = {
    "id": "id",
    "name": "name",
    "color": "color",
    "icon": "icon",
    "created_at": "createdAt",
    "source_ref": "sourceRef",
}

CATEGORY_COLUMNS = {
    "id": "id",
    "name": "name",
    "color": "color",
    "icon": "icon",
    "created_at": "created_at",
    "source_ref": "source_ref",
}


def _invert(mapping: Dict[str, str]) -> Dict[str, str]:
    return {value: key for key, value in mapping.items()}


def _row_get(row, key: str) -> Any:
    # sqlite3.Row has no .get()
    try:
        return row[key]
    except (KeyError, IndexError):
        return None


@dataclass
class Task:
    """A task planned into one day bucket."""

    id: str
    title: str
    category_id: str
    day: str
    status: str = STATUS_PENDING
    order: int = 0
    due_date: Optional[str] = None
    due_time: Optional[str] = None
    description: Optional[str] = None
    created_at: Optional[str] = None
    completed_at: Optional[str] = None
    updated_at: Optional[str] = None  # server-maintained
    source_ref: Optional[str] = None  # guest id this record was migrated from

    @classmethod
    def from_row(cls, row) -> "Task":
        """Convert remote store row to Task object."""
        values = {name: _row_get(row, column) for name, column in TASK_COLUMNS.items()}
        values["order"] = values["order"] or 0
        return cls(**values)

    def to_row(self) -> Dict[str, Any]:
        """Convert Task to remote store column dict."""
        return {column: getattr(self, name) for name, column in TASK_COLUMNS.items()}

    @classmethod
    def from_cache(cls, data: Dict[str, Any]) -> "Task":
        """Convert local cache entry to Task object."""
        names = _invert(TASK_CACHE_KEYS)
        values = {names[key]: value for key, value in data.items() if key in names}
        return cls(**values)

    def to_cache(self) -> Dict[str, Any]:
        """Convert Task to local cache entry."""
        return {key: getattr(self, name) for name, key in TASK_CACHE_KEYS.items()}

    def copy(self, **changes) -> "Task":
        return replace(self, **changes)

    def to_json(self) -> str:
        """Serialize task to JSON string."""
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


@dataclass
class Category:
    """A color-coded label shared by many tasks."""

    id: str
    name: str
    color: str
    icon: str = DEFAULT_ICON
    created_at: Optional[str] = None
    source_ref: Optional[str] = None

    @classmethod
    def from_row(cls, row) -> "Category":
        """Convert remote store row to Category object."""
        return cls(**{name: _row_get(row, column) for name, column in CATEGORY_COLUMNS.items()})

    def to_row(self) -> Dict[str, Any]:
        return {column: getattr(self, name) for name, column in CATEGORY_COLUMNS.items()}

    @classmethod
    def from_cache(cls, data: Dict[str, Any]) -> "Category":
        names = _invert(CATEGORY_CACHE_KEYS)
        values = {names[key]: value for key, value in data.items() if key in names}
        values.setdefault("icon", DEFAULT_ICON)
        return cls(**values)

    def to_cache(self) -> Dict[str, Any]:
        return {key: getattr(self, name) for name, key in CATEGORY_CACHE_KEYS.items()}

    def copy(self, **changes) -> "Category":
        return replace(self, **changes)

    def to_json(self) -> str:
        """Serialize category to JSON string."""
        return json.dumps(asdict(self), indent=2, ensure_ascii=False)


@dataclass(frozen=True)
class Identity:
    """Either the device-local guest or an authenticated account."""

    user_id: Optional[str] = None
    email: Optional[str] = None
    name: Optional[str] = None

    @property
    def is_guest(self) -> bool:
        return self.user_id is None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Identity":
        return cls(user_id=data["id"], email=data.get("email"), name=data.get("name"))

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.user_id, "email": self.email, "name": self.name}

    def __str__(self) -> str:
        return "guest" if self.is_guest else f"{self.name} <{self.email}>"


GUEST = Identity()


def default_categories() -> List[Category]:
    """Fresh copies of the categories every new guest scope starts with."""
    return [
        Category(id=cat_id, name=name, color=color, icon=DEFAULT_ICON)
        for cat_id, name, color in DEFAULT_CATEGORIES
    ]
