"""
FILE: weekplan/core/constants.py
PURPOSE: Constants used throughout the application
EXPORTS:
  - DAYS / DAY_THIS_WEEK / WEEKDAYS: Valid day buckets
  - VALID_STATUSES / STATUS_*: Task status values
  - TASKS_KEY / CATEGORIES_KEY / USER_KEY: Local cache keys
  - DEFAULT_CATEGORIES: Categories seeded for every new scope
  - DATA_DIR / CACHE_DB_PATH / REMOTE_DB_PATH: File locations
DEPENDENCIES:
  - os, pathlib (stdlib)
NOTES:
  - Centralized constants to avoid magic strings
  - DATA_DIR honours $WEEKPLAN_HOME so tests and scripts can relocate it
"""

import os
from pathlib import Path

# Day buckets ("this week" is a catch-all, not a weekday)
DAY_THIS_WEEK = "this week"
WEEKDAYS = ("Mon", "Tue", "Wed", "Thu", "Fri", "Sat", "Sun")
DAYS = (DAY_THIS_WEEK,) + WEEKDAYS

# Task status constants
STATUS_PENDING = "pending"
STATUS_IN_PROGRESS = "in-progress"
STATUS_DONE = "done"
STATUS_CANCELLED = "cancelled"
VALID_STATUSES = (STATUS_PENDING, STATUS_IN_PROGRESS, STATUS_DONE, STATUS_CANCELLED)

# Click-through cycle; cancelled drops back to pending
STATUS_CYCLE = {
    STATUS_PENDING: STATUS_IN_PROGRESS,
    STATUS_IN_PROGRESS: STATUS_DONE,
    STATUS_DONE: STATUS_PENDING,
    STATUS_CANCELLED: STATUS_PENDING,
}

# Local cache keys (guest scope)
TASKS_KEY = "weekplan-todos"
CATEGORIES_KEY = "weekplan-categories"
USER_KEY = "weekplan-user"

# Category limits
CATEGORY_NAME_MAX = 12
CATEGORY_NAME_MAX_LETTERS = 12
CATEGORY_NAME_MAX_WIDE = 5
DEFAULT_ICON = "\U0001F4C1"

# (guest id, name, color) - guest ids are fixed, remote ids are generated
DEFAULT_CATEGORIES = (
    ("1", "Personal", "#ef4444"),
    ("2", "Work", "#3b82f6"),
    ("3", "Study", "#10b981"),
    ("4", "Exercise", "#f59e0b"),
    ("5", "Hobby", "#8b5cf6"),
)

# Authentication shape rules
PASSWORD_PATTERN = r"^\d{4}$"
EMAIL_PATTERN = r"^[^\s@]+@[^\s@]+\.[^\s@]+$"
PASSWORD_HASH_ITERATIONS = 100_000

# File locations
DATA_DIR = Path(os.environ.get("WEEKPLAN_HOME", Path.home() / ".weekplan"))
CACHE_DB_PATH = DATA_DIR / "cache.db"
REMOTE_DB_PATH = DATA_DIR / "remote.db"
