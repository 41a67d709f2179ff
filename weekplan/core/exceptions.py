"""
FILE: weekplan/core/exceptions.py
PURPOSE: Custom exception classes for error handling
EXPORTS:
  - WeekplanError (base exception)
  - ValidationError
  - NotFoundError, TaskNotFoundError, CategoryNotFoundError
  - BackingStoreError
  - MigrationError, MigrationInProgressError
  - AuthenticationError
DEPENDENCIES:
  - None (stdlib only)
NOTES:
  - All exceptions inherit from WeekplanError for easy catching
  - Exceptions include context (IDs, causes) for helpful error messages
  - Core raises these, the CLI catches and displays
"""

from typing import List, Optional


class WeekplanError(Exception):
    """Base exception for all weekplan errors."""
    pass


class ValidationError(WeekplanError):
    """Input validation failed."""

    def __init__(self, message: str):
        super().__init__(message)


class NotFoundError(WeekplanError):
    """Operation targets a record outside the current identity's partition."""
    pass


class TaskNotFoundError(NotFoundError):
    """Task with given ID doesn't exist."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task {task_id} not found")


class CategoryNotFoundError(NotFoundError):
    """Category with given ID doesn't exist."""

    def __init__(self, category_id: str):
        self.category_id = category_id
        super().__init__(f"Category {category_id} not found")


class BackingStoreError(WeekplanError):
    """Local cache or remote store failed to read or write."""

    def __init__(self, message: str, record_id: Optional[str] = None):
        self.record_id = record_id
        super().__init__(message)


class MigrationError(WeekplanError):
    """Copying guest data into an account failed; guest data was kept."""

    def __init__(self, user_id: str, failed: List[str], cause: Optional[Exception] = None):
        self.user_id = user_id
        self.failed = failed
        self.cause = cause
        detail = f": {cause}" if cause else ""
        super().__init__(
            f"Migration to account {user_id} failed for {len(failed)} record(s){detail}"
        )


class MigrationInProgressError(WeekplanError):
    """Guest data is being migrated and cannot be changed right now."""

    def __init__(self):
        super().__init__("Guest data is being migrated; try again in a moment")


class AuthenticationError(WeekplanError):
    """Email or password did not match an account."""

    def __init__(self, message: str = "Email or password is incorrect"):
        super().__init__(message)
