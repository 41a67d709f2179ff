"""
FILE: weekplan/cli/commands/__init__.py
PURPOSE: CLI command modules
"""

# Export all command handlers for easy importing
from .tasks import (
    add,
    ls,
    show,
    status,
    done,
    cycle,
    edit,
    rm,
    mv,
)
from .categories import (
    category_add,
    category_ls,
    category_edit,
    category_rm,
)
from .account import (
    signup,
    login,
    logout,
    whoami,
    migrate,
    summary,
    version,
)

__all__ = [
    "add",
    "ls",
    "show",
    "status",
    "done",
    "cycle",
    "edit",
    "rm",
    "mv",
    "category_add",
    "category_ls",
    "category_edit",
    "category_rm",
    "signup",
    "login",
    "logout",
    "whoami",
    "migrate",
    "summary",
    "version",
]
