"""
FILE: weekplan/cli/main.py
PURPOSE: Typer-based CLI for one-shot planner commands
EXPORTS:
  - app (Typer application), category_app (cat sub-commands)
  - console / error_console (rich consoles)
  - run(intent) - load a registry and run one async intent against it
  - parse_day(value) - normalize a day argument
  - resolve_task_id / resolve_category_id - id prefix (or name) lookup
  - main() (entry point)
DEPENDENCIES:
  - typer (CLI framework)
  - rich (formatted output, log handler)
  - weekplan.core.registry (TaskRegistry, PlannerContext)
NOTES:
  - Data lives in $WEEKPLAN_HOME (default ~/.weekplan)
  - Error messages go to stderr; exit codes: 0=success, 1=error
  - --verbose on the root command enables DEBUG logging
"""

import asyncio
import logging
import os
from pathlib import Path
from typing import Awaitable, Callable, TypeVar

import typer
from rich.console import Console
from rich.logging import RichHandler

from ..core.constants import DATA_DIR, DAY_THIS_WEEK, DAYS
from ..core.exceptions import BackingStoreError, CategoryNotFoundError, TaskNotFoundError, ValidationError
from ..core.registry import PlannerContext, TaskRegistry

T = TypeVar("T")

# Typer app setup
app = typer.Typer(
    name="weekplan",
    help="Weekly task planner: plan tasks into days, group them by category",
    add_completion=False,
)

# Category sub-command group
category_app = typer.Typer(
    name="cat",
    help="Category management commands",
)
app.add_typer(category_app, name="cat")

# Rich console for formatted output
console = Console()
error_console = Console(stderr=True)

_DAY_ALIASES = {day.lower(): day for day in DAYS}
_DAY_ALIASES.update({"week": DAY_THIS_WEEK, "this-week": DAY_THIS_WEEK, "thisweek": DAY_THIS_WEEK})


@app.callback()
def root(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """Weekly task planner."""
    configure_logging(verbose)


def configure_logging(verbose: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=error_console, show_path=False)],
        force=True,
    )


def data_dir() -> Path:
    return Path(os.environ.get("WEEKPLAN_HOME") or DATA_DIR)


def run(intent: Callable[[TaskRegistry], Awaitable[T]]) -> T:
    """
    Build a registry for the current identity, load it and run one intent.

    A failed load is reported and the command continues on the fallback view.
    """

    async def _main() -> T:
        registry = TaskRegistry(PlannerContext.open(data_dir()))
        try:
            await registry.load()
        except BackingStoreError as e:
            error_console.print(f"[yellow]Warning:[/yellow] Showing last known data: {e}")
        return await intent(registry)

    return asyncio.run(_main())


def parse_day(value: str) -> str:
    """Accept 'mon', 'Mon', 'week', 'this week'..."""
    day = _DAY_ALIASES.get(value.strip().lower())
    if day is None:
        raise ValidationError(f"Invalid day '{value}'. Must be one of: {', '.join(DAYS)}")
    return day


def resolve_task_id(registry: TaskRegistry, prefix: str) -> str:
    matches = [t.id for t in registry.list_tasks() if t.id.startswith(prefix)]
    if not matches:
        raise TaskNotFoundError(prefix)
    if len(matches) > 1:
        raise ValidationError(f"Task id '{prefix}' is ambiguous ({len(matches)} matches)")
    return matches[0]


def resolve_category_id(registry: TaskRegistry, value: str) -> str:
    """Match a category by id prefix, then by name (case-insensitive)."""
    categories = registry.list_categories()
    matches = [c.id for c in categories if c.id.startswith(value)]
    if len(matches) == 1:
        return matches[0]

    by_name = [c.id for c in categories if c.name.lower() == value.strip().lower()]
    if len(by_name) == 1:
        return by_name[0]

    if matches or by_name:
        raise ValidationError(f"Category '{value}' is ambiguous")
    available = ", ".join(c.name for c in categories)
    raise CategoryNotFoundError(f"{value} (available: {available})")


def fail(error: Exception) -> None:
    error_console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


# Import command modules to register commands with app
from .commands import (  # noqa: E402
    # Task commands
    add,
    ls,
    show,
    status,
    done,
    cycle,
    edit,
    rm,
    mv,
    # Category commands
    category_add,
    category_ls,
    category_edit,
    category_rm,
    # Account commands
    signup,
    login,
    logout,
    whoami,
    migrate,
    summary,
    version,
)


def main():
    """Main entry point for CLI."""
    app()


if __name__ == "__main__":
    main()
