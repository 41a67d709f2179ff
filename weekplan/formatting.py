"""
FILE: weekplan/formatting.py
PURPOSE: Shared formatting utilities for CLI output
EXPORTS:
  - TaskFormatter: Class for formatting tasks
  - CategoryFormatter: Class for formatting categories
  - short_id(record_id) -> str
DEPENDENCIES:
  - rich (for table formatting)
  - json (for JSON serialization)
  - typing (type hints)
  - weekplan.core.models (Task, Category)
NOTES:
  - Centralized formatting logic for consistency
  - IDs are shown shortened; the CLI accepts any unique prefix
"""

import json
from dataclasses import asdict
from typing import Dict, List

from rich.table import Table

from .core.constants import STATUS_CANCELLED, STATUS_DONE, STATUS_IN_PROGRESS
from .core.models import Task, Category


SHORT_ID_LENGTH = 8

STATUS_MARKERS = {
    STATUS_DONE: "✓",
    STATUS_IN_PROGRESS: "~",
    STATUS_CANCELLED: "x",
}

STATUS_STYLES = {
    STATUS_DONE: "green",
    STATUS_IN_PROGRESS: "yellow",
    STATUS_CANCELLED: "dim strike",
}


def short_id(record_id: str) -> str:
    return record_id[:SHORT_ID_LENGTH]


class TaskFormatter:
    """Centralized task display formatting."""

    @staticmethod
    def create_table(
        tasks: List[Task],
        categories: Dict[str, Category],
        title: str = "Tasks",
        show_day: bool = True,
    ) -> Table:
        """
        Create Rich table for tasks.

        Args:
            tasks: Tasks in display order
            categories: Category lookup by id
            title: Table title
            show_day: Whether to show the day column

        Returns:
            Rich Table object ready for display
        """
        table = Table(title=title, show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", width=SHORT_ID_LENGTH, no_wrap=True)
        if show_day:
            table.add_column("Day", style="magenta", width=10)
        table.add_column("#", style="dim", width=3)
        table.add_column("Title", style="white")
        table.add_column("Category", width=12)
        table.add_column("Status", width=12)

        for task in tasks:
            category = categories.get(task.category_id)
            if category:
                category_cell = f"[{category.color}]{category.icon} {category.name}[/{category.color}]"
            else:
                category_cell = "-"

            style = STATUS_STYLES.get(task.status)
            status_cell = f"[{style}]{task.status}[/{style}]" if style else task.status

            row = [short_id(task.id)]
            if show_day:
                row.append(task.day)
            row.extend([str(task.order), task.title, category_cell, status_cell])
            table.add_row(*row)

        return table

    @staticmethod
    def to_json_array(tasks: List[Task]) -> str:
        return json.dumps([asdict(t) for t in tasks], indent=2, ensure_ascii=False)

    @staticmethod
    def to_raw_lines(tasks: List[Task]) -> List[str]:
        """
        Convert task list to plain text lines.

        Returns:
            One "id: [marker] day#order title" line per task
        """
        lines = []
        for task in tasks:
            marker = STATUS_MARKERS.get(task.status, " ")
            lines.append(f"{short_id(task.id)}: [{marker}] {task.day}#{task.order} {task.title}")
        return lines


class CategoryFormatter:
    """Category display formatting."""

    @staticmethod
    def create_table(categories: List[Category], counts: Dict[str, int]) -> Table:
        table = Table(title="Categories", show_header=True, header_style="bold cyan")
        table.add_column("ID", style="cyan", width=SHORT_ID_LENGTH, no_wrap=True)
        table.add_column("Name")
        table.add_column("Color", width=9)
        table.add_column("Tasks", justify="right", style="dim")

        for category in categories:
            table.add_row(
                short_id(category.id),
                f"{category.icon} {category.name}",
                f"[{category.color}]{category.color}[/{category.color}]",
                str(counts.get(category.id, 0)),
            )
        return table

    @staticmethod
    def to_json_array(categories: List[Category]) -> str:
        return json.dumps([asdict(c) for c in categories], indent=2, ensure_ascii=False)
