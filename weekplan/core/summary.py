"""
FILE: weekplan/core/summary.py
PURPOSE: Weekly progress statistics over a task collection
EXPORTS:
  - CategoryStats, WeeklySummary (dataclasses)
  - summarize(tasks, categories) -> WeeklySummary
DEPENDENCIES:
  - dataclasses, typing (stdlib)
NOTES:
  - Completion rate is a whole percentage, 0 for an empty collection
  - Categories without tasks are left out; best completion rate first
  - Most productive day is the first bucket with the most done tasks
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .constants import DAYS, STATUS_DONE, VALID_STATUSES
from .models import Category, Task


@dataclass
class CategoryStats:
    category: Category
    total: int
    completed: int
    completion_rate: int


@dataclass
class WeeklySummary:
    total: int
    by_status: Dict[str, int]
    completion_rate: int
    categories: List[CategoryStats] = field(default_factory=list)
    most_productive_day: Optional[str] = None


def _rate(done: int, total: int) -> int:
    return round(done * 100 / total) if total else 0


def summarize(tasks: Sequence[Task], categories: Sequence[Category]) -> WeeklySummary:
    by_status = {status: 0 for status in VALID_STATUSES}
    for task in tasks:
        by_status[task.status] = by_status.get(task.status, 0) + 1

    category_stats = []
    for category in categories:
        members = [t for t in tasks if t.category_id == category.id]
        if not members:
            continue
        done = sum(1 for t in members if t.status == STATUS_DONE)
        category_stats.append(
            CategoryStats(category, len(members), done, _rate(done, len(members)))
        )
    category_stats.sort(key=lambda stats: stats.completion_rate, reverse=True)

    best_day, best_count = None, 0
    for day in DAYS:
        done = sum(1 for t in tasks if t.day == day and t.status == STATUS_DONE)
        if done > best_count:
            best_day, best_count = day, done

    return WeeklySummary(
        total=len(tasks),
        by_status=by_status,
        completion_rate=_rate(by_status[STATUS_DONE], len(tasks)),
        categories=category_stats,
        most_productive_day=best_day,
    )
