"""
Test weekly summary statistics.
"""

# Path setup handled by conftest.py
from weekplan.core.models import Task, default_categories
from weekplan.core.summary import summarize


def _task(task_id, day, status, category_id="1"):
    return Task(id=task_id, title=task_id, category_id=category_id, day=day, status=status)


def test_empty_week():
    result = summarize([], default_categories())

    assert result.total == 0
    assert result.completion_rate == 0
    assert result.categories == []
    assert result.most_productive_day is None
    assert set(result.by_status) == {"pending", "in-progress", "done", "cancelled"}


def test_counts_and_rates():
    tasks = [
        _task("a", "Mon", "done"),
        _task("b", "Mon", "done", category_id="2"),
        _task("c", "Tue", "done"),
        _task("d", "Tue", "pending", category_id="2"),
        _task("e", "Wed", "in-progress", category_id="2"),
        _task("f", "this week", "cancelled", category_id="2"),
    ]
    result = summarize(tasks, default_categories())

    assert result.total == 6
    assert result.by_status == {"pending": 1, "in-progress": 1, "done": 3, "cancelled": 1}
    assert result.completion_rate == 50
    assert result.most_productive_day == "Mon"

    assert [(s.category.name, s.completed, s.total, s.completion_rate) for s in result.categories] == [
        ("Personal", 2, 2, 100),
        ("Work", 1, 4, 25),
    ]
