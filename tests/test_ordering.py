"""
Test the order reindexer (pure functions over one day partition).
"""

# Path setup handled by conftest.py
from weekplan.core import ordering
from weekplan.core.models import Task
import pytest


def _partition(*titles):
    return [
        Task(id=title.lower(), title=title, category_id="1", day="Mon", order=index)
        for index, title in enumerate(titles)
    ]


def _titles(tasks):
    return [t.title for t in tasks]


def test_move_down_takes_destination_index():
    """Moving the first task to index 2 shifts the others up."""
    tasks = _partition("A", "B", "C", "D")
    result = ordering.move(tasks, 0, 2)

    assert _titles(result) == ["B", "C", "A", "D"]
    assert [t.order for t in result] == [0, 1, 2, 3]


def test_move_up_takes_destination_index():
    tasks = _partition("A", "B", "C", "D")
    result = ordering.move(tasks, 3, 1)

    assert _titles(result) == ["A", "D", "B", "C"]
    assert ordering.is_contiguous(result)


def test_move_does_not_mutate_input():
    """The input sequence and its tasks keep their orders."""
    tasks = _partition("A", "B", "C")
    ordering.move(tasks, 0, 2)

    assert _titles(tasks) == ["A", "B", "C"]
    assert [t.order for t in tasks] == [0, 1, 2]


def test_move_same_index_is_identity():
    tasks = _partition("A", "B", "C")
    assert _titles(ordering.move(tasks, 1, 1)) == ["A", "B", "C"]


def test_move_out_of_range_raises():
    tasks = _partition("A", "B")
    with pytest.raises(IndexError):
        ordering.move(tasks, 0, 2)
    with pytest.raises(IndexError):
        ordering.move([], 0, 0)


def test_adjacent_move_round_trip():
    """Swapping two neighbours twice restores the sequence."""
    tasks = _partition("A", "B", "C", "D")
    once = ordering.move(tasks, 1, 2)
    twice = ordering.move(once, 1, 2)

    assert _titles(twice) == ["A", "B", "C", "D"]


def test_remove_closes_gap():
    tasks = _partition("A", "B", "C", "D")
    result = ordering.remove(tasks, "b")

    assert _titles(result) == ["A", "C", "D"]
    assert [t.order for t in result] == [0, 1, 2]


def test_remove_unknown_id_keeps_sequence():
    tasks = _partition("A", "B")
    assert _titles(ordering.remove(tasks, "zzz")) == ["A", "B"]


def test_renumber_keeps_unchanged_tasks():
    """Tasks already at their position are returned as the same objects."""
    tasks = _partition("A", "B")
    tasks.append(Task(id="c", title="C", category_id="1", day="Mon", order=7))
    result = ordering.renumber(tasks)

    assert result[0] is tasks[0]
    assert result[1] is tasks[1]
    assert result[2].order == 2
    assert tasks[2].order == 7


def test_next_order():
    assert ordering.next_order([]) == 0
    assert ordering.next_order(_partition("A", "B", "C")) == 3


def test_is_contiguous_detects_gaps_and_duplicates():
    tasks = _partition("A", "B", "C")
    assert ordering.is_contiguous(tasks)
    assert ordering.is_contiguous([])

    gap = [tasks[0], tasks[1].copy(order=5)]
    assert not ordering.is_contiguous(gap)

    duplicate = [tasks[0], tasks[1].copy(order=0)]
    assert not ordering.is_contiguous(duplicate)
