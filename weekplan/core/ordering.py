"""
FILE: weekplan/core/ordering.py
PURPOSE: Recompute contiguous per-day ordering for task sequences
EXPORTS:
  - renumber(tasks) -> List[Task]
  - move(tasks, source_index, destination_index) -> List[Task]
  - remove(tasks, task_id) -> List[Task]
  - next_order(tasks) -> int
  - is_contiguous(tasks) -> bool
DEPENDENCIES:
  - typing (stdlib)
  - weekplan.core.models (Task)
NOTES:
  - Pure functions: inputs are never mutated, new Task copies are returned
  - Every result carries order = 0..n-1 in sequence position
  - Caller passes the partition already sorted by order
"""

from typing import List, Sequence

from .models import Task


def renumber(tasks: Sequence[Task]) -> List[Task]:
    """
    Rewrite order fields to 0..n-1 following sequence position.

    Tasks whose order already matches are returned as-is, the rest are
    copied with the new order.
    """
    result = []
    for position, task in enumerate(tasks):
        if task.order == position:
            result.append(task)
        else:
            result.append(task.copy(order=position))
    return result


def move(tasks: Sequence[Task], source_index: int, destination_index: int) -> List[Task]:
    """
    Relocate one element and renumber the sequence.

    Args:
        tasks: Partition sorted by order
        source_index: Current position of the moved task
        destination_index: Position the moved task ends up at

    Returns:
        New renumbered sequence

    Raises:
        IndexError: If either index is outside the sequence
    """
    size = len(tasks)
    if not (0 <= source_index < size and 0 <= destination_index < size):
        raise IndexError(
            f"Move {source_index} -> {destination_index} outside sequence of {size}"
        )

    sequence = list(tasks)
    moved = sequence.pop(source_index)
    sequence.insert(destination_index, moved)
    return renumber(sequence)


def remove(tasks: Sequence[Task], task_id: str) -> List[Task]:
    """Drop one task by id and close the gap it leaves."""
    return renumber([task for task in tasks if task.id != task_id])


def next_order(tasks: Sequence[Task]) -> int:
    """Order for a task appended to the partition (0 when empty)."""
    if not tasks:
        return 0
    return max(task.order for task in tasks) + 1


def is_contiguous(tasks: Sequence[Task]) -> bool:
    """True when the partition's orders are exactly 0..n-1."""
    return sorted(task.order for task in tasks) == list(range(len(tasks)))
