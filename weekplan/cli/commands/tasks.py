"""
FILE: weekplan/cli/commands/tasks.py
PURPOSE: Task commands (add, ls, show, status, done, cycle, edit, rm, mv)
"""

from typing import Optional

import typer
from rich.panel import Panel
from rich.text import Text

from ..main import (
    app,
    console,
    error_console,
    fail,
    parse_day,
    resolve_category_id,
    resolve_task_id,
    run,
)
from ...core.constants import DAY_THIS_WEEK, STATUS_DONE
from ...core.exceptions import BackingStoreError, NotFoundError, ValidationError, WeekplanError
from ...formatting import STATUS_STYLES, TaskFormatter, short_id


def _report_unsaved(error: BackingStoreError) -> None:
    """A failed write keeps the change locally; say so without failing the command."""
    error_console.print(
        f"[yellow]Warning:[/yellow] Change kept locally but not saved: {error}"
    )


@app.command()
def add(
    title: str = typer.Argument(..., help="Task title"),
    day: str = typer.Option(DAY_THIS_WEEK, "--day", "-d", help="Day (Mon..Sun or 'week')"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category name or id"),
    description: Optional[str] = typer.Option(None, "--desc", help="Task description"),
    due_date: Optional[str] = typer.Option(None, "--due", help="Due date (YYYY-MM-DD)"),
    due_time: Optional[str] = typer.Option(None, "--at", help="Due time (HH:MM)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    Create a new task at the end of a day.

    Example:
        weekplan add "Write report" --day mon --category Work
        weekplan add "Read a book"
    """

    async def intent(registry):
        category_id = resolve_category_id(registry, category) if category else None
        try:
            return await registry.add_task(
                title,
                parse_day(day),
                category_id=category_id,
                description=description,
                due_date=due_date,
                due_time=due_time,
            )
        except BackingStoreError as e:
            _report_unsaved(e)
            return registry.get_task(e.record_id)

    try:
        task = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(task.to_json())
    elif raw:
        typer.echo(f"{task.id}: {task.title}")
    else:
        console.print(
            f"[green]✓ Created task [bold]{short_id(task.id)}[/bold] in {task.day}:[/green] {task.title}"
        )


@app.command()
def ls(
    day: Optional[str] = typer.Argument(None, help="Only list one day"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    List tasks in week order, or one day in display order.

    Example:
        weekplan ls
        weekplan ls tue
        weekplan ls --json
    """

    async def intent(registry):
        if day:
            tasks = registry.list_by_day(parse_day(day))
        else:
            tasks = registry.list_tasks()
        return tasks, {c.id: c for c in registry.list_categories()}, registry.identity

    try:
        tasks, categories, identity = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(TaskFormatter.to_json_array(tasks))
        return
    if raw:
        for line in TaskFormatter.to_raw_lines(tasks):
            typer.echo(line)
        return

    if not tasks:
        console.print("[dim]No tasks yet. Add one with: weekplan add \"...\"[/dim]")
        return

    title = f"{parse_day(day)} ({identity})" if day else f"This week ({identity})"
    console.print(TaskFormatter.create_table(tasks, categories, title=title, show_day=not day))


@app.command()
def show(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show full details for a task.

    Example:
        weekplan show 3f2a
    """

    async def intent(registry):
        task = registry.get_task(resolve_task_id(registry, task_id))
        try:
            category = registry.get_category(task.category_id)
        except NotFoundError:
            category = None
        return task, category

    try:
        task, category = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(task.to_json())
        return

    details = Text()
    details.append(f"{task.title}\n\n", style="bold white")
    if task.description:
        details.append(f"{task.description}\n\n", style="white")

    details.append("Day: ", style="dim")
    details.append(f"{task.day} (#{task.order})\n", style="magenta")
    details.append("Status: ", style="dim")
    details.append(f"{task.status}\n", style=STATUS_STYLES.get(task.status, "white"))
    details.append("Category: ", style="dim")
    if category:
        details.append(f"{category.icon} {category.name}\n", style=category.color)
    else:
        details.append("-\n")
    if task.due_date or task.due_time:
        details.append("Due: ", style="dim")
        details.append(" ".join(v for v in (task.due_date, task.due_time) if v) + "\n")
    details.append("Created: ", style="dim")
    details.append(f"{task.created_at or '-'}\n")
    if task.completed_at:
        details.append("Completed: ", style="dim")
        details.append(f"{task.completed_at}\n", style="green")

    console.print(Panel(details, title=f"Task {short_id(task.id)}", border_style="cyan"))


def _change_status(task_id: str, change, raw: bool) -> None:
    async def intent(registry):
        resolved = resolve_task_id(registry, task_id)
        try:
            return await change(registry, resolved)
        except BackingStoreError as e:
            _report_unsaved(e)
            return registry.get_task(resolved)

    try:
        task = run(intent)
    except WeekplanError as e:
        fail(e)

    if raw:
        typer.echo(f"{task.id}: {task.status}")
    else:
        style = STATUS_STYLES.get(task.status, "white")
        console.print(
            f"[{style}]✓ {short_id(task.id)} is now {task.status}:[/{style}] {task.title}"
        )


@app.command()
def status(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    new_status: str = typer.Argument(..., help="pending, in-progress, done or cancelled"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    Set a task's status.

    Example:
        weekplan status 3f2a in-progress
    """
    _change_status(task_id, lambda registry, tid: registry.set_status(tid, new_status), raw)


@app.command()
def done(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """Mark a task as done."""
    _change_status(task_id, lambda registry, tid: registry.set_status(tid, STATUS_DONE), raw)


@app.command()
def cycle(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """Advance a task's status: pending -> in-progress -> done -> pending."""
    _change_status(task_id, lambda registry, tid: registry.cycle_status(tid), raw)


@app.command()
def edit(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    title: Optional[str] = typer.Option(None, "--title", "-t", help="New title"),
    day: Optional[str] = typer.Option(None, "--day", "-d", help="Move to another day"),
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Category name or id"),
    description: Optional[str] = typer.Option(None, "--desc", help="New description ('' clears)"),
    due_date: Optional[str] = typer.Option(None, "--due", help="Due date ('' clears)"),
    due_time: Optional[str] = typer.Option(None, "--at", help="Due time ('' clears)"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Edit a task's fields. Moving to another day appends it there.

    Example:
        weekplan edit 3f2a --title "Write final report" --day fri
    """

    async def intent(registry):
        resolved = resolve_task_id(registry, task_id)
        updates = {}
        if title is not None:
            updates["title"] = title
        if day is not None:
            updates["day"] = parse_day(day)
        if category is not None:
            updates["category_id"] = resolve_category_id(registry, category)
        if description is not None:
            updates["description"] = description
        if due_date is not None:
            updates["due_date"] = due_date
        if due_time is not None:
            updates["due_time"] = due_time
        if not updates:
            raise ValidationError("Nothing to change. Pass --title, --day, --category, --desc, --due or --at")

        try:
            return await registry.edit_task(resolved, **updates)
        except BackingStoreError as e:
            _report_unsaved(e)
            return registry.get_task(resolved)

    try:
        task = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(task.to_json())
    else:
        console.print(f"[green]✓ Updated task [bold]{short_id(task.id)}[/bold]:[/green] {task.title}")


@app.command()
def rm(
    task_id: str = typer.Argument(..., help="Task id (any unique prefix)"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a task. The rest of its day closes up.

    Example:
        weekplan rm 3f2a -y
    """

    async def intent(registry):
        task = registry.get_task(resolve_task_id(registry, task_id))
        if not yes and not typer.confirm(f"Delete '{task.title}'?"):
            return None
        try:
            await registry.delete_task(task.id)
        except BackingStoreError as e:
            _report_unsaved(e)
        return task

    try:
        task = run(intent)
    except WeekplanError as e:
        fail(e)

    if task is None:
        console.print("[dim]Cancelled[/dim]")
    else:
        console.print(f"[green]✓ Deleted task {short_id(task.id)}:[/green] {task.title}")


@app.command()
def mv(
    moved_id: str = typer.Argument(..., help="Task to move"),
    target_id: str = typer.Argument(..., help="Task whose position it takes"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """
    Reorder within a day: MOVED takes TARGET's position.

    Example:
        weekplan mv 3f2a 9c01
    """

    async def intent(registry):
        moved = registry.get_task(resolve_task_id(registry, moved_id))
        target = registry.get_task(resolve_task_id(registry, target_id))
        if moved.day != target.day:
            raise ValidationError(
                f"Tasks are on different days ({moved.day}, {target.day}); use 'weekplan edit --day' to move across days"
            )
        try:
            tasks = await registry.reorder(moved.day, moved.id, target.id)
        except BackingStoreError as e:
            _report_unsaved(e)
            tasks = registry.list_by_day(moved.day)
        return tasks, {c.id: c for c in registry.list_categories()}

    try:
        tasks, categories = run(intent)
    except WeekplanError as e:
        fail(e)

    if raw:
        for line in TaskFormatter.to_raw_lines(tasks):
            typer.echo(line)
    else:
        day = tasks[0].day if tasks else ""
        console.print(TaskFormatter.create_table(tasks, categories, title=day, show_day=False))
