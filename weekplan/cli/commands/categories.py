"""
FILE: weekplan/cli/commands/categories.py
PURPOSE: Category commands (cat add, cat ls, cat edit, cat rm)
"""

from typing import Optional

import typer

from ..main import category_app, console, error_console, fail, resolve_category_id, run
from ...core.constants import DEFAULT_ICON
from ...core.exceptions import BackingStoreError, ValidationError, WeekplanError
from ...formatting import CategoryFormatter, short_id


@category_app.command("add")
def category_add(
    name: str = typer.Argument(..., help="Category name (max 12 characters)"),
    color: str = typer.Option("#6b7280", "--color", help="Hex color, e.g. #3b82f6"),
    icon: str = typer.Option(DEFAULT_ICON, "--icon", help="Emoji icon"),
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Create a new category.

    Example:
        weekplan cat add Reading --color "#0ea5e9" --icon 📚
    """

    async def intent(registry):
        try:
            return await registry.add_category(name, color, icon)
        except BackingStoreError as e:
            error_console.print(f"[yellow]Warning:[/yellow] Change kept locally but not saved: {e}")
            return registry.get_category(e.record_id)

    try:
        category = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(category.to_json())
    else:
        console.print(
            f"[green]✓ Created category [bold]{short_id(category.id)}[/bold]:[/green] {category.icon} {category.name}"
        )


@category_app.command("ls")
def category_ls(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
    raw: bool = typer.Option(False, "--raw", help="Plain text output (no colors)"),
):
    """List categories with their task counts."""

    async def intent(registry):
        counts = {}
        for task in registry.list_tasks():
            counts[task.category_id] = counts.get(task.category_id, 0) + 1
        return registry.list_categories(), counts

    try:
        categories, counts = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(CategoryFormatter.to_json_array(categories))
    elif raw:
        for category in categories:
            typer.echo(f"{category.id}: {category.name} {category.color}")
    else:
        console.print(CategoryFormatter.create_table(categories, counts))


@category_app.command("edit")
def category_edit(
    category: str = typer.Argument(..., help="Category name or id"),
    name: Optional[str] = typer.Option(None, "--name", help="New name"),
    color: Optional[str] = typer.Option(None, "--color", help="New hex color"),
    icon: Optional[str] = typer.Option(None, "--icon", help="New emoji icon"),
):
    """
    Rename or recolor a category.

    Example:
        weekplan cat edit Work --color "#1d4ed8"
    """

    async def intent(registry):
        category_id = resolve_category_id(registry, category)
        updates = {k: v for k, v in (("name", name), ("color", color), ("icon", icon)) if v is not None}
        if not updates:
            raise ValidationError("Nothing to change. Pass --name, --color or --icon")
        try:
            return await registry.edit_category(category_id, **updates)
        except BackingStoreError as e:
            error_console.print(f"[yellow]Warning:[/yellow] Change kept locally but not saved: {e}")
            return registry.get_category(category_id)

    try:
        updated = run(intent)
    except WeekplanError as e:
        fail(e)

    console.print(f"[green]✓ Updated category:[/green] {updated.icon} {updated.name}")


@category_app.command("rm")
def category_rm(
    category: str = typer.Argument(..., help="Category name or id"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """
    Delete a category. Its tasks move to the first remaining category.

    Example:
        weekplan cat rm Hobby -y
    """

    async def intent(registry):
        removed = registry.get_category(resolve_category_id(registry, category))
        if not yes and not typer.confirm(f"Delete category '{removed.name}'?"):
            return removed, None
        try:
            fallback_id = await registry.delete_category(removed.id)
        except BackingStoreError as e:
            error_console.print(f"[yellow]Warning:[/yellow] Change kept locally but not saved: {e}")
            fallback_id = registry.list_categories()[0].id
        return removed, registry.get_category(fallback_id)

    try:
        removed, fallback = run(intent)
    except WeekplanError as e:
        fail(e)

    if fallback is None:
        console.print("[dim]Cancelled[/dim]")
    else:
        console.print(
            f"[green]✓ Deleted category {removed.name};[/green] its tasks now belong to {fallback.icon} {fallback.name}"
        )
