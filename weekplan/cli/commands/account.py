"""
FILE: weekplan/cli/commands/account.py
PURPOSE: Account and system commands (signup, login, logout, whoami, migrate, summary, version)
"""

import json
from dataclasses import asdict

import typer
from rich.table import Table

from ..main import app, console, error_console, fail, run
from ... import __version__
from ...core.exceptions import MigrationError, WeekplanError


def _print_report(report) -> None:
    if report is None:
        return
    if not (report.tasks_created or report.categories_created or report.tasks_skipped):
        console.print("[dim]No guest data to bring over[/dim]")
        return
    console.print(
        f"[green]✓ Brought over {report.tasks_created} task(s) and "
        f"{report.categories_created} new categor{'y' if report.categories_created == 1 else 'ies'}[/green]"
    )
    if report.tasks_skipped:
        console.print(f"[dim]{report.tasks_skipped} task(s) were already in the account[/dim]")


def _migration_failed(error: MigrationError) -> None:
    error_console.print(f"[yellow]Warning:[/yellow] {error}")
    error_console.print("[yellow]Guest data was kept on this device. Retry with: weekplan migrate[/yellow]")


def _enter(transition) -> None:
    """Run a guest -> account transition and report the migration it triggers."""

    async def intent(registry):
        try:
            identity = await transition(registry.context.session)
        except MigrationError as e:
            return registry.identity, None, e
        return identity, registry.last_migration, None

    try:
        identity, report, migration_error = run(intent)
    except WeekplanError as e:
        fail(e)

    console.print(f"[green]✓ Signed in as[/green] [bold]{identity}[/bold]")
    if migration_error is not None:
        _migration_failed(migration_error)
    else:
        _print_report(report)


@app.command()
def signup(
    email: str = typer.Argument(..., help="Email address"),
    name: str = typer.Argument(..., help="Display name"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, confirmation_prompt=True,
        help="Four-digit password",
    ),
):
    """
    Create an account and move guest tasks into it.

    Example:
        weekplan signup me@example.com Alex
    """
    _enter(lambda session: session.signup(email, name, password))


@app.command()
def login(
    email: str = typer.Argument(..., help="Email address"),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Four-digit password"
    ),
):
    """
    Sign in. Any guest tasks on this device are moved into the account.

    Example:
        weekplan login me@example.com
    """
    _enter(lambda session: session.login(email, password))


@app.command()
def logout():
    """Sign out and return to the guest planner."""

    async def intent(registry):
        previous = registry.identity
        await registry.context.session.logout()
        return previous

    try:
        previous = run(intent)
    except WeekplanError as e:
        fail(e)

    if previous.is_guest:
        console.print("[dim]Not signed in[/dim]")
    else:
        console.print(f"[green]✓ Signed out {previous}[/green]")


@app.command()
def whoami():
    """Show the current identity."""

    async def intent(registry):
        return registry.identity

    try:
        identity = run(intent)
    except WeekplanError as e:
        fail(e)

    typer.echo(str(identity))


@app.command()
def migrate():
    """Retry moving leftover guest data into the signed-in account."""

    async def intent(registry):
        return await registry.retry_migration()

    try:
        report = run(intent)
    except MigrationError as e:
        _migration_failed(e)
        raise typer.Exit(1)
    except WeekplanError as e:
        fail(e)

    _print_report(report)


@app.command()
def summary(
    json_output: bool = typer.Option(False, "--json", help="Output as JSON"),
):
    """
    Show weekly progress: completion rate, per-category stats, best day.

    Example:
        weekplan summary
    """

    async def intent(registry):
        return registry.weekly_summary()

    try:
        stats = run(intent)
    except WeekplanError as e:
        fail(e)

    if json_output:
        typer.echo(json.dumps(asdict(stats), indent=2, ensure_ascii=False))
        return

    console.print(f"\n[bold cyan]This week[/bold cyan]  {stats.completion_rate}% complete")
    console.print(
        "  ".join(f"[dim]{status}:[/dim] {count}" for status, count in stats.by_status.items())
    )
    if stats.most_productive_day:
        console.print(f"[dim]Most productive day:[/dim] [magenta]{stats.most_productive_day}[/magenta]")

    if stats.categories:
        table = Table(title="By category", show_header=True, header_style="bold cyan")
        table.add_column("Category")
        table.add_column("Done", justify="right")
        table.add_column("Total", justify="right")
        table.add_column("Rate", justify="right")
        for entry in stats.categories:
            color = entry.category.color
            table.add_row(
                f"[{color}]{entry.category.icon} {entry.category.name}[/{color}]",
                str(entry.completed),
                str(entry.total),
                f"{entry.completion_rate}%",
            )
        console.print(table)


@app.command()
def version():
    """Show weekplan version."""
    console.print(f"weekplan v{__version__}")
