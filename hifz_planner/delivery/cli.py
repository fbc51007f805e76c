"""
hifz - daily memorization planner in the terminal.

Commands:
    hifz setup                     Configure the progression
    hifz today [--date D]          Today's (or a date's) ordered task list
    hifz done ITEM STATION         Mark a review complete
    hifz undo ITEM STATION         Remove a completion
    hifz skip ITEM STATION         Record a review as missed
    hifz calendar                  Task counts per day of a month
    hifz stats                     Progress statistics
    hifz backlog status            Overdue reviews and the catch-up queue
    hifz backlog spread            Spread overdue reviews over several days
    hifz backlog clear             Drop the catch-up queue
    hifz archive / hifz delete     Retire or forget one item
    hifz reset                     Delete all stored data
    hifz export / hifz import      JSON backup

Global options --db and --now pick the database and freeze the clock.
"""

from __future__ import annotations

import json
import sys
from collections import Counter
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Annotated, NoReturn

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from hifz_planner.config import get_settings
from hifz_planner.core.dates import FixedClock, SystemClock, normalize, to_key
from hifz_planner.core.exceptions import InvalidDateError, InvalidExportError, MalformedQueueError
from hifz_planner.core.models import ProgressionConfig, Task, TaskPriority, UnitType
from hifz_planner.scheduling.progress import (
    filter_by_progression,
    get_next_unit_number,
    get_progress_stats,
    get_task_counts_for_month,
    group_by_progression,
)
from hifz_planner.scheduling.schedule_engine import get_review_date_for_station

from .item_store import ItemStore
from .today import DayPlan, TodayPlanner

# =============================================================================
# CLI Setup
# =============================================================================

app = typer.Typer(
    name="hifz",
    help="Daily memorization planner with spaced review stations",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

backlog_app = typer.Typer(
    name="backlog",
    help="Overdue reviews and the catch-up queue",
    no_args_is_help=True,
)
app.add_typer(backlog_app, name="backlog")

console = Console()

NOW_FORMATS = ["%Y-%m-%dT%H:%M", "%Y-%m-%d %H:%M", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d"]

KIND_LABELS = {
    TaskPriority.NEW: "New",
    TaskPriority.YESTERDAY: "Yesterday",
    TaskPriority.SPACED: "Review",
    TaskPriority.CATCHUP: "Catch-up",
}


@dataclass
class CliState:
    """Options shared by every command."""

    db_path: Path | None = None
    now: datetime | None = None


@contextmanager
def _planner(ctx: typer.Context) -> Iterator[TodayPlanner]:
    """Open the store, yield a planner, and turn domain errors into exit code 1."""
    state: CliState = ctx.obj or CliState()
    clock = FixedClock(state.now) if state.now else SystemClock()
    store: ItemStore | None = None
    try:
        store = ItemStore(state.db_path, clock=clock)
        yield TodayPlanner(store, clock=clock)
    except (InvalidDateError, InvalidExportError, MalformedQueueError) as e:
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1) from e
    finally:
        if store is not None:
            store.close()


def _require_config(planner: TodayPlanner) -> ProgressionConfig:
    config = planner.store.get_config()
    if config is None or config.start_date is None:
        console.print("[yellow]No progression configured yet.[/yellow]")
        console.print("Run [bold]hifz setup[/bold] first.")
        raise typer.Exit(1)
    return config


def _task_kind(task: Task) -> str:
    if task.is_overdue:
        return "Overdue"
    return KIND_LABELS.get(task.priority, "Task")


def _task_when(task: Task) -> str:
    if task.original_due_date:
        return f"due {task.original_due_date}"
    return task.time_of_day.value


def _resolve_review_date(planner: TodayPlanner, item_id: str, station: int, date: str | None) -> str | None:
    """
    Date a review belongs to, or None when the item does not exist.

    An explicit --date wins. Otherwise it is the day the station falls
    on for the item, which is also the original due date of a catch-up
    or overdue task.
    """
    if date is not None:
        return to_key(normalize(date))
    item = planner.store.get_item(item_id)
    if item is None:
        return None
    return get_review_date_for_station(item.date_memorized, station)


def _no_item(item_id: str) -> NoReturn:
    console.print(f"[red]No item {item_id}[/red]")
    raise typer.Exit(1)


def _no_progression(name: str) -> NoReturn:
    console.print(f"[yellow]No items in progression {name}[/yellow]")
    raise typer.Exit(0)


# =============================================================================
# Setup
# =============================================================================


@app.command()
def setup(
    ctx: typer.Context,
    start: Annotated[
        str | None, typer.Option("--start", "-s", help="First memorization day (YYYY-MM-DD, default today)")
    ] = None,
    units: Annotated[
        int | None, typer.Option("--units", "-n", min=1, help="Units in the progression")
    ] = None,
    unit_type: Annotated[
        UnitType | None, typer.Option("--unit-type", "-u", help="Unit memorized per day")
    ] = None,
    morning_hour: Annotated[
        int | None, typer.Option("--morning-hour", min=0, max=23, help="Hour today's tasks appear")
    ] = None,
    evening_hour: Annotated[
        int | None, typer.Option("--evening-hour", min=0, max=23, help="Hour of the evening repetition")
    ] = None,
    start_page: Annotated[
        float, typer.Option("--start-page", help="First page (page units only)")
    ] = 1,
    unit_size: Annotated[
        float | None, typer.Option("--unit-size", min=0.1, help="Pages per unit, e.g. 0.5")
    ] = None,
    name: Annotated[
        str, typer.Option("--name", help="Progression name, e.g. Juz Amma")
    ] = "",
) -> None:
    """
    Configure the memorization progression.

    Examples:
        hifz setup --start 2025-01-01 --units 20
        hifz setup --unit-type verse --units 40
        hifz setup --start-page 582 --unit-size 0.5
    """
    settings = get_settings()
    with _planner(ctx) as planner:
        start_date = normalize(start) if start else planner.today()
        config = ProgressionConfig(
            start_date=start_date,
            total_units=units or settings.default_total_units,
            unit_type=unit_type.value if unit_type else settings.default_unit_type,
            morning_hour=settings.default_morning_hour if morning_hour is None else morning_hour,
            evening_hour=settings.default_evening_hour if evening_hour is None else evening_hour,
            start_page=start_page,
            unit_size=unit_size,
            progression_name=name,
        )
        planner.setup(config)
        items = planner.ensure_items(config, planner.today())

    console.print("[green]Progression saved[/green]")
    console.print(f"  Start: {config.start_key}")
    console.print(f"  Units: {config.total_units} x {config.unit_type}")
    console.print(f"  Morning cutoff: {config.morning_hour}:00")
    if items:
        console.print(f"  Items so far: {len(items)}")


# =============================================================================
# Daily Commands
# =============================================================================


def _render_plan(plan: DayPlan) -> None:
    title = "today" if plan.is_today else plan.date_key
    if not plan.tasks:
        console.print(f"\n[green]Nothing scheduled for {title}.[/green]")
    else:
        table = Table(title=f"Hifz plan: {title} ({plan.completed}/{plan.total} done)")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Unit", no_wrap=True)
        table.add_column("Kind")
        table.add_column("St", justify="right")
        table.add_column("When")
        table.add_column("Status")

        for task in plan.tasks:
            item_id = "(not started)" if task.is_placeholder else task.item.id
            status = "[green]done[/green]" if task.is_completed else ""
            table.add_row(
                item_id,
                task.item.content_reference,
                _task_kind(task),
                str(task.station),
                _task_when(task),
                status,
            )
        console.print(table)

    if plan.queue_stats is not None:
        stats = plan.queue_stats
        console.print(Panel(
            f"Catch-up progress: {stats.completed}/{stats.total} ({stats.percent}%)\n"
            f"Remaining: {stats.remaining}",
            title="Backlog",
            border_style="cyan",
        ))
    elif plan.offer_spread:
        options = ", ".join(str(d) for d in get_settings().get_spread_options())
        console.print(Panel(
            f"{len(plan.overdue)} reviews are overdue.\n"
            f"Spread them with [bold]hifz backlog spread --days N[/bold] (N: {options})",
            title="Backlog",
            border_style="yellow",
        ))


@app.command()
def today(
    ctx: typer.Context,
    date: Annotated[
        str | None, typer.Option("--date", "-d", help="Show a specific date (YYYY-MM-DD)")
    ] = None,
) -> None:
    """
    Show the ordered task list for today or a chosen date.

    Before the morning cutoff, today's list stays hidden unless the
    date is given explicitly. Catch-up and overdue reviews only appear
    on the real today.
    """
    with _planner(ctx) as planner:
        _require_config(planner)
        plan = planner.build_day(date, selected=date is not None)
    _render_plan(plan)


@app.command()
def done(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item ID from `hifz today`")],
    station: Annotated[int, typer.Argument(min=1, max=7, help="Station number (1-7)")],
    date: Annotated[
        str | None, typer.Option("--date", "-d", help="Date the review belongs to")
    ] = None,
) -> None:
    """
    Mark a review complete.

    Without --date the review is filed under the day its station falls
    on, so catch-up and overdue reviews keep their original due date.
    """
    with _planner(ctx) as planner:
        review_date = _resolve_review_date(planner, item_id, station, date)
        if review_date is None or not planner.complete_task(item_id, station, review_date):
            _no_item(item_id)
    console.print(f"[green]Marked station {station} of {item_id} done for {review_date}[/green]")


@app.command()
def undo(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item ID from `hifz today`")],
    station: Annotated[int, typer.Argument(min=1, max=7, help="Station number (1-7)")],
    date: Annotated[
        str | None, typer.Option("--date", "-d", help="Date the review belongs to")
    ] = None,
) -> None:
    """Remove a review completion."""
    with _planner(ctx) as planner:
        review_date = _resolve_review_date(planner, item_id, station, date)
        if review_date is None:
            _no_item(item_id)
        if not planner.uncomplete_task(item_id, station, review_date):
            console.print(f"[yellow]Nothing to undo for station {station} of {item_id} on {review_date}[/yellow]")
            raise typer.Exit(1)
    console.print(f"[yellow]Unmarked station {station} of {item_id} for {review_date}[/yellow]")


@app.command()
def skip(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item ID from `hifz today`")],
    station: Annotated[int, typer.Argument(min=1, max=7, help="Station number (1-7)")],
    date: Annotated[
        str | None, typer.Option("--date", "-d", help="Date the review belongs to")
    ] = None,
) -> None:
    """Record a review as missed. The review still counts as overdue."""
    with _planner(ctx) as planner:
        review_date = _resolve_review_date(planner, item_id, station, date)
        if review_date is None or not planner.skip_task(item_id, station, review_date):
            _no_item(item_id)
    console.print(f"[yellow]Marked station {station} of {item_id} missed for {review_date}[/yellow]")


# =============================================================================
# Overview Commands
# =============================================================================


@app.command()
def calendar(
    ctx: typer.Context,
    year: Annotated[int | None, typer.Option("--year", "-y", help="Year (default current)")] = None,
    month: Annotated[
        int | None, typer.Option("--month", "-m", min=1, max=12, help="Month (default current)")
    ] = None,
    progression: Annotated[
        str | None, typer.Option("--progression", "-p", help="Only items of this progression")
    ] = None,
) -> None:
    """Show task counts for every scheduled day of a month."""
    with _planner(ctx) as planner:
        config = _require_config(planner)
        current = planner.today()
        year = year or current.year
        month = month or current.month
        items = filter_by_progression(planner.ensure_items(config, current), progression)
        if progression is not None and not items:
            _no_progression(progression)
        counts = get_task_counts_for_month(planner.engine, items, config, year, month)

    if not counts:
        console.print(f"[dim]No tasks in {year}-{month:02d}[/dim]")
        return

    table = Table(title=f"Calendar {year}-{month:02d}")
    table.add_column("Date", style="cyan")
    table.add_column("New", justify="right")
    table.add_column("Yesterday", justify="right")
    table.add_column("Spaced", justify="right")
    table.add_column("Total", justify="right", style="bold")

    for date_key, day in counts.items():
        table.add_row(
            date_key,
            str(day["new_memorization"]),
            str(day["yesterday_review"]),
            str(day["spaced_review"]),
            str(sum(day.values())),
        )
    console.print(table)


def _render_progressions(groups: dict) -> None:
    table = Table(title="Progressions")
    table.add_column("Name", style="cyan")
    table.add_column("Units", justify="right")
    table.add_column("Reviews done", justify="right")
    for name, members in groups.items():
        done_count = sum(len(item.reviews_completed) for item in members)
        table.add_row(name or "(unnamed)", str(len(members)), str(done_count))
    console.print(table)


@app.command()
def stats(
    ctx: typer.Context,
    progression: Annotated[
        str | None, typer.Option("--progression", "-p", help="Only items of this progression")
    ] = None,
) -> None:
    """
    Show progression statistics.

    With several progressions stored, a per-progression summary follows.
    """
    with _planner(ctx) as planner:
        config = _require_config(planner)
        current = planner.today()
        all_items = planner.ensure_items(config, current)
        items = filter_by_progression(all_items, progression)
        if progression is not None and not items:
            _no_progression(progression)
        progress = get_progress_stats(items, config, current)
        overdue = planner.backlog.detect_overdue_reviews(items, current)
        queue = planner.maintain_backlog(current)

    if progression is None:
        units = progress.total_items
    else:
        units = sum(1 for item in items if item.is_active)

    table = Table(title="Progress" if progression is None else f"Progress: {progression}")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Units memorized", f"{units}/{config.total_units}")
    next_unit = get_next_unit_number(items)
    table.add_row("Next unit", str(next_unit) if next_unit <= config.total_units else "complete")
    table.add_row("Reviews due so far", str(progress.total_reviews))
    table.add_row("Reviews completed", str(progress.completed_reviews))
    table.add_row("Completion rate", f"{progress.completion_rate:.1f}%")
    table.add_row("Overdue reviews", str(len(overdue)))
    if queue is not None:
        queue_stats = planner.backlog.get_queue_stats(queue)
        table.add_row("Catch-up remaining", str(queue_stats.remaining))

    console.print(table)

    if progression is None:
        groups = group_by_progression(all_items)
        if len(groups) > 1:
            _render_progressions(groups)


# =============================================================================
# Backlog Commands
# =============================================================================


def _render_queue_days(entries: list) -> None:
    per_day = Counter(e.rescheduled_date for e in entries)
    table = Table(title="Catch-up schedule")
    table.add_column("Date", style="cyan")
    table.add_column("Reviews", justify="right")
    for date_key in sorted(per_day):
        table.add_row(date_key, str(per_day[date_key]))
    console.print(table)


@backlog_app.command("status")
def backlog_status(ctx: typer.Context) -> None:
    """Show overdue reviews and the catch-up queue."""
    with _planner(ctx) as planner:
        config = _require_config(planner)
        current = planner.today()
        queue = planner.maintain_backlog(current)
        items = planner.ensure_items(config, current)
        overdue = planner.backlog.detect_overdue_reviews(items, current)
        uncovered = planner.backlog.uncovered_overdue(overdue, queue, current)

    if queue is None:
        if not overdue:
            console.print("[green]No overdue reviews.[/green]")
            return
        options = ", ".join(str(d) for d in get_settings().get_spread_options())
        console.print(f"[yellow]{len(overdue)} overdue reviews, no catch-up queue.[/yellow]")
        console.print(f"Run [bold]hifz backlog spread --days N[/bold] (N: {options})")
        return

    queue_stats = planner.backlog.get_queue_stats(queue)
    console.print(
        f"Catch-up queue: {queue_stats.completed}/{queue_stats.total} done "
        f"({queue_stats.percent}%), {queue_stats.remaining} remaining"
    )
    _render_queue_days(queue.pending_entries())
    if uncovered:
        console.print(f"[yellow]{len(uncovered)} overdue reviews are not in the queue.[/yellow]")


@backlog_app.command("spread")
def backlog_spread(
    ctx: typer.Context,
    days: Annotated[
        int | None, typer.Option("--days", "-d", min=1, help="Days to spread over")
    ] = None,
    capacity: Annotated[
        int | None, typer.Option("--capacity", "-c", min=1, help="Maximum reviews per day")
    ] = None,
) -> None:
    """
    Spread every overdue review over the next few days.

    Replaces any existing queue. The spread grows when the reviews do
    not fit the daily capacity.
    """
    with _planner(ctx) as planner:
        _require_config(planner)
        queue = planner.spread_backlog(days, capacity)

    if queue is None:
        console.print("[green]Nothing overdue, no queue created.[/green]")
        return

    console.print(
        f"[green]Spread {queue.total_items} reviews over {queue.spread_days} days "
        f"({queue.daily_capacity}/day max)[/green]"
    )
    _render_queue_days(queue.items)


@backlog_app.command("clear")
def backlog_clear(ctx: typer.Context) -> None:
    """Drop the catch-up queue (overdue reviews show up again)."""
    with _planner(ctx) as planner:
        planner.clear_backlog()
    console.print("[yellow]Catch-up queue cleared[/yellow]")


# =============================================================================
# Item Management
# =============================================================================


@app.command()
def archive(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item ID from `hifz today`")],
) -> None:
    """Stop scheduling an item. Its review history is kept."""
    with _planner(ctx) as planner:
        if not planner.archive_item(item_id):
            _no_item(item_id)
    console.print(f"[yellow]Archived {item_id}[/yellow]")


@app.command()
def delete(
    ctx: typer.Context,
    item_id: Annotated[str, typer.Argument(help="Item ID from `hifz today`")],
) -> None:
    """
    Delete an item and its review history.

    An item inside the progression comes back with an empty history
    the next time the plan is built.
    """
    with _planner(ctx) as planner:
        if not planner.delete_item(item_id):
            _no_item(item_id)
    console.print(f"[yellow]Deleted {item_id}[/yellow]")


@app.command()
def reset(
    ctx: typer.Context,
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Do not ask for confirmation")] = False,
) -> None:
    """Delete the progression, every item and the catch-up queue."""
    if not yes:
        typer.confirm("Delete all stored data?", abort=True)
    with _planner(ctx) as planner:
        planner.reset()
    console.print("[yellow]All data deleted. Run [bold]hifz setup[/bold] to start again.[/yellow]")


# =============================================================================
# Export / Import
# =============================================================================


@app.command("export")
def export_cmd(
    ctx: typer.Context,
    output: Annotated[
        Path | None, typer.Option("--output", "-o", help="Write to file instead of stdout")
    ] = None,
) -> None:
    """Export config, items and the catch-up queue as JSON."""
    with _planner(ctx) as planner:
        data = planner.store.export_data()

    text = json.dumps(data, indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return
    output.write_text(text, encoding="utf-8")
    console.print(f"[green]Exported {len(data['items'])} items to {output}[/green]")


@app.command("import")
def import_cmd(
    ctx: typer.Context,
    source: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="JSON export file")],
) -> None:
    """Replace all stored data with a JSON export."""
    try:
        data = json.loads(source.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        console.print(f"[red]Not a valid export: {e}[/red]")
        raise typer.Exit(1) from e
    if not isinstance(data, dict):
        console.print("[red]Not a valid export: expected a JSON object[/red]")
        raise typer.Exit(1)

    with _planner(ctx) as planner:
        count = planner.store.import_data(data)
        planner.engine.clear_cache()

    console.print(f"[green]Imported {count} items[/green]")


# =============================================================================
# Entry Point
# =============================================================================


@app.callback()
def callback(
    ctx: typer.Context,
    db: Annotated[
        Path | None, typer.Option("--db", help="SQLite database (default ~/.hifz/state.db)")
    ] = None,
    now: Annotated[
        datetime | None, typer.Option("--now", formats=NOW_FORMATS, help="Pretend the current time is this")
    ] = None,
) -> None:
    """
    Daily memorization planner.

    \b
    Quick Start:
      hifz setup --start 2025-01-01 --units 20
      hifz today
      hifz done item-page-1-2025-01-01 1
    """
    ctx.obj = CliState(db_path=db, now=now)


def main() -> None:
    """CLI entry point."""
    logger.remove()
    logger.add(
        sys.stderr,
        level=get_settings().log_level,
        format="<level>{message}</level>",
    )

    app()


if __name__ == "__main__":
    main()
