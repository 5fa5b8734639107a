from __future__ import annotations

import logging
from datetime import date
from typing import Any

import typer
from rich import print
from rich.logging import RichHandler
from sqlmodel import Session, select

from itinerary_cli import activity_service, plan_service
from itinerary_cli.activity_service import ActivityChanges
from itinerary_cli.config import (
    PrincipalError,
    get_current_user_id,
    get_int_setting,
    get_user_timezone,
    list_settings,
    upsert_setting,
)
from itinerary_cli.db import get_engine, initialize_database
from itinerary_cli.drop_resolver import resolve_drop
from itinerary_cli.events import list_plan_events
from itinerary_cli.models import Plan, PlanDay
from itinerary_cli.plan_cache import OptimisticMoveMutator, PlanCache
from itinerary_cli.plan_tree import DayView, PlanTree
from itinerary_cli.results import ServiceResult
from itinerary_cli.timeutil import format_hours, parse_date_ymd, to_local_iso

app = typer.Typer(
    name="itin",
    help="Trip itinerary planner CLI.",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Manage planner settings.")
plan_app = typer.Typer(help="Create, inspect and delete trip plans.")
activity_app = typer.Typer(help="Manage and reorder activities inside a plan.")
app.add_typer(config_app, name="config")
app.add_typer(plan_app, name="plan")
app.add_typer(activity_app, name="activity")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(rich_tracebacks=True, show_path=False)],
        force=True,
    )


def _parse_date(value: str, field_name: str) -> date:
    try:
        return parse_date_ymd(value)
    except ValueError as exc:
        raise typer.BadParameter(f"Invalid --{field_name} format. Expected YYYY-MM-DD.") from exc


def _current_user(session: Session) -> str:
    try:
        return get_current_user_id(session)
    except PrincipalError as exc:
        print(f"[red]{exc}[/red]")
        raise typer.Exit(code=1) from exc


def _unwrap(result: ServiceResult[Any]) -> Any:
    if not result.ok:
        print(f"[red]{result.error_code}:[/red] {result.error_message}")
        raise typer.Exit(code=1)
    return result.data


def _resolve_day_id(session: Session, plan_id: str, day_ref: str) -> str:
    """Accept either a 1-based day index or a day id."""
    if not day_ref.isdigit():
        return day_ref
    day = session.exec(
        select(PlanDay).where(PlanDay.plan_id == plan_id).where(PlanDay.day_index == int(day_ref))
    ).first()
    if day is None:
        raise typer.BadParameter(f"Plan has no day {day_ref}.")
    return day.id


def _print_day(day: DayView) -> None:
    header = f"[bold]Day {day.day_index}[/bold] {day.day_date.isoformat()} id={day.id}"
    print(f"{header} total={format_hours(day.total_duration_minutes)}h")
    if not day.activities:
        print("  - none")
    for activity in day.activities:
        item = f"  {activity.position}. {activity.title} ({activity.duration_minutes}m"
        if activity.transport_minutes:
            item += f", +{activity.transport_minutes}m transport"
        item += f") id={activity.id}"
        print(item)
    if day.warning is not None:
        print(f"  [yellow]{day.warning}[/yellow]")


def _print_tree(tree: PlanTree) -> None:
    print(
        f"[bold]{tree.name}[/bold] id={tree.id} "
        f"{tree.date_start.isoformat()}..{tree.date_end.isoformat()}"
    )
    for day in tree.days:
        _print_day(day)
    if tree.has_warnings:
        print("[yellow]Some days are packed; see the warnings above.[/yellow]")


@app.callback()
def root(
    log_level: str = typer.Option("WARNING", "--log-level", envvar="ITIN_LOG_LEVEL", help="Logging level."),
) -> None:
    """Trip itinerary planner entrypoint."""
    _configure_logging(log_level)


@app.command()
def init() -> None:
    """Initialize DB, run migrations, and seed defaults."""
    db_path = initialize_database()
    print(f"[green]Initialized database:[/green] {db_path}")


@config_app.command("show")
def config_show() -> None:
    """Print all settings as key=value, sorted by key."""
    with Session(get_engine(ensure_directory=True)) as session:
        settings = list_settings(session)

    for setting in settings:
        typer.echo(f"{setting.key}={setting.value}")


@config_app.command("set")
def config_set(key: str, value: str) -> None:
    """Validate and upsert a setting."""
    with Session(get_engine(ensure_directory=True)) as session:
        try:
            setting = upsert_setting(session, key=key, value=value)
        except ValueError as exc:
            raise typer.BadParameter(str(exc)) from exc

    typer.echo(f"{setting.key}={setting.value}")


@plan_app.command("create")
def plan_create(
    destination: str = typer.Option(..., "--destination", help="Trip destination."),
    start: str = typer.Option(..., "--start", help="First day in YYYY-MM-DD."),
    end: str = typer.Option(..., "--end", help="Last day in YYYY-MM-DD."),
    name: str | None = typer.Option(None, "--name", help="Plan name (derived from destination and dates when omitted)."),
    people: int = typer.Option(1, "--people", help="Number of travellers."),
    note: str = typer.Option("", "--note", help="Free-form note."),
) -> None:
    """Create a plan with one empty day per date."""
    date_start = _parse_date(start, "start")
    date_end = _parse_date(end, "end")

    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        plan = _unwrap(
            plan_service.create_plan(
                session,
                user_id=user_id,
                destination_text=destination,
                date_start=date_start,
                date_end=date_end,
                name=name,
                people_count=people,
                note_text=note,
            )
        )
        print(f'[green]Created plan:[/green] id={plan.id} name="{plan.name}"')


@plan_app.command("list")
def plan_list(
    limit: int = typer.Option(10, "--limit", help="Page size (1-100)."),
    offset: int = typer.Option(0, "--offset", help="Rows to skip."),
) -> None:
    """List the current user's plans, newest first."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        plans: list[Plan] = _unwrap(plan_service.list_plans(session, user_id=user_id, limit=limit, offset=offset))
        if not plans:
            typer.echo("No plans.")
            return
        for plan in plans:
            typer.echo(
                f'id={plan.id} name="{plan.name}" '
                f"dates={plan.date_start.isoformat()}..{plan.date_end.isoformat()}"
            )


@plan_app.command("show")
def plan_show(plan_id: str = typer.Argument(..., help="Plan id.")) -> None:
    """Print a plan with its days and ordered activities."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        tree: PlanTree = _unwrap(plan_service.get_plan_tree(session, user_id=user_id, plan_id=plan_id))

    _print_tree(tree)


@plan_app.command("delete")
def plan_delete(plan_id: str = typer.Argument(..., help="Plan id.")) -> None:
    """Delete a plan together with its days and activities."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        _unwrap(plan_service.delete_plan(session, user_id=user_id, plan_id=plan_id))

    print(f"[green]Deleted plan:[/green] {plan_id}")


@plan_app.command("events")
def plan_events(plan_id: str | None = typer.Argument(None, help="Restrict to one plan.")) -> None:
    """Print the analytics event log of the current user in the configured timezone."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        user_tz = get_user_timezone(session)
        events = list_plan_events(session, user_id=user_id, plan_id=plan_id)
        if not events:
            typer.echo("No events.")
            return
        for event in events:
            created_at = to_local_iso(event.created_at, user_tz)
            typer.echo(f"{created_at} {event.event_type.value} plan_id={event.plan_id or '-'}")


@activity_app.command("add")
def activity_add(
    plan_id: str = typer.Option(..., "--plan", help="Plan id."),
    day: str = typer.Option(..., "--day", help="Day index (1-based) or day id."),
    title: str = typer.Option(..., "--title", help="Activity title."),
    duration: int | None = typer.Option(None, "--duration", help="Duration in minutes (5-720)."),
    transport: int | None = typer.Option(None, "--transport", help="Transport time in minutes (0-600)."),
    description: str | None = typer.Option(None, "--description", help="Optional description."),
) -> None:
    """Append an activity to the end of a day."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        day_id = _resolve_day_id(session, plan_id, day)
        duration_minutes = duration if duration is not None else get_int_setting(session, "default_duration_min")
        activity = _unwrap(
            activity_service.create_activity(
                session,
                user_id=user_id,
                plan_id=plan_id,
                day_id=day_id,
                title=title,
                duration_minutes=duration_minutes,
                transport_minutes=transport,
                description=description,
            )
        )
        print(f"[green]Added activity:[/green] id={activity.id} position={activity.position} {activity.title}")


@activity_app.command("edit")
def activity_edit(
    activity_id: str = typer.Argument(..., help="Activity id."),
    plan_id: str = typer.Option(..., "--plan", help="Plan id."),
    title: str | None = typer.Option(None, "--title", help="New title."),
    duration: int | None = typer.Option(None, "--duration", help="New duration in minutes."),
    transport: int | None = typer.Option(None, "--transport", help="New transport time in minutes."),
    description: str | None = typer.Option(None, "--description", help="New description."),
    clear_transport: bool = typer.Option(False, "--clear-transport", help="Remove the transport time."),
    clear_description: bool = typer.Option(False, "--clear-description", help="Remove the description."),
) -> None:
    """Edit an activity's descriptive fields."""
    changes = ActivityChanges(
        title=title,
        description=description,
        duration_minutes=duration,
        transport_minutes=transport,
        clear_transport=clear_transport,
        clear_description=clear_description,
    )
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        activity = _unwrap(
            activity_service.update_activity(
                session,
                user_id=user_id,
                plan_id=plan_id,
                activity_id=activity_id,
                changes=changes,
            )
        )
        print(f"[green]Updated activity:[/green] id={activity.id} {activity.title}")


@activity_app.command("delete")
def activity_delete(
    activity_id: str = typer.Argument(..., help="Activity id."),
    plan_id: str = typer.Option(..., "--plan", help="Plan id."),
) -> None:
    """Delete an activity and renumber the rest of its day."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        _unwrap(
            activity_service.delete_activity(
                session,
                user_id=user_id,
                plan_id=plan_id,
                activity_id=activity_id,
            )
        )

    print(f"[green]Deleted activity:[/green] {activity_id}")


@activity_app.command("move")
def activity_move(
    activity_id: str = typer.Argument(..., help="Activity id."),
    plan_id: str = typer.Option(..., "--plan", help="Plan id."),
    day: str = typer.Option(..., "--day", help="Target day index (1-based) or day id."),
    position: int = typer.Option(..., "--position", help="Target 1-based position."),
) -> None:
    """Move an activity to an explicit day and position."""
    with Session(get_engine(ensure_directory=True)) as session:
        user_id = _current_user(session)
        target_day_id = _resolve_day_id(session, plan_id, day)
        activity = _unwrap(
            activity_service.move_activity(
                session,
                user_id=user_id,
                activity_id=activity_id,
                target_day_id=target_day_id,
                target_position=position,
                plan_id=plan_id,
            )
        )
        print(f"[green]Moved activity:[/green] id={activity.id} day_id={activity.day_id} position={activity.position}")


@activity_app.command("drop")
def activity_drop(
    activity_id: str = typer.Argument(..., help="Dragged activity id."),
    plan_id: str = typer.Option(..., "--plan", help="Plan id."),
    over: str = typer.Option(..., "--over", help="Id of the activity or day the drag was released over."),
) -> None:
    """Simulate a drag-and-drop release and persist the resulting move."""
    engine = get_engine(ensure_directory=True)
    with Session(engine) as session:
        user_id = _current_user(session)
        tree: PlanTree = _unwrap(plan_service.get_plan_tree(session, user_id=user_id, plan_id=plan_id))

    cache = PlanCache()
    cache.set(plan_id, tree)

    def send(*, plan_id: str, activity_id: str, target_day_id: str, target_position: int) -> ServiceResult[Any]:
        with Session(engine) as move_session:
            return activity_service.move_activity(
                move_session,
                user_id=user_id,
                activity_id=activity_id,
                target_day_id=target_day_id,
                target_position=target_position,
                plan_id=plan_id,
            )

    def refetch(fetch_plan_id: str) -> PlanTree | None:
        with Session(engine) as fetch_session:
            return plan_service.get_plan_tree(fetch_session, user_id=user_id, plan_id=fetch_plan_id).data

    target = resolve_drop(activity_id, over, tree.days)
    if target is None:
        print("[yellow]Nothing to move.[/yellow]")
        return

    mutator = OptimisticMoveMutator(cache, send=send, refetch=refetch)
    moved = _unwrap(
        mutator.move(
            plan_id,
            activity_id=activity_id,
            target_day_id=target.target_day_id,
            target_position=target.target_position,
        )
    )

    updated = cache.get(plan_id)
    print(f"[green]Moved activity:[/green] id={moved.id} day_id={moved.day_id} position={moved.position}")
    if updated is not None:
        _print_tree(updated)
