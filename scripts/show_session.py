#!/usr/bin/env python3
"""
Inspect stored pipeline sessions.

Commands:
    list    - List stored sessions (optionally for one user)
    show    - Show one session: stages, versions, inputs, errors
    events  - Show the event trail of a session from the pipeline event log
    stats   - Show store statistics
    clear   - Delete every stored session of a user

Examples:\n

    show_session.py list --user u-42

    show_session.py show pipeline_1740000000000_k3j9x0a1b --versions

    show_session.py events pipeline_1740000000000_k3j9x0a1b -n 20
"""

from pathlib import Path
from typing import Optional

import typer
from dotenv import load_dotenv
from typing_extensions import Annotated

from quiver.contexts.pipeline.stages import STAGE_NAMES, PipelineStage
from quiver.contexts.pipeline.store import SessionStore
from quiver.utils.event_logging import get_recent_events, get_stage_trail
from quiver.utils.timestamp import format_timestamp

load_dotenv()

app = typer.Typer(
    help="Inspect stored pipeline sessions",
    add_completion=False,
    invoke_without_command=True,
)

StoreOption = Annotated[
    Optional[Path],
    typer.Option("--store", "-s", help="Session store directory (default: $QUIVER_SESSIONS_PATH)"),
]


@app.callback()
def main(ctx: typer.Context):
    """Show help by default when no command is provided."""
    if ctx.invoked_subcommand is None:
        typer.echo(ctx.get_help())
        raise typer.Exit()


def _stage_label(stage: PipelineStage) -> str:
    if stage is PipelineStage.COMPLETE:
        return "COMPLETE"
    return f"{int(stage)}. {STAGE_NAMES[stage]}"


@app.command("list")
def list_command(
    user: Annotated[Optional[str], typer.Option("--user", "-u", help="Only this user's sessions")] = None,
    resumable: Annotated[
        bool, typer.Option("--resumable", help="Only sessions that can still be resumed")
    ] = False,
    store_dir: StoreOption = None,
):
    """List stored sessions, most recently updated first."""
    store = SessionStore(store_dir)

    if resumable:
        if not user:
            typer.secho("ERROR: --resumable requires --user", fg=typer.colors.RED, err=True)
            raise typer.Exit(1)
        sessions = store.resumable_sessions(user)
    elif user:
        sessions = store.user_sessions(user)
    else:
        sessions = store.all_sessions()

    if not sessions:
        typer.secho("No sessions found", fg=typer.colors.YELLOW)
        return

    typer.secho(f"\n{len(sessions)} session(s)", fg=typer.colors.BLUE, bold=True)
    for session in sessions:
        updated = format_timestamp(session.last_updated.isoformat(), relative=True)
        typer.echo(
            f"  {session.session_id}  user={session.user_id}  "
            f"stage={_stage_label(session.current_stage)}  updated {updated}"
        )


@app.command("show")
def show_command(
    session_id: Annotated[str, typer.Argument(help="Session identifier")],
    versions: Annotated[bool, typer.Option("--versions", "-v", help="List document versions")] = False,
    store_dir: StoreOption = None,
):
    """Show the state of one session."""
    store = SessionStore(store_dir)
    session = store.load(session_id)
    if session is None:
        typer.secho(f"ERROR: Session not found: {session_id}", fg=typer.colors.RED, err=True)
        raise typer.Exit(1)

    typer.echo(f"\n=== {session.session_id} ===")
    typer.echo(f"  User:          {session.user_id}")
    typer.echo(f"  Created:       {format_timestamp(session.created_at.isoformat())}")
    typer.echo(f"  Current stage: {_stage_label(session.current_stage)}")
    typer.echo(f"  Target role:   {session.target_role or '(none)'}")
    typer.echo(f"  Requirements:  {len(session.requirements_text)} chars")
    typer.echo(f"  Resumable:     {store.can_resume(session.session_id)}")

    typer.echo(f"\n=== Step history ({len(session.step_history)}) ===")
    for attempt in session.step_history:
        duration = f"{attempt.duration_s:.1f}s" if attempt.duration_s is not None else "-"
        retry = f" retry {attempt.retry_count}" if attempt.retry_count else ""
        typer.echo(f"  {_stage_label(attempt.stage)}: {attempt.status.value} ({duration}){retry}")
        if attempt.error_message:
            typer.echo(f"      ! {attempt.error_message}")

    if versions:
        typer.echo(f"\n=== Document versions ({len(session.document_versions)}) ===")
        for version in session.document_versions:
            typer.echo(f"  v{version.version_number} from {_stage_label(version.producing_stage)}")
            for change in version.changes:
                typer.echo(f"      - {change}")

    if session.recorded_inputs:
        typer.echo(f"\n=== Recorded inputs ({len(session.recorded_inputs)}) ===")
        for record in session.recorded_inputs:
            consumed = " (consumed)" if record.consumed else ""
            typer.echo(f"  {_stage_label(record.stage)}: {record.input_kind}{consumed}")

    errors = session.recent_error_messages()
    if errors:
        typer.echo("\n=== Recent errors ===")
        for message in errors:
            typer.secho(f"  ! {message}", fg=typer.colors.YELLOW)


@app.command("events")
def events_command(
    session_id: Annotated[str, typer.Argument(help="Session identifier")],
    count: Annotated[int, typer.Option("-n", help="Number of events to show", min=1)] = 10,
):
    """Show recent pipeline events and the stage trail for a session."""
    events = get_recent_events(count, session_id=session_id)
    if not events:
        typer.secho(f"No events logged for {session_id}", fg=typer.colors.YELLOW)
        raise typer.Exit(1)

    for event in events:
        stamp = format_timestamp(event["timestamp"])
        details = {
            k: v
            for k, v in event.items()
            if k not in ("timestamp", "event_type", "session_id", "source")
        }
        typer.echo(f"  {stamp}  {event['event_type']:<20} {details}")

    trail = get_stage_trail(session_id)
    if trail:
        typer.echo(f"\nTrail: {' -> '.join(trail)}")


@app.command("stats")
def stats_command(store_dir: StoreOption = None):
    """Show store statistics."""
    stats = SessionStore(store_dir).stats()

    typer.secho("\nSession store", fg=typer.colors.BLUE, bold=True)
    typer.echo(f"  Total:     {stats['total']}")
    typer.echo(f"  Resumable: {stats['resumable']}")
    typer.echo(f"  Completed: {stats['completed']}")
    typer.echo(f"  Users:     {stats['users']}")
    if stats["by_stage"]:
        typer.echo("\n  By stage:")
        for stage_name, count in sorted(stats["by_stage"].items(), key=lambda kv: PipelineStage[kv[0]]):
            typer.echo(f"    {stage_name}: {count}")


@app.command("clear")
def clear_command(
    user: Annotated[str, typer.Argument(help="User whose sessions are deleted")],
    yes: Annotated[bool, typer.Option("--yes", "-y", help="Skip confirmation")] = False,
    store_dir: StoreOption = None,
):
    """Delete every stored session of a user."""
    if not yes:
        typer.confirm(f"Delete all sessions of {user}?", abort=True)

    removed = SessionStore(store_dir).clear_user(user)
    typer.secho(f"Deleted {removed} session(s)", fg=typer.colors.GREEN)


if __name__ == "__main__":
    app()
