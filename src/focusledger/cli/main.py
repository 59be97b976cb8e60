"""CLI entry point for focusledger.

Uses Click to expose the ``focusledger`` command group.  ``start`` runs a
session in the foreground on an asyncio loop; the other subcommands read and
edit the persisted ledger.
"""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, TypeVar

import click

import focusledger
from focusledger.core.clock import TICK_INTERVAL_MS
from focusledger.core.errors import InvalidStateError, ValidationError
from focusledger.core.formatting import format_total_duration, ms_to_clock
from focusledger.core.observers import SessionObserver
from focusledger.core.records import Difficulty, Record, SessionRecord
from focusledger.core.session import SessionController, session_duration_ms

logger = logging.getLogger(__name__)

T = TypeVar("T")

_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

_KEY_HELP = "Commands: d = distraction, p = pause, r = resume, s = stop"


@dataclass
class Settings:
    """Options shared by every subcommand."""

    data_dir: Path | None = None
    strict: bool = False


def setup_logging(log_level: str, log_file: Path | None = None) -> None:
    """Configure logging for the application."""
    level = getattr(logging, log_level.upper(), logging.WARNING)

    handlers: list[logging.Handler] = [logging.StreamHandler()]
    if log_file is not None:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_file))

    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        handlers=handlers,
    )


def _run(action: Callable[[], T]) -> T:
    """Execute *action*, converting user-facing errors to a CLI error.

    The message is printed to stderr and the process exits with code 1.
    """
    try:
        return action()
    except (ValidationError, InvalidStateError) as exc:
        click.echo(str(exc), err=True)
        sys.exit(1)


def _controller(settings: Settings, **kwargs: Any) -> SessionController:
    return SessionController.from_data_dir(settings.data_dir, strict=settings.strict, **kwargs)


def _format_timestamp(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000).strftime("%Y-%m-%d %H:%M")


def _format_record(record: Record) -> str:
    if isinstance(record, SessionRecord):
        parts = [
            f"{record.id}  session  {_format_timestamp(record.start_timestamp)}",
            f"{ms_to_clock(record.duration_ms)}",
            record.goal,
            f"distractions={record.distraction_count}",
        ]
        if record.posture_score is not None:
            parts.append(f"posture={record.posture_score}%")
        if record.difficulty is not None:
            parts.append(f"difficulty={record.difficulty.value}")
        if record.comment:
            parts.append(f"comment={record.comment!r}")
        return "  ".join(parts)

    end = "open" if record.is_open else _format_timestamp(record.end)  # type: ignore[arg-type]
    line = (
        f"{record.id}  break    {_format_timestamp(record.start)} -> {end}  "
        f"{ms_to_clock(record.duration_ms)}"
    )
    if record.note:
        line += f"  note={record.note!r}"
    return line


def _format_summary(record: SessionRecord, streak: int) -> str:
    posture = f"{record.posture_score}%" if record.posture_score is not None else "Not tracked"
    return (
        f"Session complete: {record.goal}\n"
        f"  Duration:     {ms_to_clock(record.duration_ms)}\n"
        f"  Distractions: {record.distraction_count}\n"
        f"  Posture:      {posture}\n"
        f"  Streak:       {streak}"
    )


class TerminalObserver(SessionObserver):
    """Echo session events to the terminal and ring the bell on expiry."""

    def __init__(self, finished: asyncio.Future[SessionRecord]) -> None:
        self._finished = finished
        self._elapsed_ms = 0

    def on_start(self, goal: str, duration_ms: int | None) -> None:
        length = "unbounded" if duration_ms is None else ms_to_clock(duration_ms)
        click.echo(f"Session started: {goal} ({length})")
        click.echo(_KEY_HELP)

    def on_tick(self, remaining_ms: int | None) -> None:
        self._elapsed_ms += TICK_INTERVAL_MS
        if remaining_ms is None:
            click.echo(f"\r{ms_to_clock(self._elapsed_ms)} elapsed ", nl=False)
        else:
            click.echo(f"\r{ms_to_clock(remaining_ms)} remaining ", nl=False)

    def on_pause(self) -> None:
        click.echo("\nPaused")

    def on_resume(self) -> None:
        click.echo("Resumed")

    def on_distraction(self, count: int) -> None:
        click.echo(f"\nDistractions: {count}")

    def on_expire(self) -> None:
        click.echo("\a", nl=False)

    def on_session_end(self, session: SessionRecord, streak: int) -> None:
        click.echo("")
        if not self._finished.done():
            self._finished.set_result(session)


def _handle_key(controller: SessionController, line: str) -> None:
    command = line.strip().lower()[:1]
    actions: dict[str, Callable[[], object]] = {
        "d": controller.log_distraction,
        "p": controller.pause,
        "r": controller.resume,
        "s": controller.stop,
    }
    action = actions.get(command)
    if action is None:
        click.echo(_KEY_HELP)
        return
    action()


async def _run_session(
    settings: Settings,
    goal: str,
    minutes: str,
    unbounded: bool,
    difficulty: str | None,
) -> tuple[SessionRecord, int]:
    loop = asyncio.get_running_loop()
    finished: asyncio.Future[SessionRecord] = loop.create_future()
    controller = _controller(settings, loop=loop, observers=[TerminalObserver(finished)])

    def on_stdin() -> None:
        line = sys.stdin.readline()
        if not line:
            loop.remove_reader(sys.stdin.fileno())
            return
        _handle_key(controller, line)

    try:
        loop.add_reader(sys.stdin.fileno(), on_stdin)
    except (OSError, ValueError, NotImplementedError) as exc:
        logger.debug("Keyboard commands unavailable: %s", exc)
    try:
        loop.add_signal_handler(signal.SIGINT, controller.stop)
    except (RuntimeError, ValueError, NotImplementedError) as exc:
        logger.debug("SIGINT handler unavailable: %s", exc)

    try:
        controller.start_session(goal, minutes, unbounded=unbounded, difficulty=difficulty)
        record = await finished
    finally:
        controller.stop()
        try:
            loop.remove_reader(sys.stdin.fileno())
        except (OSError, ValueError, NotImplementedError):
            pass
    return record, controller.streak


@click.group()
@click.version_option(version=focusledger.__version__, prog_name="focusledger")
@click.option(
    "--data-dir",
    type=click.Path(file_okay=False, path_type=Path),
    envvar="FOCUSLEDGER_DIR",
    default=None,
    help="Where the ledger and streak are stored (default ~/.config/focusledger).",
)
@click.option(
    "--log-level",
    type=click.Choice(_LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    show_default=True,
)
@click.option("--log-file", type=click.Path(dir_okay=False, path_type=Path), default=None)
@click.option("--strict", is_flag=True, help="Fail on ledger invariant violations.")
@click.pass_context
def cli(
    ctx: click.Context,
    data_dir: Path | None,
    log_level: str,
    log_file: Path | None,
    strict: bool,
) -> None:
    """focusledger: focus sessions, distractions and breaks."""
    setup_logging(log_level, log_file)
    ctx.obj = Settings(data_dir=data_dir, strict=strict)


@cli.command()
@click.argument("goal", default="")
@click.option(
    "--minutes",
    "-m",
    default="25",
    show_default=True,
    help="Session length in minutes, or 'unbounded'.",
)
@click.option("--unbounded", is_flag=True, help="Run until stopped.")
@click.option("--difficulty", type=click.Choice([d.value for d in Difficulty]), default=None)
@click.pass_obj
def start(
    settings: Settings, goal: str, minutes: str, unbounded: bool, difficulty: str | None
) -> None:
    """Run a focus session for GOAL in the foreground."""
    _run(lambda: session_duration_ms(minutes, unbounded))
    record, streak = _run(
        lambda: asyncio.run(_run_session(settings, goal, minutes, unbounded, difficulty))
    )
    click.echo(_format_summary(record, streak))


@cli.command()
@click.pass_obj
def history(settings: Settings) -> None:
    """List sessions and breaks, newest first."""
    ledger = _controller(settings).ledger
    if not len(ledger):
        click.echo("No sessions recorded yet. Start your first focus session!")
        return
    for record in ledger:
        click.echo(_format_record(record))


@cli.command()
@click.pass_obj
def totals(settings: Settings) -> None:
    """Show total focus and break time."""
    controller = _controller(settings)
    click.echo(f"Focus:  {format_total_duration(controller.ledger.total_focus_ms())}")
    click.echo(f"Breaks: {format_total_duration(controller.ledger.total_break_ms())}")
    click.echo(f"Streak: {controller.streak}")


@cli.command()
@click.pass_obj
def streak(settings: Settings) -> None:
    """Show the current focus streak."""
    click.echo(str(_controller(settings).streak))


@cli.command()
@click.argument("break_id")
@click.argument("text")
@click.pass_obj
def note(settings: Settings, break_id: str, text: str) -> None:
    """Set the note of break BREAK_ID to TEXT."""
    if not _controller(settings).update_break_note(break_id, text):
        click.echo(f"No break with id {break_id}", err=True)
        sys.exit(1)
    click.echo("Note saved")


@cli.command()
@click.argument("session_id")
@click.option("--comment", default=None)
@click.option("--distractions", type=int, default=None)
@click.pass_obj
def amend(
    settings: Settings, session_id: str, comment: str | None, distractions: int | None
) -> None:
    """Annotate finished session SESSION_ID."""
    if comment is None and distractions is None:
        raise click.UsageError("Nothing to amend: pass --comment and/or --distractions.")
    controller = _controller(settings)
    record = _run(lambda: controller.amend_session(session_id, comment, distractions))
    if record is None:
        click.echo(f"No session with id {session_id}", err=True)
        sys.exit(1)
    click.echo(_format_record(record))


@cli.command()
@click.confirmation_option(prompt="Clear all session history and break notes?")
@click.pass_obj
def clear(settings: Settings) -> None:
    """Delete the whole ledger and reset the streak."""
    _controller(settings).clear_history()
    click.echo("History cleared")
