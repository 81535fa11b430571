"""CLI entrypoint for crocodile."""

from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any

import rich_click as click

from crocodile import __version__
from crocodile.controllers import (
    CrocCliController,
    ListPlansCommand,
    SessionCommand,
    ShowPlanCommand,
    SyncCommand,
    load_settings,
)
from crocodile.errors import CrocError
from crocodile.logging_setup import configure_logging

click.rich_click.USE_MARKDOWN = True
CONTROLLER = CrocCliController()


def _reports_errors(func: Callable[..., Any]) -> Callable[..., Any]:
    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CrocError as error:
            raise click.ClickException(str(error)) from error

    return wrapper


@click.group()
@click.version_option(version=__version__, prog_name="croc")
@click.option(
    "--project-root",
    type=click.Path(path_type=Path, file_okay=False),
    default=None,
    help="Project directory holding `.croc/`. Defaults to `CROC_PROJECT_ROOT` or cwd.",
)
@click.option("-v", "--verbose", count=True, help="Increase log verbosity (`-v`, `-vv`).")
@click.pass_context
@_reports_errors
def croc(ctx: click.Context, project_root: Path | None, verbose: int) -> None:
    """Crocodile orchestration store and role sessions."""

    settings = load_settings(project_root)
    configure_logging(
        verbose,
        logs_dir=settings.logs_dir if settings.logs_dir.is_dir() else None,
        level_override=settings.log_level,
    )
    ctx.obj = settings.project_root


@croc.command("sync")
@click.pass_obj
@_reports_errors
def sync(project_root: Path) -> None:
    """Rebuild the SQLite mirror from the append logs."""

    _emit_lines(CONTROLLER.sync(SyncCommand(project_root=project_root)))


@croc.command("plans")
@click.option("--active", "active_only", is_flag=True, help="Only approved or running plans.")
@click.pass_obj
@_reports_errors
def plans(project_root: Path, active_only: bool) -> None:
    """List plans, newest first."""

    _emit_lines(
        CONTROLLER.plans(
            ListPlansCommand(
                project_root=project_root,
                active_only=active_only,
            ),
        ),
    )


@croc.command("show")
@click.argument("plan_id")
@click.option(
    "--events",
    "events_limit",
    type=click.IntRange(min=0),
    default=20,
    show_default=True,
    help="How many latest events to display.",
)
@click.pass_obj
@_reports_errors
def show(project_root: Path, plan_id: str, events_limit: int) -> None:
    """Show a plan with its tasks, context, reviews and recent events."""

    _emit_lines(
        CONTROLLER.show_plan(
            ShowPlanCommand(
                project_root=project_root,
                plan_id=plan_id,
                events_limit=events_limit,
            ),
        ),
    )


@croc.group()
def sessions() -> None:
    """Role session commands."""


@sessions.command("list")
@click.pass_obj
@_reports_errors
def sessions_list(project_root: Path) -> None:
    """List sessions owned by this project."""

    _emit_lines(CONTROLLER.list_sessions(project_root))


@sessions.command("capture")
@click.argument("session")
@click.pass_obj
@_reports_errors
def sessions_capture(project_root: Path, session: str) -> None:
    """Print the visible output of a session."""

    _emit_lines(CONTROLLER.capture_session(SessionCommand(project_root=project_root, session=session)))


@sessions.command("kill")
@click.argument("session")
@click.pass_obj
@_reports_errors
def sessions_kill(project_root: Path, session: str) -> None:
    """Terminate a session."""

    _emit_lines(CONTROLLER.kill_session(SessionCommand(project_root=project_root, session=session)))


@sessions.command("attach")
@click.argument("session")
@click.pass_obj
@_reports_errors
def sessions_attach(project_root: Path, session: str) -> None:
    """Attach the terminal to a session."""

    CONTROLLER.attach_session(SessionCommand(project_root=project_root, session=session))


def _emit_lines(lines: list[str]) -> None:
    for line in lines:
        click.echo(line)


if __name__ == "__main__":  # pragma: no cover
    croc()
