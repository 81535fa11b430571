"""Controllers for operator CLI commands."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from crocodile.config import Settings
from crocodile.engine import open_engine
from crocodile.errors import InvalidConfigError, SessionError
from crocodile.models import Plan, format_timestamp
from crocodile.sessions import RoleLauncher, SessionNames, TmuxSupervisor


@dataclass(slots=True)
class SyncCommand:
    """CLI input for a forced mirror rebuild."""

    project_root: Path | None


@dataclass(slots=True)
class ListPlansCommand:
    """CLI input for plan listing."""

    project_root: Path | None
    active_only: bool


@dataclass(slots=True)
class ShowPlanCommand:
    """CLI input for plan inspection."""

    project_root: Path | None
    plan_id: str
    events_limit: int = 20


@dataclass(slots=True)
class SessionCommand:
    """CLI input for operations on one named session."""

    project_root: Path | None
    session: str


class CrocCliController:
    """Coordinates store and session CLI operations."""

    def sync(self, command: SyncCommand) -> list[str]:
        settings = load_settings(command.project_root)
        with open_engine(settings) as engine:
            replayed = engine.full_sync()
        return [
            f"Mirror rebuilt: {settings.cache_db_path}",
            *(f"  {kind.label}: {count}" for kind, count in replayed.items()),
        ]

    def plans(self, command: ListPlansCommand) -> list[str]:
        settings = load_settings(command.project_root)
        with open_engine(settings) as engine:
            plans = engine.get_active_plans() if command.active_only else engine.get_all_plans()
        if not plans:
            return ["No active plans." if command.active_only else "No plans."]
        return [_plan_line(plan) for plan in plans]

    def show_plan(self, command: ShowPlanCommand) -> list[str]:
        settings = load_settings(command.project_root)
        with open_engine(settings) as engine:
            plan = engine.get_plan(command.plan_id)
            tasks = engine.get_tasks_for_plan(plan.id)
            context = engine.get_context_for_plan(plan.id)
            reviews = engine.get_reviews_for_plan(plan.id)
            latest = engine.get_events(
                plan_id=plan.id,
                limit=command.events_limit,
                newest_first=True,
            )
        events = list(reversed(latest))

        lines = [
            f"Plan: {plan.id}",
            f"Title: {plan.title}",
            f"Status: {plan.status.value}",
            f"Created: {format_timestamp(plan.created_at)}",
            f"Approved: {format_timestamp(plan.approved_at) if plan.approved_at else '-'}",
            f"Description: {plan.description}",
            f"Tasks: {len(tasks)}",
        ]
        for task in tasks:
            depends = ",".join(task.depends_on) or "-"
            lines.append(
                f"  {task.id} [{task.status.value}] {task.title} "
                f"type={task.task_type.value} depends_on={depends} "
                f"worker={task.assigned_worker or '-'}",
            )
        lines.append(f"Context items: {len(context)}")
        for item in context:
            scope = item.subtask_id or "plan"
            lines.append(f"  {item.id} {item.item_type.value} ({scope}) {item.content}")
        lines.append(f"Reviews: {len(reviews)}")
        for review in reviews:
            lines.append(
                f"  {review.id} {review.reviewer_type.value} [{review.status.value}] "
                f"notes={len(review.notes)}",
            )
        lines.append(f"Recent events: {len(events)}")
        for event in events:
            lines.append(
                f"  {format_timestamp(event.timestamp)} {event.event_type.value} "
                f"task={event.task_id or '-'}",
            )
        return lines

    def list_sessions(self, project_root: Path | None) -> list[str]:
        launcher = _launcher(load_settings(project_root))
        names = launcher.discover()
        if not names:
            return ["No sessions."]
        return names

    def capture_session(self, command: SessionCommand) -> list[str]:
        settings = load_settings(command.project_root)
        supervisor = _require_session(settings, command.session)
        return supervisor.capture_output(command.session).splitlines()

    def kill_session(self, command: SessionCommand) -> list[str]:
        settings = load_settings(command.project_root)
        supervisor = _require_session(settings, command.session)
        supervisor.kill(command.session)
        return [f"Session killed: {command.session}"]

    def attach_session(self, command: SessionCommand) -> None:
        settings = load_settings(command.project_root)
        supervisor = _require_session(settings, command.session)
        supervisor.attach(command.session)


def load_settings(project_root: Path | None) -> Settings:
    try:
        settings = Settings.from_env(project_root=project_root)
        settings.validate()
    except ValueError as error:
        raise InvalidConfigError(str(error)) from error
    return settings


def _supervisor(settings: Settings) -> TmuxSupervisor:
    return TmuxSupervisor(binary=settings.sessions.tmux_binary)


def _launcher(settings: Settings) -> RoleLauncher:
    return RoleLauncher(_supervisor(settings), SessionNames(prefix=settings.sessions.prefix))


def _require_session(settings: Settings, session: str) -> TmuxSupervisor:
    names = SessionNames(prefix=settings.sessions.prefix)
    if not names.owns(session):
        raise SessionError(
            f"Session '{session}' is not managed by this project "
            f"(expected prefix '{names.discovery_prefix}')",
            session,
        )
    supervisor = _supervisor(settings)
    if not supervisor.exists(session):
        raise SessionError(f"Session '{session}' does not exist", session)
    return supervisor


def _plan_line(plan: Plan) -> str:
    return (
        f"{plan.id} [{plan.status.value}] {plan.title} "
        f"created={format_timestamp(plan.created_at)}"
    )
