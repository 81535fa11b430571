from __future__ import annotations

from datetime import UTC, datetime, timedelta
from pathlib import Path

import allure
import pytest
from click.testing import CliRunner

from crocodile import controllers
from crocodile.config import Settings
from crocodile.engine import open_engine
from crocodile.main import croc
from crocodile.models import (
    ContextItem,
    Event,
    EventType,
    Plan,
    PlanStatus,
    Review,
    ReviewerType,
    Task,
)

pytestmark = [
    allure.epic("Operator CLI"),
    allure.feature("Store & Session Commands"),
]


@pytest.fixture()
def patched_supervisor(monkeypatch, fake_supervisor):
    monkeypatch.setattr(controllers, "TmuxSupervisor", lambda binary: fake_supervisor)
    return fake_supervisor


def _seed(settings: Settings) -> tuple[Plan, Plan]:
    base = datetime(2026, 10, 18, 8, 0, tzinfo=UTC)
    older = Plan.create("Older plan", "first")
    older.created_at = older.updated_at = base
    newer = Plan.create("Newer plan", "second")
    newer.created_at = newer.updated_at = base + timedelta(hours=1)
    foreman = Task.new_foreman(newer.id, "Coordinate")
    with open_engine(settings) as engine:
        engine.append_plan(older)
        engine.append_plan(newer)
        engine.append_plan(newer.with_status(PlanStatus.APPROVED))
        engine.append_task(foreman)
        engine.append_task(Task.new_subtask(newer.id, foreman.id, 1, "Write tests"))
        engine.append_context(ContextItem.fact(newer.id, "pytest is the runner"))
        engine.append_review(Review.create(newer.id, ReviewerType.HUMAN))
        engine.append_event(Event.create(EventType.PLAN_APPROVED, plan_id=newer.id))
    return older, newer


def _invoke(project_root: Path, *args: str):
    return CliRunner().invoke(
        croc,
        ["--project-root", str(project_root), *args],
        env={"COLUMNS": "400"},
    )


def test_plans_lists_newest_first(settings: Settings) -> None:
    older, newer = _seed(settings)

    result = _invoke(settings.project_root, "plans")

    assert result.exit_code == 0, result.output
    lines = result.output.splitlines()
    assert lines[0].startswith(f"{newer.id} [approved] Newer plan")
    assert lines[1].startswith(f"{older.id} [pending] Older plan")


def test_plans_active_filter(settings: Settings) -> None:
    _, newer = _seed(settings)

    result = _invoke(settings.project_root, "plans", "--active")

    assert result.exit_code == 0, result.output
    assert len(result.output.splitlines()) == 1
    assert newer.id in result.output


def test_plans_empty_project(settings: Settings) -> None:
    result = _invoke(settings.project_root, "plans", "--active")

    assert result.exit_code == 0, result.output
    assert result.output.strip() == "No active plans."


def test_show_plan_details(settings: Settings) -> None:
    _, newer = _seed(settings)

    result = _invoke(settings.project_root, "show", newer.id)

    assert result.exit_code == 0, result.output
    assert f"Plan: {newer.id}" in result.output
    assert "Status: approved" in result.output
    assert "Tasks: 2" in result.output
    assert "Write tests" in result.output
    assert "Context items: 1" in result.output
    assert "Reviews: 1" in result.output
    assert "plan_approved" in result.output


def test_show_unknown_plan_is_reported_as_error(settings: Settings) -> None:
    result = _invoke(settings.project_root, "show", "plan-missing")

    assert result.exit_code == 1
    assert "Entity not found: Plan with id 'plan-missing'" in result.output


def test_uninitialized_project_is_reported_as_error(tmp_path: Path) -> None:
    result = _invoke(tmp_path, "plans")

    assert result.exit_code == 1
    assert "not initialized" in result.output


def test_sync_rebuilds_mirror(settings: Settings) -> None:
    _seed(settings)

    result = _invoke(settings.project_root, "sync")

    assert result.exit_code == 0, result.output
    assert "Mirror rebuilt" in result.output
    assert "Plan: 3" in result.output
    assert "Task: 2" in result.output


def test_bad_session_prefix_is_reported_as_error(settings: Settings, monkeypatch) -> None:
    monkeypatch.setenv("CROC_SESSION_PREFIX", "bad-prefix")

    result = _invoke(settings.project_root, "plans")

    assert result.exit_code == 1
    assert "CROC_SESSION_PREFIX" in result.output


def test_sessions_list_capture_and_kill(settings: Settings, patched_supervisor) -> None:
    patched_supervisor.spawn("croc-foreman-abc", "claude")
    patched_supervisor.spawn("someone-else", "bash")
    patched_supervisor.sessions["croc-foreman-abc"].output = "ready\nwaiting\n"

    listed = _invoke(settings.project_root, "sessions", "list")
    captured = _invoke(settings.project_root, "sessions", "capture", "croc-foreman-abc")
    killed = _invoke(settings.project_root, "sessions", "kill", "croc-foreman-abc")

    assert listed.output.splitlines() == ["croc-foreman-abc"]
    assert captured.output.splitlines() == ["ready", "waiting"]
    assert killed.output.strip() == "Session killed: croc-foreman-abc"
    assert patched_supervisor.list_all() == ["someone-else"]


def test_sessions_refuses_foreign_and_missing_sessions(
    settings: Settings,
    patched_supervisor,
) -> None:
    patched_supervisor.spawn("someone-else", "bash")

    foreign = _invoke(settings.project_root, "sessions", "kill", "someone-else")
    missing = _invoke(settings.project_root, "sessions", "attach", "croc-foreman-zzz")

    assert foreign.exit_code == 1
    assert "not managed by this project" in foreign.output
    assert missing.exit_code == 1
    assert "does not exist" in missing.output
    assert patched_supervisor.exists("someone-else")


def test_sessions_attach(settings: Settings, patched_supervisor) -> None:
    patched_supervisor.spawn("croc-worker-abc-1", "claude")

    result = _invoke(settings.project_root, "sessions", "attach", "croc-worker-abc-1")

    assert result.exit_code == 0, result.output
    assert patched_supervisor.attached == ["croc-worker-abc-1"]


def test_sessions_list_empty(settings: Settings, patched_supervisor) -> None:
    result = _invoke(settings.project_root, "sessions", "list")

    assert result.output.strip() == "No sessions."


def test_show_events_keeps_latest_in_time_order(settings: Settings) -> None:
    _, newer = _seed(settings)
    base = datetime(2026, 10, 18, 9, 0, tzinfo=UTC)
    with open_engine(settings) as engine:
        for minute in range(5):
            event = Event.create(
                EventType.WORKER_PROGRESS,
                plan_id=newer.id,
                task_id=f"t{minute}",
            )
            event.timestamp = base + timedelta(minutes=minute)
            engine.append_event(event)

    result = _invoke(settings.project_root, "show", newer.id, "--events", "2")

    assert result.exit_code == 0, result.output
    assert "Recent events: 2" in result.output
    assert "task=t0" not in result.output
    assert result.output.index("task=t3") < result.output.index("task=t4")


def test_non_integer_env_setting_is_reported_as_error(settings: Settings, monkeypatch) -> None:
    monkeypatch.setenv("CROC_MIRROR_MAX_CONNECTIONS", "five")

    result = _invoke(settings.project_root, "plans")

    assert result.exit_code == 1
    assert "CROC_MIRROR_MAX_CONNECTIONS must be an integer" in result.output


def test_active_flag_help_describes_filter(settings: Settings) -> None:
    result = _invoke(settings.project_root, "plans", "--help")

    assert result.exit_code == 0, result.output
    assert "approved or running" in result.output
