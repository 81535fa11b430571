from __future__ import annotations

import json
import multiprocessing
from pathlib import Path

import allure
import pytest

from crocodile.config import Settings
from crocodile.engine.append_log import AppendLog, append_line_locked
from crocodile.errors import StorageError
from crocodile.models import EntityKind, Event, EventType, Plan, PlanStatus

pytestmark = [
    allure.epic("Orchestration Store"),
    allure.feature("Append Log"),
]

_WRITERS = 4
_LINES_PER_WRITER = 200


def _hammer(path_str: str, writer: int) -> None:  # pragma: no cover - runs in child process
    path = Path(path_str)
    padding = "x" * 512
    for index in range(_LINES_PER_WRITER):
        append_line_locked(
            path,
            json.dumps({"writer": writer, "index": index, "padding": padding}),
        )


def test_append_then_read_returns_same_entities_in_order(settings: Settings) -> None:
    log = AppendLog(settings)
    first = Plan.create("First", "one")
    second = Plan.create("Second", "two", considerations=["mind the gap"])

    log.append(first)
    log.append(second)

    assert log.read_plans() == [first, second]
    assert settings.plans_file.read_text(encoding="utf-8").count("\n") == 2


def test_each_kind_uses_its_own_target(settings: Settings) -> None:
    log = AppendLog(settings)
    plan = Plan.create("t", "d")
    event = Event.create(EventType.PLAN_CREATED, plan_id=plan.id)

    log.append(plan)
    log.append(event)

    assert log.read_events() == [event]
    assert log.read_plans() == [plan]
    assert not settings.tasks_file.exists()


def test_history_keeps_every_version(settings: Settings) -> None:
    log = AppendLog(settings)
    plan = Plan.create("t", "d")
    approved = plan.with_status(PlanStatus.APPROVED)

    log.append(plan)
    log.append(approved)

    assert [item.status for item in log.read_plans()] == [
        PlanStatus.PENDING,
        PlanStatus.APPROVED,
    ]


def test_missing_target_reads_as_empty(settings: Settings) -> None:
    log = AppendLog(settings)

    assert log.read_tasks() == []
    assert not log.has_records(EntityKind.TASK)


def test_blank_lines_are_skipped(settings: Settings) -> None:
    log = AppendLog(settings)
    plan = Plan.create("t", "d")
    settings.plans_file.write_text(
        "\n   \n" + json.dumps(plan.to_record()) + "\n\n",
        encoding="utf-8",
    )

    assert log.read_plans() == [plan]


def test_corrupt_line_raises_storage_error_with_line_number(settings: Settings) -> None:
    log = AppendLog(settings)
    log.append(Plan.create("t", "d"))
    with settings.plans_file.open("a", encoding="utf-8") as handle:
        handle.write("{not json\n")

    with pytest.raises(StorageError, match="line 2") as excinfo:
        log.read_plans()
    assert excinfo.value.path == settings.plans_file


def test_record_missing_required_field_is_storage_error(settings: Settings) -> None:
    settings.plans_file.write_text('{"id": "plan-1"}\n', encoding="utf-8")

    with pytest.raises(StorageError, match="Invalid Plan record at line 1"):
        AppendLog(settings).read_plans()


def test_append_without_croc_dir_is_storage_error(tmp_path: Path) -> None:
    log = AppendLog(Settings(project_root=tmp_path))

    with pytest.raises(StorageError, match="Failed to open"):
        log.append(Plan.create("t", "d"))


def test_create_empty_makes_an_empty_target(settings: Settings) -> None:
    path = AppendLog(settings).create_empty(EntityKind.REVIEW)

    assert path == settings.reviews_file
    assert path.read_bytes() == b""


def test_concurrent_writers_never_interleave_lines(tmp_path: Path) -> None:
    path = tmp_path / "contended.jsonl"
    context = multiprocessing.get_context("spawn")
    processes = [
        context.Process(target=_hammer, args=(str(path), writer)) for writer in range(_WRITERS)
    ]
    for process in processes:
        process.start()
    for process in processes:
        process.join(timeout=120)
        assert process.exitcode == 0

    lines = path.read_bytes().split(b"\n")
    assert lines[-1] == b""
    records = [json.loads(line) for line in lines[:-1]]
    assert len(records) == _WRITERS * _LINES_PER_WRITER
    for writer in range(_WRITERS):
        indexes = [record["index"] for record in records if record["writer"] == writer]
        assert indexes == list(range(_LINES_PER_WRITER))


def test_invalid_utf8_is_storage_error_with_line_number(settings: Settings) -> None:
    log = AppendLog(settings)
    log.append(Plan.create("t", "d"))
    with settings.plans_file.open("ab") as handle:
        handle.write(b'{"id": "\xff\xfe"}\n')

    with pytest.raises(StorageError, match="Invalid Plan record at line 2") as excinfo:
        log.read_plans()
    assert excinfo.value.path == settings.plans_file
    assert isinstance(excinfo.value.__cause__, UnicodeDecodeError)


def test_has_records_ignores_blank_lines_and_closes_the_reader(
    settings: Settings,
    monkeypatch,
) -> None:
    log = AppendLog(settings)
    settings.plans_file.write_text("\n  \n", encoding="utf-8")
    assert not log.has_records(EntityKind.PLAN)

    closed: list[EntityKind] = []

    def _tracking_lines(self: AppendLog, kind: EntityKind):
        try:
            yield settings.plans_file, 1, "{}"
            yield settings.plans_file, 2, "{}"
        finally:
            closed.append(kind)

    monkeypatch.setattr(AppendLog, "_lines", _tracking_lines)

    assert log.has_records(EntityKind.PLAN)
    assert closed == [EntityKind.PLAN]
