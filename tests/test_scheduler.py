from __future__ import annotations

from pathlib import Path

import pytest

from sync_loop.adapters.scheduler import (
    ManualScheduler,
    RegistrationFileScheduler,
    TaskNotDefinedError,
    define_task,
    get_task,
    undefine_task,
)
from sync_loop.contracts import StorageError, UnsupportedPlatformError


def test_task_table_resolves_handlers_by_name() -> None:
    calls: list[str] = []
    define_task("TEST_TASK", lambda: calls.append("ran"))
    try:
        get_task("TEST_TASK")()
    finally:
        undefine_task("TEST_TASK")

    assert calls == ["ran"]
    with pytest.raises(TaskNotDefinedError):
        get_task("TEST_TASK")


def test_manual_scheduler_fires_registered_tasks_only() -> None:
    define_task("TEST_TASK", lambda: "woke")
    scheduler = ManualScheduler()
    try:
        assert scheduler.fire() == {}
        scheduler.register("TEST_TASK", 60)
        assert scheduler.is_registered("TEST_TASK")
        assert scheduler.fire() == {"TEST_TASK": "woke"}
        scheduler.unregister("TEST_TASK")
        assert scheduler.fire() == {}
    finally:
        undefine_task("TEST_TASK")


def test_unavailable_manual_scheduler_refuses_registration() -> None:
    scheduler = ManualScheduler(available=False)

    assert scheduler.is_available() is False
    with pytest.raises(UnsupportedPlatformError):
        scheduler.register("TEST_TASK", 60)


def test_registration_file_persists_across_instances(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    RegistrationFileScheduler(path).register("TEST_TASK", 60)

    reopened = RegistrationFileScheduler(path)

    assert reopened.is_registered("TEST_TASK")
    assert [(r.name, r.minimum_interval_s) for r in reopened.registrations()] == [("TEST_TASK", 60)]


def test_registration_file_unregister_is_idempotent(tmp_path: Path) -> None:
    scheduler = RegistrationFileScheduler(tmp_path / "tasks.json")
    scheduler.unregister("TEST_TASK")
    scheduler.register("TEST_TASK", 60)
    scheduler.unregister("TEST_TASK")
    scheduler.unregister("TEST_TASK")

    assert scheduler.is_registered("TEST_TASK") is False


def test_registration_file_runs_registered_tasks_through_task_table(tmp_path: Path) -> None:
    scheduler = RegistrationFileScheduler(tmp_path / "tasks.json")
    scheduler.register("TEST_TASK", 60)
    define_task("TEST_TASK", lambda: {"sess": "no_data"})
    try:
        assert scheduler.run_registered() == {"TEST_TASK": {"sess": "no_data"}}
    finally:
        undefine_task("TEST_TASK")


def test_registration_file_disabled_refuses_registration(tmp_path: Path) -> None:
    scheduler = RegistrationFileScheduler(tmp_path / "tasks.json", available=False)

    with pytest.raises(UnsupportedPlatformError):
        scheduler.register("TEST_TASK", 60)


def test_corrupt_registration_file_is_a_storage_error(tmp_path: Path) -> None:
    path = tmp_path / "tasks.json"
    path.write_text("[]", encoding="utf-8")

    with pytest.raises(StorageError):
        RegistrationFileScheduler(path).is_registered("TEST_TASK")
