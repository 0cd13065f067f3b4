from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Protocol

from sync_loop.adapters.persistence import PathLike, read_json, write_json
from sync_loop.contracts import StorageError, UnsupportedPlatformError

logger = logging.getLogger(__name__)

TaskHandler = Callable[[], Any]

# Process-wide table of named task handlers. Populated at process start so a
# periodic trigger can locate the handler by name after a restart.
_TASKS: dict[str, TaskHandler] = {}
_TASKS_LOCK = threading.Lock()


class TaskNotDefinedError(LookupError):
    pass


def define_task(name: str, handler: TaskHandler) -> None:
    with _TASKS_LOCK:
        if name in _TASKS and _TASKS[name] is not handler:
            logger.info("redefining task %s", name)
        _TASKS[name] = handler


def get_task(name: str) -> TaskHandler:
    with _TASKS_LOCK:
        try:
            return _TASKS[name]
        except KeyError:
            raise TaskNotDefinedError(f"no task defined under {name!r}") from None


def undefine_task(name: str) -> None:
    with _TASKS_LOCK:
        _TASKS.pop(name, None)


class PeriodicScheduler(Protocol):
    """Facility that re-invokes a named task at a minimum interval, surviving restarts."""

    def is_available(self) -> bool:
        ...

    def register(self, name: str, minimum_interval_s: int) -> None:
        """Raise UnsupportedPlatformError when registration is refused by the platform."""
        ...

    def unregister(self, name: str) -> None:
        ...

    def is_registered(self, name: str) -> bool:
        ...


@dataclass(frozen=True)
class Registration:
    name: str
    minimum_interval_s: int


class ManualScheduler:
    """In-process scheduler; wake-ups happen when `fire` is called."""

    def __init__(self, *, available: bool = True) -> None:
        self.available = available
        self.registrations: dict[str, Registration] = {}

    def is_available(self) -> bool:
        return self.available

    def register(self, name: str, minimum_interval_s: int) -> None:
        if not self.available:
            raise UnsupportedPlatformError("manual scheduler disabled")
        self.registrations[name] = Registration(name=name, minimum_interval_s=minimum_interval_s)

    def unregister(self, name: str) -> None:
        self.registrations.pop(name, None)

    def is_registered(self, name: str) -> bool:
        return name in self.registrations

    def fire(self) -> dict[str, Any]:
        """Invoke every registered task once through the task table."""
        return {name: get_task(name)() for name in list(self.registrations)}


class RegistrationFileScheduler:
    """
    Durable registration table for an external periodic trigger.

    Registrations live in a JSON file, so a cron job or systemd timer that
    runs `limnus hold wake` finds them after a restart and invokes the
    matching named task.
    """

    def __init__(self, path: PathLike, *, available: bool = True) -> None:
        self.path = Path(path)
        self.available = available
        self._lock = threading.Lock()

    def is_available(self) -> bool:
        return self.available

    def register(self, name: str, minimum_interval_s: int) -> None:
        if not self.available:
            raise UnsupportedPlatformError("durable scheduling disabled")
        with self._lock:
            table = self._load()
            table[name] = {"minimum_interval_s": int(minimum_interval_s)}
            self._save(table)
        logger.info("registered task %s every %ss", name, minimum_interval_s)

    def unregister(self, name: str) -> None:
        with self._lock:
            table = self._load()
            if table.pop(name, None) is None:
                return
            self._save(table)
        logger.info("unregistered task %s", name)

    def is_registered(self, name: str) -> bool:
        with self._lock:
            return name in self._load()

    def registrations(self) -> list[Registration]:
        with self._lock:
            table = self._load()
        return [Registration(name=k, minimum_interval_s=int(v["minimum_interval_s"])) for k, v in table.items()]

    def run_registered(self) -> dict[str, Any]:
        """Invoke every registered task; what an external periodic trigger calls."""
        return {reg.name: get_task(reg.name)() for reg in self.registrations()}

    def _load(self) -> dict[str, dict[str, Any]]:
        try:
            table = read_json(self.path, default={})
        except (OSError, ValueError) as exc:
            raise StorageError(f"failed to read task registrations {self.path}: {exc}") from exc
        if not isinstance(table, dict):
            raise StorageError(f"task registrations in {self.path} are not a JSON object")
        return table

    def _save(self, table: dict[str, dict[str, Any]]) -> None:
        try:
            write_json(self.path, table)
        except OSError as exc:
            raise StorageError(f"failed to write task registrations {self.path}: {exc}") from exc
