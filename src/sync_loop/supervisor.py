from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from dataclasses import dataclass

from sync_loop._compat import epoch_ms
from sync_loop.adapters.hold_store import HoldStateStore
from sync_loop.adapters.scheduler import PeriodicScheduler, define_task
from sync_loop.adapters.trpc_client import RecheckClient
from sync_loop.contracts import (
    HoldRecord,
    HoldStartOutcome,
    HoldStartResult,
    HoldStatus,
    HoldStatusReport,
    InputValidationError,
    RemoteCallError,
    StorageError,
    UnsupportedPlatformError,
    WakeResult,
)
from sync_loop.fallback import FallbackHandle, FallbackTimer

logger = logging.getLogger(__name__)

HOLD_TASK_NAME = "LIMNUS_HOLD_TASK"
DEFAULT_HOLD_DURATION_S = 120
# Finer intervals waste wake-ups; coarser ones overshoot the deadline by up to one interval.
DEFAULT_WAKE_INTERVAL_S = 60


class HoldSupervisor:
    """
    Drives holds from pending to complete using only the stored record.

    Every wake-up re-reads the store, so a restarted process resumes from the
    elapsed-time check with no in-memory state. The recheck fires at most
    once per process for a given hold: overlapping wake-ups are serialized
    and the later one sees a non-active status and does nothing.
    """

    def __init__(
        self,
        store: HoldStateStore,
        scheduler: PeriodicScheduler,
        recheck_client: RecheckClient,
        *,
        clock: Callable[[], int] = epoch_ms,
        task_name: str = HOLD_TASK_NAME,
        minimum_interval_s: int = DEFAULT_WAKE_INTERVAL_S,
    ) -> None:
        self.store = store
        self.scheduler = scheduler
        self.recheck_client = recheck_client
        self.clock = clock
        self.task_name = task_name
        self.minimum_interval_s = minimum_interval_s
        self._wake_lock = threading.Lock()

    def start(self, session_id: str, duration_s: float = DEFAULT_HOLD_DURATION_S) -> HoldStartResult:
        if duration_s < 0:
            raise InputValidationError("hold duration must be non-negative")
        if not self.scheduler.is_available():
            logger.info("durable scheduling unavailable; hold for %s not persisted", session_id)
            return HoldStartResult(outcome=HoldStartOutcome.UNSUPPORTED)

        if self.store.get(session_id) is not None:
            logger.info("clearing prior hold for session %s", session_id)
            self.store.remove(session_id)

        # Active before the task is registered, so a wake-up can always complete it.
        record = HoldRecord(
            session_id=session_id,
            start_time_ms=self.clock(),
            duration_s=duration_s,
            status=HoldStatus.ACTIVE,
        )
        self.store.put(record)

        try:
            self.scheduler.register(self.task_name, self.minimum_interval_s)
        except UnsupportedPlatformError as exc:
            logger.info("scheduler refused registration for %s: %s", session_id, exc)
            self.store.remove(session_id)
            return HoldStartResult(outcome=HoldStartOutcome.UNSUPPORTED)
        except StorageError as exc:
            logger.error("failed to register hold task for %s: %s", session_id, exc)
            self.store.put(record.transition(HoldStatus.ERROR, last_error=str(exc)))
            raise

        logger.info("hold started for session %s, recheck at %s", session_id, record.recheck_at_iso)
        return HoldStartResult(outcome=HoldStartOutcome.STARTED, record=record)

    def wake(self, session_id: str) -> WakeResult:
        with self._wake_lock:
            try:
                record = self.store.get(session_id)
            except StorageError as exc:
                logger.error("wake-up for %s could not read the hold store: %s", session_id, exc)
                return WakeResult.FAILED

            if record is None or record.is_terminal:
                return WakeResult.NO_DATA
            if record.status is HoldStatus.PENDING:
                # start() was interrupted before the record went active
                logger.info("recovering interrupted start for session %s", session_id)
                record = record.transition(HoldStatus.ACTIVE)
                try:
                    self.store.put(record)
                except StorageError as exc:
                    logger.error("failed to recover hold %s: %s", session_id, exc)
                    return WakeResult.FAILED

            now = self.clock()
            if not record.is_due(now):
                logger.debug("hold %s elapsed %sms of %sms", session_id, record.elapsed_ms(now), record.duration_s * 1000)
                return WakeResult.NO_DATA

            return self._complete(record)

    def wake_all(self) -> dict[str, WakeResult]:
        """Named task handler: one wake-up for every stored hold."""
        try:
            session_ids = self.store.session_ids()
        except StorageError as exc:
            logger.error("wake-up could not list holds: %s", exc)
            return {}
        return {session_id: self.wake(session_id) for session_id in session_ids}

    def stop(self, session_id: str) -> None:
        logger.info("stopping hold for session %s", session_id)
        self.store.remove(session_id)
        self._release_schedule()

    def status(self, session_id: str) -> HoldStatusReport:
        try:
            record = self.store.get(session_id)
        except StorageError as exc:
            return HoldStatusReport.unreadable(str(exc))
        return HoldStatusReport.from_record(record)

    def _complete(self, record: HoldRecord) -> WakeResult:
        session_id = record.session_id
        logger.info("hold complete for session %s, triggering recheck", session_id)
        try:
            self.recheck_client.recheck(session_id, idempotency_key=f"{session_id}:{record.start_time_ms}")
        except RemoteCallError as exc:
            logger.warning("recheck for %s failed, retrying on next wake-up: %s", session_id, exc)
            self._write_if_current(
                record,
                record.transition(HoldStatus.ACTIVE, attempts=record.attempts + 1, last_error=str(exc)),
            )
            return WakeResult.FAILED

        completed = record.transition(
            HoldStatus.COMPLETE,
            attempts=record.attempts + 1,
            last_error=None,
            completed_at_ms=self.clock(),
        )
        if not self._write_if_current(record, completed):
            return WakeResult.FAILED
        self._release_schedule()
        return WakeResult.NEW_DATA

    def _write_if_current(self, seen: HoldRecord, updated: HoldRecord) -> bool:
        """Persist `updated` unless the hold was stopped or replaced during the remote call."""
        try:
            current = self.store.get(seen.session_id)
            if current is None or current.start_time_ms != seen.start_time_ms:
                logger.info("hold %s changed during recheck; leaving it untouched", seen.session_id)
                return True
            self.store.put(updated)
        except StorageError as exc:
            logger.error("failed to persist hold %s: %s", seen.session_id, exc)
            return False
        return True

    def _release_schedule(self) -> None:
        """Unregister the task once no live hold remains; a storage failure leaves it for the next wake-up."""
        try:
            live = [
                session_id
                for session_id in self.store.session_ids()
                if (record := self.store.get(session_id)) is not None and not record.is_terminal
            ]
            if not live:
                self.scheduler.unregister(self.task_name)
        except StorageError as exc:
            logger.error("failed to release hold schedule %s: %s", self.task_name, exc)


def install_hold_task(supervisor: HoldSupervisor) -> None:
    """Register the supervisor's wake-up under its stable task name."""
    define_task(supervisor.task_name, supervisor.wake_all)


@dataclass(frozen=True)
class BegunHold:
    start: HoldStartResult
    fallback: FallbackHandle | None = None

    @property
    def durable(self) -> bool:
        return self.start.started


def begin_hold(
    supervisor: HoldSupervisor,
    session_id: str,
    duration_s: float,
    on_complete: Callable[[], None],
    *,
    timer: FallbackTimer | None = None,
) -> BegunHold:
    """Start a durable hold, or the in-process fallback timer when the platform cannot."""
    result = supervisor.start(session_id, duration_s)
    if result.started:
        return BegunHold(start=result)
    logger.info("using fallback timer for session %s", session_id)
    handle = (timer or FallbackTimer()).after(duration_s, on_complete)
    return BegunHold(start=result, fallback=handle)
