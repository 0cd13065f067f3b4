from __future__ import annotations

from collections.abc import Callable

import pytest

from sync_loop.adapters.hold_store import InMemoryHoldStore
from sync_loop.adapters.scheduler import ManualScheduler, undefine_task
from sync_loop.contracts import Prompt, RemoteCallError, Response
from sync_loop.supervisor import HOLD_TASK_NAME, HoldSupervisor

T0_MS = 1_760_000_000_000


class FakeClock:
    def __init__(self, now_ms: int = T0_MS) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, seconds: float) -> None:
        self.now_ms += int(seconds * 1000)


class RecordingRecheckClient:
    def __init__(self, *, failures: int = 0) -> None:
        self.calls: list[tuple[str, str | None]] = []
        self.failures = failures

    def recheck(self, session_id: str, *, idempotency_key: str | None = None) -> None:
        if self.failures:
            self.failures -= 1
            raise RemoteCallError("limnus.loop.recheck", "service unavailable", status_code=503)
        self.calls.append((session_id, idempotency_key))

    @property
    def session_ids(self) -> list[str]:
        return [session_id for session_id, _ in self.calls]


@pytest.fixture
def make_response() -> Callable[..., Response]:
    def _make_response(
        *,
        confidence: float = 0.5,
        answer: str = "It feels settled.",
        question: str = "(test question)",
    ) -> Response:
        return Response(question=question, answer=answer, confidence=confidence)

    return _make_response


@pytest.fixture
def make_prompts() -> Callable[..., list[Prompt]]:
    def _make_prompts(*weights: float) -> list[Prompt]:
        return [Prompt(id=f"p{i}", question=f"question {i}", weight=w) for i, w in enumerate(weights)]

    return _make_prompts


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def recheck_client() -> RecordingRecheckClient:
    return RecordingRecheckClient()


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def store() -> InMemoryHoldStore:
    return InMemoryHoldStore()


@pytest.fixture
def supervisor(
    store: InMemoryHoldStore,
    scheduler: ManualScheduler,
    recheck_client: RecordingRecheckClient,
    clock: FakeClock,
) -> HoldSupervisor:
    return HoldSupervisor(store, scheduler, recheck_client, clock=clock)


@pytest.fixture(autouse=True)
def _clear_task_table():
    yield
    undefine_task(HOLD_TASK_NAME)
