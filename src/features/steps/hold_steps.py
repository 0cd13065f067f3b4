# features/steps/hold_steps.py
from __future__ import annotations

from behave import given, then, when

from limnus.step_state import get_hold_step_state
from sync_loop.adapters.hold_store import InMemoryHoldStore
from sync_loop.adapters.scheduler import ManualScheduler
from sync_loop.contracts import RemoteCallError
from sync_loop.supervisor import HoldSupervisor, install_hold_task


class StepClock:
    def __init__(self, now_ms: int = 1_700_000_000_000) -> None:
        self.now_ms = now_ms

    def __call__(self) -> int:
        return self.now_ms


class StepRecheckClient:
    def __init__(self) -> None:
        self.calls: list[str] = []
        self.failures_left = 0

    def recheck(self, session_id, *, idempotency_key=None):
        if self.failures_left:
            self.failures_left -= 1
            raise RemoteCallError("limnus.loop.recheck", "unavailable", status_code=503)
        self.calls.append(session_id)


@given("a hold supervisor with durable scheduling")
def step_supervisor(context):
    state = get_hold_step_state(context)
    state.clock = StepClock()
    state.recheck_client = StepRecheckClient()
    state.supervisor = HoldSupervisor(
        InMemoryHoldStore(),
        ManualScheduler(),
        state.recheck_client,
        clock=state.clock,
    )
    install_hold_task(state.supervisor)


@given('a {duration:d} second hold for session "{session_id}"')
def step_start_hold(context, duration, session_id):
    state = get_hold_step_state(context)
    result = state.supervisor.start(session_id, duration)
    assert result.started
    state.session_id = session_id


@given("the recheck endpoint fails once")
def step_fail_once(context):
    get_hold_step_state(context).recheck_client.failures_left = 1


@when("{seconds:d} seconds pass")
def step_advance(context, seconds):
    get_hold_step_state(context).clock.now_ms += seconds * 1000


@when("the hold task wakes up")
def step_wake(context):
    state = get_hold_step_state(context)
    state.wake_results.append(state.supervisor.wake(state.session_id))


@when('the hold for "{session_id}" is stopped')
def step_stop(context, session_id):
    get_hold_step_state(context).supervisor.stop(session_id)


@then('the wake-up reports "{result}"')
def step_wake_result(context, result):
    state = get_hold_step_state(context)
    assert state.wake_results, "no wake-up recorded"
    assert state.wake_results[-1].value == result, state.wake_results[-1]


@then("no recheck has been sent")
def step_no_recheck(context):
    assert get_hold_step_state(context).recheck_client.calls == []


@then('exactly {count:d} recheck has been sent for "{session_id}"')
def step_recheck_count(context, count, session_id):
    assert get_hold_step_state(context).recheck_client.calls == [session_id] * count


@then('the hold status is "{status}"')
def step_hold_status(context, status):
    state = get_hold_step_state(context)
    assert state.supervisor.status(state.session_id).status == status
