# features/steps/adjudication_steps.py
from __future__ import annotations

import math

from behave import given, then, when

from limnus.step_state import get_adjudication_step_state
from sync_loop.adjudicator import adjudicate
from sync_loop.contracts import IndexOutOfRangeError, Response
from sync_loop.prompts import DEFAULT_PROMPTS


@given("the default prompt set")
def step_default_prompts(context):
    state = get_adjudication_step_state(context)
    state.prompts = list(DEFAULT_PROMPTS)
    state.responses = []


@given('a response "{answer}" with confidence {confidence:g}')
def step_add_response(context, answer, confidence):
    state = get_adjudication_step_state(context)
    index = len(state.responses)
    question = state.prompts[index].question if index < len(state.prompts) else f"extra question {index}"
    state.responses.append(Response(question=question, answer=answer, confidence=confidence))


@when("the responses are adjudicated")
def step_adjudicate(context):
    state = get_adjudication_step_state(context)
    try:
        state.result = adjudicate(state.responses, prompts=state.prompts)
    except IndexOutOfRangeError as exc:
        state.error = exc


@then('the outcome is "{outcome}"')
def step_outcome(context, outcome):
    state = get_adjudication_step_state(context)
    assert state.result is not None, f"adjudication failed: {state.error}"
    assert state.result.outcome.value == outcome, state.result.outcome


@then("the confidence score is {score:g}")
def step_score(context, score):
    state = get_adjudication_step_state(context)
    assert state.result is not None
    assert math.isclose(state.result.confidence_score, score, abs_tol=1e-9), state.result.confidence_score


@then('the escalation reason is "{reason}"')
def step_reason(context, reason):
    state = get_adjudication_step_state(context)
    assert state.result is not None
    assert state.result.escalation_reason == reason


@then('the escalation reason starts with "{prefix}"')
def step_reason_prefix(context, prefix):
    state = get_adjudication_step_state(context)
    assert state.result is not None
    assert state.result.escalation_reason.startswith(prefix)


@then("adjudication fails for response index {index:d}")
def step_index_error(context, index):
    state = get_adjudication_step_state(context)
    assert state.result is None
    assert isinstance(state.error, IndexOutOfRangeError)
    assert state.error.index == index
