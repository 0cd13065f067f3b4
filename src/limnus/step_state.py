from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from sync_loop.contracts import Classification, Prompt, Response, WakeResult


@dataclass
class AdjudicationStepState:
    prompts: list[Prompt] = field(default_factory=list)
    responses: list[Response] = field(default_factory=list)
    result: Classification | None = None
    error: Exception | None = None


@dataclass
class HoldStepState:
    supervisor: Any = None
    clock: Any = None
    recheck_client: Any = None
    session_id: str | None = None
    wake_results: list[WakeResult] = field(default_factory=list)


def get_adjudication_step_state(context: Any) -> AdjudicationStepState:
    state = getattr(context, "_adjudication_step_state", None)
    if not isinstance(state, AdjudicationStepState):
        state = AdjudicationStepState()
        setattr(context, "_adjudication_step_state", state)
    return state


def get_hold_step_state(context: Any) -> HoldStepState:
    state = getattr(context, "_hold_step_state", None)
    if not isinstance(state, HoldStepState):
        state = HoldStepState()
        setattr(context, "_hold_step_state", state)
    return state
