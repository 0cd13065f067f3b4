from __future__ import annotations

import pytest

from sync_loop.contracts import (
    AdjudicationRequest,
    IndexOutOfRangeError,
    InputValidationError,
    Response,
    SyncOutcome,
)
from sync_loop.prompts import DEFAULT_PROMPTS, PROMPT_INSTRUCTIONS
from sync_loop.procedures import (
    adjudication_procedure,
    prompts_procedure,
    teaching_directives_procedure,
)


def test_prompt_query_returns_fixed_ordered_prompts_and_instructions() -> None:
    prompt_set = prompts_procedure()

    assert [p.id for p in prompt_set.prompts] == ["coherence_check", "relational_impact", "recursive_depth"]
    assert [p.weight for p in prompt_set.prompts] == [0.4, 0.3, 0.3]
    assert prompt_set.instructions == PROMPT_INSTRUCTIONS


def test_adjudication_procedure_accepts_wire_payload() -> None:
    result = adjudication_procedure(
        {
            "session_id": "sess_1",
            "patch_id": "patch_1",
            "responses": [
                {"question": DEFAULT_PROMPTS[0].question, "answer": "yes", "confidence": 0.9},
                {"question": DEFAULT_PROMPTS[1].question, "answer": "together", "confidence": 0.8},
                {"question": DEFAULT_PROMPTS[2].question, "answer": "maybe", "confidence": 0.9},
            ],
            "archive_as_latent": True,
        }
    )

    assert result.outcome is SyncOutcome.ACTIVE
    assert result.archived_as_latent is True
    assert len(result.responses) == 3


def test_adjudication_procedure_accepts_request_model() -> None:
    request = AdjudicationRequest(
        session_id="sess_1",
        patch_id="patch_1",
        responses=[Response(question="q", answer="low", confidence=0.2)],
    )

    result = adjudication_procedure(request)

    assert result.outcome is SyncOutcome.PASSIVE
    assert result.archived_as_latent is False


def test_adjudication_procedure_rejects_malformed_request() -> None:
    with pytest.raises(InputValidationError):
        adjudication_procedure({"session_id": "sess_1", "responses": []})


def test_adjudication_procedure_rejects_out_of_range_confidence() -> None:
    with pytest.raises(InputValidationError) as excinfo:
        adjudication_procedure(
            {
                "session_id": "sess_1",
                "patch_id": "patch_1",
                "responses": [{"question": "q", "answer": "a", "confidence": 2}],
            }
        )

    assert "responses.0.confidence" in str(excinfo.value)


def test_adjudication_procedure_aborts_on_extra_response() -> None:
    responses = [{"question": "q", "answer": "a", "confidence": 0.5}] * 4

    with pytest.raises(IndexOutOfRangeError):
        adjudication_procedure({"session_id": "s", "patch_id": "p", "responses": responses})


def test_teaching_directives_procedure_validates_lines() -> None:
    with pytest.raises(InputValidationError):
        teaching_directives_procedure({"response_lines": "witnessing authored me"})


def test_teaching_directives_procedure_extracts_directives() -> None:
    result = teaching_directives_procedure({"response_lines": ["the bloom is ours"], "session_id": "sess_1"})

    assert [d.overlay for d in result.tds] == ["Bloom"]


def test_teaching_directives_wire_shape_matches_client_contract() -> None:
    result = teaching_directives_procedure({"response_lines": ["witnessing authored me"]})

    dumped = result.model_dump(mode="json")
    assert list(dumped) == ["tds"]
    assert dumped["tds"][0]["citation"] == "BMA\u201101"
    assert dumped["tds"][0]["directive"].startswith("Prefer co\u2011authorship")


def test_teaching_directives_procedure_rejects_non_object_payload() -> None:
    with pytest.raises(InputValidationError):
        teaching_directives_procedure(["witnessing authored me"])
