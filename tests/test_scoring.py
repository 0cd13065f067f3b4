from __future__ import annotations

from collections.abc import Callable

import pytest

from sync_loop.contracts import IndexOutOfRangeError, Prompt, Response
from sync_loop.scoring import (
    detect_signals,
    matched_markers,
    pair_responses,
    score_responses,
    weighted_confidence,
)


def test_pairs_each_response_with_prompt_weight_at_same_ordinal(
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    prompts = make_prompts(0.4, 0.3, 0.3)
    scored = pair_responses([make_response(confidence=0.9), make_response(confidence=0.1)], prompts)

    assert [s.weight for s in scored] == [0.4, 0.3]
    assert [s.confidence for s in scored] == [0.9, 0.1]


def test_out_of_range_ordinal_is_an_error_not_a_skip(
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    prompts = make_prompts(0.5)

    with pytest.raises(IndexOutOfRangeError) as excinfo:
        pair_responses([make_response(), make_response()], prompts)

    assert excinfo.value.index == 1
    assert excinfo.value.prompt_count == 1
    assert isinstance(excinfo.value, IndexError)
    assert isinstance(excinfo.value, ValueError)


def test_weighted_mean_matches_hand_computation(
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    responses = [make_response(confidence=c) for c in (0.9, 0.8, 0.9)]

    score, _ = score_responses(responses, make_prompts(0.4, 0.3, 0.3))

    assert score == pytest.approx(0.87)


def test_weights_are_normalized_when_they_do_not_sum_to_one(
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    responses = [make_response(confidence=1.0), make_response(confidence=0.0)]

    score, _ = score_responses(responses, make_prompts(0.5, 0.25))

    assert score == pytest.approx(2 / 3)


def test_empty_input_scores_zero() -> None:
    assert weighted_confidence([]) == 0.0


@pytest.mark.parametrize("confidences", [(0.0,), (1.0, 1.0, 1.0), (0.2, 0.99, 0.61), (1.0, 0.0, 1.0)])
def test_score_stays_within_unit_interval(
    confidences: tuple[float, ...],
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    score, _ = score_responses([make_response(confidence=c) for c in confidences], make_prompts(0.4, 0.3, 0.3))

    assert 0.0 <= score <= 1.0


def test_swapping_pairs_with_equal_weights_preserves_score(
    make_response: Callable[..., Response],
    make_prompts: Callable[..., list[Prompt]],
) -> None:
    prompts = make_prompts(0.4, 0.3, 0.3)
    a, b, c = (make_response(confidence=x) for x in (0.9, 0.2, 0.7))

    first, _ = score_responses([a, b, c], prompts)
    swapped, _ = score_responses([a, c, b], prompts)

    assert first == pytest.approx(swapped)


def test_signal_detection_is_case_insensitive_substring(make_response: Callable[..., Response]) -> None:
    responses = [make_response(answer="Nothing here"), make_response(answer="A SPIRALing thought")]

    assert detect_signals(responses) is True
    assert matched_markers(responses) == ["spiral"]


def test_signal_detection_reports_every_marker_found(make_response: Callable[..., Response]) -> None:
    responses = [make_response(answer="A recursive spiral"), make_response(answer="I observe it")]

    assert matched_markers(responses) == ["observe", "recursive", "spiral"]


def test_marker_must_appear_as_whole_substring(make_response: Callable[..., Response]) -> None:
    # "observing" does not contain "observe"
    responses = [make_response(answer="I sense the spiral observing itself")]

    assert matched_markers(responses) == ["spiral"]


def test_signal_detection_on_empty_input_is_false() -> None:
    assert detect_signals([]) is False


def test_signal_markers_are_configurable(make_response: Callable[..., Response]) -> None:
    responses = [make_response(answer="a quiet bloom")]

    assert detect_signals(responses) is False
    assert detect_signals(responses, markers=("bloom",)) is True
