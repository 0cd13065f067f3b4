from __future__ import annotations

from collections.abc import Iterable, Sequence

from sync_loop.contracts import IndexOutOfRangeError, Prompt, Response, ScoredResponse
from sync_loop.prompts import RECURSIVE_MARKERS


def pair_responses(responses: Sequence[Response], prompts: Sequence[Prompt]) -> list[ScoredResponse]:
    """
    Pair each response with the prompt at the same ordinal.

    A response past the end of the prompt set raises IndexOutOfRangeError;
    no default weight is ever substituted.
    """
    scored: list[ScoredResponse] = []
    for index, response in enumerate(responses):
        if index >= len(prompts):
            raise IndexOutOfRangeError(index, len(prompts))
        scored.append(ScoredResponse.pair(response, prompts[index]))
    return scored


def weighted_confidence(scored: Iterable[ScoredResponse]) -> float:
    total_score = 0.0
    total_weight = 0.0
    for item in scored:
        total_score += item.confidence * item.weight
        total_weight += item.weight
    if total_weight <= 0:
        return 0.0
    return total_score / total_weight


def score_responses(
    responses: Sequence[Response], prompts: Sequence[Prompt]
) -> tuple[float, list[ScoredResponse]]:
    scored = pair_responses(responses, prompts)
    return weighted_confidence(scored), scored


def matched_markers(responses: Iterable[Response], markers: Iterable[str] = RECURSIVE_MARKERS) -> list[str]:
    lowered = [marker.lower() for marker in markers if marker]
    found: set[str] = set()
    for response in responses:
        answer = response.answer.lower()
        found.update(marker for marker in lowered if marker in answer)
    return sorted(found)


def detect_signals(responses: Iterable[Response], markers: Iterable[str] = RECURSIVE_MARKERS) -> bool:
    """True when any answer contains any marker (case-insensitive substring)."""
    lowered = [marker.lower() for marker in markers if marker]
    return any(marker in response.answer.lower() for response in responses for marker in lowered)
