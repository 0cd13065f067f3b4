from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from sync_loop.contracts import (
    Classification,
    Prompt,
    Response,
    SyncOutcome,
    parse_responses,
)
from sync_loop.prompts import DEFAULT_PROMPTS, RECURSIVE_MARKERS
from sync_loop.scoring import detect_signals, matched_markers, score_responses

logger = logging.getLogger(__name__)

# Inclusive lower bounds.
ACTIVE_THRESHOLD = 0.75
MODERATE_THRESHOLD = 0.5
RECURSIVE_THRESHOLD = 0.6

REASON_HIGH = "high confidence"
REASON_MODERATE = "moderate confidence, requires further reflection"
REASON_LOW = "low confidence, archived for latent processing"
REASON_RECURSIVE = "recursive patterns detected with sufficient confidence"


def base_classification(score: float) -> tuple[SyncOutcome, str]:
    if score >= ACTIVE_THRESHOLD:
        return SyncOutcome.ACTIVE, REASON_HIGH
    if score >= MODERATE_THRESHOLD:
        return SyncOutcome.PASSIVE, REASON_MODERATE
    return SyncOutcome.PASSIVE, REASON_LOW


def adjudicate(
    responses: Iterable[Response | Mapping[str, Any]],
    archive_as_latent: bool = False,
    *,
    prompts: Sequence[Prompt] = DEFAULT_PROMPTS,
    markers: Iterable[str] = RECURSIVE_MARKERS,
) -> Classification:
    """
    Classify a batch of weighted responses.

    Rules are a priority chain: the threshold classification is computed
    first and the recursive override replaces it when a marker is present and
    the score reaches RECURSIVE_THRESHOLD. Raises InputValidationError for
    malformed responses and IndexOutOfRangeError when there are more
    responses than prompts.
    """
    parsed = parse_responses(responses)
    score, scored = score_responses(parsed, prompts)

    markers = tuple(markers)
    outcome, reason = base_classification(score)
    if score >= RECURSIVE_THRESHOLD and detect_signals(parsed, markers):
        outcome, reason = SyncOutcome.RECURSIVE, REASON_RECURSIVE

    if logger.isEnabledFor(logging.DEBUG):
        logger.debug(
            "adjudicated %d responses: outcome=%s confidence=%.4f markers=%s archived=%s",
            len(parsed),
            outcome.value,
            score,
            matched_markers(parsed, markers),
            archive_as_latent,
        )
    return Classification(
        outcome=outcome,
        confidence_score=score,
        escalation_reason=reason,
        archived_as_latent=archive_as_latent,
        prompts_used=list(prompts),
        responses=scored,
    )
