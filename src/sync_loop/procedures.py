# sync_loop/procedures.py
"""
Transport-agnostic handlers for the sync-phase procedures.

Each handler validates its raw input, runs the pure core, and returns a
contract model; a failure aborts the whole request and nothing partial is
returned.
"""
from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from sync_loop.adjudicator import adjudicate
from sync_loop.contracts import (
    AdjudicationRequest,
    Classification,
    InputValidationError,
    PromptSet,
    TeachingDirectiveRequest,
    TeachingDirectiveSet,
)
from sync_loop.directives import extract_teaching_directives
from sync_loop.prompts import DEFAULT_PROMPTS, get_prompt_set

logger = logging.getLogger(__name__)


def prompts_procedure() -> PromptSet:
    return get_prompt_set(DEFAULT_PROMPTS)


def adjudication_procedure(payload: AdjudicationRequest | Mapping[str, Any]) -> Classification:
    if isinstance(payload, AdjudicationRequest):
        request = payload
    else:
        try:
            request = AdjudicationRequest.model_validate(payload)
        except ValidationError as exc:
            raise InputValidationError.from_pydantic(exc, what="adjudication request") from exc

    logger.info("adjudication requested for session %s patch %s", request.session_id, request.patch_id)
    result = adjudicate(request.responses, request.archive_as_latent, prompts=DEFAULT_PROMPTS)
    logger.info(
        "adjudication for session %s: %s (confidence %.3f, archived=%s)",
        request.session_id,
        result.outcome.value,
        result.confidence_score,
        result.archived_as_latent,
    )
    return result


def teaching_directives_procedure(payload: TeachingDirectiveRequest | Mapping[str, Any]) -> TeachingDirectiveSet:
    if isinstance(payload, TeachingDirectiveRequest):
        request = payload
    else:
        try:
            request = TeachingDirectiveRequest.model_validate(payload)
        except ValidationError as exc:
            raise InputValidationError.from_pydantic(exc, what="teaching directive request") from exc

    directives = extract_teaching_directives(request.response_lines)
    logger.info("extracted %d teaching directives for session %s", len(directives), request.session_id)
    return TeachingDirectiveSet(tds=directives)
