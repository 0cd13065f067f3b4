# sync_loop/contracts.py
from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any, ClassVar, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from sync_loop._compat import Self, StrEnum, iso_from_ms


# ------------------------------------------------------------------------------
# Error taxonomy
# ------------------------------------------------------------------------------


class SyncLoopError(Exception):
    """Base class for every failure raised by the sync/loop core."""


class InputValidationError(SyncLoopError, ValueError):
    """Raised when caller input is malformed. Values are never clamped."""

    def __init__(self, message: str, *, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def from_pydantic(cls, exc: ValidationError, *, what: str) -> InputValidationError:
        details = [
            {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type", "")}
            for err in exc.errors()
        ]
        first = details[0] if details else {"loc": [], "msg": str(exc)}
        loc = ".".join(str(part) for part in first["loc"])
        suffix = f" at {loc}" if loc else ""
        return cls(f"invalid {what}{suffix}: {first['msg']}", errors=details)


class IndexOutOfRangeError(InputValidationError, IndexError):
    """A response ordinal has no prompt at the same position."""

    def __init__(self, index: int, prompt_count: int) -> None:
        super().__init__(f"Invalid prompt index: {index} (prompt set has {prompt_count} prompts)")
        self.index = index
        self.prompt_count = prompt_count


class RemoteCallError(SyncLoopError):
    """A remote procedure call failed or returned an error payload."""

    def __init__(self, path: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{path}: {message}")
        self.path = path
        self.status_code = status_code


class StorageError(SyncLoopError):
    """The hold state store could not be read or written."""


class UnsupportedPlatformError(SyncLoopError):
    """Durable periodic execution is unavailable; callers switch to the fallback timer."""


# ------------------------------------------------------------------------------
# Shared BaseModel config helpers
# ------------------------------------------------------------------------------

_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    validate_assignment=True,
    use_enum_values=False,  # keep enums as enums in Python
)

_IMMUTABLE_CONTRACT_CONFIG = ConfigDict(
    extra="forbid",
    use_enum_values=False,
    frozen=True,
)

# ------------------------------------------------------------------------------
# Adjudication
# ------------------------------------------------------------------------------


class SyncOutcome(StrEnum):
    ACTIVE = "Active"
    PASSIVE = "Passive"
    RECURSIVE = "Recursive"


class Response(BaseModel):
    """One submitted answer with the responder's own confidence."""

    model_config = _IMMUTABLE_CONTRACT_CONFIG
    question: str
    answer: str
    confidence: float = Field(ge=0.0, le=1.0)


class Prompt(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    id: str = Field(min_length=1)
    question: str
    weight: float = Field(gt=0.0, le=1.0)


class ScoredResponse(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    question: str
    answer: str
    confidence: float = Field(ge=0.0, le=1.0)
    weight: float = Field(gt=0.0, le=1.0)

    @classmethod
    def pair(cls, response: Response, prompt: Prompt) -> ScoredResponse:
        return cls(
            question=response.question,
            answer=response.answer,
            confidence=response.confidence,
            weight=prompt.weight,
        )


class Classification(BaseModel):
    model_config = _CONTRACT_CONFIG
    outcome: SyncOutcome
    confidence_score: float = Field(ge=0.0, le=1.0)
    escalation_reason: str
    archived_as_latent: bool
    prompts_used: list[Prompt]
    responses: list[ScoredResponse]


class AdjudicationRequest(BaseModel):
    model_config = _CONTRACT_CONFIG
    session_id: str = Field(min_length=1)
    patch_id: str = Field(min_length=1)
    responses: list[Response] = Field(default_factory=list)
    archive_as_latent: bool = False


class PromptSet(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    prompts: tuple[Prompt, ...]
    instructions: str


def parse_responses(raw: Iterable[Response | Mapping[str, Any]]) -> list[Response]:
    """Validate responses given as models or mappings, rejecting out-of-range confidence."""
    out: list[Response] = []
    for index, item in enumerate(raw):
        if isinstance(item, Response):
            out.append(item)
            continue
        try:
            out.append(Response.model_validate(item))
        except ValidationError as exc:
            raise InputValidationError.from_pydantic(exc, what=f"response {index}") from exc
    return out


# ------------------------------------------------------------------------------
# Teaching directives
# ------------------------------------------------------------------------------


class TeachingDirective(BaseModel):
    model_config = _IMMUTABLE_CONTRACT_CONFIG
    id: str
    source_line: str
    directive: str
    citation: str
    overlay: Literal["Bloom", "Mirror", "Spiral", "Accord"]


class TeachingDirectiveRequest(BaseModel):
    model_config = _CONTRACT_CONFIG
    response_lines: list[str]
    session_id: str | None = None


class TeachingDirectiveSet(BaseModel):
    model_config = _CONTRACT_CONFIG
    tds: list[TeachingDirective] = Field(default_factory=list)


# ------------------------------------------------------------------------------
# Hold
# ------------------------------------------------------------------------------


class HoldStatus(StrEnum):
    PENDING = "pending"
    ACTIVE = "active"
    COMPLETE = "complete"
    ERROR = "error"


class WakeResult(StrEnum):
    NEW_DATA = "new_data"
    NO_DATA = "no_data"
    FAILED = "failed"


class HoldStartOutcome(StrEnum):
    STARTED = "started"
    UNSUPPORTED = "unsupported"


class HoldRecord(BaseModel):
    """
    Durable record of one in-flight hold.

    Camel-case aliases match the blob layout written by the mobile client, so
    either shape can be rehydrated.
    """

    model_config = ConfigDict(
        extra="forbid",
        validate_assignment=True,
        use_enum_values=False,
        populate_by_name=True,
    )

    TERMINAL_STATUSES: ClassVar[frozenset[HoldStatus]] = frozenset({HoldStatus.COMPLETE, HoldStatus.ERROR})

    session_id: str = Field(min_length=1, validation_alias=AliasChoices("session_id", "sessionId"))
    start_time_ms: int = Field(ge=0, validation_alias=AliasChoices("start_time_ms", "startTime"))
    duration_s: float = Field(ge=0, validation_alias=AliasChoices("duration_s", "duration"))
    status: HoldStatus = HoldStatus.ACTIVE
    attempts: int = Field(default=0, ge=0)
    last_error: str | None = None
    completed_at_ms: int | None = None

    @model_validator(mode="after")
    def _completion_requires_timestamp(self) -> Self:
        if self.status is HoldStatus.COMPLETE and self.completed_at_ms is None:
            raise ValueError("complete hold records require completed_at_ms")
        return self

    @property
    def deadline_ms(self) -> int:
        return self.start_time_ms + int(self.duration_s * 1000)

    @property
    def recheck_at_iso(self) -> str:
        return iso_from_ms(self.deadline_ms)

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def elapsed_ms(self, now_ms: int) -> int:
        return now_ms - self.start_time_ms

    def is_due(self, now_ms: int) -> bool:
        return self.elapsed_ms(now_ms) >= self.duration_s * 1000

    def transition(self, status: HoldStatus, **changes: Any) -> HoldRecord:
        return self.model_validate({**self.model_dump(), **changes, "status": status})


class HoldStatusReport(BaseModel):
    """
    Status of one session's hold.

    `readable` is False only when the store itself could not be read; a hold
    that ended in `error` is still a readable record.
    """

    model_config = _CONTRACT_CONFIG
    status: Literal["none", "pending", "active", "complete", "error"]
    readable: bool = True
    record: HoldRecord | None = None
    message: str | None = None

    @classmethod
    def from_record(cls, record: HoldRecord | None) -> HoldStatusReport:
        if record is None:
            return cls(status="none")
        return cls(status=record.status.value, record=record, message=record.last_error)

    @classmethod
    def unreadable(cls, message: str) -> HoldStatusReport:
        return cls(status="error", readable=False, message=message)


class HoldStartResult(BaseModel):
    model_config = _CONTRACT_CONFIG
    outcome: HoldStartOutcome
    record: HoldRecord | None = None

    @property
    def started(self) -> bool:
        return self.outcome is HoldStartOutcome.STARTED
