"""
LIMNUS distribution import namespace.

This package re-exports the public surface of the `sync_loop` core so
callers can `from limnus import adjudicate, HoldSupervisor`.
"""

from importlib.metadata import PackageNotFoundError, version

# src/limnus/__init__.py
from sync_loop.adjudicator import adjudicate
from sync_loop.contracts import (
    AdjudicationRequest,
    Classification,
    HoldRecord,
    HoldStatus,
    IndexOutOfRangeError,
    InputValidationError,
    Prompt,
    RemoteCallError,
    Response,
    ScoredResponse,
    StorageError,
    SyncLoopError,
    SyncOutcome,
    UnsupportedPlatformError,
    WakeResult,
)
from sync_loop.fallback import FallbackTimer
from sync_loop.prompts import DEFAULT_PROMPTS, RECURSIVE_MARKERS, get_prompt_set
from sync_loop.supervisor import HoldSupervisor, begin_hold, install_hold_task

try:
    __version__ = version("limnus")
except PackageNotFoundError:  # pragma: no cover - fallback for non-installed source trees
    __version__ = "0+unknown"

__all__ = [
    "__version__",
    "AdjudicationRequest",
    "Classification",
    "DEFAULT_PROMPTS",
    "FallbackTimer",
    "HoldRecord",
    "HoldStatus",
    "HoldSupervisor",
    "IndexOutOfRangeError",
    "InputValidationError",
    "Prompt",
    "RECURSIVE_MARKERS",
    "RemoteCallError",
    "Response",
    "ScoredResponse",
    "StorageError",
    "SyncLoopError",
    "SyncOutcome",
    "UnsupportedPlatformError",
    "WakeResult",
    "adjudicate",
    "begin_hold",
    "get_prompt_set",
    "install_hold_task",
]
