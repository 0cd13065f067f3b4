from __future__ import annotations

import time
from datetime import datetime, timezone
from enum import Enum

from typing_extensions import Self

UTC = timezone.utc


class StrEnum(str, Enum):  # noqa: UP042
    """Python 3.10-compatible StrEnum."""

    pass


def epoch_ms() -> int:
    return int(time.time() * 1000)


def iso_from_ms(value_ms: int) -> str:
    return datetime.fromtimestamp(value_ms / 1000, tz=UTC).isoformat()


__all__ = ["Self", "UTC", "StrEnum", "epoch_ms", "iso_from_ms"]
