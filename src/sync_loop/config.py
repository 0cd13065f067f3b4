"""
Runtime settings for the sync/loop core.

Every value has a default and can be overridden with a ``LIMNUS_*``
environment variable.
"""
from __future__ import annotations

from collections.abc import Mapping
from pathlib import Path
from typing import Optional

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from sync_loop.contracts import InputValidationError

DEFAULT_API_BASE_URL = "http://localhost:8787"
DEFAULT_STATE_DIR = Path(".limnus")
HOLD_STORE_FILENAME = "holds.jsonl"
TASK_REGISTRY_FILENAME = "tasks.json"


class SyncLoopSettings(BaseSettings):
    # Unrelated environment keys are ignored; invalid values are rejected, never clamped.
    model_config = SettingsConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    api_base_url: str = Field(DEFAULT_API_BASE_URL, validation_alias="LIMNUS_API_BASE_URL")
    state_dir: Path = Field(DEFAULT_STATE_DIR, validation_alias="LIMNUS_STATE_DIR")
    hold_duration_s: float = Field(120.0, ge=0, validation_alias="LIMNUS_HOLD_DURATION")
    wake_interval_s: int = Field(60, ge=1, validation_alias="LIMNUS_WAKE_INTERVAL")
    request_timeout_s: float = Field(10.0, gt=0, validation_alias="LIMNUS_REQUEST_TIMEOUT")
    durable_scheduling: bool = Field(True, validation_alias="LIMNUS_DURABLE_SCHEDULING")
    log_level: str = Field("INFO", validation_alias="LIMNUS_LOG_LEVEL")

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()

    @property
    def hold_store_path(self) -> Path:
        return self.state_dir / HOLD_STORE_FILENAME

    @property
    def task_registry_path(self) -> Path:
        return self.state_dir / TASK_REGISTRY_FILENAME

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> SyncLoopSettings:
        """
        Load settings from the process environment, or from `environ` alone.

        An explicit mapping is validated without consulting ``os.environ``.
        """
        try:
            if environ is None:
                return cls()
            return cls.model_validate(dict(environ))
        except ValidationError as exc:
            raise InputValidationError.from_pydantic(exc, what="settings") from exc
