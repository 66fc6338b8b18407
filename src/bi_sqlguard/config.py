"""Application configuration loading and validation."""

from __future__ import annotations

import logging
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

DEFAULT_SCHEMA_SNAPSHOT_PATH = "./data/schema_snapshot.json"


class ConfigError(ValueError):
    """Raised when configuration cannot be loaded safely."""


class Settings(BaseModel):
    """Runtime settings loaded from environment variables."""

    model_config = ConfigDict(frozen=True)

    schema_snapshot_path: Path = Path(DEFAULT_SCHEMA_SNAPSHOT_PATH)
    log_level: str = "WARNING"
    large_result_rows: int = Field(default=1000, gt=0)
    chart_max_rows: int = Field(default=1000, gt=0)
    chart_null_threshold: float = Field(default=0.5, ge=0.0, le=1.0)

    @field_validator("schema_snapshot_path", mode="before")
    @classmethod
    def validate_schema_snapshot_path(cls, value: str | Path) -> Path:
        path = Path(value).expanduser() if isinstance(value, str) else value
        if not str(path) or str(path) == ".":
            raise ValueError("SCHEMA_SNAPSHOT_PATH cannot be empty.")
        return path

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        normalized = value.strip().upper()
        if normalized not in logging.getLevelNamesMapping():
            raise ValueError(
                "LOG_LEVEL must be one of DEBUG, INFO, WARNING, ERROR or CRITICAL."
            )
        return normalized


def _env_value(name: str, default: str | None = None) -> str | None:
    import os

    value = os.getenv(name, default)
    if value is None:
        return None
    return value.strip()


def load_settings(overrides: dict[str, str] | None = None) -> Settings:
    """Load settings from environment variables.

    ``overrides`` replaces individual values, as command-line flags do.
    """
    payload = {
        "schema_snapshot_path": _env_value("SCHEMA_SNAPSHOT_PATH", DEFAULT_SCHEMA_SNAPSHOT_PATH),
        "log_level": _env_value("LOG_LEVEL", "WARNING"),
        "large_result_rows": _env_value("LARGE_RESULT_ROWS", "1000"),
        "chart_max_rows": _env_value("CHART_MAX_ROWS", "1000"),
        "chart_null_threshold": _env_value("CHART_NULL_THRESHOLD", "0.5"),
    }
    payload.update(overrides or {})

    try:
        return Settings.model_validate(payload)
    except ValidationError as exc:
        messages = []
        for err in exc.errors():
            field = ".".join(str(item) for item in err["loc"])
            messages.append(f"- {field}: {err['msg']}")
        raise ConfigError(
            "Invalid configuration values:\n" + "\n".join(messages)
        ) from exc
