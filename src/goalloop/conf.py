"""Configuration management for goalloop using Pydantic Settings."""

import random
from datetime import datetime
from pathlib import Path

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings configurable via environment variables and .env file.

    Environment variables must be prefixed with GOALLOOP_.
    Example: GOALLOOP_TRACE_LOG_ENABLED=true
    """

    model_config = SettingsConfigDict(  # pyright: ignore[reportUnannotatedClassAttribute]
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="GOALLOOP_",
        case_sensitive=False,
        extra="ignore",
    )

    # --- Loop tuning ---

    DEFAULT_MAX_ITERATIONS: int = Field(
        default=10,
        ge=1,
        description="Iteration cap used by the CLI when none is given.",
    )

    # --- Scenarios ---

    SCENARIOS_FILE: Path = Field(
        default=Path.cwd() / ".goalloop" / "scenarios.yaml",
        description="Path to the scenario parameter file.",
    )

    # --- Logging ---

    TRACE_LOG_ENABLED: bool = Field(
        default=False,
        description="Write a JSONL reasoning trace for every pursuit.",
    )

    CONSOLE_OUTPUT: bool = Field(
        default=True,
        description="Echo pursuit progress to stderr when trace logging is on.",
    )

    MAX_PAYLOAD_CHARS: int = Field(
        default=200,
        ge=10,
        description="Maximum characters of a payload repr written to logs.",
    )

    LOG_DIR: Path = Field(
        default=Path.home() / ".goalloop" / "logs",
        description="Directory for pursuit trace logs.",
    )

    @property
    def log_file(self) -> Path:
        """Generate actual log file path with timestamp and random suffix."""
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        random_suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=6))
        return self.LOG_DIR / f"pursuit_{timestamp}_{random_suffix}.jsonl"

    @field_validator("LOG_DIR")
    @classmethod
    def ensure_log_dir(cls, v: Path) -> Path:
        v.mkdir(parents=True, exist_ok=True)
        return v


# Global settings instance
settings = Settings()
