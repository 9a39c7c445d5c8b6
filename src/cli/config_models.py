"""Pydantic configuration models for lifegraph."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LLM_PROVIDERS = {"auto", "claude", "openai", "ollama"}


class LLMConfig(BaseModel):
    """LLM provider configuration."""

    provider: str = "auto"
    model: Optional[str] = None  # None = cheap-tier default for the provider
    api_key: Optional[str] = None
    ollama_url: Optional[str] = None
    timeout_seconds: float = 30.0

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v

    @field_validator("timeout_seconds")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout_seconds must be positive, got {v}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    db_path: Path = Path("~/.lifegraph/memory.db")
    log_file: Path = Path("~/.lifegraph/lifegraph.log")

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ in all paths."""
        self.db_path = self.db_path.expanduser()
        self.log_file = self.log_file.expanduser()
        return self


class RetryConfig(BaseModel):
    """Retry/backoff for the local model endpoint."""

    max_attempts: int = 2
    min_wait: float = 0.5
    max_wait: float = 2.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class MemoryConfig(BaseModel):
    """Entity resolution and consolidation settings."""

    arbitration_enabled: bool = True
    summarization_enabled: bool = True
    regenerate_on_merge: bool = False
    arbitration_max_tokens: int = 150
    summary_max_tokens: int = 200
    max_source_chars: int = 500
    extraction_max_chars: int = 4000
    hot_days: int = 7
    warm_days: int = 30
    high_access_threshold: int = 10

    @model_validator(mode="after")
    def validate_tiers(self):
        if not 0 < self.hot_days <= self.warm_days:
            raise ValueError(
                f"Need 0 < hot_days <= warm_days, got {self.hot_days} / {self.warm_days}"
            )
        return self


class LifegraphConfig(BaseModel):
    """Main configuration model."""

    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    memory: MemoryConfig = Field(default_factory=MemoryConfig)

    @model_validator(mode="after")
    def expand_env_vars(self):
        """Expand ${VAR} patterns in API keys."""
        if self.llm.api_key:
            key = self.llm.api_key
            if key.startswith("${") and key.endswith("}"):
                env_var = key[2:-1]
                self.llm.api_key = os.getenv(env_var, "")
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "LifegraphConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
