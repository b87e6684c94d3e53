"""Pydantic configuration models for decision-mirror."""

import os
from pathlib import Path
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

VALID_LLM_PROVIDERS = {"auto", "claude", "openai"}


class LLMConfig(BaseModel):
    """LLM provider configuration (explanations only)."""

    provider: str = "auto"
    model: Optional[str] = None  # None = cheap model of the provider
    api_key: Optional[str] = None
    max_tokens: int = 800
    temperature: Optional[float] = 0.2

    @field_validator("provider")
    @classmethod
    def validate_provider(cls, v: str) -> str:
        if v not in VALID_LLM_PROVIDERS:
            raise ValueError(f"Invalid LLM provider: {v}. Must be one of {VALID_LLM_PROVIDERS}")
        return v


class PathsConfig(BaseModel):
    """File paths configuration."""

    data_dir: Path = Path("~/.decision-mirror")
    db_path: Optional[Path] = None
    chroma_dir: Optional[Path] = None
    log_file: Optional[Path] = None

    @model_validator(mode="after")
    def expand_paths(self):
        """Expand ~ and fill paths derived from data_dir."""
        self.data_dir = self.data_dir.expanduser()
        self.db_path = (self.db_path or self.data_dir / "mirror.db").expanduser()
        self.chroma_dir = (self.chroma_dir or self.data_dir / "chroma").expanduser()
        if self.log_file:
            self.log_file = self.log_file.expanduser()
        return self


class EngineConfig(BaseModel):
    """System-wide engine coefficients and per-user defaults."""

    default_sensitivity_weight: float = 1.0
    default_baseline_regret_rate: float = 0.2
    priority_axis_boost: float = 0.35
    volatility_weight: float = 0.3
    negativity_weight: float = 0.3
    search_k: int = 20

    @field_validator("default_sensitivity_weight")
    @classmethod
    def validate_sensitivity(cls, v: float) -> float:
        if not 0.1 <= v <= 5.0:
            raise ValueError(f"default_sensitivity_weight must be 0.1-5.0, got {v}")
        return v

    @field_validator("default_baseline_regret_rate")
    @classmethod
    def validate_baseline(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"default_baseline_regret_rate must be 0-1, got {v}")
        return v

    @field_validator("priority_axis_boost", "volatility_weight", "negativity_weight")
    @classmethod
    def validate_non_negative(cls, v: float) -> float:
        if v < 0:
            raise ValueError(f"engine weights must be non-negative, got {v}")
        return v

    def overrides(self) -> dict:
        """Coefficients passed to every calculation."""
        return {
            "priority_axis_boost": self.priority_axis_boost,
            "volatility_weight": self.volatility_weight,
            "negativity_weight": self.negativity_weight,
        }


class LearnerConfig(BaseModel):
    """Parameter learner rates."""

    sensitivity_rate: float = 0.1
    prior_rate: float = 0.2
    cas_attempts: int = 5

    @field_validator("prior_rate")
    @classmethod
    def validate_prior_rate(cls, v: float) -> float:
        if not 0.0 <= v <= 1.0:
            raise ValueError(f"prior_rate must be 0-1, got {v}")
        return v


class TimeoutsConfig(BaseModel):
    """Bounds on external calls, in seconds."""

    embed: float = 15.0
    read: float = 5.0
    explain: float = 60.0


class RetryConfig(BaseModel):
    """Retry/backoff configuration."""

    max_attempts: int = 3
    min_wait: float = 2.0
    max_wait: float = 10.0
    llm_max_wait: float = 30.0


VALID_LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "WARNING"
    json_mode: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        v_upper = v.upper()
        if v_upper not in VALID_LOG_LEVELS:
            raise ValueError(f"Invalid log level: {v}. Must be one of {VALID_LOG_LEVELS}")
        return v_upper


class AppConfig(BaseModel):
    """Main configuration model."""

    user_id: str = "default"
    llm: LLMConfig = Field(default_factory=LLMConfig)
    paths: PathsConfig = Field(default_factory=PathsConfig)
    engine: EngineConfig = Field(default_factory=EngineConfig)
    learner: LearnerConfig = Field(default_factory=LearnerConfig)
    timeouts: TimeoutsConfig = Field(default_factory=TimeoutsConfig)
    retry: RetryConfig = Field(default_factory=RetryConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

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
    def from_dict(cls, data: dict) -> "AppConfig":
        return cls.model_validate(data)

    def to_dict(self) -> dict:
        return self.model_dump(mode="python")
