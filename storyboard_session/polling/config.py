"""
Poller Configuration — backoff settings for job status polling.

Reads overrides from environment variables (milliseconds):
    POLLING_INITIAL_INTERVAL = <default 2000>
    POLLING_MAX_INTERVAL = <default 30000>
    POLLING_MAX_ATTEMPTS = <default 60>
    POLLING_BACKOFF_MULTIPLIER = <default 1.5>
"""
import os

from pydantic import BaseModel, Field, model_validator


class PollerConfig(BaseModel):
    """Validated backoff settings; intervals are in milliseconds."""

    initial_interval: int = Field(default=2000, ge=1)
    max_interval: int = Field(default=30000, ge=1)
    max_attempts: int = Field(default=60, ge=1)
    backoff_multiplier: float = Field(default=1.5, ge=1.0)

    model_config = {"frozen": True}

    @model_validator(mode="after")
    def validate_interval_bounds(self) -> "PollerConfig":
        """Ensure the cap is not below the starting interval."""
        if self.max_interval < self.initial_interval:
            raise ValueError(
                f"max_interval ({self.max_interval}) must be >= "
                f"initial_interval ({self.initial_interval})"
            )
        return self

    @classmethod
    def from_env(cls) -> "PollerConfig":
        defaults = cls.model_fields
        return cls(
            initial_interval=os.environ.get(
                "POLLING_INITIAL_INTERVAL", defaults["initial_interval"].default
            ),
            max_interval=os.environ.get(
                "POLLING_MAX_INTERVAL", defaults["max_interval"].default
            ),
            max_attempts=os.environ.get(
                "POLLING_MAX_ATTEMPTS", defaults["max_attempts"].default
            ),
            backoff_multiplier=os.environ.get(
                "POLLING_BACKOFF_MULTIPLIER", defaults["backoff_multiplier"].default
            ),
        )
