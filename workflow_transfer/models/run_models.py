# workflow_transfer/models/run_models.py
"""
Pydantic models for batch run options.

Usage:
    from workflow_transfer.models.run_models import RunOptions, RetryPolicy
    options = RunOptions(dry_run=True, concurrency_limit=5)
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator


class RetryPolicy(BaseModel):
    """Exponential backoff for retryable remote failures."""
    model_config = ConfigDict(extra='forbid')

    max_attempts: int = Field(default=3, ge=1, le=20, description="Attempts including the first call")
    base_delay: float = Field(default=1.0, ge=0.0, description="Delay (s) before the first retry")
    multiplier: float = Field(default=2.0, ge=1.0, description="Backoff growth factor")
    max_delay: float = Field(default=5.0, ge=0.0, description="Backoff ceiling (s)")

    def delay_for(self, retry_number: int, retry_after: Optional[float] = None) -> float:
        """
        Seconds to wait before retry ``retry_number`` (0 for the first retry).

        A server-provided ``Retry-After`` hint wins over the computed backoff.
        """
        if retry_after is not None:
            return max(0.0, retry_after)
        return min(self.base_delay * (self.multiplier ** retry_number), self.max_delay)


class PacingPolicy(BaseModel):
    """Latency-driven delay between mutate calls."""
    model_config = ConfigDict(extra='forbid')

    enabled: bool = False
    window: int = Field(default=5, ge=1, description="Latency samples in the rolling average")
    high_latency_ms: float = Field(default=2000.0, gt=0)
    low_latency_ms: float = Field(default=500.0, ge=0)
    step_seconds: float = Field(default=0.25, gt=0)
    min_delay_seconds: float = Field(default=0.0, ge=0)
    max_delay_seconds: float = Field(default=5.0, ge=0)

    @model_validator(mode="after")
    def _check_bounds(self) -> "PacingPolicy":
        if self.low_latency_ms > self.high_latency_ms:
            raise ValueError("low_latency_ms must not exceed high_latency_ms")
        if self.min_delay_seconds > self.max_delay_seconds:
            raise ValueError("min_delay_seconds must not exceed max_delay_seconds")
        return self


class RunOptions(BaseModel):
    model_config = ConfigDict(extra='forbid')

    dry_run: bool = Field(default=False, description="Decide outcomes without mutating")
    concurrency_limit: int = Field(default=3, ge=1, le=50)
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    rollback_threshold: float = Field(default=0.5, ge=0.0, le=1.0)
    post_validate: bool = Field(default=False, description="Validate the returned item after mutation")
    skip_credentials: bool = Field(default=False, description="Skip items whose nodes use credentials")
    batch_size: Optional[int] = Field(
        default=None, ge=1, description="Items per success-rate checkpoint; defaults to concurrency_limit"
    )
    pacing: PacingPolicy = Field(default_factory=PacingPolicy)

    @property
    def checkpoint_size(self) -> int:
        return self.batch_size or self.concurrency_limit
