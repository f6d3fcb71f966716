"""Retry policy with bounded, non-decreasing backoff."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..config import ExecutionSettings
from ..domain.documents import NodeConfig

BackoffKind = Literal["fixed", "linear", "exponential"]


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 3
    backoff: BackoffKind = "exponential"
    initial_delay: float = 1.0
    max_delay: float = 30.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.initial_delay < 0 or self.max_delay < 0:
            raise ValueError("delays must be non-negative")

    @classmethod
    def for_node(cls, config: NodeConfig, settings: ExecutionSettings) -> "RetryPolicy":
        attempts = max(1, config.max_retries) if config.retry_on_failure else 1
        return cls(
            max_attempts=attempts,
            backoff=settings.backoff,
            initial_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
        )

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts

    def delay(self, attempt: int) -> float:
        """Seconds to wait after failed ``attempt`` (1-based)."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        if self.backoff == "fixed":
            delay = self.initial_delay
        elif self.backoff == "linear":
            delay = self.initial_delay * attempt
        else:
            delay = self.initial_delay * 2 ** min(attempt - 1, 62)
        return min(delay, self.max_delay)


__all__ = ["BackoffKind", "RetryPolicy"]
