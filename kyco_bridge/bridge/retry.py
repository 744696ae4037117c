"""Retry policies for opening bridge event streams.

Only stream initiation is ever retried. Control calls (interrupt, permission
change, tool approval) and reads from an already-open stream are not.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True, slots=True, kw_only=True)
class RetryPolicy:
    """How many times to try opening a stream, and how long to wait in between."""

    name: str
    max_attempts: int = 1
    initial_delay_ms: int = 500
    factor: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")
        if self.initial_delay_ms < 0:
            raise ValueError(f"initial_delay_ms must be >= 0, got {self.initial_delay_ms}")

    @classmethod
    def bounded(cls, attempts: int = 3, *, initial_delay_ms: int = 500, factor: float = 2.0) -> "RetryPolicy":
        return cls(
            name="bounded",
            max_attempts=attempts,
            initial_delay_ms=initial_delay_ms,
            factor=factor,
        )

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(name="no-retry", max_attempts=1)

    @property
    def retries(self) -> bool:
        return self.max_attempts > 1

    def delay_ms(self, attempt: int) -> int:
        """Backoff after failed ``attempt`` (1-based): 500ms, 1000ms, 2000ms, ..."""
        return int(self.initial_delay_ms * (self.factor ** max(0, attempt - 1)))

    def should_retry(self, attempt: int) -> bool:
        return attempt < self.max_attempts
