from __future__ import annotations

from dataclasses import dataclass

from later_ladder.core.config import Settings


@dataclass(frozen=True)
class BackoffPolicy:
    """Capped exponential backoff for stream reconnects.

    `attempt` counts consecutive retryable failures, starting at 1. The counter is
    owned by the subscriber and reset after `stable_period_s` of healthy streaming
    (or the first frame received).
    """

    base_delay_s: float = 5.0
    max_delay_s: float = 300.0
    factor: float = 2.0
    max_retries: int = 5
    stable_period_s: float = 30.0

    def __post_init__(self) -> None:
        if self.base_delay_s <= 0 or self.max_delay_s < self.base_delay_s:
            raise ValueError("require 0 < base_delay_s <= max_delay_s")
        if self.factor < 1.0:
            raise ValueError("factor must be >= 1")
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")

    def delay_for(self, attempt: int) -> float:
        if attempt < 1:
            raise ValueError(f"attempt must be >= 1 (got {attempt})")
        try:
            delay = self.base_delay_s * self.factor ** (attempt - 1)
        except OverflowError:
            return self.max_delay_s
        return min(delay, self.max_delay_s)

    def exhausted(self, attempt: int) -> bool:
        return attempt > self.max_retries

    @classmethod
    def from_settings(cls, s: Settings) -> BackoffPolicy:
        return cls(
            base_delay_s=s.stream_base_delay_s,
            max_delay_s=s.stream_max_delay_s,
            max_retries=s.stream_max_retries,
            stable_period_s=s.stream_stable_period_s,
        )
