"""
Retry with exponential backoff for remote table calls.

Only transient failures are retried: transport errors and 429/5xx
responses. A 4xx answer means the request itself is wrong and retrying
it would only repeat the error.
"""
import random
from dataclasses import dataclass
from typing import Optional

RETRYABLE_STATUS = frozenset({429, 500, 502, 503, 504})


@dataclass
class RetryPolicy:
    """
    Attributes:
        max_attempts: Maximum number of attempts (including first try)
        initial_delay_ms: Delay before the second attempt
        max_delay_ms: Upper bound for any single delay
        backoff_multiplier: Multiplier applied per attempt
        jitter: Whether to add ±25% random variation to each delay
    """
    max_attempts: int = 3
    initial_delay_ms: float = 250.0
    max_delay_ms: float = 4000.0
    backoff_multiplier: float = 2.0
    jitter: bool = True

    def delay_for(self, attempt: int) -> float:
        """Delay in seconds after the given 0-based failed attempt."""
        delay_ms = min(
            self.initial_delay_ms * (self.backoff_multiplier ** attempt),
            self.max_delay_ms,
        )
        if self.jitter:
            delay_ms *= 0.75 + random.random() * 0.5
        return max(delay_ms, 0.0) / 1000.0


def is_retryable(status_code: Optional[int]) -> bool:
    """None means no response was received (transport failure)."""
    return status_code is None or status_code in RETRYABLE_STATUS

