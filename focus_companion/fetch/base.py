from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

import httpx

class AttemptOutcome(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    NETWORK_FAILURE = "network_failure"
    TIMEOUT = "timeout"
    REJECTED = "rejected"

@dataclass(frozen=True)
class FetchPolicy:
    """Retry policy for one logical upstream call."""
    max_attempts: int = 3
    timeout_ms: int = 10000
    backoff_base_ms: int = 1000

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if self.timeout_ms <= 0:
            raise ValueError("timeout_ms must be positive")
        if self.backoff_base_ms < 0:
            raise ValueError("backoff_base_ms must not be negative")

    def backoff_seconds(self, attempt_index: int) -> float:
        """Pause after the failed attempt with the given 0-based index."""
        return self.backoff_base_ms * (attempt_index + 1) / 1000

@dataclass
class FetchAttempt:
    url: str
    index: int
    deadline: float  # time.monotonic() value
    outcome: AttemptOutcome = AttemptOutcome.PENDING
    response: Optional[httpx.Response] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.outcome is AttemptOutcome.SUCCESS

    def resolve(self, outcome: AttemptOutcome, response: Optional[httpx.Response] = None,
                error: Optional[str] = None):
        if self.outcome is not AttemptOutcome.PENDING:
            raise RuntimeError(f"Attempt {self.index} for {self.url} already resolved as {self.outcome.value}")
        self.outcome = outcome
        self.response = response
        self.error = error

class FetchError(Exception):
    """Base class for outbound fetch failures."""

class FetchExhausted(FetchError):
    """Every permitted attempt for one logical call failed."""

    def __init__(self, url: str, attempts: list[FetchAttempt]):
        self.url = url
        self.attempts = attempts
        last = attempts[-1] if attempts else None
        detail = f"{last.outcome.value}: {last.error}" if last else "no attempts made"
        super().__init__(f"Failed to fetch {url} after {len(attempts)} attempts ({detail})")

class UpstreamUnavailable(FetchError):
    """No usable result could be obtained from an upstream service."""

@dataclass
class BatchResult:
    """Ordered per-slot results of a fan-out; failed slots hold None."""
    slots: list = field(default_factory=list)

    @property
    def items(self) -> list:
        return [item for item in self.slots if item is not None]

    @property
    def failed(self) -> int:
        return sum(1 for item in self.slots if item is None)
