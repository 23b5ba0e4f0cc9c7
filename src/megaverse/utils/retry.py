"""
Retry policy with exponential backoff for megaverse API calls.

Remote calls return a CallOutcome instead of raising, so the policy decides
what to do by looking at the outcome: only rate-limit responses are retried.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from megaverse.schemas import (CallOutcome, FailureReason, NotFound, OtherError,
                               RateLimited, Success)
from megaverse.utils.rate_limiter import RequestRateLimiter

logger = logging.getLogger(__name__)


class RetryConfig:
    """Configuration for retry behavior"""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        backoff_factor: float = 2.0,
        max_delay: float = 60.0,
        min_delay: float = 0.0,
    ):
        """
        Args:
            max_attempts: Total attempts per call, including the first one
            base_delay: Wait before the first retry when the server gives no hint
            backoff_factor: Multiplier for the wait after each retry
            max_delay: Cap on computed waits (server Retry-After is not capped)
            min_delay: Floor applied to every wait
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.max_attempts = max_attempts
        self.base_delay = base_delay
        self.backoff_factor = backoff_factor
        self.max_delay = max_delay
        self.min_delay = min_delay


def compute_backoff(attempt: int, config: RetryConfig, retry_after: Optional[float] = None) -> float:
    """
    Seconds to wait after the given (1-based) failed attempt.

    The server's Retry-After wins when present; otherwise the delay grows as
    base_delay * backoff_factor ** (attempt - 1), e.g. 1s, 2s, 4s.
    """
    if retry_after is not None:
        delay = retry_after
    else:
        delay = min(config.base_delay * config.backoff_factor ** (attempt - 1), config.max_delay)
    return max(delay, config.min_delay)


@dataclass
class RetryState:
    """Per-call bookkeeping, discarded once the call is terminal."""
    attempts: int = 0
    last_outcome: Optional[CallOutcome] = None
    next_wait: float = 0.0
    waits: List[float] = field(default_factory=list)

    @property
    def retries(self) -> int:
        return max(self.attempts - 1, 0)


@dataclass(frozen=True)
class RetryResult:
    outcome: CallOutcome
    state: RetryState
    reason: Optional[FailureReason] = None

    @property
    def ok(self) -> bool:
        return self.reason is None

    @property
    def detail(self) -> str:
        outcome = self.outcome
        if isinstance(outcome, OtherError):
            status = f"HTTP {outcome.status}: " if outcome.status is not None else ""
            return f"{status}{outcome.detail}".strip()
        if isinstance(outcome, NotFound):
            return f"not found: {outcome.detail}".strip()
        if isinstance(outcome, RateLimited):
            return f"rate limited after {self.state.attempts} attempts"
        return ""


class RetryPolicy:
    """
    Wraps a single remote call with bounded retries on rate-limit signals.

    Holds no per-call state, so one instance can serve many workers at once.
    """

    def __init__(
        self,
        config: Optional[RetryConfig] = None,
        sleep: Callable[[float], None] = time.sleep,
        limiter: Optional[RequestRateLimiter] = None,
        shared_cooldown: bool = False,
    ):
        """
        Args:
            config: Attempt and backoff settings
            sleep: Used for backoff waits
            limiter: Paces every attempt
            shared_cooldown: Publish server Retry-After to limiter, holding
                every other worker for the same window
        """
        self.config = config or RetryConfig()
        self.sleep = sleep
        self.limiter = limiter
        self.shared_cooldown = shared_cooldown

    def execute(
        self,
        operation: Callable[[], CallOutcome],
        *,
        idempotent_not_found: bool = False,
        description: str = "call",
    ) -> RetryResult:
        """
        Run operation until it succeeds, fails for good, or runs out of attempts.

        Args:
            operation: Zero-argument callable performing one remote call
            idempotent_not_found: Treat NotFound as success (used for deletes)
            description: Label for log messages

        Returns:
            RetryResult; reason is None on success
        """
        state = RetryState()
        max_attempts = self.config.max_attempts

        for attempt in range(1, max_attempts + 1):
            if self.limiter is not None:
                self.limiter.acquire()
            state.attempts = attempt
            outcome = operation()
            state.last_outcome = outcome

            if isinstance(outcome, Success):
                return RetryResult(outcome, state)

            if isinstance(outcome, NotFound):
                if idempotent_not_found:
                    logger.debug(f"{description}: nothing to delete, treating as done")
                    return RetryResult(outcome, state)
                return RetryResult(outcome, state, FailureReason.REMOTE_ERROR)

            if not isinstance(outcome, RateLimited):
                logger.error(f"{description} failed: {RetryResult(outcome, state).detail}")
                return RetryResult(outcome, state, FailureReason.REMOTE_ERROR)

            if attempt == max_attempts:
                logger.error(f"{description} still rate limited after {max_attempts} attempts")
                return RetryResult(outcome, state, FailureReason.RATE_LIMIT_EXHAUSTED)

            delay = compute_backoff(attempt, self.config, outcome.retry_after)
            state.next_wait = delay
            state.waits.append(delay)
            if self.shared_cooldown and self.limiter is not None and outcome.retry_after is not None:
                self.limiter.defer(outcome.retry_after)

            logger.warning(
                f"{description} rate limited on attempt {attempt}/{max_attempts}. "
                f"Retrying in {delay:.1f}s..."
            )
            self.sleep(delay)

        # max_attempts >= 1 so the loop always returns
        raise AssertionError("unreachable")
