from typing import List

import pytest

from megaverse.schemas import (FailureReason, NotFound, OtherError, RateLimited,
                               Success)
from megaverse.utils.retry import (RetryConfig, RetryPolicy, compute_backoff)


class ScriptedCall:
    """Returns the scripted outcomes in order, repeating the last one."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if len(self.outcomes) > 1:
            return self.outcomes.pop(0)
        return self.outcomes[0]


class RecordingLimiter:
    def __init__(self):
        self.acquired = 0
        self.deferred: List[float] = []

    def acquire(self):
        self.acquired += 1

    def defer(self, seconds):
        self.deferred.append(seconds)


def test_success_returns_immediately(no_sleep):
    call = ScriptedCall([Success({"ok": True})])
    result = RetryPolicy(sleep=no_sleep).execute(call)

    assert result.ok
    assert result.outcome.payload == {"ok": True}
    assert call.calls == 1
    assert result.state.retries == 0
    assert no_sleep.waits == []


def test_retry_after_is_honored(no_sleep):
    call = ScriptedCall([RateLimited(retry_after=2.0), Success()])
    result = RetryPolicy(sleep=no_sleep).execute(call)

    assert result.ok
    assert call.calls == 2
    assert no_sleep.waits == [2.0]
    assert no_sleep.waits[0] >= 2.0


def test_exhaustion_stops_at_max_attempts(no_sleep):
    call = ScriptedCall([RateLimited()])
    result = RetryPolicy(RetryConfig(max_attempts=3), sleep=no_sleep).execute(call)

    assert not result.ok
    assert result.reason is FailureReason.RATE_LIMIT_EXHAUSTED
    assert call.calls == 3
    # Exponential backoff between attempts, no wait after the last one
    assert no_sleep.waits == [1.0, 2.0]
    assert result.state.attempts == 3


def test_two_rate_limits_then_success_counts_two_retries(no_sleep):
    call = ScriptedCall([RateLimited(), RateLimited(), Success({})])
    result = RetryPolicy(sleep=no_sleep).execute(call)

    assert result.ok
    assert result.state.retries == 2
    assert result.state.waits == [1.0, 2.0]
    assert result.state.next_wait == 2.0


def test_not_found_is_success_for_deletes(no_sleep):
    call = ScriptedCall([NotFound("gone")])
    result = RetryPolicy(sleep=no_sleep).execute(call, idempotent_not_found=True)

    assert result.ok
    assert call.calls == 1


def test_not_found_is_an_error_otherwise(no_sleep):
    call = ScriptedCall([NotFound("gone")])
    result = RetryPolicy(sleep=no_sleep).execute(call)

    assert result.reason is FailureReason.REMOTE_ERROR
    assert call.calls == 1


def test_other_errors_are_not_retried(no_sleep):
    call = ScriptedCall([OtherError(500, "server exploded"), Success()])
    result = RetryPolicy(sleep=no_sleep).execute(call)

    assert result.reason is FailureReason.REMOTE_ERROR
    assert call.calls == 1
    assert no_sleep.waits == []
    assert "500" in result.detail
    assert "server exploded" in result.detail


def test_retry_after_is_kept_local_by_default(no_sleep):
    limiter = RecordingLimiter()
    call = ScriptedCall([RateLimited(retry_after=3.0), Success()])
    result = RetryPolicy(sleep=no_sleep, limiter=limiter).execute(call)

    assert result.ok
    assert limiter.acquired == 2
    assert limiter.deferred == []
    assert no_sleep.waits == [3.0]


def test_shared_cooldown_publishes_retry_after(no_sleep):
    limiter = RecordingLimiter()
    call = ScriptedCall([RateLimited(retry_after=3.0), RateLimited(), Success()])
    result = RetryPolicy(sleep=no_sleep, limiter=limiter, shared_cooldown=True).execute(call)

    assert result.ok
    assert limiter.acquired == 3
    assert limiter.deferred == [3.0]


def test_compute_backoff_growth_and_bounds():
    config = RetryConfig(base_delay=1.0, backoff_factor=2.0, max_delay=5.0)
    assert [compute_backoff(n, config) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]
    # Server hints are not capped
    assert compute_backoff(1, config, retry_after=30.0) == 30.0

    floored = RetryConfig(base_delay=0.1, min_delay=0.5)
    assert compute_backoff(1, floored) == 0.5
    assert compute_backoff(1, floored, retry_after=0.0) == 0.5


def test_retry_config_requires_an_attempt():
    with pytest.raises(ValueError):
        RetryConfig(max_attempts=0)


def test_single_attempt_config_never_sleeps(no_sleep):
    call = ScriptedCall([RateLimited(retry_after=1.0)])
    result = RetryPolicy(RetryConfig(max_attempts=1), sleep=no_sleep).execute(call)

    assert result.reason is FailureReason.RATE_LIMIT_EXHAUSTED
    assert call.calls == 1
    assert no_sleep.waits == []
