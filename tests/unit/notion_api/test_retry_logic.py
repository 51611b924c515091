"""Unit tests for notion_api.retry_logic module."""

import pytest
from unittest.mock import MagicMock

from notation.notion_api.errors import PermanentAPIFailure, RateLimited, TransientNetworkFailure
from notation.notion_api.retry_logic import RetryPolicy, is_transient_status, retry_on_transient


def make_policy(**kwargs):
    sleeps = []
    policy = RetryPolicy(jitter=0.0, sleep=sleeps.append, **kwargs)
    return policy, sleeps


class TestRetryPolicy:
    """Test cases for backoff computation."""

    def test_backoff_doubles(self):
        policy, _ = make_policy(base_delay=1.0)
        assert [policy.backoff(n) for n in range(4)] == [1.0, 2.0, 4.0, 8.0]

    def test_backoff_is_capped(self):
        policy, _ = make_policy(base_delay=1.0, max_delay=5.0)
        assert policy.backoff(10) == 5.0

    def test_jitter_adds_bounded_delay(self):
        policy = RetryPolicy(base_delay=1.0, jitter=0.5)
        for _ in range(20):
            assert 1.0 <= policy.backoff(0) <= 1.5

    def test_retry_after_takes_precedence(self):
        """A 429 Retry-After value replaces the computed backoff."""
        policy, _ = make_policy(base_delay=1.0)
        assert policy.delay_for(RateLimited(retry_after=7.0), 0) == 7.0

    def test_rate_limited_without_hint_uses_backoff(self):
        policy, _ = make_policy(base_delay=1.0)
        assert policy.delay_for(RateLimited(), 2) == 4.0


class TestRetryOnTransient:
    """Test cases for retry_on_transient function."""

    def test_success_on_first_attempt(self):
        """retry_on_transient returns the result without sleeping."""
        policy, sleeps = make_policy()
        func = MagicMock(return_value="ok")

        assert retry_on_transient(func, "a", key="b", policy=policy) == "ok"
        func.assert_called_once_with("a", key="b")
        assert sleeps == []

    def test_retries_rate_limit_with_retry_after(self):
        """429 with retry-after N twice, then success: waits N before each retry."""
        policy, sleeps = make_policy()
        func = MagicMock(side_effect=[RateLimited(retry_after=2.0), RateLimited(retry_after=2.0), "ok"])

        assert retry_on_transient(func, policy=policy) == "ok"
        assert func.call_count == 3
        assert sleeps == [2.0, 2.0]

    def test_retries_transient_failures_with_backoff(self):
        policy, sleeps = make_policy(base_delay=1.0)
        func = MagicMock(side_effect=[TransientNetworkFailure("502", status=502), "ok"])

        assert retry_on_transient(func, policy=policy) == "ok"
        assert sleeps == [1.0]

    def test_gives_up_after_max_attempts(self):
        """The last transient error propagates once the ceiling is reached."""
        policy, sleeps = make_policy(max_attempts=3)
        func = MagicMock(side_effect=TransientNetworkFailure("down"))

        with pytest.raises(TransientNetworkFailure):
            retry_on_transient(func, policy=policy)

        assert func.call_count == 3
        assert len(sleeps) == 2

    def test_permanent_failure_not_retried(self):
        policy, sleeps = make_policy()
        func = MagicMock(side_effect=PermanentAPIFailure(400, "validation_error"))

        with pytest.raises(PermanentAPIFailure):
            retry_on_transient(func, policy=policy)

        func.assert_called_once()
        assert sleeps == []

    def test_on_retry_callback_invoked_per_retry(self):
        seen = []
        policy = RetryPolicy(jitter=0.0, sleep=lambda s: None, on_retry=seen.append)
        func = MagicMock(side_effect=[RateLimited(), RateLimited(), "ok"])

        retry_on_transient(func, policy=policy)

        assert len(seen) == 2


class TestIsTransientStatus:

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_transient(self, status):
        assert is_transient_status(status) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 409])
    def test_permanent(self, status):
        assert is_transient_status(status) is False
