"""Tests for the retry-with-timeout budget."""

import threading
import time
from unittest.mock import patch

import pytest

from shipyard.errors import CommandFailedError, TimeoutExceededError
from shipyard.process import run_command
from shipyard.retry import retry_with_timeout


class Flaky:
    """Callable failing a fixed number of times before succeeding."""

    def __init__(self, failures: int) -> None:
        self.failures = failures
        self.calls = 0
        self.budgets: list[float] = []

    def __call__(self, remaining: float) -> str:
        self.calls += 1
        self.budgets.append(remaining)
        if self.calls <= self.failures:
            raise RuntimeError(f"attempt {self.calls} failed")
        return "done"


class TestRetryWithTimeout:
    """Tests for retry_with_timeout."""

    def test_first_attempt_succeeds(self):
        """Should return the result after a single call."""
        op = Flaky(0)
        assert retry_with_timeout(3, 10, op) == "done"
        assert op.calls == 1

    @pytest.mark.parametrize("failures", [1, 2, 4])
    def test_succeeds_after_failures(self, failures):
        """An op failing k times then succeeding is called k+1 times."""
        op = Flaky(failures)
        assert retry_with_timeout(5, 10, op) == "done"
        assert op.calls == failures + 1

    def test_always_failing_is_called_max_attempts_times(self):
        """Should stop after max_attempts and re-raise the last error."""
        op = Flaky(100)
        with pytest.raises(RuntimeError, match="attempt 3 failed"):
            retry_with_timeout(3, 10, op)
        assert op.calls == 3

    def test_single_attempt_does_not_retry(self):
        """max_attempts=1 means exactly one call."""
        op = Flaky(1)
        with pytest.raises(RuntimeError):
            retry_with_timeout(1, 10, op)
        assert op.calls == 1

    def test_rejects_zero_attempts(self):
        """Should refuse a budget without attempts."""
        with pytest.raises(ValueError):
            retry_with_timeout(0, 10, Flaky(0))

    def test_attempts_receive_shrinking_budget(self):
        """Each attempt is told how many seconds are left."""
        op = Flaky(2)
        retry_with_timeout(3, 10, op)
        assert all(0 < budget <= 10 for budget in op.budgets)
        assert op.budgets == sorted(op.budgets, reverse=True)

    def test_timeout_from_attempt_becomes_budget_timeout(self):
        """An attempt timing out ends the budget with TimeoutExceededError."""
        calls = []

        def op(remaining):
            calls.append(remaining)
            raise TimeoutExceededError(remaining)

        with pytest.raises(TimeoutExceededError) as exc_info:
            retry_with_timeout(3, 0.2, op)
        assert exc_info.value.code == "timeout_exceeded"
        assert exc_info.value.timeout == 0.2
        assert len(calls) == 1

    def test_hung_command_is_killed_at_deadline(self):
        """A hung child process is killed and no worker thread is left behind."""
        threads_before = threading.active_count()
        start = time.monotonic()
        with pytest.raises(TimeoutExceededError):
            retry_with_timeout(
                1, 0.2, lambda remaining: run_command(["sleep", "5"], timeout=remaining)
            )
        assert time.monotonic() - start < 2
        assert threading.active_count() == threads_before

    def test_timeout_carries_last_error(self):
        """The timeout error should wrap the last attempt's failure."""
        calls = []

        def op(remaining):
            calls.append(1)
            if len(calls) == 1:
                raise CommandFailedError("yum install", 1, "first failure")
            raise TimeoutExceededError(remaining)

        with pytest.raises(TimeoutExceededError) as exc_info:
            retry_with_timeout(5, 10, op)
        assert isinstance(exc_info.value.last_error, CommandFailedError)
        assert "yum install" in str(exc_info.value)

    def test_deadline_passed_between_attempts(self):
        """No attempt starts once the budget is spent."""
        op = Flaky(100)
        with patch("shipyard.retry.time") as clock:
            clock.monotonic.side_effect = [0.0, 0.0, 11.0]
            with pytest.raises(TimeoutExceededError) as exc_info:
                retry_with_timeout(5, 10, op)
        assert op.calls == 1
        assert isinstance(exc_info.value.last_error, RuntimeError)

    def test_backoff_sleeps_between_attempts(self):
        """Should sleep between attempts but not after the last one."""
        op = Flaky(100)
        with patch("shipyard.retry.time.sleep") as sleep:
            with pytest.raises(RuntimeError):
                retry_with_timeout(3, 60, op, backoff=0.5)
        assert sleep.call_count == 2
        for call in sleep.call_args_list:
            assert 0 <= call.args[0] <= 0.5
