"""retry_while unit tests.

Test coverage:
- Argument validation (predicate, step, timeout)
- Success on first check and after some retries
- Timeout detection
- Configured defaults
"""

from __future__ import annotations

import math
import time

import pytest

from hostexec.errors import OptionsValidationError
from hostexec.runtime.polling import retry_while, validate_poll_options


class TestValidation:
    """Test argument validation."""

    @pytest.mark.parametrize("predicate", [1, "text", {}, [], True, None])
    def test_predicate_must_be_callable(self, predicate):
        with pytest.raises(TypeError):
            retry_while(predicate)

    @pytest.mark.parametrize("step", ["sometext", {}, math.inf, float("nan"), 0, -1, True])
    def test_step_must_be_finite_positive(self, step):
        with pytest.raises(OptionsValidationError):
            retry_while(lambda: False, step=step)

    @pytest.mark.parametrize("timeout", ["sometext", {}, float("nan"), 0, -5, False])
    def test_timeout_must_be_positive_or_inf(self, timeout):
        with pytest.raises(OptionsValidationError):
            retry_while(lambda: False, timeout=timeout)

    @pytest.mark.parametrize("timeout", [1, 0.5, math.inf])
    def test_valid_timeouts(self, timeout):
        assert retry_while(lambda: False, timeout=timeout) is True

    def test_validation_happens_before_any_check(self):
        calls = []

        def predicate():
            calls.append(1)
            return False

        with pytest.raises(OptionsValidationError):
            retry_while(predicate, step="bad")
        assert calls == []

    def test_defaults_from_config(self, monkeypatch):
        from hostexec.config import reload_config

        monkeypatch.setenv("HOSTEXEC_POLL_STEP", "0.2")
        monkeypatch.setenv("HOSTEXEC_POLL_TIMEOUT", "inf")
        reload_config()
        assert validate_poll_options(lambda: False, None, None) == (0.2, math.inf)


class TestRetryWhile:
    """Test polling behavior."""

    def test_returns_true_on_first_check(self):
        calls = []

        def predicate():
            calls.append(1)
            return False

        assert retry_while(predicate, step=1) is True
        assert len(calls) == 1

    def test_non_true_values_stop_the_loop(self):
        # only the value True keeps retrying
        for value in (None, 0, 1, "yes", [True]):
            assert retry_while(lambda: value, step=0.01, timeout=1) is True

    def test_times_out(self):
        start = time.monotonic()
        assert retry_while(lambda: True, step=0.1, timeout=0.3) is False
        elapsed = time.monotonic() - start
        assert 0.25 <= elapsed < 1.5

    def test_condition_reached_in_time(self):
        deadline = time.monotonic() + 0.5
        assert retry_while(lambda: time.monotonic() <= deadline, step=0.1, timeout=3) is True
        assert time.monotonic() > deadline

    def test_fractional_step(self):
        values = iter([True, True, False])
        start = time.monotonic()
        assert retry_while(lambda: next(values), step=0.05, timeout=2) is True
        assert time.monotonic() - start < 1.0
