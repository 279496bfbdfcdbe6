"""Signal translation and delivery tests.

Test coverage:
- Number <-> name translation
- kill() with numbers, names and signal.Signals members
- kill() never raising on bad pids or unknown signals
- Liveness probe with signal 0
"""

from __future__ import annotations

import os
import signal

import pytest

from conftest import posix_only

from hostexec.errors import OptionsValidationError, UnknownSignalError
from hostexec.runtime.signals import SIGNAL_NAMES, kill, signal_name, signal_number


# =============================================================================
# Translation Tests
# =============================================================================


class TestTranslation:
    """Test number/name translation."""

    def test_table_is_sparse_and_bounded(self):
        assert 7 not in SIGNAL_NAMES
        assert 29 not in SIGNAL_NAMES
        assert min(SIGNAL_NAMES) == 1
        assert max(SIGNAL_NAMES) == 31

    def test_signal_name(self):
        assert signal_name(9) == "SIGKILL"
        assert signal_name(15) == "SIGTERM"
        assert signal_name(2) == "SIGINT"

    def test_signal_name_unknown(self):
        with pytest.raises(UnknownSignalError):
            signal_name(7)
        with pytest.raises(UnknownSignalError):
            signal_name(64)

    def test_unknown_signal_is_validation_error(self):
        with pytest.raises(OptionsValidationError):
            signal_name(99)

    def test_signal_number_from_name(self):
        assert signal_number("SIGKILL") == signal.SIGKILL
        assert signal_number("kill") == signal.SIGKILL
        assert signal_number("TERM") == signal.SIGTERM

    def test_signal_number_from_number_uses_table_name(self):
        # the table name is resolved on the running host
        assert signal_number(15) == signal.SIGTERM
        assert signal_number(9) == signal.SIGKILL

    def test_signal_number_zero(self):
        assert signal_number(0) == 0

    def test_signal_number_from_enum(self):
        assert signal_number(signal.SIGUSR1) == signal.SIGUSR1

    @pytest.mark.parametrize("value", ["SIGNOPE", "SIG_DFL", 1.5, None, True])
    def test_signal_number_rejects(self, value):
        with pytest.raises(UnknownSignalError):
            signal_number(value)


# =============================================================================
# Delivery Tests
# =============================================================================


@posix_only
class TestKill:
    """Test kill()."""

    @pytest.mark.parametrize("number", sorted(SIGNAL_NAMES))
    def test_never_raises_for_invalid_pid(self, number: int, nonexistent_pid: int):
        assert kill(nonexistent_pid, number) is False

    @pytest.mark.parametrize("pid", [-1, 1.5, "123", None, True, float("inf")])
    def test_invalid_pid_returns_false(self, pid):
        assert kill(pid, 0) is False

    def test_unknown_signal_returns_false(self):
        assert kill(os.getpid(), "SIGNOPE") is False

    def test_probe_own_process(self):
        assert kill(os.getpid(), 0) is True

    def test_probe_does_not_change_state(self, sleeper):
        proc = sleeper("10")
        assert kill(proc.pid, 0) is True
        assert proc.poll() is None
        assert kill(proc.pid, 0) is True

    def test_probe_reports_gone_process(self, sleeper):
        proc = sleeper("10")
        proc.kill()
        proc.wait()
        assert kill(proc.pid, 0) is False

    def test_deliver_by_name(self, trap_child):
        proc = trap_child("--signal", "SIGUSR2")
        assert kill(proc.pid, "SIGUSR2") is True
        assert proc.wait(timeout=5) == signal.SIGUSR2

    def test_deliver_by_number(self, trap_child):
        # 6 is SIGIOT (SIGABRT) on every supported host
        proc = trap_child("--signal", "SIGABRT")
        assert kill(proc.pid, 6) is True
        assert proc.wait(timeout=5) == signal.SIGABRT

    def test_deliver_by_enum(self, trap_child):
        proc = trap_child("--signal", "SIGUSR1")
        assert kill(proc.pid, signal.SIGUSR1) is True
        assert proc.wait(timeout=5) == signal.SIGUSR1

    def test_default_signal_is_sigint(self, trap_child):
        proc = trap_child("--signal", "SIGINT")
        assert kill(proc.pid) is True
        assert proc.wait(timeout=5) == signal.SIGINT

    def test_sigkill(self, sleeper):
        proc = sleeper("10")
        assert kill(proc.pid, "SIGKILL") is True
        assert proc.wait(timeout=5) == -signal.SIGKILL

    def test_permission_denied_returns_false(self):
        import psutil

        if os.geteuid() == 0 or psutil.Process(1).uids().real == os.getuid():
            pytest.skip("pid 1 is signalable by the current user")
        assert kill(1, "SIGCONT") is False

    def test_configured_default_signal(self, trap_child, monkeypatch):
        from hostexec.config import reload_config

        monkeypatch.setenv("HOSTEXEC_KILL_SIGNAL", "usr2")
        reload_config()
        proc = trap_child("--signal", "SIGUSR2")
        assert kill(proc.pid) is True
        assert proc.wait(timeout=5) == signal.SIGUSR2
