"""Signal name/number translation and delivery.

hostexec runtime module v0.1.0

The numeric table below is fixed and follows the BSD numbering; numeric
input is always translated to a name first and the name is then resolved on
the running host through the ``signal`` module. Real-time signals are not
part of the table.
"""

from __future__ import annotations

import logging
import os
import signal as _signal
from typing import Union

from ..config import get_config
from ..errors import UnknownSignalError

__all__ = [
    "SIGNAL_NAMES",
    "kill",
    "signal_name",
    "signal_number",
]

logger = logging.getLogger(__name__)

SIGNAL_NAMES: dict[int, str] = {
    1: "SIGHUP",
    2: "SIGINT",
    3: "SIGQUIT",
    4: "SIGILL",
    5: "SIGTRAP",
    6: "SIGIOT",
    8: "SIGFPE",
    9: "SIGKILL",
    10: "SIGBUS",
    11: "SIGSEGV",
    12: "SIGSYS",
    13: "SIGPIPE",
    14: "SIGALRM",
    15: "SIGTERM",
    16: "SIGURG",
    17: "SIGSTOP",
    18: "SIGTSTP",
    19: "SIGCONT",
    20: "SIGCHLD",
    21: "SIGTTIN",
    22: "SIGTTOU",
    23: "SIGIO",
    24: "SIGXCPU",
    25: "SIGXFSZ",
    26: "SIGVTALRM",
    27: "SIGPROF",
    28: "SIGWINCH",
    30: "SIGUSR1",
    31: "SIGUSR2",
}

SignalSpec = Union[int, str, _signal.Signals]


def signal_name(number: int) -> str:
    """Translate a signal number from the table into its canonical name.

    Raises:
        UnknownSignalError: If the number is not in the table
    """
    if isinstance(number, bool) or number not in SIGNAL_NAMES:
        raise UnknownSignalError(number)
    return SIGNAL_NAMES[number]


def signal_number(sig: SignalSpec) -> int:
    """Resolve a signal name or number to the host's signal number.

    ``0`` is accepted and returned as-is (liveness probe).

    Raises:
        UnknownSignalError: If the signal cannot be resolved on this host
    """
    if isinstance(sig, _signal.Signals):
        return int(sig)
    if isinstance(sig, bool):
        raise UnknownSignalError(sig)
    if isinstance(sig, int):
        if sig == 0:
            return 0
        sig = signal_name(sig)
    if not isinstance(sig, str):
        raise UnknownSignalError(sig)

    name = sig.strip().upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    value = getattr(_signal, name, None)
    if name.startswith("SIG_") or not isinstance(value, int):
        raise UnknownSignalError(sig)
    return int(value)


def _to_delivery_name(sig: SignalSpec) -> SignalSpec:
    # Signals members carry the host name; plain ints go through the table
    if isinstance(sig, _signal.Signals):
        return sig.name
    if isinstance(sig, int) and not isinstance(sig, bool) and sig in SIGNAL_NAMES:
        return SIGNAL_NAMES[sig]
    return sig


def kill(pid: int, sig: SignalSpec | None = None) -> bool:
    """Send a signal to a process.

    Args:
        pid: Process ID (non-negative integer)
        sig: Signal number, name ('SIGKILL' or 'KILL') or ``signal.Signals``.
            ``0`` only checks whether the process is addressable. Defaults
            to the configured kill signal (SIGINT).

    Returns:
        True if the signal was delivered, False otherwise. Delivery errors
        are never raised.
    """
    if isinstance(pid, bool) or not isinstance(pid, int) or pid < 0:
        return False
    if sig is None:
        sig = get_config().kill_signal

    try:
        signum = signal_number(_to_delivery_name(sig))
    except UnknownSignalError as e:
        logger.debug(f"Cannot deliver signal to pid={pid}: {e}")
        return False

    try:
        os.kill(pid, signum)
    except (ProcessLookupError, PermissionError) as e:
        logger.debug(f"Signal {signum} not delivered to pid={pid}: {e}")
        return False
    except (OSError, OverflowError, ValueError) as e:
        logger.debug(f"kill failed for pid={pid} signal={signum}: {e}")
        return False
    return True
