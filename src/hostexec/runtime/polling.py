"""Bounded polling loop.

hostexec runtime module v0.1.0

retry_while blocks the calling thread between checks; it is meant for
sequential scripting ("wait until the port is open"), not for high-throughput
orchestration. Timeouts are detected by comparing elapsed monotonic time
between sleeps.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from typing import Any

from ..config import get_config
from ..errors import OptionsValidationError

__all__ = ["retry_while", "validate_poll_options"]

logger = logging.getLogger(__name__)


def _is_real(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def validate_poll_options(
    predicate: Any,
    step: Any,
    timeout: Any,
) -> tuple[float, float]:
    """Validate retry_while arguments and fill in configured defaults.

    Returns:
        Tuple of (step, timeout) as floats; timeout may be math.inf

    Raises:
        OptionsValidationError: If predicate is not callable, step is not a
            finite positive number, or timeout is neither a finite positive
            number nor math.inf
    """
    if not callable(predicate):
        raise OptionsValidationError(
            f"predicate must be callable, got {type(predicate).__name__}"
        )

    config = get_config()
    if step is None:
        step = config.poll_step
    if timeout is None:
        timeout = config.poll_timeout

    if not _is_real(step) or not math.isfinite(step) or step <= 0:
        raise OptionsValidationError(f"step must be a finite positive number, got {step!r}")
    if not _is_real(timeout) or math.isnan(timeout) or timeout <= 0:
        raise OptionsValidationError(
            f"timeout must be a finite positive number or math.inf, got {timeout!r}"
        )
    return float(step), float(timeout)


def retry_while(
    predicate: Callable[[], Any],
    step: float | None = None,
    timeout: float | None = None,
) -> bool:
    """Keep calling `predicate` while it returns True.

    Args:
        predicate: Zero-argument callable; any result other than True stops
            the loop
        step: Seconds to sleep between checks (fractions allowed)
        timeout: Seconds before giving up, or math.inf for no limit

    Returns:
        True if the predicate stopped returning True in time, False on timeout
    """
    step, timeout = validate_poll_options(predicate, step, timeout)

    start = time.monotonic()
    while predicate() is True:
        if time.monotonic() - start >= timeout:
            logger.debug(f"retry_while gave up after {timeout}s")
            return False
        time.sleep(step)
    return True
