"""Async adapters for callers running inside an event loop.

run_program and ProcessHandle.wait block the calling thread; these wrappers
move the blocking part onto an anyio worker thread so the loop keeps
running. retry_while_async keeps the polling semantics of retry_while but
sleeps with anyio.sleep.
"""

from __future__ import annotations

import functools
import logging
import time
from collections.abc import Callable
from typing import Any

import anyio

from .runtime.options import Args, RunOptions
from .runtime.polling import validate_poll_options
from .runtime.runner import ExecutionResult, run_program
from .runtime.spawner import ProcessHandle

__all__ = [
    "retry_while_async",
    "run_program_async",
    "wait_process",
]

logger = logging.getLogger(__name__)


async def run_program_async(
    command: str,
    args: Args = None,
    options: RunOptions | None = None,
    **kwargs: Any,
) -> str | ExecutionResult:
    """Awaitable run_program; same arguments, result and errors."""
    call = functools.partial(run_program, command, args, options, **kwargs)
    return await anyio.to_thread.run_sync(call)


async def wait_process(handle: ProcessHandle, timeout: float | None = None) -> bool:
    """Await termination of a spawned process.

    Returns:
        False if `timeout` seconds elapsed first
    """
    if not handle.running:
        return True
    return await anyio.to_thread.run_sync(handle.wait, timeout)


async def retry_while_async(
    predicate: Callable[[], Any],
    step: float | None = None,
    timeout: float | None = None,
) -> bool:
    """Async variant of retry_while.

    `predicate` is a plain callable; it is called on the event loop thread.
    """
    step, timeout = validate_poll_options(predicate, step, timeout)

    start = time.monotonic()
    while predicate() is True:
        if time.monotonic() - start >= timeout:
            logger.debug(f"retry_while_async gave up after {timeout}s")
            return False
        await anyio.sleep(step)
    return True
