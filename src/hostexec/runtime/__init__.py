"""Runtime module for process execution and supervision.

This module provides blocking command execution, non-blocking spawning with
live handles, signal delivery, process table queries and a polling loop.
"""

from __future__ import annotations

from .inspector import (
    AllProcesses,
    ByFields,
    ByPid,
    ByPredicate,
    Filterer,
    ProcessRecord,
    pid_find,
    ps,
)
from .options import (
    RunOptions,
    SpawnOptions,
    find_in_path,
    is_in_path,
    running_as_root,
)
from .polling import retry_while
from .runner import ExecutionResult, run_program
from .signals import SIGNAL_NAMES, kill, signal_name, signal_number
from .spawner import ProcessHandle, SpawnResult, spawn_async

__all__ = [
    "AllProcesses",
    "ByFields",
    "ByPid",
    "ByPredicate",
    "ExecutionResult",
    "Filterer",
    "ProcessHandle",
    "ProcessRecord",
    "RunOptions",
    "SIGNAL_NAMES",
    "SpawnOptions",
    "SpawnResult",
    "find_in_path",
    "is_in_path",
    "kill",
    "pid_find",
    "ps",
    "retry_while",
    "run_program",
    "running_as_root",
    "signal_name",
    "signal_number",
    "spawn_async",
]
