"""hostexec - 主机进程执行与监管。

环境变量:
    HOSTEXEC_LOG_COMMANDS: 默认是否记录命令 (默认 true)
    HOSTEXEC_POLL_STEP: retry_while 默认轮询间隔 (默认 0.5)
    HOSTEXEC_POLL_TIMEOUT: retry_while 默认超时 (默认 30)

用法:
    from hostexec import run_program, spawn_async
    run_program("echo", ["foo"])  # => "foo\\n"
"""

__version__ = "0.1.0"

from .errors import (
    HostExecError,
    OptionsValidationError,
    ProcessTimeoutError,
    ProgramExecutionError,
    UnknownSignalError,
    UnsupportedFiltererError,
)
from .runtime import (
    ExecutionResult,
    ProcessHandle,
    ProcessRecord,
    RunOptions,
    SpawnOptions,
    SpawnResult,
    find_in_path,
    is_in_path,
    kill,
    pid_find,
    ps,
    retry_while,
    run_program,
    running_as_root,
    spawn_async,
)

__all__ = [
    "__version__",
    "ExecutionResult",
    "HostExecError",
    "OptionsValidationError",
    "ProcessHandle",
    "ProcessRecord",
    "ProcessTimeoutError",
    "ProgramExecutionError",
    "RunOptions",
    "SpawnOptions",
    "SpawnResult",
    "UnknownSignalError",
    "UnsupportedFiltererError",
    "find_in_path",
    "is_in_path",
    "kill",
    "pid_find",
    "ps",
    "retry_while",
    "run_program",
    "running_as_root",
    "spawn_async",
]
