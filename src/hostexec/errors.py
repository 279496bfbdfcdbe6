"""hostexec 异常类。

hostexec errors v0.1.0

- OptionsValidationError: 参数/选项格式错误，立即抛出，不重试
- ProgramExecutionError: run_program 子进程失败（非零退出码或被信号终止）
- ProcessTimeoutError: spawn_async(wait=True, throw_on_timeout=True) 超时
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "HostExecError",
    "OptionsValidationError",
    "UnsupportedFiltererError",
    "UnknownSignalError",
    "ProgramExecutionError",
    "ProcessTimeoutError",
]


class HostExecError(Exception):
    """hostexec 基础异常。"""
    pass


class OptionsValidationError(HostExecError, TypeError):
    """选项校验失败（如 step/timeout 非有限数值）。"""
    pass


class UnsupportedFiltererError(OptionsValidationError):
    """ps() 收到无法处理的 filterer 类型。

    Attributes:
        filterer: 原始 filterer 对象
    """

    def __init__(self, filterer: Any) -> None:
        self.filterer = filterer
        super().__init__(
            f"Don't know how to handle filterer of type {type(filterer).__name__}"
        )


class UnknownSignalError(OptionsValidationError):
    """信号名称或编号无法识别。"""

    def __init__(self, signal: Any) -> None:
        self.signal = signal
        super().__init__(f"Unknown signal: {signal!r}")


class ProgramExecutionError(HostExecError):
    """子进程以非零退出码结束或被信号终止。

    Attributes:
        command: 执行的命令行
        stdout: 捕获的标准输出
        stderr: 捕获的标准错误
        code: 退出码（被信号终止时为 128 + 信号编号）
        signal: 终止信号名称（正常退出时为 None）
    """

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        stdout: str = "",
        stderr: str = "",
        code: int | None = None,
        signal: str | None = None,
    ) -> None:
        self.command = command
        self.stdout = stdout
        self.stderr = stderr
        self.code = code
        self.signal = signal
        super().__init__(message)


class ProcessTimeoutError(HostExecError, TimeoutError):
    """等待子进程超时。

    Attributes:
        timeout: 超时时间（秒）
        handler: 仍然存活的 ProcessHandle
    """

    def __init__(self, timeout: float, handler: Any = None) -> None:
        self.timeout = timeout
        self.handler = handler
        super().__init__(f"Exceeded timeout of {timeout} seconds")
