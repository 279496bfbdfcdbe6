"""Blocking command execution with captured output.

hostexec runtime module v0.1.0

This module provides:
- run_program: run a command line to completion and return its stdout
- Failure classification (exit code vs terminating signal)
- Optional structured results instead of exceptions (retrieve_std_streams)

Key design points:
- The command line goes through the system shell, so builtins and
  redirections written by the caller keep working ('exit 2', 'foo >&2')
- The caller blocks on Popen.communicate, a real wait on the child
- Pipes are owned for the duration of the call and closed on every path
"""

from __future__ import annotations

import logging
import shlex
import signal as _signal
import subprocess
from contextlib import ExitStack
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any

from ..errors import ProgramExecutionError
from .options import (
    Args,
    RunOptions,
    build_env,
    coerce_options,
    resolve_args,
    resolve_identity,
)

__all__ = [
    "ExecutionResult",
    "build_command_line",
    "describe_returncode",
    "run_program",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExecutionResult:
    """Outcome of a completed command.

    Attributes:
        stdout: Captured standard output
        stderr: Captured standard error
        code: Exit code (128 + signal number when terminated by a signal)
        signal: Terminating signal name, None for a normal exit
    """

    stdout: str
    stderr: str
    code: int
    signal: str | None = None

    @property
    def ok(self) -> bool:
        return self.code == 0 and self.signal is None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"stdout": self.stdout, "stderr": self.stderr, "code": self.code}
        if self.signal is not None:
            data["signal"] = self.signal
        return data


def describe_returncode(returncode: int) -> tuple[int, str | None]:
    """Map a Popen-style returncode to (code, signal name).

    Negative returncodes mean the child was killed by a signal; the code then
    follows the POSIX shell convention of 128 + signal number.
    """
    if returncode >= 0:
        return returncode, None
    signum = -returncode
    try:
        name = _signal.Signals(signum).name
    except ValueError:
        name = f"SIG{signum}"
    return 128 + signum, name


def build_command_line(command: str, args: Args = None) -> str:
    """Build the shell command line for `command` and `args`.

    Sequence args are quoted one by one; a string is appended as written.
    """
    if not isinstance(command, str) or not command:
        raise TypeError(f"command must be a non-empty string, got {command!r}")
    parts = [shlex.quote(command)]
    if isinstance(args, str):
        if args.strip():
            parts.append(args)
    else:
        parts.extend(shlex.quote(arg) for arg in resolve_args(args))
    return " ".join(parts)


def _build_popen_kwargs(
    options: RunOptions,
    uid: int | None,
    gid: int | None,
) -> dict[str, Any]:
    kwargs: dict[str, Any] = {"shell": True}
    if options.cwd is not None:
        kwargs["cwd"] = str(options.cwd)
    env = build_env(options.env)
    if env is not None:
        kwargs["env"] = env
    if uid is not None:
        kwargs["user"] = uid
    if gid is not None:
        kwargs["group"] = gid
    return kwargs


def _open_output_file(stack: ExitStack, path: str | Path | None) -> IO[bytes] | None:
    if path is None:
        return None
    return stack.enter_context(open(path, "wb"))


def _decode(data: bytes | None) -> str:
    if not data:
        return ""
    return data.decode("utf-8", errors="replace")


def run_program(
    command: str,
    args: Args = None,
    options: RunOptions | None = None,
    **kwargs: Any,
) -> str | ExecutionResult:
    """Run a program to completion.

    Args:
        command: Program name or path (shell builtins work too)
        args: Argument list, or a string appended to the command line as-is
        options: RunOptions; alternatively pass its fields as keywords

    Returns:
        Captured stdout on success, or an ExecutionResult when
        retrieve_std_streams is set

    Raises:
        ProgramExecutionError: On non-zero exit or signal termination
            (unless retrieve_std_streams is set)
        PermissionError: If the caller cannot switch to the requested identity
        OptionsValidationError: On malformed options
    """
    opts: RunOptions = coerce_options(options, kwargs, RunOptions)
    cmdline = build_command_line(command, args)
    uid, gid = resolve_identity(opts.run_as, opts.uid, opts.gid)

    if opts.log_command and opts.logger is not None:
        opts.logger.debug(f"Executing program: {cmdline}")

    stdin_bytes = opts.input_bytes
    popen_kwargs = _build_popen_kwargs(opts, uid, gid)

    with ExitStack() as stack:
        # an unusable output path fails before the command runs
        stdout_file = _open_output_file(stack, opts.stdout_file)
        stderr_file = _open_output_file(stack, opts.stderr_file)

        with subprocess.Popen(
            cmdline,
            stdin=subprocess.PIPE if stdin_bytes is not None else subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            **popen_kwargs,
        ) as process:
            logger.debug(f"Started program pid={process.pid} cmd={cmdline!r}")
            try:
                stdout_bytes, stderr_bytes = process.communicate(stdin_bytes)
            except BaseException:
                process.kill()
                process.wait()
                raise
            returncode = process.returncode

        if stdout_file is not None:
            stdout_file.write(stdout_bytes)
        if stderr_file is not None:
            stderr_file.write(stderr_bytes)

    stdout = _decode(stdout_bytes)
    stderr = _decode(stderr_bytes)
    code, signal_name = describe_returncode(returncode)

    logger.debug(
        f"Program finished pid={process.pid} code={code} signal={signal_name}"
    )

    if opts.retrieve_std_streams:
        return ExecutionResult(stdout=stdout, stderr=stderr, code=code, signal=signal_name)

    if code == 0 and signal_name is None:
        return stdout

    if stderr.strip():
        message = stderr.strip()
    elif signal_name is not None:
        message = f"Program terminated by signal {signal_name}"
    else:
        message = f"Program exited with exit code {code}"

    raise ProgramExecutionError(
        message,
        command=cmdline,
        stdout=stdout,
        stderr=stderr,
        code=code,
        signal=signal_name,
    )
