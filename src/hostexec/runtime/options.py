"""Execution options shared by the command runner and the async spawner.

hostexec runtime module v0.1.0

This module provides:
- Argument resolution (sequence or shell-quoted string)
- Identity resolution for running children as another user/group
- RunOptions / SpawnOptions with eager validation
- PATH lookup helpers
"""

from __future__ import annotations

import math
import os
import shlex
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Union

from ..config import get_config
from ..errors import OptionsValidationError

__all__ = [
    "RunOptions",
    "SpawnOptions",
    "build_env",
    "find_in_path",
    "is_in_path",
    "resolve_args",
    "resolve_identity",
    "running_as_root",
]

Args = Union[Sequence[str], str, None]
OutputCallback = Callable[[str], Any]


def resolve_args(args: Args) -> list[str]:
    """Normalize command arguments into a list.

    A string is split using shell-word rules so quoted groups survive:
    ``'-n "a b"'`` becomes ``['-n', 'a b']``.
    """
    if args is None:
        return []
    if isinstance(args, str):
        return shlex.split(args)
    if isinstance(args, (bytes, Mapping)) or not isinstance(args, Sequence):
        raise OptionsValidationError(
            f"args must be a string or a sequence of strings, got {type(args).__name__}"
        )
    return [str(arg) for arg in args]


def build_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
    """Merge environment additions over the current environment."""
    if env is None:
        return None
    return {**os.environ, **{str(k): str(v) for k, v in env.items()}}


def _lookup_uid(user: int | str) -> int:
    import pwd

    if isinstance(user, int):
        return user
    if user.isdigit():
        return int(user)
    try:
        return pwd.getpwnam(user).pw_uid
    except KeyError:
        raise OptionsValidationError(f"Unknown user: {user}") from None


def _lookup_gid(group: int | str) -> int:
    import grp

    if isinstance(group, int):
        return group
    if group.isdigit():
        return int(group)
    try:
        return grp.getgrnam(group).gr_gid
    except KeyError:
        raise OptionsValidationError(f"Unknown group: {group}") from None


def resolve_identity(
    run_as: int | str | None = None,
    uid: int | str | None = None,
    gid: int | str | None = None,
) -> tuple[int | None, int | None]:
    """Resolve user/group specs into numeric ids.

    ``run_as`` and ``uid`` are interchangeable; both accept a username or a
    numeric uid. When both are given they must agree.

    Returns:
        Tuple of (uid, gid); None means "inherit from the caller"
    """
    resolved_uid: int | None = None
    for spec in (run_as, uid):
        if spec is None:
            continue
        value = _lookup_uid(spec)
        if resolved_uid is not None and resolved_uid != value:
            raise OptionsValidationError(
                f"Conflicting user specs: run_as={run_as!r} uid={uid!r}"
            )
        resolved_uid = value

    resolved_gid = _lookup_gid(gid) if gid is not None else None
    return resolved_uid, resolved_gid


def running_as_root() -> bool:
    """Whether the current process runs with uid 0."""
    return os.geteuid() == 0


def find_in_path(binary: str) -> str | None:
    """Get the full path of a binary found in PATH, or None."""
    for directory in os.environ.get("PATH", "").split(os.pathsep):
        if not directory:
            continue
        candidate = Path(directory) / binary
        if candidate.exists():
            return str(candidate)
    return None


def is_in_path(binary: str) -> bool:
    """Whether a binary is available in PATH."""
    return find_in_path(binary) is not None


def _check_identity_spec(name: str, value: Any) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, (int, str)):
        raise OptionsValidationError(
            f"{name} must be a user/group name or a numeric id, got {type(value).__name__}"
        )
    if isinstance(value, int) and value < 0:
        raise OptionsValidationError(f"{name} must be non-negative, got {value}")


def _check_callback(name: str, value: Any) -> None:
    if value is not None and not callable(value):
        raise OptionsValidationError(f"{name} must be callable, got {type(value).__name__}")


def _default_log_command() -> bool:
    return get_config().log_commands


@dataclass(frozen=True)
class RunOptions:
    """Options for run_program.

    Attributes:
        cwd: Working directory (None = inherit)
        env: Environment additions merged over os.environ
        run_as: Username or uid to run the child as
        uid: Same as run_as
        gid: Group name or gid to run the child as
        input: Payload written to stdin, which is then closed
        stdout_file: File that also receives stdout
        stderr_file: File that also receives stderr
        retrieve_std_streams: Return an ExecutionResult instead of raising
        log_command: Trace the invocation through `logger`
        logger: Optional logger receiving the command trace
    """

    cwd: str | Path | None = None
    env: Mapping[str, str] | None = None
    run_as: int | str | None = None
    uid: int | str | None = None
    gid: int | str | None = None
    input: str | bytes | None = None
    stdout_file: str | Path | None = None
    stderr_file: str | Path | None = None
    retrieve_std_streams: bool = False
    log_command: bool = field(default_factory=_default_log_command)
    logger: Any = None

    def __post_init__(self) -> None:
        _validate_common(self)

    @property
    def input_bytes(self) -> bytes | None:
        if self.input is None:
            return None
        if isinstance(self.input, str):
            return self.input.encode("utf-8")
        return bytes(self.input)


@dataclass(frozen=True)
class SpawnOptions:
    """Options for spawn_async.

    Shares every RunOptions field except retrieve_std_streams, plus:

    Attributes:
        on_stdout: Called with each decoded stdout chunk
        on_stderr: Called with each decoded stderr chunk
        wait: Block until the child ends or `timeout` elapses
        timeout: Seconds to wait (None or math.inf = no limit)
        throw_on_timeout: Raise ProcessTimeoutError instead of returning
    """

    cwd: str | Path | None = None
    env: Mapping[str, str] | None = None
    run_as: int | str | None = None
    uid: int | str | None = None
    gid: int | str | None = None
    input: str | bytes | None = None
    stdout_file: str | Path | None = None
    stderr_file: str | Path | None = None
    on_stdout: OutputCallback | None = None
    on_stderr: OutputCallback | None = None
    wait: bool = False
    timeout: float | None = None
    throw_on_timeout: bool = False
    log_command: bool = field(default_factory=_default_log_command)
    logger: Any = None

    def __post_init__(self) -> None:
        _validate_common(self)
        _check_callback("on_stdout", self.on_stdout)
        _check_callback("on_stderr", self.on_stderr)
        if self.timeout is not None:
            if (
                isinstance(self.timeout, bool)
                or not isinstance(self.timeout, (int, float))
                or math.isnan(self.timeout)
                or self.timeout <= 0
            ):
                raise OptionsValidationError(
                    f"timeout must be a positive number or math.inf, got {self.timeout!r}"
                )

    @property
    def input_bytes(self) -> bytes | None:
        if self.input is None:
            return None
        if isinstance(self.input, str):
            return self.input.encode("utf-8")
        return bytes(self.input)

    @property
    def wait_timeout(self) -> float | None:
        """Timeout usable by threading.Event.wait (None = wait forever)."""
        if self.timeout is None or math.isinf(self.timeout):
            return None
        return float(self.timeout)


def _validate_common(options: RunOptions | SpawnOptions) -> None:
    if options.env is not None and not isinstance(options.env, Mapping):
        raise OptionsValidationError(
            f"env must be a mapping, got {type(options.env).__name__}"
        )
    if options.input is not None and not isinstance(options.input, (str, bytes, bytearray)):
        raise OptionsValidationError(
            f"input must be str or bytes, got {type(options.input).__name__}"
        )
    _check_identity_spec("run_as", options.run_as)
    _check_identity_spec("uid", options.uid)
    _check_identity_spec("gid", options.gid)
    if options.logger is not None and not hasattr(options.logger, "debug"):
        raise OptionsValidationError("logger must provide a debug() method")


def coerce_options(options: Any, kwargs: dict[str, Any], cls: type) -> Any:
    """Build an options instance from either an instance or keyword arguments."""
    if options is None:
        try:
            return cls(**kwargs)
        except OptionsValidationError:
            raise
        except TypeError as e:
            raise OptionsValidationError(str(e)) from e
    if kwargs:
        raise OptionsValidationError("Pass either an options object or keyword options, not both")
    if not isinstance(options, cls):
        raise OptionsValidationError(
            f"options must be {cls.__name__}, got {type(options).__name__}"
        )
    return options
