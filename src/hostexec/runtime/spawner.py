"""Non-blocking process spawning with live handles.

hostexec runtime module v0.1.0

This module provides:
- spawn_async: start a child and return a ProcessHandle immediately
- Stdout/stderr streaming into the handle, output files and callbacks
- Optional bounded wait with a detached liveness snapshot on timeout

Key design points:
- One background reactor (asyncio loop on a daemon thread) supervises
  every spawned child; callers never need an event loop of their own
- Exit is taken from the OS exit notification, not from the pipes closing;
  pipes are drained for at most DEFAULT_DRAIN_TIMEOUT afterwards, since
  grandchildren may keep them open indefinitely
- The reactor only buffers and writes files; on_stdout/on_stderr run on a
  per-stream worker thread so a slow callback never stalls other children
- The reactor is the only writer of a handle's state: `running` flips to
  False once, after the exit was reported and the pipes were closed
- The reactor never signals children by itself; only kill() does
"""

from __future__ import annotations

import asyncio
import codecs
import concurrent.futures
import logging
import queue
import threading
import time
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import IO, Any, TypeVar

from ..errors import ProcessTimeoutError
from . import signals
from .options import (
    Args,
    OutputCallback,
    SpawnOptions,
    build_env,
    coerce_options,
    resolve_args,
    resolve_identity,
)
from .runner import describe_returncode

__all__ = [
    "ProcessHandle",
    "SpawnResult",
    "spawn_async",
]

logger = logging.getLogger(__name__)

T = TypeVar("T")

# seconds to keep draining pipes after the child exited
DEFAULT_DRAIN_TIMEOUT = 0.5
# seconds to let pending callbacks finish before running flips
DEFAULT_CALLBACK_TIMEOUT = 5.0


class _Reactor:
    """Background event loop running on a daemon thread."""

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._thread: threading.Thread | None = None
        self._lock = threading.Lock()

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        with self._lock:
            if self._loop is not None and self._thread is not None and self._thread.is_alive():
                return self._loop

            loop = asyncio.new_event_loop()
            started = threading.Event()

            def _run() -> None:
                asyncio.set_event_loop(loop)
                loop.call_soon(started.set)
                loop.run_forever()

            thread = threading.Thread(target=_run, daemon=True, name="hostexec-reactor")
            thread.start()
            started.wait()
            logger.debug("Process reactor started")

            self._loop = loop
            self._thread = thread
            return loop

    def submit(self, coro: Coroutine[Any, Any, T]) -> concurrent.futures.Future[T]:
        """Schedule a coroutine on the reactor loop."""
        return asyncio.run_coroutine_threadsafe(coro, self._ensure_loop())

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        """Run a coroutine on the reactor loop and block for its result."""
        return self.submit(coro).result()


_reactor = _Reactor()


class _StreamSink:
    """Destination of one child stream: buffer, optional file, optional callback.

    feed() runs on the reactor; the callback, when given, runs on a daemon
    worker thread fed through a queue, in chunk order.
    """

    def __init__(
        self,
        name: str,
        path: str | Path | None,
        callback: OutputCallback | None,
    ) -> None:
        self.name = name
        self.chunks: list[str] = []
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._callback = callback
        self._file: IO[bytes] | None = open(path, "wb") if path is not None else None
        self._queue: queue.Queue[str | None] | None = None
        self._delivered = threading.Event()
        self._stopped = False

        if callback is None:
            self._delivered.set()
        else:
            self._queue = queue.Queue()
            threading.Thread(
                target=self._deliver,
                daemon=True,
                name=f"hostexec-{name}-callback",
            ).start()

    @property
    def text(self) -> str:
        return "".join(self.chunks)

    @property
    def delivered(self) -> bool:
        """Whether every emitted chunk reached the callback."""
        return self._delivered.is_set()

    def feed(self, data: bytes) -> None:
        if self._file is not None:
            self._file.write(data)
            self._file.flush()
        self._emit(self._decoder.decode(data))

    def finish(self) -> None:
        self._emit(self._decoder.decode(b"", final=True))
        self.close()

    def close(self) -> None:
        if self._file is not None:
            self._file.close()
            self._file = None
        if self._queue is not None and not self._stopped:
            self._stopped = True
            self._queue.put(None)

    def wait_delivered(self, timeout: float | None = None) -> bool:
        return self._delivered.wait(timeout)

    def _emit(self, text: str) -> None:
        if not text:
            return
        self.chunks.append(text)
        if self._queue is not None and not self._stopped:
            self._queue.put(text)

    def _deliver(self) -> None:
        assert self._queue is not None and self._callback is not None
        while True:
            text = self._queue.get()
            if text is None:
                break
            try:
                self._callback(text)
            except Exception as e:
                logger.warning(f"Error in {self.name} callback: {e}")
        self._delivered.set()


class _ChildProtocol(asyncio.SubprocessProtocol):
    """Routes pipe data into the sinks and reports exit and EOF separately."""

    def __init__(self, sinks: dict[int, _StreamSink], loop: asyncio.AbstractEventLoop) -> None:
        self._sinks = sinks
        self._open_fds = set(sinks)
        self.exited: asyncio.Future[None] = loop.create_future()
        self.drained: asyncio.Future[None] = loop.create_future()

    def pipe_data_received(self, fd: int, data: bytes) -> None:
        sink = self._sinks.get(fd)
        if sink is not None:
            sink.feed(data)

    def pipe_connection_lost(self, fd: int, exc: Exception | None) -> None:
        self._open_fds.discard(fd)
        if not self._open_fds and not self.drained.done():
            self.drained.set_result(None)

    def process_exited(self) -> None:
        if not self.exited.done():
            self.exited.set_result(None)


@dataclass(frozen=True)
class SpawnResult:
    """Snapshot of a handle taken when spawn_async(wait=True) returned.

    `running` is not kept in sync afterwards; use handler.kill(0) or
    handler.running for the current state.
    """

    pid: int
    running: bool
    stdout: str
    stderr: str
    exit_code: int | None
    signal: str | None
    handler: ProcessHandle


class ProcessHandle:
    """Live reference to a spawned child process.

    Attributes:
        pid: OS process id
        command: argv used to start the child
    """

    def __init__(
        self,
        pid: int,
        command: list[str],
        stdout_sink: _StreamSink,
        stderr_sink: _StreamSink,
    ) -> None:
        self.pid = pid
        self.command = command
        self._stdout = stdout_sink
        self._stderr = stderr_sink
        self._running = True
        self._returncode: int | None = None
        self._exit_code: int | None = None
        self._signal: str | None = None
        self._terminated = threading.Event()

    def __repr__(self) -> str:
        return (
            f"ProcessHandle(pid={self.pid}, running={self._running}, "
            f"exit_code={self._exit_code}, signal={self._signal})"
        )

    @property
    def running(self) -> bool:
        return self._running

    @property
    def stdout(self) -> str:
        return self._stdout.text

    @property
    def stderr(self) -> str:
        return self._stderr.text

    @property
    def exit_code(self) -> int | None:
        """Exit code of a normal exit; None while running or if signalled."""
        return self._exit_code

    @property
    def signal(self) -> str | None:
        """Name of the terminating signal; None while running or on normal exit."""
        return self._signal

    def kill(self, sig: signals.SignalSpec = "SIGTERM") -> bool:
        """Send a signal to the child.

        `kill(0)` only probes whether the child is still addressable.

        Returns:
            True if delivered, False if the child is already gone
        """
        # a reaped pid may already belong to another process
        if self._returncode is not None or not self._running:
            return False
        return signals.kill(self.pid, sig)

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the child terminated.

        Returns:
            False if `timeout` seconds elapsed first
        """
        return self._terminated.wait(timeout)

    def snapshot(self) -> SpawnResult:
        return SpawnResult(
            pid=self.pid,
            running=self._running,
            stdout=self.stdout,
            stderr=self.stderr,
            exit_code=self._exit_code,
            signal=self._signal,
            handler=self,
        )

    async def _supervise(
        self,
        transport: asyncio.SubprocessTransport,
        protocol: _ChildProtocol,
        drain_timeout: float,
        callback_timeout: float,
    ) -> None:
        """Record the child's exit, then bound the pipe drain and callbacks."""
        try:
            await protocol.exited
            self._record_exit(transport.get_returncode())
            try:
                await asyncio.wait_for(asyncio.shield(protocol.drained), drain_timeout)
            except asyncio.TimeoutError:
                logger.debug(
                    f"Streams of pid={self.pid} still open {drain_timeout}s after exit, closing"
                )
        finally:
            # closing a transport whose child is still running would kill it
            if transport.get_returncode() is not None:
                transport.close()
            self._stdout.finish()
            self._stderr.finish()

        if not (self._stdout.delivered and self._stderr.delivered):
            delivered = await asyncio.to_thread(self._wait_callbacks, callback_timeout)
            if not delivered:
                logger.warning(
                    f"Output callbacks of pid={self.pid} still busy {callback_timeout}s after exit"
                )
        self._mark_terminated()

    def _wait_callbacks(self, timeout: float) -> bool:
        deadline = time.monotonic() + timeout
        for sink in (self._stdout, self._stderr):
            if not sink.wait_delivered(max(0.0, deadline - time.monotonic())):
                return False
        return True

    def _record_exit(self, returncode: int | None) -> None:
        if returncode is None:
            return
        _, signal_name = describe_returncode(returncode)
        if signal_name is None:
            self._exit_code = returncode
        self._signal = signal_name
        self._returncode = returncode
        logger.debug(
            f"Spawned process exited pid={self.pid} "
            f"exit_code={self._exit_code} signal={self._signal}"
        )

    def _mark_terminated(self) -> None:
        self._running = False
        self._terminated.set()


async def _launch(
    argv: list[str],
    options: SpawnOptions,
    uid: int | None,
    gid: int | None,
    sinks: dict[int, _StreamSink],
) -> tuple[asyncio.SubprocessTransport, _ChildProtocol]:
    kwargs: dict[str, Any] = {}
    if options.cwd is not None:
        kwargs["cwd"] = str(options.cwd)
    env = build_env(options.env)
    if env is not None:
        kwargs["env"] = env
    if uid is not None:
        kwargs["user"] = uid
    if gid is not None:
        kwargs["group"] = gid

    loop = asyncio.get_running_loop()
    stdin_bytes = options.input_bytes
    transport, protocol = await loop.subprocess_exec(
        lambda: _ChildProtocol(sinks, loop),
        *argv,
        stdin=asyncio.subprocess.PIPE if stdin_bytes is not None else asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.PIPE,
        stderr=asyncio.subprocess.PIPE,
        **kwargs,
    )

    if stdin_bytes is not None:
        stdin = transport.get_pipe_transport(0)
        if stdin is not None:
            # write errors (child closed stdin early) are handled by the transport
            stdin.write(stdin_bytes)
            stdin.close()
    return transport, protocol


def spawn_async(
    command: str,
    args: Args = None,
    options: SpawnOptions | None = None,
    **kwargs: Any,
) -> ProcessHandle | SpawnResult:
    """Start a child process without waiting for it.

    Args:
        command: Program name or path
        args: Argument list, or a string split with shell-word rules
        options: SpawnOptions; alternatively pass its fields as keywords

    Returns:
        The live ProcessHandle, or a SpawnResult snapshot when wait=True

    Raises:
        ProcessTimeoutError: If wait=True, throw_on_timeout=True and the
            timeout elapsed before the child ended
        FileNotFoundError: If the program does not exist
        PermissionError: If the caller cannot switch to the requested identity
        OptionsValidationError: On malformed options
    """
    opts: SpawnOptions = coerce_options(options, kwargs, SpawnOptions)
    if not isinstance(command, str) or not command:
        raise TypeError(f"command must be a non-empty string, got {command!r}")
    argv = [command, *resolve_args(args)]
    uid, gid = resolve_identity(opts.run_as, opts.uid, opts.gid)

    if opts.log_command and opts.logger is not None:
        opts.logger.debug(f"Spawning program: {' '.join(argv)}")

    stdout_sink = _StreamSink("stdout", opts.stdout_file, opts.on_stdout)
    try:
        stderr_sink = _StreamSink("stderr", opts.stderr_file, opts.on_stderr)
    except BaseException:
        stdout_sink.close()
        raise

    try:
        transport, protocol = _reactor.run(
            _launch(argv, opts, uid, gid, {1: stdout_sink, 2: stderr_sink})
        )
    except BaseException:
        stdout_sink.close()
        stderr_sink.close()
        raise

    pid = transport.get_pid()
    handle = ProcessHandle(pid, argv, stdout_sink, stderr_sink)
    _reactor.submit(
        handle._supervise(transport, protocol, DEFAULT_DRAIN_TIMEOUT, DEFAULT_CALLBACK_TIMEOUT)
    )
    logger.debug(f"Spawned process pid={pid} argv={argv[0]} cwd={opts.cwd}")

    if not opts.wait:
        return handle

    if not handle.wait(opts.wait_timeout) and opts.throw_on_timeout:
        raise ProcessTimeoutError(opts.timeout, handle)
    return handle.snapshot()
