"""hostexec 命令行入口。

子命令:
    run CMD [ARGS...]     执行命令并输出 stdout（--retrieve 输出 JSON 结果）
    ps                    以 JSON 列出进程（可按 pid/user/cmd 过滤）
    kill PID [SIGNAL]     发送信号，成功返回 0
    wait-pid PID          轮询直到进程从进程表中消失，超时返回 1
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Any

from .config import get_config
from .errors import HostExecError, ProgramExecutionError
from .runtime import kill, pid_find, ps, retry_while, run_program

__all__ = ["main", "build_parser"]

logger = logging.getLogger(__name__)


def _configure_logging(verbose: bool = False) -> None:
    """配置日志输出。

    LOG_DEBUG 模式输出到临时文件，否则输出到 stderr。
    """
    config = get_config()
    log_handlers: list[logging.Handler] = []

    if config.log_debug and config.log_file:
        file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(file_handler)
        log_level = logging.DEBUG
    else:
        stderr_handler = logging.StreamHandler(sys.stderr)
        stderr_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s")
        )
        log_handlers.append(stderr_handler)
        log_level = logging.DEBUG if verbose else logging.INFO

    # 第三方库保持 WARNING，只对 hostexec 命名空间启用详细日志
    logging.basicConfig(level=logging.WARNING, handlers=log_handlers)
    logging.getLogger("hostexec").setLevel(log_level)


def _parse_signal(value: str) -> int | str:
    return int(value) if value.lstrip("-").isdigit() else value


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hostexec", description="Run and inspect host processes")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging to stderr")
    sub = parser.add_subparsers(dest="command", required=True)

    run_p = sub.add_parser("run", help="Run a program to completion")
    run_p.add_argument("program")
    run_p.add_argument("args", nargs=argparse.REMAINDER)
    run_p.add_argument("--cwd", default=None)
    run_p.add_argument("--retrieve", action="store_true", help="Print the result as JSON and never fail")

    ps_p = sub.add_parser("ps", help="List processes as JSON")
    ps_p.add_argument("--pid", type=int, default=None)
    ps_p.add_argument("--user", default=None)
    ps_p.add_argument("--cmd", default=None)

    kill_p = sub.add_parser("kill", help="Send a signal to a process")
    kill_p.add_argument("pid", type=int)
    kill_p.add_argument("signal", nargs="?", type=_parse_signal, default=None)

    wait_p = sub.add_parser("wait-pid", help="Wait until a pid leaves the process table")
    wait_p.add_argument("pid", type=int)
    wait_p.add_argument("--step", type=float, default=None)
    wait_p.add_argument("--timeout", type=float, default=None)

    return parser


def _cmd_run(ns: argparse.Namespace) -> int:
    if ns.retrieve:
        result = run_program(ns.program, ns.args, cwd=ns.cwd, retrieve_std_streams=True, logger=logger)
        print(json.dumps(result.to_dict(), ensure_ascii=False))
        return result.code
    try:
        sys.stdout.write(run_program(ns.program, ns.args, cwd=ns.cwd, logger=logger))
    except ProgramExecutionError as e:
        sys.stdout.write(e.stdout)
        print(str(e), file=sys.stderr)
        return e.code if e.code is not None else 1
    return 0


def _cmd_ps(ns: argparse.Namespace) -> int:
    criteria: dict[str, Any] = {}
    if ns.pid is not None:
        criteria["pid"] = ns.pid
    if ns.user is not None:
        criteria["user"] = ns.user
    if ns.cmd is not None:
        criteria["cmd"] = ns.cmd
    records = ps(criteria or None)
    print(json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2))
    return 0


def _cmd_kill(ns: argparse.Namespace) -> int:
    return 0 if kill(ns.pid, ns.signal) else 1


def _cmd_wait_pid(ns: argparse.Namespace) -> int:
    gone = retry_while(lambda: pid_find(ns.pid), step=ns.step, timeout=ns.timeout)
    if not gone:
        logger.info(f"pid {ns.pid} still running after timeout")
    return 0 if gone else 1


_COMMANDS = {
    "run": _cmd_run,
    "ps": _cmd_ps,
    "kill": _cmd_kill,
    "wait-pid": _cmd_wait_pid,
}


def main(argv: list[str] | None = None) -> int:
    """主入口点。"""
    ns = build_parser().parse_args(argv)
    _configure_logging(ns.verbose)
    try:
        return _COMMANDS[ns.command](ns)
    except HostExecError as e:
        logger.error(str(e))
        return 2
