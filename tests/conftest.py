"""Pytest 配置和 fixtures。"""

from __future__ import annotations

import os
import subprocess
import sys
from pathlib import Path
from unittest import mock

import pytest

# 项目根目录
PROJECT_ROOT = Path(__file__).parent.parent

# 添加 src 目录到 Python 路径
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

FIXTURES_DIR = PROJECT_ROOT / "tests" / "fixtures"
TRAP_CHILD = FIXTURES_DIR / "trap_child.py"

IS_WINDOWS = sys.platform == "win32"

posix_only = pytest.mark.skipif(IS_WINDOWS, reason="POSIX process semantics required")


@pytest.fixture(autouse=True)
def _fresh_config():
    """每个测试使用干净的 HOSTEXEC_* 配置。"""
    from hostexec.config import reload_config

    env = {k: v for k, v in os.environ.items() if not k.startswith("HOSTEXEC_")}
    with mock.patch.dict(os.environ, env, clear=True):
        reload_config()
        yield
    reload_config()


@pytest.fixture
def temp_workspace(tmp_path: Path) -> Path:
    """临时工作目录。"""
    workspace = tmp_path / "workspace"
    workspace.mkdir()
    return workspace


@pytest.fixture
def sleeper():
    """启动一个独立的 sleep 子进程，测试结束后清理。"""
    procs: list[subprocess.Popen] = []

    def _start(seconds: str = "10") -> subprocess.Popen:
        proc = subprocess.Popen(
            ["sleep", seconds],
            stdin=subprocess.DEVNULL,
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        procs.append(proc)
        return proc

    yield _start

    for proc in procs:
        if proc.poll() is None:
            proc.kill()
        proc.wait()


@pytest.fixture
def trap_child():
    """启动 trap_child.py，返回 Popen 对象。"""
    procs: list[subprocess.Popen] = []

    def _start(*args: str) -> subprocess.Popen:
        proc = subprocess.Popen(
            [sys.executable, str(TRAP_CHILD), *args],
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
        )
        # 等待子进程安装好信号处理器
        assert proc.stdout is not None
        proc.stdout.readline()
        procs.append(proc)
        return proc

    yield _start

    for proc in procs:
        if proc.poll() is None:
            proc.kill()
        proc.wait()
        if proc.stdout:
            proc.stdout.close()


@pytest.fixture
def nonexistent_pid() -> int:
    """找一个当前不存在的 pid。"""
    import psutil

    pid = 54321
    existing = set(psutil.pids())
    for _ in range(100):
        if pid not in existing:
            return pid
        pid += 1000
    pytest.skip("Cannot find a non-running pid")
