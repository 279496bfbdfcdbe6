"""hostexec 环境变量配置管理。

环境变量:
    HOSTEXEC_LOG_COMMANDS: 是否默认记录执行的命令
        - true/1/yes = 记录 (默认)
        - false/0/no = 不记录

    HOSTEXEC_POLL_STEP: retry_while 默认轮询间隔（秒）
        - 默认 0.5 秒
        - 限制在 0.01-60 秒范围

    HOSTEXEC_POLL_TIMEOUT: retry_while 默认超时（秒）
        - 默认 30 秒
        - inf = 不超时

    HOSTEXEC_KILL_SIGNAL: kill() 默认信号
        - 默认 SIGINT

    HOSTEXEC_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)
"""

from __future__ import annotations

import math
import os
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = ["Config", "load_config", "get_config", "reload_config"]

DEFAULT_POLL_STEP = 0.5
DEFAULT_POLL_TIMEOUT = 30.0
DEFAULT_KILL_SIGNAL = "SIGINT"


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_poll_step(value: str | None) -> float:
    """解析轮询间隔环境变量。"""
    if not value:
        return DEFAULT_POLL_STEP
    try:
        step = float(value)
    except ValueError:
        return DEFAULT_POLL_STEP
    if not math.isfinite(step):
        return DEFAULT_POLL_STEP
    return max(0.01, min(step, 60.0))  # 限制在 0.01-60 秒范围


def _parse_poll_timeout(value: str | None) -> float:
    """解析轮询超时环境变量，允许 inf。"""
    if not value:
        return DEFAULT_POLL_TIMEOUT
    try:
        timeout = float(value)
    except ValueError:
        return DEFAULT_POLL_TIMEOUT
    if math.isnan(timeout) or timeout <= 0:
        return DEFAULT_POLL_TIMEOUT
    return timeout


def _parse_signal_name(value: str | None) -> str:
    """解析信号名称环境变量，统一为 SIGXXX 形式。"""
    if not value or not value.strip():
        return DEFAULT_KILL_SIGNAL
    name = value.strip().upper()
    if not name.startswith("SIG"):
        name = f"SIG{name}"
    return name


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "hostexec"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"hostexec_debug_{timestamp}.log"

    return str(log_file.resolve())


@dataclass
class Config:
    """hostexec 配置。

    Attributes:
        log_commands: log_command 选项的默认值
        poll_step: retry_while 默认轮询间隔（秒）
        poll_timeout: retry_while 默认超时（秒，可为 inf）
        kill_signal: kill() 默认信号名称
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
    """

    log_commands: bool = True
    poll_step: float = DEFAULT_POLL_STEP
    poll_timeout: float = DEFAULT_POLL_TIMEOUT
    kill_signal: str = DEFAULT_KILL_SIGNAL
    log_debug: bool = False
    log_file: str | None = None

    def __repr__(self) -> str:
        return (
            f"Config(log_commands={self.log_commands}, "
            f"poll_step={self.poll_step}, "
            f"poll_timeout={self.poll_timeout}, "
            f"kill_signal={self.kill_signal}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file})"
        )


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("HOSTEXEC_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        log_commands=_parse_bool(os.environ.get("HOSTEXEC_LOG_COMMANDS"), default=True),
        poll_step=_parse_poll_step(os.environ.get("HOSTEXEC_POLL_STEP")),
        poll_timeout=_parse_poll_timeout(os.environ.get("HOSTEXEC_POLL_TIMEOUT")),
        kill_signal=_parse_signal_name(os.environ.get("HOSTEXEC_KILL_SIGNAL")),
        log_debug=log_debug,
        log_file=log_file,
    )


# 全局配置实例（延迟加载）
_config: Config | None = None


def get_config() -> Config:
    """获取全局配置实例。"""
    global _config
    if _config is None:
        _config = load_config()
    return _config


def reload_config() -> Config:
    """重新加载配置（用于测试）。"""
    global _config
    _config = load_config()
    return _config
