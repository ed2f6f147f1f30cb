"""proclaunch 环境变量配置管理。

环境变量:
    PROCLAUNCH_TERM_TIMEOUT: 发送 SIGTERM 后等待进程退出的秒数
        - 默认 2.0 秒，限制在 0.1-60 秒范围

    PROCLAUNCH_KILL_TIMEOUT: 发送 SIGKILL 后等待进程退出的秒数
        - 默认 1.0 秒，限制在 0.1-60 秒范围

    PROCLAUNCH_LOG_DEBUG: 日志调试模式
        - true/1/yes = 开启 (日志以 DEBUG 级别输出到临时文件)
        - false/0/no = 关闭 (默认，日志输出到 stderr)

    PROCLAUNCH_LOG_LEVEL: stderr 日志级别
        - DEBUG/INFO/WARNING/ERROR，忽略大小写
        - 默认 INFO，无效值回退到 INFO
"""

from __future__ import annotations

import logging
import os
import sys
import tempfile
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

__all__ = [
    "Config",
    "load_config",
    "get_config",
    "reload_config",
    "configure_logging",
    "LOG_FORMAT",
]

LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

DEFAULT_TERM_TIMEOUT = 2.0
DEFAULT_KILL_TIMEOUT = 1.0

_LOG_LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
}


def _parse_bool(value: str | None, default: bool = False) -> bool:
    """解析布尔值环境变量。"""
    if value is None:
        return default
    return value.lower() in ("true", "1", "yes", "on")


def _parse_timeout(value: str | None, default: float) -> float:
    """解析超时时间环境变量。"""
    if not value:
        return default
    try:
        timeout = float(value)
    except ValueError:
        return default
    return max(0.1, min(timeout, 60.0))  # 限制在 0.1-60 秒范围


def _parse_log_level(value: str | None) -> int:
    """解析日志级别环境变量。"""
    if not value:
        return logging.INFO
    return _LOG_LEVELS.get(value.strip().upper(), logging.INFO)


@dataclass
class Config:
    """proclaunch 配置。

    Attributes:
        term_timeout: SIGTERM 后的等待时间（秒）
        kill_timeout: SIGKILL 后的等待时间（秒）
        log_debug: 日志调试模式（输出到临时文件）
        log_file: 日志文件路径（当 log_debug=True 时自动设置）
        log_level: stderr 日志级别
    """

    term_timeout: float = DEFAULT_TERM_TIMEOUT
    kill_timeout: float = DEFAULT_KILL_TIMEOUT
    log_debug: bool = False
    log_file: str | None = None
    log_level: int = logging.INFO

    def __repr__(self) -> str:
        return (
            f"Config(term_timeout={self.term_timeout}, "
            f"kill_timeout={self.kill_timeout}, "
            f"log_debug={self.log_debug}, "
            f"log_file={self.log_file}, "
            f"log_level={logging.getLevelName(self.log_level)})"
        )


def _generate_log_file_path() -> str:
    """生成日志文件路径。

    Returns:
        临时目录下的日志文件绝对路径
    """
    log_dir = Path(tempfile.gettempdir()) / "proclaunch"
    log_dir.mkdir(parents=True, exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = log_dir / f"proclaunch_debug_{timestamp}.log"

    return str(log_file.resolve())


def load_config() -> Config:
    """从环境变量加载配置。"""
    log_debug = _parse_bool(os.environ.get("PROCLAUNCH_LOG_DEBUG"), default=False)
    log_file = _generate_log_file_path() if log_debug else None

    return Config(
        term_timeout=_parse_timeout(
            os.environ.get("PROCLAUNCH_TERM_TIMEOUT"), DEFAULT_TERM_TIMEOUT
        ),
        kill_timeout=_parse_timeout(
            os.environ.get("PROCLAUNCH_KILL_TIMEOUT"), DEFAULT_KILL_TIMEOUT
        ),
        log_debug=log_debug,
        log_file=log_file,
        log_level=_parse_log_level(os.environ.get("PROCLAUNCH_LOG_LEVEL")),
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


def configure_logging(config: Config | None = None) -> logging.Handler:
    """为 proclaunch 命名空间配置日志输出。

    库本身在导入时不配置日志，由应用显式调用。

    Args:
        config: 配置，默认使用全局配置

    Returns:
        安装的日志 handler
    """
    if config is None:
        config = get_config()

    handler: logging.Handler
    if config.log_debug and config.log_file:
        # LOG_DEBUG 模式：输出到临时文件
        handler = logging.FileHandler(config.log_file, encoding="utf-8")
        log_level = logging.DEBUG
    else:
        # 默认模式：输出到 stderr
        handler = logging.StreamHandler(sys.stderr)
        log_level = config.log_level

    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    # 只对 proclaunch 命名空间启用日志，不影响 root logger
    package_logger = logging.getLogger("proclaunch")
    package_logger.addHandler(handler)
    package_logger.setLevel(log_level)

    return handler
