"""proclaunch 异常类。

Builder 本身只有一种失败：调用方传入的值无法转换为平台原生字符串。
进程创建阶段的失败（可执行文件不存在、权限不足、chroot 失败）属于 spawn 引擎。
"""

from __future__ import annotations

from typing import Any

__all__ = [
    "ProcLaunchError",
    "StringConversionError",
    "SpawnError",
]


class ProcLaunchError(Exception):
    """proclaunch 基础异常。"""
    pass


class StringConversionError(ProcLaunchError, ValueError):
    """值无法表示为平台原生字符串（如包含 NUL）。

    Attributes:
        value: 原始输入值
        reason: 失败原因
    """

    def __init__(self, value: Any, reason: str) -> None:
        self.value = value
        self.reason = reason
        super().__init__(f"cannot convert {value!r} to a native string: {reason}")


class SpawnError(ProcLaunchError, OSError):
    """进程创建失败。

    Attributes:
        program: 目标程序
        errno: 底层 OSError 的 errno（如有）
        message: 错误消息
    """

    def __init__(self, program: str, message: str, errno: int | None = None) -> None:
        self.program = program
        self.message = message
        super().__init__(f"failed to spawn {program!r}: {message}")
        self.errno = errno
