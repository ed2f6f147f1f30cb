"""proclaunch - child process launch descriptors.

Build a ``Command`` with chained calls, then hand it to one of the spawn
operations:

    from proclaunch import Command, Stdio, output

    result = output(Command("echo").args(["hello", "world"]).env("FOO", "bar"))

环境变量:
    PROCLAUNCH_TERM_TIMEOUT / PROCLAUNCH_KILL_TIMEOUT: 终止等待时间
    PROCLAUNCH_LOG_DEBUG / PROCLAUNCH_LOG_LEVEL: 日志配置
"""

__version__ = "0.1.0"

from .command import Command, EnvState
from .errors import ProcLaunchError, SpawnError, StringConversionError
from .runtime import Output, ProcessRunner, output, run_process, spawn, status
from .stdio import Stdio, StdioKind

__all__ = [
    "__version__",
    "Command",
    "EnvState",
    "Stdio",
    "StdioKind",
    "ProcLaunchError",
    "SpawnError",
    "StringConversionError",
    "Output",
    "ProcessRunner",
    "spawn",
    "status",
    "output",
    "run_process",
]
