"""Runtime module: turning a Command into a running process.

- spawn: synchronous terminal operations (spawn / status / output)
- process_runner: async streaming runner with isolation and reliable termination
"""

from __future__ import annotations

from .process_runner import ProcessRunner, run_process
from .spawn import (
    OUTPUT_DEFAULTS,
    SPAWN_DEFAULTS,
    STATUS_DEFAULTS,
    Output,
    StdioDefaults,
    build_popen_kwargs,
    output,
    spawn,
    status,
)

__all__ = [
    "ProcessRunner",
    "run_process",
    "Output",
    "StdioDefaults",
    "SPAWN_DEFAULTS",
    "STATUS_DEFAULTS",
    "OUTPUT_DEFAULTS",
    "build_popen_kwargs",
    "spawn",
    "status",
    "output",
]
