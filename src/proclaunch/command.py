"""Launch descriptor for a child process.

proclaunch command module v0.1.0

A ``Command`` accumulates everything needed to start a process (program,
arguments, environment, working directory, standard streams) without
starting anything. The spawn operations in ``proclaunch.runtime`` read it.

Environment handling:
- A new command inherits the ambient environment and stores nothing.
- The first ``env()``/``env_remove()`` snapshots ``os.environ`` once and
  applies the change on top of the snapshot.
- ``env_clear()`` drops everything, ambient and explicit, and later
  ``env()`` calls add to the empty map.

Stdio handling:
- Only explicit overrides are stored. Defaults differ per spawn operation
  (``spawn``/``status`` inherit, ``output`` pipes) and are resolved there.

A command has a single owner while it is being configured; nothing here is
synchronized.
"""

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
from collections.abc import Iterable
from enum import Enum

from .native import StrOrBytesPath, to_native_env_key, to_native_string
from .stdio import Stdio

__all__ = [
    "Command",
    "EnvState",
    "IS_WINDOWS",
]

logger = logging.getLogger(__name__)

# Platform detection
IS_WINDOWS = sys.platform == "win32"


class EnvState(str, Enum):
    """Environment policy of a command.

    - INHERITED: nothing recorded, the child gets the ambient environment
    - MATERIALIZED: ambient snapshot plus explicit changes
    - CLEARED: explicit variables only, detached from the ambient environment
    """

    INHERITED = "inherited"
    MATERIALIZED = "materialized"
    CLEARED = "cleared"


def _ambient_environment() -> dict[str, str]:
    return dict(os.environ)


def _env_key(key: str) -> str:
    # Windows environment names are case-insensitive; os.environ upper-cases them.
    return key.upper() if IS_WINDOWS else key


class Command:
    """Builder for a process to be launched.

    Defaults:
    - No arguments besides argv[0] (the program itself)
    - Inherit the current process's environment
    - Inherit the current process's working directory
    - Inherit stdin/stdout/stderr for ``spawn``/``status``, pipes for ``output``

    Example:
        cmd = (
            Command("echo")
            .args(["hello", "world"])
            .env("FOO", "bar")
            .current_dir("/tmp")
        )
        status(cmd)

    Every mutator returns the same instance. The only error any method can
    raise is ``StringConversionError``, and it is raised before the command
    is modified.
    """

    def __init__(self, program: StrOrBytesPath) -> None:
        native = to_native_string(program)
        self._program = native
        self._args: list[str] = [native]
        self._env_state = EnvState.INHERITED
        self._environ: dict[str, str] | None = None
        self._work_dir: str | None = None
        self._root_dir: str | None = None
        self._stdin: Stdio | None = None
        self._stdout: Stdio | None = None
        self._stderr: Stdio | None = None

    # ------------------------------------------------------------------
    # Arguments
    # ------------------------------------------------------------------

    def arg(self, value: StrOrBytesPath) -> Command:
        """Add an argument to pass to the program."""
        self._args.append(to_native_string(value))
        return self

    def args(self, values: Iterable[StrOrBytesPath]) -> Command:
        """Add multiple arguments to pass to the program.

        Appends in order; existing arguments are kept. Nothing is appended
        if any element fails to convert.
        """
        converted = [to_native_string(v) for v in values]
        self._args.extend(converted)
        return self

    # ------------------------------------------------------------------
    # Environment
    # ------------------------------------------------------------------

    def init_env_map(self) -> dict[str, str]:
        """Snapshot the ambient environment if nothing is recorded yet.

        Runs at most once per command; a cleared environment is left alone.

        Returns:
            The mutable environment map of this command
        """
        if self._environ is None:
            self._environ = {
                _env_key(k): v for k, v in _ambient_environment().items()
            }
            self._env_state = EnvState.MATERIALIZED
            logger.debug(
                f"Materialized environment for {self._program!r} "
                f"({len(self._environ)} variables)"
            )
        return self._environ

    def env(self, key: StrOrBytesPath, value: StrOrBytesPath) -> Command:
        """Insert or update an environment variable."""
        native_key = _env_key(to_native_env_key(key))
        native_value = to_native_string(value)
        self.init_env_map()[native_key] = native_value
        return self

    def env_remove(self, key: StrOrBytesPath) -> Command:
        """Remove an environment variable. Absent names are ignored."""
        native_key = _env_key(to_native_env_key(key))
        self.init_env_map().pop(native_key, None)
        return self

    def env_clear(self) -> Command:
        """Clear the entire environment for the child process.

        Discards the ambient environment and any variables set so far.
        """
        self._environ = {}
        self._env_state = EnvState.CLEARED
        return self

    # ------------------------------------------------------------------
    # Filesystem
    # ------------------------------------------------------------------

    def current_dir(self, path: StrOrBytesPath) -> Command:
        """Set the working directory for the child process.

        With ``chroot_dir`` the directory is resolved inside the new root.
        If left unset under a chroot, the spawn engine decides where the
        child starts (see ``proclaunch.runtime.spawn``), so passing
        ``os.getcwd()`` explicitly is not a no-op in that case.
        """
        self._work_dir = to_native_string(path)
        return self

    def chroot_dir(self, path: StrOrBytesPath) -> Command:
        """Request that the child's filesystem root be changed to ``path``.

        Only recorded here; the spawn engine performs the transition.
        """
        self._root_dir = to_native_string(path)
        return self

    # ------------------------------------------------------------------
    # Standard streams
    # ------------------------------------------------------------------

    def stdin(self, cfg: Stdio) -> Command:
        """Configuration for the child's stdin handle (fd 0)."""
        self._stdin = cfg
        return self

    def stdout(self, cfg: Stdio) -> Command:
        """Configuration for the child's stdout handle (fd 1)."""
        self._stdout = cfg
        return self

    def stderr(self, cfg: Stdio) -> Command:
        """Configuration for the child's stderr handle (fd 2)."""
        self._stderr = cfg
        return self

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def program(self) -> str:
        return self._program

    @property
    def arguments(self) -> list[str]:
        """Full argv, starting with the program."""
        return list(self._args)

    @property
    def env_state(self) -> EnvState:
        return self._env_state

    @property
    def working_directory(self) -> str | None:
        return self._work_dir

    @property
    def root_directory(self) -> str | None:
        return self._root_dir

    @property
    def stdin_config(self) -> Stdio | None:
        return self._stdin

    @property
    def stdout_config(self) -> Stdio | None:
        return self._stdout

    @property
    def stderr_config(self) -> Stdio | None:
        return self._stderr

    def get_envs(self) -> dict[str, str]:
        """Effective environment the child would receive right now.

        Reads the ambient environment for an inherited command without
        materializing it.
        """
        if self._environ is None:
            return _ambient_environment()
        return dict(self._environ)

    def resolved_env(self) -> dict[str, str] | None:
        """Environment to hand to the OS; ``None`` means use the ambient one."""
        if self._environ is None:
            return None
        return dict(self._environ)

    def __str__(self) -> str:
        if IS_WINDOWS:
            return subprocess.list2cmdline(self._args)
        return shlex.join(self._args)

    def __repr__(self) -> str:
        parts: list[str] = [f"argv={self._args!r}", f"env={self._env_state.value}"]
        if self._work_dir is not None:
            parts.append(f"cwd={self._work_dir!r}")
        if self._root_dir is not None:
            parts.append(f"root={self._root_dir!r}")
        for name, cfg in (("stdin", self._stdin), ("stdout", self._stdout), ("stderr", self._stderr)):
            if cfg is not None:
                parts.append(f"{name}={cfg!r}")
        return f"Command({', '.join(parts)})"
