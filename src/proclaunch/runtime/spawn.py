"""Terminal spawn operations for a ``Command``.

This module turns a launch descriptor into a running process:
- spawn(): fire-and-forget launch, returns the ``subprocess.Popen`` handle
- status(): launch and wait for the exit status
- output(): launch with captured stdout/stderr

The command only stores explicit stdio overrides. Each operation supplies
its own defaults for streams left unset:

    operation   stdin     stdout    stderr
    spawn       inherit   inherit   inherit
    status      inherit   inherit   inherit
    output      null      piped     piped

Root transition (POSIX only):
- With ``chroot_dir`` set, the child calls chroot(2) before exec.
- The working directory is then entered inside the new root; relative
  paths resolve against the new root.
- Without a working-directory override the child starts at the new root.
  The caller's current directory is never translated.
"""

from __future__ import annotations

import logging
import os
import subprocess
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from ..command import IS_WINDOWS, Command
from ..errors import SpawnError
from ..stdio import Stdio

__all__ = [
    "Output",
    "StdioDefaults",
    "SPAWN_DEFAULTS",
    "STATUS_DEFAULTS",
    "OUTPUT_DEFAULTS",
    "build_popen_kwargs",
    "check_stdin_accepts_input",
    "spawn",
    "status",
    "output",
]

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StdioDefaults:
    """Stream configuration used where the command has no override."""

    stdin: Stdio
    stdout: Stdio
    stderr: Stdio


SPAWN_DEFAULTS = StdioDefaults(Stdio.inherit(), Stdio.inherit(), Stdio.inherit())
STATUS_DEFAULTS = StdioDefaults(Stdio.inherit(), Stdio.inherit(), Stdio.inherit())
OUTPUT_DEFAULTS = StdioDefaults(Stdio.null(), Stdio.piped(), Stdio.piped())


@dataclass(frozen=True)
class Output:
    """Result of ``output()``.

    Attributes:
        returncode: Exit status (negative signal number on POSIX)
        stdout: Captured stdout, ``None`` if stdout was not piped
        stderr: Captured stderr, ``None`` if stderr was not piped
    """

    returncode: int
    stdout: bytes | None
    stderr: bytes | None

    @property
    def success(self) -> bool:
        return self.returncode == 0


def _make_root_transition(root: str, work_dir: str | None) -> Callable[[], None]:
    """Build the pre-exec hook that enters the new root.

    Runs in the forked child, so it must not log or take locks.
    """

    def _enter_root() -> None:
        os.chroot(root)
        os.chdir("/")
        if work_dir is not None:
            os.chdir(work_dir)

    return _enter_root


def check_stdin_accepts_input(command: Command) -> None:
    """Reject feeding input to a command whose stdin is explicitly not piped.

    Raises:
        ValueError: stdin is configured as something other than a pipe
    """
    stdin_cfg = command.stdin_config
    if stdin_cfg is not None and stdin_cfg != Stdio.piped():
        raise ValueError(f"input given but stdin is configured as {stdin_cfg!r}")


def build_popen_kwargs(command: Command, defaults: StdioDefaults) -> dict[str, Any]:
    """Translate a command into ``subprocess.Popen`` keyword arguments.

    Args:
        command: Launch descriptor (read only)
        defaults: Stream defaults of the calling operation

    Returns:
        Dict of kwargs for subprocess.Popen / asyncio.create_subprocess_exec

    Raises:
        SpawnError: A root transition is requested on a platform without chroot
    """
    kwargs: dict[str, Any] = {
        "args": command.arguments,
        "env": command.resolved_env(),
        "stdin": (command.stdin_config or defaults.stdin).to_subprocess(),
        "stdout": (command.stdout_config or defaults.stdout).to_subprocess(),
        "stderr": (command.stderr_config or defaults.stderr).to_subprocess(),
    }

    # argv[0] and the executable looked up are kept separate on POSIX;
    # Windows CreateProcess does no PATH search for an explicit executable.
    if not IS_WINDOWS:
        kwargs["executable"] = command.program

    if command.root_directory is not None:
        if not hasattr(os, "chroot"):
            raise SpawnError(command.program, "chroot is not supported on this platform")
        kwargs["cwd"] = None
        kwargs["preexec_fn"] = _make_root_transition(
            command.root_directory, command.working_directory
        )
    else:
        kwargs["cwd"] = command.working_directory

    return kwargs


def _popen(command: Command, defaults: StdioDefaults, **extra: Any) -> subprocess.Popen[bytes]:
    kwargs = build_popen_kwargs(command, defaults)
    kwargs.update(extra)
    try:
        process = subprocess.Popen(**kwargs)
    except OSError as e:
        raise SpawnError(command.program, e.strerror or str(e), e.errno) from e
    except subprocess.SubprocessError as e:
        # Raised when the pre-exec hook (chroot) fails in the child
        raise SpawnError(command.program, str(e)) from e

    logger.debug(f"Spawned pid={process.pid} {command!r}")
    return process


def spawn(command: Command) -> subprocess.Popen[bytes]:
    """Launch the command and return immediately.

    Unset streams inherit the parent's handles.

    Raises:
        SpawnError: The process could not be created
    """
    return _popen(command, SPAWN_DEFAULTS)


def _communicate(
    process: subprocess.Popen[bytes],
    input: bytes | None,
    timeout: float | None,
) -> tuple[bytes | None, bytes | None]:
    try:
        return process.communicate(input, timeout=timeout)
    except subprocess.TimeoutExpired:
        logger.debug(f"Timed out after {timeout}s, killing pid={process.pid}")
        process.kill()
        process.communicate()
        raise
    except BaseException:
        process.kill()
        process.wait()
        raise


def status(command: Command, *, timeout: float | None = None) -> int:
    """Launch the command and wait for it to exit.

    Unset streams inherit the parent's handles. Explicitly piped output is
    drained and discarded so the child cannot block on a full pipe.

    Args:
        command: Launch descriptor
        timeout: Seconds to wait before killing the child

    Returns:
        Exit status (negative signal number on POSIX)

    Raises:
        SpawnError: The process could not be created
        subprocess.TimeoutExpired: The timeout elapsed; the child was killed
    """
    process = _popen(command, STATUS_DEFAULTS)
    _communicate(process, None, timeout)
    logger.debug(f"Process exited pid={process.pid} returncode={process.returncode}")
    return process.returncode


def output(
    command: Command,
    *,
    input: bytes | None = None,
    timeout: float | None = None,
) -> Output:
    """Launch the command and collect its output.

    Unset stdout/stderr are piped and captured; unset stdin is the null
    device, or a pipe fed with ``input`` when one is given.

    Args:
        command: Launch descriptor
        input: Bytes written to the child's stdin
        timeout: Seconds to wait before killing the child

    Returns:
        Output with exit status and captured streams

    Raises:
        ValueError: ``input`` was given but stdin is explicitly not piped
        SpawnError: The process could not be created
        subprocess.TimeoutExpired: The timeout elapsed; the child was killed
    """
    extra: dict[str, Any] = {}
    if input is not None:
        check_stdin_accepts_input(command)
        extra["stdin"] = subprocess.PIPE

    process = _popen(command, OUTPUT_DEFAULTS, **extra)
    stdout, stderr = _communicate(process, input, timeout)
    logger.debug(f"Process exited pid={process.pid} returncode={process.returncode}")
    return Output(returncode=process.returncode, stdout=stdout, stderr=stderr)
