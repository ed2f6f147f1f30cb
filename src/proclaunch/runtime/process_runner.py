"""Async process runner with subprocess isolation and reliable termination.

proclaunch runtime module v0.1.0

This module provides:
- Streaming stdout of a ``Command`` line by line
- Cross-platform subprocess isolation (new session/process group)
- Reliable termination with graceful shutdown (SIGTERM -> timeout -> SIGKILL)
- Stderr draining with a callback
- Cancel-safe cleanup using asyncio.shield

Key design points:
- POSIX: start_new_session=True to create new process group
- Windows: CREATE_NEW_PROCESS_GROUP for signal isolation
- Cancellation terminates the process group, not just the main process
- stdout/stderr are always piped; the command's stdout/stderr overrides
  do not apply to streaming runs
"""

from __future__ import annotations

import asyncio
import logging
import os
import signal
import subprocess
from collections.abc import AsyncIterator, Callable
from dataclasses import dataclass, field
from typing import Any

import anyio

from ..command import IS_WINDOWS, Command
from ..config import get_config
from ..errors import SpawnError
from ..stdio import Stdio
from .spawn import StdioDefaults, build_popen_kwargs, check_stdin_accepts_input

__all__ = [
    "ProcessRunner",
    "run_process",
]

logger = logging.getLogger(__name__)

RUNNER_DEFAULTS = StdioDefaults(Stdio.null(), Stdio.piped(), Stdio.piped())


def _default_term_timeout() -> float:
    return get_config().term_timeout


def _default_kill_timeout() -> float:
    return get_config().kill_timeout


@dataclass
class ProcessRunner:
    """Cross-platform process runner with isolation and reliable termination.

    This class manages subprocess execution with:
    - Process group/session isolation to prevent SIGINT propagation
    - Graceful termination (SIGTERM -> timeout -> SIGKILL)
    - Stderr draining to prevent deadlocks
    - Cancel-safe cleanup

    Timeouts default to PROCLAUNCH_TERM_TIMEOUT / PROCLAUNCH_KILL_TIMEOUT.

    Example:
        runner = ProcessRunner()
        cmd = Command("my-cli").arg("--json").current_dir("/workspace")

        async for chunk in runner.run(cmd, stdin_bytes=b"prompt text"):
            process_output(chunk)
    """

    term_timeout: float = field(default_factory=_default_term_timeout)
    kill_timeout: float = field(default_factory=_default_kill_timeout)

    async def run(
        self,
        command: Command,
        *,
        stdin_bytes: bytes | None = None,
        cancel_scope: anyio.CancelScope | None = None,
        on_stderr: Callable[[bytes], None] | None = None,
        on_exit: Callable[[int], None] | None = None,
    ) -> AsyncIterator[bytes]:
        """Run subprocess and yield stdout chunks.

        This method:
        1. Starts the subprocess in an isolated process group/session
        2. Writes stdin_bytes if provided
        3. Yields stdout line by line
        4. Drains stderr concurrently (via on_stderr callback or internal buffer)
        5. Ensures cleanup even if cancelled

        Args:
            command: Launch descriptor
            stdin_bytes: Optional bytes to write to stdin
            cancel_scope: Optional anyio.CancelScope for cancellation
            on_stderr: Optional callback for stderr chunks
            on_exit: Optional callback receiving the exit status once the
                process has finished on its own

        Yields:
            Lines from stdout as bytes (including newline)

        Raises:
            ValueError: stdin_bytes given but stdin is explicitly not piped
            SpawnError: If process setup fails
        """
        process: asyncio.subprocess.Process | None = None
        stderr_task: asyncio.Task[list[bytes]] | None = None

        kwargs = self._build_subprocess_kwargs(command, stdin_bytes)
        argv = kwargs.pop("args")

        try:
            try:
                process = await asyncio.create_subprocess_exec(*argv, **kwargs)
            except OSError as e:
                raise SpawnError(command.program, e.strerror or str(e), e.errno) from e
            except subprocess.SubprocessError as e:
                raise SpawnError(command.program, str(e)) from e

            logger.debug(
                f"Started subprocess pid={process.pid} "
                f"argv={argv[0]} cwd={command.working_directory}"
            )

            # Write stdin if provided
            if stdin_bytes is not None and process.stdin:
                process.stdin.write(stdin_bytes)
                await process.stdin.drain()
                process.stdin.close()
                await process.stdin.wait_closed()
            elif process.stdin:
                # Piped stdin override with nothing to send
                process.stdin.close()

            # Start stderr draining task
            stderr_task = asyncio.create_task(
                self._drain_stderr(process, on_stderr)
            )

            # Yield stdout lines
            if process.stdout:
                async for line in process.stdout:
                    if cancel_scope and cancel_scope.cancel_called:
                        break
                    yield line

            if cancel_scope and cancel_scope.cancel_called:
                return

            await stderr_task
            await process.wait()

            logger.debug(
                f"Subprocess completed pid={process.pid} "
                f"returncode={process.returncode}"
            )
            if on_exit is not None and process.returncode is not None:
                on_exit(process.returncode)

        finally:
            # Ensure cleanup with shield to prevent cancel interruption
            await self._safe_cleanup(process, stderr_task)

    def _build_subprocess_kwargs(
        self,
        command: Command,
        stdin_bytes: bytes | None,
    ) -> dict[str, Any]:
        """Build platform-specific subprocess kwargs.

        Args:
            command: Launch descriptor
            stdin_bytes: Bytes to feed to stdin, if any

        Returns:
            Dict of kwargs for asyncio.create_subprocess_exec (including "args")
        """
        kwargs = build_popen_kwargs(command, RUNNER_DEFAULTS)

        # Streaming needs both output pipes regardless of overrides.
        # stdin=None would inherit the parent's stdin, so the default is DEVNULL.
        kwargs["stdout"] = subprocess.PIPE
        kwargs["stderr"] = subprocess.PIPE
        if stdin_bytes is not None:
            check_stdin_accepts_input(command)
            kwargs["stdin"] = subprocess.PIPE

        # Platform-specific isolation
        if IS_WINDOWS:
            # Windows: CREATE_NEW_PROCESS_GROUP
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
        else:
            # POSIX: start_new_session (equivalent to setsid)
            kwargs["start_new_session"] = True

        return kwargs

    async def _drain_stderr(
        self,
        process: asyncio.subprocess.Process,
        on_stderr: Callable[[bytes], None] | None = None,
    ) -> list[bytes]:
        """Drain stderr to prevent buffer deadlock.

        Args:
            process: The subprocess
            on_stderr: Optional callback for each chunk

        Returns:
            List of all stderr chunks (useful when no callback provided)
        """
        chunks: list[bytes] = []

        if process.stderr:
            while True:
                chunk = await process.stderr.read(4096)
                if not chunk:
                    break
                chunks.append(chunk)
                if on_stderr:
                    on_stderr(chunk)

        return chunks

    async def _safe_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        stderr_task: asyncio.Task[list[bytes]] | None,
    ) -> None:
        """Safely cleanup subprocess and tasks, shielded from cancellation.

        This method uses asyncio.shield to ensure cleanup completes
        even if the caller is cancelled.

        Args:
            process: The subprocess to terminate
            stderr_task: The stderr draining task
        """
        try:
            # Shield entire cleanup from cancellation
            await asyncio.shield(self._do_cleanup(process, stderr_task))
        except asyncio.CancelledError:
            # If shield itself is cancelled, still try cleanup
            await self._do_cleanup(process, stderr_task)

    async def _do_cleanup(
        self,
        process: asyncio.subprocess.Process | None,
        stderr_task: asyncio.Task[list[bytes]] | None,
    ) -> None:
        """Perform actual cleanup.

        Args:
            process: The subprocess to terminate
            stderr_task: The stderr draining task
        """
        # Cancel stderr task if still running
        if stderr_task and not stderr_task.done():
            stderr_task.cancel()
            try:
                await stderr_task
            except asyncio.CancelledError:
                pass

        # Terminate subprocess if still running
        if process is not None and process.returncode is None:
            await self._terminate_process(process)

    async def _terminate_process(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Terminate subprocess gracefully, then forcefully if needed.

        Termination strategy:
        1. Send SIGTERM (or CTRL_BREAK_EVENT on Windows)
        2. Wait up to term_timeout for graceful exit
        3. If still running, send SIGKILL (or terminate() on Windows)
        4. Wait up to kill_timeout for forced exit

        Args:
            process: The subprocess to terminate
        """
        pid = process.pid
        logger.debug(f"Terminating subprocess pid={pid}")

        try:
            # Step 1: Graceful termination
            if IS_WINDOWS:
                # Windows: Try CTRL_BREAK_EVENT first
                await self._windows_terminate(process)
            else:
                # POSIX: SIGTERM to process group
                await self._posix_terminate(process)

            # Step 2: Wait for graceful exit
            try:
                await asyncio.wait_for(process.wait(), timeout=self.term_timeout)
                logger.debug(
                    f"Subprocess terminated gracefully pid={pid} "
                    f"returncode={process.returncode}"
                )
                return
            except asyncio.TimeoutError:
                pass

            # Step 3: Force kill
            logger.debug(f"Force killing subprocess pid={pid}")
            if IS_WINDOWS:
                await self._windows_kill(process)
            else:
                await self._posix_kill(process)

            # Step 4: Wait for forced exit
            try:
                await asyncio.wait_for(process.wait(), timeout=self.kill_timeout)
                logger.debug(
                    f"Subprocess killed pid={pid} "
                    f"returncode={process.returncode}"
                )
            except asyncio.TimeoutError:
                logger.warning(
                    f"Subprocess did not exit after kill pid={pid}"
                )

        except ProcessLookupError:
            # Process already exited
            logger.debug(f"Subprocess already exited pid={pid}")
        except Exception as e:
            logger.warning(f"Error terminating subprocess pid={pid}: {e}")

    async def _posix_terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send SIGTERM to process group on POSIX systems.

        Args:
            process: The subprocess
        """
        try:
            # Get process group ID (should be same as pid due to start_new_session)
            pgid = os.getpgid(process.pid)
            # Send SIGTERM to entire process group
            os.killpg(pgid, signal.SIGTERM)
            logger.debug(f"Sent SIGTERM to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            # Fallback to terminating just the process
            logger.debug(f"killpg failed, falling back to terminate: {e}")
            process.terminate()

    async def _posix_kill(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send SIGKILL to process group on POSIX systems.

        Args:
            process: The subprocess
        """
        try:
            pgid = os.getpgid(process.pid)
            os.killpg(pgid, signal.SIGKILL)
            logger.debug(f"Sent SIGKILL to process group pgid={pgid}")
        except ProcessLookupError:
            pass
        except OSError as e:
            logger.debug(f"killpg failed, falling back to kill: {e}")
            process.kill()

    async def _windows_terminate(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Send CTRL_BREAK_EVENT on Windows.

        Args:
            process: The subprocess
        """
        try:
            # Send CTRL_BREAK_EVENT to the process group
            # This works because we used CREATE_NEW_PROCESS_GROUP
            os.kill(process.pid, signal.CTRL_BREAK_EVENT)
            logger.debug(f"Sent CTRL_BREAK_EVENT to pid={process.pid}")
        except (ProcessLookupError, OSError) as e:
            # Fallback to terminate
            logger.debug(f"CTRL_BREAK_EVENT failed, falling back: {e}")
            process.terminate()

    async def _windows_kill(
        self,
        process: asyncio.subprocess.Process,
    ) -> None:
        """Force kill on Windows.

        Args:
            process: The subprocess
        """
        try:
            process.kill()
            logger.debug(f"Called kill() on pid={process.pid}")
        except ProcessLookupError:
            pass


# Convenience function for simple use cases
async def run_process(
    command: Command,
    *,
    stdin_bytes: bytes | None = None,
    on_stderr: Callable[[bytes], None] | None = None,
) -> tuple[bytes, int]:
    """Run process and collect all stdout.

    This is a convenience function for cases where streaming is not needed.

    Args:
        command: Launch descriptor
        stdin_bytes: Optional bytes to write to stdin
        on_stderr: Optional callback for stderr chunks

    Returns:
        Tuple of (stdout_bytes, returncode)
    """
    runner = ProcessRunner()
    stdout_chunks: list[bytes] = []
    exit_codes: list[int] = []

    async for chunk in runner.run(
        command,
        stdin_bytes=stdin_bytes,
        on_stderr=on_stderr,
        on_exit=exit_codes.append,
    ):
        stdout_chunks.append(chunk)

    return b"".join(stdout_chunks), exit_codes[-1]
