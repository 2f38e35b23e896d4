"""Subprocess runner for wrapper commands.

Commands are argv lists started without a shell, so user arguments reach the
tool verbatim. Launch failures and timeouts come back as results, never as
exceptions.
"""

import asyncio
import logging
import subprocess
import time
from dataclasses import dataclass
from typing import Optional


logger = logging.getLogger(__name__)

COMMAND_NOT_FOUND = 127
LAUNCH_FAILED = -1


@dataclass
class ExecutionResult:
    """Outcome of one command run.

    ``return_code`` is the process exit status, 127 when the executable is
    missing and -1 when the process could not start or was killed on timeout.
    """

    success: bool
    return_code: int
    stdout: str = ""
    stderr: str = ""
    execution_time: float = 0.0
    error_message: str = ""
    timed_out: bool = False

    @property
    def status(self) -> str:
        if self.timed_out:
            return "Timed out"
        return "Success" if self.success else "Failed"

    def __str__(self) -> str:
        return f"{self.status} (exit {self.return_code}, {self.execution_time:.2f}s)"

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "success": self.success,
            "return_code": self.return_code,
            "stdout": self.stdout,
            "stderr": self.stderr,
            "execution_time": self.execution_time,
            "error_message": self.error_message,
            "timed_out": self.timed_out,
        }


def _decode(data: Optional[bytes]) -> str:
    return data.decode("utf-8", errors="replace") if data else ""


def _launch_error(argv: list[str], error: OSError, elapsed: float) -> ExecutionResult:
    if isinstance(error, FileNotFoundError):
        code, message = COMMAND_NOT_FOUND, f"Command not found: {argv[0]}"
    else:
        code, message = LAUNCH_FAILED, f"Execution failed: {error}"
    logger.debug(f"Could not start {argv[0]}: {error}")
    return ExecutionResult(
        success=False,
        return_code=code,
        stderr=str(error),
        execution_time=elapsed,
        error_message=message,
    )


def _timeout(argv: list[str], timeout: Optional[float], elapsed: float) -> ExecutionResult:
    logger.warning(f"{argv[0]} timed out after {timeout}s")
    return ExecutionResult(
        success=False,
        return_code=LAUNCH_FAILED,
        stderr=f"Command timed out after {timeout} seconds",
        execution_time=elapsed,
        error_message=f"Timeout after {timeout}s",
        timed_out=True,
    )


class CommandExecutor:
    """Runs argv lists, synchronously or on the event loop.

    Example:
        executor = CommandExecutor(default_timeout=30)
        result = executor.execute_sync(["git", "status", "-sb"])
    """

    def __init__(self, default_timeout: Optional[int] = None, dry_run: bool = False):
        """
        Args:
            default_timeout: Seconds before a run is killed, None waits forever
            dry_run: Report the command line instead of running it
        """
        self.default_timeout = default_timeout
        self.dry_run = dry_run

    def _dry_run_result(self, argv: list[str]) -> ExecutionResult:
        return ExecutionResult(
            success=True,
            return_code=0,
            stdout=f"[DRY RUN] {subprocess.list2cmdline(argv)}",
        )

    async def execute(
        self,
        argv: list[str],
        timeout: Optional[int] = None,
        cwd: Optional[str] = None,
        capture_output: bool = True
    ) -> ExecutionResult:
        """Run ``argv`` as an asyncio subprocess.

        Args:
            argv: Executable followed by its arguments
            timeout: Overrides ``default_timeout``
            cwd: Working directory
            capture_output: Collect stdout/stderr instead of inheriting them
        """
        if self.dry_run:
            return self._dry_run_result(argv)

        timeout = timeout or self.default_timeout
        pipe = subprocess.PIPE if capture_output else None
        started = time.perf_counter()
        logger.debug(f"Executing {argv}")

        try:
            process = await asyncio.create_subprocess_exec(
                *argv, stdout=pipe, stderr=pipe, cwd=cwd
            )
        except OSError as e:
            return _launch_error(argv, e, time.perf_counter() - started)

        try:
            out, err = await asyncio.wait_for(process.communicate(), timeout=timeout)
        except asyncio.TimeoutError:
            process.kill()
            await process.wait()
            return _timeout(argv, timeout, time.perf_counter() - started)

        return ExecutionResult(
            success=process.returncode == 0,
            return_code=process.returncode or 0,
            stdout=_decode(out),
            stderr=_decode(err),
            execution_time=time.perf_counter() - started,
        )

    def execute_sync(
        self,
        argv: list[str],
        timeout: Optional[int] = None,
        cwd: Optional[str] = None,
        capture_output: bool = True
    ) -> ExecutionResult:
        """Blocking counterpart of :meth:`execute`."""
        if self.dry_run:
            return self._dry_run_result(argv)

        timeout = timeout or self.default_timeout
        pipe = subprocess.PIPE if capture_output else None
        started = time.perf_counter()
        logger.debug(f"Executing {argv}")

        try:
            completed = subprocess.run(
                argv, stdout=pipe, stderr=pipe, timeout=timeout, cwd=cwd
            )
        except subprocess.TimeoutExpired:
            return _timeout(argv, timeout, time.perf_counter() - started)
        except OSError as e:
            return _launch_error(argv, e, time.perf_counter() - started)

        return ExecutionResult(
            success=completed.returncode == 0,
            return_code=completed.returncode,
            stdout=_decode(completed.stdout),
            stderr=_decode(completed.stderr),
            execution_time=time.perf_counter() - started,
        )
