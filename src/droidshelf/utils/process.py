"""Asyncio subprocess wrapper for all external tool invocations."""

import asyncio
import logging
from dataclasses import dataclass

from droidshelf.exceptions import ProcessError

logger = logging.getLogger(__name__)


@dataclass
class ProcessResult:
    """Exit status and decoded streams of one finished command."""

    command: list[str]
    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0

    @property
    def lines(self) -> list[str]:
        """Non-empty stdout lines."""
        return [line for line in self.stdout.strip().splitlines() if line]


async def run_tool(
    command: list[str],
    *,
    check: bool = True,
    timeout: float | None = None,
    cwd: str | None = None,
) -> ProcessResult:
    """Run adb or aapt2 without blocking the event loop.

    Output is decoded as UTF-8 with replacement. With ``timeout`` set the
    process is killed once it expires.

    Raises:
        ProcessError: The binary is missing, the timeout expired, or the exit
            status was non-zero and ``check`` is set.
    """
    logger.debug("$ %s", " ".join(command))

    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=cwd,
        )
    except FileNotFoundError as e:
        raise ProcessError(command, -1, f"Command not found: {command[0]}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=timeout)
    except asyncio.TimeoutError as e:
        proc.kill()
        await proc.wait()
        raise ProcessError(command, -1, f"Command timed out after {timeout}s") from e

    returncode = proc.returncode if proc.returncode is not None else -1
    result = ProcessResult(
        command=command,
        returncode=returncode,
        stdout=stdout.decode("utf-8", errors="replace"),
        stderr=stderr.decode("utf-8", errors="replace"),
    )
    logger.debug("exit %d: %s", returncode, command[0])

    if check and not result.success:
        raise ProcessError(command, returncode, result.stderr.strip())

    return result
