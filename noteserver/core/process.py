"""Run external helper programs from async handlers."""

import asyncio
import logging
from typing import List, Optional

from noteserver.errors import DelegateError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0


class CommandResult:
    """Exit status and captured output of a finished command."""

    def __init__(self, returncode: int, stdout: bytes, stderr: bytes):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr

    @property
    def ok(self) -> bool:
        return self.returncode == 0


async def run_command(
    argv: List[str],
    input: Optional[bytes] = None,
    timeout: Optional[float] = DEFAULT_TIMEOUT,
    check: bool = True,
) -> CommandResult:
    """Run argv to completion, feeding it input and capturing its output.

    A missing program, a timeout, or (with check) a non-zero exit raises
    DelegateError. Cancellation of the caller kills the child.
    """
    if not argv:
        raise DelegateError("empty command line")
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise DelegateError(f"starting {argv[0]!r}: {e}") from e

    try:
        stdout, stderr = await asyncio.wait_for(proc.communicate(input), timeout)
    except asyncio.TimeoutError:
        _kill(proc)
        raise DelegateError(f"{argv[0]!r} timed out after {timeout}s")
    except asyncio.CancelledError:
        _kill(proc)
        raise

    result = CommandResult(proc.returncode, stdout, stderr)
    if check and not result.ok:
        detail = stderr.decode("utf-8", "replace").strip()
        raise DelegateError(
            f"{argv[0]!r} exited with status {proc.returncode}",
            data={"stderr": detail} if detail else None,
        )
    return result


def _kill(proc) -> None:
    try:
        proc.kill()
    except ProcessLookupError:
        pass
