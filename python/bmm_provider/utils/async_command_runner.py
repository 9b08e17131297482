"""
bmm_provider/utils/async_command_runner.py

Runs a local command (kubectl) in a subprocess, asynchronously, and returns
its stdout. Failures raise CommandError; nothing is retried here, callers
rely on the next reconciliation pass instead.

Usage example:
    from bmm_provider.utils.async_command_runner import run_command, CommandError

    try:
        raw = await run_command(["kubectl", "get", "machines", "-o", "json"])
    except CommandError as err:
        if err.not_found:
            ...
"""

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional, Sequence

logger = logging.getLogger(__name__)


class CommandError(Exception):
    """Represents a failure when executing a shell command.

    Attributes:
        message (str): The error message describing the command failure.
        return_code (Optional[int]): The exit code if available.
        stderr (str): Captured stderr (empty when the command was sensitive).
    """

    def __init__(
        self, message: str, return_code: Optional[int] = None, stderr: str = ""
    ) -> None:
        super().__init__(message)
        self.return_code = return_code
        self.stderr = stderr

    @property
    def not_found(self) -> bool:
        """True if kubectl reported that the requested object does not exist."""
        return "NotFound" in self.stderr or "NotFound" in str(self)


async def run_command(
    command: List[str],
    *,
    sensitive: bool = False,
    input_data: Optional[str] = None,
    successful_return_codes: Sequence[int] = (0,),
) -> str:
    """
    Executes a local command in a subprocess and captures its output.

    When `sensitive=True`, the command, stdout and stderr are omitted from the
    raised error and from the debug log (used for commands that read Secrets).

    Args:
        command (List[str]):
            The command and arguments to execute.
        sensitive (bool):
            If True, hides command details in the raised error.
        input_data (Optional[str]):
            If provided, passed to stdin.
        successful_return_codes (Sequence[int]):
            Which return codes won't be treated as errors. Defaults to (0,).

    Returns:
        str: The captured stdout of the command on success.

    Raises:
        CommandError: If the executable is missing or the command returns a
            code not in `successful_return_codes`.
    """
    if not sensitive:
        logger.debug("Running %s", " ".join(command))

    stdin = asyncio.subprocess.PIPE if input_data else asyncio.subprocess.DEVNULL
    try:
        proc = await asyncio.create_subprocess_exec(
            *command,
            stdin=stdin,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except FileNotFoundError as ex:
        raise CommandError(f"Executable not found: {command[0]}") from ex

    stdout_bytes, stderr_bytes = await proc.communicate(
        input=input_data.encode() if input_data else None
    )
    stdout_str = stdout_bytes.decode(errors="replace").strip()
    stderr_str = stderr_bytes.decode(errors="replace").strip()

    if proc.returncode not in successful_return_codes:
        if sensitive:
            # Keep only the NotFound marker so callers can still branch on it.
            marker = "NotFound" if "NotFound" in stderr_str else ""
            raise CommandError(
                f"Command failed with return code {proc.returncode}.",
                proc.returncode,
                stderr=marker,
            )
        raise CommandError(
            f"Command failed with return code {proc.returncode}."
            f"\nCommand: {' '.join(command)}"
            f"\nStdout: {stdout_str}"
            f"\nStderr: {stderr_str}",
            proc.returncode,
            stderr=stderr_str,
        )

    return stdout_str
