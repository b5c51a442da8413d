"""Subprocess wrapper used for git and the test command."""

import logging
import subprocess
from pathlib import Path

logger = logging.getLogger(__name__)

MAX_OUTPUT_BYTES = 10 * 1024 * 1024


class CommandExecutionError(Exception):
    """Raised when a command exits non-zero, times out, or cannot be started."""

    def __init__(
        self,
        command: str,
        args: list[str],
        stdout: str = "",
        stderr: str = "",
        exit_code: int | None = None,
        timed_out: bool = False,
        message: str | None = None,
    ) -> None:
        self.command = command
        self.args = list(args)
        self.stdout = stdout
        self.stderr = stderr
        self.exit_code = exit_code
        self.timed_out = timed_out
        super().__init__(message or f"Command failed: {command} {' '.join(args)}")


class CommandRunner:
    """Runs commands synchronously and returns stripped stdout."""

    def __init__(self, cwd: str | Path | None = None) -> None:
        self.cwd = str(cwd) if cwd is not None else None

    def run(
        self,
        command: str,
        args: list[str],
        timeout: float | None = None,
        input_text: str | None = None,
    ) -> str:
        """Run ``command args`` and return stdout with trailing whitespace removed.

        Raises:
            CommandExecutionError: On non-zero exit, timeout, or a missing binary.
        """
        logger.debug("Running command: %s %s", command, " ".join(args))
        try:
            result = subprocess.run(
                [command, *args],
                cwd=self.cwd,
                input=input_text,
                capture_output=True,
                text=True,
                timeout=timeout,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandExecutionError(
                command,
                args,
                stdout=_decode(exc.stdout),
                stderr=_decode(exc.stderr),
                timed_out=True,
                message=f"Command timed out after {timeout}s: {command} {' '.join(args)}",
            ) from exc
        except OSError as exc:
            raise CommandExecutionError(
                command,
                args,
                stderr=str(exc),
                message=f"Command could not be started: {command}: {exc}",
            ) from exc

        stdout = result.stdout[:MAX_OUTPUT_BYTES]
        if result.returncode != 0:
            raise CommandExecutionError(
                command,
                args,
                stdout=stdout,
                stderr=result.stderr[:MAX_OUTPUT_BYTES],
                exit_code=result.returncode,
            )
        return stdout.rstrip()


def _decode(value: bytes | str | None) -> str:
    if value is None:
        return ""
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
