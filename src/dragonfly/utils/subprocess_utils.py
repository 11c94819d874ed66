"""Safe subprocess helpers for the external ffmpeg tools."""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

from dragonfly.core.errors import InvalidPathError

logger = logging.getLogger(__name__)


def path_arg(path: Path | str) -> str:
    """Render a path as a command-line argument.

    Undecodable filename bytes survive in Python paths as surrogate
    escapes; those cannot be handed to a tool as text.
    """
    text = os.fspath(path)
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        raise InvalidPathError(path) from None
    return text


def format_number(value: float) -> str:
    """Format a float for ffmpeg arguments without a trailing ``.0``."""
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def run_command(
    cmd: list[str],
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = True,
) -> subprocess.CompletedProcess:
    """Run an external command to completion with logging and error handling."""
    cmd_str = " ".join(cmd)
    logger.debug(f"Running: {cmd_str}")

    result = subprocess.run(
        cmd,
        cwd=cwd,
        capture_output=True,
        text=True,
        timeout=timeout,
        check=False,
    )

    if result.stdout:
        logger.debug(f"stdout: {result.stdout[-500:]}")
    if result.stderr:
        logger.debug(f"stderr: {result.stderr[-500:]}")

    if check and result.returncode != 0:
        raise subprocess.CalledProcessError(
            result.returncode, cmd_str, result.stdout, result.stderr
        )
    return result


def spawn_command(cmd: list[str]) -> subprocess.Popen:
    """Start an external command without waiting for it."""
    logger.debug(f"Spawning: {' '.join(cmd)}")
    return subprocess.Popen(cmd, stdout=subprocess.DEVNULL)
