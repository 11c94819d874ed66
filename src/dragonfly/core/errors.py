"""Exception hierarchy shared by the extraction and encoding phases."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from dragonfly.core.contracts import JobOutcome


class DragonflyError(Exception):
    """Base class for every fatal dragonfly error."""


class ToolNotFoundError(DragonflyError):
    """A required external binary is missing from the environment."""

    def __init__(self, tool: str):
        super().__init__(f'"{tool}" not found, please install it from https://ffmpeg.org/')
        self.tool = tool


class InvalidConfigError(DragonflyError, ValueError):
    pass


class InvalidPathError(DragonflyError):
    """A path cannot be passed to an external tool as a string."""

    def __init__(self, path: Path | str):
        super().__init__(f"Cannot convert path to string: {path!r}")
        self.path = path


class StepInputError(DragonflyError, ValueError):
    pass


class ProbeFailedError(DragonflyError):
    """ffprobe was unusable or the source has nothing to sample."""


class NoStreamFoundError(ProbeFailedError):
    def __init__(self, path: Path):
        super().__init__(f"Source contains no video stream: {path}")
        self.path = path


class ProbeIOError(ProbeFailedError):
    def __init__(self, path: Path, reason: str):
        super().__init__(f"Error while running ffprobe on {path}: {reason}")
        self.path = path
        self.reason = reason


class JobFailedError(DragonflyError):
    """A frame rendering process did not complete successfully."""

    def __init__(self, outcome: JobOutcome, message: str | None = None):
        if message is None:
            message = (
                f"Frame {outcome.job.index} failed with exit status {outcome.returncode} "
                f"({outcome.job.output_path})"
            )
        super().__init__(message)
        self.outcome = outcome


class JobTimedOutError(JobFailedError):
    def __init__(self, outcome: JobOutcome, timeout: float | None = None):
        super().__init__(
            outcome,
            f"Frame {outcome.job.index} timed out after {timeout}s ({outcome.job.output_path})",
        )
        self.timeout = timeout


class EncodeFailedError(DragonflyError):
    def __init__(self, returncode: int | None, output_path: Path, reason: str | None = None):
        if returncode is None:
            message = f"Could not start ffmpeg to encode {output_path}: {reason}"
        else:
            message = f"ffmpeg encode of {output_path} failed with exit status {returncode}"
        super().__init__(message)
        self.returncode = returncode
        self.output_path = output_path


class EmptyFrameSetError(DragonflyError):
    def __init__(self, frames_dir: Path):
        super().__init__(f"No frames found to encode in {frames_dir}")
        self.frames_dir = frames_dir


class ExtractionInProgressError(DragonflyError):
    def __init__(self, frames_dir: Path):
        super().__init__(
            f"Extraction into {frames_dir} is still in progress "
            "(remove the marker file if the previous run was interrupted)"
        )
        self.frames_dir = frames_dir


class SessionNotFoundError(DragonflyError):
    def __init__(self, location: Path | None = None):
        where = f" at {location}" if location is not None else ""
        super().__init__(
            f"No previous extraction found{where}, run `dragonfly extract` "
            "or pass --extraction-dir"
        )
        self.location = location
