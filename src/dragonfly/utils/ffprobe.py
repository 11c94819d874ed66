"""ffprobe client: source resolution of the first video stream."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from dragonfly.core.contracts import SourceResolution
from dragonfly.core.errors import NoStreamFoundError, ProbeIOError
from dragonfly.core.tools import ToolsConfig
from .subprocess_utils import path_arg, run_command

logger = logging.getLogger(__name__)


class FfprobeStream(BaseModel):
    width: int
    height: int


class FfprobeOutput(BaseModel):
    streams: list[FfprobeStream] = Field(default_factory=list)


def build_probe_command(tools: ToolsConfig, path: Path) -> list[str]:
    return [
        tools.ffprobe,
        "-v", "error",
        "-select_streams", "v:0",
        "-show_entries", "stream=width,height",
        "-of", "json=compact=1",
        path_arg(path),
    ]


def parse_probe_output(stdout: str | bytes, path: Path) -> SourceResolution:
    try:
        output = FfprobeOutput.model_validate_json(stdout)
    except ValidationError as exc:
        raise ProbeIOError(path, f"unparsable output: {exc}") from exc
    if not output.streams:
        raise NoStreamFoundError(path)
    stream = output.streams[0]
    try:
        return SourceResolution(width=stream.width, height=stream.height)
    except ValidationError as exc:
        raise ProbeIOError(path, f"invalid resolution {stream.width}x{stream.height}") from exc


def probe_resolution(path: Path, tools: ToolsConfig | None = None) -> SourceResolution:
    """Resolution of the first video stream in ``path``."""
    tools = tools or ToolsConfig()
    cmd = build_probe_command(tools, Path(path))
    try:
        result = run_command(cmd)
    except OSError as exc:
        raise ProbeIOError(path, str(exc)) from exc
    except subprocess.CalledProcessError as exc:
        reason = (exc.stderr or "").strip() or f"exit status {exc.returncode}"
        raise ProbeIOError(path, reason) from exc

    resolution = parse_probe_output(result.stdout, Path(path))
    logger.info(f"Source resolution {resolution.width}x{resolution.height}: {path}")
    return resolution
