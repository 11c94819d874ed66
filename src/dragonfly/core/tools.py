"""Locations of the external ffmpeg binaries."""

from __future__ import annotations

import logging
import os
import shutil
import sys
from collections.abc import Mapping

from pydantic import BaseModel, Field

from .errors import ToolNotFoundError

logger = logging.getLogger(__name__)

_EXE_SUFFIX = ".exe" if sys.platform == "win32" else ""
FFMPEG_DEFAULT = f"ffmpeg{_EXE_SUFFIX}"
FFPROBE_DEFAULT = f"ffprobe{_EXE_SUFFIX}"


class ToolsConfig(BaseModel):
    """Paths (or PATH-resolvable names) of the tools the pipeline spawns."""

    ffmpeg: str = Field(FFMPEG_DEFAULT, description="ffmpeg binary")
    ffprobe: str = Field(FFPROBE_DEFAULT, description="ffprobe binary")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ToolsConfig:
        """Build from FFMPEG_BINARY_PATH / FFPROBE_BINARY_PATH, falling back to defaults."""
        env = os.environ if environ is None else environ
        return cls(
            ffmpeg=env.get("FFMPEG_BINARY_PATH") or FFMPEG_DEFAULT,
            ffprobe=env.get("FFPROBE_BINARY_PATH") or FFPROBE_DEFAULT,
        )


def require_tools(tools: ToolsConfig, names: tuple[str, ...] = ("ffmpeg", "ffprobe")) -> None:
    """Raise ToolNotFoundError for the first configured tool that cannot be resolved."""
    for name in names:
        binary = getattr(tools, name)
        resolved = shutil.which(binary)
        if resolved is None:
            raise ToolNotFoundError(binary)
        logger.debug(f"Using {name}: {resolved}")
