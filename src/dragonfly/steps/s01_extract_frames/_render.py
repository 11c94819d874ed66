"""ffmpeg v360 invocation that renders one rectilinear frame."""

from __future__ import annotations

from pathlib import Path

from dragonfly.core.contracts import FrameJob, SourceResolution
from dragonfly.core.tools import ToolsConfig
from dragonfly.utils.subprocess_utils import format_number, path_arg, spawn_command
from .config import ExtractFramesConfig


def v360_filter(job: FrameJob, config: ExtractFramesConfig, resolution: SourceResolution) -> str:
    # See https://ffmpeg.org/ffmpeg-filters.html#v360
    params = [
        ("yaw", format_number(job.yaw)),
        ("pitch", format_number(job.pitch)),
        ("roll", format_number(job.roll)),
        ("ih_fov", format_number(config.ih_fov)),
        ("iv_fov", format_number(config.iv_fov)),
        ("h_fov", format_number(config.h_fov)),
        ("v_fov", format_number(config.v_fov)),
        ("interp", config.interpolation.value),
        ("w", str(resolution.width)),
        ("h", str(resolution.height)),
    ]
    return "v360=e:flat:" + ":".join(f"{key}={value}" for key, value in params)


class FrameRenderer:
    """Launcher for the scheduler: one ffmpeg process per frame job."""

    def __init__(
        self,
        tools: ToolsConfig,
        source_path: Path,
        config: ExtractFramesConfig,
        resolution: SourceResolution,
    ):
        self.tools = tools
        self.source_arg = path_arg(source_path)
        self.config = config
        self.resolution = resolution

    def build_command(self, job: FrameJob) -> list[str]:
        return [
            self.tools.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-nostats",
            "-i", self.source_arg,
            "-vf", v360_filter(job, self.config, self.resolution),
            # https://ffmpeg.org/ffmpeg-formats.html#image2-1
            "-f", "image2",
            "-frames:v", "1",
            "-update", "1",
            "-y",
            path_arg(job.output_path),
        ]

    def __call__(self, job: FrameJob):
        return spawn_command(self.build_command(job))
