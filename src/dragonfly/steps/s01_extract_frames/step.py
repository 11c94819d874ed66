"""Step 01: Render a yaw sweep of rectilinear frames from an equirectangular source."""

from __future__ import annotations

import logging
from collections.abc import Callable
from pathlib import Path
from typing import ClassVar

from dragonfly.core.contracts import SourceResolution
from dragonfly.core.step_base import BaseStep
from dragonfly.core.tools import ToolsConfig
from dragonfly.utils.ffprobe import probe_resolution
from dragonfly.utils.geometry import output_resolution, plan_frame_jobs
from ._render import FrameRenderer
from ._scheduler import Launcher, ProgressCallback, run_batches
from .config import ExtractFramesConfig
from .contracts import ExtractFramesInput, ExtractFramesOutput

logger = logging.getLogger(__name__)

IN_PROGRESS_MARKER = ".dragonfly-extracting"

Prober = Callable[[Path, ToolsConfig], SourceResolution]
LauncherFactory = Callable[[ToolsConfig, Path, ExtractFramesConfig, SourceResolution], Launcher]


class ExtractFramesStep(BaseStep[ExtractFramesInput, ExtractFramesOutput, ExtractFramesConfig]):
    name: ClassVar[str] = "extract_frames"
    input_type: ClassVar = ExtractFramesInput
    output_type: ClassVar = ExtractFramesOutput
    config_type: ClassVar = ExtractFramesConfig

    def __init__(
        self,
        config: ExtractFramesConfig,
        tools: ToolsConfig | None = None,
        progress: ProgressCallback | None = None,
        prober: Prober = probe_resolution,
        launcher_factory: LauncherFactory = FrameRenderer,
    ):
        super().__init__(config, tools)
        self.progress = progress
        self.prober = prober
        self.launcher_factory = launcher_factory

    def validate_inputs(self, inputs: ExtractFramesInput) -> bool:
        if not inputs.source_path.exists():
            logger.error(f"Source not found: {inputs.source_path}")
            return False
        if inputs.frames_dir.exists() and not inputs.frames_dir.is_dir():
            logger.error(f"Frames path is not a directory: {inputs.frames_dir}")
            return False
        return True

    def run(self, inputs: ExtractFramesInput) -> ExtractFramesOutput:
        cfg = self.config
        source = self.prober(inputs.source_path, self.tools)
        resolution = output_resolution(source, cfg.ih_fov, cfg.iv_fov, cfg.h_fov, cfg.v_fov)
        launch = self.launcher_factory(self.tools, inputs.source_path, cfg, resolution)

        frames_dir = inputs.frames_dir
        frames_dir.mkdir(parents=True, exist_ok=True)
        jobs = plan_frame_jobs(cfg.frame_count, frames_dir)
        logger.info(
            f"Extracting {len(jobs)} frames at {resolution.width}x{resolution.height} "
            f"into {frames_dir} (max {cfg.max_concurrency} concurrent)"
        )

        marker = frames_dir / IN_PROGRESS_MARKER
        marker.touch()
        try:
            run_batches(
                jobs,
                launch,
                cfg.max_concurrency,
                progress=self.progress,
                job_timeout=cfg.job_timeout,
                poll_interval=cfg.poll_interval,
                kill_grace=cfg.kill_grace,
            )
        finally:
            marker.unlink(missing_ok=True)

        return ExtractFramesOutput(
            frames_dir=frames_dir,
            frame_count=len(jobs),
            source_width=source.width,
            source_height=source.height,
            output_width=resolution.width,
            output_height=resolution.height,
        )
