"""Step 02: Encode an extracted frame sweep into a video."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import ClassVar

from dragonfly.core.errors import EmptyFrameSetError, EncodeFailedError, ExtractionInProgressError
from dragonfly.core.step_base import BaseStep
from dragonfly.steps.s01_extract_frames.step import IN_PROGRESS_MARKER
from dragonfly.utils.geometry import FRAME_PATH_TEMPLATE
from dragonfly.utils.subprocess_utils import format_number, path_arg, run_command
from .config import EncodeFramesConfig
from .contracts import EncodeFramesInput, EncodeFramesOutput

logger = logging.getLogger(__name__)


def count_frames(frames_dir: Path) -> int:
    """Number of regular files in ``frames_dir``, the extraction marker aside.

    This count drives the timing, not the frame_count requested at
    extraction, so partial or hand-filled directories encode too.
    """
    return sum(
        1 for entry in frames_dir.iterdir()
        if entry.is_file() and entry.name != IN_PROGRESS_MARKER
    )


def scale_filter(scale: str) -> str:
    """``scale=iw*S:ih*S`` for a numeric multiplier, else the expression as given."""
    try:
        factor = float(scale)
    except ValueError:
        return f"scale={scale}"
    return f"scale=iw*{format_number(factor)}:ih*{format_number(factor)}"


class EncodeFramesStep(BaseStep[EncodeFramesInput, EncodeFramesOutput, EncodeFramesConfig]):
    name: ClassVar[str] = "encode_frames"
    input_type: ClassVar = EncodeFramesInput
    output_type: ClassVar = EncodeFramesOutput
    config_type: ClassVar = EncodeFramesConfig

    def validate_inputs(self, inputs: EncodeFramesInput) -> bool:
        if not inputs.frames_dir.is_dir():
            logger.error(f"Frames directory not found: {inputs.frames_dir}")
            return False
        return True

    def build_command(self, inputs: EncodeFramesInput, total_frame_count: int) -> list[str]:
        cfg = self.config
        input_fps = total_frame_count / cfg.length
        cmd = [
            self.tools.ffmpeg,
            "-hide_banner",
            "-loglevel", "error",
            "-nostats",
            "-r", format_number(input_fps),
            "-i", path_arg(inputs.frames_dir / FRAME_PATH_TEMPLATE),
            "-c:v", cfg.codec,
            "-preset", cfg.preset,
            "-crf", str(cfg.crf),
            "-pix_fmt", cfg.pix_fmt,
        ]
        if cfg.tune:
            cmd += ["-tune", cfg.tune]
        cmd += [
            # keyframes only at the sweep boundaries
            "-g", str(total_frame_count - 1),
            "-vf", scale_filter(cfg.scale),
            # output rate differs from input rate, see https://trac.ffmpeg.org/wiki/ChangingFrameRate
            "-r", format_number(cfg.fps),
            "-y",
            path_arg(inputs.output_path),
        ]
        return cmd

    def run(self, inputs: EncodeFramesInput) -> EncodeFramesOutput:
        if (inputs.frames_dir / IN_PROGRESS_MARKER).exists():
            raise ExtractionInProgressError(inputs.frames_dir)

        total_frame_count = count_frames(inputs.frames_dir)
        logger.debug(f"Total frame count {total_frame_count}")
        if total_frame_count == 0:
            raise EmptyFrameSetError(inputs.frames_dir)

        cmd = self.build_command(inputs, total_frame_count)
        logger.info(f"Encoding {total_frame_count} frames to {inputs.output_path}")
        try:
            result = run_command(cmd, check=False)
        except OSError as exc:
            raise EncodeFailedError(None, inputs.output_path, str(exc)) from exc
        if result.returncode != 0:
            if result.stderr:
                logger.error(result.stderr.strip()[-500:])
            raise EncodeFailedError(result.returncode, inputs.output_path)

        return EncodeFramesOutput(
            output_path=inputs.output_path,
            total_frame_count=total_frame_count,
            input_fps=total_frame_count / self.config.length,
            returncode=result.returncode,
        )
