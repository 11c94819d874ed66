"""Camera sweep geometry: yaw per frame and output frame size."""

from __future__ import annotations

from pathlib import Path

from dragonfly.core.contracts import FrameJob, SourceResolution
from dragonfly.core.errors import InvalidConfigError

FRAME_PATH_TEMPLATE = "frame_%08d.jpg"


def frame_filename(index: int) -> str:
    return f"frame_{index:08d}.jpg"


def yaw_for_frame(index: int, frame_count: int) -> float:
    """Yaw in degrees for frame ``index`` of a full sweep.

    The sweep covers [-180, 180): +180 is excluded because it shows the
    same view as -180 and would duplicate the first frame at the loop seam.
    """
    if frame_count <= 0:
        raise InvalidConfigError(f"frame_count must be positive, got {frame_count}")
    return -180.0 + 360.0 * (index / frame_count)


def output_resolution(
    source: SourceResolution,
    ih_fov: float,
    iv_fov: float,
    h_fov: float,
    v_fov: float,
) -> SourceResolution:
    """Scale the source resolution by the output/input FOV ratio per axis."""
    if ih_fov <= 0 or iv_fov <= 0:
        raise InvalidConfigError(f"Input FOVs must be positive, got {ih_fov}x{iv_fov}")
    width = int(source.width * (h_fov / ih_fov))
    height = int(source.height * (v_fov / iv_fov))
    if width <= 0 or height <= 0:
        raise InvalidConfigError(
            f"Output FOV {h_fov}x{v_fov} of a {source.width}x{source.height} source "
            f"gives an empty {width}x{height} frame"
        )
    return SourceResolution(width=width, height=height)


def plan_frame_jobs(frame_count: int, frames_dir: Path) -> list[FrameJob]:
    """One job per frame, in ascending index order."""
    frames_dir = Path(frames_dir)
    return [
        FrameJob(
            index=index,
            yaw=yaw_for_frame(index, frame_count),
            pitch=0.0,
            roll=0.0,
            output_path=frames_dir / frame_filename(index),
        )
        for index in range(frame_count)
    ]
