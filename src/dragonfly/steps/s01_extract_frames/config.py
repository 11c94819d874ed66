"""Configuration for Step 01: Equirectangular source to rectilinear frames."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class Interpolation(str, Enum):
    """Sampling methods understood by the ffmpeg v360 filter."""

    NEAR = "near"
    LINEAR = "linear"
    CUBIC = "cubic"
    LANCZOS = "lanczos"
    SPLINE16 = "spline16"
    LAGRANGE9 = "lagrange9"
    GAUSSIAN = "gaussian"
    MITCHELL = "mitchell"


class ExtractFramesConfig(BaseModel):
    frame_count: int = Field(360, ge=0, description="Number of frames to extract")
    ih_fov: float = Field(360.0, gt=0, description="Horizontal field of view of the input in degrees")
    iv_fov: float = Field(180.0, gt=0, description="Vertical field of view of the input in degrees")
    h_fov: float = Field(60.0, gt=0, description="Horizontal field of view of the output frames in degrees")
    v_fov: float = Field(45.0, gt=0, description="Vertical field of view of the output frames in degrees")
    interpolation: Interpolation = Field(Interpolation.LINEAR, description="Interpolation method")
    max_concurrency: int = Field(4, ge=1, description="Maximum ffmpeg processes running at once")
    job_timeout: float | None = Field(
        None, gt=0, description="Seconds before a frame render is terminated (None = wait forever)"
    )
    kill_grace: float = Field(5.0, ge=0, description="Seconds between terminate and kill on timeout")
    poll_interval: float = Field(0.05, ge=0, description="Seconds between checks of running renders")
