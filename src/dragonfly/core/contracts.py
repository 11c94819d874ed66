"""Common Pydantic models shared across pipeline steps."""

from __future__ import annotations

import tempfile
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, Field

from dragonfly.steps.s01_extract_frames.config import ExtractFramesConfig
from dragonfly.steps.s02_encode_frames.config import EncodeFramesConfig


class SourceResolution(BaseModel):
    """Pixel resolution of the first video stream of a source."""

    width: int = Field(..., gt=0)
    height: int = Field(..., gt=0)


class FrameJob(BaseModel):
    """One virtual camera orientation and the image it renders to."""

    index: int = Field(..., ge=0)
    yaw: float
    pitch: float = 0.0
    roll: float = 0.0
    output_path: Path


class JobStatus(str, Enum):
    COMPLETED = "completed"
    FAILED = "failed"
    TIMED_OUT = "timed_out"


class JobOutcome(BaseModel):
    job: FrameJob
    status: JobStatus
    returncode: int | None = None

    @property
    def ok(self) -> bool:
        return self.status is JobStatus.COMPLETED


class PipelineConfig(BaseModel):
    """Top-level pipeline configuration loaded from pipeline.yaml."""

    project_name: str = "dragonfly"
    work_root: Path = Field(
        default_factory=lambda: Path(tempfile.gettempdir()),
        description="Directory under which new extraction directories are created",
    )
    extract: ExtractFramesConfig = Field(default_factory=ExtractFramesConfig)
    encode: EncodeFramesConfig = Field(default_factory=EncodeFramesConfig)
