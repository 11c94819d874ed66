"""I/O contracts for Step 02: Frames to video."""

from pathlib import Path
from pydantic import BaseModel, Field


class EncodeFramesInput(BaseModel):
    frames_dir: Path = Field(..., description="Directory containing frame_%08d.jpg images")
    output_path: Path = Field(..., description="Video file to write")


class EncodeFramesOutput(BaseModel):
    output_path: Path = Field(..., description="Encoded video file")
    total_frame_count: int = Field(..., description="Frames found in the frames directory")
    input_fps: float = Field(..., description="Rate the frames were read at")
    returncode: int = Field(0, description="ffmpeg exit status")
