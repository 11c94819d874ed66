"""I/O contracts for Step 01: Equirectangular source to rectilinear frames."""

from pathlib import Path
from pydantic import BaseModel, Field


class ExtractFramesInput(BaseModel):
    source_path: Path = Field(..., description="Equirectangular image or video")
    frames_dir: Path = Field(..., description="Directory that receives the extracted frames")


class ExtractFramesOutput(BaseModel):
    frames_dir: Path = Field(..., description="Directory containing extracted frames")
    frame_count: int = Field(..., description="Number of frames extracted")
    source_width: int = Field(..., description="Width of the source video stream")
    source_height: int = Field(..., description="Height of the source video stream")
    output_width: int = Field(..., description="Width of each extracted frame")
    output_height: int = Field(..., description="Height of each extracted frame")
