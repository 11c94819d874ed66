"""Configuration for Step 02: Frames to video."""

from pydantic import BaseModel, Field


class EncodeFramesConfig(BaseModel):
    length: float = Field(10.0, gt=0, description="Desired length of the video in seconds")
    fps: float = Field(60.0, gt=0, description="Frame rate of the output video")
    scale: str = Field("1.0", description="Scale multiplier, or a literal WxH scale expression")
    codec: str = Field("libx264", description="Video codec")
    preset: str = Field("slow", description="Encoder preset")
    crf: int = Field(18, ge=0, description="Constant rate factor")
    pix_fmt: str = Field("yuv420p", description="Output pixel format")
    tune: str | None = Field("stillimage", description="Encoder tuning (None = no -tune)")
