"""Pipeline orchestrator: extraction, session handoff, encoding."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from pathlib import Path

import yaml
from pydantic import BaseModel

from dragonfly.steps.s01_extract_frames.contracts import ExtractFramesInput, ExtractFramesOutput
from dragonfly.steps.s01_extract_frames.step import ExtractFramesStep
from dragonfly.steps.s01_extract_frames._scheduler import ProgressCallback
from dragonfly.steps.s02_encode_frames.contracts import EncodeFramesInput, EncodeFramesOutput
from dragonfly.steps.s02_encode_frames.step import EncodeFramesStep
from .contracts import PipelineConfig
from .session import FileSessionStore, SessionStore
from .tools import ToolsConfig, require_tools

logger = logging.getLogger(__name__)

STEPS: list[tuple[str, type]] = [
    ("s01_extract_frames", ExtractFramesStep),
    ("s02_encode_frames", EncodeFramesStep),
]


@dataclass
class ExtractResult:
    output: ExtractFramesOutput
    session_saved: bool


def load_pipeline_config(config_path: Path) -> PipelineConfig:
    """Load and validate pipeline.yaml."""
    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return PipelineConfig(**raw)


def load_step_config(config_path: Path, config_class: type[BaseModel]) -> BaseModel:
    """Load a step-specific YAML config into its Pydantic model."""
    with open(config_path, encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    return config_class(**raw)


def new_extraction_dir(work_root: Path) -> Path:
    """A fresh ``dragonfly-<unix seconds>`` directory under ``work_root``."""
    return Path(work_root) / f"dragonfly-{int(time.time())}"


def run_extract(
    source_path: Path,
    config: PipelineConfig,
    tools: ToolsConfig,
    extraction_dir: Path | None = None,
    session: SessionStore | None = None,
    progress: ProgressCallback | None = None,
    check_tools: bool = True,
) -> ExtractResult:
    """Extract frames and remember the directory for a later encode."""
    if check_tools:
        require_tools(tools, ("ffprobe", "ffmpeg"))
    session = session if session is not None else FileSessionStore()
    # absolute, so a later encode from another cwd finds the same directory
    frames_dir = Path(extraction_dir or new_extraction_dir(config.work_root)).resolve()

    step = ExtractFramesStep(config=config.extract, tools=tools, progress=progress)
    output = step.execute(ExtractFramesInput(source_path=source_path, frames_dir=frames_dir))

    session_saved = True
    try:
        session.save(output.frames_dir)
    except OSError as exc:
        session_saved = False
        logger.warning(f"Could not remember extraction directory {output.frames_dir}: {exc}")
    return ExtractResult(output=output, session_saved=session_saved)


def resolve_extraction_dir(extraction_dir: Path | None, session: SessionStore) -> Path:
    """The explicit directory if given, else the one saved by the last extraction."""
    if extraction_dir is not None:
        return extraction_dir
    frames_dir = session.load()
    logger.info(f"Using extraction directory from last session: {frames_dir}")
    return frames_dir


def run_encode(
    output_path: Path,
    config: PipelineConfig,
    tools: ToolsConfig,
    extraction_dir: Path | None = None,
    session: SessionStore | None = None,
    check_tools: bool = True,
) -> EncodeFramesOutput:
    """Encode a frames directory into ``output_path``."""
    if check_tools:
        require_tools(tools, ("ffmpeg",))
    session = session if session is not None else FileSessionStore()
    frames_dir = resolve_extraction_dir(extraction_dir, session)

    step = EncodeFramesStep(config=config.encode, tools=tools)
    return step.execute(EncodeFramesInput(frames_dir=frames_dir, output_path=output_path))


def run_pipeline(
    source_path: Path,
    output_path: Path,
    config: PipelineConfig,
    tools: ToolsConfig,
    extraction_dir: Path | None = None,
    session: SessionStore | None = None,
    progress: ProgressCallback | None = None,
    check_tools: bool = True,
) -> tuple[ExtractResult, EncodeFramesOutput]:
    """Execute extraction then encoding on the same directory."""
    if check_tools:
        require_tools(tools, ("ffprobe", "ffmpeg"))
    logger.info(f"Pipeline '{config.project_name}': {source_path} -> {output_path}")
    extracted = run_extract(
        source_path,
        config,
        tools,
        extraction_dir=extraction_dir,
        session=session,
        progress=progress,
        check_tools=False,
    )
    encoded = run_encode(
        output_path,
        config,
        tools,
        extraction_dir=extracted.output.frames_dir,
        session=session,
        check_tools=False,
    )
    logger.info("Pipeline complete.")
    return extracted, encoded
