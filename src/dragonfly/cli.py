"""CLI entry point for dragonfly.

Usage:
    dragonfly extract pano.jpg          # Render the frame sweep
    dragonfly encode out.mp4            # Encode the last extracted sweep
    dragonfly run pano.jpg out.mp4      # Both phases
    dragonfly info                      # Show steps and tool locations
"""

from __future__ import annotations

import shutil
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, MofNCompleteColumn, Progress, TextColumn, TimeRemainingColumn
from rich.table import Table

from dragonfly.core.contracts import PipelineConfig
from dragonfly.core.errors import (
    DragonflyError,
    InvalidConfigError,
    SessionNotFoundError,
    ToolNotFoundError,
)
from dragonfly.core.logging import setup_logging
from dragonfly.core.tools import ToolsConfig, require_tools
from dragonfly.steps.s01_extract_frames.config import Interpolation

EXIT_USAGE = 64
EXIT_UNAVAILABLE = 69

app = typer.Typer(name="dragonfly", help="Equirectangular source to rectilinear fly-around video")
console = Console()
err_console = Console(stderr=True)

DEFAULT_CONFIG = Path("configs/pipeline.yaml")

T = TypeVar("T")


def load_config(config: Path, overrides: dict[str, dict[str, Any]]) -> PipelineConfig:
    """Pipeline config from YAML (or defaults) with non-None CLI flags applied."""
    from dragonfly.core.pipeline_runner import load_pipeline_config

    if not config.exists() and config != DEFAULT_CONFIG:
        raise InvalidConfigError(f"Config file not found: {config}")

    try:
        base = load_pipeline_config(config) if config.exists() else PipelineConfig()
        data = base.model_dump()
        for section, values in overrides.items():
            data[section].update({k: v for k, v in values.items() if v is not None})
        return PipelineConfig(**data)
    except ValidationError as exc:
        raise InvalidConfigError(str(exc)) from exc


def exit_code_for(exc: DragonflyError) -> int:
    if isinstance(exc, ToolNotFoundError):
        return EXIT_UNAVAILABLE
    if isinstance(exc, (SessionNotFoundError, InvalidConfigError)):
        return EXIT_USAGE
    return 1


def guarded(func: Callable[[], T]) -> T:
    """Run ``func``, turning a DragonflyError into a one-line message and exit code."""
    try:
        return func()
    except DragonflyError as exc:
        err_console.print(f"[red]{escape(str(exc))}[/red]")
        raise typer.Exit(exit_code_for(exc)) from exc


@contextmanager
def frame_progress(label: str) -> Iterator[Callable[[int, int], None]]:
    with Progress(
        TextColumn("{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeRemainingColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task(label, total=None)

        def update(completed: int, total: int) -> None:
            progress.update(task, completed=completed, total=total)

        yield update


def _extract_overrides(
    frame_count, ih_fov, iv_fov, h_fov, v_fov, jobs, interpolation, job_timeout
) -> dict[str, Any]:
    return {
        "frame_count": frame_count,
        "ih_fov": ih_fov,
        "iv_fov": iv_fov,
        "h_fov": h_fov,
        "v_fov": v_fov,
        "max_concurrency": jobs,
        "interpolation": interpolation,
        "job_timeout": job_timeout,
    }


def _report_extract(result) -> None:
    out = result.output
    console.print(
        f"[green]Extracted {out.frame_count} frames "
        f"({out.output_width}x{out.output_height}) to {out.frames_dir}[/green]"
    )
    if not result.session_saved:
        err_console.print(
            "[yellow]Warning: extraction directory was not saved, "
            f"pass --extraction-dir {out.frames_dir} to encode[/yellow]"
        )


@app.command()
def extract(
    source: Path = typer.Argument(..., help="Equirectangular image or video"),
    frame_count: Optional[int] = typer.Option(None, help="Number of frames to extract"),
    ih_fov: Optional[float] = typer.Option(None, help="Input horizontal FOV in degrees"),
    iv_fov: Optional[float] = typer.Option(None, help="Input vertical FOV in degrees"),
    h_fov: Optional[float] = typer.Option(None, help="Output horizontal FOV in degrees"),
    v_fov: Optional[float] = typer.Option(None, help="Output vertical FOV in degrees"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Concurrent ffmpeg processes"),
    interpolation: Optional[Interpolation] = typer.Option(None, help="Interpolation method"),
    job_timeout: Optional[float] = typer.Option(None, help="Seconds before a frame render is killed"),
    extraction_dir: Optional[Path] = typer.Option(
        None, "--extraction-dir", help="Frames directory (default: new temp dir or last session)"
    ),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Pipeline config path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Render the yaw sweep of SOURCE into a frames directory."""
    setup_logging("DEBUG" if verbose else "WARNING")
    from dragonfly.core.pipeline_runner import run_extract

    tools = ToolsConfig.from_env()
    cfg = guarded(lambda: load_config(config, {"extract": _extract_overrides(
        frame_count, ih_fov, iv_fov, h_fov, v_fov, jobs, interpolation, job_timeout
    )}))

    console.print(f"[1/1] Extracting {cfg.extract.frame_count} frames from {source}")
    with frame_progress("Extracting") as progress:
        result = guarded(lambda: run_extract(
            source, cfg, tools, extraction_dir=extraction_dir, progress=progress
        ))
    _report_extract(result)


@app.command()
def encode(
    output: Path = typer.Argument(Path("output.mp4"), help="Video file to write"),
    length: Optional[float] = typer.Option(None, help="Desired video length in seconds"),
    fps: Optional[float] = typer.Option(None, help="Output frame rate"),
    scale: Optional[str] = typer.Option(None, help="Scale multiplier or WxH expression"),
    extraction_dir: Optional[Path] = typer.Option(
        None, "--extraction-dir", help="Frames directory (default: new temp dir or last session)"
    ),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Pipeline config path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Encode an extracted frames directory into OUTPUT."""
    setup_logging("DEBUG" if verbose else "WARNING")
    from dragonfly.core.pipeline_runner import run_encode

    tools = ToolsConfig.from_env()
    cfg = guarded(lambda: load_config(
        config, {"encode": {"length": length, "fps": fps, "scale": scale}}
    ))

    console.print(f"[1/1] Encoding frames to {output}")
    with console.status("Encoding..."):
        result = guarded(lambda: run_encode(output, cfg, tools, extraction_dir=extraction_dir))
    console.print(
        f"[green]Encoded {result.total_frame_count} frames "
        f"({result.input_fps:g} fps in, {cfg.encode.fps:g} fps out) to {result.output_path}[/green]"
    )


@app.command()
def run(
    source: Path = typer.Argument(..., help="Equirectangular image or video"),
    output: Path = typer.Argument(Path("output.mp4"), help="Video file to write"),
    frame_count: Optional[int] = typer.Option(None, help="Number of frames to extract"),
    ih_fov: Optional[float] = typer.Option(None, help="Input horizontal FOV in degrees"),
    iv_fov: Optional[float] = typer.Option(None, help="Input vertical FOV in degrees"),
    h_fov: Optional[float] = typer.Option(None, help="Output horizontal FOV in degrees"),
    v_fov: Optional[float] = typer.Option(None, help="Output vertical FOV in degrees"),
    jobs: Optional[int] = typer.Option(None, "--jobs", "-j", help="Concurrent ffmpeg processes"),
    interpolation: Optional[Interpolation] = typer.Option(None, help="Interpolation method"),
    job_timeout: Optional[float] = typer.Option(None, help="Seconds before a frame render is killed"),
    length: Optional[float] = typer.Option(None, help="Desired video length in seconds"),
    fps: Optional[float] = typer.Option(None, help="Output frame rate"),
    scale: Optional[str] = typer.Option(None, help="Scale multiplier or WxH expression"),
    extraction_dir: Optional[Path] = typer.Option(
        None, "--extraction-dir", help="Frames directory (default: new temp dir or last session)"
    ),
    config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Pipeline config path"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
) -> None:
    """Extract the sweep of SOURCE and encode it into OUTPUT."""
    setup_logging("DEBUG" if verbose else "WARNING")
    from dragonfly.core.pipeline_runner import run_encode, run_extract

    tools = ToolsConfig.from_env()
    cfg = guarded(lambda: load_config(config, {
        "extract": _extract_overrides(
            frame_count, ih_fov, iv_fov, h_fov, v_fov, jobs, interpolation, job_timeout
        ),
        "encode": {"length": length, "fps": fps, "scale": scale},
    }))
    guarded(lambda: require_tools(tools))

    console.print(f"[1/2] Extracting {cfg.extract.frame_count} frames from {source}")
    with frame_progress("Extracting") as progress:
        extracted = guarded(lambda: run_extract(
            source, cfg, tools, extraction_dir=extraction_dir, progress=progress, check_tools=False
        ))
    _report_extract(extracted)

    console.print(f"[2/2] Encoding {extracted.output.frame_count} frames to {output}")
    with console.status("Encoding..."):
        result = guarded(lambda: run_encode(
            output, cfg, tools, extraction_dir=extracted.output.frames_dir, check_tools=False
        ))
    console.print(f"[green]Done:[/green] {result.output_path}")


@app.command()
def info(config: Path = typer.Option(DEFAULT_CONFIG, "--config", help="Pipeline config path")) -> None:
    """Show pipeline steps, their config and tool locations."""
    from dragonfly.core.pipeline_runner import STEPS

    cfg = guarded(lambda: load_config(config, {}))
    tools = ToolsConfig.from_env()

    table = Table(title=f"Pipeline: {cfg.project_name}")
    table.add_column("#", style="dim")
    table.add_column("Step", style="cyan", no_wrap=True)
    table.add_column("Class", style="green", no_wrap=True)
    table.add_column("Config", style="yellow", overflow="fold")
    sections = {"s01_extract_frames": cfg.extract, "s02_encode_frames": cfg.encode}
    for i, (name, step_cls) in enumerate(STEPS, 1):
        params = ", ".join(f"{k}={v}" for k, v in sections[name].model_dump(mode="json").items())
        table.add_row(str(i), name, step_cls.__name__, params)
    console.print(table)

    tool_table = Table(title="Tools")
    tool_table.add_column("Tool", style="cyan")
    tool_table.add_column("Configured", style="green")
    tool_table.add_column("Resolved", style="yellow")
    for name, binary in tools.model_dump().items():
        tool_table.add_row(name, binary, shutil.which(binary) or "[red]not found[/red]")
    console.print(tool_table)


if __name__ == "__main__":
    app()
