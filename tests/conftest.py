"""Shared pytest fixtures for dragonfly tests.

Rendering is faked: launchers hand out FakeProcess objects that behave like
``subprocess.Popen`` and record how many processes were started and reaped.
"""

from __future__ import annotations

import subprocess
from pathlib import Path

import pytest

from dragonfly.core.contracts import FrameJob, PipelineConfig, SourceResolution
from dragonfly.core.tools import ToolsConfig
from dragonfly.steps.s01_extract_frames.config import ExtractFramesConfig


class FakeProcess:
    """Popen stand-in that exits after ``polls`` calls to poll()."""

    def __init__(self, launcher: "FakeLauncher", job: FrameJob, returncode: int = 0,
                 polls: int = 1, hang: bool = False, ignore_terminate: bool = False):
        self.launcher = launcher
        self.job = job
        self.returncode = None
        self._exit_code = returncode
        self._polls_left = polls
        self._hang = hang
        self._ignore_terminate = ignore_terminate
        self.terminated = False
        self.killed = False

    def _reap(self, code: int) -> int:
        if self.returncode is None:
            self.returncode = code
            self.launcher.on_reaped(self)
        return self.returncode

    def poll(self):
        if self.returncode is not None:
            return self.returncode
        if self._hang:
            return None
        self._polls_left -= 1
        if self._polls_left <= 0:
            if self.launcher.touch_outputs and self._exit_code == 0:
                self.job.output_path.write_bytes(b"jpg")
            return self._reap(self._exit_code)
        return None

    def wait(self, timeout=None):
        if self.returncode is not None:
            return self.returncode
        if self._hang and not (self.terminated or self.killed):
            raise subprocess.TimeoutExpired("fake", timeout)
        if self._hang and self.terminated and self._ignore_terminate and not self.killed:
            raise subprocess.TimeoutExpired("fake", timeout)
        if self.killed:
            return self._reap(-9)
        if self.terminated:
            return self._reap(-15)
        return self._reap(self._exit_code)

    def terminate(self):
        self.terminated = True

    def kill(self):
        self.killed = True


class FakeLauncher:
    """Launcher that tracks started, reaped and peak in-flight processes.

    ``behaviour`` maps a frame index to FakeProcess keyword arguments.
    """

    def __init__(self, behaviour: dict[int, dict] | None = None, touch_outputs: bool = False):
        self.behaviour = behaviour or {}
        self.touch_outputs = touch_outputs
        self.started: list[FrameJob] = []
        self.reaped: list[int] = []
        self.processes: list[FakeProcess] = []
        self.in_flight = 0
        self.max_in_flight = 0

    def __call__(self, job: FrameJob) -> FakeProcess:
        proc = FakeProcess(self, job, **self.behaviour.get(job.index, {}))
        self.started.append(job)
        self.processes.append(proc)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        return proc

    def on_reaped(self, proc: FakeProcess) -> None:
        self.in_flight -= 1
        self.reaped.append(proc.job.index)


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher(touch_outputs=True)


@pytest.fixture
def tools() -> ToolsConfig:
    return ToolsConfig(ffmpeg="ffmpeg", ffprobe="ffprobe")


@pytest.fixture
def source_image(tmp_path: Path) -> Path:
    path = tmp_path / "pano.jpg"
    path.write_bytes(b"\xff\xd8fake")
    return path


@pytest.fixture
def fake_prober():
    calls: list[Path] = []

    def prober(path: Path, tools: ToolsConfig) -> SourceResolution:
        calls.append(path)
        return SourceResolution(width=3840, height=1920)

    prober.calls = calls
    return prober


@pytest.fixture
def fast_extract_config() -> ExtractFramesConfig:
    return ExtractFramesConfig(frame_count=8, max_concurrency=4, poll_interval=0.0)


@pytest.fixture
def sample_frames_dir(tmp_path: Path) -> Path:
    """A directory holding 240 extracted frames."""
    frames_dir = tmp_path / "frames"
    frames_dir.mkdir()
    for i in range(240):
        (frames_dir / f"frame_{i:08d}.jpg").write_bytes(b"jpg")
    return frames_dir


@pytest.fixture
def pipeline_config(tmp_path: Path, fast_extract_config: ExtractFramesConfig) -> PipelineConfig:
    return PipelineConfig(project_name="test", work_root=tmp_path, extract=fast_extract_config)


@pytest.fixture
def fake_rendering(monkeypatch, fake_prober) -> FakeLauncher:
    """Wire every ExtractFramesStep to the fake prober and a shared fake launcher."""
    from dragonfly.steps.s01_extract_frames.step import ExtractFramesStep

    launcher = FakeLauncher(touch_outputs=True)
    original_init = ExtractFramesStep.__init__

    def init(self, config, tools=None, progress=None, **kwargs):
        original_init(
            self, config, tools, progress,
            prober=fake_prober, launcher_factory=lambda *args: launcher,
        )

    monkeypatch.setattr(ExtractFramesStep, "__init__", init)
    return launcher


@pytest.fixture
def fake_encoder(monkeypatch) -> list:
    """Replace EncodeFramesStep.run; returns the list of inputs it received."""
    from dragonfly.steps.s02_encode_frames.contracts import EncodeFramesOutput
    from dragonfly.steps.s02_encode_frames.step import EncodeFramesStep, count_frames

    calls = []

    def run(self, inputs):
        calls.append(inputs)
        total = count_frames(inputs.frames_dir)
        return EncodeFramesOutput(
            output_path=inputs.output_path,
            total_frame_count=total,
            input_fps=total / self.config.length,
        )

    monkeypatch.setattr(EncodeFramesStep, "run", run)
    return calls
