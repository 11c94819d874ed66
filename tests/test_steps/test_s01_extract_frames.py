"""Tests for S01: Extract Frames step."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from dragonfly.core.contracts import SourceResolution
from dragonfly.core.errors import InvalidPathError, JobFailedError, StepInputError
from dragonfly.steps.s01_extract_frames._render import FrameRenderer, v360_filter
from dragonfly.steps.s01_extract_frames.config import ExtractFramesConfig, Interpolation
from dragonfly.steps.s01_extract_frames.contracts import ExtractFramesInput, ExtractFramesOutput
from dragonfly.steps.s01_extract_frames.step import IN_PROGRESS_MARKER, ExtractFramesStep
from dragonfly.utils.geometry import plan_frame_jobs
from tests.conftest import FakeLauncher


def _recording_factory(launcher: FakeLauncher, renderers: list):
    """Launcher factory that builds the real ffmpeg command but spawns a fake."""

    def factory(tools, source_path, config, resolution):
        renderer = FrameRenderer(tools, source_path, config, resolution)
        renderers.append(renderer)

        def launch(job):
            renderer.commands = getattr(renderer, "commands", []) + [renderer.build_command(job)]
            return launcher(job)

        return launch

    return factory


class TestExtractFramesContracts:
    def test_config_defaults(self):
        cfg = ExtractFramesConfig()
        assert cfg.frame_count == 360
        assert (cfg.ih_fov, cfg.iv_fov, cfg.h_fov, cfg.v_fov) == (360.0, 180.0, 60.0, 45.0)
        assert cfg.interpolation is Interpolation.LINEAR
        assert cfg.max_concurrency == 4
        assert cfg.job_timeout is None

    @pytest.mark.parametrize("field", ["ih_fov", "iv_fov", "h_fov", "v_fov"])
    def test_zero_fov_rejected(self, field):
        with pytest.raises(ValidationError):
            ExtractFramesConfig(**{field: 0})

    def test_zero_concurrency_rejected(self):
        with pytest.raises(ValidationError):
            ExtractFramesConfig(max_concurrency=0)

    def test_interpolation_from_string(self):
        assert ExtractFramesConfig(interpolation="lanczos").interpolation is Interpolation.LANCZOS

    def test_output_schema(self):
        schema = ExtractFramesOutput.model_json_schema()
        assert "frames_dir" in schema["properties"]
        assert "output_width" in schema["properties"]


class TestV360Command:
    def test_filter_string(self, tmp_path: Path):
        cfg = ExtractFramesConfig(interpolation="cubic")
        job = plan_frame_jobs(8, tmp_path)[1]
        vf = v360_filter(job, cfg, SourceResolution(width=640, height=480))
        assert vf == (
            "v360=e:flat:yaw=-135:pitch=0:roll=0:ih_fov=360:iv_fov=180"
            ":h_fov=60:v_fov=45:interp=cubic:w=640:h=480"
        )

    def test_single_still_output(self, tools, source_image: Path, tmp_path: Path):
        renderer = FrameRenderer(
            tools, source_image, ExtractFramesConfig(), SourceResolution(width=640, height=480)
        )
        job = plan_frame_jobs(4, tmp_path)[3]
        cmd = renderer.build_command(job)
        assert cmd[0] == "ffmpeg"
        assert cmd[cmd.index("-i") + 1] == str(source_image)
        assert cmd[cmd.index("-f") + 1] == "image2"
        assert cmd[cmd.index("-frames:v") + 1] == "1"
        assert cmd[-1] == str(tmp_path / "frame_00000003.jpg")

    def test_unrepresentable_source(self, tools):
        with pytest.raises(InvalidPathError):
            FrameRenderer(
                tools, Path("\udcff.jpg"), ExtractFramesConfig(), SourceResolution(width=1, height=1)
            )


class TestExtractFramesStep:
    def test_validate_missing_source(self, tools, tmp_path: Path):
        step = ExtractFramesStep(config=ExtractFramesConfig(), tools=tools)
        inp = ExtractFramesInput(source_path=tmp_path / "missing.jpg", frames_dir=tmp_path / "f")
        assert step.validate_inputs(inp) is False
        with pytest.raises(StepInputError):
            step.execute(inp)

    def test_eight_frames_in_two_batches(
        self, tools, source_image, tmp_path, fake_prober, fast_extract_config
    ):
        launcher = FakeLauncher(touch_outputs=True)
        renderers: list = []
        step = ExtractFramesStep(
            config=fast_extract_config,
            tools=tools,
            prober=fake_prober,
            launcher_factory=_recording_factory(launcher, renderers),
        )
        frames_dir = tmp_path / "frames"
        output = step.execute(ExtractFramesInput(source_path=source_image, frames_dir=frames_dir))

        assert output.frame_count == 8
        assert (output.output_width, output.output_height) == (640, 480)
        assert (output.source_width, output.source_height) == (3840, 1920)
        assert fake_prober.calls == [source_image]

        names = [cmd[-1] for cmd in renderers[0].commands]
        assert names == [str(frames_dir / f"frame_{i:08d}.jpg") for i in range(8)]
        assert [job.yaw for job in launcher.started] == [
            -180, -135, -90, -45, 0, 45, 90, 135,
        ]
        assert launcher.max_in_flight == 4
        assert sorted(launcher.reaped[:4]) == [0, 1, 2, 3]
        assert sorted(p.name for p in frames_dir.iterdir()) == [
            f"frame_{i:08d}.jpg" for i in range(8)
        ]

    def test_progress_reported(self, tools, source_image, tmp_path, fake_prober, fast_extract_config):
        calls = []
        step = ExtractFramesStep(
            config=fast_extract_config,
            tools=tools,
            progress=lambda done, total: calls.append((done, total)),
            prober=fake_prober,
            launcher_factory=lambda *args: FakeLauncher(),
        )
        step.execute(ExtractFramesInput(source_path=source_image, frames_dir=tmp_path / "f"))
        assert calls[-1] == (8, 8)
        assert len(calls) == 8

    def test_marker_present_while_running_and_removed_on_failure(
        self, tools, source_image, tmp_path, fake_prober, fast_extract_config
    ):
        frames_dir = tmp_path / "frames"
        seen_marker = []
        inner = FakeLauncher({2: {"returncode": 1}})

        def launch(job):
            seen_marker.append((frames_dir / IN_PROGRESS_MARKER).exists())
            return inner(job)

        step = ExtractFramesStep(
            config=fast_extract_config,
            tools=tools,
            prober=fake_prober,
            launcher_factory=lambda *args: launch,
        )
        with pytest.raises(JobFailedError):
            step.execute(ExtractFramesInput(source_path=source_image, frames_dir=frames_dir))
        assert all(seen_marker)
        assert not (frames_dir / IN_PROGRESS_MARKER).exists()

    def test_zero_frames(self, tools, source_image, tmp_path, fake_prober):
        launcher = FakeLauncher()
        step = ExtractFramesStep(
            config=ExtractFramesConfig(frame_count=0),
            tools=tools,
            prober=fake_prober,
            launcher_factory=lambda *args: launcher,
        )
        output = step.execute(ExtractFramesInput(source_path=source_image, frames_dir=tmp_path / "f"))
        assert output.frame_count == 0
        assert launcher.started == []
