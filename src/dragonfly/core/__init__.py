"""dragonfly core: shared contracts, errors, step base, tool and session config."""

from .contracts import FrameJob, JobOutcome, JobStatus, PipelineConfig, SourceResolution
from .errors import DragonflyError
from .logging import setup_logging
from .session import FileSessionStore, MemorySessionStore, SessionStore
from .step_base import BaseStep
from .tools import ToolsConfig, require_tools

__all__ = [
    "BaseStep",
    "DragonflyError",
    "FileSessionStore",
    "FrameJob",
    "JobOutcome",
    "JobStatus",
    "MemorySessionStore",
    "PipelineConfig",
    "SessionStore",
    "SourceResolution",
    "ToolsConfig",
    "require_tools",
    "setup_logging",
]
