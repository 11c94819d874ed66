"""Single-slot memory of the last extraction directory.

Lets ``dragonfly encode`` run as a separate invocation after
``dragonfly extract`` without repeating the directory. The store is a
convenience cache for one user: there is no locking, and concurrent
extractions leave it pointing at whichever run saved last.
"""

from __future__ import annotations

import logging
import os
import tempfile
from pathlib import Path
from typing import Protocol

from .errors import SessionNotFoundError

logger = logging.getLogger(__name__)

SESSION_FILENAME = ".dragonfly"


def default_session_path() -> Path:
    return Path(tempfile.gettempdir()) / SESSION_FILENAME


class SessionStore(Protocol):
    def save(self, path: Path) -> None: ...

    def load(self) -> Path: ...


class FileSessionStore:
    """Stores the raw path bytes in a well-known file."""

    def __init__(self, location: Path | None = None):
        self.location = Path(location) if location is not None else default_session_path()

    def save(self, path: Path) -> None:
        self.location.write_bytes(os.fsencode(path))
        logger.debug(f"Saved session {path} to {self.location}")

    def load(self) -> Path:
        try:
            raw = self.location.read_bytes()
        except FileNotFoundError:
            raise SessionNotFoundError(self.location) from None
        if not raw:
            raise SessionNotFoundError(self.location)
        return Path(os.fsdecode(raw))


class MemorySessionStore:
    """In-process store, used by tests and embedders that skip the file."""

    def __init__(self, path: Path | None = None):
        self._path = path

    def save(self, path: Path) -> None:
        self._path = Path(path)

    def load(self) -> Path:
        if self._path is None:
            raise SessionNotFoundError()
        return self._path
