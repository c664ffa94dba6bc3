"""
Pytest configuration and shared fixtures for mkimg tests.

This module provides common fixtures and utilities used across all test modules.
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Callable, Dict, Set

import pytest
from loguru import logger

from mkimg.config import settings
from mkimg.domain import Configuration


@pytest.fixture(autouse=True)
def default_settings(monkeypatch, tmp_path):
    """Run every test against default settings, never the user's file."""
    monkeypatch.setattr(
        "mkimg.config.settings.SETTINGS_PATH", tmp_path / "settings" / "settings.json"
    )
    settings.settings_store.values = dict(settings.DEFAULT_SETTINGS)
    yield
    settings.settings_store.values = dict(settings.DEFAULT_SETTINGS)
    # Sinks added by setup_logging may point at a capture stream that is gone
    logger.remove()


# ==============================================================================
# Source File Fixtures
# ==============================================================================


@pytest.fixture
def make_file(tmp_path) -> Callable[..., Path]:
    """
    Fixture returning a factory that writes a source file under tmp_path.

    Returns:
        Callable(relative_path, data=b"...") -> Path
    """

    def _make(relative: str, data: bytes = b"payload") -> Path:
        path = tmp_path / "src" / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return path

    return _make


@pytest.fixture
def source_tree(make_file, tmp_path) -> Path:
    """
    Fixture providing a small directory tree.

    Layout:
        tree/a.txt
        tree/sub/b.txt
        tree/sub/deeper/c.bin
        tree/empty/
    """
    make_file("tree/a.txt", b"alpha")
    make_file("tree/sub/b.txt", b"bravo")
    make_file("tree/sub/deeper/c.bin", bytes(range(16)))
    (tmp_path / "src" / "tree" / "empty").mkdir()
    return tmp_path / "src" / "tree"


@pytest.fixture
def config(tmp_path) -> Configuration:
    """Fixture providing an empty configuration writing to tmp_path/out."""
    cfg = Configuration(dest=tmp_path / "out", name="test.img")
    yield cfg
    cfg.close()


# ==============================================================================
# Filesystem Handle Fixtures
# ==============================================================================


class RecordingFilesystem:
    """In-memory stand-in for a filesystem codec handle.

    Mirrors the FAT handle contract: directories must exist before children
    are written into them, except that write_file creates missing parents.
    """

    def __init__(self) -> None:
        self.directories: Set[str] = {"/"}
        self.files: Dict[str, bytes] = {}
        self.calls: list = []

    @staticmethod
    def _normalize(path: str) -> str:
        return posixpath.normpath("/" + path.lstrip("/"))

    def makedir(self, path: str) -> None:
        path = self._normalize(path)
        self.calls.append(("makedir", path))
        parent = posixpath.dirname(path)
        if parent not in self.directories:
            self.makedir(parent)
        self.directories.add(path)

    def write_file(self, path: str, data: bytes) -> None:
        path = self._normalize(path)
        self.calls.append(("write_file", path))
        parent = posixpath.dirname(path)
        if parent not in self.directories:
            self.makedir(parent)
        self.files[path] = data


@pytest.fixture
def recording_fs() -> RecordingFilesystem:
    return RecordingFilesystem()


# ==============================================================================
# Logging Fixtures
# ==============================================================================


@pytest.fixture
def log_records():
    """Capture loguru records emitted during the test."""
    records: list = []
    logger.remove()
    handler_id = logger.add(lambda message: records.append(message.record), level="TRACE")
    yield records
    try:
        logger.remove(handler_id)
    except ValueError:
        pass
