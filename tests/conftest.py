"""Shared fixtures: small folders of fake media files (content only matters for hashing)."""

from pathlib import Path

import pytest


@pytest.fixture
def media_dir(tmp_path: Path) -> Path:
    """Folder with three media files, one non-media file and a subfolder."""
    folder = tmp_path / "videos"
    folder.mkdir()
    (folder / "a.mp4").write_bytes(b"alpha")
    (folder / "b.webm").write_bytes(b"bravo")
    (folder / "c.gif").write_bytes(b"charlie")
    (folder / "notes.txt").write_bytes(b"not media")
    (folder / "sub.mp4").mkdir()
    return folder


@pytest.fixture(autouse=True)
def isolated_config(monkeypatch, tmp_path: Path) -> Path:
    """Point the config file at a temp path so tests never touch the working directory."""
    path = tmp_path / "vidtagger_config.json"
    monkeypatch.setenv("VIDTAGGER_CONFIG", str(path))
    return path
