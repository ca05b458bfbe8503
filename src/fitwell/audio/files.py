"""Temporary audio file helpers."""

from __future__ import annotations

import contextlib
import os
import tempfile
from pathlib import Path


def temp_audio_path(prefix: str, extension: str, directory: Path | None = None) -> Path:
    """Reserve a unique file path for audio bytes."""

    if directory is not None:
        directory.mkdir(parents=True, exist_ok=True)
    suffix = f".{extension.lstrip('.') or 'wav'}"
    fd, name = tempfile.mkstemp(prefix=prefix, suffix=suffix, dir=directory)
    os.close(fd)
    return Path(name)


def write_audio_bytes(data: bytes, prefix: str, extension: str, directory: Path | None = None) -> Path:
    path = temp_audio_path(prefix, extension, directory)
    path.write_bytes(data)
    return path


def discard(path: Path | None) -> None:
    if path is None:
        return
    with contextlib.suppress(OSError):
        path.unlink()
