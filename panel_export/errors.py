"""Domain-specific exceptions for the panel frame exporter."""

from __future__ import annotations

from pathlib import Path


class ExportError(RuntimeError):
    """Raised when an export has to be aborted as a whole."""


class RasterAllocationError(ExportError):
    """Raised when the raster surface for a frame cannot be allocated."""


class SinkWriteError(ExportError):
    """Raised when the output sink fails to store an entry."""

    def __init__(self, name: str, reason: object | None = None):
        message = f"Failed to write export entry: {name}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.name = name


class ExportCancelled(ExportError):
    """Raised when an export is cancelled between frames."""


class ProjectLoadError(ValueError):
    """Raised when a project document is missing or malformed."""

    def __init__(self, path: Path, reason: str | None = None):
        message = f"Invalid project file: {path}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


__all__ = [
    "ExportCancelled",
    "ExportError",
    "ProjectLoadError",
    "RasterAllocationError",
    "SinkWriteError",
]
