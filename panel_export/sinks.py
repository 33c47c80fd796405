"""Output sinks receiving encoded frames and text entries."""

from __future__ import annotations

import logging
import shutil
import struct
import subprocess
import uuid
import zipfile
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from panel_export.errors import SinkWriteError

LOGGER = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"


class FrameSink(ABC):
    """Destination for one export run.

    Sinks are opened before the first entry and either closed (success) or
    aborted (failure). Used as a context manager, an exception inside the
    block aborts the sink and propagates.
    """

    def __enter__(self) -> "FrameSink":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        if exc_type is None:
            self.close()
        else:
            self.abort()

    def open(self) -> None:
        """Prepare the destination."""

    @abstractmethod
    def write_raster(self, name: str, png_bytes: bytes) -> None:
        """Store one encoded frame under ``name``."""

    @abstractmethod
    def write_text(self, name: str, content: str) -> None:
        """Store a text entry under ``name``."""

    def finish(self, end_ms: int) -> None:
        """Record the timeline position where the last written frame ends."""

    def close(self) -> None:
        """Finalize the destination."""

    def abort(self) -> None:
        """Discard whatever was written so far, where the sink can."""


class MemorySink(FrameSink):
    """Collect entries in memory, in write order."""

    def __init__(self) -> None:
        self.rasters: Dict[str, bytes] = {}
        self.texts: Dict[str, str] = {}
        self.closed = False
        self.aborted = False

    @property
    def names(self) -> List[str]:
        return list(self.rasters)

    def write_raster(self, name: str, png_bytes: bytes) -> None:
        self.rasters[name] = png_bytes

    def write_text(self, name: str, content: str) -> None:
        self.texts[name] = content

    def close(self) -> None:
        self.closed = True

    def abort(self) -> None:
        self.aborted = True


class ZipArchiveSink(FrameSink):
    """Write entries into ``<project_name>/`` inside a ZIP archive.

    Writing a name twice replaces the earlier entry. ZIP members cannot be
    overwritten in place, so replacements are held back and the archive is
    rewritten once on close when any were made.
    """

    def __init__(self, output_path: Path, project_name: str, *, logger: Optional[logging.Logger] = None) -> None:
        self.output_path = Path(output_path)
        self.project_name = project_name
        self.logger = logger or LOGGER
        self._temp_path = self.output_path.with_name(
            f".tmp_{uuid.uuid4().hex}_{self.output_path.name}"
        )
        self._archive: Optional[zipfile.ZipFile] = None
        self._written: Set[str] = set()
        self._replacements: Dict[str, bytes] = {}

    def open(self) -> None:
        self._written = set()
        self._replacements = {}
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
            self._archive = zipfile.ZipFile(self._temp_path, "w", compression=zipfile.ZIP_DEFLATED)
        except OSError as exc:
            raise SinkWriteError(str(self.output_path), exc) from exc

    def _entry_name(self, name: str) -> str:
        return f"{self.project_name}/{name}"

    def _write(self, name: str, payload: bytes) -> None:
        if self._archive is None:
            raise SinkWriteError(name, "archive is not open")
        entry = self._entry_name(name)
        if entry in self._written:
            self.logger.debug("Replacing archive entry %s", entry)
            self._replacements[entry] = payload
            return
        try:
            self._archive.writestr(entry, payload)
        except (OSError, ValueError, zipfile.BadZipFile) as exc:
            raise SinkWriteError(name, exc) from exc
        self._written.add(entry)

    def write_raster(self, name: str, png_bytes: bytes) -> None:
        self._write(name, png_bytes)

    def write_text(self, name: str, content: str) -> None:
        self._write(name, content.encode("utf-8"))

    def _apply_replacements(self) -> None:
        rewritten = self._temp_path.with_name(f"{self._temp_path.name}.rewrite")
        try:
            with zipfile.ZipFile(self._temp_path, "r") as source, zipfile.ZipFile(
                rewritten, "w", compression=zipfile.ZIP_DEFLATED
            ) as target:
                for info in source.infolist():
                    payload = self._replacements.get(info.filename)
                    if payload is None:
                        payload = source.read(info)
                    target.writestr(info.filename, payload)
            rewritten.replace(self._temp_path)
        except (OSError, zipfile.BadZipFile) as exc:
            rewritten.unlink(missing_ok=True)
            self._temp_path.unlink(missing_ok=True)
            raise SinkWriteError(str(self.output_path), exc) from exc
        self.logger.info(
            "Replaced %s archive entries written more than once",
            len(self._replacements),
        )
        self._replacements = {}

    def close(self) -> None:
        if self._archive is None:
            return
        try:
            self._archive.close()
            self._archive = None
        except OSError as exc:
            raise SinkWriteError(str(self.output_path), exc) from exc
        if self._replacements:
            self._apply_replacements()
        try:
            self._temp_path.replace(self.output_path)
        except OSError as exc:
            raise SinkWriteError(str(self.output_path), exc) from exc
        self.logger.info("Wrote archive %s", self.output_path)

    def abort(self) -> None:
        if self._archive is not None:
            try:
                self._archive.close()
            except OSError as exc:
                self.logger.warning("Failed to close partial archive %s: %s", self._temp_path, exc)
            self._archive = None
        self._temp_path.unlink(missing_ok=True)


class FolderSink(FrameSink):
    """Write entries as files into ``<root>/<project_name>/``."""

    def __init__(self, root: Path, project_name: str, *, logger: Optional[logging.Logger] = None) -> None:
        self.root = Path(root)
        self.project_name = project_name
        self.logger = logger or LOGGER
        self.folder = self.root / project_name

    def open(self) -> None:
        try:
            self.folder.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SinkWriteError(str(self.folder), exc) from exc

        for existing in sorted(self.folder.glob("*.png")):
            try:
                existing.unlink()
            except OSError as exc:
                self.logger.warning("Failed to remove stale frame %s: %s", existing, exc)

    def _target(self, name: str) -> Path:
        return self.folder / name

    def write_raster(self, name: str, png_bytes: bytes) -> None:
        try:
            self._target(name).write_bytes(png_bytes)
        except OSError as exc:
            raise SinkWriteError(name, exc) from exc

    def write_text(self, name: str, content: str) -> None:
        try:
            self._target(name).write_text(content, encoding="utf-8")
        except OSError as exc:
            raise SinkWriteError(name, exc) from exc


def png_dimensions(png_bytes: bytes) -> Optional[Tuple[int, int]]:
    """Read ``(width, height)`` from a PNG header."""
    if len(png_bytes) < 24 or not png_bytes.startswith(PNG_SIGNATURE):
        return None
    width, height = struct.unpack(">II", png_bytes[16:24])
    return int(width), int(height)


def _timestamp_ms(name: str) -> Optional[int]:
    try:
        return int(Path(name).stem)
    except ValueError:
        return None


class VideoSink(FrameSink):
    """Encode the frame sequence into an H.264 video with ffmpeg.

    Frame names carry the cumulative timestamp in milliseconds; each frame
    is repeated until the next timestamp, and the last one until the end
    passed to :meth:`finish`, so that playback timing matches the exported
    sequence at the configured frame rate.

    The output size is fixed by the first frame. Reduced frames of another
    size are scaled to it, which distorts them; a warning is logged for
    every new size encountered.
    """

    def __init__(
        self,
        output_path: Path,
        *,
        fps: int = 30,
        quality: int = 23,
        scale: int = 1,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.output_path = Path(output_path)
        self.fps = max(1, fps)
        self.quality = quality
        self.scale = max(1, scale)
        self.logger = logger or LOGGER
        self._temp_output = self.output_path.with_name(
            f".tmp_{uuid.uuid4().hex}_{self.output_path.name}"
        )
        self._process: Optional[subprocess.Popen] = None
        self._cmd: List[str] = []
        self._pending: Optional[Tuple[int, bytes]] = None
        self._frames_written = 0
        self._sequence_ms = 0
        self._end_ms: Optional[int] = None
        self._frame_sizes: Set[Tuple[int, int]] = set()

    def open(self) -> None:
        if shutil.which("ffmpeg") is None:
            raise SinkWriteError(
                str(self.output_path),
                "ffmpeg not found on PATH. Install ffmpeg with libx264.",
            )
        try:
            self.output_path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise SinkWriteError(str(self.output_path), exc) from exc

    def _build_command(self, width: int, height: int) -> List[str]:
        target_w = width * self.scale
        target_h = height * self.scale
        target_w += target_w % 2
        target_h += target_h % 2
        return [
            "ffmpeg",
            "-y",
            "-loglevel",
            "error",
            "-f",
            "image2pipe",
            "-vcodec",
            "png",
            "-r",
            str(self.fps),
            "-i",
            "-",
            "-vf",
            f"scale={target_w}:{target_h}:flags=neighbor",
            "-c:v",
            "libx264",
            "-crf",
            str(self.quality),
            "-preset",
            "slow",
            "-tune",
            "animation",
            "-pix_fmt",
            "yuv420p",
            "-movflags",
            "+faststart",
            str(self._temp_output),
        ]

    def _start(self, png_bytes: bytes) -> None:
        dimensions = png_dimensions(png_bytes)
        if dimensions is None:
            raise SinkWriteError(str(self.output_path), "first frame is not a PNG")
        self._cmd = self._build_command(*dimensions)
        try:
            self._process = subprocess.Popen(
                self._cmd,
                stdin=subprocess.PIPE,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
            )
        except OSError as exc:
            raise SinkWriteError(str(self.output_path), exc) from exc

    def _emit(self, name: str, png_bytes: bytes, repeats: int) -> None:
        if self._process is None:
            self._start(png_bytes)
        assert self._process is not None and self._process.stdin is not None
        try:
            for _ in range(repeats):
                self._process.stdin.write(png_bytes)
        except OSError as exc:
            raise SinkWriteError(name, exc) from exc
        self._frames_written += repeats

    def _flush_pending(self, until_ms: Optional[int]) -> None:
        if self._pending is None:
            return
        _, png_bytes = self._pending
        repeats = 1
        if until_ms is not None:
            target_frames = int(round(until_ms * self.fps / 1000.0))
            repeats = max(1, target_frames - self._frames_written)
        self._emit(str(self.output_path), png_bytes, repeats)
        self._pending = None

    def _check_frame_size(self, name: str, png_bytes: bytes) -> None:
        dimensions = png_dimensions(png_bytes)
        if dimensions is None or dimensions in self._frame_sizes:
            return
        if self._frame_sizes:
            self.logger.warning(
                "Frame %s is %sx%s, unlike earlier frames; it will be scaled to the video size",
                name,
                dimensions[0],
                dimensions[1],
            )
        self._frame_sizes.add(dimensions)

    def write_raster(self, name: str, png_bytes: bytes) -> None:
        self._check_frame_size(name, png_bytes)
        timestamp = _timestamp_ms(name)
        if timestamp is None:
            timestamp = self._sequence_ms + int(round(1000.0 / self.fps))
        self._flush_pending(timestamp)
        self._pending = (timestamp, png_bytes)
        self._sequence_ms = timestamp

    def finish(self, end_ms: int) -> None:
        self._end_ms = end_ms

    def write_text(self, name: str, content: str) -> None:
        target = self.output_path.with_name(f"{self.output_path.stem}.{name}")
        try:
            target.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise SinkWriteError(name, exc) from exc

    def close(self) -> None:
        self._flush_pending(self._end_ms)
        process = self._process
        if process is None:
            self.logger.warning("No frames were written; skipping video %s", self.output_path)
            return

        if process.stdin is not None:
            try:
                process.stdin.close()
            except OSError:
                pass

        stderr_bytes = b""
        if process.stderr is not None:
            try:
                stderr_bytes = process.stderr.read()
            finally:
                process.stderr.close()

        return_code = process.wait()
        self._process = None
        if return_code != 0:
            self._temp_output.unlink(missing_ok=True)
            raise SinkWriteError(
                str(self.output_path),
                subprocess.CalledProcessError(return_code, self._cmd, stderr=stderr_bytes),
            )

        self._temp_output.replace(self.output_path)
        self.logger.info(
            "Encoded %s video frames into %s",
            self._frames_written,
            self.output_path,
        )

    def abort(self) -> None:
        self._pending = None
        process = self._process
        if process is not None:
            process.kill()
            process.wait()
            for stream in (process.stdin, process.stderr):
                if stream is not None:
                    try:
                        stream.close()
                    except OSError:
                        pass
            self._process = None
        self._temp_output.unlink(missing_ok=True)


__all__ = [
    "FolderSink",
    "FrameSink",
    "MemorySink",
    "VideoSink",
    "ZipArchiveSink",
    "png_dimensions",
]
