"""Rasterization and blocked row/column reduction for composited frames."""

from __future__ import annotations

import logging
import math
from typing import List, Mapping, Optional, Sequence, Tuple

import numpy as np

from panel_export.colors import pixel_rgba
from panel_export.compositor import CompositeMap, composite_frame
from panel_export.errors import RasterAllocationError
from panel_export.fingerprint import fingerprint_raster
from panel_export.models import Frame, Layer, Viewport

MOSTLY_BLOCKED_RATIO = 0.8

ReducedFrame = Tuple[Optional[np.ndarray], Optional[str]]

LOGGER = logging.getLogger(__name__)


def _mostly_blocked_threshold(length: int) -> int:
    return int(math.floor(length * MOSTLY_BLOCKED_RATIO))


def _parse_blocked_key(key: str) -> Optional[Tuple[int, int]]:
    parts = key.split(",")
    if len(parts) != 2:
        return None
    try:
        return int(parts[0]), int(parts[1])
    except ValueError:
        return None


class FrameReducer:
    """Turn composited pixel maps into cropped RGBA rasters.

    The blocked-cell mask and the per-row/per-column blocked counts only
    depend on the viewport, so they are computed once. A scratch surface the
    size of the viewport is reused for every frame; callers must treat the
    reducer as single-threaded.
    """

    def __init__(
        self,
        viewport: Viewport,
        blocked_pixels: Mapping[str, bool],
        *,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.viewport = viewport
        self.logger = logger or LOGGER

        height, width = max(0, viewport.height), max(0, viewport.width)
        self.blocked_mask = self._allocate((height, width), np.bool_)
        for key, is_blocked in blocked_pixels.items():
            if not is_blocked:
                continue
            coords = _parse_blocked_key(key)
            if coords is None:
                self.logger.debug("Ignoring malformed blocked pixel key %r", key)
                continue
            if not viewport.contains(*coords):
                continue
            local_x, local_y = viewport.to_local(*coords)
            self.blocked_mask[local_y, local_x] = True

        row_blocked = self.blocked_mask.sum(axis=1)
        col_blocked = self.blocked_mask.sum(axis=0)
        self.row_fully_blocked = row_blocked == width
        self.col_fully_blocked = col_blocked == height
        self.row_mostly_blocked = row_blocked >= _mostly_blocked_threshold(width)
        self.col_mostly_blocked = col_blocked >= _mostly_blocked_threshold(height)

        self._scratch = self._allocate((height, width, 4), np.uint8)
        self._painted = self._allocate((height, width), np.bool_)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def reduce(self, composited: CompositeMap) -> ReducedFrame:
        """Rasterize ``composited`` and strip dead rows and columns.

        Returns ``(raster, fingerprint)``, or ``(None, None)`` when nothing
        exportable is left after reduction.
        """
        scratch = self._scratch
        painted = self._painted
        scratch[...] = (0, 0, 0, 255)
        painted[...] = False

        self._paint(composited)

        visible = painted & ~self.blocked_mask
        row_eliminated, col_eliminated = self.eliminated_lines(visible)
        if row_eliminated.all() or col_eliminated.all():
            self.logger.debug("Frame has no exportable rows or columns after reduction")
            return None, None

        scratch[painted & self.blocked_mask] = (0, 0, 0, 0)

        kept_rows = np.flatnonzero(~row_eliminated)
        kept_cols = np.flatnonzero(~col_eliminated)
        try:
            raster = np.ascontiguousarray(scratch[np.ix_(kept_rows, kept_cols)])
        except MemoryError as exc:
            raise RasterAllocationError(
                f"Failed to allocate {len(kept_cols)}x{len(kept_rows)} raster"
            ) from exc

        return raster, fingerprint_raster(raster)

    def reduce_layers(self, frame: Frame, layers: Sequence[Layer]) -> ReducedFrame:
        """Reduce a frame from its layer pixels alone."""
        return self.reduce(composite_frame(frame, layers))

    def eliminated_lines(self, visible: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """Classify rows and columns as effectively blocked.

        A line is dropped when every cell is blocked, or when it carries no
        visible paint and at least 80% of its cells are blocked.
        """
        row_visible = visible.any(axis=1)
        col_visible = visible.any(axis=0)
        row_eliminated = self.row_fully_blocked | (self.row_mostly_blocked & ~row_visible)
        col_eliminated = self.col_fully_blocked | (self.col_mostly_blocked & ~col_visible)
        return row_eliminated, col_eliminated

    # ------------------------------------------------------------------
    # Internal utilities
    # ------------------------------------------------------------------

    def _paint(self, composited: CompositeMap) -> None:
        ys: List[int] = []
        xs: List[int] = []
        colors: List[Tuple[int, int, int, int]] = []
        for (x, y), pixel in composited.items():
            if not self.viewport.contains(x, y):
                continue
            local_x, local_y = self.viewport.to_local(x, y)
            xs.append(local_x)
            ys.append(local_y)
            colors.append(pixel_rgba(pixel))

        if not colors:
            return

        self._scratch[ys, xs] = np.asarray(colors, dtype=np.uint8)
        self._painted[ys, xs] = True

    @staticmethod
    def _allocate(shape: Tuple[int, ...], dtype) -> np.ndarray:
        try:
            return np.zeros(shape, dtype=dtype)
        except (MemoryError, ValueError) as exc:
            raise RasterAllocationError(f"Failed to allocate raster surface {shape}") from exc


__all__ = ["FrameReducer", "MOSTLY_BLOCKED_RATIO", "ReducedFrame"]
