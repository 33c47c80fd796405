"""Color string parsing for exported rasters."""

from __future__ import annotations

import math
from typing import List, Optional, Tuple

from panel_export.models import Pixel

Rgba = Tuple[int, int, int, int]

OPAQUE_BLACK: Rgba = (0, 0, 0, 255)


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _parse_channel(value: str) -> Optional[int]:
    try:
        channel = int(value.strip(), 10)
    except ValueError:
        return None
    if 0 <= channel <= 255:
        return channel
    return None


def _parse_channels(parts: List[str]) -> Optional[Tuple[int, int, int]]:
    channels = [_parse_channel(part) for part in parts]
    if any(channel is None for channel in channels):
        return None
    return channels[0], channels[1], channels[2]


def _parse_hex(value: str) -> Optional[Rgba]:
    hex_value = value[1:]
    if len(hex_value) == 3:
        hex_value = "".join(char * 2 for char in hex_value)
    if len(hex_value) != 6:
        return None
    try:
        r = int(hex_value[0:2], 16)
        g = int(hex_value[2:4], 16)
        b = int(hex_value[4:6], 16)
    except ValueError:
        return None
    return (r, g, b, 255)


def parse_color(value: object) -> Rgba:
    """Parse ``#RGB``, ``#RRGGBB``, ``rgb()`` or ``rgba()`` into an RGBA tuple.

    Anything that does not parse yields opaque black.
    """
    if not isinstance(value, str):
        return OPAQUE_BLACK

    color = value.strip()
    if color.startswith("#"):
        return _parse_hex(color) or OPAQUE_BLACK

    if color.startswith("rgb(") and color.endswith(")"):
        parts = color[4:-1].split(",")
        if len(parts) != 3:
            return OPAQUE_BLACK
        channels = _parse_channels(parts)
        if channels is None:
            return OPAQUE_BLACK
        return (*channels, 255)

    if color.startswith("rgba(") and color.endswith(")"):
        parts = color[5:-1].split(",")
        if len(parts) != 4:
            return OPAQUE_BLACK
        channels = _parse_channels(parts[:3])
        try:
            alpha = float(parts[3].strip())
        except ValueError:
            return OPAQUE_BLACK
        if channels is None or not 0.0 <= alpha <= 1.0:
            return OPAQUE_BLACK
        return (*channels, _round_half_up(alpha * 255))

    return OPAQUE_BLACK


def pixel_alpha_override(pixel_number: Optional[float]) -> Optional[int]:
    """Return the data-channel alpha byte encoded by a pixel number."""
    if pixel_number is None:
        return None
    return max(0, min(255, _round_half_up(pixel_number)))


def pixel_rgba(pixel: Pixel) -> Rgba:
    """Resolve the output bytes for a painted pixel.

    The alpha byte carries the pixel number for downstream hardware
    addressing whenever one is set.
    """
    r, g, b, a = parse_color(pixel.color)
    override = pixel_alpha_override(pixel.pixel_number)
    if override is not None:
        a = override
    return (r, g, b, a)


__all__ = ["OPAQUE_BLACK", "parse_color", "pixel_alpha_override", "pixel_rgba"]
