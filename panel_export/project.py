"""Loading exportable project documents."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from panel_export.engine import StaticAnimationEngine
from panel_export.errors import ProjectLoadError
from panel_export.models import (
    AnimationObject,
    Frame,
    FrameSection,
    Layer,
    Pixel,
    RenderPosition,
    Viewport,
)

DEFAULT_FRAME_DURATION_MS = 100
DEFAULT_PROJECT_NAME = "lightjumper-project"


@dataclass
class Project:
    """Everything the exporter needs from an editor project."""

    name: str
    viewport: Viewport
    layers: List[Layer]
    frames: List[Frame]
    animations: List[AnimationObject] = field(default_factory=list)
    blocked_pixels: Dict[str, bool] = field(default_factory=dict)
    animation_pixels: Dict[str, List[Pixel]] = field(default_factory=dict)

    def animation_engine(self) -> StaticAnimationEngine:
        return StaticAnimationEngine(self.animation_pixels)


def _optional_number(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _parse_pixel(raw: Mapping[str, Any]) -> Pixel:
    animation_id = raw.get("animationId")
    return Pixel(
        x=int(raw["x"]),
        y=int(raw["y"]),
        color=str(raw.get("color", "")),
        pixel_number=_optional_number(raw.get("pixelNumber")),
        animation_id=str(animation_id) if animation_id is not None else None,
    )


def _parse_pixels(raw_pixels: Any) -> List[Pixel]:
    if not isinstance(raw_pixels, list):
        return []
    return [_parse_pixel(entry) for entry in raw_pixels if isinstance(entry, Mapping)]


def _parse_layer(raw: Mapping[str, Any]) -> Layer:
    return Layer(
        id=str(raw["id"]),
        name=str(raw.get("name", "")),
        visible=bool(raw.get("visible", True)),
        locked=bool(raw.get("locked", False)),
    )


def _parse_section(value: Any) -> FrameSection:
    if value == FrameSection.STARTUP.value:
        return FrameSection.STARTUP
    return FrameSection.MAIN


def _parse_frame(raw: Mapping[str, Any]) -> Frame:
    layer_data = raw.get("layerData") or {}
    if not isinstance(layer_data, Mapping):
        raise ValueError(f"layerData of frame {raw.get('id')!r} is not an object")
    duration = raw.get("duration", DEFAULT_FRAME_DURATION_MS)
    return Frame(
        id=str(raw["id"]),
        duration=max(0, int(duration)),
        layer_data={
            str(layer_id): _parse_pixels(pixels)
            for layer_id, pixels in layer_data.items()
        },
        section=_parse_section(raw.get("section")),
    )


def _parse_render_position(value: Any) -> RenderPosition:
    try:
        return RenderPosition(value)
    except ValueError:
        return RenderPosition.FOREGROUND


def _parse_animation(raw: Mapping[str, Any]) -> AnimationObject:
    layer_id = raw.get("layerId")
    extra = {
        key: value
        for key, value in raw.items()
        if key not in {"id", "renderPosition", "layerId"}
    }
    return AnimationObject(
        id=str(raw["id"]),
        render_position=_parse_render_position(raw.get("renderPosition", "FOREGROUND")),
        layer_id=str(layer_id) if layer_id is not None else None,
        extra=extra,
    )


def _parse_viewport(raw: Mapping[str, Any]) -> Viewport:
    return Viewport(
        width=int(raw["width"]),
        height=int(raw["height"]),
        viewport_x=int(raw.get("viewportX", 0)),
        viewport_y=int(raw.get("viewportY", 0)),
    )


def parse_project(data: Mapping[str, Any], *, source: Optional[Path] = None) -> Project:
    """Build a :class:`Project` from a decoded project document."""
    label = source or Path("<memory>")
    if not isinstance(data, Mapping):
        raise ProjectLoadError(label, "top-level value is not an object")

    try:
        canvas = data["canvasSize"]
        viewport = _parse_viewport(canvas)
        layers = [_parse_layer(entry) for entry in data.get("layers", [])]
        frames = [_parse_frame(entry) for entry in data.get("frames", [])]
        animations = [_parse_animation(entry) for entry in data.get("animationObjects", []) or []]
        blocked_pixels = {
            str(key): bool(value)
            for key, value in (data.get("blockedPixels") or {}).items()
        }
        animation_pixels = {
            str(frame_id): _parse_pixels(pixels)
            for frame_id, pixels in (data.get("animationPixels") or {}).items()
        }
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise ProjectLoadError(label, f"{type(exc).__name__}: {exc}") from exc

    if viewport.width <= 0 or viewport.height <= 0:
        raise ProjectLoadError(label, "canvasSize must have a positive width and height")

    fallback_name = source.stem if source is not None else DEFAULT_PROJECT_NAME
    name = str(data.get("projectName") or fallback_name)
    return Project(
        name=name,
        viewport=viewport,
        layers=layers,
        frames=frames,
        animations=animations,
        blocked_pixels=blocked_pixels,
        animation_pixels=animation_pixels,
    )


def load_project(path: Path | str) -> Project:
    """Read and parse a JSON project document from ``path``."""
    project_path = Path(path)
    try:
        with project_path.open("r", encoding="utf-8") as handle:
            data = json.load(handle)
    except OSError as exc:
        raise ProjectLoadError(project_path, str(exc)) from exc
    except json.JSONDecodeError as exc:
        raise ProjectLoadError(project_path, f"invalid JSON: {exc}") from exc
    return parse_project(data, source=project_path)


__all__ = ["DEFAULT_FRAME_DURATION_MS", "Project", "load_project", "parse_project"]
