"""Configuration dataclasses and loading helpers for the panel frame exporter."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping, Optional

from panel_export.loops import DEFAULT_MIN_SEGMENT_FRAMES

SINK_KINDS = ("zip", "folder", "video")


def _parse_bool(value: Any, default: bool) -> bool:
    """Parse truthy/falsy values from multiple input types."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true", "yes", "on"}
    if isinstance(value, (int, float)):
        return value != 0
    return default


def _parse_positive_int(value: Any, default: int) -> int:
    """Parse a positive integer with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed > 0 else default


def _parse_non_negative_int(value: Any, default: int) -> int:
    """Parse an integer that may be zero, with fallback to default."""
    try:
        parsed = int(value)
    except (TypeError, ValueError):
        return default
    return parsed if parsed >= 0 else default


def _parse_float(value: Any, default: float) -> float:
    """Parse a floating point number with fallback to default."""
    try:
        return float(value)
    except (TypeError, ValueError):
        return default


def _parse_hex_color(value: Any, default: str) -> str:
    """Accept ``#RRGGBB`` strings, lower-cased, falling back to default."""
    if not isinstance(value, str):
        return default
    candidate = value.strip()
    hex_value = candidate.lstrip("#")
    if len(hex_value) != 6:
        return default
    try:
        int(hex_value, 16)
    except ValueError:
        return default
    return f"#{hex_value.lower()}"


@dataclass(frozen=True)
class ExportOptions:
    """Parameters accepted by the export pipeline."""

    rotate180: bool = False
    enable_looping: bool = False
    loop_min_duration_minutes: float = 10.0
    loop_start_frame_index: int = 0
    min_loop_segment_frames: int = DEFAULT_MIN_SEGMENT_FRAMES

    @property
    def target_duration_ms(self) -> int:
        return int(round(self.loop_min_duration_minutes * 60 * 1000))


@dataclass(frozen=True)
class PanelColors:
    """Hit/miss colors written to ``settings.json`` for the playback hardware."""

    panel_to_hit_color: str = "#0000ff"
    panel_to_miss_color: str = "#ff0000"
    panel_to_double_hit_color: str = "#ff00ff"
    safe_color: str = "#00ff00"

    def to_settings(self) -> dict:
        return {
            "value0": {
                "panelToHitColor": self.panel_to_hit_color,
                "panelToMissColor": self.panel_to_miss_color,
                "panelToDoubleHitColor": self.panel_to_double_hit_color,
                "safeColor": self.safe_color,
            }
        }


@dataclass(frozen=True)
class OutputSettings:
    """Where and how exported frames are written."""

    sink: str = "zip"
    output_dir: Path = Path("exports")
    video_fps: int = 30
    video_quality: int = 23
    video_scale: int = 1
    log_file: Optional[Path] = None


@dataclass(frozen=True)
class Config:
    """Root configuration object for the exporter."""

    export: ExportOptions = field(default_factory=ExportOptions)
    panel_colors: PanelColors = field(default_factory=PanelColors)
    output: OutputSettings = field(default_factory=OutputSettings)


def _parse_export_options(raw: Mapping[str, Any]) -> ExportOptions:
    default = ExportOptions()
    if not isinstance(raw, Mapping):
        return default
    return ExportOptions(
        rotate180=_parse_bool(raw.get("rotate180"), default.rotate180),
        enable_looping=_parse_bool(raw.get("enable_looping"), default.enable_looping),
        loop_min_duration_minutes=_parse_float(
            raw.get("loop_min_duration_minutes"),
            default.loop_min_duration_minutes,
        ),
        loop_start_frame_index=_parse_non_negative_int(
            raw.get("loop_start_frame_index"),
            default.loop_start_frame_index,
        ),
        min_loop_segment_frames=_parse_positive_int(
            raw.get("min_loop_segment_frames"),
            default.min_loop_segment_frames,
        ),
    )


def _parse_panel_colors(raw: Mapping[str, Any]) -> PanelColors:
    default = PanelColors()
    if not isinstance(raw, Mapping):
        return default
    return PanelColors(
        panel_to_hit_color=_parse_hex_color(raw.get("panel_to_hit_color"), default.panel_to_hit_color),
        panel_to_miss_color=_parse_hex_color(raw.get("panel_to_miss_color"), default.panel_to_miss_color),
        panel_to_double_hit_color=_parse_hex_color(
            raw.get("panel_to_double_hit_color"),
            default.panel_to_double_hit_color,
        ),
        safe_color=_parse_hex_color(raw.get("safe_color"), default.safe_color),
    )


def _parse_sink(value: Any, default: str) -> str:
    if isinstance(value, str) and value.strip().lower() in SINK_KINDS:
        return value.strip().lower()
    return default


def _parse_output_settings(raw: Mapping[str, Any]) -> OutputSettings:
    default = OutputSettings()
    if not isinstance(raw, Mapping):
        return default
    log_file = raw.get("log_file")
    return OutputSettings(
        sink=_parse_sink(raw.get("sink"), default.sink),
        output_dir=Path(raw.get("output_dir", default.output_dir)),
        video_fps=_parse_positive_int(raw.get("video_fps"), default.video_fps),
        video_quality=_parse_positive_int(raw.get("video_quality"), default.video_quality),
        video_scale=_parse_positive_int(raw.get("video_scale"), default.video_scale),
        log_file=Path(log_file) if log_file else None,
    )


def _load_env_config(env: Mapping[str, str]) -> Config:
    """Fallback configuration derived from environment variables."""
    export = _parse_export_options({
        "rotate180": env.get("EXPORT_ROTATE_180"),
        "enable_looping": env.get("EXPORT_ENABLE_LOOPING"),
        "loop_min_duration_minutes": env.get("EXPORT_LOOP_MIN_MINUTES"),
        "loop_start_frame_index": env.get("EXPORT_LOOP_START_INDEX"),
        "min_loop_segment_frames": env.get("EXPORT_MIN_LOOP_FRAMES"),
    })
    output = _parse_output_settings({
        "sink": env.get("EXPORT_SINK"),
        "output_dir": env.get("EXPORT_OUTPUT_DIR", "exports"),
        "video_fps": env.get("EXPORT_VIDEO_FPS"),
        "video_quality": env.get("EXPORT_VIDEO_QUALITY"),
        "video_scale": env.get("EXPORT_VIDEO_SCALE"),
        "log_file": env.get("EXPORT_LOG_FILE"),
    })
    return Config(export=export, panel_colors=PanelColors(), output=output)


def load_config(config_path: Path | str | None, env: Mapping[str, str] | None = None) -> Config:
    """Load configuration from a JSON file or environment defaults."""
    source_env = os.environ if env is None else env

    if config_path is not None:
        path = Path(config_path)
        if path.exists():
            with path.open("r", encoding="utf-8") as handle:
                data = json.load(handle)
            if not isinstance(data, Mapping):
                data = {}
            return Config(
                export=_parse_export_options(data.get("export", {})),
                panel_colors=_parse_panel_colors(data.get("panel_colors", {})),
                output=_parse_output_settings(data.get("output", {})),
            )

    return _load_env_config(source_env)


__all__ = [
    "Config",
    "ExportOptions",
    "OutputSettings",
    "PanelColors",
    "SINK_KINDS",
    "load_config",
    "_parse_bool",
    "_parse_positive_int",
]
