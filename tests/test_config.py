import json
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_export.config import ExportOptions, PanelColors, load_config  # noqa: E402


def test_load_config_from_json(tmp_path: Path) -> None:
    config_path = tmp_path / "export_config.json"
    config_path.write_text(
        json.dumps(
            {
                "export": {
                    "rotate180": "true",
                    "enable_looping": True,
                    "loop_min_duration_minutes": 2.5,
                    "loop_start_frame_index": 4,
                    "min_loop_segment_frames": 5,
                },
                "panel_colors": {"safe_color": "#ABCDEF", "panel_to_hit_color": "blue"},
                "output": {"sink": "Folder", "output_dir": "out", "video_fps": 24, "log_file": "logs/export.log"},
            }
        ),
        encoding="utf-8",
    )

    config = load_config(config_path, env={})

    assert config.export == ExportOptions(
        rotate180=True,
        enable_looping=True,
        loop_min_duration_minutes=2.5,
        loop_start_frame_index=4,
        min_loop_segment_frames=5,
    )
    assert config.panel_colors.safe_color == "#abcdef"
    assert config.panel_colors.panel_to_hit_color == "#0000ff"
    assert config.output.sink == "folder"
    assert config.output.output_dir == Path("out")
    assert config.output.video_fps == 24
    assert config.output.log_file == Path("logs/export.log")


def test_missing_file_falls_back_to_environment(tmp_path: Path) -> None:
    env = {
        "EXPORT_ROTATE_180": "1",
        "EXPORT_ENABLE_LOOPING": "yes",
        "EXPORT_LOOP_MIN_MINUTES": "1.5",
        "EXPORT_LOOP_START_INDEX": "-2",
        "EXPORT_MIN_LOOP_FRAMES": "0",
        "EXPORT_SINK": "video",
        "EXPORT_VIDEO_FPS": "-3",
        "EXPORT_OUTPUT_DIR": str(tmp_path / "exports"),
    }

    config = load_config(tmp_path / "missing.json", env=env)

    assert config.export.rotate180 is True
    assert config.export.enable_looping is True
    assert config.export.loop_min_duration_minutes == 1.5
    assert config.export.loop_start_frame_index == 0
    assert config.export.min_loop_segment_frames == 3
    assert config.output.sink == "video"
    assert config.output.video_fps == 30
    assert config.output.output_dir == tmp_path / "exports"
    assert config.output.log_file is None


def test_defaults_without_file_or_environment() -> None:
    config = load_config(None, env={})

    assert config.export == ExportOptions()
    assert config.panel_colors == PanelColors()
    assert config.output.sink == "zip"
    assert config.output.output_dir == Path("exports")


def test_target_duration_in_milliseconds() -> None:
    assert ExportOptions(loop_min_duration_minutes=1.5).target_duration_ms == 90_000
    assert ExportOptions().target_duration_ms == 600_000


def test_panel_colors_settings_document() -> None:
    assert PanelColors().to_settings() == {
        "value0": {
            "panelToHitColor": "#0000ff",
            "panelToMissColor": "#ff0000",
            "panelToDoubleHitColor": "#ff00ff",
            "safeColor": "#00ff00",
        }
    }
