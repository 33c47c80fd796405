import json
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_export.errors import ProjectLoadError  # noqa: E402
from panel_export.models import FrameSection, RenderPosition, Viewport  # noqa: E402
from panel_export.project import DEFAULT_FRAME_DURATION_MS, load_project, parse_project  # noqa: E402

PROJECT = {
    "projectName": "stage-left",
    "canvasSize": {"width": 16, "height": 8, "viewportX": 2, "viewportY": 1},
    "layers": [
        {"id": "fx", "name": "Effects", "visible": False},
        {"id": "base", "name": "Base"},
    ],
    "frames": [
        {
            "id": "intro",
            "duration": 500,
            "section": "startup",
            "layerData": {"base": [{"x": 3, "y": 2, "color": "#ff0000", "pixelNumber": 12}]},
        },
        {"id": "loop-1", "layerData": {"fx": [{"x": 4, "y": 4, "color": "rgb(1, 2, 3)"}]}},
    ],
    "animationObjects": [
        {"id": "rain", "renderPosition": "ON_LAYER", "layerId": "base", "type": "rain", "speed": 2},
        {"id": "mystery", "renderPosition": "SIDEWAYS"},
    ],
    "blockedPixels": {"2,1": True, "3,1": False},
    "animationPixels": {"loop-1": [{"x": 5, "y": 5, "color": "#ffffff", "animationId": "rain"}]},
}


def write_project(tmp_path: Path, data, name: str = "project.json") -> Path:
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_load_project_reads_all_sections(tmp_path: Path) -> None:
    project = load_project(write_project(tmp_path, PROJECT))

    assert project.name == "stage-left"
    assert project.viewport == Viewport(16, 8, viewport_x=2, viewport_y=1)
    assert [layer.id for layer in project.layers] == ["fx", "base"]
    assert project.layers[0].visible is False

    intro, loop_frame = project.frames
    assert intro.section == FrameSection.STARTUP
    assert intro.duration == 500
    assert intro.layer_data["base"][0].pixel_number == 12
    assert loop_frame.section == FrameSection.MAIN
    assert loop_frame.duration == DEFAULT_FRAME_DURATION_MS

    rain, mystery = project.animations
    assert rain.render_position == RenderPosition.ON_LAYER
    assert rain.layer_id == "base"
    assert rain.extra == {"type": "rain", "speed": 2}
    assert mystery.render_position == RenderPosition.FOREGROUND

    assert project.blocked_pixels == {"2,1": True, "3,1": False}
    engine_pixels = project.animation_engine().produce(
        project.frames, project.animations, project.viewport, project.blocked_pixels
    )
    assert engine_pixels["intro"] == []
    assert engine_pixels["loop-1"][0].animation_id == "rain"


def test_project_name_falls_back_to_file_stem(tmp_path: Path) -> None:
    data = {key: value for key, value in PROJECT.items() if key != "projectName"}

    project = load_project(write_project(tmp_path, data, name="panel-show.json"))

    assert project.name == "panel-show"


def test_missing_file_raises(tmp_path: Path) -> None:
    with pytest.raises(ProjectLoadError):
        load_project(tmp_path / "absent.json")


def test_invalid_json_raises(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ProjectLoadError, match="invalid JSON"):
        load_project(path)


@pytest.mark.parametrize(
    "data",
    [
        [],
        {"frames": []},
        {"canvasSize": {"width": 0, "height": 4}},
        {"canvasSize": {"width": 4, "height": 4}, "frames": [{"duration": 100}]},
        {"canvasSize": {"width": 4, "height": 4}, "frames": [{"id": "f", "layerData": "oops"}]},
        {"canvasSize": {"width": 4, "height": 4}, "frames": [{"id": "f", "duration": "soon"}]},
    ],
)
def test_malformed_documents_raise(data) -> None:
    with pytest.raises(ProjectLoadError):
        parse_project(data)


def test_minimal_document_uses_defaults() -> None:
    project = parse_project({"canvasSize": {"width": 4, "height": 2}})

    assert project.name == "lightjumper-project"
    assert project.frames == []
    assert project.animations == []
    assert project.blocked_pixels == {}
