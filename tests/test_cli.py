import json
import logging
import sys
import zipfile
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_export import cli  # noqa: E402
from panel_export.config import Config, OutputSettings  # noqa: E402
from panel_export.project import parse_project  # noqa: E402
from panel_export.sinks import FolderSink, VideoSink, ZipArchiveSink  # noqa: E402

PROJECT = {
    "projectName": "demo",
    "canvasSize": {"width": 2, "height": 2},
    "layers": [{"id": "l1"}],
    "frames": [
        {"id": "a", "duration": 100, "layerData": {"l1": [{"x": 0, "y": 0, "color": "#ff0000"}]}},
        {"id": "b", "duration": 100, "layerData": {"l1": [{"x": 1, "y": 1, "color": "#00ff00"}]}},
    ],
}


@pytest.fixture
def workspace(tmp_path: Path, monkeypatch) -> Path:
    monkeypatch.chdir(tmp_path)
    monkeypatch.setattr(
        cli,
        "configure_logging",
        lambda *args, **kwargs: logging.getLogger("panel_export.test"),
    )
    monkeypatch.setattr(cli, "load_config", lambda path: Config())
    (tmp_path / "project.json").write_text(json.dumps(PROJECT), encoding="utf-8")
    return tmp_path


def test_export_to_zip(workspace: Path) -> None:
    output = workspace / "out" / "demo.zip"

    exit_code = cli.main(["export", str(workspace / "project.json"), "--output", str(output)])

    assert exit_code == 0
    with zipfile.ZipFile(output) as archive:
        assert archive.namelist() == ["demo/settings.json", "demo/000000.png", "demo/000100.png"]


def test_export_to_folder(workspace: Path) -> None:
    exit_code = cli.main(
        ["export", str(workspace / "project.json"), "--sink", "folder", "--output", str(workspace / "frames")]
    )

    assert exit_code == 0
    folder = workspace / "frames" / "demo"
    assert sorted(path.name for path in folder.iterdir()) == ["000000.png", "000100.png", "settings.json"]


def test_default_zip_location_uses_project_name(workspace: Path) -> None:
    assert cli.main(["export", "project.json"]) == 0
    assert (workspace / "exports" / "demo.zip").exists()


def test_invalid_project_returns_error_code(workspace: Path) -> None:
    (workspace / "broken.json").write_text("[]", encoding="utf-8")

    assert cli.main(["export", str(workspace / "broken.json")]) == 1
    assert cli.main(["export", str(workspace / "absent.json")]) == 1


def test_command_line_overrides_configuration() -> None:
    args = cli.build_parser().parse_args(
        [
            "export",
            "project.json",
            "--sink",
            "video",
            "--rotate-180",
            "--loop",
            "--loop-minutes",
            "2",
            "--loop-start",
            "-5",
            "--min-loop-frames",
            "4",
        ]
    )

    config = cli._apply_overrides(Config(), args)

    assert config.output.sink == "video"
    assert config.export.rotate180 is True
    assert config.export.enable_looping is True
    assert config.export.loop_min_duration_minutes == 2.0
    assert config.export.loop_start_frame_index == 0
    assert config.export.min_loop_segment_frames == 4


def test_build_sink_honours_kind(tmp_path: Path) -> None:
    project = parse_project(PROJECT)
    logger = logging.getLogger("panel_export.test")

    zip_sink = cli.build_sink(project, OutputSettings(output_dir=tmp_path), None, logger)
    folder_sink = cli.build_sink(project, OutputSettings(sink="folder", output_dir=tmp_path), None, logger)
    video_sink = cli.build_sink(project, OutputSettings(sink="video", output_dir=tmp_path), None, logger)

    assert isinstance(zip_sink, ZipArchiveSink) and zip_sink.output_path == tmp_path / "demo.zip"
    assert isinstance(folder_sink, FolderSink) and folder_sink.folder == tmp_path / "demo"
    assert isinstance(video_sink, VideoSink) and video_sink.output_path == tmp_path / "demo.mp4"


def test_interrupted_export_discards_partial_archive(workspace: Path, monkeypatch) -> None:
    output = workspace / "out" / "demo.zip"

    def interrupt(self, name, png_bytes):
        raise KeyboardInterrupt

    monkeypatch.setattr(ZipArchiveSink, "write_raster", interrupt)

    exit_code = cli.main(["export", str(workspace / "project.json"), "--output", str(output)])

    assert exit_code == 130
    assert not output.exists()
    assert list(output.parent.glob(".tmp_*")) == []
