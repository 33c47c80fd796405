import logging
import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from panel_export.logging_setup import configure_logging  # noqa: E402
from panel_export.progress import (  # noqa: E402
    ProgressLog,
    estimate_remaining,
    eta_string,
    format_duration,
    format_timeline,
    progress_interval,
)


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    previous_handlers = list(root.handlers)
    previous_level = root.level
    yield
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    for handler in previous_handlers:
        root.addHandler(handler)
    root.setLevel(previous_level)
    logging.captureWarnings(False)


def test_format_timeline():
    assert format_timeline(0) == "0:00:00.000"
    assert format_timeline(3_723_004) == "1:02:03.004"
    assert format_timeline(-10) == "0:00:00.000"


def test_format_duration():
    assert format_duration(0.2) == "<1s"
    assert format_duration(45) == "45s"
    assert format_duration(125) == "2m05s"
    assert format_duration(3_723) == "1h02m03s"
    assert format_duration(3_600) == "1h00m00s"


def test_progress_interval_logs_every_five_percent():
    assert progress_interval(0) == 1
    assert progress_interval(10) == 1
    assert progress_interval(400) == 20


def test_eta_string_estimates_remaining_time():
    assert estimate_remaining(30.0, 1, 4) == pytest.approx(90.0)
    assert estimate_remaining(10.0, 11, 10) is None
    assert eta_string(0.0, 0, 10) == "ETA estimating"
    assert eta_string(30.0, 1, 2).startswith("ETA 30s (finish ")


def test_progress_log_reports_at_intervals(caplog):
    logger = logging.getLogger("panel_export.progress_test")
    progress_log = ProgressLog(logger, "Loop export progress", 40, unit="iterations")

    with caplog.at_level(logging.INFO, logger="panel_export.progress_test"):
        logged = [completed for completed in range(1, 41) if progress_log.update(completed)]

    assert logged == list(range(2, 41, 2))
    assert caplog.records[-1].getMessage().startswith("Loop export progress: 40/40 iterations (100.0%, ")


def test_configure_logging_writes_to_file(tmp_path: Path, restore_root_logging):
    log_path = tmp_path / "logs" / "export.log"

    logger = configure_logging(logger_name="panel_export.file_test", log_file=log_path, include_stream=False)
    logger.info("hello from the exporter")
    logger.debug("hidden detail")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert logger.name == "panel_export.file_test"
    assert "INFO - hello from the exporter" in content
    assert "hidden detail" not in content


def test_verbose_logging_includes_logger_names(tmp_path: Path, restore_root_logging):
    log_path = tmp_path / "verbose.log"

    logger = configure_logging(verbose=True, log_file=log_path, include_stream=False)
    logging.getLogger("panel_export.loops").debug("checking window")
    for handler in logging.getLogger().handlers:
        handler.flush()

    content = log_path.read_text(encoding="utf-8")
    assert logger.level == logging.DEBUG
    assert "DEBUG - panel_export.loops - checking window" in content
