"""Logging configuration for export runs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Tuple, Union

DEFAULT_LOGGER_NAME = "panel_export"

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
VERBOSE_LOG_FORMAT = "%(asctime)s - %(levelname)s - %(name)s - %(message)s"


def _open_log_file(log_file: Union[str, Path]) -> Tuple[Optional[logging.Handler], Optional[str]]:
    """Open ``log_file`` for appending, falling back to its name in the cwd.

    Returns the handler (if any could be opened) and a warning to log once
    logging is configured.
    """
    log_path = Path(log_file)
    if not log_path.is_absolute():
        log_path = Path.cwd() / log_path

    candidates = [log_path]
    fallback_path = Path.cwd() / log_path.name
    if fallback_path != log_path:
        candidates.append(fallback_path)

    errors: List[str] = []
    for candidate in candidates:
        try:
            candidate.parent.mkdir(parents=True, exist_ok=True)
            handler = logging.FileHandler(candidate, encoding="utf-8")
        except OSError as exc:
            errors.append(f"'{candidate}': {exc}")
            continue
        if errors:
            return handler, f"Could not open log file {errors[0]}; logging to '{candidate}' instead"
        return handler, None

    return None, "Could not open any log file (" + "; ".join(errors) + "); logging to console only"


def configure_logging(
    *,
    verbose: bool = False,
    log_file: Union[str, Path, None] = None,
    include_stream: bool = True,
    logger_name: str = DEFAULT_LOGGER_NAME,
) -> logging.Logger:
    """Set up root handlers for an export run and return the exporter logger.

    ``verbose`` switches to DEBUG and adds logger names to each line so
    per-module messages (reducer, loop search, sinks) can be told apart.
    Python warnings raised by libraries during the export are routed into
    the same handlers.
    """
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT)

    handlers: List[logging.Handler] = []
    pending_warning: Optional[str] = None
    if log_file:
        file_handler, pending_warning = _open_log_file(log_file)
        if file_handler is not None:
            handlers.append(file_handler)
    if include_stream:
        handlers.append(logging.StreamHandler())

    for handler in handlers:
        handler.setFormatter(formatter)

    logging.basicConfig(level=level, handlers=handlers, force=True)
    logging.captureWarnings(True)

    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    if pending_warning:
        logger.warning(pending_warning)
    return logger


__all__ = ["DEFAULT_LOGGER_NAME", "configure_logging"]
