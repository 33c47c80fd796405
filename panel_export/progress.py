"""Progress logging and timeline formatting for export runs."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from time import perf_counter
from typing import Optional

_DURATION_UNITS = (("h", 3600), ("m", 60), ("s", 1))


def format_duration(seconds: float) -> str:
    """Compact wall-clock duration such as ``1h02m03s`` or ``45s``."""
    remaining = int(round(seconds))
    if remaining <= 0:
        return "<1s"
    parts = []
    for suffix, size in _DURATION_UNITS:
        value, remaining = divmod(remaining, size)
        if parts:
            parts.append(f"{value:02d}{suffix}")
        elif value:
            parts.append(f"{value}{suffix}")
    return "".join(parts)


def estimate_remaining(elapsed: float, completed: int, total: int) -> Optional[float]:
    """Seconds left at the current rate, or ``None`` without a usable rate."""
    if completed <= 0 or total <= 0 or completed > total or elapsed <= 0.0:
        return None
    return max(0.0, elapsed * (total - completed) / completed)


def eta_string(elapsed: float, completed: int, total: int) -> str:
    remaining = estimate_remaining(elapsed, completed, total)
    if remaining is None:
        return "ETA estimating"
    finish_time = datetime.now() + timedelta(seconds=remaining)
    return f"ETA {format_duration(remaining)} (finish {finish_time.strftime('%H:%M:%S')})"


def format_timeline(milliseconds: int) -> str:
    """Render a cumulative timeline position as ``H:MM:SS.mmm``."""
    seconds, millis = divmod(max(0, int(milliseconds)), 1000)
    minutes, seconds = divmod(seconds, 60)
    hours, minutes = divmod(minutes, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}.{millis:03d}"


def progress_interval(total: int) -> int:
    """Log roughly every 5% of ``total`` items."""
    return max(1, total // 20)


class ProgressLog:
    """Periodic ``completed/total`` log lines with an ETA for one export phase."""

    def __init__(self, logger: logging.Logger, label: str, total: int, unit: str = "frames") -> None:
        self.logger = logger
        self.label = label
        self.total = total
        self.unit = unit
        self.interval = progress_interval(total)
        self._started = perf_counter()

    def update(self, completed: int) -> bool:
        """Log progress when ``completed`` hits an interval or the end.

        Returns whether a line was logged.
        """
        if completed % self.interval != 0 and completed != self.total:
            return False
        elapsed = perf_counter() - self._started
        percent = completed / self.total * 100.0 if self.total else 100.0
        self.logger.info(
            "%s: %s/%s %s (%0.1f%%, %s)",
            self.label,
            completed,
            self.total,
            self.unit,
            percent,
            eta_string(elapsed, completed, self.total),
        )
        return True


__all__ = [
    "ProgressLog",
    "estimate_remaining",
    "eta_string",
    "format_duration",
    "format_timeline",
    "progress_interval",
]
