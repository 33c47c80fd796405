"""
Command line interface for exporting panel frame sequences.
"""

from __future__ import annotations

import argparse
import logging
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from dotenv import load_dotenv

from .assembler import SequenceAssembler
from .config import SINK_KINDS, Config, OutputSettings, load_config
from .errors import ExportError, ProjectLoadError
from .logging_setup import configure_logging
from .project import Project, load_project
from .sinks import FolderSink, FrameSink, VideoSink, ZipArchiveSink

DEFAULT_CONFIG_FILE = "export_config.json"


def build_sink(project: Project, output: OutputSettings, target: Optional[Path], logger: logging.Logger) -> FrameSink:
    """Create the sink selected in ``output`` for ``project``."""
    if output.sink == "folder":
        return FolderSink(target or output.output_dir, project.name, logger=logger)
    if output.sink == "video":
        return VideoSink(
            target or output.output_dir / f"{project.name}.mp4",
            fps=output.video_fps,
            quality=output.video_quality,
            scale=output.video_scale,
            logger=logger,
        )
    return ZipArchiveSink(
        target or output.output_dir / f"{project.name}.zip",
        project.name,
        logger=logger,
    )


def _apply_overrides(config: Config, args: argparse.Namespace) -> Config:
    export = config.export
    overrides = {}
    if args.rotate_180:
        overrides["rotate180"] = True
    if args.loop:
        overrides["enable_looping"] = True
    if args.loop_minutes is not None:
        overrides["loop_min_duration_minutes"] = args.loop_minutes
    if args.loop_start is not None:
        overrides["loop_start_frame_index"] = max(0, args.loop_start)
    if args.min_loop_frames is not None:
        overrides["min_loop_segment_frames"] = max(1, args.min_loop_frames)
    export = replace(export, **overrides) if overrides else export

    output = config.output
    if args.sink:
        output = replace(output, sink=args.sink)
    return replace(config, export=export, output=output)


def run_export(args: argparse.Namespace, logger: logging.Logger, config: Config) -> int:
    try:
        project = load_project(args.project)
    except ProjectLoadError as exc:
        logger.error("%s", exc)
        return 1

    logger.info(
        "Exporting '%s': %s frames, %s layers, %s animations, viewport %sx%s at (%s, %s)",
        project.name,
        len(project.frames),
        len(project.layers),
        len(project.animations),
        project.viewport.width,
        project.viewport.height,
        project.viewport.viewport_x,
        project.viewport.viewport_y,
    )

    sink = build_sink(project, config.output, args.output, logger)
    assembler = SequenceAssembler.from_project(
        project,
        options=config.export,
        panel_colors=config.panel_colors,
        logger=logger,
    )
    try:
        result = assembler.export(sink)
    except KeyboardInterrupt:
        # The sink was already aborted when the interrupt left the export.
        logger.warning("Export interrupted; partial output discarded")
        return 130
    except ExportError as exc:
        logger.error("Export failed: %s", exc)
        return 1

    if result.loop_segment is not None:
        logger.info(
            "Loop segment main frames %s-%s repeated %s times",
            result.loop_segment.start + 1,
            result.loop_segment.end + 1,
            result.loop_repetitions,
        )
    logger.info(
        "Wrote %s frames covering %sms",
        result.frame_count,
        result.cumulative_duration_ms,
    )
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="panel-export",
        description="Export pixel animation projects as PNG sequences for LED panels.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    parser.add_argument(
        "--config",
        type=Path,
        default=Path(DEFAULT_CONFIG_FILE),
        help=f"JSON configuration file (default: {DEFAULT_CONFIG_FILE}; falls back to EXPORT_* env vars)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    export_parser = subparsers.add_parser("export", help="Export a project")
    export_parser.add_argument("project", type=Path, help="Project JSON document")
    export_parser.add_argument("--sink", choices=SINK_KINDS, help="Output kind")
    export_parser.add_argument("--output", "-o", type=Path, help="Output path (archive, folder root or video)")
    export_parser.add_argument("--rotate-180", action="store_true", help="Rotate every frame by 180 degrees")
    export_parser.add_argument("--loop", action="store_true", help="Extend the sequence with a detected loop")
    export_parser.add_argument("--loop-minutes", type=float, help="Minimum total duration in minutes")
    export_parser.add_argument("--loop-start", type=int, help="Main section frame index to start the loop search")
    export_parser.add_argument("--min-loop-frames", type=int, help="Minimum loop segment length in frames")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    load_dotenv()
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config(args.config)
    config = _apply_overrides(config, args)

    logger = configure_logging(
        verbose=args.verbose,
        log_file=config.output.log_file,
    )

    if args.command == "export":
        return run_export(args, logger, config)

    parser.error(f"Unknown command {args.command}")
    return 2


__all__ = ["build_parser", "build_sink", "main", "run_export"]
