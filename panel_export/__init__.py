"""
Frame sequence exporter turning layered pixel animations into PNG sequences
for LED panel hardware.
"""

from .assembler import SequenceAssembler, encode_png, frame_filename
from .cli import main
from .config import Config, ExportOptions, OutputSettings, PanelColors, load_config
from .errors import ExportCancelled, ExportError, ProjectLoadError, SinkWriteError
from .loops import find_loop_segment
from .models import ExportResult, Frame, Layer, LoopSegment, Pixel, Viewport
from .project import Project, load_project
from .sinks import FolderSink, MemorySink, VideoSink, ZipArchiveSink

__all__ = [
    "main",
    "Config",
    "ExportCancelled",
    "ExportError",
    "ExportOptions",
    "ExportResult",
    "FolderSink",
    "Frame",
    "Layer",
    "LoopSegment",
    "MemorySink",
    "OutputSettings",
    "PanelColors",
    "Pixel",
    "Project",
    "ProjectLoadError",
    "SequenceAssembler",
    "SinkWriteError",
    "VideoSink",
    "Viewport",
    "ZipArchiveSink",
    "encode_png",
    "find_loop_segment",
    "frame_filename",
    "load_config",
    "load_project",
]
