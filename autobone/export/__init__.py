"""Streaming recorded poses out to files."""

from .stream import PoseDataStream, PoseFrameStreamer
from .csv_writer import CSVWriter

__all__ = [
    "PoseDataStream",
    "PoseFrameStreamer",
    "CSVWriter",
]
