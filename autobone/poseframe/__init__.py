"""Recorded pose frames: storage, playback, capture and persistence."""

from .frames import PoseFrame, PoseFrames, TrackerFrames, TrackerFrameData
from .player import PlayerTracker, TrackerFramesPlayer
from .recorder import PoseRecorder, RecordingProgress
from .io import write_recording, read_recording, load_recordings

__all__ = [
    "PoseFrame",
    "PoseFrames",
    "TrackerFrames",
    "TrackerFrameData",
    "PlayerTracker",
    "TrackerFramesPlayer",
    "PoseRecorder",
    "RecordingProgress",
    "write_recording",
    "read_recording",
    "load_recordings",
]
