"""
Recording Persistence

Reads and writes `PoseFrames` as JSON:

    {
      "version": 1,
      "trackers": [
        {"name": "...", "frames": [null | {"tracker_position": "body:head",
                                           "rotation": [w, x, y, z],
                                           "position": [x, y, z], ...}]}
      ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from .frames import PoseFrame, PoseFrames, TrackerFrames
from ..tracking.tracker import TrackerPosition
from ..utils.logging import recorder_log


FORMAT_VERSION = 1
RECORDING_SUFFIX = ".json"


def _frame_to_dict(frame: Optional[PoseFrame]) -> Optional[Dict[str, Any]]:
    if frame is None:
        return None
    data: Dict[str, Any] = {}
    if frame.tracker_position is not None:
        data["tracker_position"] = frame.tracker_position.designation
    for key in ("rotation", "position", "acceleration", "raw_rotation"):
        value = getattr(frame, key)
        if value is not None:
            data[key] = [float(v) for v in value]
    return data


def _frame_from_dict(data: Optional[Dict[str, Any]]) -> Optional[PoseFrame]:
    if data is None:
        return None
    designation = data.get("tracker_position")
    return PoseFrame(
        tracker_position=TrackerPosition.from_designation(designation) if designation else None,
        rotation=data.get("rotation"),
        position=data.get("position"),
        acceleration=data.get("acceleration"),
        raw_rotation=data.get("raw_rotation"),
    )


def write_recording(path: Path, frames: PoseFrames) -> None:
    """Write a recording to a JSON file, creating parent directories."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "version": FORMAT_VERSION,
        "trackers": [
            {
                "name": holder.name,
                "frames": [_frame_to_dict(frame) for frame in holder.frames],
            }
            for holder in frames.frame_holders
        ],
    }
    with open(path, 'w') as f:
        json.dump(data, f)


def read_recording(path: Path) -> PoseFrames:
    """Read a recording written by `write_recording`."""
    with open(path, 'r') as f:
        data = json.load(f)

    version = data.get("version")
    if version != FORMAT_VERSION:
        raise ValueError(f"Unsupported recording version {version!r} in {path}")

    frames = PoseFrames()
    for tracker in data.get("trackers", []):
        holder = TrackerFrames(
            name=tracker.get("name", ""),
            frames=[_frame_from_dict(frame) for frame in tracker.get("frames", [])],
        )
        frames.add_tracker_frames(holder)
    return frames


def load_recordings(directory: Path) -> List[Tuple[str, PoseFrames]]:
    """
    Load every recording in a directory, sorted by file name.

    Unreadable files are logged and skipped.
    """
    directory = Path(directory)
    if not directory.is_dir():
        return []

    recordings = []
    for path in sorted(directory.glob(f"*{RECORDING_SUFFIX}")):
        try:
            recordings.append((path.stem, read_recording(path)))
        except (OSError, ValueError, KeyError, TypeError) as e:
            recorder_log.warn(f"Skipping unreadable recording \"{path}\": {e}")
    return recordings
