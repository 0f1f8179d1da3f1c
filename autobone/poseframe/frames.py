"""
Recorded Pose Frames

Immutable motion data captured from body trackers:

- `PoseFrame`: one tracker's sample at one instant
- `TrackerFrames`: the ordered samples of one tracker
- `PoseFrames`: all trackers of a recording
"""

import numpy as np
from dataclasses import dataclass
from enum import Flag, auto
from typing import Iterator, List, Optional

from ..tracking.quaternion import from_rotation
from ..tracking.tracker import Tracker, TrackerPosition


class TrackerFrameData(Flag):
    """Which fields a frame carries."""
    NONE = 0
    TRACKER_POSITION = auto()
    ROTATION = auto()
    POSITION = auto()
    ACCELERATION = auto()
    RAW_ROTATION = auto()


def _as_vector(value, size: int) -> Optional[np.ndarray]:
    if value is None:
        return None
    array = np.array(value, dtype=np.float64).reshape(-1)
    if array.shape != (size,):
        raise ValueError(f"Expected {size} components, got {array.shape[0]}")
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class PoseFrame:
    """
    One tracker sample. Every field is optional, but at least one of
    rotation, raw rotation, position or acceleration must be present.

    Rotations are unit quaternions (w, x, y, z); position in meters;
    acceleration in m/s^2.
    """
    tracker_position: Optional[TrackerPosition] = None
    rotation: Optional[np.ndarray] = None
    position: Optional[np.ndarray] = None
    acceleration: Optional[np.ndarray] = None
    raw_rotation: Optional[np.ndarray] = None

    def __post_init__(self):
        object.__setattr__(self, "rotation", _as_vector(self.rotation, 4))
        object.__setattr__(self, "position", _as_vector(self.position, 3))
        object.__setattr__(self, "acceleration", _as_vector(self.acceleration, 3))
        object.__setattr__(self, "raw_rotation", _as_vector(self.raw_rotation, 4))

        if (
            self.rotation is None
            and self.position is None
            and self.acceleration is None
            and self.raw_rotation is None
        ):
            raise ValueError("A pose frame needs at least one data field")

    @property
    def data_flags(self) -> TrackerFrameData:
        flags = TrackerFrameData.NONE
        if self.tracker_position is not None:
            flags |= TrackerFrameData.TRACKER_POSITION
        if self.rotation is not None:
            flags |= TrackerFrameData.ROTATION
        if self.position is not None:
            flags |= TrackerFrameData.POSITION
        if self.acceleration is not None:
            flags |= TrackerFrameData.ACCELERATION
        if self.raw_rotation is not None:
            flags |= TrackerFrameData.RAW_ROTATION
        return flags

    def has_data(self, flag: TrackerFrameData) -> bool:
        return flag in self.data_flags

    @classmethod
    def from_tracker(cls, tracker: Tracker) -> Optional["PoseFrame"]:
        """Snapshot a live tracker, or None if it has no data yet."""
        rotation = from_rotation(tracker.get_rotation()) if tracker.has_rotation else None
        position = tracker.position if tracker.has_position else None
        acceleration = tracker.get_acceleration() if tracker.has_acceleration else None
        if rotation is None and position is None and acceleration is None:
            return None
        return cls(
            tracker_position=tracker.tracker_position,
            rotation=rotation,
            position=position,
            acceleration=acceleration,
        )


class TrackerFrames:
    """Append-only sequence of frames for one tracker (gaps are None)."""

    def __init__(self, name: str = "", frames: Optional[List[Optional[PoseFrame]]] = None):
        self.name = name
        self._frames: List[Optional[PoseFrame]] = list(frames) if frames else []

    @property
    def frames(self) -> List[Optional[PoseFrame]]:
        return self._frames

    def add_frame(self, frame: Optional[PoseFrame]) -> None:
        self._frames.append(frame)

    def try_get_frame(self, index: int) -> Optional[PoseFrame]:
        if 0 <= index < len(self._frames):
            return self._frames[index]
        return None

    def try_get_first_frame(self) -> Optional[PoseFrame]:
        """First non-null frame, if any."""
        for frame in self._frames:
            if frame is not None:
                return frame
        return None

    @property
    def tracker_position(self) -> Optional[TrackerPosition]:
        frame = self.try_get_first_frame()
        return frame.tracker_position if frame is not None else None

    def __len__(self) -> int:
        return len(self._frames)

    def __repr__(self) -> str:
        return f"TrackerFrames({self.name!r}, {len(self._frames)} frames)"


class PoseFrames:
    """A recording: one `TrackerFrames` per participating tracker."""

    def __init__(self, frame_holders: Optional[List[TrackerFrames]] = None):
        self.frame_holders: List[TrackerFrames] = list(frame_holders) if frame_holders else []

    def add_tracker_frames(self, tracker_frames: TrackerFrames) -> None:
        self.frame_holders.append(tracker_frames)

    @property
    def max_frame_count(self) -> int:
        return max((len(holder) for holder in self.frame_holders), default=0)

    def get_max_height(self, position: TrackerPosition = TrackerPosition.HEAD) -> float:
        """Highest recorded height (y) of the given placement, 0 if none."""
        best = 0.0
        for holder in self.frame_holders:
            for frame in holder.frames:
                if frame is None or frame.position is None:
                    continue
                if frame.tracker_position != position:
                    continue
                best = max(best, float(frame.position[1]))
        return best

    def __iter__(self) -> Iterator[List[Optional[PoseFrame]]]:
        """Yield the frames of every tracker for each frame index."""
        for index in range(self.max_frame_count):
            yield [holder.try_get_frame(index) for holder in self.frame_holders]

    def __len__(self) -> int:
        return self.max_frame_count

    def __repr__(self) -> str:
        return f"PoseFrames({len(self.frame_holders)} trackers, {self.max_frame_count} frames)"
