"""
Recording Playback

Replays recorded `TrackerFrames` into live `Tracker` objects so a skeleton
can be posed at any frame of a recording. Each `PlayerTracker` has its own
cursor; `TrackerFramesPlayer` moves all of a recording's trackers together.
"""

from typing import List, Optional

from .frames import PoseFrames, TrackerFrames
from ..tracking.quaternion import to_rotation
from ..tracking.tracker import Tracker


class PlayerTracker:
    """
    Drives one tracker from one recorded frame sequence.

    Frame rotations can be corrected for a mounting offset (a rotation
    about the tracker's up axis) and an attachment fix quaternion
    (w, x, y, z). Positions and accelerations are multiplied by `scale`.
    Changing any of these re-applies the frame under the cursor.
    """

    def __init__(
        self,
        tracker_frames: TrackerFrames,
        tracker: Tracker,
        cursor: int = 0,
        scale: float = 1.0,
        mounting: float = 0.0,
    ):
        self.tracker_frames = tracker_frames
        self.tracker = tracker

        self._cursor = cursor
        self._scale = scale
        self._mounting = mounting
        self._w = 1.0
        self._x = 0.0
        self._y = 0.0
        self._z = 0.0

        self._cursor = self.limit_cursor(self._cursor)
        self.apply_pose()

    def limit_cursor(self, cursor: int) -> int:
        """Clamp a cursor into the valid frame range (0 if empty)."""
        size = len(self.tracker_frames)
        if cursor < 0 or size == 0:
            return 0
        if cursor >= size:
            return size - 1
        return cursor

    @property
    def cursor(self) -> int:
        return self._cursor

    @cursor.setter
    def cursor(self, value: int) -> None:
        self._cursor = self.limit_cursor(int(value))
        self.apply_pose()

    @property
    def scale(self) -> float:
        return self._scale

    @scale.setter
    def scale(self, value: float) -> None:
        self._scale = float(value)
        self.apply_pose()

    @property
    def mounting(self) -> float:
        return self._mounting

    @mounting.setter
    def mounting(self, value: float) -> None:
        self._mounting = float(value)
        self.apply_pose()

    @property
    def attachment_fix(self) -> tuple:
        return (self._w, self._x, self._y, self._z)

    def set_attachment_fix(self, w: float, x: float, y: float, z: float) -> None:
        self._w, self._x, self._y, self._z = float(w), float(x), float(y), float(z)
        self.apply_pose()

    def _has_rotation_correction(self) -> bool:
        return (
            self._mounting != 0.0
            or self._w != 1.0
            or self._x != 0.0
            or self._y != 0.0
            or self._z != 0.0
        )

    def apply_pose(self, index: Optional[int] = None) -> None:
        """Push the frame at `index` (default: the cursor) into the tracker."""
        if index is None:
            index = self._cursor
        frame = self.tracker_frames.try_get_frame(index)
        if frame is None:
            return

        if frame.tracker_position is not None:
            self.tracker.tracker_position = frame.tracker_position

        if frame.rotation is not None:
            rotation = to_rotation(frame.rotation)
            if self._has_rotation_correction():
                mount_offset = to_rotation([1.0 - abs(self._mounting), 0.0, self._mounting, 0.0])
                if self._w != 0.0 or self._x != 0.0 or self._y != 0.0 or self._z != 0.0:
                    attachment_fix = to_rotation([self._w, self._x, self._y, self._z])
                    rotation = rotation * attachment_fix
                rotation = mount_offset.inv() * (rotation * mount_offset)
            self.tracker.set_rotation(rotation)

        if frame.position is not None:
            self.tracker.position = frame.position * self._scale

        if frame.acceleration is not None:
            self.tracker.set_acceleration(frame.acceleration * self._scale)


class TrackerFramesPlayer:
    """Plays every tracker of a recording in lockstep."""

    def __init__(self, frames: PoseFrames):
        self.frames = frames
        self.player_trackers: List[PlayerTracker] = []

        for index, holder in enumerate(frames.frame_holders):
            first = holder.try_get_first_frame()
            tracker = Tracker(
                name=holder.name or f"player_{index}",
                tracker_position=first.tracker_position if first is not None else None,
            )
            self.player_trackers.append(PlayerTracker(holder, tracker))

    @property
    def trackers(self) -> List[Tracker]:
        return [player.tracker for player in self.player_trackers]

    @property
    def max_frame_count(self) -> int:
        return self.frames.max_frame_count

    def set_cursors(self, index: int) -> None:
        for player in self.player_trackers:
            player.cursor = index

    def find_player(self, tracker_position) -> Optional[PlayerTracker]:
        for player in self.player_trackers:
            if player.tracker.tracker_position == tracker_position:
                return player
        return None
