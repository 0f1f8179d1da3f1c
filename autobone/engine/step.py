"""
Optimization Step

One before/after measurement unit for the optimizer: two skeletons posed
from the same recording at two different frames. For a correctly
proportioned skeleton a planted foot stays put between the two frames, so
any foot displacement ("slide") points at wrong bone lengths.
"""

import numpy as np
from dataclasses import dataclass, field
from typing import Callable, Iterator, List, Optional, Tuple

from ..config import AutoBoneConfig, SkeletonConfig
from ..poseframe.frames import PoseFrames
from ..poseframe.player import PlayerTracker, TrackerFramesPlayer
from ..tracking.skeleton import HumanSkeleton, SkeletonConfigOffsets
from ..tracking.tracker import TrackerPosition
from ..utils.stats import StatsCalculator


@dataclass
class TrackerCalibration:
    """Per-tracker mounting correction shared by both playback copies."""
    tracker_position: TrackerPosition
    mounting: float = 0.0
    attachment_fix: Tuple[float, float, float, float] = (1.0, 0.0, 0.0, 0.0)


@dataclass
class TrackerAdjustments:
    """The same tracker as played at cursor 1 and at cursor 2."""
    tracker1: PlayerTracker
    tracker2: PlayerTracker
    calibration: TrackerCalibration

    def apply_calibration(self) -> None:
        for player in (self.tracker1, self.tracker2):
            player.mounting = self.calibration.mounting
            player.set_attachment_fix(*self.calibration.attachment_fix)


@dataclass
class Epoch:
    """Summary of one optimizer epoch, handed to epoch listeners."""
    epoch: int
    epoch_count: int
    adjust_rate: float
    error_stats: StatsCalculator
    config_values: dict = field(default_factory=dict)

    @property
    def error(self) -> float:
        return self.error_stats.mean

    def __str__(self) -> str:
        return f"Epoch {self.epoch}/{self.epoch_count}, rate {self.adjust_rate:.6f}, error {self.error:.6f}"


class AutoBoneStep:
    """
    Two playback skeletons over one recording.

    Both skeletons are loaded from the same base config with leg tweaks
    disabled, so foot displacement reflects bone lengths only.
    """

    def __init__(
        self,
        config: AutoBoneConfig,
        target_hmd_height: float,
        frames: PoseFrames,
        epoch_callback: Optional[Callable[[Epoch], None]] = None,
        skeleton_config: Optional[SkeletonConfig] = None,
    ):
        self.config = config
        self.target_hmd_height = target_hmd_height
        self.frames = frames
        self.epoch_callback = epoch_callback

        self.cur_epoch = 0
        self.cur_adjust_rate = 0.0
        self.cursor1 = 0
        self.cursor2 = 0

        self.max_frame_count = frames.max_frame_count

        self.frame_player1 = TrackerFramesPlayer(frames)
        self.frame_player2 = TrackerFramesPlayer(frames)

        self.skeleton1 = HumanSkeleton(self.frame_player1.trackers)
        self.skeleton2 = HumanSkeleton(self.frame_player2.trackers)

        if skeleton_config is not None:
            self.skeleton1.load_from_config(skeleton_config)
            self.skeleton2.load_from_config(skeleton_config)

        # Floor clipping would hide the slide we are measuring
        self.skeleton1.set_leg_tweaks_enabled(False)
        self.skeleton2.set_leg_tweaks_enabled(False)

        self.error_stats = StatsCalculator()

        self.tracker_adjustments: List[TrackerAdjustments] = []
        for player1 in self.frame_player1.player_trackers:
            position = player1.tracker.tracker_position
            if position is None:
                continue
            player2 = self.frame_player2.find_player(position)
            if player2 is None:
                continue
            self.tracker_adjustments.append(
                TrackerAdjustments(player1, player2, TrackerCalibration(position))
            )

    def set_cursors(self, cursor1: int, cursor2: int, update_players: bool = True) -> None:
        self.cursor1 = cursor1
        self.cursor2 = cursor2

        if update_players:
            self.update_player_cursors()

    def update_player_cursors(self) -> None:
        self.frame_player1.set_cursors(self.cursor1)
        self.frame_player2.set_cursors(self.cursor2)
        self.update_skeletons()

    def update_skeletons(self) -> None:
        self.skeleton1.update()
        self.skeleton2.update()

    def set_offset(self, offset: SkeletonConfigOffsets, value: float) -> None:
        """Set an offset on both skeletons (takes effect on the next update)."""
        self.skeleton1.set_offset(offset, value)
        self.skeleton2.set_offset(offset, value)

    def scale_to_height(self, target_height: float) -> None:
        self.skeleton1.scale_to_height(target_height)
        self.skeleton2.set_offsets(self.skeleton1.offsets)

    @property
    def current_hmd_height(self) -> float:
        return self.skeleton1.get_user_height()

    @property
    def height_offset(self) -> float:
        return self.target_hmd_height - self.current_hmd_height


def iterate_cursor_pairs(
    frame_count: int,
    config: AutoBoneConfig,
    rng: Optional[np.random.Generator] = None,
) -> Iterator[Tuple[int, int]]:
    """
    Cursor pairs for one pass over a recording.

    Pairs are `(i, i + d)` for every distance `d` between the configured
    minimum and maximum data distance, with `i` advancing by the cursor
    increment. A single-frame recording gives `(0, 0)`.
    """
    if frame_count <= 0:
        return
    if frame_count == 1:
        yield (0, 0)
        return

    pairs = []
    max_distance = min(config.max_data_distance, frame_count - 1)
    for distance in range(config.min_data_distance, max_distance + 1):
        for cursor in range(0, frame_count - distance, config.cursor_increment):
            pairs.append((cursor, cursor + distance))

    if not pairs:
        pairs.append((0, frame_count - 1))

    if config.randomize_frame_order:
        if rng is None:
            rng = np.random.default_rng()
        order = rng.permutation(len(pairs))
        pairs = [pairs[i] for i in order]

    yield from pairs
