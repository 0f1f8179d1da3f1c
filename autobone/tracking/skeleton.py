"""
Human Skeleton (Forward Kinematics)

A minimal lower-body skeleton driven from the HMD down. Each bone takes
its rotation from the nearest tracker that has one and is laid out along
its local down axis (Y up), so bone tails, and therefore the computed
foot positions, depend directly on the configured bone lengths.

Bone chain:
    HEAD -> NECK -> UPPER_CHEST -> CHEST -> WAIST -> HIP
    HIP -> {LEFT,RIGHT}_HIP -> {LEFT,RIGHT}_UPPER_LEG -> {LEFT,RIGHT}_LOWER_LEG
"""

import numpy as np
from dataclasses import dataclass
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple
from scipy.spatial.transform import Rotation

from .tracker import Tracker, TrackerPosition


class BoneType(Enum):
    HEAD = "head"
    NECK = "neck"
    UPPER_CHEST = "upper_chest"
    CHEST = "chest"
    WAIST = "waist"
    HIP = "hip"
    LEFT_HIP = "left_hip"
    RIGHT_HIP = "right_hip"
    LEFT_UPPER_LEG = "left_upper_leg"
    RIGHT_UPPER_LEG = "right_upper_leg"
    LEFT_LOWER_LEG = "left_lower_leg"
    RIGHT_LOWER_LEG = "right_lower_leg"


class SkeletonConfigOffsets(Enum):
    """
    Adjustable bone lengths.

    Value is (config key, default length in meters, affected bone types).
    Symmetric offsets list the left bone first, then the right one.
    """
    HEAD = ("head", 0.10, (BoneType.HEAD,))
    NECK = ("neck", 0.10, (BoneType.NECK,))
    UPPER_CHEST = ("upper_chest", 0.16, (BoneType.UPPER_CHEST,))
    CHEST = ("chest", 0.16, (BoneType.CHEST,))
    WAIST = ("waist", 0.20, (BoneType.WAIST,))
    HIP = ("hip", 0.04, (BoneType.HIP,))
    HIPS_WIDTH = ("hips_width", 0.26, (BoneType.LEFT_HIP, BoneType.RIGHT_HIP))
    UPPER_LEG = ("upper_leg", 0.42, (BoneType.LEFT_UPPER_LEG, BoneType.RIGHT_UPPER_LEG))
    LOWER_LEG = ("lower_leg", 0.50, (BoneType.LEFT_LOWER_LEG, BoneType.RIGHT_LOWER_LEG))

    @property
    def config_key(self) -> str:
        return self.value[0]

    @property
    def default(self) -> float:
        return self.value[1]

    @property
    def affected_bones(self) -> Tuple[BoneType, ...]:
        return self.value[2]


# Offsets stacked vertically between the HMD and the floor when standing
HEIGHT_OFFSETS = (
    SkeletonConfigOffsets.NECK,
    SkeletonConfigOffsets.UPPER_CHEST,
    SkeletonConfigOffsets.CHEST,
    SkeletonConfigOffsets.WAIST,
    SkeletonConfigOffsets.HIP,
    SkeletonConfigOffsets.UPPER_LEG,
    SkeletonConfigOffsets.LOWER_LEG,
)

DOWN = np.array([0.0, -1.0, 0.0])


@dataclass
class Bone:
    """World-space pose of one bone after the last update."""
    bone_type: BoneType
    position: np.ndarray       # (3,) head of the bone
    tail_position: np.ndarray  # (3,) tail of the bone
    rotation: Rotation


@dataclass
class ComputedTracker:
    """A virtual tracker derived from the skeleton pose."""
    tracker_position: TrackerPosition
    position: np.ndarray
    rotation: Rotation


class HumanSkeleton:
    """
    Forward-kinematics skeleton over a set of live trackers.

    Offsets only take effect on the next `update()`.
    """

    def __init__(self, trackers: Iterable[Tracker]):
        self.trackers: List[Tracker] = list(trackers)
        self._offsets: Dict[SkeletonConfigOffsets, float] = {
            offset: offset.default for offset in SkeletonConfigOffsets
        }
        self._bones: Dict[BoneType, Bone] = {}
        self._computed: Dict[TrackerPosition, ComputedTracker] = {}

        # Leg tweaks keep the computed feet above the floor plane
        self.leg_tweaks_enabled = True
        self.floor_height = 0.0

        self.update()

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def load_from_config(self, config) -> None:
        """Load all offsets from a `SkeletonConfig`."""
        for offset in SkeletonConfigOffsets:
            self._offsets[offset] = float(getattr(config, offset.config_key))
        self.update()

    def set_offset(self, offset: SkeletonConfigOffsets, value: float) -> None:
        self._offsets[offset] = float(value)

    def get_offset(self, offset: SkeletonConfigOffsets) -> float:
        return self._offsets[offset]

    def set_offsets(self, offsets: Dict[SkeletonConfigOffsets, float]) -> None:
        for offset, value in offsets.items():
            self.set_offset(offset, value)

    @property
    def offsets(self) -> Dict[SkeletonConfigOffsets, float]:
        return dict(self._offsets)

    def set_leg_tweaks_enabled(self, enabled: bool) -> None:
        self.leg_tweaks_enabled = enabled

    def get_user_height(self) -> float:
        """Standing HMD height implied by the current offsets."""
        return float(sum(self._offsets[offset] for offset in HEIGHT_OFFSETS))

    def scale_to_height(self, target_height: float) -> None:
        """Scale the height-bearing offsets so the standing height matches."""
        current = self.get_user_height()
        if current <= 0.0 or target_height <= 0.0:
            return
        factor = target_height / current
        for offset in HEIGHT_OFFSETS:
            self._offsets[offset] *= factor

    # ------------------------------------------------------------------
    # Pose
    # ------------------------------------------------------------------

    def _find_tracker(self, position: TrackerPosition) -> Optional[Tracker]:
        for tracker in self.trackers:
            if tracker.tracker_position == position:
                return tracker
        return None

    def _tracker_rotation(self, *positions: TrackerPosition, default: Rotation) -> Rotation:
        """Rotation of the first listed placement that has one, else `default`."""
        for position in positions:
            tracker = self._find_tracker(position)
            if tracker is not None and tracker.has_rotation:
                return tracker.get_rotation()
        return default

    def _add_bone(
        self,
        bone_type: BoneType,
        start: np.ndarray,
        rotation: Rotation,
        local_offset: np.ndarray,
    ) -> np.ndarray:
        tail = start + rotation.apply(local_offset)
        self._bones[bone_type] = Bone(bone_type, start.copy(), tail, rotation)
        return tail

    def update(self) -> None:
        """Recompute every bone and computed tracker from the trackers."""
        offsets = self._offsets

        head = self._find_tracker(TrackerPosition.HEAD)
        if head is not None and head.has_position:
            root = head.position.copy()
        else:
            root = np.array([0.0, self.get_user_height(), 0.0])

        head_rot = self._tracker_rotation(TrackerPosition.HEAD, default=Rotation.identity())
        chest_rot = self._tracker_rotation(TrackerPosition.CHEST, TrackerPosition.HIP, default=head_rot)
        hip_rot = self._tracker_rotation(TrackerPosition.HIP, TrackerPosition.CHEST, default=head_rot)

        # Spine
        pos = self._add_bone(
            BoneType.HEAD, root, head_rot,
            np.array([0.0, 0.0, offsets[SkeletonConfigOffsets.HEAD]]),
        )
        pos = self._add_bone(BoneType.NECK, pos, head_rot, DOWN * offsets[SkeletonConfigOffsets.NECK])
        pos = self._add_bone(
            BoneType.UPPER_CHEST, pos, chest_rot, DOWN * offsets[SkeletonConfigOffsets.UPPER_CHEST]
        )
        chest_tracker_pos = pos
        pos = self._add_bone(BoneType.CHEST, pos, chest_rot, DOWN * offsets[SkeletonConfigOffsets.CHEST])
        pos = self._add_bone(BoneType.WAIST, pos, hip_rot, DOWN * offsets[SkeletonConfigOffsets.WAIST])
        pelvis = self._add_bone(BoneType.HIP, pos, hip_rot, DOWN * offsets[SkeletonConfigOffsets.HIP])

        self._computed = {
            TrackerPosition.HEAD: ComputedTracker(TrackerPosition.HEAD, root.copy(), head_rot),
            TrackerPosition.CHEST: ComputedTracker(TrackerPosition.CHEST, chest_tracker_pos, chest_rot),
            TrackerPosition.HIP: ComputedTracker(TrackerPosition.HIP, pelvis.copy(), hip_rot),
        }

        # Legs
        half_width = offsets[SkeletonConfigOffsets.HIPS_WIDTH] / 2.0
        sides = (
            (-1.0, BoneType.LEFT_HIP, BoneType.LEFT_UPPER_LEG, BoneType.LEFT_LOWER_LEG,
             TrackerPosition.LEFT_UPPER_LEG, TrackerPosition.LEFT_LOWER_LEG, TrackerPosition.LEFT_FOOT),
            (1.0, BoneType.RIGHT_HIP, BoneType.RIGHT_UPPER_LEG, BoneType.RIGHT_LOWER_LEG,
             TrackerPosition.RIGHT_UPPER_LEG, TrackerPosition.RIGHT_LOWER_LEG, TrackerPosition.RIGHT_FOOT),
        )
        for sign, hip_bone, upper_bone, lower_bone, upper_tp, lower_tp, foot_tp in sides:
            hip_joint = self._add_bone(
                hip_bone, pelvis, hip_rot, np.array([sign * half_width, 0.0, 0.0])
            )
            upper_rot = self._tracker_rotation(upper_tp, default=hip_rot)
            knee = self._add_bone(
                upper_bone, hip_joint, upper_rot, DOWN * offsets[SkeletonConfigOffsets.UPPER_LEG]
            )
            lower_rot = self._tracker_rotation(lower_tp, foot_tp, default=upper_rot)
            foot = self._add_bone(
                lower_bone, knee, lower_rot, DOWN * offsets[SkeletonConfigOffsets.LOWER_LEG]
            )

            if self.leg_tweaks_enabled and foot[1] < self.floor_height:
                foot = foot.copy()
                foot[1] = self.floor_height

            self._computed[upper_tp] = ComputedTracker(upper_tp, knee.copy(), upper_rot)
            self._computed[foot_tp] = ComputedTracker(foot_tp, foot.copy(), lower_rot)

    def get_bone(self, bone_type: BoneType) -> Bone:
        return self._bones[bone_type]

    def get_computed_tracker(self, position: TrackerPosition) -> ComputedTracker:
        try:
            return self._computed[position]
        except KeyError:
            raise ValueError(f"No computed tracker for {position.designation}") from None
