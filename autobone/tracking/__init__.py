"""Live trackers and the forward-kinematics skeleton they drive."""

from .tracker import Tracker, TrackerPosition
from .skeleton import (
    Bone,
    BoneType,
    ComputedTracker,
    HumanSkeleton,
    SkeletonConfigOffsets,
    HEIGHT_OFFSETS,
)

__all__ = [
    "Tracker",
    "TrackerPosition",
    "Bone",
    "BoneType",
    "ComputedTracker",
    "HumanSkeleton",
    "SkeletonConfigOffsets",
    "HEIGHT_OFFSETS",
]
