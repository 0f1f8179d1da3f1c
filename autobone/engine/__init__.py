"""AutoBone engine: bone length optimization and its background operations."""

from .step import AutoBoneStep, Epoch, TrackerAdjustments, TrackerCalibration, iterate_cursor_pairs
from .contribution import (
    get_bone_local_tail,
    get_bone_local_tail_dir,
    get_slide_dot,
    compute_contributing_bones,
    MIN_SLIDE_DIST,
    SYMM_CONFIGS,
)
from .optimizer import (
    AutoBone,
    AutoBoneResults,
    AdjustmentPolicy,
    DecayingAdjustmentPolicy,
    MIN_HEIGHT,
)
from .single_flight import SingleFlight, TaskState
from .handler import AutoBoneHandler, AutoBoneListener, AutoBoneProcessType

__all__ = [
    "AutoBoneStep",
    "Epoch",
    "TrackerAdjustments",
    "TrackerCalibration",
    "iterate_cursor_pairs",
    "get_bone_local_tail",
    "get_bone_local_tail_dir",
    "get_slide_dot",
    "compute_contributing_bones",
    "MIN_SLIDE_DIST",
    "SYMM_CONFIGS",
    "AutoBone",
    "AutoBoneResults",
    "AdjustmentPolicy",
    "DecayingAdjustmentPolicy",
    "MIN_HEIGHT",
    "SingleFlight",
    "TaskState",
    "AutoBoneHandler",
    "AutoBoneListener",
    "AutoBoneProcessType",
]
