"""
Bone Contribution

Diagnostic scoring of which bones move in step with the observed foot
slide. A bone whose tail direction correlates with the slide direction is
a likely cause of the slide, so its length is a candidate for adjustment.
"""

import numpy as np
from typing import Dict, Optional

from .step import AutoBoneStep, iterate_cursor_pairs
from ..config import AutoBoneConfig, SkeletonConfig
from ..poseframe.frames import PoseFrames
from ..tracking.skeleton import BoneType, HumanSkeleton, SkeletonConfigOffsets
from ..tracking.tracker import TrackerPosition
from ..utils.stats import StatsCalculator


# Displacements at or below this length (meters) count as no movement
MIN_SLIDE_DIST = 0.002

# Offsets with a distinct left and right bone
SYMM_CONFIGS = frozenset({
    SkeletonConfigOffsets.HIPS_WIDTH,
    SkeletonConfigOffsets.UPPER_LEG,
    SkeletonConfigOffsets.LOWER_LEG,
})

MID_BONES = (
    SkeletonConfigOffsets.HEAD,
    SkeletonConfigOffsets.NECK,
    SkeletonConfigOffsets.UPPER_CHEST,
    SkeletonConfigOffsets.CHEST,
    SkeletonConfigOffsets.WAIST,
    SkeletonConfigOffsets.HIP,
)
LEFT_BONES = (BoneType.LEFT_HIP, BoneType.LEFT_UPPER_LEG, BoneType.LEFT_LOWER_LEG)
RIGHT_BONES = (BoneType.RIGHT_HIP, BoneType.RIGHT_UPPER_LEG, BoneType.RIGHT_LOWER_LEG)


def _unit_or_none(vector: np.ndarray) -> Optional[np.ndarray]:
    length = float(np.linalg.norm(vector))
    return vector / length if length > MIN_SLIDE_DIST else None


def get_bone_local_tail(skeleton: HumanSkeleton, bone_type: BoneType) -> np.ndarray:
    """Tail of the bone relative to its head, after rotation."""
    bone = skeleton.get_bone(bone_type)
    return bone.tail_position - bone.position


def get_bone_local_tail_dir(
    skeleton1: HumanSkeleton,
    skeleton2: HumanSkeleton,
    bone_type: BoneType,
) -> Optional[np.ndarray]:
    """
    Unit direction the bone tail moved from skeleton 1 to skeleton 2.

    None when the movement is too small to have a direction.
    """
    return _unit_or_none(
        get_bone_local_tail(skeleton2, bone_type) - get_bone_local_tail(skeleton1, bone_type)
    )


def get_foot_slide(step: AutoBoneStep, position: TrackerPosition) -> np.ndarray:
    """Displacement of a computed foot between the two skeleton states."""
    return (
        step.skeleton2.get_computed_tracker(position).position
        - step.skeleton1.get_computed_tracker(position).position
    )


def get_slide_dot(
    skeleton1: HumanSkeleton,
    skeleton2: HumanSkeleton,
    offset: SkeletonConfigOffsets,
    slide_l: Optional[np.ndarray],
    slide_r: Optional[np.ndarray],
) -> float:
    """
    How strongly an offset's bone movement lines up with the foot slides.

    Missing slides or bone directions count as zero. The sum is always
    halved, even when only one side contributes.
    """
    slide_dot = 0.0
    bone_off_l = None

    if slide_l is not None:
        bone_off_l = get_bone_local_tail_dir(skeleton1, skeleton2, offset.affected_bones[0])
        if bone_off_l is not None:
            slide_dot += float(np.dot(slide_l, bone_off_l))

    if slide_r is not None:
        # Non-symmetric offsets affect a single bone shared by both sides
        if offset in SYMM_CONFIGS:
            bone_off_r = get_bone_local_tail_dir(skeleton1, skeleton2, offset.affected_bones[1])
        elif slide_l is not None:
            bone_off_r = bone_off_l
        else:
            bone_off_r = get_bone_local_tail_dir(skeleton1, skeleton2, offset.affected_bones[0])

        if bone_off_r is not None:
            slide_dot += float(np.dot(slide_r, bone_off_r))

    return slide_dot / 2.0


def compute_contributing_bones(
    frames: PoseFrames,
    skeleton_config: Optional[SkeletonConfig] = None,
    config: Optional[AutoBoneConfig] = None,
    rng: Optional[np.random.Generator] = None,
) -> Dict[BoneType, StatsCalculator]:
    """
    Correlate every bone with the foot slide over one pass of a recording.

    Mid bones are scored through `get_slide_dot` and keyed by their bone
    type; leg bones are scored against the slide of their own side.
    """
    base = config if config is not None else AutoBoneConfig()
    config = base.model_copy(update={"calc_init_error": False, "randomize_frame_order": True})

    step = AutoBoneStep(config, -1.0, frames, skeleton_config=skeleton_config)
    bone_map: Dict[BoneType, StatsCalculator] = {}

    for cursor1, cursor2 in iterate_cursor_pairs(step.max_frame_count, config, rng):
        step.set_cursors(cursor1, cursor2)

        slide_l = _unit_or_none(get_foot_slide(step, TrackerPosition.LEFT_FOOT))
        slide_r = _unit_or_none(get_foot_slide(step, TrackerPosition.RIGHT_FOOT))

        for offset in MID_BONES:
            stats = bone_map.setdefault(offset.affected_bones[0], StatsCalculator())
            stats.add_value(get_slide_dot(step.skeleton1, step.skeleton2, offset, slide_l, slide_r))

        for bones, slide in ((LEFT_BONES, slide_l), (RIGHT_BONES, slide_r)):
            for bone in bones:
                stats = bone_map.setdefault(bone, StatsCalculator())
                direction = get_bone_local_tail_dir(step.skeleton1, step.skeleton2, bone)
                if slide is not None and direction is not None:
                    stats.add_value(float(np.dot(slide, direction)))
                else:
                    stats.add_value(0.0)

    return bone_map
