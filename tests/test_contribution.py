"""
Bone Contribution Tests

Tests for slide/bone direction correlation.
"""

import pytest
import numpy as np

from conftest import generate_recording
from autobone.engine.contribution import (
    LEFT_BONES,
    MID_BONES,
    MIN_SLIDE_DIST,
    RIGHT_BONES,
    SYMM_CONFIGS,
    compute_contributing_bones,
    get_bone_local_tail,
    get_bone_local_tail_dir,
    get_slide_dot,
)
from autobone.tracking.skeleton import Bone, BoneType, SkeletonConfigOffsets
from autobone.tracking.quaternion import identity_rotation


class StubSkeleton:
    """Skeleton exposing fixed bone tails (relative to a zero head)."""

    def __init__(self, tails=None):
        self.tails = {bone_type: np.array([0.0, -0.1, 0.0]) for bone_type in BoneType}
        if tails:
            self.tails.update({k: np.asarray(v, dtype=float) for k, v in tails.items()})

    def get_bone(self, bone_type):
        return Bone(bone_type, np.zeros(3), self.tails[bone_type], identity_rotation())


X = np.array([1.0, 0.0, 0.0])


class TestBoneDirections:
    """Test bone tail helpers."""

    def test_local_tail(self):
        """Test the local tail is tail minus head."""
        skeleton = StubSkeleton({BoneType.WAIST: [0.0, -0.2, 0.0]})
        assert np.allclose(get_bone_local_tail(skeleton, BoneType.WAIST), [0.0, -0.2, 0.0])

    def test_tail_dir_is_unit(self):
        """Test the movement direction is normalized."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.WAIST: [0.05, -0.1, 0.0]})

        direction = get_bone_local_tail_dir(s1, s2, BoneType.WAIST)
        assert np.allclose(direction, X)

    def test_tiny_movement_has_no_direction(self):
        """Test movement at or below the slide threshold is ignored."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.WAIST: [MIN_SLIDE_DIST / 2, -0.1, 0.0]})

        assert get_bone_local_tail_dir(s1, s2, BoneType.WAIST) is None


class TestSlideDot:
    """Test slide dot halving and side selection."""

    def test_one_side_is_halved(self):
        """Test a single aligned side scores one half."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.WAIST: [0.05, -0.1, 0.0]})

        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.WAIST, X, None) == pytest.approx(0.5)
        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.WAIST, None, X) == pytest.approx(0.5)

    def test_both_sides(self):
        """Test two aligned sides score one."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.WAIST: [0.05, -0.1, 0.0]})

        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.WAIST, X, X) == pytest.approx(1.0)

    def test_no_slides(self):
        """Test missing slides score zero."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.WAIST: [0.05, -0.1, 0.0]})

        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.WAIST, None, None) == 0.0

    def test_symmetric_uses_each_side(self):
        """Test symmetric offsets pair each slide with its own bone."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({
            BoneType.LEFT_UPPER_LEG: [0.05, -0.1, 0.0],
            BoneType.RIGHT_UPPER_LEG: [-0.05, -0.1, 0.0],
        })

        # Left moves +x, right moves -x
        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.UPPER_LEG, X, -X) == pytest.approx(1.0)
        assert get_slide_dot(s1, s2, SkeletonConfigOffsets.UPPER_LEG, X, X) == pytest.approx(0.0)

    def test_mirrored_skeletons_symmetry(self):
        """Test swapping the skeletons flips the sign."""
        s1 = StubSkeleton()
        s2 = StubSkeleton({BoneType.HIP: [0.0, -0.1, 0.05]})
        slide = np.array([0.0, 0.0, 1.0])

        forward = get_slide_dot(s1, s2, SkeletonConfigOffsets.HIP, slide, slide)
        backward = get_slide_dot(s2, s1, SkeletonConfigOffsets.HIP, slide, slide)
        assert forward == pytest.approx(-backward)


class TestBoneGroups:
    """Test the bone groups match the offsets they stand for."""

    def test_mid_bones_single_bone(self):
        """Test mid offsets each affect one bone."""
        for offset in MID_BONES:
            assert offset not in SYMM_CONFIGS
            assert len(offset.affected_bones) == 1

    def test_symmetric_configs_two_bones(self):
        """Test symmetric offsets each affect a left and right bone."""
        for offset in SYMM_CONFIGS:
            assert offset.affected_bones[0] in LEFT_BONES
            assert offset.affected_bones[1] in RIGHT_BONES


class TestComputeContributingBones:
    """Test the full contribution pass."""

    def test_every_bone_scored(self):
        """Test every mid and leg bone gets statistics."""
        frames = generate_recording(frame_count=30)
        contributions = compute_contributing_bones(frames, rng=np.random.default_rng(0))

        expected = {offset.affected_bones[0] for offset in MID_BONES} | set(LEFT_BONES) | set(RIGHT_BONES)
        assert set(contributions) == expected
        for stats in contributions.values():
            assert stats.count > 0
            assert -1.0 <= stats.mean <= 1.0
