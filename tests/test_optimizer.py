"""
AutoBone Optimizer Tests

Tests for the epoch loop, its error metric and the engine's bookkeeping.
"""

import pytest

from conftest import TRUE_SKELETON, generate_recording
from autobone.config import AutoBoneConfig, AutoBoneSettings
from autobone.engine.optimizer import (
    AutoBone,
    AdjustmentPolicy,
    DecayingAdjustmentPolicy,
    MIN_BONE_LENGTH,
)
from autobone.errors import EmptyRecordingError, OptimizationFailureError
from autobone.poseframe.frames import PoseFrame, PoseFrames, TrackerFrames
from autobone.poseframe.io import write_recording
from autobone.tracking.skeleton import HEIGHT_OFFSETS, SkeletonConfigOffsets
from autobone.tracking.tracker import TrackerPosition


def standing_height(offsets) -> float:
    return sum(offsets[offset] for offset in HEIGHT_OFFSETS)


class TestValidation:
    """Test recordings are validated before any work."""

    def test_no_trackers(self, settings):
        """Test a recording without trackers is rejected."""
        with pytest.raises(EmptyRecordingError, match="no trackers"):
            AutoBone(settings).process_frames(PoseFrames())

    def test_no_frames(self, settings):
        """Test a recording without frames is rejected."""
        frames = PoseFrames([TrackerFrames("head")])
        with pytest.raises(EmptyRecordingError, match="no frames"):
            AutoBone(settings).process_frames(frames)

    def test_unexpected_errors_are_wrapped(self, settings, recording):
        """Test internal failures surface as optimization failures."""

        class BrokenPolicy(DecayingAdjustmentPolicy):
            def initial_rate(self, config):
                raise ZeroDivisionError("broken")

        engine = AutoBone(settings, policy=BrokenPolicy())
        config = AutoBoneConfig(num_epochs=1, target_hmd_height=1.8)
        with pytest.raises(OptimizationFailureError):
            engine.process_frames(recording, config=config)


class TestConvergence:
    """Test the optimizer reaches the target height."""

    def test_constant_posture_converges(self, settings):
        """Test height alone drives the lengths to the target."""
        frames = generate_recording(frame_count=10, constant=True)
        config = AutoBoneConfig(
            num_epochs=3,
            target_hmd_height=1.70,
            scale_each_step=False,
            randomize_frame_order=False,
        )

        results = AutoBone(settings).process_frames(frames, config=config)

        assert results.target_height == pytest.approx(1.70)
        assert results.height_difference < 1e-3
        assert standing_height(results.config_values) == pytest.approx(1.70, abs=1e-3)

    def test_error_does_not_increase(self, settings):
        """Test a single cursor pair's error never grows without rescaling."""
        frames = generate_recording(frame_count=8)
        # Only the pair (0, 3)
        config = AutoBoneConfig(
            num_epochs=4,
            target_hmd_height=1.70,
            scale_each_step=False,
            randomize_frame_order=False,
            min_data_distance=3,
            max_data_distance=3,
            cursor_increment=10,
        )
        epochs = []

        AutoBone(settings).process_frames(frames, config=config, epoch_callback=epochs.append)

        errors = [epoch.error for epoch in epochs]
        assert len(errors) == 4
        for before, after in zip(errors, errors[1:]):
            assert after <= before + 1e-9

    def test_scaled_run_hits_target(self, settings, recording):
        """Test rescaling each step lands exactly on the target height."""
        config = AutoBoneConfig(num_epochs=3, target_hmd_height=1.70, random_seed=5)
        results = AutoBone(settings).process_frames(recording, config=config)

        assert results.height_difference < 0.01
        for value in results.config_values.values():
            assert value >= MIN_BONE_LENGTH


class TestEpochs:
    """Test epoch reporting and the adjust rate."""

    def test_one_epoch_per_iteration(self, settings, recording):
        """Test one epoch event per epoch with decaying rate."""
        config = AutoBoneConfig(num_epochs=3, initial_adjust_rate=1.0, adjust_rate_decay=0.5,
                                target_hmd_height=1.7)
        epochs = []
        AutoBone(settings).process_frames(recording, config=config, epoch_callback=epochs.append)

        assert [epoch.epoch for epoch in epochs] == [0, 1, 2]
        assert [epoch.adjust_rate for epoch in epochs] == pytest.approx([1.0, 0.5, 0.25])
        assert all(epoch.epoch_count == 3 for epoch in epochs)
        assert all(epoch.error_stats.count == 50 for epoch in epochs)

    def test_initial_error_epoch(self, settings, recording):
        """Test the initial error is measured without adjusting."""
        config = AutoBoneConfig(num_epochs=1, calc_init_error=True, target_hmd_height=1.7)
        epochs = []
        AutoBone(settings).process_frames(recording, config=config, epoch_callback=epochs.append)

        assert [epoch.epoch for epoch in epochs] == [-1, 0]
        assert epochs[0].adjust_rate == epochs[1].adjust_rate

    def test_custom_policy(self, settings, recording):
        """Test a policy with no step leaves the lengths alone."""

        class FrozenPolicy(AdjustmentPolicy):
            def initial_rate(self, config):
                return 0.0

            def next_rate(self, rate, config):
                return 0.0

            def step_size(self, rate, error, slide_dot):
                return 0.0

        config = AutoBoneConfig(num_epochs=2, scale_each_step=False, target_hmd_height=1.7)
        engine = AutoBone(settings, policy=FrozenPolicy())
        results = engine.process_frames(recording, config=config)

        assert all(abs(change) < 1e-12 for change in results.adjustments.values())


class TestTargetHeight:
    """Test the target height sources."""

    def test_configured_target(self, settings, recording):
        """Test a configured target wins."""
        engine = AutoBone(settings)
        config = AutoBoneConfig(num_epochs=0, target_hmd_height=1.9)
        assert engine.process_frames(recording, config=config).target_height == pytest.approx(1.9)

    def test_recorded_target(self, settings, recording):
        """Test the recorded HMD height is used when none is configured."""
        engine = AutoBone(settings)
        config = AutoBoneConfig(num_epochs=0)
        result = engine.process_frames(recording, config=config)
        assert result.target_height == pytest.approx(recording.get_max_height(TrackerPosition.HEAD))

    def test_skeleton_target(self, settings):
        """Test the skeleton height is used without a usable HMD height."""
        frames = PoseFrames([
            TrackerFrames("hip", [
                PoseFrame(tracker_position=TrackerPosition.HIP, rotation=[1, 0, 0, 0])
                for _ in range(4)
            ]),
        ])
        engine = AutoBone(settings)
        result = engine.process_frames(frames, config=AutoBoneConfig(num_epochs=0))
        assert result.target_height == pytest.approx(1.58)


class TestEngineState:
    """Test config handling and persistence helpers."""

    def test_saved_config_untouched(self, settings, recording):
        """Test processing does not change the saved skeleton config."""
        engine = AutoBone(settings)
        before = settings.skeleton.as_dict()
        engine.process_frames(recording, config=AutoBoneConfig(num_epochs=2, target_hmd_height=1.8))

        assert settings.skeleton.as_dict() == before
        assert standing_height(engine.offsets) == pytest.approx(1.8)

    def test_apply_and_save(self, settings, recording):
        """Test applying writes the lengths to the config file."""
        engine = AutoBone(settings)
        engine.process_frames(recording, config=AutoBoneConfig(num_epochs=1, target_hmd_height=1.8))
        engine.apply_and_save_config()

        loaded = AutoBoneSettings.load(settings.config_path)
        assert loaded.skeleton.upper_leg == pytest.approx(engine.offsets[SkeletonConfigOffsets.UPPER_LEG])

    def test_load_config_values(self, settings):
        """Test working lengths reset from a config."""
        engine = AutoBone(settings)
        engine.load_config_values(TRUE_SKELETON)
        assert engine.offsets[SkeletonConfigOffsets.NECK] == pytest.approx(0.12)

        engine.load_config_values()
        assert engine.offsets[SkeletonConfigOffsets.NECK] == pytest.approx(0.10)

    def test_lengths_string(self, settings):
        """Test lengths are listed in centimeters."""
        engine = AutoBone(settings)
        assert "upper_leg: 42.00" in engine.lengths_string

    def test_save_and_load_recordings(self, settings, recording):
        """Test recordings are saved to and loaded from their directories."""
        engine = AutoBone(settings)
        path = engine.save_recording(recording)
        assert path.parent == settings.recordings_dir
        assert path.exists()

        assert engine.load_recordings() == []
        write_recording(settings.load_dir / "walk.json", recording)
        loaded = engine.load_recordings()
        assert [name for name, _ in loaded] == ["walk"]
