"""
AutoBone Optimizer

Epoch-driven, gradient-free optimizer over the skeleton's bone lengths.

For every cursor pair of an epoch the two playback skeletons are posed at
two different frames and the error is measured as

    slide_error_factor * mean foot slide + height_error_factor * |height offset|

Each bone length is then nudged by a step proportional to the error (and
to how strongly that bone lines up with the slide), keeping a change only
when it lowers the error. The step size decays every epoch.
"""

import numpy as np
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from .contribution import get_foot_slide, get_slide_dot, MIN_SLIDE_DIST
from .step import AutoBoneStep, Epoch, iterate_cursor_pairs
from ..config import AutoBoneConfig, AutoBoneSettings, SkeletonConfig
from ..errors import AutoBoneError, EmptyRecordingError, OptimizationFailureError
from ..poseframe.frames import PoseFrames
from ..poseframe.io import RECORDING_SUFFIX, load_recordings, write_recording
from ..tracking.skeleton import HumanSkeleton, SkeletonConfigOffsets
from ..tracking.tracker import TrackerPosition
from ..utils.logging import autobone_log
from ..utils.stats import StatsCalculator


# Lowest recorded HMD height (meters) trusted as a standing height
MIN_HEIGHT = 0.4

# Shortest length a bone may be adjusted to (meters)
MIN_BONE_LENGTH = 0.01

# Errors at or below this are considered solved
MIN_ERROR = 1e-4


@dataclass
class AutoBoneResults:
    """Outcome of processing one recording."""
    final_height: float
    target_height: float
    config_values: Dict[SkeletonConfigOffsets, float]
    adjustments: Dict[SkeletonConfigOffsets, float] = field(default_factory=dict)

    @property
    def height_difference(self) -> float:
        return abs(self.target_height - self.final_height)


class AdjustmentPolicy:
    """Step-size schedule used by the optimizer."""

    def initial_rate(self, config: AutoBoneConfig) -> float:
        raise NotImplementedError

    def next_rate(self, rate: float, config: AutoBoneConfig) -> float:
        raise NotImplementedError

    def step_size(self, rate: float, error: float, slide_dot: Optional[float]) -> float:
        raise NotImplementedError


class DecayingAdjustmentPolicy(AdjustmentPolicy):
    """
    Geometric decay of the adjust rate.

    The step is `rate * error * |slide_dot|`; with no observed slide the
    weight is 1 so the height error alone still moves the lengths.
    """

    def initial_rate(self, config: AutoBoneConfig) -> float:
        return config.initial_adjust_rate

    def next_rate(self, rate: float, config: AutoBoneConfig) -> float:
        return rate * config.adjust_rate_decay

    def step_size(self, rate: float, error: float, slide_dot: Optional[float]) -> float:
        weight = 1.0 if slide_dot is None else abs(slide_dot)
        return rate * error * weight


def _slide_unit(slide: np.ndarray) -> Optional[np.ndarray]:
    length = float(np.linalg.norm(slide))
    return slide / length if length > MIN_SLIDE_DIST else None


class AutoBone:
    """
    Bone length optimizer.

    Works on a private copy of the skeleton config: results only reach
    the saved settings through `apply_and_save_config()`.

    Args:
        settings: Settings holding the optimizer config, the skeleton
            config and the recording directories
        policy: Step-size schedule (defaults to `DecayingAdjustmentPolicy`)
    """

    def __init__(
        self,
        settings: Optional[AutoBoneSettings] = None,
        policy: Optional[AdjustmentPolicy] = None,
    ):
        self.settings = settings if settings is not None else AutoBoneSettings()
        self.policy = policy if policy is not None else DecayingAdjustmentPolicy()

        self._offsets: Dict[SkeletonConfigOffsets, float] = {}
        self.load_config_values()

    @property
    def global_config(self) -> AutoBoneConfig:
        return self.settings.autobone

    @property
    def offsets(self) -> Dict[SkeletonConfigOffsets, float]:
        """Current working bone lengths (meters)."""
        return dict(self._offsets)

    def load_config_values(self, skeleton_config: Optional[SkeletonConfig] = None) -> None:
        """Reset the working lengths from a skeleton config (the saved one by default)."""
        if skeleton_config is None:
            skeleton_config = self.settings.skeleton
        self._offsets = {
            offset: float(skeleton_config.get(offset.config_key))
            for offset in SkeletonConfigOffsets
        }

    def _working_config(self) -> SkeletonConfig:
        return SkeletonConfig(**{offset.config_key: value for offset, value in self._offsets.items()})

    @property
    def lengths_string(self) -> str:
        """Working lengths in centimeters, for logging."""
        return ", ".join(
            f"{offset.config_key}: {value * 100.0:.2f}" for offset, value in self._offsets.items()
        )

    # ------------------------------------------------------------------
    # Recordings
    # ------------------------------------------------------------------

    def save_recording(self, frames: PoseFrames, name: Optional[str] = None) -> Path:
        """
        Save a recording into the recordings directory.

        Without a name a timestamped file name is used.
        """
        if name is None:
            name = f"ABRecording_{datetime.now().strftime('%Y%m%d_%H%M%S_%f')}{RECORDING_SUFFIX}"
        path = self.settings.recordings_dir / name
        write_recording(path, frames)
        autobone_log.info(f"Saved recording to \"{path}\"")
        return path

    def load_recordings(self) -> List[Tuple[str, PoseFrames]]:
        """Load every recording queued for processing in the load directory."""
        recordings = load_recordings(self.settings.load_dir)
        autobone_log.info(f"Loaded {len(recordings)} recording(s) from \"{self.settings.load_dir}\"")
        return recordings

    def apply_and_save_config(self) -> None:
        """Write the working lengths into the settings and save them."""
        for offset, value in self._offsets.items():
            self.settings.skeleton.set(offset.config_key, value)
        self.settings.save()
        autobone_log.info(f"Applied and saved lengths: {self.lengths_string}")

    # ------------------------------------------------------------------
    # Optimization
    # ------------------------------------------------------------------

    def get_target_height(
        self,
        frames: PoseFrames,
        config: AutoBoneConfig,
        skeleton: HumanSkeleton,
    ) -> float:
        """Target HMD height: configured, else recorded, else the skeleton's own."""
        if config.target_hmd_height > 0.0:
            return config.target_hmd_height

        recorded = frames.get_max_height(TrackerPosition.HEAD)
        if recorded > MIN_HEIGHT:
            autobone_log.info(f"Using recorded HMD height: {recorded:.4f} m")
            return recorded

        height = skeleton.get_user_height()
        autobone_log.warn(f"No usable HMD height in recording, using skeleton height {height:.4f} m")
        return height

    def compute_error(self, step: AutoBoneStep, config: AutoBoneConfig) -> float:
        """Error of the step's current skeleton pair."""
        slide_l = float(np.linalg.norm(get_foot_slide(step, TrackerPosition.LEFT_FOOT)))
        slide_r = float(np.linalg.norm(get_foot_slide(step, TrackerPosition.RIGHT_FOOT)))
        slide = (slide_l + slide_r) / 2.0

        return config.slide_error_factor * slide + config.height_error_factor * abs(step.height_offset)

    def process_frames(
        self,
        frames: PoseFrames,
        config: Optional[AutoBoneConfig] = None,
        skeleton_config: Optional[SkeletonConfig] = None,
        epoch_callback: Optional[Callable[[Epoch], None]] = None,
    ) -> AutoBoneResults:
        """
        Optimize bone lengths against one recording.

        Args:
            frames: Recording to optimize against
            config: Optimizer settings (the global config by default)
            skeleton_config: Starting lengths (the saved config by default)
            epoch_callback: Called once per epoch on this thread

        Raises:
            EmptyRecordingError: The recording has no trackers or no frames
            OptimizationFailureError: The optimizer failed
        """
        if not frames.frame_holders:
            raise EmptyRecordingError("Recording has no trackers.")
        if frames.max_frame_count == 0:
            raise EmptyRecordingError("Recording has no frames.")

        if config is None:
            config = self.global_config
        self.load_config_values(skeleton_config)

        try:
            return self._optimize(frames, config, epoch_callback)
        except AutoBoneError:
            raise
        except Exception as e:
            raise OptimizationFailureError(f"Optimization failed: {e}") from e

    def _optimize(
        self,
        frames: PoseFrames,
        config: AutoBoneConfig,
        epoch_callback: Optional[Callable[[Epoch], None]],
    ) -> AutoBoneResults:
        initial = dict(self._offsets)
        step = AutoBoneStep(
            config,
            target_hmd_height=-1.0,
            frames=frames,
            epoch_callback=epoch_callback,
            skeleton_config=self._working_config(),
        )
        step.target_hmd_height = self.get_target_height(frames, config, step.skeleton1)

        if config.scale_each_step:
            step.scale_to_height(step.target_hmd_height)

        rng = np.random.default_rng(config.random_seed)
        rate = self.policy.initial_rate(config)
        first_epoch = -1 if config.calc_init_error else 0

        autobone_log.info(
            f"Processing {step.max_frame_count} frames from {len(frames.frame_holders)} trackers, "
            f"target height {step.target_hmd_height:.4f} m"
        )

        for epoch in range(first_epoch, config.num_epochs):
            step.cur_epoch = epoch
            step.cur_adjust_rate = rate
            step.error_stats = StatsCalculator()

            for cursor1, cursor2 in iterate_cursor_pairs(step.max_frame_count, config, rng):
                step.set_cursors(cursor1, cursor2)
                self._adjust(step, config, adjust=epoch >= 0)

            result = Epoch(
                epoch=epoch,
                epoch_count=config.num_epochs,
                adjust_rate=rate,
                error_stats=step.error_stats,
                config_values=step.skeleton1.offsets,
            )

            if epoch >= 0:
                rate = self.policy.next_rate(rate, config)

            if epoch < 0 or (
                config.print_every_num_epochs > 0 and epoch % config.print_every_num_epochs == 0
            ):
                autobone_log.info(
                    f"{result}, SD {step.error_stats.standard_deviation:.6f}"
                )

            if step.epoch_callback is not None:
                step.epoch_callback(result)

        self._offsets = step.skeleton1.offsets
        final_height = step.current_hmd_height

        autobone_log.info(
            f"Target height: {step.target_hmd_height:.4f} m, final height: {final_height:.4f} m"
        )

        return AutoBoneResults(
            final_height=final_height,
            target_height=step.target_hmd_height,
            config_values=dict(self._offsets),
            adjustments={
                offset: self._offsets[offset] - initial[offset] for offset in SkeletonConfigOffsets
            },
        )

    def _adjust(self, step: AutoBoneStep, config: AutoBoneConfig, adjust: bool) -> None:
        error = self.compute_error(step, config)
        step.error_stats.add_value(error)

        if not adjust or error <= MIN_ERROR:
            return

        slide_l = _slide_unit(get_foot_slide(step, TrackerPosition.LEFT_FOOT))
        slide_r = _slide_unit(get_foot_slide(step, TrackerPosition.RIGHT_FOOT))
        has_slide = slide_l is not None or slide_r is not None

        for offset in SkeletonConfigOffsets:
            if error <= MIN_ERROR:
                break

            slide_dot = (
                get_slide_dot(step.skeleton1, step.skeleton2, offset, slide_l, slide_r)
                if has_slide else None
            )
            magnitude = self.policy.step_size(step.cur_adjust_rate, error, slide_dot)
            if magnitude <= 0.0:
                continue

            if slide_dot:
                direction = float(np.sign(slide_dot))
            else:
                # Grow when the skeleton is too short
                direction = 1.0 if step.height_offset >= 0.0 else -1.0

            original = step.skeleton1.get_offset(offset)
            error = self._try_adjust(step, config, offset, original, direction * magnitude, error)

        if config.scale_each_step:
            step.scale_to_height(step.target_hmd_height)
            step.update_skeletons()

    def _try_adjust(
        self,
        step: AutoBoneStep,
        config: AutoBoneConfig,
        offset: SkeletonConfigOffsets,
        original: float,
        delta: float,
        error: float,
    ) -> float:
        """Try `original + delta`, then `original - delta`; keep the first that helps."""
        for candidate in (original + delta, original - delta):
            if candidate < MIN_BONE_LENGTH:
                continue

            step.set_offset(offset, candidate)
            step.update_skeletons()
            new_error = self.compute_error(step, config)
            if new_error < error:
                return new_error

        step.set_offset(offset, original)
        step.update_skeletons()
        return error
