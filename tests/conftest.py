"""
Shared test fixtures for AutoBone testing.

Provides synthetic recordings generated from a known skeleton, isolated
settings and a listener that records every event.
"""

import pytest
import numpy as np
import threading
from pathlib import Path
from typing import Dict, List, Sequence

from autobone.config import AutoBoneConfig, AutoBoneSettings, SkeletonConfig
from autobone.engine.handler import AutoBoneListener
from autobone.poseframe.frames import PoseFrame, PoseFrames, TrackerFrames
from autobone.tracking.quaternion import from_euler_yxz, to_rotation
from autobone.tracking.skeleton import HumanSkeleton
from autobone.tracking.tracker import Tracker, TrackerPosition


# ============================================================================
# Synthetic Recordings
# ============================================================================

# Standing HMD height 1.70 m (neck through lower leg)
TRUE_SKELETON = SkeletonConfig(
    neck=0.12,
    upper_chest=0.17,
    chest=0.17,
    waist=0.21,
    hip=0.05,
    upper_leg=0.45,
    lower_leg=0.53,
)

DEFAULT_POSITIONS = (
    TrackerPosition.HEAD,
    TrackerPosition.HIP,
    TrackerPosition.LEFT_UPPER_LEG,
    TrackerPosition.RIGHT_UPPER_LEG,
)

# Where the planted left foot stays for the whole recording
PLANTED_FOOT = np.array([-0.13, 0.0, 0.0])


def pose_angles(t: float) -> Dict[TrackerPosition, np.ndarray]:
    """Tracker rotations (w, x, y, z) for a gentle swaying motion at phase t."""
    return {
        TrackerPosition.HEAD: from_euler_yxz(0.3 * np.sin(t), 0.05 * np.sin(2 * t), 0.0),
        TrackerPosition.CHEST: from_euler_yxz(0.15 * np.sin(t), 0.08 * np.sin(2 * t), 0.0),
        TrackerPosition.HIP: from_euler_yxz(0.1 * np.sin(t), 0.1 * np.sin(2 * t), 0.0),
        TrackerPosition.LEFT_UPPER_LEG: from_euler_yxz(0.0, 0.2 * np.sin(t), 0.0),
        TrackerPosition.RIGHT_UPPER_LEG: from_euler_yxz(0.0, -0.3 * np.sin(t), 0.0),
        TrackerPosition.LEFT_LOWER_LEG: from_euler_yxz(0.0, 0.1 * np.sin(t), 0.0),
        TrackerPosition.RIGHT_LOWER_LEG: from_euler_yxz(0.0, -0.2 * np.sin(t), 0.0),
    }


def generate_recording(
    frame_count: int = 100,
    skeleton_config: SkeletonConfig = TRUE_SKELETON,
    positions: Sequence[TrackerPosition] = DEFAULT_POSITIONS,
    constant: bool = False,
) -> PoseFrames:
    """
    Record a skeleton moving with its left foot planted.

    The HMD position is chosen each frame so that the computed left foot
    of a skeleton with `skeleton_config` stays at `PLANTED_FOOT`.
    """
    trackers = [Tracker(position.name.lower(), position) for position in positions]
    skeleton = HumanSkeleton(trackers)
    skeleton.load_from_config(skeleton_config)
    skeleton.set_leg_tweaks_enabled(False)

    head = next((tr for tr in trackers if tr.tracker_position == TrackerPosition.HEAD), None)
    holders = [TrackerFrames(name=tracker.name) for tracker in trackers]

    for index in range(frame_count):
        t = 0.0 if constant else 2.0 * np.pi * index / max(frame_count, 1)
        angles = pose_angles(t)

        for tracker in trackers:
            tracker.set_rotation(to_rotation(angles[tracker.tracker_position]))

        head_position = None
        if head is not None:
            head.position = np.zeros(3)
            skeleton.update()
            left_foot = skeleton.get_computed_tracker(TrackerPosition.LEFT_FOOT).position
            head_position = PLANTED_FOOT - left_foot

        for tracker, holder in zip(trackers, holders):
            holder.add_frame(PoseFrame(
                tracker_position=tracker.tracker_position,
                rotation=angles[tracker.tracker_position],
                position=head_position if tracker is head else None,
            ))

    return PoseFrames(holders)


def make_live_trackers(positions: Sequence[TrackerPosition] = DEFAULT_POSITIONS) -> List[Tracker]:
    """Live trackers holding the first pose of `generate_recording`."""
    angles = pose_angles(0.0)
    trackers = []
    for position in positions:
        tracker = Tracker(position.name.lower(), position)
        tracker.set_rotation(to_rotation(angles[position]))
        if position == TrackerPosition.HEAD:
            tracker.position = np.array([0.0, 1.7, 0.0])
        trackers.append(tracker)
    return trackers


# ============================================================================
# Listener
# ============================================================================

class EventCollector(AutoBoneListener):
    """Records every AutoBone event for later inspection."""

    def __init__(self):
        self._lock = threading.Lock()
        self.statuses: List[dict] = []
        self.epochs = []
        self.recordings: List[PoseFrames] = []
        self.engine_ends: List[dict] = []

    def on_process_status(self, process_type, message, current, total, eta, completed, success):
        with self._lock:
            self.statuses.append({
                "process_type": process_type,
                "message": message,
                "current": current,
                "total": total,
                "eta": eta,
                "completed": completed,
                "success": success,
            })

    def on_epoch(self, epoch):
        with self._lock:
            self.epochs.append(epoch)

    def on_recording_end(self, frames):
        with self._lock:
            self.recordings.append(frames)

    def on_engine_end(self, offsets):
        with self._lock:
            self.engine_ends.append(offsets)

    def terminal(self, process_type=None) -> List[dict]:
        with self._lock:
            return [
                status for status in self.statuses
                if status["completed"] and (process_type is None or status["process_type"] == process_type)
            ]


# ============================================================================
# Fixtures
# ============================================================================

def make_settings(root: Path, **autobone_overrides) -> AutoBoneSettings:
    """Settings with every directory under `root`."""
    autobone = AutoBoneConfig(**{
        "num_epochs": 5,
        "print_every_num_epochs": 0,
        "random_seed": 1234,
        **autobone_overrides,
    })
    return AutoBoneSettings(
        autobone=autobone,
        config_dir=root,
        recordings_dir=root / "recordings",
        load_dir=root / "load",
        exports_dir=root / "exports",
        config_path=root / "config.yaml",
    )


@pytest.fixture
def settings(tmp_path):
    """Provide isolated settings in a temporary directory."""
    return make_settings(tmp_path)


@pytest.fixture
def recording():
    """Provide a 100-frame, 4-tracker recording of a 1.70 m skeleton."""
    return generate_recording(frame_count=100)


@pytest.fixture
def collector():
    """Provide an event-recording listener."""
    return EventCollector()
