"""
AutoBone Process Handler

Owns the three long-running AutoBone operations:

- RECORD: capture frames from the live trackers and save them
- SAVE: save the most recent capture permanently
- PROCESS: run the optimizer over saved recordings (or the last capture)

Each operation runs on its own worker thread and never runs twice at the
same time. Progress and outcome are reported to listeners as status
events; errors never propagate to the caller.
"""

import threading
from concurrent.futures import CancelledError
from enum import Enum
from typing import Dict, List, Optional

import numpy as np

from .contribution import compute_contributing_bones
from .optimizer import AutoBone, AutoBoneResults
from .single_flight import SingleFlight
from .step import Epoch
from ..config import AutoBoneSettings, SkeletonConfig
from ..errors import EmptyRecordingError
from ..export import CSVWriter, PoseFrameStreamer
from ..poseframe.frames import PoseFrames, TrackerFrameData, TrackerFrames
from ..poseframe.recorder import PoseRecorder, RecordingProgress
from ..tracking.skeleton import SkeletonConfigOffsets
from ..utils.logging import autobone_log, export_log
from ..utils.stats import StatsCalculator


LAST_RECORDING_NAME = "LastABRecording.json"
LIVE_RECORDING_NAME = "<Recording>"


class AutoBoneProcessType(Enum):
    RECORD = "record"
    SAVE = "save"
    PROCESS = "process"


class AutoBoneListener:
    """Receives AutoBone events. Override the callbacks you need."""

    def on_process_status(
        self,
        process_type: AutoBoneProcessType,
        message: Optional[str],
        current: int,
        total: int,
        eta: float,
        completed: bool,
        success: bool,
    ) -> None:
        pass

    def on_epoch(self, epoch: Epoch) -> None:
        pass

    def on_recording_end(self, frames: PoseFrames) -> None:
        pass

    def on_engine_end(self, offsets: Dict[SkeletonConfigOffsets, float]) -> None:
        pass


def _file_safe(name: str) -> str:
    safe = "".join(c if c.isalnum() or c in "-_." else "_" for c in name).strip("_")
    return safe or "recording"


class AutoBoneHandler:
    """
    Runs AutoBone operations in the background and reports on them.

    Args:
        recorder: Source of live recordings
        settings: AutoBone settings (loaded defaults if None)
        autobone: Optimizer to use (built from `settings` if None)
    """

    def __init__(
        self,
        recorder: PoseRecorder,
        settings: Optional[AutoBoneSettings] = None,
        autobone: Optional[AutoBone] = None,
    ):
        self.recorder = recorder
        if autobone is not None:
            self.autobone = autobone
            self.settings = autobone.settings
        else:
            self.settings = settings if settings is not None else AutoBoneSettings()
            self.autobone = AutoBone(self.settings)

        self._flights = {kind: SingleFlight(kind.value) for kind in AutoBoneProcessType}

        self._listeners_lock = threading.Lock()
        self._listeners: List[AutoBoneListener] = []

    # ------------------------------------------------------------------
    # Listeners
    # ------------------------------------------------------------------

    def add_listener(self, listener: AutoBoneListener) -> None:
        with self._listeners_lock:
            self._listeners.append(listener)

    def remove_listener(self, listener: AutoBoneListener) -> None:
        with self._listeners_lock:
            self._listeners = [l for l in self._listeners if l is not listener]

    def _snapshot_listeners(self) -> List[AutoBoneListener]:
        with self._listeners_lock:
            return list(self._listeners)

    def _announce_status(
        self,
        process_type: AutoBoneProcessType,
        message: Optional[str] = None,
        current: int = -1,
        total: int = -1,
        eta: float = -1.0,
        completed: bool = False,
        success: bool = True,
    ) -> None:
        for listener in self._snapshot_listeners():
            listener.on_process_status(process_type, message, current, total, eta, completed, success)

    def _notify_epoch(self, epoch: Epoch) -> None:
        for listener in self._snapshot_listeners():
            listener.on_epoch(epoch)

    # ------------------------------------------------------------------
    # Operation control
    # ------------------------------------------------------------------

    def start_process_by_type(self, process_type: Optional[AutoBoneProcessType]) -> bool:
        """
        Start an operation by kind.

        Returns:
            True if a worker was started, False for an unknown kind or if
            that operation is already running
        """
        if process_type == AutoBoneProcessType.RECORD:
            return self.start_recording()
        if process_type == AutoBoneProcessType.SAVE:
            return self.save_recording()
        if process_type == AutoBoneProcessType.PROCESS:
            return self.process_recording()
        return False

    def start_recording(self) -> bool:
        return self._flights[AutoBoneProcessType.RECORD].start(self._record_worker)

    def save_recording(self) -> bool:
        return self._flights[AutoBoneProcessType.SAVE].start(self._save_worker)

    def process_recording(self) -> bool:
        return self._flights[AutoBoneProcessType.PROCESS].start(self._process_worker)

    def is_running(self, process_type: AutoBoneProcessType) -> bool:
        return self._flights[process_type].is_running

    def wait_idle(self, process_type: AutoBoneProcessType, timeout: Optional[float] = None) -> bool:
        """Wait for an operation's current worker. Returns False on timeout."""
        return self._flights[process_type].wait(timeout)

    def stop_recording(self) -> None:
        if self.recorder.is_recording:
            self.recorder.stop_frame_recording()

    def cancel_recording(self) -> None:
        if self.recorder.is_recording:
            self.recorder.cancel_frame_recording()

    def apply_values(self) -> None:
        """Save the latest processed lengths into the skeleton config."""
        self.autobone.apply_and_save_config()

    # ------------------------------------------------------------------
    # Workers
    # ------------------------------------------------------------------

    def _record_worker(self) -> None:
        kind = AutoBoneProcessType.RECORD
        try:
            if not self.recorder.is_ready_to_record:
                self._announce_status(
                    kind, "The server is not ready to record", completed=True, success=False
                )
                autobone_log.error("Unable to record, no trackers are available")
                return

            self._announce_status(kind, "Recording...")

            config = self.settings.autobone
            sample_count = config.sample_count
            sample_rate = config.sample_rate_ms
            # Total time in seconds (ex. 1500 samples at 20 ms is 30 s)
            total_time = (sample_count * sample_rate) / 1000.0

            def on_progress(progress: RecordingProgress) -> None:
                self._announce_status(
                    kind,
                    current=progress.frame,
                    total=progress.total_frames,
                    eta=total_time - (progress.frame * total_time / progress.total_frames),
                )

            frames_future = self.recorder.start_frame_recording(sample_count, sample_rate, on_progress)
            frames = frames_future.result()
            autobone_log.info("Done recording!")

            # Rolling copy of the latest capture, kept for debugging
            self._announce_status(kind, "Saving recording...")
            self.autobone.save_recording(frames, LAST_RECORDING_NAME)
            if config.save_recordings:
                self._announce_status(kind, "Saving recording (from config option)...")
                self.autobone.save_recording(frames)

            for listener in self._snapshot_listeners():
                listener.on_recording_end(frames)

            self._announce_status(kind, "Done recording!", completed=True, success=True)
        except CancelledError:
            autobone_log.info("Recording canceled")
            self._announce_status(kind, "Recording canceled", completed=True, success=False)
        except Exception as e:
            autobone_log.error("Failed recording!", e)
            self._announce_status(kind, f"Recording failed: {e}", completed=True, success=False)

    def _save_worker(self) -> None:
        kind = AutoBoneProcessType.SAVE
        try:
            frames_future = self.recorder.frames_future
            if frames_future is None:
                self._announce_status(kind, "No recording found", completed=True, success=False)
                autobone_log.error("Unable to save, no recording was done...")
                return

            self._announce_status(kind, "Waiting for recording...")
            frames = frames_future.result()
            self._validate_recording(frames)

            self._announce_status(kind, "Saving recording...")
            self.autobone.save_recording(frames)
            self._announce_status(kind, "Recording saved!", completed=True, success=True)
        except Exception as e:
            autobone_log.error("Failed to save recording!", e)
            self._announce_status(kind, f"Failed to save recording: {e}", completed=True, success=False)

    def _process_worker(self) -> None:
        kind = AutoBoneProcessType.PROCESS
        try:
            self._announce_status(kind, "Loading recordings...")
            recordings = self.autobone.load_recordings()
            if recordings:
                autobone_log.info("Done loading frames!")
            else:
                frames_future = self.recorder.frames_future
                if frames_future is None:
                    self._announce_status(kind, "No recordings found...", completed=True, success=False)
                    autobone_log.error(
                        f"No recordings found in \"{self.settings.load_dir}\" and no recording was done..."
                    )
                    return
                self._announce_status(kind, "Waiting for recording...")
                recordings.append((LIVE_RECORDING_NAME, frames_future.result()))

            self._announce_status(kind, "Processing recording(s)...")
            autobone_log.info("Processing frames...")

            config = self.settings.autobone
            error_stats = StatsCalculator()
            offset_stats: Dict[SkeletonConfigOffsets, StatsCalculator] = {}

            for index, (name, frames) in enumerate(recordings):
                self._announce_status(
                    kind, f"Processing \"{name}\"...", current=index, total=len(recordings)
                )
                autobone_log.info(f"Processing frames from \"{name}\"...")
                self._log_tracker_info(frames.frame_holders)

                results = self.autobone.process_frames(frames, epoch_callback=self._notify_epoch)
                autobone_log.info("Done processing!")

                if config.export_csv:
                    self._export_csv(name, frames, results)
                if config.use_bone_contribution:
                    self._log_bone_contribution(frames, results)

                error_stats.add_value(results.height_difference)
                for offset, value in results.config_values.items():
                    # Centimeters
                    offset_stats.setdefault(offset, StatsCalculator()).add_value(value * 100.0)

                self._log_skeleton_ratios(results.config_values)
                autobone_log.info(f"Length values: {self.autobone.lengths_string}")

            average_lengths = ", ".join(
                f"{offset.config_key}: {stats.mean:.2f} (SD {stats.standard_deviation:.2f})"
                for offset, stats in offset_stats.items()
            )
            autobone_log.info(f"Average length values: {average_lengths}")
            autobone_log.info(
                f"Average height error: {error_stats.mean:.6f} (SD {error_stats.standard_deviation:.6f})"
            )

            offsets = self.autobone.offsets
            for listener in self._snapshot_listeners():
                listener.on_engine_end(offsets)

            self._announce_status(kind, "Done processing!", completed=True, success=True)
        except Exception as e:
            autobone_log.error("Failed adjustment!", e)
            self._announce_status(kind, f"Processing failed: {e}", completed=True, success=False)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_recording(frames: PoseFrames) -> None:
        if not frames.frame_holders:
            raise EmptyRecordingError("Recording has no trackers.")
        if frames.max_frame_count == 0:
            raise EmptyRecordingError("Recording has no frames.")

    def _export_csv(self, name: str, frames: PoseFrames, results: AutoBoneResults) -> None:
        path = self.settings.exports_dir / f"{_file_safe(name)}.csv"

        streamer = PoseFrameStreamer(frames)
        streamer.set_offsets(results.config_values)
        try:
            with CSVWriter(path) as writer:
                streamer.set_output(writer, self.settings.autobone.sample_rate_ms)
                streamer.stream_all_frames()
                streamer.close_output()
        except Exception:
            # Don't leave a partial export behind
            path.unlink(missing_ok=True)
            raise
        export_log.info(f"Exported \"{name}\" to \"{path}\"")

    def _log_bone_contribution(self, frames: PoseFrames, results: AutoBoneResults) -> None:
        skeleton_config = SkeletonConfig(
            **{offset.config_key: value for offset, value in results.config_values.items()}
        )
        rng = np.random.default_rng(self.settings.autobone.random_seed)
        contributions = compute_contributing_bones(
            frames, skeleton_config, self.settings.autobone, rng
        )
        summary = ", ".join(
            f"{bone.value}: {stats.mean:.4f} (SD {stats.standard_deviation:.4f})"
            for bone, stats in contributions.items()
        )
        autobone_log.info(f"Bone contributions: {summary}")

    def _log_tracker_info(self, trackers: List[TrackerFrames]) -> None:
        entries = []
        for tracker in trackers:
            frame = tracker.try_get_frame(0)
            if frame is None:
                continue

            entry = frame.tracker_position.designation if frame.tracker_position else "unassigned"

            flags = ""
            if frame.has_data(TrackerFrameData.ROTATION):
                flags += "R"
            if frame.has_data(TrackerFrameData.POSITION):
                flags += "P"
            if frame.has_data(TrackerFrameData.ACCELERATION):
                flags += "A"
            if frame.has_data(TrackerFrameData.RAW_ROTATION):
                flags += "r"

            if flags:
                entry += f" ({flags})"
            entries.append(entry)

        autobone_log.info(f"({len(trackers)} trackers) [{', '.join(entries)}]")

    def _log_skeleton_ratios(self, offsets: Dict[SkeletonConfigOffsets, float]) -> None:
        neck = offsets[SkeletonConfigOffsets.NECK]
        upper_chest = offsets[SkeletonConfigOffsets.UPPER_CHEST]
        chest = offsets[SkeletonConfigOffsets.CHEST]
        torso = upper_chest + chest + offsets[SkeletonConfigOffsets.WAIST] + offsets[SkeletonConfigOffsets.HIP]
        hips_width = offsets[SkeletonConfigOffsets.HIPS_WIDTH]
        lower_leg = offsets[SkeletonConfigOffsets.LOWER_LEG]
        leg = offsets[SkeletonConfigOffsets.UPPER_LEG] + lower_leg

        if torso <= 0.0 or leg <= 0.0:
            autobone_log.warn("Skipping ratios, torso or leg length is zero")
            return

        autobone_log.info(
            f"Ratios: [{{Neck-Torso: {neck / torso:.4f}}}, "
            f"{{Chest-Torso: {(upper_chest + chest) / torso:.4f}}}, "
            f"{{Torso-Waist: {hips_width / torso:.4f}}}, "
            f"{{Leg-Torso: {leg / torso:.4f}}}, "
            f"{{Leg-Body: {leg / (torso + neck):.4f}}}, "
            f"{{Knee-Leg: {lower_leg / leg:.4f}}}]"
        )
