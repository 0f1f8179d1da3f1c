"""
Pose Recorder

Captures a fixed number of frames from live trackers at a fixed rate on a
background thread. The result is delivered through a
`concurrent.futures.Future` so callers can wait for a recording that is
still in progress.
"""

import threading
import time
from concurrent.futures import CancelledError, Future
from dataclasses import dataclass
from typing import Callable, List, Optional

from .frames import PoseFrame, PoseFrames, TrackerFrames
from ..errors import NotReadyError
from ..tracking.tracker import Tracker
from ..utils.logging import recorder_log


@dataclass
class RecordingProgress:
    frame: int
    total_frames: int


class PoseRecorder:
    """
    Records `PoseFrames` from a tracker source.

    Args:
        tracker_source: Callable returning the live trackers to sample
    """

    def __init__(self, tracker_source: Callable[[], List[Tracker]]):
        self.tracker_source = tracker_source

        self._lock = threading.Lock()
        self._frames_future: Optional[Future] = None
        self._stop_event = threading.Event()
        self._cancel_event = threading.Event()

    @property
    def is_ready_to_record(self) -> bool:
        """True if there is at least one tracker to record."""
        return len(self.tracker_source()) > 0

    @property
    def is_recording(self) -> bool:
        with self._lock:
            return self._frames_future is not None and not self._frames_future.done()

    @property
    def frames_future(self) -> Optional[Future]:
        """Future of the most recent recording, if any was started."""
        with self._lock:
            return self._frames_future

    def start_frame_recording(
        self,
        sample_count: int,
        sample_rate_ms: int,
        on_progress: Optional[Callable[[RecordingProgress], None]] = None,
    ) -> Future:
        """
        Start recording. Returns the future of the finished `PoseFrames`.

        Raises:
            NotReadyError: No trackers are available
            RuntimeError: A recording is already running
        """
        if sample_count < 1:
            raise ValueError("sample_count must be at least 1")

        trackers = list(self.tracker_source())
        if not trackers:
            raise NotReadyError("No trackers available to record")

        with self._lock:
            if self._frames_future is not None and not self._frames_future.done():
                raise RuntimeError("A recording is already in progress")

            future: Future = Future()
            future.set_running_or_notify_cancel()
            self._frames_future = future
            self._stop_event.clear()
            self._cancel_event.clear()

            thread = threading.Thread(
                target=self._record_loop,
                args=(trackers, sample_count, sample_rate_ms, on_progress, future),
                daemon=True,
            )
            thread.start()

        recorder_log.info(
            f"Recording {sample_count} samples at {sample_rate_ms} ms from {len(trackers)} trackers"
        )
        return future

    def stop_frame_recording(self) -> None:
        """Finish early, keeping the frames captured so far."""
        self._stop_event.set()

    def cancel_frame_recording(self) -> None:
        """Abort the recording; its future raises `CancelledError`."""
        self._cancel_event.set()

    def _record_loop(
        self,
        trackers: List[Tracker],
        sample_count: int,
        sample_rate_ms: int,
        on_progress: Optional[Callable[[RecordingProgress], None]],
        future: Future,
    ) -> None:
        interval = sample_rate_ms / 1000.0
        holders = [TrackerFrames(name=tracker.name) for tracker in trackers]

        try:
            next_time = time.perf_counter()
            for frame_index in range(sample_count):
                if self._cancel_event.is_set():
                    recorder_log.info("Recording canceled")
                    future.set_exception(CancelledError("Recording canceled"))
                    return
                if self._stop_event.is_set():
                    recorder_log.info(f"Recording stopped after {frame_index} frames")
                    break

                for tracker, holder in zip(trackers, holders):
                    holder.add_frame(PoseFrame.from_tracker(tracker))

                if on_progress is not None:
                    on_progress(RecordingProgress(frame_index + 1, sample_count))

                next_time += interval
                delay = next_time - time.perf_counter()
                if delay > 0 and frame_index + 1 < sample_count:
                    # Wake early on cancel
                    self._cancel_event.wait(delay)

            future.set_result(PoseFrames(holders))
        except Exception as e:
            recorder_log.error("Recording failed", e)
            future.set_exception(e)
