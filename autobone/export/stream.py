"""
Pose Streaming

Plays a recording through a skeleton and pushes every posed frame to an
output stream (for example `CSVWriter`).
"""

from typing import Dict, Optional

from ..config import SkeletonConfig
from ..poseframe.frames import PoseFrames
from ..poseframe.player import TrackerFramesPlayer
from ..tracking.skeleton import HumanSkeleton, SkeletonConfigOffsets
from ..utils.logging import export_log


class PoseDataStream:
    """Output sink for a stream of skeleton poses."""

    def write_header(self, skeleton: HumanSkeleton, streamer: "PoseFrameStreamer") -> None:
        pass

    def write_frame(self, skeleton: HumanSkeleton) -> None:
        raise NotImplementedError

    def write_footer(self, skeleton: HumanSkeleton) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()


class PoseFrameStreamer:
    """
    Streams a recorded `PoseFrames` through a `HumanSkeleton`.

    Args:
        frames: Recording to play
        skeleton_config: Bone lengths for the skeleton (defaults if None)
    """

    def __init__(self, frames: PoseFrames, skeleton_config: Optional[SkeletonConfig] = None):
        self.frames = frames
        self.player = TrackerFramesPlayer(frames)
        self.skeleton = HumanSkeleton(self.player.trackers)
        if skeleton_config is not None:
            self.skeleton.load_from_config(skeleton_config)

        self.frame_interval_ms = 0
        self._output: Optional[PoseDataStream] = None

    def set_offsets(self, offsets: Dict[SkeletonConfigOffsets, float]) -> None:
        self.skeleton.set_offsets(offsets)
        self.skeleton.update()

    def set_output(self, output: PoseDataStream, interval_ms: int) -> None:
        self.frame_interval_ms = interval_ms
        self._output = output
        output.write_header(self.skeleton, self)

    def close_output(self) -> None:
        if self._output is None:
            return
        self._output.write_footer(self.skeleton)
        self._output.close()
        self._output = None

    def stream_all_frames(self) -> int:
        """Write every frame of the recording. Returns the number written."""
        if self._output is None:
            raise RuntimeError("No output set, call set_output() first")

        count = self.player.max_frame_count
        for index in range(count):
            self.player.set_cursors(index)
            self.skeleton.update()
            self._output.write_frame(self.skeleton)

        export_log.debug(f"Streamed {count} frames")
        return count
