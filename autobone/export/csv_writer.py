"""
CSV Pose Export

Writes one CSV row per frame: the HMD tracker's rotation and position
followed by every bone's rotation, all relative to the HMD pose.

Quaternions are written scalar first (w, x, y, z).
"""

import csv
import numpy as np
from pathlib import Path
from typing import IO, List, Optional, Union

from scipy.spatial.transform import Rotation

from .stream import PoseDataStream
from ..tracking.quaternion import from_rotation
from ..tracking.skeleton import BoneType, HumanSkeleton
from ..tracking.tracker import Tracker, TrackerPosition


class CSVColumn:
    def labels(self) -> List[str]:
        raise NotImplementedError

    def values(self, skeleton: HumanSkeleton, rot_offset: Rotation, pos_offset: np.ndarray) -> List[float]:
        raise NotImplementedError


class TrackerColumn(CSVColumn):
    def __init__(self, tracker: Tracker):
        self.tracker = tracker

    def labels(self) -> List[str]:
        position = self.tracker.tracker_position
        name = f"tracker {position.name if position is not None else 'unknown'}"
        return [
            f"{name} quat w", f"{name} quat x", f"{name} quat y", f"{name} quat z",
            f"{name} pos x", f"{name} pos y", f"{name} pos z",
        ]

    def values(self, skeleton: HumanSkeleton, rot_offset: Rotation, pos_offset: np.ndarray) -> List[float]:
        rot = from_rotation(rot_offset * self.tracker.get_rotation())
        pos = pos_offset + self.tracker.position
        return [float(v) for v in rot] + [float(v) for v in pos]


class BoneColumn(CSVColumn):
    def __init__(self, bone_type: BoneType):
        self.bone_type = bone_type

    def labels(self) -> List[str]:
        name = f"bone {self.bone_type.name}"
        return [f"{name} quat w", f"{name} quat x", f"{name} quat y", f"{name} quat z"]

    def values(self, skeleton: HumanSkeleton, rot_offset: Rotation, pos_offset: np.ndarray) -> List[float]:
        rot = from_rotation(rot_offset * skeleton.get_bone(self.bone_type).rotation)
        return [float(v) for v in rot]


class CSVWriter(PoseDataStream):
    """
    CSV output for `PoseFrameStreamer`.

    Args:
        output: File path or an open text stream
    """

    def __init__(self, output: Union[str, Path, IO[str]]):
        if isinstance(output, (str, Path)):
            path = Path(output)
            path.parent.mkdir(parents=True, exist_ok=True)
            self._file = open(path, 'w', newline='')
            self._owns_file = True
        else:
            self._file = output
            self._owns_file = False

        self._writer = csv.writer(self._file)
        self._columns: List[CSVColumn] = []
        self._head: Optional[Tracker] = None

    def _find_head(self, skeleton: HumanSkeleton) -> Tracker:
        for tracker in skeleton.trackers:
            if tracker.tracker_position == TrackerPosition.HEAD:
                return tracker
        raise ValueError("CSV export needs a head tracker")

    def write_header(self, skeleton: HumanSkeleton, streamer) -> None:
        head = self._find_head(skeleton)
        if not head.has_rotation or not head.has_position:
            raise ValueError(f"Tracker {head.tracker_position.name} must have rotation and position data.")
        self._head = head

        self._columns = [TrackerColumn(head)] + [BoneColumn(bone_type) for bone_type in BoneType]

        header = []
        for column in self._columns:
            header.extend(column.labels())
        self._writer.writerow(header)

    def write_frame(self, skeleton: HumanSkeleton) -> None:
        if self._head is None:
            raise RuntimeError("write_header() must be called before write_frame()")

        rot_offset = self._head.get_rotation().inv()
        pos_offset = -self._head.position

        row = []
        for column in self._columns:
            row.extend(column.values(skeleton, rot_offset, pos_offset))
        self._writer.writerow(row)

    @property
    def closed(self) -> bool:
        return self._file.closed

    def close(self) -> None:
        if self._file.closed:
            return
        if self._owns_file:
            self._file.close()
        else:
            self._file.flush()
