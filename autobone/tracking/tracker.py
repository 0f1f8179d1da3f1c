"""
Live Tracker State

A `Tracker` is the mutable pose of one body-worn sensor as seen by the
skeleton: where it is mounted, and its latest rotation, position and
acceleration.
"""

import numpy as np
from enum import Enum
from typing import Optional
from scipy.spatial.transform import Rotation


class TrackerPosition(Enum):
    """Body placement of a tracker (value is the persisted designation)."""
    HEAD = "body:head"
    CHEST = "body:chest"
    HIP = "body:hip"
    LEFT_UPPER_LEG = "body:left_upper_leg"
    RIGHT_UPPER_LEG = "body:right_upper_leg"
    LEFT_LOWER_LEG = "body:left_lower_leg"
    RIGHT_LOWER_LEG = "body:right_lower_leg"
    LEFT_FOOT = "body:left_foot"
    RIGHT_FOOT = "body:right_foot"

    @property
    def designation(self) -> str:
        return self.value

    @classmethod
    def from_designation(cls, designation: str) -> Optional["TrackerPosition"]:
        for position in cls:
            if position.value == designation:
                return position
        return None


class Tracker:
    """
    Mutable tracker state.

    Channels that were never written stay unset (`has_rotation`,
    `has_position`, `has_acceleration` report which ones were).
    """

    def __init__(self, name: str, tracker_position: Optional[TrackerPosition] = None):
        self.name = name
        self.tracker_position = tracker_position

        self._rotation: Rotation = Rotation.identity()
        self._position = np.zeros(3)
        self._acceleration = np.zeros(3)

        self.has_rotation = False
        self.has_position = False
        self.has_acceleration = False

    def get_rotation(self) -> Rotation:
        return self._rotation

    def set_rotation(self, rotation: Rotation) -> None:
        self._rotation = rotation
        self.has_rotation = True

    @property
    def position(self) -> np.ndarray:
        return self._position

    @position.setter
    def position(self, value: np.ndarray) -> None:
        self._position = np.asarray(value, dtype=np.float64).copy()
        self.has_position = True

    def get_acceleration(self) -> np.ndarray:
        return self._acceleration

    def set_acceleration(self, value: np.ndarray) -> None:
        self._acceleration = np.asarray(value, dtype=np.float64).copy()
        self.has_acceleration = True

    def __repr__(self) -> str:
        placement = self.tracker_position.designation if self.tracker_position else "unassigned"
        return f"Tracker({self.name!r}, {placement})"
