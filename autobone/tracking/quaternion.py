"""
Quaternion Helpers

Recordings store rotations as scalar-first unit quaternions (w, x, y, z).
Everything that composes or applies rotations goes through scipy's
`Rotation`, which is scalar-last; these helpers convert between the two.
"""

import numpy as np
from typing import Sequence
from scipy.spatial.transform import Rotation


IDENTITY_QUAT = np.array([1.0, 0.0, 0.0, 0.0])


def normalize_quat(q: Sequence[float]) -> np.ndarray:
    """Normalize a (w, x, y, z) quaternion, returning identity for zero input."""
    q = np.asarray(q, dtype=np.float64)
    length = np.linalg.norm(q)
    if length < 1e-12:
        return IDENTITY_QUAT.copy()
    return q / length


def to_rotation(q: Sequence[float]) -> Rotation:
    """Convert a (w, x, y, z) quaternion to a scipy Rotation."""
    w, x, y, z = normalize_quat(q)
    return Rotation.from_quat([x, y, z, w])


def from_rotation(rotation: Rotation) -> np.ndarray:
    """Convert a scipy Rotation to a (w, x, y, z) quaternion."""
    x, y, z, w = rotation.as_quat()
    return np.array([w, x, y, z])


def from_euler_yxz(yaw: float, pitch: float, roll: float) -> np.ndarray:
    """
    Build a (w, x, y, z) quaternion from intrinsic Y-X-Z angles in radians.

    Yaw is about +Y (up), pitch about +X (right), roll about +Z.
    """
    return from_rotation(Rotation.from_euler("YXZ", [yaw, pitch, roll]))


def identity_rotation() -> Rotation:
    return Rotation.identity()
