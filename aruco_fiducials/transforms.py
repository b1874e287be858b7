"""Rotation conversions for marker pose handling."""

import math

import numpy as np
from typing import Sequence, Tuple

IDENTITY_QUATERNION = (1.0, 0.0, 0.0, 0.0)

# Below this rotation angle (radians) the axis is undefined.
_MIN_ANGLE = 1e-12


def rvec_to_quaternion(rvec: np.ndarray) -> Tuple[float, float, float, float]:
    """
    Convert an axis-angle rotation vector to a unit quaternion.

    The vector's magnitude is the rotation angle and its direction the axis.
    A zero vector maps to the identity quaternion.

    Args:
        rvec: Rotation vector (3,) or (3,1)

    Returns:
        (w, x, y, z)
    """
    r = np.asarray(rvec, dtype=np.float64).reshape(3)
    angle = float(np.linalg.norm(r))
    if not math.isfinite(angle) or angle < _MIN_ANGLE:
        return IDENTITY_QUATERNION

    axis = r / angle
    half = 0.5 * angle
    s = math.sin(half)
    return (
        math.cos(half),
        float(axis[0] * s),
        float(axis[1] * s),
        float(axis[2] * s),
    )


def quaternion_to_rvec(q: Sequence[float]) -> np.ndarray:
    """
    Convert a (w, x, y, z) quaternion back to an axis-angle vector.

    Returns:
        Rotation vector (3,) with angle in [0, pi]
    """
    w, x, y, z = (float(v) for v in q)
    n = math.sqrt(w * w + x * x + y * y + z * z)
    if n == 0.0:
        return np.zeros(3)
    w, x, y, z = w / n, x / n, y / n, z / n
    if w < 0.0:
        w, x, y, z = -w, -x, -y, -z

    s = math.sqrt(x * x + y * y + z * z)
    if s < _MIN_ANGLE:
        return np.zeros(3)
    angle = 2.0 * math.atan2(s, w)
    return np.array([x, y, z]) / s * angle
