"""Detection quality figures computed from the corner quad and the pose."""

from __future__ import annotations

import math

import numpy as np


def _as_quad(corners) -> np.ndarray:
    return np.asarray(corners, dtype=np.float64).reshape(4, 2)


def _dist(p: np.ndarray, q: np.ndarray) -> float:
    return float(math.hypot(p[0] - q[0], p[1] - q[1]))


def _heron(a: float, b: float, c: float) -> float:
    s = 0.5 * (a + b + c)
    # round-off can push a degenerate triangle slightly negative
    return math.sqrt(max(0.0, s * (s - a) * (s - b) * (s - c)))


def corner_diagonal(corners) -> float:
    """Pixel distance between the first and third corner."""
    c = _as_quad(corners)
    return _dist(c[0], c[2])


def fiducial_area(corners) -> float:
    """Area of the quad in pixels², as two triangles split along c1-c3."""
    c = _as_quad(corners)
    diag = _dist(c[1], c[3])
    a1 = _heron(_dist(c[0], c[1]), _dist(c[0], c[3]), diag)
    a2 = _heron(_dist(c[1], c[2]), _dist(c[2], c[3]), diag)
    return a1 + a2


def object_error(image_error: float, corners, tvec, reference_length: float) -> float:
    """Dimensionless error: residual relative to apparent size, scaled by range.

    ``reference_length`` is the global default marker length even for markers
    with an overridden size.
    """
    diag = corner_diagonal(corners)
    if diag <= 0.0 or reference_length <= 0.0:
        return 0.0
    distance = float(np.linalg.norm(np.asarray(tvec, dtype=np.float64).reshape(3)))
    return (float(image_error) / diag) * (distance / float(reference_length))
