"""Single-marker pose estimation from four corner points.

Object points are laid out with the marker centre at the origin, the marker
plane at Z=0 and the y axis pointing down (same direction as image v), in
TL, TR, BR, BL order. Correspondences are positional: the detector's corner
order must match, otherwise the rotation comes out wrong.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Iterable, Optional, Tuple

import cv2
import numpy as np

from ..camera_model import CameraModel
from ..fid_types import MarkerObservation, MarkerPose, PoseSolveError
from ..id_ranges import MarkerSizeResolver

_log = logging.getLogger(__name__)


def marker_object_points(length_m: float) -> np.ndarray:
    if not np.isfinite(length_m) or length_m <= 0:
        raise ValueError(f"marker length must be positive, got {length_m}")
    h = 0.5 * float(length_m)
    return np.array(
        [
            [-h, -h, 0.0],
            [h, -h, 0.0],
            [h, h, 0.0],
            [-h, h, 0.0],
        ],
        dtype=np.float64,
    )


class PoseSolver(ABC):
    @abstractmethod
    def solve(self, object_points, image_points, K, dist) -> Tuple[np.ndarray, np.ndarray]: ...

    @abstractmethod
    def project(self, object_points, rvec, tvec, K, dist) -> np.ndarray: ...


class OpenCVPoseSolver(PoseSolver):
    """cv2.solvePnP / cv2.projectPoints."""

    def __init__(self, method: int = cv2.SOLVEPNP_ITERATIVE):
        self.method = int(method)

    def solve(self, object_points, image_points, K, dist) -> Tuple[np.ndarray, np.ndarray]:
        ok, rvec, tvec = cv2.solvePnP(
            np.asarray(object_points, dtype=np.float64),
            np.asarray(image_points, dtype=np.float64).reshape(-1, 2),
            np.asarray(K, dtype=np.float64),
            np.asarray(dist, dtype=np.float64),
            flags=self.method,
        )
        if not ok:
            raise PoseSolveError("solvePnP failed")
        return np.asarray(rvec, dtype=np.float64).reshape(3), np.asarray(tvec, dtype=np.float64).reshape(3)

    def project(self, object_points, rvec, tvec, K, dist) -> np.ndarray:
        proj, _ = cv2.projectPoints(
            np.asarray(object_points, dtype=np.float64),
            np.asarray(rvec, dtype=np.float64).reshape(3, 1),
            np.asarray(tvec, dtype=np.float64).reshape(3, 1),
            np.asarray(K, dtype=np.float64),
            np.asarray(dist, dtype=np.float64),
        )
        return np.asarray(proj, dtype=np.float64).reshape(-1, 2)


def reprojection_error(projected, observed) -> float:
    """Sum of squared per-point pixel distances divided by the point count."""
    p = np.asarray(projected, dtype=np.float64).reshape(-1, 2)
    o = np.asarray(observed, dtype=np.float64).reshape(-1, 2)
    d = p - o
    return float(np.sum(d * d) / len(o))


class PoseEstimator:
    def __init__(
        self,
        camera: CameraModel,
        solver: Optional[PoseSolver] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.camera = camera
        self.solver = solver or OpenCVPoseSolver()
        self.logger = logger or _log

    def estimate_one(self, obs: MarkerObservation, length_m: float) -> MarkerPose:
        intr = self.camera.intrinsics
        if intr is None:
            raise PoseSolveError("camera intrinsics not latched")

        obj_pts = marker_object_points(length_m)
        img_pts = np.asarray(obs.corners, dtype=np.float64).reshape(4, 2)

        rvec, tvec = self.solver.solve(obj_pts, img_pts, intr.K, intr.dist)
        rvec = np.asarray(rvec, dtype=np.float64).reshape(3)
        tvec = np.asarray(tvec, dtype=np.float64).reshape(3)
        if not (np.all(np.isfinite(rvec)) and np.all(np.isfinite(tvec))):
            raise PoseSolveError("solver returned a non-finite pose")

        proj = self.solver.project(obj_pts, rvec, tvec, intr.K, intr.dist)
        return MarkerPose(
            marker_id=int(obs.marker_id),
            corners=img_pts,
            rvec=rvec,
            tvec=tvec,
            image_error=reprojection_error(proj, img_pts),
            length_m=float(length_m),
        )

    def estimate(self, observations: Iterable[MarkerObservation], sizes: MarkerSizeResolver) -> list[MarkerPose]:
        """Pose per observation, in order; markers whose solve fails are left out."""
        poses: list[MarkerPose] = []
        for obs in observations:
            try:
                pose = self.estimate_one(obs, sizes.resolve(obs.marker_id))
            except (PoseSolveError, cv2.error) as exc:
                self.logger.error("pose estimation failed for id %d: %s", obs.marker_id, exc)
                continue
            self.logger.debug(
                "Detected id %d T %.2f %.2f %.2f R %.2f %.2f %.2f",
                pose.marker_id, *pose.tvec, *pose.rvec,
            )
            poses.append(pose)
        return poses
