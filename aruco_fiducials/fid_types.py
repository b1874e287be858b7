from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

import numpy as np


class MalformedIdRange(ValueError):
    """Raised for an id/range token that cannot be expanded."""


class PoseSolveError(RuntimeError):
    """Raised when the single-marker pose solver does not converge."""


class DetectionError(RuntimeError):
    """Raised by a detector that cannot process the given image."""


class CaptureError(RuntimeError):
    """Raised when a frame source cannot be opened."""


@dataclass
class Frame:
    idx: int
    ts_iso: str
    image: Any  # numpy array


@dataclass
class MarkerObservation:
    marker_id: int
    corners: Any  # (4,2) ndarray, TL, TR, BR, BL


@dataclass
class CameraInfo:
    K: Any  # (3,3) or 9 values, row major
    D: Any  # distortion coefficients
    frame_id: str = ""


@dataclass(frozen=True)
class CameraIntrinsics:
    K: np.ndarray
    dist: np.ndarray
    frame_id: str


@dataclass
class MarkerPose:
    marker_id: int
    corners: np.ndarray  # (4,2) corners the pose was solved from
    rvec: np.ndarray
    tvec: np.ndarray
    image_error: float
    length_m: float


@dataclass
class Fiducial:
    fiducial_id: int
    x0: float
    y0: float
    x1: float
    y1: float
    x2: float
    y2: float
    x3: float
    y3: float

    @classmethod
    def from_observation(cls, obs: MarkerObservation) -> "Fiducial":
        c = np.asarray(obs.corners, dtype=np.float64).reshape(4, 2)
        return cls(
            int(obs.marker_id),
            float(c[0, 0]), float(c[0, 1]),
            float(c[1, 0]), float(c[1, 1]),
            float(c[2, 0]), float(c[2, 1]),
            float(c[3, 0]), float(c[3, 1]),
        )


@dataclass
class FiducialArray:
    stamp: str
    frame_id: str
    fiducials: list[Fiducial] = field(default_factory=list)


@dataclass
class FiducialTransform:
    fiducial_id: int
    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]  # w, x, y, z
    image_error: float
    object_error: float
    fiducial_area: float


@dataclass
class FiducialTransformArray:
    stamp: str
    frame_id: str
    transforms: list[FiducialTransform] = field(default_factory=list)


@dataclass
class TransformStamped:
    stamp: str
    frame_id: str
    child_frame_id: str
    translation: tuple[float, float, float]
    rotation: tuple[float, float, float, float]  # w, x, y, z


@dataclass
class FrameResult:
    frame: Frame
    observations: list[MarkerObservation]
    vertices: FiducialArray
    transforms: Optional[FiducialTransformArray] = None
    poses: list[MarkerPose] = field(default_factory=list)


@dataclass
class SetParametersResult:
    successful: bool
    reason: str = ""
