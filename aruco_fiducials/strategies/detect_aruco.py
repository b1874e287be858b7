from __future__ import annotations

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass
from numbers import Integral, Real
from typing import Any, Mapping, Optional

import cv2
import numpy as np

from ..fid_types import DetectionError, MarkerObservation

DICTIONARY_NAMES = [
    "4x4_50", "4x4_100", "4x4_250", "4x4_1000",
    "5x5_50", "5x5_100", "5x5_250", "5x5_1000",
    "6x6_50", "6x6_100", "6x6_250", "6x6_1000",
    "7x7_50", "7x7_100", "7x7_250", "7x7_1000",
    "aruco_original",
]


def dictionary_code(name: str | int) -> int:
    """Resolve ``"5x5_250"``, ``"DICT_5X5_250"`` or a raw OpenCV code."""
    if isinstance(name, Integral):
        return int(name)
    key = (name or "").strip()
    if key.isdigit():
        return int(key)
    if key.upper().startswith("DICT_"):
        key = key[5:]
    key = key.lower()
    if key not in DICTIONARY_NAMES:
        raise ValueError(f"unknown ArUco dictionary: {name!r}")
    return int(getattr(cv2.aruco, f"DICT_{key.upper()}"))


def get_dict(name: str | int):
    return cv2.aruco.getPredefinedDictionary(dictionary_code(name))


@dataclass(frozen=True)
class ParamSpec:
    name: str
    kind: type
    default: Any
    lo: Optional[float] = None
    hi: Optional[float] = None
    description: str = ""


_INF = math.inf

DETECTOR_PARAMS: dict[str, ParamSpec] = {
    p.name: p
    for p in (
        ParamSpec("adaptiveThreshConstant", float, 7.0, 0.0, _INF,
                  "Constant for adaptive thresholding before finding contours"),
        ParamSpec("adaptiveThreshWinSizeMin", int, 3, 1, _INF,
                  "Minimum window size for adaptive thresholding"),
        ParamSpec("adaptiveThreshWinSizeMax", int, 53, 1, _INF,
                  "Maximum window size for adaptive thresholding"),
        ParamSpec("adaptiveThreshWinSizeStep", int, 4, 1, _INF,
                  "Window size increment between min and max"),
        ParamSpec("cornerRefinementMaxIterations", int, 30, 1, _INF,
                  "Maximum iterations of the corner refinement"),
        ParamSpec("cornerRefinementMinAccuracy", float, 0.01, 0.0, 1.0,
                  "Minimum error for the corner refinement stop criteria"),
        ParamSpec("cornerRefinementWinSize", int, 5, 1, _INF,
                  "Corner refinement window size (pixels)"),
        ParamSpec("doCornerRefinement", bool, True,
                  description="Whether to refine corners at all"),
        ParamSpec("cornerRefinementSubpix", bool, True,
                  description="Subpixel refinement (true) or contour (false)"),
        ParamSpec("errorCorrectionRate", float, 0.6, 0.0, 1.0,
                  "Error correction rate relative to the dictionary capability"),
        ParamSpec("minCornerDistanceRate", float, 0.05, 0.0, _INF,
                  "Minimum corner distance relative to the marker perimeter"),
        ParamSpec("markerBorderBits", int, 1, 0, _INF,
                  "Width of the marker border in bits"),
        ParamSpec("maxErroneousBitsInBorderRate", float, 0.04, 0.0, 1.0,
                  "Accepted rate of erroneous bits in the border"),
        ParamSpec("minDistanceToBorder", int, 3, 0, _INF,
                  "Minimum corner distance to the image border (pixels)"),
        ParamSpec("minMarkerDistanceRate", float, 0.05, 0.0, 1.0,
                  "Minimum mean corner distance between two markers"),
        ParamSpec("minMarkerPerimeterRate", float, 0.1, 0.0, 1.0,
                  "Minimum marker perimeter relative to the image size"),
        ParamSpec("maxMarkerPerimeterRate", float, 4.0, 0.0, _INF,
                  "Maximum marker perimeter relative to the image size"),
        ParamSpec("minOtsuStdDev", float, 5.0, 0.0, _INF,
                  "Minimum pixel std-dev to apply Otsu thresholding"),
        ParamSpec("perspectiveRemoveIgnoredMarginPerCell", float, 0.13, 0.0, 1.0,
                  "Ignored cell margin when reading bits"),
        ParamSpec("perspectiveRemovePixelPerCell", int, 8, 1, _INF,
                  "Pixels per cell when removing perspective"),
        ParamSpec("polygonalApproxAccuracyRate", float, 0.01, 0.0, 1.0,
                  "Polygonal approximation accuracy"),
    )
}

_REFINEMENT_SWITCHES = ("doCornerRefinement", "cornerRefinementSubpix")


def default_detector_params() -> dict[str, Any]:
    return {name: spec.default for name, spec in DETECTOR_PARAMS.items()}


def _coerce(spec: ParamSpec, value: Any) -> Any:
    if spec.kind is bool:
        if isinstance(value, (bool, np.bool_)):
            return bool(value)
        raise ValueError(f"{spec.name} expects a bool, got {value!r}")
    if isinstance(value, (bool, np.bool_)):
        raise ValueError(f"{spec.name} expects a number, got {value!r}")
    if spec.kind is int:
        if not isinstance(value, Integral):
            raise ValueError(f"{spec.name} expects an integer, got {value!r}")
        out: Any = int(value)
    else:
        if not isinstance(value, Real):
            raise ValueError(f"{spec.name} expects a number, got {value!r}")
        out = float(value)
        if math.isnan(out):
            raise ValueError(f"{spec.name} must not be NaN")
    if spec.lo is not None and out < spec.lo:
        raise ValueError(f"{spec.name}={out} is below {spec.lo}")
    if spec.hi is not None and out > spec.hi:
        raise ValueError(f"{spec.name}={out} is above {spec.hi}")
    return out


def validate_detector_params(values: Mapping[str, Any]) -> dict[str, Any]:
    """Check a batch of named parameters; raise ValueError listing every problem."""
    problems: list[str] = []
    out: dict[str, Any] = {}
    for name, value in values.items():
        spec = DETECTOR_PARAMS.get(name)
        if spec is None:
            problems.append(f"parameter '{name}' is not declared")
            continue
        try:
            out[name] = _coerce(spec, value)
        except ValueError as exc:
            problems.append(str(exc))
    if problems:
        raise ValueError("; ".join(problems))
    return out


def corner_refinement_method(values: Mapping[str, Any]) -> int:
    if not values["doCornerRefinement"]:
        return int(cv2.aruco.CORNER_REFINE_NONE)
    if values["cornerRefinementSubpix"]:
        return int(cv2.aruco.CORNER_REFINE_SUBPIX)
    return int(cv2.aruco.CORNER_REFINE_CONTOUR)


def apply_detector_params(params: Any, values: Mapping[str, Any]) -> Any:
    for name, value in values.items():
        if name in _REFINEMENT_SWITCHES:
            continue
        setattr(params, name, DETECTOR_PARAMS[name].kind(value))
    params.cornerRefinementMethod = corner_refinement_method(values)
    return params


class DetectStrategy(ABC):
    @abstractmethod
    def detect(self, image) -> list[MarkerObservation]: ...

    @abstractmethod
    def reconfigure(self, values: Mapping[str, Any]) -> dict[str, Any]: ...


class ArucoDetect(DetectStrategy):
    """
    Strategy: detect ArUco markers in an image.
    Returns list[MarkerObservation] with corners in TL, TR, BR, BL order.
    """

    def __init__(self, dictionary: str | int = "5x5_250", params: Optional[Mapping[str, Any]] = None):
        self.dictionary = get_dict(dictionary)
        values = default_detector_params()
        if params:
            values.update(validate_detector_params(params))
        self.values = values
        self.params = apply_detector_params(cv2.aruco.DetectorParameters(), values)
        self._detector = cv2.aruco.ArucoDetector(self.dictionary, self.params)

    def reconfigure(self, values: Mapping[str, Any]) -> dict[str, Any]:
        """Apply a batch of parameters all at once; nothing changes on error.

        Returns the batch as coerced and applied.
        """
        validated = validate_detector_params(values)
        merged = dict(self.values)
        merged.update(validated)
        params = apply_detector_params(cv2.aruco.DetectorParameters(), merged)
        detector = cv2.aruco.ArucoDetector(self.dictionary, params)
        self.values, self.params, self._detector = merged, params, detector
        return validated

    def detect(self, image) -> list[MarkerObservation]:
        try:
            corners, ids, _rej = self._detector.detectMarkers(image)
        except cv2.error as exc:
            raise DetectionError(f"marker detection failed: {exc}") from exc

        obs: list[MarkerObservation] = []
        if ids is not None and len(ids) > 0:
            for i, mid in enumerate(np.asarray(ids).flatten()):
                quad = np.asarray(corners[i], dtype=np.float64).reshape(4, 2)
                obs.append(MarkerObservation(int(mid), quad))
        return obs
