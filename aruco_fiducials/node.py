"""Per-frame fiducial pipeline: gate, detect, filter, estimate, score, emit."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

import cv2
import numpy as np

from .camera_model import CameraModel
from .config import FiducialConfig
from .fid_types import (
    CameraInfo,
    DetectionError,
    Fiducial,
    FiducialArray,
    FiducialTransform,
    FiducialTransformArray,
    Frame,
    FrameResult,
    MarkerObservation,
    MarkerPose,
    SetParametersResult,
    TransformStamped,
)
from .gate import DetectionGate, GateDecision
from .id_ranges import MarkerSizeResolver, filter_ignored, parse_id_ranges
from .logging_utils import setup_logger
from .output import OutputSink
from .scoring import fiducial_area, object_error
from .strategies.detect_aruco import ArucoDetect, DetectStrategy
from .strategies.localize_pnp import PoseEstimator, PoseSolver
from .transforms import rvec_to_quaternion

CHILD_FRAME_PREFIX = "fiducial_"


def child_frame_id(fiducial_id: int) -> str:
    return f"{CHILD_FRAME_PREFIX}{int(fiducial_id)}"


class FiducialsNode:
    def __init__(
        self,
        config: FiducialConfig,
        detector: Optional[DetectStrategy] = None,
        solver: Optional[PoseSolver] = None,
        outputs: Optional[list[OutputSink]] = None,
        logger: Optional[logging.Logger] = None,
    ):
        self.config = config
        self.logger = logger or setup_logger(config.camera_name)
        self.outputs: list[OutputSink] = list(outputs or [])

        self.detector = detector or ArucoDetect(config.dictionary, config.detector)
        self.camera = CameraModel(self.logger)
        self.gate = DetectionGate(config.frame_decimation, config.enable_detections)
        self.estimator = PoseEstimator(self.camera, solver, self.logger)

        self.ignore_ids = parse_id_ranges(config.ignore_fiducials, self.logger)
        self.sizes = MarkerSizeResolver.from_text(
            config.fiducial_len, config.fiducial_len_override, self.logger
        )
        self._frames_without_intrinsics = 0

    # --- control surface -------------------------------------------------

    def on_camera_info(self, info: CameraInfo) -> bool:
        return self.camera.ingest(info.K, info.D, info.frame_id or self.config.camera_frame)

    def set_enabled(self, enabled: bool) -> tuple[bool, str]:
        self.gate.set_enabled(enabled)
        message = "Enabled aruco detections." if enabled else "Disabled aruco detections."
        self.logger.info(message)
        return True, message

    def set_ignore_fiducials(self, text: str) -> frozenset[int]:
        ignore_ids = parse_id_ranges(text, self.logger)
        self.ignore_ids = ignore_ids
        self.config.ignore_fiducials = text
        return ignore_ids

    def set_fiducial_len_override(self, text: str) -> MarkerSizeResolver:
        sizes = MarkerSizeResolver.from_text(self.sizes.default_length, text, self.logger)
        self.sizes = sizes
        self.config.fiducial_len_override = text
        return sizes

    def reconfigure(self, updates: Mapping[str, Any]) -> SetParametersResult:
        for name in updates:
            self.logger.info("Parameter '%s' changed.", name)
        try:
            applied = self.detector.reconfigure(updates)
        except ValueError as exc:
            self.logger.error("Could not update parameter. %s", exc)
            return SetParametersResult(False, str(exc))
        self.config.detector.update(applied)
        return SetParametersResult(True)

    # --- frame processing ------------------------------------------------

    @property
    def frame_id(self) -> str:
        intr = self.camera.intrinsics
        if intr is not None and intr.frame_id:
            return intr.frame_id
        return self.config.camera_frame

    def _detect(self, image) -> list[MarkerObservation]:
        if self.config.invert_image:
            image = cv2.bitwise_not(image)
        try:
            observations = self.detector.detect(image)
        except (DetectionError, cv2.error) as e:
            self.logger.error("detection failed: %s", e)
            return []
        self.logger.debug("Detected %d markers", len(observations))
        return observations

    def _to_transform(self, pose: MarkerPose) -> FiducialTransform:
        t = pose.tvec
        return FiducialTransform(
            fiducial_id=pose.marker_id,
            translation=(float(t[0]), float(t[1]), float(t[2])),
            rotation=rvec_to_quaternion(pose.rvec),
            image_error=pose.image_error,
            object_error=object_error(pose.image_error, pose.corners, t, self.sizes.default_length),
            fiducial_area=fiducial_area(pose.corners),
        )

    def _estimate(self, frame: Frame, observations: list[MarkerObservation]) -> tuple[Optional[FiducialTransformArray], list[MarkerPose]]:
        fta = FiducialTransformArray(frame.ts_iso, self.frame_id)
        if not self.config.do_pose_estimation:
            return fta, []

        if not self.camera.is_ready():
            self._frames_without_intrinsics += 1
            if self._frames_without_intrinsics > self.config.intrinsics_grace_frames:
                self.logger.error("No camera intrinsics")
            else:
                self.logger.debug("waiting for camera intrinsics")
            return None, []

        poses = self.estimator.estimate(observations, self.sizes)
        fta.transforms.extend(self._to_transform(p) for p in poses)
        return fta, poses

    def on_image(self, frame: Frame) -> Optional[FrameResult]:
        decision = self.gate.admit()
        if decision is not GateDecision.ADMITTED:
            return None

        observations = filter_ignored(self._detect(frame.image), self.ignore_ids, self.logger)

        vertices = FiducialArray(
            frame.ts_iso,
            self.frame_id,
            [Fiducial.from_observation(o) for o in observations],
        )
        for out in self.outputs:
            out.write_vertices(frame.idx, vertices)

        transforms, poses = self._estimate(frame, observations)
        if transforms is not None:
            for out in self.outputs:
                out.write_transforms(frame.idx, transforms)
            if self.config.publish_fiducial_tf:
                for ft in transforms.transforms:
                    ts = TransformStamped(
                        stamp=frame.ts_iso,
                        frame_id=transforms.frame_id,
                        child_frame_id=child_frame_id(ft.fiducial_id),
                        translation=ft.translation,
                        rotation=ft.rotation,
                    )
                    for out in self.outputs:
                        out.send_transform(ts)

        return FrameResult(
            frame=frame,
            observations=observations,
            vertices=vertices,
            transforms=transforms,
            poses=poses,
        )


def annotate(image, result: FrameResult, intrinsics, axis_length: float) -> np.ndarray:
    """Draw detected quads and pose axes on a copy of the image."""
    draw = image.copy()
    if not result.observations:
        return draw
    ids = np.array([o.marker_id for o in result.observations], dtype=np.int32).reshape(-1, 1)
    corners = [np.asarray(o.corners, dtype=np.float32).reshape(1, 4, 2) for o in result.observations]
    cv2.aruco.drawDetectedMarkers(draw, corners, ids)
    if intrinsics is not None:
        for pose in result.poses:
            cv2.drawFrameAxes(draw, intrinsics.K, intrinsics.dist, pose.rvec, pose.tvec, axis_length)
    return draw
