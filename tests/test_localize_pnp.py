import logging

import cv2
import numpy as np
import pytest

from aruco_fiducials.camera_model import CameraModel
from aruco_fiducials.fid_types import MarkerObservation, PoseSolveError
from aruco_fiducials.id_ranges import MarkerSizeResolver
from aruco_fiducials.strategies.localize_pnp import (
    OpenCVPoseSolver,
    PoseEstimator,
    PoseSolver,
    marker_object_points,
    reprojection_error,
)


class EchoSolver(PoseSolver):
    """Translation proportional to the marker size; projects back onto the input."""

    def __init__(self, fail_on=()):
        self.fail_on = set(fail_on)
        self.calls = 0
        self._last = None

    def solve(self, object_points, image_points, K, dist):
        self.calls += 1
        if self.calls in self.fail_on:
            raise PoseSolveError("did not converge")
        self._last = np.asarray(image_points)
        side = object_points[1][0] - object_points[0][0]
        return np.zeros(3), np.array([side, 0.0, 0.0])

    def project(self, object_points, rvec, tvec, K, dist):
        return self._last


@pytest.fixture
def camera(K):
    cam = CameraModel()
    cam.ingest(K, np.zeros(5), "camera_optical")
    return cam


def test_object_points_winding_order():
    """TL, TR, BR, BL with y pointing down, centred at the origin."""
    pts = marker_object_points(0.2)
    assert np.allclose(pts, [
        [-0.1, -0.1, 0.0],
        [0.1, -0.1, 0.0],
        [0.1, 0.1, 0.0],
        [-0.1, 0.1, 0.0],
    ])


@pytest.mark.parametrize("bad", [0.0, -1.0, float("inf")])
def test_object_points_reject_bad_length(bad):
    with pytest.raises(ValueError):
        marker_object_points(bad)


def test_reprojection_error_is_mean_squared_distance():
    projected = [[0.0, 0.0], [0.0, 0.0]]
    observed = [[3.0, 4.0], [0.0, 0.0]]
    assert reprojection_error(projected, observed) == pytest.approx(12.5)


def test_frontal_marker_pose(camera, square_obs):
    """A 100 px square at f=100 with a 1 m marker sits 1 m away."""
    pose = PoseEstimator(camera).estimate_one(square_obs(1), 1.0)
    assert np.allclose(pose.tvec, [-0.4, -0.4, 1.0], atol=1e-4)
    assert np.allclose(pose.rvec, 0.0, atol=1e-4)
    assert pose.image_error < 1e-6
    assert pose.length_m == 1.0


def test_recovers_a_synthetic_pose(camera, K):
    rvec = np.array([0.1, -0.2, 0.05])
    tvec = np.array([0.05, -0.02, 0.8])
    obj = marker_object_points(0.14)
    img, _ = cv2.projectPoints(obj, rvec, tvec, K, np.zeros(5))
    obs = MarkerObservation(3, img.reshape(4, 2))

    pose = PoseEstimator(camera).estimate_one(obs, 0.14)

    assert np.allclose(pose.tvec, tvec, atol=1e-4)
    assert np.allclose(pose.rvec, rvec, atol=1e-3)
    assert pose.image_error < 1e-6


def test_per_marker_lengths_scale_translation(camera):
    """Identical image geometry but twice the physical size: twice the translation."""
    obs = [MarkerObservation(1, np.zeros((4, 2))), MarkerObservation(2, np.zeros((4, 2)))]
    sizes = MarkerSizeResolver(0.05, {2: 0.10})

    poses = PoseEstimator(camera, EchoSolver()).estimate(obs, sizes)

    assert [p.marker_id for p in poses] == [1, 2]
    assert np.isclose(poses[0].tvec[0], 0.05)
    assert np.isclose(poses[1].tvec[0], 0.10)
    assert poses[1].length_m == 0.10


def test_failed_marker_is_skipped(camera, caplog):
    obs = [MarkerObservation(i, np.zeros((4, 2))) for i in (4, 5, 6)]
    with caplog.at_level(logging.ERROR):
        poses = PoseEstimator(camera, EchoSolver(fail_on={2})).estimate(obs, MarkerSizeResolver(0.1))
    assert [p.marker_id for p in poses] == [4, 6]
    assert "pose estimation failed for id 5" in caplog.text


def test_non_finite_pose_is_rejected(camera):
    class NanSolver(EchoSolver):
        def solve(self, object_points, image_points, K, dist):
            return np.zeros(3), np.array([np.nan, 0.0, 1.0])

    with pytest.raises(PoseSolveError):
        PoseEstimator(camera, NanSolver()).estimate_one(MarkerObservation(1, np.zeros((4, 2))), 0.1)


def test_estimate_requires_intrinsics(square_obs):
    with pytest.raises(PoseSolveError):
        PoseEstimator(CameraModel()).estimate_one(square_obs(1), 0.14)


def test_opencv_solver_raises_when_solve_fails(K):
    solver = OpenCVPoseSolver()
    with pytest.MonkeyPatch.context() as mp:
        mp.setattr(cv2, "solvePnP", lambda *a, **k: (False, None, None))
        with pytest.raises(PoseSolveError):
            solver.solve(marker_object_points(0.1), np.zeros((4, 2)), K, np.zeros(5))
