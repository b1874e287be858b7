from unittest.mock import MagicMock

import cv2
import numpy as np
import pytest

from aruco_fiducials.fid_types import DetectionError
from aruco_fiducials.markers import render_marker
from aruco_fiducials.strategies.detect_aruco import (
    DETECTOR_PARAMS,
    ArucoDetect,
    corner_refinement_method,
    default_detector_params,
    dictionary_code,
    validate_detector_params,
)


@pytest.mark.parametrize("name", ["5x5_250", "DICT_5X5_250", "dict_5x5_250", " 5x5_250 "])
def test_dictionary_names_resolve(name):
    assert dictionary_code(name) == cv2.aruco.DICT_5X5_250


def test_dictionary_numeric_codes_pass_through():
    assert dictionary_code(7) == 7
    assert dictionary_code("7") == 7


def test_unknown_dictionary_is_rejected():
    with pytest.raises(ValueError):
        dictionary_code("9x9_12")


def test_defaults_cover_every_declared_parameter():
    defaults = default_detector_params()
    assert set(defaults) == set(DETECTOR_PARAMS)
    assert defaults["adaptiveThreshWinSizeMax"] == 53
    assert defaults["maxMarkerPerimeterRate"] == 4.0
    assert validate_detector_params(defaults) == defaults


def test_validation_reports_every_problem():
    with pytest.raises(ValueError) as exc:
        validate_detector_params({
            "bogus": 1,
            "errorCorrectionRate": 1.5,
            "cornerRefinementWinSize": 2.5,
            "doCornerRefinement": 1,
        })
    msg = str(exc.value)
    assert "'bogus' is not declared" in msg
    assert "errorCorrectionRate" in msg
    assert "cornerRefinementWinSize" in msg
    assert "doCornerRefinement" in msg


def test_validation_coerces_ints_to_floats():
    out = validate_detector_params({"adaptiveThreshConstant": 9})
    assert out == {"adaptiveThreshConstant": 9.0}
    assert isinstance(out["adaptiveThreshConstant"], float)


@pytest.mark.parametrize("values", [
    {"adaptiveThreshWinSizeMin": True},
    {"minOtsuStdDev": float("nan")},
    {"markerBorderBits": -1},
    {"adaptiveThreshConstant": "7"},
])
def test_validation_rejects_bad_values(values):
    with pytest.raises(ValueError):
        validate_detector_params(values)


def test_corner_refinement_method_from_switches():
    assert corner_refinement_method(
        {"doCornerRefinement": False, "cornerRefinementSubpix": True}
    ) == cv2.aruco.CORNER_REFINE_NONE
    assert corner_refinement_method(
        {"doCornerRefinement": True, "cornerRefinementSubpix": True}
    ) == cv2.aruco.CORNER_REFINE_SUBPIX
    assert corner_refinement_method(
        {"doCornerRefinement": True, "cornerRefinementSubpix": False}
    ) == cv2.aruco.CORNER_REFINE_CONTOUR


def test_params_are_applied_to_the_detector_parameters():
    det = ArucoDetect("4x4_50", {"adaptiveThreshConstant": 11.0, "doCornerRefinement": False})
    assert det.params.adaptiveThreshConstant == pytest.approx(11.0)
    assert det.params.cornerRefinementMethod == cv2.aruco.CORNER_REFINE_NONE


def test_reconfigure_rejects_whole_batch():
    """One bad entry leaves every parameter untouched."""
    det = ArucoDetect("4x4_50")
    before_values = dict(det.values)
    before_detector = det._detector

    with pytest.raises(ValueError):
        det.reconfigure({"adaptiveThreshConstant": 9.0, "minMarkerPerimeterRate": 2.0})

    assert det.values == before_values
    assert det._detector is before_detector


def test_reconfigure_applies_batch():
    det = ArucoDetect("4x4_50")
    det.reconfigure({"adaptiveThreshConstant": 9.0, "cornerRefinementSubpix": False})
    assert det.values["adaptiveThreshConstant"] == 9.0
    assert det.params.adaptiveThreshConstant == pytest.approx(9.0)
    assert det.params.cornerRefinementMethod == cv2.aruco.CORNER_REFINE_CONTOUR


def test_aruco_detect_uses_new_detector():
    """When available, ArucoDetect should use the ArucoDetector API."""
    detector = ArucoDetect("4x4_50")
    fake_detector = MagicMock()
    fake_detector.detectMarkers.return_value = (
        [np.arange(8, dtype=np.float32).reshape(1, 4, 2)],
        np.array([[42]], dtype=np.int32),
        [],
    )
    detector._detector = fake_detector
    image = np.zeros((2, 2), dtype=np.uint8)

    results = detector.detect(image)

    assert len(results) == 1
    assert results[0].marker_id == 42
    assert results[0].corners.shape == (4, 2)
    assert results[0].corners.dtype == np.float64
    assert np.allclose(results[0].corners[1], [2.0, 3.0])
    fake_detector.detectMarkers.assert_called_once_with(image)


def test_no_markers_gives_empty_list():
    detector = ArucoDetect("4x4_50")
    fake_detector = MagicMock()
    fake_detector.detectMarkers.return_value = ((), None, ())
    detector._detector = fake_detector
    assert detector.detect(np.zeros((2, 2), dtype=np.uint8)) == []


def test_opencv_error_becomes_detection_error():
    detector = ArucoDetect("4x4_50")
    fake_detector = MagicMock()
    fake_detector.detectMarkers.side_effect = cv2.error("bad image")
    detector._detector = fake_detector
    with pytest.raises(DetectionError):
        detector.detect(np.zeros((2, 2), dtype=np.uint8))


def test_detects_rendered_marker_with_corner_order():
    image = render_marker("5x5_250", 7, 200, margin_px=50)
    obs = ArucoDetect("5x5_250").detect(image)

    assert [o.marker_id for o in obs] == [7]
    c = obs[0].corners
    assert np.allclose(c[0], [50, 50], atol=2)
    assert np.allclose(c[1], [249, 50], atol=2)
    assert np.allclose(c[2], [249, 249], atol=2)
    assert np.allclose(c[3], [50, 249], atol=2)


def test_reconfigure_returns_coerced_batch():
    det = ArucoDetect("4x4_50")
    applied = det.reconfigure({"adaptiveThreshConstant": 9, "markerBorderBits": 2})
    assert applied == {"adaptiveThreshConstant": 9.0, "markerBorderBits": 2}
    assert isinstance(applied["adaptiveThreshConstant"], float)
