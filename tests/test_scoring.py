import math

import numpy as np
import pytest

from aruco_fiducials.scoring import corner_diagonal, fiducial_area, object_error

SQUARE = np.array([[10, 10], [110, 10], [110, 110], [10, 110]], dtype=np.float64)


def test_square_area_and_diagonal():
    assert fiducial_area(SQUARE) == pytest.approx(10000.0)
    assert corner_diagonal(SQUARE) == pytest.approx(100 * math.sqrt(2))


def test_area_of_irregular_quad():
    """Shoelace area of a convex quad must match the two-triangle sum."""
    quad = np.array([[0, 0], [40, 5], [50, 30], [-5, 25]], dtype=np.float64)
    x, y = quad[:, 0], quad[:, 1]
    shoelace = 0.5 * abs(np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1)))
    assert fiducial_area(quad) == pytest.approx(shoelace)


def test_area_accepts_flat_corner_list():
    assert fiducial_area(SQUARE.reshape(-1).tolist()) == pytest.approx(10000.0)


def test_degenerate_quads_have_zero_area():
    point = np.full((4, 2), 5.0)
    line = np.array([[0, 0], [1, 1], [2, 2], [3, 3]], dtype=np.float64)
    assert fiducial_area(point) == 0.0
    assert fiducial_area(line) == pytest.approx(0.0, abs=1e-6)


def test_object_error_value():
    err = object_error(2.0, SQUARE, (0.0, 0.0, 1.0), 0.14)
    assert err == pytest.approx((2.0 / (100 * math.sqrt(2))) * (1.0 / 0.14))


def test_object_error_scales_linearly():
    base = object_error(1.0, SQUARE, (0.3, 0.0, 0.4), 0.14)
    assert object_error(3.0, SQUARE, (0.3, 0.0, 0.4), 0.14) == pytest.approx(3 * base)
    assert object_error(1.0, SQUARE, (0.6, 0.0, 0.8), 0.14) == pytest.approx(2 * base)


def test_object_error_zero_diagonal_is_zero():
    assert object_error(5.0, np.zeros((4, 2)), (0.0, 0.0, 1.0), 0.14) == 0.0
