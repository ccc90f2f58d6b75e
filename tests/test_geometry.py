import numpy as np
import pytest

from snow_mpm.errors import ConfigurationError
from snow_mpm.geometry import create_box


def test_box_includes_both_corners():
    points = create_box((0.5, 0.5), (0.6, 0.6), 0.01)
    assert points.shape == (121, 2)
    np.testing.assert_allclose(points[0], [0.5, 0.5])
    np.testing.assert_allclose(points[-1], [0.6, 0.6], atol=1e-12)


def test_rectangular_box():
    points = create_box((0.45, 0.4), (0.55, 0.55), 0.01)
    assert points.shape == (11 * 16, 2)
    assert points[:, 0].min() == pytest.approx(0.45)
    assert points[:, 1].max() == pytest.approx(0.55)


def test_points_are_ordered_row_by_row():
    points = create_box((0.0, 0.0), (0.2, 0.1), 0.1)
    np.testing.assert_allclose(
        points,
        [[0.0, 0.0], [0.1, 0.0], [0.2, 0.0], [0.0, 0.1], [0.1, 0.1], [0.2, 0.1]],
        atol=1e-12,
    )


def test_degenerate_box_is_a_single_point():
    points = create_box((0.3, 0.3), (0.3, 0.3), 0.05)
    np.testing.assert_allclose(points, [[0.3, 0.3]])


def test_spacing_larger_than_box():
    points = create_box((0.1, 0.1), (0.15, 0.15), 0.1)
    np.testing.assert_allclose(points, [[0.1, 0.1]])


@pytest.mark.parametrize(
    "bottom_left, top_right, spacing",
    [
        ((0.5, 0.5), (0.4, 0.6), 0.01),
        ((0.1, 0.1), (0.2, 0.2), 0.0),
        ((0.1, 0.1), (0.2, 0.2), -0.01),
        ((0.1, 0.1, 0.1), (0.2, 0.2, 0.2), 0.01),
    ],
)
def test_invalid_boxes(bottom_left, top_right, spacing):
    with pytest.raises(ConfigurationError):
        create_box(bottom_left, top_right, spacing)
