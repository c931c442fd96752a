import numpy as np
import pytest

from liomap.correspondence import surf_coefficients
from liomap.lm import LMState, constrain, lm_step
from liomap.transforms import vector_to_matrix


def _grid(a_range, b_range, step=0.2):
    a = np.arange(a_range[0], a_range[1] + 1e-9, step)
    b = np.arange(b_range[0], b_range[1] + 1e-9, step)
    return np.meshgrid(a, b)


def _plane_x():
    yy, zz = _grid((-4, 4), (-2, 2))
    return np.column_stack([np.full(yy.size, 5.0), yy.ravel(), zz.ravel(), np.zeros(yy.size)])


def _plane_y():
    xx, zz = _grid((-4, 4), (-2, 2))
    return np.column_stack([xx.ravel(), np.full(xx.size, 5.0), zz.ravel(), np.zeros(xx.size)])


def _plane_z():
    xx, yy = _grid((-4, 4), (-4, 4))
    return np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, -3.0), np.zeros(xx.size)])


def _step(state, transform, cloud, iteration):
    originals, coeffs = surf_coefficients(cloud, vector_to_matrix(transform), cloud)
    return lm_step(state, transform, originals, coeffs, iteration)


def test_recovers_translation_offset():
    cloud = np.vstack([_plane_x(), _plane_y(), _plane_z()])
    state = LMState()
    transform = np.array([0.0, 0.0, 0.0, 0.1, -0.1, 0.05])
    for iteration in range(20):
        transform, converged = _step(state, transform, cloud, iteration)
        if converged:
            break
    assert converged
    assert np.linalg.norm(transform) < 1e-3
    assert state.degenerate is False


def test_aligned_scan_converges_immediately():
    cloud = np.vstack([_plane_x(), _plane_y(), _plane_z()])
    transform, converged = _step(LMState(), np.zeros(6), cloud, 0)
    assert converged
    assert np.allclose(transform, 0.0, atol=1e-9)


def test_single_plane_is_degenerate():
    cloud = _plane_x()
    state = LMState()
    transform, _ = _step(state, np.array([0.0, 0.0, 0.0, 0.1, 0.0, 0.0]), cloud, 0)
    assert state.degenerate is True
    assert abs(transform[3]) < 0.01
    assert abs(transform[4]) < 1e-9 and abs(transform[5]) < 1e-9


def test_too_few_points_leaves_transform():
    state = LMState()
    transform = np.array([0.1, 0.2, 0.3, 1.0, 2.0, 3.0])
    points = np.ones((10, 4))
    result, converged = lm_step(state, transform, points, points, 0)
    assert converged is False
    assert np.array_equal(result, transform)
    assert state.degenerate is False


def test_mismatched_lengths_raise():
    with pytest.raises(ValueError):
        lm_step(LMState(), np.zeros(6), np.ones((60, 4)), np.ones((59, 4)), 0)
    with pytest.raises(ValueError):
        lm_step(LMState(), np.zeros(5), np.ones((60, 4)), np.ones((60, 4)), 0)


@pytest.mark.parametrize("value, limit, expected", [(5.0, 2.0, 2.0), (-5.0, 2.0, -2.0),
                                                    (1.0, 2.0, 1.0)])
def test_constrain(value, limit, expected):
    assert constrain(value, limit) == expected