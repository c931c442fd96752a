import numpy as np
import pytest

from liomap.cloud import empty_cloud, voxel_downsample


def test_empty_cloud_shape():
    cloud = empty_cloud()
    assert cloud.shape == (0, 4)


def test_points_in_one_voxel_average_to_centroid():
    points = np.array([[0.1, 0.1, 0.1, 1.0], [0.3, 0.2, 0.4, 3.0], [0.9, 0.5, 0.6, 5.0]])
    result = voxel_downsample(points, 1.0)
    assert result.shape == (1, 4)
    assert np.allclose(result[0], points.mean(axis=0))


def test_separate_voxels_are_kept_and_ordered():
    points = np.array([[5.5, 0.0, 0.0, 0.0], [0.5, 0.0, 0.0, 1.0], [2.5, 0.0, 0.0, 2.0]])
    result = voxel_downsample(points, 1.0)
    assert result.shape == (3, 4)
    assert list(result[:, 0]) == sorted(points[:, 0])
    assert list(result[:, 3]) == [1.0, 2.0, 0.0]


def test_ordering_runs_x_fastest():
    points = np.array([[0.5, 1.5, 0.0, 0.0], [1.5, 0.5, 0.0, 1.0]])
    result = voxel_downsample(points, 1.0)
    assert list(result[:, 3]) == [1.0, 0.0]


def test_non_finite_points_dropped():
    points = np.array([[np.nan, 0.0, 0.0, 1.0], [0.5, 0.5, 0.5, 2.0]])
    result = voxel_downsample(points, 1.0)
    assert np.allclose(result, [[0.5, 0.5, 0.5, 2.0]])


def test_output_never_larger_than_input():
    rng = np.random.default_rng(3)
    points = rng.uniform(-5, 5, size=(500, 4))
    result = voxel_downsample(points, 0.8)
    assert 0 < len(result) <= len(points)
    assert result[:, :3].min() >= points[:, :3].min()
    assert result[:, :3].max() <= points[:, :3].max()


def test_oversized_grid_returns_input():
    points = np.array([[0.0, 0.0, 0.0, 1.0], [1e6, 1e6, 1e6, 2.0]])
    result = voxel_downsample(points, 0.001)
    assert np.array_equal(result, points)


def test_empty_input_stays_empty():
    assert voxel_downsample(empty_cloud(), 0.5).shape == (0, 4)


@pytest.mark.parametrize("leaf", [0.0, -1.0])
def test_non_positive_leaf_rejected(leaf):
    with pytest.raises(ValueError):
        voxel_downsample(np.zeros((1, 4)), leaf)


def test_bad_shape_rejected():
    with pytest.raises(ValueError):
        voxel_downsample(np.zeros((3, 2)), 1.0)