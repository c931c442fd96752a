"""Point clouds as (N, 4) arrays of x, y, z and intensity."""

from __future__ import annotations

import numpy as np

_MAX_VOXELS = 2**31 - 1


def empty_cloud() -> np.ndarray:
    """A cloud with no points."""
    return np.zeros((0, 4), dtype=np.float64)


def voxel_downsample(points, leaf_size: float) -> np.ndarray:
    """Replace the points in each cubic voxel by their centroid.

    Every column, intensity included, is averaged. Points with non-finite
    coordinates are dropped. Output voxels are ordered by their linear grid
    index, x varying fastest. If the grid would be too large to index, the
    finite input points are returned unchanged.
    """
    cloud = np.asarray(points, dtype=np.float64)
    if cloud.ndim != 2 or cloud.shape[1] < 3:
        raise ValueError("points must be an array of shape (N, 3+)")
    if not leaf_size > 0:
        raise ValueError("leaf size must be positive")
    cloud = cloud[np.isfinite(cloud[:, :3]).all(axis=1)]
    if len(cloud) == 0:
        return cloud.copy()

    cells = np.floor(cloud[:, :3] * (1.0 / leaf_size)).astype(np.int64)
    low = cells.min(axis=0)
    dims = cells.max(axis=0) - low + 1
    dx, dy, dz = (int(d) for d in dims)
    if dx * dy * dz > _MAX_VOXELS:
        return cloud.copy()

    rel = cells - low
    index = rel[:, 0] + rel[:, 1] * dx + rel[:, 2] * dx * dy
    _, inverse, counts = np.unique(index, return_inverse=True, return_counts=True)
    inverse = inverse.reshape(-1)
    sums = np.zeros((len(counts), cloud.shape[1]), dtype=np.float64)
    np.add.at(sums, inverse, cloud)
    return sums / counts[:, None]