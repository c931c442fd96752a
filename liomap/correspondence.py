"""Point-to-line and point-to-plane correspondences between a scan and the local map."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np
from scipy.spatial import cKDTree

_NEIGHBORS = 5
_MAX_SQUARED_DISTANCE = 1.0
_MIN_WEIGHT = 0.1
_PLANE_TOLERANCE = 0.2


def _empty() -> Tuple[np.ndarray, np.ndarray]:
    return np.zeros((0, 4), dtype=np.float64), np.zeros((0, 4), dtype=np.float64)


def _prepare(points, matrix, map_points, tree: Optional[cKDTree]):
    pts = np.asarray(points, dtype=np.float64)
    if pts.ndim != 2 or pts.shape[1] < 4:
        raise ValueError("points must be an array of shape (N, 4)")
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError("transform must be a 4x4 matrix")
    cloud = np.asarray(map_points, dtype=np.float64)
    if cloud.size and (cloud.ndim != 2 or cloud.shape[1] < 3):
        raise ValueError("map points must be an array of shape (N, 3+)")
    if len(pts) == 0 or len(cloud) < _NEIGHBORS:
        return None
    if tree is None:
        tree = cKDTree(cloud[:, :3])
    selected = pts[:, :3] @ m[:3, :3].T + m[:3, 3]
    distances, indices = tree.query(selected, k=_NEIGHBORS)
    valid = distances[:, -1] ** 2 < _MAX_SQUARED_DISTANCE
    return pts[valid], selected[valid], cloud[indices[valid], :3]


def corner_coefficients(points, matrix, map_points,
                        tree: Optional[cKDTree] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Match edge points to lines fitted through their nearest map edge points.

    Returns the original points that found a line and, for each, the weighted
    gradient of its distance to the line together with the weighted distance.
    """
    prepared = _prepare(points, matrix, map_points, tree)
    if prepared is None:
        return _empty()
    originals, selected, neighbors = prepared
    if len(originals) == 0:
        return _empty()

    center = neighbors.mean(axis=1)
    centered = neighbors - center[:, None, :]
    covariance = np.einsum("nki,nkj->nij", centered, centered) / _NEIGHBORS
    eigenvalues, eigenvectors = np.linalg.eigh(covariance)
    linear = eigenvalues[:, 2] > 3.0 * eigenvalues[:, 1]
    originals = originals[linear]
    direction = eigenvectors[linear, :, 2]
    center = center[linear]
    p0 = selected[linear]
    if len(p0) == 0:
        return _empty()

    x0, y0, z0 = p0[:, 0], p0[:, 1], p0[:, 2]
    p1 = center + 0.1 * direction
    p2 = center - 0.1 * direction
    x1, y1, z1 = p1[:, 0], p1[:, 1], p1[:, 2]
    x2, y2, z2 = p2[:, 0], p2[:, 1], p2[:, 2]

    cross_xy = (x0 - x1) * (y0 - y2) - (x0 - x2) * (y0 - y1)
    cross_xz = (x0 - x1) * (z0 - z2) - (x0 - x2) * (z0 - z1)
    cross_yz = (y0 - y1) * (z0 - z2) - (y0 - y2) * (z0 - z1)

    with np.errstate(divide="ignore", invalid="ignore"):
        a012 = np.sqrt(cross_xy ** 2 + cross_xz ** 2 + cross_yz ** 2)
        l12 = np.sqrt((x1 - x2) ** 2 + (y1 - y2) ** 2 + (z1 - z2) ** 2)
        la = ((y1 - y2) * cross_xy + (z1 - z2) * cross_xz) / a012 / l12
        lb = -((x1 - x2) * cross_xy - (z1 - z2) * cross_yz) / a012 / l12
        lc = -((x1 - x2) * cross_xz + (y1 - y2) * cross_yz) / a012 / l12
        ld2 = a012 / l12
        s = 1.0 - 0.9 * np.abs(ld2)
        coefficients = np.column_stack([s * la, s * lb, s * lc, s * ld2])

    keep = np.isfinite(coefficients).all(axis=1) & (s > _MIN_WEIGHT)
    return originals[keep].copy(), coefficients[keep]


def surf_coefficients(points, matrix, map_points,
                      tree: Optional[cKDTree] = None) -> Tuple[np.ndarray, np.ndarray]:
    """Match planar points to planes fitted through their nearest map planar points.

    Returns the original points that found a plane and, for each, the weighted
    plane normal together with the weighted signed distance.
    """
    prepared = _prepare(points, matrix, map_points, tree)
    if prepared is None:
        return _empty()
    originals, selected, neighbors = prepared
    if len(originals) == 0:
        return _empty()

    rhs = -np.ones((len(neighbors), _NEIGHBORS, 1))
    solution = (np.linalg.pinv(neighbors) @ rhs)[:, :, 0]

    with np.errstate(divide="ignore", invalid="ignore"):
        scale = np.linalg.norm(solution, axis=1)
        normal = solution / scale[:, None]
        offset = 1.0 / scale
        fit = np.abs(np.einsum("nkj,nj->nk", neighbors, normal) + offset[:, None])
        plane_valid = (fit <= _PLANE_TOLERANCE).all(axis=1)

        distance = np.einsum("nj,nj->n", normal, selected) + offset
        reach = np.sqrt(np.linalg.norm(originals[:, :3], axis=1))
        s = 1.0 - 0.9 * np.abs(distance) / reach
        coefficients = np.column_stack([s[:, None] * normal, s * distance])

    keep = (plane_valid & np.isfinite(coefficients).all(axis=1) & (s > _MIN_WEIGHT))
    return originals[keep].copy(), coefficients[keep]