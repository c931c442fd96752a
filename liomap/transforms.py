"""Applying rigid transforms and 6-DoF poses to point clouds."""

from __future__ import annotations

import numpy as np

from .geometry import get_transformation
from .messages import Pose6D


def transform_cloud(cloud, matrix) -> np.ndarray:
    """A copy of the cloud with x, y, z moved by a 4x4 transform; other columns kept."""
    points = np.asarray(cloud, dtype=np.float64)
    if points.ndim != 2 or points.shape[1] < 3:
        raise ValueError("cloud must be an array of shape (N, 3+)")
    m = np.asarray(matrix, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError("transform must be a 4x4 matrix")
    out = points.copy()
    out[:, :3] = points[:, :3] @ m[:3, :3].T + m[:3, 3]
    return out


def pose_to_matrix(pose: Pose6D) -> np.ndarray:
    """The 4x4 transform of a key pose."""
    return get_transformation(pose.x, pose.y, pose.z, pose.roll, pose.pitch, pose.yaw)


def transform_cloud_by_pose(cloud, pose: Pose6D) -> np.ndarray:
    """A copy of the cloud moved by a key pose."""
    return transform_cloud(cloud, pose_to_matrix(pose))


def _vector(transform) -> np.ndarray:
    values = np.asarray(transform, dtype=np.float64)
    if values.shape != (6,):
        raise ValueError("transform must hold roll, pitch, yaw, x, y, z")
    return values


def vector_to_matrix(transform) -> np.ndarray:
    """The 4x4 transform of [roll, pitch, yaw, x, y, z]."""
    roll, pitch, yaw, x, y, z = (float(v) for v in _vector(transform))
    return get_transformation(x, y, z, roll, pitch, yaw)


def vector_to_pose(transform, time: float = 0.0) -> Pose6D:
    """A key pose from [roll, pitch, yaw, x, y, z]."""
    roll, pitch, yaw, x, y, z = (float(v) for v in _vector(transform))
    return Pose6D(x=x, y=y, z=z, roll=roll, pitch=pitch, yaw=yaw, time=time)