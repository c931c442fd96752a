"""Assembling the global map from key frames and saving it as PCD files."""

from __future__ import annotations

import shutil
from pathlib import Path
from typing import Sequence

import numpy as np
from scipy.spatial import cKDTree

from .cloud import empty_cloud, voxel_downsample
from .geometry import point_distance
from .messages import Pose6D
from .pcd import POSE_FIELDS, write_pcd
from .transforms import transform_cloud_by_pose


def _stack(parts) -> np.ndarray:
    parts = [p for p in parts if len(p)]
    return np.vstack(parts) if parts else empty_cloud()


def _check_frames(poses6d, corner_frames, surf_frames, count: int) -> None:
    if len(poses6d) < count or len(corner_frames) < count or len(surf_frames) < count:
        raise ValueError("every key pose needs a 6-DoF pose and corner and surface frames")


def _pose_rows(poses6d: Sequence[Pose6D]) -> np.ndarray:
    rows = [[p.x, p.y, p.z, p.intensity, p.roll, p.pitch, p.yaw, p.time] for p in poses6d]
    return np.array(rows, dtype=np.float64).reshape(-1, len(POSE_FIELDS))


def save_map(directory, poses3d, poses6d: Sequence[Pose6D], corner_frames, surf_frames,
             resolution: float = 0.0) -> bool:
    """Replace ``directory`` with the trajectory, key poses and feature maps.

    With a non-zero resolution the corner and surface maps are downsampled;
    the global map always holds every point.
    """
    target = Path(directory)
    poses = np.asarray(poses3d, dtype=np.float64).reshape(-1, 4)
    _check_frames(poses6d, corner_frames, surf_frames, len(poses))

    shutil.rmtree(target, ignore_errors=True)
    target.mkdir(parents=True, exist_ok=True)

    write_pcd(target / "trajectory.pcd", poses)
    write_pcd(target / "transformations.pcd", _pose_rows(poses6d[:len(poses)]), POSE_FIELDS)

    corner = _stack(transform_cloud_by_pose(corner_frames[i], poses6d[i])
                    for i in range(len(poses)))
    surf = _stack(transform_cloud_by_pose(surf_frames[i], poses6d[i])
                  for i in range(len(poses)))

    if resolution != 0:
        write_pcd(target / "CornerMap.pcd",
                  voxel_downsample(corner, resolution) if len(corner) else corner)
        write_pcd(target / "SurfMap.pcd",
                  voxel_downsample(surf, resolution) if len(surf) else surf)
    else:
        write_pcd(target / "CornerMap.pcd", corner)
        write_pcd(target / "SurfMap.pcd", surf)

    write_pcd(target / "GlobalMap.pcd", _stack([corner, surf]))
    return True


def global_map(poses3d, poses6d: Sequence[Pose6D], corner_frames, surf_frames,
               params) -> np.ndarray:
    """A downsampled map of the key frames around the latest key pose, for display."""
    poses = np.asarray(poses3d, dtype=np.float64)
    if len(poses) == 0:
        return empty_cloud()
    if poses.ndim != 2 or poses.shape[1] < 4:
        raise ValueError("key poses must be an array of shape (N, 4)")
    _check_frames(poses6d, corner_frames, surf_frames, len(poses))

    radius = float(params.global_map_visualization_search_radius)
    density = float(params.global_map_visualization_pose_density)
    leaf = float(params.global_map_visualization_leaf_size)

    xyz = poses[:, :3]
    latest = poses[-1]
    tree = cKDTree(xyz)
    found = sorted(tree.query_ball_point(xyz[-1], radius))
    selected = np.array(voxel_downsample(poses[found], density), dtype=np.float64)
    if len(selected):
        _, nearest = tree.query(selected[:, :3], k=1)
        selected[:, 3] = poses[np.atleast_1d(nearest), 3]

    parts = []
    for key_pose in selected:
        if point_distance(key_pose, latest) > radius:
            continue
        key = int(key_pose[3])
        parts.append(transform_cloud_by_pose(corner_frames[key], poses6d[key]))
        parts.append(transform_cloud_by_pose(surf_frames[key], poses6d[key]))
    merged = _stack(parts)
    if len(merged) == 0:
        return merged
    return voxel_downsample(merged, leaf)