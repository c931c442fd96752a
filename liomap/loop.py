"""Detection of loop closures between key frames."""

from __future__ import annotations

import math
import threading
from collections import deque
from typing import Deque, Dict, List, Optional, Sequence, Tuple

import numpy as np
from scipy.spatial import cKDTree

from .cloud import empty_cloud, voxel_downsample
from .messages import Pose6D
from .transforms import transform_cloud_by_pose

_LOOP_INFO_LIMIT = 5


def _round_index(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _radius_search(points: np.ndarray, center: np.ndarray, radius: float) -> List[int]:
    """Indices of points within radius of center, nearest first."""
    tree = cKDTree(points)
    found = tree.query_ball_point(center, radius)
    distances = np.linalg.norm(points[found] - center, axis=1) if found else []
    return [i for _, i in sorted(zip(distances, found))]


class LoopClosure:
    """Finds pairs of key frames that revisit the same place.

    ``loop_index_container`` maps the newer key of each accepted loop to the
    older one.
    """

    def __init__(self, params) -> None:
        self.search_radius = float(params.history_keyframe_search_radius)
        self.search_time_diff = float(params.history_keyframe_search_time_diff)
        self.search_num = int(params.history_keyframe_search_num)
        self.fitness_score = float(params.history_keyframe_fitness_score)
        self.leaf_size = float(params.mapping_surf_leaf_size)
        self.loop_index_container: Dict[int, int] = {}
        self.loop_info: Deque[Tuple[float, float]] = deque()
        self._lock = threading.Lock()

    def add_loop_info(self, data: Sequence[float]) -> bool:
        """Queue an external loop hint of (current time, previous time); keeps the latest five."""
        if len(data) != 2:
            return False
        with self._lock:
            self.loop_info.append((float(data[0]), float(data[1])))
            while len(self.loop_info) > _LOOP_INFO_LIMIT:
                self.loop_info.popleft()
        return True

    def detect_external(self, poses6d: Sequence[Pose6D]) -> Optional[Tuple[int, int]]:
        """Keys (current, previous) from the oldest external hint, or None."""
        with self._lock:
            if not self.loop_info:
                return None
            time_cur, time_pre = self.loop_info.popleft()

        if abs(time_cur - time_pre) < self.search_time_diff:
            return None
        size = len(poses6d)
        if size < 2:
            return None

        key_cur = size - 1
        for pose in reversed(poses6d):
            if pose.time >= time_cur:
                key_cur = _round_index(pose.intensity)
            else:
                break

        key_pre = 0
        for pose in poses6d:
            if pose.time <= time_pre:
                key_pre = _round_index(pose.intensity)
            else:
                break

        if key_cur == key_pre or key_cur in self.loop_index_container:
            return None
        return key_cur, key_pre

    def detect_by_distance(self, poses3d, poses6d: Sequence[Pose6D],
                           current_time: float) -> Optional[Tuple[int, int]]:
        """Keys (latest, nearest old enough in time) of a loop found by position, or None."""
        points = np.asarray(poses3d, dtype=np.float64)
        if len(points) == 0:
            return None
        if points.ndim != 2 or points.shape[1] < 3:
            raise ValueError("key poses must be an array of shape (N, 3+)")
        key_cur = len(points) - 1
        if key_cur in self.loop_index_container:
            return None

        xyz = points[:, :3]
        key_pre = None
        for index in _radius_search(xyz, xyz[-1], self.search_radius):
            if abs(poses6d[index].time - current_time) > self.search_time_diff:
                key_pre = index
                break

        if key_pre is None or key_pre == key_cur:
            return None
        return key_cur, key_pre

    def near_keyframes(self, key: int, search_num: int, corner_frames, surf_frames,
                       poses6d: Sequence[Pose6D]) -> np.ndarray:
        """Key frames within search_num of key, moved into the map and downsampled."""
        parts = []
        size = len(poses6d)
        for near in range(key - search_num, key + search_num + 1):
            if near < 0 or near >= size:
                continue
            parts.append(transform_cloud_by_pose(corner_frames[near], poses6d[near]))
            parts.append(transform_cloud_by_pose(surf_frames[near], poses6d[near]))
        parts = [p for p in parts if len(p)]
        if not parts:
            return empty_cloud()
        return voxel_downsample(np.vstack(parts), self.leaf_size)

    def markers(self, poses6d: Sequence[Pose6D]) -> List[dict]:
        """Node and edge markers for every accepted loop; empty when there is none."""
        if not self.loop_index_container:
            return []
        points = []
        for key_cur in sorted(self.loop_index_container):
            key_pre = self.loop_index_container[key_cur]
            for key in (key_cur, key_pre):
                pose = poses6d[key]
                points.append((pose.x, pose.y, pose.z))
        nodes = {
            "ns": "loop_nodes", "id": 0, "type": "SPHERE_LIST",
            "scale": (0.3, 0.3, 0.3), "color": (0.0, 0.8, 1.0, 1.0),
            "points": list(points),
        }
        edges = {
            "ns": "loop_edges", "id": 1, "type": "LINE_LIST",
            "scale": (0.1, 0.0, 0.0), "color": (0.9, 0.9, 0.0, 1.0),
            "points": list(points),
        }
        return [nodes, edges]