"""Incremental lidar odometry accumulated between mapping steps."""

from __future__ import annotations

from typing import Optional, Tuple

import numpy as np

from .geometry import (quaternion_from_rpy, quaternion_slerp, rpy_from_quaternion,
                       translation_and_euler)
from .transforms import vector_to_matrix

_INCREMENTAL_IMU_WEIGHT = 0.1
_PITCH_LIMIT = 1.4


def imu_weighted_attitude(roll: float, pitch: float, imu_roll: float, imu_pitch: float,
                          weight: float) -> Tuple[float, float]:
    """Roll and pitch pulled toward the IMU attitude by spherical interpolation."""
    rolled = quaternion_slerp(quaternion_from_rpy(roll, 0.0, 0.0),
                              quaternion_from_rpy(imu_roll, 0.0, 0.0), weight)
    new_roll = rpy_from_quaternion(rolled)[0]
    pitched = quaternion_slerp(quaternion_from_rpy(0.0, pitch, 0.0),
                               quaternion_from_rpy(0.0, imu_pitch, 0.0), weight)
    new_pitch = rpy_from_quaternion(pitched)[1]
    return float(new_roll), float(new_pitch)


class IncrementalOdometry:
    """Chains the per-scan registration increments into a smooth odometry.

    ``transform`` is the latest pose as [roll, pitch, yaw, x, y, z] and
    ``degenerate`` tells whether the last registration was degenerate.
    """

    def __init__(self) -> None:
        self.affine: Optional[np.ndarray] = None
        self.transform = np.zeros(6)
        self.degenerate = False

    def update(self, front, back, transform, info, degenerate: bool) -> np.ndarray:
        """Apply the increment from ``front`` to ``back`` and return the new pose.

        The first call starts the chain at ``transform``.
        """
        t = np.asarray(transform, dtype=np.float64)
        if t.shape != (6,):
            raise ValueError("transform must hold roll, pitch, yaw, x, y, z")
        if self.affine is None:
            self.affine = vector_to_matrix(t)
            self.transform = t.copy()
            self.degenerate = False
            return self.transform.copy()

        increment = np.linalg.inv(np.asarray(front, dtype=np.float64)) @ np.asarray(
            back, dtype=np.float64)
        self.affine = self.affine @ increment
        x, y, z, roll, pitch, yaw = translation_and_euler(self.affine)
        if info.imu_available and abs(info.imu_pitch_init) < _PITCH_LIMIT:
            roll, pitch = imu_weighted_attitude(roll, pitch, info.imu_roll_init,
                                                info.imu_pitch_init, _INCREMENTAL_IMU_WEIGHT)
        self.transform = np.array([roll, pitch, yaw, x, y, z], dtype=np.float64)
        self.degenerate = bool(degenerate)
        return self.transform.copy()