"""Message types exchanged between the odometry and mapping stages."""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

Vector3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]


def _no_points() -> np.ndarray:
    return np.zeros((0, 4), dtype=np.float64)


@dataclass
class Header:
    """Time stamp and coordinate frame of a message."""

    sec: int = 0
    nanosec: int = 0
    frame_id: str = ""

    def seconds(self) -> float:
        """The stamp as floating point seconds."""
        return (self.sec * 1_000_000_000 + self.nanosec) * 1e-9


@dataclass
class Imu:
    """An inertial measurement; the orientation quaternion is (x, y, z, w)."""

    header: Header = field(default_factory=Header)
    orientation: Quaternion = (0.0, 0.0, 0.0, 1.0)
    angular_velocity: Vector3 = (0.0, 0.0, 0.0)
    linear_acceleration: Vector3 = (0.0, 0.0, 0.0)


@dataclass
class Odometry:
    """A pose with covariance and a twist, as published by odometry sources."""

    header: Header = field(default_factory=Header)
    child_frame_id: str = ""
    position: Vector3 = (0.0, 0.0, 0.0)
    orientation: Quaternion = (0.0, 0.0, 0.0, 1.0)
    covariance: List[float] = field(default_factory=lambda: [0.0] * 36)
    linear_velocity: Vector3 = (0.0, 0.0, 0.0)
    angular_velocity: Vector3 = (0.0, 0.0, 0.0)


@dataclass
class CloudInfo:
    """A deskewed scan with its range-image bookkeeping and pose hints.

    Point clouds are arrays of shape (N, 4) holding x, y, z and intensity.
    """

    header: Header = field(default_factory=Header)
    start_ring_index: List[int] = field(default_factory=list)
    end_ring_index: List[int] = field(default_factory=list)
    point_col_ind: List[int] = field(default_factory=list)
    point_range: List[float] = field(default_factory=list)
    imu_available: bool = False
    odom_available: bool = False
    imu_roll_init: float = 0.0
    imu_pitch_init: float = 0.0
    imu_yaw_init: float = 0.0
    initial_guess_x: float = 0.0
    initial_guess_y: float = 0.0
    initial_guess_z: float = 0.0
    initial_guess_roll: float = 0.0
    initial_guess_pitch: float = 0.0
    initial_guess_yaw: float = 0.0
    cloud_deskewed: np.ndarray = field(default_factory=_no_points)
    cloud_corner: np.ndarray = field(default_factory=_no_points)
    cloud_surface: np.ndarray = field(default_factory=_no_points)

    def copy(self) -> "CloudInfo":
        """A deep copy sharing no lists or arrays with this message."""
        return copy.deepcopy(self)


@dataclass
class Pose6D:
    """A key pose; the intensity holds the key index."""

    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    intensity: float = 0.0
    roll: float = 0.0
    pitch: float = 0.0
    yaw: float = 0.0
    time: float = 0.0

    def as_vector(self) -> np.ndarray:
        """The pose as [roll, pitch, yaw, x, y, z]."""
        return np.array(
            [self.roll, self.pitch, self.yaw, self.x, self.y, self.z], dtype=np.float64
        )


@dataclass
class CustomPoint:
    """One point of a solid-state lidar packet; offset_time is in nanoseconds."""

    offset_time: int = 0
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0
    reflectivity: int = 0
    tag: int = 0
    line: int = 0


@dataclass
class CustomMsg:
    """A solid-state lidar packet."""

    header: Header = field(default_factory=Header)
    points: List[CustomPoint] = field(default_factory=list)
    point_num: Optional[int] = None

    def __post_init__(self) -> None:
        if self.point_num is None:
            self.point_num = len(self.points)