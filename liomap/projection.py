"""Range-image projection and deskewing of solid-state lidar scans."""

from __future__ import annotations

import threading
from collections import deque
from dataclasses import replace
from typing import Deque, List, Optional

import numpy as np

from .deskew import ImuRotation, odom_deskew_info
from .geometry import get_transformation, point_distance
from .messages import CloudInfo, CustomMsg, Header, Imu, Odometry
from .params import Params, SensorType
from .rangeimage import RangeImage, column_from_angle

X, Y, Z, INTENSITY, TIME, RING, TAG = range(7)
_CLOUD_QUEUE_DELAY = 2


def custom_msg_to_points(msg: CustomMsg) -> np.ndarray:
    """Points of a packet as rows of x, y, z, intensity, time, ring and tag.

    The time is the offset from the packet stamp in seconds. The last point
    of the packet is not converted.
    """
    count = msg.point_num if msg.point_num is not None else len(msg.points)
    if count < 2:
        raise ValueError("lidar packet holds no usable points")
    if count > len(msg.points):
        raise ValueError(f"packet claims {count} points but holds {len(msg.points)}")
    rows: List[List[float]] = [
        [p.x, p.y, p.z, float(p.reflectivity), p.offset_time * 1e-9, float(p.line), float(p.tag)]
        for p in msg.points[:count - 1]
    ]
    return np.array(rows, dtype=np.float64)


class ImageProjection:
    """Buffers IMU, odometry and lidar messages and turns scans into deskewed cloud info.

    A scan is processed once two newer scans have arrived behind it, so that
    IMU data covering it is likely to be present.
    """

    def __init__(self, params: Params) -> None:
        self.params = params
        self._lock = threading.Lock()
        self.imu_queue: Deque[Imu] = deque()
        self.odom_queue: Deque[Odometry] = deque()
        self.cloud_queue: Deque[CustomMsg] = deque()
        self.info = CloudInfo()
        self.header = Header()
        self.time_scan_cur = 0.0
        self.time_scan_end = 0.0
        self.odom_deskew = False
        self.odom_increment = (0.0, 0.0, 0.0)
        self._reset()

    def _reset(self) -> None:
        self.range_image = RangeImage(self.params.n_scan, self.params.horizon_scan)
        self.imu_rotation = ImuRotation()
        self._first_point = True
        self._trans_start_inverse = np.eye(4)
        self._column_counts = [0] * self.params.n_scan
        self.odom_deskew = False

    def add_imu(self, imu: Imu) -> None:
        """Queue an IMU reading, converted into the lidar frame."""
        converted = self.params.imu_converter(imu)
        with self._lock:
            self.imu_queue.append(converted)

    def add_odometry(self, odom: Odometry) -> None:
        """Queue an incremental odometry estimate."""
        with self._lock:
            self.odom_queue.append(odom)

    def add_cloud(self, msg: CustomMsg) -> Optional[CloudInfo]:
        """Queue a scan; return the deskewed info of the oldest scan when it can be processed."""
        self.cloud_queue.append(msg)
        if len(self.cloud_queue) <= _CLOUD_QUEUE_DELAY:
            return None
        current = self.cloud_queue.popleft()
        if self.params.sensor is not SensorType.LIVOX:
            raise ValueError(f"Unknown sensor type: {self.params.sensor.value}")
        points = custom_msg_to_points(current)

        self.header = replace(current.header)
        self.time_scan_cur = self.header.seconds()
        self.time_scan_end = self.time_scan_cur + float(points[-1, TIME])

        if not self._deskew_info():
            return None

        self._project(points)
        cloud = self.range_image.extract(self.info)
        self.info.header = replace(self.header)
        self.info.cloud_deskewed = cloud
        result = self.info.copy()
        self._reset()
        return result

    def _deskew_info(self) -> bool:
        with self._lock:
            queue = self.imu_queue
            if (not queue or queue[0].header.seconds() > self.time_scan_cur
                    or queue[-1].header.seconds() < self.time_scan_end):
                return False

            self.info.imu_available = self.imu_rotation.integrate(
                queue, self.time_scan_cur, self.time_scan_end)
            if self.imu_rotation.initial_rpy is not None:
                (self.info.imu_roll_init, self.info.imu_pitch_init,
                 self.info.imu_yaw_init) = self.imu_rotation.initial_rpy

            guess = odom_deskew_info(self.odom_queue, self.time_scan_cur, self.time_scan_end)
            self.info.odom_available = guess is not None
            self.odom_deskew = False
            if guess is not None:
                self.info.initial_guess_x = guess.x
                self.info.initial_guess_y = guess.y
                self.info.initial_guess_z = guess.z
                self.info.initial_guess_roll = guess.roll
                self.info.initial_guess_pitch = guess.pitch
                self.info.initial_guess_yaw = guess.yaw
                self.odom_deskew = guess.deskew
                self.odom_increment = guess.increment
        return True

    def _column(self, x: float, y: float, row: int) -> int:
        sensor = self.params.sensor
        if sensor in (SensorType.VELODYNE, SensorType.OUSTER):
            return column_from_angle(x, y, self.params.horizon_scan)
        if sensor is SensorType.LIVOX:
            column = self._column_counts[row]
            self._column_counts[row] += 1
            return column
        return -1

    def _project(self, points: np.ndarray) -> None:
        p = self.params
        for x, y, z, intensity, rel_time, ring, _tag in points:
            distance = point_distance((x, y, z))
            if distance < p.lidar_min_range or distance > p.lidar_max_range:
                continue
            row = int(ring)
            if row < 0 or row >= p.n_scan:
                continue
            if row % p.downsample_rate != 0:
                continue
            column = self._column(x, y, row)
            if column < 0 or column >= p.horizon_scan:
                continue
            if (row, column) in self.range_image:
                continue
            deskewed = self.deskew_point((x, y, z, intensity), rel_time)
            self.range_image.place(row, column, distance, deskewed)

    def deskew_point(self, point, rel_time: float) -> np.ndarray:
        """Move a point taken rel_time after the scan start into the scan-start frame."""
        p = np.asarray(point, dtype=np.float64)
        if p.shape != (4,):
            raise ValueError("point must hold x, y, z and intensity")
        if not self.info.imu_available:
            return p.copy()

        rot_x, rot_y, rot_z = self.imu_rotation.find_rotation(self.time_scan_cur + rel_time)
        final = get_transformation(0.0, 0.0, 0.0, rot_x, rot_y, rot_z)
        if self._first_point:
            self._trans_start_inverse = np.linalg.inv(final)
            self._first_point = False
        between = self._trans_start_inverse @ final
        xyz = between[:3, :3] @ p[:3] + between[:3, 3]
        return np.array([xyz[0], xyz[1], xyz[2], p[3]])