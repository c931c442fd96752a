"""IMU rotation integration and odometry hints used to deskew a scan."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, MutableSequence, Optional, Tuple

import numpy as np

from .geometry import get_transformation, rpy_from_quaternion, translation_and_euler
from .messages import Imu, Odometry

_QUEUE_MARGIN = 0.01


def _c_round(value: float) -> int:
    """Round half away from zero."""
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def _drop_older(queue: MutableSequence, limit: float) -> None:
    while queue and queue[0].header.seconds() < limit:
        del queue[0]


class ImuRotation:
    """Rotation integrated from gyroscope readings over one scan.

    After integrate(), ``available`` tells whether enough readings covered
    the scan and ``initial_rpy`` holds the attitude of the last reading at or
    before the scan start, or None if there was none.
    """

    def __init__(self) -> None:
        self.times: List[float] = [0.0]
        self.rotations: List[Tuple[float, float, float]] = [(0.0, 0.0, 0.0)]
        self.pointer = 0
        self.available = False
        self.initial_rpy: Optional[Tuple[float, float, float]] = None

    def integrate(self, imu_messages: MutableSequence[Imu],
                  scan_start: float, scan_end: float) -> bool:
        """Integrate readings over the scan; readings well before it are removed from the queue."""
        self.__init__()
        _drop_older(imu_messages, scan_start - _QUEUE_MARGIN)
        if not imu_messages:
            return False

        times: List[float] = []
        rotations: List[Tuple[float, float, float]] = []
        for msg in list(imu_messages):
            t = msg.header.seconds()
            if t <= scan_start:
                self.initial_rpy = rpy_from_quaternion(msg.orientation)
            if t > scan_end + _QUEUE_MARGIN:
                break
            if not times:
                times.append(t)
                rotations.append((0.0, 0.0, 0.0))
                continue
            dt = t - times[-1]
            wx, wy, wz = msg.angular_velocity
            rx, ry, rz = rotations[-1]
            rotations.append((rx + wx * dt, ry + wy * dt, rz + wz * dt))
            times.append(t)

        if times:
            self.times = times
            self.rotations = rotations
        self.pointer = len(times) - 1
        self.available = self.pointer > 0
        return self.available

    def find_rotation(self, point_time: float) -> Tuple[float, float, float]:
        """Integrated rotation at a time, interpolated between readings."""
        front = 0
        while front < self.pointer:
            if point_time < self.times[front]:
                break
            front += 1
        if point_time > self.times[front] or front == 0:
            return self.rotations[front]
        back = front - 1
        span = self.times[front] - self.times[back]
        ratio_front = (point_time - self.times[back]) / span
        ratio_back = (self.times[front] - point_time) / span
        return tuple(
            f * ratio_front + b * ratio_back
            for f, b in zip(self.rotations[front], self.rotations[back])
        )


@dataclass
class OdomGuess:
    """Pose at the scan start and, when ``deskew`` is set, the translation over the scan."""

    x: float
    y: float
    z: float
    roll: float
    pitch: float
    yaw: float
    deskew: bool = False
    increment: Tuple[float, float, float] = (0.0, 0.0, 0.0)


def _first_at_or_after(queue, t: float) -> Odometry:
    chosen = queue[0]
    for msg in queue:
        chosen = msg
        if msg.header.seconds() >= t:
            break
    return chosen


def odom_deskew_info(odom_queue: MutableSequence[Odometry],
                     scan_start: float, scan_end: float) -> Optional[OdomGuess]:
    """Initial pose guess from odometry, or None if none covers the scan start.

    Messages well before the scan are removed from the queue.
    """
    _drop_older(odom_queue, scan_start - _QUEUE_MARGIN)
    if not odom_queue:
        return None
    if odom_queue[0].header.seconds() > scan_start:
        return None

    start_msg = _first_at_or_after(odom_queue, scan_start)
    roll, pitch, yaw = rpy_from_quaternion(start_msg.orientation)
    sx, sy, sz = start_msg.position
    guess = OdomGuess(sx, sy, sz, roll, pitch, yaw)

    if odom_queue[-1].header.seconds() < scan_end:
        return guess

    end_msg = _first_at_or_after(odom_queue, scan_end)
    if _c_round(start_msg.covariance[0]) != _c_round(end_msg.covariance[0]):
        return guess

    begin = get_transformation(sx, sy, sz, roll, pitch, yaw)
    er, ep, ey = rpy_from_quaternion(end_msg.orientation)
    ex, ey_, ez = end_msg.position
    end = get_transformation(ex, ey_, ez, er, ep, ey)
    between = np.linalg.inv(begin) @ end
    ix, iy, iz, _, _, _ = translation_and_euler(between)
    guess.deskew = True
    guess.increment = (ix, iy, iz)
    return guess