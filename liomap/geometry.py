"""Rigid transforms, Euler angles and quaternions."""

from __future__ import annotations

import math
from typing import Optional, Sequence, Tuple

import numpy as np

Quaternion = Tuple[float, float, float, float]


def get_transformation(x: float, y: float, z: float,
                       roll: float, pitch: float, yaw: float) -> np.ndarray:
    """A 4x4 transform with rotation Rz(yaw) Ry(pitch) Rx(roll) and the given translation."""
    cy, sy = math.cos(yaw), math.sin(yaw)
    cp, sp = math.cos(pitch), math.sin(pitch)
    cr, sr = math.cos(roll), math.sin(roll)
    matrix = np.eye(4)
    matrix[:3, :3] = [
        [cy * cp, cy * sp * sr - sy * cr, sy * sr + cy * sp * cr],
        [sy * cp, cy * cr + sy * sp * sr, sy * sp * cr - cy * sr],
        [-sp, cp * sr, cp * cr],
    ]
    matrix[:3, 3] = (x, y, z)
    return matrix


def translation_and_euler(matrix) -> Tuple[float, float, float, float, float, float]:
    """Split a 4x4 transform into (x, y, z, roll, pitch, yaw)."""
    m = np.asarray(matrix, dtype=np.float64)
    roll = math.atan2(m[2, 1], m[2, 2])
    pitch = math.asin(max(-1.0, min(1.0, -m[2, 0])))
    yaw = math.atan2(m[1, 0], m[0, 0])
    return float(m[0, 3]), float(m[1, 3]), float(m[2, 3]), roll, pitch, yaw


def quaternion_from_rpy(roll: float, pitch: float, yaw: float) -> Quaternion:
    """The quaternion (x, y, z, w) of fixed-axis roll, pitch and yaw."""
    hr, hp, hy = roll * 0.5, pitch * 0.5, yaw * 0.5
    cr, sr = math.cos(hr), math.sin(hr)
    cp, sp = math.cos(hp), math.sin(hp)
    cy, sy = math.cos(hy), math.sin(hy)
    return (
        sr * cp * cy - cr * sp * sy,
        cr * sp * cy + sr * cp * sy,
        cr * cp * sy - sr * sp * cy,
        cr * cp * cy + sr * sp * sy,
    )


def matrix_from_quaternion(quaternion: Sequence[float]) -> np.ndarray:
    """The 3x3 rotation matrix of a quaternion (x, y, z, w); it need not be unit length."""
    x, y, z, w = (float(v) for v in quaternion)
    d = x * x + y * y + z * z + w * w
    if d == 0.0:
        raise ValueError("zero-length quaternion")
    s = 2.0 / d
    xs, ys, zs = x * s, y * s, z * s
    wx, wy, wz = w * xs, w * ys, w * zs
    xx, xy, xz = x * xs, x * ys, x * zs
    yy, yz, zz = y * ys, y * zs, z * zs
    return np.array([
        [1.0 - (yy + zz), xy - wz, xz + wy],
        [xy + wz, 1.0 - (xx + zz), yz - wx],
        [xz - wy, yz + wx, 1.0 - (xx + yy)],
    ])


def rpy_from_quaternion(quaternion: Sequence[float]) -> Tuple[float, float, float]:
    """Roll, pitch and yaw of a quaternion (x, y, z, w)."""
    m = matrix_from_quaternion(quaternion)
    if abs(m[2, 0]) >= 1.0:
        yaw = 0.0
        if m[2, 0] < 0:
            return math.atan2(m[0, 1], m[0, 2]), math.pi / 2, yaw
        return math.atan2(-m[0, 1], -m[0, 2]), -math.pi / 2, yaw
    pitch = -math.asin(m[2, 0])
    cp = math.cos(pitch)
    roll = math.atan2(m[2, 1] / cp, m[2, 2] / cp)
    yaw = math.atan2(m[1, 0] / cp, m[0, 0] / cp)
    return roll, pitch, yaw


def quaternion_slerp(q0: Sequence[float], q1: Sequence[float], t: float) -> Quaternion:
    """Spherical interpolation from q0 (t=0) to q1 (t=1) along the shorter arc."""
    a = np.asarray(q0, dtype=np.float64)
    b = np.asarray(q1, dtype=np.float64)
    magnitude = math.sqrt(float(a @ a) * float(b @ b))
    product = float(a @ b) / magnitude
    if abs(product) >= 1.0:
        return tuple(float(v) for v in a)
    sign = -1.0 if product < 0 else 1.0
    theta = math.acos(sign * product)
    s1 = math.sin(sign * t * theta)
    d = 1.0 / math.sin(theta)
    s0 = math.sin((1.0 - t) * theta)
    return tuple(float(v) for v in (a * s0 + b * s1) * d)


def quaternion_from_matrix(matrix) -> Quaternion:
    """The quaternion (x, y, z, w) of a 3x3 rotation matrix."""
    m = np.asarray(matrix, dtype=np.float64)
    trace = m[0, 0] + m[1, 1] + m[2, 2]
    if trace > 0:
        t = math.sqrt(trace + 1.0)
        w = 0.5 * t
        t = 0.5 / t
        return (
            (m[2, 1] - m[1, 2]) * t,
            (m[0, 2] - m[2, 0]) * t,
            (m[1, 0] - m[0, 1]) * t,
            w,
        )
    i = 0
    if m[1, 1] > m[0, 0]:
        i = 1
    if m[2, 2] > m[i, i]:
        i = 2
    j = (i + 1) % 3
    k = (j + 1) % 3
    q = [0.0, 0.0, 0.0]
    t = math.sqrt(m[i, i] - m[j, j] - m[k, k] + 1.0)
    q[i] = 0.5 * t
    t = 0.5 / t
    w = (m[k, j] - m[j, k]) * t
    q[j] = (m[j, i] + m[i, j]) * t
    q[k] = (m[k, i] + m[i, k]) * t
    return q[0], q[1], q[2], w


def point_distance(p: Sequence[float], other: Optional[Sequence[float]] = None) -> float:
    """Distance of a point from the origin, or between two points."""
    a = np.asarray(p, dtype=np.float64)[:3]
    if other is not None:
        a = a - np.asarray(other, dtype=np.float64)[:3]
    return float(math.sqrt(float(a @ a)))