"""Gauss-Newton step of scan-to-map registration with degeneracy handling."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

_MIN_POINTS = 50
_EIGEN_THRESHOLD = 100.0
_CONVERGED = 0.05


@dataclass
class LMState:
    """Degeneracy found on the first iteration, kept for the later ones."""

    degenerate: bool = False
    projection: np.ndarray = field(default_factory=lambda: np.zeros((6, 6)))


def lm_step(state: LMState, transform, originals, coefficients,
            iteration: int) -> Tuple[np.ndarray, bool]:
    """One update of [roll, pitch, yaw, x, y, z]; returns the new transform and convergence.

    With fewer than fifty correspondences the transform is returned unchanged
    and not converged.
    """
    t = np.array(transform, dtype=np.float64)
    if t.shape != (6,):
        raise ValueError("transform must hold roll, pitch, yaw, x, y, z")
    pts = np.asarray(originals, dtype=np.float64)
    co = np.asarray(coefficients, dtype=np.float64)
    if pts.size == 0:
        pts = pts.reshape(0, 4)
    if co.size == 0:
        co = co.reshape(0, 4)
    if pts.ndim != 2 or pts.shape[1] < 3 or co.ndim != 2 or co.shape[1] < 4:
        raise ValueError("points need three columns and coefficients four")
    if len(pts) != len(co):
        raise ValueError("points and coefficients differ in length")
    if len(pts) < _MIN_POINTS:
        return t, False

    srx, crx = np.sin(t[1]), np.cos(t[1])
    sry, cry = np.sin(t[2]), np.cos(t[2])
    srz, crz = np.sin(t[0]), np.cos(t[0])

    # Axes are permuted into the camera convention the derivatives were written in.
    px, py, pz = pts[:, 1], pts[:, 2], pts[:, 0]
    cx, cy, cz = co[:, 1], co[:, 2], co[:, 0]

    arx = ((crx * sry * srz * px + crx * crz * sry * py - srx * sry * pz) * cx
           + (-srx * srz * px - crz * srx * py - crx * pz) * cy
           + (crx * cry * srz * px + crx * cry * crz * py - cry * srx * pz) * cz)
    ary = (((cry * srx * srz - crz * sry) * px
            + (sry * srz + cry * crz * srx) * py + crx * cry * pz) * cx
           + ((-cry * crz - srx * sry * srz) * px
              + (cry * srz - crz * srx * sry) * py - crx * sry * pz) * cz)
    arz = (((crz * srx * sry - cry * srz) * px + (-cry * crz - srx * sry * srz) * py) * cx
           + (crx * crz * px - crx * srz * py) * cy
           + ((sry * srz + cry * crz * srx) * px + (crz * sry - cry * srx * srz) * py) * cz)

    a = np.column_stack([arz, arx, ary, cz, cx, cy])
    b = -co[:, 3]
    ata = a.T @ a
    atb = a.T @ b
    x = np.linalg.lstsq(ata, atb, rcond=None)[0]

    if iteration == 0:
        values, vectors = np.linalg.eigh(ata)
        eigenvalues = values[::-1]
        rows = vectors[:, ::-1].T
        kept = rows.copy()
        state.degenerate = False
        for i in range(5, -1, -1):
            if eigenvalues[i] < _EIGEN_THRESHOLD:
                kept[i] = 0.0
                state.degenerate = True
            else:
                break
        state.projection = np.linalg.inv(rows) @ kept

    if state.degenerate:
        x = state.projection @ x

    t += x
    delta_r = float(np.linalg.norm(np.degrees(x[:3])))
    delta_t = float(np.linalg.norm(x[3:] * 100.0))
    return t, delta_r < _CONVERGED and delta_t < _CONVERGED


def constrain(value: float, limit: float) -> float:
    """Clamp a value into [-limit, limit]."""
    if value < -limit:
        value = -limit
    if value > limit:
        value = limit
    return value