"""Projection of scan points into a ring-by-column range image."""

from __future__ import annotations

import math
from typing import Tuple

import numpy as np

from .messages import CloudInfo


def _c_round(value: float) -> int:
    return int(math.copysign(math.floor(abs(value) + 0.5), value))


def column_from_angle(x: float, y: float, horizon_scan: int) -> int:
    """Range-image column of a point from its horizontal angle."""
    angle = math.degrees(math.atan2(x, y))
    resolution = 360.0 / horizon_scan
    column = -_c_round((angle - 90.0) / resolution) + horizon_scan // 2
    if column >= horizon_scan:
        column -= horizon_scan
    return column


class RangeImage:
    """A grid of ranges with the point stored for each filled cell."""

    def __init__(self, n_scan: int, horizon_scan: int) -> None:
        if n_scan <= 0 or horizon_scan <= 0:
            raise ValueError("range image dimensions must be positive")
        self.n_scan = n_scan
        self.horizon_scan = horizon_scan
        self.ranges = np.full((n_scan, horizon_scan), np.inf, dtype=np.float64)
        self.points = np.zeros((n_scan * horizon_scan, 4), dtype=np.float64)

    def _inside(self, row: int, column: int) -> bool:
        return 0 <= row < self.n_scan and 0 <= column < self.horizon_scan

    def __contains__(self, cell: Tuple[int, int]) -> bool:
        row, column = cell
        return self._inside(row, column) and bool(np.isfinite(self.ranges[row, column]))

    def place(self, row: int, column: int, range_value: float, point) -> bool:
        """Fill a cell; a cell already filled keeps its first point and False is returned."""
        if not self._inside(row, column):
            raise IndexError(f"cell ({row}, {column}) outside the range image")
        if np.isfinite(self.ranges[row, column]):
            return False
        self.ranges[row, column] = range_value
        self.points[column + row * self.horizon_scan] = np.asarray(point, dtype=np.float64)[:4]
        return True

    def extract(self, info: CloudInfo) -> np.ndarray:
        """Fill the message's ring indices, columns and ranges; return the filled points in order."""
        starts, ends, columns, ranges, rows = [], [], [], [], []
        count = 0
        for row in range(self.n_scan):
            starts.append(count - 1 + 5)
            filled = np.flatnonzero(np.isfinite(self.ranges[row]))
            columns.extend(int(c) for c in filled)
            ranges.extend(float(r) for r in self.ranges[row, filled])
            rows.append(self.points[filled + row * self.horizon_scan])
            count += len(filled)
            ends.append(count - 1 - 5)
        info.start_ring_index = starts
        info.end_ring_index = ends
        info.point_col_ind = columns
        info.point_range = ranges
        return np.vstack(rows) if rows else np.zeros((0, 4), dtype=np.float64)