import math

import numpy as np
import pytest

from liomap.messages import CloudInfo
from liomap.rangeimage import RangeImage, column_from_angle

H = 512


def _xy(theta_deg):
    t = math.radians(theta_deg)
    return math.sin(t), math.cos(t)


def test_columns_stay_in_range():
    for k in range(0, 360, 7):
        x, y = _xy(k - 180 + 0.3)
        assert 0 <= column_from_angle(x, y, H) < H


def test_adjacent_angles_step_one_column():
    res = 360.0 / H
    for k in (-200, -3, 0, 50, 170):
        a = column_from_angle(*_xy(k * res + res / 4), H)
        b = column_from_angle(*_xy((k + 1) * res + res / 4), H)
        assert (a - b) % H == 1


def test_place_first_point_wins():
    image = RangeImage(2, 8)
    assert image.place(1, 3, 5.0, [1, 2, 3, 0.5]) is True
    assert image.place(1, 3, 9.0, [7, 7, 7, 7]) is False
    assert (1, 3) in image
    assert (0, 3) not in image
    assert image.ranges[1, 3] == 5.0
    assert list(image.points[3 + 8]) == [1, 2, 3, 0.5]


def test_place_outside_raises():
    image = RangeImage(2, 8)
    with pytest.raises(IndexError):
        image.place(2, 0, 1.0, [0, 0, 0, 0])
    with pytest.raises(IndexError):
        image.place(0, -1, 1.0, [0, 0, 0, 0])


def test_bad_dimensions_raise():
    with pytest.raises(ValueError):
        RangeImage(0, 8)


def test_extract_orders_row_major():
    image = RangeImage(2, 8)
    image.place(0, 3, 3.0, [3, 0, 0, 0])
    image.place(0, 1, 1.0, [1, 0, 0, 0])
    image.place(1, 2, 2.0, [2, 0, 0, 0])
    info = CloudInfo()
    cloud = image.extract(info)
    assert list(cloud[:, 0]) == [1.0, 3.0, 2.0]
    assert info.point_col_ind == [1, 3, 2]
    assert info.point_range == [1.0, 3.0, 2.0]
    assert info.start_ring_index[0] == 4
    counts = [2, 1]
    for start, end, n in zip(info.start_ring_index, info.end_ring_index, counts):
        assert end - start == n - 10
    assert info.start_ring_index[1] - info.start_ring_index[0] == counts[0]


def test_extract_empty_image():
    info = CloudInfo()
    cloud = RangeImage(3, 4).extract(info)
    assert cloud.shape == (0, 4)
    assert info.point_range == []
    assert len(info.start_ring_index) == 3
    assert np.all(np.array(info.end_ring_index) - np.array(info.start_ring_index) == -10)