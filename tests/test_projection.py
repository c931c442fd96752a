import numpy as np
import pytest

from liomap.messages import CustomMsg, CustomPoint, Header, Imu, Odometry
from liomap.params import Params
from liomap.projection import ImageProjection, custom_msg_to_points


def make_params(**overrides):
    values = dict(sensor="livox", n_scan=4, horizon_scan=16,
                  lidar_min_range=0.5, lidar_max_range=100.0)
    values.update(overrides)
    return Params(**values)


def make_msg(sec, points):
    raw = [CustomPoint(offset_time=t, x=x, y=y, z=z, reflectivity=r, line=line)
           for (t, x, y, z, r, line) in points]
    raw.append(CustomPoint(offset_time=0, x=9.0, y=9.0, z=9.0, reflectivity=1, line=0))
    return CustomMsg(header=Header(sec=sec), points=raw)


SCAN_POINTS = [
    (0, 2.0, 0.0, 0.0, 10, 0),
    (20_000_000, 0.0, 2.0, 0.0, 20, 0),
    (40_000_000, 3.0, 0.0, 0.0, 30, 1),
]


def feed_imu(projection, wz=0.0):
    stamps = [(9, 500_000_000), (10, 0), (10, 50_000_000), (10, 100_000_000), (10, 200_000_000)]
    for sec, nanosec in stamps:
        projection.add_imu(Imu(header=Header(sec=sec, nanosec=nanosec),
                               angular_velocity=(0.0, 0.0, wz)))


def run_scan(projection, points=SCAN_POINTS):
    assert projection.add_cloud(make_msg(10, points)) is None
    assert projection.add_cloud(make_msg(11, points)) is None
    return projection.add_cloud(make_msg(12, points))


def test_custom_msg_drops_last_point():
    msg = make_msg(1, SCAN_POINTS)
    points = custom_msg_to_points(msg)
    assert points.shape == (3, 7)
    assert points[1, 4] == pytest.approx(0.02)
    assert list(points[:, 5]) == [0.0, 0.0, 1.0]
    assert list(points[:, 3]) == [10.0, 20.0, 30.0]


def test_custom_msg_without_points_raises():
    with pytest.raises(ValueError):
        custom_msg_to_points(CustomMsg(header=Header(sec=1), points=[]))


def test_scan_without_imu_waits():
    projection = ImageProjection(make_params())
    assert run_scan(projection) is None


def test_non_livox_sensor_rejected():
    projection = ImageProjection(make_params(sensor="ouster"))
    projection.add_cloud(make_msg(10, SCAN_POINTS))
    projection.add_cloud(make_msg(11, SCAN_POINTS))
    with pytest.raises(ValueError):
        projection.add_cloud(make_msg(12, SCAN_POINTS))


def test_static_scan_keeps_points():
    projection = ImageProjection(make_params())
    feed_imu(projection)
    info = run_scan(projection)
    assert info.imu_available is True
    assert info.header.sec == 10
    expected = np.array([[2.0, 0.0, 0.0, 10.0], [0.0, 2.0, 0.0, 20.0], [3.0, 0.0, 0.0, 30.0]])
    assert np.allclose(info.cloud_deskewed, expected)
    assert info.point_col_ind == [0, 1, 0]
    assert info.point_range == pytest.approx([2.0, 2.0, 3.0])
    assert info.start_ring_index[0] == 4


def test_rotating_scan_preserves_ranges():
    projection = ImageProjection(make_params())
    feed_imu(projection, wz=1.0)
    info = run_scan(projection)
    cloud = info.cloud_deskewed
    assert np.allclose(cloud[0], [2.0, 0.0, 0.0, 10.0])
    assert not np.allclose(cloud[1, :3], [0.0, 2.0, 0.0])
    assert np.allclose(np.linalg.norm(cloud[:, :3], axis=1), [2.0, 2.0, 3.0])


def test_points_out_of_range_are_skipped():
    projection = ImageProjection(make_params())
    feed_imu(projection)
    points = [(0, 0.1, 0.0, 0.0, 5, 0), (10_000_000, 2.0, 0.0, 0.0, 6, 0)]
    info = run_scan(projection, points)
    assert len(info.cloud_deskewed) == 1
    assert info.point_col_ind == [0]
    assert info.cloud_deskewed[0, 3] == 6.0


def test_odometry_gives_initial_guess():
    projection = ImageProjection(make_params())
    feed_imu(projection)
    projection.add_odometry(Odometry(header=Header(sec=10), position=(1.0, 2.0, 3.0)))
    info = run_scan(projection)
    assert info.odom_available is True
    assert info.initial_guess_x == pytest.approx(1.0)
    assert info.initial_guess_z == pytest.approx(3.0)


def test_deskew_point_without_imu_is_identity():
    projection = ImageProjection(make_params())
    out = projection.deskew_point((1.0, 2.0, 3.0, 4.0), 0.05)
    assert np.allclose(out, [1.0, 2.0, 3.0, 4.0])