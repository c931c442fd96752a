import numpy as np

from liomap.messages import (
    CloudInfo,
    CustomMsg,
    CustomPoint,
    Header,
    Imu,
    Odometry,
    Pose6D,
)


def test_header_seconds_combines_sec_and_nanosec():
    header = Header(sec=10, nanosec=500_000_000, frame_id="odom")
    assert abs(header.seconds() - 10.5) < 1e-12


def test_header_seconds_default_is_zero():
    assert Header().seconds() == 0.0


def test_cloud_info_copy_is_independent():
    info = CloudInfo(point_range=[1.0, 2.0], start_ring_index=[4])
    info.cloud_corner = np.ones((2, 4))
    clone = info.copy()
    clone.point_range.append(3.0)
    clone.start_ring_index[0] = 9
    clone.cloud_corner[0, 0] = -1.0
    assert info.point_range == [1.0, 2.0]
    assert info.start_ring_index == [4]
    assert info.cloud_corner[0, 0] == 1.0


def test_cloud_info_copy_keeps_values():
    info = CloudInfo(imu_available=True, imu_roll_init=0.25)
    clone = info.copy()
    assert clone.imu_available is True
    assert clone.imu_roll_init == 0.25


def test_cloud_info_default_clouds_are_empty():
    info = CloudInfo()
    assert info.cloud_deskewed.shape == (0, 4)
    assert info.cloud_surface.shape == (0, 4)


def test_pose6d_vector_order():
    pose = Pose6D(x=1.0, y=2.0, z=3.0, roll=0.1, pitch=0.2, yaw=0.3)
    assert np.allclose(pose.as_vector(), [0.1, 0.2, 0.3, 1.0, 2.0, 3.0])


def test_custom_msg_point_num_defaults_to_length():
    msg = CustomMsg(points=[CustomPoint(), CustomPoint(x=1.0)])
    assert msg.point_num == 2


def test_custom_msg_explicit_point_num_kept():
    msg = CustomMsg(points=[CustomPoint()], point_num=5)
    assert msg.point_num == 5


def test_odometry_covariance_has_36_entries():
    assert len(Odometry().covariance) == 36


def test_imu_default_orientation_is_identity():
    assert Imu().orientation == (0.0, 0.0, 0.0, 1.0)