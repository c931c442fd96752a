"""Configuration shared by every processing stage."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field, fields, replace
from typing import Any, Callable, List, Mapping

import numpy as np

from .geometry import quaternion_from_matrix
from .messages import Imu


class SensorType(enum.Enum):
    """Lidar families the projection stage understands."""

    VELODYNE = "velodyne"
    OUSTER = "ouster"
    LIVOX = "livox"


def _sensor(value: Any) -> SensorType:
    if isinstance(value, SensorType):
        return value
    try:
        return SensorType(str(value))
    except ValueError:
        raise ValueError(
            "Invalid sensor type (must be either 'velodyne' or 'ouster' or 'livox'): "
            f"{value}"
        ) from None


def _bool(value: Any) -> bool:
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in ("true", "1", "yes"):
            return True
        if lowered in ("false", "0", "no"):
            return False
        raise ValueError(f"not a boolean: {value!r}")
    return bool(value)


def _floats(value: Any) -> List[float]:
    return [float(v) for v in value]


def _param(key: str, default: Any, convert: Callable[[Any], Any]) -> Any:
    metadata = {"key": key, "convert": convert}
    if isinstance(default, list):
        return field(default_factory=lambda: list(default), metadata=metadata)
    return field(default=default, metadata=metadata)


_IDENTITY = [1.0, 0.0, 0.0, 0.0, 1.0, 0.0, 0.0, 0.0, 1.0]


@dataclass
class Params:
    """All tunable settings with their defaults."""

    point_cloud_topic: str = _param("pointCloudTopic", "points", str)
    imu_topic: str = _param("imuTopic", "imu/data", str)
    odom_topic: str = _param("odomTopic", "lio_sam/odometry/imu", str)
    gps_topic: str = _param("gpsTopic", "lio_sam/odometry/gps", str)

    lidar_frame: str = _param("lidarFrame", "laser_data_frame", str)
    baselink_frame: str = _param("baselinkFrame", "base_link", str)
    odometry_frame: str = _param("odometryFrame", "odom", str)
    map_frame: str = _param("mapFrame", "map", str)

    use_imu_heading_initialization: bool = _param("useImuHeadingInitialization", False, _bool)
    use_gps_elevation: bool = _param("useGpsElevation", False, _bool)
    gps_cov_threshold: float = _param("gpsCovThreshold", 2.0, float)
    pose_cov_threshold: float = _param("poseCovThreshold", 25.0, float)

    save_pcd: bool = _param("savePCD", False, _bool)
    save_pcd_directory: str = _param("savePCDDirectory", "/Downloads/LOAM/", str)

    sensor: SensorType = _param("sensor", SensorType.OUSTER, _sensor)
    n_scan: int = _param("N_SCAN", 64, int)
    horizon_scan: int = _param("Horizon_SCAN", 512, int)
    downsample_rate: int = _param("downsampleRate", 1, int)
    lidar_min_range: float = _param("lidarMinRange", 5.5, float)
    lidar_max_range: float = _param("lidarMaxRange", 1000.0, float)

    imu_acc_noise: float = _param("imuAccNoise", 9e-4, float)
    imu_gyr_noise: float = _param("imuGyrNoise", 1.6e-4, float)
    imu_acc_bias_n: float = _param("imuAccBiasN", 5e-4, float)
    imu_gyr_bias_n: float = _param("imuGyrBiasN", 7e-5, float)
    imu_gravity: float = _param("imuGravity", 9.80511, float)
    imu_rpy_weight: float = _param("imuRPYWeight", 0.01, float)
    extrinsic_rot: List[float] = _param("extrinsicRot", _IDENTITY, _floats)
    extrinsic_rpy: List[float] = _param("extrinsicRPY", _IDENTITY, _floats)
    extrinsic_trans: List[float] = _param("extrinsicTrans", [0.0, 0.0, 0.0], _floats)

    edge_threshold: float = _param("edgeThreshold", 1.0, float)
    surf_threshold: float = _param("surfThreshold", 0.1, float)
    edge_feature_min_valid_num: int = _param("edgeFeatureMinValidNum", 10, int)
    surf_feature_min_valid_num: int = _param("surfFeatureMinValidNum", 100, int)

    odometry_surf_leaf_size: float = _param("odometrySurfLeafSize", 0.4, float)
    mapping_corner_leaf_size: float = _param("mappingCornerLeafSize", 0.2, float)
    mapping_surf_leaf_size: float = _param("mappingSurfLeafSize", 0.4, float)

    z_tollerance: float = _param("z_tollerance", 1000.0, float)
    rotation_tollerance: float = _param("rotation_tollerance", 1000.0, float)

    number_of_cores: int = _param("numberOfCores", 4, int)
    mapping_process_interval: float = _param("mappingProcessInterval", 0.15, float)

    surrounding_keyframe_adding_dist_threshold: float = _param(
        "surroundingkeyframeAddingDistThreshold", 1.0, float)
    surrounding_keyframe_adding_angle_threshold: float = _param(
        "surroundingkeyframeAddingAngleThreshold", 0.2, float)
    surrounding_keyframe_density: float = _param("surroundingKeyframeDensity", 2.0, float)
    surrounding_keyframe_search_radius: float = _param(
        "surroundingKeyframeSearchRadius", 50.0, float)

    loop_closure_enable_flag: bool = _param("loopClosureEnableFlag", True, _bool)
    loop_closure_frequency: float = _param("loopClosureFrequency", 1.0, float)
    surrounding_keyframe_size: int = _param("surroundingKeyframeSize", 50, int)
    history_keyframe_search_radius: float = _param("historyKeyframeSearchRadius", 15.0, float)
    history_keyframe_search_time_diff: float = _param(
        "historyKeyframeSearchTimeDiff", 30.0, float)
    history_keyframe_search_num: int = _param("historyKeyframeSearchNum", 25, int)
    history_keyframe_fitness_score: float = _param("historyKeyframeFitnessScore", 0.3, float)

    global_map_visualization_search_radius: float = _param(
        "globalMapVisualizationSearchRadius", 1000.0, float)
    global_map_visualization_pose_density: float = _param(
        "globalMapVisualizationPoseDensity", 10.0, float)
    global_map_visualization_leaf_size: float = _param(
        "globalMapVisualizationLeafSize", 1.0, float)

    ext_rot: np.ndarray = field(init=False, repr=False, compare=False)
    ext_rpy: np.ndarray = field(init=False, repr=False, compare=False)
    ext_trans: np.ndarray = field(init=False, repr=False, compare=False)
    ext_q_rpy: np.ndarray = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        self.sensor = _sensor(self.sensor)
        for name, size in (("extrinsic_rot", 9), ("extrinsic_rpy", 9), ("extrinsic_trans", 3)):
            values = getattr(self, name)
            if len(values) != size:
                raise ValueError(f"{name} needs {size} values, got {len(values)}")
        self.ext_rot = np.asarray(self.extrinsic_rot, dtype=np.float64).reshape(3, 3)
        self.ext_rpy = np.asarray(self.extrinsic_rpy, dtype=np.float64).reshape(3, 3)
        self.ext_trans = np.asarray(self.extrinsic_trans, dtype=np.float64)
        self.ext_q_rpy = np.array(quaternion_from_matrix(self.ext_rpy))

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "Params":
        """Build settings from parameter names such as 'N_SCAN' or field names.

        Names that are not settings are ignored, as a shared configuration
        file carries entries for other stages too.
        """
        lookup = {}
        for f in fields(cls):
            if not f.init:
                continue
            lookup[f.name] = f
            lookup[f.metadata["key"]] = f
        kwargs = {}
        for key, value in values.items():
            f = lookup.get(key)
            if f is not None:
                kwargs[f.name] = f.metadata["convert"](value)
        return cls(**kwargs)

    def imu_converter(self, imu: Imu) -> Imu:
        """Scale acceleration by gravity and rotate the measurement into the lidar frame."""
        acc = self.ext_rot @ (np.asarray(imu.linear_acceleration, dtype=np.float64)
                              * self.imu_gravity)
        gyr = self.ext_rot @ np.asarray(imu.angular_velocity, dtype=np.float64)
        q = self.ext_q_rpy.copy()
        norm = float(np.linalg.norm(q))
        if norm > 0:
            q = q / norm
        if not math.sqrt(float(q @ q)) >= 0.1:
            raise ValueError("Invalid quaternion, please use a 9-axis IMU!")
        return replace(
            imu,
            linear_acceleration=tuple(float(v) for v in acc),
            angular_velocity=tuple(float(v) for v in gyr),
            orientation=tuple(float(v) for v in q),
        )