# liomap

`liomap` is a library of building blocks for lidar-inertial odometry and
mapping. It turns solid-state lidar packets and IMU samples into deskewed,
range-image-indexed scans, registers feature points against a map, keeps key
poses in a pose graph, detects loop closures and saves maps as PCD files.

Point clouds throughout are NumPy arrays of shape `(N, 4)` holding x, y, z
and intensity. Poses given as vectors are ordered
`[roll, pitch, yaw, x, y, z]`.

## Configuration

`liomap.params.Params` holds every setting with its default.
`Params.from_mapping` builds one from parameter names such as `"N_SCAN"` or
`"lidarMinRange"`, or from the field names such as `n_scan`; names that are
not settings are ignored. The sensor is a `liomap.params.SensorType`
(`"velodyne"`, `"ouster"` or `"livox"`); any other value raises `ValueError`.
`Params.imu_converter` scales an `Imu` sample's acceleration by gravity and
rotates it and the angular velocity by the configured extrinsic rotation.

## Projecting and deskewing scans

`liomap.projection.ImageProjection` buffers IMU readings (`add_imu`),
incremental odometry (`add_odometry`) and lidar packets (`add_cloud`).
A packet is processed once two newer ones have arrived behind it and the IMU
queue covers its time span; `add_cloud` then returns a
`liomap.messages.CloudInfo` with the deskewed cloud, per-ring start and end
indices, column indices, ranges and the IMU and odometry pose hints, and
otherwise `None`. Only the `livox` sensor type is accepted for packets; the
others raise `ValueError`.

```python
from liomap.messages import CustomMsg, CustomPoint, Header, Imu
from liomap.params import Params
from liomap.projection import ImageProjection

params = Params.from_mapping({"sensor": "livox", "N_SCAN": 6, "Horizon_SCAN": 4000})
projection = ImageProjection(params)

for imu in imu_samples:          # liomap.messages.Imu
    projection.add_imu(imu)

for packet in packets:           # liomap.messages.CustomMsg
    info = projection.add_cloud(packet)
    if info is None:
        continue
    print(info.cloud_deskewed.shape, info.imu_available)
```

The pieces it is made of are usable on their own:

- `liomap.projection.custom_msg_to_points` converts a packet to rows of
  x, y, z, intensity, time, ring and tag (the packet's last point is left out).
- `liomap.deskew.ImuRotation` integrates gyroscope readings over a scan and
  interpolates the rotation at any time with `find_rotation`;
  `liomap.deskew.odom_deskew_info` gives an `OdomGuess` of the pose at the
  scan start.
- `liomap.rangeimage.RangeImage` stores the first point placed in each
  ring/column cell and fills a `CloudInfo` with `extract`;
  `column_from_angle` gives the column of a point from its horizontal angle.

## Registration and pose graph

- `liomap.correspondence.corner_coefficients` and `surf_coefficients` match
  scan points, moved by a 4x4 transform, to lines and planes fitted through
  their five nearest map points, returning the matched points and their
  weighted coefficients. A prebuilt `scipy.spatial.cKDTree` may be passed.
- `liomap.lm.lm_step` performs one update of the pose vector from those
  correspondences, detecting degenerate directions on iteration 0 and keeping
  them in an `LMState`; it returns the new pose and whether it converged.
  `liomap.lm.constrain` clamps a value into `[-limit, limit]`.
- `liomap.posegraph.PoseGraph` holds `PriorFactor`, `BetweenFactor` and
  `GpsFactor` constraints on 4x4 poses, solves them with `optimize` and
  reports `marginal_covariance` per key. Variances are ordered rotation then
  translation. `pose_between`, `pose_from_vector` and `pose_to_vector` convert
  between forms.

```python
import numpy as np
from liomap.posegraph import BetweenFactor, PoseGraph, PriorFactor, pose_from_vector

graph = PoseGraph()
graph.add(PriorFactor(0, np.eye(4), [1e-2] * 6))
step = pose_from_vector([0, 0, 0, 1.0, 0, 0])
graph.add(BetweenFactor(0, 1, step, [1e-6] * 3 + [1e-4] * 3))
graph.insert(0, np.eye(4))
graph.insert(1, step)
estimate = graph.optimize()
```

- `liomap.loop.LoopClosure` finds loop candidates from external time hints
  (`add_loop_info`, `detect_external`) or by key-pose distance
  (`detect_by_distance`), gathers nearby key frames with `near_keyframes`,
  and describes accepted loops (`loop_index_container`) as node and edge
  markers with `markers`.
- `liomap.odometry.IncrementalOdometry` chains per-scan increments into an
  odometry, pulling roll and pitch toward the IMU attitude with
  `imu_weighted_attitude`.

## Clouds, transforms and files

- `liomap.geometry`: transforms from translation and roll/pitch/yaw and back,
  quaternion conversions and slerp, point distances.
- `liomap.cloud`: `empty_cloud` and voxel-grid `voxel_downsample`.
- `liomap.transforms`: moving clouds by a 4x4 matrix or a `Pose6D`, and
  converting pose vectors.
- `liomap.pcd`: `write_pcd` (binary or ascii) and `read_pcd`, which returns a
  structured array named by the file's fields.
- `liomap.export.save_map` removes and recreates a directory and writes
  `trajectory.pcd`, `transformations.pcd`, `CornerMap.pcd`, `SurfMap.pcd` and
  `GlobalMap.pcd` from key poses and their frames; a non-zero resolution
  downsamples the corner and surface maps. `liomap.export.global_map` builds
  a downsampled display map around the latest key pose.

## What the package does not do

There is no feature extraction stage that picks edge and planar points from a
deskewed scan, no point-to-point ICP alignment, no local map assembly from
surrounding key frames and no driver that runs the whole mapping loop from
scan to key frame. The registration, pose graph, loop and export pieces take
feature clouds and key frames that the caller supplies. The package has no
command-line program and does no message transport; callers feed messages in
and read results back as Python objects.

## Requirements

Python 3.10 or newer, with NumPy and SciPy.