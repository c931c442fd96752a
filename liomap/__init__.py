"""Building blocks for lidar-inertial odometry and mapping: deskewing, registration, pose graphs, loop detection and PCD export."""

__version__ = "0.1.0"