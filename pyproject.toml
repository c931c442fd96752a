[build-system]
requires = ["hatchling"]
build-backend = "hatchling.build"

[project]
name = "liomap"
version = "0.1.0"
description = "Building blocks for lidar-inertial odometry and mapping: scan deskewing and range-image projection, scan-to-map registration, pose graphs, loop detection and PCD export"
requires-python = ">=3.10"
keywords = [
    "lidar",
    "imu",
    "odometry",
    "slam",
    "mapping",
    "point-cloud",
    "pose-graph",
    "pcd",
]
classifiers = [
    "Development Status :: 3 - Alpha",
    "Intended Audience :: Science/Research",
    "Intended Audience :: Developers",
    "Operating System :: OS Independent",
    "Programming Language :: Python :: 3",
    "Programming Language :: Python :: 3 :: Only",
    "Programming Language :: Python :: 3.10",
    "Programming Language :: Python :: 3.11",
    "Programming Language :: Python :: 3.12",
    "Programming Language :: Python :: 3.13",
    "Topic :: Scientific/Engineering",
]
dependencies = [
    "numpy",
    "scipy",
]

[project.optional-dependencies]
test = [
    "pytest",
]

[tool.hatch.build.targets.wheel]
packages = ["liomap"]

[tool.hatch.build.targets.sdist]
include = [
    "liomap",
    "tests",
    "pyproject.toml",
]

[tool.pytest.ini_options]
addopts = "-ra"

[tool.ruff]
line-length = 100
target-version = "py310"

[tool.ruff.lint]
select = ["E", "F", "W", "I", "B", "UP"]

[tool.mypy]
python_version = "3.10"
ignore_missing_imports = true
warn_unused_ignores = true
