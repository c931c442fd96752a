"""A pose graph of key poses solved by damped Gauss-Newton on SE(3)."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, List, Sequence, Tuple, Union

import numpy as np
from scipy import sparse
from scipy.sparse.linalg import splu, spsolve
from scipy.spatial.transform import Rotation

from .geometry import get_transformation, translation_and_euler

_STEP = 1e-6


def _check_pose(pose) -> np.ndarray:
    m = np.array(pose, dtype=np.float64)
    if m.shape != (4, 4):
        raise ValueError("pose must be a 4x4 matrix")
    return m


def _weights(variances, size: int) -> np.ndarray:
    v = np.asarray(variances, dtype=np.float64).reshape(-1)
    if v.shape != (size,):
        raise ValueError(f"expected {size} variances, got {v.size}")
    if not np.all(v > 0):
        raise ValueError("variances must be positive")
    return 1.0 / np.sqrt(v)


def _retract(pose: np.ndarray, delta: np.ndarray) -> np.ndarray:
    rotation = pose[:3, :3]
    out = np.eye(4)
    out[:3, :3] = rotation @ Rotation.from_rotvec(delta[:3]).as_matrix()
    out[:3, 3] = pose[:3, 3] + rotation @ delta[3:]
    return out


def _local(a: np.ndarray, b: np.ndarray) -> np.ndarray:
    ra = a[:3, :3]
    w = Rotation.from_matrix(ra.T @ b[:3, :3]).as_rotvec()
    v = ra.T @ (b[:3, 3] - a[:3, 3])
    return np.concatenate([w, v])


def _inverse(pose: np.ndarray) -> np.ndarray:
    out = np.eye(4)
    out[:3, :3] = pose[:3, :3].T
    out[:3, 3] = -pose[:3, :3].T @ pose[:3, 3]
    return out


def pose_between(a, b) -> np.ndarray:
    """The pose of b relative to a."""
    return _inverse(_check_pose(a)) @ _check_pose(b)


def pose_from_vector(transform) -> np.ndarray:
    """The 4x4 pose of [roll, pitch, yaw, x, y, z]."""
    values = np.asarray(transform, dtype=np.float64)
    if values.shape != (6,):
        raise ValueError("transform must hold roll, pitch, yaw, x, y, z")
    roll, pitch, yaw, x, y, z = (float(v) for v in values)
    return get_transformation(x, y, z, roll, pitch, yaw)


def pose_to_vector(pose) -> np.ndarray:
    """[roll, pitch, yaw, x, y, z] of a 4x4 pose."""
    x, y, z, roll, pitch, yaw = translation_and_euler(_check_pose(pose))
    return np.array([roll, pitch, yaw, x, y, z])


@dataclass(eq=False)
class PriorFactor:
    """Ties a pose to a value; variances are ordered rotation then translation."""

    key: int
    pose: np.ndarray
    variances: Sequence[float]
    weights: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.pose = _check_pose(self.pose)
        self.weights = _weights(self.variances, 6)

    def _keys(self) -> Tuple[int, ...]:
        return (self.key,)

    def _residual(self, poses: List[np.ndarray]) -> np.ndarray:
        return _local(self.pose, poses[0])


@dataclass(eq=False)
class BetweenFactor:
    """Constrains the pose of key_to relative to key_from."""

    key_from: int
    key_to: int
    measured: np.ndarray
    variances: Sequence[float]
    weights: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.measured = _check_pose(self.measured)
        self.weights = _weights(self.variances, 6)

    def _keys(self) -> Tuple[int, ...]:
        return (self.key_from, self.key_to)

    def _residual(self, poses: List[np.ndarray]) -> np.ndarray:
        return _local(self.measured, _inverse(poses[0]) @ poses[1])


@dataclass(eq=False)
class GpsFactor:
    """Ties the position of a pose to a measured point."""

    key: int
    position: Sequence[float]
    variances: Sequence[float]
    weights: np.ndarray = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self.position = np.asarray(self.position, dtype=np.float64).reshape(-1)
        if self.position.shape != (3,):
            raise ValueError("position must hold x, y, z")
        self.weights = _weights(self.variances, 3)

    def _keys(self) -> Tuple[int, ...]:
        return (self.key,)

    def _residual(self, poses: List[np.ndarray]) -> np.ndarray:
        return poses[0][:3, 3] - self.position


Factor = Union[PriorFactor, BetweenFactor, GpsFactor]


class PoseGraph:
    """Key poses and the factors between them.

    Factors and initial values accumulate; optimize() solves the whole graph
    and keeps the result as the estimate for later solves.
    """

    def __init__(self, max_iterations: int = 100) -> None:
        self.max_iterations = max_iterations
        self.factors: List[Factor] = []
        self.estimate: Dict[int, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self.estimate)

    def __contains__(self, key: int) -> bool:
        return key in self.estimate

    def add(self, factor: Factor) -> None:
        """Add a factor."""
        if not isinstance(factor, (PriorFactor, BetweenFactor, GpsFactor)):
            raise TypeError(f"not a factor: {factor!r}")
        self.factors.append(factor)

    def insert(self, key: int, pose) -> None:
        """Give a new key its initial pose."""
        if key in self.estimate:
            raise KeyError(f"key {key} already has a value")
        self.estimate[key] = _check_pose(pose)

    def _index(self) -> Dict[int, int]:
        index = {key: i for i, key in enumerate(sorted(self.estimate))}
        constrained = set()
        for factor in self.factors:
            for key in factor._keys():
                if key not in index:
                    raise KeyError(f"factor refers to key {key} with no value")
                constrained.add(key)
        loose = set(index) - constrained
        if loose:
            raise ValueError(f"keys without factors: {sorted(loose)}")
        return index

    def _cost(self, values: Dict[int, np.ndarray]) -> float:
        total = 0.0
        for factor in self.factors:
            r = factor._residual([values[k] for k in factor._keys()]) * factor.weights
            total += float(r @ r)
        return total

    def _linearize(self, values: Dict[int, np.ndarray],
                   index: Dict[int, int]) -> Tuple[sparse.csr_matrix, np.ndarray]:
        rows: List[int] = []
        cols: List[int] = []
        data: List[float] = []
        residuals: List[np.ndarray] = []
        offset = 0
        for factor in self.factors:
            keys = factor._keys()
            poses = [values[k] for k in keys]
            w = factor.weights
            r0 = factor._residual(poses) * w
            m = len(r0)
            for slot, key in enumerate(keys):
                base = 6 * index[key]
                for d in range(6):
                    delta = np.zeros(6)
                    delta[d] = _STEP
                    plus = list(poses)
                    plus[slot] = _retract(poses[slot], delta)
                    minus = list(poses)
                    minus[slot] = _retract(poses[slot], -delta)
                    column = ((factor._residual(plus) - factor._residual(minus))
                              * w / (2.0 * _STEP))
                    rows.extend(range(offset, offset + m))
                    cols.extend([base + d] * m)
                    data.extend(column)
            residuals.append(r0)
            offset += m
        jacobian = sparse.csr_matrix((data, (rows, cols)), shape=(offset, 6 * len(index)))
        return jacobian, np.concatenate(residuals)

    def optimize(self) -> Dict[int, np.ndarray]:
        """Solve the graph, store and return the estimate of every key."""
        if not self.estimate:
            return {}
        index = self._index()
        values = dict(self.estimate)
        jacobian, residual = self._linearize(values, index)
        cost = float(residual @ residual)
        damping = 1e-6
        for _ in range(self.max_iterations):
            hessian = (jacobian.T @ jacobian).tocsc()
            gradient = jacobian.T @ residual
            diagonal = np.maximum(hessian.diagonal(), 1e-12)
            accepted = None
            while damping < 1e10:
                system = (hessian + sparse.diags(damping * diagonal)).tocsc()
                step = np.atleast_1d(spsolve(system, -gradient))
                candidate = {k: _retract(values[k], step[6 * i:6 * i + 6])
                             for k, i in index.items()}
                new_cost = self._cost(candidate)
                if new_cost <= cost:
                    accepted = (candidate, new_cost, step)
                    damping = max(damping / 10.0, 1e-12)
                    break
                damping *= 10.0
            if accepted is None:
                break
            values, new_cost, step = accepted
            decrease = cost - new_cost
            cost = new_cost
            if np.max(np.abs(step)) < 1e-9 or decrease <= 1e-12 * max(cost, 1e-300):
                break
            jacobian, residual = self._linearize(values, index)
        self.estimate = values
        return dict(values)

    def marginal_covariance(self, key: int) -> np.ndarray:
        """Covariance of a key's pose at the current estimate, rotation then translation."""
        if key not in self.estimate:
            raise KeyError(f"no value for key {key}")
        index = self._index()
        jacobian, _ = self._linearize(self.estimate, index)
        hessian = (jacobian.T @ jacobian).tocsc()
        try:
            lu = splu(hessian)
        except RuntimeError as error:
            raise ValueError(f"covariance of key {key} is indeterminate") from error
        base = 6 * index[key]
        unit = np.zeros((hessian.shape[0], 6))
        unit[base:base + 6] = np.eye(6)
        block = lu.solve(unit)[base:base + 6]
        return 0.5 * (block + block.T)