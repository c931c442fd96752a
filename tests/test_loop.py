from types import SimpleNamespace

import numpy as np
import pytest

from liomap.loop import LoopClosure
from liomap.messages import Pose6D
from liomap.transforms import transform_cloud_by_pose


def _params():
    return SimpleNamespace(
        history_keyframe_search_radius=15.0,
        history_keyframe_search_time_diff=30.0,
        history_keyframe_search_num=25,
        history_keyframe_fitness_score=0.3,
        mapping_surf_leaf_size=0.4,
    )


def _poses(positions, times):
    poses6d = [Pose6D(x=p[0], y=p[1], z=p[2], intensity=float(i), time=t)
               for i, (p, t) in enumerate(zip(positions, times))]
    poses3d = np.array([[p.x, p.y, p.z, p.intensity] for p in poses6d])
    return poses3d, poses6d


def test_add_loop_info_rejects_wrong_length():
    loop = LoopClosure(_params())
    assert loop.add_loop_info([1.0]) is False
    assert loop.add_loop_info([1.0, 2.0, 3.0]) is False
    assert len(loop.loop_info) == 0


def test_add_loop_info_keeps_latest_five():
    loop = LoopClosure(_params())
    for i in range(8):
        assert loop.add_loop_info([float(i), 0.0])
    assert [cur for cur, _ in loop.loop_info] == [3.0, 4.0, 5.0, 6.0, 7.0]


def test_detect_external_finds_keys():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0)] * 5, [0.0, 10.0, 20.0, 60.0, 70.0])
    loop.add_loop_info([60.0, 10.0])
    assert loop.detect_external(poses6d) == (3, 1)
    assert len(loop.loop_info) == 0


def test_detect_external_rejects_close_times():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0)] * 3, [0.0, 10.0, 20.0])
    loop.add_loop_info([20.0, 10.0])
    assert loop.detect_external(poses6d) is None


def test_detect_external_rejects_known_loop():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0)] * 5, [0.0, 10.0, 20.0, 60.0, 70.0])
    loop.loop_index_container[3] = 0
    loop.add_loop_info([60.0, 10.0])
    assert loop.detect_external(poses6d) is None


def test_detect_external_empty_queue():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0)] * 3, [0.0, 1.0, 2.0])
    assert loop.detect_external(poses6d) is None


def _revisit():
    positions = [(0, 0, 0), (50, 0, 0), (100, 0, 0), (50, 50, 0), (1, 0, 0)]
    times = [0.0, 20.0, 40.0, 60.0, 100.0]
    return _poses(positions, times)


def test_detect_by_distance_finds_revisit():
    loop = LoopClosure(_params())
    poses3d, poses6d = _revisit()
    assert loop.detect_by_distance(poses3d, poses6d, 100.0) == (4, 0)


def test_detect_by_distance_skips_recent_neighbours():
    loop = LoopClosure(_params())
    poses3d, poses6d = _revisit()
    assert loop.detect_by_distance(poses3d, poses6d, 10.0) is None


def test_detect_by_distance_skips_known_loop():
    loop = LoopClosure(_params())
    poses3d, poses6d = _revisit()
    loop.loop_index_container[4] = 0
    assert loop.detect_by_distance(poses3d, poses6d, 100.0) is None


def test_detect_by_distance_no_poses():
    loop = LoopClosure(_params())
    assert loop.detect_by_distance(np.zeros((0, 4)), [], 0.0) is None


def test_near_keyframes_uses_only_key_when_search_num_zero():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0), (10, 0, 0), (20, 0, 0)], [0.0, 1.0, 2.0])
    corner = [np.array([[0.0, 0.0, 0.0, 1.0]])] * 3
    surf = [np.zeros((0, 4))] * 3
    result = loop.near_keyframes(1, 0, corner, surf, poses6d)
    expected = transform_cloud_by_pose(corner[1], poses6d[1])
    assert np.allclose(result, expected)


def test_near_keyframes_skips_out_of_range_keys():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0), (10, 0, 0), (20, 0, 0)], [0.0, 1.0, 2.0])
    corner = [np.array([[0.0, 0.0, 0.0, 1.0]])] * 3
    surf = [np.array([[0.0, 5.0, 0.0, 2.0]])] * 3
    result = loop.near_keyframes(0, 5, corner, surf, poses6d)
    assert len(result) == 6


def test_near_keyframes_empty():
    loop = LoopClosure(_params())
    _, poses6d = _poses([(0, 0, 0)], [0.0])
    result = loop.near_keyframes(0, 1, [np.zeros((0, 4))], [np.zeros((0, 4))], poses6d)
    assert result.shape == (0, 4)


def test_markers_empty_without_loops():
    loop = LoopClosure(_params())
    _, poses6d = _revisit()
    assert loop.markers(poses6d) == []


def test_markers_hold_loop_endpoints():
    loop = LoopClosure(_params())
    _, poses6d = _revisit()
    loop.loop_index_container[4] = 0
    nodes, edges = loop.markers(poses6d)
    assert nodes["ns"] == "loop_nodes"
    assert edges["ns"] == "loop_edges"
    assert nodes["points"] == [(1, 0, 0), (0, 0, 0)]
    assert edges["points"] == nodes["points"]


def test_markers_bad_key_raises():
    loop = LoopClosure(_params())
    _, poses6d = _revisit()
    loop.loop_index_container[10] = 0
    with pytest.raises(IndexError):
        loop.markers(poses6d)