import math

import numpy as np

from crtt0.geometry.primitives import (
    SENTINEL,
    box_dca,
    cube_intersection,
    point_dca,
    point_line_distance,
    segment_line_distance,
)
from crtt0.physics.hits import CRTHit


def test_point_line_distance_scale_invariant():
    assert abs(point_line_distance([0, 1, 0], [0, 0, 0], [1, 0, 0]) - 1.0) < 1e-12
    assert abs(point_line_distance([0, 1, 0], [0, 0, 0], [5, 0, 0]) - 1.0) < 1e-12
    assert abs(point_line_distance([3, 4, 0], [-2, 0, 0], [1, 0, 0]) - 4.0) < 1e-12


def test_segment_line_distance_skew_interior():
    # segment along x at y=1, line is the z axis
    d = segment_line_distance([-1, 1, 0], [1, 1, 0], [0, 0, -1], [0, 0, 1])
    assert abs(d - 1.0) < 1e-12


def test_segment_line_distance_clamps_segment_only():
    # closest point of the segment is its start; line parameter is free
    d = segment_line_distance([2, 1, 0], [3, 1, 0], [0, 0, -1], [0, 0, 1])
    assert abs(d - math.sqrt(5.0)) < 1e-12


def test_segment_line_distance_intersecting_is_zero():
    d = segment_line_distance([-1, 0, 0], [1, 0, 0], [0, 0, -1], [0, 0, 1])
    assert d < 1e-12


def test_segment_line_distance_parallel():
    d = segment_line_distance([0, 1, 0], [1, 1, 0], [0, 0, 0], [1, 0, 0])
    assert abs(d - 1.0) < 1e-12
    # parallel segment sitting far along the line
    d = segment_line_distance([50, 0, 2], [60, 0, 2], [0, 0, 0], [1, 0, 0])
    assert abs(d - 2.0) < 1e-9


def test_segment_line_distance_non_negative():
    rng = np.random.default_rng(7)
    for _ in range(200):
        a, b, c, e = rng.normal(scale=10.0, size=(4, 3))
        assert segment_line_distance(a, b, c, e) >= 0.0


def test_cube_intersection_axis_aligned_line():
    enter, exit_ = cube_intersection([-1, -1, -1], [1, 1, 1], [-5, 0, 0], [5, 0, 0])
    assert np.allclose(enter, [-1, 0, 0])
    assert np.allclose(exit_, [1, 0, 0])


def test_cube_intersection_reversed_direction_orders_by_parameter():
    enter, exit_ = cube_intersection([-1, -1, -1], [1, 1, 1], [5, 0, 0], [-5, 0, 0])
    assert np.allclose(enter, [1, 0, 0])
    assert np.allclose(exit_, [-1, 0, 0])


def test_cube_intersection_miss_returns_sentinel():
    enter, exit_ = cube_intersection([-1, -1, -1], [1, 1, 1], [-5, 2, 0], [5, 2, 0])
    assert np.all(enter == SENTINEL) and np.all(exit_ == SENTINEL)


def test_cube_intersection_diagonal():
    enter, exit_ = cube_intersection([0, 0, 0], [2, 2, 2], [-1, -1, -1], [3, 3, 3])
    assert np.allclose(enter, [0, 0, 0])
    assert np.allclose(exit_, [2, 2, 2])


def test_point_dca_on_line_is_zero():
    hit = CRTHit(x=10.0, y=20.0, z=30.0)
    d = point_dca(hit, np.array([0.0, 0.0, 0.0]), np.array([1.0, 2.0, 3.0]))
    assert d < 1e-6


def test_box_dca_zero_when_line_crosses_box():
    hit = CRTHit(x=0.0, y=0.0, z=0.0, x_err=5.0, y_err=0.5, z_err=5.0)
    assert box_dca(hit, np.array([0.0, -10.0, 0.0]), np.array([0.0, 10.0, 0.0])) == 0.0
    # crossing through a corner region, not the centre
    assert box_dca(hit, np.array([4.0, -10.0, 4.0]), np.array([4.0, 10.0, 4.0])) == 0.0


def test_box_dca_thin_face_edges():
    hit = CRTHit(x=0.0, y=0.0, z=0.0, x_err=5.0, y_err=0.5, z_err=5.0)
    d = box_dca(hit, np.array([10.0, 0.0, -10.0]), np.array([10.0, 0.0, 10.0]))
    assert abs(d - 5.0) < 1e-9


def test_box_dca_cube_uses_x_normal_face():
    line = (np.array([3.0, 0.0, -10.0]), np.array([3.0, 0.0, 10.0]))
    cube = CRTHit(x=0.0, y=0.0, z=0.0, x_err=1.0, y_err=1.0, z_err=1.0)
    # x-normal face sits in the x=0 mid-plane
    assert abs(box_dca(cube, *line) - 3.0) < 1e-9
    thin_y = CRTHit(x=0.0, y=0.0, z=0.0, x_err=1.0, y_err=0.5, z_err=1.0)
    assert abs(box_dca(thin_y, *line) - 2.0) < 1e-9


def test_box_dca_zero_whenever_intersection_found():
    rng = np.random.default_rng(11)
    hit = CRTHit(x=1.0, y=-2.0, z=3.0, x_err=2.0, y_err=0.3, z_err=4.0)
    lo = hit.position - hit.errors
    hi = hit.position + hit.errors
    n_hit = 0
    for _ in range(300):
        a = rng.uniform(-10, 10, size=3)
        b = rng.uniform(-10, 10, size=3)
        enter, _ = cube_intersection(lo, hi, a, b)
        if enter[0] != SENTINEL:
            n_hit += 1
            assert box_dca(hit, a, b) == 0.0
        else:
            assert box_dca(hit, a, b) > 0.0
    assert n_hit > 0
