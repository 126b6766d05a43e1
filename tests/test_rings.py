import math

import numpy as np
import pytest

from coil_layout.errors import InputValidationError, NumericDegeneracyError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.layout.rings import (
    AngleFormat,
    _pre_shift,
    _to_angles,
    add_even_breaks_by_angle,
    bin_by_angle,
    choose_zero_angle_vector,
    clean_coil_by_angle,
    detect_edges,
    reorder_edges,
    smooth_angles,
    sphere_intersect,
    zero_theta_vector,
)
from helpers import circle_coil


def test_sphere_intersect_on_sphere(sphere):
    center = Point.from_array(sphere.points[0])
    nearest, points, normals = sphere_intersect(sphere, center, 5.0, 0.6)

    assert nearest == 0
    dist = np.linalg.norm(sphere.points - sphere.points[0], axis=1)
    assert len(points) == int(np.sum(np.abs(dist - 5.0) <= 0.6))
    assert len(points) == len(normals)
    for point, normal in zip(points, normals):
        assert abs(point.distance(center) - 5.0) <= 0.6
        assert normal.norm() == pytest.approx(1.0)


def test_sphere_intersect_misses_far_sphere(flat_sheet):
    _, points, normals = sphere_intersect(flat_sheet, Point(0.0, 0.0, 50.0), 5.0, 0.5)
    assert points == []
    assert normals == []


def test_zero_theta_vector_falls_back_to_x():
    assert zero_theta_vector(Vector.zhat()) == Vector.xhat()
    ref = zero_theta_vector(Vector.xhat())
    assert ref.z == pytest.approx(1.0)


def test_clean_ring_on_flat_sheet(flat_sheet):
    center = Point(1.0, -2.0, 0.0)
    _, points, normals = sphere_intersect(flat_sheet, center, 5.0, 0.3)
    coil = clean_coil_by_angle(center, Vector.zhat(), 5.0, 0.645, points, normals, True)

    assert len(coil.vertices) == len(points)
    pts = coil.points_array()
    assert np.allclose(np.linalg.norm(pts - center.as_array(), axis=1), 5.0)
    assert np.allclose(pts[:, 2], 0.0, atol=1e-9)
    for vertex in coil.vertices:
        assert vertex.surface_normal.z == pytest.approx(1.0)
        assert vertex.wire_radius_normal == vertex.surface_normal

    # Ordered around the ring: consecutive points are close, no jumps across it
    steps = np.linalg.norm(pts - np.roll(pts, 1, axis=0), axis=1)
    assert steps.max() < 1.5
    assert coil.wire_length() == pytest.approx(2.0 * math.pi * 5.0, rel=0.05)


def test_clean_ring_needs_three_points():
    with pytest.raises(InputValidationError):
        clean_coil_by_angle(Point.zero(), Vector.zhat(), 1.0, 0.5,
                            [Point(1, 0, 0), Point(0, 1, 0)],
                            [Vector.zhat(), Vector.zhat()], False)


def test_clean_ring_rejects_mismatched_normals():
    points = [Point(1, 0, 0), Point(0, 1, 0), Point(-1, 0, 0)]
    with pytest.raises(InputValidationError):
        clean_coil_by_angle(Point.zero(), Vector.zhat(), 1.0, 0.5, points,
                            [Vector.zhat()], False)


def test_bin_by_angle_quarters():
    angles = [-0.1 + k * math.pi / 2 for k in range(4)]
    points = [Point(math.cos(a), math.sin(a), 0.0) for a in angles]
    binned = bin_by_angle(points, 4, Point.zero(), Vector.zhat(), Vector.xhat())
    assert binned[0] == 0
    assert sorted(binned) == [0, 1, 2, 3]


def test_bin_by_angle_errors():
    points = [Point(1, 0, 0), Point(0, 1, 0), Point(-1, 0, 0)]
    with pytest.raises(InputValidationError):
        bin_by_angle(points, 0, Point.zero(), Vector.zhat(), Vector.xhat())
    with pytest.raises(InputValidationError):
        bin_by_angle(points, 4, Point.zero(), Vector.zhat(), Vector.xhat())
    clustered = [Point(1, 0, 0), Point(1, 0.01, 0), Point(1, -0.01, 0), Point(1, 0.02, 0)]
    with pytest.raises(InputValidationError):
        bin_by_angle(clustered, 4, Point.zero(), Vector.zhat(), Vector.xhat())


def test_even_breaks_with_offset():
    coil = circle_coil(radius=5.0, count=72)
    add_even_breaks_by_angle(coil, 4, math.pi / 2, Vector.xhat())

    assert len(coil.breaks) == 3
    assert coil.port is not None
    port = coil.vertices[coil.port].point
    # Port sits a quarter turn from +X
    assert abs(port.x) == pytest.approx(0.0, abs=1e-9)
    assert abs(port.y) == pytest.approx(5.0)
    assert len(set(coil.breaks + [coil.port])) == 4


def test_choose_zero_angle_vector_uses_backup():
    assert choose_zero_angle_vector(Vector.zhat(), Vector.zhat(), Vector.yhat()) == Vector.yhat()
    assert choose_zero_angle_vector(Vector.xhat(), Vector.zhat(), Vector.yhat()) == Vector.zhat()


def _ring_angles(count, spike=None, offset=0.0):
    """Evenly spaced thetas at constant phi, optionally with one point lifted off the ring."""
    angles = [AngleFormat((2.0 * math.pi * k / count + offset) % (2.0 * math.pi), math.pi / 2, k)
              for k in range(count)]
    if spike is not None:
        angles[spike].phi += 1.0
    return angles


def test_detect_edges_on_smooth_ring():
    assert detect_edges(_ring_angles(32)) == []


def test_detect_edges_pads_a_phi_jump():
    assert detect_edges(_ring_angles(32, spike=16)) == [(13, 20)]


def test_detect_edges_needs_two_points():
    with pytest.raises(InputValidationError):
        detect_edges(_ring_angles(1))


def test_reorder_edges_moves_the_lifted_point_last():
    angles = _ring_angles(32, spike=16)
    reordered = reorder_edges(angles, detect_edges(angles))
    ids = [a.point_id for a in reordered]
    assert ids == list(range(16)) + [17, 18, 19, 16] + list(range(20, 32))


def test_reorder_edges_across_the_array_end():
    angles = _ring_angles(32, spike=0)
    edges = detect_edges(angles)
    assert edges == [(29, 4)]

    ids = [a.point_id for a in reorder_edges(angles, edges)]
    assert ids == [1, 2, 3, 0] + list(range(4, 32))


def test_reorder_edges_without_edges_is_identity():
    angles = _ring_angles(8)
    assert reorder_edges(angles, []) is angles


def test_smooth_angles_average_across_the_seam():
    angles = _ring_angles(8, offset=0.1)
    normals = np.tile([0.0, 0.0, 1.0], (8, 1))
    smoothed, smoothed_normals = smooth_angles(angles, normals)

    # Evenly spaced points are a fixed point of the running mean, even at theta ~ 0
    for before, after in zip(angles, smoothed):
        assert after.theta == pytest.approx(before.theta, abs=1e-9)
        assert after.phi == pytest.approx(math.pi / 2)
    assert np.allclose(smoothed_normals, normals)
    assert angles[0].theta == pytest.approx(0.1)


def test_smooth_angles_rejects_cancelling_normals():
    angles = _ring_angles(3)
    normals = np.array([[0.0, 0.0, 1.0], [0.0, 0.0, -1.0], [0.0, 0.0, 0.0]])
    with pytest.raises(NumericDegeneracyError):
        smooth_angles(angles, normals)


def test_pre_shift_moves_along_the_tangent():
    point = Point(5.0, 0.0, 0.0)
    shifted, = _pre_shift([point], [Vector.zhat()], Point.zero(), Vector.zhat(), 4.0)
    assert np.allclose(shifted.as_array(), [4.0, 0.0, 0.0])

    tilted = Vector(1.0, 0.0, 1.0).normalize()
    shifted, = _pre_shift([point], [tilted], Point.zero(), Vector.zhat(), 4.0)
    assert np.allclose(shifted.as_array(), [4.0, 0.0, 1.0])


def test_pre_shift_leaves_steep_points_alone():
    # Normal 0.2 rad off the radial direction: the tangent is almost square to it
    point = Point(5.0, 0.0, 0.0)
    normal = Vector(1.0, 0.0, 0.2).normalize()
    shifted, = _pre_shift([point], [normal], Point.zero(), Vector.zhat(), 4.0)
    assert shifted == point


def test_clean_ring_on_sphere(sphere):
    center = Point.from_array(sphere.points[0])
    normal = Vector.from_array(sphere.normals[0])
    epsilon = 0.8
    _, points, normals = sphere_intersect(sphere, center, 5.0, epsilon)

    angles = _to_angles(points, center, normal, zero_theta_vector(normal))
    angles.sort(key=lambda a: a.theta)
    reordered = reorder_edges(angles, detect_edges(angles))
    assert sorted(a.point_id for a in reordered) == list(range(len(points)))

    coil = clean_coil_by_angle(center, normal, 5.0, 0.5, points, normals, False)
    assert len(coil.vertices) == len(points)
    pts = coil.points_array()
    assert np.allclose(np.linalg.norm(pts - center.as_array(), axis=1), 5.0)
    steps = np.linalg.norm(pts - np.roll(pts, 1, axis=0), axis=1)
    assert steps.max() <= 2.0 * epsilon
