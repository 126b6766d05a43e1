import math

import pytest

from coil_layout.errors import NumericDegeneracyError
from coil_layout.geometry.primitives import Plane, Point, Vector


def test_vector_arithmetic():
    a = Vector(1.0, 2.0, 3.0)
    b = Vector(4.0, -5.0, 6.0)
    assert a + b == Vector(5.0, -3.0, 9.0)
    assert a - b == Vector(-3.0, 7.0, -3.0)
    assert -a == Vector(-1.0, -2.0, -3.0)
    assert a * 2.0 == Vector(2.0, 4.0, 6.0)
    assert a.dot(b) == pytest.approx(12.0)
    assert Vector.xhat().cross(Vector.yhat()) == Vector.zhat()


def test_normalize_zero_vector_raises():
    with pytest.raises(NumericDegeneracyError):
        Vector.zero().normalize()


def test_angle_to_is_clamped():
    v = Vector(1.0, 1e-9, 0.0)
    assert v.angle_to(v) == 0.0
    assert Vector.xhat().angle_to(-Vector.xhat()) == pytest.approx(math.pi)
    assert Vector.xhat().angle_to(Vector.yhat()) == pytest.approx(math.pi / 2)


def test_projection_and_rejection_sum_to_vector():
    v = Vector(3.0, 4.0, 5.0)
    axis = Vector(0.0, 0.0, 2.0)
    assert v.proj_onto(axis) == Vector(0.0, 0.0, 5.0)
    rej = v.rej_onto(axis)
    assert rej.dot(axis) == pytest.approx(0.0)
    assert (v.proj_onto(axis) + rej) == v


def test_rotate_around_quarter_turn():
    rotated = Vector.xhat().rotate_around(Vector.zhat(), math.pi / 2)
    assert rotated.x == pytest.approx(0.0, abs=1e-12)
    assert rotated.y == pytest.approx(1.0)
    assert rotated.z == pytest.approx(0.0, abs=1e-12)


def test_point_difference_is_vector():
    p = Point(1.0, 1.0, 1.0)
    q = Point(4.0, 5.0, 1.0)
    assert isinstance(q - p, Vector)
    assert p.distance(q) == pytest.approx(5.0)
    assert p + (q - p) == q
    assert p.midpoint(q) == Point(2.5, 3.0, 1.0)


def test_plane_normal_is_normalised():
    plane = Plane.from_normal_and_offset(Vector(0.0, 0.0, 4.0), 2.0)
    assert plane.normal == Vector.zhat()
    assert plane.distance_to_point(Point(7.0, -3.0, 5.0)) == pytest.approx(3.0)


def test_plane_reflection_and_projection():
    plane = Plane.from_normal_and_point(Vector.xhat(), Point(1.0, 0.0, 0.0))
    p = Point(3.0, 2.0, -1.0)
    assert plane.reflect_point(p) == Point(-1.0, 2.0, -1.0)
    assert plane.project_point(p) == Point(1.0, 2.0, -1.0)
    assert plane.distance_to_point(plane.reflect_point(p)) == pytest.approx(-2.0)


def test_plane_from_points():
    plane = Plane.from_points(Point(0, 0, 1), Point(1, 0, 1), Point(0, 1, 1))
    assert plane.normal.z == pytest.approx(1.0)
    assert plane.offset == pytest.approx(1.0)
