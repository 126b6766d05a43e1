"""Point, Vector and Plane value types."""

from __future__ import annotations
import math
from dataclasses import dataclass

import numpy as np

from coil_layout.errors import NumericDegeneracyError


@dataclass(frozen=True)
class Vector:
    x: float
    y: float
    z: float

    # --- constructors -----------------------------------------------------

    @classmethod
    def zero(cls) -> Vector:
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def xhat(cls) -> Vector:
        return cls(1.0, 0.0, 0.0)

    @classmethod
    def yhat(cls) -> Vector:
        return cls(0.0, 1.0, 0.0)

    @classmethod
    def zhat(cls) -> Vector:
        return cls(0.0, 0.0, 1.0)

    @classmethod
    def from_array(cls, arr) -> Vector:
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    # --- arithmetic -------------------------------------------------------

    def __add__(self, other: Vector) -> Vector:
        if not isinstance(other, Vector):
            return NotImplemented
        return Vector(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: Vector) -> Vector:
        if not isinstance(other, Vector):
            return NotImplemented
        return Vector(self.x - other.x, self.y - other.y, self.z - other.z)

    def __neg__(self) -> Vector:
        return Vector(-self.x, -self.y, -self.z)

    def __mul__(self, scalar: float) -> Vector:
        return Vector(self.x * scalar, self.y * scalar, self.z * scalar)

    __rmul__ = __mul__

    def __truediv__(self, scalar: float) -> Vector:
        return Vector(self.x / scalar, self.y / scalar, self.z / scalar)

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"({self.x:.3f}, {self.y:.3f}, {self.z:.3f})"

    # --- element-wise helpers used by the moment estimates ---------------

    def el_pow(self, exponent: float) -> Vector:
        return Vector(self.x ** exponent, self.y ** exponent, self.z ** exponent)

    def el_div(self, other: Vector) -> Vector:
        return Vector(self.x / other.x, self.y / other.y, self.z / other.z)

    def el_add(self, value: float) -> Vector:
        return Vector(self.x + value, self.y + value, self.z + value)

    # --- linear algebra ---------------------------------------------------

    def dot(self, other: Vector) -> float:
        return self.x * other.x + self.y * other.y + self.z * other.z

    def cross(self, other: Vector) -> Vector:
        return Vector(
            self.y * other.z - self.z * other.y,
            self.z * other.x - self.x * other.z,
            self.x * other.y - self.y * other.x,
        )

    def norm_sq(self) -> float:
        return self.dot(self)

    def norm(self) -> float:
        return math.sqrt(self.norm_sq())

    def normalize(self) -> Vector:
        """Unit vector in the same direction. A zero vector cannot be normalised."""
        n = self.norm()
        if n == 0.0 or math.isnan(n):
            raise NumericDegeneracyError("cannot normalise a zero-length vector",
                                         normal=self)
        return self / n

    def angle_to(self, other: Vector) -> float:
        """Unsigned angle in radians, with the cosine clamped into [-1, 1]."""
        cos = self.dot(other) / (self.norm() * other.norm())
        if cos > 1.0:
            return 0.0
        if cos < -1.0:
            return math.pi
        return math.acos(cos)

    def proj_onto(self, other: Vector) -> Vector:
        return other * (self.dot(other) / other.norm_sq())

    def rej_onto(self, other: Vector) -> Vector:
        return self - self.proj_onto(other)

    def rotate_around(self, axis: Vector, angle: float) -> Vector:
        """Rodrigues rotation of this vector about ``axis`` by ``angle`` radians."""
        axis = axis.normalize()
        c = math.cos(angle)
        s = math.sin(angle)
        return self * c + axis.cross(self) * s + axis * (axis.dot(self) * (1.0 - c))

    def reflect_across(self, normal: Vector) -> Vector:
        normal = normal.normalize()
        return self - normal * (2.0 * self.dot(normal))

    def has_nan(self) -> bool:
        return math.isnan(self.x) or math.isnan(self.y) or math.isnan(self.z)


@dataclass(frozen=True)
class Point:
    x: float
    y: float
    z: float

    @classmethod
    def zero(cls) -> Point:
        return cls(0.0, 0.0, 0.0)

    @classmethod
    def from_array(cls, arr) -> Point:
        return cls(float(arr[0]), float(arr[1]), float(arr[2]))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)

    def as_vector(self) -> Vector:
        return Vector(self.x, self.y, self.z)

    def __add__(self, other: Vector) -> Point:
        if not isinstance(other, Vector):
            return NotImplemented
        return Point(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other):
        if isinstance(other, Point):
            return Vector(self.x - other.x, self.y - other.y, self.z - other.z)
        if isinstance(other, Vector):
            return Point(self.x - other.x, self.y - other.y, self.z - other.z)
        if isinstance(other, Plane):
            return other.normal * other.distance_to_point(self)
        return NotImplemented

    def __iter__(self):
        yield self.x
        yield self.y
        yield self.z

    def __str__(self) -> str:
        return f"({self.x:.3f}, {self.y:.3f}, {self.z:.3f})"

    def distance(self, other: Point) -> float:
        return (self - other).norm()

    def midpoint(self, other: Point) -> Point:
        return self + (other - self) / 2.0

    def reflect_across(self, plane: Plane) -> Point:
        return self - plane.normal * (2.0 * plane.distance_to_point(self))

    def has_nan(self) -> bool:
        return math.isnan(self.x) or math.isnan(self.y) or math.isnan(self.z)


@dataclass(frozen=True)
class Plane:
    """Plane in Hesse normal form: ``normal . p == offset`` with a unit normal."""

    normal: Vector
    offset: float

    def __post_init__(self):
        object.__setattr__(self, "normal", self.normal.normalize())

    @classmethod
    def from_normal_and_offset(cls, normal: Vector, offset: float) -> Plane:
        return cls(normal, offset)

    @classmethod
    def from_normal_and_point(cls, normal: Vector, point: Point) -> Plane:
        unit = normal.normalize()
        return cls(unit, unit.dot(point.as_vector()))

    @classmethod
    def from_points(cls, p1: Point, p2: Point, p3: Point) -> Plane:
        return cls.from_normal_and_point((p2 - p1).cross(p3 - p1), p1)

    def distance_to_point(self, point: Point) -> float:
        """Signed distance, positive on the side the normal points to."""
        return self.normal.dot(point.as_vector()) - self.offset

    def project_point(self, point: Point) -> Point:
        return point - self.normal * self.distance_to_point(point)

    def reflect_point(self, point: Point) -> Point:
        return point.reflect_across(self)

    def reflect_vector(self, vector: Vector) -> Vector:
        return vector.reflect_across(self.normal)
