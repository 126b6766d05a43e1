"""Keeping circles on the surface and away from its open boundary."""

from __future__ import annotations
import logging
import math
import warnings

from coil_layout.errors import BoundaryShiftWarning, NumericDegeneracyError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.models import CircleArgs
from coil_layout.layout.symmetry import SymmetryPartition

logger = logging.getLogger(__name__)

BOUNDARY_PUSHES = 10


class BoundaryIndex:
    """Nearest-boundary-point queries; a closed surface has no boundary."""

    def __init__(self, surface: Surface):
        from scipy.spatial import cKDTree

        self.points = surface.boundary_points()
        self._tree = cKDTree(self.points) if len(self.points) else None

    def __bool__(self) -> bool:
        return self._tree is not None

    def closest(self, point: Point) -> Point | None:
        if self._tree is None:
            return None
        _, idx = self._tree.query(point.as_array())
        return Point.from_array(self.points[idx])

    def distance(self, point: Point) -> float:
        if self._tree is None:
            return math.inf
        dist, _ = self._tree.query(point.as_array())
        return float(dist)


def push_from_boundary(center: Point, radius: float,
                       boundary: BoundaryIndex) -> tuple[Point, float, bool]:
    """Push ``center`` away from the nearest boundary point until the circle fits.

    The last of the pushes shrinks the radius instead of moving the centre.
    Returns ``(center, radius, hit)``.
    """
    boundary_point = boundary.closest(center)
    if boundary_point is None:
        return center, radius, False

    hit = False
    for i in range(BOUNDARY_PUSHES):
        vec = center - boundary_point
        dist = vec.norm()
        if dist >= radius:
            continue
        hit = True
        if i < BOUNDARY_PUSHES - 1:
            if dist == 0.0:
                raise NumericDegeneracyError(
                    "Coil center sits on a boundary vertex", center=center)
            center = boundary_point + vec.normalize() * radius
        else:
            radius = dist
    return center, radius, hit


def cap_radius_at_boundary(center: Point, radius: float,
                           boundary: BoundaryIndex) -> tuple[float, bool]:
    dist = boundary.distance(center)
    if radius > dist:
        return dist, True
    return radius, False


def remove_boundary_component(step: Vector, center: Point, normal: Vector,
                              boundary: BoundaryIndex) -> tuple[Vector, bool]:
    """Drop the part of ``step`` that moves a boundary-touching circle toward the boundary.

    Returns the filtered step and whether the circle is still held at the boundary.
    """
    boundary_point = boundary.closest(center)
    if boundary_point is None:
        return step, False
    away = (center - boundary_point).rej_onto(normal)
    if away.norm() == 0.0:
        return step, True
    if step.dot(away) < 0.0:
        return step - step.proj_onto(away), True
    return step, False


def clamp_to_freedom(center: Point, step: Vector, normal: Vector,
                     original_center: Point, bound: float) -> Vector:
    """Shorten ``step`` so the tangential move keeps ``center`` within ``bound`` of its start."""
    total_delta = (center + step.rej_onto(normal)) - original_center
    total = total_delta.norm()
    if total > bound:
        step = step + total_delta.normalize() * (bound - total)
    return step


def clamp_radius(radius: float, original_radius: float, radius_freedom: float) -> float:
    return min(max(radius, original_radius * (1.0 - radius_freedom)),
               original_radius * (1.0 + radius_freedom))


def shrink_initial_circles(
    circles: list[CircleArgs],
    surface: Surface,
    boundary: BoundaryIndex,
    warn_on_shift: bool = True,
    partition: SymmetryPartition | None = None,
) -> tuple[list[CircleArgs], list[bool]]:
    """Move circles that overlap the boundary inward and shrink them to fit.

    With a symmetry ``partition`` the mirror image follows each moved circle.
    """
    circles = list(circles)
    on_boundary = [False] * len(circles)
    if not boundary:
        return circles, on_boundary

    for i in range(len(circles)):
        circle = circles[i]
        boundary_point = boundary.closest(circle.center)
        vec = circle.center - boundary_point
        dist = vec.norm()
        if dist >= circle.coil_radius:
            continue
        if dist == 0.0:
            raise NumericDegeneracyError(
                f"Circle {i} is centred on a boundary vertex", center=circle.center)

        center = surface.snap_to_surface(boundary_point + vec.normalize() * circle.coil_radius)
        radius = min(circle.coil_radius, boundary.distance(center))
        shift = center.distance(circle.center)
        circles[i] = CircleArgs(center, radius, circle.break_count,
                                circle.break_angle_offset, circle.on_symmetry_plane)
        on_boundary[i] = True

        mirror_of = None
        if partition is not None:
            mirror = partition.mirror_of(i)
            if mirror is not None:
                circles[mirror] = circles[mirror].with_center(
                    partition.plane.reflect_point(center))
                if partition.role(i) == "neg":
                    mirror_of = mirror

        logger.debug("Circle %d shifted %.3f away from the boundary", i, shift)
        if warn_on_shift:
            warnings.warn(BoundaryShiftWarning(i, shift, center, radius, mirror_of=mirror_of),
                          stacklevel=2)
    return circles, on_boundary
