"""Central data structures for coil layouts."""

from __future__ import annotations
from dataclasses import dataclass, field, replace

import numpy as np

from coil_layout.errors import InputValidationError
from coil_layout.geometry.primitives import Point, Vector, Plane


@dataclass(frozen=True)
class CircleArgs:
    center: Point
    coil_radius: float = 5.0
    break_count: int = 4
    break_angle_offset: float = 0.0      # degrees
    on_symmetry_plane: bool = False

    def with_center(self, center: Point) -> CircleArgs:
        return replace(self, center=center)

    def with_radius(self, coil_radius: float) -> CircleArgs:
        return replace(self, coil_radius=coil_radius)


@dataclass(frozen=True)
class CoilVertex:
    point: Point
    surface_normal: Vector
    wire_radius_normal: Vector


@dataclass
class Coil:
    center: Point
    normal: Vector
    vertices: list[CoilVertex]
    wire_radius: float
    breaks: list[int] = field(default_factory=list)
    port: int | None = None

    @classmethod
    def from_points(
        cls,
        center: Point,
        normal: Vector,
        points: list[Point],
        wire_radius: float,
        normals: list[Vector],
    ) -> Coil:
        """Build a closed coil; the wire-radius normal starts as the surface normal."""
        if len(points) < 3:
            raise InputValidationError(
                f"A coil needs at least 3 points, got {len(points)}")
        if len(points) != len(normals):
            raise InputValidationError(
                f"Point list (length {len(points)}) must be the same length "
                f"as the normal list ({len(normals)})")
        for point_id, (point, point_normal) in enumerate(zip(points, normals)):
            if point.has_nan() or point_normal.has_nan():
                raise InputValidationError(f"Coil point {point_id} contains NaN")
        vertices = [CoilVertex(p, n, n) for p, n in zip(points, normals)]
        return cls(center, normal, vertices, wire_radius)

    def __len__(self) -> int:
        return len(self.vertices)

    def points_array(self) -> np.ndarray:
        return np.array([[v.point.x, v.point.y, v.point.z] for v in self.vertices],
                        dtype=float).reshape(-1, 3)

    def wire_length(self) -> float:
        pts = self.points_array()
        return float(np.linalg.norm(pts - np.roll(pts, 1, axis=0), axis=1).sum())

    def mean_radius(self) -> float:
        return float(np.linalg.norm(self.points_array() - self.center.as_array(),
                                    axis=1).mean())

    def reflected(self, plane: Plane) -> Coil:
        """Mirror image across ``plane``; point order is reversed to keep the winding."""
        points = [plane.reflect_point(v.point) for v in reversed(self.vertices)]
        normals = [plane.reflect_vector(v.surface_normal) for v in reversed(self.vertices)]
        return Coil.from_points(
            plane.reflect_point(self.center),
            plane.reflect_vector(self.normal),
            points,
            self.wire_radius,
            normals,
        )

    def copy(self) -> Coil:
        return Coil(self.center, self.normal, list(self.vertices), self.wire_radius,
                    list(self.breaks), self.port)


@dataclass
class Layout:
    coils: list[Coil] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.coils)

    def copy(self) -> Layout:
        return Layout([coil.copy() for coil in self.coils])
