"""Mirror symmetry of a circle set across a plane.

Circles are ordered ``sym + pos + neg``: circles centred on the plane, circles
on its positive side, and the reflections of the positive ones in the same
order.
"""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass

from coil_layout.errors import SymmetryPlaneWarning
from coil_layout.geometry.primitives import Plane
from coil_layout.geometry.surface import Surface
from coil_layout.layout.models import CircleArgs

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SymmetryPartition:
    plane: Plane
    sym_count: int
    pos_count: int

    @property
    def pos_offset(self) -> int:
        return self.sym_count

    @property
    def neg_offset(self) -> int:
        return self.sym_count + self.pos_count

    @property
    def total(self) -> int:
        return self.sym_count + 2 * self.pos_count

    def role(self, index: int) -> str:
        if index < self.pos_offset:
            return "sym"
        if index < self.neg_offset:
            return "pos"
        return "neg"

    def mirror_of(self, index: int) -> int | None:
        """Index of the mirror image of circle ``index``; on-plane circles have none."""
        role = self.role(index)
        if role == "pos":
            return index + self.pos_count
        if role == "neg":
            return index - self.pos_count
        return None

    def free_indices(self) -> range:
        """Circles whose position is independent (on-plane and positive side)."""
        return range(self.neg_offset)


def partition_circles(
    circles: list[CircleArgs], plane: Plane, epsilon: float,
) -> tuple[list[CircleArgs], SymmetryPartition]:
    """Split ``circles`` across ``plane`` and append the reflected copies."""
    sym, pos = [], []
    for i, circle in enumerate(circles):
        dist = plane.distance_to_point(circle.center)
        if circle.on_symmetry_plane:
            if abs(dist) > epsilon:
                warnings.warn(SymmetryPlaneWarning(
                    i, dist, f"marked on the symmetry plane but {dist:.3f} away, projecting"),
                    stacklevel=2)
            sym.append(circle.with_center(plane.project_point(circle.center)))
            continue

        if dist < 0.0:
            warnings.warn(SymmetryPlaneWarning(
                i, dist, "on the negative side of the symmetry plane, flipping"), stacklevel=2)
            circle = circle.with_center(plane.reflect_point(circle.center))
        elif abs(dist) < epsilon:
            warnings.warn(SymmetryPlaneWarning(
                i, dist, "very close to the symmetry plane but not marked as on it"),
                stacklevel=2)
        pos.append(circle)

    neg = [c.with_center(plane.reflect_point(c.center)) for c in pos]
    logger.debug("Symmetry partition: %d on plane, %d mirrored pairs", len(sym), len(pos))
    return sym + pos + neg, SymmetryPartition(plane, len(sym), len(pos))


def enforce_symmetry(circles: list[CircleArgs], partition: SymmetryPartition,
                     surface: Surface) -> list[CircleArgs]:
    """Put on-plane circles back on the plane and make mirrored pairs exact reflections."""
    plane = partition.plane
    circles = list(circles)
    for i in range(partition.sym_count):
        center = plane.project_point(circles[i].center)
        center = center - surface.vector_to_surface(center).rej_onto(plane.normal)
        circles[i] = circles[i].with_center(center)

    for i in range(partition.pos_offset, partition.neg_offset):
        j = i + partition.pos_count
        center = circles[i].center.midpoint(plane.reflect_point(circles[j].center))
        radius = 0.5 * (circles[i].coil_radius + circles[j].coil_radius)
        circles[i] = circles[i].with_center(center).with_radius(radius)
        circles[j] = circles[j].with_center(plane.reflect_point(center)).with_radius(radius)
    return circles
