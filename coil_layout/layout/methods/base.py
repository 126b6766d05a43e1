"""Abstract base class for layout methods and the shared ring realisation."""

from __future__ import annotations
import logging
import math
from abc import ABC, abstractmethod
from dataclasses import dataclass

from coil_layout.geometry.primitives import Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.models import CircleArgs, Coil, Layout
from coil_layout.layout.mousehole import mousehole_overlap
from coil_layout.layout.rings import (
    add_even_breaks_by_angle,
    choose_zero_angle_vector,
    clean_coil_by_angle,
    sphere_intersect,
)
from coil_layout.layout.symmetry import SymmetryPartition

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RingSettings:
    epsilon: float = 0.15
    pre_shift: bool = True
    wire_radius: float = 0.645
    clearance: float = 1.29


class LayoutMethod(ABC):
    """A strategy turning a surface into a coil layout."""

    display_name: str = ""
    input_filetypes: tuple[str, ...] = ("stl", "obj", "ply")

    @abstractmethod
    def realize(self, surface: Surface) -> Layout:
        """Compute the layout on ``surface``."""
        ...


def realize_coil(surface: Surface, circle: CircleArgs, settings: RingSettings,
                 snap_center: bool = True) -> Coil:
    """Extract and clean the ring where the circle's sphere meets the surface."""
    center = surface.snap_to_surface(circle.center) if snap_center else circle.center
    nearest, points, normals = sphere_intersect(surface, center, circle.coil_radius,
                                                settings.epsilon)
    coil_normal = surface.vertices[nearest].normal.normalize()
    return clean_coil_by_angle(center, coil_normal, circle.coil_radius,
                               settings.wire_radius, points, normals, settings.pre_shift)


def realize_circles(
    surface: Surface,
    circles: list[CircleArgs],
    settings: RingSettings,
    symmetry: SymmetryPartition | None = None,
    snap_centers: bool = True,
    mousehole: bool = True,
) -> Layout:
    """Rings for every circle followed by the overlap pass.

    With ``symmetry`` only on-plane and positive-side rings are extracted; the
    negative side is their exact reflection and centres are used as given.
    """
    if symmetry is None:
        coils = [realize_coil(surface, circle, settings, snap_centers) for circle in circles]
    else:
        free = [realize_coil(surface, circles[i], settings, snap_center=False)
                for i in symmetry.free_indices()]
        mirrored = [coil.reflected(symmetry.plane) for coil in free[symmetry.pos_offset:]]
        coils = free + mirrored
    layout = Layout(coils)
    if mousehole:
        layout = mousehole_overlap(layout, circles, settings.clearance)
    return layout


def add_breaks(
    layout: Layout,
    circles: list[CircleArgs],
    zero_angle_vector: Vector = Vector.zhat(),
    backup_zero_angle_vector: Vector = Vector.yhat(),
) -> Layout:
    """Place the port and breaks on every coil; offsets in ``circles`` are degrees."""
    for coil, circle in zip(layout.coils, circles):
        zero_vec = choose_zero_angle_vector(coil.normal, zero_angle_vector,
                                            backup_zero_angle_vector)
        add_even_breaks_by_angle(coil, circle.break_count,
                                 math.radians(circle.break_angle_offset), zero_vec)
    return layout
