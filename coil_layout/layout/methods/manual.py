"""Coils placed exactly where the user asks."""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass, field
from typing import ClassVar

from coil_layout.errors import BoundaryProximityWarning, InputValidationError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.boundary import BoundaryIndex
from coil_layout.layout.inductance import InductanceOracle, NeumannInductance
from coil_layout.layout.methods.base import LayoutMethod, RingSettings, add_breaks, realize_circles
from coil_layout.layout.models import CircleArgs, Layout
from coil_layout.layout.objective import coupling_statistics, log_statistics

logger = logging.getLogger(__name__)


@dataclass
class ManualCircles(LayoutMethod):
    """Realise the given circles once, resolve overlaps and place breaks."""

    circles: list[CircleArgs]
    clearance: float = 1.29
    wire_radius: float = 0.645
    epsilon: float = 0.15
    pre_shift: bool = True
    zero_angle_vector: Vector = field(default_factory=Vector.zhat)
    backup_zero_angle_vector: Vector = field(default_factory=Vector.yhat)
    verbose: bool = False
    oracle: InductanceOracle = field(default_factory=NeumannInductance, repr=False)

    display_name: ClassVar[str] = "Manual Circles"

    def realize(self, surface: Surface) -> Layout:
        if not self.circles:
            raise InputValidationError("Manual layout needs at least one circle")

        boundary = BoundaryIndex(surface)
        for coil_id, circle in enumerate(self.circles):
            distance = boundary.distance(circle.center)
            if distance < circle.coil_radius:
                warnings.warn(BoundaryProximityWarning(coil_id, circle.coil_radius, distance),
                              stacklevel=2)

        settings = RingSettings(self.epsilon, self.pre_shift, self.wire_radius, self.clearance)
        layout = realize_circles(surface, self.circles, settings, snap_centers=False)
        logger.info("Realised %d manual coil(s)", len(layout.coils))

        if self.verbose:
            stats = coupling_statistics(self.circles, layout, None, self.oracle,
                                        close_cutoff=0.0, report_all=True)
            log_statistics(stats, level=2, label="Manual layout")

        return add_breaks(layout, self.circles, self.zero_angle_vector,
                          self.backup_zero_angle_vector)


@dataclass
class SingleCircle(LayoutMethod):
    """A single ring; no overlap handling and no breaks."""

    center: Point = field(default_factory=Point.zero)
    coil_radius: float = 5.0
    wire_radius: float = 0.645
    epsilon: float = 0.15
    pre_shift: bool = True

    display_name: ClassVar[str] = "Single Circle"

    def realize(self, surface: Surface) -> Layout:
        settings = RingSettings(self.epsilon, self.pre_shift, self.wire_radius)
        circle = CircleArgs(self.center, self.coil_radius)
        return realize_circles(surface, [circle], settings, snap_centers=False,
                               mousehole=False)
