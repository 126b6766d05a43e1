"""Shared driver for the iterative decoupling optimisers.

Each iteration computes an update from the layout realised in the previous
iteration, realises the updated circles, and keeps the layout with the lowest
RMS coupling seen so far.
"""

from __future__ import annotations
import logging
import math
import warnings
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import ClassVar

from tqdm import tqdm

from coil_layout.errors import CloseCoilCountWarning
from coil_layout.geometry.primitives import Plane, Point, Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.boundary import (
    BoundaryIndex,
    clamp_to_freedom,
    push_from_boundary,
    remove_boundary_component,
    shrink_initial_circles,
)
from coil_layout.layout.inductance import InductanceOracle, NeumannInductance
from coil_layout.layout.methods.base import LayoutMethod, RingSettings, add_breaks, realize_circles
from coil_layout.layout.models import CircleArgs, Coil, Layout
from coil_layout.layout.objective import (
    count_close_pairs,
    coupling_statistics,
    is_close_to_static,
    log_statistics,
)
from coil_layout.layout.symmetry import SymmetryPartition, enforce_symmetry, partition_circles

logger = logging.getLogger(__name__)


@dataclass
class OptimizerState:
    """Everything an update step needs besides the circles and the current layout."""

    surface: Surface
    boundary: BoundaryIndex
    settings: RingSettings
    original: list[CircleArgs]
    on_boundary: list[bool]
    static_layout: Layout | None = None
    partition: SymmetryPartition | None = None
    static_self_inductances: list[float] = field(default_factory=list)


@dataclass
class IterativeCircles(LayoutMethod):
    """Base for optimisers moving and resizing circles to reduce mutual coupling."""

    circles: list[CircleArgs]
    symmetry_plane: Plane | None = None
    layout_in: str | None = None
    epsilon: float = 0.15
    pre_shift: bool = True
    clearance: float = 1.29
    wire_radius: float = 0.645
    zero_angle_vector: Vector = field(default_factory=Vector.zhat)
    backup_zero_angle_vector: Vector = field(default_factory=Vector.yhat)
    iterations: int = 0
    center_freedom: float = 0.5
    radius_freedom: float = 0.15
    close_cutoff: float = 1.1
    warn_on_shift: bool = True
    statistics_level: int = 0
    final_cfg_output: str | None = None
    verbose: bool = False
    oracle: InductanceOracle = field(default_factory=NeumannInductance, repr=False)

    display_name: ClassVar[str] = "Iterative Circles"

    @abstractmethod
    def update(
        self, iteration: int, circles: list[CircleArgs], layout: Layout, state: OptimizerState,
    ) -> tuple[list[CircleArgs], Layout, float, int]:
        """One iteration: ``(new_circles, new_layout, objective, close_pairs)``.

        ``objective`` and ``close_pairs`` are the coupling evaluated during
        the update, before the new circles were realised.
        """
        ...

    # ------------------------------------------------------------------
    # Driver
    # ------------------------------------------------------------------

    def realize(self, surface: Surface) -> Layout:
        from coil_layout.io.layout_io import load_layout, save_circles

        settings = RingSettings(self.epsilon, self.pre_shift, self.wire_radius, self.clearance)
        static_layout = load_layout(self.layout_in) if self.layout_in else None

        circles = list(self.circles)
        partition = None
        if self.symmetry_plane is not None:
            circles, partition = partition_circles(circles, self.symmetry_plane, self.epsilon)
        original = list(circles)

        boundary = BoundaryIndex(surface)
        circles, on_boundary = shrink_initial_circles(
            circles, surface, boundary, self.warn_on_shift, partition)

        state = OptimizerState(
            surface, boundary, settings, original, on_boundary, static_layout, partition,
            [self.oracle.self_inductance(c) for c in static_layout.coils] if static_layout else [],
        )

        close_pairs = count_close_pairs(circles, static_layout, self.close_cutoff)
        layout = self.realize_layout(circles, state)
        prev_layout = layout
        best_layout = layout
        best_rms = math.inf

        for i in tqdm(range(self.iterations), desc=self.display_name, unit="iter",
                      disable=not self.verbose, leave=False):
            circles, layout, objective, new_close_pairs = self.update(i, circles, layout, state)
            rms = math.sqrt(objective / new_close_pairs) if new_close_pairs else 0.0
            if rms < best_rms:
                best_layout = prev_layout
                best_rms = rms
            prev_layout = layout

            logger.info("Iteration %d/%d: RMS coupling %.2f", i + 1, self.iterations, rms)
            if close_pairs != new_close_pairs:
                warnings.warn(CloseCoilCountWarning(close_pairs, new_close_pairs), stacklevel=2)
            close_pairs = new_close_pairs

        stats = coupling_statistics(circles, layout, static_layout, self.oracle, self.close_cutoff,
                                    report_all=self.statistics_level > 1,
                                    report_all_static=self.statistics_level > 2)
        if stats.rms < best_rms:
            best_layout = layout
            best_rms = stats.rms
        log_statistics(stats, self.statistics_level)
        logger.info("Best RMS coupling: %.4f", best_rms)

        if self.final_cfg_output:
            save_circles(circles, self.final_cfg_output)
            logger.info("Final circles written to %s", self.final_cfg_output)

        return add_breaks(best_layout.copy(), circles, self.zero_angle_vector,
                          self.backup_zero_angle_vector)

    # ------------------------------------------------------------------
    # Helpers for subclasses
    # ------------------------------------------------------------------

    def realize_layout(self, circles: list[CircleArgs], state: OptimizerState) -> Layout:
        return realize_circles(state.surface, circles, state.settings, state.partition)

    def symmetrize(self, circles: list[CircleArgs], state: OptimizerState) -> list[CircleArgs]:
        if state.partition is None:
            return circles
        return enforce_symmetry(circles, state.partition, state.surface)

    def close_static_coils(self, coil: Coil, radius: float,
                           state: OptimizerState) -> list[tuple[int, Coil]]:
        if state.static_layout is None:
            return []
        return [(s, static) for s, static in enumerate(state.static_layout.coils)
                if is_close_to_static(coil.center, radius, static, self.close_cutoff)]

    def filter_boundary_step(self, coil_id: int, coil: Coil, step: Vector,
                             state: OptimizerState) -> Vector:
        """Drop the step component driving a boundary-held circle into the boundary."""
        if not state.on_boundary[coil_id]:
            return step
        step, held = remove_boundary_component(step, coil.center, coil.normal, state.boundary)
        state.on_boundary[coil_id] = held
        return step

    def move_center(self, coil_id: int, coil: Coil, step: Vector, radius: float,
                    state: OptimizerState) -> CircleArgs:
        """Apply a tangential step within the freedom bound, keep clear of the
        boundary and snap back onto the surface."""
        original = state.original[coil_id]
        step = clamp_to_freedom(coil.center, step, coil.normal, original.center,
                                self.center_freedom * original.coil_radius)
        center = coil.center + step.rej_onto(coil.normal)
        return self.place(coil_id, center, radius, state)

    def place(self, coil_id: int, center: Point, radius: float,
              state: OptimizerState) -> CircleArgs:
        center, radius, hit = push_from_boundary(center, radius, state.boundary)
        if hit:
            state.on_boundary[coil_id] = True
        center = state.surface.snap_to_surface(center)
        return state.original[coil_id].with_center(center).with_radius(radius)
