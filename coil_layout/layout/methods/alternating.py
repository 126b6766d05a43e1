"""Force-based decoupling, alternating position and radius passes.

Close pairs repel (or attract, for negative coupling) along the line between
their centres with a force proportional to the coupling factor. The move is
split between the two coils so that the one whose radius has drifted further
from its original value moves less and resizes more.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass
from typing import ClassVar

from coil_layout.geometry.primitives import Vector
from coil_layout.layout.boundary import cap_radius_at_boundary, clamp_radius
from coil_layout.layout.methods.iterative import IterativeCircles, OptimizerState
from coil_layout.layout.models import CircleArgs, Layout
from coil_layout.layout.objective import OBJECTIVE_SCALE, is_close_pair

logger = logging.getLogger(__name__)


@dataclass
class AlternatingCircles(IterativeCircles):
    initial_step: float = 1.0
    step_decrease: float = 0.5
    radial_stiffness: float = 1.0
    iterations: int = 1

    display_name: ClassVar[str] = "Alternating Circles"

    def step_size(self, iteration: int) -> float:
        return self.initial_step / (1.0 + self.step_decrease * iteration)

    def _split(self, rel_err: float, direction: float) -> float:
        """Share of a move taken by a coil with relative radius error ``rel_err``."""
        if self.radius_freedom <= 0.0:
            return 1.0
        return 2.0 ** (self.radial_stiffness * rel_err / self.radius_freedom * direction)

    def _relative_errors(self, circles: list[CircleArgs], state: OptimizerState):
        errors, rel_errors = [], []
        for circle, original in zip(circles, state.original):
            err = circle.coil_radius - original.coil_radius
            errors.append(err)
            rel_errors.append(err / original.coil_radius)
        return errors, rel_errors

    def update(self, iteration: int, circles: list[CircleArgs], layout: Layout,
               state: OptimizerState) -> tuple[list[CircleArgs], Layout, float, int]:
        step = self.step_size(iteration)
        circles = self.symmetrize(self._update_positions(circles, layout, state, step), state)
        layout = self.realize_layout(circles, state)

        circles, objective, close_pairs = self._update_radii(circles, layout, state, step)
        circles = self.symmetrize(circles, state)
        return circles, self.realize_layout(circles, state), objective, close_pairs

    def _update_positions(self, circles, layout, state, step) -> list[CircleArgs]:
        coils = layout.coils
        errors, rel_errors = self._relative_errors(circles, state)
        forces: list[list[Vector]] = [[] for _ in coils]

        for coil_id, coil in enumerate(coils):
            radius = circles[coil_id].coil_radius
            for other_id in range(coil_id + 1, len(coils)):
                other = coils[other_id]
                other_radius = circles[other_id].coil_radius
                if not is_close_pair(coil.center, radius, other.center, other_radius,
                                     self.close_cutoff):
                    continue
                vec_from_other = coil.center - other.center
                if vec_from_other.norm() == 0.0:
                    continue
                distance_scale = radius + other_radius
                d_rel = vec_from_other.norm() / distance_scale
                k = self.oracle.coupling_factor(coil, other)

                d_change = ((d_rel + k) * (-errors[coil_id] - errors[other_id])
                            * self.radial_stiffness + k * distance_scale)
                force = vec_from_other.normalize() * d_change
                direction = math.copysign(1.0, d_change)
                scale_self = self._split(rel_errors[coil_id], direction)
                scale_other = self._split(rel_errors[other_id], direction)
                total = scale_self + scale_other
                forces[coil_id].append(force * (scale_self / total))
                forces[other_id].append(-force * (scale_other / total))

            for _, static in self.close_static_coils(coil, radius, state):
                vec_from_static = coil.center - static.center
                if vec_from_static.norm() == 0.0:
                    continue
                k = self.oracle.coupling_factor(coil, static)
                forces[coil_id].append(vec_from_static.normalize() * (k * radius))

        new_circles = list(circles)
        for coil_id, coil in enumerate(coils):
            delta = Vector.zero()
            for force in forces[coil_id]:
                flat = force.rej_onto(coil.normal)
                if flat.norm() > 0.0:
                    delta = delta + flat.normalize() * force.norm()
            delta = self.filter_boundary_step(coil_id, coil, delta * step, state)
            new_circles[coil_id] = self.move_center(
                coil_id, coil, delta, circles[coil_id].coil_radius, state)
        return new_circles

    def _update_radii(self, circles, layout, state, step):
        coils = layout.coils
        _, rel_errors = self._relative_errors(circles, state)
        objective = 0.0
        close_pairs = 0
        net_change = [0.0] * len(coils)

        new_circles = list(circles)
        for coil_id, coil in enumerate(coils):
            radius = circles[coil_id].coil_radius
            for other_id in range(coil_id + 1, len(coils)):
                other = coils[other_id]
                other_radius = circles[other_id].coil_radius
                if not is_close_pair(coil.center, radius, other.center, other_radius,
                                     self.close_cutoff):
                    continue
                k = self.oracle.coupling_factor(coil, other)
                objective += k * k * OBJECTIVE_SCALE
                close_pairs += 1

                d_change = k * (radius + other_radius)
                direction = -math.copysign(1.0, d_change)
                scale_self = self._split(rel_errors[coil_id], direction)
                scale_other = self._split(rel_errors[other_id], direction)
                total = scale_self + scale_other
                net_change[coil_id] -= d_change * scale_self / total
                net_change[other_id] -= d_change * scale_other / total

            for _, static in self.close_static_coils(coil, radius, state):
                k = self.oracle.coupling_factor(coil, static)
                objective += k * k * OBJECTIVE_SCALE
                close_pairs += 1
                net_change[coil_id] -= k * radius

            original_radius = state.original[coil_id].coil_radius
            radius = clamp_radius(radius + step * net_change[coil_id], original_radius,
                                  self.radius_freedom)
            radius, state.on_boundary[coil_id] = cap_radius_at_boundary(
                coil.center, radius, state.boundary)
            new_circles[coil_id] = circles[coil_id].with_radius(radius)

        return new_circles, objective, close_pairs
