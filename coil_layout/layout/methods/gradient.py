"""Plain gradient descent, alternating a position pass and a radius pass."""

from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import ClassVar

from coil_layout.geometry.primitives import Vector
from coil_layout.layout.boundary import cap_radius_at_boundary, clamp_radius
from coil_layout.layout.methods.iterative import IterativeCircles, OptimizerState
from coil_layout.layout.models import CircleArgs, Layout
from coil_layout.layout.objective import OBJECTIVE_SCALE, is_close_pair

logger = logging.getLogger(__name__)


@dataclass
class GradientCircles(IterativeCircles):
    initial_step: float = 64.0
    step_halflife: float = 0.0          # 0 keeps the step constant
    radius_regularization: float = 1.0

    display_name: ClassVar[str] = "Gradient Circles"

    def step_size(self, iteration: int) -> float:
        if self.step_halflife <= 0.0:
            return self.initial_step
        return self.initial_step * 0.5 ** (iteration / self.step_halflife)

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
        self_l = [self.oracle.self_inductance(coil) for coil in coils]
        deltas = [Vector.zero()] * len(coils)

        for coil_id, coil in enumerate(coils):
            radius = circles[coil_id].coil_radius
            for other_id in range(coil_id + 1, len(coils)):
                other = coils[other_id]
                if not is_close_pair(coil.center, radius, other.center,
                                     circles[other_id].coil_radius, self.close_cutoff):
                    continue
                m, dx, dy, dz, _ = self.oracle.mutual_inductance_with_gradient(coil, other)
                ll = self_l[coil_id] * self_l[other_id]
                adjustment = Vector(dx, dy, dz) * (-step * 2.0 * m / ll)
                deltas[coil_id] = deltas[coil_id] + adjustment
                deltas[other_id] = deltas[other_id] - adjustment

            for static_id, static in self.close_static_coils(coil, radius, state):
                m, dx, dy, dz, _ = self.oracle.mutual_inductance_with_gradient(coil, static)
                ll = self_l[coil_id] * state.static_self_inductances[static_id]
                # Static coils stay put, this coil takes the whole move
                deltas[coil_id] = deltas[coil_id] + Vector(dx, dy, dz) * (-step * 4.0 * m / ll)

        new_circles = list(circles)
        for coil_id, coil in enumerate(coils):
            delta = self.filter_boundary_step(
                coil_id, coil, deltas[coil_id].rej_onto(coil.normal), state)
            new_circles[coil_id] = self.move_center(
                coil_id, coil, delta, circles[coil_id].coil_radius, state)
        return new_circles

    def _update_radii(self, circles, layout, state, step):
        coils = layout.coils
        self_l = [self.oracle.self_inductance(coil) for coil in coils]
        objective = 0.0
        close_pairs = 0

        new_circles = list(circles)
        for coil_id, coil in enumerate(coils):
            radius = circles[coil_id].coil_radius
            original_radius = state.original[coil_id].coil_radius
            rel_err = (radius - original_radius) / original_radius
            net_change = 0.0

            for other_id, other in enumerate(coils):
                if other_id == coil_id or not is_close_pair(
                        coil.center, radius, other.center,
                        circles[other_id].coil_radius, self.close_cutoff):
                    continue
                m, dr = self.oracle.mutual_inductance_dradius(coil, other)
                ll = self_l[coil_id] * self_l[other_id]
                if other_id > coil_id:
                    objective += m * m * OBJECTIVE_SCALE / ll
                    close_pairs += 1
                net_change -= step * (2.0 * m * dr / ll + self.radius_regularization * rel_err)

            for static_id, static in self.close_static_coils(coil, radius, state):
                m, dr = self.oracle.mutual_inductance_dradius(coil, static)
                ll = self_l[coil_id] * state.static_self_inductances[static_id]
                objective += m * m * OBJECTIVE_SCALE / ll
                close_pairs += 1
                net_change -= step * (2.0 * m * dr / ll + self.radius_regularization * rel_err)

            radius = clamp_radius(radius + net_change, original_radius, self.radius_freedom)
            radius, state.on_boundary[coil_id] = cap_radius_at_boundary(
                coil.center, radius, state.boundary)
            new_circles[coil_id] = circles[coil_id].with_radius(radius)

        return new_circles, objective, close_pairs
