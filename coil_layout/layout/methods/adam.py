"""ADAM-moment gradient descent on the squared coupling objective."""

from __future__ import annotations
import logging
from dataclasses import dataclass, field
from typing import ClassVar

from coil_layout.geometry.primitives import Vector
from coil_layout.layout.boundary import clamp_radius
from coil_layout.layout.methods.iterative import IterativeCircles, OptimizerState
from coil_layout.layout.models import CircleArgs, Layout
from coil_layout.layout.objective import OBJECTIVE_SCALE, is_close_pair

logger = logging.getLogger(__name__)

_MOMENT_EPSILON = 1e-8


@dataclass
class _Moments:
    center_first: list[Vector]
    center_second: list[Vector]
    radius_first: list[float]
    radius_second: list[float]

    @classmethod
    def zeros(cls, count: int) -> _Moments:
        return cls([Vector.zero()] * count, [Vector.zero()] * count,
                   [0.0] * count, [0.0] * count)


@dataclass
class AdamCircles(IterativeCircles):
    step_size: float = 64.0
    first_moment_decay: float = 0.9
    second_moment_decay: float = 0.999
    radius_regularization: float = 1.0

    display_name: ClassVar[str] = "ADAM Circles"

    _moments: _Moments | None = field(default=None, init=False, repr=False)

    def update(self, iteration: int, circles: list[CircleArgs], layout: Layout,
               state: OptimizerState) -> tuple[list[CircleArgs], Layout, float, int]:
        if iteration == 0 or self._moments is None:
            self._moments = _Moments.zeros(len(circles))
        moments = self._moments
        b1, b2 = self.first_moment_decay, self.second_moment_decay
        t = iteration + 1

        objective, close_pairs, center_grads, radial_grads = self._gradients(circles, layout, state)

        new_circles = list(circles)
        for coil_id, coil in enumerate(layout.coils):
            # Gradient projected onto the local tangent plane
            prox = center_grads[coil_id].rej_onto(coil.normal)
            prox = -self.filter_boundary_step(coil_id, coil, -prox, state)

            moments.center_first[coil_id] = moments.center_first[coil_id] * b1 + prox * (1.0 - b1)
            moments.center_second[coil_id] = (moments.center_second[coil_id] * b2
                                              + prox.el_pow(2.0) * (1.0 - b2))
            moments.radius_first[coil_id] = (moments.radius_first[coil_id] * b1
                                             + radial_grads[coil_id] * (1.0 - b1))
            moments.radius_second[coil_id] = (moments.radius_second[coil_id] * b2
                                              + radial_grads[coil_id] ** 2 * (1.0 - b2))

            first_hat = moments.center_first[coil_id] / (1.0 - b1 ** t)
            second_hat = moments.center_second[coil_id] / (1.0 - b2 ** t)
            step = first_hat.el_div(second_hat.el_pow(0.5).el_add(_MOMENT_EPSILON)) * -self.step_size

            radius_first_hat = moments.radius_first[coil_id] / (1.0 - b1 ** t)
            radius_second_hat = moments.radius_second[coil_id] / (1.0 - b2 ** t)
            radius_step = radius_first_hat / (radius_second_hat ** 0.5 + _MOMENT_EPSILON)

            original_radius = state.original[coil_id].coil_radius
            radius = clamp_radius(circles[coil_id].coil_radius - self.step_size * radius_step,
                                  original_radius, self.radius_freedom)
            new_circles[coil_id] = self.move_center(coil_id, coil, step, radius, state)

        new_circles = self.symmetrize(new_circles, state)
        return new_circles, self.realize_layout(new_circles, state), objective, close_pairs

    def _gradients(self, circles: list[CircleArgs], layout: Layout, state: OptimizerState):
        coils = layout.coils
        oracle = self.oracle
        self_l = [oracle.self_inductance(coil) for coil in coils]

        center_grads = [Vector.zero()] * len(coils)
        radial_grads = []
        for coil_id, circle in enumerate(circles):
            original_radius = state.original[coil_id].coil_radius
            rel_err = (circle.coil_radius - original_radius) / original_radius
            radial_grads.append(2.0 * self.radius_regularization * rel_err)

        objective = 0.0
        close_pairs = 0
        for coil_id, coil in enumerate(coils):
            radius = circles[coil_id].coil_radius
            for other_id, other in enumerate(coils):
                if other_id == coil_id or not is_close_pair(
                        coil.center, radius, other.center,
                        circles[other_id].coil_radius, self.close_cutoff):
                    continue
                ll = self_l[coil_id] * self_l[other_id]
                if other_id > coil_id:
                    m, dx, dy, dz, dr = oracle.mutual_inductance_with_gradient(coil, other)
                    objective += m * m * OBJECTIVE_SCALE / ll
                    close_pairs += 1
                    adjustment = Vector(dx, dy, dz) * (2.0 * m / ll)
                    center_grads[coil_id] = center_grads[coil_id] + adjustment
                    center_grads[other_id] = center_grads[other_id] - adjustment
                else:
                    m, dr = oracle.mutual_inductance_dradius(coil, other)
                radial_grads[coil_id] += 2.0 * m * dr / ll

            for static_id, static in self.close_static_coils(coil, radius, state):
                ll = self_l[coil_id] * state.static_self_inductances[static_id]
                m, dx, dy, dz, dr = oracle.mutual_inductance_with_gradient(coil, static)
                objective += m * m * OBJECTIVE_SCALE / ll
                close_pairs += 1
                center_grads[coil_id] = center_grads[coil_id] + Vector(dx, dy, dz) * (2.0 * m / ll)
                radial_grads[coil_id] += 2.0 * m * dr / ll

        return objective, close_pairs, center_grads, radial_grads
