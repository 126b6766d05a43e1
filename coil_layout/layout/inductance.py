"""Inductance of coil rings.

Optimisers only talk to an :class:`InductanceOracle`; the gradient helpers are
central finite differences so any oracle that can evaluate ``mutual_inductance``
supports the gradient-based methods.
"""

from __future__ import annotations
import math
from abc import ABC, abstractmethod

import numpy as np

from coil_layout.geometry.primitives import Vector
from coil_layout.layout.models import Coil, CoilVertex

# Geometric mean radius of a round wire, as a fraction of its radius
WIRE_GMR_FACTOR = 0.7788


def translated(coil: Coil, delta: Vector) -> Coil:
    vertices = [CoilVertex(v.point + delta, v.surface_normal, v.wire_radius_normal)
                for v in coil.vertices]
    return Coil(coil.center + delta, coil.normal, vertices, coil.wire_radius,
                list(coil.breaks), coil.port)


def scaled(coil: Coil, factor: float) -> Coil:
    """Coil scaled about its centre."""
    vertices = [CoilVertex(coil.center + (v.point - coil.center) * factor,
                           v.surface_normal, v.wire_radius_normal)
                for v in coil.vertices]
    return Coil(coil.center, coil.normal, vertices, coil.wire_radius,
                list(coil.breaks), coil.port)


class InductanceOracle(ABC):
    """Self and mutual inductance of closed wire loops."""

    #: finite-difference step in mesh units
    gradient_step: float = 1e-2

    @abstractmethod
    def self_inductance(self, coil: Coil) -> float:
        ...

    @abstractmethod
    def mutual_inductance(self, a: Coil, b: Coil) -> float:
        ...

    def coupling_factor(self, a: Coil, b: Coil) -> float:
        return self.mutual_inductance(a, b) / math.sqrt(
            self.self_inductance(a) * self.self_inductance(b))

    def mutual_inductance_with_gradient(
        self, a: Coil, b: Coil,
    ) -> tuple[float, float, float, float, float]:
        """``(m, dm/dx, dm/dy, dm/dz, dm/dr)`` with derivatives taken with respect to ``a``."""
        h = self.gradient_step
        m = self.mutual_inductance(a, b)
        grads = []
        for axis in (Vector.xhat(), Vector.yhat(), Vector.zhat()):
            plus = self.mutual_inductance(translated(a, axis * h), b)
            minus = self.mutual_inductance(translated(a, axis * -h), b)
            grads.append((plus - minus) / (2.0 * h))
        _, dr = self.mutual_inductance_dradius(a, b, m)
        return m, grads[0], grads[1], grads[2], dr

    def mutual_inductance_dradius(
        self, a: Coil, b: Coil, m: float | None = None,
    ) -> tuple[float, float]:
        """``(m, dm/dr)`` where ``r`` is the mean radius of ``a``."""
        if m is None:
            m = self.mutual_inductance(a, b)
        h = self.gradient_step
        radius = a.mean_radius()
        plus = self.mutual_inductance(scaled(a, 1.0 + h / radius), b)
        minus = self.mutual_inductance(scaled(a, 1.0 - h / radius), b)
        return m, (plus - minus) / (2.0 * h)


def _segments(coil: Coil) -> tuple[np.ndarray, np.ndarray]:
    pts = coil.points_array()
    dl = np.roll(pts, -1, axis=0) - pts
    return pts + 0.5 * dl, dl


class NeumannInductance(InductanceOracle):
    """Neumann double sum over straight wire segments.

    Lengths in mm give inductances in nH. Self inductance replaces the
    singular kernel by ``1 / sqrt(r^2 + gmr^2)`` with ``gmr`` the wire's
    geometric mean radius.
    """

    def __init__(self, scale: float = 1.0):
        self.scale = scale

    def _neumann(self, mid_a, dl_a, mid_b, dl_b, regulariser: float = 0.0) -> float:
        diff = mid_a[:, None, :] - mid_b[None, :, :]
        dist = np.sqrt(np.einsum("ijk,ijk->ij", diff, diff) + regulariser ** 2)
        dots = dl_a @ dl_b.T
        return 0.1 * self.scale * float(np.sum(dots / dist))

    def self_inductance(self, coil: Coil) -> float:
        mid, dl = _segments(coil)
        return self._neumann(mid, dl, mid, dl, WIRE_GMR_FACTOR * coil.wire_radius)

    def mutual_inductance(self, a: Coil, b: Coil) -> float:
        mid_a, dl_a = _segments(a)
        mid_b, dl_b = _segments(b)
        return self._neumann(mid_a, dl_a, mid_b, dl_b)
