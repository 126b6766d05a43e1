"""Mesh builders and a deterministic inductance oracle shared by the tests."""

from __future__ import annotations

import numpy as np

from coil_layout.geometry.primitives import Point, Vector
from coil_layout.layout.inductance import InductanceOracle
from coil_layout.layout.models import Coil


def grid_arrays(half_width: float = 15.0, spacing: float = 0.5):
    """Vertices and counter-clockwise faces of a flat square sheet in z = 0."""
    ticks = np.arange(-half_width, half_width + spacing / 2.0, spacing)
    n = len(ticks)
    xs, ys = np.meshgrid(ticks, ticks, indexing="ij")
    vertices = np.column_stack([xs.ravel(), ys.ravel(), np.zeros(n * n)])

    faces = []
    for i in range(n - 1):
        for j in range(n - 1):
            a = i * n + j
            b = (i + 1) * n + j
            c = (i + 1) * n + j + 1
            d = i * n + j + 1
            faces.append((a, b, c))
            faces.append((a, c, d))
    return vertices, np.array(faces, dtype=int)


def circle_coil(center=(0.0, 0.0, 0.0), radius: float = 5.0, count: int = 64,
                wire_radius: float = 0.5) -> Coil:
    """Planar ring in a plane of constant z, normal +Z."""
    cx, cy, cz = center
    angles = np.linspace(0.0, 2.0 * np.pi, count, endpoint=False)
    points = [Point(cx + radius * np.cos(t), cy + radius * np.sin(t), cz) for t in angles]
    normals = [Vector.zhat()] * count
    return Coil.from_points(Point(cx, cy, cz), Vector.zhat(), points, wire_radius, normals)


class DistanceOracle(InductanceOracle):
    """Smooth stand-in for an inductance solver: coupling falls off with centre distance."""

    def self_inductance(self, coil):
        return 10.0 * coil.mean_radius()

    def mutual_inductance(self, a, b):
        d_sq = (a.center - b.center).norm_sq()
        return 100.0 * a.mean_radius() * b.mean_radius() / (d_sq + 1.0)
