"""Isometric initial placement by k-means over the surface vertices.

Cluster centres become circle centres with one shared radius derived from the
spacing between neighbouring centres; the result is then handed to an
iterative optimiser for decoupling.
"""

from __future__ import annotations
import logging
import warnings
from dataclasses import dataclass, field
from typing import ClassVar

import numpy as np

from coil_layout.errors import InputValidationError, VisualizationModeWarning
from coil_layout.geometry.primitives import Plane, Point, Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.boundary import BoundaryIndex
from coil_layout.layout.inductance import InductanceOracle, NeumannInductance
from coil_layout.layout.methods.adam import AdamCircles
from coil_layout.layout.methods.alternating import AlternatingCircles
from coil_layout.layout.methods.base import LayoutMethod
from coil_layout.layout.models import CircleArgs, Layout

logger = logging.getLogger(__name__)

TRIM_ROUNDS = 5
KMEANS_MAX_ITER = 1000
_NEARBY_FACTOR = 1.35
_RADIUS_DIVISOR = 1.5
_PLANE_TOL = 1e-6


# ---------------------------------------------------------------------------
# k-means
# ---------------------------------------------------------------------------

def farthest_point_centers(points: np.ndarray, k: int) -> np.ndarray:
    """Deterministic seeding: start at ``points[0]``, repeatedly add the farthest point."""
    centers = [points[0]]
    min_dist = np.linalg.norm(points - points[0], axis=1)
    for _ in range(1, k):
        idx = int(np.argmax(min_dist))
        centers.append(points[idx])
        min_dist = np.minimum(min_dist, np.linalg.norm(points - points[idx], axis=1))
    return np.array(centers, dtype=float)


def k_means_initialized(points: np.ndarray, centers: np.ndarray,
                        max_iter: int) -> np.ndarray:
    """Lloyd iterations from ``centers``; an empty cluster keeps its previous centre."""
    centers = np.array(centers, dtype=float).copy()
    for it in range(max_iter):
        dist = np.linalg.norm(points[:, None, :] - centers[None, :, :], axis=2)
        assignment = np.argmin(dist, axis=1)

        new_centers = centers.copy()
        for center_id in range(len(centers)):
            members = points[assignment == center_id]
            if len(members):
                new_centers[center_id] = members.mean(axis=0)

        max_change = float(np.max(np.linalg.norm(new_centers - centers, axis=1)))
        if max_change < 1e-6:
            logger.debug("k-means converged after %d iteration(s)", it)
            break
        centers = new_centers
    return centers


def k_means(points: np.ndarray, k: int, max_iter: int) -> np.ndarray:
    if k > len(points):
        raise InputValidationError(f"Cannot place {k} centres on {len(points)} points")
    return k_means_initialized(points, farthest_point_centers(points, k), max_iter)


def symmetrize_centers(centers: np.ndarray, plane: Plane) -> list[tuple[np.ndarray, float, int]]:
    """Pair each centre with the nearest reflected centre.

    Returns ``(midpoint, distance, side)`` sorted by signed distance, where
    ``side`` is 0 for a centre matched with its own reflection and otherwise
    the side of the plane it lies on.
    """
    normal = plane.normal.as_array()
    signed = centers @ normal - plane.offset
    reflected = centers - 2.0 * signed[:, None] * normal
    dist = np.linalg.norm(centers[:, None, :] - reflected[None, :, :], axis=2)

    info = []
    for i, center in enumerate(centers):
        match = int(np.argmin(dist[i]))
        midpoint = center + 0.5 * (reflected[match] - center)
        if match == i:
            side = 0
        else:
            side = 1 if signed[i] > 0.0 else -1
        info.append((midpoint, float(dist[i, match]), side))
    info.sort(key=lambda item: item[1] * item[2])
    return info


def trim_asymmetric(info: list[tuple[np.ndarray, float, int]]) -> np.ndarray:
    """Drop unpaired centres from the over-represented side."""
    asymmetry = sum(side for _, _, side in info)
    if asymmetry < 0:
        info = info[-asymmetry:]
    elif asymmetry > 0:
        info = info[:len(info) - asymmetry]
    logger.debug("Asymmetry %d, %d centre(s) kept", asymmetry, len(info))
    return np.array([p for p, _, _ in info], dtype=float)


def k_means_symmetric(points: np.ndarray, k: int, plane: Plane,
                      initial_centers: np.ndarray | None, max_iter: int) -> np.ndarray:
    if initial_centers is None:
        centers = k_means(points, k, max_iter)
    else:
        centers = np.array(initial_centers, dtype=float)

    centers = trim_asymmetric(symmetrize_centers(centers, plane))
    info = symmetrize_centers(centers, plane)
    for _ in range(max_iter):
        stepped = k_means_initialized(points, centers, 1)
        info = symmetrize_centers(stepped, plane)
        new_centers = np.array([p for p, _, _ in info], dtype=float)
        converged = bool(np.all(np.linalg.norm(new_centers - centers, axis=1) <= 1e-3))
        centers = new_centers
        if converged:
            break
    return trim_asymmetric(info)


def isometric_radius(centers: np.ndarray) -> float:
    """Mean spacing to each centre's near neighbours, scaled down to leave overlap."""
    dist = np.linalg.norm(centers[:, None, :] - centers[None, :, :], axis=2)
    np.fill_diagonal(dist, np.inf)
    min_dist = dist.min(axis=1)
    total = 0.0
    for i in range(len(centers)):
        nearby = dist[i][dist[i] < _NEARBY_FACTOR * min_dist[i]]
        total += float(nearby.mean())
    return total / (_RADIUS_DIVISOR * len(centers))


# ---------------------------------------------------------------------------
# Method
# ---------------------------------------------------------------------------

@dataclass
class KMeansIsometric(LayoutMethod):
    circles: int = 12
    symmetry_plane: Plane | None = None
    initial_centers: list[Point] | None = None
    visualize: bool = False
    centers_output: str | None = None
    optimizer: str = "alternating"

    epsilon: float = 1.5
    pre_shift: bool = True
    clearance: float = 1.29
    wire_radius: float = 0.645
    zero_angle_vector: Vector = field(default_factory=Vector.zhat)
    backup_zero_angle_vector: Vector = field(default_factory=Vector.yhat)

    iterations: int = 0
    step_size: float = 0.2
    first_moment_decay: float = 0.9
    second_moment_decay: float = 0.999
    radius_regularization: float = 0.1
    radius_freedom: float = 0.65
    center_freedom: float = 0.95
    close_cutoff: float = 0.95

    verbose: bool = False
    warn_on_shift: bool = True
    statistics_level: int = 0
    final_cfg_output: str | None = None
    oracle: InductanceOracle = field(default_factory=NeumannInductance, repr=False)

    display_name: ClassVar[str] = "K-means Isometric Circles"

    def __post_init__(self):
        if self.optimizer not in ("alternating", "adam"):
            raise InputValidationError(
                f"Unknown k-means optimizer '{self.optimizer}' (expected 'alternating' or 'adam')")
        if self.circles < 2:
            raise InputValidationError(f"K-means layout needs at least 2 circles, got {self.circles}")

    def place_centers(self, surface: Surface) -> tuple[np.ndarray, float]:
        """Cluster the surface and shrink the usable area until centres clear the boundary."""
        boundary = BoundaryIndex(surface)
        points = surface.points.copy()
        initial = (np.array([list(p) for p in self.initial_centers], dtype=float)
                   if self.initial_centers else None)

        centers = None
        radius = 0.0
        trim = 0.0
        for it in range(TRIM_ROUNDS):
            logger.info("Trim pass %d/%d", it + 1, TRIM_ROUNDS)
            seed = initial if initial is not None else centers
            if self.symmetry_plane is None:
                if seed is None:
                    centers = k_means(points, self.circles, KMEANS_MAX_ITER)
                else:
                    centers = k_means_initialized(points, seed, KMEANS_MAX_ITER)
            else:
                centers = k_means_symmetric(points, self.circles, self.symmetry_plane,
                                            seed, KMEANS_MAX_ITER)

            radius = isometric_radius(centers)
            if not boundary:
                break

            dist = np.linalg.norm(centers[:, None, :] - centers[None, :, :], axis=2)
            np.fill_diagonal(dist, np.inf)
            min_dist = dist.min(axis=1)
            boundary_dist = np.array([boundary.distance(Point.from_array(c)) for c in centers])
            near = boundary_dist - trim < min_dist
            mean_boundary_dist = float(boundary_dist[near].mean()) if np.any(near) else np.inf

            if mean_boundary_dist >= radius:
                break
            trim += 1.1 * (radius - mean_boundary_dist)
            logger.info("Trimming %.3f from the boundary", trim)

            from scipy.spatial import cKDTree

            gap, _ = cKDTree(boundary.points).query(points)
            points = points[gap >= trim]
            if len(points) < self.circles:
                raise InputValidationError(
                    f"Boundary trim left {len(points)} points for {self.circles} centres")

        return centers, radius

    def circles_from_centers(self, centers: np.ndarray, radius: float) -> list[CircleArgs]:
        circles = []
        for c in centers:
            center = Point.from_array(c)
            if self.symmetry_plane is None:
                circles.append(CircleArgs(center, radius))
                continue
            dist = self.symmetry_plane.distance_to_point(center)
            if dist >= -_PLANE_TOL:
                circles.append(CircleArgs(center, radius,
                                          on_symmetry_plane=abs(dist) < _PLANE_TOL))
        return circles

    def delegate(self, circles: list[CircleArgs], iterations: int) -> LayoutMethod:
        common = dict(
            circles=circles,
            symmetry_plane=self.symmetry_plane,
            epsilon=self.epsilon,
            pre_shift=self.pre_shift,
            clearance=self.clearance,
            wire_radius=self.wire_radius,
            zero_angle_vector=self.zero_angle_vector,
            backup_zero_angle_vector=self.backup_zero_angle_vector,
            iterations=iterations,
            center_freedom=self.center_freedom,
            radius_freedom=self.radius_freedom,
            close_cutoff=self.close_cutoff,
            warn_on_shift=self.warn_on_shift,
            statistics_level=self.statistics_level,
            final_cfg_output=self.final_cfg_output,
            verbose=self.verbose,
            oracle=self.oracle,
        )
        if self.optimizer == "adam":
            return AdamCircles(
                step_size=self.step_size,
                first_moment_decay=self.first_moment_decay,
                second_moment_decay=self.second_moment_decay,
                radius_regularization=self.radius_regularization,
                **common,
            )
        return AlternatingCircles(initial_step=self.step_size, **common)

    def realize(self, surface: Surface) -> Layout:
        from coil_layout.io.layout_io import save_points

        centers, radius = self.place_centers(surface)
        logger.info("%d centre(s), isometric radius %.3f", len(centers), radius)

        iterations = self.iterations
        if self.visualize:
            radius = 5.0
            if iterations != 0:
                warnings.warn(VisualizationModeWarning(
                    "Visualization mode enabled, setting iterations to 0"), stacklevel=2)
            iterations = 0

        if self.centers_output:
            save_points([Point.from_array(c) for c in centers], self.centers_output)

        circles = self.circles_from_centers(centers, radius)
        return self.delegate(circles, iterations).realize(surface)
