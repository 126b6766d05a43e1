"""Coupling objective shared by the iterative optimisers."""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field

import numpy as np

from coil_layout.geometry.primitives import Point
from coil_layout.layout.inductance import InductanceOracle
from coil_layout.layout.models import CircleArgs, Coil, Layout

logger = logging.getLogger(__name__)

# Objective contribution per (k or m^2/LL) unit; keeps reported RMS in readable units
OBJECTIVE_SCALE = 1e6


def is_close_pair(center_a: Point, radius_a: float, center_b: Point, radius_b: float,
                  close_cutoff: float) -> bool:
    return center_a.distance(center_b) / (radius_a + radius_b) < close_cutoff


def is_close_to_static(center: Point, radius: float, static_coil: Coil,
                       close_cutoff: float) -> bool:
    """A static coil is close when any of its vertices lies within ``close_cutoff * radius``."""
    dist = np.linalg.norm(static_coil.points_array() - center.as_array(), axis=1)
    return bool(np.any(dist / radius < close_cutoff))


def count_close_pairs(circles: list[CircleArgs], static_layout: Layout | None,
                      close_cutoff: float) -> int:
    count = 0
    for i, circle in enumerate(circles):
        for other in circles[i + 1:]:
            if is_close_pair(circle.center, circle.coil_radius,
                             other.center, other.coil_radius, close_cutoff):
                count += 1
        if static_layout is not None:
            for static_coil in static_layout.coils:
                if is_close_to_static(circle.center, circle.coil_radius, static_coil, close_cutoff):
                    count += 1
    return count


@dataclass
class CouplingStatistics:
    objective: float = 0.0
    close_pairs: int = 0
    self_inductances: list[float] = field(default_factory=list)
    # (i, j, mutual inductance, coupling factor)
    mutual_inductances: list[tuple[int, int, float, float]] = field(default_factory=list)
    static_mutual_inductances: list[tuple[int, int, float, float]] = field(default_factory=list)

    @property
    def rms(self) -> float:
        """Root-mean-square scaled coupling over close pairs; 0 when nothing is close."""
        if self.close_pairs == 0:
            return 0.0
        return math.sqrt(self.objective / self.close_pairs)


def coupling_statistics(
    circles: list[CircleArgs],
    layout: Layout,
    static_layout: Layout | None,
    oracle: InductanceOracle,
    close_cutoff: float,
    report_all: bool = False,
    report_all_static: bool = False,
) -> CouplingStatistics:
    """Evaluate the squared-coupling objective of ``layout``.

    With ``report_all`` every pair's mutual inductance is recorded, not only
    the close ones.
    """
    stats = CouplingStatistics()
    coils = layout.coils
    stats.self_inductances = [oracle.self_inductance(coil) for coil in coils]
    static_coils = static_layout.coils if static_layout is not None else []
    static_self = [oracle.self_inductance(coil) for coil in static_coils]

    for i, coil in enumerate(coils):
        radius = circles[i].coil_radius
        for j in range(i + 1, len(coils)):
            other = coils[j]
            close = is_close_pair(coil.center, radius, other.center,
                                  circles[j].coil_radius, close_cutoff)
            if not (close or report_all):
                continue
            m = oracle.mutual_inductance(coil, other)
            ll = stats.self_inductances[i] * stats.self_inductances[j]
            stats.mutual_inductances.append((i, j, m, m / math.sqrt(ll)))
            if close:
                stats.objective += m * m * OBJECTIVE_SCALE / ll
                stats.close_pairs += 1

        for s, static_coil in enumerate(static_coils):
            close = is_close_to_static(coil.center, radius, static_coil, close_cutoff)
            if not (close or report_all_static):
                continue
            m = oracle.mutual_inductance(coil, static_coil)
            ll = stats.self_inductances[i] * static_self[s]
            stats.static_mutual_inductances.append((i, s, m, m / math.sqrt(ll)))
            if close:
                stats.objective += m * m * OBJECTIVE_SCALE / ll
                stats.close_pairs += 1

    return stats


def log_statistics(stats: CouplingStatistics, level: int, label: str = "Final"):
    """Log a statistics report; ``level`` 0 is the summary only, higher levels add every recorded pair."""
    logger.info("%s RMS coupling: %.4f over %d close pair(s)", label, stats.rms, stats.close_pairs)
    if level < 1:
        return
    for i, self_l in enumerate(stats.self_inductances):
        logger.info("  coil %d: L = %.4f nH", i, self_l)
    for i, j, m, k in stats.mutual_inductances:
        logger.info("  coils %d-%d: M = %.4f nH, k = %.5f", i, j, m, k)
    for i, s, m, k in stats.static_mutual_inductances:
        logger.info("  coil %d - static %d: M = %.4f nH, k = %.5f", i, s, m, k)
