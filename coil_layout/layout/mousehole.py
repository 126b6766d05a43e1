"""Resolve physical wire collisions between overlapping coil rings.

Where a ring passes close to a neighbour's wire, the ring is pushed along its
surface normal by a smooth "mousehole" profile and its wire cross-section is
twisted about the local tangent to match. Only the lower-indexed coil of each
pair is deformed.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass, field

import numpy as np

from coil_layout.layout.cyclic import CyclicSequence, merge_segments
from coil_layout.layout.models import CircleArgs, Coil, CoilVertex, Layout

logger = logging.getLogger(__name__)

_SQRT2 = math.sqrt(2.0)


@dataclass
class IntersectionSegment:
    start: int
    end: int
    length: float                         # padded arc length
    wire_crossings: list[float] = field(default_factory=list)


class RingArc:
    """Arc-length bookkeeping for one closed ring."""

    def __init__(self, coil: Coil):
        pts = coil.points_array()
        steps = np.linalg.norm(np.diff(pts, axis=0), axis=1)
        self.cumulative = np.concatenate([[0.0], np.cumsum(steps)])
        self.total = float(self.cumulative[-1] + np.linalg.norm(pts[0] - pts[-1]))
        self.ring = CyclicSequence(len(pts))

    def point_distance(self, start: int, end: int) -> float:
        """Forward arc length from ``start`` to ``end``; equal indices give the full loop."""
        if start < end:
            return float(self.cumulative[end] - self.cumulative[start])
        return float(self.cumulative[end] + (self.total - self.cumulative[start]))

    def padded_length(self, start: int, end: int) -> float:
        return self.point_distance(self.ring.prev(start), self.ring.next(end))

    def merge_offset(self, start: int, other_start: int) -> float:
        if start == other_start:
            return 0.0
        return self.point_distance(self.ring.prev(start), self.ring.prev(other_start))


def get_intersections(
    layout: Layout,
    circles: list[CircleArgs],
    clearance: float,
    clearance_scale: float = 2.0,
) -> list[list[list[int]]]:
    """``result[i][j]``: indices on coil ``i`` within the wire band of coil ``j``."""
    count = len(layout.coils)
    result: list[list[list[int]]] = [[[] for _ in range(count)] for _ in range(count)]
    arrays = [coil.points_array() for coil in layout.coils]
    for i, coil in enumerate(layout.coils):
        for j, other in enumerate(layout.coils):
            if i == j:
                continue
            band = (coil.wire_radius + other.wire_radius + clearance) * clearance_scale
            dist = np.linalg.norm(arrays[i] - other.center.as_array(), axis=1)
            result[i][j] = np.flatnonzero(np.abs(dist - circles[j].coil_radius) < band).tolist()
    return result


def group_segments(indices: list[int], arc: RingArc) -> list[IntersectionSegment]:
    """Split sorted ring indices into contiguous runs; a run through index 0 stays whole."""
    n = arc.ring.length
    start = indices[0]
    i_max = len(indices)
    if indices[0] == 0:
        for rev_id, p in enumerate(reversed(indices)):
            if p != n - 1 - rev_id:
                i_max = len(indices) - rev_id
                start = indices[i_max % len(indices)]
                break

    segments = []
    for i in range(1, i_max):
        p, prev_p = indices[i], indices[i - 1]
        if p > prev_p + 1:
            segments.append(IntersectionSegment(start, prev_p, arc.padded_length(start, prev_p)))
            start = p
    end = indices[i_max - 1]
    segments.append(IntersectionSegment(start, end, arc.padded_length(start, end)))
    return segments


def find_wire_crossings(
    segment: IntersectionSegment,
    points: np.ndarray,
    arc: RingArc,
    other_center: np.ndarray,
    other_radius: float,
) -> list[float]:
    """Arc-length offsets (from the padded start) where the ring enters or leaves
    the neighbour's circle."""
    ring = arc.ring
    dist = np.linalg.norm(points - other_center, axis=1)
    inside = dist < other_radius
    anchor = ring.prev(segment.start)

    crossings = []
    p_prev = segment.start
    for k in range(1, ring.distance(segment.start, segment.end) + 1):
        p = ring.offset(segment.start, k)
        if inside[p] != inside[p_prev]:
            step_length = arc.point_distance(p_prev, p)
            d1 = abs(dist[p_prev] - other_radius)
            d2 = abs(dist[p] - other_radius)
            fraction = d1 / (d1 + d2) if d1 + d2 > 0.0 else 0.5
            crossings.append(arc.point_distance(anchor, p_prev) + fraction * step_length)
        p_prev = p

    crossings = sorted(set(crossings))
    if not crossings:
        crossings = [segment.length * 0.5]
    return crossings


def merge_overlap_segments(
    first: IntersectionSegment,
    second: IntersectionSegment,
    arc: RingArc,
) -> IntersectionSegment | None:
    result = merge_segments(first.start, first.end, second.start, second.end)
    if result is None:
        return None
    first_starts, first_ends = result

    start_seg = first if first_starts else second
    end_seg = first if first_ends else second
    if start_seg is end_seg:
        added = second if first_starts else first
    else:
        added = end_seg

    offset = arc.merge_offset(start_seg.start, added.start)
    crossings = sorted(set(start_seg.wire_crossings
                           + [c + offset for c in added.wire_crossings]))
    return IntersectionSegment(
        start_seg.start,
        end_seg.end,
        arc.padded_length(start_seg.start, end_seg.end),
        crossings,
    )


def _tail_ratio(l: float, length: float, start_tail: float, end_tail: float) -> tuple[int, float]:
    """Which tail ``l`` falls in (-1 start, 1 end, 0 neither) and its position there."""
    l_ratio = l / length
    if start_tail > 0.0 and l_ratio < start_tail:
        return -1, min(max(l_ratio / start_tail, 0.0), 1.0)
    if end_tail > 0.0 and l_ratio > 1.0 - end_tail:
        return 1, min(max(1.0 - (l_ratio - (1.0 - end_tail)) / end_tail, 0.0), 1.0)
    return 0, 0.0


def offset_profile(l: float, length: float, start_tail: float, end_tail: float, c: float) -> float:
    """Depth of the mousehole at arc length ``l``: 0 at the segment ends, ``c`` between crossings."""
    tail, ratio = _tail_ratio(l, length, start_tail, end_tail)
    if tail == 0:
        return c
    s = c / (2.0 - _SQRT2)
    if ratio < 0.5:
        return s * (1.0 - math.sqrt(1.0 - 2.0 * ratio * ratio))
    return s * (1.0 - _SQRT2 + math.sqrt(1.0 - 2.0 * (1.0 - ratio) * (1.0 - ratio)))


def rotation_profile(l: float, length: float, start_tail: float, end_tail: float) -> float:
    """Twist of the wire cross-section (radians) matching ``offset_profile``."""
    tail, ratio = _tail_ratio(l, length, start_tail, end_tail)
    if tail == 0:
        return 0.0
    if tail < 0:
        return math.asin(ratio) if ratio < 0.5 else math.asin(1.0 - ratio)
    return -math.asin(ratio) if ratio < 0.5 else math.asin(ratio - 1.0)


def _apply_segment(coil: Coil, segment: IntersectionSegment, arc: RingArc, clearance: float):
    c = clearance + 2.0 * coil.wire_radius
    length = segment.length
    start_tail = segment.wire_crossings[0] / length
    end_tail = 1.0 - segment.wire_crossings[-1] / length
    anchor = arc.ring.prev(segment.start)

    for p in range(segment.start, arc.ring.unwrapped_end(segment.start, segment.end) + 1):
        pid = p % arc.ring.length
        l = arc.point_distance(anchor, pid)
        vertex = coil.vertices[pid]
        point = vertex.point - vertex.surface_normal * offset_profile(l, length, start_tail, end_tail, c)
        tangent = (point - coil.center).rej_onto(vertex.surface_normal)
        wire_normal = vertex.wire_radius_normal
        if tangent.norm() > 0.0:
            wire_normal = wire_normal.rotate_around(
                tangent, rotation_profile(l, length, start_tail, end_tail))
        coil.vertices[pid] = CoilVertex(point, vertex.surface_normal, wire_normal)


def mousehole_overlap(layout: Layout, circles: list[CircleArgs], clearance: float) -> Layout:
    """Return a copy of ``layout`` with overlapping ring runs offset; ``layout`` is untouched."""
    out = layout.copy()
    intersections = get_intersections(layout, circles, clearance)

    for coil_id, coil in enumerate(out.coils):
        n = len(coil.vertices)
        arc = RingArc(coil)
        points = coil.points_array()

        segments: list[IntersectionSegment] = []
        for other_id in range(coil_id + 1, len(circles)):
            indices = intersections[coil_id][other_id]
            # Rings entirely inside the neighbour's band are left alone
            if n - len(indices) < 2 or not indices:
                continue
            other_center = out.coils[other_id].center.as_array()
            for segment in group_segments(indices, arc):
                segment.wire_crossings = find_wire_crossings(
                    segment, points, arc, other_center, circles[other_id].coil_radius)
                segments.append(segment)

        if not segments:
            continue

        segments.sort(key=lambda s: (s.start, s.length))
        merged: list[IntersectionSegment] = []
        current = segments[0]
        for segment in segments[1:]:
            combined = merge_overlap_segments(current, segment, arc)
            if combined is None:
                merged.append(current)
                current = segment
            else:
                current = combined
        if merged:
            combined = merge_overlap_segments(current, merged[0], arc)
            if combined is None:
                merged.append(current)
            else:
                merged[0] = combined
        else:
            merged.append(current)

        logger.debug("Coil %d: %d mousehole segment(s)", coil_id, len(merged))
        for segment in merged:
            _apply_segment(coil, segment, arc, clearance)

    return out
