"""Turn a sphere/surface intersection into an ordered coil ring.

``sphere_intersect`` picks the surface vertices lying in a thin band around a
sphere; ``clean_coil_by_angle`` orders those points by their angle around the
coil axis, untangles locally mis-ordered runs, smooths the result and
rebuilds the ring on the ideal sphere.
"""

from __future__ import annotations
import logging
import math
from dataclasses import dataclass

import numpy as np

from coil_layout.errors import InputValidationError, NumericDegeneracyError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.geometry.surface import Surface
from coil_layout.layout.cyclic import merge_segments
from coil_layout.layout.models import Coil

logger = logging.getLogger(__name__)

TWO_PI = 2.0 * math.pi

ANGLE_RATIO_CAP = 4.0   # |dphi / dtheta| above this marks an edge
EDGE_BUFFER = 2
ANCHOR_BUFFER = 3
SMOOTH_PASSES = 8

# Pre-shift is skipped within this angle of a right angle to the tangent.
_PRE_SHIFT_DEAD_ZONE = math.pi / 8.0


@dataclass
class AngleFormat:
    theta: float
    phi: float
    point_id: int


def sphere_intersect(
    surface: Surface,
    center: Point,
    radius: float,
    epsilon: float,
) -> tuple[int, list[Point], list[Vector]]:
    """Vertices within ``epsilon`` of the sphere, their unit normals, and the
    id of the vertex nearest ``center``."""
    distances = np.linalg.norm(surface.points - center.as_array(), axis=1)
    nearest = int(np.argmin(distances))
    mask = np.abs(distances - radius) <= epsilon

    normals = surface.normals[mask]
    lengths = np.linalg.norm(normals, axis=1)
    if np.any(lengths == 0.0) or np.any(np.isnan(lengths)):
        bad = int(np.flatnonzero(mask)[np.flatnonzero((lengths == 0.0) | np.isnan(lengths))[0]])
        raise NumericDegeneracyError(
            "degenerate vertex normal in sphere intersection",
            point=surface.vertices[bad].point, center=center,
            normal=surface.vertices[bad].normal,
        )
    normals = normals / lengths[:, None]

    points = [Point.from_array(p) for p in surface.points[mask]]
    return nearest, points, [Vector.from_array(n) for n in normals]


def zero_theta_vector(normal: Vector) -> Vector:
    """In-plane reference axis: +Z flattened onto the coil plane, or +X when the
    coil faces along Z."""
    zhat = Vector.zhat()
    if abs(normal.dot(zhat)) < 0.999:
        return zhat.rej_onto(normal).normalize()
    return Vector.xhat().rej_onto(normal).normalize()


def _pre_shift(
    points: list[Point],
    point_normals: list[Vector],
    center: Point,
    normal: Vector,
    radius: float,
) -> list[Point]:
    shifted = []
    for point, point_normal in zip(points, point_normals):
        to_point = point - center
        if to_point.norm() == 0.0:
            raise NumericDegeneracyError("point coincides with the coil center",
                                         point=point, center=center, normal=normal)
        to_point = to_point.normalize()
        tangent = to_point.rej_onto(point_normal)
        if tangent.norm() == 0.0:
            raise NumericDegeneracyError("no surface tangent towards point",
                                         point=point, center=center, normal=normal)
        tangent = tangent.normalize()
        r_err = radius - point.distance(center)
        angle = tangent.angle_to(to_point)
        if abs(angle - math.pi / 2.0) < _PRE_SHIFT_DEAD_ZONE:
            shifted.append(point)
            continue
        moved = point + tangent * (r_err / math.cos(angle))
        if moved.has_nan():
            raise NumericDegeneracyError("point shifted to NaN",
                                         point=point, center=center, normal=normal)
        shifted.append(moved)
    return shifted


def _to_angles(points: list[Point], center: Point, normal: Vector,
               zero_vec: Vector) -> list[AngleFormat]:
    n = normal.as_array()
    z0 = zero_vec.as_array()
    vecs = np.array([list(p) for p in points], dtype=float) - center.as_array()

    flat = vecs - np.outer(vecs @ n, n)
    flat_len = np.linalg.norm(flat, axis=1)
    if np.any(flat_len == 0.0):
        bad = int(np.flatnonzero(flat_len == 0.0)[0])
        raise NumericDegeneracyError("point lies on the coil axis",
                                     point=points[bad], center=center, normal=normal)
    flat = flat / flat_len[:, None]

    theta = np.arccos(np.clip(flat @ z0, -1.0, 1.0))
    side = np.cross(flat, z0) @ n
    theta = np.where(side < 0.0, TWO_PI - theta, theta)

    vec_len = np.linalg.norm(vecs, axis=1)
    phi = np.arccos(np.clip((vecs @ n) / vec_len, -1.0, 1.0))

    return [AngleFormat(float(t), float(p), i) for i, (t, p) in enumerate(zip(theta, phi))]


def _wrapped_dtheta(a1: AngleFormat, a2: AngleFormat) -> float:
    dtheta = abs(a1.theta - a2.theta)
    if dtheta > math.pi:
        dtheta = TWO_PI - dtheta
    return dtheta


def _is_past_ratio(a1: AngleFormat, a2: AngleFormat) -> bool:
    dtheta = _wrapped_dtheta(a1, a2)
    if dtheta < 1e-4:
        return True
    return abs(a1.phi - a2.phi) / dtheta > ANGLE_RATIO_CAP


def _l1_angle(a1: AngleFormat, a2: AngleFormat) -> float:
    return _wrapped_dtheta(a1, a2) + abs(a1.phi - a2.phi)


def detect_edges(angles: list[AngleFormat]) -> list[tuple[int, int]]:
    """Find index runs where the phi/theta slope jumps, padded and merged.

    Runs are half-open ``[start, end)``; a run that wraps the array end is
    moved to the front.
    """
    n = len(angles)
    if n < EDGE_BUFFER:
        raise InputValidationError(
            f"Edge buffer {EDGE_BUFFER} is larger than the number of points ({n})")

    in_edge = False
    prev_id = n - 1
    edge_start = n - 1
    edges: list[tuple[int, int]] = []
    for pid, angle_pair in enumerate(angles):
        past = _is_past_ratio(angle_pair, angles[prev_id])
        if not in_edge and past:
            in_edge = True
            edge_start = (prev_id - EDGE_BUFFER) % n
        elif in_edge and not past:
            in_edge = False
            edges.append((edge_start, (pid + EDGE_BUFFER) % n))
        prev_id = pid
    if in_edge:
        edges.append((edge_start, EDGE_BUFFER - 1))

    if len(edges) > 1:
        merged: list[tuple[int, int]] = []
        edge = edges[0]
        for next_edge in edges[1:]:
            result = merge_segments(edge[0], edge[1], next_edge[0], next_edge[1])
            if result is None:
                merged.append(edge)
                edge = next_edge
            else:
                first_starts, first_ends = result
                edge = (edge[0] if first_starts else next_edge[0],
                        edge[1] if first_ends else next_edge[1])
        merged.append(edge)
        edges = merged

    if len(edges) > 1:
        first_edge, last_edge = edges[0], edges[-1]
        result = merge_segments(first_edge[0], first_edge[1], last_edge[0], last_edge[1])
        if result is not None:
            first_starts, first_ends = result
            edges[0] = (first_edge[0] if first_starts else last_edge[0],
                        first_edge[1] if first_ends else last_edge[1])
            edges.pop()
        elif last_edge[1] < last_edge[0]:
            edges.pop()
            edges.insert(0, last_edge)

    return edges


def reorder_edges(angles: list[AngleFormat],
                  edges: list[tuple[int, int]]) -> list[AngleFormat]:
    """Within each edge run, sort points by L1 angle distance to an anchor just before it."""
    if not edges:
        return angles
    n = len(angles)
    new_angles: list[AngleFormat] = []
    end_wrap: list[AngleFormat] = []
    i = 0

    first_wraps = edges[0][1] < edges[0][0]
    if first_wraps:
        start, end = edges[0]
        anchor = angles[(start - ANCHOR_BUFFER) % n]
        wrap = n - start
        wrapped = sorted(angles[start:] + angles[:end], key=lambda a: _l1_angle(a, anchor))
        new_angles.extend(wrapped[wrap:])
        end_wrap.extend(wrapped[:wrap])
        i = end

    for start, end in edges[1 if first_wraps else 0:]:
        anchor = angles[(start - ANCHOR_BUFFER) % n]
        sorted_edge = sorted(angles[start:end], key=lambda a: _l1_angle(a, anchor))
        if i < start:
            new_angles.extend(angles[i:start])
        new_angles.extend(sorted_edge)
        i = end

    if i < n - len(end_wrap):
        new_angles.extend(angles[i:n - len(end_wrap)])
    new_angles.extend(end_wrap)

    if len(new_angles) != n:
        raise InputValidationError(
            f"edge reordering produced {len(new_angles)} points from {n}")
    return new_angles


def smooth_angles(angles: list[AngleFormat], normals: np.ndarray,
                  passes: int = SMOOTH_PASSES) -> tuple[list[AngleFormat], np.ndarray]:
    """Three-point running mean of theta, phi and normal, in place around the ring."""
    n = len(angles)
    angles = [AngleFormat(a.theta, a.phi, a.point_id) for a in angles]
    normals = normals.copy()
    for _ in range(passes):
        prev_i = n - 1
        for i in range(n):
            next_i = (i + 1) % n
            cur = angles[i]
            prev_theta = angles[prev_i].theta
            next_theta = angles[next_i].theta

            if prev_theta - cur.theta > math.pi:
                prev_theta -= TWO_PI
            if cur.theta - prev_theta > math.pi:
                prev_theta += TWO_PI
            if next_theta - cur.theta > math.pi:
                next_theta -= TWO_PI
            if cur.theta - next_theta > math.pi:
                next_theta += TWO_PI

            cur.theta = (cur.theta + prev_theta + next_theta) / 3.0
            cur.phi = (cur.phi + angles[prev_i].phi + angles[next_i].phi) / 3.0

            summed = normals[i] + normals[prev_i] + normals[next_i]
            length = np.linalg.norm(summed)
            if length == 0.0 or np.isnan(length):
                raise NumericDegeneracyError("smoothed normal vanished",
                                             normal=Vector.from_array(summed))
            normals[i] = summed / length
            prev_i = i
    return angles, normals


def clean_coil_by_angle(
    center: Point,
    normal: Vector,
    radius: float,
    wire_radius: float,
    points: list[Point],
    point_normals: list[Vector],
    pre_shift: bool,
) -> Coil:
    """Order, untangle, smooth and rebuild a raw ring of surface points."""
    if len(points) < 3:
        raise InputValidationError(
            f"Not enough points to clean by angle ({len(points)})")
    if len(points) != len(point_normals):
        raise InputValidationError(
            f"Point list (length {len(points)}) must be the same length as "
            f"the normal list ({len(point_normals)})")

    normal = normal.normalize()

    if pre_shift:
        points = _pre_shift(points, point_normals, center, normal, radius)

    zero_vec = zero_theta_vector(normal)
    quarter_vec = zero_vec.cross(normal).normalize()

    angles = _to_angles(points, center, normal, zero_vec)
    angles.sort(key=lambda a: a.theta)

    edges = detect_edges(angles)
    if edges:
        logger.debug("Reordering %d edge run(s) in a ring of %d points", len(edges), len(angles))
    angles = reorder_edges(angles, edges)

    normal_arr = np.array([list(point_normals[a.point_id]) for a in angles], dtype=float)
    angles, normal_arr = smooth_angles(angles, normal_arr)

    new_points: list[Point] = []
    for new_id, angle_pair in enumerate(angles):
        theta, phi = angle_pair.theta, angle_pair.phi
        point = center + (
            (zero_vec * math.cos(theta) + quarter_vec * math.sin(theta)) * math.sin(phi)
            + normal * math.cos(phi)
        ) * radius
        if point.has_nan():
            raise NumericDegeneracyError(
                f"point {new_id} (originally point {angle_pair.point_id}) "
                f"constructed as NaN at angles [{theta}, {phi}]",
                point=point, center=center, normal=normal,
            )
        new_points.append(point)

    return Coil.from_points(center, normal, new_points, wire_radius,
                            [Vector.from_array(v) for v in normal_arr])


# ---------------------------------------------------------------------------
# Breaks and port
# ---------------------------------------------------------------------------

def choose_zero_angle_vector(normal: Vector, preferred: Vector, backup: Vector) -> Vector:
    """``preferred`` unless the coil normal nearly points along it."""
    if normal.normalize().dot(preferred.normalize()) < 0.95:
        return preferred.normalize()
    return backup.normalize()


def bin_by_angle(
    points: list[Point],
    bin_count: int,
    center: Point,
    axis: Vector,
    zero_angle_vec: Vector,
) -> list[int]:
    """Index of the point closest to the start of each of ``bin_count`` equal angle bins."""
    if bin_count <= 0:
        raise InputValidationError(f"Break count must be positive, got {bin_count}")
    if len(points) < bin_count:
        raise InputValidationError(
            f"Not enough points ({len(points)}) for that many breaks ({bin_count})")

    angle_step = TWO_PI / bin_count
    bin_error = [angle_step] * bin_count
    binned: list[int | None] = [None] * bin_count

    zero_angle_vec = zero_angle_vec.rej_onto(axis).normalize()
    for point_id, point in enumerate(points):
        out_vec = (point - center).rej_onto(axis).normalize()
        angle = zero_angle_vec.angle_to(out_vec)
        if out_vec.cross(zero_angle_vec).dot(axis) < 0.0 and angle > 1e-6:
            angle = TWO_PI - angle

        bin_id = int(angle / angle_step)
        if bin_id >= bin_count:
            raise InputValidationError(
                f"Angle ({angle}) bin {bin_id} out of range 0:{bin_count - 1}")
        error = abs(angle - bin_id * angle_step)
        if error < bin_error[bin_id]:
            bin_error[bin_id] = error
            binned[bin_id] = point_id

    if any(point_id is None for point_id in binned):
        raise InputValidationError(
            f"Angle binning (break count: {bin_count}) failed, some bins are empty")
    return binned


def add_even_breaks_by_angle(
    coil: Coil,
    break_count: int,
    break_angle_offset: float,
    zero_angle_vec: Vector,
) -> Coil:
    """Set the port (first bin) and breaks (remaining bins). Offset is in radians."""
    axis = coil.normal
    zero_angle_vec = zero_angle_vec.rej_onto(axis).normalize()
    offset_vec = zero_angle_vec.rotate_around(axis, break_angle_offset)

    binned = bin_by_angle([v.point for v in coil.vertices], break_count,
                          coil.center, axis, offset_vec)
    coil.port = binned[0]
    coil.breaks = list(binned[1:])
    return coil
