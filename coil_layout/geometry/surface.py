"""Indexed triangle surface with vertex/edge/face adjacency.

The surface is built once from raw vertex and face arrays, optionally trimmed
by a plane, and then treated as read-only while coils are laid out on it.
Numpy array views of the vertex positions and face normals are kept alongside
the adjacency records so the per-coil queries stay vectorised.
"""

from __future__ import annotations
from dataclasses import dataclass, field

import numpy as np

from coil_layout.errors import InconsistentMeshError
from coil_layout.geometry.primitives import Point, Vector, Plane

# Vertices this close to a trim plane count as lying on it.
_ON_PLANE_TOL = 1e-9


@dataclass
class SurfaceVertex:
    point: Point
    normal: Vector
    adj_edges: list[int] = field(default_factory=list)
    adj_faces: list[int] = field(default_factory=list)


@dataclass
class SurfaceEdge:
    vertices: tuple[int, int]                            # sorted
    adj_faces: tuple[int | None, int | None] = (None, None)

    @property
    def is_boundary(self) -> bool:
        return self.adj_faces[0] is None or self.adj_faces[1] is None


@dataclass
class SurfaceFace:
    vertices: tuple[int, int, int]
    edges: tuple[int, int, int]     # edge i joins vertex i and vertex (i+1) % 3
    normal: Vector                  # unit length
    area: float


def _sorted_pair(a: int, b: int) -> tuple[int, int]:
    return (a, b) if a < b else (b, a)


def _sorted_adj_faces(faces: list[int]) -> tuple[int | None, int | None]:
    faces = sorted(set(faces))
    padded = faces + [None] * (2 - len(faces))
    return padded[0], padded[1]


def _heron_areas(tri: np.ndarray) -> np.ndarray:
    a = np.linalg.norm(tri[:, 1] - tri[:, 0], axis=1)
    b = np.linalg.norm(tri[:, 2] - tri[:, 1], axis=1)
    c = np.linalg.norm(tri[:, 0] - tri[:, 2], axis=1)
    s = (a + b + c) / 2.0
    return np.sqrt(np.clip(s * (s - a) * (s - b) * (s - c), 0.0, None))


def _unit_rows(arr: np.ndarray) -> np.ndarray:
    lengths = np.linalg.norm(arr, axis=1, keepdims=True)
    return np.divide(arr, lengths, out=np.zeros_like(arr), where=lengths > 0)


class Surface:
    """Triangulated 2-manifold (possibly with boundary)."""

    def __init__(
        self,
        vertices: list[SurfaceVertex],
        edges: list[SurfaceEdge],
        faces: list[SurfaceFace],
    ):
        self.vertices = vertices
        self.edges = edges
        self.faces = faces

        self.points = np.array([[v.point.x, v.point.y, v.point.z] for v in vertices],
                               dtype=float).reshape(-1, 3)
        self.normals = np.array([[v.normal.x, v.normal.y, v.normal.z] for v in vertices],
                                dtype=float).reshape(-1, 3)
        self.face_vertex_indices = np.array([f.vertices for f in faces],
                                            dtype=int).reshape(-1, 3)
        self.face_normals = np.array([[f.normal.x, f.normal.y, f.normal.z] for f in faces],
                                     dtype=float).reshape(-1, 3)
        self.face_areas = np.array([f.area for f in faces], dtype=float)
        self._tree = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_arrays(cls, vertices, faces) -> Surface:
        """Build the indexed surface from an (N, 3) vertex and (F, 3) face array.

        Face normals follow the winding order; vertex normals are the
        area-weighted average of the incident face normals.
        """
        points = np.asarray(vertices, dtype=float).reshape(-1, 3)
        tris = np.asarray(faces, dtype=int).reshape(-1, 3)

        tri_pts = points[tris]
        face_normals = _unit_rows(np.cross(tri_pts[:, 1] - tri_pts[:, 0],
                                           tri_pts[:, 2] - tri_pts[:, 0]))
        areas = _heron_areas(tri_pts)

        vertex_normals = np.zeros_like(points)
        for k in range(3):
            np.add.at(vertex_normals, tris[:, k], face_normals * areas[:, None])
        vertex_normals = _unit_rows(vertex_normals)

        edge_lookup: dict[tuple[int, int], int] = {}
        edge_faces: list[list[int]] = []
        face_edges: list[tuple[int, int, int]] = []
        for face_idx, tri in enumerate(tris):
            ids = []
            for i in range(3):
                a, b = int(tri[i]), int(tri[(i + 1) % 3])
                if a == b:
                    raise InconsistentMeshError(
                        f"face {face_idx} repeats vertex {a}", vertices=(a, b))
                key = _sorted_pair(a, b)
                edge_idx = edge_lookup.get(key)
                if edge_idx is None:
                    edge_idx = len(edge_faces)
                    edge_lookup[key] = edge_idx
                    edge_faces.append([])
                edge_faces[edge_idx].append(face_idx)
                if len(edge_faces[edge_idx]) > 2:
                    raise InconsistentMeshError(
                        f"edge {key} is shared by more than two faces", vertices=key)
                ids.append(edge_idx)
            face_edges.append((ids[0], ids[1], ids[2]))

        surface_vertices = [
            SurfaceVertex(Point.from_array(p), Vector.from_array(n))
            for p, n in zip(points, vertex_normals)
        ]
        surface_edges = [None] * len(edge_lookup)
        for key, edge_idx in edge_lookup.items():
            surface_edges[edge_idx] = SurfaceEdge(key, _sorted_adj_faces(edge_faces[edge_idx]))
        surface_faces = [
            SurfaceFace(
                (int(tri[0]), int(tri[1]), int(tri[2])),
                face_edges[face_idx],
                Vector.from_array(face_normals[face_idx]),
                float(areas[face_idx]),
            )
            for face_idx, tri in enumerate(tris)
        ]
        _link_vertices(surface_vertices, surface_edges, surface_faces)
        return cls(surface_vertices, surface_edges, surface_faces)

    # ------------------------------------------------------------------
    # Topology queries
    # ------------------------------------------------------------------

    def get_boundary_vertex_indices(self) -> list[int]:
        """Sorted ids of vertices that touch an edge with fewer than two faces."""
        boundary = set()
        for edge in self.edges:
            if edge.is_boundary:
                boundary.update(edge.vertices)
        return sorted(boundary)

    def boundary_points(self) -> np.ndarray:
        return self.points[self.get_boundary_vertex_indices()]

    def get_edge_index(self, v1: int, v2: int) -> int:
        for edge_idx in self.vertices[v1].adj_edges:
            if v2 in self.edges[edge_idx].vertices:
                return edge_idx
        raise InconsistentMeshError(
            f"Edge not found between vertices {v1} and {v2}", vertices=(v1, v2))

    def trim_by_plane(self, plane: Plane, flatten_cut: bool = False) -> tuple[Surface, list[int]]:
        """Keep the part of the surface on the positive side of ``plane``.

        Vertices within ``_ON_PLANE_TOL`` below the plane count as lying on it
        and are kept.

        Returns the trimmed surface and the (new) indices of vertices that lost
        a face to the cut. With ``flatten_cut`` those vertices are projected
        onto the plane, their normals are made parallel to it, and face
        normals and areas are recomputed.
        """
        distances = self.points @ plane.normal.as_array() - plane.offset
        vertex_map: list[int | None] = []
        new_vertices: list[SurfaceVertex] = []
        for vertex, dist in zip(self.vertices, distances):
            if dist >= -_ON_PLANE_TOL:
                vertex_map.append(len(new_vertices))
                new_vertices.append(SurfaceVertex(vertex.point, vertex.normal))
            else:
                vertex_map.append(None)

        edge_map: list[int | None] = []
        new_edges: list[SurfaceEdge] = []
        for edge in self.edges:
            v1, v2 = vertex_map[edge.vertices[0]], vertex_map[edge.vertices[1]]
            if v1 is not None and v2 is not None:
                edge_map.append(len(new_edges))
                new_edges.append(SurfaceEdge(_sorted_pair(v1, v2)))
            else:
                edge_map.append(None)

        cut_vertices: set[int] = set()
        new_faces: list[SurfaceFace] = []
        for face in self.faces:
            kept = [vertex_map[v] for v in face.vertices]
            inside = sum(v is not None for v in kept)
            if 0 < inside < 3:
                cut_vertices.update(v for v in kept if v is not None)
            if inside == 3:
                edges = []
                for i in range(3):
                    edge_idx = self.get_edge_index(face.vertices[i], face.vertices[(i + 1) % 3])
                    new_edge_idx = edge_map[edge_idx]
                    if new_edge_idx is None:
                        raise InconsistentMeshError(
                            "kept face references a removed edge",
                            vertices=(face.vertices[i], face.vertices[(i + 1) % 3]))
                    edges.append(new_edge_idx)
                new_faces.append(SurfaceFace(
                    (kept[0], kept[1], kept[2]),
                    (edges[0], edges[1], edges[2]),
                    face.normal,
                    face.area,
                ))

        edge_faces: list[list[int]] = [[] for _ in new_edges]
        for face_idx, face in enumerate(new_faces):
            for edge_idx in face.edges:
                edge_faces[edge_idx].append(face_idx)
        for edge_idx, faces in enumerate(edge_faces):
            if len(faces) > 2:
                raise InconsistentMeshError(
                    f"edge {new_edges[edge_idx].vertices} is shared by more than two faces",
                    vertices=new_edges[edge_idx].vertices)
            new_edges[edge_idx].adj_faces = _sorted_adj_faces(faces)
        _link_vertices(new_vertices, new_edges, new_faces)

        cut = sorted(cut_vertices)
        if flatten_cut:
            for vertex_idx in cut:
                vertex = new_vertices[vertex_idx]
                vertex.point = plane.project_point(vertex.point)
                flat = vertex.normal.rej_onto(plane.normal)
                vertex.normal = flat.normalize() if flat.norm() > 0 else flat
            for face in new_faces:
                p1, p2, p3 = (new_vertices[v].point for v in face.vertices)
                cross = (p2 - p1).cross(p3 - p1)
                face.normal = cross.normalize() if cross.norm() > 0 else face.normal
                a, b, c = p1.distance(p2), p2.distance(p3), p3.distance(p1)
                s = (a + b + c) / 2.0
                face.area = float(np.sqrt(max(s * (s - a) * (s - b) * (s - c), 0.0)))

        return Surface(new_vertices, new_edges, new_faces), cut

    # ------------------------------------------------------------------
    # Geometric queries
    # ------------------------------------------------------------------

    def _kdtree(self):
        if self._tree is None:
            from scipy.spatial import cKDTree
            self._tree = cKDTree(self.points)
        return self._tree

    def nearest_vertex_index(self, point: Point) -> int:
        _, idx = self._kdtree().query(point.as_array())
        return int(idx)

    def is_above_face(self, point: Point, face_idx: int) -> bool:
        """True if ``point`` lies in the prism swept by the face along its normal."""
        face = self.faces[face_idx]
        p = [self.vertices[v].point for v in face.vertices]
        signs = []
        for i in range(3):
            cross = (p[(i + 1) % 3] - p[i]).cross(face.normal)
            signs.append(cross.dot(point - p[i]) > 0.0)
        return signs[0] == signs[1] == signs[2]

    def project_to_face(self, point: Point, face_idx: int) -> Point:
        """Closest point of the face: the plane projection when it lands inside,
        otherwise the nearest point on one of its edges."""
        return Point.from_array(self._project_to_faces(point.as_array(),
                                                       np.array([face_idx]))[0])

    def _project_to_faces(self, p: np.ndarray, face_ids: np.ndarray) -> np.ndarray:
        tri = self.points[self.face_vertex_indices[face_ids]]
        n = self.face_normals[face_ids]
        proj = p - np.sum((p - tri[:, 0]) * n, axis=1)[:, None] * n

        inside = np.ones(len(face_ids), dtype=bool)
        best = np.zeros_like(proj)
        best_dist = np.full(len(face_ids), np.inf)
        for i in range(3):
            p1 = tri[:, i]
            p2 = tri[:, (i + 1) % 3]
            p3 = tri[:, (i + 2) % 3]
            edge = p2 - p1
            cross = np.cross(edge, n)
            side_point = np.sum(cross * (proj - p1), axis=1)
            side_other = np.sum(cross * (p3 - p1), axis=1)
            inside &= side_point * side_other >= 0.0

            edge_sq = np.sum(edge * edge, axis=1)
            t = np.divide(np.sum((proj - p1) * edge, axis=1), edge_sq,
                          out=np.zeros_like(edge_sq), where=edge_sq > 0)
            on_edge = p1 + np.clip(t, 0.0, 1.0)[:, None] * edge
            dist = np.linalg.norm(on_edge - proj, axis=1)
            closer = dist < best_dist
            best[closer] = on_edge[closer]
            best_dist[closer] = dist[closer]
        return np.where(inside[:, None], proj, best)

    def closest_point(self, point: Point) -> Point:
        """Best of the nearest vertex and the projection onto every face."""
        p = point.as_array()
        best = self.points[self.nearest_vertex_index(point)]
        best_dist = np.linalg.norm(best - p)
        valid = np.flatnonzero(self.face_areas > 0)
        if valid.size:
            projections = self._project_to_faces(p, valid)
            dists = np.linalg.norm(projections - p, axis=1)
            i = int(np.argmin(dists))
            if dists[i] < best_dist:
                best = projections[i]
        return Point.from_array(best)

    def vector_to_surface(self, point: Point) -> Vector:
        """Offset from the surface to ``point`` (``point - closest_point``)."""
        return point - self.closest_point(point)

    def snap_to_surface(self, point: Point) -> Point:
        return self.closest_point(point)


def _link_vertices(vertices: list[SurfaceVertex], edges: list[SurfaceEdge],
                   faces: list[SurfaceFace]) -> None:
    for vertex in vertices:
        vertex.adj_edges = []
        vertex.adj_faces = []
    for edge_idx, edge in enumerate(edges):
        for v in edge.vertices:
            vertices[v].adj_edges.append(edge_idx)
    for face_idx, face in enumerate(faces):
        for v in face.vertices:
            vertices[v].adj_faces.append(face_idx)
    for vertex in vertices:
        vertex.adj_edges = sorted(set(vertex.adj_edges))
        vertex.adj_faces = sorted(set(vertex.adj_faces))
