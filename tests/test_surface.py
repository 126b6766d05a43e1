import numpy as np
import pytest

from coil_layout.errors import InconsistentMeshError
from coil_layout.geometry.primitives import Plane, Point, Vector
from coil_layout.geometry.surface import Surface


def _square():
    vertices = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]]
    faces = [[0, 1, 2], [0, 2, 3]]
    return Surface.from_arrays(vertices, faces)


def test_square_adjacency():
    surface = _square()
    assert len(surface.vertices) == 4
    assert len(surface.faces) == 2
    assert len(surface.edges) == 5

    diagonal = surface.edges[surface.get_edge_index(0, 2)]
    assert diagonal.vertices == (0, 2)
    assert diagonal.adj_faces == (0, 1)
    assert not diagonal.is_boundary

    border = surface.edges[surface.get_edge_index(1, 0)]
    assert border.adj_faces == (0, None)
    assert border.is_boundary


def test_face_normals_and_areas():
    surface = _square()
    for face in surface.faces:
        assert face.normal.z == pytest.approx(1.0)
        assert face.area == pytest.approx(0.5)
    for vertex in surface.vertices:
        assert vertex.normal.z == pytest.approx(1.0)


def test_boundary_of_square_is_every_vertex():
    assert _square().get_boundary_vertex_indices() == [0, 1, 2, 3]


def test_closed_sphere_has_no_boundary(sphere):
    assert sphere.get_boundary_vertex_indices() == []
    assert len(sphere.boundary_points()) == 0


def test_sphere_vertex_normals_point_outward(sphere):
    radial = sphere.points / np.linalg.norm(sphere.points, axis=1)[:, None]
    assert np.all(np.sum(radial * sphere.normals, axis=1) > 0.95)


def test_edge_shared_by_three_faces_is_rejected():
    vertices = [[0, 0, 0], [1, 0, 0], [0, 1, 0], [0, -1, 0], [0, 0, 1]]
    faces = [[0, 1, 2], [1, 0, 3], [0, 1, 4]]
    with pytest.raises(InconsistentMeshError) as info:
        Surface.from_arrays(vertices, faces)
    assert set(info.value.vertices) == {0, 1}


def test_missing_edge_lookup_raises():
    surface = _square()
    with pytest.raises(InconsistentMeshError):
        surface.get_edge_index(1, 3)


def test_trim_keeps_positive_side(sphere):
    plane = Plane(Vector.zhat(), 0.0)
    cap, cut = sphere.trim_by_plane(plane)

    assert 0 < len(cap.vertices) < len(sphere.vertices)
    assert np.all(cap.points[:, 2] >= -1e-9)
    assert cut
    boundary = set(cap.get_boundary_vertex_indices())
    assert set(cut) <= boundary
    for face in cap.faces:
        assert all(v < len(cap.vertices) for v in face.vertices)


def test_trim_is_idempotent(hemisphere):
    plane = Plane(Vector.zhat(), 0.0)
    again, cut = hemisphere.trim_by_plane(plane)
    assert len(again.vertices) == len(hemisphere.vertices)
    assert len(again.faces) == len(hemisphere.faces)
    assert cut == []
    assert np.allclose(again.points, hemisphere.points)


def test_trim_keeps_vertices_just_below_the_plane():
    vertices = [[-1e-10, 0, 0], [1, 0, 0], [1, 1, 0], [-1e-10, 1, 0]]
    surface = Surface.from_arrays(vertices, [[0, 1, 2], [0, 2, 3]])
    trimmed, cut = surface.trim_by_plane(Plane(Vector.xhat(), 0.0))
    assert len(trimmed.vertices) == 4
    assert len(trimmed.faces) == 2
    assert cut == []

    vertices[0][0] = -1e-6
    surface = Surface.from_arrays(vertices, [[0, 1, 2], [0, 2, 3]])
    trimmed, cut = surface.trim_by_plane(Plane(Vector.xhat(), 0.0))
    assert len(trimmed.vertices) == 3
    assert len(trimmed.faces) == 0
    assert cut == [0, 1, 2]


def test_trim_flatten_cut_projects_onto_plane(sphere):
    plane = Plane(Vector.zhat(), 2.0)
    cap, cut = sphere.trim_by_plane(plane, flatten_cut=True)
    for vertex_idx in cut:
        vertex = cap.vertices[vertex_idx]
        assert vertex.point.z == pytest.approx(2.0)
        assert vertex.normal.z == pytest.approx(0.0, abs=1e-9)


def test_closest_point_on_flat_sheet(flat_sheet):
    above = Point(1.23, -4.56, 3.0)
    closest = flat_sheet.closest_point(above)
    assert closest.x == pytest.approx(1.23)
    assert closest.y == pytest.approx(-4.56)
    assert closest.z == pytest.approx(0.0, abs=1e-12)
    offset = flat_sheet.vector_to_surface(above)
    assert offset.z == pytest.approx(3.0)


def test_closest_point_beyond_the_edge(flat_sheet):
    outside = Point(20.0, 0.3, 0.0)
    closest = flat_sheet.closest_point(outside)
    assert closest.x == pytest.approx(15.0)
    assert closest.y == pytest.approx(0.3)


def test_is_above_face():
    surface = _square()
    assert surface.is_above_face(Point(0.75, 0.25, 2.0), 0)
    assert not surface.is_above_face(Point(0.25, 0.75, 2.0), 0)
