"""Shared fixtures: small meshes and a deterministic inductance oracle."""

from __future__ import annotations

import pytest
import trimesh

from coil_layout.geometry.primitives import Plane, Vector
from coil_layout.geometry.surface import Surface
from helpers import DistanceOracle, grid_arrays


@pytest.fixture(scope="session")
def sheet_arrays():
    return grid_arrays()


@pytest.fixture
def flat_sheet(sheet_arrays):
    vertices, faces = sheet_arrays
    return Surface.from_arrays(vertices, faces)


@pytest.fixture(scope="session")
def icosphere_mesh():
    return trimesh.creation.icosphere(subdivisions=3, radius=10.0)


@pytest.fixture
def sphere(icosphere_mesh):
    return Surface.from_arrays(icosphere_mesh.vertices, icosphere_mesh.faces)


@pytest.fixture
def hemisphere(sphere):
    cap, _ = sphere.trim_by_plane(Plane(Vector.zhat(), 0.0))
    return cap


@pytest.fixture
def oracle():
    return DistanceOracle()
