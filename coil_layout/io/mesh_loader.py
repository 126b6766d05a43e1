"""Load triangulated surfaces from mesh files."""

from __future__ import annotations
import logging
import warnings
from pathlib import Path

import trimesh

from coil_layout.errors import InputValidationError, MeshQualityWarning
from coil_layout.geometry.surface import Surface

logger = logging.getLogger(__name__)

SUPPORTED_SUFFIXES = (".stl", ".obj", ".ply")


def validate_surface(mesh: trimesh.Trimesh, name: str = "mesh") -> None:
    """Emit warnings for mesh problems that affect ring extraction."""
    if not mesh.is_winding_consistent:
        warnings.warn(MeshQualityWarning(f"{name}: winding is inconsistent, vertex normals may flip"))
    if len(mesh.faces) > 200_000:
        warnings.warn(MeshQualityWarning(
            f"{name}: mesh has {len(mesh.faces):,} faces, layout will be slow"))


def load_surface(path: str | Path) -> Surface:
    """Read a mesh file (duplicate vertices merged) into a :class:`Surface`."""
    path = Path(path)
    if path.suffix.lower() not in SUPPORTED_SUFFIXES:
        raise InputValidationError(
            f"Unsupported mesh format '{path.suffix}' (expected one of {', '.join(SUPPORTED_SUFFIXES)})")
    if not path.exists():
        raise InputValidationError(f"Mesh file not found: {path}")

    mesh = trimesh.load(str(path), force="mesh")
    if len(mesh.faces) == 0:
        raise InputValidationError(f"{path.name}: mesh has no faces")
    validate_surface(mesh, path.name)
    logger.info("Loaded %s: %d vertices, %d faces", path.name, len(mesh.vertices), len(mesh.faces))
    return Surface.from_arrays(mesh.vertices, mesh.faces)

