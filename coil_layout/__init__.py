"""coil_layout: Lay out overlapping RF receive coils on triangulated surfaces."""

from coil_layout.pipeline import lay_out_file, lay_out_mesh
from coil_layout.geometry.surface import Surface
from coil_layout.layout.models import CircleArgs, Coil, Layout
from coil_layout.layout.methods.registry import METHODS

__all__ = ["lay_out_file", "lay_out_mesh", "Surface", "CircleArgs", "Coil", "Layout", "METHODS"]
