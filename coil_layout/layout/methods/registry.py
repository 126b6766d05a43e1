"""Layout methods by configuration name."""

from __future__ import annotations

from coil_layout.layout.methods.adam import AdamCircles
from coil_layout.layout.methods.alternating import AlternatingCircles
from coil_layout.layout.methods.base import LayoutMethod
from coil_layout.layout.methods.gradient import GradientCircles
from coil_layout.layout.methods.kmeans import KMeansIsometric
from coil_layout.layout.methods.manual import ManualCircles, SingleCircle

METHODS: dict[str, type[LayoutMethod]] = {
    "manual_circles": ManualCircles,
    "single_circle": SingleCircle,
    "adam_circles": AdamCircles,
    "gradient_circles": GradientCircles,
    "alternating_circles": AlternatingCircles,
    "k_means_isometric": KMeansIsometric,
}

# Alternative configuration keys for method fields
FIELD_ALIASES: dict[str, str] = {
    "plane": "symmetry_plane",
    "static_layout": "layout_in",
    "b1": "first_moment_decay",
    "b2": "second_moment_decay",
    "radius_reg": "radius_regularization",
    "statistics": "statistics_level",
    "stiffness": "radial_stiffness",
    "radius": "coil_radius",
}

CIRCLE_ALIASES: dict[str, str] = {
    "radius": "coil_radius",
    "breaks": "break_count",
    "angle": "break_angle_offset",
    "on_sym": "on_symmetry_plane",
    "plane": "on_symmetry_plane",
}
