"""Exception and warning types raised by coil_layout."""

from __future__ import annotations


class LayoutError(Exception):
    """Base class for every error raised by the layout pipeline."""


class InputValidationError(LayoutError, ValueError):
    """Bad input: too few points, mismatched arrays, invalid split counts."""


class InconsistentMeshError(LayoutError):
    """The mesh topology contradicts itself (missing or over-shared edge)."""

    def __init__(self, message: str, vertices: tuple[int, ...] = ()):
        super().__init__(message)
        self.vertices = vertices


class NumericDegeneracyError(LayoutError, ArithmeticError):
    """A NaN or zero-length frame showed up where geometry must be finite."""

    def __init__(self, message: str, point=None, center=None, normal=None):
        details = []
        if point is not None:
            details.append(f"point={point}")
        if center is not None:
            details.append(f"center={center}")
        if normal is not None:
            details.append(f"normal={normal}")
        if details:
            message = f"{message} ({', '.join(details)})"
        super().__init__(message)
        self.point = point
        self.center = center
        self.normal = normal


class ConfigError(LayoutError):
    """A config file or method argument failed to parse."""

    def __init__(self, message: str, key: str | None = None):
        if key is not None:
            message = f"{key}: {message}"
        super().__init__(message)
        self.key = key


# ---------------------------------------------------------------------------
# Advisory warnings
# ---------------------------------------------------------------------------

class LayoutWarning(UserWarning):
    """Base class for non-fatal layout diagnostics."""


class BoundaryShiftWarning(LayoutWarning):
    """A coil was moved away from the surface boundary and its radius shrunk."""

    def __init__(self, coil_id: int, shift: float, center, radius: float,
                 mirror_of: int | None = None):
        self.coil_id = coil_id
        self.shift = shift
        self.center = center
        self.radius = radius
        self.mirror_of = mirror_of
        label = f"Coil {coil_id}"
        if mirror_of is not None:
            label += f" (reflection of coil {mirror_of})"
        super().__init__(
            f"{label} too close to boundary, center shifted by |{shift:.2f}| "
            f"to {center} and radius shrunk to {radius:.2f}"
        )


class BoundaryProximityWarning(LayoutWarning):
    """A fixed coil sits closer to the boundary than its own radius."""

    def __init__(self, coil_id: int, radius: float, distance: float):
        self.coil_id = coil_id
        self.radius = radius
        self.distance = distance
        super().__init__(
            f"Coil {coil_id} too close to boundary, radius of {radius:.2f} "
            f"but distance of {distance:.2f}"
        )


class SymmetryPlaneWarning(LayoutWarning):
    """A circle was moved onto, or is suspiciously near, the symmetry plane."""

    def __init__(self, coil_id: int, distance: float, message: str):
        self.coil_id = coil_id
        self.distance = distance
        super().__init__(f"Circle {coil_id}: {message}")


class CloseCoilCountWarning(LayoutWarning):
    """The number of close coil pairs changed between iterations."""

    def __init__(self, before: int, after: int):
        self.before = before
        self.after = after
        super().__init__(f"Number of close coils changed! ({before} -> {after})")


class VisualizationModeWarning(LayoutWarning):
    """Visualisation mode overrides the requested iteration count."""


class MeshQualityWarning(LayoutWarning):
    """The input mesh loads but has a property that degrades the layout."""
