"""JSON persistence for layouts, circle sets and point lists."""

from __future__ import annotations
import json
from pathlib import Path

import numpy as np

from coil_layout.errors import ConfigError, InputValidationError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.layout.models import CircleArgs, Coil, CoilVertex, Layout


class NumpyEncoder(json.JSONEncoder):
    def default(self, obj):
        if isinstance(obj, np.ndarray):
            return obj.tolist()
        if isinstance(obj, (np.integer,)):
            return int(obj)
        if isinstance(obj, (np.floating,)):
            return float(obj)
        if isinstance(obj, (Point, Vector)):
            return [obj.x, obj.y, obj.z]
        return super().default(obj)


def _write(data, output_path: str | Path) -> Path:
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(data, indent=2, cls=NumpyEncoder), encoding="utf-8")
    return output_path


def _read(path: str | Path):
    path = Path(path)
    if not path.exists():
        raise InputValidationError(f"File not found: {path}")
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise InputValidationError(f"{path}: invalid JSON ({exc})") from exc


def coil_to_dict(coil: Coil) -> dict:
    return {
        "center": coil.center,
        "normal": coil.normal,
        "wire_radius": coil.wire_radius,
        "port": coil.port,
        "breaks": list(coil.breaks),
        "vertices": [
            {
                "point": v.point,
                "surface_normal": v.surface_normal,
                "wire_radius_normal": v.wire_radius_normal,
            }
            for v in coil.vertices
        ],
    }


def coil_from_dict(data: dict) -> Coil:
    try:
        vertices = [
            CoilVertex(
                Point(*v["point"]),
                Vector(*v["surface_normal"]),
                Vector(*v.get("wire_radius_normal", v["surface_normal"])),
            )
            for v in data["vertices"]
        ]
        return Coil(
            Point(*data["center"]),
            Vector(*data["normal"]),
            vertices,
            float(data["wire_radius"]),
            [int(b) for b in data.get("breaks", [])],
            data.get("port"),
        )
    except (KeyError, TypeError) as exc:
        raise InputValidationError(f"Malformed coil record: {exc}") from exc


def save_layout(layout: Layout, output_path: str | Path) -> Path:
    """Write a layout as JSON; returns the path written."""
    return _write({"coils": [coil_to_dict(c) for c in layout.coils]}, output_path)


def load_layout(path: str | Path) -> Layout:
    data = _read(path)
    if not isinstance(data, dict) or "coils" not in data:
        raise InputValidationError(f"{path}: not a layout file (missing 'coils')")
    return Layout([coil_from_dict(c) for c in data["coils"]])


def circle_to_dict(circle: CircleArgs) -> dict:
    return {
        "center": circle.center,
        "coil_radius": circle.coil_radius,
        "break_count": circle.break_count,
        "break_angle_offset": circle.break_angle_offset,
        "on_symmetry_plane": circle.on_symmetry_plane,
    }


def save_circles(circles: list[CircleArgs], output_path: str | Path) -> Path:
    return _write([circle_to_dict(c) for c in circles], output_path)


def load_circles(path: str | Path) -> list[CircleArgs]:
    from coil_layout.io.config import parse_circle

    data = _read(path)
    if not isinstance(data, list):
        raise ConfigError(f"{path}: expected a list of circles")
    return [parse_circle(item, f"circles[{i}]") for i, item in enumerate(data)]


def save_points(points: list[Point], output_path: str | Path) -> Path:
    return _write([[p.x, p.y, p.z] for p in points], output_path)
