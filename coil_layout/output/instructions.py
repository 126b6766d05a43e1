"""Human-readable and JSON layout summaries."""

from __future__ import annotations
import json
from pathlib import Path

from coil_layout.geometry.surface import Surface
from coil_layout.io.layout_io import NumpyEncoder
from coil_layout.layout.models import Coil, Layout


def _coil_summary(coil_id: int, coil: Coil) -> dict:
    return {
        "coil_id": coil_id,
        "center": coil.center,
        "normal": coil.normal,
        "mean_radius": coil.mean_radius(),
        "wire_radius": coil.wire_radius,
        "wire_length": coil.wire_length(),
        "num_points": len(coil.vertices),
        "port": coil.port,
        "breaks": list(coil.breaks),
    }


def write_json(
    layout: Layout,
    surface: Surface,
    output_path: str | Path,
    method_name: str = "",
    verbose: bool = False,
) -> Path:
    """Write a machine-readable layout summary as JSON."""
    output_path = Path(output_path)

    data = {
        "method": method_name,
        "surface": {
            "num_vertices": len(surface.vertices),
            "num_faces": len(surface.faces),
            "num_boundary_vertices": len(surface.get_boundary_vertex_indices()),
        },
        "summary": {
            "num_coils": len(layout.coils),
            "total_wire_length": sum(c.wire_length() for c in layout.coils),
        },
        "coils": [_coil_summary(i, c) for i, c in enumerate(layout.coils)],
    }

    output_path.write_text(
        json.dumps(data, indent=2, cls=NumpyEncoder), encoding="utf-8"
    )
    if verbose:
        print(f"  JSON written → {output_path}")
    return output_path


def write_txt(
    layout: Layout,
    surface: Surface,
    output_path: str | Path,
    method_name: str = "",
    verbose: bool = False,
) -> Path:
    """Write a human-readable layout report as plain text."""
    output_path = Path(output_path)

    lines: list[str] = []
    lines.append("=" * 60)
    lines.append("COIL LAYOUT")
    lines.append("=" * 60)
    lines.append(f"Method     : {method_name}")
    lines.append(
        f"Surface    : {len(surface.vertices)} vertices, "
        f"{len(surface.faces)} faces"
    )
    lines.append(f"Coils      : {len(layout.coils)}")
    lines.append(f"Wire total : {sum(c.wire_length() for c in layout.coils):.2f}")
    lines.append("")

    lines.append("COIL DETAILS")
    lines.append("-" * 40)
    for coil_id, coil in enumerate(layout.coils):
        lines.append(
            f"Coil {coil_id:3d}  radius={coil.mean_radius():.2f}  "
            f"center={coil.center}  length={coil.wire_length():.2f}  "
            f"points={len(coil.vertices)}"
        )
        if coil.port is not None:
            lines.append(f"           port at point {coil.port}, "
                         f"breaks at {', '.join(str(b) for b in coil.breaks) or 'none'}")

    output_path.write_text("\n".join(lines) + "\n", encoding="utf-8")
    if verbose:
        print(f"  TXT written → {output_path}")
    return output_path
