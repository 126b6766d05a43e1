"""3D views of a coil layout: rings, ports and breaks over the surface."""

from __future__ import annotations
import warnings
from pathlib import Path

import numpy as np
import matplotlib
matplotlib.use("Agg")
import matplotlib.pyplot as plt
from mpl_toolkits.mplot3d import Axes3D   # noqa: F401 – registers 3D projection

from coil_layout.geometry.surface import Surface
from coil_layout.layout.models import Coil, Layout

_COIL_COLOURS = ["#e63946", "#457b9d", "#2a9d8f", "#f4a261", "#6a4c93"]


def _coil_colour(coil_id: int) -> str:
    return _COIL_COLOURS[coil_id % len(_COIL_COLOURS)]


def _ring(coil: Coil) -> np.ndarray:
    """Ring points with the first point repeated so the loop closes."""
    pts = coil.points_array()
    return np.vstack([pts, pts[:1]])


def _feed_points(coil: Coil) -> tuple[np.ndarray, np.ndarray]:
    """Port position (empty when unset) and break positions."""
    pts = coil.points_array()
    port = pts[[coil.port]] if coil.port is not None else np.empty((0, 3))
    breaks = pts[coil.breaks] if coil.breaks else np.empty((0, 3))
    return port, breaks


def _hover_text(coil_id: int, coil: Coil) -> str:
    return (f"coil {coil_id}<br>r = {coil.mean_radius():.2f}<br>"
            f"wire = {coil.wire_length():.1f}<br>breaks = {len(coil.breaks)}")


def render_3d_png(
    layout: Layout,
    surface: Surface,
    output_path: str | Path,
    dpi: int = 150,
    label_coils: bool = True,
    verbose: bool = False,
) -> Path:
    """Static view: translucent surface, one colour per ring, square port and
    cross break markers, optional coil numbers at the centres."""
    output_path = Path(output_path)

    fig = plt.figure(figsize=(10, 8))
    ax = fig.add_subplot(111, projection="3d")

    from mpl_toolkits.mplot3d.art3d import Poly3DCollection
    verts = surface.points
    ax.add_collection3d(Poly3DCollection(verts[surface.face_vertex_indices], alpha=0.08,
                                         facecolor="#cccccc", edgecolor="none"))

    for coil_id, coil in enumerate(layout.coils):
        colour = _coil_colour(coil_id)
        ring = _ring(coil)
        ax.plot(ring[:, 0], ring[:, 1], ring[:, 2], color=colour, linewidth=1.2)

        port, breaks = _feed_points(coil)
        if len(port):
            ax.scatter(port[:, 0], port[:, 1], port[:, 2], color=colour, marker="s", s=18)
        if len(breaks):
            ax.scatter(breaks[:, 0], breaks[:, 1], breaks[:, 2], color=colour, marker="x", s=14)
        if label_coils:
            c = coil.center
            ax.text(c.x, c.y, c.z, str(coil_id), color=colour, fontsize=8)

    lo = verts.min(axis=0)
    hi = verts.max(axis=0)
    ax.set_xlim(lo[0], hi[0])
    ax.set_ylim(lo[1], hi[1])
    ax.set_zlim(lo[2], hi[2])
    ax.set_xlabel("X (mm)")
    ax.set_ylabel("Y (mm)")
    ax.set_zlabel("Z (mm)")
    total_wire = sum(c.wire_length() for c in layout.coils)
    ax.set_title(f"Coil layout: {len(layout.coils)} coils, {total_wire:.0f} mm of wire")
    ax.set_box_aspect([max(hi[i] - lo[i], 1e-6) for i in range(3)])

    plt.tight_layout()
    fig.savefig(str(output_path), dpi=dpi)
    plt.close(fig)

    if verbose:
        print(f"  3D PNG written → {output_path}")
    return output_path


def render_3d_html(
    layout: Layout,
    surface: Surface,
    output_path: str | Path,
    verbose: bool = False,
) -> Path | None:
    """Interactive Plotly view; each coil is a legend group with its ring,
    port and breaks, and hovering a ring shows its radius and wire length.

    Returns None and warns if plotly is not installed.
    """
    output_path = Path(output_path)

    try:
        import plotly.graph_objects as go
    except ImportError:
        warnings.warn(
            "plotly is not installed; HTML output skipped.  "
            "Install with: pip install plotly"
        )
        return None

    fig = go.Figure()

    verts = surface.points
    faces = surface.face_vertex_indices
    fig.add_trace(go.Mesh3d(
        x=verts[:, 0], y=verts[:, 1], z=verts[:, 2],
        i=faces[:, 0], j=faces[:, 1], k=faces[:, 2],
        opacity=0.15,
        color="lightgrey",
        name="surface",
        showlegend=False,
        hoverinfo="skip",
    ))

    for coil_id, coil in enumerate(layout.coils):
        colour = _coil_colour(coil_id)
        group = f"coil {coil_id}"
        ring = _ring(coil)
        fig.add_trace(go.Scatter3d(
            x=ring[:, 0], y=ring[:, 1], z=ring[:, 2],
            mode="lines",
            line={"color": colour, "width": 4},
            name=group,
            legendgroup=group,
            hovertext=_hover_text(coil_id, coil),
            hoverinfo="text",
        ))

        port, breaks = _feed_points(coil)
        for pts, symbol, label in ((port, "square", "port"), (breaks, "x", "break")):
            if not len(pts):
                continue
            fig.add_trace(go.Scatter3d(
                x=pts[:, 0], y=pts[:, 1], z=pts[:, 2],
                mode="markers",
                marker={"color": colour, "size": 4, "symbol": symbol},
                name=f"{group} {label}",
                legendgroup=group,
                showlegend=False,
            ))

    fig.update_layout(
        title=f"Coil layout: {len(layout.coils)} coils",
        scene={"aspectmode": "data"},
        margin={"l": 0, "r": 0, "b": 0, "t": 40},
    )
    fig.write_html(str(output_path))

    if verbose:
        print(f"  HTML written → {output_path}")
    return output_path
