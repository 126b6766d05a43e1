"""Top-level pipeline orchestration for coil_layout."""

from __future__ import annotations
from pathlib import Path

from coil_layout.errors import InputValidationError
from coil_layout.geometry.primitives import Plane
from coil_layout.geometry.surface import Surface
from coil_layout.layout.methods.base import LayoutMethod
from coil_layout.layout.models import Layout


def lay_out_file(
    config_path: str | Path,
    output_dir: str | Path | None = None,
    formats: list[str] | None = None,
    trim_plane: Plane | None = None,
    verbose: bool = False,
) -> Layout:
    """Full pipeline: configuration file → coil layout + output files.

    Parameters
    ----------
    config_path:
        JSON layout configuration (method, input mesh, output path).  An
        existing layout file is only replaced when it sets ``force_save``.
    output_dir:
        Directory for report files.  Defaults to the directory of the
        configured output path, or the current directory.
    formats:
        Report formats, e.g. ["json", "txt", "png", "html"].  Defaults to
        ["json", "txt"].  The layout file itself is always written.
    trim_plane:
        Keep only the part of the surface on the positive side of this plane.
    verbose:
        Print progress messages.
    """
    from coil_layout.io.config import load_config
    from coil_layout.io.mesh_loader import load_surface

    if verbose:
        print(f"[1/4] Reading configuration: {config_path}")
    config = load_config(config_path)

    if verbose:
        print(f"[2/4] Loading surface: {config.input_path}")
    surface = load_surface(config.input_path)
    if verbose:
        print(f"      {len(surface.vertices)} vertices, {len(surface.faces)} faces, "
              f"{len(surface.get_boundary_vertex_indices())} on the boundary")

    if trim_plane is not None:
        surface, cut = surface.trim_by_plane(trim_plane)
        if verbose:
            print(f"      Trimmed to {len(surface.vertices)} vertices "
                  f"({len(cut)} on the cut)")

    if output_dir is None:
        output_dir = config.output_path.parent if config.output_path is not None else "."
    layout_path = config.output_path
    if layout_path is not None and layout_path.suffix.lower() != ".json":
        layout_path = layout_path.with_name(layout_path.name + ".json")
    if layout_path is not None and layout_path.exists() and not config.save:
        raise InputValidationError(
            f"{layout_path} already exists; set force_save to overwrite it")

    return lay_out_mesh(
        surface,
        config.method,
        output_dir=output_dir,
        formats=formats,
        layout_path=layout_path,
        verbose=verbose,
        _step_offset=2,
        _total_steps=2,
    )


def lay_out_mesh(
    surface: Surface,
    method: LayoutMethod,
    output_dir: str | Path = ".",
    formats: list[str] | None = None,
    layout_path: str | Path | None = None,
    verbose: bool = False,
    _step_offset: int = 0,
    _total_steps: int = 2,
) -> Layout:
    """Layout pipeline starting from an existing surface.

    Parameters
    ----------
    surface:
        The surface to place coils on.
    method:
        A configured layout method.
    output_dir:
        Directory for output files.
    formats:
        Report formats.  Defaults to ["json", "txt"].
    layout_path:
        Where to write the layout file.  Defaults to ``output_dir/layout.json``.
    verbose:
        Print progress messages.
    """
    from coil_layout.io.layout_io import save_layout
    from coil_layout.output.instructions import write_json, write_txt
    from coil_layout.output.viz3d import render_3d_png, render_3d_html

    if formats is None:
        formats = ["json", "txt"]

    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    total = _step_offset + _total_steps
    step = _step_offset + 1

    if verbose:
        print(f"[{step}/{total}] Computing layout ({method.display_name}) …")
    layout = method.realize(surface)
    if verbose:
        print(f"      {len(layout.coils)} coils, "
              f"{sum(c.wire_length() for c in layout.coils):.1f} total wire length")

    # --- Output ---
    step += 1
    if verbose:
        print(f"[{step}/{total}] Writing output …")

    stem = "layout"
    if layout_path is None:
        layout_path = output_dir / f"{stem}.json"
    save_layout(layout, layout_path)
    if verbose:
        print(f"      Layout written → {layout_path}")

    if "json" in formats:
        write_json(layout, surface, output_dir / f"{stem}_summary.json",
                   method_name=method.display_name, verbose=verbose)
    if "txt" in formats:
        write_txt(layout, surface, output_dir / f"{stem}_summary.txt",
                  method_name=method.display_name, verbose=verbose)
    if "png" in formats:
        render_3d_png(layout, surface, output_dir / f"{stem}_3d.png", verbose=verbose)
    if "html" in formats:
        render_3d_html(layout, surface, output_dir / f"{stem}_3d.html", verbose=verbose)

    if verbose:
        print("Done.")

    return layout
