"""Click CLI entry point for coil_layout."""

from __future__ import annotations
import logging

import click

from coil_layout.errors import LayoutError


def _parse_plane(value: str | None):
    """Parse ``nx,ny,nz,offset`` into a plane."""
    if value is None:
        return None
    from coil_layout.geometry.primitives import Plane, Vector

    parts = [p.strip() for p in value.split(",")]
    try:
        nums = [float(p) for p in parts]
    except ValueError:
        nums = []
    if len(nums) != 4 or nums[:3] == [0.0, 0.0, 0.0]:
        raise click.BadParameter(
            f"Cannot parse plane {value!r}. Use 'nx,ny,nz,offset' (e.g. 1,0,0,0).",
            param_hint="--trim-plane",
        )
    return Plane.from_normal_and_offset(Vector(nums[0], nums[1], nums[2]), nums[3])


@click.command()
@click.argument("config", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output-dir", default=None,
    type=click.Path(file_okay=False),
    help="Directory for report files (default: next to the configured output).",
)
@click.option(
    "--formats", default="json,txt", show_default=True,
    help="Comma-separated list of report formats: json,txt,png,html.",
)
@click.option(
    "--trim-plane", default=None, metavar="NX,NY,NZ,OFFSET",
    help="Keep only the surface on the positive side of this plane.",
)
@click.option("--verbose", is_flag=True, help="Print progress messages.")
def main(
    config: str,
    output_dir: str | None,
    formats: str,
    trim_plane: str | None,
    verbose: bool,
) -> None:
    """Lay out RF coils on a surface mesh as described by CONFIG.

    CONFIG is a JSON file naming the layout method, its parameters, the input
    mesh (.stl, .obj, .ply) and the output layout path.
    """
    if verbose:
        logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")

    from coil_layout.pipeline import lay_out_file

    fmt_list = [f.strip().lower() for f in formats.split(",") if f.strip()]
    plane = _parse_plane(trim_plane)
    try:
        lay_out_file(
            config_path=config,
            output_dir=output_dir,
            formats=fmt_list,
            trim_plane=plane,
            verbose=verbose,
        )
    except LayoutError as exc:
        raise click.ClickException(str(exc)) from exc
