import json

import pytest
import trimesh
from click.testing import CliRunner

from coil_layout.cli import main


def _write_case(tmp_path, sheet_arrays, mesh_name="sheet.stl", force_save=False):
    vertices, faces = sheet_arrays
    trimesh.Trimesh(vertices=vertices, faces=faces, process=False).export(tmp_path / "sheet.stl")
    cfg = tmp_path / "layout.json"
    cfg.write_text(json.dumps({
        "method": "manual_circles",
        "input": mesh_name,
        "output": "out/layout",
        "circles": [{"center": [0, 0, 0], "radius": 4}],
        "epsilon": 0.3,
        "force_save": force_save,
    }))
    return cfg


def test_cli_writes_layout_and_reports(tmp_path, sheet_arrays):
    cfg = _write_case(tmp_path, sheet_arrays)
    result = CliRunner().invoke(main, [str(cfg), "--formats", "json,txt"])

    assert result.exit_code == 0, result.output
    out = tmp_path / "out"
    assert (out / "layout.json").exists()
    assert (out / "layout_summary.json").exists()
    assert (out / "layout_summary.txt").exists()

    summary = json.loads((out / "layout_summary.json").read_text())
    assert summary["summary"]["num_coils"] == 1
    assert summary["coils"][0]["mean_radius"] == pytest.approx(4.0)


def test_cli_rejects_bad_trim_plane(tmp_path, sheet_arrays):
    cfg = _write_case(tmp_path, sheet_arrays)
    result = CliRunner().invoke(main, [str(cfg), "--trim-plane", "0,0,0,1"])
    assert result.exit_code == 2


def test_cli_reports_missing_mesh(tmp_path, sheet_arrays):
    cfg = _write_case(tmp_path, sheet_arrays, mesh_name="missing.stl")
    result = CliRunner().invoke(main, [str(cfg)])
    assert result.exit_code == 1
    assert "missing.stl" in result.output


def test_load_surface_checks_the_file(tmp_path, sheet_arrays):
    from coil_layout.errors import InputValidationError
    from coil_layout.io.mesh_loader import load_surface

    with pytest.raises(InputValidationError):
        load_surface(tmp_path / "mesh.vtk")
    with pytest.raises(InputValidationError):
        load_surface(tmp_path / "absent.stl")

    vertices, faces = sheet_arrays
    trimesh.Trimesh(vertices=vertices, faces=faces, process=False).export(tmp_path / "sheet.ply")
    surface = load_surface(tmp_path / "sheet.ply")
    assert len(surface.faces) == len(faces)
    assert len(surface.get_boundary_vertex_indices()) == 4 * 60


def test_existing_layout_needs_force_save(tmp_path, sheet_arrays):
    cfg = _write_case(tmp_path, sheet_arrays)
    layout_file = tmp_path / "out" / "layout.json"
    layout_file.parent.mkdir()
    layout_file.write_text("previous run")

    result = CliRunner().invoke(main, [str(cfg)])
    assert result.exit_code == 1
    assert "force_save" in result.output
    assert layout_file.read_text() == "previous run"

    cfg = _write_case(tmp_path, sheet_arrays, force_save=True)
    result = CliRunner().invoke(main, [str(cfg)])
    assert result.exit_code == 0, result.output
    assert "coils" in json.loads(layout_file.read_text())


def test_inconsistent_winding_is_reported():
    from coil_layout.errors import MeshQualityWarning
    from coil_layout.io.mesh_loader import validate_surface

    vertices = [[0, 0, 0], [1, 0, 0], [1, 1, 0], [0, 1, 0]]
    mesh = trimesh.Trimesh(vertices=vertices, faces=[[0, 1, 2], [0, 3, 2]], process=False)
    with pytest.warns(MeshQualityWarning, match="winding"):
        validate_surface(mesh, "square")
