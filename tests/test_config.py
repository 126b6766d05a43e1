import json
from pathlib import Path

import pytest

from coil_layout.errors import ConfigError
from coil_layout.geometry.primitives import Point, Vector
from coil_layout.io.config import config_from_dict, load_config, parse_circle, parse_plane
from coil_layout.layout.methods.adam import AdamCircles
from coil_layout.layout.methods.kmeans import KMeansIsometric
from coil_layout.layout.methods.manual import SingleCircle


def test_flat_form_with_aliases(tmp_path):
    data = {
        "method": "adam_circles",
        "i": "mesh.stl",
        "o": "out/layout.json",
        "circles": [{"center": [1, 2, 3], "radius": 4, "breaks": 2}],
        "b1": 0.8,
        "iterations": 3,
        "plane": {"normal": [2, 0, 0], "offset": 1},
    }
    config = config_from_dict(data, base_dir=tmp_path)

    assert config.input_path == tmp_path / "mesh.stl"
    assert config.output_path == tmp_path / "out" / "layout.json"
    assert not config.save
    method = config.method
    assert isinstance(method, AdamCircles)
    assert method.first_moment_decay == 0.8
    assert method.iterations == 3
    assert method.symmetry_plane.normal == Vector.xhat()
    assert method.symmetry_plane.offset == 1.0
    circle = method.circles[0]
    assert circle.center == Point(1.0, 2.0, 3.0)
    assert circle.coil_radius == 4.0
    assert circle.break_count == 2


def test_tagged_form():
    data = {
        "method": {"name": "single_circle",
                   "args": {"center": {"x": 1, "y": 0, "z": 0}, "radius": 3}},
        "input": "/meshes/head.obj",
    }
    config = config_from_dict(data)
    assert isinstance(config.method, SingleCircle)
    assert config.method.center == Point(1.0, 0.0, 0.0)
    assert config.method.coil_radius == 3.0
    assert config.input_path == Path("/meshes/head.obj")
    assert config.output_path is None


def test_kmeans_takes_a_circle_count():
    config = config_from_dict({"method": "k_means_isometric", "input": "m.stl", "circles": 8,
                               "optimizer": "adam"})
    assert isinstance(config.method, KMeansIsometric)
    assert config.method.circles == 8
    assert config.method.optimizer == "adam"


@pytest.mark.parametrize("data, key", [
    ({"method": "manual_circles", "input": "m.stl", "circles": [], "colour": 1}, "colour"),
    ({"method": "manual_circles", "input": "m.stl", "circles": [],
      "symmetry_plane": None, "plane": None}, "symmetry_plane"),
    ({"method": "spiral", "input": "m.stl"}, "method"),
    ({"method": "adam_circles", "input": "m.stl"}, "adam_circles"),
    ({"method": "manual_circles", "input": "m.stl", "circles": [], "force_save": True},
     "force_save"),
    ({"method": "manual_circles", "circles": []}, "input"),
    ({"method": "manual_circles", "input": "m.stl", "in": "n.stl", "circles": []}, "input"),
])
def test_config_errors(data, key):
    with pytest.raises(ConfigError) as excinfo:
        config_from_dict(data)
    assert excinfo.value.key == key


def test_unknown_field_in_tagged_form():
    data = {"method": {"name": "manual_circles", "args": {"circles": []}},
            "input": "m.stl", "iterations": 3}
    with pytest.raises(ConfigError):
        config_from_dict(data)


def test_wrong_value_types():
    with pytest.raises(ConfigError):
        config_from_dict({"method": "adam_circles", "input": "m.stl", "circles": [],
                          "iterations": 2.5})
    with pytest.raises(ConfigError):
        config_from_dict({"method": "adam_circles", "input": "m.stl", "circles": [],
                          "verbose": "yes"})


def test_parse_plane_forms():
    plane = parse_plane({"normal": [0, 0, 3], "point": [0, 0, 2]})
    assert plane.normal == Vector.zhat()
    assert plane.offset == pytest.approx(2.0)
    with pytest.raises(ConfigError):
        parse_plane({"normal": [0, 0, 0]})
    with pytest.raises(ConfigError):
        parse_plane({"normal": [0, 0, 1], "tilt": 3})
    with pytest.raises(ConfigError):
        parse_plane([0, 0, 1])


def test_parse_circle_errors():
    with pytest.raises(ConfigError):
        parse_circle({"radius": 3})
    with pytest.raises(ConfigError):
        parse_circle({"center": [0, 0], "radius": 3})
    with pytest.raises(ConfigError):
        parse_circle({"center": [0, 0, 0], "radius": 3, "coil_radius": 4})


def test_load_config_resolves_relative_paths(tmp_path):
    cfg = tmp_path / "layout.json"
    cfg.write_text(json.dumps({"method": "single_circle", "input": "mesh.ply",
                               "output": "res.json", "force_save": True}))
    config = load_config(cfg)
    assert config.input_path == tmp_path / "mesh.ply"
    assert config.output_path == tmp_path / "res.json"
    assert config.save


def test_load_config_rejects_bad_json(tmp_path):
    cfg = tmp_path / "broken.json"
    cfg.write_text("{not json")
    with pytest.raises(ConfigError):
        load_config(cfg)
    with pytest.raises(ConfigError):
        load_config(tmp_path / "missing.json")
