"""Layout configuration files.

A configuration is a JSON object naming the layout method, the mesh to lay
out and where to write the result. Method parameters sit either beside the
method name or, in the tagged form, under ``method.args``::

    {"method": "adam_circles", "input": "mesh.stl", "output": "out/layout.json",
     "circles": [{"center": [0, 0, 0], "radius": 5}], "iterations": 10}

    {"method": {"name": "adam_circles", "args": {"circles": [...]}},
     "input": "mesh.stl"}

Unknown keys are rejected.
"""

from __future__ import annotations
import dataclasses
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from coil_layout.errors import ConfigError
from coil_layout.geometry.primitives import Plane, Point, Vector
from coil_layout.layout.methods.base import LayoutMethod
from coil_layout.layout.methods.registry import CIRCLE_ALIASES, FIELD_ALIASES, METHODS
from coil_layout.layout.models import CircleArgs

_INPUT_KEYS = ("input", "in", "i")
_OUTPUT_KEYS = ("output", "out", "o")
_SAVE_KEY = "force_save"

# Fields that never come from a configuration file
_INTERNAL_FIELDS = {"oracle"}


@dataclass
class LayoutConfig:
    method: LayoutMethod
    input_path: Path
    output_path: Path | None = None
    save: bool = False


# ---------------------------------------------------------------------------
# Value parsers
# ---------------------------------------------------------------------------

def _triple(value: Any, key: str) -> tuple[float, float, float]:
    if isinstance(value, dict):
        try:
            return float(value["x"]), float(value["y"]), float(value["z"])
        except (KeyError, TypeError, ValueError) as exc:
            raise ConfigError(f"expected {{'x', 'y', 'z'}}, got {value!r}", key) from exc
    if isinstance(value, (list, tuple)) and len(value) == 3:
        try:
            return float(value[0]), float(value[1]), float(value[2])
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"expected three numbers, got {value!r}", key) from exc
    raise ConfigError(f"expected [x, y, z], got {value!r}", key)


def parse_point(value: Any, key: str = "point") -> Point:
    return Point(*_triple(value, key))


def parse_vector(value: Any, key: str = "vector") -> Vector:
    return Vector(*_triple(value, key))


def parse_plane(value: Any, key: str = "symmetry_plane") -> Plane:
    if not isinstance(value, dict) or "normal" not in value:
        raise ConfigError("expected {'normal': [...], 'offset': d} or {'normal': [...], 'point': [...]}",
                          key)
    unknown = set(value) - {"normal", "offset", "point"}
    if unknown:
        raise ConfigError(f"unknown plane key(s): {', '.join(sorted(unknown))}", key)
    normal = parse_vector(value["normal"], f"{key}.normal")
    if normal.norm() == 0.0:
        raise ConfigError("plane normal must be non-zero", key)
    if "point" in value:
        return Plane.from_normal_and_point(normal, parse_point(value["point"], f"{key}.point"))
    return Plane.from_normal_and_offset(normal, float(value.get("offset", 0.0)))


def _resolve_keys(raw: dict, aliases: dict[str, str], allowed: set[str], where: str) -> dict:
    resolved = {}
    for key, value in raw.items():
        name = key if key in allowed else aliases.get(key, key)
        if name not in allowed:
            raise ConfigError(f"unknown field in {where}", key)
        if name in resolved:
            raise ConfigError(f"given more than once in {where}", name)
        resolved[name] = value
    return resolved


def parse_circle(value: Any, key: str = "circle") -> CircleArgs:
    if not isinstance(value, dict):
        raise ConfigError(f"expected a circle object, got {value!r}", key)
    allowed = {f.name for f in dataclasses.fields(CircleArgs)}
    fields = _resolve_keys(value, CIRCLE_ALIASES, allowed, key)
    if "center" not in fields:
        raise ConfigError("circle needs a center", key)
    try:
        return CircleArgs(
            center=parse_point(fields["center"], f"{key}.center"),
            coil_radius=float(fields.get("coil_radius", 5.0)),
            break_count=int(fields.get("break_count", 4)),
            break_angle_offset=float(fields.get("break_angle_offset", 0.0)),
            on_symmetry_plane=bool(fields.get("on_symmetry_plane", False)),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid circle value ({exc})", key) from exc


# ---------------------------------------------------------------------------
# Methods
# ---------------------------------------------------------------------------

def _convert(name: str, value: Any, default: Any):
    if name == "circles":
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if not isinstance(value, list):
            raise ConfigError("expected a list of circles", name)
        return [parse_circle(c, f"circles[{i}]") for i, c in enumerate(value)]
    if name == "symmetry_plane":
        return None if value is None else parse_plane(value, name)
    if name in ("zero_angle_vector", "backup_zero_angle_vector"):
        return parse_vector(value, name)
    if name == "center":
        return parse_point(value, name)
    if name == "initial_centers":
        if value is None:
            return None
        return [parse_point(p, f"initial_centers[{i}]") for i, p in enumerate(value)]
    if value is None:
        return None
    try:
        if isinstance(default, bool):
            if not isinstance(value, bool):
                raise ConfigError(f"expected true/false, got {value!r}", name)
            return value
        if isinstance(default, int):
            if isinstance(value, float) and not value.is_integer():
                raise ConfigError(f"expected an integer, got {value!r}", name)
            return int(value)
        if isinstance(default, float):
            return float(value)
        if isinstance(default, str) or default is None:
            return str(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"invalid value {value!r}", name) from exc
    return value


def method_from_config(name: str, args: dict) -> LayoutMethod:
    """Build the layout method ``name`` from configuration ``args``."""
    if name not in METHODS:
        raise ConfigError(f"unknown layout method '{name}' (expected one of {', '.join(METHODS)})",
                          "method")
    cls = METHODS[name]
    fields = {f.name: f for f in dataclasses.fields(cls) if f.init and f.name not in _INTERNAL_FIELDS}
    resolved = _resolve_keys(args, FIELD_ALIASES, set(fields), name)

    kwargs = {}
    for field_name, value in resolved.items():
        f = fields[field_name]
        if f.default is not dataclasses.MISSING:
            default = f.default
        elif f.default_factory is not dataclasses.MISSING:
            default = f.default_factory()
        else:
            default = None
        kwargs[field_name] = _convert(field_name, value, default)

    missing = [n for n, f in fields.items()
               if f.default is dataclasses.MISSING and f.default_factory is dataclasses.MISSING
               and n not in kwargs]
    if missing:
        raise ConfigError(f"missing required field(s) for {name}: {', '.join(missing)}", name)
    return cls(**kwargs)


def config_from_dict(data: dict, base_dir: str | Path = ".") -> LayoutConfig:
    """Parse a configuration mapping; relative paths resolve against ``base_dir``."""
    if not isinstance(data, dict):
        raise ConfigError("configuration must be a JSON object")
    data = dict(data)
    base_dir = Path(base_dir)

    def take(keys: tuple[str, ...]):
        found = [k for k in keys if k in data]
        if len(found) > 1:
            raise ConfigError(f"given more than once as {', '.join(found)}", keys[0])
        return data.pop(found[0]) if found else None

    method_value = data.pop("method", None)
    if method_value is None:
        raise ConfigError("missing layout method", "method")
    input_value = take(_INPUT_KEYS)
    if input_value is None:
        raise ConfigError("missing input mesh path", "input")
    output_value = take(_OUTPUT_KEYS)
    save = data.pop(_SAVE_KEY, False)
    if not isinstance(save, bool):
        raise ConfigError(f"expected true/false, got {save!r}", _SAVE_KEY)
    if save and output_value is None:
        raise ConfigError("force_save requires an output path", _SAVE_KEY)

    if isinstance(method_value, dict):
        unknown = set(method_value) - {"name", "args"}
        if unknown:
            raise ConfigError(f"unknown key(s): {', '.join(sorted(unknown))}", "method")
        if data:
            raise ConfigError("unknown top-level field", sorted(data)[0])
        name = method_value.get("name")
        args = method_value.get("args", {}) or {}
    else:
        name, args = method_value, data
    if not isinstance(name, str):
        raise ConfigError(f"expected a method name, got {name!r}", "method")
    if not isinstance(args, dict):
        raise ConfigError("method arguments must be an object", "method.args")

    def resolve(value) -> Path:
        path = Path(str(value))
        return path if path.is_absolute() else base_dir / path

    return LayoutConfig(
        method=method_from_config(name, args),
        input_path=resolve(input_value),
        output_path=resolve(output_value) if output_value is not None else None,
        save=save,
    )


def load_config(path: str | Path) -> LayoutConfig:
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"configuration file not found: {path}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON ({exc})") from exc
    return config_from_dict(data, base_dir=path.parent)
