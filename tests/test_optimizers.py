import warnings

import numpy as np
import pytest

from coil_layout.errors import BoundaryProximityWarning, CloseCoilCountWarning, InputValidationError
from coil_layout.geometry.primitives import Plane, Point, Vector
from coil_layout.io.layout_io import load_circles, save_layout
from coil_layout.layout.methods.adam import AdamCircles
from coil_layout.layout.methods.alternating import AlternatingCircles
from coil_layout.layout.methods.gradient import GradientCircles
from coil_layout.layout.methods.manual import ManualCircles, SingleCircle
from coil_layout.layout.models import CircleArgs, Layout
from helpers import DistanceOracle, circle_coil


def _pair():
    return [CircleArgs(Point(-3.0, 0.0, 0.0), 5.0), CircleArgs(Point(3.0, 0.0, 0.0), 5.0)]


def _centres(layout):
    return np.array([list(coil.center) for coil in layout.coils])


def test_adam_separates_two_close_circles(flat_sheet):
    method = AdamCircles(circles=_pair(), epsilon=0.3, iterations=2, oracle=DistanceOracle())
    with pytest.warns(CloseCoilCountWarning):
        layout = method.realize(flat_sheet)

    centres = _centres(layout)
    assert len(layout.coils) == 2
    separation = np.linalg.norm(centres[0] - centres[1])
    assert separation >= 11.0 - 1e-6
    for centre, circle in zip(centres, _pair()):
        moved = np.linalg.norm(centre - circle.center.as_array())
        assert moved <= 0.5 * circle.coil_radius + 1e-6
    assert np.allclose(centres[:, 2], 0.0)
    for coil in layout.coils:
        assert coil.port is not None
        assert len(coil.breaks) == 3


@pytest.mark.parametrize("method_cls", [AdamCircles, GradientCircles, AlternatingCircles])
def test_zero_freedom_is_a_fixed_point(flat_sheet, method_cls, tmp_path):
    circles = _pair()
    final = tmp_path / "final.json"
    method = method_cls(circles=circles, epsilon=0.3, iterations=2, center_freedom=0.0,
                        radius_freedom=0.0, oracle=DistanceOracle(), final_cfg_output=str(final))
    layout = method.realize(flat_sheet)

    for coil, circle in zip(layout.coils, circles):
        assert coil.center.x == pytest.approx(circle.center.x, abs=1e-9)
        assert coil.center.y == pytest.approx(circle.center.y, abs=1e-9)
    # The last coil is never offset by the overlap pass
    last = layout.coils[-1]
    assert last.mean_radius() == pytest.approx(circles[-1].coil_radius, abs=1e-9)

    saved = load_circles(final)
    assert len(saved) == len(circles)
    for loaded, circle in zip(saved, circles):
        assert np.allclose(list(loaded.center), list(circle.center), atol=1e-9)
        assert loaded.coil_radius == pytest.approx(circle.coil_radius)
        assert loaded.break_count == circle.break_count


@pytest.mark.parametrize("method_cls", [GradientCircles, AlternatingCircles])
@pytest.mark.filterwarnings("ignore::UserWarning")
def test_optimisers_stay_inside_freedom_box(flat_sheet, method_cls):
    circles = _pair()
    method = method_cls(circles=circles, epsilon=0.3, iterations=3, oracle=DistanceOracle())
    layout = method.realize(flat_sheet)

    centres = _centres(layout)
    assert np.linalg.norm(centres[0] - centres[1]) >= 6.0 - 1e-9
    for centre, circle in zip(centres, circles):
        moved = np.linalg.norm(centre - circle.center.as_array())
        assert moved <= 0.5 * circle.coil_radius + 1e-6


@pytest.mark.filterwarnings("ignore::UserWarning")
def test_symmetric_layout_stays_mirrored(flat_sheet):
    plane = Plane(Vector.xhat(), 0.0)
    circles = [
        CircleArgs(Point(0.0, -6.0, 0.0), 4.0, on_symmetry_plane=True),
        CircleArgs(Point(4.0, 3.0, 0.0), 4.0),
    ]
    method = AlternatingCircles(circles=circles, symmetry_plane=plane, epsilon=0.3,
                                iterations=2, oracle=DistanceOracle())
    layout = method.realize(flat_sheet)

    assert len(layout.coils) == 3
    on_plane, pos, neg = layout.coils
    assert on_plane.center.x == pytest.approx(0.0, abs=1e-9)
    mirrored = plane.reflect_point(pos.center)
    assert neg.center.x == pytest.approx(mirrored.x, abs=1e-9)
    assert neg.center.y == pytest.approx(mirrored.y, abs=1e-9)
    assert pos.center.x > 0.0


def test_final_circles_are_written(flat_sheet, tmp_path):
    out = tmp_path / "final.json"
    method = AlternatingCircles(circles=_pair(), epsilon=0.3, iterations=1,
                                final_cfg_output=str(out), oracle=DistanceOracle())
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        method.realize(flat_sheet)

    final = load_circles(out)
    assert len(final) == 2
    assert all(c.coil_radius <= 5.0 * 1.15 + 1e-9 for c in final)


def test_static_layout_pushes_circle_away(flat_sheet, tmp_path):
    static_path = tmp_path / "static.json"
    save_layout(Layout([circle_coil(center=(6.0, 0.0, 0.0), radius=5.0)]), static_path)
    circle = CircleArgs(Point(-1.0, 0.0, 0.0), 5.0)
    method = AlternatingCircles(circles=[circle], layout_in=str(static_path), epsilon=0.3,
                                iterations=1, oracle=DistanceOracle())
    with warnings.catch_warnings():
        warnings.simplefilter("ignore")
        layout = method.realize(flat_sheet)

    assert len(layout.coils) == 1
    assert layout.coils[0].center.x < circle.center.x


def test_manual_circles_place_breaks(flat_sheet):
    circles = [CircleArgs(Point(-3.0, 0.0, 0.0), 5.0, break_count=2),
               CircleArgs(Point(3.0, 0.0, 0.0), 5.0, break_count=3, break_angle_offset=45.0)]
    layout = ManualCircles(circles=circles, epsilon=0.3).realize(flat_sheet)
    assert [len(c.breaks) for c in layout.coils] == [1, 2]
    assert all(c.port is not None for c in layout.coils)


def test_manual_circles_warn_near_boundary(flat_sheet):
    with pytest.warns(BoundaryProximityWarning):
        ManualCircles(circles=[CircleArgs(Point(11.5, 0.0, 0.0), 3.6)],
                      epsilon=0.3).realize(flat_sheet)


def test_manual_circles_need_a_circle(flat_sheet):
    with pytest.raises(InputValidationError):
        ManualCircles(circles=[]).realize(flat_sheet)


def test_single_circle_on_sphere(sphere):
    centre = Point.from_array(sphere.points[0])
    layout = SingleCircle(center=centre, coil_radius=5.0, epsilon=0.8).realize(sphere)

    assert len(layout.coils) == 1
    coil = layout.coils[0]
    assert coil.port is None
    assert coil.breaks == []
    dist = np.linalg.norm(coil.points_array() - centre.as_array(), axis=1)
    assert np.allclose(dist, 5.0)


def test_gradient_step_halves_every_halflife():
    method = GradientCircles(circles=_pair(), initial_step=64.0, step_halflife=3.0)
    assert method.step_size(0) == pytest.approx(64.0)
    assert method.step_size(3) == pytest.approx(32.0)
    assert method.step_size(6) == pytest.approx(16.0)


@pytest.mark.parametrize("halflife", [0.0, -1.0])
def test_gradient_step_is_constant_without_halflife(halflife):
    method = GradientCircles(circles=_pair(), initial_step=64.0, step_halflife=halflife)
    assert [method.step_size(i) for i in range(4)] == [64.0] * 4
