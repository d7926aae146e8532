import pytest

from camera import CameraSmoother, CameraTransform, lerp
from controls import ControlSignal
from params import Params
from attractors import empty_points


@pytest.fixture
def cam():
    return CameraSmoother(Params(num_particles=4))


def test_lerp():
    assert lerp(0.0, 10.0, 0.1) == pytest.approx(1.0)
    assert lerp(5.0, 5.0, 0.5) == 5.0


def test_first_step_moves_by_factor(cam):
    cam.retarget(25.0, (0.4, -0.2))
    t = cam.step()
    assert isinstance(t, CameraTransform)
    assert t.zoom == pytest.approx(15.0 + 10.0 * 0.1)
    assert t.rotation_x == pytest.approx(0.4 * 0.15)
    assert t.rotation_y == pytest.approx(-0.2 * 0.15)


def test_zoom_error_strictly_decreases_and_converges(cam):
    cam.retarget(30.0, (0.0, 0.0))
    err = abs(cam.s.current_zoom - 30.0)
    for _ in range(300):
        cam.step()
        new_err = abs(cam.s.current_zoom - 30.0)
        assert new_err < err
        err = new_err
    assert err < 1e-9


def test_no_overshoot(cam):
    cam.retarget(8.0, (-0.4, 0.4))
    for _ in range(100):
        t = cam.step()
        assert t.zoom >= 8.0
        assert t.rotation_x >= -0.4
        assert t.rotation_y <= 0.4


def test_retarget_clamps_zoom(cam):
    cam.retarget(100.0, (0.0, 0.0))
    assert cam.s.target_zoom == 30.0
    cam.retarget(-3.0, (0.0, 0.0))
    assert cam.s.target_zoom == 8.0


def test_update_from_signal(cam):
    sig = ControlSignal(target_zoom=20.0, target_rotation=(0.1, 0.2), attractors=empty_points())
    t = cam.update(sig)
    assert t.zoom == pytest.approx(15.5)
    assert t.rotation_x == pytest.approx(0.015)
    assert t.rotation_y == pytest.approx(0.03)


def test_reset(cam):
    cam.retarget(30.0, (0.3, 0.3))
    cam.step()
    cam.reset()
    assert cam.transform() == CameraTransform(zoom=15.0, rotation_x=0.0, rotation_y=0.0)
