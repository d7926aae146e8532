from __future__ import annotations

from dataclasses import dataclass


def lerp(a: float, b: float, t: float) -> float:
    return a + (b - a) * t


@dataclass
class CameraState:
    current_zoom: float = 15.0
    target_zoom: float = 15.0
    rot_x: float = 0.0
    rot_y: float = 0.0
    target_rot_x: float = 0.0
    target_rot_y: float = 0.0


@dataclass(frozen=True)
class CameraTransform:
    zoom: float          # camera distance along +z
    rotation_x: float    # particle group rotation
    rotation_y: float


class CameraSmoother:
    """
    Eases zoom and group rotation toward their targets.

    Plain per-tick lerp: no overshoot, never quite lands on the target.
    """

    def __init__(self, params):
        self.params = params
        z = float(params.initial_zoom)
        self.s = CameraState(current_zoom=z, target_zoom=z)

    def reset(self) -> None:
        z = float(self.params.initial_zoom)
        self.s = CameraState(current_zoom=z, target_zoom=z)

    def retarget(self, zoom: float, rotation: tuple[float, float]) -> None:
        p = self.params
        self.s.target_zoom = min(p.zoom_max, max(p.zoom_min, float(zoom)))
        self.s.target_rot_x = float(rotation[0])
        self.s.target_rot_y = float(rotation[1])

    def step(self) -> CameraTransform:
        p = self.params
        s = self.s
        s.current_zoom = lerp(s.current_zoom, s.target_zoom, p.zoom_smoothing)
        s.rot_x = lerp(s.rot_x, s.target_rot_x, p.rotation_smoothing)
        s.rot_y = lerp(s.rot_y, s.target_rot_y, p.rotation_smoothing)
        return self.transform()

    def update(self, signal) -> CameraTransform:
        """Retarget from a ControlSignal, then ease one tick."""
        self.retarget(signal.target_zoom, signal.target_rotation)
        return self.step()

    def transform(self) -> CameraTransform:
        return CameraTransform(zoom=self.s.current_zoom, rotation_x=self.s.rot_x, rotation_y=self.s.rot_y)
