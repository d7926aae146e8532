# controls.py
from __future__ import annotations

from dataclasses import dataclass
import math
import threading

import numpy as np

from attractors import AttractorSource, NoAttractors, finite_points


def _clamp(x, a, b):
    return a if x < a else (b if x > b else x)


@dataclass(frozen=True)
class ControlSignal:
    target_zoom: float
    target_rotation: tuple[float, float]   # (x, y) radians
    attractors: np.ndarray                 # (A, 3) float32, finite only


def pointer_from_pixels(x: float, y: float, w: int, h: int) -> tuple[float, float]:
    """Window pixels -> [-1, 1] with y up."""
    w = max(1, int(w))
    h = max(1, int(h))
    nx = (float(x) / w) * 2.0 - 1.0
    ny = -((float(y) / h) * 2.0 - 1.0)
    return _clamp(nx, -1.0, 1.0), _clamp(ny, -1.0, 1.0)


class InputAggregator:
    """
    Folds wheel, pointer and landmark input into one per-tick ControlSignal.

    Event handlers may run on any thread. They only overwrite target values
    (last write wins); the render loop calls snapshot() once per tick.
    """

    def __init__(self, params, source: AttractorSource | None = None):
        self.params = params
        self._lock = threading.Lock()
        self._target_zoom = float(params.initial_zoom)
        self._target_rot = (0.0, 0.0)
        self._source = source if source is not None else NoAttractors()

    # ---------- event sources ----------

    def on_wheel(self, delta_y: float) -> float:
        p = self.params
        d = float(delta_y)
        if not math.isfinite(d):
            return self._target_zoom
        with self._lock:
            self._target_zoom = _clamp(self._target_zoom + d * p.wheel_gain, p.zoom_min, p.zoom_max)
            return self._target_zoom

    def on_pointer(self, nx: float, ny: float) -> tuple[float, float]:
        g = self.params.pointer_gain
        nx, ny = float(nx), float(ny)
        if not (math.isfinite(nx) and math.isfinite(ny)):
            return self._target_rot
        nx = _clamp(nx, -1.0, 1.0)
        ny = _clamp(ny, -1.0, 1.0)
        rot = (ny * g, nx * g)
        with self._lock:
            self._target_rot = rot
        return rot

    def set_source(self, source: AttractorSource | None) -> None:
        with self._lock:
            self._source = source if source is not None else NoAttractors()

    def reset(self) -> None:
        with self._lock:
            self._target_zoom = float(self.params.initial_zoom)
            self._target_rot = (0.0, 0.0)

    # ---------- per tick ----------

    @property
    def source(self) -> AttractorSource:
        return self._source

    @property
    def target_zoom(self) -> float:
        return self._target_zoom

    @property
    def target_rotation(self) -> tuple[float, float]:
        return self._target_rot

    def snapshot(self) -> ControlSignal:
        with self._lock:
            zoom = self._target_zoom
            rot = self._target_rot
            source = self._source
        try:
            pts = finite_points(source.latest())
        except Exception as e:
            # A broken source must not stall the frame
            print(f"⚠️  Attractor source '{source.name}' failed: {e} - mouse only")
            self.set_source(None)
            pts = finite_points(None)
        return ControlSignal(target_zoom=zoom, target_rotation=rot, attractors=pts)
