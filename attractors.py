"""
Attractor sources.

The sim only ever asks a source for its latest points as an (A, 3) float32
array. Two flavors:
  NoAttractors      - mouse-only mode, always empty
  StreamAttractors  - a latest-value slot that a tracker thread or the
                      remote server overwrites whenever it has a new sample
"""

from __future__ import annotations

import math
import threading
import numpy as np

_EMPTY = np.zeros((0, 3), dtype=np.float32)
_EMPTY.setflags(write=False)


def empty_points() -> np.ndarray:
    return _EMPTY


def parse_landmarks(raw) -> np.ndarray:
    """
    Accepts:
      [[x, y, z], ...]            sequences
      [{"x":..,"y":..,"z":..}]    dicts (MediaPipe style)
      objects with .x .y .z       (MediaPipe landmark protos)
      an (A, 3) array
    Returns an (A, 3) float32 array. Raises ValueError on bad structure.
    Non-finite values are kept here; finite_points() drops them.
    """
    if raw is None:
        return _EMPTY
    if isinstance(raw, np.ndarray):
        arr = raw
    else:
        if isinstance(raw, (str, bytes, dict)) or not hasattr(raw, "__iter__"):
            raise ValueError("landmarks must be a list of x,y,z points")
        rows = []
        for item in raw:
            if isinstance(item, dict):
                try:
                    rows.append((item["x"], item["y"], item["z"]))
                except KeyError as e:
                    raise ValueError(f"landmark missing coordinate {e}") from None
            elif hasattr(item, "x") and hasattr(item, "y") and hasattr(item, "z"):
                rows.append((item.x, item.y, item.z))
            else:
                rows.append(item)
        if not rows:
            return _EMPTY
        try:
            arr = np.asarray(rows, dtype=np.float32)
        except (TypeError, ValueError) as e:
            raise ValueError(f"landmarks must be numeric x,y,z triples: {e}") from None

    if arr.size == 0:
        return _EMPTY
    if arr.ndim != 2 or arr.shape[1] != 3:
        raise ValueError(f"landmarks must have shape (A, 3), got {arr.shape}")
    if not np.issubdtype(arr.dtype, np.number):
        raise ValueError("landmarks must be numeric")
    return arr.astype(np.float32, copy=False)


def finite_points(points) -> np.ndarray:
    """Drop attractors with NaN/inf coordinates. Never raises."""
    if points is None:
        return _EMPTY
    try:
        arr = np.asarray(points, dtype=np.float32)
    except (TypeError, ValueError):
        return _EMPTY
    if arr.size == 0 or arr.ndim != 2 or arr.shape[1] != 3:
        return _EMPTY
    ok = np.isfinite(arr).all(axis=1)
    if ok.all():
        return arr
    return arr[ok]


class AttractorSource:
    name = "base"

    def latest(self) -> np.ndarray:
        raise NotImplementedError

    @property
    def available(self) -> bool:
        return False


class NoAttractors(AttractorSource):
    name = "mouse"

    def latest(self) -> np.ndarray:
        return _EMPTY


class StreamAttractors(AttractorSource):
    """
    Thread-safe latest-value slot.

    publish() swaps the whole set; it never appends. Readers get whatever
    was last published (possibly stale, possibly empty) and never block on
    the producer for longer than the swap itself.
    """

    name = "hands"

    def __init__(self):
        self._lock = threading.Lock()
        self._points = _EMPTY
        self._seq = 0
        self._error = None

    def publish(self, points) -> int:
        pts = finite_points(parse_landmarks(points)).copy()
        pts.setflags(write=False)
        with self._lock:
            self._points = pts
            self._seq += 1
            self._error = None
        return len(pts)

    def clear(self) -> None:
        with self._lock:
            self._points = _EMPTY
            self._seq += 1

    def fail(self, error) -> None:
        """Producer gave up; empty until someone publishes again."""
        with self._lock:
            self._points = _EMPTY
            self._error = error

    def latest(self) -> np.ndarray:
        with self._lock:
            return self._points

    @property
    def sequence(self) -> int:
        return self._seq

    @property
    def error(self):
        return self._error

    @property
    def available(self) -> bool:
        return self._error is None


def nearest_attractor(point, attractors):
    """
    Scalar helper: (index, distance) of the closest finite attractor, or
    (None, inf) when there is none.
    """
    best_i, best_d = None, math.inf
    px, py, pz = (float(v) for v in point)
    for i, (ax, ay, az) in enumerate(np.asarray(attractors, dtype=np.float64).reshape(-1, 3)):
        d = math.sqrt((px - ax) ** 2 + (py - ay) ** 2 + (pz - az) ** 2)
        if math.isfinite(d) and d < best_d:
            best_i, best_d = i, d
    return best_i, best_d
