import time
from types import SimpleNamespace

import numpy as np

from attractors import StreamAttractors
from hands import HandLandmarkStream, landmarks_to_scene


def test_center_maps_to_origin():
    pts = landmarks_to_scene([SimpleNamespace(x=0.5, y=0.5, z=0.0)])
    np.testing.assert_allclose(pts, [[0.0, 0.0, 0.0]])


def test_corners_are_mirrored_and_flipped():
    pts = landmarks_to_scene([
        {"x": 0.0, "y": 0.0, "z": 0.1},
        {"x": 1.0, "y": 1.0, "z": -0.1},
    ])
    np.testing.assert_allclose(pts, [[8.0, 8.0, 0.8], [-8.0, -8.0, -0.8]], rtol=1e-6)


def test_tuples_and_empty():
    assert landmarks_to_scene([]).shape == (0, 3)
    np.testing.assert_allclose(landmarks_to_scene([(0.25, 0.75)]), [[4.0, -4.0, 0.0]])


class _FakeCapture:
    def __init__(self, opened=True):
        self.opened = opened
        self.released = False

    def isOpened(self):
        return self.opened

    def set(self, prop, value):
        return True

    def read(self):
        return True, np.zeros((4, 4, 3), dtype=np.uint8)

    def release(self):
        self.released = True


class _FakeTracker:
    def __init__(self):
        self.closed = False

    def process(self, frame):
        return [[0.0, 1.0, 2.0], [3.0, 4.0, 5.0]]

    def close(self):
        self.closed = True


def _wait(cond, timeout=2.0):
    end = time.time() + timeout
    while time.time() < end:
        if cond():
            return True
        time.sleep(0.005)
    return False


def test_stream_publishes_tracker_output():
    cap = _FakeCapture()
    tracker = _FakeTracker()
    hs = HandLandmarkStream(StreamAttractors(), tracker_factory=lambda: tracker, capture_factory=lambda i: cap)
    stream = hs.start()
    try:
        assert _wait(lambda: stream.sequence > 0)
        np.testing.assert_array_equal(stream.latest(), [[0, 1, 2], [3, 4, 5]])
        assert stream.available
    finally:
        hs.stop(timeout=2.0)
    assert not hs.running
    assert cap.released
    assert tracker.closed


def test_tracker_init_failure_degrades_to_mouse(capsys):
    def boom():
        raise ImportError("No module named 'mediapipe'")

    hs = HandLandmarkStream(tracker_factory=boom, capture_factory=lambda i: _FakeCapture())
    hs.start()
    hs.stop(timeout=2.0)

    assert not hs.stream.available
    assert hs.stream.latest().shape == (0, 3)
    assert "falling back to mouse control" in capsys.readouterr().out


def test_missing_camera_degrades_to_mouse(capsys):
    cap = _FakeCapture(opened=False)
    hs = HandLandmarkStream(tracker_factory=_FakeTracker, capture_factory=lambda i: cap)
    hs.start()
    hs.stop(timeout=2.0)

    assert not hs.stream.available
    assert cap.released
    assert "camera 0 not available" in capsys.readouterr().out


def test_detector_crash_mid_stream(capsys):
    class _Crashy(_FakeTracker):
        def process(self, frame):
            raise RuntimeError("graph error")

    hs = HandLandmarkStream(tracker_factory=_Crashy, capture_factory=lambda i: _FakeCapture())
    hs.start()
    assert _wait(lambda: not hs.running)
    assert isinstance(hs.stream.error, RuntimeError)
    assert "graph error" in capsys.readouterr().out

