import threading
import time

import cv2
import numpy as np

from attractors import StreamAttractors

# MediaPipe normalized coords (0..1, y down) -> scene units
SCENE_EXTENT = 8.0


def landmarks_to_scene(landmarks, extent=SCENE_EXTENT):
    """
    Map MediaPipe normalized landmarks to scene space.

    Mirrors x (selfie view) and flips y so up is up:
      x = -(lx*2 - 1) * extent
      y = -(ly*2 - 1) * extent
      z =   lz * extent
    """
    pts = []
    for lm in landmarks:
        if isinstance(lm, dict):
            lx, ly, lz = lm["x"], lm["y"], lm.get("z", 0.0)
        elif hasattr(lm, "x"):
            lx, ly, lz = lm.x, lm.y, getattr(lm, "z", 0.0)
        else:
            lx, ly, lz = lm[0], lm[1], (lm[2] if len(lm) > 2 else 0.0)
        pts.append((-(float(lx) * 2.0 - 1.0) * extent,
                    -(float(ly) * 2.0 - 1.0) * extent,
                    float(lz) * extent))
    if not pts:
        return np.zeros((0, 3), dtype=np.float32)
    return np.asarray(pts, dtype=np.float32)


class Hands:
    """
    MediaPipe hands wrapper.

    process(frame_bgr) returns a list of 21 scene-space points for the first
    hand, or [] when no hand is in frame.
    """

    def __init__(self, max_hands=1, det_conf=0.5, track_conf=0.5):
        import mediapipe as mp

        self.mp_hands = mp.solutions.hands
        self.hands = self.mp_hands.Hands(
            static_image_mode=False,
            max_num_hands=max_hands,
            model_complexity=1,
            min_detection_confidence=float(det_conf),
            min_tracking_confidence=float(track_conf),
        )

    def process(self, frame_bgr):
        frame_rgb = cv2.cvtColor(frame_bgr, cv2.COLOR_BGR2RGB)
        res = self.hands.process(frame_rgb)

        if not res.multi_hand_landmarks:
            return []

        return landmarks_to_scene(res.multi_hand_landmarks[0].landmark)

    def close(self):
        self.hands.close()


class HandLandmarkStream:
    """
    Background camera + MediaPipe loop feeding a StreamAttractors slot.

    Anything that goes wrong (no mediapipe, no camera, detector crash) is
    printed and leaves the slot empty, so the scene keeps running mouse-only.
    """

    def __init__(self, stream: StreamAttractors = None, camera_index=0, width=640, height=480,
                 tracker_factory=None, capture_factory=None):
        self.stream = stream if stream is not None else StreamAttractors()
        self.camera_index = int(camera_index)
        self.width = int(width)
        self.height = int(height)
        self._tracker_factory = tracker_factory or Hands
        self._capture_factory = capture_factory or cv2.VideoCapture

        self._stop = threading.Event()
        self._thread = None
        self.frames = 0

    @property
    def running(self):
        return self._thread is not None and self._thread.is_alive()

    def start(self):
        if self.running:
            return self.stream
        self._stop.clear()
        self._thread = threading.Thread(target=self._worker, daemon=True)
        self._thread.start()
        return self.stream

    def stop(self, timeout=1.0):
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)

    # -------- internals --------

    def _open_camera(self):
        cap = self._capture_factory(self.camera_index)
        if not cap.isOpened():
            cap.release()
            raise RuntimeError(f"camera {self.camera_index} not available")
        cap.set(cv2.CAP_PROP_FRAME_WIDTH, self.width)
        cap.set(cv2.CAP_PROP_FRAME_HEIGHT, self.height)
        return cap

    def _worker(self):
        try:
            tracker = self._tracker_factory()
        except Exception as e:
            print(f"⚠️  Hand tracking init failed: {e} - falling back to mouse control")
            self.stream.fail(e)
            return

        cap = None
        try:
            cap = self._open_camera()
            print(f"✅ Hand tracking on camera {self.camera_index}")
            while not self._stop.is_set():
                ok, frame = cap.read()
                if not ok:
                    time.sleep(0.01)
                    continue
                self.stream.publish(tracker.process(frame))
                self.frames += 1
        except Exception as e:
            print(f"⚠️  Hand tracking stopped: {e} - falling back to mouse control")
            self.stream.fail(e)
        finally:
            if cap is not None:
                cap.release()
            close = getattr(tracker, "close", None)
            if callable(close):
                close()
