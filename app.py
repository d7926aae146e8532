# app.py - interactive sand field
import time
import cv2

from attractors import NoAttractors, StreamAttractors
from camera import CameraSmoother
from controls import InputAggregator, pointer_from_pixels
from params import Params
from renderer import SAND_PALETTE, SandRenderer
from sim import make_sim

WINDOW_NAME = "Sand Field"
WINDOW_W = 1280
WINDOW_H = 720

ENABLE_HANDS = True
CAMERA_INDEX = 0

ENABLE_SERVER = False
SERVER_HOST = "0.0.0.0"
SERVER_PORT = 8765

KEY_ZOOM_STEP = 100.0   # same as one browser wheel notch


def _wheel_delta(flags):
    # OpenCV reports +120 per notch away from the user; browsers report that as negative deltaY
    return -float(cv2.getMouseWheelDelta(flags))


class MouseInput:
    """cv2 mouse callback -> InputAggregator."""

    def __init__(self, controls: InputAggregator, renderer: SandRenderer):
        self.controls = controls
        self.renderer = renderer

    def __call__(self, event, x, y, flags, param=None):
        if event == cv2.EVENT_MOUSEMOVE:
            nx, ny = pointer_from_pixels(x, y, self.renderer.width, self.renderer.height)
            self.controls.on_pointer(nx, ny)
        elif event == cv2.EVENT_MOUSEWHEEL:
            self.controls.on_wheel(_wheel_delta(flags))


def _start_hands():
    if not ENABLE_HANDS:
        return None, NoAttractors()

    from hands import HandLandmarkStream

    tracker = HandLandmarkStream(StreamAttractors(), camera_index=CAMERA_INDEX)
    return tracker, tracker.start()


def _start_server(controls, stream):
    if not ENABLE_SERVER:
        return None
    from landmark_server import create_app, serve_in_thread

    if not isinstance(stream, StreamAttractors):
        stream = StreamAttractors()
        controls.set_source(stream)
    return serve_in_thread(create_app(controls, stream), SERVER_HOST, SERVER_PORT)


def _tracking_label(source):
    if isinstance(source, StreamAttractors):
        return "hands" if source.available else "mouse (tracking off)"
    return "mouse"


def handle_key(key, sim, cam, controls, renderer, color_idx):
    """Returns the (possibly new) palette index."""
    if key in (ord('c'), ord('C')):
        color_idx = (color_idx + 1) % len(SAND_PALETTE)
        renderer.set_color(SAND_PALETTE[color_idx])
    elif key in (ord('r'), ord('R')):
        sim.reset()
        cam.reset()
        controls.reset()
    elif key in (ord('+'), ord('=')):
        controls.on_wheel(-KEY_ZOOM_STEP)
    elif key in (ord('-'), ord('_')):
        controls.on_wheel(KEY_ZOOM_STEP)
    return color_idx


def main(params=None):
    params = params or Params()

    sim = make_sim(params)
    cam = CameraSmoother(params)
    renderer = SandRenderer(WINDOW_W, WINDOW_H)

    tracker, source = _start_hands()
    controls = InputAggregator(params, source=source)
    _start_server(controls, source)

    cv2.namedWindow(WINDOW_NAME, cv2.WINDOW_NORMAL)
    cv2.resizeWindow(WINDOW_NAME, WINDOW_W, WINDOW_H)
    cv2.setMouseCallback(WINDOW_NAME, MouseInput(controls, renderer))

    print("\n" + "=" * 60)
    print(f"🏖️  SAND FIELD  ({params.num_particles} grains, {type(sim).__name__})")
    print("=" * 60)
    print("   Move mouse - tilt the dune")
    print("   Mouse wheel or +/- - zoom")
    print("   Hand in front of camera - pull the sand")
    print("   C - next color | R - reset | ESC - exit")
    print("=" * 60 + "\n")

    color_idx = 0
    prev = time.time()
    fps_smooth = 0.0

    while True:
        now = time.time()
        dt = max(1e-6, now - prev)
        prev = now
        fps = 1.0 / dt
        fps_smooth = fps if fps_smooth == 0 else 0.9 * fps_smooth + 0.1 * fps

        signal = controls.snapshot()
        transform = cam.update(signal)
        sim.step(signal.attractors)

        frame = renderer.render(sim.positions, transform)
        renderer.draw_hud(frame, fps_smooth, _tracking_label(controls.source), len(signal.attractors))
        cv2.imshow(WINDOW_NAME, frame)

        key = cv2.waitKey(1) & 0xFF
        if key == 27:
            break
        if key != 255:
            color_idx = handle_key(key, sim, cam, controls, renderer, color_idx)

        if cv2.getWindowProperty(WINDOW_NAME, cv2.WND_PROP_VISIBLE) < 1:
            break

    if tracker is not None:
        tracker.stop()
    cv2.destroyAllWindows()

    print("\n✅ Sand field shutdown complete")


if __name__ == "__main__":
    main()
