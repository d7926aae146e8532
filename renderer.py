from __future__ import annotations
import math
import numpy as np
import cv2

# Swatches from the site's color picker
SAND_PALETTE = [
    "#0a0a0a", "#4a4a4a", "#8B4513", "#D2691E", "#DAA520",
    "#CD853F", "#DEB887", "#F4A460", "#D2B48C", "#BC8F8F",
    "#4169E1", "#1E90FF", "#00CED1", "#20B2AA", "#8A2BE2", "#9370DB",
]
DEFAULT_COLOR = SAND_PALETTE[0]


def parse_hex_color(value: str) -> tuple[int, int, int]:
    """'#RRGGBB' (or 'RRGGBB') -> BGR tuple for OpenCV."""
    s = str(value).strip().lstrip("#")
    if len(s) != 6:
        raise ValueError(f"expected #RRGGBB, got {value!r}")
    try:
        r, g, b = int(s[0:2], 16), int(s[2:4], 16), int(s[4:6], 16)
    except ValueError:
        raise ValueError(f"expected #RRGGBB, got {value!r}") from None
    return (b, g, r)


def group_rotation(rx: float, ry: float) -> np.ndarray:
    """Euler XYZ rotation of the particle group (Rx @ Ry)."""
    cx, sx = math.cos(rx), math.sin(rx)
    cy, sy = math.cos(ry), math.sin(ry)
    Rx = np.array([[1, 0, 0], [0, cx, -sx], [0, sx, cx]], dtype=np.float32)
    Ry = np.array([[cy, 0, sy], [0, 1, 0], [-sy, 0, cy]], dtype=np.float32)
    return Rx @ Ry


class SandRenderer:
    """Splats the particle buffer into an OpenCV image through a perspective camera on +z."""

    def __init__(self, width: int = 1280, height: int = 720, fov_deg: float = 45.0,
                 background=(240, 243, 245), opacity: float = 0.9, glow: bool = True):
        self.width = int(width)
        self.height = int(height)
        self.fov_deg = float(fov_deg)
        self.background = tuple(int(c) for c in background)
        self.opacity = float(opacity)
        self.glow = glow
        self.color_hex = DEFAULT_COLOR
        self.color = parse_hex_color(DEFAULT_COLOR)

    def set_color(self, value: str):
        self.color = parse_hex_color(value)
        self.color_hex = value

    def resize(self, width: int, height: int):
        self.width = max(1, int(width))
        self.height = max(1, int(height))

    def project(self, positions, transform):
        """Returns integer pixel coords (xs, ys) of the visible particles."""
        pts = np.asarray(positions, dtype=np.float32).reshape(-1, 3)
        R = group_rotation(transform.rotation_x, transform.rotation_y)
        world = pts @ R.T

        depth = transform.zoom - world[:, 2]
        f = (self.height * 0.5) / math.tan(math.radians(self.fov_deg) * 0.5)

        front = depth > 0.1
        with np.errstate(invalid="ignore"):
            xs = self.width * 0.5 + (world[front, 0] / depth[front]) * f
            ys = self.height * 0.5 - (world[front, 1] / depth[front]) * f

        keep = np.isfinite(xs) & np.isfinite(ys)
        keep &= (xs >= 0) & (xs < self.width) & (ys >= 0) & (ys < self.height)
        return xs[keep].astype(np.int32), ys[keep].astype(np.int32)

    def render(self, positions, transform):
        img = np.empty((self.height, self.width, 3), dtype=np.uint8)
        img[:] = self.background

        xs, ys = self.project(positions, transform)
        if len(xs) == 0:
            return img

        # Per-pixel density -> alpha, so dense dunes read darker
        counts = np.bincount(ys * self.width + xs, minlength=self.width * self.height)
        density = counts.reshape(self.height, self.width).astype(np.float32)
        alpha = np.clip(density * 0.35, 0.0, 1.0) * self.opacity

        if self.glow:
            alpha = cv2.GaussianBlur(alpha, (0, 0), 0.6)

        bg = img.astype(np.float32)
        fg = np.array(self.color, dtype=np.float32)
        out = bg * (1.0 - alpha[..., None]) + fg * alpha[..., None]
        return np.clip(out, 0, 255).astype(np.uint8)

    def draw_hud(self, img, fps: float, tracking: str, attractors: int = 0):
        text = f"FPS: {fps:5.1f}  |  {tracking}  |  hand pts: {attractors}  |  {self.color_hex}"
        org = (12, img.shape[0] - 12)
        cv2.putText(img, text, org, cv2.FONT_HERSHEY_SIMPLEX, 0.55, (255, 255, 255), 3, cv2.LINE_AA)
        cv2.putText(img, text, org, cv2.FONT_HERSHEY_SIMPLEX, 0.55, (60, 60, 60), 1, cv2.LINE_AA)
        return img
