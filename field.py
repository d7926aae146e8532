"""
Sand field layout.

State (one row per particle, float32):
- position:      Nx3, mutated by the sim every tick
- velocity:      Nx3, mutated by the sim every tick
- rest_position: Nx3, frozen after generation

Particles sit on a disk of radius R. Height is a random fraction of
exp(-r/2), so the middle piles up and the rim stays flat, then the whole
field is shifted down by 1.
"""

from __future__ import annotations

from dataclasses import dataclass
import numpy as np


@dataclass
class ParticleBuffers:
    position: np.ndarray
    velocity: np.ndarray
    rest_position: np.ndarray

    def __post_init__(self):
        n = self.position.shape[0]
        for name in ("position", "velocity", "rest_position"):
            arr = getattr(self, name)
            if arr.shape != (n, 3):
                raise ValueError(f"{name} must have shape ({n}, 3), got {arr.shape}")
        self.rest_position.setflags(write=False)

    def __len__(self) -> int:
        return self.position.shape[0]

    def flat_positions(self) -> np.ndarray:
        """Read-only interleaved x,y,z view (length 3N) for renderers."""
        view = self.position.reshape(-1).view()
        view.setflags(write=False)
        return view

    def reset(self, rng=None, initial_speed: float = 0.005) -> None:
        """Put every particle back on its rest position with a fresh spawn velocity."""
        rng = _as_rng(rng)
        self.position[:] = self.rest_position
        self.velocity[:] = _spawn_velocity(rng, len(self), initial_speed)


def _as_rng(rng):
    if isinstance(rng, np.random.Generator):
        return rng
    return np.random.default_rng(rng)


def _spawn_velocity(rng, n, initial_speed):
    return ((rng.random((n, 3)) - 0.5) * (2.0 * initial_speed)).astype(np.float32)


def generate_sand_particles(count: int, rng=None, max_radius: float = 3.5,
                            initial_speed: float = 0.005) -> ParticleBuffers:
    """
    Build the initial particle set.

    rng may be a numpy Generator, an int seed, or None (fresh entropy).
    """
    count = int(count)
    if count <= 0:
        raise ValueError(f"count must be positive, got {count}")
    rng = _as_rng(rng)

    theta = rng.random(count) * (2.0 * np.pi)
    radius = rng.random(count) * max_radius
    height = rng.random(count) * np.exp(-radius * 0.5)

    pos = np.empty((count, 3), dtype=np.float32)
    pos[:, 0] = np.cos(theta) * radius
    pos[:, 1] = height - 1.0
    pos[:, 2] = np.sin(theta) * radius

    vel = _spawn_velocity(rng, count, initial_speed)

    return ParticleBuffers(position=pos, velocity=vel, rest_position=pos.copy())
