"""
Sand particle simulation (numpy backend).

State:
- buffers.position:      Nx3 scene units
- buffers.velocity:      Nx3 scene units / tick
- buffers.rest_position: Nx3, where each grain settles when left alone

Per tick, for every particle:
- nearest attractor within attraction_radius  -> pull toward it, 0.2 / (1 + d)
- otherwise -> spring back to rest + jitter + a slow vertical wave
- damping, then integrate

Time is tick-based (+time_step per step), not wall clock.
"""

from __future__ import annotations

import numpy as np

from attractors import finite_points
from field import ParticleBuffers, generate_sand_particles


class SandSim:
    def __init__(self, params, seed=None, buffers: ParticleBuffers | None = None):
        self.params = params
        self.rng = np.random.default_rng(seed)

        if buffers is None:
            buffers = generate_sand_particles(
                params.num_particles,
                rng=self.rng,
                max_radius=params.field_radius,
                initial_speed=params.initial_speed,
            )
        elif len(buffers) != params.num_particles:
            raise ValueError(f"buffers hold {len(buffers)} particles, params say {params.num_particles}")

        self.buffers = buffers
        self.time = 0.0
        self.ticks = 0
        self.last_pulled = 0

    @property
    def positions(self) -> np.ndarray:
        """Read-only Nx3 view for renderers."""
        view = self.buffers.position.view()
        view.setflags(write=False)
        return view

    @property
    def velocities(self) -> np.ndarray:
        view = self.buffers.velocity.view()
        view.setflags(write=False)
        return view

    def reset(self):
        self.buffers.reset(self.rng, self.params.initial_speed)
        self.time = 0.0
        self.ticks = 0
        self.last_pulled = 0

    def step(self, attractors=None):
        p = self.params
        pos = self.buffers.position
        vel = self.buffers.velocity
        rest = self.buffers.rest_position

        self.time += p.time_step
        self.ticks += 1

        pts = finite_points(attractors)

        # --- Nearest attractor (linear scan, A is tiny) ---
        if len(pts):
            target, dist = self._nearest(pts)
            pulled = dist < p.attraction_radius
        else:
            target = dist = None
            pulled = np.zeros(len(pos), dtype=bool)

        # --- Attraction ---
        if pulled.any():
            strength = (p.attraction_strength / (1.0 + dist[pulled])).astype(np.float32)
            vel[pulled] += (target[pulled] - pos[pulled]) * strength[:, None]

        # --- Idle: restore + jitter + wave ---
        free = ~pulled
        n_free = int(free.sum())
        if n_free:
            if n_free == len(pos):
                free = slice(None)
            dv = (rest[free] - pos[free]) * p.restore_strength
            if p.noise_scale > 0:
                dv += self.rng.uniform(-p.noise_scale, p.noise_scale, size=(n_free, 3)).astype(np.float32)
            dv[:, 1] += np.sin(self.time + pos[free, 0] * p.wave_frequency) * p.wave_amplitude
            vel[free] += dv

        # --- Damping ---
        vel *= p.damping

        # --- Never let a bad value reach the position buffer ---
        bad = ~np.isfinite(vel).all(axis=1)
        if bad.any():
            vel[bad] = 0.0

        # --- Integrate ---
        pos += vel

        self.last_pulled = int(pulled.sum())
        return self.last_pulled

    def _nearest(self, pts):
        """
        Returns (target, dist): the closest attractor per particle (Nx3) and
        its distance (N,). Non-finite distances become inf so they never win.
        """
        pos = self.buffers.position
        n = len(pos)
        chunk = int(self.params.chunk_size)

        target = np.empty_like(pos)
        dist = np.empty(n, dtype=np.float32)

        for start in range(0, n, chunk):
            stop = min(n, start + chunk)
            diff = pos[start:stop, None, :] - pts[None, :, :]
            d2 = np.einsum("nak,nak->na", diff, diff)
            d2[~np.isfinite(d2)] = np.inf

            idx = np.argmin(d2, axis=1)
            rows = np.arange(stop - start)
            dist[start:stop] = np.sqrt(d2[rows, idx])
            target[start:stop] = pts[idx]

        return target, dist


def make_sim(params, seed=None):
    """Build the backend named by params.backend; fall back to numpy if Taichi is missing."""
    if params.backend == "taichi":
        try:
            from sim_taichi import SandSimTaichi
        except ImportError as e:
            print(f"⚠️ Taichi unavailable ({e}) - using numpy sim")
        else:
            return SandSimTaichi(params, seed=seed)
    return SandSim(params, seed=seed)
