# pyright: reportInvalidTypeForm=false
import numpy as np
import taichi as ti

from attractors import finite_points
from field import ParticleBuffers, generate_sand_particles

_TAICHI_READY = False


def ensure_ti(seed=None):
    global _TAICHI_READY
    if _TAICHI_READY:
        return
    kwargs = {} if seed is None else {"random_seed": int(seed)}
    try:
        ti.init(arch=ti.gpu, **kwargs)
        print("✅ Taichi GPU (sand)")
    except Exception:
        ti.init(arch=ti.cpu, **kwargs)
        print("⚠️ Taichi CPU fallback (sand)")
    _TAICHI_READY = True


@ti.data_oriented
class SandSimTaichi:
    """
    Same update as sim.SandSim, one Taichi thread per particle.

    Keeps the numpy sim's API:
      sim = SandSimTaichi(params, seed=0)
      sim.step(attractors)          # (A, 3) array-like, may be empty
      sim.positions                 # Nx3 numpy copy for the renderer
    """

    def __init__(self, params, seed=None, buffers: ParticleBuffers = None):
        ensure_ti(seed)
        self.params = params
        self.rng = np.random.default_rng(seed)

        n = int(params.num_particles)
        self.n = n
        self.max_attractors = int(params.max_attractors)

        # ---------------- Constants baked into the kernel ----------------
        self.radius = float(params.attraction_radius)
        self.strength = float(params.attraction_strength)
        self.restore = float(params.restore_strength)
        self.noise = float(params.noise_scale)
        self.wave_amp = float(params.wave_amplitude)
        self.wave_freq = float(params.wave_frequency)
        self.damping = float(params.damping)

        # ---------------- Taichi fields ----------------
        self.pos = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.vel = ti.Vector.field(3, dtype=ti.f32, shape=n)
        self.rest = ti.Vector.field(3, dtype=ti.f32, shape=n)

        self.attr = ti.Vector.field(3, dtype=ti.f32, shape=self.max_attractors)
        self.attr_count = ti.field(dtype=ti.i32, shape=())
        self.pulled = ti.field(dtype=ti.i32, shape=())

        if buffers is None:
            buffers = generate_sand_particles(
                n, rng=self.rng, max_radius=params.field_radius, initial_speed=params.initial_speed
            )
        elif len(buffers) != n:
            raise ValueError(f"buffers hold {len(buffers)} particles, params say {n}")
        self.buffers = buffers

        self._attr_host = np.zeros((self.max_attractors, 3), dtype=np.float32)
        self._warned_truncate = False
        self.time = 0.0
        self.ticks = 0
        self.last_pulled = 0
        self._upload()

    def _upload(self):
        self.pos.from_numpy(np.ascontiguousarray(self.buffers.position))
        self.vel.from_numpy(np.ascontiguousarray(self.buffers.velocity))
        self.rest.from_numpy(np.ascontiguousarray(self.buffers.rest_position))
        self.attr_count[None] = 0

    # ========================= Public API =========================

    @property
    def positions(self) -> np.ndarray:
        out = self.pos.to_numpy()
        out.setflags(write=False)
        return out

    @property
    def velocities(self) -> np.ndarray:
        out = self.vel.to_numpy()
        out.setflags(write=False)
        return out

    def reset(self):
        self.buffers.reset(self.rng, self.params.initial_speed)
        self.time = 0.0
        self.ticks = 0
        self.last_pulled = 0
        self._upload()

    def set_attractors(self, attractors):
        pts = finite_points(attractors)
        if len(pts) > self.max_attractors:
            if not self._warned_truncate:
                print(f"⚠️ {len(pts)} attractors, Taichi sim keeps the first {self.max_attractors} (raise max_attractors)")
                self._warned_truncate = True
            pts = pts[: self.max_attractors]
        k = len(pts)
        self._attr_host[:] = 0.0
        if k:
            self._attr_host[:k] = pts
        self.attr.from_numpy(self._attr_host)
        self.attr_count[None] = k

    def step(self, attractors=None):
        self.set_attractors(attractors)
        self.time += self.params.time_step
        self.ticks += 1
        self.pulled[None] = 0
        self._step_kernel(self.time)
        self.last_pulled = int(self.pulled[None])
        return self.last_pulled

    def sync_to_host(self):
        """Copy device state back into self.buffers."""
        self.buffers.position[:] = self.pos.to_numpy()
        self.buffers.velocity[:] = self.vel.to_numpy()

    # ========================= Kernel =========================

    @ti.func
    def _finite3(self, v):
        ok = 1
        for k in ti.static(range(3)):
            if v[k] != v[k] or ti.abs(v[k]) > 1e30:
                ok = 0
        return ok

    @ti.kernel
    def _step_kernel(self, t: ti.f32):
        for i in self.pos:
            p = self.pos[i]
            v = self.vel[i]

            # Nearest attractor
            best = 1e30
            target = p
            found = 0
            for k in range(self.attr_count[None]):
                a = self.attr[k]
                d = (a - p).norm()
                if d < best:
                    best = d
                    target = a
                    found = 1

            if found == 1 and best < self.radius:
                v += (target - p) * (self.strength / (1.0 + best))
                ti.atomic_add(self.pulled[None], 1)
            else:
                v += (self.rest[i] - p) * self.restore
                jitter = ti.Vector([ti.random(ti.f32) - 0.5, ti.random(ti.f32) - 0.5, ti.random(ti.f32) - 0.5])
                v += jitter * (2.0 * self.noise)
                v[1] += ti.sin(t + p[0] * self.wave_freq) * self.wave_amp

            v *= self.damping

            if self._finite3(v) == 0:
                v = ti.Vector([0.0, 0.0, 0.0])

            self.vel[i] = v
            self.pos[i] = p + v
