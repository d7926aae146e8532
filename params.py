import numbers


class Params:
    """
    All tunable knobs live here so you don't hunt through code.

    Override any of them by keyword:
        Params(num_particles=4, noise_scale=0.0)

    Bad values raise immediately, before a sim is ever built.
    """

    BACKENDS = ("numpy", "taichi")

    def __init__(self, **overrides):
        # Particle count (fixed for the lifetime of a sim)
        self.num_particles = 50000

        # Dune layout
        self.field_radius = 3.5         # max disk radius
        self.initial_speed = 0.005      # per-axis spawn velocity half-range

        # Hand attraction
        self.attraction_radius = 10.0
        self.attraction_strength = 0.2  # numerator of 0.2 / (1 + d)
        self.max_attractors = 64        # taichi backend keeps only the first N per tick

        # Idle motion (no attractor in range)
        self.restore_strength = 0.01    # pull back toward rest position
        self.noise_scale = 0.02         # per-axis jitter half-range
        self.wave_amplitude = 0.002
        self.wave_frequency = 0.5

        # Physics
        self.damping = 0.98             # velocity multiplier per tick
        self.time_step = 0.02           # wave phase advance per tick

        # Camera
        self.initial_zoom = 15.0
        self.zoom_min = 8.0
        self.zoom_max = 30.0
        self.zoom_smoothing = 0.1
        self.rotation_smoothing = 0.15

        # Input gains
        self.wheel_gain = 0.01
        self.pointer_gain = 0.4

        # Nearest-attractor scan is done in chunks of this many particles
        self.chunk_size = 8192

        # "numpy" or "taichi"
        self.backend = "numpy"

        for key, value in overrides.items():
            if not hasattr(self, key):
                raise TypeError(f"Unknown option: {key}")
            setattr(self, key, value)

        self.validate()

    def validate(self):
        if isinstance(self.num_particles, bool) or not isinstance(self.num_particles, numbers.Integral):
            raise ValueError(f"num_particles must be an int, got {self.num_particles!r}")
        if self.num_particles <= 0:
            raise ValueError(f"num_particles must be positive, got {self.num_particles}")

        _require(self.field_radius > 0, "field_radius must be > 0")
        _require(self.initial_speed >= 0, "initial_speed must be >= 0")
        _require(self.attraction_radius >= 0, "attraction_radius must be >= 0")
        _require(self.attraction_strength >= 0, "attraction_strength must be >= 0")
        _require(int(self.max_attractors) > 0, "max_attractors must be > 0")
        _require(self.restore_strength >= 0, "restore_strength must be >= 0")
        _require(self.noise_scale >= 0, "noise_scale must be >= 0")
        _require(0.0 < self.damping <= 1.0, "damping must be in (0, 1]")
        _require(self.time_step > 0, "time_step must be > 0")

        _require(0.0 < self.zoom_min <= self.zoom_max, "zoom bounds must satisfy 0 < zoom_min <= zoom_max")
        _require(self.zoom_min <= self.initial_zoom <= self.zoom_max, "initial_zoom must lie within zoom bounds")
        _require(0.0 < self.zoom_smoothing <= 1.0, "zoom_smoothing must be in (0, 1]")
        _require(0.0 < self.rotation_smoothing <= 1.0, "rotation_smoothing must be in (0, 1]")

        _require(int(self.chunk_size) > 0, "chunk_size must be > 0")
        _require(self.backend in self.BACKENDS, f"backend must be one of {self.BACKENDS}")

    def __repr__(self):
        return f"Params(num_particles={self.num_particles}, backend={self.backend!r})"


def _require(ok, message):
    # NaN fails every comparison, so it lands here too
    if not ok:
        raise ValueError(message)
