# particle_system.py

import logging

import numba
import numpy as np

import constants
from domain import DomainBounds
from particle import Particle
from vector_field import FieldParameters, evaluate, evaluate_many

logger = logging.getLogger(constants.LOGGER_NAME)

# --- JIT-Compiled Integration ---
# Kept outside the ParticleSystem class and operating only on NumPy arrays
# and scalars, as required by Numba's nopython mode. Each particle depends
# only on its own previous state, so the loop order does not matter.

@numba.jit(nopython=True)
def _advance_particles_jit(positions, previous_positions, ages, speeds, depth, dt, speed_scale, substeps, normalize):
    """
    Explicit Euler integration of every particle through the field.
    Writes the new position, the pre-step position, the speed |f(z)| at the
    new position and the advanced age in place. Non-finite results are left
    as-is for the caller to respawn.
    """
    h = dt * speed_scale / substeps
    for k in range(positions.shape[0]):
        z = positions[k]
        previous_positions[k] = z
        for _ in range(substeps):
            velocity = evaluate(z, depth)
            if normalize:
                speed = abs(velocity)
                if speed > 0.0:
                    velocity = velocity / speed
            z = z + velocity * h
        positions[k] = z
        speeds[k] = abs(evaluate(z, depth))
        ages[k] += dt


def _sigmoid(x):
    """Sigmoid function, mapped to [-1, 1]."""
    return 2.0 / (1.0 + np.exp(-x)) - 1.0


class ParticleSystem:
    """
    Owns a fixed-capacity pool of particles advected by the complex vector field.

    Data Contract:
    - Inputs:
        - settings (SimulationSettings): The 'simulation' section of the config.
        - rng (np.random.Generator): The master seeded random number generator.
    - Outputs: None. This class modifies its internal state.
    - Side Effects: Manages the lifecycle of all particle data.
    - Invariants: Exactly `capacity` particles exist at all times. All internal
      arrays are allocated once and keep length `capacity`; dead particles are
      overwritten in place, never removed. After update() every position is
      finite and inside the domain.
    """

    def __init__(self, settings, rng: np.random.Generator):
        self.capacity = settings.capacity
        self.settings = settings
        self.field_params = settings.field_params
        self.domain: DomainBounds = settings.domain
        self.rng = rng

        # --- Diagnostics for logging ---
        self.respawned_last_update = 0
        self.total_respawned = 0

        # --- Initialize properties using NumPy arrays (Structure of Arrays) ---
        self.positions = self.domain.sample(rng, self.capacity)
        self.previous_positions = self.positions.copy()
        self.lifetimes = self._draw_lifetimes(self.capacity)
        # Stagger ages so the initial population does not expire in lockstep.
        self.ages = rng.random(self.capacity) * self.lifetimes
        with np.errstate(over='ignore', invalid='ignore'):
            self.speeds = self._sanitize_speeds(np.abs(evaluate_many(self.positions, self.field_params.iteration_depth)))
        self.colors = np.zeros((self.capacity, 4), dtype=np.float32)
        self._update_colors()

        logger.info(f"ParticleSystem created for {self.capacity} particles.")
        logger.info(
            f"Field depth n={self.field_params.iteration_depth}, domain={self.domain.describe()}, "
            f"dt={settings.dt:.5f}, speed_scale={settings.speed_scale}, substeps={settings.substeps}, "
            f"max_lifetime={settings.max_lifetime:.3f}s, lifetime_jitter={settings.lifetime_jitter}, "
            f"max_field_magnitude={settings.max_field_magnitude or 'off'}"
        )

    def __len__(self):
        return self.capacity

    def reconfigure(self, field_params: FieldParameters):
        """
        Replaces the field parameters. Only call between updates; the next
        update() uses the new depth for every particle.
        """
        logger.info(
            f"Field reconfigured: n={self.field_params.iteration_depth} -> n={field_params.iteration_depth}"
        )
        self.field_params = field_params

    def update(self, dt: float = None) -> int:
        """
        Advances every particle by one step and respawns the ones that became
        invalid. Returns the number of respawned particles.
        """
        if dt is None:
            dt = self.settings.dt

        # --- 1. Integrate ---
        _advance_particles_jit(
            self.positions,
            self.previous_positions,
            self.ages,
            self.speeds,
            self.field_params.iteration_depth,
            dt,
            self.settings.speed_scale,
            self.settings.substeps,
            self.settings.normalize_velocity,
        )

        # --- 2. Respawn non-finite, escaped, expired and blown-up particles ---
        # contains() is False for NaN/inf, so non-finite positions are caught here too.
        dead_mask = ~self.domain.contains(self.positions) | (self.ages > self.lifetimes)
        if self.settings.max_field_magnitude > 0:
            # NaN speeds compare False; those positions are already non-finite.
            with np.errstate(invalid='ignore'):
                dead_mask |= self.speeds >= self.settings.max_field_magnitude
        dead_indices = np.flatnonzero(dead_mask)
        if len(dead_indices) > 0:
            self._respawn(dead_indices)

        self.speeds = self._sanitize_speeds(self.speeds)
        self._update_colors()

        self.respawned_last_update = len(dead_indices)
        self.total_respawned += self.respawned_last_update
        return self.respawned_last_update

    def _respawn(self, indices: np.ndarray):
        """Overwrites the given slots with fresh particles. Pool size and order are unchanged."""
        new_positions = self.domain.sample(self.rng, len(indices))
        self.positions[indices] = new_positions
        self.previous_positions[indices] = new_positions
        self.ages[indices] = 0.0
        self.lifetimes[indices] = self._draw_lifetimes(len(indices))
        with np.errstate(over='ignore', invalid='ignore'):
            self.speeds[indices] = np.abs(evaluate_many(new_positions, self.field_params.iteration_depth))

    def _draw_lifetimes(self, count: int) -> np.ndarray:
        """
        Per-slot lifetimes in (0, max_lifetime]. With lifetime_jitter=1 they are
        uniform over that range; with 0 every slot lives exactly max_lifetime.
        """
        jitter = self.settings.lifetime_jitter
        if jitter <= 0:
            return np.full(count, self.settings.max_lifetime)
        return self.settings.max_lifetime * (1.0 - jitter * self.rng.random(count))

    def _sanitize_speeds(self, speeds: np.ndarray) -> np.ndarray:
        # An overflowing field at a fresh spawn point still needs a defined color.
        return np.nan_to_num(speeds, copy=False, nan=0.0, posinf=self.settings.color_max_speed, neginf=0.0)

    def speed_to_rgb(self, speeds: np.ndarray) -> np.ndarray:
        """
        Maps speeds to RGB by linearly interpolating between gradient keyframes.
        Deterministic: the same speed always gives the same color.
        """
        norm = np.clip(np.asarray(speeds, dtype=float) / self.settings.color_max_speed, 0.0, 1.0)
        stops = [pos for pos, _ in constants.COLOR_GRADIENT_KEYFRAMES]
        rgb = np.empty(norm.shape + (3,), dtype=np.float32)
        for channel in range(3):
            values = [color[channel] for _, color in constants.COLOR_GRADIENT_KEYFRAMES]
            rgb[..., channel] = np.interp(norm, stops, values)
        return rgb

    def age_to_alpha(self, ages: np.ndarray, lifetimes: np.ndarray = None) -> np.ndarray:
        """Fade-in after spawn and fade-out before the slot's lifetime (max_lifetime by default)."""
        fade = self.settings.fade_time
        if fade <= 0:
            return np.ones_like(ages, dtype=np.float32)
        if lifetimes is None:
            lifetimes = self.settings.max_lifetime
        alpha = _sigmoid(ages / fade) * _sigmoid((lifetimes - ages) / fade)
        return np.clip(alpha, 0.0, 1.0).astype(np.float32)

    def _update_colors(self):
        self.colors[:, :3] = self.speed_to_rgb(self.speeds)
        self.colors[:, 3] = self.age_to_alpha(self.ages, self.lifetimes)

    def get_particle(self, index: int) -> Particle:
        return Particle(
            index=index,
            position=complex(self.positions[index]),
            previous_position=complex(self.previous_positions[index]),
            age=float(self.ages[index]),
            lifetime=float(self.lifetimes[index]),
            speed=float(self.speeds[index]),
            color=self.colors[index].copy(),
        )

    def get_mean_speed(self) -> float:
        """Mean field magnitude over the pool, for logging."""
        return float(np.mean(self.speeds))

    def all_finite(self) -> bool:
        return bool(np.all(np.isfinite(self.positions)))
