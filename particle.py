# particle.py

import numpy as np


class Particle:
    """
    A read-only snapshot of a single particle slot in the ParticleSystem.

    The live state is stored as parallel NumPy arrays inside ParticleSystem
    (structure of arrays); this object copies one slot out for inspection,
    logging and tests. Mutating it does not affect the simulation.
    """
    __slots__ = ('index', 'position', 'previous_position', 'age', 'lifetime', 'speed', 'color')

    def __init__(self, index: int, position: complex, previous_position: complex, age: float, lifetime: float, speed: float, color: np.ndarray):
        self.index = index
        self.position = position
        self.previous_position = previous_position
        self.age = age
        self.lifetime = lifetime
        self.speed = speed
        self.color = color

    @property
    def is_finite(self) -> bool:
        return bool(np.isfinite(self.position))

    def __repr__(self):
        r, g, b, a = (float(c) for c in self.color)
        return (f"Particle(index={self.index}, position={self.position:.4f}, age={self.age:.3f}/{self.lifetime:.3f}, "
                f"speed={self.speed:.3f}, color=({r:.2f}, {g:.2f}, {b:.2f}, {a:.2f}))")
