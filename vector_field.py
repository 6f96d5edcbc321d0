# vector_field.py

"""
The complex function from which the vector field is derived.

    f_i(z) = z + z^i * e^(-i),   result = f_n(... f_3(f_2(z)))

The composition is an iterative loop, so the depth n is a runtime value
rather than a recursion depth. Powers are built by repeated multiplication,
which keeps the map single-valued and continuous around the origin (a
general complex power goes through log/exp and picks up branch cuts).

Large |z| overflows to inf/nan instead of raising. Callers detect
non-finite results themselves (see ParticleSystem respawn).

Data Contract:
- evaluate(z: complex, n: int) -> complex
    - Pure, deterministic, no side effects. n >= 2.
- evaluate_many(positions: complex128[:], n: int) -> complex128[:]
    - Element-wise evaluate() into a new array.
"""

import math
from dataclasses import dataclass

import numba
import numpy as np


@dataclass(frozen=True)
class FieldParameters:
    """Immutable parameters of the field. iteration_depth is n in the formula above."""
    iteration_depth: int = 11

    def __post_init__(self):
        if self.iteration_depth < 2:
            raise ValueError(f"iteration_depth must be >= 2, got {self.iteration_depth}")


# --- JIT-Compiled Field Functions ---
# No fastmath here: evaluate() must be bit-reproducible against plain Python
# complex arithmetic.

@numba.jit(nopython=True)
def evaluate(z, n):
    """Evaluates the composed field map at z for iteration depth n."""
    for i in range(2, n + 1):
        power = z
        for _ in range(i - 1):
            power = power * z
        z = z + power * math.exp(-i)
    return z


@numba.jit(nopython=True)
def _evaluate_into_jit(positions, n, out):
    for k in range(positions.shape[0]):
        out[k] = evaluate(positions[k], n)


def evaluate_many(positions: np.ndarray, n: int) -> np.ndarray:
    """Evaluates the field for every position in a 1-D complex array."""
    positions = np.ascontiguousarray(positions, dtype=np.complex128)
    out = np.empty_like(positions)
    _evaluate_into_jit(positions, n, out)
    return out
