# domain.py

"""
Domain Bounds

The region of the complex plane that particles live in. Particles that
leave it are respawned uniformly inside it.

Data Contract:
- DomainBounds is immutable. Build it with DomainBounds.disk() or DomainBounds.box().
- contains(positions) -> bool array. Non-finite positions are never contained.
- sample(rng, count) -> complex128 array of `count` positions, uniformly
  distributed over the region's area.
"""

from dataclasses import dataclass

import numpy as np

DISK = "disk"
BOX = "box"


@dataclass(frozen=True)
class DomainBounds:
    shape: str
    center: complex
    radius: float = 0.0
    half_width: float = 0.0
    half_height: float = 0.0

    @classmethod
    def disk(cls, center: complex, radius: float) -> "DomainBounds":
        return cls(DISK, complex(center), radius=float(radius))

    @classmethod
    def box(cls, center: complex, half_width: float, half_height: float) -> "DomainBounds":
        return cls(BOX, complex(center), half_width=float(half_width), half_height=float(half_height))

    def contains(self, positions: np.ndarray) -> np.ndarray:
        """Vectorized point-in-region test."""
        offsets = np.asarray(positions, dtype=np.complex128) - self.center
        # NaN comparisons are False, so non-finite positions fall out here.
        with np.errstate(invalid='ignore', over='ignore'):
            if self.shape == DISK:
                inside = np.abs(offsets) <= self.radius
            else:
                inside = (np.abs(offsets.real) <= self.half_width) & (np.abs(offsets.imag) <= self.half_height)
        return inside & np.isfinite(offsets)

    def sample(self, rng: np.random.Generator, count: int) -> np.ndarray:
        """Draws `count` positions uniformly over the region."""
        if self.shape == DISK:
            # sqrt keeps the density uniform over area rather than radius.
            r = self.radius * np.sqrt(rng.random(count))
            theta = rng.random(count) * 2.0 * np.pi
            offsets = r * np.exp(1j * theta)
        else:
            re = rng.uniform(-self.half_width, self.half_width, count)
            im = rng.uniform(-self.half_height, self.half_height, count)
            offsets = re + 1j * im
        return (self.center + offsets).astype(np.complex128)

    def describe(self) -> str:
        if self.shape == DISK:
            return f"disk(center={self.center}, radius={self.radius})"
        return f"box(center={self.center}, half_width={self.half_width}, half_height={self.half_height})"
