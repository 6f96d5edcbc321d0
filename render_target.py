# render_target.py

"""
Offscreen color buffers.

A RenderTarget is a float32 RGBA image of shape (height, width, 4) with
channel values in [0, 1] for displayable content. Targets are owned by the
rendering side (BloomPipeline); the particle system never touches them.

Data Contract:
- RenderTarget(width, height, name) allocates a buffer cleared to opaque black.
- Errors: Non-positive or non-integer sizes and failed allocations raise
  RenderTargetError. Using a target after release() raises RenderTargetError.
"""

import logging
import numbers

import numpy as np

import constants

logger = logging.getLogger(constants.LOGGER_NAME)


class RenderTargetError(RuntimeError):
    """A render target could not be allocated or is no longer valid."""


def _allocate(width, height, name: str) -> np.ndarray:
    if not isinstance(width, numbers.Integral) or not isinstance(height, numbers.Integral):
        raise RenderTargetError(f"Render target '{name}' needs integer dimensions, got {width!r}x{height!r}.")
    if width <= 0 or height <= 0:
        raise RenderTargetError(f"Render target '{name}' needs a positive size, got {width}x{height}.")
    try:
        pixels = np.zeros((int(height), int(width), 4), dtype=np.float32)
    except MemoryError as exc:
        raise RenderTargetError(f"Out of memory allocating render target '{name}' ({width}x{height}).") from exc
    pixels[..., 3] = 1.0
    return pixels


class RenderTarget:
    def __init__(self, width: int, height: int, name: str = "target"):
        self.name = name
        self._pixels = _allocate(width, height, name)
        logger.debug(f"Allocated render target '{name}' at {width}x{height}.")

    @property
    def pixels(self) -> np.ndarray:
        if self._pixels is None:
            raise RenderTargetError(f"Render target '{self.name}' was used after release.")
        return self._pixels

    @pixels.setter
    def pixels(self, image: np.ndarray):
        if image.shape != self.pixels.shape:
            raise RenderTargetError(
                f"Cannot store a {image.shape} image in render target '{self.name}' of shape {self.pixels.shape}."
            )
        self._pixels[...] = image

    @property
    def width(self) -> int:
        return self.pixels.shape[1]

    @property
    def height(self) -> int:
        return self.pixels.shape[0]

    @property
    def size(self):
        return self.width, self.height

    @property
    def released(self) -> bool:
        return self._pixels is None

    def clear(self, rgb=(0.0, 0.0, 0.0)):
        """Fills the target with an opaque color."""
        self.pixels[..., :3] = rgb
        self.pixels[..., 3] = 1.0

    def fade_toward(self, rgb, persistence: float):
        """
        Blends the current contents toward a color, keeping `persistence` of
        the old image. persistence=0 is the same as clear().
        """
        pixels = self.pixels
        pixels[..., :3] *= persistence
        pixels[..., :3] += (1.0 - persistence) * np.asarray(rgb, dtype=np.float32)
        pixels[..., 3] = 1.0

    def resize(self, width: int, height: int):
        """Reallocates the buffer at a new size. Contents are discarded."""
        self._pixels = _allocate(width, height, self.name)
        logger.debug(f"Reallocated render target '{self.name}' at {width}x{height}.")

    def release(self):
        self._pixels = None

    def to_rgb8(self) -> np.ndarray:
        """Quantizes to a (height, width, 3) uint8 array for presentation or saving."""
        return (np.clip(self.pixels[..., :3], 0.0, 1.0) * 255.0 + 0.5).astype(np.uint8)
