# postprocess.py

"""
Bloom Post-Processing

The per-frame image pipeline that turns the raw particle draw into the final
bloom-lit frame:

    scene -> extract (bright pass) -> blur (horizontal) -> blur (vertical) -> compose(scene, blurred)

Each pass is a pure function `Image x Params -> Image` over float32 RGBA
arrays of shape (height, width, 4). Passes accept either a raw array or a
RenderTarget as their source. BloomPipeline owns the render targets and runs
the passes in order; each pass reads the previous pass's output, so the
order is fixed.

Data Contract:
- extract(source, threshold) -> image
    - luminance = dot(rgb, LUMA_WEIGHTS); out.rgb = rgb * sign(max(0, luminance - threshold)); out.a = 1
- blur(source, params, horizontal) -> image
    - One axis of a 13-tap (by default) separable Gaussian with weights
      from the incremental Gaussian recurrence, renormalized by their sum.
- compose(scene, bloom) -> image
    - clip(scene + bloom, 0, 1) with alpha 1.
"""

import logging
import math
from dataclasses import dataclass
from typing import Tuple

import numpy as np

import constants
from render_target import RenderTarget, RenderTargetError

logger = logging.getLogger(constants.LOGGER_NAME)

_LUMA = np.asarray(constants.LUMA_WEIGHTS, dtype=np.float32)


@dataclass(frozen=True)
class BloomParams:
    threshold: float = 0.3


@dataclass(frozen=True)
class BlurParams:
    """
    step_size is the offset between taps in normalized texture coordinates
    (one texel is (1/width, 1/height)). Only the component of the blur axis
    is used.
    """
    step_size: Tuple[float, float]
    sigma: float = constants.BLUR_SIGMA
    taps_per_side: int = constants.BLUR_TAPS_PER_SIDE
    tint: Tuple[float, float, float, float] = (1.0, 1.0, 1.0, 1.0)

    @classmethod
    def for_size(cls, width: int, height: int, **kwargs) -> "BlurParams":
        """Parameters for a one-texel step at the given target resolution."""
        return cls(step_size=(1.0 / width, 1.0 / height), **kwargs)


def _as_image(source) -> np.ndarray:
    if isinstance(source, RenderTarget):
        return source.pixels
    return np.asarray(source, dtype=np.float32)


def luminance(image) -> np.ndarray:
    """Perceptual luma of every pixel, shape (height, width)."""
    return _as_image(image)[..., :3] @ _LUMA


# --- Bright Pass ---

def extract(source, threshold: float) -> np.ndarray:
    """
    Keeps pixels whose luminance is strictly above the threshold at their
    original color and zeroes the rest. The gate is a hard cutoff (sign of
    the clipped excess), not a smooth knee, and alpha is forced to 1.
    """
    image = _as_image(source)
    excess = np.maximum(0.0, luminance(image) - threshold)
    out = np.empty_like(image, dtype=np.float32)
    out[..., :3] = image[..., :3] * np.sign(excess)[..., np.newaxis]
    out[..., 3] = 1.0
    return out


# --- Separable Gaussian Blur ---

def gaussian_weights(sigma: float = constants.BLUR_SIGMA, taps_per_side: int = constants.BLUR_TAPS_PER_SIDE) -> np.ndarray:
    """
    Tap weights [center, 1, 2, ..., taps_per_side] from the incremental
    Gaussian recurrence: each weight is derived from the previous one by
    multiplication (g.xy *= g.yz) instead of evaluating exp() per tap.
    """
    g_x = 1.0 / (math.sqrt(2.0 * math.pi) * sigma)
    g_y = math.exp(-0.5 / (sigma * sigma))
    g_z = g_y * g_y

    weights = np.empty(taps_per_side + 1, dtype=np.float64)
    for i in range(taps_per_side + 1):
        weights[i] = g_x
        g_x, g_y = g_x * g_y, g_y * g_z
    return weights


def _sample_shifted(image: np.ndarray, offset: float, axis: int) -> np.ndarray:
    """
    Samples the image at (index + offset) along one axis with clamp-to-edge
    addressing. Fractional offsets interpolate linearly between texels.
    """
    # Snap float noise from the normalized -> texel conversion.
    offset = round(offset, 6)
    n = image.shape[axis]
    base = np.arange(n)
    lo = math.floor(offset)
    frac = offset - lo

    sampled = np.take(image, np.clip(base + lo, 0, n - 1), axis=axis)
    if frac > 0.0:
        upper = np.take(image, np.clip(base + lo + 1, 0, n - 1), axis=axis)
        sampled = sampled * (1.0 - frac) + upper * frac
    return sampled


def blur(source, params: BlurParams, horizontal: bool) -> np.ndarray:
    """
    One axis of the separable Gaussian blur. Run once with horizontal=True
    and once with horizontal=False on its output for the full 2D blur.
    """
    image = _as_image(source)
    # Image rows are y, columns are x.
    axis = 1 if horizontal else 0
    step = params.step_size[0] if horizontal else params.step_size[1]
    texel_step = step * image.shape[axis]

    weights = gaussian_weights(params.sigma, params.taps_per_side)
    avg = image * np.float32(weights[0])
    coefficient_sum = weights[0]
    for i in range(1, params.taps_per_side + 1):
        w = np.float32(weights[i])
        avg += _sample_shifted(image, -i * texel_step, axis) * w
        avg += _sample_shifted(image, i * texel_step, axis) * w
        coefficient_sum += 2.0 * weights[i]

    out = avg / np.float32(coefficient_sum)
    out *= np.asarray(params.tint, dtype=np.float32)
    return out.astype(np.float32, copy=False)


# --- Composite ---

def compose(scene, bloom) -> np.ndarray:
    """Additive composite of the blurred bright pass over the scene, clamped to [0, 1]."""
    out = np.clip(_as_image(scene) + _as_image(bloom), 0.0, 1.0).astype(np.float32, copy=False)
    out[..., 3] = 1.0
    return out


class BloomPipeline:
    """
    Owns the offscreen buffers and runs the frame sequence.

    Three targets are used: 'scene' for the particle draw, and 'bright' and
    'blur' which ping-pong through the bright pass and the two blur axes.
    The composite is written back into 'bright', which render() returns.

    Data Contract:
    - Inputs: width, height (int), bloom_settings (BloomSettings), renderer (SceneRenderer).
    - render(system) -> RenderTarget with the finished frame.
    - resize(width, height) reallocates every target and recomputes the blur step.
    - release() frees every target; the pipeline is unusable afterwards.
    - Errors: RenderTargetError on invalid sizes or failed allocations.
    """

    def __init__(self, width: int, height: int, bloom_settings, renderer):
        self.settings = bloom_settings
        self.renderer = renderer
        self.bloom_params = BloomParams(threshold=bloom_settings.threshold)
        try:
            self.scene = RenderTarget(width, height, "scene")
            self.bright = RenderTarget(width, height, "bright")
            self.blur = RenderTarget(width, height, "blur")
        except RenderTargetError as exc:
            logger.error(f"Could not create bloom pipeline: {exc}")
            raise
        self.blur_params = self._make_blur_params(width, height)
        logger.info(
            f"Bloom pipeline created at {width}x{height}: threshold={self.bloom_params.threshold}, "
            f"sigma={self.blur_params.sigma}, taps={2 * self.blur_params.taps_per_side + 1}"
        )

    @property
    def targets(self):
        return (self.scene, self.bright, self.blur)

    def _make_blur_params(self, width: int, height: int) -> BlurParams:
        return BlurParams.for_size(width, height, sigma=self.settings.sigma, taps_per_side=self.settings.taps_per_side)

    def resize(self, width: int, height: int):
        """Reallocates all targets at the new resolution before the next frame."""
        try:
            for target in self.targets:
                target.resize(width, height)
        except RenderTargetError as exc:
            logger.error(f"Resize to {width}x{height} failed: {exc}")
            raise
        self.blur_params = self._make_blur_params(width, height)
        self.renderer.reset()
        logger.info(f"Render targets resized to {width}x{height}.")

    def render(self, system) -> RenderTarget:
        """Draws the pool and runs bright pass, blur x2 and composite, in that order."""
        self.renderer.draw(system, self.scene)
        self.bright.pixels = extract(self.scene, self.bloom_params.threshold)
        self.blur.pixels = blur(self.bright, self.blur_params, horizontal=True)
        self.bright.pixels = blur(self.blur, self.blur_params, horizontal=False)
        self.bright.pixels = compose(self.scene, self.bright)
        return self.bright

    def release(self):
        for target in self.targets:
            target.release()
        logger.info("Render targets released.")
