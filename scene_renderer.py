# scene_renderer.py

"""
Draws the particle pool into the scene render target.

Particles are splatted as small square sprites with additive blending, so
overlapping particles brighten instead of occluding each other. With trails
enabled each sprite is swept from the particle's previous position to its
current one, which turns the per-frame steps into streamlines.

Data Contract:
- SceneRenderer(render_settings)
- draw(system, target) -> None
    - Inputs: a ParticleSystem (read-only) and a RenderTarget.
    - Side Effects: Overwrites target.pixels. Never mutates particle state.
    - Invariants: Output RGB is clamped to [0, 1] and alpha is 1.
"""

import math

import numba
import numpy as np


# Upper bound on sprite stamps per trail segment.
MAX_TRAIL_STEPS = 4096


@numba.jit(nopython=True)
def _world_to_screen_jit(z, center_re, center_im, scale, extent, offset_x, offset_y):
    x = ((z.real - center_re) / scale / 2.0 + 0.5) * extent + offset_x
    y = ((z.imag - center_im) / scale / 2.0 + 0.5) * extent + offset_y
    return x, y


@numba.jit(nopython=True, fastmath=True)
def _splat_particles_jit(pixels, positions, previous_positions, colors, center_re, center_im, scale, extent, offset_x, offset_y, size, draw_trails):
    """
    Additively deposits every particle into pixels (height, width, 4).
    Color is premultiplied by the particle's alpha.
    """
    height = pixels.shape[0]
    width = pixels.shape[1]
    half = size // 2

    for k in range(positions.shape[0]):
        alpha = colors[k, 3]
        if alpha <= 0.0:
            continue
        r = colors[k, 0] * alpha
        g = colors[k, 1] * alpha
        b = colors[k, 2] * alpha

        x1, y1 = _world_to_screen_jit(positions[k], center_re, center_im, scale, extent, offset_x, offset_y)
        if draw_trails:
            x0, y0 = _world_to_screen_jit(previous_positions[k], center_re, center_im, scale, extent, offset_x, offset_y)
        else:
            x0, y0 = x1, y1
        if not (math.isfinite(x0) and math.isfinite(y0) and math.isfinite(x1) and math.isfinite(y1)):
            continue

        steps = int(math.ceil(max(abs(x1 - x0), abs(y1 - y0))))
        if steps > MAX_TRAIL_STEPS:
            steps = MAX_TRAIL_STEPS
        # Stamps along a segment are at most one pixel apart, so each pixel is covered
        # about `size` times; scale them down to keep trails as bright as a point.
        weight = 1.0 if steps == 0 else 1.0 / size

        for s in range(steps + 1):
            t = 1.0 if steps == 0 else s / steps
            cx = int(math.floor(x0 + (x1 - x0) * t)) - half
            cy = int(math.floor(y0 + (y1 - y0) * t)) - half
            for dy in range(size):
                py = cy + dy
                if py < 0 or py >= height:
                    continue
                for dx in range(size):
                    px = cx + dx
                    if px < 0 or px >= width:
                        continue
                    pixels[py, px, 0] += r * weight
                    pixels[py, px, 1] += g * weight
                    pixels[py, px, 2] += b * weight


class SceneRenderer:
    def __init__(self, render_settings):
        self.settings = render_settings
        self.background = np.asarray(render_settings.background, dtype=np.float32)
        self._needs_clear = True

    def reset(self):
        """Forces a full clear on the next draw (after a resize, for instance)."""
        self._needs_clear = True

    def viewport(self, width: int, height: int):
        """
        Returns (extent, offset_x, offset_y): the view is a square of `extent`
        pixels on the shorter window side, centered in the window.
        """
        extent = min(width, height)
        return extent, (width - extent) / 2.0, (height - extent) / 2.0

    def world_to_screen(self, positions: np.ndarray, width: int, height: int):
        """Vectorized complex-plane to pixel mapping. Returns (xs, ys) float arrays."""
        extent, offset_x, offset_y = self.viewport(width, height)
        center = self.settings.view_center
        scale = self.settings.view_scale
        positions = np.asarray(positions, dtype=np.complex128)
        xs = ((positions.real - center.real) / scale / 2.0 + 0.5) * extent + offset_x
        ys = ((positions.imag - center.imag) / scale / 2.0 + 0.5) * extent + offset_y
        return xs, ys

    def draw(self, system, target):
        """Clears (or fades) the target and splats the whole pool in one batched pass."""
        persistence = self.settings.trail_persistence
        if persistence > 0.0 and not self._needs_clear:
            target.fade_toward(self.background, persistence)
        else:
            target.clear(self.background)
        self._needs_clear = False

        pixels = target.pixels
        extent, offset_x, offset_y = self.viewport(target.width, target.height)
        center = self.settings.view_center
        _splat_particles_jit(
            pixels,
            system.positions,
            system.previous_positions,
            system.colors,
            center.real,
            center.imag,
            self.settings.view_scale,
            float(extent),
            offset_x,
            offset_y,
            self.settings.particle_size,
            self.settings.draw_trails,
        )
        np.clip(pixels, 0.0, 1.0, out=pixels)
