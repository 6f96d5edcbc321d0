"""
Tests for the bloom post-processing passes and pipeline.

Verifies:
1. Bright pass hard cutoff at the luminance threshold
2. Incremental Gaussian weights and blur normalization
3. Single bright pixel falls off symmetrically without amplification
4. Additive composite clamps and pipeline resize/release behavior
"""

import math
from types import SimpleNamespace

import numpy as np
import pytest

from postprocess import (
    BloomPipeline,
    BlurParams,
    blur,
    compose,
    extract,
    gaussian_weights,
    luminance,
)
from render_target import RenderTarget, RenderTargetError
from scene_renderer import SceneRenderer
from settings import BloomSettings, RenderSettings


def solid(width, height, rgba):
    image = np.empty((height, width, 4), dtype=np.float32)
    image[...] = rgba
    return image


def test_luminance_at_threshold_is_cut():
    image = solid(1, 1, (0.6, 0.4, 0.2, 1.0))
    threshold = float(luminance(image)[0, 0])
    out = extract(image, threshold)
    np.testing.assert_array_equal(out[0, 0], [0.0, 0.0, 0.0, 1.0])


def test_luminance_above_threshold_keeps_original_color():
    image = solid(2, 2, (0.6, 0.4, 0.2, 0.25))
    out = extract(image, 0.1)
    np.testing.assert_array_equal(out[..., :3], image[..., :3])
    assert np.all(out[..., 3] == 1.0), "Bright pass forces alpha to 1"


def test_bright_pass_is_per_pixel():
    image = solid(2, 1, (0.0, 0.0, 0.0, 1.0))
    image[0, 1] = (0.9, 0.9, 0.9, 1.0)
    image[0, 0] = (0.2, 0.2, 0.2, 1.0)
    out = extract(image, 0.5)
    np.testing.assert_array_equal(out[0, 0, :3], [0.0, 0.0, 0.0])
    np.testing.assert_allclose(out[0, 1, :3], [0.9, 0.9, 0.9])


def test_incremental_weights_match_closed_form():
    sigma = 3.5
    weights = gaussian_weights(sigma, 6)
    assert len(weights) == 7
    g0 = 1.0 / (math.sqrt(2.0 * math.pi) * sigma)
    for i, w in enumerate(weights):
        assert w == pytest.approx(g0 * math.exp(-i * i / (2.0 * sigma * sigma)), rel=1e-12)


def test_blur_preserves_uniform_image():
    image = solid(20, 12, (0.4, 0.7, 0.1, 1.0))
    params = BlurParams.for_size(20, 12)
    out = blur(blur(image, params, horizontal=True), params, horizontal=False)
    np.testing.assert_allclose(out, image, rtol=1e-5)


def test_blur_applies_tint():
    image = solid(8, 8, (0.5, 0.5, 0.5, 1.0))
    params = BlurParams.for_size(8, 8, tint=(1.0, 0.5, 0.0, 1.0))
    out = blur(image, params, horizontal=True)
    np.testing.assert_allclose(out[0, 0], [0.5, 0.25, 0.0, 1.0], rtol=1e-5)


def test_blur_only_spreads_along_its_axis():
    image = solid(15, 15, (0.0, 0.0, 0.0, 1.0))
    image[7, 7, :3] = 1.0
    params = BlurParams.for_size(15, 15)
    horizontal = blur(image, params, horizontal=True)
    assert horizontal[7, 8, 0] > 0.0
    assert horizontal[6, 7, 0] == 0.0
    vertical = blur(image, params, horizontal=False)
    assert vertical[6, 7, 0] > 0.0
    assert vertical[7, 8, 0] == 0.0


def test_fractional_step_interpolates():
    image = solid(9, 1, (0.0, 0.0, 0.0, 1.0))
    image[0, 4, :3] = 1.0
    half_texel = BlurParams(step_size=(0.5 / 9, 1.0), taps_per_side=1)
    out = blur(image, half_texel, horizontal=True)
    # Taps at +-0.5 texels each see half of the bright pixel.
    assert out[0, 3, 0] > 0.0
    assert out[0, 3, 0] == pytest.approx(out[0, 5, 0])
    assert out[0, 2, 0] == 0.0


def test_single_bright_pixel_blooms_symmetrically():
    size = 31
    center = size // 2
    image = solid(size, size, (0.0, 0.0, 0.0, 1.0))
    image[center, center, :3] = 1.0

    bright = extract(image, 0.5)
    params = BlurParams.for_size(size, size)
    blurred = blur(blur(bright, params, horizontal=True), params, horizontal=False)
    red = blurred[..., 0]

    np.testing.assert_allclose(red, red[::-1, :], rtol=1e-6, atol=1e-9)
    np.testing.assert_allclose(red, red[:, ::-1], rtol=1e-6, atol=1e-9)
    assert red.max() == red[center, center], "Peak stays on the original pixel"
    assert red.max() <= 1.0, "Blur must not amplify energy"
    row = red[center, center:center + 7]
    assert np.all(np.diff(row) < 0), f"Intensity should fall off smoothly: {row}"
    assert red[center, center + 7] == 0.0, "13 taps reach 6 pixels out"
    np.testing.assert_allclose(blurred[..., 3], 1.0, rtol=1e-5)


def test_compose_adds_and_clamps():
    scene = solid(2, 2, (0.8, 0.2, 0.0, 1.0))
    bloom = solid(2, 2, (0.5, 0.1, 0.0, 0.3))
    out = compose(scene, bloom)
    np.testing.assert_allclose(out[0, 0], [1.0, 0.3, 0.0, 1.0], rtol=1e-6)


def make_pipeline(width=32, height=24):
    render = RenderSettings(width=width, height=height, background=(0.0, 0.0, 0.0), particle_size=1, draw_trails=False, view_center=0j, view_scale=1.0)
    return BloomPipeline(width, height, BloomSettings(threshold=0.3), SceneRenderer(render))


def make_pool(positions, color):
    positions = np.asarray(positions, dtype=np.complex128)
    colors = np.tile(np.asarray(color, dtype=np.float32), (len(positions), 1))
    return SimpleNamespace(positions=positions, previous_positions=positions.copy(), colors=colors)


def test_pipeline_renders_bloom_around_particles():
    pipeline = make_pipeline()
    frame = pipeline.render(make_pool([0j], (1.0, 1.0, 1.0, 1.0)))
    assert frame.size == (32, 24)
    pixels = frame.pixels
    assert pixels[12, 16, 0] == pytest.approx(1.0)
    assert 0.0 < pixels[12, 18, 0] < 1.0, "Bloom should glow next to the particle"
    assert pixels[0, 0, 0] == 0.0
    assert np.all(pixels[..., 3] == 1.0)


def test_pipeline_resize_reallocates_targets():
    pipeline = make_pipeline()
    pipeline.resize(64, 40)
    for target in pipeline.targets:
        assert target.size == (64, 40)
    assert pipeline.blur_params.step_size == (1.0 / 64, 1.0 / 40)
    frame = pipeline.render(make_pool([0j], (1.0, 1.0, 1.0, 1.0)))
    assert frame.pixels.shape == (40, 64, 4)


def test_pipeline_resize_to_invalid_size_fails():
    pipeline = make_pipeline()
    with pytest.raises(RenderTargetError):
        pipeline.resize(0, 40)


def test_pipeline_release():
    pipeline = make_pipeline()
    pipeline.release()
    assert all(target.released for target in pipeline.targets)
    with pytest.raises(RenderTargetError):
        pipeline.render(make_pool([0j], (1.0, 1.0, 1.0, 1.0)))


def test_render_target_validation():
    with pytest.raises(RenderTargetError):
        RenderTarget(0, 10)
    with pytest.raises(RenderTargetError):
        RenderTarget(10.5, 10)
    target = RenderTarget(4, 3, "scratch")
    assert target.pixels.shape == (3, 4, 4)
    assert np.all(target.pixels[..., 3] == 1.0)
    target.clear((0.1, 0.2, 0.3))
    np.testing.assert_allclose(target.pixels[1, 1], [0.1, 0.2, 0.3, 1.0], rtol=1e-6)
    with pytest.raises(RenderTargetError):
        target.pixels = np.zeros((2, 2, 4), dtype=np.float32)
