# constants.py

"""
Application Constants

This module defines static configuration values for the application's framework.
These are not expected to change between simulation runs; everything that is
tunable per run lives in config.json and is loaded by settings.py.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable.
"""

# Default screen dimensions (overridable from the 'render' config section)
WIDTH = 1920  # Pixels
HEIGHT = 1080  # Pixels

# Framerate
FPS = 60  # Frames per second

# Window Title
TITLE = "Vector Fields"

# Name of the dedicated application logger
LOGGER_NAME = "vector_field"

# Log per-frame diagnostics once every this many frames.
LOG_INTERVAL = 120

# Background color the scene buffer is cleared to (RGB, 0-1 floats).
BACKGROUND_COLOR = (0.08, 0.085, 0.12)

# Perceptual luma weights used by the bright pass.
LUMA_WEIGHTS = (0.2125, 0.7154, 0.0721)

# Blur kernel defaults
BLUR_SIGMA = 3.5
BLUR_TAPS_PER_SIDE = 6  # 13 taps in total including the center

# Color Mapping for Visualization
# Particle speed |velocity| is normalized by the configured color_max_speed
# and mapped through this gradient, slow to fast.
# Each keyframe is a tuple: (normalized_position, (R, G, B) color) with 0-1 floats.
COLOR_GRADIENT_KEYFRAMES = [
    (0.0,   (0.08, 0.085, 0.12)),  # Background slate
    (0.15,  (0.23, 0.20, 0.45)),   # Dusk violet
    (0.35,  (0.80, 0.45, 0.23)),   # Amber
    (0.65,  (1.00, 0.65, 0.23)),   # Orange
    (1.0,   (1.00, 0.95, 0.80))    # Hot white
]
