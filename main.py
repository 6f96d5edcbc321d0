# main.py

import logging
import os

import numpy as np
import pygame

import constants
import logger_setup
from particle_system import ParticleSystem
from postprocess import BloomPipeline
from scene_renderer import SceneRenderer
from settings import load_settings

# Get the application's dedicated logger
logger = logging.getLogger(constants.LOGGER_NAME)


def present(screen: pygame.Surface, frame) -> None:
    """Copies a finished RenderTarget onto the display surface."""
    # surfarray is indexed (x, y); render targets are (y, x).
    pygame.surfarray.blit_array(screen, frame.to_rgb8().swapaxes(0, 1))


def save_frame(screen: pygame.Surface, directory: str, frame_number: int) -> None:
    pygame.image.save(screen, os.path.join(directory, f"{frame_number}.png"))


def run_loop(particle_system, pipeline, screen, clock, settings):
    """
    The main loop: one simulation update, one pipeline render and one
    present per frame. Window resizes reallocate the render targets before
    the next frame is drawn. Returns the number of frames rendered.
    """
    # --- Loop Setup ---
    running = True
    tick = 0
    accumulated_respawns = 0
    output = settings.output

    if output.save_frames:
        os.makedirs(output.directory, exist_ok=True)
        logger.info(f"Saving frames to {output.directory}/")

    while running:
        # Event handling
        for event in pygame.event.get():
            if event.type == pygame.QUIT:
                running = False
            elif event.type == pygame.VIDEORESIZE:
                screen = pygame.display.set_mode((event.w, event.h), pygame.RESIZABLE)
                pipeline.resize(event.w, event.h)
        if not running:
            break

        # --- Simulation Update ---
        accumulated_respawns += particle_system.update()

        # --- Drawing ---
        frame = pipeline.render(particle_system)
        present(screen, frame)
        pygame.display.flip()

        if output.save_frames:
            save_frame(screen, output.directory, tick + 1)

        # --- Logging (throttled) ---
        if tick % constants.LOG_INTERVAL == 0:
            logger.debug(
                f"Tick={tick}, "
                f"Respawned={accumulated_respawns}, "
                f"TotalRespawned={particle_system.total_respawned}, "
                f"MeanSpeed={particle_system.get_mean_speed():.3f}, "
                f"FPS={clock.get_fps():.1f}"
            )
            accumulated_respawns = 0

        clock.tick(constants.FPS)
        tick += 1
        if output.max_frames and tick >= output.max_frames:
            logger.info(f"Reached max_frames={output.max_frames}.")
            running = False

    return tick


def main(config_path: str = 'config.json'):
    """
    Main function to initialize and run the vector field visualization.
    """
    # --- Setup ---
    settings = load_settings(config_path)
    logger_setup.setup_logging(settings)

    logger.info("Application starting...")
    logger.info(f"Loaded configuration: {settings}")

    # Initialize the master random number generator (RNG)
    rng = np.random.default_rng(settings.master_seed)
    logger.info(f"Master RNG initialized with seed: {settings.master_seed}")

    # --- Initialization ---
    pygame.init()
    render = settings.render
    screen = pygame.display.set_mode((render.width, render.height), pygame.RESIZABLE)
    pygame.display.set_caption(constants.TITLE)
    clock = pygame.time.Clock()

    particle_system = ParticleSystem(settings.simulation, rng)
    pipeline = BloomPipeline(render.width, render.height, settings.bloom, SceneRenderer(render))

    try:
        frames = run_loop(particle_system, pipeline, screen, clock, settings)
        logger.info(f"Rendered {frames} frames, {particle_system.total_respawned} respawns in total.")
    finally:
        pipeline.release()
        logger.info("Application shutting down.")
        pygame.quit()


if __name__ == "__main__":
    main()
