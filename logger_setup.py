# logger_setup.py

import logging
import logging.handlers
import os

from constants import LOGGER_NAME


def setup_logging(settings) -> logging.Logger:
    """
    Configures the application's logger for one run.

    Output goes to the console and to runs/<run_id>/simulation.log through a
    logger of its own, so Numba's compiler chatter and pygame's messages,
    which go to the root logger, stay out of the run log.

    Data Contract:
    - Inputs: settings (Settings) - The validated run configuration; uses
      `run_id` and the `logging` section (level, format, directory).
    - Outputs: The "vector_field" logging.Logger.
    - Side Effects:
        - Creates the run's log directory.
        - Replaces any handlers left on the logger by an earlier call.
    """
    log_settings = settings.logging
    run_dir = os.path.join(log_settings.directory, settings.run_id)
    os.makedirs(run_dir, exist_ok=True)
    log_path = os.path.join(run_dir, 'simulation.log')

    app_logger = logging.getLogger(LOGGER_NAME)
    app_logger.setLevel(log_settings.level)
    app_logger.propagate = False

    # Repeated setup must not stack handlers.
    for stale in list(app_logger.handlers):
        app_logger.removeHandler(stale)
        stale.close()

    formatter = logging.Formatter(log_settings.format)
    # Rotates at 1MB, keeps 5 backups.
    file_handler = logging.handlers.RotatingFileHandler(log_path, maxBytes=1024 * 1024, backupCount=5)
    console_handler = logging.StreamHandler()
    for handler in (file_handler, console_handler):
        handler.setFormatter(formatter)
        app_logger.addHandler(handler)

    app_logger.info(f"Logging initialized. Run ID: {settings.run_id}. Log file: {log_path}")
    app_logger.debug(f"Log level set to {log_settings.level}.")
    return app_logger
