# settings.py

"""
Run Configuration

Loads config.json once at startup and turns it into a single immutable
Settings value that is passed explicitly to the particle system, the
renderer and the bloom pipeline. Nothing in the simulation reads
configuration from module-level state.

Data Contract:
- load_settings(path) -> Settings
    - Inputs: path (str) - Path to a JSON configuration file.
    - Outputs: A frozen Settings instance.
    - Errors: FileNotFoundError / json.JSONDecodeError are logged and re-raised.
      Out-of-range values raise ConfigError.
- settings_from_dict(config) -> Settings
    - Same as above for an already-parsed dictionary. Missing sections and
      keys fall back to the defaults below.
"""

import json
import logging
import math
import numbers
from dataclasses import dataclass, field
from typing import Any, Dict, Tuple

import constants
from domain import DomainBounds
from vector_field import FieldParameters

logger = logging.getLogger(constants.LOGGER_NAME)


class ConfigError(ValueError):
    """Raised when a configuration value is missing its constraints."""


@dataclass(frozen=True)
class LoggingSettings:
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    directory: str = "runs"


@dataclass(frozen=True)
class SimulationSettings:
    capacity: int = 40000
    field_params: FieldParameters = field(default_factory=lambda: FieldParameters(iteration_depth=11))
    domain: DomainBounds = field(default_factory=lambda: DomainBounds.box(complex(-3.75, 0.0), 7.5, 7.5))
    speed_scale: float = 0.6       # Domain units per second per unit of field magnitude
    max_lifetime: float = 160 / 60  # Seconds
    lifetime_jitter: float = 0.0    # 0 = every slot lives max_lifetime, 1 = uniform in (0, max_lifetime]
    max_field_magnitude: float = 0.0  # Respawn where |f(z)| reaches this; 0 disables
    dt: float = 1 / 60              # Seconds per simulation step
    substeps: int = 1
    normalize_velocity: bool = False
    color_max_speed: float = 4.0    # Speed that maps to the hottest gradient color
    fade_time: float = 0.1          # Seconds; 0 disables the age fade envelope


@dataclass(frozen=True)
class RenderSettings:
    width: int = constants.WIDTH
    height: int = constants.HEIGHT
    background: Tuple[float, float, float] = constants.BACKGROUND_COLOR
    particle_size: int = 2          # Pixels
    draw_trails: bool = True
    trail_persistence: float = 0.0  # 0 = full clear every frame
    view_center: complex = complex(-3.75, 0.0)
    view_scale: float = 5.0         # Domain units from the view center to the nearest window edge


@dataclass(frozen=True)
class BloomSettings:
    threshold: float = 0.3
    sigma: float = constants.BLUR_SIGMA
    taps_per_side: int = constants.BLUR_TAPS_PER_SIDE


@dataclass(frozen=True)
class OutputSettings:
    save_frames: bool = False
    directory: str = "output"
    max_frames: int = 0  # 0 = run until the window is closed


@dataclass(frozen=True)
class Settings:
    run_id: str = "default"
    master_seed: int = 0
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    simulation: SimulationSettings = field(default_factory=SimulationSettings)
    render: RenderSettings = field(default_factory=RenderSettings)
    bloom: BloomSettings = field(default_factory=BloomSettings)
    output: OutputSettings = field(default_factory=OutputSettings)

def _label(section: str, key: str) -> str:
    return f"{section}.{key}" if section else key


def _as_float(value, label: str) -> float:
    if isinstance(value, bool) or not isinstance(value, numbers.Real) or not math.isfinite(value):
        raise ConfigError(f"'{label}' must be a finite number, got {value!r}")
    return float(value)


def _number(config: Dict[str, Any], key: str, default, section: str = "") -> float:
    return _as_float(config.get(key, default), _label(section, key))


def _integer(config: Dict[str, Any], key: str, default, section: str = "") -> int:
    value = _number(config, key, default, section)
    if value != int(value):
        raise ConfigError(f"'{_label(section, key)}' must be a whole number, got {config.get(key, default)!r}")
    return int(value)


def _flag(config: Dict[str, Any], key: str, default: bool, section: str = "") -> bool:
    value = config.get(key, default)
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ('true', 'false'):
        return value.strip().lower() == 'true'
    raise ConfigError(f"'{_label(section, key)}' must be true or false, got {value!r}")


def _section(config: Dict[str, Any], key: str) -> Dict[str, Any]:
    value = config.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"'{key}' must be an object, got {value!r}")
    return value


def _complex(value, name: str) -> complex:
    try:
        re, im = value
        return complex(float(re), float(im))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'{name}' must be a [re, im] pair, got {value!r}") from exc


def _require(condition: bool, message: str):
    if not condition:
        raise ConfigError(message)


def _domain_from_dict(config: Dict[str, Any]) -> DomainBounds:
    if not isinstance(config, dict):
        raise ConfigError(f"'simulation.domain' must be an object, got {config!r}")
    section = 'domain'
    shape = config.get('shape', 'box')
    center = _complex(config.get('center', [0.0, 0.0]), 'domain.center')
    if shape == 'disk':
        radius = _number(config, 'radius', 2.0, section)
        _require(radius > 0, f"domain.radius must be positive, got {radius}")
        return DomainBounds.disk(center, radius)
    if shape == 'box':
        half_width = _number(config, 'half_width', 1.0, section)
        half_height = _number(config, 'half_height', half_width, section)
        _require(half_width > 0 and half_height > 0,
                 f"domain half extents must be positive, got {half_width}x{half_height}")
        return DomainBounds.box(center, half_width, half_height)
    raise ConfigError(f"Unknown domain shape '{shape}' (expected 'disk' or 'box').")


def _simulation_from_dict(config: Dict[str, Any]) -> SimulationSettings:
    defaults = SimulationSettings()
    section = 'simulation'
    try:
        field_params = FieldParameters(
            _integer(config, 'iteration_depth', defaults.field_params.iteration_depth, section))
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc

    domain = _domain_from_dict(config['domain']) if 'domain' in config else defaults.domain
    sim = SimulationSettings(
        capacity=_integer(config, 'capacity', defaults.capacity, section),
        field_params=field_params,
        domain=domain,
        speed_scale=_number(config, 'speed_scale', defaults.speed_scale, section),
        max_lifetime=_number(config, 'max_lifetime', defaults.max_lifetime, section),
        lifetime_jitter=_number(config, 'lifetime_jitter', defaults.lifetime_jitter, section),
        max_field_magnitude=_number(config, 'max_field_magnitude', defaults.max_field_magnitude, section),
        dt=_number(config, 'dt', defaults.dt, section),
        substeps=_integer(config, 'substeps', defaults.substeps, section),
        normalize_velocity=_flag(config, 'normalize_velocity', defaults.normalize_velocity, section),
        color_max_speed=_number(config, 'color_max_speed', defaults.color_max_speed, section),
        fade_time=_number(config, 'fade_time', defaults.fade_time, section),
    )
    _require(sim.capacity > 0, f"simulation.capacity must be positive, got {sim.capacity}")
    _require(sim.dt > 0, f"simulation.dt must be positive, got {sim.dt}")
    _require(sim.substeps >= 1, f"simulation.substeps must be at least 1, got {sim.substeps}")
    _require(sim.max_lifetime > 0, f"simulation.max_lifetime must be positive, got {sim.max_lifetime}")
    _require(0.0 <= sim.lifetime_jitter <= 1.0,
             f"simulation.lifetime_jitter must be in [0, 1], got {sim.lifetime_jitter}")
    _require(sim.max_field_magnitude >= 0,
             f"simulation.max_field_magnitude must not be negative, got {sim.max_field_magnitude}")
    _require(sim.color_max_speed > 0, f"simulation.color_max_speed must be positive, got {sim.color_max_speed}")
    _require(sim.fade_time >= 0, f"simulation.fade_time must not be negative, got {sim.fade_time}")
    return sim


def _render_from_dict(config: Dict[str, Any]) -> RenderSettings:
    defaults = RenderSettings()
    section = 'render'
    background = config.get('background', defaults.background)
    if not isinstance(background, (list, tuple)) or len(background) != 3:
        raise ConfigError(f"render.background must have 3 components, got {background!r}")
    background = tuple(_as_float(c, 'render.background') for c in background)
    render = RenderSettings(
        width=_integer(config, 'width', defaults.width, section),
        height=_integer(config, 'height', defaults.height, section),
        background=background,
        particle_size=_integer(config, 'particle_size', defaults.particle_size, section),
        draw_trails=_flag(config, 'draw_trails', defaults.draw_trails, section),
        trail_persistence=_number(config, 'trail_persistence', defaults.trail_persistence, section),
        view_center=_complex(config['view_center'], 'render.view_center') if 'view_center' in config else defaults.view_center,
        view_scale=_number(config, 'view_scale', defaults.view_scale, section),
    )
    _require(render.width > 0 and render.height > 0,
             f"render size must be positive, got {render.width}x{render.height}")
    _require(render.particle_size >= 1, f"render.particle_size must be at least 1, got {render.particle_size}")
    _require(0.0 <= render.trail_persistence < 1.0,
             f"render.trail_persistence must be in [0, 1), got {render.trail_persistence}")
    _require(render.view_scale > 0, f"render.view_scale must be positive, got {render.view_scale}")
    return render


def _bloom_from_dict(config: Dict[str, Any]) -> BloomSettings:
    defaults = BloomSettings()
    section = 'bloom'
    bloom = BloomSettings(
        threshold=_number(config, 'threshold', defaults.threshold, section),
        sigma=_number(config, 'sigma', defaults.sigma, section),
        taps_per_side=_integer(config, 'taps_per_side', defaults.taps_per_side, section),
    )
    _require(bloom.sigma > 0, f"bloom.sigma must be positive, got {bloom.sigma}")
    _require(bloom.taps_per_side >= 1, f"bloom.taps_per_side must be at least 1, got {bloom.taps_per_side}")
    return bloom


def _output_from_dict(config: Dict[str, Any]) -> OutputSettings:
    defaults = OutputSettings()
    output = OutputSettings(
        save_frames=_flag(config, 'save_frames', defaults.save_frames, 'output'),
        directory=str(config.get('directory', defaults.directory)),
        max_frames=_integer(config, 'max_frames', defaults.max_frames, 'output'),
    )
    _require(output.max_frames >= 0, f"output.max_frames must not be negative, got {output.max_frames}")
    return output


def settings_from_dict(config: Dict[str, Any]) -> Settings:
    """Builds and validates a Settings value from a parsed config dictionary."""
    if not isinstance(config, dict):
        raise ConfigError(f"Configuration must be a JSON object, got {type(config).__name__}.")
    log_defaults = LoggingSettings()
    log_config = _section(config, 'logging')

    return Settings(
        run_id=str(config.get('run_id', 'default')),
        master_seed=_integer(config, 'master_seed', 0),
        logging=LoggingSettings(
            level=str(log_config.get('level', log_defaults.level)).upper(),
            format=log_config.get('format', log_defaults.format),
            directory=log_config.get('directory', log_defaults.directory),
        ),
        simulation=_simulation_from_dict(_section(config, 'simulation')),
        render=_render_from_dict(_section(config, 'render')),
        bloom=_bloom_from_dict(_section(config, 'bloom')),
        output=_output_from_dict(_section(config, 'output')),
    )


def load_settings(path: str = 'config.json') -> Settings:
    """Loads a JSON configuration file into a Settings value."""
    logger.info(f"Loading configuration from {path}...")
    try:
        with open(path, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        logger.error(f"Configuration file not found at {path}.")
        raise
    except json.JSONDecodeError:
        logger.error(f"Error decoding JSON from {path}.")
        raise

    try:
        settings = settings_from_dict(config)
    except ConfigError as exc:
        logger.error(f"Invalid configuration in {path}: {exc}")
        raise
    logger.info("Configuration loaded successfully.")
    return settings
