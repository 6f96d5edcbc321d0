"""Tests for configuration loading, validation and logging setup."""

import json
import logging
from dataclasses import replace
from pathlib import Path

import pytest

import constants
from domain import DISK
from logger_setup import setup_logging
from settings import ConfigError, LoggingSettings, Settings, load_settings, settings_from_dict

REPO_ROOT = Path(__file__).resolve().parent.parent


def test_empty_config_uses_defaults():
    settings = settings_from_dict({})
    assert settings == Settings()
    assert settings.simulation.field_params.iteration_depth == 11
    assert settings.bloom.sigma == 3.5


def test_disk_domain_and_overrides():
    settings = settings_from_dict({
        "master_seed": 7,
        "simulation": {
            "capacity": 1000,
            "iteration_depth": 3,
            "domain": {"shape": "disk", "center": [0, 0], "radius": 2},
            "dt": 1 / 60,
        },
        "bloom": {"threshold": 0.8},
        "render": {"view_center": [1.0, -2.0]},
    })
    sim = settings.simulation
    assert settings.master_seed == 7
    assert sim.capacity == 1000
    assert sim.field_params.iteration_depth == 3
    assert sim.domain.shape == DISK
    assert sim.domain.radius == 2.0
    assert settings.bloom.threshold == 0.8
    assert settings.render.view_center == complex(1.0, -2.0)


@pytest.mark.parametrize("config", [
    {"simulation": {"iteration_depth": 1}},
    {"simulation": {"capacity": 0}},
    {"simulation": {"dt": 0}},
    {"simulation": {"domain": {"shape": "triangle"}}},
    {"simulation": {"domain": {"shape": "disk", "radius": -1}}},
    {"render": {"width": 0}},
    {"render": {"trail_persistence": 1.0}},
    {"render": {"view_center": "middle"}},
    {"bloom": {"sigma": 0}},
    {"simulation": {"capacity": "many"}},
    {"simulation": {"capacity": 12.5}},
    {"simulation": {"speed_scale": "fast"}},
    {"simulation": {"speed_scale": True}},
    {"simulation": {"dt": None}},
    {"simulation": {"normalize_velocity": "maybe"}},
    {"simulation": {"normalize_velocity": 1}},
    {"simulation": {"lifetime_jitter": 1.5}},
    {"simulation": {"max_field_magnitude": -1}},
    {"simulation": []},
    {"render": {"background": [0.1, "dark", 0.1]}},
    {"output": {"max_frames": -1}},
])
def test_invalid_values_raise_config_error(config):
    with pytest.raises(ConfigError):
        settings_from_dict(config)


def test_boolean_flags_accept_json_and_string_forms():
    off = settings_from_dict({"simulation": {"normalize_velocity": "false"}, "output": {"save_frames": "FALSE"}})
    assert off.simulation.normalize_velocity is False
    assert off.output.save_frames is False

    on = settings_from_dict({"simulation": {"normalize_velocity": "True"}, "render": {"draw_trails": True}})
    assert on.simulation.normalize_velocity is True
    assert on.render.draw_trails is True


def test_lifetime_and_field_limit_settings():
    settings = settings_from_dict({"simulation": {"lifetime_jitter": 0.5, "max_field_magnitude": 10}})
    assert settings.simulation.lifetime_jitter == 0.5
    assert settings.simulation.max_field_magnitude == 10.0
    defaults = settings_from_dict({})
    assert defaults.simulation.lifetime_jitter == 0.0
    assert defaults.simulation.max_field_magnitude == 0.0, "Field limit is off unless configured"


def test_load_settings_logs_invalid_config(tmp_path, caplog):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"simulation": {"capacity": "many"}}))
    with caplog.at_level(logging.ERROR, logger=constants.LOGGER_NAME):
        with pytest.raises(ConfigError, match="simulation.capacity"):
            load_settings(str(path))
    assert any("Invalid configuration" in record.getMessage() for record in caplog.records)


def test_shipped_config_loads():
    settings = load_settings(str(REPO_ROOT / "config.json"))
    assert settings.simulation.capacity > 0
    assert settings.bloom.taps_per_side == 6
    assert settings.simulation.max_field_magnitude == 10.0
    assert settings.simulation.lifetime_jitter == 1.0


def test_load_settings_from_file(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({"run_id": "from-file", "simulation": {"capacity": 12}}))
    settings = load_settings(str(path))
    assert settings.run_id == "from-file"
    assert settings.simulation.capacity == 12


def test_missing_and_malformed_files_raise(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_settings(str(tmp_path / "absent.json"))
    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(json.JSONDecodeError):
        load_settings(str(bad))


def test_setup_logging_writes_run_log(tmp_path):
    settings = replace(Settings(run_id="test-run"), logging=LoggingSettings(level="DEBUG", directory=str(tmp_path)))
    logger = setup_logging(settings)
    try:
        assert logger.name == constants.LOGGER_NAME
        assert logger.propagate is False
        logger.debug("first run message")
        for handler in logger.handlers:
            handler.flush()
        log_file = tmp_path / "test-run" / "simulation.log"
        assert "first run message" in log_file.read_text()
    finally:
        for handler in list(logger.handlers):
            handler.close()
        logger.handlers.clear()
        logger.setLevel(logging.NOTSET)
        logger.propagate = True
