"""Unit tests for configuration parsing"""

import pytest
from nova_sandbox.config import DEFAULT_INTERVAL_MS, Settings, SimulationConfig, parse_interval


@pytest.mark.parametrize(
    "value,expected",
    [
        ("5m", 300000),
        ("30s", 30000),
        ("1h", 3600000),
        ("2d", 172800000),
        ("250ms", 250),
        ("100", 100),
        (" 10s ", 10000),
    ],
)
def test_parse_interval(value, expected):
    """Test interval strings in every supported unit"""
    assert parse_interval(value) == expected


@pytest.mark.parametrize("value", ["", "garbage", "5 minutes", "-1s", "1.5h"])
def test_parse_interval_falls_back_to_one_hour(value):
    """Test unparseable intervals fall back to one hour"""
    assert parse_interval(value) == DEFAULT_INTERVAL_MS == 3600000


def test_simulation_config_from_settings():
    """Test simulation config is built from environment settings"""
    source = Settings(
        _env_file=None,
        simulation_mode="deterministic",
        simulation_seed_key="test-key",
        simulation_interval="30s",
        cancel_rate=0.5,
    )

    config = SimulationConfig.from_settings(source)

    assert config.mode == "deterministic"
    assert config.seed_key == "test-key"
    assert config.interval_ms == 30000
    assert config.cancel_rate == 0.5
    assert config.pending_duration_ms == 7200000


@pytest.mark.parametrize("hour,multiplier", [(0, 0.1), (5, 0.1), (6, 1.2), (12, 1.5), (18, 1.3), (22, 0.4), (23, 0.4)])
def test_activity_multiplier_by_hour(hour, multiplier):
    """Test hour-of-day activity windows"""
    assert SimulationConfig().activity_multiplier(hour) == multiplier
