# tests/config/test_cycle_config.py
"""
Tests for cogcycle configuration loading.

Tests cover:
    - Model defaults and field validation
    - TOML ``[cogcycle]`` table loading
    - COGCYCLE_<SECTION>_<KEY> environment overrides and value parsing
    - Precedence: defaults < TOML < environment < overrides
    - ConfigError for missing explicit files, bad TOML and invalid values
"""

import pytest

from cogcycle.config import (
    BudgetConfig,
    CognitiveCycleConfig,
    PersistenceConfig,
    load_config,
)
from cogcycle.config.cycle_config import (
    _apply_env_overrides,
    _deep_merge,
    _parse_env_value,
    load_toml_config,
)
from cogcycle.exceptions import ConfigError

TOML = """
[cogcycle.wake]
interval_seconds = 120

[cogcycle.budget]
total_budget = 800.0
warn_threshold = 0.6

[cogcycle.executor]
maintenance_tasks = ["kb_maintenance"]

[other_tool]
ignored = true
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text(TOML)
    return path


# =============================================================================
# Models
# =============================================================================


class TestModels:
    """Tests for defaults and validation."""

    def test_defaults(self):
        config = CognitiveCycleConfig()
        assert config.wake.interval_seconds == 300.0
        assert config.budget.total_budget == 500.0
        assert config.budget.reserved_fraction == 0.2
        assert config.goals.stall_threshold_days == 7
        assert config.goals.min_autonomy_for_tasks == 0.4
        assert config.scheduler.impact_weight == 0.40
        assert config.risk.skip_failure_rate == 70.0
        assert config.persistence.enabled is False
        assert config.logging == {}

    def test_warn_must_not_exceed_abort(self):
        with pytest.raises(ValueError):
            BudgetConfig(warn_threshold=0.95, abort_threshold=0.9)

    def test_persistence_paths_expanded(self):
        config = PersistenceConfig(goals_path="~/goals.json")
        assert not config.goals_path.startswith("~")


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:
    """Tests for merge and environment parsing helpers."""

    def test_deep_merge(self):
        base = {"budget": {"total_budget": 500, "keep_last_cycles": 10}, "logging": {}}
        merged = _deep_merge(base, {"budget": {"total_budget": 900}})
        assert merged["budget"] == {"total_budget": 900, "keep_last_cycles": 10}
        assert base["budget"]["total_budget"] == 500

    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("true", True),
            ("off", False),
            ("42", 42),
            ("0.75", 0.75),
            ("a, b,c", ["a", "b", "c"]),
            ("hello", "hello"),
        ],
    )
    def test_parse_env_value(self, raw, expected):
        assert _parse_env_value(raw) == expected

    def test_env_overrides(self):
        environ = {
            "COGCYCLE_WAKE_INTERVAL_SECONDS": "60",
            "COGCYCLE_PERSISTENCE_ENABLED": "yes",
            "COGCYCLE_NOSUCH_KEY": "1",
            "COGCYCLE_BUDGET": "1",
            "OTHER_VAR": "x",
        }
        config = _apply_env_overrides({}, environ)
        assert config == {
            "wake": {"interval_seconds": 60},
            "persistence": {"enabled": True},
        }

    def test_toml_table(self, config_file):
        data = load_toml_config(config_file)
        assert data["wake"] == {"interval_seconds": 120}
        assert "other_tool" not in data


# =============================================================================
# load_config
# =============================================================================


class TestLoadConfig:
    """Tests for the layered loader."""

    def test_from_toml(self, config_file):
        config = load_config(config_file, environ={})
        assert config.wake.interval_seconds == 120.0
        assert config.budget.total_budget == 800.0
        assert config.executor.maintenance_tasks == ["kb_maintenance"]
        assert config.goals.max_sub_goals == 10

    def test_precedence(self, config_file):
        """Environment beats TOML; explicit overrides beat both."""
        config = load_config(
            config_file,
            overrides={"budget": {"total_budget": 1000}},
            environ={
                "COGCYCLE_WAKE_INTERVAL_SECONDS": "30",
                "COGCYCLE_BUDGET_TOTAL_BUDGET": "900",
            },
        )
        assert config.wake.interval_seconds == 30.0
        assert config.budget.total_budget == 1000.0
        assert config.budget.warn_threshold == 0.6

    def test_missing_explicit_file(self, tmp_path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "absent.toml", environ={})

    def test_bad_toml(self, tmp_path):
        path = tmp_path / "broken.toml"
        path.write_text("[cogcycle\nnope")
        with pytest.raises(ConfigError):
            load_config(path, environ={})

    def test_invalid_value(self, config_file):
        with pytest.raises(ConfigError, match="Invalid cogcycle configuration"):
            load_config(config_file, overrides={"budget": {"total_budget": -5}}, environ={})

    def test_invalid_env_value(self, config_file):
        with pytest.raises(ConfigError):
            load_config(config_file, environ={"COGCYCLE_BUDGET_WARN_THRESHOLD": "0.99"})
