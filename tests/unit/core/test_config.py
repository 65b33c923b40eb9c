"""Tests for configuration management."""

from __future__ import annotations

import pytest

from encounter_sim.core.config import (
    BalancerSettings,
    EngineSettings,
    OrchestratorSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from encounter_sim.core.constants import ENGINE_VERSION
from encounter_sim.core.exceptions import ConfigurationError


class TestEngineSettings:
    """Tests for EngineSettings configuration."""

    def test_default_values(self) -> None:
        """Test default engine caps and rules."""
        settings = EngineSettings()

        assert settings.max_rounds == 50
        assert settings.max_turns == 200
        assert settings.crit_threshold == 20
        assert settings.critical_hit_rule == "double_dice"
        assert settings.reaction_chain_limit == 32

    def test_env_override(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test engine settings read their own prefix."""
        monkeypatch.setenv("ENCOUNTER_SIM_ENGINE_MAX_ROUNDS", "7")

        assert EngineSettings().max_rounds == 7


class TestOrchestratorSettings:
    """Tests for OrchestratorSettings configuration."""

    def test_default_values(self) -> None:
        """Test default batch settings."""
        settings = OrchestratorSettings()

        assert settings.default_iterations == 1000
        assert settings.chunk_size == 150
        assert settings.lightweight_threshold == 20000
        assert settings.tier_b_buckets == 100
        assert settings.include_death_runs is False

    def test_chunk_size_validation(self) -> None:
        """Test that a chunk may not exceed the lightweight threshold."""
        with pytest.raises(ConfigurationError) as exc_info:
            OrchestratorSettings(chunk_size=500, lightweight_threshold=100)

        assert "chunk_size" in str(exc_info.value)
        assert exc_info.value.details["config_key"] == "chunk_size"


class TestBalancerSettings:
    """Tests for BalancerSettings configuration."""

    def test_default_values(self) -> None:
        """Test default balancer settings."""
        settings = BalancerSettings()

        assert settings.iterations == 200
        assert settings.max_steps == 10
        assert settings.hp_step == pytest.approx(0.10)


class TestSettings:
    """Tests for main Settings configuration."""

    def test_default_settings(self) -> None:
        """Test default settings initialization."""
        settings = Settings()

        assert settings.app_name == "Encounter Simulator"
        assert settings.engine_version == ENGINE_VERSION
        assert settings.debug is False
        assert settings.log_level == "INFO"
        assert isinstance(settings.engine, EngineSettings)
        assert isinstance(settings.batch, OrchestratorSettings)

    def test_env_overrides(self, mock_env_vars: dict[str, str]) -> None:
        """Test that environment variables reach every settings domain."""
        settings = Settings()

        assert settings.debug is True
        assert settings.log_level == "DEBUG"
        assert settings.engine.max_rounds == 12
        assert settings.batch.chunk_size == 25


class TestGetSettings:
    """Tests for the cached settings accessor."""

    def test_returns_cached_instance(self) -> None:
        """Test that get_settings returns the same instance."""
        assert get_settings() is get_settings()

    def test_clear_cache_reloads(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test that clearing the cache picks up new environment values."""
        first = get_settings()
        monkeypatch.setenv("ENCOUNTER_SIM_DEBUG", "true")
        clear_settings_cache()

        second = get_settings()

        assert second is not first
        assert second.debug is True
