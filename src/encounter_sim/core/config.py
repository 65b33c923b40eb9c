"""Configuration management for the encounter simulator.

Settings are loaded with pydantic-settings from environment variables
and an optional ``.env`` file. Every tunable constant of the engine
(caps, retention bounds, AI scoring weights, chunking, balancer steps)
lives here rather than in code.

Example:
    >>> from encounter_sim.core.config import get_settings
    >>> settings = get_settings()
    >>> settings.engine.max_rounds
    50

Environment Variables:
    ENCOUNTER_SIM_LOG_LEVEL: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
    ENCOUNTER_SIM_ENGINE_MAX_ROUNDS: Round cap per encounter
    ENCOUNTER_SIM_ENGINE_EVENT_RETENTION: Events kept per encounter in bounded mode
    ENCOUNTER_SIM_AI_ATTACK_WEIGHT: Attack scoring multiplier
    ENCOUNTER_SIM_BATCH_CHUNK_SIZE: Iterations per orchestrator chunk
    ENCOUNTER_SIM_BALANCER_ITERATIONS: Survey size per auto-adjust step
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from encounter_sim.core.constants import ENGINE_VERSION
from encounter_sim.core.exceptions import ConfigurationError


class EngineSettings(BaseSettings):
    """Configuration for a single encounter simulation.

    Attributes:
        max_rounds: Hard round cap per encounter.
        max_turns: Hard turn cap per encounter.
        max_actions_per_turn: Upper bound on actions one combatant takes per turn.
        crit_threshold: Natural d20 roll at or above which an attack crits.
        critical_hit_rule: Critical hit damage calculation rule.
        event_retention: Events kept per encounter when full fidelity is off.
        reaction_chain_limit: Reactions processed per checkpoint before the cascade stops.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENCOUNTER_SIM_ENGINE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    max_rounds: int = Field(default=50, ge=1, le=1000, description="Round cap")
    max_turns: int = Field(default=200, ge=1, le=10000, description="Turn cap")
    max_actions_per_turn: int = Field(
        default=6,
        ge=1,
        le=50,
        description="Actions one combatant may take in a turn",
    )
    crit_threshold: int = Field(default=20, ge=2, le=20, description="Critical hit threshold")
    critical_hit_rule: Literal["double_dice", "double_damage", "max_plus_roll"] = Field(
        default="double_dice",
        description="Critical hit damage calculation",
    )
    event_retention: int = Field(
        default=1000,
        ge=0,
        description="Events retained per encounter in bounded mode",
    )
    reaction_chain_limit: int = Field(
        default=32,
        ge=1,
        le=1000,
        description="Reactions processed per checkpoint",
    )


class AIScoringSettings(BaseSettings):
    """Weights for the action-selection heuristic.

    These are tuned heuristics, not derived values; tests pin the current
    defaults rather than treating them as correct.

    Attributes:
        attack_weight: Multiplier applied to average damage times target count.
        heal_weight: Multiplier applied to heal amount times injured ally count.
        heal_floor: Minimum score of a heal that has someone to heal.
        buff_early: Buff score in the opening rounds.
        buff_late: Buff score afterwards.
        debuff_per_enemy: Score per still-dangerous enemy.
        debuff_floor: Debuff score when no enemy is dangerous.
        dangerous_enemy_hp: HP above which an enemy counts as still dangerous.
        template_early: Template score in the opening rounds.
        template_late: Template score afterwards.
        template_concentrating: Template score while the actor concentrates.
        early_rounds: Last round counted as "opening".
    """

    model_config = SettingsConfigDict(
        env_prefix="ENCOUNTER_SIM_AI_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    attack_weight: float = Field(default=10.0, ge=0)
    heal_weight: float = Field(default=15.0, ge=0)
    heal_floor: float = Field(default=10.0, ge=0)
    buff_early: float = Field(default=50.0, ge=0)
    buff_late: float = Field(default=20.0, ge=0)
    debuff_per_enemy: float = Field(default=30.0, ge=0)
    debuff_floor: float = Field(default=10.0, ge=0)
    dangerous_enemy_hp: int = Field(default=20, ge=0)
    template_early: float = Field(default=100.0, ge=0)
    template_late: float = Field(default=40.0, ge=0)
    template_concentrating: float = Field(default=5.0, ge=0)
    early_rounds: int = Field(default=2, ge=0)


class OrchestratorSettings(BaseSettings):
    """Configuration for batch (Two-Pass) orchestration.

    Attributes:
        default_iterations: Iterations used when a request does not say.
        chunk_size: Iterations per chunk between suspension points.
        lightweight_threshold: Iteration count above which only the survey runs.
        tier_b_buckets: Default number of one-percent buckets (maxK).
        include_death_runs: Also re-simulate every seed with a death at lean fidelity.
        template_cache_capacity: Bound of the template-resolution cache.
        run_cache_capacity: Bound of the survey-run cache.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENCOUNTER_SIM_BATCH_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    default_iterations: int = Field(default=1000, ge=1)
    chunk_size: int = Field(default=150, ge=1, le=10000)
    lightweight_threshold: int = Field(default=20000, ge=1)
    tier_b_buckets: int = Field(default=100, ge=1, le=1000)
    include_death_runs: bool = Field(default=False)
    template_cache_capacity: int = Field(default=1000, ge=1)
    run_cache_capacity: int = Field(default=5000, ge=0)

    @model_validator(mode="after")
    def validate_chunking(self) -> "OrchestratorSettings":
        """Ensure a chunk never exceeds the lightweight threshold.

        Returns:
            Self if validation passes.

        Raises:
            ConfigurationError: If chunk_size > lightweight_threshold.
        """
        if self.chunk_size > self.lightweight_threshold:
            raise ConfigurationError(
                f"chunk_size ({self.chunk_size}) must not exceed "
                f"lightweight_threshold ({self.lightweight_threshold})",
                config_key="chunk_size",
            )
        return self


class BalancerSettings(BaseSettings):
    """Configuration for the auto-balancer.

    Attributes:
        iterations: Survey runs per assessment.
        max_steps: Adjustment steps before giving up on the target tier.
        hp_step: Fractional HP change applied per step.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENCOUNTER_SIM_BALANCER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    iterations: int = Field(default=200, ge=1)
    max_steps: int = Field(default=10, ge=0, le=100)
    hp_step: float = Field(default=0.10, gt=0, lt=1)


class Settings(BaseSettings):
    """Main settings aggregating all configuration domains.

    Attributes:
        app_name: Application name.
        engine_version: Version tag used to invalidate shared caches.
        debug: Enable debug mode.
        log_level: Application logging level.
        engine: Encounter engine settings.
        ai: Action scoring weights.
        batch: Orchestration settings.
        balancer: Auto-balancer settings.
    """

    model_config = SettingsConfigDict(
        env_prefix="ENCOUNTER_SIM_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        env_nested_delimiter="__",
    )

    app_name: str = Field(default="Encounter Simulator", description="Application name")
    engine_version: str = Field(default=ENGINE_VERSION, description="Engine version tag")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Logging level",
    )

    engine: EngineSettings = Field(default_factory=EngineSettings)
    ai: AIScoringSettings = Field(default_factory=AIScoringSettings)
    batch: OrchestratorSettings = Field(default_factory=OrchestratorSettings)
    balancer: BalancerSettings = Field(default_factory=BalancerSettings)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the settings singleton.

    Returns:
        The cached Settings instance.

    Raises:
        ConfigurationError: If configuration is missing or invalid.
    """
    try:
        return Settings()
    except ConfigurationError:
        raise
    except Exception as exc:
        raise ConfigurationError(
            f"Failed to load simulator settings: {exc}",
            details={"original_error": str(exc)},
        ) from exc


def clear_settings_cache() -> None:
    """Clear the settings cache, forcing a reload on next access.

    Example:
        >>> clear_settings_cache()
        >>> settings = get_settings()  # Reloads from environment
    """
    get_settings.cache_clear()


__all__ = [
    "EngineSettings",
    "AIScoringSettings",
    "OrchestratorSettings",
    "BalancerSettings",
    "Settings",
    "get_settings",
    "clear_settings_cache",
]
