"""Core module providing configuration, logging, and base exceptions.

This module is the foundation of the encounter simulator, providing the
infrastructure shared by the engine, the orchestrator and the balancer.

Exports:
    Exceptions:
        EncounterSimError: Base exception for all simulator errors.
        ConfigurationError: Configuration-related errors.
        ValidationError: Malformed request data.
        InternalInvariantError: Inconsistent engine state within one run.
        CancelledError: Cooperative batch cancellation.

    Configuration:
        Settings: Main settings class.
        get_settings: Get the settings singleton.
        clear_settings_cache: Force settings reload.

    Logging:
        configure_logging: Set up structured logging.
        get_logger: Get a configured logger instance.
        bind_context: Add context to log entries.
        clear_context: Clear logging context.
"""

from __future__ import annotations

from encounter_sim.core.config import (
    AIScoringSettings,
    BalancerSettings,
    EngineSettings,
    OrchestratorSettings,
    Settings,
    clear_settings_cache,
    get_settings,
)
from encounter_sim.core.exceptions import (
    CancelledError,
    CombatError,
    ConfigurationError,
    DiceRollError,
    EncounterSimError,
    EncounterTimeout,
    GameEngineError,
    InternalInvariantError,
    OrchestrationError,
    ResourceError,
    TurnManagementError,
    ValidationError,
)
from encounter_sim.core.logging import (
    bind_context,
    clear_context,
    configure_logging,
    get_logger,
)


__all__ = [
    # Config
    "AIScoringSettings",
    "BalancerSettings",
    "EngineSettings",
    "OrchestratorSettings",
    "Settings",
    "clear_settings_cache",
    "get_settings",
    # Exceptions
    "CancelledError",
    "CombatError",
    "ConfigurationError",
    "DiceRollError",
    "EncounterSimError",
    "EncounterTimeout",
    "GameEngineError",
    "InternalInvariantError",
    "OrchestrationError",
    "ResourceError",
    "TurnManagementError",
    "ValidationError",
    # Logging
    "bind_context",
    "clear_context",
    "configure_logging",
    "get_logger",
]
