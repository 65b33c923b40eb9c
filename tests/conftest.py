"""Pytest configuration and shared fixtures.

This module provides common fixtures and configuration for all tests
in the Encounter Simulator test suite.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest


if TYPE_CHECKING:
    from collections.abc import Callable, Generator


# =============================================================================
# Configuration Fixtures
# =============================================================================


@pytest.fixture(scope="session", autouse=True)
def quiet_logging() -> None:
    """Keep simulator logging at WARNING so batch runs stay silent."""
    from encounter_sim.core.logging import configure_logging

    configure_logging(level="WARNING")


@pytest.fixture(autouse=True)
def reset_settings_cache() -> Generator[None, None, None]:
    """Reset the settings cache before and after each test."""
    from encounter_sim.core.config import clear_settings_cache

    clear_settings_cache()
    yield
    clear_settings_cache()


@pytest.fixture
def settings() -> Any:
    """Provide default simulator settings.

    Returns:
        Settings instance built from defaults.
    """
    from encounter_sim.core.config import Settings

    return Settings()


@pytest.fixture
def mock_env_vars(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set up mock environment variables for testing.

    Returns:
        Dictionary of environment variables that were set.
    """
    env_vars = {
        "ENCOUNTER_SIM_DEBUG": "true",
        "ENCOUNTER_SIM_LOG_LEVEL": "DEBUG",
        "ENCOUNTER_SIM_ENGINE_MAX_ROUNDS": "12",
        "ENCOUNTER_SIM_BATCH_CHUNK_SIZE": "25",
    }
    for key, value in env_vars.items():
        monkeypatch.setenv(key, value)
    return env_vars


# =============================================================================
# Engine Fixtures
# =============================================================================


@pytest.fixture
def dice_roller() -> Any:
    """Provide a seeded dice roller for deterministic tests.

    Returns:
        DiceRoller with fixed seed.
    """
    from encounter_sim.engine.dice import DiceRoller

    return DiceRoller(seed=42)


# =============================================================================
# Creature Fixtures
# =============================================================================


@pytest.fixture
def make_creature() -> Callable[..., Any]:
    """Provide a factory for creatures with a single melee attack.

    Returns:
        Callable taking creature fields as keyword arguments.
    """
    from encounter_sim.models.actions import AttackAction
    from encounter_sim.models.creature import Creature

    def factory(
        creature_id: str,
        *,
        mode: str = "monster",
        hp: float = 10,
        ac: float = 12,
        dpr: int | str = "1d6+2",
        to_hit: int | str = 4,
        **fields: Any,
    ) -> Creature:
        fields.setdefault(
            "actions",
            [AttackAction(id=f"{creature_id}-attack", name="Attack", dpr=dpr, to_hit=to_hit)],
        )
        return Creature(
            id=creature_id,
            name=creature_id.replace("-", " ").title(),
            mode=mode,
            hp=hp,
            ac=ac,
            **fields,
        )

    return factory


@pytest.fixture
def fighter() -> Any:
    """Create a level 5 fighter.

    Returns:
        Player Creature with hit dice and Action Surge.
    """
    from encounter_sim.models.actions import AttackAction
    from encounter_sim.models.creature import Creature

    return Creature(
        id="fighter",
        name="Fighter",
        mode="player",
        hp=44,
        ac=18,
        save_bonus=3,
        initiative_bonus=1,
        actions=[
            AttackAction(id="longsword", name="Longsword", dpr="1d8+4", to_hit=7, targets=2),
        ],
        class_resources={"action surge": 1},
        hit_dice="5d10",
        con_modifier=2,
    )


@pytest.fixture
def cleric() -> Any:
    """Create a level 5 cleric with healing and Bless.

    Returns:
        Player Creature with spell slots.
    """
    from encounter_sim.models.actions import (
        AttackAction,
        DiscreteCost,
        HealAction,
        TemplateAction,
        TemplateOptions,
    )
    from encounter_sim.models.creature import Creature

    return Creature(
        id="cleric",
        name="Cleric",
        mode="player",
        hp=38,
        ac=18,
        save_bonus=4,
        actions=[
            AttackAction(id="mace", name="Mace", dpr="1d6+3", to_hit=6),
            HealAction(
                id="healing-word",
                name="Healing Word",
                amount="1d4+4",
                tags=["spell"],
                cost=[
                    DiscreteCost(resource="bonus_action"),
                    DiscreteCost(resource="spell_slot", resource_key="1"),
                ],
            ),
            TemplateAction(
                id="bless",
                name="Bless",
                template_options=TemplateOptions(template_name="Bless"),
                cost=[
                    DiscreteCost(resource="action"),
                    DiscreteCost(resource="spell_slot", resource_key="1"),
                ],
            ),
        ],
        spell_slots={1: 4, 2: 3, 3: 2},
        hit_dice="5d8",
        con_modifier=1,
    )


@pytest.fixture
def goblin(make_creature: Callable[..., Any]) -> Any:
    """Create a goblin.

    Returns:
        Monster Creature with 7 HP.
    """
    return make_creature("goblin", hp=7, ac=15, dpr="1d6+2", to_hit=4)


@pytest.fixture
def ogre(make_creature: Callable[..., Any]) -> Any:
    """Create an ogre.

    Returns:
        Monster Creature with 59 HP.
    """
    return make_creature("ogre", hp=59, ac=11, dpr="2d8+4", to_hit=6)


@pytest.fixture
def goblin_encounter(goblin: Any) -> Any:
    """Create an encounter with three goblins.

    Returns:
        Encounter instance.
    """
    from encounter_sim.models.timeline import Encounter

    return Encounter(name="Goblin Ambush", monsters=[goblin.model_copy(update={"count": 3.0})])


@pytest.fixture
def simulation_request(fighter: Any, cleric: Any, goblin_encounter: Any, ogre: Any) -> Any:
    """Create a two-encounter day with a short rest between fights.

    Returns:
        SimulationRequest with a fixed seed and few iterations.
    """
    from encounter_sim.models.timeline import Encounter, ShortRest, SimulationRequest

    return SimulationRequest(
        party=[fighter, cleric],
        timeline=[
            goblin_encounter,
            ShortRest(),
            Encounter(name="Ogre Den", monsters=[ogre]),
        ],
        iterations=40,
        seed=1000,
    )
