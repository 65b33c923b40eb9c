"""Integration tests for assessing and adjusting encounters."""

from __future__ import annotations

from collections.abc import Callable

from encounter_sim.balancer import AutoBalancer, classify_tier, compute_metrics, contextual_tier
from encounter_sim.core.config import BalancerSettings, Settings
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import DifficultyTier
from encounter_sim.models.timeline import AutoAdjustRequest, Encounter
from encounter_sim.service import auto_adjust


class TestContextualDifficulty:
    """Tests for difficulty in the context of a depleted party."""

    def test_safe_encounter_depends_on_resources(self) -> None:
        """Test that a safe fight becomes deadly for a drained party."""
        assert contextual_tier(DifficultyTier.SAFE, 10.0) is DifficultyTier.FAILED
        assert contextual_tier(DifficultyTier.SAFE, 100.0) is DifficultyTier.SAFE

    def test_assessments_only_shift_upward(
        self, fighter: Creature, cleric: Creature, goblin_encounter: Encounter
    ) -> None:
        """Test that fewer resources never make an encounter easier."""
        balancer = AutoBalancer()
        fresh = balancer.assess([fighter, cleric], goblin_encounter, iterations=10, seed=3)
        drained = balancer.assess(
            [fighter, cleric], goblin_encounter, resources_remaining_pct=30.0, iterations=10, seed=3
        )

        assert fresh.isolated_tier is drained.isolated_tier
        assert drained.contextual_tier >= fresh.contextual_tier


class TestAdjustment:
    """Tests for the auto-balancer end to end."""

    def test_deadly_encounter_gets_easier(
        self, make_creature: Callable[..., Creature], fighter: Creature
    ) -> None:
        """Test that an overwhelming monster loses HP toward a safe target."""
        titan = make_creature("titan", hp=300, ac=12, dpr="4d12+10", to_hit=12)
        request = AutoAdjustRequest(
            party=[fighter],
            encounter=Encounter(name="Titan", monsters=[titan]),
            target_tier=DifficultyTier.SAFE,
            iterations=6,
        )
        settings = Settings(balancer=BalancerSettings(max_steps=3, hp_step=0.2))

        result = auto_adjust(request, settings=settings)

        assert result.before.isolated_tier is DifficultyTier.FAILED
        assert result.steps >= 1
        assert result.deltas[0].hp < 0
        assert result.adjusted_monsters[0].hp < 300
        assert titan.hp == 300

    def test_survey_metrics_match_assessment(
        self, fighter: Creature, cleric: Creature, goblin_encounter: Encounter
    ) -> None:
        """Test that an assessment classifies its own survey."""
        balancer = AutoBalancer()
        runs = balancer.survey([fighter, cleric], goblin_encounter, iterations=8, seed=40)
        assessment = balancer.assess([fighter, cleric], goblin_encounter, iterations=8, seed=40)

        metrics = compute_metrics(runs, 2)
        assert assessment.metrics == metrics
        assert assessment.isolated_tier is classify_tier(metrics)
