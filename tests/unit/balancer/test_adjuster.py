"""Tests for monster roles and the auto-balancer."""

from __future__ import annotations

from collections.abc import Callable

import pytest

from encounter_sim.balancer.adjuster import AutoBalancer, detect_role
from encounter_sim.balancer.tiers import contextual_tier
from encounter_sim.core.config import BalancerSettings, Settings
from encounter_sim.models.actions import AttackAction, DebuffAction
from encounter_sim.models.buffs import Buff
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import DifficultyTier, MonsterRole
from encounter_sim.models.timeline import AutoAdjustRequest, Encounter


class TestRoles:
    """Tests for role detection."""

    def test_minion(
        self, make_creature: Callable[..., Creature], fighter: Creature, cleric: Creature, ogre: Creature
    ) -> None:
        """Test that weak, numerous monsters are minions."""
        kobolds = make_creature("kobold", hp=2, count=5)

        assert detect_role(kobolds, [kobolds, ogre], [fighter, cleric]) is MonsterRole.MINION

    def test_boss_by_hp_share(self, goblin: Creature, ogre: Creature, fighter: Creature) -> None:
        """Test that a monster with most of the encounter's HP is the boss."""
        goblins = goblin.model_copy(update={"count": 3.0})

        assert detect_role(ogre, [goblins, ogre], [fighter]) is MonsterRole.BOSS

    def test_boss_by_legendary_action(
        self, make_creature: Callable[..., Creature], ogre: Creature, fighter: Creature
    ) -> None:
        """Test that legendary actions mark a boss."""
        lich = make_creature(
            "lich",
            hp=20,
            ac=17,
            actions=[AttackAction(id="tail", name="Legendary Tail", dpr="2d6")],
        )

        assert detect_role(lich, [lich, ogre], [fighter]) is MonsterRole.BOSS

    def test_brute(self, make_creature: Callable[..., Creature], ogre: Creature, fighter: Creature) -> None:
        """Test that a lightly armored melee monster is a brute."""
        orc = make_creature("orc", hp=15, ac=13)

        assert detect_role(orc, [orc, ogre], [fighter]) is MonsterRole.BRUTE

    def test_striker(self, make_creature: Callable[..., Creature], ogre: Creature, fighter: Creature) -> None:
        """Test that an accurate archer is a striker."""
        archer = make_creature(
            "archer",
            hp=15,
            ac=15,
            actions=[AttackAction(id="bow", name="Longbow", dpr="1d8+3", to_hit=7)],
        )

        assert detect_role(archer, [archer, ogre], [fighter]) is MonsterRole.STRIKER

    def test_controller(
        self, make_creature: Callable[..., Creature], ogre: Creature, fighter: Creature
    ) -> None:
        """Test that a condition-imposing monster is a controller."""
        hag = make_creature(
            "hag",
            hp=15,
            ac=15,
            actions=[
                DebuffAction(
                    id="curse",
                    name="Curse",
                    save_dc=13,
                    buff=Buff(display_name="Frightened", condition="frightened"),
                )
            ],
        )

        assert detect_role(hag, [hag, ogre], [fighter]) is MonsterRole.CONTROLLER

    def test_unknown(self, make_creature: Callable[..., Creature], ogre: Creature, fighter: Creature) -> None:
        """Test that a well-armored melee monster has no role."""
        knight = make_creature("knight", hp=15, ac=18)

        assert detect_role(knight, [knight, ogre], [fighter]) is MonsterRole.UNKNOWN


@pytest.fixture
def balancer() -> AutoBalancer:
    """Provide a balancer with a small step budget."""
    return AutoBalancer(Settings(balancer=BalancerSettings(iterations=10, max_steps=2)))


class TestAutoBalancer:
    """Tests for assessments and stat-delta proposals."""

    def test_assess_in_context(
        self,
        balancer: AutoBalancer,
        fighter: Creature,
        cleric: Creature,
        goblin_encounter: Encounter,
    ) -> None:
        """Test that the contextual tier shifts the isolated one."""
        assessment = balancer.assess(
            [fighter, cleric], goblin_encounter, resources_remaining_pct=10.0, iterations=8
        )

        assert assessment.metrics.party_size == 2
        assert assessment.contextual_tier is contextual_tier(assessment.isolated_tier, 10.0)
        assert assessment.resources_remaining_pct == 10.0

    def test_assess_is_deterministic(
        self,
        balancer: AutoBalancer,
        fighter: Creature,
        cleric: Creature,
        goblin_encounter: Encounter,
    ) -> None:
        """Test that the same seed gives the same assessment."""
        first = balancer.assess([fighter, cleric], goblin_encounter, iterations=6, seed=11)
        second = balancer.assess([fighter, cleric], goblin_encounter, iterations=6, seed=11)

        assert first == second

    def test_harder_steps_raise_hp(
        self, balancer: AutoBalancer, fighter: Creature, cleric: Creature, goblin: Creature
    ) -> None:
        """Test that aiming higher grows the lone monster's HP each step."""
        encounter = Encounter(name="Lone Goblin", monsters=[goblin])
        request = AutoAdjustRequest(
            party=[fighter, cleric],
            encounter=encounter,
            target_tier=DifficultyTier.BOSS,
            iterations=6,
        )

        result = balancer.auto_adjust(request)

        assert result.required_isolated_tier is DifficultyTier.BOSS
        assert not result.reached
        assert result.steps == 2
        assert result.deltas[0].role is MonsterRole.BOSS
        assert result.deltas[0].hp == pytest.approx(1.4)
        assert result.adjusted_monsters[0].hp == pytest.approx(8.4)
        assert request.encounter.monsters[0].hp == 7

    def test_unreachable_target(
        self, balancer: AutoBalancer, fighter: Creature, goblin_encounter: Encounter
    ) -> None:
        """Test a target that even a trivial encounter overshoots."""
        request = AutoAdjustRequest(
            party=[fighter],
            encounter=goblin_encounter,
            target_tier="trivial",
            resources_remaining_pct=50.0,
            iterations=4,
        )

        result = balancer.auto_adjust(request)

        assert result.required_isolated_tier is None
        assert not result.reached
        assert result.steps <= 2
