"""Auto-balancer: encounter assessment and stat-delta proposals.

The balancer surveys one encounter against a fresh party, classifies its
isolated tier and shifts that by the party's remaining resources. To move
an encounter toward a target tier it nudges one stat per monster, chosen
by the monster's role, and re-surveys after every step. Proposals are
advisory: the caller's creatures are never modified.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

from encounter_sim.balancer.tiers import (
    classify_tier,
    compute_metrics,
    contextual_tier,
    required_isolated_tier,
)
from encounter_sim.core.config import Settings, get_settings
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.targeting import BASELINE_AC, attack_dpr, hit_chance
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.actions import AttackAction, DebuffAction
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import DifficultyTier, MonsterRole
from encounter_sim.models.results import (
    AutoAdjustResult,
    EncounterAssessment,
    LightweightRun,
    StatDelta,
)
from encounter_sim.models.timeline import AutoAdjustRequest, Encounter
from encounter_sim.orchestration.runner import AdventuringDayRunner


logger = get_logger(__name__)

MINION_HP_RATIO = 0.2
MINION_MIN_COUNT = 4
BOSS_HP_SHARE = 0.5
BRUTE_MAX_AC = 14
STRIKER_MIN_HIT_CHANCE = 0.6
RANGED_MARKERS = ("ranged", "bow")


# =============================================================================
# Roles
# =============================================================================


def _is_ranged(action: AttackAction) -> bool:
    labels = [action.name.lower(), *(tag.lower() for tag in action.tags)]
    return any(marker in label for label in labels for marker in RANGED_MARKERS)


def detect_role(
    monster: Creature,
    monsters: Sequence[Creature],
    party: Sequence[Creature],
) -> MonsterRole:
    """Assign a balancing role to a monster.

    Checked in order: minion (weak and numerous), boss (legendary or
    carrying most of the encounter's HP), brute (melee and lightly
    armored), striker (accurate ranged attacker), controller (imposes
    conditions).

    Args:
        monster: The monster to classify.
        monsters: Every monster of the encounter.
        party: The party it faces.

    Returns:
        The role; UNKNOWN when no rule matches.
    """
    party_dpr = sum(attack_dpr(member.all_actions) * member.count for member in party)
    if monster.hp < MINION_HP_RATIO * party_dpr and monster.count >= MINION_MIN_COUNT:
        return MonsterRole.MINION

    actions = monster.all_actions
    total_hp = sum(m.hp * m.count for m in monsters)
    if any("legendary" in action.name.lower() for action in actions) or (
        total_hp > 0 and monster.hp * monster.count > BOSS_HP_SHARE * total_hp
    ):
        return MonsterRole.BOSS

    attacks = [a for a in actions if isinstance(a, AttackAction)]
    ranged = [a for a in attacks if _is_ranged(a)]
    if attacks and not ranged and monster.ac < BRUTE_MAX_AC:
        return MonsterRole.BRUTE
    if any(
        hit_chance(BASELINE_AC, DiceRoller.average(a.to_hit)) > STRIKER_MIN_HIT_CHANCE
        for a in ranged
    ):
        return MonsterRole.STRIKER
    if any(
        isinstance(a, DebuffAction) or (isinstance(a, AttackAction) and a.rider_effect is not None)
        for a in actions
    ):
        return MonsterRole.CONTROLLER
    return MonsterRole.UNKNOWN


# =============================================================================
# Adjustment
# =============================================================================


@dataclass
class _Adjustment:
    """Cumulative delta for one monster, applied to its original definition."""

    original: Creature
    role: MonsterRole
    hp: float = 0.0
    ac: float = 0.0
    save_bonus: float = 0.0

    def step(self, direction: int, hp_step: float) -> None:
        if self.role is MonsterRole.STRIKER:
            self.ac += direction
        elif self.role is MonsterRole.CONTROLLER:
            self.save_bonus += direction
        else:
            self.hp += direction * hp_step * self.original.hp

    def apply(self) -> Creature:
        original = self.original
        return original.model_copy(
            update={
                "hp": max(1.0, original.hp + self.hp),
                "ac": min(50.0, max(0.0, original.ac + self.ac)),
                "save_bonus": min(30.0, max(-10.0, original.save_bonus + self.save_bonus)),
            }
        )

    def delta(self) -> StatDelta:
        return StatDelta(
            creature_id=self.original.id,
            role=self.role,
            hp=self.hp,
            ac=self.ac,
            save_bonus=self.save_bonus,
        )


class AutoBalancer:
    """Classifies encounters and proposes stat deltas toward a target tier.

    Example:
        >>> balancer = AutoBalancer()
        >>> result = balancer.auto_adjust(request)
        >>> result.after.isolated_tier
        <DifficultyTier.CHALLENGING: 1>
    """

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        template_cache: TemplateCache | None = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.template_cache = template_cache or TemplateCache(
            self.settings.batch.template_cache_capacity,
            version=self.settings.engine_version,
        )

    def survey(
        self,
        party: list[Creature],
        encounter: Encounter,
        *,
        iterations: int,
        seed: int,
    ) -> list[LightweightRun]:
        """Survey one encounter against a fresh party for seeds ``seed .. seed + iterations - 1``."""
        runner = AdventuringDayRunner(
            party,
            [encounter],
            settings=self.settings,
            template_cache=self.template_cache,
        )
        return [runner.survey(seed + i) for i in range(iterations)]

    def assess(
        self,
        party: list[Creature],
        encounter: Encounter,
        *,
        resources_remaining_pct: float = 100.0,
        iterations: int | None = None,
        seed: int = 0,
    ) -> EncounterAssessment:
        """Classify an encounter in isolation and in context.

        Args:
            party: Player characters at full resources.
            encounter: Encounter to classify.
            resources_remaining_pct: Party resources left entering it.
            iterations: Survey runs; defaults to the balancer setting.
            seed: Base seed of the survey.

        Returns:
            Metrics plus isolated and contextual tiers.
        """
        runs = self.survey(
            party,
            encounter,
            iterations=iterations or self.settings.balancer.iterations,
            seed=seed,
        )
        party_size = _party_size(party)
        metrics = compute_metrics(runs, party_size)
        isolated = classify_tier(metrics)
        assessment = EncounterAssessment(
            metrics=metrics,
            isolated_tier=isolated,
            contextual_tier=contextual_tier(isolated, resources_remaining_pct),
            resources_remaining_pct=resources_remaining_pct,
        )
        logger.debug(
            "Encounter assessed",
            encounter=encounter.name,
            isolated=isolated.label,
            contextual=assessment.contextual_tier.label,
            drain_pct=metrics.drain_pct,
        )
        return assessment

    def auto_adjust(self, request: AutoAdjustRequest) -> AutoAdjustResult:
        """Propose stat deltas that move an encounter toward a target tier.

        Each step moves every monster one increment in the same direction:
        easier while the encounter is harder than the required isolated
        tier, harder otherwise. The loop stops once the tier reaches or
        crosses the required tier, or after the configured step limit.

        Args:
            request: Party, encounter, target tier and party resources.

        Returns:
            The cumulative deltas, adjusted monsters and the before/after
            assessments.
        """
        settings = self.settings.balancer
        iterations = request.iterations or settings.iterations
        party = list(request.party)
        encounter = request.encounter
        pct = request.resources_remaining_pct

        before = self.assess(
            party, encounter, resources_remaining_pct=pct, iterations=iterations, seed=request.seed
        )
        required = required_isolated_tier(request.target_tier, pct)
        adjustments = [
            _Adjustment(original=m, role=detect_role(m, encounter.monsters, party))
            for m in encounter.monsters
        ]
        logger.info(
            "Auto-adjust started",
            target=request.target_tier.label,
            required=required.label if required is not None else None,
            current=before.isolated_tier.label,
            roles={a.original.id: a.role.value for a in adjustments},
        )

        goal = required if required is not None else DifficultyTier.TRIVIAL
        after = before
        steps = 0
        if after.isolated_tier != goal:
            start_direction = -1 if after.isolated_tier > goal else 1
            while steps < settings.max_steps:
                for adjustment in adjustments:
                    adjustment.step(start_direction, settings.hp_step)
                steps += 1
                encounter = encounter.model_copy(
                    update={"monsters": [a.apply() for a in adjustments]}
                )
                after = self.assess(
                    party, encounter, resources_remaining_pct=pct, iterations=iterations, seed=request.seed
                )
                logger.debug("Adjustment step", step=steps, tier=after.isolated_tier.label)
                if (after.isolated_tier - goal) * start_direction >= 0:
                    break

        reached = required is not None and after.isolated_tier == required
        logger.info(
            "Auto-adjust finished",
            steps=steps,
            reached=reached,
            final=after.isolated_tier.label,
        )
        return AutoAdjustResult(
            target_tier=request.target_tier,
            required_isolated_tier=required,
            reached=reached,
            steps=steps,
            deltas=[a.delta() for a in adjustments],
            adjusted_monsters=[a.apply() for a in adjustments],
            before=before,
            after=after,
        )


def _party_size(party: Sequence[Creature]) -> int:
    """Largest number of party members a run can field."""
    return max(1, sum(math.ceil(member.count) for member in party))


__all__ = [
    "MINION_HP_RATIO",
    "MINION_MIN_COUNT",
    "BOSS_HP_SHARE",
    "BRUTE_MAX_AC",
    "STRIKER_MIN_HIT_CHANCE",
    "detect_role",
    "AutoBalancer",
]
