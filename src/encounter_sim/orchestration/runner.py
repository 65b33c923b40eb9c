"""Adventuring-day runner.

Runs one seed through the whole timeline: encounters in order, with the
party's hit points and resources carried between them and restored by
rests. A run is a pure function of (party, timeline, seed): the dice RNG
is reseeded from the seed before anything else happens.

Per-run failures are captured on the result instead of propagating, so
one bad seed never aborts a batch.
"""

from __future__ import annotations

from encounter_sim.core.config import Settings, get_settings
from encounter_sim.core.exceptions import EncounterSimError
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.execution import (
    EncounterRun,
    ExecutionEngine,
    PartyMember,
    instantiate_party,
)
from encounter_sim.engine.resources import HIT_DICE
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import FidelityMode, ResetType, RunStatus, Side
from encounter_sim.models.results import DayResult, EncounterResult, LightweightRun
from encounter_sim.models.timeline import Encounter, LongRest, ShortRest, TimelineStep
from encounter_sim.orchestration.scoring import party_resources_pct, run_score


logger = get_logger(__name__)


# =============================================================================
# Rests
# =============================================================================


def short_rest(members: list[PartyMember]) -> None:
    """Apply a short rest to the party.

    Unconscious members are stabilised at 1 HP, short-rest resources come
    back, and each member spends hit dice (average roll plus Constitution
    modifier) until at full HP or out of dice. Temporary HP ends.
    """
    for member in members:
        if member.hp <= 0:
            member.hp = 1.0
        member.ledger.reset(ResetType.SHORT_REST)
        member.temp_hp = 0.0
        _, sides = member.creature.hit_dice_pool
        if sides == 0:
            continue
        per_die = max(1.0, (sides + 1) / 2 + member.creature.con_modifier)
        while member.hp < member.max_hp and member.ledger.amount(HIT_DICE) >= 1:
            member.ledger.consume(HIT_DICE, 1)
            member.hp = min(member.max_hp, member.hp + per_die)


def long_rest(members: list[PartyMember]) -> None:
    """Apply a long rest: full hit points, ward and resources."""
    for member in members:
        member.hp = member.max_hp
        member.temp_hp = 0.0
        member.arcane_ward = member.creature.max_arcane_ward_hp
        member.ledger.reset(ResetType.LONG_REST)


# =============================================================================
# Runner
# =============================================================================


class AdventuringDayRunner:
    """Runs the adventuring day for individual seeds.

    Example:
        >>> runner = AdventuringDayRunner(request.party, request.timeline)
        >>> survey = runner.survey(42)
        >>> replay = runner.run(42, FidelityMode.FULL)
        >>> replay.final_score == survey.final_score
        True
    """

    def __init__(
        self,
        party: list[Creature],
        timeline: list[TimelineStep],
        *,
        settings: Settings | None = None,
        template_cache: TemplateCache | None = None,
    ) -> None:
        """Initialize the runner.

        Args:
            party: Player creatures.
            timeline: Encounters and rests, in order.
            settings: Simulator settings; defaults to the global settings.
            template_cache: Template cache shared across runs.
        """
        self.party = party
        self.timeline = timeline
        self.settings = settings or get_settings()
        self.template_cache = template_cache or TemplateCache(
            self.settings.batch.template_cache_capacity,
            version=self.settings.engine_version,
        )
        self.dice = DiceRoller(critical_rule=self.settings.engine.critical_hit_rule)

    def run(self, seed: int, fidelity: FidelityMode = FidelityMode.SURVEY) -> DayResult:
        """Run the whole day for one seed.

        Args:
            seed: Run seed.
            fidelity: How much detail to keep.

        Returns:
            The day result; status FAILED with an error on a per-run failure.
        """
        encounters: list[EncounterResult] = []
        try:
            return self._run(seed, fidelity, encounters)
        except EncounterSimError as exc:
            logger.warning("Run failed", seed=seed, error=exc.kind, message=exc.message)
            return DayResult(
                seed=seed,
                fidelity=fidelity,
                status=RunStatus.FAILED,
                encounters=encounters,
                final_score=encounters[-1].score if encounters else 0.0,
                error=exc.to_dict(),
            )

    def survey(self, seed: int) -> LightweightRun:
        """Run one seed without events and reduce it to a survey record."""
        return summarize(self.run(seed, FidelityMode.SURVEY))

    def _run(
        self,
        seed: int,
        fidelity: FidelityMode,
        encounters: list[EncounterResult],
    ) -> DayResult:
        self.dice.reseed(seed)
        members = instantiate_party(self.party, self.dice)
        engine = ExecutionEngine(
            dice=self.dice,
            settings=self.settings,
            template_cache=self.template_cache,
        )
        tpk_encounter: int | None = None
        for step in self.timeline:
            if isinstance(step, ShortRest):
                short_rest(members)
                continue
            if isinstance(step, LongRest):
                long_rest(members)
                continue
            if tpk_encounter is not None:
                break
            result = self._run_encounter(engine, members, step, len(encounters), fidelity)
            encounters.append(result)
            if result.survivors == 0:
                tpk_encounter = result.index
            elif step.short_rest_after:
                short_rest(members)

        return DayResult(
            seed=seed,
            fidelity=fidelity,
            encounters=encounters,
            final_score=encounters[-1].score if encounters else 0.0,
            tpk_encounter=tpk_encounter,
        )

    def _run_encounter(
        self,
        engine: ExecutionEngine,
        members: list[PartyMember],
        encounter: Encounter,
        index: int,
        fidelity: FidelityMode,
    ) -> EncounterResult:
        resources_start = party_resources_pct(members)
        run = engine.run_encounter(members, encounter, fidelity=fidelity)
        resources_end = party_resources_pct(members)
        return build_encounter_result(
            run,
            members,
            index=index,
            name=encounter.name,
            resources_start_pct=resources_start,
            resources_end_pct=resources_end,
            keep_events=fidelity is not FidelityMode.SURVEY,
        )


def build_encounter_result(
    run: EncounterRun,
    members: list[PartyMember],
    *,
    index: int,
    name: str,
    resources_start_pct: float,
    resources_end_pct: float,
    keep_events: bool = True,
) -> EncounterResult:
    """Score a raw encounter run and wrap it as an EncounterResult.

    Args:
        run: Raw outcome from the engine.
        members: Party members after the encounter.
        index: Position of the encounter in the day.
        name: Encounter name.
        resources_start_pct: Party resources entering.
        resources_end_pct: Party resources leaving.
        keep_events: Copy the retained events onto the result.

    Returns:
        The scored encounter result.
    """
    survivors = sum(1 for m in members if m.alive)
    party_hp = sum(max(0.0, m.hp) for m in members)
    monster_hp = sum(c.state.hp for c in run.side(Side.MONSTER))
    party_max_hp = sum(m.max_hp for m in members)
    return EncounterResult(
        index=index,
        name=name,
        outcome=run.outcome,
        rounds=run.rounds,
        turns=run.turns,
        score=run_score(survivors, party_max_hp, party_hp, monster_hp),
        deaths=len(members) - survivors,
        survivors=survivors,
        party_hp=party_hp,
        monster_hp=monster_hp,
        resources_start_pct=resources_start_pct,
        resources_end_pct=resources_end_pct,
        final_state=[c.snapshot() for c in run.combatants],
        round_summaries=run.round_summaries,
        events=run.events if keep_events else [],
        events_dropped=run.events_dropped,
        diagnostics=run.diagnostics,
    )


def summarize(day: DayResult) -> LightweightRun:
    """Reduce a day result to its fixed-size survey record.

    Args:
        day: A day result at any fidelity.

    Returns:
        The survey record for the run.
    """
    encounters = day.encounters
    last = encounters[-1] if encounters else None
    first_death = next((e.index for e in encounters if e.deaths > 0), None)
    hp_lost = 0.0
    if last is not None:
        hp_lost = sum(s.max_hp - s.hp for s in last.final_state if s.side is Side.PLAYER)
    return LightweightRun(
        seed=day.seed,
        status=day.status,
        encounter_scores=[e.score for e in encounters],
        encounter_deaths=[e.deaths for e in encounters],
        encounter_drain=[e.resource_drain_pct for e in encounters],
        encounter_outcomes=[e.outcome for e in encounters],
        final_score=day.final_score,
        hp_lost=hp_lost,
        survivors=last.survivors if last else 0,
        deaths=last.deaths if last else 0,
        first_death_encounter=first_death,
        tpk_encounter=day.tpk_encounter,
        total_rounds=sum(e.rounds for e in encounters),
        error=day.error,
    )


__all__ = [
    "short_rest",
    "long_rest",
    "AdventuringDayRunner",
    "build_encounter_result",
    "summarize",
]
