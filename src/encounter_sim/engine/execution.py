"""Execution Engine: runs one encounter to completion.

The engine instantiates combatants, rolls initiative and drives the
round/turn loop. Each turn the acting combatant picks actions with the
scorer until nothing affordable scores above zero; reactions fire at the
resolver's checkpoints. An encounter ends when a side has no living
combatants or when the round/turn cap is hit, which is a timeout outcome
rather than an error.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from encounter_sim.core.config import Settings
from encounter_sim.core.constants import RECHARGE_DIE
from encounter_sim.core.exceptions import EncounterTimeout
from encounter_sim.core.logging import get_logger
from encounter_sim.engine.ai import ActionScorer
from encounter_sim.engine.combatant import Combatant, CombatantState
from encounter_sim.engine.context import TurnContext
from encounter_sim.engine.dice import DiceRoller
from encounter_sim.engine.reactions import ReactionManager
from encounter_sim.engine.resolvers import ActionResolver
from encounter_sim.engine.resources import ResourceLedger, build_ledger, usage_key
from encounter_sim.engine.template_cache import TemplateCache
from encounter_sim.engine.turn_manager import InitiativeTracker
from encounter_sim.models.creature import Creature
from encounter_sim.models.enums import (
    BuffDuration,
    EncounterOutcome,
    EventKind,
    FidelityMode,
    FrequencyKind,
    ResetType,
    Side,
)
from encounter_sim.models.events import Event
from encounter_sim.models.results import RoundSummary
from encounter_sim.models.timeline import Encounter


logger = get_logger(__name__)


# =============================================================================
# Party state carried between encounters
# =============================================================================


@dataclass
class PartyMember:
    """One party copy whose state persists across the adventuring day.

    Attributes:
        id: Combatant id used in every encounter of the day.
        name: Display name.
        creature: Originating definition.
        creature_index: Index of the creature in the party roster.
        hp: Hit points carried into the next encounter.
        temp_hp: Temporary hit points carried into the next encounter.
        arcane_ward: Absorption pool carried into the next encounter.
        ledger: Resource balances, mutated in place by each encounter.
    """

    id: str
    name: str
    creature: Creature
    creature_index: int
    hp: float
    temp_hp: float
    arcane_ward: float
    ledger: ResourceLedger

    @property
    def max_hp(self) -> float:
        """Maximum hit points."""
        return self.creature.hp

    @property
    def alive(self) -> bool:
        """Whether the member has hit points left."""
        return self.hp > 0


def copy_count(creature: Creature, dice: DiceRoller) -> int:
    """Sample how many copies of a creature appear in this run.

    A fractional count gives ``floor(count)`` copies plus one more with
    probability equal to the fractional part.
    """
    whole = int(creature.count)
    fraction = creature.count - whole
    if fraction > 0 and dice.chance(fraction):
        whole += 1
    return whole


def _copy_names(creature: Creature, copies: int) -> list[tuple[str, str]]:
    if copies == 1:
        return [(f"{creature.id}-0", creature.name)]
    return [(f"{creature.id}-{i}", f"{creature.name} {i + 1}") for i in range(copies)]


def instantiate_party(party: list[Creature], dice: DiceRoller) -> list[PartyMember]:
    """Create the party copies for one adventuring day.

    Args:
        party: Player creatures.
        dice: Dice roller of the run.

    Returns:
        Members at full hit points and resources.
    """
    members = []
    for index, creature in enumerate(party):
        for member_id, name in _copy_names(creature, copy_count(creature, dice)):
            members.append(
                PartyMember(
                    id=member_id,
                    name=name,
                    creature=creature,
                    creature_index=index,
                    hp=creature.hp,
                    temp_hp=0.0,
                    arcane_ward=creature.max_arcane_ward_hp,
                    ledger=build_ledger(creature),
                )
            )
    return members


# =============================================================================
# Encounter results
# =============================================================================


@dataclass
class EncounterRun:
    """Raw outcome of one encounter, before scoring.

    Attributes:
        outcome: How the encounter ended.
        rounds: Rounds started.
        turns: Turns started.
        combatants: Every combatant in its final state, in roster order.
        events: Events retained by the bus.
        events_dropped: Events emitted but not retained.
        round_summaries: Per-round records (lean and full fidelity only).
        diagnostics: Non-fatal problems seen while running.
    """

    outcome: EncounterOutcome
    rounds: int
    turns: int
    combatants: list[Combatant]
    events: list[Event] = field(default_factory=list)
    events_dropped: int = 0
    round_summaries: list[RoundSummary] = field(default_factory=list)
    diagnostics: list[str] = field(default_factory=list)

    def side(self, side: Side) -> list[Combatant]:
        """Combatants of one side."""
        return [c for c in self.combatants if c.side is side]


def retention_for(fidelity: FidelityMode, settings: Settings) -> int | None:
    """Events the bus keeps at a fidelity mode (None keeps all)."""
    if fidelity is FidelityMode.FULL:
        return None
    if fidelity is FidelityMode.LEAN:
        return settings.engine.event_retention
    return 0


def _round_summary(ctx: TurnContext, *, detailed: bool) -> RoundSummary:
    party = [c for c in ctx.combatants.values() if c.side is Side.PLAYER]
    monsters = [c for c in ctx.combatants.values() if c.side is Side.MONSTER]
    return RoundSummary(
        round=ctx.round,
        party_hp=sum(c.state.hp for c in party),
        monster_hp=sum(c.state.hp for c in monsters),
        party_alive=sum(1 for c in party if c.alive),
        monsters_alive=sum(1 for c in monsters if c.alive),
        combatants=[c.snapshot() for c in ctx.combatants.values()] if detailed else [],
    )


# =============================================================================
# Engine
# =============================================================================


class ExecutionEngine:
    """Runs encounters for one adventuring-day run.

    One engine is used per run; its dice roller carries the run's RNG
    stream from encounter to encounter.

    Example:
        >>> engine = ExecutionEngine(dice=DiceRoller(seed=7), settings=get_settings())
        >>> party = instantiate_party(request.party, engine.dice)
        >>> run = engine.run_encounter(party, request.encounters[0])
        >>> run.outcome
        <EncounterOutcome.PLAYERS_WIN: 'players_win'>
    """

    def __init__(
        self,
        *,
        dice: DiceRoller,
        settings: Settings,
        template_cache: TemplateCache | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            dice: Dice roller of the run.
            settings: Simulator settings.
            template_cache: Cache shared across runs; a private one is
                created when omitted.
        """
        self.dice = dice
        self.settings = settings
        self.template_cache = template_cache or TemplateCache(
            settings.batch.template_cache_capacity,
            version=settings.engine_version,
        )

    # -------------------------------------------------------------------------
    # Setup
    # -------------------------------------------------------------------------

    def _build_combatants(self, party: list[PartyMember], encounter: Encounter) -> list[Combatant]:
        combatants = []
        for member in party:
            state = CombatantState(
                hp=member.hp,
                max_hp=member.max_hp,
                ledger=member.ledger,
                temp_hp=member.temp_hp,
                arcane_ward=member.arcane_ward,
                max_arcane_ward=member.creature.max_arcane_ward_hp,
                dead=member.hp <= 0,
                surprised=encounter.players_surprised,
            )
            combatants.append(
                Combatant(
                    id=member.id,
                    name=member.name,
                    side=Side.PLAYER,
                    creature=member.creature,
                    creature_index=member.creature_index,
                    state=state,
                    actions=list(member.creature.all_actions),
                )
            )
        for index, creature in enumerate(encounter.monsters):
            for monster_id, name in _copy_names(creature, copy_count(creature, self.dice)):
                state = CombatantState(
                    hp=creature.hp,
                    max_hp=creature.hp,
                    ledger=build_ledger(creature),
                    arcane_ward=creature.max_arcane_ward_hp,
                    max_arcane_ward=creature.max_arcane_ward_hp,
                    surprised=encounter.monsters_surprised,
                )
                combatants.append(
                    Combatant(
                        id=monster_id,
                        name=name,
                        side=Side.MONSTER,
                        creature=creature,
                        creature_index=index,
                        state=state,
                        actions=list(creature.all_actions),
                    )
                )
        return combatants

    def _prepare(self, ctx: TurnContext, reactions: ReactionManager) -> None:
        """Apply encounter-start resets and starting buffs."""
        for combatant in ctx.living():
            ctx.reset_resources(combatant.id, ResetType.ENCOUNTER)
        for combatant in ctx.living():
            for buff in combatant.creature.all_initial_buffs:
                ctx.add_buff(combatant.id, buff, source_id=combatant.id)
        reactions.process_pending()

    # -------------------------------------------------------------------------
    # Encounter loop
    # -------------------------------------------------------------------------

    def run_encounter(
        self,
        party: list[PartyMember],
        encounter: Encounter,
        *,
        fidelity: FidelityMode = FidelityMode.SURVEY,
    ) -> EncounterRun:
        """Run one encounter and write the party's state back.

        Args:
            party: Party members; their HP, temp HP, ward and ledger are
                updated in place.
            encounter: The encounter to fight.
            fidelity: How much of the event log and round history to keep.

        Returns:
            The raw encounter outcome.

        Raises:
            InternalInvariantError: If the encounter state becomes inconsistent.
        """
        engine_settings = self.settings.engine
        combatants = self._build_combatants(party, encounter)
        ctx = TurnContext(
            combatants,
            dice=self.dice,
            settings=engine_settings,
            retention=retention_for(fidelity, self.settings),
        )
        reactions = ReactionManager(ctx, chain_limit=engine_settings.reaction_chain_limit)
        resolver = ActionResolver(ctx, reactions, template_cache=self.template_cache)
        scorer = ActionScorer(ctx, resolver, self.settings.ai)
        tracker = InitiativeTracker(
            self.dice,
            max_rounds=engine_settings.max_rounds,
            max_turns=engine_settings.max_turns,
        )

        ctx.start()
        tracker.roll_all(list(ctx.combatants.values()))
        self._prepare(ctx, reactions)

        summaries: list[RoundSummary] = []
        timed_out = False
        try:
            while not ctx.is_over():
                ctx.round = tracker.start_round()
                self._run_round(ctx, reactions, resolver, scorer, tracker)
                if fidelity is not FidelityMode.SURVEY:
                    summaries.append(_round_summary(ctx, detailed=fidelity is FidelityMode.FULL))
        except EncounterTimeout as exc:
            timed_out = True
            logger.debug("Encounter hit its cap", reason=exc.message, round=ctx.round)
        finally:
            reactions.close()

        if not ctx.living(Side.PLAYER):
            outcome = EncounterOutcome.MONSTERS_WIN
        elif not ctx.living(Side.MONSTER):
            outcome = EncounterOutcome.PLAYERS_WIN
        else:
            outcome = EncounterOutcome.TIMEOUT
        ctx.emit(
            EventKind.ENCOUNTER_ENDED,
            detail={"outcome": outcome.value, "rounds": ctx.round, "timed_out": timed_out},
        )

        self._write_back(party, ctx)
        logger.debug(
            "Encounter finished",
            encounter=encounter.name,
            outcome=outcome.value,
            rounds=ctx.round,
            turns=tracker.turns_taken,
        )
        return EncounterRun(
            outcome=outcome,
            rounds=ctx.round,
            turns=tracker.turns_taken,
            combatants=list(ctx.combatants.values()),
            events=ctx.bus.events(),
            events_dropped=ctx.bus.dropped,
            round_summaries=summaries,
            diagnostics=list(ctx.diagnostics),
        )

    def _run_round(
        self,
        ctx: TurnContext,
        reactions: ReactionManager,
        resolver: ActionResolver,
        scorer: ActionScorer,
        tracker: InitiativeTracker,
    ) -> None:
        ctx.emit(EventKind.ROUND_STARTED)
        for combatant in ctx.living():
            ctx.reset_resources(combatant.id, ResetType.ROUND)

        for entry in tracker.initiative_order:
            if ctx.is_over():
                break
            combatant = ctx.get(entry.combatant_id)
            if not combatant.alive:
                continue
            ctx.turn = tracker.start_turn(combatant.id)
            ctx.active_id = combatant.id
            self._run_turn(ctx, combatant, reactions, resolver, scorer)
            ctx.active_id = None

        ctx.tick_durations()
        ctx.emit(EventKind.ROUND_ENDED)
        reactions.process_pending()

    def _run_turn(
        self,
        ctx: TurnContext,
        combatant: Combatant,
        reactions: ReactionManager,
        resolver: ActionResolver,
        scorer: ActionScorer,
    ) -> None:
        ctx.emit(EventKind.TURN_STARTED, actor_id=combatant.id)
        ctx.reset_resources(combatant.id, ResetType.TURN)
        self._recharge(ctx, combatant)

        if combatant.state.surprised and ctx.round == 1:
            ctx.emit(EventKind.ACTION_SKIPPED, actor_id=combatant.id, detail={"reason": "surprised"})
        elif not combatant.can_act:
            ctx.emit(EventKind.ACTION_SKIPPED, actor_id=combatant.id, detail={"reason": "incapacitated"})
        else:
            self._take_actions(ctx, combatant, resolver, scorer)

        if combatant.alive:
            ctx.expire_effects(combatant.id, BuffDuration.INSTANT)
            ctx.repeat_saves(combatant.id)
            reactions.process_pending()
            self._drain_immediate_actions(ctx, resolver)
        ctx.emit(EventKind.TURN_ENDED, actor_id=combatant.id)

    def _recharge(self, ctx: TurnContext, combatant: Combatant) -> None:
        """Roll to recharge each spent Recharge action."""
        ledger = combatant.state.ledger
        for action in combatant.actions:
            if action.freq.kind is not FrequencyKind.RECHARGE:
                continue
            key = usage_key(action.id)
            if ledger.amount(key) >= ledger.maximum(key):
                continue
            if self.dice.roll(RECHARGE_DIE) >= action.freq.recharge_on:
                ctx.restore_resource(combatant.id, key)

    def _take_actions(
        self,
        ctx: TurnContext,
        combatant: Combatant,
        resolver: ActionResolver,
        scorer: ActionScorer,
    ) -> None:
        attempted: set[str] = set()
        for _ in range(ctx.settings.max_actions_per_turn):
            if not combatant.can_act or ctx.is_over():
                return
            action = scorer.choose(combatant, attempted)
            if action is None:
                return
            attempted.add(action.id)
            resolver.execute(combatant, action)
            self._drain_immediate_actions(ctx, resolver)

    def _drain_immediate_actions(self, ctx: TurnContext, resolver: ActionResolver) -> None:
        """Run out-of-turn actions granted by reactions, without paying for them."""
        budget = ctx.settings.reaction_chain_limit
        while True:
            granted = ctx.take_immediate_actions()
            if not granted:
                return
            for grant in granted:
                if budget <= 0:
                    ctx.report(
                        "immediate action chain limit reached",
                        reaction=grant.reaction_id,
                    )
                    return
                budget -= 1
                actor = ctx.combatants.get(grant.combatant_id)
                action = actor.action(grant.action_id) if actor else None
                if actor is None or action is None or not actor.alive or ctx.is_over():
                    continue
                resolver.execute(actor, action, pay=False)

    @staticmethod
    def _write_back(party: list[PartyMember], ctx: TurnContext) -> None:
        for member in party:
            state = ctx.get(member.id).state
            member.hp = state.hp
            member.temp_hp = state.temp_hp
            member.arcane_ward = state.arcane_ward


__all__ = [
    "PartyMember",
    "EncounterRun",
    "ExecutionEngine",
    "copy_count",
    "instantiate_party",
    "retention_for",
]
