"""Enumeration types shared by the simulator's models and engine."""

from __future__ import annotations

from enum import IntEnum, StrEnum


class Side(StrEnum):
    """Which team a creature fights for."""

    PLAYER = "player"
    MONSTER = "monster"

    @property
    def opponent(self) -> Side:
        """Get the opposing side.

        Returns:
            The other side.
        """
        return Side.MONSTER if self is Side.PLAYER else Side.PLAYER


class ActionKind(StrEnum):
    """Tag of the Action union."""

    ATTACK = "attack"
    HEAL = "heal"
    BUFF = "buff"
    DEBUFF = "debuff"
    TEMPLATE = "template"


class TargetStrategy(StrEnum):
    """How an action picks its targets."""

    LEAST_HP = "least_hp"
    MOST_HP = "most_hp"
    HIGHEST_DPR = "highest_dpr"
    LOWEST_AC = "lowest_ac"
    HIGHEST_SURVIVABILITY = "highest_survivability"
    RANDOM = "random"
    SELF = "self"
    ALL = "all"


class FrequencyKind(StrEnum):
    """How often an action may be used."""

    AT_WILL = "at_will"
    ONCE_PER_FIGHT = "once_per_fight"
    ONCE_PER_DAY = "once_per_day"
    RECHARGE = "recharge"
    LIMITED = "limited"


class ResourceType(StrEnum):
    """Kinds of resource a cost or requirement can reference."""

    ACTION = "action"
    BONUS_ACTION = "bonus_action"
    REACTION = "reaction"
    MOVEMENT = "movement"
    SPELL_SLOT = "spell_slot"
    CLASS_RESOURCE = "class_resource"
    HIT_DICE = "hit_dice"
    ACTION_USAGE = "action_usage"
    CUSTOM = "custom"


class ResetType(IntEnum):
    """When a resource comes back. Ordered: resetting at a period also
    resets everything with a shorter period."""

    TURN = 1
    ROUND = 2
    ENCOUNTER = 3
    SHORT_REST = 4
    LONG_REST = 5
    NEVER = 6


class BuffDuration(StrEnum):
    """Lifetime of an applied buff."""

    INSTANT = "instant"
    UNTIL_NEXT_ATTACK_MADE = "until_next_attack_made"
    UNTIL_NEXT_ATTACK_TAKEN = "until_next_attack_taken"
    ONE_ROUND = "one_round"
    REPEAT_SAVE_EACH_ROUND = "repeat_save_each_round"
    ENTIRE_ENCOUNTER = "entire_encounter"


class Condition(StrEnum):
    """Status conditions a buff can impose."""

    BLINDED = "blinded"
    FRIGHTENED = "frightened"
    INCAPACITATED = "incapacitated"
    INVISIBLE = "invisible"
    PARALYZED = "paralyzed"
    POISONED = "poisoned"
    PRONE = "prone"
    RESTRAINED = "restrained"
    STUNNED = "stunned"

    @property
    def prevents_actions(self) -> bool:
        """Whether a creature with this condition loses its turn."""
        return self in {Condition.INCAPACITATED, Condition.PARALYZED, Condition.STUNNED}

    @property
    def grants_advantage_to_attackers(self) -> bool:
        """Whether attacks against the creature roll with advantage."""
        return self in {Condition.PARALYZED, Condition.STUNNED, Condition.RESTRAINED}

    @property
    def imposes_attack_disadvantage(self) -> bool:
        """Whether the creature's own attacks roll with disadvantage."""
        return self in {
            Condition.BLINDED,
            Condition.FRIGHTENED,
            Condition.POISONED,
            Condition.PRONE,
            Condition.RESTRAINED,
        }


class CombatCondition(StrEnum):
    """Combat-state predicates usable as action requirements."""

    HAS_TEMP_HP = "has_temp_hp"
    IS_SURPRISED = "is_surprised"
    TARGET_BLOODIED = "target_bloodied"
    SELF_BLOODIED = "self_bloodied"
    ALLY_INJURED = "ally_injured"


class TemplateName(StrEnum):
    """Named spell templates resolved lazily into concrete actions."""

    BLESS = "bless"
    BANE = "bane"
    HASTE = "haste"
    SHIELD = "shield"
    HUNTERS_MARK = "hunter's mark"
    HEX = "hex"
    HYPNOTIC_PATTERN = "hypnotic pattern"


class TriggerCondition(StrEnum):
    """Events a reaction can respond to, relative to its owner."""

    ON_HIT = "on_hit"
    ON_BEING_ATTACKED = "on_being_attacked"
    ON_MISS = "on_miss"
    ON_BEING_DAMAGED = "on_being_damaged"
    ON_ALLY_ATTACKED = "on_ally_attacked"
    ON_ENEMY_DEATH = "on_enemy_death"
    ON_CRITICAL_HIT = "on_critical_hit"
    ON_BEING_HIT = "on_being_hit"
    ON_CAST_SPELL = "on_cast_spell"
    ON_SAVE_FAILED = "on_save_failed"
    ON_SAVE_SUCCEEDED = "on_save_succeeded"
    ON_ABILITY_CHECK = "on_ability_check"
    ON_CONCENTRATION_BROKEN = "on_concentration_broken"


class TriggerRequirementKind(StrEnum):
    """Extra predicates a reaction needs besides its trigger."""

    HAS_TEMP_HP = "has_temp_hp"
    DAMAGE_TYPE = "damage_type"
    ACTION_TAG = "action_tag"


class TriggerEffectKind(StrEnum):
    """What a reaction does when it fires."""

    DEAL_DAMAGE = "deal_damage"
    REDUCE_DAMAGE = "reduce_damage"
    RESTORE_RESOURCE = "restore_resource"
    APPLY_BUFF = "apply_buff"
    REMOVE_BUFF = "remove_buff"
    CHAIN = "chain"
    ADD_TO_ROLL = "add_to_roll"
    FORCE_SELF_REROLL = "force_self_reroll"
    FORCE_TARGET_REROLL = "force_target_reroll"
    INTERRUPT_ACTION = "interrupt_action"
    GRANT_IMMEDIATE_ACTION = "grant_immediate_action"
    CONSUME_REACTION = "consume_reaction"


class EventKind(StrEnum):
    """Kinds of event on the encounter bus."""

    # Lifecycle
    ENCOUNTER_STARTED = "encounter_started"
    ENCOUNTER_ENDED = "encounter_ended"
    ROUND_STARTED = "round_started"
    ROUND_ENDED = "round_ended"
    TURN_STARTED = "turn_started"
    TURN_ENDED = "turn_ended"
    UNIT_DIED = "unit_died"
    # Combat
    ACTION_STARTED = "action_started"
    ACTION_SKIPPED = "action_skipped"
    ATTACK_ROLLED = "attack_rolled"
    ATTACK_HIT = "attack_hit"
    ATTACK_MISSED = "attack_missed"
    DAMAGE_TAKEN = "damage_taken"
    DAMAGE_PREVENTED = "damage_prevented"
    HEALING_APPLIED = "healing_applied"
    TEMP_HP_GRANTED = "temp_hp_granted"
    REACTION_TRIGGERED = "reaction_triggered"
    # Spell
    CAST_SPELL = "cast_spell"
    SPELL_SAVED = "spell_saved"
    SPELL_FAILED = "spell_failed"
    CONCENTRATION_BROKEN = "concentration_broken"
    CONCENTRATION_MAINTAINED = "concentration_maintained"
    # Status
    BUFF_APPLIED = "buff_applied"
    BUFF_EXPIRED = "buff_expired"
    BUFF_REMOVED = "buff_removed"
    CONDITION_ADDED = "condition_added"
    CONDITION_REMOVED = "condition_removed"
    # Rolls
    SAVE_ATTEMPTED = "save_attempted"
    SAVE_RESULT = "save_result"
    ABILITY_CHECK_MADE = "ability_check_made"
    # Resources
    RESOURCE_CONSUMED = "resource_consumed"
    RESOURCE_RESTORED = "resource_restored"
    RESOURCE_DEPLETED = "resource_depleted"


class EncounterOutcome(StrEnum):
    """How an encounter ended."""

    PLAYERS_WIN = "players_win"
    MONSTERS_WIN = "monsters_win"
    TIMEOUT = "timeout"


class FidelityMode(StrEnum):
    """How much of a run is recorded."""

    SURVEY = "survey"
    LEAN = "lean"
    FULL = "full"


class RunStatus(StrEnum):
    """Whether a run completed."""

    OK = "ok"
    FAILED = "failed"


class BatchStatus(StrEnum):
    """Terminal state of a simulation batch."""

    COMPLETED = "completed"
    CANCELLED = "cancelled"


class SeedTier(StrEnum):
    """Why a seed was selected for re-simulation."""

    A = "A"
    B = "B"
    C = "C"


class DifficultyTier(IntEnum):
    """Encounter difficulty, ordered from easiest to hardest."""

    TRIVIAL = -1
    SAFE = 0
    CHALLENGING = 1
    BOSS = 2
    FAILED = 3

    @property
    def label(self) -> str:
        """Display name of the tier."""
        return self.name.capitalize()


class MonsterRole(StrEnum):
    """Role used to pick which stat an adjustment step touches."""

    BOSS = "boss"
    BRUTE = "brute"
    STRIKER = "striker"
    CONTROLLER = "controller"
    MINION = "minion"
    UNKNOWN = "unknown"


__all__ = [
    "Side",
    "ActionKind",
    "TargetStrategy",
    "FrequencyKind",
    "ResourceType",
    "ResetType",
    "BuffDuration",
    "Condition",
    "CombatCondition",
    "TemplateName",
    "TriggerCondition",
    "TriggerRequirementKind",
    "TriggerEffectKind",
    "EventKind",
    "EncounterOutcome",
    "FidelityMode",
    "RunStatus",
    "BatchStatus",
    "SeedTier",
    "DifficultyTier",
    "MonsterRole",
]
