"""Boarding resolver — opposed troop rolls for boarding actions.

Boarding is stateless: every function takes the two forces and returns
a result.  Applying casualties or hull damage to the session is the
CombatService's job.

Attacker:  2d6 + melee skill + strength DM + numbers bonus(marines)
Defender:  2d6 + defender skill + difficulty DM + strength DM + numbers bonus(crew)

Numbers bonus is floor(log2(headcount)) for two or more troops.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from shipcombat.engine.dice import DiceRoller
from shipcombat.loaders.combat_config_loader import CombatConfig
from shipcombat.models.combatant import Combatant, Disposition
from shipcombat.models.dice import DiceRoll
from shipcombat.models.ranges import RangeBand
from shipcombat.util import constants
from shipcombat.util.errors import CombatError, InvalidAmount

log = logging.getLogger(__name__)


class BoardingOutcome(Enum):
    """Result of a boarding round, by roll difference."""

    ATTACKERS_DEFEATED = "ATTACKERS_DEFEATED"
    ATTACKERS_RETREAT = "ATTACKERS_RETREAT"
    FIGHTING_CONTINUES = "FIGHTING_CONTINUES"
    SUCCESS = "SUCCESS"
    IMMEDIATE_CONTROL = "IMMEDIATE_CONTROL"


class MarginTier(Enum):
    MARGINAL = "marginal"
    SOLID = "solid"
    DECISIVE = "decisive"


@dataclass
class BoardingForce:
    """One side of a boarding action.

    Attributes:
        crew: Crew members fighting.
        marines: Marines fighting (count double).
        armour_rating: Best personal armour worn.
        weapons_rating: Best personal weapons carried.
        skill: Melee skill (attacker) or defending skill (defender).
    """

    crew: int = 0
    marines: int = 0
    armour_rating: int = 0
    weapons_rating: int = 0
    skill: int = 0

    def __post_init__(self) -> None:
        for name in ("crew", "marines"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise InvalidAmount(name, value)

    @property
    def headcount(self) -> int:
        return self.crew + self.marines


@dataclass
class BoardingParams:
    """Inputs to ``resolve_boarding``.

    ``launch_disabled`` marks the attacker's hangar or launch bay as out
    of action, which keeps the boarding party on board.
    """

    attacker: BoardingForce
    defender: BoardingForce
    difficulty: str = "moderate"
    seed: Optional[int] = None
    launch_disabled: bool = False


@dataclass
class BoardingModifiers:
    """Comparative DMs for each side with the reasons behind them."""

    attacker: int = 0
    defender: int = 0
    breakdown: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class BoardingActionResult:
    """Consequences of a roll difference, per the boarding action table."""

    outcome: BoardingOutcome
    difference: int
    hull_damage: int = 0
    hull_damage_roll: Optional[DiceRoll] = None
    rounds_to_resolve: int = 0
    rounds_to_control: int = 0
    attacker_dm: int = 0
    defender_dm: int = 0
    counter_board_allowed: bool = False
    counter_board_dm: int = 0
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "outcome": self.outcome.value,
            "difference": self.difference,
            "hull_damage": self.hull_damage,
            "hull_damage_roll": self.hull_damage_roll.to_dict() if self.hull_damage_roll else None,
            "rounds_to_resolve": self.rounds_to_resolve,
            "rounds_to_control": self.rounds_to_control,
            "attacker_dm": self.attacker_dm,
            "defender_dm": self.defender_dm,
            "counter_board_allowed": self.counter_board_allowed,
            "counter_board_dm": self.counter_board_dm,
            "message": self.message,
        }


@dataclass(frozen=True)
class BoardingResult:
    """Full outcome of ``resolve_boarding``."""

    success: bool
    margin: int
    tier: MarginTier
    attacker_roll: DiceRoll
    defender_roll: DiceRoll
    attacker_total: int
    defender_total: int
    attacker_modifiers: dict[str, int]
    defender_modifiers: dict[str, int]
    attacker_casualties: int
    defender_casualties: int
    action: BoardingActionResult
    narration: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "margin": self.margin,
            "tier": self.tier.value,
            "attacker_roll": self.attacker_roll.to_dict(),
            "defender_roll": self.defender_roll.to_dict(),
            "attacker_total": self.attacker_total,
            "defender_total": self.defender_total,
            "attacker_modifiers": dict(self.attacker_modifiers),
            "defender_modifiers": dict(self.defender_modifiers),
            "attacker_casualties": self.attacker_casualties,
            "defender_casualties": self.defender_casualties,
            "action": self.action.to_dict(),
            "narration": self.narration,
        }


@dataclass(frozen=True)
class BoardingEligibility:
    allowed: bool
    reason: str


# -- Strength --------------------------------------------------------------

def calculate_troop_strength(force: BoardingForce) -> int:
    """Crew + 2 x marines, +1 for armour above 5, +1 for weapons 2+."""
    strength = force.crew + 2 * force.marines
    if force.armour_rating > 5:
        strength += 1
    if force.weapons_rating >= 2:
        strength += 1
    return strength


def numbers_bonus(headcount: int) -> int:
    """floor(log2(headcount)); nothing for a lone fighter or an empty side."""
    if headcount < 2:
        return 0
    return int(math.floor(math.log2(headcount)))


def get_boarding_modifiers(attacker: BoardingForce, defender: BoardingForce) -> BoardingModifiers:
    """Comparative DMs: better kit, weight of numbers, unopposed marines."""
    mods = BoardingModifiers()

    if attacker.armour_rating > defender.armour_rating:
        mods.attacker += 1
        mods.breakdown.append("Attacker better armour +1")
    elif defender.armour_rating > attacker.armour_rating:
        mods.defender += 1
        mods.breakdown.append("Defender better armour +1")

    if attacker.weapons_rating > defender.weapons_rating:
        mods.attacker += 1
        mods.breakdown.append("Attacker better weapons +1")
    elif defender.weapons_rating > attacker.weapons_rating:
        mods.defender += 1
        mods.breakdown.append("Defender better weapons +1")

    a_strength = calculate_troop_strength(attacker)
    d_strength = calculate_troop_strength(defender)
    if d_strength == 0:
        if a_strength > 0:
            mods.attacker += 3
            mods.breakdown.append("Defenders overwhelmed +3")
    elif a_strength == 0:
        mods.defender += 3
        mods.breakdown.append("Attackers overwhelmed +3")
    else:
        ratio = a_strength / d_strength
        if ratio >= 4:
            mods.attacker += 3
            mods.breakdown.append("Attacker outnumbers 4:1 +3")
        elif ratio >= 2:
            mods.attacker += 1
            mods.breakdown.append("Attacker outnumbers 2:1 +1")
        elif ratio <= 0.25:
            mods.defender += 3
            mods.breakdown.append("Defender outnumbers 4:1 +3")
        elif ratio <= 0.5:
            mods.defender += 1
            mods.breakdown.append("Defender outnumbers 2:1 +1")

    if attacker.marines > 0 and defender.marines == 0:
        mods.attacker += 2
        mods.breakdown.append("No defending marines +2")

    return mods


# -- Boarding action table -------------------------------------------------

def resolve_boarding_action(
    attacker_total: int,
    defender_total: int,
    roller: Optional[DiceRoller] = None,
) -> BoardingActionResult:
    """Consequences of one boarding round by attacker - defender difference."""
    roller = roller or DiceRoller()
    diff = attacker_total - defender_total

    if diff <= -7:
        return BoardingActionResult(
            outcome=BoardingOutcome.ATTACKERS_DEFEATED, difference=diff,
            counter_board_allowed=True, counter_board_dm=4,
            message="Boarding party destroyed; defenders may counter-board with DM+4",
        )
    if diff <= -4:
        return BoardingActionResult(
            outcome=BoardingOutcome.ATTACKERS_RETREAT, difference=diff,
            message="Boarding party driven back to their ship",
        )
    if diff <= -1:
        hull = roller.roll(2, 6)
        return BoardingActionResult(
            outcome=BoardingOutcome.FIGHTING_CONTINUES, difference=diff,
            hull_damage=hull.total, hull_damage_roll=hull,
            rounds_to_resolve=roller.d6(), defender_dm=2,
            message="Defenders hold the advantage; fighting continues",
        )
    if diff == 0:
        return BoardingActionResult(
            outcome=BoardingOutcome.FIGHTING_CONTINUES, difference=0,
            rounds_to_resolve=roller.d6(),
            message="Stalemate; fighting continues",
        )
    if diff <= 3:
        hull = roller.roll(2, 6)
        return BoardingActionResult(
            outcome=BoardingOutcome.FIGHTING_CONTINUES, difference=diff,
            hull_damage=hull.total, hull_damage_roll=hull,
            rounds_to_resolve=roller.d6(), attacker_dm=2,
            message="Boarders gain ground; fighting continues",
        )
    if diff <= 6:
        hull = roller.roll(1, 6)
        return BoardingActionResult(
            outcome=BoardingOutcome.SUCCESS, difference=diff,
            hull_damage=hull.total, hull_damage_roll=hull,
            rounds_to_control=roller.roll(2, 6).total,
            message="Boarders break through and begin securing the ship",
        )
    return BoardingActionResult(
        outcome=BoardingOutcome.IMMEDIATE_CONTROL, difference=diff,
        message="Defenders surrender; the ship is captured",
    )


# -- Resolution ------------------------------------------------------------

def _tier(margin: int) -> MarginTier:
    size = abs(margin)
    if size >= 6:
        return MarginTier.DECISIVE
    if size >= 3:
        return MarginTier.SOLID
    return MarginTier.MARGINAL


_NARRATION = {
    (True, MarginTier.DECISIVE): "The boarders sweep through the corridors in a decisive assault",
    (True, MarginTier.SOLID): "The boarders fight their way aboard and hold their ground",
    (True, MarginTier.MARGINAL): "The boarders barely gain a foothold",
    (False, MarginTier.DECISIVE): "The defenders crush the boarding party at the airlock",
    (False, MarginTier.SOLID): "The defenders repel the boarders in hard fighting",
    (False, MarginTier.MARGINAL): "The boarders are narrowly held off",
}


def resolve_boarding(
    params: BoardingParams,
    roller: Optional[DiceRoller] = None,
    config: Optional[CombatConfig] = None,
) -> BoardingResult:
    """Resolve an opposed boarding roll between two forces."""
    config = config or CombatConfig()
    difficulty_table = config.boarding_difficulty
    if params.difficulty not in difficulty_table:
        raise CombatError(
            f"Unknown boarding difficulty: {params.difficulty!r}",
            {"difficulty": params.difficulty, "valid": sorted(difficulty_table)},
            error_code="UnknownDifficulty",
        )
    roller = roller or DiceRoller(params.seed)
    attacker, defender = params.attacker, params.defender
    comparative = get_boarding_modifiers(attacker, defender)

    a_mods = {
        "skill": attacker.skill,
        "strength": comparative.attacker,
        "numbers": numbers_bonus(attacker.marines),
    }
    d_mods = {
        "skill": defender.skill,
        "difficulty": difficulty_table[params.difficulty],
        "strength": comparative.defender,
        "numbers": numbers_bonus(defender.crew),
    }
    a_mods = {k: v for k, v in a_mods.items() if v}
    d_mods = {k: v for k, v in d_mods.items() if v}

    a_roll = roller.roll_2d6()
    d_roll = roller.roll_2d6()
    a_total = a_roll.total + sum(a_mods.values())
    d_total = d_roll.total + sum(d_mods.values())
    margin = a_total - d_total
    success = margin >= 0

    winner_losses = abs(margin) // 3
    loser_losses = abs(margin)
    if success:
        a_cas = min(winner_losses, attacker.headcount)
        d_cas = min(loser_losses, defender.headcount)
    else:
        a_cas = min(loser_losses, attacker.headcount)
        d_cas = min(winner_losses, defender.headcount)

    tier = _tier(margin)
    action = resolve_boarding_action(a_total, d_total, roller)
    narration = (
        f"{_NARRATION[(success, tier)]} ({tier.value}, margin {margin:+d}). "
        f"Casualties: boarders {a_cas}, defenders {d_cas}."
    )

    log.info("[BOARD] %s + %s = %d vs %s + %s = %d -> margin %+d (%s)",
             a_roll, a_mods, a_total, d_roll, d_mods, d_total, margin, action.outcome.value)
    return BoardingResult(
        success=success,
        margin=margin,
        tier=tier,
        attacker_roll=a_roll,
        defender_roll=d_roll,
        attacker_total=a_total,
        defender_total=d_total,
        attacker_modifiers=a_mods,
        defender_modifiers=d_mods,
        attacker_casualties=a_cas,
        defender_casualties=d_cas,
        action=action,
        narration=narration,
    )


def can_board(target: Combatant) -> BoardingEligibility:
    """Whether ``target`` may be boarded, with the reason either way."""
    if target.disposition == Disposition.FRIENDLY:
        return BoardingEligibility(False, f"{target.name} is friendly")
    if target.hull <= 0:
        return BoardingEligibility(True, f"{target.name} is a wreck")
    if target.max_hull > 0 and target.hull <= target.max_hull * constants.BOARDABLE_HULL_FRACTION:
        return BoardingEligibility(True, f"{target.name} is crippled ({target.hull}/{target.max_hull} hull)")
    if target.disposition == Disposition.DISABLED:
        return BoardingEligibility(True, f"{target.name} is disabled")
    if target.drifting:
        return BoardingEligibility(True, f"{target.name} is drifting")
    return BoardingEligibility(
        False,
        f"{target.name} is still under control ({target.hull}/{target.max_hull} hull)",
    )


def can_launch_boarding(params: BoardingParams, range_band: RangeBand | str) -> BoardingEligibility:
    """Whether the attacker can get a boarding party across at all."""
    band = RangeBand.parse(range_band)
    if band != RangeBand.ADJACENT:
        return BoardingEligibility(False, f"boarding needs adjacent range, target is at {band.value}")
    if params.attacker.marines <= 0:
        return BoardingEligibility(False, "no marines to send across")
    if params.launch_disabled:
        return BoardingEligibility(False, "launch bay is out of action")
    return BoardingEligibility(True, "boarding party can launch")
