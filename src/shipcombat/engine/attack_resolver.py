"""Attack resolver — opposed 2d6 to-hit and damage computation.

Attack roll:
    2d6 + skill + range DM - dodge DM + situational DMs  vs  8

Situational DMs are the called-shot penalty, fire control, power
degradation, sensor lock, the weapon's own DM and the long-range bonus
(missiles get the configured launch bonus instead).

On a hit the weapon's damage dice are rolled and the target's armour
subtracted.  Ion weapons convert ``(damage roll + effect) x 10`` into a
power drain and never touch hull.  Missile weapons only resolve the
launch; their damage is rolled on impact by the MissileTracker.

The resolver is pure: it reads the combatants and returns an
``AttackResult``.  Applying the result is BattleState's job.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from shipcombat.engine.dice import DiceRoller
from shipcombat.loaders.combat_config_loader import CombatConfig
from shipcombat.models.combatant import Combatant, CritLocation, Disposition, Weapon, WeaponCondition
from shipcombat.models.dice import DiceRoll
from shipcombat.models.ranges import DodgeLevel, RangeBand
from shipcombat.util import constants
from shipcombat.util.errors import OutOfRange, WeaponUnavailable

log = logging.getLogger(__name__)


@dataclass
class AttackOptions:
    """Per-attack inputs supplied by the command dispatcher.

    Attributes:
        range_band: Range to the target; defaults to the target's band.
        dodge: Evasive manoeuvre declared by the target.
        called_shot: Subsystem aimed at, if any.
        fire_control: Fire-control software bonus.
        power_penalty: Penalty from a degraded power plant (positive number).
        sensor_lock: Whether a sensor lock is held on the target.
        skill: Gunner skill override; defaults to the attacker's gunner.
        situational_dm: Any other DM the caller wants applied.
        seed: Seed for a reproducible roll.
    """

    range_band: Optional[RangeBand | str] = None
    dodge: DodgeLevel | str = DodgeLevel.NONE
    called_shot: Optional[CritLocation | str] = None
    fire_control: int = 0
    power_penalty: int = 0
    sensor_lock: bool = False
    skill: Optional[int] = None
    situational_dm: int = 0
    seed: Optional[int] = None


@dataclass
class AttackResult:
    """Outcome of one attack roll and its damage."""

    attacker_id: str
    target_id: str
    weapon: str
    range_band: RangeBand
    attack_roll: DiceRoll
    roll_total: int
    modifiers: dict[str, int]
    total: int
    target_number: int
    hit: bool
    effect: int
    damage_roll: Optional[DiceRoll] = None
    raw_damage: int = 0
    armour: int = 0
    actual_damage: int = 0
    power_drain: int = 0
    ion_rounds: int = 0
    critical: bool = False
    called_shot: Optional[CritLocation] = None
    is_ion: bool = False
    is_missile: bool = False
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "attacker_id": self.attacker_id,
            "target_id": self.target_id,
            "weapon": self.weapon,
            "range": self.range_band.value,
            "attack_roll": self.attack_roll.to_dict(),
            "roll_total": self.roll_total,
            "modifiers": dict(self.modifiers),
            "total": self.total,
            "target_number": self.target_number,
            "hit": self.hit,
            "effect": self.effect,
            "damage_roll": self.damage_roll.to_dict() if self.damage_roll else None,
            "raw_damage": self.raw_damage,
            "armour": self.armour,
            "actual_damage": self.actual_damage,
            "power_drain": self.power_drain,
            "ion_rounds": self.ion_rounds,
            "critical": self.critical,
            "called_shot": self.called_shot.value if self.called_shot else None,
            "is_ion": self.is_ion,
            "is_missile": self.is_missile,
            "message": self.message,
        }


# -- DM tables -------------------------------------------------------------

def range_dm(range_band: RangeBand | str) -> int:
    return constants.RANGE_DMS[RangeBand.parse(range_band)]


def dodge_dm(dodge: DodgeLevel | str | None) -> int:
    return constants.DODGE_DMS[DodgeLevel.parse(dodge)]


def called_shot_penalty(location: CritLocation | str) -> int:
    loc = location if isinstance(location, CritLocation) else CritLocation(location)
    return constants.CALLED_SHOT_PENALTIES.get(loc, constants.DEFAULT_CALLED_SHOT_PENALTY)


def missile_range_bonus(range_band: RangeBand | str, config: Optional[CombatConfig] = None) -> int:
    """Launch DM for missiles: flat bonus at long, very long and distant."""
    bonus = config.missile_range_bonus if config else constants.MISSILE_RANGE_BONUS
    return bonus if RangeBand.parse(range_band) in constants.LONG_RANGE_BANDS else 0


def calculate_modifiers(
    attacker: Combatant,
    weapon: Weapon,
    range_band: RangeBand,
    options: AttackOptions,
    config: CombatConfig,
) -> dict[str, int]:
    """Itemised DMs for an attack roll. Zero entries are omitted."""
    skill = options.skill if options.skill is not None else attacker.skill_for("gunner")
    mods = {
        "skill": skill,
        "range": constants.RANGE_DMS[range_band],
        "dodge": -constants.DODGE_DMS[DodgeLevel.parse(options.dodge)],
        "weapon": weapon.attack_dm,
        "fire_control": options.fire_control,
        "power": -abs(options.power_penalty),
        "situational": options.situational_dm,
    }
    if weapon.missile:
        mods["long_range"] = missile_range_bonus(range_band, config)
    elif range_band in constants.LONG_RANGE_BANDS:
        mods["long_range"] = weapon.long_range_bonus
    if options.called_shot is not None:
        mods["called_shot"] = called_shot_penalty(options.called_shot)
    if options.sensor_lock:
        mods["sensor_lock"] = config.sensor_lock_dm
    return {k: v for k, v in mods.items() if v}


def check_weapon(weapon: Weapon, range_band: RangeBand) -> None:
    """Raise if the weapon cannot fire at this band right now."""
    if not weapon.usable:
        raise WeaponUnavailable(weapon.name, weapon.condition.value)
    if not weapon.has_ammo:
        raise WeaponUnavailable(weapon.name, "out of ammunition")
    if weapon.missile and range_band in constants.MISSILE_NO_LAUNCH_BANDS:
        raise OutOfRange(weapon.name, range_band.value)
    if not weapon.can_fire_at(range_band):
        raise OutOfRange(
            weapon.name, range_band.value,
            sorted(b.value for b in weapon.ranges or ()),
        )


def _roll_check(roller: DiceRoller, bane: bool) -> tuple[DiceRoll, int]:
    """Roll 2d6, or 3d6 keeping the lowest two under a bane."""
    if not bane:
        roll = roller.roll_2d6()
        return roll, roll.total
    roll = roller.roll(3, 6)
    return roll, sum(sorted(roll.dice)[:2])


# -- Resolution ------------------------------------------------------------

def resolve_attack(
    attacker: Combatant,
    weapon: Weapon,
    target: Combatant,
    options: Optional[AttackOptions] = None,
    roller: Optional[DiceRoller] = None,
    config: Optional[CombatConfig] = None,
) -> AttackResult:
    """Resolve one attack of ``attacker`` with ``weapon`` against ``target``.

    Raises:
        OutOfRange: The weapon's range restriction excludes the band.
        WeaponUnavailable: The weapon is disabled, destroyed or empty.
    """
    options = options or AttackOptions()
    config = config or CombatConfig()
    roller = roller or DiceRoller(options.seed)

    band = RangeBand.parse(options.range_band) if options.range_band is not None else target.range_band
    check_weapon(weapon, band)

    called = options.called_shot
    if called is not None and not isinstance(called, CritLocation):
        called = CritLocation(called)

    mods = calculate_modifiers(attacker, weapon, band, options, config)
    attack_roll, roll_total = _roll_check(roller, weapon.condition == WeaponCondition.BANE)
    total = roll_total + sum(mods.values())
    effect = total - config.target_number
    hit = total >= config.target_number

    result = AttackResult(
        attacker_id=attacker.id,
        target_id=target.id,
        weapon=weapon.name,
        range_band=band,
        attack_roll=attack_roll,
        roll_total=roll_total,
        modifiers=mods,
        total=total,
        target_number=config.target_number,
        hit=hit,
        effect=effect,
        called_shot=called,
        armour=target.armour,
        is_ion=weapon.ion,
        is_missile=weapon.missile,
    )

    log.debug(
        "[ATTACK] %s -> %s with %s at %s: %s + %s = %d (effect %+d)",
        attacker.id, target.id, weapon.name, band.value,
        attack_roll, mods, total, effect,
    )

    if not hit:
        result.message = f"{attacker.name}'s {weapon.name} misses {target.name}"
        return result

    if weapon.missile:
        result.message = f"{attacker.name} launches {weapon.name} at {target.name}"
        return result

    damage_roll = roller.roll_notation(weapon.damage)
    result.damage_roll = damage_roll
    result.raw_damage = damage_roll.total

    if weapon.ion:
        result.power_drain = (damage_roll.total + effect) * config.ion_drain_multiplier
        result.ion_rounds = roller.roll(1, 3).total if effect >= config.critical_effect_threshold else 1
        result.message = (
            f"{attacker.name}'s {weapon.name} hits {target.name}, "
            f"draining {result.power_drain} power for {result.ion_rounds} round(s)"
        )
        return result

    result.actual_damage = max(0, damage_roll.total - target.armour) * weapon.damage_multiple
    result.critical = effect >= config.critical_effect_threshold and result.actual_damage > 0
    result.message = (
        f"{attacker.name}'s {weapon.name} hits {target.name} for {result.actual_damage} damage"
        + (" - CRITICAL HIT" if result.critical else "")
    )
    return result


def get_valid_targets(attacker: Combatant, candidates: list[Combatant]) -> list[Combatant]:
    """Contacts the attacker may shoot at: not itself, friendly, disabled or destroyed."""
    excluded = {Disposition.FRIENDLY, Disposition.DISABLED, Disposition.DESTROYED}
    return [
        c for c in candidates
        if c.id != attacker.id and c.disposition not in excluded and c.hull > 0
    ]
