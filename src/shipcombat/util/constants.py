"""Rules constants — fixed tables from the starship combat rules.

These are game-design data, not tunables.  Tunables with the same
defaults live in ``CombatConfig``.
"""

from shipcombat.models.combatant import CritLocation
from shipcombat.models.ranges import DodgeLevel, RangeBand

# -- Checks --------------------------------------------------------------

TARGET_NUMBER: int = 8
"""Every 2d6 check in the ruleset succeeds on 8+."""

CRITICAL_EFFECT_THRESHOLD: int = 6
"""Minimum attack effect that makes a damaging hit critical."""

# -- Attack DMs ----------------------------------------------------------

RANGE_DMS: dict[RangeBand, int] = {
    RangeBand.ADJACENT: 0,
    RangeBand.CLOSE: 0,
    RangeBand.SHORT: 1,
    RangeBand.MEDIUM: 0,
    RangeBand.LONG: -2,
    RangeBand.VERY_LONG: -4,
    RangeBand.DISTANT: -6,
}
"""Attack DM by range band."""

LONG_RANGE_BANDS: frozenset[RangeBand] = frozenset(
    {RangeBand.LONG, RangeBand.VERY_LONG, RangeBand.DISTANT}
)
"""Bands where long-range weapon and missile bonuses apply."""

DODGE_DMS: dict[DodgeLevel, int] = {
    DodgeLevel.NONE: 0,
    DodgeLevel.PARTIAL: 1,
    DodgeLevel.FULL: 2,
}
"""Penalty to the attacker for the target's evasive manoeuvres."""

CALLED_SHOT_PENALTIES: dict[CritLocation, int] = {
    CritLocation.M_DRIVE: -2,
    CritLocation.J_DRIVE: -4,
    CritLocation.POWER_PLANT: -4,
    CritLocation.SENSORS: -2,
    CritLocation.WEAPON: -2,
    CritLocation.COMPUTER: -3,
    CritLocation.FUEL: -2,
}
"""Attack DM for aiming at a specific subsystem."""

DEFAULT_CALLED_SHOT_PENALTY: int = -2
"""Called-shot DM for locations not in the table."""

SENSOR_LOCK_DM: int = 1
"""Attack DM while the sensor operator holds a lock on the target."""

ION_DRAIN_MULTIPLIER: int = 10
"""Power drained per point of (damage roll + effect) for ion weapons."""

# -- Criticals -----------------------------------------------------------

MAX_SEVERITY: int = 6
"""Severity cap for a single critical hit."""

SEVERITY_DAMAGE_STEP: int = 10
"""Damage per severity level."""

CRITICAL_LOCATION_TABLE: dict[int, CritLocation] = {
    2: CritLocation.SENSORS,
    3: CritLocation.POWER_PLANT,
    4: CritLocation.FUEL,
    5: CritLocation.WEAPON,
    6: CritLocation.ARMOUR,
    7: CritLocation.HULL,
    8: CritLocation.M_DRIVE,
    9: CritLocation.CARGO,
    10: CritLocation.J_DRIVE,
    11: CritLocation.CREW,
    12: CritLocation.COMPUTER,
}
"""2d6 result to critical hit location."""

SUSTAINED_DAMAGE_FRACTION: float = 0.1
"""Each lost chunk of this fraction of max hull adds a severity 1 hull crit."""

REPAIR_TARGET: int = 8
"""Target for 2d6 + engineer skill - severity repair checks."""

THRUST_LOST: int = 999
"""Thrust penalty of a dead drive or plant: no thrust at all, whatever the rating."""

DISABLED_DRIVE_CONTROL_DM: int = -4
"""Control DM once the manoeuvre drive is disabled."""

# -- Missiles ------------------------------------------------------------

MISSILE_DAMAGE: str = "4d6"
"""Damage dice rolled when a missile reaches its target."""

MISSILE_RANGE_BONUS: int = 2
"""Launch DM at long, very long and distant bands."""

MISSILE_NO_LAUNCH_BANDS: frozenset[RangeBand] = frozenset({RangeBand.ADJACENT, RangeBand.CLOSE})
"""Too close for the missile to arm; launches are refused."""

MISSILE_TERMINAL_BAND: RangeBand = RangeBand.CLOSE
"""A missile closing to this band completes its run in the same round."""

MISSILE_RETENTION_ROUNDS: int = 2
"""Rounds a resolved missile stays visible before cleanup."""

POINT_DEFENSE_TARGET: int = 8
"""Target for 2d6 + gunner skill + turret bonus interception checks."""

TURRET_BONUS: dict[int, int] = {1: 0, 2: 1, 3: 2}
"""Point defense DM by turret size (single, double, triple)."""

ECM_TARGET: int = 8
"""Target for 2d6 + electronics (sensors) to jam a missile."""

SMART_RESIST_TARGET: int = 8
"""Plain 2d6 a jammed smart missile needs to shake off the ECM."""

RADIATION_TARGET: int = 8
"""Target for 2d6 - armour for a nuclear detonation to irradiate the crew."""

RADIATION_ARMOUR_IMMUNITY: int = 8
"""Armour at which radiation from nuclear missiles no longer gets through."""

RADIATION_CREW_DAMAGE: str = "2d6"
"""Damage to the crew member caught by a radiation hit."""

# -- Boarding ------------------------------------------------------------

BOARDABLE_HULL_FRACTION: float = 0.25
"""A ship at or below this fraction of max hull can be boarded."""

BOARDING_DIFFICULTY: dict[str, int] = {
    "light": 0,
    "moderate": 1,
    "heavy": 2,
    "desperate": 4,
}
"""Defender DM by resistance preset."""
