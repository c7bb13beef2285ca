"""Damage effects — what accumulated critical damage does to each subsystem.

Every lookup takes the TOTAL active severity at the location (the sum of
unrepaired hits), except weapons, where each hit damages one mount and
is judged on its own severity.  Hull, crew and fuel criticals have an
immediate one-off consequence which is rolled here and applied by
BattleState.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, fields, replace
from enum import Enum
from typing import Any, Optional

from shipcombat.engine.dice import DiceRoller
from shipcombat.models.combatant import Combatant, CritLocation, WeaponCondition
from shipcombat.models.dice import DiceRoll
from shipcombat.models.ranges import RangeBand
from shipcombat.util import constants

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class SystemEffect:
    """Common shape of every effect descriptor."""
    severity: int = 0
    disabled: bool = False
    message: str = "Operational"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if isinstance(value, Enum):
                value = value.value
            elif isinstance(value, DiceRoll):
                value = value.to_dict()
            data[f.name] = value
        return data


@dataclass(frozen=True)
class MDriveEffects(SystemEffect):
    control_dm: int = 0
    thrust_penalty: int = 0


@dataclass(frozen=True)
class PowerPlantEffects(SystemEffect):
    power_penalty_pct: int = 0
    thrust_penalty: int = 0


@dataclass(frozen=True)
class SensorEffects(SystemEffect):
    max_range: Optional[RangeBand] = None  # furthest usable band, None = unrestricted
    dm: int = 0
    penalty_beyond: Optional[RangeBand] = None  # dm applies past this band

    def can_sense(self, band: RangeBand) -> bool:
        if self.disabled:
            return False
        return self.max_range is None or band <= self.max_range

    def dm_at(self, band: RangeBand) -> int:
        if self.penalty_beyond is not None and band > self.penalty_beyond:
            return self.dm
        return 0


@dataclass(frozen=True)
class WeaponEffects(SystemEffect):
    condition: WeaponCondition = WeaponCondition.OPERATIONAL
    bane: bool = False
    destroyed: bool = False
    explosion: bool = False


@dataclass(frozen=True)
class JDriveEffects(SystemEffect):
    pass


@dataclass(frozen=True)
class ComputerEffects(SystemEffect):
    dm: int = 0


@dataclass(frozen=True)
class ArmourEffects(SystemEffect):
    reduction: int = 0


@dataclass(frozen=True)
class HullCritEffects(SystemEffect):
    damage: int = 0
    roll: Optional[DiceRoll] = None


@dataclass(frozen=True)
class CrewCasualty(SystemEffect):
    crew_member: Optional[str] = None
    damage: int = 0
    new_health: int = 0
    killed: bool = False


@dataclass(frozen=True)
class RadiationHit(SystemEffect):
    """Crew exposure from a nuclear detonation."""
    applies: bool = False  # False when armour or dampers stop it outright
    dm: int = 0
    roll: Optional[DiceRoll] = None
    total: int = 0
    hit: bool = False
    crew_member: Optional[str] = None
    damage: int = 0
    new_health: int = 0
    killed: bool = False


class LeakRate(Enum):
    NONE = "none"
    HOURLY = "hourly"
    PER_ROUND = "per_round"
    IMMEDIATE = "immediate"
    DESTROYED = "destroyed"


@dataclass(frozen=True)
class FuelLeak(SystemEffect):
    rate: LeakRate = LeakRate.NONE
    amount: int = 0  # tons per hour / per round
    percent: int = 0  # immediate loss as a percentage of current fuel
    destroyed: bool = False


# -- Drives & power --------------------------------------------------------

def get_m_drive_effects(severity: int) -> MDriveEffects:
    """Manoeuvre drive: -severity to control and thrust; dead at 5+."""
    if severity <= 0:
        return MDriveEffects()
    if severity >= 5:
        return MDriveEffects(
            severity=severity, disabled=True,
            control_dm=constants.DISABLED_DRIVE_CONTROL_DM,
            thrust_penalty=constants.THRUST_LOST,
            message="M-Drive disabled",
        )
    return MDriveEffects(
        severity=severity, control_dm=-severity, thrust_penalty=severity,
        message=f"Control DM{-severity}, Thrust -{severity}",
    )


def get_power_plant_effects(severity: int) -> PowerPlantEffects:
    """Power plant: 10% power per severity, half at 3, shut down at 4+.

    The half-power stage costs one point of thrust, less than severity 2.
    """
    if severity <= 0:
        return PowerPlantEffects()
    if severity >= 4:
        return PowerPlantEffects(
            severity=severity, disabled=True,
            power_penalty_pct=100, thrust_penalty=constants.THRUST_LOST,
            message="Power plant disabled",
        )
    if severity == 3:
        return PowerPlantEffects(
            severity=3, power_penalty_pct=50, thrust_penalty=1,
            message="Power -50%, Thrust -1",
        )
    pct = severity * 10
    return PowerPlantEffects(
        severity=severity, power_penalty_pct=pct, thrust_penalty=severity,
        message=f"Power -{pct}%, Thrust -{severity}",
    )


def get_j_drive_effects(severity: int) -> JDriveEffects:
    if severity <= 0:
        return JDriveEffects()
    return JDriveEffects(severity=severity, disabled=True, message="Jump drive disabled")


# -- Sensors & computer ----------------------------------------------------

_SENSOR_TABLE: dict[int, tuple[Optional[RangeBand], str]] = {
    2: (RangeBand.MEDIUM, "Inoperative beyond Medium range"),
    3: (RangeBand.SHORT, "Inoperative beyond Short range"),
    4: (RangeBand.CLOSE, "Inoperative beyond Close range"),
    5: (RangeBand.ADJACENT, "Inoperative beyond Adjacent range"),
}


def get_sensor_effects(severity: int) -> SensorEffects:
    """Sensors lose reach as damage mounts; blind at 6."""
    if severity <= 0:
        return SensorEffects()
    if severity == 1:
        return SensorEffects(
            severity=1, dm=-2, penalty_beyond=RangeBand.MEDIUM,
            message="DM-2 beyond Medium range",
        )
    if severity >= constants.MAX_SEVERITY:
        return SensorEffects(severity=severity, disabled=True, message="Sensors disabled")
    max_range, message = _SENSOR_TABLE[severity]
    return SensorEffects(severity=severity, max_range=max_range, message=message)


def get_computer_effects(severity: int) -> ComputerEffects:
    """Computer: DM-2 at severity 1, then -(severity+1); crashed at 4+."""
    if severity <= 0:
        return ComputerEffects()
    dm = -2 if severity == 1 else -(severity + 1)
    if severity >= 4:
        return ComputerEffects(severity=severity, disabled=True, dm=dm, message="Computer disabled")
    return ComputerEffects(severity=severity, dm=dm, message=f"Computer DM{dm}")


# -- Weapons & armour ------------------------------------------------------

def get_weapon_effects(hit_severity: int) -> WeaponEffects:
    """One weapon mount, judged on the severity of the single hit."""
    if hit_severity <= 0:
        return WeaponEffects()
    if hit_severity == 1:
        return WeaponEffects(
            severity=1, condition=WeaponCondition.BANE, bane=True,
            message="Weapon suffers Bane on attacks",
        )
    if hit_severity == 2:
        return WeaponEffects(
            severity=2, disabled=True, condition=WeaponCondition.DISABLED,
            message="Weapon disabled",
        )
    explosion = hit_severity >= 4
    return WeaponEffects(
        severity=hit_severity, disabled=True, condition=WeaponCondition.DESTROYED,
        destroyed=True, explosion=explosion,
        message="Weapon destroyed" + (" - EXPLOSION" if explosion else ""),
    )


def get_armour_effects(severity: int) -> ArmourEffects:
    if severity <= 0:
        return ArmourEffects()
    return ArmourEffects(severity=severity, reduction=severity, message=f"Armour -{severity}")


# -- One-off consequences --------------------------------------------------

def roll_hull_damage(severity: int, roller: Optional[DiceRoller] = None) -> HullCritEffects:
    """Hull critical: severity d6 extra damage, applied immediately."""
    if severity <= 0:
        return HullCritEffects()
    roller = roller or DiceRoller()
    roll = roller.roll(severity, 6)
    return HullCritEffects(
        severity=severity, damage=roll.total, roll=roll,
        message=f"Hull breach: {roll.total} additional damage",
    )


def apply_crew_casualty(combatant: Combatant, roller: Optional[DiceRoller] = None) -> CrewCasualty:
    """One random living crew member takes 1d6 damage."""
    if not combatant.crew:
        return CrewCasualty(message="No crew to injure")
    living = combatant.living_crew()
    if not living:
        return CrewCasualty(message="All crew incapacitated")

    roller = roller or DiceRoller()
    victim = roller.choice(living)
    damage = roller.d6()
    victim.health = max(0, victim.health - damage)
    killed = victim.health == 0
    log.info("[CRIT] %s crew casualty: %s takes %d (health %d)",
             combatant.id, victim.name, damage, victim.health)
    return CrewCasualty(
        severity=1,
        crew_member=victim.name,
        damage=damage,
        new_health=victim.health,
        killed=killed,
        message=f"{victim.name} ({victim.role}) takes {damage} damage"
        + (" and is incapacitated" if killed else ""),
    )


def check_radiation(armour: int, dampers: bool = False) -> RadiationHit:
    """Whether radiation can reach the crew at all, and the DM if it can."""
    if dampers:
        return RadiationHit(message="Nuclear damper negated radiation")
    if armour >= constants.RADIATION_ARMOUR_IMMUNITY:
        return RadiationHit(message=f"Armour {armour} stops the radiation")
    return RadiationHit(applies=True, dm=-armour, message=f"Radiation DM{-armour} from armour")


def apply_radiation_hit(combatant: Combatant, roller: Optional[DiceRoller] = None) -> RadiationHit:
    """Nuclear impact: 2d6 - armour >= 8 gives one living crew member 2d6 damage."""
    check = check_radiation(combatant.armour, combatant.dampers)
    if not check.applies:
        return check

    roller = roller or DiceRoller()
    roll = roller.roll_2d6()
    total = roll.total + check.dm
    if total < constants.RADIATION_TARGET:
        return replace(check, roll=roll, total=total, message=f"Radiation held off ({total} vs 8)")
    living = combatant.living_crew()
    if not living:
        return replace(check, roll=roll, total=total, hit=True, message="Radiation hit an empty ship")

    victim = roller.choice(living)
    damage = roller.roll_notation(constants.RADIATION_CREW_DAMAGE).total
    victim.health = max(0, victim.health - damage)
    killed = victim.health == 0
    log.info("[MISSILE] %s radiation hit: %s takes %d (health %d)",
             combatant.id, victim.name, damage, victim.health)
    return replace(
        check, severity=1, roll=roll, total=total, hit=True,
        crew_member=victim.name, damage=damage, new_health=victim.health, killed=killed,
        message=f"Radiation: {victim.name} ({victim.role}) takes {damage} damage"
        + (" and is incapacitated" if killed else ""),
    )


def roll_fuel_leak(severity: int, roller: Optional[DiceRoller] = None) -> FuelLeak:
    """Fuel leak by severity: hourly, per round, immediate %, tank destroyed."""
    if severity <= 0:
        return FuelLeak()
    if severity >= 4:
        return FuelLeak(
            severity=severity, disabled=True, rate=LeakRate.DESTROYED, destroyed=True,
            message="Fuel tank destroyed",
        )
    roller = roller or DiceRoller()
    amount = roller.d6()
    if severity == 1:
        return FuelLeak(severity=1, rate=LeakRate.HOURLY, amount=amount,
                        message=f"Leak: {amount} tons per hour")
    if severity == 2:
        return FuelLeak(severity=2, rate=LeakRate.PER_ROUND, amount=amount,
                        message=f"Leak: {amount} tons per round")
    percent = amount * 10
    return FuelLeak(severity=3, rate=LeakRate.IMMEDIATE, percent=percent,
                    message=f"Lost {percent}% of fuel")


# -- Overview --------------------------------------------------------------

def get_system_effects(combatant: Combatant) -> dict[str, SystemEffect]:
    """Current standing effects of every damaged subsystem."""
    lookups = {
        CritLocation.M_DRIVE: get_m_drive_effects,
        CritLocation.POWER_PLANT: get_power_plant_effects,
        CritLocation.J_DRIVE: get_j_drive_effects,
        CritLocation.SENSORS: get_sensor_effects,
        CritLocation.COMPUTER: get_computer_effects,
        CritLocation.ARMOUR: get_armour_effects,
    }
    effects: dict[str, SystemEffect] = {}
    for loc, lookup in lookups.items():
        total = combatant.total_severity(loc)
        if total > 0:
            effects[loc.value] = lookup(total)
    return effects
