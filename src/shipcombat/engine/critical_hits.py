"""Critical hit system — severity, location, records and repairs.

All functions are pure over a Combatant's crit records except
``apply_critical_hit`` and ``attempt_repair``, which mutate the records
they are handed.  BattleState calls them inside a transaction so the
change is versioned and announced; nothing else should.

Effects of the accumulated damage live in ``damage_effects``.
"""

from __future__ import annotations

import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Optional

from shipcombat.engine.dice import DiceRoller
from shipcombat.models.combatant import Combatant, CriticalRecord, CritLocation
from shipcombat.models.dice import DiceRoll
from shipcombat.util import constants
from shipcombat.util.errors import InvalidAmount

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class CriticalHitResult:
    """A recorded critical hit."""
    location: CritLocation
    severity: int
    total_severity: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location.value,
            "severity": self.severity,
            "total_severity": self.total_severity,
            "message": self.message,
        }


@dataclass(frozen=True)
class RepairResult:
    """Outcome of a repair attempt."""
    location: CritLocation
    success: bool
    roll: Optional[DiceRoll]
    total: int
    severity: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "location": self.location.value,
            "success": self.success,
            "roll": self.roll.to_dict() if self.roll else None,
            "total": self.total,
            "severity": self.severity,
            "message": self.message,
        }


def _location(location: CritLocation | str) -> CritLocation:
    return location if isinstance(location, CritLocation) else CritLocation(location)


def calculate_severity(damage: int) -> int:
    """Severity of a critical hit: one level per 10 damage, capped at 6."""
    if damage <= 0:
        return 0
    return min(math.ceil(damage / constants.SEVERITY_DAMAGE_STEP), constants.MAX_SEVERITY)


def location_for_roll(total: int) -> CritLocation:
    return constants.CRITICAL_LOCATION_TABLE[total]


def roll_critical_location(roller: Optional[DiceRoller] = None) -> CritLocation:
    """Roll 2d6 on the critical hit location table."""
    roller = roller or DiceRoller()
    return location_for_roll(roller.roll_2d6().total)


def triggers_critical_hit(effect: int, damage: int, threshold: int = constants.CRITICAL_EFFECT_THRESHOLD) -> bool:
    return effect >= threshold and damage > 0


def sustained_damage_crossings(current_hull: int, max_hull: int, previous_hull: int) -> int:
    """Number of new 10%-of-max hull boundaries crossed by one damage application."""
    if max_hull <= 0:
        return 0
    # integer chunks so 10% of e.g. 30 hull is exactly 3
    chunks = round(1 / constants.SUSTAINED_DAMAGE_FRACTION)
    before = (max_hull - previous_hull) * chunks // max_hull
    after = (max_hull - current_hull) * chunks // max_hull
    return max(0, after - before)


def triggers_sustained_damage(current_hull: int, max_hull: int, previous_hull: int) -> bool:
    return sustained_damage_crossings(current_hull, max_hull, previous_hull) > 0


def get_total_severity(combatant: Combatant, location: CritLocation | str) -> int:
    return combatant.total_severity(_location(location))


def apply_critical_hit(combatant: Combatant, location: CritLocation | str, severity: int) -> CriticalHitResult:
    """Append a critical record and return the new total active severity."""
    loc = _location(location)
    if not isinstance(severity, int) or isinstance(severity, bool) or severity < 1:
        raise InvalidAmount("severity", severity)
    severity = min(severity, constants.MAX_SEVERITY)

    combatant.crits.setdefault(loc, []).append(CriticalRecord(location=loc, severity=severity))
    total = combatant.total_severity(loc)
    log.info("[CRIT] %s: %s severity %d (total %d)", combatant.id, loc.value, severity, total)
    return CriticalHitResult(
        location=loc,
        severity=severity,
        total_severity=total,
        message=f"Critical hit to {loc.value} (severity {severity}, total {total})",
    )


def attempt_repair(
    combatant: Combatant,
    location: CritLocation | str,
    engineer_skill: int,
    roller: Optional[DiceRoller] = None,
    target: int = constants.REPAIR_TARGET,
) -> RepairResult:
    """Patch the worst unrepaired critical at a location.

    Rolls 2d6 + engineer skill - severity against 8.  A success marks the
    record repaired and temporary; expiry of the patch is up to the caller.
    """
    loc = _location(location)
    active = combatant.active_crits(loc)
    if not active:
        return RepairResult(
            location=loc, success=False, roll=None, total=0, severity=0,
            message=f"No damage at {loc.value} to repair",
        )

    worst = max(active, key=lambda c: c.severity)
    roller = roller or DiceRoller()
    roll = roller.roll_2d6()
    total = roll.total + engineer_skill - worst.severity
    success = total >= target

    if success:
        worst.repaired = True
        worst.temporary = True
        worst.repaired_at = time.time()
        message = f"Temporary repair of {loc.value} (severity {worst.severity}) succeeded"
    else:
        message = f"Repair of {loc.value} failed ({total} vs {target})"

    log.info("[CRIT] %s repair %s: %s + %d - %d = %d -> %s",
             combatant.id, loc.value, roll, engineer_skill, worst.severity, total,
             "success" if success else "failure")
    return RepairResult(
        location=loc, success=success, roll=roll, total=total,
        severity=worst.severity, message=message,
    )


def get_damage_summary(combatant: Combatant) -> dict[str, int]:
    """Total active severity per damaged location."""
    summary = {}
    for loc in CritLocation:
        total = combatant.total_severity(loc)
        if total > 0:
            summary[loc.value] = total
    return summary
