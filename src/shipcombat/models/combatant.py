"""Combatant model — ships and sensor contacts taking part in a battle.

A Combatant is owned exclusively by the session's BattleState.  Rules
logic that changes it lives in the engine package; hull in particular is
only ever changed through ``BattleState.apply_damage``.
"""

from __future__ import annotations

import math
import time
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional

from shipcombat.models.ranges import RangeBand


class Disposition(Enum):
    """Attitude of a contact towards the player ship."""

    FRIENDLY = "friendly"
    HOSTILE = "hostile"
    NEUTRAL = "neutral"
    DISABLED = "disabled"
    DESTROYED = "destroyed"


class CritLocation(Enum):
    """The eleven ship subsystems a critical hit can land on."""

    SENSORS = "sensors"
    POWER_PLANT = "powerPlant"
    FUEL = "fuel"
    WEAPON = "weapon"
    ARMOUR = "armour"
    HULL = "hull"
    M_DRIVE = "mDrive"
    CARGO = "cargo"
    J_DRIVE = "jDrive"
    CREW = "crew"
    COMPUTER = "computer"


class WeaponCondition(Enum):
    """Mechanical state of a single weapon after weapon criticals."""

    OPERATIONAL = "operational"
    BANE = "bane"
    DISABLED = "disabled"
    DESTROYED = "destroyed"


@dataclass
class CriticalRecord:
    """One critical hit sustained at a location.

    Records are never deleted; repairs only flip the flags so the damage
    history survives for the session log.

    Attributes:
        location: Subsystem that was hit.
        severity: Severity of this single hit (1-6).
        repaired: Whether the damage has been patched.
        temporary: Whether the patch is a temporary field repair.
        timestamp: Unix time the hit was recorded.
        repaired_at: Unix time of the repair, if any.
    """

    location: CritLocation
    severity: int
    repaired: bool = False
    temporary: bool = False
    timestamp: float = field(default_factory=time.time)
    repaired_at: Optional[float] = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["location"] = self.location.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CriticalRecord:
        return cls(
            location=CritLocation(data["location"]),
            severity=int(data["severity"]),
            repaired=bool(data.get("repaired", False)),
            temporary=bool(data.get("temporary", False)),
            timestamp=float(data.get("timestamp", time.time())),
            repaired_at=data.get("repaired_at"),
        )


@dataclass
class Weapon:
    """A mounted weapon.

    Attributes:
        name: Display name (e.g. "Pulse Laser").
        damage: Damage dice in ``NdM`` notation.
        ammo: Rounds remaining; ``None`` means unlimited.
        max_ammo: Magazine capacity; ``None`` means unlimited.
        ranges: Allowed range bands; ``None`` means unrestricted.
        long_range_bonus: Attack DM at long, very long and distant bands.
        attack_dm: Flat attack DM built into the weapon.
        damage_multiple: Multiplier applied to damage after armour.
        ion: Ion weapons drain power instead of hull.
        missile: Missile racks launch tracked missiles instead of hitting directly.
        condition: Mechanical state after weapon criticals.
    """

    name: str
    damage: str = "2d6"
    ammo: Optional[int] = None
    max_ammo: Optional[int] = None
    ranges: Optional[frozenset[RangeBand]] = None
    long_range_bonus: int = 0
    attack_dm: int = 0
    damage_multiple: int = 1
    ion: bool = False
    missile: bool = False
    condition: WeaponCondition = WeaponCondition.OPERATIONAL

    def __post_init__(self) -> None:
        if self.ranges is not None:
            self.ranges = frozenset(RangeBand.parse(r) for r in self.ranges)
        if self.max_ammo is None and self.ammo is not None:
            self.max_ammo = self.ammo

    def can_fire_at(self, range_band: RangeBand) -> bool:
        return self.ranges is None or range_band in self.ranges

    @property
    def has_ammo(self) -> bool:
        return self.ammo is None or self.ammo > 0

    @property
    def usable(self) -> bool:
        return self.condition in (WeaponCondition.OPERATIONAL, WeaponCondition.BANE)

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "damage": self.damage,
            "ammo": self.ammo,
            "max_ammo": self.max_ammo,
            "ranges": sorted(r.value for r in self.ranges) if self.ranges is not None else None,
            "long_range_bonus": self.long_range_bonus,
            "attack_dm": self.attack_dm,
            "damage_multiple": self.damage_multiple,
            "ion": self.ion,
            "missile": self.missile,
            "condition": self.condition.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Weapon:
        ranges = data.get("ranges")
        return cls(
            name=data["name"],
            damage=data.get("damage", "2d6"),
            ammo=data.get("ammo"),
            max_ammo=data.get("max_ammo"),
            ranges=frozenset(RangeBand.parse(r) for r in ranges) if ranges is not None else None,
            long_range_bonus=int(data.get("long_range_bonus", 0)),
            attack_dm=int(data.get("attack_dm", 0)),
            damage_multiple=int(data.get("damage_multiple", 1)),
            ion=bool(data.get("ion", False)),
            missile=bool(data.get("missile", False)),
            condition=WeaponCondition(data.get("condition", "operational")),
        )


@dataclass
class CrewMember:
    """A crew member at a station.

    Attributes:
        name: Character name.
        role: Station ("pilot", "gunner", "engineer", "sensors", ...).
        skill: Rating in the station's skill.
        health: Current health; 0 means incapacitated.
        max_health: Health when unhurt.
    """

    name: str
    role: str
    skill: int = 0
    health: int = 10
    max_health: int = 10

    @property
    def alive(self) -> bool:
        return self.health > 0

    def effective_skill(self) -> int:
        """Skill scaled by remaining health (wounded crew fight worse)."""
        if self.max_health <= 0 or self.health <= 0:
            return 0
        return math.floor(self.skill * min(self.health, self.max_health) / self.max_health)


@dataclass
class Combatant:
    """A ship or contact in the session.

    Attributes:
        id: Unique id within the session.
        name: Display name.
        hull: Current hull points, always within [0, max_hull].
        max_hull: Undamaged hull points.
        armour: Armour rating subtracted from each hit.
        weapons: Mounted weapons in firing order.
        crew: Crew roster.
        power: Current power; ``None`` when not tracked.
        max_power: Power plant output; ``None`` when not tracked.
        fuel: Current fuel in tons; ``None`` when not tracked.
        max_fuel: Tank capacity in tons; ``None`` when not tracked.
        disposition: Attitude towards the player ship.
        range_band: Range from the player ship.
        drifting: Ship is adrift (no drive, no helm) and may be boarded.
        dampers: Nuclear damper screen; negates radiation from nuclear missiles.
        crits: Critical hit history per location.

        # Lingering effects resolved on round advance
        fuel_leak_per_round: Tons lost at each round advance.
        fuel_leak_per_hour: Tons lost per hour (resolved by the caller's clock).
        drained_power: Power removed by ion hits, returned on expiry.
        ion_rounds: Rounds until drained power returns.
    """

    id: str
    name: str
    hull: int
    max_hull: int
    armour: int = 0
    weapons: list[Weapon] = field(default_factory=list)
    crew: list[CrewMember] = field(default_factory=list)
    power: Optional[int] = None
    max_power: Optional[int] = None
    fuel: Optional[int] = None
    max_fuel: Optional[int] = None
    disposition: Disposition = Disposition.NEUTRAL
    range_band: RangeBand = RangeBand.DISTANT
    drifting: bool = False
    dampers: bool = False
    crits: dict[CritLocation, list[CriticalRecord]] = field(default_factory=dict)

    fuel_leak_per_round: int = 0
    fuel_leak_per_hour: int = 0
    drained_power: int = 0
    ion_rounds: int = 0

    def __post_init__(self) -> None:
        self.hull = max(0, min(self.hull, self.max_hull))
        if self.power is None and self.max_power is not None:
            self.power = self.max_power
        if self.fuel is None and self.max_fuel is not None:
            self.fuel = self.max_fuel

    # -- Queries ---------------------------------------------------------

    @property
    def destroyed(self) -> bool:
        return self.hull <= 0 or self.disposition == Disposition.DESTROYED

    def active_crits(self, location: CritLocation) -> list[CriticalRecord]:
        return [c for c in self.crits.get(location, []) if not c.repaired]

    def total_severity(self, location: CritLocation) -> int:
        """Sum of unrepaired severities at a location (may exceed 6)."""
        return sum(c.severity for c in self.active_crits(location))

    def crew_in_role(self, role: str) -> Optional[CrewMember]:
        for member in self.crew:
            if member.role == role and member.alive:
                return member
        return None

    def skill_for(self, role: str) -> int:
        """Effective skill of the first able crew member at a station, else 0."""
        member = self.crew_in_role(role)
        return member.effective_skill() if member else 0

    def living_crew(self) -> list[CrewMember]:
        return [m for m in self.crew if m.alive]

    # -- Serialization ---------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "hull": self.hull,
            "max_hull": self.max_hull,
            "armour": self.armour,
            "weapons": [w.to_dict() for w in self.weapons],
            "crew": [asdict(m) for m in self.crew],
            "power": self.power,
            "max_power": self.max_power,
            "fuel": self.fuel,
            "max_fuel": self.max_fuel,
            "disposition": self.disposition.value,
            "range_band": self.range_band.value,
            "drifting": self.drifting,
            "dampers": self.dampers,
            "crits": {
                loc.value: [c.to_dict() for c in records]
                for loc, records in self.crits.items()
            },
            "fuel_leak_per_round": self.fuel_leak_per_round,
            "fuel_leak_per_hour": self.fuel_leak_per_hour,
            "drained_power": self.drained_power,
            "ion_rounds": self.ion_rounds,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Combatant:
        """Build a combatant from a template or a saved state dict."""
        return cls(
            id=str(data["id"]),
            name=data.get("name", str(data["id"])),
            hull=int(data.get("hull", data.get("max_hull", 0))),
            max_hull=int(data.get("max_hull", data.get("hull", 0))),
            armour=int(data.get("armour", 0)),
            weapons=[Weapon.from_dict(w) for w in data.get("weapons", [])],
            crew=[CrewMember(**m) for m in data.get("crew", [])],
            power=data.get("power"),
            max_power=data.get("max_power"),
            fuel=data.get("fuel"),
            max_fuel=data.get("max_fuel"),
            disposition=Disposition(data.get("disposition", "neutral")),
            range_band=RangeBand.parse(data.get("range_band", "distant")),
            drifting=bool(data.get("drifting", False)),
            dampers=bool(data.get("dampers", False)),
            crits={
                CritLocation(loc): [CriticalRecord.from_dict(c) for c in records]
                for loc, records in data.get("crits", {}).items()
            },
            fuel_leak_per_round=int(data.get("fuel_leak_per_round", 0)),
            fuel_leak_per_hour=int(data.get("fuel_leak_per_hour", 0)),
            drained_power=int(data.get("drained_power", 0)),
            ion_rounds=int(data.get("ion_rounds", 0)),
        )
