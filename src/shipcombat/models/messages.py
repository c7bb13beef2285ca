"""Full-state message models.

Typed Pydantic models for the session state handed to the transport
and persistence layers (reconnect sync, save/restore).  Dataclass
models convert through their ``to_dict``/``from_dict`` helpers.
"""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


# -- Combatant parts -----------------------------------------------------

class WeaponState(BaseModel):
    name: str
    damage: str = "2d6"
    ammo: Optional[int] = None
    max_ammo: Optional[int] = None
    ranges: Optional[list[str]] = None
    long_range_bonus: int = 0
    attack_dm: int = 0
    damage_multiple: int = 1
    ion: bool = False
    missile: bool = False
    condition: str = "operational"


class CrewState(BaseModel):
    name: str
    role: str
    skill: int = 0
    health: int = 10
    max_health: int = 10


class CriticalRecordState(BaseModel):
    location: str
    severity: int = Field(ge=1, le=6)
    repaired: bool = False
    temporary: bool = False
    timestamp: float
    repaired_at: Optional[float] = None


class CombatantState(BaseModel):
    id: str
    name: str
    hull: int = Field(ge=0)
    max_hull: int = Field(ge=0)
    armour: int = 0
    weapons: list[WeaponState] = Field(default_factory=list)
    crew: list[CrewState] = Field(default_factory=list)
    power: Optional[int] = None
    max_power: Optional[int] = None
    fuel: Optional[int] = None
    max_fuel: Optional[int] = None
    disposition: str = "neutral"
    range_band: str = "distant"
    drifting: bool = False
    dampers: bool = False
    crits: dict[str, list[CriticalRecordState]] = Field(default_factory=dict)
    fuel_leak_per_round: int = 0
    fuel_leak_per_hour: int = 0
    drained_power: int = 0
    ion_rounds: int = 0


# -- Session -------------------------------------------------------------

class FullState(BaseModel):
    """Everything a reconnecting client or a save file needs."""

    state: str
    version: int
    session_id: Optional[str] = None
    ship: Optional[CombatantState] = None
    contacts: list[CombatantState] = Field(default_factory=list)
    has_snapshot: bool = False
    missiles: list[dict[str, Any]] = Field(default_factory=list)
