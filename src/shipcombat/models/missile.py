"""Missile model — a salvo in flight towards its target."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

from shipcombat.models.ranges import RangeBand
from shipcombat.util.errors import CombatError


class MissileStatus(Enum):
    """Flight states. Only TRACKING is non-terminal."""

    TRACKING = "tracking"
    INTERCEPTED = "intercepted"
    IMPACTED = "impacted"
    JAMMED = "jammed"  # lost to electronic warfare
    DESTROYED = "destroyed"  # target left the session before impact


class MissileType(Enum):
    """Warheads and guidance. All four do the same 4d6 on impact."""

    STANDARD = "standard"
    SMART = "smart"
    NUCLEAR = "nuclear"
    NUCLEAR_SMART = "nuclear_smart"

    @property
    def smart(self) -> bool:
        """Keeps homing after a missed launch and may resist jamming."""
        return self in (MissileType.SMART, MissileType.NUCLEAR_SMART)

    @property
    def nuclear(self) -> bool:
        """Adds a radiation crew hit on impact."""
        return self in (MissileType.NUCLEAR, MissileType.NUCLEAR_SMART)

    @classmethod
    def parse(cls, value: MissileType | str) -> MissileType:
        if isinstance(value, cls):
            return value
        key = str(value).strip().lower().replace("-", "_").replace(" ", "_")
        try:
            return cls(key)
        except ValueError:
            raise CombatError(
                f"Unknown missile type: {value!r}",
                {"missile_type": value, "valid": [t.value for t in cls]},
                error_code="UnknownMissileType",
            ) from None


@dataclass
class Missile:
    """State of one missile.

    Attributes:
        id: Unique id within the tracker ("missile_N").
        attacker_id: Combatant that launched it.
        target_id: Combatant it is homing on.
        launch_round: Round of launch.
        launch_band: Range band at launch.
        range_band: Current distance to the target.
        missile_type: Warhead and guidance.
        status: Flight state.
        rounds_in_flight: Round advances survived so far.
        resolved_round: Round the missile left TRACKING.
        damage: Hull damage dealt on impact.
    """

    id: str
    attacker_id: str
    target_id: str
    launch_round: int
    launch_band: RangeBand
    range_band: RangeBand
    missile_type: MissileType = MissileType.STANDARD
    status: MissileStatus = MissileStatus.TRACKING
    rounds_in_flight: int = 0
    resolved_round: Optional[int] = None
    damage: int = 0

    @property
    def tracking(self) -> bool:
        return self.status == MissileStatus.TRACKING

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "attacker_id": self.attacker_id,
            "target_id": self.target_id,
            "launch_round": self.launch_round,
            "launch_band": self.launch_band.value,
            "range_band": self.range_band.value,
            "missile_type": self.missile_type.value,
            "status": self.status.value,
            "rounds_in_flight": self.rounds_in_flight,
            "resolved_round": self.resolved_round,
            "damage": self.damage,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Missile:
        return cls(
            id=data["id"],
            attacker_id=data["attacker_id"],
            target_id=data["target_id"],
            launch_round=int(data.get("launch_round", 0)),
            launch_band=RangeBand.parse(data["launch_band"]),
            range_band=RangeBand.parse(data["range_band"]),
            missile_type=MissileType.parse(data.get("missile_type", "standard")),
            status=MissileStatus(data.get("status", "tracking")),
            rounds_in_flight=int(data.get("rounds_in_flight", 0)),
            resolved_round=data.get("resolved_round"),
            damage=int(data.get("damage", 0)),
        )
