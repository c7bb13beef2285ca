"""Missile tracker — multi-round missile flight, point defense and ECM.

Missile lifecycle:
    TRACKING ──► INTERCEPTED   (point defense succeeded)
        │
        ├──────► JAMMED        (electronic warfare succeeded)
        │
        ├──────► IMPACTED      (reached the target, 4d6 - armour)
        │
        └──────► DESTROYED     (target left the session mid-flight)

Each ``advance_round`` moves every tracking missile one range band
closer.  A missile that closes to the close band is in terminal
guidance and hits in the same round, so the sequence from long range
is long → medium → short → impact.  Impacts are automatic (no attack
roll) and their damage goes through ``BattleState.apply_damage``.
Nuclear warheads add a radiation crew hit unless the target's armour
or dampers stop it.

Missiles are part of the session's full state, so every flight change
runs inside a ``BattleState`` transaction: it bumps the session version
with whatever else the caller is doing, and the missile events are
emitted after that transaction commits.  A tracker built without a
battle (save-file tooling, tests) emits straight to its bus.

Resolved missiles stay listed for ``retention_rounds`` so clients can
show the outcome, then ``cleanup`` drops them.
"""

from __future__ import annotations

import copy
import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Iterator, Optional, TYPE_CHECKING

from shipcombat.engine.damage_effects import RadiationHit, apply_radiation_hit, check_radiation
from shipcombat.engine.dice import DiceRoller
from shipcombat.loaders.combat_config_loader import CombatConfig
from shipcombat.models.dice import DiceRoll
from shipcombat.models.missile import Missile, MissileStatus, MissileType
from shipcombat.models.ranges import RangeBand
from shipcombat.util import constants
from shipcombat.util.errors import CombatError, InvalidAmount, MissileNotTracking, OutOfRange, TargetNotFound
from shipcombat.util.events import EventBus, MissileLaunched, MissileResolved

if TYPE_CHECKING:
    from shipcombat.engine.battle_state import BattleState

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class PointDefenseResult:
    """Outcome of one interception attempt."""
    missile_id: str
    success: bool
    roll: DiceRoll
    modifiers: dict[str, int]
    total: int
    target_number: int
    message: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "missile_id": self.missile_id,
            "success": self.success,
            "roll": self.roll.to_dict(),
            "modifiers": dict(self.modifiers),
            "total": self.total,
            "target_number": self.target_number,
            "message": self.message,
        }


@dataclass(frozen=True)
class EcmResult:
    """Outcome of one jamming attempt."""
    missile_id: str
    jammed: bool
    roll: DiceRoll
    total: int
    target_number: int
    resist_roll: Optional[DiceRoll] = None  # smart missiles only, after a successful jam
    message: str = ""

    @property
    def resisted(self) -> bool:
        return self.resist_roll is not None and not self.jammed

    def to_dict(self) -> dict[str, Any]:
        return {
            "missile_id": self.missile_id,
            "jammed": self.jammed,
            "roll": self.roll.to_dict(),
            "total": self.total,
            "target_number": self.target_number,
            "resist_roll": self.resist_roll.to_dict() if self.resist_roll else None,
            "resisted": self.resisted,
            "message": self.message,
        }


@dataclass
class MissileUpdate:
    """What happened to one missile during a round advance."""
    missile_id: str
    target_id: str
    status: MissileStatus
    range_band: RangeBand
    damage_roll: Optional[DiceRoll] = None
    damage: int = 0
    destroyed_target: bool = False
    radiation: Optional[RadiationHit] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "missile_id": self.missile_id,
            "target_id": self.target_id,
            "status": self.status.value,
            "range": self.range_band.value,
            "damage_roll": self.damage_roll.to_dict() if self.damage_roll else None,
            "damage": self.damage,
            "destroyed_target": self.destroyed_target,
            "radiation": self.radiation.to_dict() if self.radiation else None,
        }


@dataclass
class _RoundActions:
    """Defensive actions already taken in the current round."""
    round: int = 0
    attempts: dict[str, int] = field(default_factory=dict)  # point defense per gunner
    jammed_at: set[str] = field(default_factory=set)  # missiles already targeted by ECM


@dataclass(frozen=True)
class TrackerCheckpoint:
    """Opaque copy of the tracker's missiles for rolling back a failed round."""
    missiles: dict[str, Missile]
    next_id: int


def turret_bonus(turret_size: int) -> int:
    return constants.TURRET_BONUS.get(turret_size, max(constants.TURRET_BONUS.values()))


class MissileTracker:
    """Missiles in flight for one session.

    Args:
        event_bus: Bus for missile events when no battle is attached.
        config: Tunable rules values.
        battle: Session whose transactions and version cover the missiles.
    """

    def __init__(
        self,
        event_bus: Optional[EventBus] = None,
        config: Optional[CombatConfig] = None,
        battle: Optional[BattleState] = None,
    ) -> None:
        self._battle = battle
        self._bus = event_bus or (battle.event_bus if battle else EventBus())
        self._config = config or CombatConfig()
        self._missiles: dict[str, Missile] = {}
        self._next_id = 1
        self._round = _RoundActions()

    # -- Session bookkeeping ---------------------------------------------

    @contextmanager
    def _changes(self) -> Iterator[None]:
        if self._battle is None:
            yield
            return
        with self._battle.transaction():
            yield

    def _changed(self, event: Optional[object] = None, battle: Optional[BattleState] = None) -> None:
        battle = battle or self._battle
        if battle is not None:
            battle.mark_changed(event)
        elif event is not None:
            self._bus.emit(event)

    def _new_round(self, round: Optional[int]) -> None:
        if round is not None and round != self._round.round:
            self._round = _RoundActions(round=round)

    def checkpoint(self) -> TrackerCheckpoint:
        return TrackerCheckpoint(copy.deepcopy(self._missiles), self._next_id)

    def restore(self, checkpoint: TrackerCheckpoint) -> None:
        self._missiles = copy.deepcopy(checkpoint.missiles)
        self._next_id = checkpoint.next_id

    # -- Query -----------------------------------------------------------

    def get(self, missile_id: str) -> Missile:
        missile = self._missiles.get(missile_id)
        if missile is None:
            raise TargetNotFound(missile_id, "missile")
        return copy.deepcopy(missile)

    def get_missiles(self) -> list[Missile]:
        return [copy.deepcopy(m) for m in self._missiles.values()]

    def get_tracking(self, target_id: Optional[str] = None) -> list[Missile]:
        """Tracking missiles, optionally only those homing on ``target_id``."""
        return [
            copy.deepcopy(m) for m in self._missiles.values()
            if m.tracking and (target_id is None or m.target_id == target_id)
        ]

    def get_state(self) -> dict[str, Any]:
        """Counts per status plus the missile list, for full-state sync."""
        counts = {s.value: 0 for s in MissileStatus}
        for m in self._missiles.values():
            counts[m.status.value] += 1
        return {
            "total": len(self._missiles),
            "counts": counts,
            "missiles": [m.to_dict() for m in self._missiles.values()],
        }

    def _tracking(self, missile_id: str) -> Missile:
        missile = self._missiles.get(missile_id)
        if missile is None:
            raise TargetNotFound(missile_id, "missile")
        if not missile.tracking:
            raise MissileNotTracking(missile_id, missile.status.value)
        return missile

    # -- Launch ----------------------------------------------------------

    def launch(
        self,
        attacker_id: str,
        target_id: str,
        range_band: RangeBand | str,
        round: int,
        missile_type: MissileType | str = MissileType.STANDARD,
    ) -> Missile:
        """Put a missile into flight at the current range to its target."""
        band = RangeBand.parse(range_band)
        kind = MissileType.parse(missile_type)
        if band in constants.MISSILE_NO_LAUNCH_BANDS:
            raise OutOfRange("missile", band.value)

        with self._changes():
            missile = Missile(
                id=f"missile_{self._next_id}",
                attacker_id=attacker_id,
                target_id=target_id,
                launch_round=round,
                launch_band=band,
                range_band=band,
                missile_type=kind,
            )
            self._next_id += 1
            self._missiles[missile.id] = missile
            self._changed(MissileLaunched(missile.id, attacker_id, target_id, band.value, kind.value))

        log.info("[MISSILE] %s (%s) launched by %s at %s from %s range (round %d)",
                 missile.id, kind.value, attacker_id, target_id, band.value, round)
        return copy.deepcopy(missile)

    # -- Point defense ---------------------------------------------------

    def point_defense(
        self,
        missile_id: str,
        gunner_skill: int = 0,
        turret_size: int = 1,
        round: Optional[int] = None,
        gunner_id: str = "default",
        roller: Optional[DiceRoller] = None,
    ) -> PointDefenseResult:
        """Try to shoot down a tracking missile.

        2d6 + gunner skill + turret bonus >= 8 intercepts it.  A gunner
        firing again in the same round takes a cumulative DM-1 per
        earlier attempt.
        """
        missile = self._tracking(missile_id)
        if isinstance(turret_size, bool) or not isinstance(turret_size, int) or turret_size < 1:
            raise InvalidAmount("turret size", turret_size)

        self._new_round(round)
        prior = self._round.attempts.get(gunner_id, 0)

        mods = {
            "skill": gunner_skill,
            "turret": turret_bonus(turret_size),
            "repeat": -prior,
        }
        mods = {k: v for k, v in mods.items() if v}
        roller = roller or DiceRoller()
        roll = roller.roll_2d6()
        total = roll.total + sum(mods.values())
        target = self._config.point_defense_target
        success = total >= target

        self._round.attempts[gunner_id] = prior + 1
        if success:
            with self._changes():
                missile.status = MissileStatus.INTERCEPTED
                missile.resolved_round = self._round.round
                self._changed(MissileResolved(missile.id, missile.target_id, missile.status.value))
            message = f"{missile.id} destroyed by point defense"
        else:
            message = f"Point defense missed {missile.id}"

        log.info("[MISSILE] point defense on %s: %s + %s = %d -> %s",
                 missile.id, roll, mods, total, "hit" if success else "miss")
        return PointDefenseResult(
            missile_id=missile.id,
            success=success,
            roll=roll,
            modifiers=mods,
            total=total,
            target_number=target,
            message=message,
        )

    # -- Electronic warfare ----------------------------------------------

    def electronic_warfare(
        self,
        missile_id: str,
        sensor_skill: int = 0,
        round: Optional[int] = None,
        roller: Optional[DiceRoller] = None,
    ) -> EcmResult:
        """Try to jam a tracking missile.

        2d6 + electronics (sensors) >= 8 jams it.  A smart missile that
        is jammed gets a plain 2d6 and shakes the jamming off on 8+.
        Each missile can be targeted by ECM once per round.
        """
        missile = self._tracking(missile_id)
        self._new_round(round)
        if missile.id in self._round.jammed_at:
            raise CombatError(
                f"{missile.id} was already targeted by ECM this round",
                {"missile_id": missile.id, "round": self._round.round},
                error_code="EcmAlreadyAttempted",
            )
        self._round.jammed_at.add(missile.id)

        roller = roller or DiceRoller()
        roll = roller.roll_2d6()
        total = roll.total + sensor_skill
        target = constants.ECM_TARGET
        resist_roll = None
        jammed = total >= target
        if jammed and missile.missile_type.smart:
            resist_roll = roller.roll_2d6()
            jammed = resist_roll.total < constants.SMART_RESIST_TARGET

        if jammed:
            with self._changes():
                missile.status = MissileStatus.JAMMED
                missile.resolved_round = self._round.round
                self._changed(MissileResolved(missile.id, missile.target_id, missile.status.value))
            message = f"ECM jammed {missile.id} ({total} vs {target})"
        elif resist_roll is not None:
            message = f"ECM locked on but smart missile {missile.id} resisted ({resist_roll.total})"
        else:
            message = f"ECM failed to jam {missile.id} ({total} vs {target})"

        log.info("[MISSILE] ECM on %s: %s + %d = %d -> %s",
                 missile.id, roll, sensor_skill, total, "jammed" if jammed else "clear")
        return EcmResult(
            missile_id=missile.id,
            jammed=jammed,
            roll=roll,
            total=total,
            target_number=target,
            resist_roll=resist_roll,
            message=message,
        )

    # -- Round advance ---------------------------------------------------

    def advance_round(
        self,
        battle: BattleState,
        round: int,
        roller: Optional[DiceRoller] = None,
    ) -> list[MissileUpdate]:
        """Move every tracking missile one band closer and resolve arrivals.

        The whole advance is one session mutation; if any impact fails,
        neither the session nor the missiles change.
        """
        roller = roller or DiceRoller()
        backup = self.checkpoint()
        updates: list[MissileUpdate] = []
        self._round = _RoundActions(round=round)

        try:
            with battle.transaction():
                for missile in self._missiles.values():
                    if not missile.tracking:
                        continue
                    missile.rounds_in_flight += 1

                    if not battle.has_combatant(missile.target_id):
                        missile.status = MissileStatus.DESTROYED
                        missile.resolved_round = round
                        updates.append(MissileUpdate(missile.id, missile.target_id,
                                                     missile.status, missile.range_band))
                        self._changed(MissileResolved(missile.id, missile.target_id, missile.status.value),
                                      battle)
                        continue

                    missile.range_band = missile.range_band.closer()
                    if missile.range_band > constants.MISSILE_TERMINAL_BAND:
                        updates.append(MissileUpdate(missile.id, missile.target_id,
                                                     missile.status, missile.range_band))
                        self._changed(battle=battle)
                        continue

                    missile.range_band = RangeBand.ADJACENT
                    update = self._impact(missile, battle, round, roller)
                    updates.append(update)
                    self._changed(MissileResolved(missile.id, missile.target_id,
                                                  missile.status.value, update.damage), battle)

                if self._drop_stale(round):
                    self._changed(battle=battle)
        except Exception:
            self.restore(backup)
            raise
        return updates

    def _impact(self, missile: Missile, battle: BattleState, round: int, roller: DiceRoller) -> MissileUpdate:
        target = battle.get_combatant(missile.target_id)
        damage_roll = roller.roll_notation(self._config.missile_damage)
        damage = max(0, damage_roll.total - target.armour)
        result = battle.apply_damage(missile.target_id, damage, source=f"missile:{missile.id}")

        radiation = None
        if missile.missile_type.nuclear:
            radiation = check_radiation(target.armour, target.dampers)
            if radiation.applies:
                with battle.edit(missile.target_id, f"radiation:{missile.id}") as live:
                    radiation = apply_radiation_hit(live, roller)

        missile.status = MissileStatus.IMPACTED
        missile.resolved_round = round
        missile.damage = result.damage
        log.info("[MISSILE] %s impacts %s: %s - %d armour = %d damage",
                 missile.id, missile.target_id, damage_roll, target.armour, damage)
        return MissileUpdate(
            missile_id=missile.id,
            target_id=missile.target_id,
            status=missile.status,
            range_band=missile.range_band,
            damage_roll=damage_roll,
            damage=result.damage,
            destroyed_target=result.destroyed,
            radiation=radiation,
        )

    # -- Cleanup ---------------------------------------------------------

    def _drop_stale(self, round: int) -> int:
        keep = self._config.missile_retention_rounds
        stale = [
            m.id for m in self._missiles.values()
            if not m.tracking and m.resolved_round is not None and round - m.resolved_round >= keep
        ]
        for missile_id in stale:
            del self._missiles[missile_id]
        if stale:
            log.debug("[MISSILE] cleaned up %d resolved missile(s)", len(stale))
        return len(stale)

    def cleanup(self, round: int) -> int:
        """Drop missiles resolved more than ``retention_rounds`` ago."""
        with self._changes():
            dropped = self._drop_stale(round)
            if dropped:
                self._changed()
        return dropped

    def clear(self) -> None:
        self._missiles.clear()
        self._round = _RoundActions()

    def load(self, missiles: list[dict[str, Any]]) -> None:
        """Replace the tracked missiles with saved ``to_dict`` records."""
        self.clear()
        for data in missiles:
            missile = Missile.from_dict(data)
            self._missiles[missile.id] = missile
            suffix = missile.id.rpartition("_")[2]
            if suffix.isdigit():
                self._next_id = max(self._next_id, int(suffix) + 1)
