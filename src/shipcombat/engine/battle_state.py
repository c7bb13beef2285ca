"""Battle state — authoritative per-session ship and contact state.

BattleState owns the player ship, the sensor contacts and their damage
records for one session, and is the only place they change.  Every
public mutator:

  - validates first and raises before touching anything,
  - runs inside a transaction that rolls the whole session back if
    anything fails half way,
  - bumps ``version`` exactly once per outermost call, however many
    fields it touches,
  - emits its events after the bump, so they carry the new version.

Callers that bundle several mutations into one logical action (the
CombatService firing a weapon: damage + critical + side effects) wrap
them in ``transaction()`` to get a single version bump for the lot.

Hull only ever changes through ``apply_damage``.

The engine is synchronous and does no locking; the integration layer
must serialize calls per session.
"""

from __future__ import annotations

import copy
import dataclasses
import logging
import math
import numbers
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Iterator, Optional

from shipcombat.engine.critical_hits import CriticalHitResult, RepairResult, apply_critical_hit, attempt_repair
from shipcombat.engine.dice import DiceRoller
from shipcombat.models.combatant import Combatant, CritLocation, Disposition, Weapon
from shipcombat.models.messages import CombatantState, FullState
from shipcombat.models.session import ACTIVE_STATES, SessionState, can_transition
from shipcombat.util.errors import (
    CombatError,
    InvalidAmount,
    InvalidTransition,
    NoSnapshot,
    SessionNotActive,
    TargetNotFound,
    WeaponUnavailable,
)
from shipcombat.util.events import (
    CombatantUpdated,
    CriticalRecorded,
    DamageApplied,
    EventBus,
    PowerDrained,
    SessionCleared,
    SessionReset,
    StateChanged,
)

log = logging.getLogger(__name__)

PC_SHIP_ID = "pcShip"
"""Alias that always addresses the player ship, whatever its own id."""


@dataclass(frozen=True)
class DamageResult:
    """Outcome of one ``apply_damage`` call."""
    target_id: str
    target_name: str
    damage: int
    previous_hull: int
    new_hull: int
    destroyed: bool
    version: int
    source: str

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


@dataclass(frozen=True)
class _Snapshot:
    state: SessionState
    ship: Optional[Combatant]
    contacts: dict[str, Combatant]


def _check_amount(name: str, value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, numbers.Real):
        raise InvalidAmount(name, value)
    if math.isnan(value) or math.isinf(value) or value < 0:
        raise InvalidAmount(name, value)
    return int(value)


class BattleState:
    """Mutable state of one combat session.

    Args:
        session_id: Id of the campaign or table this session belongs to.
        event_bus: Bus that receives the session's events.
    """

    def __init__(self, session_id: Optional[str] = None, event_bus: Optional[EventBus] = None) -> None:
        self._session_id = session_id
        self._bus = event_bus or EventBus()
        self._state = SessionState.IDLE
        self._version = 0
        self._ship: Optional[Combatant] = None
        self._contacts: dict[str, Combatant] = {}
        self._snapshot: Optional[_Snapshot] = None

        self._tx_depth = 0
        self._tx_dirty = False
        self._tx_events: list[object] = []

    # -- Properties ------------------------------------------------------

    @property
    def session_id(self) -> Optional[str]:
        return self._session_id

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def version(self) -> int:
        return self._version

    @property
    def event_bus(self) -> EventBus:
        return self._bus

    @property
    def has_snapshot(self) -> bool:
        return self._snapshot is not None

    @property
    def is_active(self) -> bool:
        return self._state in ACTIVE_STATES

    # -- Transactions ----------------------------------------------------

    @contextmanager
    def transaction(self) -> Iterator[BattleState]:
        """Group mutations into one all-or-nothing, single-version change."""
        if self._tx_depth:
            self._tx_depth += 1
            try:
                yield self
            finally:
                self._tx_depth -= 1
            return

        backup = (self._state, copy.deepcopy(self._ship), copy.deepcopy(self._contacts), self._snapshot)
        self._tx_depth = 1
        self._tx_dirty = False
        self._tx_events = []
        try:
            yield self
        except Exception:
            self._state, self._ship, self._contacts, self._snapshot = backup
            self._tx_events = []
            raise
        finally:
            self._tx_depth = 0

        if not self._tx_dirty:
            return
        self._version += 1
        events, self._tx_events = self._tx_events, []
        for event in events:
            if hasattr(event, "version"):
                event = dataclasses.replace(event, version=self._version)
            self._bus.emit(event)

    def _mark(self, event: Optional[object] = None) -> None:
        self._tx_dirty = True
        if event is not None:
            self._tx_events.append(event)

    def mark_changed(self, event: Optional[object] = None) -> None:
        """Count a change to session-owned state kept outside BattleState.

        The missile tracker calls this for every flight change, so it
        bumps the version with the rest of the enclosing transaction and
        ``event`` is emitted only once that transaction commits.
        """
        with self.transaction():
            self._mark(event)

    def _require_active(self, operation: str) -> None:
        if self._state not in ACTIVE_STATES:
            raise SessionNotActive(self._state.value, operation)

    def _require(self, target_id: str) -> Combatant:
        if self._ship is not None and target_id in (self._ship.id, PC_SHIP_ID):
            return self._ship
        contact = self._contacts.get(target_id)
        if contact is None:
            raise TargetNotFound(target_id)
        return contact

    # -- State machine ---------------------------------------------------

    def can_transition(self, new_state: SessionState | str) -> bool:
        return can_transition(self._state, SessionState(new_state))

    def transition(self, new_state: SessionState | str) -> int:
        """Move to ``new_state``; returns the new version."""
        target = SessionState(new_state)
        if not can_transition(self._state, target):
            raise InvalidTransition(self._state.value, target.value)

        with self.transaction():
            old = self._state
            self._state = target
            self._mark(StateChanged(old.value, target.value, 0))

        log.info("[STATE] Session %s: %s → %s (v%d)",
                 self._session_id, old.value, target.value, self._version)
        return self._version

    # -- Combatants ------------------------------------------------------

    def set_ship(self, ship: Combatant) -> None:
        """Install the player ship; the session keeps its own copy."""
        with self.transaction():
            self._ship = copy.deepcopy(ship)
            self._mark(CombatantUpdated(ship.id, "ship_set", 0))

    def add_contact(self, contact: Combatant) -> None:
        """Add (or replace) a sensor contact; the session keeps its own copy."""
        if self._ship is not None and contact.id in (self._ship.id, PC_SHIP_ID):
            raise CombatError(
                f"Contact id {contact.id} clashes with the player ship",
                {"id": contact.id}, error_code="DuplicateId",
            )
        with self.transaction():
            self._contacts[contact.id] = copy.deepcopy(contact)
            self._mark(CombatantUpdated(contact.id, "contact_added", 0))

    def remove_contact(self, contact_id: str) -> None:
        if contact_id not in self._contacts:
            raise TargetNotFound(contact_id, "contact")
        with self.transaction():
            del self._contacts[contact_id]
            self._mark(CombatantUpdated(contact_id, "contact_removed", 0))

    def get_ship(self) -> Optional[Combatant]:
        return copy.deepcopy(self._ship)

    def get_contact(self, contact_id: str) -> Combatant:
        contact = self._contacts.get(contact_id)
        if contact is None:
            raise TargetNotFound(contact_id, "contact")
        return copy.deepcopy(contact)

    def get_contacts(self) -> list[Combatant]:
        return [copy.deepcopy(c) for c in self._contacts.values()]

    def get_combatant(self, target_id: str) -> Combatant:
        """Copy of the ship or contact with this id."""
        return copy.deepcopy(self._require(target_id))

    def has_combatant(self, target_id: str) -> bool:
        try:
            self._require(target_id)
        except TargetNotFound:
            return False
        return True

    def validate_weapon_index(self, combatant_id: str, index: int) -> Weapon:
        """Copy of the weapon at ``index`` on a combatant."""
        combatant = self._require(combatant_id)
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(combatant.weapons):
            raise WeaponUnavailable(index, f"{combatant.name} has {len(combatant.weapons)} weapon(s)")
        return copy.deepcopy(combatant.weapons[index])

    # -- Mutations -------------------------------------------------------

    def apply_damage(self, target_id: str, amount: int, source: str = "unknown") -> DamageResult:
        """Reduce a combatant's hull; the only sanctioned way to do so.

        Damage is clamped to the remaining hull.  A combatant brought to
        zero hull is marked destroyed.
        """
        self._require_active("apply damage")
        damage = _check_amount("damage", amount)
        target = self._require(target_id)

        with self.transaction():
            previous = target.hull
            actual = min(damage, previous)
            target.hull = previous - actual
            destroyed = target.hull == 0
            if destroyed:
                target.disposition = Disposition.DESTROYED
            self._mark(DamageApplied(
                target_id=target.id,
                target_name=target.name,
                damage=actual,
                new_hull=target.hull,
                destroyed=destroyed,
                version=0,
                source=source,
            ))

        log.debug("[DAMAGE] %s takes %d from %s (hull %d → %d)",
                  target.id, actual, source, previous, target.hull)
        if destroyed and previous > 0:
            log.info("[DAMAGE] %s destroyed by %s", target.id, source)

        return DamageResult(
            target_id=target.id,
            target_name=target.name,
            damage=actual,
            previous_hull=previous,
            new_hull=target.hull,
            destroyed=destroyed,
            version=self._version,
            source=source,
        )

    def record_critical(self, target_id: str, location: CritLocation | str, severity: int) -> CriticalHitResult:
        """Add a critical record; returns the new total severity there."""
        self._require_active("record a critical hit")
        target = self._require(target_id)
        with self.transaction():
            result = apply_critical_hit(target, location, severity)
            self._mark(CriticalRecorded(
                target.id, result.location.value, result.severity, result.total_severity, 0,
            ))
        return result

    def repair_critical(
        self,
        target_id: str,
        location: CritLocation | str,
        engineer_skill: int,
        roller: Optional[DiceRoller] = None,
    ) -> RepairResult:
        """Attempt a field repair of the worst damage at a location."""
        target = self._require(target_id)
        with self.transaction():
            result = attempt_repair(target, location, engineer_skill, roller)
            if result.success:
                self._mark(CombatantUpdated(target.id, f"repair:{result.location.value}", 0))
        return result

    def consume_ammo(self, combatant_id: str, weapon_index: int, amount: int = 1) -> Optional[int]:
        """Spend ammunition; returns rounds left (``None`` for unlimited)."""
        count = _check_amount("ammo", amount)
        combatant = self._require(combatant_id)
        weapon = self.validate_weapon_index(combatant_id, weapon_index)
        if weapon.ammo is None or count == 0:
            return weapon.ammo
        if weapon.ammo < count:
            raise WeaponUnavailable(weapon.name, f"only {weapon.ammo} round(s) left")

        with self.transaction():
            live = combatant.weapons[weapon_index]
            live.ammo -= count
            self._mark(CombatantUpdated(combatant.id, f"ammo:{live.name}", 0))
        return live.ammo

    def drain_power(self, target_id: str, amount: int, rounds: int = 1, source: str = "unknown") -> int:
        """Ion hit: remove power until ``rounds`` round advances pass.

        Returns the power actually drained (0 when power is not tracked).
        """
        self._require_active("drain power")
        drain = _check_amount("power drain", amount)
        duration = _check_amount("ion duration", rounds)
        target = self._require(target_id)

        with self.transaction():
            drained = 0
            if target.power is not None:
                drained = min(drain, target.power)
                target.power -= drained
                target.drained_power += drained
            target.ion_rounds = max(target.ion_rounds, duration)
            self._mark(PowerDrained(target.id, drained, target.power, target.ion_rounds, 0))

        log.debug("[DAMAGE] %s loses %d power to %s for %d round(s)", target.id, drained, source, duration)
        return drained

    @contextmanager
    def edit(self, target_id: str, reason: str) -> Iterator[Combatant]:
        """Yield the live combatant for a non-hull change.

        Used for critical side effects and round upkeep (armour, weapon
        condition, fuel, crew, power).  Changing hull here is refused.
        """
        target = self._require(target_id)
        with self.transaction():
            hull = target.hull
            yield target
            if target.hull != hull:
                raise CombatError(
                    "Hull may only change through apply_damage",
                    {"id": target.id}, error_code="HullMutation",
                )
            self._mark(CombatantUpdated(target.id, reason, 0))

    # -- Snapshot / reset ------------------------------------------------

    def create_snapshot(self) -> None:
        """Remember the current ship, contacts and state for ``reset``."""
        self._require_active("snapshot")
        self._snapshot = _Snapshot(
            state=self._state,
            ship=copy.deepcopy(self._ship),
            contacts=copy.deepcopy(self._contacts),
        )
        log.info("[STATE] Session %s: snapshot taken at v%d", self._session_id, self._version)

    def reset(self) -> int:
        """Rewind to the snapshot and resume the drill; returns the new version.

        The RESETTING phase is never observable from outside: both
        transitions and the restore commit together.
        """
        if self._snapshot is None:
            raise NoSnapshot()
        if not can_transition(self._state, SessionState.RESETTING):
            raise InvalidTransition(self._state.value, SessionState.RESETTING.value)

        with self.transaction():
            old = self._state
            self._state = SessionState.RESETTING
            self._mark(StateChanged(old.value, SessionState.RESETTING.value, 0))
            self._ship = copy.deepcopy(self._snapshot.ship)
            self._contacts = copy.deepcopy(self._snapshot.contacts)
            self._state = SessionState.DRILL_ACTIVE
            self._mark(StateChanged(SessionState.RESETTING.value, SessionState.DRILL_ACTIVE.value, 0))
            self._mark(SessionReset(0))

        log.info("[STATE] Session %s: reset to snapshot (v%d)", self._session_id, self._version)
        return self._version

    def clear(self) -> None:
        """Tear the session down to IDLE with nothing in it."""
        with self.transaction():
            self._state = SessionState.IDLE
            self._ship = None
            self._contacts = {}
            self._snapshot = None
            self._mark(SessionCleared(0))
        log.info("[STATE] Session %s cleared (v%d)", self._session_id, self._version)

    # -- Full state ------------------------------------------------------

    def get_full_state(self, missiles: Optional[list[dict[str, Any]]] = None) -> FullState:
        return FullState(
            state=self._state.value,
            version=self._version,
            session_id=self._session_id,
            ship=CombatantState.model_validate(self._ship.to_dict()) if self._ship else None,
            contacts=[CombatantState.model_validate(c.to_dict()) for c in self._contacts.values()],
            has_snapshot=self._snapshot is not None,
            missiles=list(missiles or []),
        )

    @classmethod
    def from_full_state(
        cls,
        data: FullState | dict[str, Any],
        event_bus: Optional[EventBus] = None,
    ) -> BattleState:
        """Rebuild a session from ``get_full_state`` output.

        Snapshots are not part of the full state; a restored drill needs a
        fresh ``create_snapshot`` before it can be reset.
        """
        full = data if isinstance(data, FullState) else FullState.model_validate(data)
        battle = cls(session_id=full.session_id, event_bus=event_bus)
        battle._state = SessionState(full.state)
        battle._version = full.version
        if full.ship is not None:
            battle._ship = Combatant.from_dict(full.ship.model_dump())
        for contact in full.contacts:
            battle._contacts[contact.id] = Combatant.from_dict(contact.model_dump())
        log.info("[STATE] Session %s restored at %s v%d", full.session_id, full.state, full.version)
        return battle
