"""Typed event bus — decoupled notification of session mutations.

The engine emits one event per successful mutating call, after the
version bump, so subscribers (transport, logging, replay) always see
the new version number.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar, Type

T = TypeVar("T")


# -- Session events ------------------------------------------------------

@dataclass(frozen=True)
class StateChanged:
    """The session state machine moved to a new state."""
    from_state: str
    to_state: str
    version: int


@dataclass(frozen=True)
class SessionReset:
    """A drill was rewound to its snapshot."""
    version: int


@dataclass(frozen=True)
class SessionCleared:
    """The session was torn down to IDLE."""
    version: int


# -- Damage events -------------------------------------------------------

@dataclass(frozen=True)
class DamageApplied:
    """Hull damage was applied to a combatant."""
    target_id: str
    target_name: str
    damage: int  # after clamping to the remaining hull
    new_hull: int
    destroyed: bool
    version: int
    source: str = "unknown"


@dataclass(frozen=True)
class CriticalRecorded:
    """A critical hit was added to a combatant's damage record."""
    target_id: str
    location: str
    severity: int
    total_severity: int
    version: int


@dataclass(frozen=True)
class PowerDrained:
    """An ion hit drained power from a combatant."""
    target_id: str
    amount: int
    new_power: Optional[int]
    rounds: int
    version: int


@dataclass(frozen=True)
class CombatantUpdated:
    """Non-hull fields of a combatant changed (repair, ammo, fuel, crew)."""
    target_id: str
    reason: str
    version: int


# -- Missile events ------------------------------------------------------

@dataclass(frozen=True)
class MissileLaunched:
    """A missile entered flight."""
    missile_id: str
    attacker_id: str
    target_id: str
    range_band: str
    missile_type: str = "standard"
    version: int = 0


@dataclass(frozen=True)
class MissileResolved:
    """A missile left the tracking state."""
    missile_id: str
    target_id: str
    status: str  # "intercepted", "impacted", "jammed" or "destroyed"
    damage: int = 0
    version: int = 0


# -- Event Bus -----------------------------------------------------------

class EventBus:
    """Simple synchronous event bus with typed events.

    Usage:
        bus = EventBus()
        bus.on(DamageApplied, lambda e: print(e.new_hull))
        bus.emit(DamageApplied(target_id="pirate", ...))
    """

    def __init__(self) -> None:
        self._handlers: dict[type, list[Callable[[Any], None]]] = defaultdict(list)

    def on(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Register a handler for an event type."""
        self._handlers[event_type].append(handler)

    def off(self, event_type: Type[T], handler: Callable[[T], None]) -> None:
        """Unregister a handler."""
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)

    def emit(self, event: object) -> None:
        """Emit an event to all registered handlers."""
        for handler in self._handlers.get(type(event), []):
            handler(event)

    def clear(self) -> None:
        """Remove all handlers."""
        self._handlers.clear()
