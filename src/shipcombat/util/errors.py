"""Combat engine errors — one hierarchy for every rules failure.

Every failure in the engine is local, synchronous and deterministic.
Errors are raised before any session state is touched, so callers can
surface them to the acting player without worrying about cleanup.

Each error carries:
  - ``message``: human-readable description
  - ``details``: structured context (ids, values) for logging
  - ``error_code``: short stable identifier for programmatic handling
"""

from __future__ import annotations

from typing import Any, Optional


class CombatError(Exception):
    """Base class for all combat engine errors.

    Args:
        message: Human-readable error message.
        details: Additional structured data about the error.
        error_code: Stable code; defaults to the class name.
    """

    def __init__(
        self,
        message: str,
        details: Optional[dict[str, Any]] = None,
        error_code: Optional[str] = None,
    ) -> None:
        self.message: str = message
        self.details: dict[str, Any] = details or {}
        self.error_code: str = error_code or self.__class__.__name__
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a plain dict for transport or logging."""
        return {
            "error_type": self.__class__.__name__,
            "error_code": self.error_code,
            "message": self.message,
            "details": self.details,
        }

    def __str__(self) -> str:
        details_str = f" | Details: {self.details}" if self.details else ""
        return f"[{self.error_code}] {self.message}{details_str}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"details={self.details!r})"
        )


class InvalidNotation(CombatError):
    """Dice string does not match ``NdM``."""

    def __init__(self, notation: Any) -> None:
        super().__init__(
            f"Invalid dice notation: {notation!r}",
            {"notation": notation},
        )


class InvalidTransition(CombatError):
    """Session state change not permitted from the current state."""

    def __init__(self, from_state: str, to_state: str, reason: str = "") -> None:
        message = f"Invalid transition: {from_state} -> {to_state}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message, {"from": from_state, "to": to_state})


class SessionNotActive(InvalidTransition):
    """A mutation was requested outside COMBAT or DRILL_ACTIVE."""

    def __init__(self, state: str, operation: str) -> None:
        CombatError.__init__(
            self,
            f"Cannot {operation} in state {state}",
            {"state": state, "operation": operation},
        )


class InvalidAmount(CombatError):
    """Negative or non-numeric damage, ammo or dice count."""

    def __init__(self, name: str, value: Any) -> None:
        super().__init__(
            f"Invalid {name}: {value!r}",
            {"name": name, "value": value},
        )


class TargetNotFound(CombatError):
    """Referenced combatant, contact or missile id does not exist."""

    def __init__(self, target_id: Any, kind: str = "target") -> None:
        super().__init__(
            f"{kind.capitalize()} not found: {target_id}",
            {"id": target_id, "kind": kind},
        )


class OutOfRange(CombatError):
    """Weapon fired (or missile launched) at a band outside its restriction."""

    def __init__(self, weapon: str, range_band: str, allowed: Optional[list[str]] = None) -> None:
        super().__init__(
            f"{weapon} cannot fire at {range_band} range",
            {"weapon": weapon, "range": range_band, "allowed": allowed or []},
        )


class NoSnapshot(CombatError):
    """Reset requested with no prior snapshot."""

    def __init__(self) -> None:
        super().__init__("No snapshot available for reset")


class NotBoardable(CombatError):
    """Boarding attempted against an ineligible target."""

    def __init__(self, target_id: Any, reason: str) -> None:
        super().__init__(
            f"Cannot board {target_id}: {reason}",
            {"id": target_id, "reason": reason},
        )


class WeaponUnavailable(CombatError):
    """Weapon index is invalid, out of ammunition, disabled or destroyed."""

    def __init__(self, weapon: Any, reason: str) -> None:
        super().__init__(
            f"Weapon {weapon} unavailable: {reason}",
            {"weapon": weapon, "reason": reason},
        )


class MissileNotTracking(CombatError):
    """Point defense requested against an already resolved missile."""

    def __init__(self, missile_id: str, status: str) -> None:
        super().__init__(
            f"Missile {missile_id} is not tracking (status: {status})",
            {"id": missile_id, "status": status},
        )
