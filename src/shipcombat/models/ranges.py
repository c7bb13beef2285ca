"""Range bands and dodge levels.

Range bands are ordered from nearest to furthest; comparison operators
follow that order so ``RangeBand.SHORT < RangeBand.LONG`` holds.
"""

from __future__ import annotations

import re
from enum import Enum

from shipcombat.util.errors import CombatError


class RangeBand(Enum):
    """Distance categories governing weapon use and attack DMs."""

    ADJACENT = "adjacent"
    CLOSE = "close"
    SHORT = "short"
    MEDIUM = "medium"
    LONG = "long"
    VERY_LONG = "very_long"
    DISTANT = "distant"

    @property
    def index(self) -> int:
        return _ORDER.index(self)

    def closer(self) -> RangeBand:
        """Next band inward, floored at adjacent."""
        return _ORDER[max(0, self.index - 1)]

    def __lt__(self, other: RangeBand) -> bool:
        if not isinstance(other, RangeBand):
            return NotImplemented
        return self.index < other.index

    def __le__(self, other: RangeBand) -> bool:
        if not isinstance(other, RangeBand):
            return NotImplemented
        return self.index <= other.index

    def __gt__(self, other: RangeBand) -> bool:
        if not isinstance(other, RangeBand):
            return NotImplemented
        return self.index > other.index

    def __ge__(self, other: RangeBand) -> bool:
        if not isinstance(other, RangeBand):
            return NotImplemented
        return self.index >= other.index

    @classmethod
    def parse(cls, value: RangeBand | str) -> RangeBand:
        """Accept a band or any common spelling (``very-long``, ``Very Long``, ``veryLong``)."""
        if isinstance(value, RangeBand):
            return value
        key = re.sub(r"(?<=[a-z])(?=[A-Z])", "_", str(value).strip())
        key = re.sub(r"[\s\-]+", "_", key).lower()
        try:
            return cls(key)
        except ValueError:
            raise CombatError(
                f"Unknown range band: {value!r}",
                {"range": value, "valid": [b.value for b in cls]},
                error_code="UnknownRangeBand",
            ) from None


_ORDER: list[RangeBand] = list(RangeBand)


class DodgeLevel(Enum):
    """Evasive manoeuvre declared by the target pilot."""

    NONE = "none"
    PARTIAL = "partial"
    FULL = "full"

    @classmethod
    def parse(cls, value: DodgeLevel | str | None) -> DodgeLevel:
        if value is None:
            return cls.NONE
        if isinstance(value, DodgeLevel):
            return value
        return cls(str(value).lower())
