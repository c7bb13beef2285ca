"""Dice roll result model."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class DiceRoll:
    """Immutable result of rolling ``len(dice)`` dice of ``sides`` faces.

    Attributes:
        dice: Individual faces in the order they were rolled.
        sides: Faces per die.
        seed: Seed of the stream that produced the roll, if seeded.
    """

    dice: tuple[int, ...]
    sides: int = 6
    seed: Optional[int] = None

    @property
    def total(self) -> int:
        return sum(self.dice)

    @property
    def count(self) -> int:
        return len(self.dice)

    @property
    def notation(self) -> str:
        return f"{self.count}d{self.sides}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "notation": self.notation,
            "dice": list(self.dice),
            "total": self.total,
            "seed": self.seed,
        }

    def __str__(self) -> str:
        return f"{self.notation} [{', '.join(str(d) for d in self.dice)}] = {self.total}"
