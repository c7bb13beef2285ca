"""Dice engine — seeded and unseeded dice for every rules check.

Seeded rolls come from a small linear congruential stream so a roll
asserted by a client can be re-derived and checked on the server.  The
stream is not secure; unseeded play uses the OS entropy source so it
cannot be predicted from an observed seed.

Resolvers take an optional ``DiceRoller`` so tests can inject a seeded
or scripted roller and all dice of one action come from one stream.
"""

from __future__ import annotations

import random
import re
from typing import Optional, Sequence, TypeVar

from shipcombat.models.dice import DiceRoll
from shipcombat.util.errors import InvalidAmount, InvalidNotation

T = TypeVar("T")

_NOTATION = re.compile(r"^\s*(\d+)[dD](\d+)\s*$")

# Numerical Recipes LCG parameters
LCG_MULTIPLIER = 1664525
LCG_INCREMENT = 1013904223
LCG_MODULUS = 2 ** 32


class DiceRoller:
    """A stream of dice faces, reproducible when seeded."""

    def __init__(self, seed: Optional[int] = None) -> None:
        self._seed = seed
        if seed is None:
            self._rng: Optional[random.SystemRandom] = random.SystemRandom()
            self._state = 0
        else:
            if not isinstance(seed, int) or isinstance(seed, bool):
                raise InvalidAmount("seed", seed)
            self._rng = None
            self._state = seed % LCG_MODULUS

    @property
    def seed(self) -> Optional[int]:
        return self._seed

    def _face(self, sides: int) -> int:
        if self._rng is not None:
            return self._rng.randint(1, sides)
        self._state = (LCG_MULTIPLIER * self._state + LCG_INCREMENT) % LCG_MODULUS
        # low bits of an LCG cycle quickly; take the high half
        return (self._state >> 16) % sides + 1

    def roll(self, count: int, sides: int = 6) -> DiceRoll:
        """Roll ``count`` dice with ``sides`` faces each."""
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise InvalidAmount("dice count", count)
        if not isinstance(sides, int) or isinstance(sides, bool) or sides < 1:
            raise InvalidAmount("dice sides", sides)
        faces = tuple(self._face(sides) for _ in range(count))
        return DiceRoll(dice=faces, sides=sides, seed=self._seed)

    def roll_notation(self, notation: str) -> DiceRoll:
        count, sides = parse_notation(notation)
        return self.roll(count, sides)

    def roll_2d6(self) -> DiceRoll:
        return self.roll(2, 6)

    def d6(self) -> int:
        return self._face(6)

    def choice(self, items: Sequence[T]) -> T:
        """Pick one item uniformly using this stream."""
        if not items:
            raise InvalidAmount("choice from", list(items))
        return items[self._face(len(items)) - 1]


def parse_notation(notation: str) -> tuple[int, int]:
    """Split ``"4d6"`` into ``(4, 6)``; raise InvalidNotation otherwise."""
    if not isinstance(notation, str):
        raise InvalidNotation(notation)
    m = _NOTATION.match(notation)
    if not m:
        raise InvalidNotation(notation)
    count, sides = int(m.group(1)), int(m.group(2))
    if count < 1 or sides < 1:
        raise InvalidNotation(notation)
    return count, sides


# -- Module-level helpers --------------------------------------------------

def roll(count: int, sides: int = 6, seed: Optional[int] = None) -> DiceRoll:
    return DiceRoller(seed).roll(count, sides)


def roll_notation(notation: str, seed: Optional[int] = None) -> DiceRoll:
    return DiceRoller(seed).roll_notation(notation)


def roll_2d6(seed: Optional[int] = None) -> DiceRoll:
    return DiceRoller(seed).roll_2d6()


def validate_roll(dice_roll: DiceRoll, seed: int) -> bool:
    """Re-derive a roll from ``seed`` and compare it die for die.

    Used to detect tampering with client-reported rolls.
    """
    if seed is None:
        return False
    expected = DiceRoller(seed).roll(dice_roll.count, dice_roll.sides)
    return expected.dice == tuple(dice_roll.dice)
