"""Shared fixtures: sample ships and a scripted dice roller."""

from __future__ import annotations

import pytest

from shipcombat.engine.dice import DiceRoller
from shipcombat.engine.session import CombatSession
from shipcombat.models.combatant import Combatant, CrewMember, Disposition, Weapon
from shipcombat.models.ranges import RangeBand
from shipcombat.models.session import SessionState


class ScriptedRoller(DiceRoller):
    """Roller that hands out pre-set faces in order."""

    def __init__(self, faces: list[int]) -> None:
        super().__init__(seed=0)
        self._faces = list(faces)

    def _face(self, sides: int) -> int:
        assert self._faces, "ScriptedRoller ran out of faces"
        face = self._faces.pop(0)
        assert 1 <= face <= sides, f"face {face} impossible on d{sides}"
        return face

    @property
    def remaining(self) -> list[int]:
        return list(self._faces)


@pytest.fixture
def scripted():
    """Factory: ``scripted([4, 3])`` returns a roller yielding 4 then 3."""
    return ScriptedRoller


def make_ship() -> Combatant:
    return Combatant(
        id="scout",
        name="Far Trader Kestrel",
        hull=40,
        max_hull=40,
        armour=2,
        weapons=[
            Weapon(name="Beam Laser", damage="1d6"),
            Weapon(name="Missile Rack", damage="4d6", ammo=12, missile=True),
            Weapon(name="Ion Cannon", damage="2d6", ion=True),
        ],
        crew=[
            CrewMember(name="Vex", role="gunner", skill=2),
            CrewMember(name="Ana", role="engineer", skill=1),
        ],
        max_power=60,
        max_fuel=40,
        disposition=Disposition.FRIENDLY,
        range_band=RangeBand.ADJACENT,
    )


def make_pirate() -> Combatant:
    return Combatant(
        id="pirate",
        name="Corsair",
        hull=40,
        max_hull=40,
        armour=2,
        weapons=[
            Weapon(
                name="Pulse Laser",
                damage="2d6",
                ranges=frozenset({RangeBand.ADJACENT, RangeBand.CLOSE, RangeBand.SHORT}),
            ),
        ],
        crew=[
            CrewMember(name="Rask", role="pilot", skill=1),
            CrewMember(name="Mol", role="gunner", skill=1),
            CrewMember(name="Tey", role="engineer", skill=0),
        ],
        max_power=40,
        max_fuel=20,
        disposition=Disposition.HOSTILE,
        range_band=RangeBand.SHORT,
    )


@pytest.fixture
def ship() -> Combatant:
    return make_ship()


@pytest.fixture
def pirate() -> Combatant:
    return make_pirate()


@pytest.fixture
def session() -> CombatSession:
    """Session in COMBAT with the scout and one pirate (version 3)."""
    s = CombatSession("test-campaign")
    s.battle.set_ship(make_ship())
    s.battle.add_contact(make_pirate())
    s.battle.transition(SessionState.COMBAT)
    return s
