"""Tests for boarding strength, modifiers, the action table and resolution."""

import pytest

from shipcombat.engine.boarding import (
    BoardingForce,
    BoardingOutcome,
    BoardingParams,
    MarginTier,
    calculate_troop_strength,
    can_board,
    can_launch_boarding,
    get_boarding_modifiers,
    numbers_bonus,
    resolve_boarding,
    resolve_boarding_action,
)
from shipcombat.models.combatant import Disposition
from shipcombat.models.ranges import RangeBand
from shipcombat.util.errors import CombatError, InvalidAmount


class TestStrength:
    def test_troop_strength(self):
        force = BoardingForce(crew=5, marines=3, armour_rating=6, weapons_rating=2)
        assert calculate_troop_strength(force) == 13

    def test_troop_strength_without_kit(self):
        assert calculate_troop_strength(BoardingForce(crew=4, armour_rating=5, weapons_rating=1)) == 4

    @pytest.mark.parametrize("n,bonus", [(0, 0), (1, 0), (2, 1), (3, 1), (4, 2), (7, 2), (8, 3), (20, 4)])
    def test_numbers_bonus(self, n, bonus):
        assert numbers_bonus(n) == bonus

    def test_negative_headcount_rejected(self):
        with pytest.raises(InvalidAmount):
            BoardingForce(crew=-1)


class TestModifiers:
    def test_better_kit_and_unopposed_marines(self):
        attacker = BoardingForce(marines=4, armour_rating=6, weapons_rating=2)
        defender = BoardingForce(crew=3, armour_rating=2, weapons_rating=1)
        mods = get_boarding_modifiers(attacker, defender)
        # armour +1, weapons +1, 10 vs 3 strength +1, no marines +2
        assert mods.attacker == 5
        assert mods.defender == 0
        assert len(mods.breakdown) == 4

    def test_defender_outnumbers(self):
        mods = get_boarding_modifiers(BoardingForce(crew=1), BoardingForce(crew=4))
        assert mods.defender == 3
        assert mods.attacker == 0

    def test_empty_sides(self):
        mods = get_boarding_modifiers(BoardingForce(), BoardingForce())
        assert (mods.attacker, mods.defender) == (0, 0)


class TestActionTable:
    def test_defeated(self, scripted):
        result = resolve_boarding_action(3, 10, scripted([]))
        assert result.outcome == BoardingOutcome.ATTACKERS_DEFEATED
        assert result.counter_board_allowed is True
        assert result.counter_board_dm == 4

    def test_retreat(self, scripted):
        result = resolve_boarding_action(6, 10, scripted([]))
        assert result.outcome == BoardingOutcome.ATTACKERS_RETREAT
        assert result.hull_damage == 0

    def test_defenders_ahead(self, scripted):
        result = resolve_boarding_action(9, 10, scripted([2, 5, 4]))
        assert result.outcome == BoardingOutcome.FIGHTING_CONTINUES
        assert result.hull_damage == 7
        assert result.rounds_to_resolve == 4
        assert result.defender_dm == 2

    def test_stalemate(self, scripted):
        result = resolve_boarding_action(10, 10, scripted([3]))
        assert result.outcome == BoardingOutcome.FIGHTING_CONTINUES
        assert result.rounds_to_resolve == 3
        assert result.hull_damage == 0

    def test_attackers_ahead(self, scripted):
        result = resolve_boarding_action(13, 10, scripted([1, 1, 5]))
        assert result.outcome == BoardingOutcome.FIGHTING_CONTINUES
        assert result.hull_damage == 2
        assert result.attacker_dm == 2

    def test_success(self, scripted):
        result = resolve_boarding_action(14, 10, scripted([6, 2, 2]))
        assert result.outcome == BoardingOutcome.SUCCESS
        assert result.hull_damage == 6
        assert result.rounds_to_control == 4

    def test_immediate_control(self, scripted):
        result = resolve_boarding_action(17, 10, scripted([]))
        assert result.outcome == BoardingOutcome.IMMEDIATE_CONTROL
        assert result.to_dict()["outcome"] == "IMMEDIATE_CONTROL"


class TestResolveBoarding:
    def test_assault_succeeds(self, scripted):
        params = BoardingParams(
            attacker=BoardingForce(marines=4, armour_rating=6, weapons_rating=2, skill=1),
            defender=BoardingForce(crew=3, armour_rating=2, weapons_rating=1),
            difficulty="light",
        )
        result = resolve_boarding(params, scripted([2, 3, 3, 3, 2, 3, 3]))
        assert result.attacker_modifiers == {"skill": 1, "strength": 5, "numbers": 2}
        assert result.defender_modifiers == {"numbers": 1}
        assert result.attacker_total == 13
        assert result.defender_total == 7
        assert result.margin == 6
        assert result.success is True
        assert result.tier == MarginTier.DECISIVE
        assert result.attacker_casualties == 2
        assert result.defender_casualties == 3
        assert result.action.outcome == BoardingOutcome.SUCCESS
        assert result.action.hull_damage == 2
        assert result.action.rounds_to_control == 6
        assert "decisive" in result.narration

    def test_assault_repelled(self, scripted):
        params = BoardingParams(
            attacker=BoardingForce(crew=2),
            defender=BoardingForce(crew=4, skill=1),
            difficulty="heavy",
        )
        result = resolve_boarding(params, scripted([1, 1, 3, 3]))
        assert result.defender_modifiers == {"skill": 1, "difficulty": 2, "strength": 1, "numbers": 2}
        assert result.margin == -10
        assert result.success is False
        assert result.attacker_casualties == 2
        assert result.defender_casualties == 3
        assert result.action.outcome == BoardingOutcome.ATTACKERS_DEFEATED

    def test_tie_goes_to_attacker(self, scripted):
        params = BoardingParams(attacker=BoardingForce(crew=1), defender=BoardingForce(crew=1), difficulty="light")
        result = resolve_boarding(params, scripted([3, 4, 4, 3, 2]))
        assert result.margin == 0
        assert result.success is True
        assert result.tier == MarginTier.MARGINAL
        assert (result.attacker_casualties, result.defender_casualties) == (0, 0)

    def test_seeded_boarding_is_reproducible(self):
        params = BoardingParams(
            attacker=BoardingForce(marines=6, skill=2),
            defender=BoardingForce(crew=5),
            seed=1234,
        )
        assert resolve_boarding(params).to_dict() == resolve_boarding(params).to_dict()

    def test_unknown_difficulty(self):
        params = BoardingParams(attacker=BoardingForce(crew=1), defender=BoardingForce(crew=1),
                                difficulty="impossible")
        with pytest.raises(CombatError) as exc:
            resolve_boarding(params)
        assert exc.value.error_code == "UnknownDifficulty"


class TestCanBoard:
    def test_healthy_hostile_cannot_be_boarded(self, pirate):
        assert can_board(pirate).allowed is False

    def test_crippled(self, pirate):
        pirate.hull = 10
        assert can_board(pirate).allowed is True

    def test_friendly_never(self, pirate):
        pirate.disposition = Disposition.FRIENDLY
        pirate.hull = 0
        assert can_board(pirate).allowed is False

    @pytest.mark.parametrize("change", [
        {"drifting": True}, {"disposition": Disposition.DISABLED}, {"hull": 0},
    ])
    def test_helpless_targets(self, pirate, change):
        for key, value in change.items():
            setattr(pirate, key, value)
        assert can_board(pirate).allowed is True


class TestCanLaunchBoarding:
    @staticmethod
    def _params(marines=2, launch_disabled=False):
        return BoardingParams(
            attacker=BoardingForce(marines=marines),
            defender=BoardingForce(crew=3),
            launch_disabled=launch_disabled,
        )

    def test_adjacent_with_marines(self):
        assert can_launch_boarding(self._params(), "adjacent").allowed is True

    @pytest.mark.parametrize("band", ["close", "short", "distant"])
    def test_too_far(self, band):
        eligibility = can_launch_boarding(self._params(), band)
        assert eligibility.allowed is False
        assert band in eligibility.reason

    def test_crew_alone_cannot_board(self):
        params = BoardingParams(attacker=BoardingForce(crew=6), defender=BoardingForce(crew=3))
        assert can_launch_boarding(params, RangeBand.ADJACENT).allowed is False

    def test_launch_bay_out(self):
        assert can_launch_boarding(self._params(launch_disabled=True), "adjacent").allowed is False
