"""Tests for the dice engine."""

import pytest

from shipcombat.engine import dice
from shipcombat.engine.dice import DiceRoller, parse_notation, validate_roll
from shipcombat.models.dice import DiceRoll
from shipcombat.util.errors import InvalidAmount, InvalidNotation


class TestRoll:
    def test_faces_within_range(self):
        result = dice.roll(50, 6)
        assert result.count == 50
        assert all(1 <= d <= 6 for d in result.dice)
        assert result.total == sum(result.dice)
        assert result.seed is None

    def test_seeded_roll_is_reproducible(self):
        a = dice.roll(8, 6, seed=1234)
        b = dice.roll(8, 6, seed=1234)
        assert a.dice == b.dice
        assert a.seed == 1234

    def test_seeded_faces_within_range(self):
        result = dice.roll(100, 20, seed=99)
        assert all(1 <= d <= 20 for d in result.dice)

    def test_roller_stream_continues_across_rolls(self):
        roller = DiceRoller(seed=5)
        first = roller.roll(3, 6)
        second = roller.roll(3, 6)
        combined = dice.roll(6, 6, seed=5)
        assert first.dice + second.dice == combined.dice

    def test_zero_dice(self):
        assert dice.roll(0, 6).total == 0

    @pytest.mark.parametrize("count,sides", [(-1, 6), (2, 0), (1.5, 6), ("2", 6)])
    def test_invalid_counts(self, count, sides):
        with pytest.raises(InvalidAmount):
            dice.roll(count, sides)

    def test_bool_seed_rejected(self):
        with pytest.raises(InvalidAmount):
            DiceRoller(seed=True)

    def test_roll_2d6(self):
        result = dice.roll_2d6(seed=3)
        assert result.count == 2 and result.sides == 6
        assert 2 <= result.total <= 12


class TestNotation:
    def test_parse(self):
        assert parse_notation("4d6") == (4, 6)
        assert parse_notation("2D6") == (2, 6)
        assert parse_notation(" 1d20 ") == (1, 20)

    @pytest.mark.parametrize("bad", ["", "d6", "4d", "4x6", "2d6+1", "0d6", "abc", 46, None])
    def test_invalid_notation(self, bad):
        with pytest.raises(InvalidNotation):
            dice.roll_notation(bad)

    def test_roll_notation(self):
        result = dice.roll_notation("4d6", seed=11)
        assert result.count == 4
        assert result.notation == "4d6"
        assert 4 <= result.total <= 24

    def test_invalid_notation_error_payload(self):
        with pytest.raises(InvalidNotation) as exc:
            dice.roll_notation("banana")
        assert exc.value.error_code == "InvalidNotation"
        assert exc.value.to_dict()["details"] == {"notation": "banana"}


class TestValidateRoll:
    def test_same_seed_validates(self):
        result = dice.roll(10, 6, seed=42)
        assert validate_roll(result, 42) is True

    def test_different_seed_fails(self):
        result = dice.roll(10, 6, seed=42)
        assert validate_roll(result, 43) is False

    def test_tampered_roll_fails(self):
        honest = dice.roll(10, 6, seed=42)
        faked = DiceRoll(dice=tuple(6 if d != 6 else 5 for d in honest.dice), sides=6, seed=42)
        assert validate_roll(faked, 42) is False

    def test_validates_other_die_sizes(self):
        result = dice.roll(6, 20, seed=7)
        assert validate_roll(result, 7) is True

    def test_unseeded_validation_fails(self):
        assert validate_roll(dice.roll(2, 6, seed=1), None) is False


class TestDiceRollModel:
    def test_to_dict(self):
        r = DiceRoll(dice=(3, 4), sides=6, seed=9)
        assert r.to_dict() == {"notation": "2d6", "dice": [3, 4], "total": 7, "seed": 9}

    def test_str(self):
        assert str(DiceRoll(dice=(1, 6))) == "2d6 [1, 6] = 7"

    def test_choice_uses_stream(self, scripted):
        roller = scripted([2])
        assert roller.choice(["a", "b", "c"]) == "b"
