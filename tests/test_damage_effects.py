"""Tests for per-subsystem critical damage effects."""

import pytest

from shipcombat.engine import damage_effects as fx
from shipcombat.engine.critical_hits import apply_critical_hit
from shipcombat.models.combatant import Combatant, CrewMember, WeaponCondition
from shipcombat.models.ranges import RangeBand


class TestDrives:
    @pytest.mark.parametrize("severity,control,thrust,disabled", [
        (0, 0, 0, False),
        (1, -1, 1, False),
        (4, -4, 4, False),
        (5, -4, 999, True),
        (8, -4, 999, True),
    ])
    def test_m_drive(self, severity, control, thrust, disabled):
        effects = fx.get_m_drive_effects(severity)
        assert (effects.control_dm, effects.thrust_penalty, effects.disabled) == (control, thrust, disabled)

    @pytest.mark.parametrize("severity,power,thrust,disabled", [
        (0, 0, 0, False),
        (1, 10, 1, False),
        (2, 20, 2, False),
        (3, 50, 1, False),
        (4, 100, 999, True),
        (6, 100, 999, True),
    ])
    def test_power_plant(self, severity, power, thrust, disabled):
        effects = fx.get_power_plant_effects(severity)
        assert effects.power_penalty_pct == power
        assert effects.thrust_penalty == thrust
        assert effects.disabled is disabled

    def test_any_jump_drive_damage_disables(self):
        assert fx.get_j_drive_effects(0).disabled is False
        assert fx.get_j_drive_effects(1).disabled is True


class TestSensorsAndComputer:
    def test_sensor_severity_one_penalises_long_range(self):
        effects = fx.get_sensor_effects(1)
        assert effects.can_sense(RangeBand.DISTANT)
        assert effects.dm_at(RangeBand.MEDIUM) == 0
        assert effects.dm_at(RangeBand.LONG) == -2

    @pytest.mark.parametrize("severity,max_range", [
        (2, RangeBand.MEDIUM), (3, RangeBand.SHORT), (4, RangeBand.CLOSE), (5, RangeBand.ADJACENT),
    ])
    def test_sensor_range_shrinks(self, severity, max_range):
        effects = fx.get_sensor_effects(severity)
        assert effects.max_range == max_range
        assert effects.can_sense(max_range)
        assert not effects.can_sense(RangeBand.DISTANT)

    def test_sensors_blind_at_six(self):
        effects = fx.get_sensor_effects(6)
        assert effects.disabled is True
        assert not effects.can_sense(RangeBand.ADJACENT)
        assert fx.get_sensor_effects(9).disabled is True

    @pytest.mark.parametrize("severity,dm,disabled", [
        (0, 0, False), (1, -2, False), (2, -3, False), (3, -4, False), (4, -5, True),
    ])
    def test_computer(self, severity, dm, disabled):
        effects = fx.get_computer_effects(severity)
        assert (effects.dm, effects.disabled) == (dm, disabled)


class TestWeaponsAndArmour:
    @pytest.mark.parametrize("severity,condition,explosion", [
        (1, WeaponCondition.BANE, False),
        (2, WeaponCondition.DISABLED, False),
        (3, WeaponCondition.DESTROYED, False),
        (4, WeaponCondition.DESTROYED, True),
    ])
    def test_weapon(self, severity, condition, explosion):
        effects = fx.get_weapon_effects(severity)
        assert effects.condition == condition
        assert effects.explosion is explosion

    def test_armour_reduction_equals_severity(self):
        assert fx.get_armour_effects(3).reduction == 3


class TestOneOffEffects:
    def test_hull_damage_rolls_severity_dice(self, scripted):
        effects = fx.roll_hull_damage(3, scripted([2, 5, 6]))
        assert effects.damage == 13
        assert effects.roll.count == 3
        assert effects.to_dict()["roll"]["total"] == 13

    def test_crew_casualty_hits_living_member(self, scripted):
        ship = Combatant(id="s", name="S", hull=10, max_hull=10, crew=[
            CrewMember(name="Dead", role="pilot", health=0),
            CrewMember(name="A", role="gunner", health=10),
            CrewMember(name="B", role="engineer", health=2),
        ])
        result = fx.apply_crew_casualty(ship, scripted([2, 4]))
        assert result.crew_member == "B"
        assert result.damage == 4
        assert result.new_health == 0
        assert result.killed is True
        assert ship.crew[2].health == 0

    def test_no_crew(self):
        ship = Combatant(id="s", name="S", hull=10, max_hull=10)
        assert fx.apply_crew_casualty(ship).message == "No crew to injure"

    def test_all_crew_down(self):
        ship = Combatant(id="s", name="S", hull=10, max_hull=10,
                         crew=[CrewMember(name="A", role="pilot", health=0)])
        assert fx.apply_crew_casualty(ship).message == "All crew incapacitated"

    def test_fuel_leak_by_severity(self, scripted):
        assert fx.roll_fuel_leak(1, scripted([3])).rate == fx.LeakRate.HOURLY
        per_round = fx.roll_fuel_leak(2, scripted([5]))
        assert (per_round.rate, per_round.amount) == (fx.LeakRate.PER_ROUND, 5)
        immediate = fx.roll_fuel_leak(3, scripted([2]))
        assert (immediate.rate, immediate.percent) == (fx.LeakRate.IMMEDIATE, 20)
        destroyed = fx.roll_fuel_leak(4)
        assert destroyed.destroyed is True
        assert destroyed.to_dict()["rate"] == "destroyed"


class TestRadiation:
    @staticmethod
    def _ship(armour=2, dampers=False):
        return Combatant(id="s", name="S", hull=20, max_hull=20, armour=armour, dampers=dampers, crew=[
            CrewMember(name="A", role="pilot"),
            CrewMember(name="B", role="gunner"),
        ])

    @pytest.mark.parametrize("armour,dampers,applies", [
        (0, False, True), (7, False, True), (8, False, False), (12, False, False), (0, True, False),
    ])
    def test_check(self, armour, dampers, applies):
        check = fx.check_radiation(armour, dampers)
        assert check.applies is applies
        assert check.dm == (-armour if applies else 0)

    def test_hit_injures_one_crew_member(self, scripted):
        ship = self._ship()
        result = fx.apply_radiation_hit(ship, scripted([5, 5, 1, 6, 5]))
        assert result.total == 8
        assert result.hit is True
        assert result.crew_member == "A"
        assert result.damage == 11
        assert result.killed is True
        assert ship.crew[0].health == 0
        assert result.to_dict()["roll"]["total"] == 10

    def test_armour_dm_can_hold_it_off(self, scripted):
        ship = self._ship(armour=5)
        result = fx.apply_radiation_hit(ship, scripted([6, 6]))
        assert result.total == 7
        assert result.hit is False
        assert all(m.health == 10 for m in ship.crew)

    def test_dampers_skip_the_roll(self, scripted):
        ship = self._ship(dampers=True)
        result = fx.apply_radiation_hit(ship, scripted([]))
        assert result.applies is False
        assert result.roll is None


class TestOverview:
    def test_system_effects_use_totals(self, pirate):
        apply_critical_hit(pirate, "powerPlant", 1)
        apply_critical_hit(pirate, "powerPlant", 2)
        apply_critical_hit(pirate, "computer", 1)
        effects = fx.get_system_effects(pirate)
        assert effects["powerPlant"].power_penalty_pct == 50
        assert effects["computer"].dm == -2
        assert "mDrive" not in effects
