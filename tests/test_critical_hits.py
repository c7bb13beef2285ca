"""Tests for critical hit severity, location, records and repairs."""

import pytest

from shipcombat.engine.critical_hits import (
    apply_critical_hit,
    attempt_repair,
    calculate_severity,
    get_damage_summary,
    get_total_severity,
    roll_critical_location,
    sustained_damage_crossings,
    triggers_critical_hit,
    triggers_sustained_damage,
)
from shipcombat.engine.damage_effects import get_m_drive_effects
from shipcombat.models.combatant import CritLocation
from shipcombat.util.errors import InvalidAmount


class TestSeverity:
    @pytest.mark.parametrize("damage,severity", [
        (0, 0), (-3, 0), (1, 1), (10, 1), (11, 2), (20, 2), (21, 3),
        (50, 5), (51, 6), (60, 6), (250, 6),
    ])
    def test_calculate_severity(self, damage, severity):
        assert calculate_severity(damage) == severity


class TestLocation:
    @pytest.mark.parametrize("faces,location", [
        ([1, 1], CritLocation.SENSORS),
        ([1, 2], CritLocation.POWER_PLANT),
        ([2, 2], CritLocation.FUEL),
        ([2, 3], CritLocation.WEAPON),
        ([3, 3], CritLocation.ARMOUR),
        ([3, 4], CritLocation.HULL),
        ([4, 4], CritLocation.M_DRIVE),
        ([4, 5], CritLocation.CARGO),
        ([5, 5], CritLocation.J_DRIVE),
        ([5, 6], CritLocation.CREW),
        ([6, 6], CritLocation.COMPUTER),
    ])
    def test_location_table(self, faces, location, scripted):
        assert roll_critical_location(scripted(faces)) == location

    def test_unseeded_location_is_valid(self):
        assert roll_critical_location() in set(CritLocation)


class TestTriggers:
    def test_critical_trigger(self):
        assert triggers_critical_hit(6, 1) is True
        assert triggers_critical_hit(9, 12) is True
        assert triggers_critical_hit(5, 10) is False
        assert triggers_critical_hit(6, 0) is False

    def test_sustained_damage_crossing(self):
        assert triggers_sustained_damage(36, 40, 40) is True
        assert triggers_sustained_damage(37, 40, 40) is False
        assert triggers_sustained_damage(31, 40, 33) is True
        assert triggers_sustained_damage(29, 40, 31) is False

    def test_sustained_damage_counts_every_boundary(self):
        assert sustained_damage_crossings(20, 40, 40) == 5
        assert sustained_damage_crossings(40, 40, 40) == 0

    def test_sustained_damage_zero_max_hull(self):
        assert triggers_sustained_damage(0, 0, 0) is False


class TestApplyCriticalHit:
    def test_severities_accumulate(self, pirate):
        first = apply_critical_hit(pirate, "mDrive", 2)
        second = apply_critical_hit(pirate, CritLocation.M_DRIVE, 2)
        assert first.total_severity == 2
        assert second.total_severity == 4
        assert len(pirate.crits[CritLocation.M_DRIVE]) == 2

    def test_cascade_disables_drive_at_five(self, pirate):
        apply_critical_hit(pirate, "mDrive", 2)
        apply_critical_hit(pirate, "mDrive", 2)
        effects = get_m_drive_effects(get_total_severity(pirate, "mDrive"))
        assert effects.control_dm == -4
        assert effects.thrust_penalty == 4
        assert effects.disabled is False

        apply_critical_hit(pirate, "mDrive", 1)
        assert get_m_drive_effects(get_total_severity(pirate, "mDrive")).disabled is True

    def test_total_can_exceed_six(self, pirate):
        for _ in range(3):
            apply_critical_hit(pirate, "sensors", 3)
        assert get_total_severity(pirate, "sensors") == 9

    def test_single_hit_capped_at_six(self, pirate):
        assert apply_critical_hit(pirate, "hull", 9).severity == 6

    @pytest.mark.parametrize("bad", [0, -1, 2.5, True])
    def test_invalid_severity(self, pirate, bad):
        with pytest.raises(InvalidAmount):
            apply_critical_hit(pirate, "hull", bad)

    def test_repaired_records_do_not_count(self, pirate):
        apply_critical_hit(pirate, "computer", 3)
        pirate.crits[CritLocation.COMPUTER][0].repaired = True
        apply_critical_hit(pirate, "computer", 1)
        assert get_total_severity(pirate, "computer") == 1
        assert len(pirate.crits[CritLocation.COMPUTER]) == 2

    def test_damage_summary(self, pirate):
        apply_critical_hit(pirate, "fuel", 2)
        apply_critical_hit(pirate, "jDrive", 1)
        assert get_damage_summary(pirate) == {"fuel": 2, "jDrive": 1}


class TestRepair:
    def test_repairs_worst_record(self, pirate, scripted):
        apply_critical_hit(pirate, "mDrive", 1)
        apply_critical_hit(pirate, "mDrive", 3)
        result = attempt_repair(pirate, "mDrive", engineer_skill=1, roller=scripted([5, 5]))
        assert result.success is True
        assert result.severity == 3
        assert result.total == 8
        worst = pirate.crits[CritLocation.M_DRIVE][1]
        assert worst.repaired is True
        assert worst.temporary is True
        assert worst.repaired_at is not None
        assert get_total_severity(pirate, "mDrive") == 1

    def test_failed_repair_changes_nothing(self, pirate, scripted):
        apply_critical_hit(pirate, "mDrive", 3)
        result = attempt_repair(pirate, "mDrive", engineer_skill=1, roller=scripted([1, 1]))
        assert result.success is False
        assert result.total == -1
        assert get_total_severity(pirate, "mDrive") == 3

    def test_nothing_to_repair(self, pirate):
        result = attempt_repair(pirate, "sensors", engineer_skill=2)
        assert result.success is False
        assert result.message == "No damage at sensors to repair"
        assert result.roll is None
