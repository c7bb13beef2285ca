"""Tests for CombatSession: save/restore with missiles in flight, teardown."""

from __future__ import annotations

from shipcombat.engine.session import CombatSession
from shipcombat.models.missile import MissileStatus, MissileType
from shipcombat.models.ranges import RangeBand
from shipcombat.models.session import SessionState


class TestCombatSession:
    def test_full_state_includes_missiles(self, session):
        session.missiles.launch("scout", "pirate", "long", round=1)
        full = session.get_full_state()
        assert full.session_id == "test-campaign"
        assert len(full.missiles) == 1
        assert full.missiles[0]["id"] == "missile_1"

    def test_restore_and_keep_flying(self, session, scripted):
        session.missiles.launch("scout", "pirate", "medium", round=1)
        session.battle.apply_damage("pirate", 4)
        saved = session.get_full_state().model_dump()

        restored = CombatSession.from_full_state(saved)
        assert restored.session_id == "test-campaign"
        assert restored.battle.state == SessionState.COMBAT
        assert restored.battle.version == session.battle.version
        assert restored.missiles.get("missile_1").range_band == RangeBand.MEDIUM

        restored.combat.advance_round(2)
        updates = restored.combat.advance_round(3, scripted([2, 2, 2, 2])).missiles
        assert updates[0].status == MissileStatus.IMPACTED
        assert restored.battle.get_contact("pirate").hull == 36 - 6
        # the session that was saved is untouched
        assert session.battle.get_contact("pirate").hull == 36

    def test_clear_drops_missiles(self, session):
        session.missiles.launch("scout", "pirate", "long", round=1)
        session.clear()
        assert session.missiles.get_missiles() == []
        assert session.battle.state == SessionState.IDLE
        assert session.get_full_state().ship is None

    def test_missile_type_and_dampers_survive_restore(self, session):
        session.missiles.launch("scout", "pirate", "long", round=1, missile_type="nuclear")
        with session.battle.edit("pirate", "refit") as pirate:
            pirate.dampers = True
        restored = CombatSession.from_full_state(session.get_full_state().model_dump())
        assert restored.missiles.get("missile_1").missile_type == MissileType.NUCLEAR
        assert restored.battle.get_contact("pirate").dampers is True
