"""Tests for the event bus."""

from shipcombat.engine.session import CombatSession
from shipcombat.models.session import SessionState
from shipcombat.util.events import DamageApplied, EventBus, SessionCleared, SessionReset


def _damage(target_id="pirate"):
    return DamageApplied(target_id=target_id, target_name="Corsair", damage=3,
                         new_hull=37, destroyed=False, version=4)


class TestEventBus:
    def test_emit_triggers_handler(self):
        bus = EventBus()
        received = []
        bus.on(DamageApplied, lambda e: received.append(e.target_id))
        bus.emit(_damage("pirate"))
        assert received == ["pirate"]

    def test_no_cross_event(self):
        bus = EventBus()
        received = []
        bus.on(SessionReset, lambda e: received.append("reset"))
        bus.emit(SessionCleared(version=2))
        assert received == []

    def test_multiple_handlers(self):
        bus = EventBus()
        a, b = [], []
        bus.on(DamageApplied, lambda e: a.append(1))
        bus.on(DamageApplied, lambda e: b.append(2))
        bus.emit(_damage())
        assert a == [1] and b == [2]

    def test_off_removes_handler(self):
        bus = EventBus()
        received = []
        handler = lambda e: received.append(1)
        bus.on(DamageApplied, handler)
        bus.off(DamageApplied, handler)
        bus.emit(_damage())
        assert received == []

    def test_clear(self):
        bus = EventBus()
        bus.on(DamageApplied, lambda e: None)
        bus.clear()
        # Should not raise
        bus.emit(_damage())

    def test_default_source(self):
        assert _damage().source == "unknown"


class TestSessionIsolation:
    def test_sessions_do_not_share_events(self, session, ship):
        other = CombatSession("other-campaign")
        other.battle.set_ship(ship)
        other.battle.transition(SessionState.COMBAT)

        seen = []
        other.event_bus.on(DamageApplied, seen.append)
        session.battle.apply_damage("pirate", 5)
        assert seen == []
        assert other.battle.version == 2
