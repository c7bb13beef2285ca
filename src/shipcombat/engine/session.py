"""Combat session — one campaign's battle state, missiles and services.

Sessions are plain objects created and owned by the integration layer;
there is no process-wide registry.  Each session has its own event bus,
so independent sessions share no mutable state and can run in parallel.
"""

from __future__ import annotations

import logging
from typing import Optional

from shipcombat.engine.battle_state import BattleState
from shipcombat.engine.combat_service import CombatService
from shipcombat.engine.missile_tracker import MissileTracker
from shipcombat.loaders.combat_config_loader import CombatConfig
from shipcombat.models.messages import FullState
from shipcombat.util.events import EventBus

log = logging.getLogger(__name__)


class CombatSession:
    """Unit of isolation: BattleState + MissileTracker + CombatService.

    Usage:
        session = CombatSession("campaign-7")
        session.battle.set_ship(ship)
        session.battle.transition(SessionState.COMBAT)
        session.combat.fire_weapon("pcShip", 0, "pirate")
    """

    def __init__(
        self,
        session_id: Optional[str] = None,
        config: Optional[CombatConfig] = None,
        event_bus: Optional[EventBus] = None,
        battle: Optional[BattleState] = None,
    ) -> None:
        self.config = config or CombatConfig()
        self.event_bus = event_bus or (battle.event_bus if battle else EventBus())
        self.battle = battle or BattleState(session_id, self.event_bus)
        self.missiles = MissileTracker(self.event_bus, self.config, battle=self.battle)
        self.combat = CombatService(self.battle, self.missiles, self.config)
        log.debug("Created combat session %s", self.battle.session_id)

    @property
    def session_id(self) -> Optional[str]:
        return self.battle.session_id

    def get_full_state(self) -> FullState:
        return self.battle.get_full_state(missiles=self.missiles.get_state()["missiles"])

    def clear(self) -> None:
        """Tear down: empty battle state and no missiles in flight."""
        self.battle.clear()
        self.missiles.clear()

    @classmethod
    def from_full_state(
        cls,
        data: FullState | dict,
        config: Optional[CombatConfig] = None,
    ) -> CombatSession:
        """Restore a session saved with ``get_full_state``, missiles included."""
        full = data if isinstance(data, FullState) else FullState.model_validate(data)
        bus = EventBus()
        battle = BattleState.from_full_state(full, event_bus=bus)
        session = cls(config=config, event_bus=bus, battle=battle)
        session.missiles.load(full.missiles)
        return session
