"""Combat configuration — loads tunable rules values from config/combat.yaml.

Provides a single ``CombatConfig`` dataclass that is loaded once by the
integration layer and injected into the resolvers and services.  Every
field defaults to the published rules, so the engine works without the
file.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict

import yaml

from shipcombat.util import constants

log = logging.getLogger(__name__)

DEFAULT_COMBAT_CONFIG_PATH = "config/combat.yaml"


@dataclass
class CombatConfig:
    """All tunable combat constants.

    Loaded from ``config/combat.yaml``.  Missing keys keep the rules
    defaults from ``util/constants.py``.
    """

    # -- Attacks -----------------------------------------------------
    target_number: int = constants.TARGET_NUMBER
    critical_effect_threshold: int = constants.CRITICAL_EFFECT_THRESHOLD
    sensor_lock_dm: int = constants.SENSOR_LOCK_DM
    ion_drain_multiplier: int = constants.ION_DRAIN_MULTIPLIER

    # -- Repairs -----------------------------------------------------
    repair_target: int = constants.REPAIR_TARGET

    # -- Missiles ----------------------------------------------------
    missile_damage: str = constants.MISSILE_DAMAGE
    missile_range_bonus: int = constants.MISSILE_RANGE_BONUS
    missile_retention_rounds: int = constants.MISSILE_RETENTION_ROUNDS
    point_defense_target: int = constants.POINT_DEFENSE_TARGET

    # -- Boarding ----------------------------------------------------
    boarding_difficulty: Dict[str, int] = field(
        default_factory=lambda: dict(constants.BOARDING_DIFFICULTY)
    )


def load_combat_config(path: str = DEFAULT_COMBAT_CONFIG_PATH) -> CombatConfig:
    """Load combat configuration from a YAML file.

    Missing keys fall back to dataclass defaults.  If the file does not
    exist, a warning is logged and pure defaults are returned.
    """
    p = Path(path)
    if not p.exists():
        log.warning("Combat config not found at %s — using defaults", p)
        return CombatConfig()

    with p.open() as f:
        raw = yaml.safe_load(f) or {}

    log.info("Loaded combat config from %s (%d keys)", p, len(raw))

    # Preset table is merged so a file may override a single tier
    difficulty = dict(constants.BOARDING_DIFFICULTY)
    difficulty_raw = raw.pop("boarding_difficulty", None)
    if isinstance(difficulty_raw, dict):
        difficulty.update({str(k): int(v) for k, v in difficulty_raw.items()})

    unknown = [k for k in raw if k not in CombatConfig.__dataclass_fields__]
    if unknown:
        log.warning("Ignoring unknown combat config keys: %s", ", ".join(sorted(unknown)))

    return CombatConfig(boarding_difficulty=difficulty, **{
        k: v for k, v in raw.items()
        if k in CombatConfig.__dataclass_fields__
    })
