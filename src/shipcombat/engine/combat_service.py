"""Combat service — turns resolved rolls into session mutations.

The resolvers are pure; this service is where their results land in the
BattleState.  Each public method is one logical action and runs in one
transaction, so it bumps the session version once and either fully
applies or leaves the session untouched.

Fire sequence:
  1. resolve_attack (may raise OutOfRange / WeaponUnavailable)
  2. spend ammunition
  3. apply_damage, or drain_power for ion weapons
  4. critical hit on effect 6+ (called-shot location or rolled)
  5. a severity 1 hull critical for each 10% of max hull newly lost
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from shipcombat.engine import damage_effects
from shipcombat.engine.attack_resolver import AttackOptions, AttackResult, resolve_attack
from shipcombat.engine.battle_state import BattleState, DamageResult
from shipcombat.engine.boarding import (
    BoardingOutcome,
    BoardingParams,
    BoardingResult,
    can_board,
    can_launch_boarding,
    resolve_boarding,
)
from shipcombat.engine.critical_hits import (
    CriticalHitResult,
    RepairResult,
    calculate_severity,
    roll_critical_location,
    sustained_damage_crossings,
)
from shipcombat.engine.damage_effects import LeakRate, SystemEffect
from shipcombat.engine.dice import DiceRoller
from shipcombat.engine.missile_tracker import EcmResult, MissileTracker, MissileUpdate, PointDefenseResult
from shipcombat.loaders.combat_config_loader import CombatConfig
from shipcombat.models.combatant import Combatant, CritLocation, Disposition, WeaponCondition
from shipcombat.models.missile import Missile, MissileType
from shipcombat.util.errors import NotBoardable, SessionNotActive, WeaponUnavailable

log = logging.getLogger(__name__)

_CONDITION_RANK = {
    WeaponCondition.OPERATIONAL: 0,
    WeaponCondition.BANE: 1,
    WeaponCondition.DISABLED: 2,
    WeaponCondition.DESTROYED: 3,
}


@dataclass
class CriticalOutcome:
    """A critical hit and what it did."""
    hit: CriticalHitResult
    effect: SystemEffect
    source: str = "attack"
    hull_damage: Optional[DamageResult] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "hit": self.hit.to_dict(),
            "effect": self.effect.to_dict(),
            "source": self.source,
            "hull_damage": self.hull_damage.to_dict() if self.hull_damage else None,
        }


@dataclass
class FireResult:
    """Everything one shot did to the session."""
    attack: AttackResult
    damage: Optional[DamageResult] = None
    power_drained: int = 0
    ammo_remaining: Optional[int] = None
    criticals: list[CriticalOutcome] = field(default_factory=list)
    version: int = 0

    @property
    def destroyed(self) -> bool:
        hits = [self.damage] + [c.hull_damage for c in self.criticals]
        return any(d is not None and d.destroyed for d in hits)

    def to_dict(self) -> dict[str, Any]:
        return {
            "attack": self.attack.to_dict(),
            "damage": self.damage.to_dict() if self.damage else None,
            "power_drained": self.power_drained,
            "ammo_remaining": self.ammo_remaining,
            "criticals": [c.to_dict() for c in self.criticals],
            "destroyed": self.destroyed,
            "version": self.version,
        }


@dataclass
class LaunchResult:
    attack: AttackResult
    missile: Optional[Missile] = None
    ammo_remaining: Optional[int] = None
    version: int = 0


@dataclass
class RoundSummary:
    """Upkeep done by one round advance."""
    round: int
    missiles: list[MissileUpdate] = field(default_factory=list)
    fuel_lost: dict[str, int] = field(default_factory=dict)
    power_restored: dict[str, int] = field(default_factory=dict)
    version: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "round": self.round,
            "missiles": [m.to_dict() for m in self.missiles],
            "fuel_lost": dict(self.fuel_lost),
            "power_restored": dict(self.power_restored),
            "version": self.version,
        }


class CombatService:
    """Resolves combat actions against one session.

    Args:
        battle: The session's authoritative state.
        missiles: The session's missile tracker.
        config: Tunable rules values.
    """

    def __init__(
        self,
        battle: BattleState,
        missiles: Optional[MissileTracker] = None,
        config: Optional[CombatConfig] = None,
    ) -> None:
        self._battle = battle
        self._config = config or CombatConfig()
        self._missiles = missiles or MissileTracker(battle.event_bus, self._config, battle)

    @property
    def battle(self) -> BattleState:
        return self._battle

    @property
    def missiles(self) -> MissileTracker:
        return self._missiles

    def _require_active(self, operation: str) -> None:
        if not self._battle.is_active:
            raise SessionNotActive(self._battle.state.value, operation)

    # -- Direct fire -----------------------------------------------------

    def fire_weapon(
        self,
        attacker_id: str,
        weapon_index: int,
        target_id: str,
        options: Optional[AttackOptions] = None,
        roller: Optional[DiceRoller] = None,
    ) -> FireResult:
        """Fire one weapon at one target and apply the outcome."""
        self._require_active("fire")
        options = options or AttackOptions()
        attacker = self._battle.get_combatant(attacker_id)
        target = self._battle.get_combatant(target_id)
        weapon = self._battle.validate_weapon_index(attacker_id, weapon_index)
        if weapon.missile:
            raise WeaponUnavailable(weapon.name, "missile racks fire through launch_missile")

        roller = roller or DiceRoller(options.seed)
        attack = resolve_attack(attacker, weapon, target, options, roller, self._config)
        result = FireResult(attack=attack)
        source = f"{attacker.id}:{weapon.name}"

        with self._battle.transaction():
            result.ammo_remaining = self._battle.consume_ammo(attacker_id, weapon_index)
            if attack.hit and attack.is_ion:
                result.power_drained = self._battle.drain_power(
                    target_id, attack.power_drain, attack.ion_rounds, source=source,
                )
            elif attack.hit:
                result.damage = self._battle.apply_damage(target_id, attack.actual_damage, source=source)
                if attack.critical:
                    severity = calculate_severity(attack.actual_damage)
                    location = attack.called_shot or roll_critical_location(roller)
                    result.criticals.append(
                        self.apply_critical(target_id, location, severity, roller, source="attack")
                    )
                result.criticals.extend(self._sustained_damage(target, result.damage, roller))

        result.version = self._battle.version
        log.info("[ATTACK] %s (v%d)", attack.message, result.version)
        return result

    def _sustained_damage(
        self,
        target: Combatant,
        damage: DamageResult,
        roller: DiceRoller,
    ) -> list[CriticalOutcome]:
        crossings = sustained_damage_crossings(damage.new_hull, target.max_hull, damage.previous_hull)
        return [
            self.apply_critical(target.id, CritLocation.HULL, 1, roller, source="sustained")
            for _ in range(crossings)
        ]

    # -- Criticals -------------------------------------------------------

    def apply_critical(
        self,
        target_id: str,
        location: CritLocation | str,
        severity: int,
        roller: Optional[DiceRoller] = None,
        source: str = "attack",
    ) -> CriticalOutcome:
        """Record a critical hit and apply its immediate consequences."""
        roller = roller or DiceRoller()
        with self._battle.transaction():
            hit = self._battle.record_critical(target_id, location, severity)
            outcome = self._critical_effect(target_id, hit, roller, source)
        log.info("[CRIT] %s %s: %s", target_id, hit.location.value, outcome.effect.message)
        return outcome

    def _critical_effect(
        self,
        target_id: str,
        hit: CriticalHitResult,
        roller: DiceRoller,
        source: str,
    ) -> CriticalOutcome:
        loc, total = hit.location, hit.total_severity
        reason = f"critical:{loc.value}"

        if loc == CritLocation.HULL:
            effect = damage_effects.roll_hull_damage(hit.severity, roller)
            # hull crit damage never cascades into further sustained-damage crits
            damage = self._battle.apply_damage(target_id, effect.damage, source=reason)
            return CriticalOutcome(hit, effect, source, hull_damage=damage)

        if loc == CritLocation.ARMOUR:
            with self._battle.edit(target_id, reason) as target:
                target.armour = max(0, target.armour - hit.severity)
            return CriticalOutcome(hit, damage_effects.get_armour_effects(total), source)

        if loc == CritLocation.WEAPON:
            effect = damage_effects.get_weapon_effects(hit.severity)
            with self._battle.edit(target_id, reason) as target:
                candidates = [w for w in target.weapons if w.condition != WeaponCondition.DESTROYED]
                if candidates:
                    weapon = roller.choice(candidates)
                    if _CONDITION_RANK[effect.condition] > _CONDITION_RANK[weapon.condition]:
                        weapon.condition = effect.condition
                    effect = damage_effects.WeaponEffects(
                        severity=effect.severity, disabled=effect.disabled,
                        condition=weapon.condition, bane=effect.bane,
                        destroyed=effect.destroyed, explosion=effect.explosion,
                        message=f"{weapon.name}: {effect.message}",
                    )
            return CriticalOutcome(hit, effect, source)

        if loc == CritLocation.CREW:
            with self._battle.edit(target_id, reason) as target:
                effect = damage_effects.apply_crew_casualty(target, roller)
            return CriticalOutcome(hit, effect, source)

        if loc == CritLocation.FUEL:
            effect = damage_effects.roll_fuel_leak(total, roller)
            with self._battle.edit(target_id, reason) as target:
                self._apply_fuel_leak(target, effect)
            return CriticalOutcome(hit, effect, source)

        if loc == CritLocation.POWER_PLANT:
            effect = damage_effects.get_power_plant_effects(total)
            with self._battle.edit(target_id, reason) as target:
                if target.max_power is not None and target.power is not None:
                    ceiling = target.max_power * (100 - effect.power_penalty_pct) // 100
                    target.power = min(target.power, ceiling)
            return CriticalOutcome(hit, effect, source)

        if loc == CritLocation.M_DRIVE:
            effect = damage_effects.get_m_drive_effects(total)
            if effect.disabled:
                with self._battle.edit(target_id, reason) as target:
                    target.drifting = True
            return CriticalOutcome(hit, effect, source)

        lookups = {
            CritLocation.J_DRIVE: damage_effects.get_j_drive_effects,
            CritLocation.SENSORS: damage_effects.get_sensor_effects,
            CritLocation.COMPUTER: damage_effects.get_computer_effects,
        }
        if loc in lookups:
            return CriticalOutcome(hit, lookups[loc](total), source)
        return CriticalOutcome(hit, SystemEffect(severity=total, message="Cargo hold damaged"), source)

    @staticmethod
    def _apply_fuel_leak(target: Combatant, leak: damage_effects.FuelLeak) -> None:
        if leak.rate == LeakRate.HOURLY:
            target.fuel_leak_per_hour += leak.amount
        elif leak.rate == LeakRate.PER_ROUND:
            target.fuel_leak_per_round += leak.amount
        elif leak.rate == LeakRate.IMMEDIATE and target.fuel is not None:
            target.fuel -= target.fuel * leak.percent // 100
        elif leak.rate == LeakRate.DESTROYED:
            if target.fuel is not None:
                target.fuel = 0
            target.fuel_leak_per_round = 0
            target.fuel_leak_per_hour = 0

    def repair(
        self,
        target_id: str,
        location: CritLocation | str,
        engineer_skill: Optional[int] = None,
        roller: Optional[DiceRoller] = None,
    ) -> RepairResult:
        """Field repair by the ship's engineer (or an explicit skill)."""
        if engineer_skill is None:
            engineer_skill = self._battle.get_combatant(target_id).skill_for("engineer")
        with self._battle.transaction():
            result = self._battle.repair_critical(target_id, location, engineer_skill, roller)
            if result.success and result.location == CritLocation.WEAPON:
                self._restore_weapon(target_id)
        return result

    def _restore_weapon(self, target_id: str) -> None:
        with self._battle.edit(target_id, "repair:weapon") as target:
            damaged = [
                w for w in target.weapons
                if w.condition in (WeaponCondition.BANE, WeaponCondition.DISABLED)
            ]
            if damaged:
                worst = max(damaged, key=lambda w: _CONDITION_RANK[w.condition])
                worst.condition = WeaponCondition.OPERATIONAL

    # -- Missiles --------------------------------------------------------

    def launch_missile(
        self,
        attacker_id: str,
        weapon_index: int,
        target_id: str,
        round: int,
        options: Optional[AttackOptions] = None,
        roller: Optional[DiceRoller] = None,
        missile_type: MissileType | str = MissileType.STANDARD,
    ) -> LaunchResult:
        """Roll the launch (with the long-range bonus) and track a hit.

        Ammunition is spent either way.  A smart missile stays in flight
        after a missed launch roll and comes round for another run.
        """
        self._require_active("launch")
        options = options or AttackOptions()
        kind = MissileType.parse(missile_type)
        attacker = self._battle.get_combatant(attacker_id)
        target = self._battle.get_combatant(target_id)
        weapon = self._battle.validate_weapon_index(attacker_id, weapon_index)
        if not weapon.missile:
            raise WeaponUnavailable(weapon.name, "not a missile launcher")

        roller = roller or DiceRoller(options.seed)
        attack = resolve_attack(attacker, weapon, target, options, roller, self._config)
        result = LaunchResult(attack=attack)
        with self._battle.transaction():
            result.ammo_remaining = self._battle.consume_ammo(attacker_id, weapon_index)
            if attack.hit or kind.smart:
                result.missile = self._missiles.launch(attacker_id, target_id, attack.range_band, round, kind)
        result.version = self._battle.version
        return result

    def point_defense(
        self,
        missile_id: str,
        gunner_skill: int = 0,
        turret_size: int = 1,
        round: Optional[int] = None,
        gunner_id: str = "default",
        roller: Optional[DiceRoller] = None,
    ) -> PointDefenseResult:
        return self._missiles.point_defense(
            missile_id, gunner_skill=gunner_skill, turret_size=turret_size,
            round=round, gunner_id=gunner_id, roller=roller,
        )

    def electronic_warfare(
        self,
        missile_id: str,
        sensor_skill: Optional[int] = None,
        defender_id: Optional[str] = None,
        round: Optional[int] = None,
        roller: Optional[DiceRoller] = None,
    ) -> EcmResult:
        """Jam a missile with the defender's sensor operator (or an explicit skill)."""
        self._require_active("jam")
        if sensor_skill is None:
            missile = self._missiles.get(missile_id)
            defender = self._battle.get_combatant(defender_id or missile.target_id)
            sensor_skill = defender.skill_for("sensors")
        return self._missiles.electronic_warfare(missile_id, sensor_skill, round=round, roller=roller)

    # -- Round upkeep ----------------------------------------------------

    def advance_round(self, round: int, roller: Optional[DiceRoller] = None) -> RoundSummary:
        """Fly missiles, drain leaking tanks and expire ion drains."""
        summary = RoundSummary(round=round)
        ship = self._battle.get_ship()
        ids = ([ship.id] if ship else []) + [c.id for c in self._battle.get_contacts()]

        checkpoint = self._missiles.checkpoint()
        try:
            with self._battle.transaction():
                summary.missiles = self._missiles.advance_round(self._battle, round, roller)
                for combatant_id in ids:
                    self._upkeep(combatant_id, summary)
        except Exception:
            self._missiles.restore(checkpoint)
            raise

        summary.version = self._battle.version
        log.debug("[STATE] Round %d advanced: %d missile update(s)", round, len(summary.missiles))
        return summary

    def _upkeep(self, combatant_id: str, summary: RoundSummary) -> None:
        current = self._battle.get_combatant(combatant_id)
        leaking = current.fuel_leak_per_round > 0 and (current.fuel or 0) > 0
        if not leaking and current.ion_rounds <= 0:
            return

        with self._battle.edit(combatant_id, "round_upkeep") as target:
            if leaking:
                lost = min(target.fuel, target.fuel_leak_per_round)
                target.fuel -= lost
                summary.fuel_lost[target.id] = lost
            if target.ion_rounds > 0:
                target.ion_rounds -= 1
                if target.ion_rounds == 0 and target.drained_power:
                    restored = target.drained_power
                    if target.power is not None:
                        cap = target.max_power if target.max_power is not None else target.power + restored
                        target.power = min(cap, target.power + restored)
                    target.drained_power = 0
                    summary.power_restored[target.id] = restored

    # -- Boarding --------------------------------------------------------

    def board(
        self,
        attacker_id: str,
        target_id: str,
        params: BoardingParams,
        roller: Optional[DiceRoller] = None,
    ) -> BoardingResult:
        """Send a boarding party; hull damage and casualties land on the target.

        The attacker needs marines, a working launch bay and the target at
        adjacent range; the target must be crippled, disabled or adrift.
        """
        self._require_active("board")
        attacker = self._battle.get_combatant(attacker_id)
        target = self._battle.get_combatant(target_id)
        ship = self._battle.get_ship()
        # contacts hold their range to the player ship
        band = attacker.range_band if ship is not None and target.id == ship.id else target.range_band
        for eligibility in (can_launch_boarding(params, band), can_board(target)):
            if not eligibility.allowed:
                raise NotBoardable(target_id, eligibility.reason)

        roller = roller or DiceRoller(params.seed)
        result = resolve_boarding(params, roller, self._config)
        action = result.action

        with self._battle.transaction():
            if action.hull_damage:
                self._battle.apply_damage(target_id, action.hull_damage, source=f"boarding:{attacker.id}")
            with self._battle.edit(target_id, "boarding") as live:
                for member in live.living_crew()[:result.defender_casualties]:
                    member.health = 0
                if action.outcome == BoardingOutcome.IMMEDIATE_CONTROL:
                    live.disposition = Disposition.FRIENDLY
                    live.drifting = False

        log.info("[BOARD] %s boards %s: %s", attacker.id, target_id, action.outcome.value)
        return result
