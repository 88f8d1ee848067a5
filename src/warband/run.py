from __future__ import annotations

import dataclasses
import logging
import math
import time
from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple, Union

from .content import ContentError, ContentTables, HeroData, ItemData, load_default_content
from .content.loader import load_schema, parse_json_text, validate_document
from .enums import EquipmentSlot
from .errors import CorruptRunStateError, InvalidRunStateError, RunNotStartedError
from .events import EventBus, RunEvent
from .mapgen import MapGenerator
from .models import (
    ActiveSynergy,
    BattleResult,
    HeroState,
    MapNode,
    RelicState,
    RunState,
    validate_map,
)
from .rng import SeededRNG
from .settings import GameSettings
from .shop import ShopGenerator
from .stats import hero_max_hp, hero_stats
from .synergy import SynergySystem
from .utils.jsonutil import canonical_dumps

logger = logging.getLogger(__name__)

SERIALIZATION_VERSION = 1
_MASK32 = 0xFFFFFFFF


def _check_whole(amount: int, operation: str) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise TypeError(f"{operation}() amount must be an int, got {type(amount)!r}")


def _check_percent(percent: float, operation: str) -> None:
    if isinstance(percent, bool) or not isinstance(percent, (int, float)):
        raise TypeError(f"{operation}() percent must be a number, got {type(percent)!r}")
    if not percent >= 0:
        raise ValueError(f"{operation}() percent must be >= 0, got {percent!r}")


@dataclass(frozen=True)
class EquipResult:
    """Outcome of equip_item/unequip_item.

    ``ok`` is False when the hero or item does not exist. ``replaced`` holds the
    item that previously occupied the slot, if any.
    """

    ok: bool
    replaced: Optional[ItemData] = None


class RunManager:
    """Owns the state of one run: roster, gold, map, relics and the run's RNG.

    Construct one per run (or reuse via new_run/deserialize). Heroes and map
    nodes handed out are frozen values; every change goes through a method here,
    which replaces the stored value.
    """

    def __init__(
        self,
        content: Optional[ContentTables] = None,
        settings: Optional[GameSettings] = None,
        event_bus: Optional[EventBus] = None,
        map_generator: Optional[MapGenerator] = None,
        shop_generator: Optional[ShopGenerator] = None,
    ) -> None:
        self.content = content or load_default_content()
        self.settings = settings or GameSettings.load()
        self.events = event_bus or EventBus()
        self.map_generator = map_generator or MapGenerator(self.content)
        self.shop_generator = shop_generator or ShopGenerator(self.content)
        self._synergies = SynergySystem(self.content.synergies, self.content.skills)
        self._state: Optional[RunState] = None
        self._rng: Optional[SeededRNG] = None

    # ---------------------------
    # Internals
    # ---------------------------

    def _require(self) -> RunState:
        if self._state is None or self._rng is None:
            raise RunNotStartedError("No active run; call new_run() or deserialize() first")
        return self._state

    def _hero_index(self, hero_id: str) -> int:
        for i, hero in enumerate(self._require().heroes):
            if hero.id == hero_id:
                return i
        return -1

    def _put_hero(self, index: int, hero: HeroState) -> None:
        self._require().heroes[index] = hero

    def _create_hero_state(self, data: HeroData) -> HeroState:
        hero = HeroState(id=data.id, level=1, exp=0)
        return dataclasses.replace(hero, current_hp=hero_max_hp(hero, data))

    def _max_hp(self, hero: HeroState) -> int:
        return hero_max_hp(hero, self.content.heroes[hero.id])

    def _recompute_synergies(self) -> None:
        self._synergies.calculate_active_synergies(self._require().heroes, self.content.heroes)

    def _with_exp(self, hero: HeroState, amount: int) -> HeroState:
        level = hero.level
        exp = hero.exp + amount
        hp = hero.current_hp
        needed = self.settings.exp_for_level(level)
        while exp >= needed and level < self.settings.max_level:
            exp -= needed
            level += 1
            needed = self.settings.exp_for_level(level)
            hp = self._max_hp(dataclasses.replace(hero, level=level))
            logger.info("Hero '%s' reached level %d", hero.id, level)
        return dataclasses.replace(hero, level=level, exp=exp, current_hp=hp)

    def _clamp_hp(self, hero: HeroState) -> HeroState:
        max_hp = self._max_hp(hero)
        if hero.current_hp > max_hp:
            return dataclasses.replace(hero, current_hp=max_hp)
        return hero

    # ---------------------------
    # Read access
    # ---------------------------

    @property
    def is_active(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> RunState:
        """A copy of the current run state."""
        return self._require().copy()

    @property
    def rng(self) -> SeededRNG:
        self._require()
        return self._rng

    @property
    def seed(self) -> int:
        return self._require().seed

    @property
    def gold(self) -> int:
        return self._require().gold

    @property
    def floor(self) -> int:
        return self._require().floor

    @property
    def difficulty(self) -> str:
        return self._require().difficulty

    @property
    def heroes(self) -> Tuple[HeroState, ...]:
        return tuple(self._require().heroes)

    @property
    def map(self) -> Tuple[MapNode, ...]:
        return tuple(self._require().map)

    @property
    def current_node(self) -> int:
        return self._require().current_node

    @property
    def current_act(self) -> int:
        return self._require().current_act

    @property
    def relics(self) -> Tuple[RelicState, ...]:
        return tuple(self._require().relics)

    def get_hero_state(self, hero_id: str) -> Optional[HeroState]:
        index = self._hero_index(hero_id)
        return self._require().heroes[index] if index >= 0 else None

    def get_hero_data(self, hero_id: str) -> Optional[HeroData]:
        return self.content.heroes.get(hero_id)

    # ---------------------------
    # Lifecycle
    # ---------------------------

    def new_run(
        self,
        seed: Optional[int] = None,
        difficulty: Optional[str] = None,
        starting_hero_ids: Optional[Sequence[str]] = None,
    ) -> RunState:
        """Start a fresh run. Without a seed, the current time in ms is used."""
        if seed is None:
            seed = int(time.time() * 1000)
        elif not isinstance(seed, int) or isinstance(seed, bool):
            raise TypeError(f"seed must be an int, got {type(seed)!r}")
        seed &= _MASK32

        difficulty = difficulty or self.settings.default_difficulty
        if difficulty not in self.content.difficulties:
            raise ValueError(f"Unknown difficulty '{difficulty}'")

        hero_ids = list(self.settings.starting_heroes if starting_hero_ids is None else starting_hero_ids)
        if not hero_ids:
            raise ValueError("A run needs at least one starting hero")
        if len(hero_ids) > self.settings.max_team_size:
            raise ValueError(f"At most {self.settings.max_team_size} starting heroes are allowed")
        if len(set(hero_ids)) != len(hero_ids):
            raise ValueError(f"Duplicate starting heroes: {hero_ids}")
        unknown = [h for h in hero_ids if h not in self.content.heroes]
        if unknown:
            raise ValueError(f"Unknown starting heroes: {unknown}")

        self._rng = SeededRNG(seed)
        self._state = RunState(
            seed=seed,
            heroes=[self._create_hero_state(self.content.heroes[h]) for h in hero_ids],
            gold=self.settings.starting_gold,
            map=[],
            current_node=-1,
            floor=1,
            difficulty=difficulty,
            relics=[],
            current_act=0,
        )
        self._recompute_synergies()
        logger.info("Started run seed=%d difficulty=%s heroes=%s", seed, difficulty, hero_ids)
        self.events.publish(RunEvent.RUN_START, {"seed": seed, "difficulty": difficulty, "heroes": hero_ids})
        return self.state

    # ---------------------------
    # Map and navigation
    # ---------------------------

    def generate_map(self) -> Tuple[MapNode, ...]:
        """Generate a map for the current floor from the run's RNG and store it."""
        state = self._require()
        nodes = self.map_generator.generate(self._rng, state.floor)
        state.map = nodes
        state.current_node = -1
        state.current_act = 0
        return tuple(nodes)

    def set_map(self, nodes: Iterable[MapNode]) -> None:
        """Store an externally built map. Navigation restarts before node 0."""
        state = self._require()
        nodes = list(nodes)
        validate_map(nodes)
        state.map = nodes
        state.current_node = -1
        state.current_act = 0

    def mark_node_completed(self, index: int) -> bool:
        state = self._require()
        if not 0 <= index < len(state.map):
            return False
        node = state.map[index]
        if node.completed:
            return True
        state.map[index] = node.completed_copy()
        self.events.publish(RunEvent.NODE_COMPLETE, {"node_index": index, "node_type": node.type.value})
        return True

    def set_current_node(self, index: int) -> bool:
        state = self._require()
        if not 0 <= index < len(state.map):
            return False
        state.current_node = index
        state.current_act = state.map[index].act
        return True

    def advance_node(self) -> bool:
        """Step to the next node by index. False at the end of the map."""
        state = self._require()
        return self.set_current_node(state.current_node + 1)

    def available_nodes(self) -> List[int]:
        """Nodes the party may move to next."""
        state = self._require()
        if not state.map:
            return []
        if state.current_node < 0:
            return [0]
        return list(state.map[state.current_node].connections)

    def generate_shop(self, item_count: Optional[int] = None) -> List[ItemData]:
        """Roll a shop's stock for the current act from the run's RNG."""
        state = self._require()
        return self.shop_generator.generate(self._rng, state.current_act, item_count)

    def advance_floor(self) -> int:
        state = self._require()
        state.floor += 1
        logger.info("Advanced to floor %d", state.floor)
        self.events.publish(RunEvent.FLOOR_ADVANCE, {"floor": state.floor})
        return state.floor

    # ---------------------------
    # Economy
    # ---------------------------

    def add_gold(self, amount: int) -> int:
        """Add (or subtract) gold; the balance never drops below zero."""
        state = self._require()
        _check_whole(amount, "add_gold")
        state.gold = max(0, state.gold + amount)
        return state.gold

    def spend_gold(self, amount: int) -> bool:
        state = self._require()
        _check_whole(amount, "spend_gold")
        if amount < 0:
            raise ValueError("spend_gold() amount must be >= 0")
        if state.gold < amount:
            return False
        state.gold -= amount
        return True

    # ---------------------------
    # Roster
    # ---------------------------

    def add_hero(self, hero_id: str) -> bool:
        state = self._require()
        data = self.content.heroes.get(hero_id)
        if data is None:
            logger.warning("add_hero: unknown hero id '%s'", hero_id)
            return False
        if len(state.heroes) >= self.settings.max_team_size:
            return False
        if self._hero_index(hero_id) >= 0:
            return False
        state.heroes.append(self._create_hero_state(data))
        self._recompute_synergies()
        self.events.publish(RunEvent.HERO_ADD, {"hero_id": hero_id})
        return True

    def remove_hero(self, hero_id: str) -> bool:
        """Remove a hero from the roster. The last hero cannot be removed."""
        state = self._require()
        index = self._hero_index(hero_id)
        if index < 0 or len(state.heroes) <= 1:
            return False
        del state.heroes[index]
        self._recompute_synergies()
        self.events.publish(RunEvent.HERO_REMOVE, {"hero_id": hero_id})
        return True

    def get_max_hp(self, hero_id: str) -> int:
        hero = self.get_hero_state(hero_id)
        if hero is None:
            raise KeyError(f"Hero '{hero_id}' is not in the roster")
        return self._max_hp(hero)

    def get_hero_stats(self, hero_id: str) -> Dict[str, float]:
        """Combat-ready stats: base, level scaling, equipment and synergy bonuses."""
        hero = self.get_hero_state(hero_id)
        if hero is None:
            raise KeyError(f"Hero '{hero_id}' is not in the roster")
        return hero_stats(hero, self.content.heroes[hero_id], self._synergies.get_synergy_bonuses(hero_id))

    def heal_all_heroes(self, percent: float) -> None:
        state = self._require()
        _check_percent(percent, "heal_all_heroes")
        for i, hero in enumerate(state.heroes):
            max_hp = self._max_hp(hero)
            hp = min(max_hp, hero.current_hp + math.floor(max_hp * percent))
            self._put_hero(i, dataclasses.replace(hero, current_hp=hp))

    def damage_all_heroes(self, percent: float) -> None:
        """Deal a share of max HP to every hero. Nobody drops below 1 HP."""
        state = self._require()
        _check_percent(percent, "damage_all_heroes")
        for i, hero in enumerate(state.heroes):
            max_hp = self._max_hp(hero)
            hp = max(1, hero.current_hp - math.floor(max_hp * percent))
            self._put_hero(i, dataclasses.replace(hero, current_hp=hp))

    def rest(self) -> None:
        """Heal every hero by the configured rest share of max HP."""
        self.heal_all_heroes(self.settings.rest_heal_percent)
        logger.debug("Party rested (%.0f%% heal)", self.settings.rest_heal_percent * 100)

    def update_hero_hp(self, hero_id: str, hp: int) -> bool:
        index = self._hero_index(hero_id)
        if index < 0:
            return False
        hero = self._require().heroes[index]
        hp = max(0, min(int(hp), self._max_hp(hero)))
        self._put_hero(index, dataclasses.replace(hero, current_hp=hp))
        return True

    def apply_battle_result(self, result: BattleResult) -> None:
        """Sync HP, award gold and exp after a battle.

        Survivors keep the HP reported in ``result.hero_hp`` (or their current HP);
        everyone else is revived at 1 HP. Level-ups heal to full.
        """
        state = self._require()
        self.add_gold(result.gold_earned)
        survivors = set(result.survivors)
        for i, hero in enumerate(state.heroes):
            if hero.id in survivors:
                hp = int(result.hero_hp.get(hero.id, hero.current_hp))
            else:
                hp = 1
            hero = dataclasses.replace(hero, current_hp=max(0, hp))
            hero = self._with_exp(hero, result.exp_earned)
            self._put_hero(i, self._clamp_hp(hero))
        logger.debug(
            "Applied battle result victory=%s gold=%d exp=%d survivors=%s",
            result.victory,
            result.gold_earned,
            result.exp_earned,
            sorted(survivors),
        )

    # ---------------------------
    # Equipment
    # ---------------------------

    def equip_item(self, hero_id: str, item: Union[ItemData, str]) -> EquipResult:
        """Put ``item`` (or the item with that id) into its slot on the hero."""
        if isinstance(item, str):
            resolved = self.content.items.get(item)
            if resolved is None:
                logger.warning("equip_item: unknown item id '%s'", item)
                return EquipResult(ok=False)
            item = resolved
        index = self._hero_index(hero_id)
        if index < 0:
            return EquipResult(ok=False)

        hero = self._require().heroes[index]
        replaced = hero.equipment.get(item.slot)
        hero = dataclasses.replace(hero, equipment=hero.equipment.with_slot(item.slot, item))
        self._put_hero(index, self._clamp_hp(hero))
        self.events.publish(
            RunEvent.ITEM_EQUIP,
            {
                "hero_id": hero_id,
                "item_id": item.id,
                "slot": item.slot.value,
                "replaced_id": replaced.id if replaced else None,
            },
        )
        return EquipResult(ok=True, replaced=replaced)

    def unequip_item(self, hero_id: str, slot: Union[EquipmentSlot, str]) -> EquipResult:
        slot = EquipmentSlot(slot)
        index = self._hero_index(hero_id)
        if index < 0:
            return EquipResult(ok=False)

        hero = self._require().heroes[index]
        removed = hero.equipment.get(slot)
        if removed is None:
            return EquipResult(ok=True)
        hero = dataclasses.replace(hero, equipment=hero.equipment.with_slot(slot, None))
        self._put_hero(index, self._clamp_hp(hero))
        self.events.publish(RunEvent.ITEM_UNEQUIP, {"hero_id": hero_id, "item_id": removed.id, "slot": slot.value})
        return EquipResult(ok=True, replaced=removed)

    # ---------------------------
    # Relics
    # ---------------------------

    def add_relic(self, relic_id: str) -> bool:
        state = self._require()
        if self.has_relic(relic_id):
            return False
        state.relics.append(RelicState(id=relic_id))
        self.events.publish(RunEvent.RELIC_ACQUIRE, {"relic_id": relic_id})
        return True

    def has_relic(self, relic_id: str) -> bool:
        return any(r.id == relic_id for r in self._require().relics)

    def increment_relic_trigger(self, relic_id: str) -> bool:
        state = self._require()
        for i, relic in enumerate(state.relics):
            if relic.id == relic_id:
                state.relics[i] = dataclasses.replace(relic, trigger_count=relic.trigger_count + 1)
                return True
        return False

    # ---------------------------
    # Synergies
    # ---------------------------

    @property
    def synergies(self) -> SynergySystem:
        return self._synergies

    def get_active_synergies(self) -> List[ActiveSynergy]:
        self._require()
        return self._synergies.get_active_synergies()

    # ---------------------------
    # Serialization
    # ---------------------------

    def serialize(self) -> str:
        """Canonical JSON of the run state plus the RNG's current state."""
        state = self._require()
        payload: Dict[str, Any] = {
            "version": SERIALIZATION_VERSION,
            "state": state.to_dict(),
            "rng_state": self._rng.get_state(),
        }
        return canonical_dumps(payload)

    def deserialize(self, text: str) -> None:
        """Replace the current run with a serialized one.

        Everything is parsed and validated before anything is swapped in, so on
        CorruptRunStateError the previous run (if any) is untouched.
        """
        schema = load_schema("run_state")
        try:
            data = parse_json_text(text, "run state")
            validate_document("run state", data, schema)
            state = RunState.from_dict(data["state"])
            unknown = [h.id for h in state.heroes if h.id not in self.content.heroes]
            if unknown:
                raise InvalidRunStateError(f"Unknown heroes in run state: {unknown}")
            if state.difficulty not in self.content.difficulties:
                raise InvalidRunStateError(f"Unknown difficulty '{state.difficulty}' in run state")
            for hero in state.heroes:
                if hero.current_hp > self._max_hp(hero):
                    raise InvalidRunStateError(f"Hero '{hero.id}' hp exceeds its max hp")
            rng = SeededRNG.from_state(data["rng_state"])
        except (ContentError, InvalidRunStateError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Rejected serialized run state: %s", exc)
            raise CorruptRunStateError(str(exc)) from exc

        self._state = state
        self._rng = rng
        self._recompute_synergies()
        logger.info("Restored run seed=%d floor=%d", state.seed, state.floor)
        self.events.publish(RunEvent.RUN_LOAD, {"seed": state.seed, "floor": state.floor})
