from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

from .content.models import ItemData
from .enums import EquipmentSlot, NodeType
from .errors import InvalidRunStateError

_UINT32_MAX = 0xFFFFFFFF


# ---------------------------
# Map
# ---------------------------

@dataclass(frozen=True)
class EnemySpawn:
    """One enemy placed on a combat node, at the level it will spawn with."""

    enemy_id: str
    level: int

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.enemy_id, "level": self.level}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EnemySpawn":
        return EnemySpawn(enemy_id=str(data["id"]), level=int(data["level"]))


@dataclass(frozen=True)
class BattleNodeData:
    enemies: Tuple[EnemySpawn, ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"enemies": [e.to_dict() for e in self.enemies]}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "BattleNodeData":
        return BattleNodeData(enemies=tuple(EnemySpawn.from_dict(e) for e in data["enemies"]))


@dataclass(frozen=True)
class EventNodeData:
    event_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {"event_id": self.event_id}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EventNodeData":
        return EventNodeData(event_id=str(data["event_id"]))


NodeData = Union[BattleNodeData, EventNodeData, None]


def _node_data_from_dict(node_type: NodeType, data: Optional[Mapping[str, Any]]) -> NodeData:
    if node_type.is_combat:
        if data is None:
            raise InvalidRunStateError(f"{node_type.value} node is missing its enemy list")
        return BattleNodeData.from_dict(data)
    if node_type is NodeType.EVENT:
        if data is None:
            raise InvalidRunStateError("event node is missing its event id")
        return EventNodeData.from_dict(data)
    if data is not None:
        raise InvalidRunStateError(f"{node_type.value} node must not carry data")
    return None


@dataclass(frozen=True)
class MapNode:
    """A point on the run map.

    ``data`` is a BattleNodeData for battle/elite/boss nodes, an EventNodeData for
    event nodes and None for shop/rest nodes. Completion is recorded by replacing
    the node (see ``completed_copy``).
    """

    index: int
    type: NodeType
    connections: Tuple[int, ...] = ()
    data: NodeData = None
    completed: bool = False
    act: int = 0
    layer: int = 0

    def completed_copy(self) -> "MapNode":
        return dataclasses.replace(self, completed=True)

    def validate(self) -> None:
        if self.index < 0:
            raise InvalidRunStateError(f"Node index must be >= 0, got {self.index}")
        if self.act < 0 or self.layer < 0:
            raise InvalidRunStateError(f"Node {self.index} has a negative act or layer")
        if list(self.connections) != sorted(set(self.connections)):
            raise InvalidRunStateError(f"Node {self.index} connections must be sorted and unique")
        if any(c <= self.index for c in self.connections):
            raise InvalidRunStateError(f"Node {self.index} has a backward connection: {self.connections}")
        if self.type.is_combat:
            if not isinstance(self.data, BattleNodeData):
                raise InvalidRunStateError(f"Node {self.index} ({self.type.value}) needs battle data")
        elif self.type is NodeType.EVENT:
            if not isinstance(self.data, EventNodeData):
                raise InvalidRunStateError(f"Node {self.index} (event) needs event data")
        elif self.data is not None:
            raise InvalidRunStateError(f"Node {self.index} ({self.type.value}) must not carry data")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "index": self.index,
            "type": self.type.value,
            "completed": self.completed,
            "connections": list(self.connections),
            "data": self.data.to_dict() if self.data is not None else None,
            "act": self.act,
            "layer": self.layer,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "MapNode":
        node_type = NodeType(data["type"])
        node = MapNode(
            index=int(data["index"]),
            type=node_type,
            completed=bool(data.get("completed", False)),
            connections=tuple(int(c) for c in data.get("connections", ())),
            data=_node_data_from_dict(node_type, data.get("data")),
            act=int(data.get("act", 0)),
            layer=int(data.get("layer", 0)),
        )
        node.validate()
        return node


def validate_map(nodes: List[MapNode]) -> None:
    """Structural checks shared by set_map and deserialization."""
    for expected, node in enumerate(nodes):
        if node.index != expected:
            raise InvalidRunStateError(f"Map indices must be sequential: expected {expected}, got {node.index}")
        node.validate()
        if node.connections and node.connections[-1] >= len(nodes):
            raise InvalidRunStateError(f"Node {node.index} connects past the end of the map")


# ---------------------------
# Heroes
# ---------------------------

@dataclass(frozen=True)
class Equipment:
    weapon: Optional[ItemData] = None
    armor: Optional[ItemData] = None
    accessory: Optional[ItemData] = None

    def get(self, slot: EquipmentSlot) -> Optional[ItemData]:
        return getattr(self, slot.value)

    def with_slot(self, slot: EquipmentSlot, item: Optional[ItemData]) -> "Equipment":
        return dataclasses.replace(self, **{slot.value: item})

    def items(self) -> Iterator[ItemData]:
        for slot in EquipmentSlot:
            item = self.get(slot)
            if item is not None:
                yield item

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {}
        for slot in EquipmentSlot:
            item = self.get(slot)
            out[slot.value] = item.to_dict() if item is not None else None
        return out

    @staticmethod
    def from_dict(data: Optional[Mapping[str, Any]]) -> "Equipment":
        data = data or {}
        kwargs = {}
        for slot in EquipmentSlot:
            raw = data.get(slot.value)
            item = ItemData.from_dict(raw) if raw else None
            if item is not None and item.slot is not slot:
                raise InvalidRunStateError(f"Item '{item.id}' is a {item.slot.value}, not a {slot.value}")
            kwargs[slot.value] = item
        return Equipment(**kwargs)


@dataclass(frozen=True)
class HeroState:
    """A recruited hero's run progress. RunManager replaces it on every change."""

    id: str
    level: int = 1
    exp: int = 0
    current_hp: int = 0
    equipment: Equipment = field(default_factory=Equipment)

    def validate(self) -> None:
        if not self.id:
            raise InvalidRunStateError("Hero id cannot be empty")
        if self.level < 1:
            raise InvalidRunStateError(f"Hero '{self.id}' level must be >= 1")
        if self.exp < 0:
            raise InvalidRunStateError(f"Hero '{self.id}' exp must be >= 0")
        if self.current_hp < 0:
            raise InvalidRunStateError(f"Hero '{self.id}' hp must be >= 0")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "level": self.level,
            "exp": self.exp,
            "current_hp": self.current_hp,
            "equipment": self.equipment.to_dict(),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "HeroState":
        hero = HeroState(
            id=str(data["id"]),
            level=int(data["level"]),
            exp=int(data["exp"]),
            current_hp=int(data["current_hp"]),
            equipment=Equipment.from_dict(data.get("equipment")),
        )
        hero.validate()
        return hero


# ---------------------------
# Relics, synergies, battle results
# ---------------------------

@dataclass(frozen=True)
class RelicState:
    id: str
    trigger_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "trigger_count": self.trigger_count}

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "RelicState":
        relic = RelicState(id=str(data["id"]), trigger_count=int(data.get("trigger_count", 0)))
        if relic.trigger_count < 0:
            raise InvalidRunStateError(f"Relic '{relic.id}' trigger_count must be >= 0")
        return relic


@dataclass(frozen=True)
class ActiveSynergy:
    synergy_id: str
    count: int
    active_threshold: int


@dataclass(frozen=True)
class BattleResult:
    """Outcome handed back by the combat layer.

    ``hero_hp`` optionally carries each survivor's remaining HP.
    """

    victory: bool
    gold_earned: int = 0
    exp_earned: int = 0
    survivors: Tuple[str, ...] = ()
    hero_hp: Mapping[str, int] = field(default_factory=dict)


# ---------------------------
# Run state
# ---------------------------

@dataclass
class RunState:
    """Everything a run needs to resume, except the RNG state which travels beside it."""

    seed: int
    heroes: List[HeroState] = field(default_factory=list)
    gold: int = 0
    map: List[MapNode] = field(default_factory=list)
    current_node: int = -1
    floor: int = 1
    difficulty: str = "normal"
    relics: List[RelicState] = field(default_factory=list)
    current_act: int = 0

    def copy(self) -> "RunState":
        """Shallow copy; elements are frozen so sharing them is safe."""
        return dataclasses.replace(
            self,
            heroes=list(self.heroes),
            map=list(self.map),
            relics=list(self.relics),
        )

    def validate(self) -> None:
        if not isinstance(self.seed, int) or not (0 <= self.seed <= _UINT32_MAX):
            raise InvalidRunStateError("seed must be an unsigned 32-bit int")
        if self.gold < 0:
            raise InvalidRunStateError("gold must be >= 0")
        if self.floor < 1:
            raise InvalidRunStateError("floor must be >= 1")
        if self.current_act < 0:
            raise InvalidRunStateError("current_act must be >= 0")
        if not self.difficulty:
            raise InvalidRunStateError("difficulty cannot be empty")
        if not self.heroes:
            raise InvalidRunStateError("a run needs at least one hero")
        hero_ids = [h.id for h in self.heroes]
        if len(set(hero_ids)) != len(hero_ids):
            raise InvalidRunStateError(f"duplicate hero ids: {hero_ids}")
        for hero in self.heroes:
            hero.validate()
        relic_ids = [r.id for r in self.relics]
        if len(set(relic_ids)) != len(relic_ids):
            raise InvalidRunStateError(f"duplicate relic ids: {relic_ids}")
        validate_map(self.map)
        if not (-1 <= self.current_node < len(self.map)):
            raise InvalidRunStateError(f"current_node {self.current_node} is outside the map")

    def to_dict(self) -> Dict[str, Any]:
        return {
            "seed": self.seed,
            "heroes": [h.to_dict() for h in self.heroes],
            "gold": self.gold,
            "map": [n.to_dict() for n in self.map],
            "current_node": self.current_node,
            "floor": self.floor,
            "difficulty": self.difficulty,
            "relics": [r.to_dict() for r in self.relics],
            "current_act": self.current_act,
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "RunState":
        rs = RunState(
            seed=int(data["seed"]),
            heroes=[HeroState.from_dict(h) for h in data["heroes"]],
            gold=int(data["gold"]),
            map=[MapNode.from_dict(n) for n in data["map"]],
            current_node=int(data["current_node"]),
            floor=int(data["floor"]),
            difficulty=str(data["difficulty"]),
            relics=[RelicState.from_dict(r) for r in data.get("relics", [])],
            current_act=int(data.get("current_act", 0)),
        )
        rs.validate()
        return rs
