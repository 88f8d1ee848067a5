from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

from ..enums import EffectType, EquipmentSlot, NodeType, SynergyType


def _stats(raw: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    return {str(k): v for k, v in (raw or {}).items()}


@dataclass(frozen=True)
class HeroData:
    """Static hero definition; a HeroState is created from it at roster-add time."""

    id: str
    name: str
    role: str
    base_stats: Dict[str, float]
    scaling_per_level: Dict[str, float]
    race: Optional[str] = None
    hero_class: Optional[str] = None
    element: Optional[str] = None
    skills: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "HeroData":
        return HeroData(
            id=str(data["id"]),
            name=str(data["name"]),
            role=str(data["role"]),
            base_stats=_stats(data["base_stats"]),
            scaling_per_level=_stats(data.get("scaling_per_level")),
            race=data.get("race"),
            hero_class=data.get("class"),
            element=data.get("element"),
            skills=tuple(data.get("skills", ())),
        )


@dataclass(frozen=True)
class EnemyData:
    id: str
    name: str
    role: str
    base_stats: Dict[str, float]
    scaling_per_level: Dict[str, float]
    gold_reward: int = 0
    exp_reward: int = 0
    is_boss: bool = False
    element: Optional[str] = None
    skills: Tuple[str, ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EnemyData":
        return EnemyData(
            id=str(data["id"]),
            name=str(data["name"]),
            role=str(data["role"]),
            base_stats=_stats(data["base_stats"]),
            scaling_per_level=_stats(data.get("scaling_per_level")),
            gold_reward=int(data.get("gold_reward", 0)),
            exp_reward=int(data.get("exp_reward", 0)),
            is_boss=bool(data.get("is_boss", False)),
            element=data.get("element"),
            skills=tuple(data.get("skills", ())),
        )


@dataclass(frozen=True)
class SkillData:
    id: str
    name: str
    description: str
    cooldown: float
    damage_type: str
    target_type: str
    base_damage: float
    scaling_stat: str
    scaling_ratio: float
    range: float
    element: Optional[str] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SkillData":
        return SkillData(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            cooldown=float(data["cooldown"]),
            damage_type=str(data["damage_type"]),
            target_type=str(data["target_type"]),
            base_damage=float(data["base_damage"]),
            scaling_stat=str(data["scaling_stat"]),
            scaling_ratio=float(data["scaling_ratio"]),
            range=float(data["range"]),
            element=data.get("element"),
        )


@dataclass(frozen=True)
class ItemData:
    """Equipment definition. Stored verbatim inside serialized hero equipment."""

    id: str
    name: str
    slot: EquipmentSlot
    rarity: str
    cost: int
    stats: Dict[str, float] = field(default_factory=dict)
    description: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "slot": self.slot.value,
            "rarity": self.rarity,
            "cost": self.cost,
            "stats": dict(self.stats),
        }

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ItemData":
        return ItemData(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            slot=EquipmentSlot(data["slot"]),
            rarity=str(data["rarity"]),
            cost=int(data["cost"]),
            stats=_stats(data.get("stats")),
        )


@dataclass(frozen=True)
class SynergyEffect:
    type: EffectType
    stat: Optional[str] = None
    value: Optional[float] = None
    skill_id: Optional[str] = None
    element: Optional[str] = None

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SynergyEffect":
        return SynergyEffect(
            type=EffectType(data["type"]),
            stat=data.get("stat"),
            value=data.get("value"),
            skill_id=data.get("skill_id"),
            element=data.get("element"),
        )


@dataclass(frozen=True)
class SynergyThreshold:
    count: int
    effects: Tuple[SynergyEffect, ...]
    description: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SynergyThreshold":
        return SynergyThreshold(
            count=int(data["count"]),
            description=str(data.get("description", "")),
            effects=tuple(SynergyEffect.from_dict(e) for e in data["effects"]),
        )


@dataclass(frozen=True)
class SynergyConfig:
    """A race/class/element synergy. Thresholds are kept sorted by count."""

    id: str
    name: str
    type: SynergyType
    key: str
    thresholds: Tuple[SynergyThreshold, ...]
    description: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "SynergyConfig":
        thresholds = sorted(
            (SynergyThreshold.from_dict(t) for t in data["thresholds"]),
            key=lambda t: t.count,
        )
        return SynergyConfig(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            type=SynergyType(data["type"]),
            key=str(data["key"]),
            thresholds=tuple(thresholds),
        )


# Majority type per layer when an act does not declare its own template.
DEFAULT_LAYER_TEMPLATE: Tuple[NodeType, ...] = (
    NodeType.BATTLE,
    NodeType.BATTLE,
    NodeType.EVENT,
    NodeType.ELITE,
    NodeType.SHOP,
    NodeType.BATTLE,
    NodeType.REST,
    NodeType.BOSS,
)


@dataclass(frozen=True)
class ActConfig:
    id: str
    name: str
    node_count: int
    difficulty_multiplier: float
    enemy_pool: Tuple[str, ...] = ()
    boss_pool: Tuple[str, ...] = ()
    event_pool: Tuple[str, ...] = ()
    element_affinity: Optional[str] = None
    layer_template: Tuple[NodeType, ...] = DEFAULT_LAYER_TEMPLATE
    description: str = ""

    def __post_init__(self) -> None:
        if self.node_count < 2:
            raise ValueError(f"Act '{self.id}' needs at least 2 layers, got {self.node_count}")
        if len(self.layer_template) < 2:
            raise ValueError(f"Act '{self.id}' layer_template needs at least 2 entries")
        if NodeType.BOSS in self.layer_template[:-1]:
            raise ValueError(f"Act '{self.id}' may only place 'boss' in the final layer")

    @property
    def layer_count(self) -> int:
        return self.node_count

    def layer_type(self, layer: int) -> NodeType:
        """Majority node type for ``layer``; interior layers cycle through the template."""
        if layer >= self.layer_count - 1:
            return NodeType.BOSS
        if layer == 0:
            return self.layer_template[0]
        interior = self.layer_template[1:-1] or self.layer_template[:1]
        return interior[(layer - 1) % len(interior)]

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "ActConfig":
        template = data.get("layer_template")
        return ActConfig(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            node_count=int(data["node_count"]),
            difficulty_multiplier=float(data["difficulty_multiplier"]),
            enemy_pool=tuple(data.get("enemy_pool", ())),
            boss_pool=tuple(data.get("boss_pool", ())),
            event_pool=tuple(data.get("event_pool", ())),
            element_affinity=data.get("element_affinity"),
            layer_template=tuple(NodeType(t) for t in template) if template else DEFAULT_LAYER_TEMPLATE,
        )


@dataclass(frozen=True)
class EventData:
    """Narrative event. Choice resolution belongs to the event scene, so choices stay raw."""

    id: str
    title: str
    description: str = ""
    choices: Tuple[Mapping[str, Any], ...] = ()

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "EventData":
        return EventData(
            id=str(data["id"]),
            title=str(data["title"]),
            description=str(data.get("description", "")),
            choices=tuple(data.get("choices", ())),
        )


@dataclass(frozen=True)
class DifficultyConfig:
    id: str
    name: str
    enemy_stat_multiplier: float = 1.0
    enemy_count_bonus: int = 0
    gold_multiplier: float = 1.0
    exp_multiplier: float = 1.0
    elite_chance_bonus: float = 0.0
    description: str = ""

    @staticmethod
    def from_dict(data: Mapping[str, Any]) -> "DifficultyConfig":
        return DifficultyConfig(
            id=str(data["id"]),
            name=str(data["name"]),
            description=str(data.get("description", "")),
            enemy_stat_multiplier=float(data.get("enemy_stat_multiplier", 1.0)),
            enemy_count_bonus=int(data.get("enemy_count_bonus", 0)),
            gold_multiplier=float(data.get("gold_multiplier", 1.0)),
            exp_multiplier=float(data.get("exp_multiplier", 1.0)),
            elite_chance_bonus=float(data.get("elite_chance_bonus", 0.0)),
        )
