from __future__ import annotations

from enum import Enum


class NodeType(str, Enum):
    BATTLE = "battle"
    ELITE = "elite"
    BOSS = "boss"
    SHOP = "shop"
    EVENT = "event"
    REST = "rest"

    @property
    def is_combat(self) -> bool:
        return self in (NodeType.BATTLE, NodeType.ELITE, NodeType.BOSS)


class EquipmentSlot(str, Enum):
    WEAPON = "weapon"
    ARMOR = "armor"
    ACCESSORY = "accessory"


class SynergyType(str, Enum):
    RACE = "race"
    CLASS = "class"
    ELEMENT = "element"


class EffectType(str, Enum):
    STAT_BOOST = "stat_boost"
    DAMAGE_BONUS = "damage_bonus"
    RESISTANCE = "resistance"
    SKILL_UNLOCK = "skill_unlock"


# Stat block keys shared by heroes, enemies, items and synergy bonuses.
STAT_KEYS = (
    "max_hp",
    "hp",
    "attack",
    "defense",
    "magic_power",
    "magic_resist",
    "speed",
    "attack_speed",
    "attack_range",
    "crit_chance",
    "crit_damage",
)

SCALING_KEYS = ("max_hp", "attack", "defense", "magic_power", "magic_resist")
