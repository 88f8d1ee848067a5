from __future__ import annotations

import math
from typing import Dict, Mapping, Optional

from .content.models import HeroData
from .enums import SCALING_KEYS, STAT_KEYS
from .models import Equipment, HeroState


def round_half_up(value: float) -> int:
    """Round halves toward +infinity (2.5 -> 3, -2.5 -> -2)."""
    return int(math.floor(value + 0.5))


def add_stats(target: Dict[str, float], bonus: Mapping[str, float]) -> Dict[str, float]:
    """Add ``bonus`` into ``target`` key by key and return ``target``."""
    for key, value in bonus.items():
        target[key] = target.get(key, 0) + value
    return target


def level_stats(data: HeroData, level: int) -> Dict[str, float]:
    """Base stat block grown by ``level - 1`` steps of per-level scaling."""
    stats = {key: data.base_stats.get(key, 0) for key in STAT_KEYS}
    steps = max(0, level - 1)
    for key in SCALING_KEYS:
        stats[key] += data.scaling_per_level.get(key, 0) * steps
    return stats


def equipment_stats(equipment: Equipment) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for item in equipment.items():
        add_stats(totals, item.stats)
    return totals


def hero_max_hp(hero: HeroState, data: HeroData) -> int:
    """Max HP from level scaling and equipment. Synergy bonuses are combat-only."""
    max_hp = data.base_stats.get("max_hp", 0) + data.scaling_per_level.get("max_hp", 0) * max(0, hero.level - 1)
    max_hp += equipment_stats(hero.equipment).get("max_hp", 0)
    return int(math.floor(max_hp))


def hero_stats(hero: HeroState, data: HeroData, synergy_bonus: Optional[Mapping[str, float]] = None) -> Dict[str, float]:
    """Full stat block: base + level scaling + equipment + synergy bonus.

    ``hp`` reports the hero's current HP rather than a stat bonus.
    """
    stats = level_stats(data, hero.level)
    add_stats(stats, equipment_stats(hero.equipment))
    if synergy_bonus:
        add_stats(stats, synergy_bonus)
    stats["hp"] = hero.current_hp
    return stats
