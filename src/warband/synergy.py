from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from .content import HeroData, SkillData, SynergyConfig
from .enums import EffectType, SynergyType
from .models import ActiveSynergy, HeroState
from .stats import add_stats

logger = logging.getLogger(__name__)

ALL_ELEMENTS = "all"
DEFAULT_RESISTANCE_STAT = "magic_resist"


@dataclass
class SynergyBonusCache:
    """Derived synergy bonuses for one roster. Recomputed on change, never persisted."""

    hero_bonuses: Dict[str, Dict[str, float]] = field(default_factory=dict)
    damage_bonuses: Dict[str, float] = field(default_factory=dict)
    global_resistance: Dict[str, float] = field(default_factory=dict)
    unlocked_skills: List[SkillData] = field(default_factory=list)
    active_synergies: List[ActiveSynergy] = field(default_factory=list)


def _group_members(heroes: Iterable[HeroState], hero_data_by_id: Mapping[str, HeroData]) -> Dict[SynergyType, Dict[str, List[str]]]:
    groups: Dict[SynergyType, Dict[str, List[str]]] = {t: {} for t in SynergyType}
    for hero in heroes:
        data = hero_data_by_id.get(hero.id)
        if data is None:
            logger.debug("No hero data for '%s'; skipping for synergy grouping", hero.id)
            continue
        for synergy_type, key in (
            (SynergyType.RACE, data.race),
            (SynergyType.CLASS, data.hero_class),
            (SynergyType.ELEMENT, data.element),
        ):
            if key:
                groups[synergy_type].setdefault(key, []).append(hero.id)
    return groups


class SynergySystem:
    """Computes team-composition bonuses and caches the latest result.

    Thresholds are cumulative: a synergy at count 4 with tiers at 2 and 4 applies
    the effects of both tiers. Definitions are evaluated in declared order.
    """

    def __init__(self, definitions: Sequence[SynergyConfig], skills: Optional[Mapping[str, SkillData]] = None) -> None:
        self.definitions = tuple(definitions)
        self.skills = dict(skills or {})
        self._cache: Optional[SynergyBonusCache] = None

    @property
    def cache(self) -> Optional[SynergyBonusCache]:
        return self._cache

    def calculate_active_synergies(
        self,
        heroes: Sequence[HeroState],
        hero_data_by_id: Mapping[str, HeroData],
    ) -> SynergyBonusCache:
        groups = _group_members(heroes, hero_data_by_id)
        cache = SynergyBonusCache(hero_bonuses={hero.id: {} for hero in heroes})

        for synergy in self.definitions:
            members = groups[synergy.type].get(synergy.key, [])
            count = len(members)

            active_threshold = 0
            effects = []
            for threshold in synergy.thresholds:
                if count >= threshold.count:
                    active_threshold = threshold.count
                    effects.extend(threshold.effects)
            if active_threshold == 0:
                continue

            cache.active_synergies.append(
                ActiveSynergy(synergy_id=synergy.id, count=count, active_threshold=active_threshold)
            )

            for effect in effects:
                if effect.type is EffectType.STAT_BOOST:
                    if effect.stat is None or effect.value is None:
                        continue
                    for hero_id in members:
                        bonus = cache.hero_bonuses.setdefault(hero_id, {})
                        bonus[effect.stat] = bonus.get(effect.stat, 0) + effect.value
                elif effect.type is EffectType.DAMAGE_BONUS:
                    key = effect.element or ALL_ELEMENTS
                    cache.damage_bonuses[key] = cache.damage_bonuses.get(key, 0) + (effect.value or 0)
                elif effect.type is EffectType.RESISTANCE:
                    if effect.value is None:
                        continue
                    stat = effect.stat or DEFAULT_RESISTANCE_STAT
                    cache.global_resistance[stat] = cache.global_resistance.get(stat, 0) + effect.value
                elif effect.type is EffectType.SKILL_UNLOCK:
                    skill = self.skills.get(effect.skill_id or "")
                    if skill is None:
                        logger.warning("Synergy '%s' unlocks unknown skill '%s'", synergy.id, effect.skill_id)
                        continue
                    cache.unlocked_skills.append(skill)

        if cache.global_resistance:
            for hero in heroes:
                add_stats(cache.hero_bonuses.setdefault(hero.id, {}), cache.global_resistance)

        logger.debug(
            "Active synergies: %s",
            ", ".join(f"{a.synergy_id}({a.count}/{a.active_threshold})" for a in cache.active_synergies) or "none",
        )
        self._cache = cache
        return cache

    # Queries over the latest calculation

    def get_synergy_bonuses(self, hero_id: str) -> Dict[str, float]:
        if self._cache is None:
            return {}
        return dict(self._cache.hero_bonuses.get(hero_id, {}))

    def get_damage_bonuses(self) -> Dict[str, float]:
        if self._cache is None:
            return {}
        return dict(self._cache.damage_bonuses)

    def get_synergy_damage_multiplier(self, element: Optional[str] = None) -> float:
        """1 + the 'all' bonus + the bonus for ``element`` (if any)."""
        if self._cache is None:
            return 1.0
        multiplier = 1.0 + self._cache.damage_bonuses.get(ALL_ELEMENTS, 0)
        if element:
            multiplier += self._cache.damage_bonuses.get(element, 0)
        return multiplier

    def get_unlocked_skills(self) -> List[SkillData]:
        if self._cache is None:
            return []
        return list(self._cache.unlocked_skills)

    def get_active_synergies(self) -> List[ActiveSynergy]:
        if self._cache is None:
            return []
        return list(self._cache.active_synergies)

    def reset(self) -> None:
        self._cache = None
