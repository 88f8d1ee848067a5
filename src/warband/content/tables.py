from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, TypeVar, Union

from ..enums import EffectType
from .loader import (
    ContentReferenceError,
    ContentValueError,
    index_by_id,
    load_json_file,
    load_json_resource,
    load_schema,
)
from .models import (
    ActConfig,
    DifficultyConfig,
    EnemyData,
    EventData,
    HeroData,
    ItemData,
    SkillData,
    SynergyConfig,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

# table name -> (file name, schema name)
CONTENT_FILES: Dict[str, Tuple[str, str]] = {
    "heroes": ("heroes.json", "heroes"),
    "enemies": ("enemies.json", "enemies"),
    "skills": ("skills.json", "skills"),
    "items": ("items.json", "items"),
    "acts": ("acts.json", "acts"),
    "synergies": ("synergies.json", "synergies"),
    "events": ("events.json", "events"),
    "difficulties": ("difficulties.json", "difficulties"),
}


@dataclass(frozen=True)
class ContentTables:
    """Read-only content keyed by string id.

    ``acts`` and ``synergies`` keep their declared order since map generation
    and synergy evaluation depend on it.
    """

    heroes: Mapping[str, HeroData]
    enemies: Mapping[str, EnemyData]
    skills: Mapping[str, SkillData]
    items: Mapping[str, ItemData]
    acts: Tuple[ActConfig, ...]
    synergies: Tuple[SynergyConfig, ...]
    events: Mapping[str, EventData]
    difficulties: Mapping[str, DifficultyConfig]

    def normal_enemy_ids(self) -> List[str]:
        return [e.id for e in self.enemies.values() if not e.is_boss]

    def boss_enemy_ids(self) -> List[str]:
        return [e.id for e in self.enemies.values() if e.is_boss]


def _build(raw: List[Mapping[str, Any]], source: str, factory: Callable[[Mapping[str, Any]], T]) -> Dict[str, T]:
    built: Dict[str, T] = {}
    for ident, obj in index_by_id(raw, source).items():
        try:
            built[ident] = factory(obj)
        except ValueError as e:
            raise ContentValueError(ident, source, str(e)) from e
    return built


def _check_references(tables: ContentTables) -> None:
    for hero in tables.heroes.values():
        for skill_id in hero.skills:
            if skill_id not in tables.skills:
                raise ContentReferenceError(f"Hero '{hero.id}' references unknown skill '{skill_id}'")
    for enemy in tables.enemies.values():
        for skill_id in enemy.skills:
            if skill_id not in tables.skills:
                raise ContentReferenceError(f"Enemy '{enemy.id}' references unknown skill '{skill_id}'")
    for synergy in tables.synergies:
        for threshold in synergy.thresholds:
            for effect in threshold.effects:
                if effect.type is EffectType.SKILL_UNLOCK and effect.skill_id not in tables.skills:
                    raise ContentReferenceError(
                        f"Synergy '{synergy.id}' unlocks unknown skill '{effect.skill_id}'"
                    )
    # Unknown pool entries are tolerated; map generation skips them.
    for act in tables.acts:
        for pool_name, pool, known in (
            ("enemy_pool", act.enemy_pool, tables.enemies),
            ("boss_pool", act.boss_pool, tables.enemies),
            ("event_pool", act.event_pool, tables.events),
        ):
            unknown = [i for i in pool if i not in known]
            if unknown:
                logger.warning("Act '%s' %s has unknown ids: %s", act.id, pool_name, unknown)


def load_content(data_dir: Optional[Union[str, Path]] = None) -> ContentTables:
    """Load and validate every content table.

    With ``data_dir`` the JSON files are read from that directory, otherwise
    from the bundled ``warband.data`` package. Raises ContentError subclasses.
    """
    raw: Dict[str, Any] = {}
    for table, (filename, schema_name) in CONTENT_FILES.items():
        schema = load_schema(schema_name)
        if data_dir is None:
            raw[table] = load_json_resource(filename, schema=schema)
        else:
            raw[table] = load_json_file(Path(data_dir) / filename, schema=schema)

    acts = list(_build(raw["acts"], "acts", ActConfig.from_dict).values())
    synergies = list(_build(raw["synergies"], "synergies", SynergyConfig.from_dict).values())
    tables = ContentTables(
        heroes=_build(raw["heroes"], "heroes", HeroData.from_dict),
        enemies=_build(raw["enemies"], "enemies", EnemyData.from_dict),
        skills=_build(raw["skills"], "skills", SkillData.from_dict),
        items=_build(raw["items"], "items", ItemData.from_dict),
        acts=tuple(acts),
        synergies=tuple(synergies),
        events=_build(raw["events"], "events", EventData.from_dict),
        difficulties=_build(raw["difficulties"], "difficulties", DifficultyConfig.from_dict),
    )
    _check_references(tables)
    logger.info(
        "Loaded content: %d heroes, %d enemies, %d acts, %d synergies",
        len(tables.heroes),
        len(tables.enemies),
        len(tables.acts),
        len(tables.synergies),
    )
    return tables


@lru_cache(maxsize=1)
def load_default_content() -> ContentTables:
    """Bundled content, parsed once per process."""
    return load_content()
