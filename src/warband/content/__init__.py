"""Static game content: JSON tables validated against bundled JSON Schemas."""

from .loader import (
    ContentError,
    ContentFileNotFoundError,
    ContentParseError,
    ContentReferenceError,
    ContentSchemaError,
    ContentValueError,
    DuplicateIdError,
)
from .models import (
    DEFAULT_LAYER_TEMPLATE,
    ActConfig,
    DifficultyConfig,
    EnemyData,
    EventData,
    HeroData,
    ItemData,
    SkillData,
    SynergyConfig,
    SynergyEffect,
    SynergyThreshold,
)
from .tables import ContentTables, load_content, load_default_content

__all__ = [
    "ContentError",
    "ContentFileNotFoundError",
    "ContentParseError",
    "ContentReferenceError",
    "ContentSchemaError",
    "ContentValueError",
    "DuplicateIdError",
    "DEFAULT_LAYER_TEMPLATE",
    "ActConfig",
    "DifficultyConfig",
    "EnemyData",
    "EventData",
    "HeroData",
    "ItemData",
    "SkillData",
    "SynergyConfig",
    "SynergyEffect",
    "SynergyThreshold",
    "ContentTables",
    "load_content",
    "load_default_content",
]
