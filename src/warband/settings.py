from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

logger = logging.getLogger(__name__)


@dataclass
class GameSettings:
    starting_gold: int = 100
    max_team_size: int = 5
    starting_heroes: List[str] = field(default_factory=lambda: ["warrior", "archer"])
    default_difficulty: str = "normal"
    rest_heal_percent: float = 0.3
    max_level: int = 20
    base_exp: int = 100
    exp_per_level: int = 50
    save_slots: int = 3

    def exp_for_level(self, level: int) -> int:
        """Experience needed to advance past ``level``."""
        return self.base_exp + level * self.exp_per_level

    def validate(self) -> None:
        if self.starting_gold < 0:
            raise ValueError("starting_gold must be >= 0")
        if self.max_team_size < 1:
            raise ValueError("max_team_size must be >= 1")
        if self.max_level < 1:
            raise ValueError("max_level must be >= 1")
        if self.save_slots < 1:
            raise ValueError("save_slots must be >= 1")
        if not 0 <= self.rest_heal_percent <= 1:
            raise ValueError("rest_heal_percent must be within [0, 1]")

    @staticmethod
    def _load_yaml(path: Path) -> dict:
        with path.open("r", encoding="utf-8") as f:
            return yaml.safe_load(f) or {}

    @classmethod
    def _deep_merge(cls, base: dict, overlay: dict) -> dict:
        merged = dict(base)
        for k, v in (overlay or {}).items():
            if isinstance(v, dict) and isinstance(base.get(k), dict):
                merged[k] = cls._deep_merge(base[k], v)
            else:
                merged[k] = v
        return merged

    @classmethod
    def _from_dict(cls, data: Dict[str, Any]) -> "GameSettings":
        run = data.get("run", {})
        progression = data.get("progression", {})
        saves = data.get("saves", {})
        defaults = cls()
        settings = cls(
            starting_gold=int(run.get("starting_gold", defaults.starting_gold)),
            max_team_size=int(run.get("max_team_size", defaults.max_team_size)),
            starting_heroes=[str(h) for h in run.get("starting_heroes", defaults.starting_heroes)],
            default_difficulty=str(run.get("default_difficulty", defaults.default_difficulty)),
            rest_heal_percent=float(run.get("rest_heal_percent", defaults.rest_heal_percent)),
            max_level=int(progression.get("max_level", defaults.max_level)),
            base_exp=int(progression.get("base_exp", defaults.base_exp)),
            exp_per_level=int(progression.get("exp_per_level", defaults.exp_per_level)),
            save_slots=int(saves.get("slots", defaults.save_slots)),
        )
        settings.validate()
        return settings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "run": {
                "starting_gold": self.starting_gold,
                "max_team_size": self.max_team_size,
                "starting_heroes": list(self.starting_heroes),
                "default_difficulty": self.default_difficulty,
                "rest_heal_percent": self.rest_heal_percent,
            },
            "progression": {
                "max_level": self.max_level,
                "base_exp": self.base_exp,
                "exp_per_level": self.exp_per_level,
            },
            "saves": {"slots": self.save_slots},
        }

    @classmethod
    def load(cls, user_path: Optional[Path] = None) -> "GameSettings":
        """Load settings from built-in defaults and an optional user override file.

        If user_path is provided and exists, its values are overlaid onto the defaults.
        """
        try:
            with resources.files("warband.data").joinpath("settings.yaml").open("r", encoding="utf-8") as f:
                default_data = yaml.safe_load(f) or {}
        except FileNotFoundError:
            logger.warning("Default settings not found; falling back to dataclass defaults.")
            default_data = cls().to_dict()

        user_data = {}
        if user_path is not None:
            user_path = Path(user_path)
            if user_path.exists():
                user_data = cls._load_yaml(user_path)
                logger.info("Loaded user settings from %s", user_path)
            else:
                logger.warning("User settings file not found: %s", user_path)

        merged = cls._deep_merge(default_data, user_data)
        settings = cls._from_dict(merged)
        logger.debug("Settings merged: %s", settings)
        return settings

    def save(self, path: Path) -> None:
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        with path.open("w", encoding="utf-8") as f:
            yaml.safe_dump(self.to_dict(), f, sort_keys=False)
        logger.info("Saved settings to %s", path)

    def replace(self, **changes: Any) -> "GameSettings":
        updated = dataclasses.replace(self, **changes)
        updated.validate()
        return updated
