from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Mapping, Optional, Tuple

from .content import ContentTables, DifficultyConfig, load_default_content
from .run import RunManager
from .stats import round_half_up

logger = logging.getLogger(__name__)

DEFAULT_DIFFICULTY_ID = "normal"

# Stats multiplied by the difficulty; everything else passes through unchanged.
SCALED_ENEMY_STATS = ("max_hp", "hp", "attack", "defense", "magic_power", "magic_resist")


@dataclass(frozen=True)
class ChallengeModifier:
    id: str
    description: str
    reward_multiplier: float
    max_team_size: Optional[int] = None
    shop_disabled: bool = False
    time_limit: Optional[int] = None  # seconds
    hp_multiplier: float = 1.0
    damage_multiplier: float = 1.0


CHALLENGE_MODIFIERS: Dict[str, ChallengeModifier] = {
    m.id: m
    for m in (
        ChallengeModifier("solo_hero", "Solo hero challenge", reward_multiplier=2.0, max_team_size=1),
        ChallengeModifier("no_shop", "No shop challenge", reward_multiplier=1.5, shop_disabled=True),
        ChallengeModifier("speed_run", "Timed challenge", reward_multiplier=1.8, time_limit=600),
        ChallengeModifier(
            "glass_cannon", "Glass cannon", reward_multiplier=1.5, hp_multiplier=0.5, damage_multiplier=2.0
        ),
    )
}


class DifficultySystem:
    """Enemy stat and reward scaling for the run's difficulty.

    The run only stores a difficulty id; this looks it up in the content tables.
    """

    def __init__(self, content: Optional[ContentTables] = None) -> None:
        self.content = content or load_default_content()

    def get_difficulty(self, difficulty_id: str) -> DifficultyConfig:
        config = self.content.difficulties.get(difficulty_id)
        if config is None:
            logger.warning("Unknown difficulty '%s'; using '%s'", difficulty_id, DEFAULT_DIFFICULTY_ID)
            config = self.content.difficulties[DEFAULT_DIFFICULTY_ID]
        return config

    def current_difficulty(self, run_manager: RunManager) -> DifficultyConfig:
        return self.get_difficulty(run_manager.difficulty)

    @staticmethod
    def scale_enemy_stats(stats: Mapping[str, float], difficulty: DifficultyConfig) -> Dict[str, float]:
        """Return a new stat block; the input is not modified."""
        m = difficulty.enemy_stat_multiplier
        scaled = dict(stats)
        for key in SCALED_ENEMY_STATS:
            if key in scaled:
                scaled[key] = round_half_up(scaled[key] * m)
        return scaled

    @staticmethod
    def scale_rewards(gold: int, exp: int, difficulty: DifficultyConfig) -> Tuple[int, int]:
        return (
            round_half_up(gold * difficulty.gold_multiplier),
            round_half_up(exp * difficulty.exp_multiplier),
        )

    @staticmethod
    def challenge_modifier(modifier_id: str) -> Optional[ChallengeModifier]:
        return CHALLENGE_MODIFIERS.get(modifier_id)

    @staticmethod
    def approximate_adaptive_multiplier(recent_win_rate: float) -> float:
        """Rough difficulty nudge from the recent win rate.

        Above 80% wins it ramps up linearly (1.2 at 100%); below 40% it ramps down
        at half the slope (0.8 at 0%). In between it is neutral. The curve is a
        placeholder pending balance work.
        """
        if recent_win_rate > 0.8:
            return 1.0 + (recent_win_rate - 0.8)
        if recent_win_rate < 0.4:
            return 1.0 - (0.4 - recent_win_rate) * 0.5
        return 1.0
