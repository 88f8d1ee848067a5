from __future__ import annotations

import logging
from typing import Dict, List, Optional, Tuple

from .content import ContentTables, ItemData, load_default_content
from .rng import SeededRNG

logger = logging.getLogger(__name__)

RARITIES: Tuple[str, ...] = ("common", "uncommon", "rare", "epic", "legendary")

# Rarity roll weights by shop stage; columns follow RARITIES.
RARITY_WEIGHTS: Dict[str, Tuple[int, ...]] = {
    "early": (50, 30, 15, 5, 0),
    "mid": (30, 35, 25, 10, 0),
    "late": (15, 25, 35, 20, 5),
}

MIN_STOCK = 4
MAX_STOCK = 6


def shop_stage(act_index: int) -> str:
    """Act 0 (and below) is early, act 1 mid, anything later late."""
    if act_index <= 0:
        return "early"
    if act_index == 1:
        return "mid"
    return "late"


class ShopGenerator:
    """Rolls shop inventories from the run's RNG.

    Each slot rolls a rarity with the stage's weights, then picks an unused item
    of that rarity. When none is left it takes any unused item, so a stock never
    repeats an item and may come up short only when the item table runs out.
    """

    def __init__(self, content: Optional[ContentTables] = None) -> None:
        self.content = content or load_default_content()

    def generate(self, rng: SeededRNG, act_index: int, item_count: Optional[int] = None) -> List[ItemData]:
        """Return the stock for a shop in ``act_index``. Consumes ``rng``."""
        count = rng.next_int(MIN_STOCK, MAX_STOCK) if item_count is None else item_count
        if count < 0:
            raise ValueError(f"item_count must be >= 0, got {count}")
        stage = shop_stage(act_index)
        weights = RARITY_WEIGHTS[stage]

        items = list(self.content.items.values())
        used = set()
        stock: List[ItemData] = []
        for _ in range(count):
            rarity = rng.weighted_pick(RARITIES, weights)
            candidates = [i for i in items if i.rarity == rarity and i.id not in used]
            if not candidates:
                candidates = [i for i in items if i.id not in used]
                if not candidates:
                    logger.debug("Item table exhausted after %d shop items", len(stock))
                    continue
            item = rng.pick(candidates)
            used.add(item.id)
            stock.append(item)

        logger.debug("Shop stock (act=%d, %s): %s", act_index, stage, [i.id for i in stock])
        return stock
