from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from .content import ActConfig, ContentTables, load_default_content
from .enums import NodeType
from .models import BattleNodeData, EnemySpawn, EventNodeData, MapNode, NodeData
from .rng import SeededRNG
from .stats import round_half_up

logger = logging.getLogger(__name__)

FALLBACK_EVENT_ID = "mysterious_shrine"

# Types a layer's extra nodes may roll; the first node keeps the layer's template type.
BRANCH_NODE_TYPES = (NodeType.BATTLE, NodeType.EVENT, NodeType.SHOP)

BOSS_LEVEL_BONUS = 3
BOSS_ADD_LEVEL_BONUS = 1
ELITE_LEVEL_BONUS = 2


@dataclass(eq=False)
class _PendingNode:
    """A node before flattening; connections point at other pending nodes."""

    type: NodeType
    act: int
    layer: int
    data: NodeData = None
    targets: List["_PendingNode"] = field(default_factory=list)

    def connect(self, other: "_PendingNode") -> None:
        if not any(t is other for t in self.targets):
            self.targets.append(other)


class MapGenerator:
    """Builds the layered, forward-only node graph for a run.

    Each act is a stack of layers: a single entry node, several interior layers
    of two or three nodes, and a single boss node. Consecutive layers are linked
    so that every node is reachable, and each boss links to the next act's entry.
    All randomness comes from the supplied SeededRNG, so the same seed and floor
    always yield the same map.
    """

    def __init__(self, content: Optional[ContentTables] = None) -> None:
        self.content = content or load_default_content()

    def act_count(self) -> int:
        return len(self.content.acts)

    def get_act(self, index: int) -> Optional[ActConfig]:
        if 0 <= index < len(self.content.acts):
            return self.content.acts[index]
        return None

    # Pools

    def _normal_pool(self, act: ActConfig) -> List[str]:
        pool = [e for e in act.enemy_pool if e in self.content.enemies]
        if not pool:
            logger.warning("Act '%s' has no usable enemy pool; using every non-boss enemy", act.id)
            pool = self.content.normal_enemy_ids()
        return pool

    def _boss_pool(self, act: ActConfig) -> List[str]:
        pool = [e for e in act.boss_pool if e in self.content.enemies]
        if not pool:
            logger.warning("Act '%s' has no usable boss pool; falling back to enemy table", act.id)
            pool = self.content.boss_enemy_ids() or list(self.content.enemies)
        return pool

    def _event_pool(self, act: ActConfig) -> List[str]:
        return [e for e in act.event_pool if e in self.content.events]

    # Generation

    def generate(self, rng: SeededRNG, floor: int = 1) -> List[MapNode]:
        """Generate the whole run map. Consumes ``rng``."""
        all_layers: List[List[_PendingNode]] = []
        previous_boss_layer: Optional[List[_PendingNode]] = None

        for act_index, act in enumerate(self.content.acts):
            layers = self._generate_act(rng, act_index, act, floor)
            if previous_boss_layer is not None:
                for boss in previous_boss_layer:
                    boss.connect(layers[0][0])
            previous_boss_layer = layers[-1]
            all_layers.extend(layers)

        nodes = self._flatten(all_layers)
        logger.debug("Generated map: %d nodes across %d acts (floor=%d)", len(nodes), self.act_count(), floor)
        return nodes

    def _generate_act(self, rng: SeededRNG, act_index: int, act: ActConfig, floor: int) -> List[List[_PendingNode]]:
        layer_count = act.layer_count
        sizes = [1 if layer in (0, layer_count - 1) else rng.next_int(2, 3) for layer in range(layer_count)]

        layers: List[List[_PendingNode]] = []
        for layer, size in enumerate(sizes):
            row: List[_PendingNode] = []
            for slot in range(size):
                if layer == layer_count - 1:
                    node_type = NodeType.BOSS
                elif slot == 0:
                    node_type = act.layer_type(layer)
                else:
                    node_type = rng.pick(BRANCH_NODE_TYPES)
                row.append(_PendingNode(type=node_type, act=act_index, layer=layer))
            layers.append(row)

        normal_pool = self._normal_pool(act)
        boss_pool = self._boss_pool(act)
        event_pool = self._event_pool(act)
        for row in layers:
            for node in row:
                node.data = self._payload(rng, node, act, floor, normal_pool, boss_pool, event_pool)

        for layer in range(layer_count - 1):
            self._connect_layers(rng, layers[layer], layers[layer + 1])

        logger.debug("Act '%s': layer sizes %s", act.id, sizes)
        return layers

    def _payload(
        self,
        rng: SeededRNG,
        node: _PendingNode,
        act: ActConfig,
        floor: int,
        normal_pool: Sequence[str],
        boss_pool: Sequence[str],
        event_pool: Sequence[str],
    ) -> NodeData:
        def level(bonus: int) -> int:
            return round_half_up((floor + node.layer // 3 + bonus) * act.difficulty_multiplier)

        if node.type is NodeType.BOSS:
            boss_id = rng.pick(boss_pool)
            adds = rng.pick_n(normal_pool, rng.next_int(1, 2))
            spawns = [EnemySpawn(boss_id, level(BOSS_LEVEL_BONUS))]
            spawns.extend(EnemySpawn(e, level(BOSS_ADD_LEVEL_BONUS)) for e in adds)
            return BattleNodeData(enemies=tuple(spawns))
        if node.type is NodeType.ELITE:
            picked = rng.pick_n(normal_pool, rng.next_int(2, 3))
            return BattleNodeData(enemies=tuple(EnemySpawn(e, level(ELITE_LEVEL_BONUS)) for e in picked))
        if node.type is NodeType.BATTLE:
            count = min(rng.next_int(2, 4), len(normal_pool))
            picked = rng.pick_n(normal_pool, count)
            return BattleNodeData(enemies=tuple(EnemySpawn(e, level(0)) for e in picked))
        if node.type is NodeType.EVENT:
            event_id = rng.pick(event_pool) if event_pool else FALLBACK_EVENT_ID
            return EventNodeData(event_id=event_id)
        return None

    @staticmethod
    def _connect_layers(rng: SeededRNG, current: List[_PendingNode], following: List[_PendingNode]) -> None:
        if len(following) == 1:
            for node in current:
                node.connect(following[0])
            return

        for node in current:
            for target in rng.pick_n(following, rng.next_int(1, 2)):
                node.connect(target)

        # Every node of the next layer must be reachable.
        for target in following:
            if not any(target is t for node in current for t in node.targets):
                rng.pick(current).connect(target)

    @staticmethod
    def _flatten(layers: List[List[_PendingNode]]) -> List[MapNode]:
        index_of: Dict[int, int] = {}
        ordered: List[_PendingNode] = []
        for row in layers:
            for node in row:
                index_of[id(node)] = len(ordered)
                ordered.append(node)

        return [
            MapNode(
                index=i,
                type=node.type,
                connections=tuple(sorted(index_of[id(t)] for t in node.targets)),
                data=node.data,
                completed=False,
                act=node.act,
                layer=node.layer,
            )
            for i, node in enumerate(ordered)
        ]
