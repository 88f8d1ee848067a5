from __future__ import annotations

import logging
from typing import List, MutableSequence, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

_MASK32 = 0xFFFFFFFF
_GOLDEN_GAMMA = 0x6D2B79F5
_TWO_POW_32 = 4294967296.0


def _imul(a: int, b: int) -> int:
    """32-bit wrapping multiply (low 32 bits of the product)."""
    return (a * b) & _MASK32


class SeededRNG:
    """Deterministic pseudo-random generator (Mulberry32).

    The whole generator state is a single unsigned 32-bit integer advanced by
    every draw. Only integer arithmetic is used to derive each output, so two
    instances created from the same seed produce bit-identical sequences on any
    platform and interpreter.

    Usage pattern:
        rng = SeededRNG(12345)
        roll = rng.next()
        saved = rng.get_state()
        ...
        resumed = SeededRNG.from_state(saved)
    """

    def __init__(self, seed: int) -> None:
        if not isinstance(seed, int) or isinstance(seed, bool):
            raise TypeError("Seed must be an int, got %r" % (type(seed),))
        self._state = seed & _MASK32
        logger.debug("Initialized SeededRNG with seed=%d", self._state)

    # State capture

    def get_state(self) -> int:
        """Return the internal state for serialization."""
        return self._state

    def restore_state(self, state: int) -> None:
        """Restore a previously captured internal state in place."""
        if not isinstance(state, int) or isinstance(state, bool):
            raise TypeError("RNG state must be an int, got %r" % (type(state),))
        self._state = state & _MASK32

    @classmethod
    def from_state(cls, state: int) -> "SeededRNG":
        rng = cls(0)
        rng.restore_state(state)
        return rng

    # Draws

    def next(self) -> float:
        """Return a float in [0, 1)."""
        self._state = (self._state + _GOLDEN_GAMMA) & _MASK32
        t = self._state
        t = _imul(t ^ (t >> 15), t | 1)
        t ^= (t + _imul(t ^ (t >> 7), t | 61)) & _MASK32
        return ((t ^ (t >> 14)) & _MASK32) / _TWO_POW_32

    def next_int(self, lo: int, hi: int) -> int:
        """Return an integer in [lo, hi], both bounds inclusive."""
        if hi < lo:
            raise ValueError(f"next_int() requires lo <= hi, got {lo} > {hi}")
        return int(self.next() * (hi - lo + 1)) + lo

    def next_float(self, lo: float, hi: float) -> float:
        """Return a float in [lo, hi)."""
        return self.next() * (hi - lo) + lo

    def chance(self, probability: float) -> bool:
        """Return True with the given probability (0..1)."""
        return self.next() < probability

    def shuffle(self, items: MutableSequence[T]) -> MutableSequence[T]:
        """Fisher-Yates shuffle in place; returns the same sequence."""
        for i in range(len(items) - 1, 0, -1):
            j = int(self.next() * (i + 1))
            items[i], items[j] = items[j], items[i]
        return items

    def pick(self, items: Sequence[T]) -> T:
        """Pick one element uniformly."""
        if not items:
            raise ValueError("SeededRNG.pick() received an empty sequence")
        return items[int(self.next() * len(items))]

    def pick_n(self, items: Sequence[T], n: int) -> List[T]:
        """Pick up to ``n`` distinct elements without replacement.

        A shuffled copy is sliced, so the order of the result carries no meaning.
        """
        pool = list(items)
        self.shuffle(pool)
        return pool[: max(0, min(n, len(pool)))]

    def weighted_pick(self, items: Sequence[T], weights: Sequence[float]) -> T:
        """Pick an element with probability proportional to its weight.

        Weights need not sum to 1. Selection walks the cumulative sum; rounding
        leftovers resolve to the last item.
        """
        if not items:
            raise ValueError("weighted_pick() requires a non-empty item sequence")
        if len(items) != len(weights):
            raise ValueError(
                f"weighted_pick() got {len(items)} items but {len(weights)} weights"
            )
        total = sum(weights)
        roll = self.next() * total
        for item, weight in zip(items, weights):
            roll -= weight
            if roll <= 0:
                return item
        return items[-1]

    def __repr__(self) -> str:
        return f"SeededRNG(state={self._state})"


__all__ = ["SeededRNG"]
