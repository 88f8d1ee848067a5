import logging
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from threading import RLock
from typing import Any, Callable, DefaultDict, List, Mapping, Union

logger = logging.getLogger(__name__)


class RunEvent(str, Enum):
    """Notifications emitted by RunManager after a state change has been applied."""

    RUN_START = "run:start"
    RUN_LOAD = "run:load"
    HERO_ADD = "hero:add"
    HERO_REMOVE = "hero:remove"
    ITEM_EQUIP = "item:equip"
    ITEM_UNEQUIP = "item:unequip"
    NODE_COMPLETE = "node:complete"
    RELIC_ACQUIRE = "relic:acquire"
    FLOOR_ADVANCE = "floor:advance"


@dataclass(frozen=True)
class Event:
    """Event container passed to subscribers.

    Attributes:
        name: Which run event fired.
        payload: Event-specific data, e.g. ``{"hero_id": ...}`` for HERO_ADD.
    """
    name: RunEvent
    payload: Mapping[str, Any] = field(default_factory=dict)


Callback = Callable[[Event], None]


class EventBus:
    """Thread-safe publish/subscribe for run events.

    Listeners registered for one event run first, in registration order, then
    the ``subscribe_all`` listeners. A listener that raises is logged and skipped;
    the publishing RunManager operation still completes.
    """

    def __init__(self) -> None:
        self._subs: DefaultDict[RunEvent, List[Callback]] = defaultdict(list)
        self._wildcard: List[Callback] = []
        self._lock = RLock()

    def subscribe(self, event: Union[RunEvent, str], callback: Callback) -> None:
        """Listen for one event. Unknown event names raise ValueError."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        event = RunEvent(event)
        with self._lock:
            self._subs[event].append(callback)
        logger.debug("Subscribed %s to '%s'", getattr(callback, "__name__", str(callback)), event.value)

    def subscribe_all(self, callback: Callback) -> None:
        """Listen for every run event (autosave hooks, run logs)."""
        if not callable(callback):
            raise TypeError("callback must be callable")
        with self._lock:
            self._wildcard.append(callback)

    def unsubscribe(self, event: Union[RunEvent, str], callback: Callback) -> bool:
        event = RunEvent(event)
        with self._lock:
            subs = self._subs.get(event, [])
            if callback not in subs:
                return False
            subs.remove(callback)
        return True

    def subscriber_count(self, event: Union[RunEvent, str]) -> int:
        with self._lock:
            return len(self._subs.get(RunEvent(event), [])) + len(self._wildcard)

    def clear(self) -> None:
        with self._lock:
            self._subs.clear()
            self._wildcard.clear()

    def publish(self, event: RunEvent, payload: Mapping[str, Any]) -> int:
        """Deliver ``payload`` and return how many listeners handled it without raising."""
        message = Event(name=RunEvent(event), payload=dict(payload))
        with self._lock:
            subs = list(self._subs.get(message.name, [])) + list(self._wildcard)
        logger.debug("Publishing '%s' to %d subscribers: %s", message.name.value, len(subs), message.payload)
        delivered = 0
        for cb in subs:
            try:
                cb(message)
            except Exception:
                logger.exception("Unhandled exception in event subscriber for '%s'", message.name.value)
            else:
                delivered += 1
        return delivered
