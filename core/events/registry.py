"""
UnitEcon Event Channel - Typed Publish/Subscribe
==================================================
Presentation layers observe the coordinator through a StateChannel.

Rules:
- subscribe() returns an unsubscribe callable
- Same callback cannot be subscribed twice
- publish() snapshots the subscriber list first, so a subscriber may
  unsubscribe itself (or others) while being notified
- One failing subscriber never affects delivery to the others
- In-memory only
"""

import logging
from typing import Callable, Generic, List, TypeVar

from core.events.dispatcher import deliver
from core.events.errors import DuplicateSubscriberError, InvalidSubscriberError

logger = logging.getLogger("unitecon.events")

T = TypeVar("T")

Subscriber = Callable[[T], None]


class StateChannel(Generic[T]):
    """Ordered list of subscribers for one message type."""

    def __init__(self, name: str = "state"):
        self._name = name
        self._subscribers: List[Subscriber] = []

    @property
    def name(self) -> str:
        return self._name

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """
        Register a callback.

        Raises:
            InvalidSubscriberError:   callback is not callable
            DuplicateSubscriberError: callback already registered
        """
        if not callable(callback):
            raise InvalidSubscriberError(callback)

        handler_name = getattr(callback, "__qualname__", str(callback))
        for existing in self._subscribers:
            if existing == callback:
                raise DuplicateSubscriberError(self._name, handler_name)

        self._subscribers.append(callback)
        logger.debug(f"Subscriber registered: {handler_name} → {self._name}")

        def unsubscribe() -> None:
            self.unsubscribe(callback)

        return unsubscribe

    def unsubscribe(self, callback: Subscriber) -> bool:
        """Remove a callback. Returns False if it was not subscribed."""
        for index, existing in enumerate(self._subscribers):
            if existing == callback:
                del self._subscribers[index]
                return True
        return False

    def publish(self, message: T) -> dict:
        """Deliver message to every current subscriber. Never raises."""
        return deliver(message, list(self._subscribers), self._name)

    def subscriber_count(self) -> int:
        return len(self._subscribers)

    def clear(self) -> None:
        self._subscribers.clear()
