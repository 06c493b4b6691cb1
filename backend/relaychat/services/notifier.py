"""In-process observer registry for message list changes."""

from __future__ import annotations

import logging
from collections.abc import Callable

from relaychat.schemas.message import MessageRead

logger = logging.getLogger(__name__)

Subscriber = Callable[[list[MessageRead], bool], None]


class SubscriberNotifier:
    """Deliver the current ordered message list to every subscriber."""

    def __init__(self, snapshot: Callable[[], list[MessageRead]]) -> None:
        self._snapshot = snapshot
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register callback and return a function that removes it again."""

        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def notify(self, is_new_arrival: bool) -> None:
        if not self._subscribers:
            return
        messages = self._snapshot()
        for callback in list(self._subscribers):
            try:
                callback(list(messages), is_new_arrival)
            except Exception:
                logger.exception("notifier.subscriber_failed callback=%r", callback)

    def clear(self) -> None:
        self._subscribers.clear()
