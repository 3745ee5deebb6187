"""Synchronous publish/subscribe used by the operation store and workflow engine."""

from __future__ import annotations

import logging
from typing import Callable, Generic, List, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

Listener = Callable[[T], None]


class EventBus(Generic[T]):
    """Deliver each published payload to every subscribed listener.

    Listeners run in subscription order. A listener that raises is logged and
    skipped; the remaining listeners still receive the payload.
    """

    def __init__(self, name: str = "events") -> None:
        self._name = name
        self._listeners: List[Listener[T]] = []

    def subscribe(self, listener: Listener[T]) -> Callable[[], None]:
        """Register ``listener`` and return a function removing it again."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            try:
                self._listeners.remove(listener)
            except ValueError:
                pass

        return unsubscribe

    def publish(self, payload: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(payload)
            except Exception:
                logger.exception(f"Listener {listener!r} on {self._name} failed")

    def __len__(self) -> int:
        return len(self._listeners)
