"""Subscribe/unsubscribe event channel used between transports, channels and sessions."""
from __future__ import annotations

import logging
from typing import Callable, Generic, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


class Subscription:
    """Handle returned by :meth:`EventChannel.subscribe`; unsubscribing twice is harmless."""

    def __init__(self, channel: EventChannel, listener: Callable) -> None:
        self._channel: EventChannel | None = channel
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._channel is not None

    def unsubscribe(self) -> None:
        if self._channel is not None:
            self._channel._remove(self._listener)
            self._channel = None

    def __enter__(self) -> Subscription:
        return self

    def __exit__(self, *exc_info) -> None:
        self.unsubscribe()


class EventChannel(Generic[T]):
    """Ordered fan-out of events to the listeners subscribed at emit time.

    A listener that raises is logged and skipped; the remaining listeners
    still receive the event.
    """

    def __init__(self, name: str = '') -> None:
        self.name = name
        self._listeners: list[Callable[[T], None]] = []

    def __len__(self) -> int:
        return len(self._listeners)

    def subscribe(self, listener: Callable[[T], None]) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    def _remove(self, listener: Callable[[T], None]) -> None:
        try:
            self._listeners.remove(listener)
        except ValueError:
            pass

    def emit(self, event: T) -> None:
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                logger.exception('listener on %s channel failed', self.name or 'event')

    def clear(self) -> None:
        self._listeners.clear()
