"""In-process event bus for completion signals."""

from __future__ import annotations

import threading
from typing import Callable

from vidscribe.models.events import ProcessingFinished
from vidscribe.utils.progress import log_error

Subscriber = Callable[[ProcessingFinished], None]


class EventBus:
    """Fan-out of ProcessingFinished to registered subscribers.

    A failing subscriber is logged and skipped; it cannot fail the run that
    published the event.
    """

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []
        self._lock = threading.Lock()

    def subscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.append(callback)

    def unsubscribe(self, callback: Subscriber) -> None:
        with self._lock:
            self._subscribers.remove(callback)

    def publish(self, event: ProcessingFinished) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event)
            except Exception as e:
                log_error(f"Subscriber {getattr(callback, '__name__', callback)!r} failed on {event.video_id}: {e}")

