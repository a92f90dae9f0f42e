from __future__ import annotations

import threading
from contextlib import contextmanager
from typing import Any, Callable, Iterator


class EventBus:
    """Publish/subscribe bus for studio notifications.

    Thread-safe: the handler table is guarded by a lock so the bus can be
    shared between the UI thread, export workers and the audio callback.
    Handlers run synchronously on the emitting thread; front-ends that
    need their own thread re-dispatch from there.

    Event types used by the core:
        ``source.loaded``, ``source.cleared``, ``crop.changed``,
        ``playback.started``, ``playback.frame``, ``playback.finished``,
        ``playback.error``, ``export.start``, ``export.block``,
        ``export.complete``, ``export.failed``.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[Callable[..., Any]]] = {}
        self._lock = threading.Lock()

    def subscribe(self, event_type: str,
                  handler: Callable[..., Any]) -> Callable[[], None]:
        """Register *handler*; returns a callable that removes it again."""
        with self._lock:
            self._handlers.setdefault(event_type, []).append(handler)
        return lambda: self.unsubscribe(event_type, handler)

    def unsubscribe(self, event_type: str, handler: Callable[..., Any]) -> None:
        with self._lock:
            handlers = self._handlers.get(event_type)
            if handlers and handler in handlers:
                handlers.remove(handler)
                if not handlers:
                    del self._handlers[event_type]

    @contextmanager
    def subscribed(self, event_type: str,
                   handler: Callable[..., Any]) -> Iterator[None]:
        """Keep *handler* registered for the duration of a ``with`` block."""
        detach = self.subscribe(event_type, handler)
        try:
            yield
        finally:
            detach()

    def has_subscribers(self, event_type: str) -> bool:
        with self._lock:
            return bool(self._handlers.get(event_type))

    def emit(self, event_type: str, **data: Any) -> None:
        """Call every handler of *event_type* with *data* as keywords.

        Handlers are snapshotted first, so a handler may unsubscribe
        itself while the event is being delivered.
        """
        with self._lock:
            handlers = tuple(self._handlers.get(event_type, ()))
        for handler in handlers:
            handler(**data)
