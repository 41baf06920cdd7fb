"""Live snapshot listeners for the document store.

A listener owns a query. Whenever a write to its collection commits, the
query is re-run and the full current result is handed to ``on_snapshot``.
Handlers receive materialized views, never deltas, so they can treat a
duplicate delivery as a no-op.
"""
import logging
import threading
from typing import Any, Callable

logger = logging.getLogger(__name__)

SnapshotCallback = Callable[[Any], None]
ErrorCallback = Callable[[Exception], None]


class Listener:
    def __init__(
        self,
        collection: str,
        bind: Any,
        fetch: Callable[[], Any],
        on_snapshot: SnapshotCallback,
        on_error: ErrorCallback | None = None,
        skip_missing: bool = False,
    ):
        self.collection = collection
        self.bind = bind
        self._fetch = fetch
        self._on_snapshot = on_snapshot
        self._on_error = on_error
        self._skip_missing = skip_missing
        self._lock = threading.Lock()
        self.active = True

    def deliver(self, feed: "ChangeFeed") -> None:
        with self._lock:
            if not self.active:
                return
            try:
                snapshot = self._fetch()
            except Exception as exc:
                # A failed listen is terminal.
                self.active = False
                feed.discard(self)
                if self._on_error is not None:
                    self._on_error(exc)
                else:
                    logger.error("Listener on '%s' failed with no error handler: %s", self.collection, exc)
                return
            if snapshot is None and self._skip_missing:
                return
            try:
                self._on_snapshot(snapshot)
            except Exception:
                logger.exception("Snapshot handler on '%s' raised", self.collection)


class ListenerRegistration:
    """Handle returned by ``listen``; ``remove()`` stops all future delivery."""

    def __init__(self, feed: "ChangeFeed", listener: Listener):
        self._feed = feed
        self._listener = listener

    @property
    def active(self) -> bool:
        return self._listener.active

    def remove(self) -> None:
        self._listener.active = False
        self._feed.discard(self._listener)


class ChangeFeed:
    """Process-wide registry of live listeners, keyed by collection and engine."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: list[Listener] = []

    def register(self, listener: Listener) -> ListenerRegistration:
        with self._lock:
            self._listeners.append(listener)
        registration = ListenerRegistration(self, listener)
        listener.deliver(self)
        return registration

    def discard(self, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def publish(self, collection: str, bind: Any) -> None:
        with self._lock:
            targets = [l for l in self._listeners if l.collection == collection and l.bind is bind]
        for listener in targets:
            listener.deliver(self)

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)


change_feed = ChangeFeed()
