"""Group chat — append-only messages and a live, timestamp-ordered view.

``MessageSubscription`` starts on the server-ordered query. If the store
reports that the ordered query has no index, it switches once, for good, to
the unordered query and sorts each snapshot itself. Callers see the same
ascending list either way.
"""
import enum
import logging
import threading
from typing import Any, Callable, Optional

from trainbuddy.schemas.message import ChatMessage
from trainbuddy.store.document_store import SERVER_TIMESTAMP, DocumentStore
from trainbuddy.store.errors import MissingIndexError
from trainbuddy.store.listeners import ListenerRegistration

logger = logging.getLogger(__name__)

MESSAGES = "messages"
ORDER_FIELD = "timestamp"

MessagesCallback = Callable[[list[ChatMessage]], None]
ErrorCallback = Callable[[Exception], None]


class SubscriptionState(str, enum.Enum):
    ordered = "ordered"
    unordered_sorted = "unordered_sorted"
    failed = "failed"
    cancelled = "cancelled"


def sort_messages(messages: list[ChatMessage]) -> list[ChatMessage]:
    """Stable ascending sort on timestamp."""
    return sorted(messages, key=lambda m: m.timestamp)


def _parse(docs: list[dict[str, Any]]) -> list[ChatMessage]:
    return [ChatMessage.model_validate(d) for d in docs]


def send_message(store: DocumentStore, group_id: str, user_id: str, user_name: str, text: str) -> str:
    message_id = store.add(MESSAGES, {
        "group_id": group_id,
        "user_id": user_id,
        "user_name": user_name,
        "message": text,
        "timestamp": SERVER_TIMESTAMP,
    }, id_field="message_id")
    logger.info("User %s posted message %s to group %s", user_id, message_id, group_id)
    return message_id


def get_message(store: DocumentStore, message_id: str) -> Optional[ChatMessage]:
    data = store.get(MESSAGES, message_id)
    return ChatMessage.model_validate(data) if data else None


def fetch_messages(store: DocumentStore, group_id: str) -> list[ChatMessage]:
    """One-shot read with the same ordered / sorted-unordered fallback."""
    filters = {"group_id": group_id}
    try:
        return _parse(store.query(MESSAGES, filters=filters, order_by=ORDER_FIELD))
    except MissingIndexError as exc:
        logger.warning("Ordered message query unavailable, sorting client-side: %s", exc)
        return sort_messages(_parse(store.query(MESSAGES, filters=filters)))


class MessageSubscription:
    def __init__(
        self,
        store: DocumentStore,
        group_id: str,
        on_update: MessagesCallback,
        on_error: Optional[ErrorCallback] = None,
    ):
        self.group_id = group_id
        self.state = SubscriptionState.ordered
        self._store = store
        self._on_update = on_update
        self._on_error = on_error
        self._registration: Optional[ListenerRegistration] = None
        self._lock = threading.RLock()

    def start(self) -> "MessageSubscription":
        registration = self._store.listen(
            MESSAGES,
            self._deliver_ordered,
            self._primary_failed,
            filters={"group_id": self.group_id},
            order_by=ORDER_FIELD,
        )
        with self._lock:
            # The first snapshot is delivered inside listen(); by now we may
            # already have moved to the fallback listener.
            if self.state is SubscriptionState.ordered:
                self._registration = registration
            elif self.state is SubscriptionState.cancelled:
                registration.remove()
        return self

    def _emit(self, messages: list[ChatMessage]) -> None:
        with self._lock:
            if self.state in (SubscriptionState.cancelled, SubscriptionState.failed):
                return
        self._on_update(messages)

    def _deliver_ordered(self, docs: list[dict[str, Any]]) -> None:
        self._emit(_parse(docs))

    def _deliver_sorted(self, docs: list[dict[str, Any]]) -> None:
        self._emit(sort_messages(_parse(docs)))

    def _primary_failed(self, exc: Exception) -> None:
        with self._lock:
            fall_back = isinstance(exc, MissingIndexError) and self.state is SubscriptionState.ordered
            if fall_back:
                self.state = SubscriptionState.unordered_sorted
        if not fall_back:
            self._fail(exc)
            return
        logger.warning("Ordered message query unavailable for group %s, sorting client-side: %s", self.group_id, exc)
        registration = self._store.listen(
            MESSAGES,
            self._deliver_sorted,
            self._fail,
            filters={"group_id": self.group_id},
        )
        with self._lock:
            if self.state is SubscriptionState.cancelled:
                registration.remove()
            else:
                self._registration = registration

    def _fail(self, exc: Exception) -> None:
        with self._lock:
            if self.state is SubscriptionState.cancelled:
                return
            self.state = SubscriptionState.failed
        if self._on_error is not None:
            self._on_error(exc)
        else:
            logger.error("Message subscription for group %s failed: %s", self.group_id, exc)

    def cancel(self) -> None:
        with self._lock:
            self.state = SubscriptionState.cancelled
            registration, self._registration = self._registration, None
        if registration is not None:
            registration.remove()


def subscribe_to_messages(
    store: DocumentStore,
    group_id: str,
    on_update: MessagesCallback,
    on_error: Optional[ErrorCallback] = None,
) -> MessageSubscription:
    """Live, timestamp-ascending view of a group's messages. Call ``cancel()`` to stop."""
    return MessageSubscription(store, group_id, on_update, on_error).start()
