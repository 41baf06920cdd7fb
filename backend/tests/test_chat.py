"""Tests for group chat: sending, ordered history and live subscriptions."""
from datetime import datetime, timedelta, timezone

import pytest
from starlette.websockets import WebSocketDisconnect

from trainbuddy.services import chat_service
from trainbuddy.services.chat_service import MessageSubscription, SubscriptionState
from trainbuddy.store.document_store import DocumentStore
from trainbuddy.store.errors import PermissionDeniedError
from tests.conftest import auth, create_test_group, sign_up

BASE = datetime(2030, 1, 15, 4, 30, tzinfo=timezone.utc)


def _post(store, group_id, text, minutes):
    """Write a message with an explicit timestamp, bypassing the server clock."""
    return store.add("messages", {
        "group_id": group_id,
        "user_id": "alice",
        "user_name": "Alice",
        "message": text,
        "timestamp": BASE + timedelta(minutes=minutes),
    }, id_field="message_id")


@pytest.fixture
def unindexed(db):
    return DocumentStore(db, indexes=set())


class TestSendAndFetch:

    def test_send_message_stamps_server_time(self, store):
        message_id = chat_service.send_message(store, "g1", "alice", "Alice", "Boarding at B1")
        message = chat_service.get_message(store, message_id)
        assert message.message_id == message_id
        assert message.message == "Boarding at B1"
        assert message.timestamp.tzinfo is not None

    def test_fetch_is_ordered_by_timestamp(self, store):
        _post(store, "g1", "third", 30)
        _post(store, "g1", "first", 10)
        _post(store, "g1", "second", 20)
        _post(store, "g2", "elsewhere", 0)
        assert [m.message for m in chat_service.fetch_messages(store, "g1")] == ["first", "second", "third"]

    def test_fetch_falls_back_without_index(self, store, unindexed):
        _post(store, "g1", "late", 5)
        _post(store, "g1", "early", 1)
        ordered = chat_service.fetch_messages(store, "g1")
        fallback = chat_service.fetch_messages(unindexed, "g1")
        assert [m.message_id for m in fallback] == [m.message_id for m in ordered]

    def test_sort_messages_is_stable(self, store):
        _post(store, "g1", "a", 1)
        _post(store, "g1", "b", 1)
        docs = store.query("messages", filters={"group_id": "g1"})
        messages = [chat_service.ChatMessage.model_validate(d) for d in docs]
        assert [m.message for m in chat_service.sort_messages(messages)] == ["a", "b"]


class TestMessageSubscription:

    def test_ordered_subscription(self, store):
        _post(store, "g1", "second", 2)
        _post(store, "g1", "first", 1)
        seen = []
        sub = chat_service.subscribe_to_messages(store, "g1", lambda ms: seen.append([m.message for m in ms]))
        assert sub.state is SubscriptionState.ordered
        _post(store, "g1", "zeroth", 0)
        sub.cancel()
        assert seen == [["first", "second"], ["zeroth", "first", "second"]]

    def test_fallback_delivers_same_order(self, store, unindexed):
        _post(store, "g1", "second", 2)
        _post(store, "g1", "first", 1)
        primary, fallback = [], []
        ordered = chat_service.subscribe_to_messages(store, "g1", lambda ms: primary.append([m.message for m in ms]))
        sorted_sub = chat_service.subscribe_to_messages(
            unindexed, "g1", lambda ms: fallback.append([m.message for m in ms])
        )
        assert sorted_sub.state is SubscriptionState.unordered_sorted

        _post(store, "g1", "zeroth", 0)
        ordered.cancel()
        sorted_sub.cancel()
        assert fallback == primary
        assert fallback[-1] == ["zeroth", "first", "second"]

    def test_fallback_is_permanent(self, store, unindexed):
        sub = chat_service.subscribe_to_messages(unindexed, "g1", lambda ms: None)
        _post(store, "g1", "hello", 0)
        _post(store, "g1", "again", 1)
        assert sub.state is SubscriptionState.unordered_sorted
        sub.cancel()

    def test_other_errors_are_forwarded(self, store, monkeypatch):
        def refuse(*args, **kwargs):
            raise PermissionDeniedError("insufficient privilege")

        monkeypatch.setattr(DocumentStore, "query", refuse)
        updates, errors = [], []
        sub = chat_service.subscribe_to_messages(store, "g1", updates.append, errors.append)
        assert sub.state is SubscriptionState.failed
        assert updates == []
        assert len(errors) == 1 and isinstance(errors[0], PermissionDeniedError)

    def test_cancel_stops_delivery(self, store):
        seen = []
        sub = MessageSubscription(store, "g1", seen.append).start()
        sub.cancel()
        _post(store, "g1", "after cancel", 0)
        assert sub.state is SubscriptionState.cancelled
        assert len(seen) == 1

    def test_cancel_stops_fallback_delivery(self, store, unindexed):
        seen = []
        sub = chat_service.subscribe_to_messages(unindexed, "g1", seen.append)
        sub.cancel()
        _post(store, "g1", "after cancel", 0)
        assert len(seen) == 1


class TestMessagesAPI:

    def test_send_and_list(self, seeded_client):
        alice = sign_up(seeded_client, "alice@commuters.in", "Alice")
        group = create_test_group(seeded_client, alice)
        url = f"/api/groups/{group['group_id']}/messages"

        for text in ("Hi all", "I'm in B1"):
            resp = seeded_client.post(url, headers=auth(alice), json={"message": text})
            assert resp.status_code == 201
            assert resp.json()["user_name"] == "Alice"

        resp = seeded_client.get(url, headers=auth(alice))
        assert resp.status_code == 200
        assert [m["message"] for m in resp.json()] == ["Hi all", "I'm in B1"]

    def test_blank_message_rejected(self, seeded_client):
        alice = sign_up(seeded_client)
        group = create_test_group(seeded_client, alice)
        resp = seeded_client.post(f"/api/groups/{group['group_id']}/messages", headers=auth(alice),
                                  json={"message": "   "})
        assert resp.status_code == 422

    def test_message_to_missing_group(self, seeded_client):
        alice = sign_up(seeded_client)
        resp = seeded_client.post("/api/groups/no-such-group/messages", headers=auth(alice), json={"message": "hi"})
        assert resp.status_code == 404

    def test_websocket_pushes_new_messages(self, seeded_client):
        alice = sign_up(seeded_client, "alice@commuters.in", "Alice")
        group = create_test_group(seeded_client, alice)
        url = f"/api/groups/{group['group_id']}/messages"

        with seeded_client.websocket_connect(f"{url}/ws?token={alice['token']}") as ws:
            assert ws.receive_json() == {"type": "messages", "messages": []}
            seeded_client.post(url, headers=auth(alice), json={"message": "On the platform"})
            frame = ws.receive_json()
            assert frame["type"] == "messages"
            assert [m["message"] for m in frame["messages"]] == ["On the platform"]

    def test_websocket_refuses_bad_token(self, seeded_client):
        alice = sign_up(seeded_client)
        group = create_test_group(seeded_client, alice)
        with pytest.raises(WebSocketDisconnect) as excinfo:
            with seeded_client.websocket_connect(f"/api/groups/{group['group_id']}/messages/ws?token=bogus") as ws:
                ws.receive_json()
        assert excinfo.value.code == 1008
