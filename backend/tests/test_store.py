"""Tests for the document store adapter: CRUD, queries, CAS writes, listeners."""
from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.orm import sessionmaker

from trainbuddy.store.document_store import SERVER_TIMESTAMP, DocumentStore
from trainbuddy.store.errors import ConflictError, DocumentNotFoundError, MissingIndexError
from tests.conftest import MESSAGES_INDEX


class TestPointOperations:

    def test_set_get_roundtrip(self, store):
        store.set("trains", "12951", {"train_number": "12951", "train_name": "Mumbai Rajdhani"})
        assert store.get("trains", "12951")["train_name"] == "Mumbai Rajdhani"
        assert store.get("trains", "00000") is None

    def test_add_generates_id_and_optionally_stores_it(self, store):
        plain = store.add("messages", {"message": "hi"})
        tagged = store.add("messages", {"message": "yo"}, id_field="message_id")
        assert plain != tagged
        assert "message_id" not in store.get("messages", plain)
        assert store.get("messages", tagged)["message_id"] == tagged

    def test_update_patches_only_given_fields(self, store):
        store.set("users", "u1", {"display_name": "Asha", "phone_number": ""})
        store.update("users", "u1", {"phone_number": "+91 98765 43210"})
        assert store.get("users", "u1") == {"display_name": "Asha", "phone_number": "+91 98765 43210"}

    def test_update_missing_document(self, store):
        with pytest.raises(DocumentNotFoundError):
            store.update("users", "ghost", {"display_name": "x"})

    def test_delete_is_noop_when_absent(self, store):
        assert store.delete("users", "ghost") is False

    def test_server_timestamp_and_datetimes_are_utc_strings(self, store):
        ist = timezone(timedelta(hours=5, minutes=30))
        doc_id = store.add("messages", {
            "timestamp": SERVER_TIMESTAMP,
            "sent": datetime(2030, 1, 15, 10, 0, tzinfo=ist),
        })
        data = store.get("messages", doc_id)
        assert data["sent"] == "2030-01-15T04:30:00.000000+00:00"
        assert data["timestamp"].endswith("+00:00")


class TestQueries:

    def test_equality_filters_with_bool_and_string(self, store):
        store.add("groups", {"group_code": "123456", "is_active": True})
        store.add("groups", {"group_code": "123456", "is_active": False})
        store.add("groups", {"group_code": "654321", "is_active": True})
        found = store.query("groups", filters={"group_code": "123456", "is_active": True})
        assert len(found) == 1
        assert found[0]["is_active"] is True

    def test_unordered_query_returns_insertion_order(self, store):
        for text in ("first", "second", "third"):
            store.add("messages", {"group_id": "g", "message": text})
        assert [m["message"] for m in store.query("messages", filters={"group_id": "g"})] == [
            "first", "second", "third",
        ]

    def test_ordered_query_with_index(self, store):
        base = datetime(2030, 1, 1, tzinfo=timezone.utc)
        for minutes in (5, 1, 3):
            store.add("messages", {"group_id": "g", "timestamp": base + timedelta(minutes=minutes)})
        ordered = store.query("messages", filters={"group_id": "g"}, order_by="timestamp")
        stamps = [m["timestamp"] for m in ordered]
        assert stamps == sorted(stamps)

    def test_ordered_filtered_query_without_index_raises(self, db):
        bare = DocumentStore(db, indexes=set())
        with pytest.raises(MissingIndexError) as excinfo:
            bare.query("messages", filters={"group_id": "g"}, order_by="timestamp")
        assert excinfo.value.code == "failed-precondition"

    def test_ordering_without_filters_needs_no_index(self, db):
        bare = DocumentStore(db, indexes=set())
        bare.add("trains", {"train_number": "2"})
        bare.add("trains", {"train_number": "1"})
        assert [t["train_number"] for t in bare.query("trains", order_by="train_number")] == ["1", "2"]

    def test_delete_where_only_touches_matches(self, store):
        store.add("messages", {"group_id": "a"})
        store.add("messages", {"group_id": "a"})
        store.add("messages", {"group_id": "b"})
        assert store.delete_where("messages", {"group_id": "a"}) == 2
        assert store.query("messages", filters={"group_id": "a"}) == []
        assert len(store.query("messages", filters={"group_id": "b"})) == 1


class TestMutate:

    def test_returns_none_for_missing_document(self, store):
        assert store.mutate("groups", "ghost", lambda data: data) is None

    def test_no_change_skips_write(self, store):
        store.set("groups", "g1", {"members": ["a"]})
        assert store.mutate("groups", "g1", lambda data: None) == {"members": ["a"]}

    def test_rereads_after_concurrent_write(self, db_engine, store):
        """A write that lands between read and write is kept, not overwritten."""
        store.set("groups", "g1", {"members": ["a"]})
        other = DocumentStore(sessionmaker(bind=db_engine)(), indexes=set())
        seen = []

        def append_b(data):
            seen.append(list(data["members"]))
            if len(seen) == 1:
                other.update("groups", "g1", {"members": data["members"] + ["c"]})
            return {**data, "members": data["members"] + ["b"]}

        result = store.mutate("groups", "g1", append_b)
        other.db.close()
        assert seen == [["a"], ["a", "c"]]
        assert result["members"] == ["a", "c", "b"]
        assert store.get("groups", "g1")["members"] == ["a", "c", "b"]

    def test_gives_up_after_max_attempts(self, db_engine, store):
        store.set("groups", "g1", {"n": 0})
        other = DocumentStore(sessionmaker(bind=db_engine)(), indexes=set())

        def always_raced(data):
            other.update("groups", "g1", {"n": data["n"] + 100})
            return {**data, "n": data["n"] + 1}

        with pytest.raises(ConflictError):
            store.mutate("groups", "g1", always_raced, max_attempts=2)
        other.db.close()


class TestListeners:

    def test_listen_delivers_initial_and_updated_snapshots(self, store):
        snapshots = []
        registration = store.listen("messages", snapshots.append, filters={"group_id": "g"})
        store.add("messages", {"group_id": "g", "message": "one"})
        store.add("messages", {"group_id": "other", "message": "elsewhere"})
        assert [len(s) for s in snapshots] == [0, 1, 1]
        registration.remove()
        store.add("messages", {"group_id": "g", "message": "two"})
        assert len(snapshots) == 3

    def test_listen_reports_missing_index_and_stops(self, db):
        bare = DocumentStore(db, indexes=set())
        errors, snapshots = [], []
        registration = bare.listen(
            "messages", snapshots.append, errors.append,
            filters={"group_id": "g"}, order_by="timestamp",
        )
        assert snapshots == []
        assert isinstance(errors[0], MissingIndexError)
        assert registration.active is False

    def test_listen_document_skips_missing(self, store):
        seen = []
        registration = store.listen_document("groups", "g1", seen.append)
        assert seen == []
        store.set("groups", "g1", {"group_name": "Commute"})
        store.update("groups", "g1", {"group_name": "Evening"})
        assert [s["group_name"] for s in seen] == ["Commute", "Evening"]
        registration.remove()

    def test_handler_exception_does_not_break_the_write(self, store):
        def explode(snapshot):
            if snapshot:
                raise RuntimeError("handler bug")

        registration = store.listen("messages", explode, filters={"group_id": "g"})
        store.add("messages", {"group_id": "g"})
        assert len(store.query("messages", filters={"group_id": "g"})) == 1
        registration.remove()


def test_index_key_matches_fixture(store):
    assert MESSAGES_INDEX in store.indexes
