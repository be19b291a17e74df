import logging
from unittest.mock import MagicMock

import pytest
from bson.objectid import ObjectId
from pymongo.errors import ServerSelectionTimeoutError

from config import Settings
from database import PARTICIPANTS, Store, connect, parse_id, to_str_id
from errors import Conflict, StoreUnavailable
from messages import MessageStore
from presence import PresenceRegistry


def test_driver_errors_become_store_unavailable():
    db = MagicMock()
    db.__getitem__.return_value.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    store = Store(db)

    with pytest.raises(StoreUnavailable):
        store.find_document(PARTICIPANTS, {"name": "ana"})


def test_join_surfaces_store_failure():
    db = MagicMock()
    db.__getitem__.return_value.find_one.side_effect = ServerSelectionTimeoutError("no servers")
    store = Store(db)
    registry = PresenceRegistry(store, MessageStore(store))

    with pytest.raises(StoreUnavailable):
        registry.join("ana")


def test_unique_name_index(store):
    store.create_document(PARTICIPANTS, {"name": "ana", "last_seen": 1.0})
    with pytest.raises(Conflict):
        store.create_document(PARTICIPANTS, {"name": "ana", "last_seen": 2.0})


def test_memory_queries(store):
    for i, name in enumerate(["ana", "bob", "carol"]):
        store.create_document(PARTICIPANTS, {"name": name, "last_seen": float(i)})

    assert [d["name"] for d in store.get_documents(PARTICIPANTS, {"last_seen": {"$lt": 2.0}})] == ["ana", "bob"]
    assert [d["name"] for d in store.get_documents(PARTICIPANTS, {"$or": [{"name": "carol"}, {"last_seen": 0.0}]})] == ["ana", "carol"]
    assert [d["name"] for d in store.get_documents(PARTICIPANTS, sort=("last_seen", -1), limit=2)] == ["carol", "bob"]
    assert store.delete_documents(PARTICIPANTS, {"name": {"$in": ["ana", "bob", "zed"]}}) == 2
    assert store.update_document(PARTICIPANTS, {"name": "zed"}, {"last_seen": 9.0}) == 0


def test_returned_documents_are_copies(store):
    store.create_document(PARTICIPANTS, {"name": "ana", "last_seen": 1.0})
    doc = store.find_document(PARTICIPANTS, {"name": "ana"})
    doc["name"] = "changed"
    assert store.find_document(PARTICIPANTS, {"name": "ana"}) is not None


def test_parse_id():
    oid = ObjectId()
    assert parse_id(str(oid)) == oid
    assert parse_id(oid) == oid
    assert parse_id("nope") is None
    assert parse_id(None) is None


def test_to_str_id():
    oid = ObjectId()
    assert to_str_id({"_id": oid, "text": "hi"}) == {"id": str(oid), "text": "hi"}


def test_connect_without_url_uses_memory():
    store = connect(Settings(database_url=None))
    assert store.kind == "memory"
    assert store.list_collection_names() == [PARTICIPANTS]


def test_memory_fallback_is_reported_as_error(caplog):
    with caplog.at_level(logging.ERROR, logger="database"):
        connect(Settings(database_url=None))
    assert any("DATABASE_URL not set" in r.getMessage() for r in caplog.records)
