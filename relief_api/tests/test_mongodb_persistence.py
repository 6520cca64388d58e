# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the MongoDB persistence backend, against a mocked driver.
"""

import pytest
from unittest.mock import MagicMock, call
from bson import ObjectId
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError, OperationFailure

from relief_api.domain.errors import ConflictError
from relief_api.services.mongodb import (
    MongoDBPersistence, MongoTransaction, to_query, to_sort, from_mongo
)


@pytest.fixture
def mongo_client():
    client = MagicMock()
    session = client.start_session.return_value.__enter__.return_value
    session.with_transaction.side_effect = lambda callback, **kwargs: callback(session)
    return client


@pytest.fixture
def mongo_persistence(mongo_client):
    return MongoDBPersistence("mongodb://test:27017", "relief_test", client=mongo_client)


class TestQueryTranslation:
    """Test id mapping between documents and MongoDB."""

    def test_id_equality(self):
        oid = ObjectId()

        assert to_query({"id": str(oid), "status": "active"}) == {"_id": oid, "status": "active"}

    def test_id_operators(self):
        first, second = ObjectId(), ObjectId()

        query = to_query({"id": {"$in": [str(first), str(second)], "$ne": str(first)}})

        assert query == {"_id": {"$in": [first, second], "$ne": first}}

    def test_invalid_id_left_as_is(self):
        assert to_query({"id": "missing"}) == {"_id": "missing"}

    def test_sort_and_documents(self):
        oid = ObjectId()

        assert to_sort([("timestamp", DESCENDING), ("id", DESCENDING)]) == [
            ("timestamp", DESCENDING), ("_id", DESCENDING)
        ]
        assert from_mongo({"_id": oid, "name": "Water"}) == {"id": str(oid), "name": "Water"}


class TestMongoTransaction:
    """Test the session-bound transaction view."""

    def setup_method(self):
        self.database = MagicMock()
        self.session = MagicMock()
        self.txn = MongoTransaction(self.database, self.session)

    def test_insert_uses_document_id(self):
        oid = ObjectId()
        self.database["request_items"].insert_one.return_value.inserted_id = oid

        doc_id = self.txn.insert("request_items", {"id": str(oid), "name": "Water"})

        document = self.database["request_items"].insert_one.call_args[0][0]
        assert document == {"_id": oid, "name": "Water"}
        assert self.database["request_items"].insert_one.call_args[1]["session"] is self.session
        assert doc_id == str(oid)

    def test_duplicate_key_is_conflict(self):
        self.database["users"].insert_one.side_effect = DuplicateKeyError("dup")

        with pytest.raises(ConflictError):
            self.txn.insert("users", {"email": "a@b.co"})

    def test_guarded_update(self):
        oid = ObjectId()
        self.database["request_items"].update_one.return_value.matched_count = 0

        applied = self.txn.update(
            "request_items", str(oid),
            expected={"need_qty": {"$gte": 3}},
            increments={"need_qty": -3, "received_qty": 3}
        )

        query, update = self.database["request_items"].update_one.call_args[0]
        assert applied is False
        assert query == {"need_qty": {"$gte": 3}, "_id": oid}
        assert update == {"$inc": {"need_qty": -3, "received_qty": 3}}

    def test_get_with_invalid_id(self):
        assert self.txn.get("users", "not-an-object-id") is None
        self.database["users"].find_one.assert_not_called()


class TestMongoDBPersistence:
    """Test transaction handling."""

    def test_run_transaction_passes_session(self, mongo_persistence, mongo_client):
        result = mongo_persistence.run_transaction(lambda txn: txn)

        session = mongo_client.start_session.return_value.__enter__.return_value
        assert isinstance(result, MongoTransaction)
        session.with_transaction.assert_called_once()
        assert session.with_transaction.call_args[1]["max_commit_time_ms"] == mongo_persistence.max_commit_time_ms

    def test_write_conflict_becomes_conflict_error(self, mongo_persistence, mongo_client):
        session = mongo_client.start_session.return_value.__enter__.return_value
        session.with_transaction.side_effect = OperationFailure("Write conflict", code=112)

        with pytest.raises(ConflictError):
            mongo_persistence.run_transaction(lambda txn: None)

    def test_other_failures_propagate(self, mongo_persistence, mongo_client):
        session = mongo_client.start_session.return_value.__enter__.return_value
        session.with_transaction.side_effect = OperationFailure("Unauthorized", code=13)

        with pytest.raises(OperationFailure):
            mongo_persistence.run_transaction(lambda txn: None)

    def test_domain_errors_propagate_unchanged(self, mongo_persistence):
        def body(txn):
            raise ConflictError("taken")

        with pytest.raises(ConflictError, match="taken"):
            mongo_persistence.run_transaction(body)

    def test_health_check(self, mongo_persistence, mongo_client):
        mongo_client.admin.command.return_value = {"ok": 1}
        mongo_client.server_info.return_value = {"version": "7.0.0"}

        health = mongo_persistence.health_check()

        assert health["status"] == "healthy"
        assert health["version"] == "7.0.0"
        assert health["database"] == "relief_test"

    def test_reader_uses_snapshot_session(self, mongo_persistence, mongo_client):
        with mongo_persistence.reader() as txn:
            assert isinstance(txn, MongoTransaction)

        mongo_client.start_session.assert_called_once_with(snapshot=True)

    def test_create_indexes_enforces_unique_contacts(self, mongo_persistence, mongo_client):
        mongo_persistence.create_indexes()

        collection = mongo_client["relief_test"]["users"]
        calls = collection.create_index.call_args_list
        assert call("email", unique=True) in calls
        assert call("phone_number", unique=True) in calls
