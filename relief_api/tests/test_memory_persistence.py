# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the in-memory persistence backend.
"""

import pytest

from relief_api.domain.errors import ConflictError
from relief_api.services.memory import MemoryPersistence, matches, sort_documents
from relief_api.services.persistence import ASCENDING, DESCENDING, USERS, REQUEST_ITEMS


class TestMemoryTransactions:
    """Test commit, rollback and conditional updates."""

    def test_commit_on_return(self, persistence):
        doc_id = persistence.run_transaction(
            lambda txn: txn.insert(REQUEST_ITEMS, {"name": "Water", "need_qty": 10})
        )

        stored = persistence.read(lambda txn: txn.get(REQUEST_ITEMS, doc_id))
        assert stored["name"] == "Water"
        assert stored["id"] == doc_id

    def test_rollback_on_exception(self, persistence):
        """Test every write of a failed transaction is discarded."""
        doc_id = persistence.run_transaction(
            lambda txn: txn.insert(REQUEST_ITEMS, {"name": "Water", "need_qty": 10})
        )

        def body(txn):
            txn.update(REQUEST_ITEMS, doc_id, increments={"need_qty": -4})
            txn.insert(REQUEST_ITEMS, {"name": "Blankets", "need_qty": 3})
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError):
            persistence.run_transaction(body)

        assert persistence.read(lambda txn: txn.get(REQUEST_ITEMS, doc_id))["need_qty"] == 10
        assert persistence.read(lambda txn: txn.count(REQUEST_ITEMS)) == 1

    def test_conditional_update(self, persistence):
        doc_id = persistence.run_transaction(
            lambda txn: txn.insert(REQUEST_ITEMS, {"need_qty": 5, "received_qty": 0})
        )

        applied = persistence.run_transaction(lambda txn: txn.update(
            REQUEST_ITEMS, doc_id,
            expected={"need_qty": {"$gte": 3}},
            increments={"need_qty": -3, "received_qty": 3}
        ))
        refused = persistence.run_transaction(lambda txn: txn.update(
            REQUEST_ITEMS, doc_id,
            expected={"need_qty": {"$gte": 3}},
            increments={"need_qty": -3, "received_qty": 3}
        ))

        stored = persistence.read(lambda txn: txn.get(REQUEST_ITEMS, doc_id))
        assert applied is True
        assert refused is False
        assert stored["need_qty"] == 2
        assert stored["received_qty"] == 3

    def test_unique_fields_enforced(self, persistence):
        persistence.run_transaction(lambda txn: txn.insert(USERS, {"email": "a@b.co", "phone_number": "1"}))

        with pytest.raises(ConflictError):
            persistence.run_transaction(
                lambda txn: txn.insert(USERS, {"email": "a@b.co", "phone_number": "2"})
            )

    def test_returned_documents_are_copies(self, persistence):
        doc_id = persistence.run_transaction(lambda txn: txn.insert(REQUEST_ITEMS, {"need_qty": 5}))

        document = persistence.read(lambda txn: txn.get(REQUEST_ITEMS, doc_id))
        document["need_qty"] = 0

        assert persistence.read(lambda txn: txn.get(REQUEST_ITEMS, doc_id))["need_qty"] == 5

    def test_reader_is_read_only(self, persistence):
        with pytest.raises(RuntimeError):
            persistence.read(lambda txn: txn.insert(REQUEST_ITEMS, {"need_qty": 1}))

    def test_reader_sees_snapshot(self, persistence):
        """Test a lazy reader is unaffected by later commits."""
        persistence.run_transaction(lambda txn: txn.insert(REQUEST_ITEMS, {"name": "Water"}))

        with persistence.reader() as txn:
            documents = txn.find(REQUEST_ITEMS)
            persistence.run_transaction(lambda t: t.insert(REQUEST_ITEMS, {"name": "Rice"}))
            assert [doc["name"] for doc in documents] == ["Water"]

    def test_health_check(self, persistence):
        health = MemoryPersistence().health_check()
        assert health["status"] == "healthy"
        assert health["backend"] == "memory"


class TestQueryHelpers:
    """Test filter and sort evaluation."""

    def test_operators(self):
        document = {"need_qty": 5, "status": "active"}

        assert matches(document, {"need_qty": {"$gt": 4, "$lte": 5}})
        assert matches(document, {"status": {"$in": ["active", "completed"]}})
        assert matches(document, {"status": {"$ne": "completed"}})
        assert not matches(document, {"need_qty": {"$lt": 5}})
        assert not matches(document, {"missing": {"$gt": 0}})

    def test_unsupported_operator(self):
        with pytest.raises(ValueError):
            matches({"a": 1}, {"a": {"$regex": "x"}})

    def test_multi_key_sort(self):
        documents = [
            {"id": "1", "day": 1},
            {"id": "2", "day": 2},
            {"id": "3", "day": 2},
        ]

        sort_documents(documents, [("day", DESCENDING), ("id", ASCENDING)])
        assert [doc["id"] for doc in documents] == ["2", "3", "1"]
