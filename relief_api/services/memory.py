# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-memory persistence for tests and local development.

Transactions are serialized by a single re-entrant lock and roll back to a
snapshot taken on entry. Stored documents are never mutated in place, so a
snapshot only needs to copy the per-collection maps.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from bson import ObjectId

from .persistence import (
    ASCENDING,
    Filters,
    Persistence,
    Sort,
    Transaction,
    UNIQUE_FIELDS,
    T
)
from ..domain.errors import ConflictError

logger = logging.getLogger(__name__)

Store = Dict[str, Dict[str, Dict[str, Any]]]


def _gt(value, operand):
    return value is not None and value > operand


def _gte(value, operand):
    return value is not None and value >= operand


def _lt(value, operand):
    return value is not None and value < operand


def _lte(value, operand):
    return value is not None and value <= operand


_OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "$gt": _gt,
    "$gte": _gte,
    "$lt": _lt,
    "$lte": _lte,
    "$in": lambda value, operand: value in operand,
    "$ne": lambda value, operand: value != operand,
}


def matches(document: Dict[str, Any], filters: Optional[Filters]) -> bool:
    """Evaluate a query filter against one document."""
    for field, condition in (filters or {}).items():
        value = document.get(field)
        if isinstance(condition, dict):
            for operator, operand in condition.items():
                if operator not in _OPERATORS:
                    raise ValueError(f"Unsupported query operator: {operator}")
                if not _OPERATORS[operator](value, operand):
                    return False
        elif value != condition:
            return False
    return True


def sort_documents(documents: List[Dict[str, Any]], sort: Optional[Sort]) -> List[Dict[str, Any]]:
    """Sort by several keys with independent directions; missing values sort first."""
    for field, direction in reversed(sort or []):
        documents.sort(
            key=lambda doc: (doc.get(field) is not None, doc.get(field)),
            reverse=direction != ASCENDING
        )
    return documents


class MemoryTransaction(Transaction):
    """Transaction view over a store dict."""

    def __init__(self, store: Store, writable: bool = True):
        self._store = store
        self._writable = writable

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._store.setdefault(name, {})

    def _check_writable(self):
        if not self._writable:
            raise RuntimeError("Write attempted on a read-only view")

    def _check_unique(self, collection: str, document: Dict[str, Any]):
        for field in UNIQUE_FIELDS.get(collection, []):
            value = document.get(field)
            if value is None:
                continue
            for other in self._collection(collection).values():
                if other["id"] != document["id"] and other.get(field) == value:
                    raise ConflictError(f"Duplicate value for {collection}.{field}")

    def get(self, collection, doc_id):
        document = self._collection(collection).get(doc_id)
        return copy.deepcopy(document) if document is not None else None

    def find_one(self, collection, filters):
        return next(self.find(collection, filters, limit=1), None)

    def find(self, collection, filters=None, sort=None, limit=None) -> Iterator[Dict[str, Any]]:
        documents = [doc for doc in self._collection(collection).values() if matches(doc, filters)]
        sort_documents(documents, sort)
        if limit is not None:
            documents = documents[:limit]
        for document in documents:
            yield copy.deepcopy(document)

    def count(self, collection, filters=None):
        return sum(1 for doc in self._collection(collection).values() if matches(doc, filters))

    def insert(self, collection, document):
        self._check_writable()
        stored = copy.deepcopy(document)
        stored.setdefault("id", str(ObjectId()))
        if stored["id"] in self._collection(collection):
            raise ConflictError(f"Duplicate id in {collection}")
        self._check_unique(collection, stored)
        self._collection(collection)[stored["id"]] = stored
        return stored["id"]

    def update(self, collection, doc_id, changes=None, expected=None, increments=None):
        self._check_writable()
        current = self._collection(collection).get(doc_id)
        if current is None or not matches(current, expected):
            return False

        updated = dict(current)
        updated.update(copy.deepcopy(changes or {}))
        for field, amount in (increments or {}).items():
            updated[field] = updated.get(field, 0) + amount
        self._check_unique(collection, updated)
        self._collection(collection)[doc_id] = updated
        return True

    def delete(self, collection, doc_id):
        self._check_writable()
        return self._collection(collection).pop(doc_id, None) is not None


class MemoryPersistence(Persistence):
    """Serializable in-process store."""

    def __init__(self):
        self._store: Store = {}
        self._lock = threading.RLock()
        logger.info("In-memory persistence initialized")

    def _snapshot(self) -> Store:
        return {name: dict(documents) for name, documents in self._store.items()}

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        with self._lock:
            snapshot = self._snapshot()
            try:
                return fn(MemoryTransaction(self._store))
            except BaseException:
                self._store.clear()
                self._store.update(snapshot)
                logger.debug("In-memory transaction rolled back")
                raise

    @contextmanager
    def reader(self):
        with self._lock:
            snapshot = self._snapshot()
        yield MemoryTransaction(snapshot, writable=False)

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            collections = {name: len(documents) for name, documents in self._store.items()}
        return {"status": "healthy", "backend": "memory", "collections": collections}
