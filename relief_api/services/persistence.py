# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Transactional store interface shared by the MongoDB and in-memory backends.

Documents are plain dicts addressed by an ``id`` string. Filters use a small
subset of the MongoDB query language: equality plus the ``$gt``, ``$gte``,
``$lt``, ``$lte``, ``$in`` and ``$ne`` operators. Sorts are lists of
``(field, direction)`` pairs using pymongo's ``ASCENDING``/``DESCENDING``.
"""

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple, TypeVar
from pymongo import ASCENDING, DESCENDING

T = TypeVar("T")

Filters = Dict[str, Any]
Sort = List[Tuple[str, int]]

# Collections
USERS = "users"
USER_REFS = "user_refs"
HELP_REQUESTS = "help_requests"
REQUEST_ITEMS = "request_items"
SUPPORT_REQUESTS = "support_requests"
SUPPORT_REQUEST_ITEMS = "support_request_items"
LOGISTICS_TRACKING = "logistics_tracking"
ACTIVITY_LOGS = "activity_logs"
SYSTEM_FLAGS = "system_flags"

# Fields that must be unique within their collection
UNIQUE_FIELDS: Dict[str, List[str]] = {
    USERS: ["ref_id", "email", "phone_number"],
    USER_REFS: ["ref_id"],
    SYSTEM_FLAGS: ["name"],
}

NEWEST_FIRST: Sort = [("created_at", DESCENDING), ("id", DESCENDING)]

__all__ = [
    "ASCENDING",
    "DESCENDING",
    "Filters",
    "Sort",
    "Transaction",
    "Persistence",
    "USERS",
    "USER_REFS",
    "HELP_REQUESTS",
    "REQUEST_ITEMS",
    "SUPPORT_REQUESTS",
    "SUPPORT_REQUEST_ITEMS",
    "LOGISTICS_TRACKING",
    "ACTIVITY_LOGS",
    "SYSTEM_FLAGS",
    "UNIQUE_FIELDS",
    "NEWEST_FIRST",
]


class Transaction(ABC):
    """Unit of work handed to transaction bodies."""

    @abstractmethod
    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Fetch one document by id, or None."""

    @abstractmethod
    def find_one(self, collection: str, filters: Filters) -> Optional[Dict[str, Any]]:
        """Fetch the first document matching ``filters``, or None."""

    @abstractmethod
    def find(self, collection: str, filters: Optional[Filters] = None,
             sort: Optional[Sort] = None, limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        """Lazily iterate over matching documents."""

    @abstractmethod
    def count(self, collection: str, filters: Optional[Filters] = None) -> int:
        """Count matching documents."""

    @abstractmethod
    def insert(self, collection: str, document: Dict[str, Any]) -> str:
        """
        Insert a document and return its id.

        Raises:
            ConflictError: If a unique field is already taken
        """

    @abstractmethod
    def update(self, collection: str, doc_id: str, changes: Optional[Dict[str, Any]] = None,
               expected: Optional[Filters] = None,
               increments: Optional[Dict[str, int]] = None) -> bool:
        """
        Conditionally update one document.

        Args:
            collection: Collection name
            doc_id: Document id
            changes: Fields to set
            expected: Filter the current document must match for the update to apply
            increments: Numeric fields to add to

        Returns:
            True if the document existed and matched ``expected``
        """

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> bool:
        """Delete one document; True if it existed."""


class Persistence(ABC):
    """Transactional store."""

    @abstractmethod
    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """
        Run ``fn`` inside a transaction.

        Commits when ``fn`` returns and rolls back on any exception, which is
        then re-raised unchanged.
        """

    @abstractmethod
    def reader(self) -> AbstractContextManager:
        """Context manager yielding a read-only Transaction view."""

    def read(self, fn: Callable[[Transaction], T]) -> T:
        """Run ``fn`` against a consistent read-only view."""
        with self.reader() as txn:
            return fn(txn)

    def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}

    def close(self) -> None:
        pass
