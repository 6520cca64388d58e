# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB persistence with multi-document transactions and connection pooling.

Requires a replica set (or sharded cluster) since every mutation runs inside
a client session transaction.
"""

import os
import logging
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional
from pymongo import MongoClient, ASCENDING, DESCENDING
from pymongo.client_session import ClientSession
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError,
    OperationFailure
)
from bson import ObjectId

from .persistence import (
    Persistence,
    Transaction,
    Filters,
    Sort,
    UNIQUE_FIELDS,
    USERS,
    HELP_REQUESTS,
    REQUEST_ITEMS,
    SUPPORT_REQUESTS,
    SUPPORT_REQUEST_ITEMS,
    LOGISTICS_TRACKING,
    ACTIVITY_LOGS,
    T
)
from ..domain.errors import ConflictError

logger = logging.getLogger(__name__)

WRITE_CONFLICT = 112


def _object_id(value: Any) -> Any:
    """Convert an id string to ObjectId, leaving unparseable values to match nothing."""
    if isinstance(value, str) and ObjectId.is_valid(value):
        return ObjectId(value)
    return value


def to_query(filters: Optional[Filters]) -> Dict[str, Any]:
    """Translate an ``id``-keyed filter into a MongoDB query on ``_id``."""
    query = dict(filters or {})
    if "id" in query:
        condition = query.pop("id")
        if isinstance(condition, dict):
            condition = {
                operator: [_object_id(v) for v in operand] if operator == "$in" else _object_id(operand)
                for operator, operand in condition.items()
            }
        else:
            condition = _object_id(condition)
        query["_id"] = condition
    return query


def to_sort(sort: Optional[Sort]):
    return [("_id" if field == "id" else field, direction) for field, direction in sort or []]


def from_mongo(document: Dict[str, Any]) -> Dict[str, Any]:
    """Expose ``_id`` as a string ``id``."""
    document = dict(document)
    if "_id" in document:
        document["id"] = str(document.pop("_id"))
    return document


class MongoTransaction(Transaction):
    """Transaction view bound to one client session."""

    def __init__(self, database: Database, session: Optional[ClientSession]):
        self._database = database
        self._session = session

    def get(self, collection, doc_id):
        if not ObjectId.is_valid(doc_id):
            return None
        document = self._database[collection].find_one({"_id": ObjectId(doc_id)}, session=self._session)
        return from_mongo(document) if document else None

    def find_one(self, collection, filters):
        document = self._database[collection].find_one(to_query(filters), session=self._session)
        return from_mongo(document) if document else None

    def find(self, collection, filters=None, sort=None, limit=None) -> Iterator[Dict[str, Any]]:
        cursor = self._database[collection].find(to_query(filters), session=self._session)
        if sort:
            cursor = cursor.sort(to_sort(sort))
        if limit:
            cursor = cursor.limit(limit)
        for document in cursor:
            yield from_mongo(document)

    def count(self, collection, filters=None):
        return self._database[collection].count_documents(to_query(filters), session=self._session)

    def insert(self, collection, document):
        document = dict(document)
        doc_id = document.pop("id", None)
        document["_id"] = ObjectId(doc_id) if doc_id else ObjectId()
        try:
            result = self._database[collection].insert_one(document, session=self._session)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key error in {collection}: {e}")
            raise ConflictError(f"Duplicate value in {collection}") from e

        logger.debug(f"Inserted document into {collection}: {result.inserted_id}")
        return str(result.inserted_id)

    def update(self, collection, doc_id, changes=None, expected=None, increments=None):
        if not ObjectId.is_valid(doc_id):
            return False

        update: Dict[str, Any] = {}
        if changes:
            update["$set"] = changes
        if increments:
            update["$inc"] = increments
        if not update:
            return self.count(collection, {**(expected or {}), "id": doc_id}) == 1

        query = to_query(expected)
        query["_id"] = ObjectId(doc_id)
        try:
            result = self._database[collection].update_one(query, update, session=self._session)
        except DuplicateKeyError as e:
            raise ConflictError(f"Duplicate value in {collection}") from e
        return result.matched_count == 1

    def delete(self, collection, doc_id):
        if not ObjectId.is_valid(doc_id):
            return False
        result = self._database[collection].delete_one({"_id": ObjectId(doc_id)}, session=self._session)
        return result.deleted_count == 1


class MongoDBPersistence(Persistence):
    """MongoDB-backed persistence using session transactions."""

    def __init__(self, connection_string: str = None, database_name: str = None,
                 client: Optional[MongoClient] = None):
        """Initialize MongoDB persistence with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/relief_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'relief_dev')
        self._client: Optional[MongoClient] = client
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))
        self.max_commit_time_ms = int(os.getenv('MONGODB_MAX_COMMIT_TIME_MS', '10000'))

        logger.info(f"MongoDB persistence initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    retryWrites=True,
                    retryReads=True,
                    tz_aware=True
                )
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                raise

        return self._client

    @property
    def database(self) -> Database:
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def run_transaction(self, fn: Callable[[Transaction], T]) -> T:
        """Run ``fn`` in a session transaction; the driver retries transient errors."""
        with self.client.start_session() as session:
            try:
                return session.with_transaction(
                    lambda s: fn(MongoTransaction(self.database, s)),
                    max_commit_time_ms=self.max_commit_time_ms
                )
            except OperationFailure as e:
                if e.code == WRITE_CONFLICT or e.has_error_label("TransientTransactionError"):
                    logger.warning(f"Transaction aborted by write conflict: {e}")
                    raise ConflictError("Concurrent modification, please retry") from e
                raise

    @contextmanager
    def reader(self):
        """Read-only view pinned to one snapshot of the cluster."""
        with self.client.start_session(snapshot=True) as session:
            yield MongoTransaction(self.database, session)

    def close(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'backend': 'mongodb',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name
            }
        except (ConnectionFailure, OperationFailure) as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'backend': 'mongodb',
                'error': str(e),
                'database': self.database_name
            }

    # Index Management

    def create_indexes(self) -> None:
        """Create uniqueness and query indexes for all collections."""
        logger.info("Creating MongoDB indexes...")

        for collection, fields in UNIQUE_FIELDS.items():
            for field in fields:
                self.database[collection].create_index(field, unique=True)

        users = self.database[USERS]
        users.create_index([("role", ASCENDING), ("created_at", DESCENDING)])

        help_requests = self.database[HELP_REQUESTS]
        help_requests.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        help_requests.create_index([("user_ref_id", ASCENDING), ("created_at", DESCENDING)])

        self.database[REQUEST_ITEMS].create_index([("help_request_id", ASCENDING), ("need_qty", ASCENDING)])

        support_requests = self.database[SUPPORT_REQUESTS]
        support_requests.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
        support_requests.create_index("help_request_id")

        self.database[SUPPORT_REQUEST_ITEMS].create_index("support_request_id")

        tracking = self.database[LOGISTICS_TRACKING]
        tracking.create_index([("timestamp", DESCENDING), ("_id", DESCENDING)])
        tracking.create_index([("support_request_id", ASCENDING), ("timestamp", DESCENDING)])

        activity = self.database[ACTIVITY_LOGS]
        activity.create_index([("timestamp", DESCENDING)])
        activity.create_index([("actor_ref_id", ASCENDING), ("timestamp", DESCENDING)])
        activity.create_index("trace_id")

        logger.info("MongoDB indexes created successfully")
