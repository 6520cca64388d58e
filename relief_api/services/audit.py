# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Activity logging with OpenTelemetry correlation.

Recording is fire-and-forget: a failure to store an activity entry is logged
locally and never reaches the caller, whose transaction has already
committed.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional, Any
from opentelemetry import trace

from .persistence import Persistence, Transaction, ACTIVITY_LOGS, USERS, DESCENDING
from ..models.base import ensure_utc
from ..models.entities import ActivityLogEntry

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_QUERY_LIMIT = 100


class ActivityFilters:
    """Filters for activity log queries."""

    def __init__(
        self,
        actor_ref_id: Optional[str] = None,
        action: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        trace_id: Optional[str] = None
    ):
        self.actor_ref_id = actor_ref_id
        self.action = action
        self.start_date = ensure_utc(start_date)
        self.end_date = ensure_utc(end_date)
        self.trace_id = trace_id

    def to_query(self) -> Dict[str, Any]:
        """Convert filters to a store query."""
        query = {}

        if self.actor_ref_id:
            query["actor_ref_id"] = self.actor_ref_id

        if self.action:
            query["action"] = self.action

        if self.trace_id:
            query["trace_id"] = self.trace_id

        # Date range filter
        if self.start_date or self.end_date:
            date_filter = {}
            if self.start_date:
                date_filter["$gte"] = self.start_date
            if self.end_date:
                date_filter["$lte"] = self.end_date
            query["timestamp"] = date_filter

        return query


class ActivityLogger:
    """Append-only activity sink backed by the persistence layer."""

    def __init__(self, persistence: Persistence):
        self.persistence = persistence
        logger.info("Activity logger initialized")

    def record(self, actor_ref: Optional[str], action: str, metadata: Optional[Dict[str, Any]] = None) -> None:
        """
        Record one activity entry. Never raises.

        Args:
            actor_ref: Reference id of the acting user, if any
            action: Action name, e.g. ``support_request.accepted``
            metadata: Summary of the action's payload
        """
        with tracer.start_as_current_span("activity.record") as span:
            try:
                span_context = span.get_span_context()
                entry = ActivityLogEntry(
                    actor_ref_id=actor_ref,
                    action=action,
                    metadata=metadata or {}
                )

                if span_context.is_valid:
                    entry.trace_id = format(span_context.trace_id, "032x")
                    entry.span_id = format(span_context.span_id, "016x")

                span.set_attributes({
                    "activity.action": action,
                    "activity.actor_ref": actor_ref or ""
                })

                self.persistence.run_transaction(
                    lambda txn: txn.insert(ACTIVITY_LOGS, entry.to_document())
                )

                logger.info(
                    "Activity recorded",
                    extra={
                        "activity_id": entry.id,
                        "action": action,
                        "actor_ref_id": actor_ref,
                        "trace_id": entry.trace_id
                    }
                )

            except Exception as e:
                span.record_exception(e)
                span.set_status(trace.Status(trace.StatusCode.ERROR, str(e)))
                logger.error(
                    "Failed to record activity",
                    extra={
                        "action": action,
                        "actor_ref_id": actor_ref,
                        "error": str(e)
                    },
                    exc_info=True
                )

    def query(self, filters: Optional[ActivityFilters] = None, limit: int = DEFAULT_QUERY_LIMIT) -> List[ActivityLogEntry]:
        """
        Most recent activity entries first.

        Args:
            filters: Optional filters
            limit: Maximum entries returned

        Returns:
            List of ActivityLogEntry
        """
        with tracer.start_as_current_span("activity.query") as span:
            query = (filters or ActivityFilters()).to_query()
            span.set_attributes({
                "activity.query.filters": len(query),
                "activity.query.limit": limit
            })

            documents = self.persistence.read(
                lambda txn: list(txn.find(
                    ACTIVITY_LOGS,
                    query,
                    sort=[("timestamp", DESCENDING), ("id", DESCENDING)],
                    limit=limit
                ))
            )

            logger.debug(f"Activity query returned {len(documents)} entries")
            return [ActivityLogEntry.from_document(doc) for doc in documents]

    def query_with_actors(self, filters: Optional[ActivityFilters] = None,
                          limit: int = DEFAULT_QUERY_LIMIT) -> List[Dict[str, Any]]:
        """
        Activity entries joined with the acting user's name and role.

        Entries of deleted or anonymous actors carry ``None`` for both.
        """
        with tracer.start_as_current_span("activity.query_with_actors"):
            query = (filters or ActivityFilters()).to_query()

            def body(txn: Transaction) -> List[Dict[str, Any]]:
                actors: Dict[str, Dict[str, Any]] = {}
                rows = []
                for document in txn.find(
                    ACTIVITY_LOGS,
                    query,
                    sort=[("timestamp", DESCENDING), ("id", DESCENDING)],
                    limit=limit
                ):
                    row = ActivityLogEntry.from_document(document).model_dump(mode="json")
                    ref_id = row["actor_ref_id"]
                    if ref_id and ref_id not in actors:
                        actors[ref_id] = txn.find_one(USERS, {"ref_id": ref_id}) or {}
                    actor = actors.get(ref_id) or {}
                    row["user_name"] = actor.get("name")
                    row["user_role"] = actor.get("role")
                    rows.append(row)
                return rows

            return self.persistence.read(body)
