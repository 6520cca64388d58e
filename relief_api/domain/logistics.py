# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Logistics pipeline for accepted support requests.

Every hand-off appends an immutable tracking entry. The current stage is
stored on the help request as ``logistic_status``.
"""

import logging
from dataclasses import dataclass, asdict
from datetime import datetime
from typing import Any, Dict, FrozenSet, Iterator, Optional, Union

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..models.base import ensure_utc
from ..models.entities import ActorContext, LogisticsTrackingEntry, SupportRequest
from ..models.enums import LogisticStatus, SupportRequestStatus
from ..services.audit import ActivityLogger
from ..services.persistence import (
    Persistence,
    Transaction,
    USERS,
    HELP_REQUESTS,
    SUPPORT_REQUESTS,
    LOGISTICS_TRACKING,
    DESCENDING
)
from .authorization import AccessPolicy, Operation
from .errors import ConflictError, InvalidTransition, NotAccepted, NotFound, ValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

TRANSITIONS: Dict[str, FrozenSet[str]] = {
    LogisticStatus.ACCEPTED.value: frozenset({LogisticStatus.RECEIVED.value}),
    LogisticStatus.RECEIVED.value: frozenset({LogisticStatus.DELIVERED.value}),
    LogisticStatus.DELIVERED.value: frozenset({LogisticStatus.COMPLETED.value}),
}

HISTORY_ORDER = [("timestamp", DESCENDING), ("id", DESCENDING)]


def allowed_next(current: str) -> FrozenSet[str]:
    return TRANSITIONS.get(current, frozenset())


@dataclass
class AdvanceResult:
    """Outcome of a logistics hand-off."""
    support_request_id: str
    previous_status: str
    new_status: str
    timestamp: str
    support_request_completed: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class LogisticsPipeline:
    """Sequenced, audited hand-offs of accepted support requests."""

    def __init__(self, persistence: Persistence, activity_logger: ActivityLogger,
                 policy: Optional[AccessPolicy] = None):
        self.persistence = persistence
        self.activity_logger = activity_logger
        self.policy = policy or AccessPolicy()

    def advance(self, actor: Optional[ActorContext], support_request_id: str,
                new_status: Union[LogisticStatus, str], notes: Optional[str] = None) -> AdvanceResult:
        """
        Move an accepted support request to its next logistics stage.

        Args:
            actor: Moderator or admin handling the hand-off
            support_request_id: Support request being handled
            new_status: Target stage
            notes: Handler notes

        Returns:
            AdvanceResult describing the transition

        Raises:
            NotFound: If the support request does not exist
            NotAccepted: If the support request is not in accepted status
            InvalidTransition: If ``new_status`` does not follow the current stage
            ConflictError: If another hand-off changed the stage concurrently
        """
        self.policy.require(Operation.ADVANCE_LOGISTICS, actor)
        try:
            new_status = LogisticStatus(new_status).value
        except ValueError:
            raise ValidationError(f"Unknown logistics status: {new_status}")

        with tracer.start_as_current_span(
            "logistics.advance",
            attributes={
                "support_request.id": support_request_id,
                "logistics.new_status": new_status,
                "user.ref_id": actor.actor_ref
            }
        ) as span:
            def body(txn: Transaction) -> AdvanceResult:
                document = txn.get(SUPPORT_REQUESTS, support_request_id)
                if document is None:
                    raise NotFound(f"Support request {support_request_id} not found")
                support_request = SupportRequest.from_document(document)
                if not support_request.is_accepted():
                    raise NotAccepted()

                help_request_id = support_request.help_request_id
                parent = txn.get(HELP_REQUESTS, help_request_id)
                if parent is None:
                    raise NotFound(f"Help request {help_request_id} not found")
                current = parent["logistic_status"]
                if new_status not in allowed_next(current):
                    raise InvalidTransition(f"Invalid status transition from {current} to {new_status}")

                entry = LogisticsTrackingEntry(
                    support_request_id=support_request_id,
                    previous_status=current,
                    new_status=new_status,
                    handler_ref_id=actor.actor_ref,
                    notes=notes
                )
                txn.insert(LOGISTICS_TRACKING, entry.to_document())

                moved = txn.update(
                    HELP_REQUESTS,
                    help_request_id,
                    changes={"logistic_status": new_status},
                    expected={"logistic_status": current}
                )
                if not moved:
                    raise ConflictError("Logistics status changed concurrently, please retry")

                completed = new_status == LogisticStatus.COMPLETED.value
                if completed:
                    txn.update(SUPPORT_REQUESTS, support_request_id, changes={
                        "status": SupportRequestStatus.COMPLETED.value,
                        "updated_at": entry.timestamp
                    })

                return AdvanceResult(
                    support_request_id=support_request_id,
                    previous_status=current,
                    new_status=new_status,
                    timestamp=entry.timestamp.isoformat(),
                    support_request_completed=completed
                )

            try:
                result = self.persistence.run_transaction(body)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

        logger.info(
            "Logistics status updated",
            extra={
                "support_request_id": support_request_id,
                "previous_status": result.previous_status,
                "new_status": result.new_status,
                "handler_ref_id": actor.actor_ref
            }
        )
        self.activity_logger.record(actor.actor_ref, "logistics.advanced", {
            "support_request_id": support_request_id,
            "previous_status": result.previous_status,
            "new_status": result.new_status,
            "notes": notes
        })
        return result

    def history(self, actor: Optional[ActorContext], support_request_id: Optional[str] = None,
                status: Optional[Union[LogisticStatus, str]] = None,
                start_date: Optional[datetime] = None,
                end_date: Optional[datetime] = None) -> Iterator[Dict[str, Any]]:
        """
        Tracking entries, most recent first, joined for display.

        Authorization is checked eagerly; entries are read lazily, and each
        call returns a fresh generator.
        """
        self.policy.require(Operation.VIEW_LOGISTICS_HISTORY, actor)

        filters: Dict[str, Any] = {}
        if support_request_id:
            filters["support_request_id"] = support_request_id
        if status:
            filters["new_status"] = getattr(status, "value", status)
        if start_date or end_date:
            window = {}
            if start_date:
                window["$gte"] = ensure_utc(start_date)
            if end_date:
                window["$lte"] = ensure_utc(end_date)
            filters["timestamp"] = window

        return self._iter_history(filters)

    def _iter_history(self, filters: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
        with self.persistence.reader() as txn:
            users: Dict[str, Optional[Dict[str, Any]]] = {}

            def user(ref_id: str) -> Optional[Dict[str, Any]]:
                if ref_id not in users:
                    users[ref_id] = txn.find_one(USERS, {"ref_id": ref_id})
                return users[ref_id]

            for document in txn.find(LOGISTICS_TRACKING, filters, sort=HISTORY_ORDER):
                entry = LogisticsTrackingEntry.from_document(document).model_dump(mode="json")
                support_request = txn.get(SUPPORT_REQUESTS, entry["support_request_id"]) or {}
                help_request = txn.get(HELP_REQUESTS, support_request.get("help_request_id", "")) or {}
                handler = user(entry["handler_ref_id"]) or {}
                requester = user(support_request.get("user_ref_id", "")) or {}

                entry.update({
                    "help_request_title": help_request.get("title"),
                    "handler_name": handler.get("name"),
                    "handler_role": handler.get("role"),
                    "requester_name": requester.get("name")
                })
                yield entry
