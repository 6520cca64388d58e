# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Support request workflow.

Offers move ``pending -> accepted | rejected``. Acceptance applies every
offered quantity to the item ledger, completes the help request when no
need remains and opens the logistics trail, all in one transaction.
``accepted -> completed`` happens only through the logistics pipeline.
"""

import logging
from dataclasses import dataclass, asdict
from typing import Any, Dict, List, Optional, Sequence, Union

import pydantic
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..models.base import utc_now
from ..models.entities import (
    ActorContext,
    HelpRequest,
    LogisticsTrackingEntry,
    SupportRequest,
    SupportRequestItem
)
from ..models.enums import (
    HelpRequestStatus,
    LogisticStatus,
    ReviewAction,
    SupportRequestStatus
)
from ..models.requests import OfferItemInput
from ..services.audit import ActivityLogger
from ..services.persistence import (
    Persistence,
    Transaction,
    USERS,
    HELP_REQUESTS,
    REQUEST_ITEMS,
    SUPPORT_REQUESTS,
    SUPPORT_REQUEST_ITEMS,
    LOGISTICS_TRACKING,
    ASCENDING,
    NEWEST_FIRST
)
from .authorization import AccessPolicy, Operation
from .errors import (
    AlreadyReviewed,
    HelpRequestNotActive,
    NotFound,
    ValidationError
)
from .ledger import ItemNeedLedger

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

OfferSpec = Union[OfferItemInput, Dict[str, Any]]


@dataclass
class ReviewResult:
    """Outcome of a review decision."""
    support_request_id: str
    status: str
    help_request_id: str
    help_request_completed: bool = False
    updated_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def merge_offer_lines(items: Sequence[OfferSpec]) -> List[OfferItemInput]:
    """
    Parse offer lines and sum repeated lines for the same item.

    Raises:
        ValidationError: If the list is empty or a line is malformed
    """
    if not items:
        raise ValidationError("At least one offered item is required")

    merged: Dict[str, OfferItemInput] = {}
    for index, item in enumerate(items):
        try:
            line = item if isinstance(item, OfferItemInput) else OfferItemInput.model_validate(item)
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid offered item at position {index}",
                validation_errors=[err["msg"] for err in e.errors()]
            ) from e

        previous = merged.get(line.request_item_id)
        if previous is None:
            merged[line.request_item_id] = line
        else:
            merged[line.request_item_id] = previous.model_copy(update={
                "quantity_offered": previous.quantity_offered + line.quantity_offered,
                "notes": previous.notes or line.notes
            })
    return list(merged.values())


def _user_name(txn: Transaction, ref_id: str) -> Optional[str]:
    user = txn.find_one(USERS, {"ref_id": ref_id})
    return user["name"] if user else None


def support_request_view(txn: Transaction, document: Dict[str, Any]) -> Dict[str, Any]:
    """Support request joined with its help request title, requester and items."""
    view = SupportRequest.from_document(document).model_dump(mode="json")
    help_request = txn.get(HELP_REQUESTS, view["help_request_id"])
    view["help_request_title"] = help_request["title"] if help_request else None
    view["requester_name"] = _user_name(txn, view["user_ref_id"])

    items = []
    for doc in txn.find(SUPPORT_REQUEST_ITEMS, {"support_request_id": view["id"]}, sort=[("id", ASCENDING)]):
        item = SupportRequestItem.from_document(doc).model_dump(mode="json")
        request_item = txn.get(REQUEST_ITEMS, item["request_item_id"])
        item["name"] = request_item["name"] if request_item else None
        items.append(item)
    view["items"] = items
    return view


class SupportRequestWorkflow:
    """Creation, review and listing of support requests."""

    def __init__(self, persistence: Persistence, activity_logger: ActivityLogger,
                 policy: Optional[AccessPolicy] = None, ledger: Optional[ItemNeedLedger] = None):
        self.persistence = persistence
        self.activity_logger = activity_logger
        self.policy = policy or AccessPolicy()
        self.ledger = ledger or ItemNeedLedger()

    def create(self, actor: Optional[ActorContext], help_request_id: str,
               items: Sequence[OfferSpec], notes: Optional[str] = None) -> Dict[str, Any]:
        """
        Offer quantities against an active help request.

        Args:
            actor: A user (moderators and admins cannot donate)
            help_request_id: Help request being supported
            items: ``{request_item_id, quantity_offered, notes}`` lines
            notes: Donor notes

        Returns:
            The created support request with its items

        Raises:
            ValidationError: On an empty or malformed item list
            NotFound: If the help request does not exist
            HelpRequestNotActive: If the help request is completed
            ItemNotFound: If an item is not part of the help request
            InvalidQuantity: If an offered amount is not positive or exceeds the need
        """
        self.policy.require(Operation.CREATE_SUPPORT_REQUEST, actor)
        lines = merge_offer_lines(items)

        with tracer.start_as_current_span("support_request.create") as span:
            span.set_attributes({
                "help_request.id": help_request_id,
                "support_request.lines": len(lines),
                "user.ref_id": actor.actor_ref
            })

            def body(txn: Transaction) -> Dict[str, Any]:
                document = txn.get(HELP_REQUESTS, help_request_id)
                if document is None:
                    raise NotFound(f"Help request {help_request_id} not found")
                if not HelpRequest.from_document(document).is_active():
                    raise HelpRequestNotActive()

                for line in lines:
                    self.ledger.reserve_and_record_offer(
                        txn, line.request_item_id, help_request_id, line.quantity_offered
                    )

                support_request = SupportRequest(
                    help_request_id=help_request_id,
                    user_ref_id=actor.actor_ref,
                    notes=notes
                )
                txn.insert(SUPPORT_REQUESTS, support_request.to_document())
                for line in lines:
                    txn.insert(SUPPORT_REQUEST_ITEMS, SupportRequestItem(
                        support_request_id=support_request.id,
                        request_item_id=line.request_item_id,
                        quantity_offered=line.quantity_offered,
                        notes=line.notes
                    ).to_document())
                return support_request_view(txn, support_request.to_document())

            view = self.persistence.run_transaction(body)
            span.set_attribute("support_request.id", view["id"])

        logger.info(
            "Support request created",
            extra={"support_request_id": view["id"], "help_request_id": help_request_id}
        )
        self.activity_logger.record(actor.actor_ref, "support_request.created", {
            "support_request_id": view["id"],
            "help_request_id": help_request_id,
            "items": [{"request_item_id": line.request_item_id, "quantity": line.quantity_offered}
                      for line in lines]
        })
        return view

    def review(self, actor: Optional[ActorContext], support_request_id: str,
               action: Union[ReviewAction, str], notes: Optional[str] = None) -> ReviewResult:
        """
        Accept or reject a pending support request.

        Acceptance is atomic: status change, ledger updates, help request
        completion and the first logistics entry either all apply or none do.

        Raises:
            ValidationError: On an unknown action
            NotFound: If the support request does not exist
            AlreadyReviewed: If it is no longer pending, including a lost race
            HelpRequestNotActive: If the help request is already completed
            ConflictError: If an item's remaining need no longer covers the offer
        """
        self.policy.require(Operation.REVIEW_SUPPORT_REQUEST, actor)
        try:
            action = ReviewAction(action)
        except ValueError:
            raise ValidationError('Invalid action. Must be "accept" or "reject"')

        with tracer.start_as_current_span(
            "support_request.review",
            attributes={
                "support_request.id": support_request_id,
                "review.action": action.value,
                "user.ref_id": actor.actor_ref
            }
        ) as span:
            def body(txn: Transaction) -> ReviewResult:
                document = txn.get(SUPPORT_REQUESTS, support_request_id)
                if document is None:
                    raise NotFound(f"Support request {support_request_id} not found")
                support_request = SupportRequest.from_document(document)
                if not support_request.can_review():
                    raise AlreadyReviewed()

                parent = txn.get(HELP_REQUESTS, support_request.help_request_id)
                if parent is None or parent["status"] != HelpRequestStatus.ACTIVE.value:
                    raise HelpRequestNotActive("Help request is no longer active")

                if action == ReviewAction.REJECT:
                    return self._reject(txn, support_request)
                return self._accept(txn, support_request, actor, notes)

            try:
                result = self.persistence.run_transaction(body)
            except Exception as e:
                span.set_status(Status(StatusCode.ERROR, str(e)))
                raise

            span.set_attribute("help_request.completed", result.help_request_completed)

        logger.info(
            f"Support request {result.status}",
            extra={
                "support_request_id": support_request_id,
                "handler_ref_id": actor.actor_ref,
                "help_request_completed": result.help_request_completed
            }
        )
        self.activity_logger.record(actor.actor_ref, f"support_request.{result.status}", {
            "support_request_id": support_request_id,
            "help_request_id": result.help_request_id,
            "help_request_completed": result.help_request_completed,
            "notes": notes
        })
        return result

    def _transition_from_pending(self, txn: Transaction, support_request: SupportRequest,
                                 new_status: SupportRequestStatus) -> str:
        updated_at = utc_now()
        moved = txn.update(
            SUPPORT_REQUESTS,
            support_request.id,
            changes={"status": new_status.value, "updated_at": updated_at},
            expected={"status": SupportRequestStatus.PENDING.value}
        )
        if not moved:
            raise AlreadyReviewed()
        return updated_at.isoformat()

    def _reject(self, txn: Transaction, support_request: SupportRequest) -> ReviewResult:
        updated_at = self._transition_from_pending(txn, support_request, SupportRequestStatus.REJECTED)
        return ReviewResult(
            support_request_id=support_request.id,
            status=SupportRequestStatus.REJECTED.value,
            help_request_id=support_request.help_request_id,
            updated_at=updated_at
        )

    def _accept(self, txn: Transaction, support_request: SupportRequest,
                actor: ActorContext, notes: Optional[str]) -> ReviewResult:
        updated_at = self._transition_from_pending(txn, support_request, SupportRequestStatus.ACCEPTED)

        for doc in txn.find(SUPPORT_REQUEST_ITEMS, {"support_request_id": support_request.id}):
            line = SupportRequestItem.from_document(doc)
            self.ledger.apply_accepted_offer(txn, line.request_item_id, line.quantity_offered)

        help_request_id = support_request.help_request_id
        completed = self.ledger.remaining_need_count(txn, help_request_id) == 0
        changes = {"logistic_status": LogisticStatus.ACCEPTED.value}
        if completed:
            changes["status"] = HelpRequestStatus.COMPLETED.value

        txn.insert(LOGISTICS_TRACKING, LogisticsTrackingEntry(
            support_request_id=support_request.id,
            previous_status=LogisticStatus.PENDING,
            new_status=LogisticStatus.ACCEPTED,
            handler_ref_id=actor.actor_ref,
            notes=notes
        ).to_document())
        txn.update(HELP_REQUESTS, help_request_id, changes=changes)

        return ReviewResult(
            support_request_id=support_request.id,
            status=SupportRequestStatus.ACCEPTED.value,
            help_request_id=help_request_id,
            help_request_completed=completed,
            updated_at=updated_at
        )

    def list(self, actor: Optional[ActorContext], status: Optional[str] = None,
             help_request_id: Optional[str] = None) -> List[Dict[str, Any]]:
        """Support requests newest first, joined for the moderation view."""
        self.policy.require(Operation.LIST_SUPPORT_REQUESTS, actor)

        filters: Dict[str, Any] = {}
        if status:
            filters["status"] = getattr(status, "value", status)
        if help_request_id:
            filters["help_request_id"] = help_request_id

        return self.persistence.read(
            lambda txn: [support_request_view(txn, doc)
                         for doc in txn.find(SUPPORT_REQUESTS, filters, sort=NEWEST_FIRST)]
        )

    def get(self, actor: Optional[ActorContext], support_request_id: str) -> Dict[str, Any]:
        self.policy.require(Operation.LIST_SUPPORT_REQUESTS, actor)

        def body(txn: Transaction) -> Dict[str, Any]:
            document = txn.get(SUPPORT_REQUESTS, support_request_id)
            if document is None:
                raise NotFound(f"Support request {support_request_id} not found")
            return support_request_view(txn, document)

        return self.persistence.read(body)
