# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Help request aggregate: a posted need together with its request items.

A help request only becomes completed as a side effect of accepting the
offer that brings every item's remaining need to zero.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Union

import pydantic
from opentelemetry import trace

from ..models.entities import ActorContext, HelpRequest, RequestItem
from ..models.enums import HelpRequestPriority
from ..models.requests import HelpRequestItemInput
from ..services.audit import ActivityLogger
from ..services.persistence import (
    Persistence,
    Transaction,
    HELP_REQUESTS,
    REQUEST_ITEMS,
    ASCENDING,
    NEWEST_FIRST
)
from .authorization import AccessPolicy, Operation
from .errors import NotFound, ValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ItemSpec = Union[HelpRequestItemInput, Dict[str, Any]]


def parse_item_specs(items: Sequence[ItemSpec]) -> List[HelpRequestItemInput]:
    """Coerce raw item specs, failing with ValidationError on any bad line."""
    if not items:
        raise ValidationError("At least one item is required")

    parsed = []
    for index, item in enumerate(items):
        try:
            parsed.append(item if isinstance(item, HelpRequestItemInput)
                          else HelpRequestItemInput.model_validate(item))
        except pydantic.ValidationError as e:
            raise ValidationError(
                f"Invalid item at position {index}",
                validation_errors=[err["msg"] for err in e.errors()]
            ) from e
    return parsed


def load_items(txn: Transaction, help_request_id: str) -> List[Dict[str, Any]]:
    """A help request's items in the order they were submitted."""
    return [
        RequestItem.from_document(doc).model_dump(mode="json")
        for doc in txn.find(REQUEST_ITEMS, {"help_request_id": help_request_id}, sort=[("id", ASCENDING)])
    ]


def help_request_view(txn: Transaction, document: Dict[str, Any]) -> Dict[str, Any]:
    view = HelpRequest.from_document(document).model_dump(mode="json")
    view["items"] = load_items(txn, view["id"])
    return view


class HelpRequestAggregate:
    """Creation and browsing of help requests."""

    def __init__(self, persistence: Persistence, activity_logger: ActivityLogger,
                 policy: Optional[AccessPolicy] = None):
        self.persistence = persistence
        self.activity_logger = activity_logger
        self.policy = policy or AccessPolicy()

    def create(self, actor: Optional[ActorContext], title: str, description: str, address: str,
               items: Sequence[ItemSpec], priority: Optional[str] = None) -> Dict[str, Any]:
        """
        Post a help request with its items in one transaction.

        Args:
            actor: Any authenticated user
            title: Short summary
            description: Details of the need
            address: Delivery address
            items: Ordered ``{name, qty, need_qty}`` lines; ``need_qty`` defaults to ``qty``
            priority: high, medium or low (default medium)

        Returns:
            The created help request with its items

        Raises:
            ValidationError: On blank fields, no items or bad quantities
        """
        self.policy.require(Operation.CREATE_HELP_REQUEST, actor)

        with tracer.start_as_current_span("help_request.create") as span:
            item_specs = parse_item_specs(items)
            try:
                help_request = HelpRequest(
                    title=title or "",
                    description=description or "",
                    address=address or "",
                    priority=priority or HelpRequestPriority.MEDIUM,
                    user_ref_id=actor.actor_ref
                )
            except pydantic.ValidationError as e:
                raise ValidationError(
                    "Invalid help request fields",
                    validation_errors=[err["msg"] for err in e.errors()]
                ) from e

            span.set_attributes({
                "help_request.id": help_request.id,
                "help_request.items": len(item_specs),
                "user.ref_id": actor.actor_ref
            })

            def body(txn: Transaction) -> Dict[str, Any]:
                txn.insert(HELP_REQUESTS, help_request.to_document())
                for spec in item_specs:
                    item = RequestItem(
                        help_request_id=help_request.id,
                        name=spec.name,
                        qty=spec.qty,
                        need_qty=spec.need_qty
                    )
                    txn.insert(REQUEST_ITEMS, item.to_document())
                return help_request_view(txn, help_request.to_document())

            view = self.persistence.run_transaction(body)

        logger.info(
            "Help request created",
            extra={"help_request_id": help_request.id, "user_ref_id": actor.actor_ref}
        )
        self.activity_logger.record(actor.actor_ref, "help_request.created", {
            "help_request_id": help_request.id,
            "title": help_request.title,
            "items": len(item_specs)
        })
        return view

    def list_public(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        """Anonymous browse, newest first, each request with its items."""
        filters = {"status": getattr(status, "value", status)} if status else {}
        return self.persistence.read(
            lambda txn: [help_request_view(txn, doc)
                         for doc in txn.find(HELP_REQUESTS, filters, sort=NEWEST_FIRST)]
        )

    def list_for_owner(self, actor: Optional[ActorContext]) -> List[Dict[str, Any]]:
        self.policy.require(Operation.LIST_OWN_HELP_REQUESTS, actor)
        return self.persistence.read(
            lambda txn: [help_request_view(txn, doc)
                         for doc in txn.find(HELP_REQUESTS, {"user_ref_id": actor.actor_ref},
                                             sort=NEWEST_FIRST)]
        )

    def get(self, help_request_id: str) -> Dict[str, Any]:
        """One help request with its items."""
        def body(txn: Transaction) -> Dict[str, Any]:
            document = txn.get(HELP_REQUESTS, help_request_id)
            if document is None:
                raise NotFound(f"Help request {help_request_id} not found")
            return help_request_view(txn, document)

        return self.persistence.read(body)

