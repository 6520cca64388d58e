# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Per-item need ledger.

A request item's ``need_qty`` is the single source of truth for what is
still outstanding. Offers are checked against it when created and applied
to it when accepted; rejected or pending offers reserve nothing.
"""

import logging

from opentelemetry import trace

from ..models.entities import RequestItem
from ..services.persistence import Transaction, REQUEST_ITEMS
from .errors import ConflictError, InvalidQuantity, ItemNotFound

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class ItemNeedLedger:
    """Validates and applies offered quantities against request items."""

    def load_item(self, txn: Transaction, request_item_id: str, help_request_id: str) -> RequestItem:
        document = txn.get(REQUEST_ITEMS, request_item_id)
        if document is None or document.get("help_request_id") != help_request_id:
            raise ItemNotFound(f"Request item {request_item_id} not found in help request {help_request_id}")
        return RequestItem.from_document(document)

    def reserve_and_record_offer(self, txn: Transaction, request_item_id: str,
                                 help_request_id: str, quantity_offered: int) -> RequestItem:
        """
        Check that an offer fits the item's remaining need. Mutates nothing.

        Args:
            txn: Active transaction
            request_item_id: Item being offered against
            help_request_id: Help request the item must belong to
            quantity_offered: Offered amount

        Returns:
            The request item as read

        Raises:
            ItemNotFound: If the item is absent or belongs to another help request
            InvalidQuantity: If the amount is not positive or exceeds the remaining need
        """
        item = self.load_item(txn, request_item_id, help_request_id)

        if quantity_offered <= 0:
            raise InvalidQuantity(f"Offered quantity for '{item.name}' must be positive")

        if quantity_offered > item.max_offerable():
            raise InvalidQuantity(
                f"Offered quantity {quantity_offered} for '{item.name}' exceeds "
                f"remaining need {item.max_offerable()}"
            )

        return item

    def apply_accepted_offer(self, txn: Transaction, request_item_id: str, quantity_offered: int) -> None:
        """
        Move an accepted amount from need to received in one guarded update.

        Raises:
            ConflictError: If the remaining need no longer covers the amount
        """
        with tracer.start_as_current_span("ledger.apply_accepted_offer") as span:
            span.set_attributes({
                "request_item.id": request_item_id,
                "request_item.quantity": quantity_offered
            })

            applied = txn.update(
                REQUEST_ITEMS,
                request_item_id,
                expected={"need_qty": {"$gte": quantity_offered}},
                increments={"received_qty": quantity_offered, "need_qty": -quantity_offered}
            )
            if not applied:
                span.set_attribute("ledger.shortfall", True)
                logger.warning(
                    "Accepted offer exceeds remaining need",
                    extra={"request_item_id": request_item_id, "quantity": quantity_offered}
                )
                raise ConflictError(
                    f"Remaining need for item {request_item_id} no longer covers {quantity_offered}"
                )

    def remaining_need_count(self, txn: Transaction, help_request_id: str) -> int:
        """Number of the help request's items that still need something."""
        return txn.count(REQUEST_ITEMS, {"help_request_id": help_request_id, "need_qty": {"$gt": 0}})
