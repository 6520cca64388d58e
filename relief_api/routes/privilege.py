# SPDX-License-Identifier: Apache-2.0

"""
Privileged workflow endpoints.

Posting help requests is open to every authenticated role; moderation,
logistics hand-offs and the logistics history are reserved to moderators
and admins.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..middleware.auth import require_auth, current_actor
from ..models.requests import (
    CreateHelpRequestRequest,
    SupportRequestListQuery,
    SupportRequestPath,
    ReviewSupportRequestRequest,
    AdvanceLogisticsRequest,
    LogisticsHistoryQuery
)

logger = logging.getLogger(__name__)

privilege_tag = Tag(name="Workflow", description="Help request moderation and logistics")
privilege_bp = APIBlueprint(
    'privilege',
    __name__,
    url_prefix='/api/privilege',
    abp_tags=[privilege_tag]
)


@privilege_bp.post('/help-requests')
@require_auth
def create_help_request(body: CreateHelpRequestRequest):
    """
    Post a help request with its items.

    ``need_qty`` defaults to ``qty`` for items that omit it.
    """
    help_request = current_app.help_requests.create(
        current_actor(),
        title=body.title,
        description=body.description,
        address=body.address,
        items=body.items,
        priority=body.priority
    )
    return jsonify({"message": "Help request created successfully", "data": help_request}), 201


@privilege_bp.get('/support-requests')
@require_auth
def list_support_requests(query: SupportRequestListQuery):
    """List support requests with their items, newest first."""
    support_requests = current_app.support_requests.list(
        current_actor(),
        status=query.status,
        help_request_id=query.help_request_id
    )
    return jsonify({"message": "Support requests retrieved successfully", "data": support_requests})


@privilege_bp.get('/support-requests/<support_request_id>')
@require_auth
def get_support_request(path: SupportRequestPath):
    support_request = current_app.support_requests.get(current_actor(), path.support_request_id)
    return jsonify({"message": "Support request retrieved successfully", "data": support_request})


@privilege_bp.post('/support-requests/<support_request_id>/review')
@require_auth
def review_support_request(path: SupportRequestPath, body: ReviewSupportRequestRequest):
    """
    Accept or reject a pending support request.

    Accepting applies the offered quantities to the help request's items and
    opens the logistics trail in one transaction.
    """
    result = current_app.support_requests.review(
        current_actor(),
        path.support_request_id,
        body.action,
        body.notes
    )
    return jsonify({
        "message": f"Support request {result.status} successfully",
        "data": result.to_dict()
    })


@privilege_bp.post('/logistics/<support_request_id>/status')
@require_auth
def advance_logistics(path: SupportRequestPath, body: AdvanceLogisticsRequest):
    """Move an accepted support request to its next logistics stage."""
    result = current_app.logistics.advance(
        current_actor(),
        path.support_request_id,
        body.new_status,
        body.notes
    )
    return jsonify({"message": "Logistics status updated successfully", "data": result.to_dict()})


@privilege_bp.get('/logistics/history')
@require_auth
def logistics_history(query: LogisticsHistoryQuery):
    """Logistics hand-offs, most recent first."""
    entries = current_app.logistics.history(
        current_actor(),
        support_request_id=query.support_request_id,
        status=query.status,
        start_date=query.start_date,
        end_date=query.end_date
    )
    history = list(entries)
    logger.debug(f"Logistics history returned {len(history)} entries")
    return jsonify({"message": "Logistics history retrieved successfully", "data": history})
