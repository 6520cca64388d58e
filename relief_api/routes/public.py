# SPDX-License-Identifier: Apache-2.0

"""
Public endpoints: anonymous browsing of help requests.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..models.requests import HelpRequestListQuery, HelpRequestPath

logger = logging.getLogger(__name__)

public_tag = Tag(name="Public", description="Anonymous browsing of help requests")
public_bp = APIBlueprint(
    'public',
    __name__,
    url_prefix='/api/public',
    abp_tags=[public_tag]
)


@public_bp.get('/help-requests')
def list_help_requests(query: HelpRequestListQuery):
    """
    List help requests, newest first.

    Each help request carries its items with requested, received and
    outstanding quantities.
    """
    help_requests = current_app.help_requests.list_public(status=query.status)
    logger.debug(f"Public browse returned {len(help_requests)} help requests")
    return jsonify(help_requests)


@public_bp.get('/help-requests/<help_request_id>')
def get_help_request(path: HelpRequestPath):
    """Get one help request with its items."""
    return jsonify(current_app.help_requests.get(path.help_request_id))
