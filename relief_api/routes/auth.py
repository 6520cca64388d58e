# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Token endpoints shared by every role: refresh and current identity.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..middleware.auth import require_auth, current_actor
from ..models.requests import RefreshTokenRequest

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

auth_tag = Tag(name="Authentication", description="Token refresh and identity")
auth_bp = APIBlueprint(
    'auth',
    __name__,
    url_prefix='/api/auth',
    abp_tags=[auth_tag]
)


@auth_bp.post('/refresh')
def refresh_token(body: RefreshTokenRequest):
    """Exchange a refresh token for a new token pair."""
    with tracer.start_as_current_span("auth.refresh", attributes={"operation": "refresh"}):
        tokens = current_app.auth_service.refresh_access_token(body.refresh_token)
    return jsonify({"message": "Token refreshed successfully", "data": tokens})


@auth_bp.get('/me')
@require_auth
def who_am_i():
    """Identity and role of the token's user as currently stored."""
    actor = current_actor()
    return jsonify({
        "message": "Identity retrieved successfully",
        "data": {
            "ref_id": actor.actor_ref,
            "role": actor.role,
            "name": actor.name,
            "email": actor.email
        }
    })
