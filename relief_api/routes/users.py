# SPDX-License-Identifier: Apache-2.0

"""
Account endpoints for users and moderators.

Users register and log in with their phone number, browse their own help
requests and offer support. Moderators log in with their email.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..middleware.auth import require_auth, current_actor
from ..models.enums import UserRole
from ..models.requests import (
    RegisterUserRequest,
    LoginRequest,
    CreateSupportRequestRequest
)

logger = logging.getLogger(__name__)

user_tag = Tag(name="Users", description="User accounts and donations")
user_bp = APIBlueprint(
    'user',
    __name__,
    url_prefix='/api/user',
    abp_tags=[user_tag]
)

moderator_tag = Tag(name="Moderators", description="Moderator authentication")
moderator_bp = APIBlueprint(
    'moderator',
    __name__,
    url_prefix='/api/moderator',
    abp_tags=[moderator_tag]
)


@user_bp.post('/register')
def register_user(body: RegisterUserRequest):
    """Create a user account and return tokens."""
    result = current_app.users.register(
        name=body.name,
        email=body.email,
        phone_number=body.phone_number,
        address=body.address,
        password=body.password
    )
    return jsonify({"message": "User registered successfully", "data": result}), 201


@user_bp.post('/login')
def login_user(body: LoginRequest):
    """Log in with phone number and password."""
    result = current_app.users.authenticate(UserRole.USER, body.phone_number, body.password)
    return jsonify({"message": "Login successful", "data": result})


@user_bp.get('/help-requests')
@require_auth
def list_own_help_requests():
    """List the caller's own help requests, newest first."""
    help_requests = current_app.help_requests.list_for_owner(current_actor())
    return jsonify({"message": "Help requests retrieved successfully", "data": help_requests})


@user_bp.post('/support-requests')
@require_auth
def create_support_request(body: CreateSupportRequestRequest):
    """
    Offer items against an active help request.

    Each offered quantity must be positive and at most the item's remaining
    need; repeated lines for the same item are summed first.
    """
    support_request = current_app.support_requests.create(
        current_actor(),
        body.help_request_id,
        body.items,
        body.notes
    )
    return jsonify({"message": "Support request created successfully", "data": support_request}), 201


@moderator_bp.post('/login')
def login_moderator(body: LoginRequest):
    """Log in as a moderator with email and password."""
    result = current_app.users.authenticate(UserRole.MODERATOR, body.email, body.password)
    return jsonify({"message": "Login successful", "data": result})
