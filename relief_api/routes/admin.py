# SPDX-License-Identifier: Apache-2.0

"""
Admin endpoints: bootstrap, staff creation, user management and activity logs.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
import logging

from ..domain.authorization import Operation
from ..middleware.auth import require_auth, current_actor
from ..models.enums import UserRole
from ..models.requests import (
    RegisterUserRequest,
    LoginRequest,
    UserListQuery,
    UserRefPath,
    UpdateRoleRequest,
    ActivityLogQuery
)
from ..services.audit import ActivityFilters

logger = logging.getLogger(__name__)

admin_tag = Tag(name="Admin", description="Administration and audit trail")
admin_bp = APIBlueprint(
    'admin',
    __name__,
    url_prefix='/api/admin',
    abp_tags=[admin_tag]
)


@admin_bp.post('/register')
def register_admin(body: RegisterUserRequest):
    """Register the first admin. Fails once an admin exists."""
    result = current_app.users.bootstrap_admin(
        name=body.name,
        email=body.email,
        phone_number=body.phone_number,
        address=body.address,
        password=body.password
    )
    return jsonify({"message": "Admin registered successfully", "data": result}), 201


@admin_bp.post('/login')
def login_admin(body: LoginRequest):
    result = current_app.users.authenticate(UserRole.ADMIN, body.email, body.password)
    return jsonify({"message": "Login successful", "data": result})


@admin_bp.post('/create-moderator')
@require_auth
def create_moderator(body: RegisterUserRequest):
    """Create a moderator account."""
    moderator = current_app.users.create_moderator(
        current_actor(),
        name=body.name,
        email=body.email,
        phone_number=body.phone_number,
        address=body.address,
        password=body.password
    )
    return jsonify({"message": "Moderator created successfully", "data": moderator}), 201


@admin_bp.get('/users')
@require_auth
def list_users(query: UserListQuery):
    """List accounts newest first, optionally by role."""
    users = current_app.users.list_users(current_actor(), role=query.role)
    return jsonify({"message": "Users retrieved successfully", "data": users})


@admin_bp.put('/users/<ref_id>/role')
@require_auth
def update_user_role(path: UserRefPath, body: UpdateRoleRequest):
    """
    Change a user's role to user or moderator.

    Admins cannot change their own role or the role of another admin.
    """
    result = current_app.users.change_role(current_actor(), path.ref_id, body.new_role)
    return jsonify({"message": "User role updated successfully", "data": result})


@admin_bp.delete('/users/<ref_id>')
@require_auth
def delete_user(path: UserRefPath):
    current_app.users.delete_user(current_actor(), path.ref_id)
    return jsonify({"message": "User deleted successfully", "data": {"ref_id": path.ref_id}})


@admin_bp.get('/logs')
@require_auth
def activity_logs(query: ActivityLogQuery):
    """Most recent activity entries with actor name and role, at most ``limit``."""
    current_app.access_policy.require(Operation.VIEW_ACTIVITY_LOGS, current_actor())

    filters = ActivityFilters(
        actor_ref_id=query.actor_ref_id,
        action=query.action,
        start_date=query.start_date,
        end_date=query.end_date
    )
    entries = current_app.activity_logger.query_with_actors(filters, limit=query.limit)
    logger.debug(f"Activity log query returned {len(entries)} entries")
    return jsonify({
        "message": "Activity logs retrieved successfully",
        "data": entries
    })
