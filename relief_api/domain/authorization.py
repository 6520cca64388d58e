# SPDX-License-Identifier: Apache-2.0

"""
Authorization domain logic for role-based access control.

A single table maps every protected operation to the roles allowed to run
it. User management adds self-protection rules that hold regardless of
role.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from ..models.entities import ActorContext, User
from ..models.enums import UserRole
from .errors import Unauthenticated, Unauthorized


class Operation(str, Enum):
    """Protected operations."""
    CREATE_HELP_REQUEST = "create_help_request"
    LIST_OWN_HELP_REQUESTS = "list_own_help_requests"
    CREATE_SUPPORT_REQUEST = "create_support_request"
    LIST_SUPPORT_REQUESTS = "list_support_requests"
    REVIEW_SUPPORT_REQUEST = "review_support_request"
    ADVANCE_LOGISTICS = "advance_logistics"
    VIEW_LOGISTICS_HISTORY = "view_logistics_history"
    MANAGE_USERS = "manage_users"
    CREATE_MODERATOR = "create_moderator"
    VIEW_ACTIVITY_LOGS = "view_activity_logs"


class Decision(str, Enum):
    AUTHORIZED = "authorized"
    UNAUTHORIZED = "unauthorized"
    UNAUTHENTICATED = "unauthenticated"


class UserAction(str, Enum):
    """Actions covered by the user management self-protection rules."""
    CHANGE_ROLE = "change_role"
    DELETE = "delete"


_ANY_ROLE = frozenset({UserRole.USER.value, UserRole.MODERATOR.value, UserRole.ADMIN.value})
_STAFF = frozenset({UserRole.MODERATOR.value, UserRole.ADMIN.value})
_ADMIN = frozenset({UserRole.ADMIN.value})

PERMISSIONS: Dict[Operation, FrozenSet[str]] = {
    Operation.CREATE_HELP_REQUEST: _ANY_ROLE,
    Operation.LIST_OWN_HELP_REQUESTS: _ANY_ROLE,
    Operation.CREATE_SUPPORT_REQUEST: frozenset({UserRole.USER.value}),
    Operation.LIST_SUPPORT_REQUESTS: _STAFF,
    Operation.REVIEW_SUPPORT_REQUEST: _STAFF,
    Operation.ADVANCE_LOGISTICS: _STAFF,
    Operation.VIEW_LOGISTICS_HISTORY: _STAFF,
    Operation.MANAGE_USERS: _ADMIN,
    Operation.CREATE_MODERATOR: _ADMIN,
    Operation.VIEW_ACTIVITY_LOGS: _ADMIN,
}


@dataclass
class AuthorizationResult:
    """Result of an authorization check."""
    decision: Decision
    reason: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.decision == Decision.AUTHORIZED


class AccessPolicy:
    """Role table lookups plus user management guards."""

    def __init__(self, permissions: Dict[Operation, FrozenSet[str]] = None):
        self.permissions = permissions or PERMISSIONS

    def evaluate(self, operation: Operation, actor: Optional[ActorContext]) -> AuthorizationResult:
        """
        Decide whether an actor may perform an operation.

        Args:
            operation: Operation being attempted
            actor: Authenticated actor, or None for anonymous callers

        Returns:
            AuthorizationResult with the decision and a reason when denied
        """
        if actor is None:
            return AuthorizationResult(Decision.UNAUTHENTICATED, "Authentication required")

        allowed_roles = self.permissions.get(operation, frozenset())
        if actor.has_role(*allowed_roles):
            return AuthorizationResult(Decision.AUTHORIZED)

        return AuthorizationResult(
            Decision.UNAUTHORIZED,
            f"Role '{actor.role}' may not perform {operation.value}"
        )

    def require(self, operation: Operation, actor: Optional[ActorContext]) -> ActorContext:
        """Raise unless the actor may perform the operation; returns the actor."""
        result = self.evaluate(operation, actor)
        if result.decision == Decision.UNAUTHENTICATED:
            raise Unauthenticated(result.reason)
        if result.decision == Decision.UNAUTHORIZED:
            raise Unauthorized(result.reason)
        return actor

    def check_user_management(self, actor: ActorContext, target: User, action: UserAction) -> None:
        """
        Enforce the rules an admin cannot bypass.

        Nobody may change their own role, delete their own account, or
        modify or delete an admin.

        Raises:
            Unauthorized: If any rule is violated
        """
        if target.ref_id == actor.actor_ref:
            if action == UserAction.CHANGE_ROLE:
                raise Unauthorized("Cannot change your own role")
            raise Unauthorized("Cannot delete your own account")

        if target.is_admin():
            if action == UserAction.CHANGE_ROLE:
                raise Unauthorized("Cannot modify another admin")
            raise Unauthorized("Cannot delete another admin")
