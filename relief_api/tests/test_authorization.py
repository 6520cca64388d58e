# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the role-based access policy.
"""

import pytest

from relief_api.domain.authorization import (
    AccessPolicy, Decision, Operation, UserAction, PERMISSIONS
)
from relief_api.domain.errors import Unauthenticated, Unauthorized
from relief_api.models.entities import ActorContext, User
from relief_api.models.enums import UserRole


def make_actor(role, ref_id="a1b2c3d4"):
    return ActorContext(actor_ref=ref_id, role=role)


def make_user(role, ref_id):
    return User(
        ref_id=ref_id,
        name="Target",
        email=f"{ref_id}@example.com",
        phone_number=ref_id,
        password_hash="x",
        role=role
    )


class TestAccessPolicy:
    """Test the operation to role table."""

    def setup_method(self):
        self.policy = AccessPolicy()

    def test_every_operation_has_an_entry(self):
        assert set(PERMISSIONS) == set(Operation)

    def test_anonymous_is_unauthenticated(self):
        result = self.policy.evaluate(Operation.CREATE_HELP_REQUEST, None)

        assert result.decision == Decision.UNAUTHENTICATED
        assert not result.allowed
        with pytest.raises(Unauthenticated):
            self.policy.require(Operation.CREATE_HELP_REQUEST, None)

    @pytest.mark.parametrize("role", ["user", "moderator", "admin"])
    def test_any_role_posts_help_requests(self, role):
        assert self.policy.evaluate(Operation.CREATE_HELP_REQUEST, make_actor(role)).allowed

    def test_only_users_offer_support(self):
        assert self.policy.evaluate(Operation.CREATE_SUPPORT_REQUEST, make_actor("user")).allowed

        result = self.policy.evaluate(Operation.CREATE_SUPPORT_REQUEST, make_actor("moderator"))
        assert result.decision == Decision.UNAUTHORIZED
        assert "moderator" in result.reason

    @pytest.mark.parametrize("operation", [
        Operation.REVIEW_SUPPORT_REQUEST,
        Operation.ADVANCE_LOGISTICS,
        Operation.VIEW_LOGISTICS_HISTORY
    ])
    def test_staff_operations(self, operation):
        assert self.policy.evaluate(operation, make_actor("moderator")).allowed
        assert self.policy.evaluate(operation, make_actor("admin")).allowed
        with pytest.raises(Unauthorized):
            self.policy.require(operation, make_actor("user"))

    def test_admin_only_operations(self):
        for operation in (Operation.MANAGE_USERS, Operation.CREATE_MODERATOR, Operation.VIEW_ACTIVITY_LOGS):
            assert self.policy.require(operation, make_actor("admin")).role == "admin"
            with pytest.raises(Unauthorized):
                self.policy.require(operation, make_actor("moderator"))


class TestUserManagementGuards:
    """Test rules no role can bypass."""

    def setup_method(self):
        self.policy = AccessPolicy()

    @pytest.mark.parametrize("role", [UserRole.USER, UserRole.MODERATOR, UserRole.ADMIN])
    def test_cannot_change_own_role(self, role):
        actor = make_actor(role, "aaaaaaaa")

        with pytest.raises(Unauthorized) as exc_info:
            self.policy.check_user_management(actor, make_user(role, "aaaaaaaa"), UserAction.CHANGE_ROLE)
        assert exc_info.value.message == "Cannot change your own role"

    @pytest.mark.parametrize("role", [UserRole.USER, UserRole.MODERATOR, UserRole.ADMIN])
    def test_cannot_delete_self(self, role):
        actor = make_actor(role, "aaaaaaaa")

        with pytest.raises(Unauthorized) as exc_info:
            self.policy.check_user_management(actor, make_user(role, "aaaaaaaa"), UserAction.DELETE)
        assert exc_info.value.message == "Cannot delete your own account"

    def test_cannot_touch_another_admin(self):
        actor = make_actor(UserRole.ADMIN, "aaaaaaaa")
        other_admin = make_user(UserRole.ADMIN, "bbbbbbbb")

        with pytest.raises(Unauthorized, match="Cannot modify another admin"):
            self.policy.check_user_management(actor, other_admin, UserAction.CHANGE_ROLE)
        with pytest.raises(Unauthorized, match="Cannot delete another admin"):
            self.policy.check_user_management(actor, other_admin, UserAction.DELETE)

    def test_admin_may_manage_moderator(self):
        actor = make_actor(UserRole.ADMIN, "aaaaaaaa")

        self.policy.check_user_management(actor, make_user(UserRole.MODERATOR, "bbbbbbbb"), UserAction.DELETE)
