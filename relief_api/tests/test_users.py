# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the user directory.
"""

import pytest

from relief_api.domain.errors import (
    ConflictError, NotFound, Unauthenticated, Unauthorized, ValidationError
)
from relief_api.services.persistence import USERS


class TestRegistration:
    """Test account creation."""

    def test_register_issues_tokens(self, users):
        result = users.register(
            name="Rita", email="Rita@Example.com", phone_number="+55119", address=None,
            password="long-enough"
        )

        assert result["user"]["role"] == "user"
        assert result["user"]["email"] == "rita@example.com"
        assert len(result["user"]["ref_id"]) == 8
        assert "password_hash" not in result["user"]
        assert result["access_token"]
        assert result["token_type"] == "Bearer"

    def test_duplicate_email_or_phone(self, users, requester):
        with pytest.raises(ConflictError):
            users.register(name="Other", email="rita@example.com", phone_number="+5500",
                           address=None, password="long-enough")

        with pytest.raises(ConflictError):
            users.register(name="Other", email="other@example.com", phone_number="+5511900000003",
                           address=None, password="long-enough")

    def test_short_password(self, users):
        with pytest.raises(ValidationError):
            users.register(name="Rita", email="rita@example.com", phone_number="1",
                           address=None, password="short")

    def test_invalid_email(self, users):
        with pytest.raises(ValidationError):
            users.register(name="Rita", email="rita", phone_number="1",
                           address=None, password="long-enough")


class TestAdminBootstrap:
    """Test the single admin bootstrap."""

    def test_only_once(self, users, admin):
        assert admin.role == "admin"

        with pytest.raises(Unauthorized, match="Admin already exists"):
            users.bootstrap_admin(name="Second", email="second@relief.org", phone_number="+5599",
                                  address=None, password="second-pass")

    def test_flag_blocks_after_admin_removed(self, users, admin, persistence):
        """Test the bootstrap stays closed even if the admin row disappears."""
        persistence.run_transaction(
            lambda txn: txn.delete(USERS, txn.find_one(USERS, {"ref_id": admin.actor_ref})["id"])
        )

        with pytest.raises(Unauthorized):
            users.bootstrap_admin(name="Second", email="second@relief.org", phone_number="+5599",
                                  address=None, password="second-pass")

    def test_moderator_creation_is_admin_only(self, users, moderator):
        assert moderator.role == "moderator"

        with pytest.raises(Unauthorized):
            users.create_moderator(moderator, name="M2", email="m2@relief.org", phone_number="+5598",
                                   address=None, password="m2-password")


class TestAuthentication:
    """Test login per role."""

    def test_user_logs_in_by_phone(self, users, requester):
        result = users.authenticate("user", "+5511900000003", "rita-pass-1")

        assert result["user"]["ref_id"] == requester.actor_ref

    def test_staff_logs_in_by_email(self, users, moderator):
        result = users.authenticate("moderator", "MODERATOR@relief.org", "moderator-pass-1")

        assert result["user"]["role"] == "moderator"

    def test_wrong_password(self, users, requester):
        with pytest.raises(Unauthenticated, match="Invalid credentials"):
            users.authenticate("user", "+5511900000003", "wrong-password")

    def test_role_must_match(self, users, moderator):
        with pytest.raises(Unauthenticated):
            users.authenticate("admin", "moderator@relief.org", "moderator-pass-1")

    def test_login_is_recorded(self, users, requester, activity_logger):
        users.authenticate("user", "+5511900000003", "rita-pass-1")

        assert activity_logger.query()[0].action == "user.login"


class TestUserManagement:
    """Test admin user management."""

    def test_list_users(self, users, admin, moderator, requester):
        everyone = users.list_users(admin)
        moderators = users.list_users(admin, role="moderator")

        assert {user["ref_id"] for user in everyone} == {
            admin.actor_ref, moderator.actor_ref, requester.actor_ref
        }
        assert [user["ref_id"] for user in moderators] == [moderator.actor_ref]
        assert all("password_hash" not in user for user in everyone)

    def test_change_role(self, users, admin, requester):
        result = users.change_role(admin, requester.actor_ref, "moderator")

        assert result == {
            "ref_id": requester.actor_ref,
            "previous_role": "user",
            "new_role": "moderator"
        }
        assert users.list_users(admin, role="moderator")[0]["ref_id"] == requester.actor_ref

    def test_cannot_promote_to_admin(self, users, admin, requester):
        with pytest.raises(ValidationError):
            users.change_role(admin, requester.actor_ref, "admin")

    def test_cannot_change_own_role(self, users, admin):
        with pytest.raises(Unauthorized, match="Cannot change your own role"):
            users.change_role(admin, admin.actor_ref, "user")

    def test_cannot_delete_self(self, users, admin):
        with pytest.raises(Unauthorized, match="Cannot delete your own account"):
            users.delete_user(admin, admin.actor_ref)

    def test_delete_user(self, users, admin, requester):
        users.delete_user(admin, requester.actor_ref)

        with pytest.raises(NotFound):
            users.delete_user(admin, requester.actor_ref)

    def test_moderator_cannot_manage_users(self, users, moderator, requester):
        with pytest.raises(Unauthorized):
            users.change_role(moderator, requester.actor_ref, "moderator")
