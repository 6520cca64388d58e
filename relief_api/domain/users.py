# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
User directory: registration, login and admin user management.

Users log in with their phone number; moderators and admins log in with
their email. Exactly one admin can be bootstrapped, and further staff is
created by that admin.
"""

import logging
from typing import Any, Dict, List, Optional, Union

import pydantic
from opentelemetry import trace

from ..models.base import utc_now
from ..models.entities import ActorContext, User
from ..models.enums import UserRole
from ..services.audit import ActivityLogger
from ..services.auth import AuthService
from ..services.persistence import (
    Persistence,
    Transaction,
    USERS,
    SYSTEM_FLAGS,
    NEWEST_FIRST
)
from .authorization import AccessPolicy, Operation, UserAction
from .errors import ConflictError, NotFound, Unauthenticated, Unauthorized, ValidationError
from .identity import allocate_ref_id, resolve_ref_id

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

ADMIN_BOOTSTRAP_FLAG = "admin_bootstrapped"
ASSIGNABLE_ROLES = frozenset({UserRole.USER.value, UserRole.MODERATOR.value})


class UserDirectory:
    """Account lifecycle on top of the persistence and auth services."""

    def __init__(self, persistence: Persistence, auth_service: AuthService,
                 activity_logger: ActivityLogger, policy: Optional[AccessPolicy] = None):
        self.persistence = persistence
        self.auth_service = auth_service
        self.activity_logger = activity_logger
        self.policy = policy or AccessPolicy()

    def _build_user(self, role: UserRole, name: str, email: str, phone_number: str,
                    address: Optional[str], password: str) -> Dict[str, Any]:
        """Validated user fields, minus the reference id allocated later."""
        if not password or len(password) < 8:
            raise ValidationError("Password must be at least 8 characters")
        fields = {
            "name": name,
            "email": email,
            "phone_number": phone_number,
            "address": address,
            "password_hash": self.auth_service.hash_password(password),
            "role": role
        }
        try:
            # placeholder ref id, replaced inside the transaction
            User(ref_id="00000000", **fields)
        except pydantic.ValidationError as e:
            raise ValidationError(
                "Invalid user fields",
                validation_errors=[err["msg"] for err in e.errors()]
            ) from e
        return fields

    def _insert_user(self, txn: Transaction, fields: Dict[str, Any]) -> User:
        email = fields["email"].lower()
        if txn.find_one(USERS, {"email": email}) or txn.find_one(USERS, {"phone_number": fields["phone_number"]}):
            raise ConflictError("Email or phone number already exists")

        user = User(ref_id=allocate_ref_id(txn), **fields)
        txn.insert(USERS, user.to_document())
        return user

    def register(self, name: str, email: str, phone_number: str,
                 address: Optional[str], password: str) -> Dict[str, Any]:
        """
        Create a ``user`` account.

        Returns:
            Public user fields plus freshly issued tokens

        Raises:
            ValidationError: On malformed fields or a short password
            ConflictError: If the email or phone number is taken
        """
        with tracer.start_as_current_span("users.register"):
            fields = self._build_user(UserRole.USER, name, email, phone_number, address, password)
            user = self.persistence.run_transaction(lambda txn: self._insert_user(txn, fields))

        logger.info("User registered", extra={"ref_id": user.ref_id})
        self.activity_logger.record(user.ref_id, "user.registered", {"role": user.role})
        return {"user": user.public_view(), **self.auth_service.generate_tokens(user)}

    def bootstrap_admin(self, name: str, email: str, phone_number: str,
                        address: Optional[str], password: str) -> Dict[str, Any]:
        """
        Create the single admin account.

        Raises:
            Unauthorized: If an admin has ever been bootstrapped
        """
        with tracer.start_as_current_span("users.bootstrap_admin"):
            fields = self._build_user(UserRole.ADMIN, name, email, phone_number, address, password)

            def body(txn: Transaction) -> User:
                if txn.count(USERS, {"role": UserRole.ADMIN.value}) > 0:
                    raise Unauthorized("Admin already exists")
                try:
                    txn.insert(SYSTEM_FLAGS, {"name": ADMIN_BOOTSTRAP_FLAG, "created_at": utc_now()})
                except ConflictError:
                    raise Unauthorized("Admin already exists")
                return self._insert_user(txn, fields)

            user = self.persistence.run_transaction(body)

        logger.warning("Admin account bootstrapped", extra={"ref_id": user.ref_id})
        self.activity_logger.record(user.ref_id, "admin.bootstrapped", {})
        return {"user": user.public_view(), **self.auth_service.generate_tokens(user)}

    def create_moderator(self, actor: Optional[ActorContext], name: str, email: str,
                         phone_number: str, address: Optional[str], password: str) -> Dict[str, Any]:
        """Admin-only creation of a moderator account."""
        self.policy.require(Operation.CREATE_MODERATOR, actor)

        with tracer.start_as_current_span("users.create_moderator"):
            fields = self._build_user(UserRole.MODERATOR, name, email, phone_number, address, password)
            user = self.persistence.run_transaction(lambda txn: self._insert_user(txn, fields))

        logger.info("Moderator created", extra={"ref_id": user.ref_id, "created_by": actor.actor_ref})
        self.activity_logger.record(actor.actor_ref, "moderator.created", {"ref_id": user.ref_id})
        return user.public_view()

    def authenticate(self, role: Union[UserRole, str], identifier: str, password: str) -> Dict[str, Any]:
        """
        Log in with phone number (users) or email (moderators and admins).

        Returns:
            Public user fields plus issued tokens

        Raises:
            Unauthenticated: On unknown account or wrong password
        """
        role = getattr(role, "value", role)
        with tracer.start_as_current_span("users.authenticate", attributes={"user.role": role}) as span:
            if not identifier or not password:
                raise Unauthenticated("Invalid credentials")

            if role == UserRole.USER.value:
                query = {"phone_number": identifier, "role": role}
            else:
                query = {"email": identifier.lower(), "role": role}

            document = self.persistence.read(lambda txn: txn.find_one(USERS, query))
            if document is None or not self.auth_service.verify_password(password, document["password_hash"]):
                span.set_attribute("auth.login_result", "failed")
                logger.warning("Login failed", extra={"role": role})
                raise Unauthenticated("Invalid credentials")

            user = User.from_document(document)
            span.set_attribute("auth.login_result", "success")

        self.activity_logger.record(user.ref_id, f"{role}.login", {})
        return {"user": user.public_view(), **self.auth_service.generate_tokens(user)}

    def list_users(self, actor: Optional[ActorContext], role: Optional[str] = None) -> List[Dict[str, Any]]:
        """All accounts newest first, without password hashes."""
        self.policy.require(Operation.MANAGE_USERS, actor)
        filters = {"role": getattr(role, "value", role)} if role else {}
        return self.persistence.read(
            lambda txn: [User.from_document(doc).public_view()
                         for doc in txn.find(USERS, filters, sort=NEWEST_FIRST)]
        )

    def _load_target(self, txn: Transaction, ref_id: str) -> User:
        user = resolve_ref_id(txn, ref_id)
        if user is None:
            raise NotFound("User not found")
        return user

    def change_role(self, actor: Optional[ActorContext], target_ref_id: str,
                    new_role: Union[UserRole, str]) -> Dict[str, Any]:
        """
        Switch a non-admin account between ``user`` and ``moderator``.

        Raises:
            ValidationError: If ``new_role`` is not user or moderator
            NotFound: If the target does not exist
            Unauthorized: On a self change or an admin target
        """
        self.policy.require(Operation.MANAGE_USERS, actor)
        new_role = getattr(new_role, "value", new_role)
        if new_role not in ASSIGNABLE_ROLES:
            raise ValidationError('Invalid role. Must be "user" or "moderator"')

        def body(txn: Transaction) -> Dict[str, Any]:
            target = self._load_target(txn, target_ref_id)
            self.policy.check_user_management(actor, target, UserAction.CHANGE_ROLE)
            txn.update(USERS, target.id, changes={"role": new_role})
            return {"ref_id": target.ref_id, "previous_role": target.role, "new_role": new_role}

        with tracer.start_as_current_span("users.change_role"):
            result = self.persistence.run_transaction(body)

        logger.info("User role updated", extra={**result, "changed_by": actor.actor_ref})
        self.activity_logger.record(actor.actor_ref, "user.role_changed", result)
        return result

    def delete_user(self, actor: Optional[ActorContext], target_ref_id: str) -> None:
        """Delete an account; its reference id stays reserved."""
        self.policy.require(Operation.MANAGE_USERS, actor)

        def body(txn: Transaction) -> User:
            target = self._load_target(txn, target_ref_id)
            self.policy.check_user_management(actor, target, UserAction.DELETE)
            txn.delete(USERS, target.id)
            return target

        with tracer.start_as_current_span("users.delete"):
            target = self.persistence.run_transaction(body)

        logger.info("User deleted", extra={"ref_id": target.ref_id, "deleted_by": actor.actor_ref})
        self.activity_logger.record(actor.actor_ref, "user.deleted", {
            "ref_id": target.ref_id,
            "role": target.role
        })
