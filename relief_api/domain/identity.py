# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Opaque user reference ids.

Users are addressed externally by 8 lowercase hex characters instead of
their store id. Every id ever handed out is kept in ``user_refs`` so that a
deleted user's id is never reissued.
"""

import logging
import secrets
from typing import Callable, Optional

from ..models.base import utc_now, generate_object_id
from ..models.entities import User
from ..services.persistence import Transaction, USERS, USER_REFS
from .errors import ConflictError

logger = logging.getLogger(__name__)

REF_ID_BYTES = 4
MAX_ALLOCATION_ATTEMPTS = 32


def generate_ref_id() -> str:
    """Random 8-character hex reference id."""
    return secrets.token_hex(REF_ID_BYTES)


def allocate_ref_id(txn: Transaction, generator: Callable[[], str] = generate_ref_id,
                    max_attempts: int = MAX_ALLOCATION_ATTEMPTS) -> str:
    """
    Reserve a fresh reference id inside the caller's transaction.

    Args:
        txn: Active transaction
        generator: Candidate id source
        max_attempts: Consecutive collisions tolerated before giving up

    Returns:
        The reserved reference id

    Raises:
        ConflictError: If every candidate collided
    """
    for attempt in range(1, max_attempts + 1):
        candidate = generator()
        if txn.find_one(USER_REFS, {"ref_id": candidate}) is None:
            txn.insert(USER_REFS, {
                "id": generate_object_id(),
                "ref_id": candidate,
                "created_at": utc_now()
            })
            return candidate

        logger.debug("Reference id collision, regenerating", extra={"attempt": attempt})

    logger.error("Reference id space exhausted", extra={"attempts": max_attempts})
    raise ConflictError("Could not allocate a unique reference id")


def resolve_ref_id(txn: Transaction, ref_id: str) -> Optional[User]:
    """Load the user behind a reference id, or None if it is unknown or deleted."""
    document = txn.find_one(USERS, {"ref_id": ref_id})
    return User.from_document(document) if document else None
