# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for reference id allocation.
"""

import re
import pytest

from relief_api.domain.errors import ConflictError
from relief_api.domain.identity import allocate_ref_id, generate_ref_id, resolve_ref_id
from relief_api.services.persistence import USER_REFS


def test_generated_ids_are_eight_hex_characters():
    for _ in range(20):
        assert re.fullmatch(r"[0-9a-f]{8}", generate_ref_id())


def test_collision_regenerates(persistence):
    """Test a taken candidate is skipped in favor of the next one."""
    persistence.run_transaction(lambda txn: allocate_ref_id(txn, generator=lambda: "aaaaaaaa"))

    candidates = iter(["aaaaaaaa", "aaaaaaaa", "bbbbbbbb"])
    ref_id = persistence.run_transaction(
        lambda txn: allocate_ref_id(txn, generator=lambda: next(candidates))
    )

    assert ref_id == "bbbbbbbb"
    assert persistence.read(lambda txn: txn.count(USER_REFS)) == 2


def test_gives_up_after_max_attempts(persistence):
    persistence.run_transaction(lambda txn: allocate_ref_id(txn, generator=lambda: "aaaaaaaa"))

    with pytest.raises(ConflictError):
        persistence.run_transaction(
            lambda txn: allocate_ref_id(txn, generator=lambda: "aaaaaaaa", max_attempts=3)
        )


def test_deleted_user_ref_id_is_never_reissued(users, admin, requester, persistence):
    """Test the reservation outlives the account."""
    users.delete_user(admin, requester.actor_ref)

    assert persistence.read(lambda txn: resolve_ref_id(txn, requester.actor_ref)) is None
    assert persistence.read(
        lambda txn: txn.find_one(USER_REFS, {"ref_id": requester.actor_ref})
    ) is not None

    with pytest.raises(ConflictError):
        persistence.run_transaction(
            lambda txn: allocate_ref_id(txn, generator=lambda: requester.actor_ref, max_attempts=2)
        )
