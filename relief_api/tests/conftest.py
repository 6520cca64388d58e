# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from typing import Dict, Any

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['PERSISTENCE_BACKEND'] = 'memory'

from relief_api.app import create_app
from relief_api.domain.help_requests import HelpRequestAggregate
from relief_api.domain.logistics import LogisticsPipeline
from relief_api.domain.support_requests import SupportRequestWorkflow
from relief_api.domain.users import UserDirectory
from relief_api.models.entities import ActorContext
from relief_api.services.audit import ActivityLogger
from relief_api.services.auth import AuthService, generate_dev_key_pair
from relief_api.services.memory import MemoryPersistence

TEST_BCRYPT_ROUNDS = 4


def actor_from(user: Dict[str, Any]) -> ActorContext:
    """Actor for a public user view."""
    return ActorContext(
        actor_ref=user["ref_id"],
        role=user["role"],
        name=user["name"],
        email=user["email"]
    )


@pytest.fixture(scope="session")
def jwt_key_pair():
    """One RSA key pair for the whole run."""
    return generate_dev_key_pair()


@pytest.fixture
def persistence():
    return MemoryPersistence()


@pytest.fixture
def activity_logger(persistence):
    return ActivityLogger(persistence)


@pytest.fixture
def auth_service(persistence, jwt_key_pair):
    private_key, public_key = jwt_key_pair
    return AuthService(
        persistence,
        private_key=private_key,
        public_key=public_key,
        bcrypt_rounds=TEST_BCRYPT_ROUNDS
    )


@pytest.fixture
def users(persistence, auth_service, activity_logger):
    return UserDirectory(persistence, auth_service, activity_logger)


@pytest.fixture
def help_requests(persistence, activity_logger):
    return HelpRequestAggregate(persistence, activity_logger)


@pytest.fixture
def support_requests(persistence, activity_logger):
    return SupportRequestWorkflow(persistence, activity_logger)


@pytest.fixture
def logistics(persistence, activity_logger):
    return LogisticsPipeline(persistence, activity_logger)


@pytest.fixture
def admin(users):
    """The bootstrapped admin."""
    result = users.bootstrap_admin(
        name="Ana Admin",
        email="admin@relief.org",
        phone_number="+5511900000001",
        address=None,
        password="admin-pass-1"
    )
    return actor_from(result["user"])


@pytest.fixture
def moderator(users, admin):
    view = users.create_moderator(
        admin,
        name="Mauro Moderator",
        email="moderator@relief.org",
        phone_number="+5511900000002",
        address=None,
        password="moderator-pass-1"
    )
    return actor_from(view)


@pytest.fixture
def requester(users):
    """User posting help requests."""
    result = users.register(
        name="Rita Requester",
        email="rita@example.com",
        phone_number="+5511900000003",
        address="Rua das Flores 10",
        password="rita-pass-1"
    )
    return actor_from(result["user"])


@pytest.fixture
def donor(users):
    """User offering support."""
    result = users.register(
        name="Diego Donor",
        email="diego@example.com",
        phone_number="+5511900000004",
        address=None,
        password="diego-pass-1"
    )
    return actor_from(result["user"])


@pytest.fixture
def shelter_request(help_requests, requester):
    """Active help request needing 10 water and 3 of 5 blankets."""
    return help_requests.create(
        requester,
        title="Flooded shelter",
        description="Families sheltered at the school gym",
        address="Escola Municipal, Rua Central 1",
        items=[
            {"name": "Water", "qty": 10},
            {"name": "Blankets", "qty": 5, "need_qty": 3}
        ],
        priority="high"
    )


@pytest.fixture
def app(persistence, auth_service, activity_logger):
    application = create_app(
        persistence=persistence,
        auth_service=auth_service,
        activity_logger=activity_logger
    )
    application.config['TESTING'] = True
    return application


@pytest.fixture
def client(app):
    return app.test_client()
