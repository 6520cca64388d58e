# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Acceptance test fixtures: a full application over the in-memory store.
"""

import os
import pytest

os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'

from relief_api.app import create_app
from relief_api.services.auth import AuthService
from relief_api.services.memory import MemoryPersistence


@pytest.fixture
def test_client():
    persistence = MemoryPersistence()
    app = create_app(
        persistence=persistence,
        auth_service=AuthService(persistence, bcrypt_rounds=4)
    )
    app.config['TESTING'] = True
    return app.test_client()
