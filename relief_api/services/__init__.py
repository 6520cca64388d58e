# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Persistence, authentication and activity logging.
"""

from .persistence import Persistence, Transaction
from .memory import MemoryPersistence
from .mongodb import MongoDBPersistence
from .audit import ActivityLogger, ActivityFilters
from .auth import AuthProvider, AuthService

__all__ = [
    "Persistence",
    "Transaction",
    "MemoryPersistence",
    "MongoDBPersistence",
    "ActivityLogger",
    "ActivityFilters",
    "AuthProvider",
    "AuthService"
]
