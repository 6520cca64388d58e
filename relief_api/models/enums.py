# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the relief coordination platform.
"""

from enum import Enum


class UserRole(str, Enum):
    """Account role enumeration."""
    USER = "user"
    MODERATOR = "moderator"
    ADMIN = "admin"


class HelpRequestStatus(str, Enum):
    """Overall help request status."""
    ACTIVE = "active"
    COMPLETED = "completed"


class HelpRequestPriority(str, Enum):
    """Help request priority levels."""
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class LogisticStatus(str, Enum):
    """Physical handling stage of an accepted support request."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    RECEIVED = "received"
    DELIVERED = "delivered"
    COMPLETED = "completed"


class SupportRequestStatus(str, Enum):
    """Support request workflow status enumeration."""
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    COMPLETED = "completed"


class ReviewAction(str, Enum):
    """Moderator decision on a pending support request."""
    ACCEPT = "accept"
    REJECT = "reject"
