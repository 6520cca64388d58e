# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the relief platform.
"""

# Base models
from .base import BaseEntity, generate_object_id, utc_now, ensure_utc

# Enumerations
from .enums import (
    UserRole,
    HelpRequestStatus,
    HelpRequestPriority,
    LogisticStatus,
    SupportRequestStatus,
    ReviewAction
)

# Core entities
from .entities import (
    User,
    HelpRequest,
    RequestItem,
    SupportRequest,
    SupportRequestItem,
    LogisticsTrackingEntry,
    ActivityLogEntry,
    ActorContext
)

# Request models
from .requests import (
    HelpRequestItemInput,
    OfferItemInput,
    CreateHelpRequestRequest,
    CreateSupportRequestRequest,
    ReviewSupportRequestRequest,
    AdvanceLogisticsRequest,
    RegisterUserRequest,
    LoginRequest,
    UpdateRoleRequest,
    RefreshTokenRequest,
    HelpRequestListQuery,
    SupportRequestListQuery,
    LogisticsHistoryQuery,
    UserListQuery,
    ActivityLogQuery,
    HelpRequestPath,
    SupportRequestPath,
    UserRefPath
)

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    "utc_now",
    "ensure_utc",

    # Enumerations
    "UserRole",
    "HelpRequestStatus",
    "HelpRequestPriority",
    "LogisticStatus",
    "SupportRequestStatus",
    "ReviewAction",

    # Core entities
    "User",
    "HelpRequest",
    "RequestItem",
    "SupportRequest",
    "SupportRequestItem",
    "LogisticsTrackingEntry",
    "ActivityLogEntry",
    "ActorContext",

    # Request models
    "HelpRequestItemInput",
    "OfferItemInput",
    "CreateHelpRequestRequest",
    "CreateSupportRequestRequest",
    "ReviewSupportRequestRequest",
    "AdvanceLogisticsRequest",
    "RegisterUserRequest",
    "LoginRequest",
    "UpdateRoleRequest",
    "RefreshTokenRequest",
    "HelpRequestListQuery",
    "SupportRequestListQuery",
    "LogisticsHistoryQuery",
    "UserListQuery",
    "ActivityLogQuery",
    "HelpRequestPath",
    "SupportRequestPath",
    "UserRefPath"
]
