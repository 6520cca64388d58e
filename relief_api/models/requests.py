# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints and workflow inputs.
"""

import re
from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator, model_validator
from .entities import EMAIL_PATTERN
from .enums import (
    UserRole,
    HelpRequestPriority,
    HelpRequestStatus,
    LogisticStatus,
    SupportRequestStatus,
    ReviewAction
)


class HelpRequestItemInput(BaseModel):
    """One line of a help request submission."""

    name: str = Field(..., min_length=1, max_length=200, description="Item name")
    qty: int = Field(..., gt=0, description="Requested quantity")
    need_qty: Optional[int] = Field(None, ge=0, description="Outstanding quantity, defaults to qty")

    @model_validator(mode='after')
    def default_need_to_qty(self):
        if self.need_qty is None:
            self.need_qty = self.qty
        return self


class OfferItemInput(BaseModel):
    """One line of a support request submission."""

    request_item_id: str = Field(..., min_length=1, description="Request item being covered")
    quantity_offered: int = Field(..., description="Offered quantity")
    notes: Optional[str] = Field(None, max_length=1000, description="Line notes")


class CreateHelpRequestRequest(BaseModel):
    """Request model for posting a help request."""

    title: str = Field(..., description="Help request title")
    description: str = Field(..., description="Help request description")
    address: str = Field(..., description="Delivery address")
    items: List[HelpRequestItemInput] = Field(..., description="Needed items")
    priority: Optional[HelpRequestPriority] = Field(None, description="Priority, defaults to medium")


class CreateSupportRequestRequest(BaseModel):
    """Request model for offering support against a help request."""

    help_request_id: str = Field(..., min_length=1, description="Help request being supported")
    items: List[OfferItemInput] = Field(..., description="Offered items")
    notes: Optional[str] = Field(None, max_length=2000, description="Donor notes")


class ReviewSupportRequestRequest(BaseModel):
    """Request model for accepting or rejecting a support request."""

    action: ReviewAction = Field(..., description="accept or reject")
    notes: Optional[str] = Field(None, max_length=2000, description="Reviewer notes")


class AdvanceLogisticsRequest(BaseModel):
    """Request model for moving a support request through logistics."""

    new_status: LogisticStatus = Field(..., description="Next logistics status")
    notes: Optional[str] = Field(None, max_length=2000, description="Handler notes")


class RegisterUserRequest(BaseModel):
    """Request model for creating an account."""

    name: str = Field(..., min_length=1, max_length=200, description="User full name")
    email: str = Field(..., description="User email address")
    phone_number: str = Field(..., min_length=1, max_length=32, description="User phone number")
    address: Optional[str] = Field(None, max_length=500, description="Postal address")
    password: str = Field(..., min_length=8, description="User password")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()


class LoginRequest(BaseModel):
    """Request model for logging in; users log in by phone, staff by email."""

    email: Optional[str] = Field(None, description="Email for moderators and admins")
    phone_number: Optional[str] = Field(None, description="Phone number for users")
    password: str = Field(..., min_length=1, description="Password")


class UpdateRoleRequest(BaseModel):
    """Request model for changing a user's role."""

    new_role: UserRole = Field(..., description="Role to assign")


class HelpRequestListQuery(BaseModel):
    """Query parameters for browsing help requests."""

    status: Optional[HelpRequestStatus] = Field(None, description="Filter by status")


class SupportRequestListQuery(BaseModel):
    """Query parameters for listing support requests."""

    status: Optional[SupportRequestStatus] = Field(None, description="Filter by status")
    help_request_id: Optional[str] = Field(None, description="Filter by help request")


class LogisticsHistoryQuery(BaseModel):
    """Query parameters for the logistics audit trail."""

    support_request_id: Optional[str] = Field(None, description="Filter by support request")
    status: Optional[LogisticStatus] = Field(None, description="Filter by new status")
    start_date: Optional[datetime] = Field(None, description="Entries at or after this time")
    end_date: Optional[datetime] = Field(None, description="Entries at or before this time")


class UserListQuery(BaseModel):
    """Query parameters for the admin user list."""

    role: Optional[UserRole] = Field(None, description="Filter by role")


class ActivityLogQuery(BaseModel):
    """Query parameters for the admin activity log."""

    start_date: Optional[datetime] = Field(None, description="Entries at or after this time")
    end_date: Optional[datetime] = Field(None, description="Entries at or before this time")
    actor_ref_id: Optional[str] = Field(None, description="Filter by actor")
    action: Optional[str] = Field(None, description="Filter by action")
    limit: int = Field(default=100, ge=1, le=500, description="Maximum entries returned")


class HelpRequestPath(BaseModel):
    help_request_id: str = Field(..., description="Help request identifier")


class SupportRequestPath(BaseModel):
    support_request_id: str = Field(..., description="Support request identifier")


class UserRefPath(BaseModel):
    ref_id: str = Field(..., description="User reference id")


class RefreshTokenRequest(BaseModel):
    """Request model for exchanging a refresh token."""

    refresh_token: str = Field(..., min_length=1, description="Refresh token")
