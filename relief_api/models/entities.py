# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the relief coordination platform.
"""

import re
from datetime import datetime
from typing import Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, ConfigDict
from .base import BaseEntity, utc_now
from .enums import (
    UserRole,
    HelpRequestStatus,
    HelpRequestPriority,
    LogisticStatus,
    SupportRequestStatus
)


EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


class User(BaseEntity):
    """User account addressed externally by its reference id."""

    ref_id: str = Field(..., min_length=8, max_length=8, description="Opaque external reference id")
    name: str = Field(..., min_length=1, max_length=200, description="User full name")
    email: str = Field(..., description="User email address")
    phone_number: str = Field(..., min_length=1, max_length=32, description="User phone number")
    address: Optional[str] = Field(None, max_length=500, description="Postal address")
    password_hash: str = Field(..., description="Hashed password")
    role: UserRole = Field(default=UserRole.USER, description="Account role")

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if not re.match(EMAIL_PATTERN, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate user name."""
        if not v.strip():
            raise ValueError('User name cannot be empty')
        return v.strip()

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def public_view(self) -> Dict[str, Any]:
        """User fields safe to expose to clients."""
        return self.model_dump(mode="json", exclude={"password_hash"})


class RequestItem(BaseEntity):
    """Line item of a help request with its need ledger."""

    help_request_id: str = Field(..., description="Owning help request")
    name: str = Field(..., min_length=1, max_length=200, description="Item name")
    qty: int = Field(..., gt=0, description="Originally requested quantity")
    need_qty: int = Field(..., ge=0, description="Remaining outstanding quantity")
    received_qty: int = Field(default=0, ge=0, description="Cumulative fulfilled quantity")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        if not v.strip():
            raise ValueError('Item name cannot be empty')
        return v.strip()

    def max_offerable(self) -> int:
        """Largest quantity a single offer may cover.

        ``need_qty`` is already net of everything received.
        """
        return self.need_qty


class HelpRequest(BaseEntity):
    """A posted need with one or more line items."""

    title: str = Field(..., min_length=1, max_length=200, description="Help request title")
    description: str = Field(..., min_length=1, max_length=2000, description="Help request description")
    address: str = Field(..., min_length=1, max_length=500, description="Delivery address")
    status: HelpRequestStatus = Field(default=HelpRequestStatus.ACTIVE, description="Overall status")
    priority: HelpRequestPriority = Field(default=HelpRequestPriority.MEDIUM, description="Priority")
    logistic_status: LogisticStatus = Field(default=LogisticStatus.PENDING, description="Logistics stage")
    user_ref_id: str = Field(..., description="Owner reference id")

    @field_validator('title', 'description', 'address')
    @classmethod
    def validate_not_blank(cls, v):
        if not v.strip():
            raise ValueError('Field cannot be empty')
        return v.strip()

    def is_active(self) -> bool:
        return self.status == HelpRequestStatus.ACTIVE


class SupportRequest(BaseEntity):
    """A donor's offer against items of one help request."""

    help_request_id: str = Field(..., description="Help request being supported")
    user_ref_id: str = Field(..., description="Donor reference id")
    status: SupportRequestStatus = Field(default=SupportRequestStatus.PENDING, description="Workflow status")
    notes: Optional[str] = Field(None, max_length=2000, description="Donor notes")
    updated_at: datetime = Field(default_factory=utc_now, description="Last update timestamp")

    def can_review(self) -> bool:
        """Only pending offers can be accepted or rejected."""
        return self.status == SupportRequestStatus.PENDING

    def is_accepted(self) -> bool:
        return self.status == SupportRequestStatus.ACCEPTED


class SupportRequestItem(BaseEntity):
    """Quantity offered for one request item. Immutable once created."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    support_request_id: str = Field(..., description="Owning support request")
    request_item_id: str = Field(..., description="Request item being covered")
    quantity_offered: int = Field(..., gt=0, description="Offered quantity")
    notes: Optional[str] = Field(None, max_length=1000, description="Line notes")


class LogisticsTrackingEntry(BaseEntity):
    """Append-only audit record of a logistics hand-off."""

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    support_request_id: str = Field(..., description="Support request being handled")
    previous_status: LogisticStatus = Field(..., description="Status before the hand-off")
    new_status: LogisticStatus = Field(..., description="Status after the hand-off")
    handler_ref_id: str = Field(..., description="Moderator or admin who handled it")
    notes: Optional[str] = Field(None, max_length=2000, description="Handler notes")
    timestamp: datetime = Field(default_factory=utc_now, description="Hand-off timestamp")


class ActivityLogEntry(BaseEntity):
    """Audit log entry for every state-changing interaction."""

    actor_ref_id: Optional[str] = Field(None, description="Actor who performed the action")
    action: str = Field(..., min_length=1, description="Action performed")
    metadata: Dict[str, Any] = Field(default_factory=dict, description="Payload summary")
    timestamp: datetime = Field(default_factory=utc_now, description="Action timestamp")
    trace_id: Optional[str] = Field(None, description="OpenTelemetry trace ID")
    span_id: Optional[str] = Field(None, description="OpenTelemetry span ID")


class ActorContext(BaseModel):
    """Authenticated actor for request processing."""

    actor_ref: str = Field(..., description="Authenticated user reference id")
    role: UserRole = Field(..., description="Role at the time of identification")
    name: Optional[str] = Field(None, description="User display name")
    email: Optional[str] = Field(None, description="User email")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, *roles: str) -> bool:
        """Check if the actor holds any of the given roles."""
        return self.role in [getattr(role, "value", role) for role in roles]
