# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error taxonomy for the relief domain.

Every error carries the HTTP status and problem type it maps to, so the
error handler can render it without a lookup table.
"""


class ReliefError(Exception):
    """Base class for relief domain exceptions."""

    def __init__(self, message: str, status_code: int = 500, error_type: str = "application-error"):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type


class ValidationError(ReliefError):
    """Malformed or incomplete input."""

    def __init__(self, message: str, validation_errors: list = None):
        super().__init__(message, 400, "validation-error")
        self.validation_errors = validation_errors or []


class InvalidQuantity(ReliefError):
    """Offered quantity is non-positive or exceeds the remaining need."""

    def __init__(self, message: str):
        super().__init__(message, 400, "invalid-quantity")


class Unauthenticated(ReliefError):
    """No valid identity was presented."""

    def __init__(self, message: str = "Authentication required"):
        super().__init__(message, 401, "authentication-required")


class Unauthorized(ReliefError):
    """Identity is known but lacks the required role."""

    def __init__(self, message: str = "Insufficient permissions"):
        super().__init__(message, 403, "insufficient-permissions")


class NotFound(ReliefError):
    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found")


class ItemNotFound(NotFound):
    """Request item missing or not owned by the stated help request."""


class AlreadyReviewed(ReliefError):
    def __init__(self, message: str = "Support request has already been reviewed"):
        super().__init__(message, 409, "already-reviewed")


class HelpRequestNotActive(ReliefError):
    def __init__(self, message: str = "Help request is not active"):
        super().__init__(message, 409, "help-request-not-active")


class NotAccepted(ReliefError):
    def __init__(self, message: str = "Support request has not been accepted"):
        super().__init__(message, 409, "not-accepted")


class InvalidTransition(ReliefError):
    def __init__(self, message: str):
        super().__init__(message, 409, "invalid-transition")


class ConflictError(ReliefError):
    """Concurrent modification or uniqueness violation."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict")
