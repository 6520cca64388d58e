# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for bearer token validation and actor extraction.

The resolved actor is stored on ``flask.g.actor``; role checks happen in the
domain layer, so routes only need to be marked as authenticated.
"""

from functools import wraps
from flask import request, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
import logging

from ..domain.errors import Unauthenticated
from ..models.entities import ActorContext
from ..services.auth import AuthProvider

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    Bearer token authentication for Flask applications.

    Handles token extraction and actor resolution for protected endpoints.
    """

    def __init__(self, auth_provider: AuthProvider):
        """
        Initialize the authentication middleware.

        Args:
            auth_provider: Service that resolves tokens to actors
        """
        self.auth_provider = auth_provider

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract the bearer token from request headers.

        Returns:
            Token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header:
            return None

        if auth_header.startswith('Bearer '):
            return auth_header[7:].strip() or None

        return auth_header

    def get_request_info(self) -> Dict[str, Any]:
        """Request metadata attached to the actor."""
        return {
            "ip_address": request.headers.get('X-Forwarded-For', request.remote_addr),
            "user_agent": request.headers.get('User-Agent', '')
        }

    def authenticate(self) -> ActorContext:
        """
        Resolve the current request's actor.

        Raises:
            Unauthenticated: If the token is missing or invalid
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token")
                raise Unauthenticated("Missing authorization token")

            try:
                actor = self.auth_provider.identify(token)
            except Unauthenticated as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {e.message}")
                raise

            request_info = self.get_request_info()
            actor = actor.model_copy(update=request_info)

            span.set_attributes({
                "auth.result": "success",
                "user.ref_id": actor.actor_ref,
                "user.role": actor.role
            })
            logger.debug(
                "Authentication successful",
                extra={
                    "ref_id": actor.actor_ref,
                    "role": actor.role,
                    "ip_address": actor.ip_address
                }
            )
            return actor


def require_auth(f: Callable) -> Callable:
    """Decorator requiring a valid access token; sets ``g.actor``."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        g.actor = current_app.auth_middleware.authenticate()
        return f(*args, **kwargs)
    return decorated_function


def current_actor() -> Optional[ActorContext]:
    return g.get("actor")
