# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for JWT token management and password hashing.

This module provides JWT token generation and validation with RS256 signing,
bcrypt password hashing, and actor identification from bearer tokens.
"""

import os
import jwt
import bcrypt
from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from .persistence import Persistence
from ..domain.errors import Unauthenticated
from ..domain.identity import resolve_ref_id
from ..models.entities import ActorContext, User

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthProvider(ABC):
    """Turns a presented credential into an actor."""

    @abstractmethod
    def identify(self, token: str) -> ActorContext:
        """
        Resolve a bearer token to the acting user.

        Raises:
            Unauthenticated: If the token is invalid or its user no longer exists
        """


def generate_dev_key_pair() -> Tuple[str, str]:
    """Generate an RSA key pair for development use."""
    private_key = rsa.generate_private_key(
        public_exponent=65537,
        key_size=2048
    )

    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption()
    ).decode('utf-8')

    public_pem = private_key.public_key().public_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode('utf-8')

    return private_pem, public_pem


class AuthService(AuthProvider):
    """
    JWT authentication service with RS256 signing and bcrypt password hashing.

    Tokens carry the user's reference id; identification reloads the user so
    role changes and deletions take effect on the next request.
    """

    def __init__(
        self,
        persistence: Persistence,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        access_token_expire_minutes: int = None,
        refresh_token_expire_days: int = 7,
        bcrypt_rounds: int = None
    ):
        """
        Initialize the authentication service.

        Args:
            persistence: Store used to reload users on identification
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
            access_token_expire_minutes: Access token lifetime
            refresh_token_expire_days: Refresh token lifetime
            bcrypt_rounds: bcrypt cost factor
        """
        self.persistence = persistence
        self.private_key, self.public_key = self._resolve_keys(private_key, public_key)
        self.algorithm = "RS256"
        self.access_token_expire_minutes = access_token_expire_minutes or int(
            os.getenv("JWT_ACCESS_TOKEN_MINUTES", "60")
        )
        self.refresh_token_expire_days = refresh_token_expire_days
        self.bcrypt_rounds = bcrypt_rounds or int(os.getenv("BCRYPT_ROUNDS", "12"))

    def _resolve_keys(self, private_key: Optional[str], public_key: Optional[str]) -> Tuple[str, str]:
        """Use configured keys, or one generated pair for development."""
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")
        if private_key and public_key:
            # Keys exported as single-line environment values
            return private_key.replace("\\n", "\n"), public_key.replace("\\n", "\n")

        logger.warning("No JWT key pair configured, generating development key pair")
        return generate_dev_key_pair()

    def hash_password(self, password: str) -> str:
        """
        Hash a password using bcrypt with salt.

        Args:
            password: Plain text password to hash

        Returns:
            Hashed password string
        """
        with tracer.start_as_current_span("auth.hash_password") as span:
            span.set_attribute("auth.operation", "hash_password")

            salt = bcrypt.gensalt(rounds=self.bcrypt_rounds)
            hashed = bcrypt.hashpw(password.encode('utf-8'), salt)

            logger.debug("Password hashed successfully")
            return hashed.decode('utf-8')

    def verify_password(self, password: str, hashed_password: str) -> bool:
        """
        Verify a password against its hash.

        Returns:
            True if password matches, False otherwise
        """
        with tracer.start_as_current_span("auth.verify_password") as span:
            span.set_attribute("auth.operation", "verify_password")

            try:
                result = bcrypt.checkpw(
                    password.encode('utf-8'),
                    hashed_password.encode('utf-8')
                )
            except ValueError as e:
                span.set_attribute("auth.verification_result", "error")
                logger.error(f"Password verification error: {str(e)}")
                return False

            span.set_attribute("auth.verification_result", "success" if result else "failed")
            logger.debug(f"Password verification: {'success' if result else 'failed'}")
            return result

    def generate_tokens(self, user: User) -> Dict[str, Any]:
        """
        Generate access and refresh tokens for a user.

        Args:
            user: User entity to generate tokens for

        Returns:
            Dictionary containing access_token, refresh_token, and metadata
        """
        with tracer.start_as_current_span("auth.generate_tokens") as span:
            span.set_attributes({
                "auth.operation": "generate_tokens",
                "user.ref_id": user.ref_id,
                "user.role": user.role
            })

            now = datetime.now(timezone.utc)
            access_exp = now + timedelta(minutes=self.access_token_expire_minutes)
            refresh_exp = now + timedelta(days=self.refresh_token_expire_days)

            access_payload = {
                "sub": user.ref_id,
                "role": user.role,
                "name": user.name,
                "iat": now,
                "exp": access_exp,
                "type": "access"
            }

            refresh_payload = {
                "sub": user.ref_id,
                "iat": now,
                "exp": refresh_exp,
                "type": "refresh"
            }

            access_token = jwt.encode(access_payload, self.private_key, algorithm=self.algorithm)
            refresh_token = jwt.encode(refresh_payload, self.private_key, algorithm=self.algorithm)

            logger.info(
                "JWT tokens generated successfully",
                extra={
                    "ref_id": user.ref_id,
                    "role": user.role,
                    "access_expires_at": access_exp.isoformat()
                }
            )

            return {
                "access_token": access_token,
                "refresh_token": refresh_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "access_expires_at": access_exp.isoformat(),
                "refresh_expires_at": refresh_exp.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type ("access" or "refresh")

        Returns:
            Decoded token payload

        Raises:
            Unauthenticated: If token is invalid, expired or of the wrong type
        """
        with tracer.start_as_current_span("auth.validate_token") as span:
            span.set_attributes({
                "auth.operation": "validate_token",
                "auth.token_type": token_type
            })

            try:
                payload = jwt.decode(
                    token,
                    self.public_key,
                    algorithms=[self.algorithm],
                    options={"verify_exp": True}
                )
            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise Unauthenticated("Token has expired")
            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise Unauthenticated("Invalid token")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise Unauthenticated(f"Invalid token type. Expected {token_type}")

            span.set_attributes({
                "auth.validation_result": "success",
                "user.ref_id": payload.get("sub", "")
            })
            return payload

    def identify(self, token: str) -> ActorContext:
        """Resolve an access token to the current state of its user."""
        with tracer.start_as_current_span("auth.identify") as span:
            payload = self.validate_token(token, "access")

            user = self.persistence.read(lambda txn: resolve_ref_id(txn, payload.get("sub", "")))
            if user is None:
                span.set_attribute("auth.identify_result", "unknown_user")
                logger.warning("Token subject no longer exists", extra={"ref_id": payload.get("sub")})
                raise Unauthenticated("User no longer exists")

            span.set_attributes({
                "auth.identify_result": "success",
                "user.role": user.role
            })

            return ActorContext(
                actor_ref=user.ref_id,
                role=user.role,
                name=user.name,
                email=user.email,
                token_payload=payload
            )

    def refresh_access_token(self, refresh_token: str) -> Dict[str, Any]:
        """
        Issue a fresh token pair from a valid refresh token.

        Raises:
            Unauthenticated: If the refresh token is invalid or its user is gone
        """
        with tracer.start_as_current_span("auth.refresh_access_token") as span:
            span.set_attribute("auth.operation", "refresh_access_token")

            payload = self.validate_token(refresh_token, "refresh")
            user = self.persistence.read(lambda txn: resolve_ref_id(txn, payload.get("sub", "")))
            if user is None:
                raise Unauthenticated("User no longer exists")

            logger.info("Access token refreshed", extra={"ref_id": user.ref_id})
            return self.generate_tokens(user)
