# SPDX-License-Identifier: Apache-2.0

"""
Authentication service for bearer token issuance and validation.

Parties sign up and log in elsewhere; this service only verifies the RS256
access tokens presented by callers. Token issuance is kept for seeding,
local development and tests.
"""

import os
import jwt
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any, Tuple
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from opentelemetry import trace
import logging

from ..models.entities import Party

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class TokenValidationError(Exception):
    """Raised when token validation fails."""
    pass


class AuthService:
    """
    JWT authentication service with RS256 signing.

    Access token claims: ``sub`` (party ID), ``role``, ``name``, ``email``,
    ``iat``, ``exp`` and ``type="access"``.
    """

    def __init__(
        self,
        private_key: Optional[str] = None,
        public_key: Optional[str] = None,
        access_token_expire_minutes: Optional[int] = None
    ):
        """
        Initialize the authentication service.

        Args:
            private_key: RS256 private key for token signing (PEM format)
            public_key: RS256 public key for token verification (PEM format)
            access_token_expire_minutes: Access token lifetime
        """
        private_key = private_key or os.getenv("JWT_PRIVATE_KEY")
        public_key = public_key or os.getenv("JWT_PUBLIC_KEY")

        if not private_key and not public_key:
            # Generate one key pair for development so tokens verify
            logger.warning("No JWT keys configured, generating development key pair")
            private_key, public_key = self._generate_dev_key_pair()

        self.private_key = private_key
        self.public_key = public_key
        self.algorithm = "RS256"
        self.access_token_expire_minutes = access_token_expire_minutes or int(
            os.getenv("JWT_ACCESS_TOKEN_EXPIRES_MINUTES", "15")
        )

    def _generate_dev_key_pair(self) -> Tuple[str, str]:
        """Generate RSA key pair for development use."""
        private_key = rsa.generate_private_key(
            public_exponent=65537,
            key_size=2048
        )

        private_pem = private_key.private_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PrivateFormat.PKCS8,
            encryption_algorithm=serialization.NoEncryption()
        ).decode('utf-8')

        public_key = private_key.public_key()
        public_pem = public_key.public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo
        ).decode('utf-8')

        return private_pem, public_pem

    def generate_access_token(self, party: Party) -> Dict[str, Any]:
        """
        Generate an access token for a directory party.

        Args:
            party: Party the token identifies

        Returns:
            Dictionary containing access_token and metadata
        """
        with tracer.start_as_current_span("auth.generate_access_token") as span:
            span.set_attributes({
                "auth.operation": "generate_access_token",
                "party.id": party.id,
                "party.role": party.role
            })

            if not self.private_key:
                raise TokenValidationError("No signing key configured")

            now = datetime.now(timezone.utc)
            access_exp = now + timedelta(minutes=self.access_token_expire_minutes)

            access_payload = {
                "sub": party.id,
                "role": party.role,
                "name": party.name,
                "email": party.email,
                "iat": now,
                "exp": access_exp,
                "type": "access"
            }

            access_token = jwt.encode(access_payload, self.private_key, algorithm=self.algorithm)

            logger.info(
                "Access token generated",
                extra={
                    "party_id": party.id,
                    "role": party.role,
                    "access_expires_at": access_exp.isoformat()
                }
            )

            return {
                "access_token": access_token,
                "token_type": "Bearer",
                "expires_in": self.access_token_expire_minutes * 60,
                "access_expires_at": access_exp.isoformat()
            }

    def validate_token(self, token: str, token_type: str = "access") -> Dict[str, Any]:
        """
        Validate and decode a JWT token.

        Args:
            token: JWT token string to validate
            token_type: Expected token type

        Returns:
            Decoded token payload

        Raises:
            TokenValidationError: If token is invalid, expired or lacks claims
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
                    options={"verify_exp": True, "require": ["sub", "exp"]}
                )

            except jwt.ExpiredSignatureError:
                span.set_attribute("auth.validation_result", "expired")
                logger.warning("Token validation failed: token expired")
                raise TokenValidationError("Token has expired")

            except jwt.InvalidTokenError as e:
                span.set_attribute("auth.validation_result", "invalid")
                logger.warning(f"Token validation failed: {str(e)}")
                raise TokenValidationError(f"Invalid token: {str(e)}")

            if payload.get("type") != token_type:
                span.set_attribute("auth.validation_result", "wrong_type")
                raise TokenValidationError(f"Invalid token type. Expected {token_type}")

            if not payload.get("role"):
                span.set_attribute("auth.validation_result", "missing_role")
                raise TokenValidationError("Token carries no role")

            span.set_attributes({
                "auth.validation_result": "success",
                "party.id": payload["sub"],
                "party.role": payload["role"]
            })

            logger.debug(
                "Token validated successfully",
                extra={"party_id": payload["sub"], "role": payload["role"]}
            )
            return payload
