# SPDX-License-Identifier: Apache-2.0

"""
Authentication middleware for bearer token validation and caller context.

This module provides Flask decorators that validate the caller's access
token, build the ``UserContext`` stored in ``g.user_context``, and check the
caller's role and identity against the route's path parameters.
"""

from functools import wraps
from flask import request, g, current_app
from typing import Optional, Dict, Any, Callable
from opentelemetry import trace
from pydantic import ValidationError
import logging

from ..exceptions import AuthenticationException, AuthorizationException
from ..models.entities import UserContext
from ..models.enums import PartyRole
from ..services.auth import AuthService, TokenValidationError

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)


class AuthMiddleware:
    """
    Bearer token authentication for Flask applications.

    Handles token extraction, validation and caller context building for
    protected endpoints.
    """

    def __init__(self, auth_service: AuthService):
        """
        Initialize the authentication middleware.

        Args:
            auth_service: Token validation service
        """
        self.auth_service = auth_service

    def extract_token_from_request(self) -> Optional[str]:
        """
        Extract bearer token from request headers.

        Returns:
            Token string or None if not found
        """
        auth_header = request.headers.get('Authorization', '')

        if not auth_header.startswith('Bearer '):
            return None

        token = auth_header[7:].strip()
        return token or None

    def build_user_context(self, token_payload: Dict[str, Any], request_info: Dict[str, Any]) -> UserContext:
        """
        Build caller context from validated token payload and request information.

        Raises:
            TokenValidationError: If the payload does not describe a known role
        """
        try:
            return UserContext(
                party_id=token_payload["sub"],
                role=token_payload["role"],
                name=token_payload.get("name"),
                email=token_payload.get("email"),
                token_payload=token_payload,
                ip_address=request_info.get("ip_address"),
                user_agent=request_info.get("user_agent"),
                request_id=request_info.get("request_id")
            )
        except ValidationError as e:
            raise TokenValidationError(f"Invalid token claims: {e.error_count()} error(s)")

    def get_request_info(self) -> Dict[str, Any]:
        """Extract request metadata for caller context."""
        return {
            "ip_address": request.remote_addr,
            "user_agent": request.headers.get('User-Agent', ''),
            "request_id": request.headers.get('X-Request-ID')
        }

    def authenticate(self) -> UserContext:
        """
        Validate the current request's token and store the caller in ``g``.

        Raises:
            AuthenticationException: Missing or invalid token
        """
        with tracer.start_as_current_span("auth.middleware.validate_request") as span:
            span.set_attribute("auth.operation", "validate_request")

            token = self.extract_token_from_request()
            if not token:
                span.set_attribute("auth.result", "missing_token")
                logger.warning("Authentication failed: missing token", extra={"path": request.path})
                raise AuthenticationException("Missing authorization token")

            try:
                token_payload = self.auth_service.validate_token(token, "access")
                user_context = self.build_user_context(token_payload, self.get_request_info())
            except TokenValidationError as e:
                span.set_attribute("auth.result", "invalid_token")
                logger.warning(f"Authentication failed: {str(e)}", extra={"path": request.path})
                raise AuthenticationException(str(e))

            g.user_context = user_context

            span.set_attributes({
                "auth.result": "success",
                "party.id": user_context.party_id,
                "party.role": user_context.role
            })

            logger.debug(
                "Authentication successful",
                extra={
                    "party_id": user_context.party_id,
                    "role": user_context.role,
                    "ip_address": user_context.ip_address
                }
            )
            return user_context


def require_party(role: PartyRole, path_field: Optional[str] = None) -> Callable:
    """
    Decorator requiring an authenticated caller with a given role.

    When ``path_field`` is set, the caller must also be the party named by
    that field of the route's path model.

    Args:
        role: Required party role
        path_field: Path model field holding the party ID the caller must match

    Returns:
        Decorator function
    """
    def decorator(f: Callable) -> Callable:
        @wraps(f)
        def decorated_function(*args, **kwargs):
            user_context = current_app.auth_middleware.authenticate()

            with tracer.start_as_current_span("auth.middleware.check_party") as span:
                span.set_attributes({
                    "auth.required_role": role.value,
                    "party.id": user_context.party_id,
                    "party.role": user_context.role
                })

                if not user_context.has_role([role.value]):
                    span.set_attribute("auth.party_result", "wrong_role")
                    logger.warning(
                        f"Authorization failed: role '{role.value}' required",
                        extra={
                            "party_id": user_context.party_id,
                            "role": user_context.role,
                            "required_role": role.value
                        }
                    )
                    raise AuthorizationException(f"Only {role.value} accounts can perform this action")

                if path_field:
                    path = kwargs.get("path")
                    target_id = getattr(path, path_field, None)
                    if not user_context.is_party(target_id):
                        span.set_attribute("auth.party_result", "other_party")
                        logger.warning(
                            "Authorization failed: acting on behalf of another party",
                            extra={
                                "party_id": user_context.party_id,
                                "target_id": target_id
                            }
                        )
                        raise AuthorizationException("You can only act on your own account")

                span.set_attribute("auth.party_result", "granted")

            return f(*args, **kwargs)

        return decorated_function
    return decorator
