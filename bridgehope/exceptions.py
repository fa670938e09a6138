# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Application exception hierarchy.

Every exception maps to one failure classification and HTTP status code.
Route handlers let them propagate; the error handlers registered in
``middleware.error_handler`` turn them into failure envelopes.
"""

from typing import Any, Dict, List, Optional

from .models.enums import ErrorClassification


class CustomException(Exception):
    """Base class for custom application exceptions."""

    def __init__(
        self,
        message: str,
        status_code: int = 500,
        error_type: str = "application-error",
        classification: ErrorClassification = ErrorClassification.INTERNAL_ERROR
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.error_type = error_type
        self.classification = classification


class ValidationException(CustomException):
    """Exception for malformed input, raised before any store access."""

    def __init__(self, message: str, validation_errors: Optional[List[Dict[str, Any]]] = None):
        super().__init__(message, 400, "invalid-input", ErrorClassification.INVALID_INPUT)
        self.validation_errors = validation_errors or []


class AuthenticationException(CustomException):
    """Exception for missing or invalid credentials."""

    def __init__(self, message: str):
        super().__init__(message, 401, "authentication-required", ErrorClassification.UNAUTHENTICATED)


class AuthorizationException(CustomException):
    """Exception for ownership or role mismatches."""

    def __init__(self, message: str):
        super().__init__(message, 403, "forbidden", ErrorClassification.FORBIDDEN)


class NotFoundException(CustomException):
    """Exception for resource not found errors."""

    def __init__(self, message: str):
        super().__init__(message, 404, "resource-not-found", ErrorClassification.NOT_FOUND)


class ConflictException(CustomException):
    """Exception for a resource not in the expected state."""

    def __init__(self, message: str):
        super().__init__(message, 409, "resource-conflict", ErrorClassification.CONFLICT)


class InternalErrorException(CustomException):
    """Exception for store failures after local mutations were rolled back."""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message, 500, "internal-error", ErrorClassification.INTERNAL_ERROR)


class StoreError(Exception):
    """Raised by repositories when the backing store fails."""
    pass


class StoreConflictError(StoreError):
    """Raised when a concurrent transaction wrote the same record first."""
    pass
