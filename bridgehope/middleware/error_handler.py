# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Error handling middleware producing failure envelopes.
Provides centralized error handling and formatting for Flask applications.
"""

from flask import Flask, request, jsonify
from werkzeug.exceptions import HTTPException
from pydantic import ValidationError
from typing import Any, Dict, List, Tuple
from opentelemetry import trace
import logging

from ..exceptions import CustomException, StoreError
from ..models.enums import ErrorClassification
from ..services.hal import HalResponseBuilder

tracer = trace.get_tracer(__name__)
logger = logging.getLogger(__name__)

_HTTP_CLASSIFICATIONS = {
    400: ErrorClassification.INVALID_INPUT,
    401: ErrorClassification.UNAUTHENTICATED,
    403: ErrorClassification.FORBIDDEN,
    404: ErrorClassification.NOT_FOUND,
    405: ErrorClassification.INVALID_INPUT,
    409: ErrorClassification.CONFLICT,
    415: ErrorClassification.INVALID_INPUT,
    422: ErrorClassification.INVALID_INPUT
}


def format_validation_errors(validation_error: ValidationError) -> List[Dict[str, Any]]:
    """
    Format Pydantic validation errors for API response.

    Args:
        validation_error: Pydantic ValidationError

    Returns:
        List of formatted error dictionaries
    """
    errors = []

    for error in validation_error.errors():
        field_path = ".".join(str(loc) for loc in error["loc"]) or "body"
        errors.append({
            "field": field_path,
            "message": error["msg"],
            "type": error["type"],
            "input": error.get("input")
        })

    return errors


class ErrorHandlerMiddleware:
    """Centralized error handling with failure envelope formatting."""

    def __init__(self, app: Flask, hal_builder: HalResponseBuilder):
        self.app = app
        self.hal_builder = hal_builder
        self.register_error_handlers()

    def register_error_handlers(self):
        """Register error handlers with Flask application."""

        @self.app.errorhandler(CustomException)
        def handle_custom_exception(error: CustomException):
            return self.handle_custom_exception(error)

        @self.app.errorhandler(ValidationError)
        def handle_validation_error(error: ValidationError):
            return self.handle_pydantic_error(error)

        @self.app.errorhandler(StoreError)
        def handle_store_error(error: StoreError):
            return self.handle_unexpected_error(error, "Data store unavailable")

        @self.app.errorhandler(HTTPException)
        def handle_http_exception(error: HTTPException):
            return self.handle_http_error(error)

        @self.app.errorhandler(Exception)
        def handle_generic_exception(error: Exception):
            return self.handle_unexpected_error(error)

    def _respond(self, envelope: Dict[str, Any], status: int) -> Tuple[Any, int]:
        return jsonify(envelope), status

    def handle_custom_exception(self, error: CustomException) -> Tuple[Any, int]:
        """Turn an application exception into its failure envelope."""
        with tracer.start_as_current_span("error_handler.custom_exception") as span:
            span.set_attributes({
                "error.type": error.error_type,
                "error.status": error.status_code,
                "error.classification": error.classification.value,
                "http.method": request.method,
                "http.path": request.path
            })

            log = logger.error if error.status_code >= 500 else logger.warning
            log(
                f"Request failed: {error.classification.value}",
                extra={
                    "error_type": error.error_type,
                    "status_code": error.status_code,
                    "classification": error.classification.value,
                    "detail": error.message,
                    "path": request.path,
                    "method": request.method
                }
            )

            envelope = self.hal_builder.build_exception_response(error, request.path)
            return self._respond(envelope, error.status_code)

    def handle_pydantic_error(self, error: ValidationError) -> Tuple[Any, int]:
        """Report pydantic validation failures as invalid input."""
        with tracer.start_as_current_span("error_handler.validation_error") as span:
            errors = format_validation_errors(error)
            span.set_attributes({
                "error.type": "invalid-input",
                "error.count": len(errors),
                "http.path": request.path
            })

            logger.warning(
                "Request validation failed",
                extra={
                    "path": request.path,
                    "method": request.method,
                    "error_count": len(errors),
                    "fields": [e["field"] for e in errors]
                }
            )

            envelope = self.hal_builder.build_error_response(
                "invalid-input",
                400,
                "Request validation failed",
                request.path,
                ErrorClassification.INVALID_INPUT.value,
                errors
            )
            return self._respond(envelope, 400)

    def handle_http_error(self, error: HTTPException) -> Tuple[Any, int]:
        """Handle werkzeug HTTP errors such as unknown routes or methods."""
        status = error.code or 500
        if status >= 500:
            return self.handle_unexpected_error(error)

        classification = _HTTP_CLASSIFICATIONS.get(status, ErrorClassification.INVALID_INPUT)
        detail = str(error.description) if error.description else error.name

        logger.warning(
            f"Client error: {error.name}",
            extra={
                "status_code": status,
                "detail": detail,
                "path": request.path,
                "method": request.method,
                "user_agent": request.headers.get('User-Agent'),
                "ip_address": request.remote_addr
            }
        )

        envelope = self.hal_builder.build_error_response(
            error.name.lower().replace(" ", "-"),
            status,
            detail,
            request.path,
            classification.value,
            title=error.name
        )
        return self._respond(envelope, status)

    def handle_unexpected_error(self, error: Exception, detail: str = None) -> Tuple[Any, int]:
        """
        Handle unexpected exceptions not caught by specific handlers.

        Args:
            error: Unexpected exception
            detail: Client-facing detail (optional)

        Returns:
            Tuple of (failure envelope response, status code)
        """
        with tracer.start_as_current_span("error_handler.unexpected_error") as span:
            span.set_attributes({
                "error.type": "internal-error",
                "error.class": error.__class__.__name__,
                "http.method": request.method,
                "http.path": request.path
            })
            span.record_exception(error)

            logger.error(
                f"Unexpected error: {error.__class__.__name__}",
                extra={
                    "error_type": "internal-error",
                    "error_class": error.__class__.__name__,
                    "error_message": str(error),
                    "path": request.path,
                    "method": request.method
                },
                exc_info=error
            )

            # Don't expose internal error details in production
            if self.app.config.get('ENVIRONMENT') == 'production':
                detail = "An internal server error occurred"
            elif detail is None:
                detail = f"{error.__class__.__name__}: {str(error)}"

            envelope = self.hal_builder.build_error_response(
                "internal-error",
                500,
                detail,
                request.path,
                ErrorClassification.INTERNAL_ERROR.value
            )
            return self._respond(envelope, 500)
