# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request utilities for extracting and processing request data.
"""

from flask import request
from typing import Any, Dict, Type, TypeVar
from pydantic import BaseModel
import logging

from ..exceptions import ValidationException

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


class RequestParser:
    """Utility for parsing and extracting request data."""

    @staticmethod
    def get_pagination_params(
        default_page: int = 1,
        default_page_size: int = 20,
        max_page_size: int = 100
    ) -> Dict[str, int]:
        """
        Extract pagination parameters from request.

        Args:
            default_page: Default page number
            default_page_size: Default page size
            max_page_size: Maximum allowed page size

        Returns:
            Dictionary with page and page_size
        """
        try:
            page = int(request.args.get('page', default_page))
            page = max(1, page)
        except (ValueError, TypeError):
            page = default_page

        try:
            page_size = int(request.args.get('page_size', default_page_size))
            page_size = max(1, min(page_size, max_page_size))
        except (ValueError, TypeError):
            page_size = default_page_size

        return {
            'page': page,
            'page_size': page_size
        }

    @staticmethod
    def get_json_body() -> Dict[str, Any]:
        """
        Get the JSON object sent as request body.

        Raises:
            ValidationException: Body missing, malformed or not an object
        """
        data = request.get_json(silent=True)

        if not isinstance(data, dict):
            logger.debug("Rejected non-object JSON body", extra={"path": request.path})
            raise ValidationException(
                "Request body must be a JSON object",
                [{
                    "field": "body",
                    "message": "Expected a JSON object",
                    "type": "json_error",
                    "input": None
                }]
            )

        return data

    @classmethod
    def parse_body(cls, model_class: Type[M]) -> M:
        """
        Validate the JSON body against a Pydantic model.

        Pydantic errors propagate and are reported as invalid input by the
        error handlers.
        """
        return model_class.model_validate(cls.get_json_body())
