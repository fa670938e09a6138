# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for the API result envelope with HAL links.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")
    templated: Optional[bool] = Field(None, description="Whether URL is templated")


class ErrorDetail(BaseModel):
    """RFC 7807 problem description carried in failure envelopes."""

    type: str = Field(..., description="Problem type URI")
    title: str = Field(..., description="Short problem title")
    status: int = Field(..., description="HTTP status code")
    detail: str = Field(..., description="Human-readable explanation")
    instance: str = Field(..., description="Request path")
    classification: str = Field(..., description="Failure classification")
    errors: Optional[List[Dict[str, Any]]] = Field(None, description="Field validation errors")


class SuccessEnvelope(BaseModel):
    """Successful result envelope."""

    success: bool = Field(True, description="Always true")
    data: Any = Field(None, description="Result payload")
    message: Optional[str] = Field(None, description="Human-readable summary")


class ErrorEnvelope(BaseModel):
    """Failed result envelope."""

    success: bool = Field(False, description="Always false")
    status: int = Field(..., description="HTTP status code")
    error: ErrorDetail = Field(..., description="Problem description")
