# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Request models for API endpoints.
"""

from typing import Optional
from pydantic import BaseModel, Field, ConfigDict
from pydantic.alias_generators import to_camel
from .entities import GiftPayload


class CamelModel(BaseModel):
    """Base for request bodies sent with camelCase keys."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True
    )


class DistributeDonationRequest(CamelModel):
    """
    Request model for an NGO distribution decision.

    Only types are checked here. The distribution engine validates the
    fields in order and the first failing rule decides the response.
    """

    donation_id: Optional[str] = Field(None, description="Donation to decide on")
    orphanage_name: Optional[str] = Field(None, description="Receiving orphanage display name")
    orphanage_id: Optional[str] = Field(None, description="Receiving orphanage ID (optional)")
    action: Optional[str] = Field(None, description="'accept' or 'reject'")


class CreateDonationRequest(CamelModel, GiftPayload):
    """Request model for a donor pledging a donation."""

    donor_id: str = Field(..., min_length=1, description="Donor party ID (must be the caller)")
    ngo_id: str = Field(..., min_length=1, description="Receiving NGO party ID")


class CreateOrphanageRequestRequest(CamelModel, GiftPayload):
    """Request model for an orphanage asking an NGO for support."""

    ngo_id: str = Field(..., min_length=1, description="NGO party ID")


class NgoPath(BaseModel):
    """Path parameters of NGO-scoped endpoints."""

    ngo_id: str = Field(..., description="NGO party ID")


class DonorPath(BaseModel):
    """Path parameters of donor-scoped endpoints."""

    donor_id: str = Field(..., description="Donor party ID")


class OrphanagePath(BaseModel):
    """Path parameters of orphanage-scoped endpoints."""

    orphanage_id: str = Field(..., description="Orphanage party ID")
