# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Core entity models for the Bridge Hope platform.
"""

from datetime import datetime
from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator, model_validator, ConfigDict
from .base import BaseEntity
from .enums import (
    PartyRole,
    DonationKind,
    DonationStatus,
    RequestStatus,
    DistributionAction
)


class Party(BaseEntity):
    """Identity directory entry for a donor, NGO or orphanage."""

    role: PartyRole = Field(..., description="Party role tag")
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    email: Optional[str] = Field(None, description="Contact email")
    description: Optional[str] = Field(None, max_length=2000, description="Public description")
    experience: Optional[str] = Field(None, max_length=2000, description="NGO experience summary")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v):
        """Validate party name."""
        if not v.strip():
            raise ValueError('Party name cannot be empty')
        return v

    @field_validator('email')
    @classmethod
    def validate_email(cls, v):
        """Validate email format."""
        if v is None:
            return v
        import re
        email_pattern = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'
        if not re.match(email_pattern, v.lower()):
            raise ValueError('Invalid email format')
        return v.lower()


class GiftPayload(BaseModel):
    """
    Kind-discriminated payload shared by donations and orphanage requests.

    MONEY carries a positive amount, ITEM carries an item name and a positive
    count. Exactly one of the two forms is present.
    """

    kind: DonationKind = Field(..., description="Payload discriminator")
    amount: Optional[float] = Field(None, description="Money amount (kind=money)")
    item_name: Optional[str] = Field(None, max_length=200, description="Item name (kind=item)")
    count: Optional[int] = Field(None, description="Item count (kind=item)")

    @model_validator(mode='after')
    def validate_payload_form(self):
        """Enforce the payload form selected by kind."""
        if self.kind == DonationKind.MONEY:
            if self.amount is None:
                raise ValueError('amount is required for money')
            if self.amount <= 0:
                raise ValueError('amount must be positive')
            if self.item_name is not None or self.count is not None:
                raise ValueError('item_name and count are not allowed for money')
        else:
            if not self.item_name or not self.item_name.strip():
                raise ValueError('item_name is required for item')
            if self.count is None:
                raise ValueError('count is required for item')
            if self.count <= 0:
                raise ValueError('count must be positive')
            if self.amount is not None:
                raise ValueError('amount is not allowed for item')
        return self

    def payload_fields(self) -> Dict[str, Any]:
        """Return only the payload fields relevant to kind."""
        if self.kind == DonationKind.MONEY:
            return {"amount": self.amount}
        return {"item_name": self.item_name, "count": self.count}


class Donation(BaseEntity, GiftPayload):
    """Pledge of money or goods from a donor to a specific NGO."""

    donor_id: str = Field(..., description="Donor party ID")
    ngo_id: str = Field(..., description="NGO party ID")
    status: DonationStatus = Field(default=DonationStatus.PENDING, description="Lifecycle status")
    distributed_to_name: Optional[str] = Field(None, description="Orphanage name once distributed")

    @model_validator(mode='after')
    def validate_status_fields(self):
        """Validate status-dependent fields."""
        if self.status == DonationStatus.DISTRIBUTED and not self.distributed_to_name:
            raise ValueError('distributed_to_name is required when status is distributed')

        if self.status == DonationStatus.PENDING and self.distributed_to_name:
            raise ValueError('distributed_to_name is only set once distributed')

        return self

    def is_pending(self) -> bool:
        """Check if donation still awaits a distribution decision."""
        return self.status == DonationStatus.PENDING

    def is_owned_by(self, ngo_id: str) -> bool:
        """Check if donation is addressed to the given NGO."""
        return self.ngo_id == ngo_id

    def as_distributed(self, orphanage_name: str) -> "Donation":
        """Return a copy of the donation moved to distributed."""
        if not self.is_pending():
            raise ValueError('Donation cannot be distributed in current state')

        # status and distributed_to_name change together, so validate a fresh copy
        data = self.model_dump()
        data.update({
            "status": DonationStatus.DISTRIBUTED,
            "distributed_to_name": orphanage_name
        })
        return type(self).model_validate(data)


class OrphanageRequest(BaseEntity, GiftPayload):
    """Ask from an orphanage to a specific NGO for money or goods."""

    orphanage_id: str = Field(..., description="Orphanage party ID")
    ngo_id: str = Field(..., description="NGO party ID")
    status: RequestStatus = Field(default=RequestStatus.PENDING, description="Request status")


class DistributionHistoryEntry(BaseEntity):
    """Immutable audit record of one distribution decision."""

    model_config = ConfigDict(frozen=True, validate_assignment=False)

    donation_id: str = Field(..., description="Decided donation ID")
    ngo_id: str = Field(..., description="Deciding NGO ID")
    orphanage_id: Optional[str] = Field(None, description="Receiving orphanage (null on reject)")
    donor_id: str = Field(..., description="Donor of the donation")
    action: DistributionAction = Field(..., description="Recorded decision")
    distributed_at: datetime = Field(default_factory=datetime.utcnow, description="Decision timestamp")

    @model_validator(mode='after')
    def validate_orphanage_for_action(self):
        """Accepted entries name an orphanage, rejected entries never do."""
        if self.action == DistributionAction.ACCEPTED and not self.orphanage_id:
            raise ValueError('orphanage_id is required for accepted entries')

        if self.action == DistributionAction.REJECTED and self.orphanage_id is not None:
            raise ValueError('orphanage_id must be null for rejected entries')

        return self


class UserContext(BaseModel):
    """Caller context for request processing, built from a validated token."""

    party_id: str = Field(..., description="Authenticated party ID")
    role: PartyRole = Field(..., description="Authenticated party role")
    name: Optional[str] = Field(None, description="Party display name")
    email: Optional[str] = Field(None, description="Party email")
    token_payload: Optional[Dict[str, Any]] = Field(None, description="Original JWT payload")
    ip_address: Optional[str] = Field(None, description="Client IP address")
    user_agent: Optional[str] = Field(None, description="Client user agent")
    request_id: Optional[str] = Field(None, description="Request correlation ID")

    model_config = ConfigDict(
        use_enum_values=True
    )

    def has_role(self, roles: List[str]) -> bool:
        """Check if the caller holds one of the given roles."""
        return self.role in roles

    def is_party(self, party_id: str) -> bool:
        """Check if the caller is the given party."""
        return self.party_id == party_id
