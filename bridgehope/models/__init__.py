# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Models package - Pydantic schemas and data models for the Bridge Hope platform.
"""

# Base models
from .base import BaseEntity, generate_object_id

# Enumerations
from .enums import (
    PartyRole,
    DonationKind,
    DonationStatus,
    RequestStatus,
    DecisionAction,
    DistributionAction,
    ErrorClassification
)

# Core entities
from .entities import (
    Party,
    GiftPayload,
    Donation,
    OrphanageRequest,
    DistributionHistoryEntry,
    UserContext
)

# Request models
from .requests import (
    DistributeDonationRequest,
    CreateDonationRequest,
    CreateOrphanageRequestRequest,
    NgoPath,
    DonorPath,
    OrphanagePath
)

# Response models
from .responses import (
    HalLink,
    ErrorDetail,
    SuccessEnvelope,
    ErrorEnvelope
)

__all__ = [
    # Base models
    "BaseEntity",
    "generate_object_id",
    
    # Enumerations
    "PartyRole",
    "DonationKind",
    "DonationStatus",
    "RequestStatus",
    "DecisionAction",
    "DistributionAction",
    "ErrorClassification",
    
    # Core entities
    "Party",
    "GiftPayload",
    "Donation",
    "OrphanageRequest",
    "DistributionHistoryEntry",
    "UserContext",
    
    # Request models
    "DistributeDonationRequest",
    "CreateDonationRequest",
    "CreateOrphanageRequestRequest",
    "NgoPath",
    "DonorPath",
    "OrphanagePath",
    
    # Response models
    "HalLink",
    "ErrorDetail",
    "SuccessEnvelope",
    "ErrorEnvelope"
]
