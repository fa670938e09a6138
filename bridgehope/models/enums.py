# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Enumeration types for the Bridge Hope platform.
"""

from enum import Enum


class PartyRole(str, Enum):
    """Role tag of a party in the identity directory."""
    DONOR = "donor"
    NGO = "ngo"
    ORPHANAGE = "orphanage"


class DonationKind(str, Enum):
    """Payload discriminator shared by donations and requests."""
    MONEY = "money"
    ITEM = "item"


class DonationStatus(str, Enum):
    """Donation lifecycle status."""
    PENDING = "pending"
    DISTRIBUTED = "distributed"


class RequestStatus(str, Enum):
    """Orphanage request status. Fulfilment is expressed by deletion."""
    PENDING = "pending"


class DecisionAction(str, Enum):
    """Action submitted by an NGO for a donation."""
    ACCEPT = "accept"
    REJECT = "reject"


class DistributionAction(str, Enum):
    """Action recorded in the distribution history."""
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class ErrorClassification(str, Enum):
    """Failure classification reported in error envelopes."""
    INVALID_INPUT = "InvalidInput"
    UNAUTHENTICATED = "Unauthenticated"
    FORBIDDEN = "Forbidden"
    NOT_FOUND = "NotFound"
    CONFLICT = "Conflict"
    INTERNAL_ERROR = "InternalError"
