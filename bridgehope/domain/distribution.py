# SPDX-License-Identifier: Apache-2.0

"""
Distribution domain logic for the donation decision workflow.

This module contains pure functions for decision validation, orphanage
resolution, history entry construction and HAL response shaping. Nothing
here touches a store; the distribution engine composes these functions
inside its transaction.
"""

from typing import List, Dict, Any, Optional
from dataclasses import dataclass, field

from ..models.entities import (
    Donation, DistributionHistoryEntry, OrphanageRequest, Party, UserContext
)
from ..models.enums import (
    DecisionAction, DistributionAction, DonationStatus, PartyRole
)


@dataclass
class ValidationResult:
    """Result of a decision validation step."""
    is_valid: bool
    errors: List[str]
    warnings: List[str] = None

    def __post_init__(self):
        if self.warnings is None:
            self.warnings = []


@dataclass
class DecisionRequest:
    """Normalized distribution decision."""
    donation_id: str
    action: DecisionAction
    orphanage_name: Optional[str] = None
    orphanage_id: Optional[str] = None


@dataclass
class DistributionResult:
    """Outcome of an applied distribution decision."""
    action: DecisionAction
    donation_id: str
    distribution: DistributionHistoryEntry
    donation: Optional[Donation] = None
    deleted_request_ids: List[str] = field(default_factory=list)

    @property
    def accepted(self) -> bool:
        return self.action == DecisionAction.ACCEPT

    def to_payload(self) -> Dict[str, Any]:
        """Result payload: {donationId} on reject, {donation, distribution} on accept."""
        if not self.accepted:
            return {"donationId": self.donation_id}

        return {
            "donation": self.donation.to_response(),
            "distribution": self.distribution.to_response()
        }


_ACTION_TO_HISTORY = {
    DecisionAction.ACCEPT: DistributionAction.ACCEPTED,
    DecisionAction.REJECT: DistributionAction.REJECTED
}


def validate_decision_request(
    donation_id: Optional[str],
    orphanage_name: Optional[str],
    action: Optional[str],
    orphanage_id: Optional[str] = None
) -> ValidationResult:
    """
    Validate the shape of a decision before any store access.

    Args:
        donation_id: Donation to decide on
        orphanage_name: Receiving orphanage name (accept only)
        action: Raw action string
        orphanage_id: Optional receiving orphanage ID (accept only)

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []
    warnings = []

    # Action must be known
    normalized_action = action if isinstance(action, str) else None
    valid_actions = [a.value for a in DecisionAction]
    if normalized_action not in valid_actions:
        errors.append(f"action must be one of: {', '.join(valid_actions)}")

    # Donation reference is required
    if not isinstance(donation_id, str) or not donation_id.strip():
        errors.append("donationId is required")

    # Accept needs a receiving orphanage
    if normalized_action == DecisionAction.ACCEPT.value:
        has_name = isinstance(orphanage_name, str) and bool(orphanage_name.strip())
        has_id = isinstance(orphanage_id, str) and bool(orphanage_id.strip())
        if not has_name and not has_id:
            errors.append("orphanageName is required to accept a donation")

    # Reject ignores the orphanage
    if normalized_action == DecisionAction.REJECT.value and (orphanage_name or orphanage_id):
        warnings.append("Orphanage is ignored when rejecting a donation")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors,
        warnings=warnings
    )


def parse_decision_request(
    donation_id: str,
    orphanage_name: Optional[str],
    action: str,
    orphanage_id: Optional[str] = None
) -> DecisionRequest:
    """
    Build a normalized decision from already validated input.

    The orphanage name is kept verbatim: resolution is exact and case-sensitive.
    """
    decision_action = DecisionAction(action)

    if decision_action == DecisionAction.REJECT:
        return DecisionRequest(donation_id=donation_id.strip(), action=decision_action)

    return DecisionRequest(
        donation_id=donation_id.strip(),
        action=decision_action,
        orphanage_name=orphanage_name if orphanage_name and orphanage_name.strip() else None,
        orphanage_id=orphanage_id.strip() if orphanage_id else None
    )


def validate_decision_authority(donation: Donation, acting_ngo_id: str) -> ValidationResult:
    """
    Validate that the acting NGO owns the donation.

    Args:
        donation: Donation being decided
        acting_ngo_id: NGO submitting the decision

    Returns:
        ValidationResult with validation status and errors
    """
    errors = []

    if not donation.is_owned_by(acting_ngo_id):
        errors.append("Donation does not belong to this NGO")

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def validate_decision_state(donation: Donation) -> ValidationResult:
    """
    Validate that the donation still awaits a decision.

    Both accept and reject require a pending donation. Rejecting a pending
    donation leaves it pending, so it can be rejected or accepted again later.
    """
    errors = []

    if not donation.is_pending():
        errors.append(
            f"Donation cannot be decided (current status: {donation.status})"
        )

    return ValidationResult(
        is_valid=len(errors) == 0,
        errors=errors
    )


def select_orphanage(
    candidates: List[Party],
    orphanage_name: Optional[str],
    orphanage_id: Optional[str] = None
) -> Optional[Party]:
    """
    Pick the receiving orphanage among directory candidates.

    Name matching is exact and case-sensitive; candidates must be ordered
    oldest first and the first match wins when names are duplicated. When an
    ID is given it takes precedence, and a given name must then match it.

    Args:
        candidates: Orphanage parties returned by the directory
        orphanage_name: Display name supplied by the caller
        orphanage_id: Optional party ID supplied by the caller

    Returns:
        Selected Party or None
    """
    orphanages = [p for p in candidates if p.role == PartyRole.ORPHANAGE]

    if orphanage_id:
        for party in orphanages:
            if party.id == orphanage_id:
                if orphanage_name and party.name != orphanage_name:
                    return None
                return party
        return None

    for party in orphanages:
        if party.name == orphanage_name:
            return party

    return None


def build_history_entry(
    donation: Donation,
    acting_ngo_id: str,
    action: DecisionAction,
    orphanage_id: Optional[str] = None
) -> DistributionHistoryEntry:
    """
    Build the audit entry for a decision.

    Args:
        donation: Decided donation
        acting_ngo_id: Deciding NGO
        action: Decision action
        orphanage_id: Resolved orphanage (accept only)

    Returns:
        Immutable DistributionHistoryEntry
    """
    history_action = _ACTION_TO_HISTORY[action]

    return DistributionHistoryEntry(
        donation_id=donation.id,
        ngo_id=acting_ngo_id,
        orphanage_id=orphanage_id if history_action == DistributionAction.ACCEPTED else None,
        donor_id=donation.donor_id,
        action=history_action
    )


def build_donation_hal_response(
    donation: Donation,
    user_context: Optional[UserContext],
    base_url: str
) -> Dict[str, Any]:
    """
    Build HAL representation of a donation with affordance links.

    The distribute link is offered only to the owning NGO while the donation
    is pending.
    """
    response = donation.to_response()

    links = {
        "ngoDonations": {"href": f"{base_url}/api/ngos/{donation.ngo_id}/donations"},
        "donorDonations": {"href": f"{base_url}/api/donors/{donation.donor_id}/donations"}
    }

    if (user_context is not None and
        user_context.role == PartyRole.NGO and
        donation.is_owned_by(user_context.party_id) and
        donation.status == DonationStatus.PENDING):
        links["distribute"] = {
            "href": f"{base_url}/api/ngos/{donation.ngo_id}/distribute",
            "method": "POST",
            "type": "application/json"
        }

    response["_links"] = links
    return response


def build_distribution_hal_response(
    entry: DistributionHistoryEntry,
    base_url: str
) -> Dict[str, Any]:
    """Build HAL representation of a history entry."""
    response = entry.to_response()

    links = {
        "ngoHistory": {"href": f"{base_url}/api/ngos/{entry.ngo_id}/distributions"}
    }

    if entry.orphanage_id:
        links["orphanageAccepted"] = {
            "href": f"{base_url}/api/orphanages/{entry.orphanage_id}/accepted-requests"
        }

    response["_links"] = links
    return response


def build_request_hal_response(
    request: OrphanageRequest,
    base_url: str,
    orphanage_name: Optional[str] = None,
    ngo_name: Optional[str] = None
) -> Dict[str, Any]:
    """Build HAL representation of an orphanage request with joined names."""
    response = request.to_response()

    if orphanage_name is not None:
        response["orphanageName"] = orphanage_name
    if ngo_name is not None:
        response["ngoName"] = ngo_name

    response["_links"] = {
        "orphanageRequests": {"href": f"{base_url}/api/orphanages/{request.orphanage_id}/requests"},
        "ngoRequests": {"href": f"{base_url}/api/ngos/{request.ngo_id}/requests"}
    }
    return response
