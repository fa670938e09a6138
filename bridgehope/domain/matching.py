# SPDX-License-Identifier: Apache-2.0

"""
Request matching policies for accepted donations.

When a donation is accepted for an orphanage, the orphanage's pending
requests to the deciding NGO that the donation satisfies are removed from
the request ledger. A policy only decides *which* requests match; the
distribution engine owns the deletion and the transaction around it.
"""

from typing import Any, Dict, Optional

from ..models.entities import Donation, OrphanageRequest
from ..models.enums import DonationKind, RequestStatus


class RequestMatchPolicy:
    """Base policy: builds the criteria selecting requests fulfilled by a donation."""

    name = "base"

    def build_criteria(self, donation: Donation, orphanage_id: str, ngo_id: str) -> Dict[str, Any]:
        """
        Build match criteria as a flat field/value mapping.

        Keys are snake_case entity field names. Repositories translate them to
        their storage keys and select requests whose fields equal every value.

        Args:
            donation: Donation being accepted
            orphanage_id: Resolved orphanage party ID
            ngo_id: Deciding NGO party ID

        Returns:
            Dictionary of criteria
        """
        return {
            "orphanage_id": orphanage_id,
            "ngo_id": ngo_id,
            "status": RequestStatus.PENDING.value
        }

    def matches(self, request: OrphanageRequest, criteria: Dict[str, Any]) -> bool:
        """Check a single request against criteria built by this policy."""
        values = request.model_dump()
        return all(values.get(field) == value for field, value in criteria.items())


class KindMatchPolicy(RequestMatchPolicy):
    """
    Loose match on kind only.

    Every pending request of the same kind from the orphanage to the NGO is
    considered fulfilled, whatever its amount, item or count.
    """

    name = "kind"

    def build_criteria(self, donation: Donation, orphanage_id: str, ngo_id: str) -> Dict[str, Any]:
        criteria = super().build_criteria(donation, orphanage_id, ngo_id)
        criteria["kind"] = donation.kind
        return criteria


class ExactPayloadMatchPolicy(KindMatchPolicy):
    """Match on kind and the full payload (amount, or item name and count)."""

    name = "exact"

    def build_criteria(self, donation: Donation, orphanage_id: str, ngo_id: str) -> Dict[str, Any]:
        criteria = super().build_criteria(donation, orphanage_id, ngo_id)
        if donation.kind == DonationKind.MONEY:
            criteria["amount"] = donation.amount
        else:
            criteria["item_name"] = donation.item_name
            criteria["count"] = donation.count
        return criteria


_POLICIES = {
    KindMatchPolicy.name: KindMatchPolicy,
    ExactPayloadMatchPolicy.name: ExactPayloadMatchPolicy
}


def get_match_policy(name: Optional[str] = None) -> RequestMatchPolicy:
    """
    Get request match policy by configuration name.

    Args:
        name: Policy name ('kind' or 'exact'); defaults to 'kind'

    Returns:
        RequestMatchPolicy instance

    Raises:
        ValueError: If the name is unknown
    """
    policy_name = (name or KindMatchPolicy.name).strip().lower()
    if policy_name not in _POLICIES:
        raise ValueError(f"Unknown request match policy: {name}")
    return _POLICIES[policy_name]()
