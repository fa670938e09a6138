# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Donation records, orphanage request ledger and directory reads.
"""

import logging
from typing import Any, Dict, List, Optional

from opentelemetry import trace

from ..exceptions import AuthorizationException, InternalErrorException, NotFoundException, StoreError
from ..models.entities import Donation, OrphanageRequest, Party, UserContext
from ..models.enums import PartyRole
from ..models.requests import CreateDonationRequest, CreateOrphanageRequestRequest
from .mongodb import PaginationResult
from .repository import DistributionRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


def _require_party(repository: DistributionRepository, party_id: str, role: PartyRole, label: str) -> Party:
    party = repository.get_party(party_id)
    if party is None or party.role != role:
        raise NotFoundException(f"{label} not found")
    return party


class DonationService:
    """Creation and listing of donations."""

    def __init__(self, repository: DistributionRepository):
        self.repository = repository

    def create_donation(self, payload: CreateDonationRequest, user_context: UserContext) -> Donation:
        """
        Record a donor's pledge to an NGO.

        The donor in the payload must be the caller and the target must be a
        registered NGO. New donations always start pending.

        Raises:
            AuthorizationException: Payload donor is not the caller
            NotFoundException: Unknown NGO
        """
        with tracer.start_as_current_span("donations.create") as span:
            span.set_attributes({
                "donation.donor_id": payload.donor_id,
                "donation.ngo_id": payload.ngo_id,
                "donation.kind": payload.kind
            })

            if not user_context.is_party(payload.donor_id):
                raise AuthorizationException("Donations can only be made on your own behalf")

            try:
                _require_party(self.repository, payload.ngo_id, PartyRole.NGO, "NGO")

                donation = Donation(
                    donor_id=payload.donor_id,
                    ngo_id=payload.ngo_id,
                    kind=payload.kind,
                    amount=payload.amount,
                    item_name=payload.item_name,
                    count=payload.count
                )
                self.repository.insert_donation(donation)
            except StoreError as e:
                span.record_exception(e)
                raise InternalErrorException("Donation could not be recorded") from e

            span.set_attribute("donation.id", donation.id)
            logger.info(
                f"Donation {donation.id} pledged to NGO {donation.ngo_id}",
                extra={
                    "donation_id": donation.id,
                    "donor_id": donation.donor_id,
                    "ngo_id": donation.ngo_id,
                    "kind": donation.kind
                }
            )
            return donation

    def list_for_ngo(self, ngo_id: str, page: int = 1, page_size: int = 20) -> PaginationResult:
        """Donations received by an NGO, newest first."""
        return self._list({"ngo_id": ngo_id}, page, page_size)

    def list_for_donor(self, donor_id: str, page: int = 1, page_size: int = 20) -> PaginationResult:
        """Donations made by a donor, newest first."""
        return self._list({"donor_id": donor_id}, page, page_size)

    def _list(self, filters: Dict[str, Any], page: int, page_size: int) -> PaginationResult:
        with tracer.start_as_current_span("donations.list") as span:
            span.set_attribute("donations.filters", ",".join(filters))
            try:
                return self.repository.list_donations(filters, page, page_size)
            except StoreError as e:
                span.record_exception(e)
                raise InternalErrorException() from e


class RequestLedgerService:
    """Creation and listing of orphanage requests."""

    def __init__(self, repository: DistributionRepository):
        self.repository = repository

    def create_request(self, orphanage_id: str, payload: CreateOrphanageRequestRequest) -> OrphanageRequest:
        """Record an orphanage's ask to an NGO; it stays pending until fulfilled by an accept."""
        with tracer.start_as_current_span("requests.create") as span:
            span.set_attributes({
                "request.orphanage_id": orphanage_id,
                "request.ngo_id": payload.ngo_id,
                "request.kind": payload.kind
            })

            try:
                _require_party(self.repository, payload.ngo_id, PartyRole.NGO, "NGO")

                request = OrphanageRequest(
                    orphanage_id=orphanage_id,
                    ngo_id=payload.ngo_id,
                    kind=payload.kind,
                    amount=payload.amount,
                    item_name=payload.item_name,
                    count=payload.count
                )
                self.repository.insert_request(request)
            except StoreError as e:
                span.record_exception(e)
                raise InternalErrorException("Request could not be recorded") from e

            logger.info(
                f"Orphanage {orphanage_id} requested support from NGO {payload.ngo_id}",
                extra={"request_id": request.id, "orphanage_id": orphanage_id, "ngo_id": payload.ngo_id}
            )
            return request

    def list_for_orphanage(self, orphanage_id: str, page: int = 1, page_size: int = 20) -> PaginationResult:
        """Requests made by an orphanage, newest first."""
        return self._list({"orphanage_id": orphanage_id}, page, page_size)

    def list_for_ngo(self, ngo_id: str, page: int = 1, page_size: int = 20) -> PaginationResult:
        """Requests addressed to an NGO, newest first."""
        return self._list({"ngo_id": ngo_id}, page, page_size)

    def party_names(self, party_ids: List[str]) -> Dict[str, Optional[str]]:
        """Resolve display names for joined listings; unknown parties map to None."""
        names = {}
        for party_id in set(party_ids):
            party = self.repository.get_party(party_id)
            names[party_id] = party.name if party else None
        return names

    def _list(self, filters: Dict[str, Any], page: int, page_size: int) -> PaginationResult:
        with tracer.start_as_current_span("requests.list") as span:
            span.set_attribute("requests.filters", ",".join(filters))
            try:
                return self.repository.list_requests(filters, page, page_size)
            except StoreError as e:
                span.record_exception(e)
                raise InternalErrorException() from e


class DirectoryService:
    """Read access to the identity directory."""

    def __init__(self, repository: DistributionRepository):
        self.repository = repository

    def list_ngos(self) -> List[Party]:
        """All registered NGOs, oldest first."""
        with tracer.start_as_current_span("directory.list_ngos"):
            try:
                return self.repository.find_parties(PartyRole.NGO.value)
            except StoreError as e:
                raise InternalErrorException() from e
