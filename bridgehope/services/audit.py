# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Distribution history service: append-only audit trail with OpenTelemetry correlation.
"""

import logging
from typing import Any, Dict, List, Optional

from opentelemetry import trace

from ..models.entities import DistributionHistoryEntry, UserContext
from ..models.enums import DistributionAction
from .mongodb import PaginationResult
from .repository import DistributionRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DistributionHistoryService:
    """Writer and reader for distribution history entries."""

    def __init__(self, repository: DistributionRepository):
        """Initialize history service with repository dependency."""
        self.repository = repository
        logger.info("Distribution history service initialized")

    def append(
        self,
        entry: DistributionHistoryEntry,
        session=None,
        user_context: Optional[UserContext] = None
    ) -> DistributionHistoryEntry:
        """
        Append a history entry inside the caller's transaction.

        Entries are never updated or deleted once written.

        Args:
            entry: Entry built for the decision
            session: Store session of the enclosing transaction
            user_context: Caller context with request details (optional)

        Returns:
            The appended entry
        """
        with tracer.start_as_current_span("history.append") as span:
            span_context = span.get_span_context()

            span.set_attributes({
                "history.action": entry.action,
                "history.donation_id": entry.donation_id,
                "history.ngo_id": entry.ngo_id
            })

            self.repository.append_history(entry, session=session)

            log_extra = {
                "history_id": entry.id,
                "donation_id": entry.donation_id,
                "ngo_id": entry.ngo_id,
                "orphanage_id": entry.orphanage_id,
                "donor_id": entry.donor_id,
                "action": entry.action
            }
            if span_context.is_valid:
                log_extra.update({
                    "trace_id": format(span_context.trace_id, "032x"),
                    "span_id": format(span_context.span_id, "016x")
                })
            if user_context:
                log_extra.update({
                    "ip_address": user_context.ip_address,
                    "user_agent": user_context.user_agent,
                    "request_id": user_context.request_id
                })

            logger.info(
                f"Distribution history: {entry.action} donation {entry.donation_id}",
                extra=log_extra
            )
            return entry

    def for_ngo(self, ngo_id: str, page: int = 1, page_size: int = 20) -> PaginationResult:
        """Get every decision made by an NGO, newest first."""
        with tracer.start_as_current_span("history.for_ngo") as span:
            span.set_attribute("history.ngo_id", ngo_id)
            result = self.repository.list_history({"ngo_id": ngo_id}, page, page_size)
            span.set_attribute("history.result_count", len(result.items))
            return result

    def for_donation(self, donation_id: str) -> List[DistributionHistoryEntry]:
        """Get every decision made on a donation, oldest first."""
        with tracer.start_as_current_span("history.for_donation") as span:
            span.set_attribute("history.donation_id", donation_id)
            entries: List[DistributionHistoryEntry] = []
            page = 1
            while True:
                result = self.repository.list_history({"donation_id": donation_id}, page, 100)
                entries.extend(result.items)
                if not result.has_next:
                    break
                page += 1
            return list(reversed(entries))

    def accepted_for_orphanage(
        self, orphanage_id: str, page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        """
        Get accepted distributions received by an orphanage.

        Each item is a response dict of the history entry joined with the
        donation kind and payload, and the donor and NGO display names.
        Missing joined records leave the corresponding fields null.
        """
        with tracer.start_as_current_span("history.accepted_for_orphanage") as span:
            span.set_attribute("history.orphanage_id", orphanage_id)

            result = self.repository.list_history(
                {"orphanage_id": orphanage_id, "action": DistributionAction.ACCEPTED},
                page,
                page_size
            )

            names: Dict[str, Optional[str]] = {}
            items = []
            for entry in result.items:
                items.append(self._join_entry(entry, names))

            span.set_attribute("history.result_count", len(items))
            return PaginationResult(items, result.total, result.page, result.page_size)

    def _join_entry(
        self, entry: DistributionHistoryEntry, names: Dict[str, Optional[str]]
    ) -> Dict[str, Any]:
        item = entry.to_response()

        donation = self.repository.get_donation(entry.donation_id)
        item.update({
            "kind": donation.kind if donation else None,
            "amount": donation.amount if donation else None,
            "itemName": donation.item_name if donation else None,
            "count": donation.count if donation else None
        })
        item["donorName"] = self._party_name(entry.donor_id, names)
        item["ngoName"] = self._party_name(entry.ngo_id, names)
        return item

    def _party_name(self, party_id: str, names: Dict[str, Optional[str]]) -> Optional[str]:
        if party_id not in names:
            party = self.repository.get_party(party_id)
            names[party_id] = party.name if party else None
        return names[party_id]
