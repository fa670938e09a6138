# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-process repository for local development and tests.
"""

import copy
import logging
import threading
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional

from ..exceptions import StoreError
from ..models.entities import (
    DistributionHistoryEntry, Donation, OrphanageRequest, Party
)
from .mongodb import PaginationResult
from .repository import DistributionRepository

logger = logging.getLogger(__name__)


class InMemoryDistributionRepository(DistributionRepository):
    """
    Dictionary-backed repository.

    ``transaction()`` holds a re-entrant lock for the whole unit of work and
    restores a snapshot of every record set when the block raises.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._parties: Dict[str, Party] = {}
        self._donations: Dict[str, Donation] = {}
        self._requests: Dict[str, OrphanageRequest] = {}
        self._history: List[DistributionHistoryEntry] = []
        logger.info("In-memory repository initialized")

    def _snapshot(self) -> Dict[str, Any]:
        return {
            "parties": copy.deepcopy(self._parties),
            "donations": copy.deepcopy(self._donations),
            "requests": copy.deepcopy(self._requests),
            "history": list(self._history)
        }

    def _restore(self, snapshot: Dict[str, Any]) -> None:
        self._parties = snapshot["parties"]
        self._donations = snapshot["donations"]
        self._requests = snapshot["requests"]
        self._history = snapshot["history"]

    @contextmanager
    def transaction(self) -> Iterator[None]:
        with self._lock:
            snapshot = self._snapshot()
            try:
                yield None
            except Exception:
                self._restore(snapshot)
                logger.warning("In-memory transaction rolled back")
                raise

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            return {
                "status": "healthy",
                "backend": "memory",
                "donations": len(self._donations),
                "requests": len(self._requests),
                "history": len(self._history)
            }

    # Identity directory

    def get_party(self, party_id: str) -> Optional[Party]:
        with self._lock:
            return self._parties.get(party_id)

    def find_parties(self, role: str, name: Optional[str] = None) -> List[Party]:
        with self._lock:
            parties = [
                p for p in self._parties.values()
                if p.role == role and (name is None or p.name == name)
            ]
        return sorted(parties, key=lambda p: (p.created_at, p.id))

    def add_party(self, party: Party) -> Party:
        with self._lock:
            if party.id in self._parties:
                raise StoreError(f"Duplicate party id: {party.id}")
            self._parties[party.id] = party
        return party

    # Donations

    def get_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        with self._lock:
            return self._donations.get(donation_id)

    def insert_donation(self, donation: Donation) -> Donation:
        with self._lock:
            if donation.id in self._donations:
                raise StoreError(f"Duplicate donation id: {donation.id}")
            self._donations[donation.id] = donation
        return donation

    def mark_donation_distributed(
        self, donation_id: str, orphanage_name: str, session=None
    ) -> Optional[Donation]:
        with self._lock:
            donation = self._donations.get(donation_id)
            if donation is None or not donation.is_pending():
                return None
            updated = donation.as_distributed(orphanage_name)
            self._donations[donation_id] = updated
            return updated

    def claim_pending_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        with self._lock:
            donation = self._donations.get(donation_id)
            return donation if donation is not None and donation.is_pending() else None

    def list_donations(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        with self._lock:
            donations = list(self._donations.values())
        return self._paginate(donations, filters, page, page_size, lambda d: d.created_at)

    # Request ledger

    def insert_request(self, request: OrphanageRequest) -> OrphanageRequest:
        with self._lock:
            if request.id in self._requests:
                raise StoreError(f"Duplicate request id: {request.id}")
            self._requests[request.id] = request
        return request

    def delete_requests(self, criteria: Dict[str, Any], session=None) -> List[str]:
        with self._lock:
            request_ids = [
                request_id for request_id, request in self._requests.items()
                if _matches(request, criteria)
            ]
            for request_id in request_ids:
                del self._requests[request_id]
        return request_ids

    def list_requests(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        with self._lock:
            requests = list(self._requests.values())
        return self._paginate(requests, filters, page, page_size, lambda r: r.created_at)

    # Distribution history

    def append_history(
        self, entry: DistributionHistoryEntry, session=None
    ) -> DistributionHistoryEntry:
        with self._lock:
            self._history.append(entry)
        return entry

    def list_history(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        with self._lock:
            entries = list(self._history)
        return self._paginate(entries, filters, page, page_size, lambda e: e.distributed_at)

    def _paginate(
        self, records: List[Any], filters: Dict[str, Any],
        page: int, page_size: int, sort_key: Callable[[Any], Any]
    ) -> PaginationResult:
        selected = [r for r in records if _matches(r, filters)]
        # Stable sort keeps insertion order for equal timestamps, reversed for newest first
        selected = list(reversed(sorted(selected, key=sort_key)))
        start = (page - 1) * page_size
        return PaginationResult(selected[start:start + page_size], len(selected), page, page_size)


def _matches(record: Any, criteria: Dict[str, Any]) -> bool:
    values = record.model_dump()
    for field, value in criteria.items():
        if hasattr(value, "value"):
            value = value.value
        if values.get(field) != value:
            return False
    return True
