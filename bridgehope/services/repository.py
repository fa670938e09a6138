# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Store interface for the distribution workflow and its MongoDB implementation.

The repository groups the four record sets the workflow touches: the
identity directory, donations, orphanage requests and the distribution
history. Writes that belong to one decision take the session yielded by
``transaction()`` so they commit or roll back together.
"""

import logging
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from opentelemetry import trace
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import OperationFailure, PyMongoError
from pydantic.alias_generators import to_camel

from ..exceptions import StoreConflictError, StoreError
from ..models.entities import (
    DistributionHistoryEntry, Donation, OrphanageRequest, Party
)
from ..models.enums import DonationStatus
from .mongodb import (
    DISTRIBUTION_HISTORY, DONATIONS, ORPHANAGE_REQUESTS, PARTIES,
    MongoDBService, PaginationResult
)

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DistributionRepository(ABC):
    """Store operations required by the distribution workflow."""

    # Transactions

    @abstractmethod
    def transaction(self):
        """Context manager yielding a session for an all-or-nothing unit of work."""

    @abstractmethod
    def health_check(self) -> Dict[str, Any]:
        """Report backing store health."""

    # Identity directory

    @abstractmethod
    def get_party(self, party_id: str) -> Optional[Party]:
        """Look up a party by ID."""

    @abstractmethod
    def find_parties(self, role: str, name: Optional[str] = None) -> List[Party]:
        """Look up parties by role (and exact name), oldest first."""

    @abstractmethod
    def add_party(self, party: Party) -> Party:
        """Register a party (seeding and tests)."""

    # Donations

    @abstractmethod
    def get_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        """Look up a donation by ID."""

    @abstractmethod
    def insert_donation(self, donation: Donation) -> Donation:
        """Insert a new donation."""

    @abstractmethod
    def mark_donation_distributed(
        self, donation_id: str, orphanage_name: str, session=None
    ) -> Optional[Donation]:
        """
        Move a donation to distributed if and only if it is still pending.

        Returns the updated donation, or None when the donation is missing or
        no longer pending.
        """

    @abstractmethod
    def claim_pending_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        """
        Take the write lock on a pending donation inside a transaction.

        Concurrent decisions on the same donation then conflict instead of
        both committing. Returns None when the donation is missing or no
        longer pending.
        """

    @abstractmethod
    def list_donations(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        """List donations matching field filters, newest first."""

    # Request ledger

    @abstractmethod
    def insert_request(self, request: OrphanageRequest) -> OrphanageRequest:
        """Insert a new orphanage request."""

    @abstractmethod
    def delete_requests(self, criteria: Dict[str, Any], session=None) -> List[str]:
        """Delete requests matching criteria and return their IDs."""

    @abstractmethod
    def list_requests(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        """List requests matching field filters, newest first."""

    # Distribution history

    @abstractmethod
    def append_history(
        self, entry: DistributionHistoryEntry, session=None
    ) -> DistributionHistoryEntry:
        """Append an immutable history entry."""

    @abstractmethod
    def list_history(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        """List history entries matching field filters, newest first."""


def to_storage_filter(filters: Dict[str, Any]) -> Dict[str, Any]:
    """Translate snake_case entity field filters to camelCase document keys."""
    query = {}
    for field, value in filters.items():
        key = "_id" if field == "id" else to_camel(field)
        query[key] = value.value if hasattr(value, "value") else value
    return query


# Server error code for a document written by another open transaction
WRITE_CONFLICT_CODE = 112


def is_write_conflict(error: PyMongoError) -> bool:
    """Check if a driver error reports a transaction write conflict."""
    return isinstance(error, OperationFailure) and (
        error.code == WRITE_CONFLICT_CODE
        or (error.details or {}).get("codeName") == "WriteConflict"
    )


class MongoDistributionRepository(DistributionRepository):
    """MongoDB-backed repository using multi-document transactions."""

    def __init__(self, mongo_service: MongoDBService):
        self.mongo_service = mongo_service

    def _collection(self, name: str):
        return self.mongo_service.get_collection(name)

    def _fail(self, operation: str, error: PyMongoError) -> StoreError:
        if is_write_conflict(error):
            logger.warning(
                f"MongoDB write conflict: {operation}",
                extra={"operation": operation, "error": str(error)}
            )
            return StoreConflictError(f"{operation} conflicted with a concurrent write")

        logger.error(
            f"MongoDB operation failed: {operation}",
            extra={"operation": operation, "error": str(error)}
        )
        return StoreError(f"{operation} failed: {error}")

    # Transactions

    @contextmanager
    def transaction(self) -> Iterator[Any]:
        with tracer.start_as_current_span("db.transaction") as span:
            try:
                with self.mongo_service.transaction() as session:
                    yield session
                span.set_attribute("db.transaction.result", "committed")
            except PyMongoError as e:
                span.set_attribute("db.transaction.result", "failed")
                span.record_exception(e)
                raise self._fail("transaction", e) from e

    def health_check(self) -> Dict[str, Any]:
        return self.mongo_service.health_check()

    # Identity directory

    def get_party(self, party_id: str) -> Optional[Party]:
        try:
            document = self._collection(PARTIES).find_one({"_id": party_id})
        except PyMongoError as e:
            raise self._fail("get_party", e) from e
        return Party.from_document(document) if document else None

    def find_parties(self, role: str, name: Optional[str] = None) -> List[Party]:
        query = {"role": role}
        if name is not None:
            query["name"] = name
        try:
            cursor = self._collection(PARTIES).find(query).sort([
                ("createdAt", ASCENDING), ("_id", ASCENDING)
            ])
            documents = list(cursor)
        except PyMongoError as e:
            raise self._fail("find_parties", e) from e

        logger.debug(f"Found {len(documents)} parties with role {role}")
        return [Party.from_document(doc) for doc in documents]

    def add_party(self, party: Party) -> Party:
        try:
            self._collection(PARTIES).insert_one(party.to_document())
        except PyMongoError as e:
            raise self._fail("add_party", e) from e
        logger.info(f"Registered party {party.id} with role {party.role}")
        return party

    # Donations

    def get_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        try:
            document = self._collection(DONATIONS).find_one({"_id": donation_id}, session=session)
        except PyMongoError as e:
            raise self._fail("get_donation", e) from e
        return Donation.from_document(document) if document else None

    def insert_donation(self, donation: Donation) -> Donation:
        try:
            self._collection(DONATIONS).insert_one(donation.to_document())
        except PyMongoError as e:
            raise self._fail("insert_donation", e) from e
        logger.info(f"Created document in {DONATIONS}: {donation.id}")
        return donation

    def mark_donation_distributed(
        self, donation_id: str, orphanage_name: str, session=None
    ) -> Optional[Donation]:
        try:
            document = self._collection(DONATIONS).find_one_and_update(
                {"_id": donation_id, "status": DonationStatus.PENDING.value},
                {"$set": {
                    "status": DonationStatus.DISTRIBUTED.value,
                    "distributedToName": orphanage_name
                }},
                return_document=ReturnDocument.AFTER,
                session=session
            )
        except PyMongoError as e:
            raise self._fail("mark_donation_distributed", e) from e

        if document is None:
            logger.warning(f"No pending donation updated for {donation_id}")
            return None

        return Donation.from_document(document)

    def claim_pending_donation(self, donation_id: str, session=None) -> Optional[Donation]:
        try:
            document = self._collection(DONATIONS).find_one_and_update(
                {"_id": donation_id, "status": DonationStatus.PENDING.value},
                {"$inc": {"decisionCount": 1}},
                return_document=ReturnDocument.AFTER,
                session=session
            )
        except PyMongoError as e:
            raise self._fail("claim_pending_donation", e) from e

        return Donation.from_document(document) if document else None

    def list_donations(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        return self._paginate(DONATIONS, Donation, filters, page, page_size, "createdAt")

    # Request ledger

    def insert_request(self, request: OrphanageRequest) -> OrphanageRequest:
        try:
            self._collection(ORPHANAGE_REQUESTS).insert_one(request.to_document())
        except PyMongoError as e:
            raise self._fail("insert_request", e) from e
        logger.info(f"Created document in {ORPHANAGE_REQUESTS}: {request.id}")
        return request

    def delete_requests(self, criteria: Dict[str, Any], session=None) -> List[str]:
        query = to_storage_filter(criteria)
        collection = self._collection(ORPHANAGE_REQUESTS)
        try:
            request_ids = [
                doc["_id"] for doc in collection.find(query, {"_id": 1}, session=session)
            ]
            if request_ids:
                collection.delete_many({"_id": {"$in": request_ids}}, session=session)
        except PyMongoError as e:
            raise self._fail("delete_requests", e) from e

        logger.debug(f"Deleted {len(request_ids)} documents from {ORPHANAGE_REQUESTS}")
        return [str(request_id) for request_id in request_ids]

    def list_requests(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        return self._paginate(ORPHANAGE_REQUESTS, OrphanageRequest, filters, page, page_size, "createdAt")

    # Distribution history

    def append_history(
        self, entry: DistributionHistoryEntry, session=None
    ) -> DistributionHistoryEntry:
        try:
            self._collection(DISTRIBUTION_HISTORY).insert_one(entry.to_document(), session=session)
        except PyMongoError as e:
            raise self._fail("append_history", e) from e
        return entry

    def list_history(
        self, filters: Dict[str, Any], page: int = 1, page_size: int = 20
    ) -> PaginationResult:
        return self._paginate(
            DISTRIBUTION_HISTORY, DistributionHistoryEntry, filters, page, page_size, "distributedAt"
        )

    def _paginate(
        self, collection: str, entity_class, filters: Dict[str, Any],
        page: int, page_size: int, sort_by: str
    ) -> PaginationResult:
        """Paginate documents with field filters, newest first."""
        query = to_storage_filter(filters)
        skip = (page - 1) * page_size
        try:
            collection_obj = self._collection(collection)
            total = collection_obj.count_documents(query)
            cursor = collection_obj.find(query).sort(sort_by, DESCENDING).skip(skip).limit(page_size)
            documents = list(cursor)
        except PyMongoError as e:
            raise self._fail(f"paginate {collection}", e) from e

        logger.debug(f"Paginated {len(documents)} documents from {collection} (page {page})")
        return PaginationResult(
            [entity_class.from_document(doc) for doc in documents], total, page, page_size
        )
