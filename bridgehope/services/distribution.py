# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Distribution engine: applies NGO accept/reject decisions on donations.

Validation runs in a fixed order and the first failure wins:

1. payload shape (``ValidationException``), before any store access
2. donation lookup (``NotFoundException``)
3. NGO ownership (``AuthorizationException``)
4. pending state (``ConflictException``)

Each outcome is then applied as one store transaction. An accept updates the
donation, appends an ACCEPTED history entry and deletes the orphanage
requests the donation fulfils; a reject claims the still pending donation and
appends a REJECTED entry. A write conflict with a concurrent decision on the
same donation is reported as ``ConflictException``.
"""

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode

from ..domain.distribution import (
    DecisionRequest,
    DistributionResult,
    build_history_entry,
    parse_decision_request,
    select_orphanage,
    validate_decision_authority,
    validate_decision_request,
    validate_decision_state
)
from ..domain.matching import KindMatchPolicy, RequestMatchPolicy
from ..exceptions import (
    AuthorizationException,
    ConflictException,
    CustomException,
    InternalErrorException,
    NotFoundException,
    StoreConflictError,
    StoreError,
    ValidationException
)
from ..models.entities import Donation, Party, UserContext
from ..models.enums import DecisionAction, PartyRole
from .audit import DistributionHistoryService
from .repository import DistributionRepository

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class DistributionEngine:
    """Validates and applies distribution decisions."""

    def __init__(
        self,
        repository: DistributionRepository,
        history_service: Optional[DistributionHistoryService] = None,
        match_policy: Optional[RequestMatchPolicy] = None
    ):
        self.repository = repository
        self.history_service = history_service or DistributionHistoryService(repository)
        self.match_policy = match_policy or KindMatchPolicy()
        logger.info(f"Distribution engine initialized with '{self.match_policy.name}' request matching")

    def decide(
        self,
        acting_ngo_id: str,
        donation_id: Optional[str],
        orphanage_name: Optional[str],
        action: Optional[str],
        orphanage_id: Optional[str] = None,
        user_context: Optional[UserContext] = None
    ) -> DistributionResult:
        """
        Validate and apply one decision.

        Args:
            acting_ngo_id: NGO submitting the decision
            donation_id: Donation to decide on
            orphanage_name: Receiving orphanage display name (accept only)
            action: 'accept' or 'reject'
            orphanage_id: Receiving orphanage ID, takes precedence over the name
            user_context: Caller context for audit correlation (optional)

        Returns:
            DistributionResult of the applied decision

        Raises:
            ValidationException: Malformed decision
            NotFoundException: Unknown donation or orphanage
            AuthorizationException: Donation addressed to another NGO
            ConflictException: Donation no longer pending
            InternalErrorException: Store failure, nothing was changed
        """
        with tracer.start_as_current_span("distribution.decide") as span:
            span.set_attributes({
                "distribution.ngo_id": acting_ngo_id,
                "distribution.donation_id": donation_id or "",
                "distribution.action": action or ""
            })

            try:
                decision = self._validate_payload(donation_id, orphanage_name, action, orphanage_id)
                donation = self._load_donation(decision.donation_id)
                self._check_authority(donation, acting_ngo_id)
                self._check_state(donation)

                if decision.action == DecisionAction.REJECT:
                    result = self._apply_reject(donation, acting_ngo_id, user_context)
                else:
                    orphanage = self._resolve_orphanage(decision)
                    result = self._apply_accept(donation, orphanage, acting_ngo_id, user_context)

            except CustomException as e:
                span.set_status(Status(StatusCode.ERROR, e.message))
                span.set_attribute("distribution.outcome", e.classification.value)
                logger.warning(
                    f"Distribution decision refused: {e.message}",
                    extra={
                        "ngo_id": acting_ngo_id,
                        "donation_id": donation_id,
                        "action": action,
                        "classification": e.classification.value
                    }
                )
                raise

            except StoreError as e:
                span.record_exception(e)
                span.set_status(Status(StatusCode.ERROR, str(e)))
                span.set_attribute("distribution.outcome", "InternalError")
                logger.error(
                    f"Distribution decision failed and was rolled back: {e}",
                    extra={
                        "ngo_id": acting_ngo_id,
                        "donation_id": donation_id,
                        "action": action
                    }
                )
                raise InternalErrorException("Distribution could not be recorded") from e

            span.set_attribute("distribution.outcome", result.distribution.action)
            span.set_attribute("distribution.deleted_requests", len(result.deleted_request_ids))
            span.set_status(Status(StatusCode.OK))
            return result

    # Validation steps

    def _validate_payload(
        self,
        donation_id: Optional[str],
        orphanage_name: Optional[str],
        action: Optional[str],
        orphanage_id: Optional[str]
    ) -> DecisionRequest:
        validation = validate_decision_request(donation_id, orphanage_name, action, orphanage_id)
        if not validation.is_valid:
            raise ValidationException(
                "; ".join(validation.errors),
                [{"field": "body", "message": error, "type": "value_error"} for error in validation.errors]
            )

        for warning in validation.warnings:
            logger.info(f"Distribution decision warning: {warning}", extra={"donation_id": donation_id})

        return parse_decision_request(donation_id, orphanage_name, action, orphanage_id)

    def _load_donation(self, donation_id: str) -> Donation:
        with tracer.start_as_current_span("distribution.load_donation") as span:
            span.set_attribute("donation.id", donation_id)
            donation = self.repository.get_donation(donation_id)
            if donation is None:
                raise NotFoundException("Donation not found")
            span.set_attribute("donation.status", donation.status)
            return donation

    def _check_authority(self, donation: Donation, acting_ngo_id: str) -> None:
        validation = validate_decision_authority(donation, acting_ngo_id)
        if not validation.is_valid:
            raise AuthorizationException(validation.errors[0])

    def _check_state(self, donation: Donation) -> None:
        validation = validate_decision_state(donation)
        if not validation.is_valid:
            raise ConflictException(validation.errors[0])

    def _resolve_orphanage(self, decision: DecisionRequest) -> Party:
        with tracer.start_as_current_span("distribution.resolve_orphanage") as span:
            if decision.orphanage_id:
                party = self.repository.get_party(decision.orphanage_id)
                candidates: List[Party] = [party] if party else []
            else:
                candidates = self.repository.find_parties(PartyRole.ORPHANAGE.value, decision.orphanage_name)

            orphanage = select_orphanage(candidates, decision.orphanage_name, decision.orphanage_id)
            if orphanage is None:
                raise NotFoundException("Orphanage not found by that name")

            if not decision.orphanage_id and len(candidates) > 1:
                logger.warning(
                    f"Orphanage name '{decision.orphanage_name}' is ambiguous, using oldest record",
                    extra={
                        "orphanage_name": decision.orphanage_name,
                        "candidate_ids": [c.id for c in candidates],
                        "selected_id": orphanage.id
                    }
                )

            span.set_attribute("orphanage.id", orphanage.id)
            span.set_attribute("orphanage.candidates", len(candidates))
            return orphanage

    # Outcome transactions

    @contextmanager
    def _decision_transaction(self) -> Iterator[object]:
        try:
            with self.repository.transaction() as session:
                yield session
        except StoreConflictError as e:
            raise ConflictException("Donation is no longer pending") from e

    def _recheck_pending(self, donation_id: str, session) -> Donation:
        current = self.repository.get_donation(donation_id, session=session)
        if current is None:
            raise NotFoundException("Donation not found")
        self._check_state(current)
        return current

    def _apply_reject(
        self,
        donation: Donation,
        acting_ngo_id: str,
        user_context: Optional[UserContext]
    ) -> DistributionResult:
        with tracer.start_as_current_span("distribution.apply_reject"):
            with self._decision_transaction() as session:
                current = self.repository.claim_pending_donation(donation.id, session=session)
                if current is None:
                    self._recheck_pending(donation.id, session)
                    raise ConflictException("Donation is no longer pending")

                entry = build_history_entry(current, acting_ngo_id, DecisionAction.REJECT)
                self.history_service.append(entry, session=session, user_context=user_context)

            logger.info(
                f"Donation {donation.id} rejected by NGO {acting_ngo_id}",
                extra={"donation_id": donation.id, "ngo_id": acting_ngo_id, "history_id": entry.id}
            )
            return DistributionResult(
                action=DecisionAction.REJECT,
                donation_id=donation.id,
                distribution=entry,
                donation=current
            )

    def _apply_accept(
        self,
        donation: Donation,
        orphanage: Party,
        acting_ngo_id: str,
        user_context: Optional[UserContext]
    ) -> DistributionResult:
        with tracer.start_as_current_span("distribution.apply_accept") as span:
            span.set_attribute("orphanage.id", orphanage.id)

            with self._decision_transaction() as session:
                updated = self.repository.mark_donation_distributed(
                    donation.id, orphanage.name, session=session
                )
                if updated is None:
                    # Guard failed: tell a vanished donation from a concurrent decision
                    self._recheck_pending(donation.id, session)
                    raise ConflictException("Donation is no longer pending")

                entry = build_history_entry(
                    updated, acting_ngo_id, DecisionAction.ACCEPT, orphanage_id=orphanage.id
                )
                self.history_service.append(entry, session=session, user_context=user_context)

                criteria = self.match_policy.build_criteria(updated, orphanage.id, acting_ngo_id)
                deleted_request_ids = self.repository.delete_requests(criteria, session=session)

            logger.info(
                f"Donation {donation.id} distributed to orphanage {orphanage.id}",
                extra={
                    "donation_id": donation.id,
                    "ngo_id": acting_ngo_id,
                    "orphanage_id": orphanage.id,
                    "history_id": entry.id,
                    "deleted_requests": len(deleted_request_ids)
                }
            )
            return DistributionResult(
                action=DecisionAction.ACCEPT,
                donation_id=donation.id,
                distribution=entry,
                donation=updated,
                deleted_request_ids=deleted_request_ids
            )
