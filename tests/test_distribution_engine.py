# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for the distribution engine over the in-memory repository.
"""

import threading

import pytest
from datetime import timedelta
from unittest.mock import MagicMock

from bridgehope.domain.matching import ExactPayloadMatchPolicy
from bridgehope.exceptions import (
    AuthorizationException,
    ConflictException,
    InternalErrorException,
    NotFoundException,
    StoreError,
    ValidationException
)
from bridgehope.models.entities import OrphanageRequest, Party
from bridgehope.models.enums import DistributionAction, DonationKind, DonationStatus, PartyRole
from bridgehope.services.distribution import DistributionEngine


@pytest.fixture
def engine(repository):
    return DistributionEngine(repository)


def _history(repository):
    return repository.list_history({}, 1, 100).items


def _requests(repository):
    return repository.list_requests({}, 1, 100).items


class TestRejectPath:
    """Test rejecting a donation."""

    def test_reject_appends_one_entry_and_keeps_pending(self, engine, repository, parties, make_donation):
        donation = make_donation()

        result = engine.decide(parties["ngo"].id, donation.id, None, "reject")

        assert result.to_payload() == {"donationId": donation.id}
        assert repository.get_donation(donation.id).status == DonationStatus.PENDING

        history = _history(repository)
        assert len(history) == 1
        assert history[0].action == DistributionAction.REJECTED
        assert history[0].orphanage_id is None
        assert history[0].donor_id == parties["donor"].id
        assert history[0].ngo_id == parties["ngo"].id

    def test_reject_leaves_requests_untouched(self, engine, repository, parties, make_donation, make_request):
        donation = make_donation()
        make_request()

        engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "reject")

        assert len(_requests(repository)) == 1

    def test_repeated_reject_is_allowed(self, engine, repository, parties, make_donation):
        donation = make_donation()

        engine.decide(parties["ngo"].id, donation.id, None, "reject")
        engine.decide(parties["ngo"].id, donation.id, None, "reject")

        assert len(_history(repository)) == 2

    def test_reject_then_accept(self, engine, repository, parties, make_donation):
        donation = make_donation()

        engine.decide(parties["ngo"].id, donation.id, None, "reject")
        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert result.donation.status == DonationStatus.DISTRIBUTED
        actions = [entry.action for entry in engine.history_service.for_donation(donation.id)]
        assert actions == ["rejected", "accepted"]


class TestAcceptPath:
    """Test accepting a donation for an orphanage."""

    def test_accept_updates_donation_history_and_requests(
        self, engine, repository, parties, make_donation, make_request
    ):
        donation = make_donation(amount=50.0)
        matching = make_request(amount=30.0)
        other_kind = make_request(kind=DonationKind.ITEM)
        other_orphanage = make_request(orphanage="other_orphanage")
        other_ngo = make_request(ngo="other_ngo")

        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert result.accepted
        assert result.donation.status == DonationStatus.DISTRIBUTED
        assert result.donation.distributed_to_name == "Sunrise Home"
        assert result.deleted_request_ids == [matching.id]

        stored = repository.get_donation(donation.id)
        assert stored.status == DonationStatus.DISTRIBUTED
        assert stored.distributed_to_name == "Sunrise Home"

        history = _history(repository)
        assert len(history) == 1
        assert history[0].action == DistributionAction.ACCEPTED
        assert history[0].orphanage_id == parties["orphanage"].id
        assert history[0].donor_id == parties["donor"].id

        remaining = {r.id for r in _requests(repository)}
        assert remaining == {other_kind.id, other_orphanage.id, other_ngo.id}

    def test_accept_removes_every_matching_request(self, engine, repository, parties, make_donation, make_request):
        donation = make_donation()
        make_request(amount=10.0)
        make_request(amount=999.0)

        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert len(result.deleted_request_ids) == 2
        assert _requests(repository) == []

    def test_exact_policy_keeps_different_payloads(self, repository, parties, make_donation, make_request):
        engine = DistributionEngine(repository, match_policy=ExactPayloadMatchPolicy())
        donation = make_donation(kind=DonationKind.ITEM, item_name="blankets", count=10)
        exact = make_request(kind=DonationKind.ITEM, item_name="blankets", count=10)
        smaller = make_request(kind=DonationKind.ITEM, item_name="blankets", count=2)

        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert result.deleted_request_ids == [exact.id]
        assert [r.id for r in _requests(repository)] == [smaller.id]

    def test_accept_without_requests(self, engine, repository, parties, make_donation):
        donation = make_donation()

        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert result.deleted_request_ids == []
        assert len(_history(repository)) == 1

    def test_accept_by_orphanage_id(self, engine, repository, parties, make_donation):
        donation = make_donation()

        result = engine.decide(
            parties["ngo"].id, donation.id, None, "accept", orphanage_id=parties["other_orphanage"].id
        )

        assert result.donation.distributed_to_name == "Little Stars"
        assert result.distribution.orphanage_id == parties["other_orphanage"].id

    def test_duplicate_names_resolve_to_oldest(self, engine, repository, parties, make_donation):
        newer = Party(
            role=PartyRole.ORPHANAGE,
            name="Sunrise Home",
            created_at=parties["orphanage"].created_at + timedelta(days=30)
        )
        repository.add_party(newer)
        donation = make_donation()

        result = engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert result.distribution.orphanage_id == parties["orphanage"].id


class TestValidationOrder:
    """Test that the first failing check decides the outcome and nothing is written."""

    def _assert_unchanged(self, repository, donation_id, request_count=0):
        assert repository.get_donation(donation_id).status == DonationStatus.PENDING
        assert _history(repository) == []
        assert len(_requests(repository)) == request_count

    def test_invalid_action(self, engine, repository, parties, make_donation):
        donation = make_donation()

        with pytest.raises(ValidationException) as exc_info:
            engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "approve")

        assert exc_info.value.status_code == 400
        assert exc_info.value.validation_errors
        self._assert_unchanged(repository, donation.id)

    def test_invalid_input_precedes_store_access(self, parties):
        repository = MagicMock()
        engine = DistributionEngine(repository)

        with pytest.raises(ValidationException):
            engine.decide(parties["ngo"].id, None, None, "accept")

        repository.get_donation.assert_not_called()
        repository.transaction.assert_not_called()

    def test_accept_without_orphanage(self, engine, repository, parties, make_donation):
        donation = make_donation()

        with pytest.raises(ValidationException):
            engine.decide(parties["ngo"].id, donation.id, "  ", "accept")

        self._assert_unchanged(repository, donation.id)

    def test_unknown_donation(self, engine, parties):
        with pytest.raises(NotFoundException) as exc_info:
            engine.decide(parties["ngo"].id, "does-not-exist", "Sunrise Home", "accept")

        assert exc_info.value.message == "Donation not found"

    def test_foreign_ngo_is_forbidden(self, engine, repository, parties, make_donation, make_request):
        donation = make_donation()
        make_request(ngo="other_ngo")

        with pytest.raises(AuthorizationException):
            engine.decide(parties["other_ngo"].id, donation.id, "Sunrise Home", "accept")

        self._assert_unchanged(repository, donation.id, request_count=1)

    def test_forbidden_precedes_conflict(self, engine, repository, parties, make_donation):
        donation = make_donation()
        engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        with pytest.raises(AuthorizationException):
            engine.decide(parties["other_ngo"].id, donation.id, None, "reject")

    def test_unknown_orphanage(self, engine, repository, parties, make_donation, make_request):
        donation = make_donation()
        make_request()

        with pytest.raises(NotFoundException) as exc_info:
            engine.decide(parties["ngo"].id, donation.id, "sunrise home", "accept")

        assert exc_info.value.message == "Orphanage not found by that name"
        self._assert_unchanged(repository, donation.id, request_count=1)

    def test_orphanage_id_of_non_orphanage(self, engine, repository, parties, make_donation):
        donation = make_donation()

        with pytest.raises(NotFoundException):
            engine.decide(parties["ngo"].id, donation.id, None, "accept", orphanage_id=parties["donor"].id)

        self._assert_unchanged(repository, donation.id)

    @pytest.mark.parametrize("second_action,second_name", [
        ("accept", "Little Stars"),
        ("reject", None)
    ])
    def test_distributed_donation_conflicts(
        self, engine, repository, parties, make_donation, second_action, second_name
    ):
        donation = make_donation()
        engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        with pytest.raises(ConflictException):
            engine.decide(parties["ngo"].id, donation.id, second_name, second_action)

        stored = repository.get_donation(donation.id)
        assert stored.distributed_to_name == "Sunrise Home"
        assert len(_history(repository)) == 1


class TestConcurrentDecision:
    """Test the pending guard applied inside the transaction."""

    def test_guard_failure_is_conflict(self, engine, repository, parties, make_donation):
        donation = make_donation()
        original = repository.mark_donation_distributed

        def decided_elsewhere(donation_id, orphanage_name, session=None):
            # Another worker distributes the donation between read and update
            original(donation_id, "Little Stars", session=session)
            return original(donation_id, orphanage_name, session=session)

        repository.mark_donation_distributed = decided_elsewhere

        with pytest.raises(ConflictException):
            engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert _history(repository) == []

    def test_guard_failure_on_vanished_donation_is_not_found(self, engine, repository, parties, make_donation):
        donation = make_donation()
        repository.mark_donation_distributed = MagicMock(return_value=None)
        repository.get_donation = MagicMock(side_effect=[donation, None])

        with pytest.raises(NotFoundException):
            engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

    def test_reject_after_accept_elsewhere_is_conflict(self, engine, repository, parties, make_donation):
        donation = make_donation()
        original = repository.claim_pending_donation

        def accepted_elsewhere(donation_id, session=None):
            repository.mark_donation_distributed(donation_id, "Little Stars")
            return original(donation_id, session=session)

        repository.claim_pending_donation = accepted_elsewhere

        with pytest.raises(ConflictException):
            engine.decide(parties["ngo"].id, donation.id, None, "reject")

        assert _history(repository) == []

    def _race(self, engine, parties, decisions):
        barrier = threading.Barrier(len(decisions))
        outcomes = []

        def run(donation_id, orphanage_name, action):
            barrier.wait()
            try:
                outcomes.append(engine.decide(parties["ngo"].id, donation_id, orphanage_name, action))
            except ConflictException as e:
                outcomes.append(e)

        threads = [threading.Thread(target=run, args=decision) for decision in decisions]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert len(outcomes) == len(decisions)
        return outcomes

    def test_racing_accepts_distribute_once(self, engine, repository, parties, make_donation):
        donation = make_donation()

        outcomes = self._race(engine, parties, [
            (donation.id, "Sunrise Home", "accept"),
            (donation.id, "Little Stars", "accept")
        ])

        conflicts = [o for o in outcomes if isinstance(o, ConflictException)]
        winners = [o for o in outcomes if not isinstance(o, ConflictException)]
        assert len(conflicts) == 1
        assert len(winners) == 1

        history = _history(repository)
        assert [entry.action for entry in history] == [DistributionAction.ACCEPTED]
        assert history[0].orphanage_id == winners[0].distribution.orphanage_id
        assert repository.get_donation(donation.id).distributed_to_name == winners[0].donation.distributed_to_name

    def test_racing_accept_and_reject(self, engine, repository, parties, make_donation):
        donation = make_donation()

        outcomes = self._race(engine, parties, [
            (donation.id, "Sunrise Home", "accept"),
            (donation.id, None, "reject")
        ])

        applied = [o for o in outcomes if not isinstance(o, ConflictException)]
        history = _history(repository)
        assert len(history) == len(applied)
        assert [e.action for e in history].count(DistributionAction.ACCEPTED) == 1
        assert repository.get_donation(donation.id).status == DonationStatus.DISTRIBUTED


class TestStoreFailures:
    """Test that store failures roll back and surface as internal errors."""

    @pytest.mark.parametrize("operation", ["mark_donation_distributed", "append_history", "delete_requests"])
    def test_accept_failure_leaves_no_effects(self, repository, parties, make_donation, make_request, operation):
        donation = make_donation()
        request = make_request()
        engine = DistributionEngine(repository)

        original = getattr(repository, operation)

        def failing(*args, **kwargs):
            original(*args, **kwargs)
            raise StoreError(f"injected failure in {operation}")

        setattr(repository, operation, failing)

        with pytest.raises(InternalErrorException) as exc_info:
            engine.decide(parties["ngo"].id, donation.id, "Sunrise Home", "accept")

        assert exc_info.value.status_code == 500
        assert isinstance(exc_info.value.__cause__, StoreError)

        stored = repository.get_donation(donation.id)
        assert stored.status == DonationStatus.PENDING
        assert stored.distributed_to_name is None
        assert _history(repository) == []
        assert [r.id for r in _requests(repository)] == [request.id]

    def test_reject_failure_leaves_no_history(self, repository, parties, make_donation):
        donation = make_donation()
        engine = DistributionEngine(repository)
        original = repository.append_history

        def failing(entry, session=None):
            original(entry, session=session)
            raise StoreError("disk full")

        repository.append_history = failing

        with pytest.raises(InternalErrorException):
            engine.decide(parties["ngo"].id, donation.id, None, "reject")

        assert _history(repository) == []


class TestWorkflowScenarios:
    """Accept and reject of the same pending money donation."""

    @pytest.fixture
    def scenario(self, repository, parties, make_donation, make_request):
        orphan_house = repository.add_party(Party(role=PartyRole.ORPHANAGE, name="Orphan House"))
        donation = make_donation(amount=100.0)
        request = repository.insert_request(OrphanageRequest(
            orphanage_id=orphan_house.id,
            ngo_id=parties["ngo"].id,
            kind=DonationKind.MONEY,
            amount=100.0
        ))
        return orphan_house, donation, request

    def test_accept(self, engine, repository, parties, scenario):
        orphan_house, donation, request = scenario

        engine.decide(parties["ngo"].id, donation.id, "Orphan House", "accept")

        stored = repository.get_donation(donation.id)
        assert stored.status == DonationStatus.DISTRIBUTED
        assert stored.distributed_to_name == "Orphan House"

        history = _history(repository)
        assert len(history) == 1
        assert history[0].donation_id == donation.id
        assert history[0].ngo_id == parties["ngo"].id
        assert history[0].orphanage_id == orphan_house.id
        assert history[0].donor_id == parties["donor"].id
        assert history[0].action == DistributionAction.ACCEPTED

        assert request.id not in {r.id for r in _requests(repository)}

    def test_reject(self, engine, repository, parties, scenario):
        orphan_house, donation, request = scenario

        engine.decide(parties["ngo"].id, donation.id, "Orphan House", "reject")

        assert repository.get_donation(donation.id).status == DonationStatus.PENDING

        history = _history(repository)
        assert len(history) == 1
        assert history[0].orphanage_id is None
        assert history[0].action == DistributionAction.REJECTED

        assert [r.id for r in _requests(repository)] == [request.id]
