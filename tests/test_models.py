# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Unit tests for Pydantic models.
"""

import pytest
from datetime import datetime
from pydantic import ValidationError
from bson import ObjectId

from bridgehope.models.entities import (
    Donation, DistributionHistoryEntry, OrphanageRequest, Party, UserContext
)
from bridgehope.models.enums import DistributionAction, DonationKind, DonationStatus, PartyRole
from bridgehope.models.requests import (
    CreateDonationRequest, CreateOrphanageRequestRequest, DistributeDonationRequest
)


def _donation(**overrides):
    data = {
        "donor_id": str(ObjectId()),
        "ngo_id": str(ObjectId()),
        "kind": DonationKind.MONEY,
        "amount": 25.0
    }
    data.update(overrides)
    return Donation(**data)


class TestPartyModel:
    """Test Party model validation."""

    def test_valid_party(self):
        """Test valid party creation."""
        party = Party(role=PartyRole.NGO, name="Helping Hands", email="Team@HelpingHands.org")

        assert party.role == "ngo"
        assert party.email == "team@helpinghands.org"
        assert ObjectId.is_valid(party.id)
        assert isinstance(party.created_at, datetime)

    def test_empty_name_validation(self):
        """Test empty name validation."""
        with pytest.raises(ValidationError) as exc_info:
            Party(role=PartyRole.DONOR, name="   ")

        assert "Party name cannot be empty" in str(exc_info.value)

    def test_invalid_email(self):
        """Test invalid email format."""
        with pytest.raises(ValidationError) as exc_info:
            Party(role=PartyRole.DONOR, name="Ana", email="not-an-email")

        assert "Invalid email format" in str(exc_info.value)

    def test_unknown_role(self):
        """Test role must be donor, ngo or orphanage."""
        with pytest.raises(ValidationError):
            Party(role="admin", name="Root")


class TestGiftPayload:
    """Test kind-discriminated payload rules shared by donations and requests."""

    def test_money_donation(self):
        donation = _donation()

        assert donation.kind == "money"
        assert donation.status == DonationStatus.PENDING
        assert donation.distributed_to_name is None
        assert donation.payload_fields() == {"amount": 25.0}

    def test_item_donation(self):
        donation = _donation(kind=DonationKind.ITEM, amount=None, item_name="rice bags", count=4)

        assert donation.payload_fields() == {"item_name": "rice bags", "count": 4}

    @pytest.mark.parametrize("amount", [0, -5.0])
    def test_money_requires_positive_amount(self, amount):
        with pytest.raises(ValidationError) as exc_info:
            _donation(amount=amount)

        assert "amount must be positive" in str(exc_info.value)

    def test_money_rejects_item_fields(self):
        with pytest.raises(ValidationError) as exc_info:
            _donation(item_name="toys", count=2)

        assert "not allowed for money" in str(exc_info.value)

    def test_item_requires_name_and_count(self):
        with pytest.raises(ValidationError) as exc_info:
            _donation(kind=DonationKind.ITEM, amount=None, count=3)

        assert "item_name is required for item" in str(exc_info.value)

        with pytest.raises(ValidationError) as exc_info:
            _donation(kind=DonationKind.ITEM, amount=None, item_name="toys", count=0)

        assert "count must be positive" in str(exc_info.value)

    def test_item_rejects_amount(self):
        with pytest.raises(ValidationError) as exc_info:
            _donation(kind=DonationKind.ITEM, amount=10.0, item_name="toys", count=1)

        assert "amount is not allowed for item" in str(exc_info.value)

    def test_request_shares_payload_rules(self):
        with pytest.raises(ValidationError):
            OrphanageRequest(
                orphanage_id=str(ObjectId()),
                ngo_id=str(ObjectId()),
                kind=DonationKind.MONEY
            )


class TestDonationLifecycle:
    """Test donation status transitions."""

    def test_as_distributed_returns_updated_copy(self):
        donation = _donation()

        distributed = donation.as_distributed("Sunrise Home")

        assert distributed.status == DonationStatus.DISTRIBUTED
        assert distributed.distributed_to_name == "Sunrise Home"
        assert distributed.id == donation.id
        assert distributed.created_at == donation.created_at
        assert donation.is_pending()

    def test_distributed_donation_cannot_be_distributed_again(self):
        distributed = _donation().as_distributed("Sunrise Home")

        with pytest.raises(ValueError):
            distributed.as_distributed("Little Stars")

    def test_distributed_requires_name(self):
        with pytest.raises(ValidationError):
            _donation(status=DonationStatus.DISTRIBUTED)

    def test_pending_forbids_name(self):
        with pytest.raises(ValidationError):
            _donation(distributed_to_name="Sunrise Home")

    def test_document_round_trip_uses_camel_case(self):
        donation = _donation(kind=DonationKind.ITEM, amount=None, item_name="books", count=12)

        document = donation.to_document()

        assert document["_id"] == donation.id
        assert document["itemName"] == "books"
        assert document["donorId"] == donation.donor_id
        assert "id" not in document
        assert Donation.from_document(document) == donation

    def test_response_is_json_ready(self):
        response = _donation().to_response()

        assert response["status"] == "pending"
        assert isinstance(response["createdAt"], str)
        assert "ngoId" in response


class TestDistributionHistoryEntry:
    """Test history entry invariants."""

    def _entry(self, **overrides):
        data = {
            "donation_id": str(ObjectId()),
            "ngo_id": str(ObjectId()),
            "donor_id": str(ObjectId()),
            "action": DistributionAction.ACCEPTED,
            "orphanage_id": str(ObjectId())
        }
        data.update(overrides)
        return DistributionHistoryEntry(**data)

    def test_accepted_entry_requires_orphanage(self):
        with pytest.raises(ValidationError):
            self._entry(orphanage_id=None)

    def test_rejected_entry_has_no_orphanage(self):
        entry = self._entry(action=DistributionAction.REJECTED, orphanage_id=None)
        assert entry.orphanage_id is None

        with pytest.raises(ValidationError):
            self._entry(action=DistributionAction.REJECTED)

    def test_entry_is_immutable(self):
        entry = self._entry()

        with pytest.raises(ValidationError):
            entry.action = DistributionAction.REJECTED


class TestUserContext:
    """Test caller context helpers."""

    def test_role_and_identity_checks(self):
        context = UserContext(party_id="ngo-1", role=PartyRole.NGO)

        assert context.has_role(["ngo"])
        assert not context.has_role(["donor", "orphanage"])
        assert context.is_party("ngo-1")
        assert not context.is_party("ngo-2")


class TestRequestModels:
    """Test API request models."""

    def test_distribute_request_accepts_camel_case(self):
        request = DistributeDonationRequest.model_validate({
            "donationId": "d1",
            "orphanageName": "Sunrise Home",
            "action": "accept"
        })

        assert request.donation_id == "d1"
        assert request.orphanage_name == "Sunrise Home"
        assert request.orphanage_id is None

    def test_distribute_request_leaves_rules_to_engine(self):
        request = DistributeDonationRequest.model_validate({"action": "maybe"})

        assert request.action == "maybe"
        assert request.donation_id is None

    def test_create_donation_request(self):
        request = CreateDonationRequest.model_validate({
            "donorId": "donor-1",
            "ngoId": "ngo-1",
            "kind": "item",
            "itemName": "blankets",
            "count": 3
        })

        assert request.kind == "item"
        assert request.item_name == "blankets"

    def test_create_donation_request_validates_payload(self):
        with pytest.raises(ValidationError):
            CreateDonationRequest.model_validate({
                "donorId": "donor-1",
                "ngoId": "ngo-1",
                "kind": "money"
            })

    def test_create_orphanage_request_requires_ngo(self):
        with pytest.raises(ValidationError):
            CreateOrphanageRequestRequest.model_validate({"kind": "money", "amount": 10})
