# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Pytest configuration and fixtures.
"""

import os
import pytest
from datetime import datetime, timedelta
from typing import Callable, Dict

# Set test environment
os.environ['ENVIRONMENT'] = 'test'
os.environ['OTEL_ENABLED'] = 'false'
os.environ['DOCS_ENABLED'] = 'false'

from bridgehope.app import create_app
from bridgehope.exceptions import StoreError
from bridgehope.models.entities import Donation, OrphanageRequest, Party
from bridgehope.models.enums import DonationKind, PartyRole
from bridgehope.services.auth import AuthService
from bridgehope.services.memory import InMemoryDistributionRepository

BASE_URL = "http://testserver"


class FailingRepository(InMemoryDistributionRepository):
    """In-memory repository that fails on a chosen write."""

    def __init__(self, fail_on: str):
        super().__init__()
        self.fail_on = fail_on
        self.armed = False

    def _maybe_fail(self, operation: str):
        if self.armed and operation == self.fail_on:
            raise StoreError(f"injected failure in {operation}")

    def mark_donation_distributed(self, donation_id, orphanage_name, session=None):
        self._maybe_fail("mark_donation_distributed")
        return super().mark_donation_distributed(donation_id, orphanage_name, session=session)

    def append_history(self, entry, session=None):
        result = super().append_history(entry, session=session)
        self._maybe_fail("append_history")
        return result

    def delete_requests(self, criteria, session=None):
        deleted = super().delete_requests(criteria, session=session)
        self._maybe_fail("delete_requests")
        return deleted


def _seed(repository: InMemoryDistributionRepository) -> Dict[str, Party]:
    base_time = datetime(2024, 1, 1, 12, 0, 0)
    parties = {
        "donor": Party(role=PartyRole.DONOR, name="Ana Donor", email="ana@example.org",
                       created_at=base_time),
        "ngo": Party(role=PartyRole.NGO, name="Helping Hands", email="contact@helpinghands.org",
                     description="Food and school supplies", created_at=base_time),
        "other_ngo": Party(role=PartyRole.NGO, name="Other NGO", created_at=base_time),
        "orphanage": Party(role=PartyRole.ORPHANAGE, name="Sunrise Home", created_at=base_time),
        "other_orphanage": Party(role=PartyRole.ORPHANAGE, name="Little Stars",
                                 created_at=base_time + timedelta(minutes=1))
    }
    for party in parties.values():
        repository.add_party(party)
    return parties


@pytest.fixture
def repository():
    """Empty in-memory repository."""
    return InMemoryDistributionRepository()


@pytest.fixture
def parties(repository):
    """Donor, two NGOs and two orphanages registered in the repository."""
    return _seed(repository)


@pytest.fixture
def make_donation(repository, parties) -> Callable[..., Donation]:
    """Factory inserting a pending donation from the donor to an NGO."""
    def _make(kind=DonationKind.MONEY, ngo="ngo", **payload):
        if not payload:
            payload = {"amount": 50.0} if kind == DonationKind.MONEY else {"item_name": "blankets", "count": 10}
        donation = Donation(
            donor_id=parties["donor"].id,
            ngo_id=parties[ngo].id,
            kind=kind,
            **payload
        )
        return repository.insert_donation(donation)
    return _make


@pytest.fixture
def make_request(repository, parties) -> Callable[..., OrphanageRequest]:
    """Factory inserting a pending orphanage request."""
    def _make(kind=DonationKind.MONEY, orphanage="orphanage", ngo="ngo", **payload):
        if not payload:
            payload = {"amount": 30.0} if kind == DonationKind.MONEY else {"item_name": "shoes", "count": 5}
        request = OrphanageRequest(
            orphanage_id=parties[orphanage].id,
            ngo_id=parties[ngo].id,
            kind=kind,
            **payload
        )
        return repository.insert_request(request)
    return _make


@pytest.fixture(scope="session")
def auth_service():
    """Token service with a generated key pair."""
    return AuthService()


@pytest.fixture
def app(repository, auth_service):
    """Flask application backed by the in-memory repository."""
    app = create_app(
        config_overrides={
            'ENVIRONMENT': 'test',
            'STORE_BACKEND': 'memory',
            'OTEL_ENABLED': False,
            'DOCS_ENABLED': False,
            'BASE_URL': BASE_URL
        },
        repository=repository,
        auth_service=auth_service
    )
    app.config['TESTING'] = True
    return app


@pytest.fixture
def client(app):
    """Flask test client."""
    return app.test_client()


@pytest.fixture
def auth_headers(auth_service) -> Callable[[Party], Dict[str, str]]:
    """Factory building Authorization headers for a party."""
    def _headers(party: Party) -> Dict[str, str]:
        token = auth_service.generate_access_token(party)["access_token"]
        return {"Authorization": f"Bearer {token}"}
    return _headers


@pytest.fixture
def make_failing_app(auth_service):
    """
    Factory building an app whose repository fails on one write.

    Returns (app, repository, parties); the failure fires once ``repository.armed`` is set.
    """
    def _make(fail_on: str):
        failing_repository = FailingRepository(fail_on)
        seeded = _seed(failing_repository)
        failing_app = create_app(
            config_overrides={
                'ENVIRONMENT': 'test',
                'OTEL_ENABLED': False,
                'DOCS_ENABLED': False,
                'BASE_URL': BASE_URL
            },
            repository=failing_repository,
            auth_service=auth_service
        )
        failing_app.config['TESTING'] = True
        return failing_app, failing_repository, seeded
    return _make
