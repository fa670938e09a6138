#!/usr/bin/env python3
# SPDX-License-Identifier: Apache-2.0

"""
Seed demo data into MongoDB.

Creates one donor, one NGO and one orphanage, a pending money donation and a
matching orphanage request, then prints an access token for each party so
the distribution endpoint can be tried right away. Token signing uses
JWT_PRIVATE_KEY/JWT_PUBLIC_KEY; the API must be started with the same keys.
"""

import sys

from bridgehope.models.entities import Donation, OrphanageRequest, Party
from bridgehope.models.enums import DonationKind, PartyRole
from bridgehope.services.auth import AuthService
from bridgehope.services.mongodb import get_mongodb_service, close_mongodb_connection
from bridgehope.services.repository import MongoDistributionRepository


def seed_demo_data():
    """Insert demo parties, a donation and a request."""
    print("Seeding demo data...")

    mongo_svc = get_mongodb_service()
    repository = MongoDistributionRepository(mongo_svc)
    auth_svc = AuthService()

    donor = repository.add_party(Party(role=PartyRole.DONOR, name="Demo Donor", email="donor@example.org"))
    ngo = repository.add_party(Party(
        role=PartyRole.NGO,
        name="Demo NGO",
        email="ngo@example.org",
        description="Collects and distributes donations",
        experience="10 years of community work"
    ))
    orphanage = repository.add_party(Party(
        role=PartyRole.ORPHANAGE, name="Sunrise Home", email="sunrise@example.org"
    ))

    donation = repository.insert_donation(Donation(
        donor_id=donor.id, ngo_id=ngo.id, kind=DonationKind.MONEY, amount=50
    ))
    request = repository.insert_request(OrphanageRequest(
        orphanage_id=orphanage.id, ngo_id=ngo.id, kind=DonationKind.MONEY, amount=30
    ))

    print(f"Donation {donation.id} pledged by {donor.name} to {ngo.name}")
    print(f"Request {request.id} from {orphanage.name} to {ngo.name}")
    print()

    for party in (donor, ngo, orphanage):
        token = auth_svc.generate_access_token(party)
        print(f"{party.role:<10} {party.id}  Bearer {token['access_token']}")

    print()
    print(f"Try: POST /api/ngos/{ngo.id}/distribute "
          f'{{"donationId": "{donation.id}", "orphanageName": "{orphanage.name}", "action": "accept"}}')


if __name__ == "__main__":
    try:
        seed_demo_data()
    except Exception as e:
        print(f"Seeding failed: {e}", file=sys.stderr)
        sys.exit(1)
    finally:
        close_mongodb_connection()
