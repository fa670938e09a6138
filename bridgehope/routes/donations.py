# SPDX-License-Identifier: Apache-2.0

"""
Donor endpoints: pledging donations and listing a donor's donations.
"""

from flask import jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.distribution import build_donation_hal_response
from ..middleware.auth import require_party
from ..models.enums import PartyRole
from ..models.requests import CreateDonationRequest, DonorPath
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

donations_tag = Tag(name="Donations", description="Donor pledges")
donations_bp = APIBlueprint(
    'donations',
    __name__,
    url_prefix='/api',
    abp_tags=[donations_tag]
)


@donations_bp.post('/donations')
@require_party(PartyRole.DONOR)
def create_donation():
    """
    Pledge money or items to an NGO.

    The donation starts pending until the NGO accepts it for an orphanage.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "donations.create_endpoint",
        attributes={"party.id": user_context.party_id}
    ):
        payload = RequestParser.parse_body(CreateDonationRequest)
        donation = current_app.donation_service.create_donation(payload, user_context)

        base_url = current_app.config['BASE_URL']
        response = current_app.hal_builder.build_success_response(
            build_donation_hal_response(donation, user_context, base_url),
            message="Donation pledged",
            self_path=f"/api/donors/{donation.donor_id}/donations"
        )
        return jsonify(response), 201


@donations_bp.get('/donors/<donor_id>/donations')
@require_party(PartyRole.DONOR, path_field="donor_id")
def list_donor_donations(path: DonorPath):
    """List donations made by the donor, newest first."""
    user_context = g.user_context
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span("donors.donations.list", attributes={"donor.id": path.donor_id}) as span:
        base_url = current_app.config['BASE_URL']
        result = current_app.donation_service.list_for_donor(path.donor_id, **pagination)

        items = [build_donation_hal_response(d, user_context, base_url) for d in result.items]
        span.set_attribute("donations.count", len(items))

        response = current_app.hal_builder.build_collection_response(
            items, result, f"/api/donors/{path.donor_id}/donations",
            message=f"{result.total} donations made"
        )
        return jsonify(response), 200
