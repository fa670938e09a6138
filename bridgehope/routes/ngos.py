# SPDX-License-Identifier: Apache-2.0

"""
NGO endpoints.

This module implements the NGO directory listing, the NGO's donation,
request and distribution history views, and the distribution decision
endpoint that accepts or rejects a donation.
"""

from flask import request, jsonify, current_app, g
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
from opentelemetry.trace import Status, StatusCode
import logging

from ..domain.distribution import (
    build_distribution_hal_response,
    build_donation_hal_response,
    build_request_hal_response
)
from ..middleware.auth import require_party
from ..models.enums import PartyRole
from ..models.requests import DistributeDonationRequest, NgoPath
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

ngos_tag = Tag(name="NGOs", description="NGO directory and donation distribution")
ngos_bp = APIBlueprint(
    'ngos',
    __name__,
    url_prefix='/api/ngos',
    abp_tags=[ngos_tag]
)


@ngos_bp.get('')
def list_ngos():
    """
    List registered NGOs.

    Public directory used by donors to choose where to pledge.
    """
    with tracer.start_as_current_span("ngos.list") as span:
        base_url = current_app.config['BASE_URL']
        ngos = current_app.directory_service.list_ngos()
        span.set_attribute("ngos.count", len(ngos))

        items = []
        for ngo in ngos:
            item = ngo.to_response()
            item.pop("email", None)
            item["_links"] = {
                "self": {"href": f"{base_url}/api/ngos/{ngo.id}/donations"},
                "donate": {
                    "href": f"{base_url}/api/donations",
                    "method": "POST",
                    "type": "application/json"
                }
            }
            items.append(item)

        response = current_app.hal_builder.build_success_response(
            {"total": len(items), "_embedded": {"items": items}},
            message=f"{len(items)} NGOs found",
            self_path="/api/ngos"
        )
        return jsonify(response), 200


@ngos_bp.get('/<ngo_id>/donations')
@require_party(PartyRole.NGO, path_field="ngo_id")
def list_ngo_donations(path: NgoPath):
    """List donations received by the NGO, newest first."""
    user_context = g.user_context
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span(
        "ngos.donations.list",
        attributes={"ngo.id": path.ngo_id, "pagination.page": pagination['page']}
    ) as span:
        base_url = current_app.config['BASE_URL']
        result = current_app.donation_service.list_for_ngo(path.ngo_id, **pagination)

        items = [build_donation_hal_response(d, user_context, base_url) for d in result.items]
        span.set_attribute("donations.count", len(items))

        response = current_app.hal_builder.build_collection_response(
            items, result, f"/api/ngos/{path.ngo_id}/donations",
            message=f"{result.total} donations received"
        )
        return jsonify(response), 200


@ngos_bp.get('/<ngo_id>/requests')
@require_party(PartyRole.NGO, path_field="ngo_id")
def list_ngo_requests(path: NgoPath):
    """List pending orphanage requests addressed to the NGO, newest first."""
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span("ngos.requests.list", attributes={"ngo.id": path.ngo_id}) as span:
        base_url = current_app.config['BASE_URL']
        ledger = current_app.request_ledger
        result = ledger.list_for_ngo(path.ngo_id, **pagination)

        names = ledger.party_names([r.orphanage_id for r in result.items])
        items = [
            build_request_hal_response(r, base_url, orphanage_name=names.get(r.orphanage_id))
            for r in result.items
        ]
        span.set_attribute("requests.count", len(items))

        response = current_app.hal_builder.build_collection_response(
            items, result, f"/api/ngos/{path.ngo_id}/requests",
            message=f"{result.total} requests pending"
        )
        return jsonify(response), 200


@ngos_bp.get('/<ngo_id>/distributions')
@require_party(PartyRole.NGO, path_field="ngo_id")
def list_ngo_distributions(path: NgoPath):
    """List the NGO's distribution history, newest first."""
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span("ngos.distributions.list", attributes={"ngo.id": path.ngo_id}) as span:
        base_url = current_app.config['BASE_URL']
        result = current_app.history_service.for_ngo(path.ngo_id, **pagination)

        items = [build_distribution_hal_response(entry, base_url) for entry in result.items]
        span.set_attribute("distributions.count", len(items))

        response = current_app.hal_builder.build_collection_response(
            items, result, f"/api/ngos/{path.ngo_id}/distributions",
            message=f"{result.total} decisions recorded"
        )
        return jsonify(response), 200


@ngos_bp.post('/<ngo_id>/distribute')
@require_party(PartyRole.NGO, path_field="ngo_id")
def distribute_donation(path: NgoPath):
    """
    Accept or reject a donation.

    Accepting moves the donation to distributed, records the receiving
    orphanage in the distribution history and removes the orphanage's
    matching pending requests, all in one transaction. Rejecting only
    records the decision; the donation stays pending.
    """
    user_context = g.user_context

    with tracer.start_as_current_span(
        "ngos.distribute",
        attributes={"ngo.id": path.ngo_id, "operation": "distribute_donation"}
    ) as span:
        decision = RequestParser.parse_body(DistributeDonationRequest)
        g.decision = {"donation_id": decision.donation_id, "action": decision.action}
        span.set_attributes({
            "distribution.action": decision.action or "",
            "donation.id": decision.donation_id or ""
        })

        result = current_app.distribution_engine.decide(
            acting_ngo_id=path.ngo_id,
            donation_id=decision.donation_id,
            orphanage_name=decision.orphanage_name,
            action=decision.action,
            orphanage_id=decision.orphanage_id,
            user_context=user_context
        )

        base_url = current_app.config['BASE_URL']
        links = {
            "ngoDonations": {"href": f"{base_url}/api/ngos/{path.ngo_id}/donations"},
            "ngoHistory": {"href": f"{base_url}/api/ngos/{path.ngo_id}/distributions"}
        }
        if result.accepted:
            message = f"Donation distributed to {result.donation.distributed_to_name}"
            links["orphanageAccepted"] = {
                "href": f"{base_url}/api/orphanages/{result.distribution.orphanage_id}/accepted-requests"
            }
        else:
            message = "Donation rejected"

        span.set_status(Status(StatusCode.OK))
        logger.info(
            message,
            extra={
                "ngo_id": path.ngo_id,
                "donation_id": result.donation_id,
                "history_id": result.distribution.id,
                "request_id": request.headers.get('X-Request-ID')
            }
        )

        response = current_app.hal_builder.build_success_response(
            result.to_payload(),
            message=message,
            links=links,
            self_path=f"/api/ngos/{path.ngo_id}/distribute"
        )
        return jsonify(response), 200
