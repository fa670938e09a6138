# SPDX-License-Identifier: Apache-2.0

"""
Orphanage endpoints: support requests and accepted distributions.
"""

from flask import jsonify, current_app
from flask_openapi3 import APIBlueprint, Tag
from opentelemetry import trace
import logging

from ..domain.distribution import build_request_hal_response
from ..middleware.auth import require_party
from ..models.enums import PartyRole
from ..models.requests import CreateOrphanageRequestRequest, OrphanagePath
from ..utils.request import RequestParser

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

orphanages_tag = Tag(name="Orphanages", description="Orphanage requests and received donations")
orphanages_bp = APIBlueprint(
    'orphanages',
    __name__,
    url_prefix='/api/orphanages',
    abp_tags=[orphanages_tag]
)


@orphanages_bp.post('/<orphanage_id>/requests')
@require_party(PartyRole.ORPHANAGE, path_field="orphanage_id")
def create_orphanage_request(path: OrphanagePath):
    """
    Ask an NGO for money or items.

    The request stays pending until the NGO accepts a matching donation
    for this orphanage, which removes it.
    """
    with tracer.start_as_current_span(
        "orphanages.requests.create_endpoint",
        attributes={"orphanage.id": path.orphanage_id}
    ):
        payload = RequestParser.parse_body(CreateOrphanageRequestRequest)
        ledger = current_app.request_ledger
        orphanage_request = ledger.create_request(path.orphanage_id, payload)

        base_url = current_app.config['BASE_URL']
        names = ledger.party_names([orphanage_request.ngo_id])
        response = current_app.hal_builder.build_success_response(
            build_request_hal_response(
                orphanage_request, base_url, ngo_name=names.get(orphanage_request.ngo_id)
            ),
            message="Request submitted",
            self_path=f"/api/orphanages/{path.orphanage_id}/requests"
        )
        return jsonify(response), 201


@orphanages_bp.get('/<orphanage_id>/requests')
@require_party(PartyRole.ORPHANAGE, path_field="orphanage_id")
def list_orphanage_requests(path: OrphanagePath):
    """List the orphanage's pending requests, newest first."""
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span(
        "orphanages.requests.list",
        attributes={"orphanage.id": path.orphanage_id}
    ) as span:
        base_url = current_app.config['BASE_URL']
        ledger = current_app.request_ledger
        result = ledger.list_for_orphanage(path.orphanage_id, **pagination)

        names = ledger.party_names([r.ngo_id for r in result.items])
        items = [
            build_request_hal_response(r, base_url, ngo_name=names.get(r.ngo_id))
            for r in result.items
        ]
        span.set_attribute("requests.count", len(items))

        response = current_app.hal_builder.build_collection_response(
            items, result, f"/api/orphanages/{path.orphanage_id}/requests",
            message=f"{result.total} requests pending"
        )
        return jsonify(response), 200


@orphanages_bp.get('/<orphanage_id>/accepted-requests')
@require_party(PartyRole.ORPHANAGE, path_field="orphanage_id")
def list_accepted_requests(path: OrphanagePath):
    """List donations distributed to the orphanage, newest first."""
    pagination = RequestParser.get_pagination_params()

    with tracer.start_as_current_span(
        "orphanages.accepted.list",
        attributes={"orphanage.id": path.orphanage_id}
    ) as span:
        base_url = current_app.config['BASE_URL']
        result = current_app.history_service.accepted_for_orphanage(path.orphanage_id, **pagination)

        for item in result.items:
            item["_links"] = {
                "ngoHistory": {"href": f"{base_url}/api/ngos/{item['ngoId']}/distributions"}
            }
        span.set_attribute("distributions.count", len(result.items))

        response = current_app.hal_builder.build_collection_response(
            result.items, result, f"/api/orphanages/{path.orphanage_id}/accepted-requests",
            message=f"{result.total} donations received"
        )
        return jsonify(response), 200
