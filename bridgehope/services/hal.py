# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
HAL (Hypertext Application Language) response formatting utilities.
Wraps every API result in the success or failure envelope with links.
"""

from typing import Dict, List, Any, Optional
from urllib.parse import urljoin, urlencode

from ..exceptions import CustomException
from ..models.responses import HalLink, ErrorDetail, SuccessEnvelope, ErrorEnvelope
from .mongodb import PaginationResult

PROBLEM_BASE_URL = "https://api.bridgehope.org/problems"

_ERROR_TITLES = {
    400: "Invalid Input",
    401: "Authentication Required",
    403: "Forbidden",
    404: "Resource Not Found",
    409: "Resource Conflict",
    500: "Internal Server Error"
}


class HalLinkBuilder:
    """Builder for HAL links with proper URL construction."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/') + '/'

    def build_link(
        self,
        path: str,
        method: str = "GET",
        content_type: Optional[str] = None,
        title: Optional[str] = None,
        templated: bool = False
    ) -> HalLink:
        """Build a HAL link with proper URL construction."""
        href = urljoin(self.base_url, path.lstrip('/'))

        return HalLink(
            href=href,
            method=method,
            type=content_type,
            title=title,
            templated=templated or None
        )

    def build_self_link(self, resource_path: str) -> HalLink:
        """Build self link for a resource."""
        return self.build_link(resource_path, title="Self")


class PaginationLinkBuilder:
    """Builder for pagination links in HAL collections."""

    def __init__(self, base_url: str):
        self.link_builder = HalLinkBuilder(base_url)

    def _page_link(self, base_path: str, page: int, page_size: int, params: Dict[str, Any], title: str) -> HalLink:
        query = urlencode({**params, 'page': page, 'page_size': page_size})
        return self.link_builder.build_link(f"{base_path}?{query}", title=title)

    def build_pagination_links(
        self,
        base_path: str,
        current_page: int,
        total_pages: int,
        page_size: int,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, HalLink]:
        """Build pagination links for a collection."""
        params = query_params or {}
        links = {
            'self': self._page_link(base_path, current_page, page_size, params, "Current page")
        }

        if current_page > 1:
            links['first'] = self._page_link(base_path, 1, page_size, params, "First page")
            links['prev'] = self._page_link(base_path, current_page - 1, page_size, params, "Previous page")

        if current_page < total_pages:
            links['next'] = self._page_link(base_path, current_page + 1, page_size, params, "Next page")
            links['last'] = self._page_link(base_path, total_pages, page_size, params, "Last page")

        return links


def dump_links(links: Dict[str, Any]) -> Dict[str, Dict[str, Any]]:
    """Serialize HalLink objects (or plain dicts) dropping unset attributes."""
    dumped = {}
    for rel, link in links.items():
        if isinstance(link, HalLink):
            dumped[rel] = link.model_dump(exclude_none=True)
        else:
            dumped[rel] = dict(link)
    return dumped


class HalResponseBuilder:
    """Builds success and failure envelopes."""

    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip('/')
        self.link_builder = HalLinkBuilder(base_url)
        self.pagination_builder = PaginationLinkBuilder(base_url)

    def build_success_response(
        self,
        data: Any,
        message: Optional[str] = None,
        links: Optional[Dict[str, Any]] = None,
        self_path: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build the success envelope around a result payload."""
        envelope = SuccessEnvelope(data=data, message=message).model_dump()

        all_links = {}
        if self_path:
            all_links['self'] = self.link_builder.build_self_link(self_path)
        all_links.update(links or {})

        envelope['_links'] = dump_links(all_links)
        return envelope

    def build_collection_response(
        self,
        items: List[Dict[str, Any]],
        result: PaginationResult,
        collection_path: str,
        message: Optional[str] = None,
        query_params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Build a success envelope holding a paginated HAL collection."""
        pagination_links = self.pagination_builder.build_pagination_links(
            collection_path,
            result.page,
            result.total_pages,
            result.page_size,
            query_params
        )

        data = {
            'total': result.total,
            'page': result.page,
            'page_size': result.page_size,
            'total_pages': result.total_pages,
            '_embedded': {
                'items': items
            }
        }

        return self.build_success_response(data, message, links=pagination_links)

    def build_error_response(
        self,
        error_type: str,
        status: int,
        detail: str,
        instance: str,
        classification: str,
        validation_errors: Optional[List[Dict[str, Any]]] = None,
        title: Optional[str] = None
    ) -> Dict[str, Any]:
        """Build the failure envelope with an RFC 7807 problem description."""
        error = ErrorDetail(
            type=f"{PROBLEM_BASE_URL}/{error_type}",
            title=title or _ERROR_TITLES.get(status, "Error"),
            status=status,
            detail=detail,
            instance=instance,
            classification=classification,
            errors=validation_errors or None
        )

        links = {
            'help': self.link_builder.build_link(
                f"/docs/errors#{error_type}",
                title="Error documentation"
            )
        }

        if status == 400:
            links['schema'] = self.link_builder.build_link(
                "/openapi/openapi.json",
                title="API schema"
            )

        envelope = ErrorEnvelope(status=status, error=error).model_dump(exclude_none=True)
        envelope['_links'] = dump_links(links)
        return envelope

    def build_exception_response(self, exception: CustomException, instance: str) -> Dict[str, Any]:
        """Build the failure envelope for an application exception."""
        return self.build_error_response(
            exception.error_type,
            exception.status_code,
            exception.message,
            instance,
            exception.classification.value,
            getattr(exception, 'validation_errors', None)
        )


def create_hal_builder(base_url: str) -> HalResponseBuilder:
    """Create a HAL response builder instance."""
    return HalResponseBuilder(base_url)
