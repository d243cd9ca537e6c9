"""
Base HTTP plumbing shared by the marketplace connectors

Author: UNISTOCK
Date: 2025-10-17
"""
from typing import Any, Dict, Optional
import logging

import httpx

from unistock.core.config import settings

logger = logging.getLogger(__name__)


class MarketplaceAPIError(Exception):
    """
    Non-2xx answer from a marketplace API

    Attributes:
        status_code: HTTP status returned by the marketplace
        message: Best human-readable message found in the body
        body: Parsed JSON body (dict) or raw text
    """

    def __init__(self, status_code: int, message: str, body: Any = None):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.body = body

    @property
    def json(self) -> Dict:
        return self.body if isinstance(self.body, dict) else {}


def extract_error_message(body: Any, default: str) -> str:
    """Pick the error message out of the usual marketplace error shapes"""
    if isinstance(body, dict):
        if body.get('message'):
            return str(body['message'])
        errors = body.get('errors')
        if isinstance(errors, list) and errors and isinstance(errors[0], dict):
            return str(errors[0].get('message') or default)
        if isinstance(errors, (str, dict)):
            return str(errors)
        if body.get('error_description'):
            return str(body['error_description'])
        if body.get('error'):
            return str(body['error'])
    if isinstance(body, str) and body:
        return body[:300]
    return default


class BaseConnector:
    """
    Thin async httpx wrapper

    Every request opens its own AsyncClient (same as the rest of the
    codebase). Tests inject an httpx.MockTransport via `transport`.
    """

    base_url = ""

    def __init__(self, transport: Optional[httpx.AsyncBaseTransport] = None, timeout: float = None):
        self.transport = transport
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS
        self.api_calls = 0

    def _headers(self) -> Dict[str, str]:
        return {'Accept': 'application/json'}

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=self.transport, timeout=self.timeout)

    async def _request(self, method: str, url: str, params: Optional[Dict] = None,
                       json: Any = None, data: Optional[Dict] = None,
                       headers: Optional[Dict] = None, authenticated: bool = True) -> Any:
        """
        Send a request and return the decoded JSON body

        Args:
            url: Absolute URL or path relative to base_url

        Raises:
            MarketplaceAPIError: On non-2xx responses
        """
        if not url.startswith("http"):
            url = f"{self.base_url}{url}"

        request_headers = self._headers() if authenticated else {'Accept': 'application/json'}
        if headers:
            request_headers.update(headers)

        async with self._client() as client:
            response = await client.request(method, url, params=params, json=json,
                                            data=data, headers=request_headers)
            self.api_calls += 1

        try:
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            try:
                body = e.response.json()
            except ValueError:
                body = e.response.text
            message = extract_error_message(body, e.response.reason_phrase or "HTTP error")
            logger.error(f"{method} {url} failed: {e.response.status_code} - {message}")
            raise MarketplaceAPIError(e.response.status_code, message, body) from e

        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            return {}
