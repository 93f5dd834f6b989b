"""Shared httpx plumbing for outbound integration clients."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)


class IntegrationError(RuntimeError):
    """Raised when an external collaborator responds with an error."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_body = error_body


class JsonApiClient:
    """Thin JSON-over-HTTP client with bearer auth."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str = "",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._api_key = api_key
        self._timeout = timeout
        self._transport = transport

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        request_headers = {"Accept": "application/json"}
        if self._api_key:
            request_headers["Authorization"] = f"Bearer {self._api_key}"
        if headers:
            request_headers.update(headers)

        with httpx.Client(
            base_url=self._base_url, timeout=self._timeout, transport=self._transport
        ) as client:
            try:
                response = client.request(method, path, json=json_body, headers=request_headers)
            except httpx.HTTPError as exc:
                raise IntegrationError(f"{method} {path} failed: {exc}") from exc

        if response.status_code >= 400:
            try:
                body: Any = response.json()
            except ValueError:
                body = response.text
            raise IntegrationError(
                f"{method} {path} returned {response.status_code}",
                status_code=response.status_code,
                error_body=body,
            )
        if not response.content:
            return {}
        return dict(response.json())
