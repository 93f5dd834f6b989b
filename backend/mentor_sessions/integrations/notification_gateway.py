"""Notification collaborator. Delivery mechanics live outside this service."""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Optional

import httpx

from ._http import JsonApiClient

logger = logging.getLogger(__name__)


class NotificationGateway:
    def notify(self, user_id: str, event: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError


class WebhookNotificationGateway(NotificationGateway):
    """Posts session events to a notification webhook."""

    def __init__(
        self,
        *,
        url: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = JsonApiClient(base_url=url, timeout=timeout, transport=transport)

    def notify(self, user_id: str, event: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        self._client.request(
            "POST",
            "",
            json_body={"user_id": user_id, "event": event, "payload": dict(payload or {})},
        )


class FakeNotificationGateway(NotificationGateway):
    """Collects notifications in memory."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(self.__class__.__name__)
        self.sent: list[Dict[str, Any]] = []

    def notify(self, user_id: str, event: str, payload: Optional[Mapping[str, Any]] = None) -> None:
        record = {"user_id": user_id, "event": event, "payload": dict(payload or {})}
        self.sent.append(record)
        self._logger.debug("Fake notification queued", extra={"user_id": user_id, "event": event})
