"""Video room collaborator, provisioned when a session starts."""

from __future__ import annotations

import logging
from typing import Any, Dict
from uuid import uuid4

import httpx

from ._http import JsonApiClient

logger = logging.getLogger(__name__)


class VideoRoomGateway:
    def provision_room(self, session_id: str) -> Dict[str, Any]:
        raise NotImplementedError


class HttpVideoRoomGateway(VideoRoomGateway):
    def __init__(
        self,
        *,
        base_url: str,
        api_key: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._client = JsonApiClient(
            base_url=base_url, api_key=api_key, timeout=timeout, transport=transport
        )

    def provision_room(self, session_id: str) -> Dict[str, Any]:
        return self._client.request(
            "POST",
            "/rooms",
            json_body={"name": f"session-{session_id}", "session_id": session_id},
        )


class FakeVideoRoomGateway(VideoRoomGateway):
    def __init__(self) -> None:
        self._logger = logging.getLogger(self.__class__.__name__)
        self.rooms: Dict[str, Dict[str, Any]] = {}

    def provision_room(self, session_id: str) -> Dict[str, Any]:
        room = {"id": f"room_fake_{uuid4().hex}", "session_id": session_id}
        self.rooms[session_id] = room
        self._logger.debug("Fake video room provisioned", extra=room)
        return room
