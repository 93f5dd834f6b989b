"""Payment collaborator: charge on booking, refund on cancellation."""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Dict
from uuid import uuid4

import httpx

from ._http import JsonApiClient

logger = logging.getLogger(__name__)


class PaymentGateway:
    """Interface consumed by the booking and cancellation flows."""

    def charge(self, session_id: str, amount: Decimal, currency: str = "USD") -> Dict[str, Any]:
        raise NotImplementedError

    def refund(
        self, session_id: str, amount: Decimal, percentage: int, currency: str = "USD"
    ) -> Dict[str, Any]:
        raise NotImplementedError


class HttpPaymentGateway(PaymentGateway):
    """Payment provider reached over its REST API."""

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

    def charge(self, session_id: str, amount: Decimal, currency: str = "USD") -> Dict[str, Any]:
        return self._client.request(
            "POST",
            "/charges",
            json_body={"session_id": session_id, "amount": str(amount), "currency": currency},
            headers={"Idempotency-Key": f"charge-{session_id}"},
        )

    def refund(
        self, session_id: str, amount: Decimal, percentage: int, currency: str = "USD"
    ) -> Dict[str, Any]:
        return self._client.request(
            "POST",
            "/refunds",
            json_body={
                "session_id": session_id,
                "amount": str(amount),
                "percentage": percentage,
                "currency": currency,
            },
            headers={"Idempotency-Key": f"refund-{session_id}"},
        )


class FakePaymentGateway(PaymentGateway):
    """In-memory stub that records calls for non-production flows."""

    def __init__(self) -> None:
        self._logger = logging.getLogger(self.__class__.__name__)
        self.charges: list[Dict[str, Any]] = []
        self.refunds: list[Dict[str, Any]] = []

    def charge(self, session_id: str, amount: Decimal, currency: str = "USD") -> Dict[str, Any]:
        record = {
            "id": f"ch_fake_{uuid4().hex}",
            "session_id": session_id,
            "amount": str(amount),
            "currency": currency,
        }
        self.charges.append(record)
        self._logger.debug("Fake charge created", extra=record)
        return record

    def refund(
        self, session_id: str, amount: Decimal, percentage: int, currency: str = "USD"
    ) -> Dict[str, Any]:
        record = {
            "id": f"re_fake_{uuid4().hex}",
            "session_id": session_id,
            "amount": str(amount),
            "percentage": percentage,
            "currency": currency,
        }
        self.refunds.append(record)
        self._logger.debug("Fake refund created", extra=record)
        return record
