"""
Post-commit side effects.

Payments, notifications and video rooms are fired after the deciding
transaction commits. A failing collaborator is logged with its context
and never undoes the committed decision.
"""

from __future__ import annotations

from decimal import Decimal
import logging
from typing import Any, Callable, Dict, Mapping, Optional

from ..core.config import settings
from ..integrations import (
    FakeNotificationGateway,
    FakePaymentGateway,
    FakeVideoRoomGateway,
    HttpPaymentGateway,
    HttpVideoRoomGateway,
    NotificationGateway,
    PaymentGateway,
    VideoRoomGateway,
    WebhookNotificationGateway,
)
from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)


class SideEffectDispatcher:
    """Fire-and-forget wrapper around the external collaborators."""

    def __init__(
        self,
        payment: Optional[PaymentGateway] = None,
        notifications: Optional[NotificationGateway] = None,
        video: Optional[VideoRoomGateway] = None,
    ) -> None:
        self.payment = payment or FakePaymentGateway()
        self.notifications = notifications or FakeNotificationGateway()
        self.video = video or FakeVideoRoomGateway()

    def run(self, effect: str, action: Callable[[], Any], **context: Any) -> bool:
        """Run one side effect; returns False when it raised."""
        try:
            action()
            return True
        except Exception as exc:
            logger.error(
                "Post-commit side effect %s failed: %s",
                effect,
                exc,
                exc_info=True,
                extra={"effect": effect, **context},
            )
            prometheus_metrics.inc_side_effect_failure(effect)
            return False

    def charge(self, session_id: str, amount: Decimal, currency: str) -> bool:
        return self.run(
            "payment.charge",
            lambda: self.payment.charge(session_id, amount, currency),
            session_id=session_id,
            amount=str(amount),
        )

    def refund(self, session_id: str, amount: Decimal, percentage: int, currency: str) -> bool:
        if amount <= 0:
            return True
        return self.run(
            "payment.refund",
            lambda: self.payment.refund(session_id, amount, percentage, currency),
            session_id=session_id,
            amount=str(amount),
            percentage=percentage,
        )

    def notify(self, user_id: str, event: str, payload: Optional[Mapping[str, Any]] = None) -> bool:
        data: Dict[str, Any] = dict(payload or {})
        return self.run(
            "notification",
            lambda: self.notifications.notify(user_id, event, data),
            user_id=user_id,
            event=event,
        )

    def provision_room(self, session_id: str) -> bool:
        return self.run(
            "video.provision_room",
            lambda: self.video.provision_room(session_id),
            session_id=session_id,
        )


def build_default_dispatcher() -> SideEffectDispatcher:
    """Real HTTP collaborators where configured, logging stubs otherwise."""
    timeout = settings.integration_timeout_seconds
    payment: PaymentGateway = (
        HttpPaymentGateway(
            base_url=settings.payment_api_url,
            api_key=settings.payment_api_key.get_secret_value(),
            timeout=timeout,
        )
        if settings.payment_api_url
        else FakePaymentGateway()
    )
    notifications: NotificationGateway = (
        WebhookNotificationGateway(url=settings.notification_webhook_url, timeout=timeout)
        if settings.notification_webhook_url
        else FakeNotificationGateway()
    )
    video: VideoRoomGateway = (
        HttpVideoRoomGateway(
            base_url=settings.video_api_url,
            api_key=settings.video_api_key.get_secret_value(),
            timeout=timeout,
        )
        if settings.video_api_url
        else FakeVideoRoomGateway()
    )
    return SideEffectDispatcher(payment=payment, notifications=notifications, video=video)
