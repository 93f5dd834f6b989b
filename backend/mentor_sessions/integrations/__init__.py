"""External collaborators consumed by the scheduling engine."""

from ._http import IntegrationError
from .notification_gateway import (
    FakeNotificationGateway,
    NotificationGateway,
    WebhookNotificationGateway,
)
from .payment_gateway import FakePaymentGateway, HttpPaymentGateway, PaymentGateway
from .video_gateway import FakeVideoRoomGateway, HttpVideoRoomGateway, VideoRoomGateway

__all__ = [
    "FakeNotificationGateway",
    "FakePaymentGateway",
    "FakeVideoRoomGateway",
    "HttpPaymentGateway",
    "HttpVideoRoomGateway",
    "IntegrationError",
    "NotificationGateway",
    "PaymentGateway",
    "VideoRoomGateway",
    "WebhookNotificationGateway",
]
