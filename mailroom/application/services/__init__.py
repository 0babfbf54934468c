"""Application services orchestrating mailbox use cases."""

from .conversations import ConversationService
from .delivery import DeliveryResult, DeliveryService, successful_delivery
from .notifications import NotificationService
from .receipts import ReceiptService

__all__ = [
    "ConversationService",
    "DeliveryResult",
    "DeliveryService",
    "NotificationService",
    "ReceiptService",
    "successful_delivery",
]
