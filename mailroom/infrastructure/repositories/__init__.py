"""Repository implementations for infrastructure layer."""

from .conversation_repository import ConversationRepository
from .notification_repository import NotificationRepository
from .opt_out_repository import OptOutRepository
from .receipt_repository import ReceiptFilter, ReceiptRepository

__all__ = [
    "ConversationRepository",
    "NotificationRepository",
    "OptOutRepository",
    "ReceiptFilter",
    "ReceiptRepository",
]
