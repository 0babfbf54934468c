"""ORM models used by the application infrastructure."""

from .conversation import ConversationModel, ConversationOptOutModel
from .notification import MessageModel, NotificationModel
from .receipt import ReceiptModel

__all__ = [
    "ConversationModel",
    "ConversationOptOutModel",
    "MessageModel",
    "NotificationModel",
    "ReceiptModel",
]
