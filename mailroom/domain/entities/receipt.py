"""Domain entity holding per-participant mailbox state."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .participant import ParticipantRef

MAILBOX_INBOX = "inbox"
MAILBOX_SENTBOX = "sentbox"
MAILBOX_TYPES = (MAILBOX_INBOX, MAILBOX_SENTBOX)


@dataclass
class Receipt:
    """Read, trash, delete and mailbox placement of one notification for one receiver.

    The flags are independent of each other; ``mailbox_type`` is ``None`` for
    receipts of plain notifications.
    """

    id: int | None
    notification_id: int | None
    receiver: ParticipantRef | None
    conversation_id: int | None = None
    mailbox_type: str | None = None
    is_read: bool = False
    trashed: bool = False
    deleted: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def is_unread(self) -> bool:
        return not self.is_read

    def is_trashed(self) -> bool:
        return self.trashed


__all__ = ["MAILBOX_INBOX", "MAILBOX_SENTBOX", "MAILBOX_TYPES", "Receipt"]
