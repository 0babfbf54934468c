"""Mailbox state transitions for delivery receipts."""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from mailroom.domain.entities import MAILBOX_INBOX, MAILBOX_SENTBOX, Receipt
from mailroom.infrastructure.repositories import ReceiptFilter, ReceiptRepository

MARK_AS_READ = {"is_read": True}
MARK_AS_UNREAD = {"is_read": False}
MOVE_TO_TRASH = {"trashed": True}
UNTRASH = {"trashed": False}
MARK_AS_DELETED = {"deleted": True}
MARK_AS_NOT_DELETED = {"deleted": False}
# Entering a mailbox always takes the receipt out of the trash.
MOVE_TO_INBOX = {"mailbox_type": MAILBOX_INBOX, "trashed": False}
MOVE_TO_SENTBOX = {"mailbox_type": MAILBOX_SENTBOX, "trashed": False}


class ReceiptService:
    """Flip the independent read/trash/delete/mailbox flags of receipts.

    Every method accepts either a single :class:`Receipt` (or its id), which
    is updated and returned, or a :class:`ReceiptFilter`, in which case all
    matching receipts are updated with one statement and the number of
    affected rows is returned. Changes are persisted immediately.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.repository = ReceiptRepository(session)

    def mark_as_read(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MARK_AS_READ)

    def mark_as_unread(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MARK_AS_UNREAD)

    def move_to_trash(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MOVE_TO_TRASH)

    def untrash(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, UNTRASH)

    def mark_as_deleted(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MARK_AS_DELETED)

    def mark_as_not_deleted(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MARK_AS_NOT_DELETED)

    def move_to_inbox(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MOVE_TO_INBOX)

    def move_to_sentbox(self, target: Receipt | ReceiptFilter | int) -> Any:
        return self._apply(target, MOVE_TO_SENTBOX)

    def _apply(
        self, target: Receipt | ReceiptFilter | int, updates: dict[str, Any]
    ) -> Receipt | int:
        if isinstance(target, ReceiptFilter):
            return self.repository.update_receipts(updates, target)
        receipt_id = target.id if isinstance(target, Receipt) else target
        if receipt_id is None:
            raise ValueError("Receipt id is required for updates")
        return self.repository.update_fields(int(receipt_id), **updates)


__all__ = ["ReceiptService"]
