"""Participant state and lookups for stored notifications."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from mailroom.domain.entities import (
    Notification,
    ParticipantRef,
    Receipt,
    object_ref,
    participant_ref,
)
from mailroom.infrastructure.repositories import (
    NotificationRepository,
    ReceiptFilter,
    ReceiptRepository,
)

from .receipts import ReceiptService

logger = logging.getLogger(__name__)


class NotificationService:
    """Read and update a participant's copy of a notification.

    A ``None`` participant never raises: predicates answer ``False`` and
    mutators return ``None``.
    """

    def __init__(self, session: Session) -> None:
        self.session = session
        self.notifications = NotificationRepository(session)
        self.receipts = ReceiptRepository(session)
        self.receipt_service = ReceiptService(session)

    def get(self, notification_id: int) -> Notification | None:
        return self.notifications.get(notification_id)

    def receipt_for(self, notification: Notification, participant: Any) -> Receipt | None:
        ref = participant_ref(participant)
        if ref is None or notification.id is None:
            return None
        return self.receipts.first(ReceiptFilter(receiver=ref, notification_id=notification.id))

    def recipients(self, notification: Notification) -> list[Any]:
        """In-flight recipients, falling back to the receivers stored on receipts."""

        if notification.recipients:
            return list(notification.recipients)
        if notification.id is None:
            return []
        return self.receipts.receivers(ReceiptFilter(notification_id=notification.id))

    # -- participant state ---------------------------------------------

    def is_unread(self, notification: Notification, participant: Any) -> bool:
        receipt = self.receipt_for(notification, participant)
        return receipt is not None and receipt.is_unread()

    def is_read(self, notification: Notification, participant: Any) -> bool:
        receipt = self.receipt_for(notification, participant)
        return receipt is not None and receipt.is_read

    def is_trashed(self, notification: Notification, participant: Any) -> bool:
        receipt = self.receipt_for(notification, participant)
        return receipt is not None and receipt.trashed

    def is_deleted(self, notification: Notification, participant: Any) -> bool:
        receipt = self.receipt_for(notification, participant)
        return receipt is not None and receipt.deleted

    def mark_as_read(self, notification: Notification, participant: Any) -> int | None:
        return self._update(notification, participant, self.receipt_service.mark_as_read)

    def mark_as_unread(self, notification: Notification, participant: Any) -> int | None:
        return self._update(notification, participant, self.receipt_service.mark_as_unread)

    def move_to_trash(self, notification: Notification, participant: Any) -> int | None:
        return self._update(notification, participant, self.receipt_service.move_to_trash)

    def untrash(self, notification: Notification, participant: Any) -> int | None:
        return self._update(notification, participant, self.receipt_service.untrash)

    def mark_as_deleted(self, notification: Notification, participant: Any) -> int | None:
        return self._update(notification, participant, self.receipt_service.mark_as_deleted)

    def _update(self, notification: Notification, participant: Any, action) -> int | None:
        ref = participant_ref(participant)
        if ref is None or notification.id is None:
            return None
        return action(ReceiptFilter(receiver=ref, notification_id=notification.id))

    # -- expiry --------------------------------------------------------

    def expire(
        self, notification: Notification, *, reference_time: datetime | None = None
    ) -> Notification:
        """Expire ``notification`` now; already expired ones are left untouched."""

        if not notification.expire(reference_time=reference_time):
            return notification
        if notification.id is None:
            return notification
        stored = self.notifications.update(notification)
        logger.info("Expired notification %s", stored.id)
        return stored

    # -- queries -------------------------------------------------------

    def for_recipient(self, participant: Any) -> Sequence[Notification]:
        ref = participant_ref(participant)
        if ref is None:
            return []
        return self.notifications.list_for_recipient(ref)

    def with_object(self, obj: Any) -> Sequence[Notification]:
        ref = object_ref(obj)
        if ref is None:
            return []
        return self.notifications.list_with_object(ref)

    def global_notifications(self) -> Sequence[Notification]:
        return self.notifications.list_global()

    def expired(self, *, reference_time: datetime | None = None) -> Sequence[Notification]:
        return self.notifications.list_expired(reference_time=reference_time)

    def unexpired(self, *, reference_time: datetime | None = None) -> Sequence[Notification]:
        return self.notifications.list_unexpired(reference_time=reference_time)

    def unread(self, participant: Any) -> Sequence[Notification]:
        return self._for(participant, ReceiptFilter.unread)

    def not_trashed(self, participant: Any) -> Sequence[Notification]:
        return self._for(participant, ReceiptFilter.not_trash)

    def _for(self, participant: Any, scope) -> Sequence[Notification]:
        ref: ParticipantRef | None = participant_ref(participant)
        if ref is None:
            return []
        ids = self.receipts.notification_ids(scope(ReceiptFilter(receiver=ref)))
        return self.notifications.list_by_ids(ids)

    def delete(self, notification: Notification | int) -> bool:
        """Remove a notification and every receipt pointing at it."""

        notification_id = (
            notification.id if isinstance(notification, Notification) else notification
        )
        if notification_id is None:
            return False
        return self.notifications.delete(int(notification_id))


__all__ = ["NotificationService"]
