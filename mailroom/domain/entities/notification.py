"""Domain entities for broadcast notifications and conversation messages."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, ClassVar

from mailroom.utils import ensure_app_timezone, now_in_app_timezone

from .participant import ObjectRef, ParticipantRef

NOTIFICATION_KIND = "notification"
MESSAGE_KIND = "message"


@dataclass
class Notification:
    """Broadcastable unit of content addressed to a set of recipients.

    ``recipients`` is transient: it only lives on the in-memory object while a
    delivery is in flight and is cleared once the receipts are stored.
    """

    kind: ClassVar[str] = NOTIFICATION_KIND

    id: int | None
    subject: str
    body: str
    sender: ParticipantRef | None = None
    notified_object: ObjectRef | None = None
    notification_code: str | None = None
    global_: bool = False
    draft: bool = False
    expires: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    recipients: list[Any] = field(default_factory=list, repr=False, compare=False)

    def is_expired(self, *, reference_time: datetime | None = None) -> bool:
        """Return ``True`` when an expiry is set and lies in the past."""

        expires = ensure_app_timezone(self.expires)
        if expires is None:
            return False
        current = ensure_app_timezone(reference_time) or now_in_app_timezone()
        return expires < current

    def expire(self, *, reference_time: datetime | None = None) -> bool:
        """Move ``expires`` just behind the clock unless already expired.

        Returns ``True`` when the expiry changed.
        """

        if self.is_expired(reference_time=reference_time):
            return False
        current = ensure_app_timezone(reference_time) or now_in_app_timezone()
        self.expires = current - timedelta(seconds=1)
        return True


@dataclass
class Message(Notification):
    """Notification that belongs to a conversation and always has a sender."""

    kind: ClassVar[str] = MESSAGE_KIND

    conversation_id: int | None = None


__all__ = ["MESSAGE_KIND", "NOTIFICATION_KIND", "Message", "Notification"]
