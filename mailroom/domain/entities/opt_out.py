"""Domain entity recording that a participant left a conversation's fan-out."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from .participant import ParticipantRef


@dataclass
class OptOut:
    """Unsubscription of ``unsubscriber`` from future replies in a conversation."""

    id: int | None
    conversation_id: int
    unsubscriber: ParticipantRef
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = ["OptOut"]
