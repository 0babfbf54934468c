"""Domain entity representing a conversation thread."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class Conversation:
    """Ordered aggregate of messages sharing a subject."""

    id: int | None
    subject: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


__all__ = ["Conversation"]
