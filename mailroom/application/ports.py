"""Collaborator contracts consumed by the delivery pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any, Callable, Protocol

from mailroom.domain.entities import Notification, ParticipantRef


class Dispatcher(Protocol):
    """Out-of-band delivery (email, push, ...) of a stored notification."""

    def deliver(self, notification: Notification, recipients: Sequence[Any]) -> None:
        ...


class Sanitizer(Protocol):
    def clean(self, text: str) -> str:
        ...


ParticipantResolver = Callable[[ParticipantRef], Any]
DeliverCallback = Callable[[Notification], None]


__all__ = ["DeliverCallback", "Dispatcher", "ParticipantResolver", "Sanitizer"]
