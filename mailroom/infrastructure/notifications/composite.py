"""Fan one delivery out to several dispatchers."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from mailroom.domain.entities import Notification

logger = logging.getLogger(__name__)


class CompositeDispatcher:
    """Call every wrapped dispatcher; one failing does not stop the others."""

    def __init__(self, *dispatchers: Any) -> None:
        self._dispatchers = [dispatcher for dispatcher in dispatchers if dispatcher is not None]

    def deliver(self, notification: Notification, recipients: Sequence[Any]) -> None:
        for dispatcher in self._dispatchers:
            try:
                dispatcher.deliver(notification, recipients)
            except Exception:
                logger.exception(
                    "%s failed to deliver notification %s",
                    type(dispatcher).__name__,
                    notification.id,
                )


__all__ = ["CompositeDispatcher"]
