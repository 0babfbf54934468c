"""Dispatch delivered notifications by email."""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import Any

from mailroom.domain.entities import Notification
from mailroom.infrastructure.email import render_notification_email, send_email

logger = logging.getLogger(__name__)


class MailDispatcher:
    """Email every recipient that resolves to an address.

    Recipients without ``mailbox_email`` or returning an empty address are
    skipped; their receipts already exist.
    """

    def __init__(
        self,
        sender: Callable[[str, str, str], bool] = send_email,
    ) -> None:
        self._send = sender

    def resolve_addresses(
        self, notification: Notification, recipients: Iterable[Any]
    ) -> list[str]:
        addresses: list[str] = []
        for recipient in recipients:
            resolve = getattr(recipient, "mailbox_email", None)
            if resolve is None:
                continue
            address = resolve(notification)
            if address and address not in addresses:
                addresses.append(address)
        return addresses

    def deliver(self, notification: Notification, recipients: Iterable[Any]) -> None:
        addresses = self.resolve_addresses(notification, recipients)
        if not addresses:
            logger.debug("Notification %s has no email recipients", notification.id)
            return
        subject, html_content = render_notification_email(notification)
        failures = [
            address
            for address in addresses
            if not self._send(subject, html_content, address)
        ]
        if failures:
            logger.warning(
                "Notification %s could not be emailed to %d of %d recipients",
                notification.id,
                len(failures),
                len(addresses),
            )


__all__ = ["MailDispatcher"]
