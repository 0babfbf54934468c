"""Send notification emails through SendGrid."""

from __future__ import annotations

import json
import logging
from html import escape
from typing import Any

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from mailroom.config import get_settings
from mailroom.domain.entities import Message, Notification

logger = logging.getLogger(__name__)


def _sendgrid_error_details(body: Any) -> str | None:
    """Return the error messages of a SendGrid payload, or its raw text."""

    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not isinstance(body, str) or not body.strip():
        return None
    try:
        parsed = json.loads(body)
    except json.JSONDecodeError:
        return body.strip()
    errors = parsed.get("errors") if isinstance(parsed, dict) else None
    messages = [
        str(item["message"])
        for item in errors or []
        if isinstance(item, dict) and item.get("message")
    ]
    return "; ".join(messages) or None


def _log_sendgrid_failure(status_code: Any, body: Any) -> None:
    details = _sendgrid_error_details(body)
    if status_code and details:
        logger.error("SendGrid API request failed with status %s: %s", status_code, details)
    elif status_code:
        logger.error("SendGrid API request failed with status %s", status_code)
    elif details:
        logger.error("SendGrid API request failed: %s", details)
    else:
        logger.error("SendGrid API request failed without details")


def send_email(subject: str, html_content: str, recipient: str) -> bool:
    """Send an email using the configured SendGrid credentials."""

    settings = get_settings()
    if not (settings.sendgrid_api_key and settings.sendgrid_sender):
        logger.info("SendGrid configuration incomplete; skipping email delivery")
        return False

    message = Mail(
        from_email=settings.sendgrid_sender,
        to_emails=recipient,
        subject=subject,
        html_content=html_content,
    )

    try:
        client = SendGridAPIClient(settings.sendgrid_api_key)
        response = client.send(message)
    except Exception as exc:  # pragma: no cover - network failures depend on environment
        status_code = getattr(exc, "status_code", None)
        body = getattr(exc, "body", None)
        if status_code is None and body is None:
            logger.exception("Error sending email via SendGrid: %s", exc)
        else:
            _log_sendgrid_failure(status_code, body)
        return False

    status_code = getattr(response, "status_code", None)
    if not isinstance(status_code, int) or not 200 <= status_code < 300:
        _log_sendgrid_failure(status_code, getattr(response, "body", None))
        return False

    return True


def render_notification_email(notification: Notification) -> tuple[str, str]:
    """Return the ``(subject, html)`` pair used to mail ``notification``."""

    if isinstance(notification, Message):
        heading = "You have a new message"
    else:
        heading = "You have a new notification"
    paragraphs = "".join(
        f"<p>{escape(line)}</p>" for line in notification.body.splitlines() if line.strip()
    )
    html_content = (
        f"<h2>{escape(heading)}</h2>"
        f"<h3>{escape(notification.subject)}</h3>"
        f"{paragraphs}"
    )
    return notification.subject, html_content


__all__ = ["render_notification_email", "send_email"]
