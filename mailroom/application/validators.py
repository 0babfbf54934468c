"""Validation rules applied before anything is persisted.

Every validator returns a mapping of ``field -> [messages]``; an empty
mapping means the entity is valid. Nested owners are reported with a dotted
prefix (``notification.subject``, ``notification.conversation.subject``).
"""

from __future__ import annotations

from collections.abc import Iterable

from mailroom.config import Settings, get_settings
from mailroom.domain.entities import Conversation, Message, Notification, Receipt

Errors = dict[str, list[str]]

BLANK = "can't be blank"


def _too_long(maximum: int) -> str:
    return f"is too long (maximum is {maximum} characters)"


def _check_text(errors: Errors, field: str, value: str | None, maximum: int) -> None:
    if value is None or not value.strip():
        errors.setdefault(field, []).append(BLANK)
    elif len(value) > maximum:
        errors.setdefault(field, []).append(_too_long(maximum))


def _nest(errors: Errors, prefix: str, nested: Errors) -> None:
    for field, messages in nested.items():
        errors.setdefault(f"{prefix}.{field}", []).extend(messages)


def remove_duplicate_errors(errors: Errors) -> Errors:
    """Drop ``conversation.subject`` errors already reported on ``subject``.

    A message and its conversation share the subject, so a missing subject
    would otherwise surface twice.
    """

    for field in list(errors):
        if not field.endswith("conversation.subject"):
            continue
        sibling = field[: -len("conversation.subject")] + "subject"
        if errors.get(sibling):
            errors.pop(field)
    return errors


def validate_notification(
    notification: Notification, settings: Settings | None = None
) -> Errors:
    settings = settings or get_settings()
    errors: Errors = {}
    _check_text(errors, "subject", notification.subject, settings.subject_max_length)
    _check_text(errors, "body", notification.body, settings.body_max_length)
    return errors


def validate_conversation(
    conversation: Conversation, settings: Settings | None = None
) -> Errors:
    settings = settings or get_settings()
    errors: Errors = {}
    _check_text(errors, "subject", conversation.subject, settings.subject_max_length)
    return errors


def validate_message(
    message: Message,
    conversation: Conversation | None,
    settings: Settings | None = None,
) -> Errors:
    settings = settings or get_settings()
    errors = validate_notification(message, settings)
    if message.sender is None:
        errors.setdefault("sender", []).append(BLANK)
    if conversation is None:
        errors.setdefault("conversation", []).append(BLANK)
    else:
        _nest(errors, "conversation", validate_conversation(conversation, settings))
    return remove_duplicate_errors(errors)


def validate_receipt(
    receipt: Receipt,
    notification: Notification | None,
    conversation: Conversation | None = None,
    settings: Settings | None = None,
) -> Errors:
    """Validate a candidate receipt together with the notification it belongs to."""

    settings = settings or get_settings()
    errors: Errors = {}
    if receipt.receiver is None:
        errors.setdefault("receiver", []).append(BLANK)
    if notification is None:
        errors.setdefault("notification", []).append(BLANK)
    elif isinstance(notification, Message):
        _nest(errors, "notification", validate_message(notification, conversation, settings))
    else:
        _nest(errors, "notification", validate_notification(notification, settings))
    return remove_duplicate_errors(errors)


def merge_errors(batches: Iterable[Errors]) -> Errors:
    """Combine per-candidate errors, keeping each message once per field."""

    merged: Errors = {}
    for batch in batches:
        for field, messages in batch.items():
            bucket = merged.setdefault(field, [])
            for message in messages:
                if message not in bucket:
                    bucket.append(message)
    return merged


__all__ = [
    "Errors",
    "merge_errors",
    "remove_duplicate_errors",
    "validate_conversation",
    "validate_message",
    "validate_notification",
    "validate_receipt",
]
