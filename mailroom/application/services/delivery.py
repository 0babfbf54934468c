"""Fan notifications and messages out into per-recipient receipts."""

from __future__ import annotations

import logging
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy.orm import Session

from mailroom.application.builders import (
    build_conversation,
    build_message,
    build_notification,
    build_receipt,
    unique_recipients,
)
from mailroom.application.ports import (
    DeliverCallback,
    Dispatcher,
    ParticipantResolver,
    Sanitizer,
)
from mailroom.application.validators import (
    Errors,
    merge_errors,
    validate_conversation,
    validate_message,
    validate_notification,
    validate_receipt,
)
from mailroom.config import Settings, get_settings
from mailroom.domain.entities import (
    MAILBOX_INBOX,
    MAILBOX_SENTBOX,
    Conversation,
    Message,
    Notification,
    ParticipantRef,
    Receipt,
    participant_ref,
)
from mailroom.infrastructure.cleaner import text_cleaner
from mailroom.infrastructure.notifications import MailDispatcher
from mailroom.infrastructure.repositories import (
    ConversationRepository,
    NotificationRepository,
    ReceiptFilter,
    ReceiptRepository,
)

from .conversations import ConversationService
from .receipts import ReceiptService

logger = logging.getLogger(__name__)


@dataclass
class DeliveryResult:
    """Outcome of one delivery call.

    ``errors`` is empty on success. On failure nothing was stored and
    ``receipts`` is empty.
    """

    notification: Notification
    receipts: list[Receipt] = field(default_factory=list)
    errors: Errors = field(default_factory=dict)
    conversation: Conversation | None = None
    sender_receipt: Receipt | None = None

    @property
    def successful(self) -> bool:
        return not self.errors

    def __bool__(self) -> bool:
        return self.successful


def successful_delivery(outcome: DeliveryResult | Receipt | Sequence[Receipt] | None) -> bool:
    """Return ``True`` when ``outcome`` reflects stored receipts."""

    if isinstance(outcome, DeliveryResult):
        return outcome.successful
    if isinstance(outcome, Receipt):
        return outcome.id is not None
    if isinstance(outcome, (list, tuple)):
        return all(isinstance(item, Receipt) and item.id is not None for item in outcome)
    return False


class DeliveryService:
    """Validate, persist and dispatch notifications and conversation messages.

    Collaborators are fixed at construction time: ``dispatcher`` performs the
    out-of-band delivery (defaults to email when enabled in the settings),
    ``sanitizer`` cleans subjects and bodies, ``on_deliver`` is called with
    every delivered message and ``resolve_participant`` turns stored
    :class:`ParticipantRef` values back into participant objects for
    dispatchers that need addresses.
    """

    def __init__(
        self,
        session: Session,
        *,
        dispatcher: Dispatcher | None = None,
        sanitizer: Sanitizer | None = None,
        on_deliver: DeliverCallback | None = None,
        resolve_participant: ParticipantResolver | None = None,
        settings: Settings | None = None,
    ) -> None:
        self.session = session
        self.settings = settings or get_settings()
        if dispatcher is None and self.settings.email_dispatch_enabled:
            dispatcher = MailDispatcher()
        self.dispatcher = dispatcher
        self.sanitizer = sanitizer or text_cleaner
        self.on_deliver = on_deliver
        self.resolve_participant = resolve_participant
        self.notifications = NotificationRepository(session)
        self.conversations = ConversationRepository(session)
        self.receipts = ReceiptRepository(session)
        self.conversation_service = ConversationService(session, settings=self.settings)
        self.receipt_service = ReceiptService(session)

    # -- notifications -------------------------------------------------

    def notify_all(
        self,
        recipients: Iterable[Any],
        subject: str,
        body: str,
        *,
        notified_object: Any = None,
        notification_code: str | None = None,
        sender: Any = None,
        global_: bool = False,
        expires: datetime | None = None,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Build a notification and deliver it to every recipient."""

        notification = build_notification(
            subject=subject,
            body=body,
            recipients=recipients,
            sender=sender,
            notified_object=notified_object,
            notification_code=notification_code,
            global_=global_,
            expires=expires,
        )
        return self.deliver_notification(
            notification, sanitize_text=sanitize_text, send_mail=send_mail
        )

    def deliver_notification(
        self,
        notification: Notification,
        *,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        if sanitize_text:
            self._clean(notification)
        recipients = unique_recipients(notification.recipients)
        candidates = [
            build_receipt(notification, recipient, mailbox_type=None)
            for recipient in recipients
        ]
        errors = merge_errors(
            [validate_notification(notification, self.settings)]
            + [
                validate_receipt(candidate, notification, settings=self.settings)
                for candidate in candidates
            ]
        )
        if errors:
            logger.warning("Notification rejected, nothing stored: %s", errors)
            return DeliveryResult(notification=notification, errors=errors)

        try:
            self._store_notification(notification)
            for candidate in candidates:
                candidate.notification_id = notification.id
            receipts = self.receipts.add_all(candidates, commit=False)
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Delivered notification %s to %d recipients", notification.id, len(receipts)
        )
        if send_mail:
            self._dispatch(notification, recipients)
        notification.recipients = []
        return DeliveryResult(notification=notification, receipts=receipts)

    # -- messages ------------------------------------------------------

    def send_message(
        self,
        sender: Any,
        recipients: Iterable[Any],
        subject: str,
        body: str,
        *,
        sanitize_text: bool = True,
        send_mail: bool = True,
        created_at: datetime | None = None,
    ) -> DeliveryResult:
        """Start a new conversation whose first message goes to ``recipients``."""

        conversation = build_conversation(subject)
        message = build_message(
            sender=sender,
            subject=subject,
            body=body,
            recipients=recipients,
            created_at=created_at,
        )
        return self.deliver_message(
            message,
            conversation,
            sender=sender,
            sanitize_text=sanitize_text,
            send_mail=send_mail,
        )

    def reply(
        self,
        sender: Any,
        conversation: Conversation,
        recipients: Iterable[Any],
        body: str,
        subject: str | None = None,
        *,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Post a message into an existing conversation.

        The sender is never one of its own recipients.
        """

        sender_ref = participant_ref(sender)
        targets = [
            recipient
            for recipient in recipients
            if participant_ref(recipient) != sender_ref
        ]
        message = build_message(
            sender=sender,
            subject=subject or conversation.subject,
            body=body,
            recipients=targets,
            conversation_id=conversation.id,
        )
        return self.deliver_message(
            message,
            conversation,
            sender=sender,
            reply=True,
            sanitize_text=sanitize_text,
            send_mail=send_mail,
        )

    def reply_to_conversation(
        self,
        sender: Any,
        conversation: Conversation,
        body: str,
        subject: str | None = None,
        *,
        should_untrash: bool = True,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Reply to everyone who received the latest message.

        When ``should_untrash`` is set and the sender had trashed the
        conversation, their copies are restored first.
        """

        conversations = self.conversation_service
        if should_untrash and conversations.is_trashed(conversation, sender):
            conversations.untrash(conversation, sender)
            conversations.mark_as_not_deleted(conversation, sender)
        last_message = conversations.last_message(conversation)
        recipients = self.message_recipients(last_message) if last_message else []
        return self.reply(
            sender,
            conversation,
            recipients,
            body,
            subject,
            sanitize_text=sanitize_text,
            send_mail=send_mail,
        )

    def reply_to_sender(
        self,
        sender: Any,
        receipt: Receipt,
        body: str,
        subject: str | None = None,
        *,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Answer only the author of the message behind ``receipt``."""

        message, conversation = self._message_for(receipt)
        return self.reply(
            sender,
            conversation,
            [self._resolve(message.sender)],
            body,
            subject,
            sanitize_text=sanitize_text,
            send_mail=send_mail,
        )

    def reply_to_all(
        self,
        sender: Any,
        receipt: Receipt,
        body: str,
        subject: str | None = None,
        *,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Answer every recipient of the message behind ``receipt``."""

        message, conversation = self._message_for(receipt)
        return self.reply(
            sender,
            conversation,
            self.message_recipients(message),
            body,
            subject,
            sanitize_text=sanitize_text,
            send_mail=send_mail,
        )

    def deliver_message(
        self,
        message: Message,
        conversation: Conversation,
        *,
        sender: Any = None,
        reply: bool = False,
        sanitize_text: bool = True,
        send_mail: bool = True,
    ) -> DeliveryResult:
        """Store one inbox receipt per recipient plus a read sentbox copy for the sender.

        Recipients who opted out of an existing conversation get no receipt.
        The dispatcher is handed the full recipient list.
        """

        if sanitize_text:
            self._clean(message)
            if conversation.id is None:
                conversation.subject = self.sanitizer.clean(conversation.subject)
        if message.sender is None:
            message.sender = participant_ref(sender)

        recipients = unique_recipients(message.recipients)
        subscribed = recipients
        if conversation.id is not None:
            subscribed = [
                recipient
                for recipient in recipients
                if participant_ref(recipient) is None
                or self.conversation_service.has_subscriber(conversation, recipient)
            ]
        candidates = [
            build_receipt(message, recipient, mailbox_type=MAILBOX_INBOX)
            for recipient in subscribed
        ]
        sender_candidate = build_receipt(
            message, message.sender, mailbox_type=MAILBOX_SENTBOX, is_read=True
        )
        candidates.append(sender_candidate)

        errors = merge_errors(
            [validate_message(message, conversation, self.settings)]
            + [
                validate_receipt(candidate, message, conversation, self.settings)
                for candidate in candidates
            ]
        )
        if errors:
            logger.warning("Message rejected, nothing stored: %s", errors)
            return DeliveryResult(
                notification=message, conversation=conversation, errors=errors
            )

        try:
            if conversation.id is None:
                stored = self.conversations.create(conversation, commit=False)
                conversation.id = stored.id
                conversation.created_at = stored.created_at
                conversation.updated_at = stored.updated_at
            message.conversation_id = conversation.id
            self._store_notification(message)
            for candidate in candidates:
                candidate.notification_id = message.id
                candidate.conversation_id = conversation.id
            receipts = self.receipts.add_all(candidates, commit=False)
            if reply:
                touched = self.conversations.touch(conversation.id, commit=False)
                if touched is not None:
                    conversation.updated_at = touched.updated_at
            self.session.commit()
        except Exception:
            self.session.rollback()
            raise

        logger.info(
            "Delivered message %s in conversation %s to %d recipients",
            message.id,
            conversation.id,
            len(subscribed),
        )
        if send_mail:
            self._dispatch(message, recipients)
        message.recipients = []
        if self.on_deliver is not None:
            self.on_deliver(message)
        return DeliveryResult(
            notification=message,
            receipts=receipts,
            conversation=conversation,
            sender_receipt=receipts[-1],
        )

    # -- helpers -------------------------------------------------------

    def message_recipients(self, notification: Notification) -> list[Any]:
        """In-flight recipients, or the receivers recorded on its receipts."""

        if notification.recipients:
            return list(notification.recipients)
        if notification.id is None:
            return []
        refs = self.receipts.receivers(ReceiptFilter(notification_id=notification.id))
        return [self._resolve(ref) for ref in refs]

    def _message_for(self, receipt: Receipt) -> tuple[Message, Conversation]:
        message = self.notifications.get(receipt.notification_id)
        if not isinstance(message, Message) or message.conversation_id is None:
            msg = f"Receipt {receipt.id} does not belong to a conversation message"
            raise ValueError(msg)
        conversation = self.conversations.get(message.conversation_id)
        if conversation is None:
            msg = f"Conversation with id {message.conversation_id} not found"
            raise ValueError(msg)
        return message, conversation

    def _resolve(self, ref: ParticipantRef | None) -> Any:
        if ref is None or self.resolve_participant is None:
            return ref
        resolved = self.resolve_participant(ref)
        return resolved if resolved is not None else ref

    def _clean(self, notification: Notification) -> None:
        if notification.subject:
            notification.subject = self.sanitizer.clean(notification.subject)
        notification.body = self.sanitizer.clean(notification.body or "")

    def _store_notification(self, notification: Notification) -> None:
        if notification.id is not None:
            return
        stored = self.notifications.create(notification, commit=False)
        notification.id = stored.id
        notification.created_at = stored.created_at
        notification.updated_at = stored.updated_at

    def _dispatch(self, notification: Notification, recipients: Sequence[Any]) -> None:
        if self.dispatcher is None or not recipients:
            return
        try:
            self.dispatcher.deliver(notification, recipients)
        except Exception:
            logger.exception(
                "Dispatcher failed for notification %s; receipts are kept", notification.id
            )


__all__ = ["DeliveryResult", "DeliveryService", "successful_delivery"]
