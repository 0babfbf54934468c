"""Per-participant views and state of conversations."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from sqlalchemy.orm import Session

from mailroom.application.builders import build_receipt
from mailroom.application.validators import validate_receipt
from mailroom.config import Settings, get_settings
from mailroom.domain.entities import (
    MAILBOX_INBOX,
    Conversation,
    Message,
    OptOut,
    ParticipantRef,
    Receipt,
    participant_ref,
)
from mailroom.domain.errors import ValidationFailure
from mailroom.infrastructure.repositories import (
    ConversationRepository,
    NotificationRepository,
    OptOutRepository,
    ReceiptFilter,
    ReceiptRepository,
)

from .receipts import ReceiptService

logger = logging.getLogger(__name__)

ConversationLike = Conversation | int


def _conversation_id(conversation: ConversationLike) -> int:
    conversation_id = conversation.id if isinstance(conversation, Conversation) else conversation
    if conversation_id is None:
        raise ValueError("Conversation id is required")
    return int(conversation_id)


class ConversationService:
    """Aggregate receipts and messages into conversation level answers.

    Nothing is cached: originator, last message and participants are read
    from the store on every call. Every participant-scoped method treats a
    ``None`` participant as a no-op and returns a falsy value.
    """

    def __init__(self, session: Session, *, settings: Settings | None = None) -> None:
        self.session = session
        self.settings = settings or get_settings()
        self.conversations = ConversationRepository(session)
        self.notifications = NotificationRepository(session)
        self.receipts = ReceiptRepository(session)
        self.opt_outs = OptOutRepository(session)
        self.receipt_service = ReceiptService(session)

    # -- mailbox views -------------------------------------------------

    def participant_conversations(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, lambda criteria: criteria)

    def inbox(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, ReceiptFilter.inbox)

    def sentbox(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, ReceiptFilter.sentbox)

    def trash(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, ReceiptFilter.trash)

    def unread(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, ReceiptFilter.unread)

    def not_trash(self, participant: Any) -> Sequence[Conversation]:
        return self._view(participant, ReceiptFilter.not_trash)

    def _view(self, participant: Any, scope) -> Sequence[Conversation]:
        ref = participant_ref(participant)
        if ref is None:
            return []
        ids = self.receipts.conversation_ids(scope(ReceiptFilter(receiver=ref)))
        return self.conversations.list_by_ids(ids)

    # -- derived fields ------------------------------------------------

    def get(self, conversation_id: int) -> Conversation | None:
        return self.conversations.get(conversation_id)

    def messages(self, conversation: ConversationLike) -> Sequence[Message]:
        return self.notifications.list_messages(_conversation_id(conversation))

    def count_messages(self, conversation: ConversationLike) -> int:
        return self.notifications.count_messages(_conversation_id(conversation))

    def original_message(self, conversation: ConversationLike) -> Message | None:
        return self.notifications.first_message(_conversation_id(conversation))

    def last_message(self, conversation: ConversationLike) -> Message | None:
        return self.notifications.last_message(_conversation_id(conversation))

    def originator(self, conversation: ConversationLike) -> ParticipantRef | None:
        message = self.original_message(conversation)
        return message.sender if message else None

    def last_sender(self, conversation: ConversationLike) -> ParticipantRef | None:
        message = self.last_message(conversation)
        return message.sender if message else None

    def recipients(self, conversation: ConversationLike) -> list[ParticipantRef]:
        """Receivers of the first message, its sender included."""

        message = self.original_message(conversation)
        if message is None:
            return []
        return self.receipts.receivers(ReceiptFilter(notification_id=message.id))

    def participants(self, conversation: ConversationLike) -> list[ParticipantRef]:
        return self.recipients(conversation)

    def receipts_for(self, conversation: ConversationLike, participant: Any) -> Sequence[Receipt]:
        ref = participant_ref(participant)
        if ref is None:
            return []
        return self.receipts.list_matching(self._scope(conversation, ref))

    def _scope(self, conversation: ConversationLike, ref: ParticipantRef) -> ReceiptFilter:
        return ReceiptFilter(receiver=ref, conversation_id=_conversation_id(conversation))

    # -- participant state ---------------------------------------------

    def mark_as_read(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.receipt_service.mark_as_read(self._scope(conversation, ref))

    def mark_as_unread(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.receipt_service.mark_as_unread(self._scope(conversation, ref))

    def move_to_trash(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.receipt_service.move_to_trash(self._scope(conversation, ref))

    def untrash(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.receipt_service.untrash(self._scope(conversation, ref))

    def mark_as_not_deleted(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.receipt_service.mark_as_not_deleted(self._scope(conversation, ref))

    def mark_as_deleted(self, conversation: ConversationLike, participant: Any) -> int:
        """Soft-delete the participant's copies; destroy the conversation once orphaned.

        Returns the number of receipts flagged as deleted.
        """

        ref = participant_ref(participant)
        if ref is None:
            return 0
        conversation_id = _conversation_id(conversation)
        updated = self.receipt_service.mark_as_deleted(self._scope(conversation_id, ref))
        if self.is_orphaned(conversation_id):
            self.destroy(conversation_id)
        return updated

    def is_participant(self, conversation: ConversationLike, participant: Any) -> bool:
        ref = participant_ref(participant)
        if ref is None:
            return False
        return self.receipts.exists(self._scope(conversation, ref))

    def is_trashed(self, conversation: ConversationLike, participant: Any) -> bool:
        """``True`` when at least one of the participant's copies is in the trash."""

        ref = participant_ref(participant)
        if ref is None:
            return False
        return self.receipts.count(self._scope(conversation, ref).trash()) != 0

    def is_completely_trashed(self, conversation: ConversationLike, participant: Any) -> bool:
        ref = participant_ref(participant)
        if ref is None:
            return False
        scope = self._scope(conversation, ref)
        return self.receipts.count(scope.trash()) == self.receipts.count(scope)

    def is_deleted(self, conversation: ConversationLike, participant: Any) -> bool:
        """``True`` when every copy the participant holds is marked deleted."""

        ref = participant_ref(participant)
        if ref is None:
            return False
        scope = self._scope(conversation, ref)
        return self.receipts.count(scope.deleted_only()) == self.receipts.count(scope)

    def is_orphaned(self, conversation: ConversationLike) -> bool:
        conversation_id = _conversation_id(conversation)
        return all(
            self.is_deleted(conversation_id, participant)
            for participant in self.participants(conversation_id)
        )

    def is_unread(self, conversation: ConversationLike, participant: Any) -> bool:
        ref = participant_ref(participant)
        if ref is None:
            return False
        return self.receipts.count(self._scope(conversation, ref).not_trash().unread()) != 0

    def is_read(self, conversation: ConversationLike, participant: Any) -> bool:
        if participant_ref(participant) is None:
            return False
        return not self.is_unread(conversation, participant)

    # -- membership ----------------------------------------------------

    def add_participant(self, conversation: ConversationLike, participant: Any) -> list[Receipt]:
        """Give ``participant`` an inbox copy of every existing message.

        Each receipt keeps the timestamps of its message. Receipts are saved
        one by one; the first invalid one raises :class:`ValidationFailure`.
        """

        ref = participant_ref(participant)
        if ref is None:
            return []
        conversation_id = _conversation_id(conversation)
        owner = self.conversations.get(conversation_id)
        created: list[Receipt] = []
        for message in self.notifications.list_messages(conversation_id):
            receipt = build_receipt(
                message,
                ref,
                mailbox_type=MAILBOX_INBOX,
                conversation_id=conversation_id,
                created_at=message.created_at,
                updated_at=message.updated_at,
            )
            errors = validate_receipt(receipt, message, owner, self.settings)
            if errors:
                raise ValidationFailure(errors)
            created.append(self.receipts.create(receipt))
        logger.info(
            "Added %s to conversation %s with %d receipts", ref, conversation_id, len(created)
        )
        return created

    # -- subscription --------------------------------------------------

    def has_subscriber(self, conversation: ConversationLike, participant: Any) -> bool:
        ref = participant_ref(participant)
        if ref is None:
            return False
        return not self.opt_outs.exists(_conversation_id(conversation), ref)

    def opt_out(self, conversation: ConversationLike, participant: Any) -> OptOut | None:
        """Unsubscribe a current subscriber from future replies.

        Participants without a live (not deleted) receipt in the conversation,
        or already opted out, are left alone and ``None`` is returned.
        """

        ref = participant_ref(participant)
        if ref is None:
            return None
        conversation_id = _conversation_id(conversation)
        if not self.has_subscriber(conversation_id, ref):
            return None
        if not self.receipts.exists(self._scope(conversation_id, ref).not_deleted()):
            return None
        return self.opt_outs.create(
            OptOut(id=None, conversation_id=conversation_id, unsubscriber=ref)
        )

    def unsubscribers(self, conversation: ConversationLike) -> list[ParticipantRef]:
        opt_outs = self.opt_outs.list_for_conversation(_conversation_id(conversation))
        return [opt_out.unsubscriber for opt_out in opt_outs]

    def opt_in(self, conversation: ConversationLike, participant: Any) -> int:
        ref = participant_ref(participant)
        if ref is None:
            return 0
        return self.opt_outs.delete_for(_conversation_id(conversation), ref)

    # -- lifecycle -----------------------------------------------------

    def destroy(self, conversation: ConversationLike) -> bool:
        """Delete the conversation and everything it owns.

        Destroying a conversation that is already gone returns ``False``.
        """

        conversation_id = _conversation_id(conversation)
        destroyed = self.conversations.delete(conversation_id)
        if destroyed:
            logger.info("Destroyed conversation %s", conversation_id)
        return destroyed


__all__ = ["ConversationService"]
