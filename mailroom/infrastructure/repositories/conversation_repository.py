"""Persistence helpers for conversation entities."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy.orm import Session

from mailroom.domain.entities import MESSAGE_KIND, Conversation
from mailroom.infrastructure.models import (
    ConversationModel,
    ConversationOptOutModel,
    NotificationModel,
    ReceiptModel,
)
from mailroom.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class ConversationRepository:
    """Provide CRUD operations for :class:`Conversation` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, conversation_id: int) -> Conversation | None:
        model = self.session.get(ConversationModel, conversation_id)
        return self._to_entity(model) if model else None

    def exists(self, conversation_id: int) -> bool:
        return self.session.get(ConversationModel, conversation_id) is not None

    def list_by_ids(self, conversation_ids: Sequence[int]) -> Sequence[Conversation]:
        """Return the given conversations, most recently active first."""

        if not conversation_ids:
            return []
        query = (
            self.session.query(ConversationModel)
            .filter(ConversationModel.id.in_(list(conversation_ids)))
            .order_by(ConversationModel.updated_at.desc(), ConversationModel.id.desc())
        )
        return [self._to_entity(model) for model in query.all()]

    def create(self, conversation: Conversation, *, commit: bool = True) -> Conversation:
        model = ConversationModel()
        self._apply_entity_to_model(model, conversation, include_creation_fields=True)
        self.session.add(model)
        if commit:
            self.session.commit()
            self.session.refresh(model)
        else:
            self.session.flush()
        return self._to_entity(model)

    def update(self, conversation: Conversation) -> Conversation:
        if conversation.id is None:
            raise ValueError("Conversation id is required for updates")
        model = self.session.get(ConversationModel, conversation.id)
        if model is None:
            msg = f"Conversation with id {conversation.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, conversation, include_creation_fields=False)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def touch(
        self,
        conversation_id: int,
        *,
        at: datetime | None = None,
        commit: bool = True,
    ) -> Conversation | None:
        """Bump ``updated_at`` to mark new activity on the conversation."""

        model = self.session.get(ConversationModel, conversation_id)
        if model is None:
            return None
        model.updated_at = ensure_app_naive_datetime(at or now_in_app_timezone())
        self.session.add(model)
        if commit:
            self.session.commit()
            self.session.refresh(model)
        else:
            self.session.flush()
        return self._to_entity(model)

    def delete(self, conversation_id: int) -> bool:
        """Delete a conversation with its receipts, messages and opt-outs.

        Children are removed before the parent row. Returns ``False`` when the
        conversation no longer exists.
        """

        model = self.session.get(ConversationModel, conversation_id)
        if model is None:
            return False
        message_ids = self.session.query(NotificationModel.id).filter(
            NotificationModel.type == MESSAGE_KIND,
            NotificationModel.conversation_id == conversation_id,
        )
        self.session.query(ReceiptModel).filter(
            (ReceiptModel.conversation_id == conversation_id)
            | ReceiptModel.notification_id.in_(message_ids)
        ).delete(synchronize_session=False)
        self.session.query(NotificationModel).filter(
            NotificationModel.type == MESSAGE_KIND,
            NotificationModel.conversation_id == conversation_id,
        ).delete(synchronize_session=False)
        self.session.query(ConversationOptOutModel).filter(
            ConversationOptOutModel.conversation_id == conversation_id
        ).delete(synchronize_session=False)
        self.session.delete(model)
        self.session.commit()
        return True

    @staticmethod
    def _apply_entity_to_model(
        model: ConversationModel,
        conversation: Conversation,
        *,
        include_creation_fields: bool,
    ) -> None:
        if include_creation_fields:
            model.created_at = (
                ensure_app_naive_datetime(conversation.created_at)
                or ensure_app_naive_datetime(now_in_app_timezone())
            )
            model.updated_at = (
                ensure_app_naive_datetime(conversation.updated_at) or model.created_at
            )
        model.subject = conversation.subject

    @staticmethod
    def _to_entity(model: ConversationModel) -> Conversation:
        return Conversation(
            id=model.id,
            subject=model.subject,
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["ConversationRepository"]
