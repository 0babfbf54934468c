"""Persistence helpers for notification and message entities."""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import or_
from sqlalchemy.orm import Query, Session

from mailroom.domain.entities import (
    MESSAGE_KIND,
    Message,
    Notification,
    ObjectRef,
    ParticipantRef,
)
from mailroom.infrastructure.models import MessageModel, NotificationModel, ReceiptModel
from mailroom.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class NotificationRepository:
    """Provide CRUD operations and scopes for :class:`Notification` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, notification_id: int) -> Notification | None:
        model = self.session.get(NotificationModel, notification_id)
        return self._to_entity(model) if model else None

    def create(self, notification: Notification, *, commit: bool = True) -> Notification:
        model = MessageModel() if isinstance(notification, Message) else NotificationModel()
        self._apply_entity_to_model(model, notification, include_creation_fields=True)
        self.session.add(model)
        if commit:
            self.session.commit()
            self.session.refresh(model)
        else:
            self.session.flush()
        return self._to_entity(model)

    def update(self, notification: Notification) -> Notification:
        if notification.id is None:
            raise ValueError("Notification id is required for updates")
        model = self.session.get(NotificationModel, notification.id)
        if model is None:
            msg = f"Notification with id {notification.id} not found"
            raise ValueError(msg)
        self._apply_entity_to_model(model, notification, include_creation_fields=False)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def delete(self, notification_id: int) -> bool:
        """Delete a notification together with its receipts."""

        model = self.session.get(NotificationModel, notification_id)
        if model is None:
            return False
        self.session.query(ReceiptModel).filter(
            ReceiptModel.notification_id == notification_id
        ).delete(synchronize_session=False)
        self.session.delete(model)
        self.session.commit()
        return True

    def list_by_ids(self, notification_ids: Sequence[int]) -> Sequence[Notification]:
        if not notification_ids:
            return []
        query = self._ordered(
            self.session.query(NotificationModel).filter(
                NotificationModel.id.in_(list(notification_ids))
            )
        )
        return [self._to_entity(model) for model in query.all()]

    def list_for_recipient(self, recipient: ParticipantRef) -> Sequence[Notification]:
        query = self._ordered(
            self.session.query(NotificationModel).filter(
                NotificationModel.id.in_(
                    self.session.query(ReceiptModel.notification_id).filter(
                        ReceiptModel.receiver_type == recipient.type,
                        ReceiptModel.receiver_id == recipient.id,
                    )
                )
            )
        )
        return [self._to_entity(model) for model in query.all()]

    def list_with_object(self, obj: ObjectRef) -> Sequence[Notification]:
        query = self._ordered(
            self.session.query(NotificationModel).filter(
                NotificationModel.notified_object_type == obj.type,
                NotificationModel.notified_object_id == obj.id,
            )
        )
        return [self._to_entity(model) for model in query.all()]

    def list_global(self) -> Sequence[Notification]:
        query = self._ordered(
            self.session.query(NotificationModel).filter(NotificationModel.global_ == True)  # noqa: E712
        )
        return [self._to_entity(model) for model in query.all()]

    def list_expired(self, *, reference_time: datetime | None = None) -> Sequence[Notification]:
        now = ensure_app_naive_datetime(reference_time or now_in_app_timezone())
        query = self._ordered(
            self.session.query(NotificationModel).filter(
                NotificationModel.expires.isnot(None), NotificationModel.expires < now
            )
        )
        return [self._to_entity(model) for model in query.all()]

    def list_unexpired(
        self, *, reference_time: datetime | None = None
    ) -> Sequence[Notification]:
        now = ensure_app_naive_datetime(reference_time or now_in_app_timezone())
        query = self._ordered(
            self.session.query(NotificationModel).filter(
                or_(NotificationModel.expires.is_(None), NotificationModel.expires > now)
            )
        )
        return [self._to_entity(model) for model in query.all()]

    def list_messages(self, conversation_id: int) -> Sequence[Message]:
        """Return the messages of a conversation in creation order."""

        query = (
            self._messages(conversation_id)
            .order_by(NotificationModel.created_at.asc(), NotificationModel.id.asc())
        )
        return [self._to_entity(model) for model in query.all()]

    def first_message(self, conversation_id: int) -> Message | None:
        model = (
            self._messages(conversation_id)
            .order_by(NotificationModel.created_at.asc(), NotificationModel.id.asc())
            .first()
        )
        return self._to_entity(model) if model else None

    def last_message(self, conversation_id: int) -> Message | None:
        model = (
            self._messages(conversation_id)
            .order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())
            .first()
        )
        return self._to_entity(model) if model else None

    def count_messages(self, conversation_id: int) -> int:
        return int(self._messages(conversation_id).count())

    def _messages(self, conversation_id: int) -> Query:
        return self.session.query(NotificationModel).filter(
            NotificationModel.type == MESSAGE_KIND,
            NotificationModel.conversation_id == conversation_id,
        )

    @staticmethod
    def _ordered(query: Query) -> Query:
        return query.order_by(NotificationModel.created_at.desc(), NotificationModel.id.desc())

    @staticmethod
    def _apply_entity_to_model(
        model: NotificationModel,
        notification: Notification,
        *,
        include_creation_fields: bool,
    ) -> None:
        if include_creation_fields:
            model.created_at = (
                ensure_app_naive_datetime(notification.created_at)
                or ensure_app_naive_datetime(now_in_app_timezone())
            )
            model.updated_at = (
                ensure_app_naive_datetime(notification.updated_at) or model.created_at
            )
        model.subject = notification.subject
        model.body = notification.body
        model.draft = bool(notification.draft)
        model.global_ = bool(notification.global_)
        model.notification_code = notification.notification_code
        model.expires = ensure_app_naive_datetime(notification.expires)
        sender = notification.sender
        model.sender_type = sender.type if sender else None
        model.sender_id = sender.id if sender else None
        notified = notification.notified_object
        model.notified_object_type = notified.type if notified else None
        model.notified_object_id = notified.id if notified else None
        if isinstance(notification, Message):
            model.conversation_id = notification.conversation_id

    @staticmethod
    def _to_entity(model: NotificationModel) -> Notification:
        sender = (
            ParticipantRef(type=model.sender_type, id=model.sender_id)
            if model.sender_type and model.sender_id is not None
            else None
        )
        notified = (
            ObjectRef(type=model.notified_object_type, id=model.notified_object_id)
            if model.notified_object_type and model.notified_object_id is not None
            else None
        )
        values = dict(
            id=model.id,
            subject=model.subject,
            body=model.body,
            sender=sender,
            notified_object=notified,
            notification_code=model.notification_code,
            global_=bool(model.global_),
            draft=bool(model.draft),
            expires=ensure_app_timezone(model.expires),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )
        if model.type == MESSAGE_KIND:
            return Message(conversation_id=model.conversation_id, **values)
        return Notification(**values)


__all__ = ["NotificationRepository"]
