"""Persistence helpers for conversation opt-outs."""

from __future__ import annotations

from collections.abc import Sequence

from sqlalchemy.orm import Query, Session

from mailroom.domain.entities import OptOut, ParticipantRef
from mailroom.infrastructure.models import ConversationOptOutModel
from mailroom.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)


class OptOutRepository:
    """Provide create, lookup and removal of :class:`OptOut` records."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def list_for_conversation(self, conversation_id: int) -> Sequence[OptOut]:
        query = (
            self.session.query(ConversationOptOutModel)
            .filter(ConversationOptOutModel.conversation_id == conversation_id)
            .order_by(ConversationOptOutModel.id.asc())
        )
        return [self._to_entity(model) for model in query.all()]

    def exists(self, conversation_id: int, unsubscriber: ParticipantRef) -> bool:
        return self._for(conversation_id, unsubscriber).first() is not None

    def create(self, opt_out: OptOut) -> OptOut:
        model = ConversationOptOutModel(
            conversation_id=opt_out.conversation_id,
            unsubscriber_type=opt_out.unsubscriber.type,
            unsubscriber_id=opt_out.unsubscriber.id,
            created_at=ensure_app_naive_datetime(opt_out.created_at or now_in_app_timezone()),
        )
        model.updated_at = model.created_at
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def delete_for(self, conversation_id: int, unsubscriber: ParticipantRef) -> int:
        """Remove every opt-out of ``unsubscriber`` in the conversation."""

        deleted = self._for(conversation_id, unsubscriber).delete(synchronize_session=False)
        self.session.commit()
        return int(deleted or 0)

    def _for(self, conversation_id: int, unsubscriber: ParticipantRef) -> Query:
        return self.session.query(ConversationOptOutModel).filter(
            ConversationOptOutModel.conversation_id == conversation_id,
            ConversationOptOutModel.unsubscriber_type == unsubscriber.type,
            ConversationOptOutModel.unsubscriber_id == unsubscriber.id,
        )

    @staticmethod
    def _to_entity(model: ConversationOptOutModel) -> OptOut:
        return OptOut(
            id=model.id,
            conversation_id=model.conversation_id,
            unsubscriber=ParticipantRef(
                type=model.unsubscriber_type, id=model.unsubscriber_id
            ),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["OptOutRepository"]
