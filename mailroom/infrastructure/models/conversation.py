"""SQLAlchemy models for conversations and their opt-outs."""

from sqlalchemy import Column, DateTime, ForeignKey, Index, Integer, String

from mailroom.infrastructure.database import Base
from mailroom.utils import now_in_app_naive_datetime


class ConversationModel(Base):
    """Database representation of a conversation thread."""

    __tablename__ = "conversation"

    id = Column(Integer, primary_key=True, index=True)
    subject = Column(String(255), nullable=False, default="")
    created_at = Column(
        DateTime(), nullable=False, default=now_in_app_naive_datetime, index=True
    )
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
        index=True,
    )


class ConversationOptOutModel(Base):
    """Participant that unsubscribed from a conversation."""

    __tablename__ = "conversation_opt_out"
    __table_args__ = (
        Index("ix_conversation_opt_out_unsubscriber", "unsubscriber_type", "unsubscriber_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    unsubscriber_type = Column(String(100), nullable=False)
    unsubscriber_id = Column(Integer, nullable=False)
    created_at = Column(DateTime(), nullable=False, default=now_in_app_naive_datetime)
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["ConversationModel", "ConversationOptOutModel"]
