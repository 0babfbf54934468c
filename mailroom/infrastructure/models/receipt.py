"""SQLAlchemy model for per-participant delivery receipts."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.sql import expression

from mailroom.infrastructure.database import Base
from mailroom.utils import now_in_app_naive_datetime


class ReceiptModel(Base):
    """Mailbox state of one notification for one receiver."""

    __tablename__ = "receipt"
    __table_args__ = (
        Index("ix_receipt_receiver", "receiver_type", "receiver_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    notification_id = Column(
        Integer,
        ForeignKey("notification.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    conversation_id = Column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    receiver_type = Column(String(100), nullable=False)
    receiver_id = Column(Integer, nullable=False)
    mailbox_type = Column(String(25), nullable=True)
    is_read = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    trashed = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    deleted = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    created_at = Column(
        DateTime(), nullable=False, default=now_in_app_naive_datetime, index=True
    )
    updated_at = Column(
        DateTime(),
        nullable=False,
        default=now_in_app_naive_datetime,
        onupdate=now_in_app_naive_datetime,
    )


__all__ = ["ReceiptModel"]
