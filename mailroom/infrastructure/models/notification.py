"""SQLAlchemy models for notifications and conversation messages."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.sql import expression

from mailroom.domain.entities import MESSAGE_KIND, NOTIFICATION_KIND
from mailroom.infrastructure.database import Base
from mailroom.utils import now_in_app_naive_datetime


class NotificationModel(Base):
    """Database representation shared by notifications and messages."""

    __tablename__ = "notification"

    id = Column(Integer, primary_key=True, index=True)
    type = Column(String(20), nullable=False, default=NOTIFICATION_KIND)
    subject = Column(String(255), nullable=False, default="")
    body = Column(Text, nullable=False, default="")
    draft = Column(
        Boolean, nullable=False, default=False, server_default=expression.false()
    )
    global_ = Column(
        "global",
        Boolean,
        nullable=False,
        default=False,
        server_default=expression.false(),
    )
    notification_code = Column(String(100), nullable=True)
    expires = Column(DateTime(), nullable=True)
    sender_type = Column(String(100), nullable=True)
    sender_id = Column(Integer, nullable=True)
    notified_object_type = Column(String(100), nullable=True)
    notified_object_id = Column(Integer, nullable=True)
    conversation_id = Column(
        Integer,
        ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
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

    __mapper_args__ = {
        "polymorphic_on": type,
        "polymorphic_identity": NOTIFICATION_KIND,
    }


class MessageModel(NotificationModel):
    """Notification rows that belong to a conversation."""

    __mapper_args__ = {"polymorphic_identity": MESSAGE_KIND}


__all__ = ["MessageModel", "NotificationModel"]
