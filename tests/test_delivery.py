"""Tests for notification and message fan-out."""

from __future__ import annotations

import logging
from datetime import timedelta

from mailroom.application.services import DeliveryService, successful_delivery
from mailroom.application.validators import BLANK
from mailroom.config import Settings
from mailroom.domain.entities import (
    MAILBOX_INBOX,
    MAILBOX_SENTBOX,
    Message,
    Notification,
    participant_ref,
)
from mailroom.infrastructure.models import ConversationModel, NotificationModel, ReceiptModel
from mailroom.infrastructure.notifications import MailDispatcher
from mailroom.infrastructure.repositories import ReceiptFilter, ReceiptRepository
from mailroom.utils import now_in_app_timezone


class ExplodingDispatcher:
    def deliver(self, notification, recipients):
        raise RuntimeError("smtp unavailable")


def _receipts_of(session, participant, **criteria):
    return ReceiptRepository(session).list_matching(
        ReceiptFilter(receiver=participant_ref(participant), **criteria)
    )


def test_notify_all_creates_one_unread_receipt_per_recipient(delivery, dispatcher, alice, bob, duck):
    result = delivery.notify_all([alice, bob, duck], "Subject", "Body")

    assert result.successful
    assert len(result.receipts) == 3
    assert {receipt.receiver for receipt in result.receipts} == {
        participant_ref(alice),
        participant_ref(bob),
        participant_ref(duck),
    }
    assert all(receipt.is_read is False for receipt in result.receipts)
    assert all(receipt.mailbox_type is None for receipt in result.receipts)
    assert all(receipt.notification_id == result.notification.id for receipt in result.receipts)
    assert result.notification.recipients == []
    assert len(dispatcher.calls) == 1
    notification, recipients = dispatcher.calls[0]
    assert notification.id == result.notification.id
    assert recipients == [alice, bob, duck]


def test_notify_all_rejects_blank_subject_without_storing_anything(
    delivery, dispatcher, session, alice, bob
):
    result = delivery.notify_all([alice, bob], "   ", "Body")

    assert not result.successful
    assert result.errors["subject"] == [BLANK]
    assert result.receipts == []
    assert session.query(NotificationModel).count() == 0
    assert session.query(ReceiptModel).count() == 0
    assert dispatcher.calls == []


def test_notify_all_rejects_oversized_body(session, dispatcher, alice):
    settings = Settings(_env_file=None, email_dispatch_enabled=False, body_max_length=10)
    service = DeliveryService(session, dispatcher=dispatcher, settings=settings)

    result = service.notify_all([alice], "Subject", "x" * 11)

    assert result.errors["body"] == ["is too long (maximum is 10 characters)"]
    assert session.query(ReceiptModel).count() == 0


def test_delivery_is_all_or_nothing_when_a_receiver_is_missing(delivery, session, alice, nobody):
    result = delivery.notify_all([alice, nobody], "Subject", "Body")

    assert result.errors["receiver"] == [BLANK]
    assert session.query(ReceiptModel).count() == 0


def test_notify_all_sanitizes_subject_and_body(delivery, alice):
    result = delivery.notify_all(
        [alice], "<b>Hello</b>", "<script>alert(1)</script><p>World &amp; co</p>"
    )

    assert result.notification.subject == "Hello"
    assert result.notification.body == "World & co"


def test_notify_all_can_keep_markup(delivery, alice):
    result = delivery.notify_all([alice], "<b>Hello</b>", "<p>World</p>", sanitize_text=False)

    assert result.notification.subject == "<b>Hello</b>"
    assert result.notification.body == "<p>World</p>"


def test_notification_without_recipients_is_stored_and_not_dispatched(
    delivery, dispatcher, session
):
    result = delivery.notify_all([], "Announcement", "Body", global_=True)

    assert result.successful
    assert result.receipts == []
    assert result.notification.id is not None
    assert session.query(NotificationModel).count() == 1
    assert dispatcher.calls == []


def test_send_mail_false_skips_dispatch(delivery, dispatcher, alice):
    result = delivery.notify_all([alice], "Subject", "Body", send_mail=False)

    assert result.successful
    assert dispatcher.calls == []


def test_dispatcher_failure_keeps_receipts(session, settings, alice, caplog):
    service = DeliveryService(session, dispatcher=ExplodingDispatcher(), settings=settings)

    with caplog.at_level(logging.ERROR):
        result = service.notify_all([alice], "Subject", "Body")

    assert result.successful
    assert session.query(ReceiptModel).count() == 1
    assert "Dispatcher failed" in caplog.text


def test_send_message_creates_conversation_and_sender_copy(delivery, dispatcher, session, alice, bob):
    delivered = []
    delivery.on_deliver = delivered.append

    result = delivery.send_message(alice, [bob], "Lunch", "Shall we?")

    assert result.successful
    assert result.conversation.id is not None
    assert result.conversation.subject == "Lunch"
    assert isinstance(result.notification, Message)
    assert result.notification.conversation_id == result.conversation.id
    assert len(result.receipts) == 2

    inbox = _receipts_of(session, bob)
    assert len(inbox) == 1
    assert inbox[0].mailbox_type == MAILBOX_INBOX
    assert inbox[0].is_read is False
    assert inbox[0].conversation_id == result.conversation.id

    assert result.sender_receipt.receiver == participant_ref(alice)
    assert result.sender_receipt.mailbox_type == MAILBOX_SENTBOX
    assert result.sender_receipt.is_read is True

    assert dispatcher.calls[0][1] == [bob]
    assert delivered == [result.notification]


def test_send_message_reports_missing_subject_once(delivery, session, alice, bob):
    result = delivery.send_message(alice, [bob], "", "Body")

    assert not result.successful
    assert result.errors["subject"] == [BLANK]
    assert not any(key.endswith("conversation.subject") for key in result.errors)
    assert session.query(ConversationModel).count() == 0
    assert session.query(ReceiptModel).count() == 0


def test_reply_to_conversation_targets_last_message_recipients(
    delivery, conversations, dispatcher, session, alice, bob
):
    first = delivery.send_message(alice, [bob], "Lunch", "Shall we?")
    conversation = first.conversation

    reply = delivery.reply_to_conversation(bob, conversation, "Sure")

    assert reply.successful
    assert conversations.count_messages(conversation) == 2
    alice_copies = _receipts_of(session, alice, notification_id=reply.notification.id)
    assert [receipt.mailbox_type for receipt in alice_copies] == [MAILBOX_INBOX]
    assert reply.sender_receipt.receiver == participant_ref(bob)
    assert dispatcher.calls[-1][1] == [alice]
    assert reply.notification.subject == "Lunch"
    assert reply.conversation.updated_at >= first.conversation.created_at
    assert conversations.last_sender(conversation) == participant_ref(bob)


def test_reply_to_conversation_restores_trashed_copies(delivery, conversations, alice, bob):
    conversation = delivery.send_message(alice, [bob], "Lunch", "Shall we?").conversation
    conversations.move_to_trash(conversation, bob)
    assert conversations.is_trashed(conversation, bob)

    delivery.reply_to_conversation(bob, conversation, "Sure")

    assert not conversations.is_trashed(conversation, bob)


def test_reply_to_conversation_can_leave_trash_alone(delivery, conversations, alice, bob):
    conversation = delivery.send_message(alice, [bob], "Lunch", "Shall we?").conversation
    conversations.move_to_trash(conversation, bob)

    delivery.reply_to_conversation(bob, conversation, "Sure", should_untrash=False)

    assert conversations.is_trashed(conversation, bob)


def test_reply_to_sender_only_reaches_the_author(delivery, session, alice, bob, carol):
    first = delivery.send_message(alice, [bob, carol], "Plans", "Weekend?")
    carol_receipt = next(
        receipt for receipt in first.receipts if receipt.receiver == participant_ref(carol)
    )

    reply = delivery.reply_to_sender(carol, carol_receipt, "Count me in")

    receivers = {receipt.receiver for receipt in reply.receipts}
    assert receivers == {participant_ref(alice), participant_ref(carol)}
    assert _receipts_of(session, bob, notification_id=reply.notification.id) == []


def test_reply_to_all_reaches_every_other_participant(delivery, alice, bob, carol):
    first = delivery.send_message(alice, [bob, carol], "Plans", "Weekend?")
    carol_receipt = next(
        receipt for receipt in first.receipts if receipt.receiver == participant_ref(carol)
    )

    reply = delivery.reply_to_all(carol, carol_receipt, "Count me in")

    inbox_receivers = {
        receipt.receiver for receipt in reply.receipts if receipt.mailbox_type == MAILBOX_INBOX
    }
    assert inbox_receivers == {participant_ref(alice), participant_ref(bob)}
    assert reply.sender_receipt.receiver == participant_ref(carol)


def test_reply_skips_participants_who_opted_out(
    delivery, conversations, dispatcher, session, alice, bob, carol
):
    conversation = delivery.send_message(alice, [bob, carol], "Plans", "Weekend?").conversation
    assert conversations.opt_out(conversation, bob) is not None

    reply = delivery.reply_to_conversation(alice, conversation, "Anyone?")

    assert _receipts_of(session, bob, notification_id=reply.notification.id) == []
    assert len(_receipts_of(session, carol, notification_id=reply.notification.id)) == 1
    assert dispatcher.calls[-1][1] == [bob, carol]


def test_successful_delivery_helper(delivery, alice):
    result = delivery.notify_all([alice], "Subject", "Body")
    failed = delivery.notify_all([alice], "", "Body")

    assert successful_delivery(result)
    assert successful_delivery(result.receipts)
    assert successful_delivery(result.receipts[0])
    assert not successful_delivery(failed)
    assert not successful_delivery(None)


def test_default_dispatcher_follows_settings(session):
    enabled = DeliveryService(session, settings=Settings(_env_file=None))
    disabled = DeliveryService(
        session, settings=Settings(_env_file=None, email_dispatch_enabled=False)
    )

    assert isinstance(enabled.dispatcher, MailDispatcher)
    assert disabled.dispatcher is None


def test_expired_notification_is_still_delivered(delivery, notifications, alice):
    expires = now_in_app_timezone() - timedelta(days=1)

    result = delivery.notify_all([alice], "Old news", "Body", expires=expires)

    assert result.successful
    assert result.notification.is_expired()
    assert len(result.receipts) == 1
    assert notifications.is_unread(result.notification, alice)


def test_repeated_recipients_get_a_single_receipt(delivery, dispatcher, session, alice, bob):
    notified = delivery.notify_all([bob, alice, bob], "Subject", "Body")
    sent = delivery.send_message(alice, [bob, bob], "Lunch", "Shall we?")

    assert len(notified.receipts) == 2
    assert len(_receipts_of(session, bob, notification_id=notified.notification.id)) == 1
    assert len(_receipts_of(session, bob, notification_id=sent.notification.id)) == 1
    assert len(sent.receipts) == 2
    assert [recipients for _, recipients in dispatcher.calls] == [[bob, alice], [bob]]


def test_caller_built_notification_is_deduplicated(delivery, session, bob):
    notification = Notification(id=None, subject="Subject", body="Body", recipients=[bob, bob])

    result = delivery.deliver_notification(notification)

    assert len(result.receipts) == 1
    assert session.query(ReceiptModel).count() == 1


def test_reply_with_a_missing_receiver_stores_nothing(
    delivery, dispatcher, session, alice, bob, nobody
):
    conversation = delivery.send_message(alice, [bob], "Lunch", "Shall we?").conversation
    stored = session.query(ReceiptModel).count()
    calls = len(dispatcher.calls)

    reply = delivery.reply(alice, conversation, [bob, nobody], "Again")

    assert not reply.successful
    assert reply.errors["receiver"] == [BLANK]
    assert session.query(ReceiptModel).count() == stored
    assert session.query(NotificationModel).count() == 1
    assert len(dispatcher.calls) == calls
