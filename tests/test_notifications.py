"""Tests for participant state, expiry and lookups of notifications."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import timedelta

from mailroom.domain.entities import Notification, ObjectRef, participant_ref
from mailroom.infrastructure.models import ReceiptModel
from mailroom.utils import now_in_app_timezone


@dataclass
class Invoice:
    id: int


def test_participant_state(delivery, notifications, alice, bob):
    notification = delivery.notify_all([alice, bob], "Invoice ready", "See attached").notification

    assert notifications.receipt_for(notification, alice).receiver == participant_ref(alice)
    assert notifications.is_unread(notification, alice)

    assert notifications.mark_as_read(notification, alice) == 1
    assert notifications.is_read(notification, alice)
    assert notifications.is_unread(notification, bob)

    notifications.move_to_trash(notification, alice)
    assert notifications.is_trashed(notification, alice)
    notifications.untrash(notification, alice)
    assert not notifications.is_trashed(notification, alice)

    notifications.mark_as_deleted(notification, bob)
    assert notifications.is_deleted(notification, bob)

    notifications.mark_as_unread(notification, alice)
    assert notifications.is_unread(notification, alice)


def test_missing_participant_is_a_no_op(delivery, notifications, alice, carol):
    notification = delivery.notify_all([alice], "Subject", "Body").notification

    assert notifications.receipt_for(notification, None) is None
    assert notifications.mark_as_read(notification, None) is None
    assert notifications.is_read(notification, None) is False
    assert notifications.is_unread(notification, carol) is False


def test_recipients_come_from_receipts_once_delivered(delivery, notifications, alice, duck):
    notification = delivery.notify_all([alice, duck], "Subject", "Body").notification

    stored = notifications.get(notification.id)

    assert notifications.recipients(stored) == [participant_ref(alice), participant_ref(duck)]


def test_expire_is_idempotent(delivery, notifications, alice):
    later = now_in_app_timezone() + timedelta(hours=1)
    notification = delivery.notify_all([alice], "Sale", "Ends soon", expires=later).notification
    assert not notification.is_expired()

    expired = notifications.expire(notification)
    first_expiry = expired.expires

    assert expired.is_expired()
    assert notifications.get(notification.id).is_expired()
    again = notifications.expire(notifications.get(notification.id))
    assert again.expires == first_expiry


def test_expire_moves_expiry_just_behind_the_clock():
    reference = now_in_app_timezone()
    notification = Notification(id=None, subject="Subject", body="Body")

    assert notification.expire(reference_time=reference) is True
    assert notification.expires == reference - timedelta(seconds=1)
    assert notification.is_expired(reference_time=reference)
    assert notification.expire(reference_time=reference) is False


def test_expired_and_unexpired_queries(delivery, notifications, alice):
    now = now_in_app_timezone()
    past = delivery.notify_all(
        [alice], "Old", "Body", expires=now - timedelta(minutes=5)
    ).notification
    future = delivery.notify_all(
        [alice], "New", "Body", expires=now + timedelta(minutes=5)
    ).notification
    forever = delivery.notify_all([alice], "Always", "Body").notification

    assert [n.id for n in notifications.expired(reference_time=now)] == [past.id]
    assert {n.id for n in notifications.unexpired(reference_time=now)} == {future.id, forever.id}


def test_lookup_scopes(delivery, notifications, alice, bob):
    invoice = Invoice(id=7)
    about_invoice = delivery.notify_all(
        [alice], "Invoice", "Paid", notified_object=invoice, notification_code="invoice.paid"
    ).notification
    broadcast = delivery.notify_all([bob], "Maintenance", "Tonight", global_=True).notification

    assert [n.id for n in notifications.for_recipient(alice)] == [about_invoice.id]
    assert about_invoice.notified_object == ObjectRef(type="Invoice", id=7)
    assert [n.id for n in notifications.with_object(invoice)] == [about_invoice.id]
    assert [n.id for n in notifications.global_notifications()] == [broadcast.id]
    assert [n.id for n in notifications.unread(bob)] == [broadcast.id]

    notifications.mark_as_read(broadcast, bob)
    assert notifications.unread(bob) == []
    notifications.move_to_trash(broadcast, bob)
    assert notifications.not_trashed(bob) == []
    assert notifications.for_recipient(None) == []


def test_delete_removes_receipts(delivery, notifications, session, alice, bob):
    notification = delivery.notify_all([alice, bob], "Subject", "Body").notification

    assert notifications.delete(notification) is True
    assert notifications.get(notification.id) is None
    assert session.query(ReceiptModel).count() == 0
    assert notifications.delete(notification.id) is False
