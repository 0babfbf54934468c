"""Persistence helpers for delivery receipts."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from sqlalchemy.orm import Query, Session

from mailroom.domain.entities import (
    MAILBOX_INBOX,
    MAILBOX_SENTBOX,
    MAILBOX_TYPES,
    ParticipantRef,
    Receipt,
)
from mailroom.infrastructure.models import ReceiptModel
from mailroom.utils import (
    ensure_app_naive_datetime,
    ensure_app_timezone,
    now_in_app_timezone,
)

_UPDATABLE_FIELDS = frozenset({"is_read", "trashed", "deleted", "mailbox_type"})


@dataclass(frozen=True)
class ReceiptFilter:
    """Criteria selecting a set of receipts.

    ``None`` means "do not filter on this column". The view helpers return a
    narrowed copy so scopes can be chained, e.g.
    ``ReceiptFilter(receiver=ref, conversation_id=7).inbox()``.
    """

    receiver: ParticipantRef | None = None
    notification_id: int | None = None
    conversation_id: int | None = None
    mailbox_type: str | None = None
    is_read: bool | None = None
    trashed: bool | None = None
    deleted: bool | None = None

    def inbox(self) -> "ReceiptFilter":
        return replace(self, mailbox_type=MAILBOX_INBOX, trashed=False, deleted=False)

    def sentbox(self) -> "ReceiptFilter":
        return replace(self, mailbox_type=MAILBOX_SENTBOX, trashed=False, deleted=False)

    def trash(self) -> "ReceiptFilter":
        return replace(self, trashed=True, deleted=False)

    def not_trash(self) -> "ReceiptFilter":
        return replace(self, trashed=False)

    def unread(self) -> "ReceiptFilter":
        return replace(self, is_read=False)

    def read(self) -> "ReceiptFilter":
        return replace(self, is_read=True)

    def deleted_only(self) -> "ReceiptFilter":
        return replace(self, deleted=True)

    def not_deleted(self) -> "ReceiptFilter":
        return replace(self, deleted=False)


class ReceiptRepository:
    """Provide CRUD and bulk state operations for :class:`Receipt` objects."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def get(self, receipt_id: int) -> Receipt | None:
        model = self.session.get(ReceiptModel, receipt_id)
        return self._to_entity(model) if model else None

    def list_matching(
        self, criteria: ReceiptFilter, *, newest_first: bool = True
    ) -> Sequence[Receipt]:
        query = self._query(criteria)
        if newest_first:
            query = query.order_by(ReceiptModel.created_at.desc(), ReceiptModel.id.desc())
        else:
            query = query.order_by(ReceiptModel.created_at.asc(), ReceiptModel.id.asc())
        return [self._to_entity(model) for model in query.all()]

    def first(self, criteria: ReceiptFilter) -> Receipt | None:
        model = self._query(criteria).order_by(ReceiptModel.id.asc()).first()
        return self._to_entity(model) if model else None

    def count(self, criteria: ReceiptFilter) -> int:
        return int(self._query(criteria).count())

    def exists(self, criteria: ReceiptFilter) -> bool:
        return self._query(criteria).first() is not None

    def conversation_ids(self, criteria: ReceiptFilter) -> list[int]:
        rows = (
            self._query(criteria)
            .filter(ReceiptModel.conversation_id.isnot(None))
            .with_entities(ReceiptModel.conversation_id)
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def notification_ids(self, criteria: ReceiptFilter) -> list[int]:
        rows = (
            self._query(criteria)
            .with_entities(ReceiptModel.notification_id)
            .distinct()
            .all()
        )
        return [row[0] for row in rows]

    def receivers(self, criteria: ReceiptFilter) -> list[ParticipantRef]:
        rows = (
            self._query(criteria)
            .order_by(ReceiptModel.id.asc())
            .with_entities(ReceiptModel.receiver_type, ReceiptModel.receiver_id)
            .all()
        )
        receivers: list[ParticipantRef] = []
        for receiver_type, receiver_id in rows:
            ref = ParticipantRef(type=receiver_type, id=receiver_id)
            if ref not in receivers:
                receivers.append(ref)
        return receivers

    def create(self, receipt: Receipt, *, commit: bool = True) -> Receipt:
        model = ReceiptModel()
        self._apply_entity_to_model(model, receipt, include_creation_fields=True)
        self.session.add(model)
        if commit:
            self.session.commit()
            self.session.refresh(model)
        else:
            self.session.flush()
        return self._to_entity(model)

    def add_all(self, receipts: Iterable[Receipt], *, commit: bool = True) -> list[Receipt]:
        """Persist ``receipts`` within a single transaction."""

        models: list[ReceiptModel] = []
        for receipt in receipts:
            model = ReceiptModel()
            self._apply_entity_to_model(model, receipt, include_creation_fields=True)
            models.append(model)
        self.session.add_all(models)
        if commit:
            self.session.commit()
            for model in models:
                self.session.refresh(model)
        else:
            self.session.flush()
        return [self._to_entity(model) for model in models]

    def update_fields(self, receipt_id: int, **fields: Any) -> Receipt:
        """Apply ``fields`` to a single receipt and persist immediately."""

        self._check_updates(fields)
        model = self.session.get(ReceiptModel, receipt_id)
        if model is None:
            msg = f"Receipt with id {receipt_id} not found"
            raise ValueError(msg)
        for name, value in fields.items():
            setattr(model, name, value)
        self.session.add(model)
        self.session.commit()
        self.session.refresh(model)
        return self._to_entity(model)

    def update_receipts(
        self, updates: Mapping[str, Any], criteria: ReceiptFilter
    ) -> int:
        """Apply ``updates`` to every receipt matching ``criteria``.

        The matching ids are resolved first so the multi-row update can only
        reach the filtered set. Returns the number of receipts updated.
        """

        self._check_updates(updates)
        ids = [row[0] for row in self._query(criteria).with_entities(ReceiptModel.id).all()]
        if not ids:
            return 0
        values = {getattr(ReceiptModel, name): value for name, value in updates.items()}
        values[ReceiptModel.updated_at] = ensure_app_naive_datetime(now_in_app_timezone())
        self.session.query(ReceiptModel).filter(ReceiptModel.id.in_(ids)).update(
            values, synchronize_session=False
        )
        self.session.commit()
        return len(ids)

    def _query(self, criteria: ReceiptFilter) -> Query:
        query = self.session.query(ReceiptModel)
        if criteria.receiver is not None:
            query = query.filter(
                ReceiptModel.receiver_type == criteria.receiver.type,
                ReceiptModel.receiver_id == criteria.receiver.id,
            )
        if criteria.notification_id is not None:
            query = query.filter(ReceiptModel.notification_id == criteria.notification_id)
        if criteria.conversation_id is not None:
            query = query.filter(ReceiptModel.conversation_id == criteria.conversation_id)
        if criteria.mailbox_type is not None:
            query = query.filter(ReceiptModel.mailbox_type == criteria.mailbox_type)
        if criteria.is_read is not None:
            query = query.filter(ReceiptModel.is_read == criteria.is_read)
        if criteria.trashed is not None:
            query = query.filter(ReceiptModel.trashed == criteria.trashed)
        if criteria.deleted is not None:
            query = query.filter(ReceiptModel.deleted == criteria.deleted)
        return query

    @staticmethod
    def _check_updates(updates: Mapping[str, Any]) -> None:
        unknown = set(updates) - _UPDATABLE_FIELDS
        if unknown:
            msg = f"Unsupported receipt fields: {', '.join(sorted(unknown))}"
            raise ValueError(msg)
        mailbox_type = updates.get("mailbox_type")
        if mailbox_type is not None and mailbox_type not in MAILBOX_TYPES:
            msg = f"Unknown mailbox type '{mailbox_type}'"
            raise ValueError(msg)

    @staticmethod
    def _apply_entity_to_model(
        model: ReceiptModel,
        receipt: Receipt,
        *,
        include_creation_fields: bool,
    ) -> None:
        if include_creation_fields:
            model.created_at = (
                ensure_app_naive_datetime(receipt.created_at)
                or ensure_app_naive_datetime(now_in_app_timezone())
            )
            model.updated_at = (
                ensure_app_naive_datetime(receipt.updated_at) or model.created_at
            )
        model.notification_id = receipt.notification_id
        model.conversation_id = receipt.conversation_id
        model.receiver_type = receipt.receiver.type if receipt.receiver else None
        model.receiver_id = receipt.receiver.id if receipt.receiver else None
        model.mailbox_type = receipt.mailbox_type
        model.is_read = bool(receipt.is_read)
        model.trashed = bool(receipt.trashed)
        model.deleted = bool(receipt.deleted)

    @staticmethod
    def _to_entity(model: ReceiptModel) -> Receipt:
        return Receipt(
            id=model.id,
            notification_id=model.notification_id,
            receiver=ParticipantRef(type=model.receiver_type, id=model.receiver_id),
            conversation_id=model.conversation_id,
            mailbox_type=model.mailbox_type,
            is_read=bool(model.is_read),
            trashed=bool(model.trashed),
            deleted=bool(model.deleted),
            created_at=ensure_app_timezone(model.created_at),
            updated_at=ensure_app_timezone(model.updated_at),
        )


__all__ = ["ReceiptFilter", "ReceiptRepository"]
