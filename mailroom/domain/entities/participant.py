"""Polymorphic references to the entities taking part in messaging."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True)
class ParticipantRef:
    """Stable ``(type, id)`` identity of a sender, receiver or unsubscriber."""

    type: str
    id: int

    def __str__(self) -> str:
        return f"{self.type}#{self.id}"


@dataclass(frozen=True)
class ObjectRef:
    """Reference to an arbitrary object a notification talks about."""

    type: str
    id: int


@runtime_checkable
class Messageable(Protocol):
    """Capability implemented by any entity that can send or receive mail.

    ``mailbox_email`` is only consulted by dispatchers; returning ``None``
    skips out-of-band delivery for that participant while the receipt is
    still created.
    """

    id: Any

    def mailbox_email(self, notification: Any) -> str | None:
        ...


def _type_tag(entity: Any) -> str:
    return getattr(entity, "participant_type", None) or type(entity).__name__


def _integer_id(entity: Any, entity_id: Any) -> int:
    if isinstance(entity_id, int) and not isinstance(entity_id, bool):
        return entity_id
    if isinstance(entity_id, str) and entity_id.strip().isdigit():
        return int(entity_id)
    msg = f"{_type_tag(entity)} id {entity_id!r} is not an integer"
    raise ValueError(msg)


def participant_ref(entity: Any) -> ParticipantRef | None:
    """Return the :class:`ParticipantRef` for ``entity`` (``None`` passes through).

    Ids are stored in integer columns, so ``entity.id`` must be an integer or
    a string of digits.
    """

    if entity is None or isinstance(entity, ParticipantRef):
        return entity
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        return None
    return ParticipantRef(type=_type_tag(entity), id=_integer_id(entity, entity_id))


def object_ref(entity: Any) -> ObjectRef | None:
    """Return an :class:`ObjectRef` for ``entity`` or ``None``."""

    if entity is None or isinstance(entity, ObjectRef):
        return entity
    if isinstance(entity, ParticipantRef):
        return ObjectRef(type=entity.type, id=entity.id)
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        return None
    return ObjectRef(type=_type_tag(entity), id=_integer_id(entity, entity_id))


__all__ = [
    "Messageable",
    "ObjectRef",
    "ParticipantRef",
    "object_ref",
    "participant_ref",
]
