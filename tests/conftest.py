"""Shared fixtures: an in-memory database and a few participant types."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from mailroom.application.services import (
    ConversationService,
    DeliveryService,
    NotificationService,
    ReceiptService,
)
from mailroom.config import Settings
from mailroom.domain.entities import Message, ParticipantRef, participant_ref
from mailroom.infrastructure.database import initialize_database


@dataclass
class User:
    """Participant that can always be emailed."""

    id: int
    name: str

    def mailbox_email(self, notification: Any) -> str | None:
        return f"{self.name}@example.com"


@dataclass
class Duck:
    """Participant that only wants emails for plain notifications."""

    id: int
    name: str

    def mailbox_email(self, notification: Any) -> str | None:
        if isinstance(notification, Message):
            return None
        return f"{self.name}@ducks.example.com"


@dataclass
class Cylon:
    """Participant without any email address."""

    id: int
    name: str

    def mailbox_email(self, notification: Any) -> str | None:
        return None


@dataclass
class RecordingDispatcher:
    """Dispatcher double keeping every call it receives."""

    calls: list[tuple[Any, list[Any]]] = field(default_factory=list)

    def deliver(self, notification: Any, recipients: Any) -> None:
        self.calls.append((notification, list(recipients)))


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, email_dispatch_enabled=False)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    initialize_database(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(engine):
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    db = factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def alice() -> User:
    return User(id=1, name="alice")


@pytest.fixture
def bob() -> User:
    return User(id=2, name="bob")


@pytest.fixture
def carol() -> User:
    return User(id=3, name="carol")


@pytest.fixture
def nobody() -> User:
    """A participant that was never saved."""

    return User(id=None, name="nobody")


@pytest.fixture
def duck() -> Duck:
    return Duck(id=1, name="donald")


@pytest.fixture
def cylon() -> Cylon:
    return Cylon(id=1, name="six")


@pytest.fixture
def directory(alice, bob, carol, duck, cylon) -> dict[ParticipantRef, Any]:
    return {
        participant_ref(participant): participant
        for participant in (alice, bob, carol, duck, cylon)
    }


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def delivery(session, settings, dispatcher, directory) -> DeliveryService:
    return DeliveryService(
        session,
        dispatcher=dispatcher,
        settings=settings,
        resolve_participant=directory.get,
    )


@pytest.fixture
def conversations(session, settings) -> ConversationService:
    return ConversationService(session, settings=settings)


@pytest.fixture
def notifications(session) -> NotificationService:
    return NotificationService(session)


@pytest.fixture
def receipts(session) -> ReceiptService:
    return ReceiptService(session)
