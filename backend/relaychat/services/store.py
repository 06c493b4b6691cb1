"""Embedded message store backed by a relational table."""

from __future__ import annotations

import logging

from sqlalchemy import delete, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from relaychat.db.session import build_engine, build_session_factory
from relaychat.models.base import Base
from relaychat.models.message import Message
from relaychat.schemas.message import MessageRead

logger = logging.getLogger(__name__)


class StorageInitError(RuntimeError):
    """Raised when the storage engine or schema cannot be provisioned."""


def upsert_message(db: Session, message: MessageRead) -> Message:
    """Insert or replace one message row by id."""

    row = db.merge(
        Message(
            id=message.id,
            author_id=message.author_id,
            author_name=message.author_name,
            author_avatar_url=message.author_avatar_url,
            text=message.text,
            created_at=message.created_at,
        )
    )
    db.commit()
    return row


def list_messages(db: Session) -> list[Message]:
    """Return all messages ordered by creation time, ties broken by id."""

    stmt = select(Message).order_by(Message.created_at.asc(), Message.id.asc())
    return list(db.scalars(stmt).all())


def delete_all_messages(db: Session) -> int:
    result = db.execute(delete(Message))
    db.commit()
    return result.rowcount or 0


class MessageStore:
    """Owned handle over the message table with an explicit lifecycle."""

    def __init__(self, database_url: str) -> None:
        self.database_url = database_url
        self._engine: Engine | None = None
        self._session_factory: sessionmaker | None = None

    @property
    def ready(self) -> bool:
        return self._session_factory is not None

    def initialize(self) -> None:
        """Create the engine and schema; calling again is a no-op."""

        if self.ready:
            return
        engine = None
        try:
            engine = build_engine(self.database_url)
            Base.metadata.create_all(engine)
        except (SQLAlchemyError, ValueError) as exc:
            if engine is not None:
                engine.dispose()
            raise StorageInitError(f"Message store could not be provisioned: {exc}") from exc
        self._engine = engine
        self._session_factory = build_session_factory(engine)
        logger.info("store.initialized url=%s", engine.url.render_as_string(hide_password=True))

    def dispose(self) -> None:
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        self._session_factory = None

    def upsert(self, message: MessageRead) -> MessageRead:
        with self._session() as db:
            row = upsert_message(db, message)
            return MessageRead.model_validate(row)

    def list(self) -> list[MessageRead]:
        with self._session() as db:
            return [MessageRead.model_validate(row) for row in list_messages(db)]

    def clear(self) -> int:
        with self._session() as db:
            removed = delete_all_messages(db)
        logger.info("store.cleared rows=%d", removed)
        return removed

    def _session(self) -> Session:
        if self._session_factory is None:
            raise StorageInitError("Message store used before initialize() completed.")
        return self._session_factory()
