"""Durable key-value slot that mirrors the message store between sessions."""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from pydantic import ValidationError

from relaychat.config import get_settings
from relaychat.schemas.message import MessageList, MessageRead

logger = logging.getLogger(__name__)

_SLOT_NAME_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class PersistenceReadError(RuntimeError):
    """Raised when a durable slot exists but cannot be read or decoded."""


class PersistenceWriteError(RuntimeError):
    """Raised when a durable slot cannot be written."""


class SlotStorage(Protocol):
    """Protocol for named string slots."""

    def get(self, key: str) -> str | None:
        """Return the stored value, or None when the slot is missing."""

    def set(self, key: str, value: str) -> None:
        """Overwrite the slot with value."""


@dataclass(slots=True)
class MemorySlotStorage:
    """Process-local slots, used for tests and in-memory-only sessions."""

    values: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


@dataclass(slots=True)
class FileSlotStorage:
    """One JSON file per slot inside a directory."""

    directory: Path

    def get(self, key: str) -> str | None:
        path = self._path_for(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except (OSError, UnicodeDecodeError) as exc:
            raise PersistenceReadError(f"Slot {key!r} could not be read: {exc}") from exc

    def set(self, key: str, value: str) -> None:
        path = self._path_for(key)
        tmp_path = path.with_suffix(".tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(value, encoding="utf-8")
            os.replace(tmp_path, path)
        except OSError as exc:
            raise PersistenceWriteError(f"Slot {key!r} could not be written: {exc}") from exc

    def _path_for(self, key: str) -> Path:
        if not _SLOT_NAME_RE.match(key):
            raise ValueError(f"Invalid slot name: {key!r}")
        return Path(self.directory) / f"{key}.json"


class PersistenceBridge:
    """Serialize the full ordered message list into one named slot."""

    def __init__(self, storage: SlotStorage, slot: str = "chatData") -> None:
        self.storage = storage
        self.slot = slot
        self.degraded = False

    def load(self) -> list[MessageRead]:
        """Return stored messages, treating a missing or corrupt slot as empty."""

        try:
            raw = self.storage.get(self.slot)
        except PersistenceReadError as exc:
            logger.warning("persistence.read_failed slot=%s error=%s", self.slot, exc)
            return []
        if raw is None:
            return []
        try:
            return MessageList.validate_json(raw)
        except ValidationError as exc:
            logger.warning(
                "persistence.slot_corrupt slot=%s errors=%d; starting with empty history",
                self.slot,
                exc.error_count(),
            )
            return []
        except (ValueError, OverflowError) as exc:
            logger.warning("persistence.slot_corrupt slot=%s error=%s; starting with empty history", self.slot, exc)
            return []

    def save(self, messages: list[MessageRead]) -> bool:
        """Overwrite the slot with messages; returns False once degraded."""

        if self.degraded:
            return False
        payload = MessageList.dump_json(messages).decode("utf-8")
        try:
            self.storage.set(self.slot, payload)
        except PersistenceWriteError as exc:
            self.degraded = True
            logger.warning(
                "persistence.write_failed slot=%s error=%s; continuing in memory only",
                self.slot,
                exc,
            )
            return False
        return True


def get_default_persistence() -> PersistenceBridge:
    settings = get_settings()
    return PersistenceBridge(FileSlotStorage(Path(settings.storage_dir)), slot=settings.storage_slot)
