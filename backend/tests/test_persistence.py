"""Tests for the durable slot bridge."""

from __future__ import annotations

import json
import tempfile
import unittest
from datetime import datetime, timezone
from pathlib import Path

from relaychat.schemas.message import MessageList, MessageRead
from relaychat.services.persistence import (
    FileSlotStorage,
    MemorySlotStorage,
    PersistenceBridge,
    PersistenceReadError,
    PersistenceWriteError,
)
from relaychat.services.store import MessageStore


def _messages() -> list[MessageRead]:
    return [
        MessageRead(
            id="m-1",
            text="first",
            author_id="u-1",
            author_name="Alice",
            author_avatar_url="a.png",
            created_at=datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc),
        ),
        MessageRead(
            id="m-2",
            text="second",
            author_id="u-2",
            author_name="Bob",
            author_avatar_url="b.png",
            created_at=datetime(2026, 3, 1, 9, 1, 30, 250000, tzinfo=timezone.utc),
        ),
    ]


class _BrokenStorage:
    def __init__(self) -> None:
        self.write_attempts = 0

    def get(self, key: str) -> str | None:
        raise PersistenceReadError(f"cannot read {key}")

    def set(self, key: str, value: str) -> None:
        self.write_attempts += 1
        raise PersistenceWriteError(f"cannot write {key}")


class PersistenceBridgeTests(unittest.TestCase):
    def test_missing_slot_loads_as_empty(self) -> None:
        bridge = PersistenceBridge(MemorySlotStorage())

        self.assertEqual(bridge.load(), [])

    def test_corrupt_slot_loads_as_empty(self) -> None:
        for raw in ["{not json", '{"id": "m-1"}', '[{"id": "m-1"}]']:
            with self.subTest(raw=raw):
                bridge = PersistenceBridge(MemorySlotStorage({"chatData": raw}))
                self.assertEqual(bridge.load(), [])

    def test_slot_with_out_of_range_timestamp_loads_as_empty(self) -> None:
        raw = json.dumps(
            [
                {
                    "id": "m-far",
                    "text": "far future",
                    "author_id": "u-1",
                    "author_name": "Alice",
                    "created_at": "9999-12-31T23:59:59-05:00",
                }
            ]
        )

        self.assertEqual(PersistenceBridge(MemorySlotStorage({"chatData": raw})).load(), [])

    def test_slot_with_blank_text_loads_as_empty(self) -> None:
        raw = MessageList.dump_json(_messages()).decode("utf-8").replace('"text":"first"', '"text":"  "')

        self.assertEqual(PersistenceBridge(MemorySlotStorage({"chatData": raw})).load(), [])

    def test_unreadable_slot_loads_as_empty(self) -> None:
        self.assertEqual(PersistenceBridge(_BrokenStorage()).load(), [])

    def test_save_writes_full_array_under_slot_name(self) -> None:
        storage = MemorySlotStorage()
        bridge = PersistenceBridge(storage, slot="room")

        self.assertTrue(bridge.save(_messages()))

        decoded = json.loads(storage.values["room"])
        self.assertEqual([row["id"] for row in decoded], ["m-1", "m-2"])
        self.assertEqual(
            set(decoded[0]),
            {"id", "text", "author_id", "author_name", "author_avatar_url", "created_at"},
        )

    def test_saving_empty_list_writes_empty_array(self) -> None:
        storage = MemorySlotStorage()
        bridge = PersistenceBridge(storage)
        bridge.save(_messages())

        bridge.save([])

        self.assertEqual(storage.values["chatData"], "[]")
        self.assertEqual(bridge.load(), [])

    def test_round_trip_into_fresh_store(self) -> None:
        storage = MemorySlotStorage()
        original = MessageStore("sqlite+pysqlite:///:memory:")
        original.initialize()
        for message in reversed(_messages()):
            original.upsert(message)
        PersistenceBridge(storage).save(original.list())

        fresh = MessageStore("sqlite+pysqlite:///:memory:")
        fresh.initialize()
        for message in PersistenceBridge(storage).load():
            fresh.upsert(message)

        self.assertEqual(fresh.list(), original.list())
        original.dispose()
        fresh.dispose()

    def test_loads_slots_written_with_legacy_field_names(self) -> None:
        legacy = json.dumps(
            [
                {
                    "id": "legacy-1",
                    "text": "from the browser",
                    "user_id": "u-9",
                    "user_name": "Carol",
                    "user_avatar": "c.png",
                    "created_at": "2026-03-01T09:00:00.000Z",
                }
            ]
        )

        loaded = PersistenceBridge(MemorySlotStorage({"chatData": legacy})).load()

        self.assertEqual(len(loaded), 1)
        self.assertEqual(loaded[0].author_name, "Carol")
        self.assertEqual(loaded[0].author_avatar_url, "c.png")
        self.assertEqual(loaded[0].created_at, datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))

    def test_write_failure_degrades_to_memory_only(self) -> None:
        storage = _BrokenStorage()
        bridge = PersistenceBridge(storage)

        self.assertFalse(bridge.save(_messages()))
        self.assertFalse(bridge.save(_messages()))

        self.assertTrue(bridge.degraded)
        self.assertEqual(storage.write_attempts, 1)


class FileSlotStorageTests(unittest.TestCase):
    def test_file_slot_survives_new_bridge_instance(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            directory = Path(tmp) / "slots"
            PersistenceBridge(FileSlotStorage(directory)).save(_messages())

            restored = PersistenceBridge(FileSlotStorage(directory)).load()

            self.assertEqual(restored, _messages())
            self.assertTrue((directory / "chatData.json").exists())

    def test_missing_file_reads_as_none(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            self.assertIsNone(FileSlotStorage(Path(tmp)).get("chatData"))

    def test_rejects_slot_names_with_path_separators(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                FileSlotStorage(Path(tmp)).get("../escape")

    def test_unwritable_directory_raises_write_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            blocker = Path(tmp) / "file"
            blocker.write_text("x", encoding="utf-8")

            with self.assertRaises(PersistenceWriteError):
                FileSlotStorage(blocker / "slots").set("chatData", "[]")


if __name__ == "__main__":
    unittest.main()
