"""Tests for the embedded message store."""

from __future__ import annotations

import tempfile
import unittest
from datetime import datetime, timedelta, timezone
from pathlib import Path

from relaychat.schemas.message import MessageRead
from relaychat.services.store import MessageStore, StorageInitError

BASE_TIME = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _message(message_id: str, minutes: int, text: str = "hello") -> MessageRead:
    return MessageRead(
        id=message_id,
        text=text,
        author_id="user-1",
        author_name="Alice",
        author_avatar_url="https://example.test/alice.png",
        created_at=BASE_TIME + timedelta(minutes=minutes),
    )


class MessageStoreTests(unittest.TestCase):
    def setUp(self) -> None:
        self.store = MessageStore("sqlite+pysqlite:///:memory:")
        self.store.initialize()

    def tearDown(self) -> None:
        self.store.dispose()

    def test_initialize_is_idempotent(self) -> None:
        self.store.upsert(_message("m-1", 0))
        self.store.initialize()

        self.assertTrue(self.store.ready)
        self.assertEqual([m.id for m in self.store.list()], ["m-1"])

    def test_upsert_same_id_keeps_single_row(self) -> None:
        message = _message("m-1", 0)
        self.store.upsert(message)
        self.store.upsert(message)

        rows = self.store.list()
        self.assertEqual(len(rows), 1)
        self.assertEqual(rows[0], message)

    def test_upsert_returns_finalized_message(self) -> None:
        message = _message("m-1", 5, text="returned")

        stored = self.store.upsert(message)

        self.assertEqual(stored, message)
        self.assertEqual(stored.created_at.tzinfo, timezone.utc)

    def test_list_orders_by_created_at_regardless_of_insert_order(self) -> None:
        for message_id, minutes in [("c", 30), ("a", 10), ("d", 40), ("b", 20)]:
            self.store.upsert(_message(message_id, minutes))

        rows = self.store.list()

        self.assertEqual([m.id for m in rows], ["a", "b", "c", "d"])
        self.assertEqual(rows, sorted(rows, key=lambda m: m.created_at))

    def test_list_breaks_timestamp_ties_by_id(self) -> None:
        self.store.upsert(_message("zeta", 0))
        self.store.upsert(_message("alpha", 0))

        self.assertEqual([m.id for m in self.store.list()], ["alpha", "zeta"])

    def test_list_normalizes_offsets_to_utc(self) -> None:
        offset = timezone(timedelta(hours=9))
        self.store.upsert(_message("later", 30))
        self.store.upsert(
            MessageRead(
                id="earlier",
                text="from tokyo",
                author_id="user-2",
                author_name="Bob",
                created_at=datetime(2026, 3, 1, 18, 10, tzinfo=offset),
            )
        )

        rows = self.store.list()

        self.assertEqual([m.id for m in rows], ["earlier", "later"])
        self.assertEqual(rows[0].created_at, BASE_TIME + timedelta(minutes=10))

    def test_clear_removes_all_rows(self) -> None:
        self.store.upsert(_message("m-1", 0))
        self.store.upsert(_message("m-2", 1))

        removed = self.store.clear()

        self.assertEqual(removed, 2)
        self.assertEqual(self.store.list(), [])


class MessageStoreInitTests(unittest.TestCase):
    def test_use_before_initialize_raises(self) -> None:
        store = MessageStore("sqlite+pysqlite:///:memory:")

        with self.assertRaises(StorageInitError):
            store.list()

    def test_unprovisionable_engine_raises_storage_init_error(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            missing = Path(tmp) / "missing" / "nested" / "chat.db"
            store = MessageStore(f"sqlite+pysqlite:///{missing}")

            with self.assertRaises(StorageInitError):
                store.initialize()
            self.assertFalse(store.ready)

    def test_invalid_url_raises_storage_init_error(self) -> None:
        with self.assertRaises(StorageInitError):
            MessageStore("not a database url").initialize()


if __name__ == "__main__":
    unittest.main()
