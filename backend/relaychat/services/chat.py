"""Chat service wiring the store, durable slot, notifier and relay connection."""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import datetime, timezone

from relaychat.config import get_settings
from relaychat.schemas.message import MessageDraft, MessageRead
from relaychat.services.generation import (
    ASSISTANT_AUTHOR,
    TextGenerationClient,
    generate_reply_with_fallback,
)
from relaychat.services.notifier import Subscriber, SubscriberNotifier
from relaychat.services.persistence import PersistenceBridge, get_default_persistence
from relaychat.services.store import MessageStore
from relaychat.services.sync_client import SyncClient

logger = logging.getLogger(__name__)


def finalize_draft(draft: MessageDraft) -> MessageRead:
    """Assign a fresh id and creation timestamp to a locally authored draft."""

    return MessageRead(
        id=str(uuid.uuid4()),
        text=draft.text,
        author_id=draft.author_id,
        author_name=draft.author_name,
        author_avatar_url=draft.author_avatar_url,
        created_at=datetime.now(timezone.utc),
    )


class ChatService:
    """Owned client-side chat timeline with an explicit initialize/teardown lifecycle."""

    def __init__(
        self,
        store: MessageStore,
        persistence: PersistenceBridge,
        *,
        sync_client: SyncClient | None = None,
        notifier: SubscriberNotifier | None = None,
    ) -> None:
        self.store = store
        self.persistence = persistence
        self.notifier = notifier or SubscriberNotifier(store.list)
        self.sync_client = sync_client
        if sync_client is not None:
            sync_client.on_message = self.apply_remote

    def initialize(self) -> int:
        """Provision the store and replay the durable slot without broadcasting."""

        self.store.initialize()
        restored = self.persistence.load()
        for message in restored:
            self.store.upsert(message)
        self.notifier.notify(False)
        logger.info("chat.restored messages=%d slot=%s", len(restored), self.persistence.slot)
        return len(restored)

    async def start(self) -> None:
        if self.sync_client is not None:
            self.sync_client.start()

    async def teardown(self) -> None:
        if self.sync_client is not None:
            await self.sync_client.stop()
        self.notifier.clear()
        self.store.dispose()

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        return self.notifier.subscribe(callback)

    def list_messages(self) -> list[MessageRead]:
        return self.store.list()

    async def create_local(self, draft: MessageDraft) -> MessageRead:
        """Store, persist and announce a message authored on this client."""

        message = self._commit(finalize_draft(draft), is_new_arrival=True)
        if self.sync_client is not None:
            await self.sync_client.send(message)
        return message

    def apply_remote(self, message: MessageRead) -> MessageRead:
        """Store a message received from the relay, keeping its id and timestamp."""

        return self._commit(message, is_new_arrival=True)

    def clear(self) -> None:
        self.store.clear()
        self.persistence.save([])
        self.notifier.notify(False)

    async def post_generated_reply(
        self,
        prompt: str,
        *,
        client: TextGenerationClient | None = None,
    ) -> MessageRead:
        """Generate an assistant reply for prompt and post it as a local message."""

        reply = await asyncio.to_thread(generate_reply_with_fallback, prompt, client=client)
        return await self.create_local(MessageDraft.from_author(ASSISTANT_AUTHOR, reply))

    def _commit(self, message: MessageRead, *, is_new_arrival: bool) -> MessageRead:
        stored = self.store.upsert(message)
        self.persistence.save(self.store.list())
        self.notifier.notify(is_new_arrival)
        return stored


def build_chat_service(*, connect: bool = True) -> ChatService:
    """Construct a chat service from application settings."""

    settings = get_settings()
    sync_client = None
    if connect:
        sync_client = SyncClient(settings.relay_url, reconnect_delay=settings.reconnect_delay_seconds)
    return ChatService(
        MessageStore(settings.database_url),
        get_default_persistence(),
        sync_client=sync_client,
    )
