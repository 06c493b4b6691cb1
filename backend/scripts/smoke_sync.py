"""Connect a chat client to a running relay and post or watch messages.

Usage (from repo root):
    python backend/scripts/smoke_sync.py --name Alice --say "hi"
    python backend/scripts/smoke_sync.py --name Bob --watch 30
    python backend/scripts/smoke_sync.py --name Alice --ask "Summarize the chat"

Usage (from backend/):
    python scripts/smoke_sync.py --name Bob --watch 30
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import uuid
from pathlib import Path

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from relaychat.config import get_settings
from relaychat.schemas.message import MessageDraft, MessageRead
from relaychat.services.chat import build_chat_service


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Exchange messages through the relay.")
    parser.add_argument("--name", required=True)
    parser.add_argument("--avatar", default="")
    parser.add_argument("--say", help="Post one message once connected.")
    parser.add_argument("--ask", help="Post a message and an assistant reply to it.")
    parser.add_argument("--watch", type=float, default=3.0, help="Seconds to stay connected.")
    parser.add_argument("--clear", action="store_true", help="Clear local history first.")
    return parser.parse_args()


def _print_timeline(messages: list[MessageRead], is_new_arrival: bool) -> None:
    if is_new_arrival and messages:
        latest = messages[-1]
        print(f"[{latest.created_at.isoformat(timespec='seconds')}] {latest.author_name}: {latest.text}")
    else:
        print(f"-- timeline reloaded ({len(messages)} message(s))")


async def run(args: argparse.Namespace) -> None:
    settings = get_settings()
    service = build_chat_service()
    service.subscribe(_print_timeline)
    service.initialize()
    if args.clear:
        service.clear()
    await service.start()
    try:
        sync_client = service.sync_client
        if sync_client is not None and not await sync_client.wait_connected(settings.reconnect_delay_seconds * 2):
            print(f"relay at {settings.relay_url} not reachable yet; messages stay local")
        author_id = str(uuid.uuid4())
        for text in (args.say, args.ask):
            if text:
                await service.create_local(
                    MessageDraft(
                        text=text,
                        author_id=author_id,
                        author_name=args.name,
                        author_avatar_url=args.avatar,
                    )
                )
        if args.ask:
            await service.post_generated_reply(args.ask)
        await asyncio.sleep(args.watch)
    finally:
        await service.teardown()


def main() -> None:
    logging.basicConfig(level=get_settings().log_level.upper())
    asyncio.run(run(parse_args()))


if __name__ == "__main__":
    main()
