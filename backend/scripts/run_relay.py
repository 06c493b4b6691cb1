"""Run the relay server.

Usage (from repo root):
    python backend/scripts/run_relay.py --port 3000

Usage (from backend/):
    python scripts/run_relay.py
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import uvicorn

BACKEND_DIR = Path(__file__).resolve().parents[1]
if str(BACKEND_DIR) not in sys.path:
    sys.path.insert(0, str(BACKEND_DIR))

from relaychat.config import get_settings
from relaychat.main import create_app


def parse_args() -> argparse.Namespace:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Run the chat relay.")
    parser.add_argument("--host", default=settings.relay_host)
    parser.add_argument("--port", type=int, default=settings.relay_port)
    parser.add_argument("--log-level", default=settings.log_level)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    logging.basicConfig(
        level=args.log_level.upper(),
        format="%(asctime)s [%(levelname)s] %(name)s %(message)s",
    )
    uvicorn.run(create_app(), host=args.host, port=args.port, log_level=args.log_level.lower())


if __name__ == "__main__":
    main()
