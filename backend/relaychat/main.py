"""FastAPI relay entrypoint."""

from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI

from relaychat.config import get_settings
from relaychat.routers import relay
from relaychat.services.relay import RelayHub

logger = logging.getLogger(__name__)


def create_app() -> FastAPI:
    """Build a relay app owning its own peer set."""

    settings = get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("relay.started")
        yield
        logger.info("relay.stopped peers=%d", app.state.relay_hub.peer_count)

    app = FastAPI(title=settings.app_name, version="0.1.0", lifespan=lifespan)
    app.state.relay_hub = RelayHub()
    app.include_router(relay.router, tags=["relay"])

    @app.get("/health")
    def health() -> dict[str, str | int]:
        """Simple health check endpoint."""

        return {"status": "ok", "peers": app.state.relay_hub.peer_count}

    return app


app = create_app()
