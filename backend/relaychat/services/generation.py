"""Assistant reply generation through an external text-generation API."""

from __future__ import annotations

import http.client
import json
import logging
from dataclasses import dataclass
from typing import Protocol
from urllib import error as urllib_error
from urllib import parse as urllib_parse
from urllib import request as urllib_request

from relaychat.config import get_settings
from relaychat.schemas.message import MessageAuthor

logger = logging.getLogger(__name__)

FALLBACK_REPLY = "Sorry, I encountered an error while processing your request."

ASSISTANT_AUTHOR = MessageAuthor(
    id="ai-agent",
    name="AI Assistant",
    avatar_url="https://images.unsplash.com/photo-1485827404703-89b55fcc595e?w=100&h=100&fit=crop",
)


class GenerationError(RuntimeError):
    """Raised when reply generation fails."""


class TextGenerationClient(Protocol):
    """Protocol for free-text generation providers."""

    def generate(self, prompt: str) -> str:
        """Return generated text for prompt."""


@dataclass(slots=True)
class GeminiClient:
    """Minimal Gemini generateContent client using stdlib HTTP."""

    api_key: str
    model: str = "gemini-2.0-flash"
    base_url: str = "https://generativelanguage.googleapis.com/v1beta"
    timeout_seconds: int = 60

    def generate(self, prompt: str) -> str:
        payload = {"contents": [{"parts": [{"text": prompt}]}]}
        query = urllib_parse.urlencode({"key": self.api_key})
        url = f"{self.base_url.rstrip('/')}/models/{self.model}:generateContent?{query}"
        req = urllib_request.Request(
            url=url,
            data=json.dumps(payload).encode("utf-8"),
            method="POST",
            headers={"Content-Type": "application/json"},
        )
        try:
            with urllib_request.urlopen(req, timeout=self.timeout_seconds) as resp:
                raw = resp.read().decode("utf-8")
        except urllib_error.HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="replace")
            raise GenerationError(f"Gemini HTTP {exc.code}: {detail}") from exc
        except urllib_error.URLError as exc:
            raise GenerationError(f"Gemini request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise GenerationError("Gemini request timed out") from exc
        except (OSError, http.client.HTTPException) as exc:
            raise GenerationError(f"Gemini response could not be read: {exc}") from exc
        except UnicodeDecodeError as exc:
            raise GenerationError("Gemini response was not valid UTF-8") from exc

        try:
            decoded = json.loads(raw)
            text = decoded["candidates"][0]["content"]["parts"][0]["text"]
            if not isinstance(text, str) or not text.strip():
                raise TypeError("candidate text missing")
            return text.strip()
        except (KeyError, IndexError, TypeError, json.JSONDecodeError) as exc:
            raise GenerationError("Gemini returned an unexpected response") from exc


def get_default_generation_client() -> TextGenerationClient:
    """Return the configured generation client."""

    settings = get_settings()
    if not settings.gemini_api_key:
        raise GenerationError("GEMINI_API_KEY is not configured.")
    return GeminiClient(
        api_key=settings.gemini_api_key,
        model=settings.gemini_model,
        base_url=settings.gemini_base_url,
        timeout_seconds=settings.generation_timeout_seconds,
    )


def generate_reply_with_fallback(
    prompt: str,
    *,
    client: TextGenerationClient | None = None,
) -> str:
    """Generate a reply, returning the fixed fallback text on any failure."""

    try:
        active_client = client or get_default_generation_client()
        return active_client.generate(prompt)
    except GenerationError as exc:
        logger.warning("generation.failed error=%s; using fallback reply", exc)
        return FALLBACK_REPLY
