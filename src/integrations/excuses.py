""""No as a service" integration — a witty reason to say no.

Used when a user sends free text and no flow is waiting for it.
Gracefully degrades: any failure returns a random local excuse.
"""

from __future__ import annotations

import logging
import random

import httpx

from src.config import settings

logger = logging.getLogger(__name__)

_TIMEOUT_SECONDS = 5

FALLBACK_EXCUSES = [
    "I'm on a coffee break ☕",
    "My brain cells are currently on vacation 🏖️",
    "I tried, but my hamster wheel stopped spinning 🐹",
    "Error 404: Intelligence not found 🤖",
    "I would help, but I'm busy doing nothing 😴",
]
DEFAULT_EXCUSE = "I'm just a reminder bot, not a magician! 🎩"


async def fetch_excuse(url: str | None = None) -> str:
    """Return the API's ``reason``, or a fallback excuse on any failure."""
    try:
        async with httpx.AsyncClient(timeout=_TIMEOUT_SECONDS) as client:
            resp = await client.get(url or settings.EXCUSE_API_URL)
            resp.raise_for_status()
            data = resp.json()
        return data.get("reason") or DEFAULT_EXCUSE
    except Exception as exc:
        logger.warning("Excuse API failed: %s", exc)
        return random.choice(FALLBACK_EXCUSES)
