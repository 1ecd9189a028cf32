"""FastAPI app entry point.

Run with ``uvicorn yt_pubsub.main:create_app --factory`` or ``python -m yt_pubsub.main``.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import FastAPI

from yt_pubsub.core.config import SubscriberConfig, settings
from yt_pubsub.schema.events import HubEvent
from yt_pubsub.services.events import NOTIFIED
from yt_pubsub.services.pubsub import YouTubePubSub
from yt_pubsub.services.websub import HubMode

logger = logging.getLogger(__name__)


def _log_event(event: HubEvent) -> None:
    logger.info("WebSub event", extra={"event": event.model_dump(mode="json", exclude_none=True)})


def build_pubsub() -> YouTubePubSub:
    """Build a subscriber from environment settings that logs every event."""

    pubsub = YouTubePubSub(SubscriberConfig.from_settings(settings))
    for event_name in (HubMode.SUBSCRIBE.value, HubMode.UNSUBSCRIBE.value, NOTIFIED):
        pubsub.on(event_name, _log_event)
    return pubsub


def create_app() -> FastAPI:
    """Build FastAPI application."""

    return build_pubsub().create_app()


if __name__ == "__main__":
    logging.basicConfig(level=settings.log_level)
    asyncio.run(build_pubsub().run(log_level=settings.log_level.lower()))
