"""Subscriber facade tying the WebSub pieces together for application code."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Sequence
from typing import Any

import httpx
import uvicorn
from fastapi import APIRouter, FastAPI

from yt_pubsub.core.config import SubscriberConfig
from yt_pubsub.routers.webhooks import create_router
from yt_pubsub.services.dedup import DeliveryTracker
from yt_pubsub.services.events import EventDispatcher, EventListener
from yt_pubsub.services.handler import NotificationHandler
from yt_pubsub.services.websub import (
    DeliveryResult,
    HubMode,
    SubscriptionRequest,
    build_requests,
    send_request,
)

logger = logging.getLogger(__name__)


class YouTubePubSub:
    """Subscribes to YouTube channel feeds through a WebSub hub and emits events.

    Listeners are registered per event name: ``subscribe`` and ``unsubscribe``
    receive a :class:`~yt_pubsub.schema.events.VerificationEvent` once the hub
    has verified the callback, ``notified`` receives a
    :class:`~yt_pubsub.schema.events.NotificationEvent` for every pushed video.

    Example::

        pubsub = YouTubePubSub(callback_url="https://example.com/websub")

        @pubsub.listener("notified")
        async def on_video(event):
            print(event.video.title)

        app = pubsub.create_app()
    """

    def __init__(
        self,
        config: SubscriberConfig | None = None,
        *,
        http_client: httpx.AsyncClient | None = None,
        tracker: DeliveryTracker | None = None,
        **options: Any,
    ) -> None:
        if config is None:
            config = SubscriberConfig(**{"callback_url": "", **options})
        elif options:
            raise TypeError("Pass either a SubscriberConfig or keyword options, not both")

        self.config = config
        self.events = EventDispatcher()
        self.tracker = tracker or DeliveryTracker()
        self.handler = NotificationHandler(config, self.tracker)
        self._http_client = http_client
        self._pending_sends: set[asyncio.Task[DeliveryResult]] = set()
        self._server: uvicorn.Server | None = None

    def on(self, event_name: str, listener: EventListener) -> YouTubePubSub:
        self.events.on(event_name, listener)
        return self

    def off(self, event_name: str, listener: EventListener) -> bool:
        return self.events.off(event_name, listener)

    def listener(self, event_name: str) -> Callable[[EventListener], EventListener]:
        return self.events.listener(event_name)

    async def subscribe(self, channels: str | Sequence[str]) -> list[asyncio.Task[DeliveryResult]]:
        """Ask the hub to push updates for the given channel id(s).

        Requests are sent in the background and their outcome is only logged;
        the returned tasks may be ignored.
        """

        return self._dispatch(build_requests(channels, HubMode.SUBSCRIBE, self.config))

    async def unsubscribe(self, channels: str | Sequence[str]) -> list[asyncio.Task[DeliveryResult]]:
        """Ask the hub to stop pushing updates for the given channel id(s)."""

        return self._dispatch(build_requests(channels, HubMode.UNSUBSCRIBE, self.config))

    def _dispatch(self, requests: list[SubscriptionRequest]) -> list[asyncio.Task[DeliveryResult]]:
        tasks = []
        for request in requests:
            task = asyncio.create_task(self._send(request))
            self._pending_sends.add(task)
            task.add_done_callback(self._pending_sends.discard)
            tasks.append(task)
        return tasks

    async def _send(self, request: SubscriptionRequest) -> DeliveryResult:
        timeout = self.config.request_timeout
        if self._http_client is not None:
            return await send_request(self._http_client, request, timeout=timeout)
        async with httpx.AsyncClient() as client:
            return await send_request(client, request, timeout=timeout)

    def router(self) -> APIRouter:
        """Router serving the callback path, for mounting in an existing app."""

        return create_router(self.handler, self.events, path=self.config.path)

    def create_app(self) -> FastAPI:
        """Build a standalone FastAPI app exposing the callback endpoint."""

        app = FastAPI(title="YouTube PubSub subscriber", version="0.1.0")
        app.include_router(self.router())

        @app.get("/healthz", tags=["health"])
        async def healthcheck() -> dict[str, str]:
            return {"status": "ok"}

        return app

    async def run(self, *, log_level: str = "info") -> None:
        """Serve the callback endpoint with uvicorn until the server stops."""

        if self._server is not None:
            raise RuntimeError("The server has already been set up.")

        config = uvicorn.Config(
            app=self.create_app(),
            host=self.config.host,
            port=self.config.port,
            log_level=log_level,
        )
        self._server = uvicorn.Server(config)
        logger.info("Listening for WebSub callbacks on port %s", self.config.port)
        try:
            await self._server.serve()
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        """Wait for in-flight hub requests; an injected HTTP client stays open."""

        if self._pending_sends:
            await asyncio.gather(*self._pending_sends, return_exceptions=True)
