"""YouTube WebSub callback endpoint."""

from __future__ import annotations

import logging

from fastapi import APIRouter, BackgroundTasks, Request, Response

from yt_pubsub.services.events import EventDispatcher
from yt_pubsub.services.handler import HandlerOutcome, NotificationHandler

logger = logging.getLogger(__name__)

REJECTED_METHODS = ["HEAD", "PUT", "PATCH", "DELETE", "OPTIONS", "TRACE"]


def _to_response(outcome: HandlerOutcome) -> Response:
    return Response(content=outcome.body, status_code=outcome.status_code, media_type=outcome.media_type)


def create_router(handler: NotificationHandler, dispatcher: EventDispatcher, *, path: str = "/") -> APIRouter:
    """Build a router serving the hub callback at ``path``."""

    router = APIRouter(tags=["webhooks"])

    @router.get(path)
    async def verify_webhook(request: Request, background_tasks: BackgroundTasks) -> Response:
        """Respond to the hub's verification challenge."""

        outcome = handler.handle("GET", query=request.query_params)
        if outcome.event is not None and outcome.event_name:
            # listeners run once the challenge has been sent back
            background_tasks.add_task(dispatcher.emit, outcome.event_name, outcome.event)
        return _to_response(outcome)

    @router.post(path)
    async def receive_webhook(request: Request) -> Response:
        """Receive WebSub notifications and hand new videos to listeners."""

        payload = await request.body()
        logger.debug("Received WebSub notification", extra={"payload_length": len(payload)})

        outcome = handler.handle(
            "POST",
            headers=request.headers,
            body=payload,
            content_type=request.headers.get("content-type"),
        )
        if outcome.event is not None and outcome.event_name:
            await dispatcher.emit(outcome.event_name, outcome.event)
        return _to_response(outcome)

    @router.api_route(path, methods=REJECTED_METHODS, include_in_schema=False)
    async def reject_webhook(request: Request) -> Response:
        return _to_response(handler.handle(request.method))

    return router
