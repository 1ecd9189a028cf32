"""Protocol handling for requests the hub sends to the callback endpoint.

Every inbound request maps to exactly one :class:`HandlerOutcome`: the
plain-text response to send back, plus at most one event for application
listeners. Nothing here raises on hostile or malformed input.

GET requests are the hub's verification handshake. The challenge is echoed
back and a ``subscribe``/``unsubscribe`` (or whatever ``hub.mode`` says)
event is produced.

POST requests carry Atom notifications. When a secret is configured the
``X-Hub-Signature`` header is mandatory (403 without it) and is checked
against the raw body; a bad signature is acknowledged with 200 and dropped so
the hub does not keep redelivering it. Deletion notices are acknowledged and
ignored. Only the first entry of a feed is turned into a ``notified`` event,
and the immediate redelivery of a freshly published video is suppressed.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from http import HTTPStatus

from yt_pubsub.core.config import SubscriberConfig
from yt_pubsub.schema.events import ChannelRef, HubEvent, NotificationEvent, VerificationEvent, VideoRef
from yt_pubsub.services.dedup import DeliveryTracker
from yt_pubsub.services.events import NOTIFIED
from yt_pubsub.services.signature import (
    SIGNATURE_HEADER,
    parse_signature_header,
    supports_algorithm,
    verify_signature,
)
from yt_pubsub.services.websub import channel_from_topic
from yt_pubsub.services.youtube_notifications import (
    DeletedEntry,
    FeedBody,
    NotificationBody,
    parse_body,
)

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class HandlerOutcome:
    """Response to send and the event (if any) to emit for one request."""

    status_code: int
    body: str = ""
    event_name: str | None = None
    event: HubEvent | None = None
    media_type: str = "text/plain"

    @classmethod
    def status(cls, code: HTTPStatus) -> HandlerOutcome:
        return cls(status_code=int(code), body=code.phrase)


def _header(headers: Mapping[str, str], name: str) -> str | None:
    getter = getattr(headers, "get", None)
    value = getter(name) if getter is not None else None
    if value is not None:
        return value
    for key, candidate in headers.items():
        if key.lower() == name:
            return candidate
    return None


def _lease_seconds(raw: str | None) -> int | None:
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        logger.debug("Ignoring non-numeric hub.lease_seconds", extra={"value": raw})
        return None


class NotificationHandler:
    """Turns inbound hub requests into responses and events."""

    def __init__(self, config: SubscriberConfig, tracker: DeliveryTracker | None = None) -> None:
        self.config = config
        self.tracker = tracker or DeliveryTracker()

    def handle(
        self,
        method: str,
        *,
        query: Mapping[str, str] | None = None,
        headers: Mapping[str, str] | None = None,
        body: bytes = b"",
        content_type: str | None = None,
    ) -> HandlerOutcome:
        method = method.upper()
        if method == "GET":
            return self.handle_verification(query or {})
        if method == "POST":
            headers = headers or {}
            if content_type is None:
                content_type = _header(headers, "content-type")
            return self.handle_notification(headers, parse_body(body, content_type), body)
        logger.info("Rejecting %s request to callback endpoint", method)
        return HandlerOutcome.status(HTTPStatus.FORBIDDEN)

    def handle_verification(self, query: Mapping[str, str]) -> HandlerOutcome:
        mode = query.get("hub.mode")
        topic = query.get("hub.topic")
        if not topic or not mode:
            logger.warning("WebSub verification missing hub.mode or hub.topic")
            return HandlerOutcome.status(HTTPStatus.BAD_REQUEST)

        event = VerificationEvent(
            type=mode,
            channel=channel_from_topic(topic),
            lease_seconds=_lease_seconds(query.get("hub.lease_seconds")),
        )
        logger.info(
            "WebSub verification",
            extra={"mode": mode, "topic": topic, "lease_seconds": event.lease_seconds},
        )
        return HandlerOutcome(
            status_code=int(HTTPStatus.OK),
            body=query.get("hub.challenge") or "",
            event_name=mode,
            event=event,
        )

    def handle_notification(
        self,
        headers: Mapping[str, str],
        body: NotificationBody,
        raw_body: bytes,
    ) -> HandlerOutcome:
        secret = self.config.secret
        signature_header = _header(headers, SIGNATURE_HEADER)

        if secret and not signature_header:
            logger.warning("Rejecting unsigned WebSub notification")
            return HandlerOutcome.status(HTTPStatus.FORBIDDEN)

        if isinstance(body, DeletedEntry):
            logger.info("Ignoring deleted-entry notification", extra={"ref": body.ref})
            return HandlerOutcome.status(HTTPStatus.OK)

        if not isinstance(body, FeedBody) or not body.entries:
            logger.warning("WebSub notification without entries", extra={"body": type(body).__name__})
            return HandlerOutcome.status(HTTPStatus.BAD_REQUEST)

        # TODO: emit one notified event per entry; later entries of a batched push are dropped.
        entry = body.entries[0]

        if secret:
            algorithm, signature = parse_signature_header(signature_header)
            if not supports_algorithm(algorithm):
                logger.warning("Unsupported signature algorithm", extra={"algorithm": algorithm})
                return HandlerOutcome.status(HTTPStatus.FORBIDDEN)
            if not verify_signature(secret, algorithm, signature, raw_body):
                logger.warning("Webhook signature validation failed", extra={"video_id": entry.video_id})
                return HandlerOutcome.status(HTTPStatus.OK)

        if not entry.video_id or entry.published is None or entry.updated is None:
            logger.warning("Skipping entry missing identifiers or timestamps")
            return HandlerOutcome.status(HTTPStatus.BAD_REQUEST)

        if self.tracker.should_suppress(entry.video_id, entry.published, entry.updated):
            logger.debug("Duplicate delivery suppressed", extra={"video_id": entry.video_id})
            return HandlerOutcome.status(HTTPStatus.OK)

        event = NotificationEvent(
            video=VideoRef(id=entry.video_id, title=entry.title, link=entry.link),
            channel=ChannelRef(id=entry.channel_id, name=entry.author_name, link=entry.author_uri),
            published=entry.published,
            updated=entry.updated,
        )
        logger.info(
            "Processed WebSub notification",
            extra={"video_id": entry.video_id, "channel_id": entry.channel_id},
        )
        outcome = HandlerOutcome.status(HTTPStatus.OK)
        outcome.event_name = NOTIFIED
        outcome.event = event
        return outcome
