"""Helpers to build and send YouTube WebSub (PubSubHubbub) subscription requests."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

import httpx

from yt_pubsub.core.config import SubscriberConfig

logger = logging.getLogger(__name__)

TOPIC_BASE = "https://www.youtube.com/xml/feeds/videos.xml?channel_id="
FORM_HEADERS = {"Content-Type": "application/x-www-form-urlencoded"}


class InvalidChannelError(ValueError):
    """Raised when subscribe/unsubscribe is given something other than channel ids."""


class HubMode(str, Enum):
    SUBSCRIBE = "subscribe"
    UNSUBSCRIBE = "unsubscribe"


@dataclass(slots=True)
class WebSubSubscription:
    """Represents a WebSub subscription request."""

    callback_url: str
    topic_url: str
    mode: HubMode = HubMode.SUBSCRIBE
    lease_seconds: int | None = None
    secret: str | None = None

    def to_form(self) -> dict[str, str]:
        """Convert the subscription details into form payload."""

        payload: dict[str, str] = {
            "hub.callback": self.callback_url,
            "hub.mode": self.mode.value,
            "hub.topic": self.topic_url,
        }
        if self.lease_seconds is not None:
            payload["hub.lease_seconds"] = str(self.lease_seconds)
        if self.secret:
            payload["hub.secret"] = self.secret
        return payload


@dataclass(slots=True)
class SubscriptionRequest:
    """A ready-to-send outbound request for the hub."""

    url: str
    form: dict[str, str]
    channel_id: str
    mode: HubMode
    headers: dict[str, str] = field(default_factory=lambda: dict(FORM_HEADERS))


@dataclass(slots=True)
class DeliveryResult:
    """Outcome of a fire-and-forget hub request; nothing acts on it."""

    channel_id: str
    mode: HubMode
    status_code: int | None = None
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


def topic_url(channel_id: str) -> str:
    """Return the WebSub topic URL for a channel id."""

    return TOPIC_BASE + channel_id


def channel_from_topic(topic: str) -> str:
    """Recover the channel id from a topic URL."""

    return topic.replace(TOPIC_BASE, "", 1)


def build_request(channel_id: str, mode: HubMode | str, config: SubscriberConfig) -> SubscriptionRequest:
    """Build the hub request for a single channel."""

    if not isinstance(channel_id, str) or not channel_id:
        raise InvalidChannelError("You need to provide a channel id or an array of channel ids.")

    mode = HubMode(mode)
    subscription = WebSubSubscription(
        callback_url=config.callback_url,
        topic_url=topic_url(channel_id),
        mode=mode,
        lease_seconds=config.lease_seconds,
        secret=config.secret,
    )
    return SubscriptionRequest(
        url=config.hub_url,
        form=subscription.to_form(),
        channel_id=channel_id,
        mode=mode,
    )


def build_requests(
    channels: str | Sequence[str],
    mode: HubMode | str,
    config: SubscriberConfig,
) -> list[SubscriptionRequest]:
    """Build one hub request per channel id; validates everything before returning."""

    if isinstance(channels, str):
        channels = [channels]
    elif not isinstance(channels, Sequence):
        raise InvalidChannelError("You need to provide a channel id or an array of channel ids.")

    return [build_request(channel_id, mode, config) for channel_id in channels]


async def send_request(
    client: httpx.AsyncClient,
    request: SubscriptionRequest,
    *,
    timeout: float = 10,
) -> DeliveryResult:
    """Post a subscription request to the hub without raising on failure.

    The hub's answer is recorded in the returned result and logged; there is
    no retry and callers are not expected to look at it.
    """

    logger.info(
        "Sending WebSub %s request for channel %s",
        request.mode.value,
        request.channel_id,
    )
    try:
        response = await client.post(request.url, data=request.form, headers=request.headers, timeout=timeout)
        response.raise_for_status()
    except httpx.HTTPStatusError as exc:
        logger.warning(
            "Hub rejected WebSub %s request",
            request.mode.value,
            extra={"channel_id": request.channel_id, "status_code": exc.response.status_code},
        )
        return DeliveryResult(
            channel_id=request.channel_id,
            mode=request.mode,
            status_code=exc.response.status_code,
            error=str(exc),
        )
    except httpx.HTTPError as exc:
        logger.warning(
            "Failed to reach hub for WebSub %s request: %s",
            request.mode.value,
            exc,
            extra={"channel_id": request.channel_id},
        )
        return DeliveryResult(channel_id=request.channel_id, mode=request.mode, error=str(exc))

    return DeliveryResult(channel_id=request.channel_id, mode=request.mode, status_code=response.status_code)
