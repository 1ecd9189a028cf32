"""Unit tests for the WebSub callback protocol handler."""

from __future__ import annotations

import hmac
from datetime import datetime, timezone

import pytest

from yt_pubsub.core.config import SubscriberConfig
from yt_pubsub.schema.events import NotificationEvent, VerificationEvent
from yt_pubsub.services.handler import NotificationHandler
from yt_pubsub.services.websub import TOPIC_BASE

ATOM = "application/atom+xml"
SECRET = "hush"


def _entry(video_id: str, *, published: str, updated: str, title: str = "Sample Video") -> str:
    return f"""
      <entry>
        <id>yt:video:{video_id}</id>
        <yt:videoId>{video_id}</yt:videoId>
        <yt:channelId>UCCHAN</yt:channelId>
        <title>{title}</title>
        <link rel="alternate" href="https://www.youtube.com/watch?v={video_id}"/>
        <author>
          <name>Sample Channel</name>
          <uri>https://www.youtube.com/channel/UCCHAN</uri>
        </author>
        <published>{published}</published>
        <updated>{updated}</updated>
      </entry>"""


def _feed(*entries: str) -> bytes:
    return (
        '<feed xmlns:yt="http://www.youtube.com/xml/schemas/2015" xmlns="http://www.w3.org/2005/Atom">'
        + "".join(entries)
        + "</feed>"
    ).encode()


FRESH = _feed(_entry("VID1", published="2024-07-16T12:00:00+00:00", updated="2024-07-16T12:01:00+00:00"))
STALE = _feed(_entry("VID2", published="2024-07-16T12:00:00+00:00", updated="2024-07-16T12:10:00+00:00"))
DELETED = (
    b'<feed xmlns:at="http://purl.org/atompub/tombstones/1.0" xmlns="http://www.w3.org/2005/Atom">'
    b'<at:deleted-entry ref="yt:video:VID1" when="2024-07-16T12:00:00+00:00"/></feed>'
)


def _handler(secret: str | None = None) -> NotificationHandler:
    return NotificationHandler(SubscriberConfig(callback_url="https://example.com/websub", secret=secret))


def _sign(payload: bytes, algorithm: str = "sha1") -> str:
    return f"{algorithm}=" + hmac.new(SECRET.encode(), payload, algorithm).hexdigest()


def test_verification_echoes_challenge_and_builds_event() -> None:
    outcome = _handler().handle(
        "GET",
        query={"hub.mode": "subscribe", "hub.topic": TOPIC_BASE + "CHAN", "hub.challenge": "XYZ"},
    )

    assert outcome.status_code == 200
    assert outcome.body == "XYZ"
    assert outcome.media_type == "text/plain"
    assert outcome.event_name == "subscribe"
    assert outcome.event == VerificationEvent(type="subscribe", channel="CHAN")
    assert outcome.event.model_dump(exclude_none=True) == {"type": "subscribe", "channel": "CHAN"}


def test_verification_carries_lease_seconds() -> None:
    outcome = _handler().handle_verification(
        {
            "hub.mode": "unsubscribe",
            "hub.topic": TOPIC_BASE + "CHAN",
            "hub.challenge": "abc",
            "hub.lease_seconds": "432000",
        }
    )

    assert outcome.event_name == "unsubscribe"
    assert outcome.event == VerificationEvent(type="unsubscribe", channel="CHAN", lease_seconds=432000)


def test_verification_ignores_non_numeric_lease() -> None:
    outcome = _handler().handle_verification(
        {"hub.mode": "subscribe", "hub.topic": TOPIC_BASE + "CHAN", "hub.lease_seconds": "soon"}
    )

    assert outcome.status_code == 200
    assert outcome.body == ""
    assert outcome.event.lease_seconds is None


@pytest.mark.parametrize(
    "query",
    [
        {"hub.mode": "subscribe", "hub.challenge": "XYZ"},
        {"hub.topic": TOPIC_BASE + "CHAN", "hub.challenge": "XYZ"},
        {},
    ],
)
def test_verification_missing_params_is_bad_request(query: dict[str, str]) -> None:
    outcome = _handler().handle("GET", query=query)

    assert outcome.status_code == 400
    assert outcome.body == "Bad Request"
    assert outcome.event is None
    assert outcome.event_name is None


def test_other_methods_are_forbidden() -> None:
    outcome = _handler().handle("PUT")

    assert outcome.status_code == 403
    assert outcome.event is None


def test_unsigned_post_is_forbidden_when_secret_configured() -> None:
    outcome = _handler(SECRET).handle("POST", body=FRESH, content_type=ATOM)

    assert outcome.status_code == 403
    assert outcome.event is None


def test_bad_signature_is_acknowledged_and_dropped() -> None:
    handler = _handler(SECRET)
    outcome = handler.handle("POST", headers={"X-Hub-Signature": "sha1=deadbeef"}, body=FRESH, content_type=ATOM)

    assert outcome.status_code == 200
    assert outcome.event is None
    assert len(handler.tracker) == 0


def test_unsupported_signature_algorithm_is_forbidden() -> None:
    outcome = _handler(SECRET).handle(
        "POST", headers={"x-hub-signature": "md7=deadbeef"}, body=FRESH, content_type=ATOM
    )

    assert outcome.status_code == 403
    assert outcome.event is None


def test_valid_signature_emits_notification() -> None:
    outcome = _handler(SECRET).handle(
        "POST", headers={"x-hub-signature": _sign(FRESH)}, body=FRESH, content_type=ATOM
    )

    assert outcome.status_code == 200
    assert outcome.event_name == "notified"
    assert isinstance(outcome.event, NotificationEvent)


def test_signature_is_checked_against_raw_bytes() -> None:
    reformatted = FRESH.replace(b"<entry>", b"<entry>\n")
    outcome = _handler(SECRET).handle(
        "POST", headers={"x-hub-signature": _sign(FRESH)}, body=reformatted, content_type=ATOM
    )

    assert outcome.status_code == 200
    assert outcome.event is None


def test_sha256_signature_accepted() -> None:
    outcome = _handler(SECRET).handle(
        "POST", headers={"x-hub-signature": _sign(FRESH, "sha256")}, body=FRESH, content_type=ATOM
    )

    assert outcome.event_name == "notified"


def test_deleted_entry_is_acknowledged_without_event() -> None:
    outcome = _handler().handle("POST", body=DELETED, content_type=ATOM)

    assert outcome.status_code == 200
    assert outcome.event is None


def test_deleted_entry_skips_signature_check() -> None:
    outcome = _handler(SECRET).handle(
        "POST", headers={"x-hub-signature": "sha1=deadbeef"}, body=DELETED, content_type=ATOM
    )

    assert outcome.status_code == 200
    assert outcome.event is None


@pytest.mark.parametrize(
    ("body", "content_type"),
    [
        (b"", ATOM),
        (b"<not-xml>", ATOM),
        (b"<rss/>", ATOM),
        (_feed(), ATOM),
        (FRESH, "application/json"),
    ],
)
def test_bodies_without_entries_are_bad_requests(body: bytes, content_type: str) -> None:
    outcome = _handler().handle("POST", body=body, content_type=content_type)

    assert outcome.status_code == 400
    assert outcome.body == "Bad Request"
    assert outcome.event is None


def test_entry_missing_video_id_is_bad_request() -> None:
    body = FRESH.replace(b"<yt:videoId>VID1</yt:videoId>", b"")
    outcome = _handler().handle("POST", body=body, content_type=ATOM)

    assert outcome.status_code == 400
    assert outcome.event is None


def test_notification_payload_shape() -> None:
    outcome = _handler().handle("POST", body=FRESH, content_type=ATOM)

    assert outcome.status_code == 200
    assert outcome.body == "OK"
    assert outcome.event.model_dump() == {
        "video": {
            "id": "VID1",
            "title": "Sample Video",
            "link": "https://www.youtube.com/watch?v=VID1",
        },
        "channel": {
            "id": "UCCHAN",
            "name": "Sample Channel",
            "link": "https://www.youtube.com/channel/UCCHAN",
        },
        "published": datetime(2024, 7, 16, 12, 0, tzinfo=timezone.utc),
        "updated": datetime(2024, 7, 16, 12, 1, tzinfo=timezone.utc),
    }


def test_content_type_read_from_headers_when_not_given() -> None:
    outcome = _handler().handle("POST", headers={"Content-Type": ATOM}, body=FRESH)

    assert outcome.event_name == "notified"


def test_fresh_redelivery_is_suppressed_once() -> None:
    handler = _handler()

    first = handler.handle("POST", body=FRESH, content_type=ATOM)
    second = handler.handle("POST", body=FRESH, content_type=ATOM)
    third = handler.handle("POST", body=FRESH, content_type=ATOM)

    assert first.event_name == "notified"
    assert second.status_code == 200
    assert second.event is None
    assert third.event_name == "notified"


def test_stale_redelivery_is_not_suppressed() -> None:
    handler = _handler()

    assert handler.handle("POST", body=STALE, content_type=ATOM).event_name == "notified"
    assert handler.handle("POST", body=STALE, content_type=ATOM).event_name == "notified"
    assert len(handler.tracker) == 0


def test_only_first_entry_of_batched_push_is_emitted() -> None:
    # documented limitation: later entries of a multi-entry push are dropped
    body = _feed(
        _entry("FIRST", published="2024-07-16T12:00:00+00:00", updated="2024-07-16T12:30:00+00:00"),
        _entry("SECOND", published="2024-07-16T12:00:00+00:00", updated="2024-07-16T12:30:00+00:00"),
    )
    outcome = _handler().handle("POST", body=body, content_type=ATOM)

    assert outcome.event.video.id == "FIRST"


def test_redelivery_with_offset_less_published_stamp_is_suppressed() -> None:
    handler = _handler()
    body = _feed(_entry("VID3", published="2024-07-16T12:00:00", updated="2024-07-16T12:01:00+00:00"))

    first = handler.handle("POST", body=body, content_type=ATOM)
    assert first.event_name == "notified"
    assert "VID3" in handler.tracker

    second = handler.handle("POST", body=body, content_type=ATOM)
    assert second.status_code == 200
    assert second.event is None
    assert "VID3" not in handler.tracker
