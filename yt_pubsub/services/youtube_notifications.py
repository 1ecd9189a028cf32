"""Helpers for parsing YouTube WebSub notification bodies."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Union
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)


ATOM_NS = "http://www.w3.org/2005/Atom"
YT_NS = "http://www.youtube.com/xml/schemas/2015"
TOMBSTONE_NS = "http://purl.org/atompub/tombstones/1.0"

XML_MEDIA_TYPE = re.compile(r"^(text/xml|application/([\w!#$%&*`\-.^~]+\+)?xml)$", re.IGNORECASE)


class WebhookParseError(ValueError):
    """Raised when a WebSub payload cannot be parsed."""


@dataclass(slots=True)
class FeedEntry:
    """A single video entry of a pushed Atom feed."""

    video_id: str | None
    channel_id: str | None
    title: str | None
    link: str | None
    author_name: str | None
    author_uri: str | None
    published: datetime | None
    updated: datetime | None


@dataclass(slots=True)
class FeedBody:
    entries: list[FeedEntry] = field(default_factory=list)


@dataclass(slots=True)
class DeletedEntry:
    """The feed announces a removed video (tombstone)."""

    ref: str | None = None


@dataclass(slots=True)
class EmptyBody:
    pass


@dataclass(slots=True)
class MalformedBody:
    reason: str


NotificationBody = Union[FeedBody, DeletedEntry, EmptyBody, MalformedBody]


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    value = value.strip()
    if not value:
        return None
    if value.endswith("Z"):
        value = value[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        logger.debug("Failed to parse datetime", extra={"value": value})
        return None
    if parsed.tzinfo is None:
        # offset-less stamps are read as UTC so they compare with offset-carrying ones
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _text(element: ET.Element, path: str) -> str | None:
    value = element.findtext(path)
    if value is None:
        return None
    return value.strip() or None


def _parse_entry(entry: ET.Element) -> FeedEntry:
    link = entry.find(f"{{{ATOM_NS}}}link")
    return FeedEntry(
        video_id=_text(entry, f"{{{YT_NS}}}videoId"),
        channel_id=_text(entry, f"{{{YT_NS}}}channelId"),
        title=_text(entry, f"{{{ATOM_NS}}}title"),
        link=link.get("href") if link is not None else None,
        author_name=_text(entry, f"{{{ATOM_NS}}}author/{{{ATOM_NS}}}name"),
        author_uri=_text(entry, f"{{{ATOM_NS}}}author/{{{ATOM_NS}}}uri"),
        published=_parse_datetime(entry.findtext(f"{{{ATOM_NS}}}published")),
        updated=_parse_datetime(entry.findtext(f"{{{ATOM_NS}}}updated")),
    )


def parse_notifications(payload: bytes) -> FeedBody | DeletedEntry:
    """Parse a raw Atom XML payload into feed entries or a deletion marker."""

    try:
        root = ET.fromstring(payload)
    except ET.ParseError as exc:
        raise WebhookParseError("Invalid XML payload") from exc

    if root.tag != f"{{{ATOM_NS}}}feed":
        raise WebhookParseError(f"Unexpected root element: {root.tag}")

    deleted = root.find(f"{{{TOMBSTONE_NS}}}deleted-entry")
    if deleted is not None:
        return DeletedEntry(ref=deleted.get("ref"))

    return FeedBody(entries=[_parse_entry(entry) for entry in root.findall(f"{{{ATOM_NS}}}entry")])


def is_xml_media_type(content_type: str | None) -> bool:
    media_type = (content_type or "").split(";")[0].strip()
    return bool(XML_MEDIA_TYPE.match(media_type))


def parse_body(payload: bytes, content_type: str | None) -> NotificationBody:
    """Classify an inbound POST body; never raises."""

    if not payload or not payload.strip() or not is_xml_media_type(content_type):
        return EmptyBody()

    try:
        return parse_notifications(payload)
    except WebhookParseError as exc:
        logger.warning("Invalid WebSub payload: %s", exc)
        return MalformedBody(reason=str(exc))
