"""Pydantic models for events handed to application listeners."""

from __future__ import annotations

from datetime import datetime
from typing import Union

from pydantic import BaseModel, ConfigDict


class VerificationEvent(BaseModel):
    """Hub verification of a subscribe/unsubscribe (or other mode) request."""

    model_config = ConfigDict(frozen=True)

    type: str
    channel: str
    lease_seconds: int | None = None


class VideoRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    title: str | None = None
    link: str | None = None


class ChannelRef(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    name: str | None = None
    link: str | None = None


class NotificationEvent(BaseModel):
    """A new or updated video pushed by the hub."""

    model_config = ConfigDict(frozen=True)

    video: VideoRef
    channel: ChannelRef
    published: datetime
    updated: datetime


HubEvent = Union[VerificationEvent, NotificationEvent]
