"""PubSubHubbub plumbing for YouTube upload notifications.

YouTube announces new uploads by POSTing an Atom feed to the subscriber's
callback URL. Each delivery is signed with the ``hub.secret`` we chose when
subscribing, sent back as ``X-Hub-Signature: sha1=<hexdigest>``.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import secrets
from calendar import timegm
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta

import feedparser
import httpx

from vispark.config import settings
from vispark.errors import MisconfiguredError, UpstreamError
from vispark.services.http import client_session

logger = logging.getLogger(__name__)

TOPIC_URL = "https://www.youtube.com/feeds/videos.xml?channel_id={channel_id}"
WATCH_URL = "https://www.youtube.com/watch?v={video_id}"

_DIGESTS = {"sha1": hashlib.sha1, "sha256": hashlib.sha256}


@dataclass
class FeedEntry:
    video_id: str
    channel_id: str
    title: str
    url: str
    published_at: datetime | None


@dataclass
class HubLease:
    subscription_id: str
    hub_secret: str
    lease_seconds: int
    expires_at: datetime


def topic_url(channel_id: str) -> str:
    return TOPIC_URL.format(channel_id=channel_id)


def generate_hub_secret() -> str:
    return secrets.token_hex(32)


def parse_entry(entry) -> FeedEntry | None:
    video_id = getattr(entry, "yt_videoid", None)
    channel_id = getattr(entry, "yt_channelid", None)
    if not video_id or not channel_id:
        return None

    published_at = None
    published_parsed = getattr(entry, "published_parsed", None)
    if published_parsed:
        published_at = datetime.fromtimestamp(timegm(published_parsed), tz=UTC).replace(
            tzinfo=None
        )

    return FeedEntry(
        video_id=video_id,
        channel_id=channel_id,
        title=getattr(entry, "title", "") or "",
        url=getattr(entry, "link", None) or WATCH_URL.format(video_id=video_id),
        published_at=published_at,
    )


def parse_feed(body: str | bytes) -> list[FeedEntry]:
    """Upload entries from a push payload; deleted-entry feeds yield nothing."""
    feed = feedparser.parse(body)
    entries = []
    for entry in feed.entries:
        parsed = parse_entry(entry)
        if parsed is not None:
            entries.append(parsed)
    return entries


def verify_signature(body: bytes, signature_header: str, secret: str) -> bool:
    algorithm, _, signature = signature_header.partition("=")
    if not signature:
        algorithm, signature = "sha1", signature_header
    digest = _DIGESTS.get(algorithm.strip().lower())
    if digest is None or not secret:
        return False
    expected = hmac.new(secret.encode(), body, digest).hexdigest()
    return hmac.compare_digest(expected, signature.strip().lower())


class HubClient:
    def __init__(
        self,
        hub_url: str | None = None,
        callback_url: str | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.hub_url = hub_url or settings.youtube_push_hub_url
        self.callback_url = callback_url or settings.youtube_push_callback_url
        self.http = http

    def _check_config(self) -> None:
        if not self.hub_url or not self.callback_url:
            raise MisconfiguredError(
                "YOUTUBE_PUSH_CALLBACK_URL or YOUTUBE_PUSH_HUB_URL is not set."
            )

    async def _post(self, data: dict) -> None:
        async with client_session(self.http) as client:
            response = await client.post(self.hub_url, data=data)
        if response.is_error:
            raise UpstreamError(
                f"YouTube push {data['hub.mode']} failed: {response.status_code} {response.text}"
            )

    async def subscribe(
        self,
        channel_id: str,
        lease_seconds: int | None = None,
        hub_secret: str | None = None,
    ) -> HubLease:
        """Request a lease for the channel topic.

        The hub keeps a single secret per callback and topic, so a channel that
        already has one must pass it back in rather than rotating it.
        """
        self._check_config()
        lease_seconds = lease_seconds or settings.youtube_push_lease_seconds
        hub_secret = hub_secret or generate_hub_secret()
        await self._post(
            {
                "hub.mode": "subscribe",
                "hub.callback": self.callback_url,
                "hub.topic": topic_url(channel_id),
                "hub.secret": hub_secret,
                "hub.lease_seconds": str(lease_seconds),
            }
        )
        now = datetime.now(UTC)
        logger.info("Requested push subscription for channel %s", channel_id)
        return HubLease(
            subscription_id=f"{channel_id}-{int(now.timestamp() * 1000)}",
            hub_secret=hub_secret,
            lease_seconds=lease_seconds,
            expires_at=(now + timedelta(seconds=lease_seconds)).replace(tzinfo=None),
        )

    async def unsubscribe(self, channel_id: str) -> None:
        self._check_config()
        await self._post(
            {
                "hub.mode": "unsubscribe",
                "hub.callback": self.callback_url,
                "hub.topic": topic_url(channel_id),
            }
        )
        logger.info("Requested push unsubscription for channel %s", channel_id)
