from __future__ import annotations

import logging

import httpx

from vispark.config import settings
from vispark.errors import MisconfiguredError, UpstreamError
from vispark.schemas import VideoMetadata
from vispark.services.http import client_session, upstream_payload

logger = logging.getLogger(__name__)

BATCH_SIZE = 50


def _default_thumbnail(thumbnails: dict | None) -> str:
    thumbnails = thumbnails or {}
    for key in ("default", "medium", "high"):
        url = (thumbnails.get(key) or {}).get("url")
        if url:
            return url
    return ""


def _to_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class YouTubeClient:
    """Thin async wrapper over the YouTube Data API v3."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        http: httpx.AsyncClient | None = None,
    ):
        self.api_key = api_key or settings.youtube_api_key
        self.base_url = (base_url or settings.youtube_api_url).rstrip("/")
        self.http = http

    async def _get(self, resource: str, params: dict) -> dict:
        if not self.api_key:
            raise MisconfiguredError(
                "YOUTUBE_API_KEY is not set. Configure it in your environment before calling this function."
            )
        async with client_session(self.http) as client:
            try:
                response = await client.get(
                    f"{self.base_url}/{resource}", params={**params, "key": self.api_key}
                )
            except httpx.HTTPError as exc:
                raise UpstreamError(f"YouTube API request failed: {exc}") from exc
        logger.debug("YouTube %s responded %s", resource, response.status_code)
        if response.is_error:
            logger.error("YouTube API error response: %s", response.text)
            raise UpstreamError(
                f"YouTube API error: {response.status_code} {response.reason_phrase}"
            )
        with upstream_payload("YouTube API"):
            data = response.json()
            if not isinstance(data, dict):
                raise TypeError(f"expected an object, got {type(data).__name__}")
        return data

    async def search_channels(
        self, query: str, max_results: int = 25, order: str = "videoCount"
    ) -> dict:
        logger.info("Searching YouTube for channels with query: %s", query)
        data = await self._get(
            "search",
            {
                "part": "snippet",
                "q": query,
                "type": "channel",
                "maxResults": max_results,
                "order": order,
            },
        )
        items = []
        for item in data.get("items", []):
            snippet = dict(item.get("snippet") or {})
            snippet["thumbnails"] = _default_thumbnail(snippet.get("thumbnails"))
            items.append(snippet)
        return {
            "items": items,
            "nextPageToken": data.get("nextPageToken"),
            "regionCode": data.get("regionCode"),
            "totalResults": (data.get("pageInfo") or {}).get("totalResults"),
        }

    async def get_channel_details(self, channel_id: str) -> dict | None:
        data = await self._get("channels", {"part": "snippet,statistics", "id": channel_id})
        items = data.get("items") or []
        if not items:
            return None

        channel = items[0]
        snippet = channel.get("snippet") or {}
        statistics = channel.get("statistics") or {}
        return {
            "channelId": channel.get("id", channel_id),
            "channelName": snippet.get("title", ""),
            "videoCount": _to_int(statistics.get("videoCount")) or 0,
            "thumbnails": _default_thumbnail(snippet.get("thumbnails")),
            "description": snippet.get("description", ""),
            "subscriberCount": _to_int(statistics.get("subscriberCount")) or 0,
            "customUrl": snippet.get("customUrl") or "",
        }

    async def _channel_thumbnails(self, channel_ids: list[str]) -> dict[str, str]:
        thumbnails: dict[str, str] = {}
        unique = list(dict.fromkeys(c for c in channel_ids if c))
        for start in range(0, len(unique), BATCH_SIZE):
            batch = unique[start : start + BATCH_SIZE]
            data = await self._get("channels", {"part": "snippet", "id": ",".join(batch)})
            for item in data.get("items", []):
                snippet_thumbs = (item.get("snippet") or {}).get("thumbnails") or {}
                url = (snippet_thumbs.get("medium") or {}).get("url") or _default_thumbnail(
                    snippet_thumbs
                )
                thumbnails[item["id"]] = url
        return thumbnails

    @staticmethod
    def _parse_video(item: dict) -> VideoMetadata:
        snippet = item.get("snippet") or {}
        details = item.get("contentDetails") or {}
        stats = item.get("statistics") or {}
        return VideoMetadata(
            video_id=item["id"],
            title=snippet.get("title"),
            description=snippet.get("description"),
            channel_id=snippet.get("channelId"),
            channel_title=snippet.get("channelTitle"),
            published_at=snippet.get("publishedAt"),
            duration=details.get("duration"),
            view_count=_to_int(stats.get("viewCount")),
            like_count=_to_int(stats.get("likeCount")),
            comment_count=_to_int(stats.get("commentCount")),
            thumbnails=snippet.get("thumbnails"),
            tags=snippet.get("tags"),
            category_id=snippet.get("categoryId"),
            default_language=snippet.get("defaultLanguage"),
            default_audio_language=snippet.get("defaultAudioLanguage"),
        )

    async def get_videos(self, video_ids: list[str]) -> list[VideoMetadata]:
        videos: list[VideoMetadata] = []
        unique = list(dict.fromkeys(v for v in video_ids if v))
        for start in range(0, len(unique), BATCH_SIZE):
            batch = unique[start : start + BATCH_SIZE]
            data = await self._get(
                "videos",
                {"part": "snippet,contentDetails,statistics", "id": ",".join(batch)},
            )
            videos.extend(self._parse_video(item) for item in data.get("items", []))

        thumbnails = await self._channel_thumbnails([v.channel_id for v in videos])
        for video in videos:
            video.channel_thumbnail_url = thumbnails.get(video.channel_id)
        return videos

    async def get_video(self, video_id: str) -> VideoMetadata | None:
        videos = await self.get_videos([video_id])
        return videos[0] if videos else None

    async def list_channel_videos(
        self, channel_id: str, page_token: str | None = None, max_results: int = 10
    ) -> tuple[list[dict], str | None]:
        params = {
            "part": "snippet",
            "channelId": channel_id,
            "type": "video",
            "order": "date",
            "maxResults": max_results,
        }
        if page_token:
            params["pageToken"] = page_token
        data = await self._get("search", params)

        videos = []
        for item in data.get("items", []):
            video_id = (item.get("id") or {}).get("videoId")
            if not video_id:
                continue
            snippet = item.get("snippet") or {}
            videos.append(
                {
                    "videoId": video_id,
                    "title": snippet.get("title", ""),
                    "thumbnails": snippet.get("thumbnails"),
                    "publishedAt": snippet.get("publishedAt"),
                }
            )
        return videos, data.get("nextPageToken")
