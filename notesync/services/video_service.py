"""YouTube video details for video-import notes."""

import logging
import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

import httpx

from notesync.config import settings
from notesync.utils.exceptions import ApiError, NetworkError, NoAPIKey

logger = logging.getLogger(__name__)

_VIDEO_ID = re.compile(r"^[A-Za-z0-9_-]{11}$")
_ISO_DURATION = re.compile(
    r"^P(?:(?P<days>\d+)D)?(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$"
)


@dataclass(frozen=True)
class VideoInfo:
    video_id: str
    title: str
    description: str
    duration_seconds: int


def extract_video_id(url: str) -> str | None:
    """
    Get the video id from a watch, youtu.be, shorts or embed URL.

    Returns:
        The 11 character id, or None when the URL is not a video link
    """
    parsed = urlparse(url.strip())
    host = (parsed.hostname or "").lower()
    if host.startswith("www.") or host.startswith("m."):
        host = host.split(".", 1)[1]

    candidate = None
    if host == "youtu.be":
        candidate = parsed.path.lstrip("/").split("/")[0]
    elif host in ("youtube.com", "music.youtube.com"):
        if parsed.path == "/watch":
            candidate = parse_qs(parsed.query).get("v", [None])[0]
        else:
            parts = parsed.path.strip("/").split("/")
            if len(parts) >= 2 and parts[0] in ("shorts", "embed"):
                candidate = parts[1]

    if candidate and _VIDEO_ID.match(candidate):
        return candidate
    return None


def parse_duration(value: str) -> int:
    """Convert an ISO-8601 duration such as ``PT1H2M3S`` to seconds; 0 if unparsable."""
    match = _ISO_DURATION.match(value or "")
    if not match:
        return 0
    parts = {name: int(amount) for name, amount in match.groupdict().items() if amount}
    return (
        parts.get("days", 0) * 86400
        + parts.get("hours", 0) * 3600
        + parts.get("minutes", 0) * 60
        + parts.get("seconds", 0)
    )


def format_duration(seconds: int) -> str:
    """``m:ss`` under an hour, ``h:mm:ss`` otherwise."""
    hours, remainder = divmod(int(seconds), 3600)
    minutes, secs = divmod(remainder, 60)
    if hours > 0:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


class VideoService:
    """Client for the YouTube Data API videos endpoint."""

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.youtube_api_key
        self.base_url = (base_url or settings.youtube_base_url).rstrip("/")
        self.transport = transport

    def check_configured(self) -> bool:
        return bool(self.api_key)

    async def get_video_info(self, url: str) -> VideoInfo:
        """
        Fetch title, description and duration of a video.

        Args:
            url: Any supported YouTube video URL

        Returns:
            VideoInfo for the video

        Raises:
            ApiError: If the URL is not a video link, the API fails or the video does not exist
            NoAPIKey: If no API key is configured
            NetworkError: If the API cannot be reached
        """
        video_id = extract_video_id(url)
        if video_id is None:
            raise ApiError("Invalid YouTube URL")
        if not self.api_key:
            raise NoAPIKey("YouTube API")

        try:
            async with httpx.AsyncClient(
                transport=self.transport, timeout=settings.http_timeout_seconds
            ) as client:
                response = await client.get(
                    f"{self.base_url}/videos",
                    params={"part": "snippet,contentDetails", "id": video_id, "key": self.api_key},
                )
        except httpx.RequestError as e:
            logger.error(f"YouTube request failed: {e}")
            raise NetworkError() from e

        if response.status_code != 200:
            try:
                message = response.json()["error"]["message"]
            except (ValueError, KeyError, TypeError):
                message = f"HTTP {response.status_code}"
            raise ApiError(message)

        try:
            items = response.json().get("items") or []
        except ValueError as e:
            raise ApiError("Invalid response") from e
        if not items:
            raise ApiError("Video not found")

        snippet = items[0].get("snippet", {})
        details = items[0].get("contentDetails", {})
        info = VideoInfo(
            video_id=video_id,
            title=snippet.get("title") or "YouTube Video",
            description=snippet.get("description") or "",
            duration_seconds=parse_duration(details.get("duration", "")),
        )
        logger.info(f"Fetched YouTube video {video_id}: {info.title}")
        return info
