"""Tests for YouTube video details."""

import httpx
import pytest

from notesync.services import VideoService
from notesync.services.video_service import extract_video_id, format_duration, parse_duration
from notesync.utils.exceptions import ApiError, NoAPIKey

VIDEO_ID = "dQw4w9WgXcQ"


@pytest.mark.parametrize(
    "url",
    [
        f"https://www.youtube.com/watch?v={VIDEO_ID}",
        f"https://m.youtube.com/watch?v={VIDEO_ID}&t=42s",
        f"https://youtu.be/{VIDEO_ID}?si=abc",
        f"https://www.youtube.com/shorts/{VIDEO_ID}",
        f"https://www.youtube.com/embed/{VIDEO_ID}",
    ],
)
def test_extract_video_id(url: str):
    """Test the supported URL shapes."""
    assert extract_video_id(url) == VIDEO_ID


@pytest.mark.parametrize(
    "url", ["not a url", "https://vimeo.com/12345", "https://www.youtube.com/watch?v=short"]
)
def test_extract_video_id_rejects(url: str):
    """Test links that are not YouTube videos."""
    assert extract_video_id(url) is None


def test_durations():
    """Test ISO-8601 parsing and display formatting."""
    assert parse_duration("PT4M13S") == 253
    assert parse_duration("PT1H2M3S") == 3723
    assert parse_duration("P1D") == 86400
    assert parse_duration("bogus") == 0
    assert format_duration(253) == "4:13"
    assert format_duration(3723) == "1:02:03"


async def test_get_video_info():
    """Test a successful lookup."""

    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.params["id"] == VIDEO_ID
        assert request.url.params["part"] == "snippet,contentDetails"
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "snippet": {"title": "Cell biology", "description": "Mitosis basics"},
                        "contentDetails": {"duration": "PT12M5S"},
                    }
                ]
            },
        )

    service = VideoService(api_key="yt-key", transport=httpx.MockTransport(handler))
    info = await service.get_video_info(f"https://youtu.be/{VIDEO_ID}")

    assert info.title == "Cell biology"
    assert info.description == "Mitosis basics"
    assert info.duration_seconds == 725


async def test_get_video_info_errors():
    """Test invalid URLs, missing keys and unknown videos."""
    service = VideoService(
        api_key="yt-key", transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"items": []}))
    )
    with pytest.raises(ApiError, match="Invalid YouTube URL"):
        await service.get_video_info("https://example.com")
    with pytest.raises(ApiError, match="Video not found"):
        await service.get_video_info(f"https://youtu.be/{VIDEO_ID}")
    with pytest.raises(NoAPIKey):
        await VideoService(api_key="").get_video_info(f"https://youtu.be/{VIDEO_ID}")
