import asyncio
import logging
import re

from googleapiclient.discovery import build
from youtube_transcript_api import YouTubeTranscriptApi
from youtube_transcript_api._errors import (
    NoTranscriptFound,
    TranscriptsDisabled,
    VideoUnavailable,
)

from ytsummary.models import TranscriptLine

logger = logging.getLogger(__name__)


class InvalidVideoUrlError(ValueError):
    """Raised when no YouTube video id can be parsed from a URL."""

    def __init__(self, url: str):
        self.url = url
        super().__init__("The url is not a valid youtube video.")


class TranscriptNotFoundError(Exception):
    """Raised when a requested transcript cannot be found for a video."""

    def __init__(self, video_id: str):
        self.video_id = video_id
        super().__init__(f"Requested transcript does not exist for video: {video_id}")


_VIDEO_ID_PATTERNS = [
    re.compile(r"youtube\.com/watch\?(?:.*&)?v=([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtu\.be/([a-zA-Z0-9_-]{11})"),
    re.compile(r"youtube\.com/(?:embed|shorts|live|v)/([a-zA-Z0-9_-]{11})"),
]


def extract_video_id(url: str) -> str | None:
    """
    Extracts the video id from a YouTube URL.

    Supports watch, youtu.be, embed, shorts and live URLs, with or without
    a scheme. Returns None when the URL does not point at a video.
    """
    if not url:
        return None
    for pattern in _VIDEO_ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class YoutubeClient:
    """Transcript and metadata access for YouTube videos."""

    def __init__(self, api_key: str | None = None, languages: list[str] | None = None):
        self.languages = languages or ["en"]
        self.transcript_api = YouTubeTranscriptApi()
        # The Data API client is only needed for video metadata
        self.data_client = None
        if api_key:
            self.data_client = build(
                "youtube", "v3", developerKey=api_key, cache_discovery=False
            )
        else:
            logger.warning(
                "YOUTUBE_API_KEY is not set, video metadata will not be stored"
            )

    def _fetch_transcript(self, video_id: str) -> list[TranscriptLine]:
        try:
            fetched = self.transcript_api.fetch(video_id, languages=self.languages)
        except (TranscriptsDisabled, NoTranscriptFound, VideoUnavailable) as e:
            raise TranscriptNotFoundError(video_id) from e

        return [
            TranscriptLine(text=snippet.text, offset=round(snippet.start * 1000))
            for snippet in fetched
        ]

    async def fetch_transcript(self, video_id: str) -> list[TranscriptLine]:
        """
        Fetches the transcript for a given YouTube video ID.

        Returns:
            list[TranscriptLine]: caption lines in order, offsets in milliseconds.

        Raises:
            TranscriptNotFoundError: captions are disabled or missing, or the
                video is unavailable. Other errors propagate unchanged.
        """
        logger.info(f"Fetching transcript for {video_id}")
        loop = asyncio.get_running_loop()
        lines = await loop.run_in_executor(None, self._fetch_transcript, video_id)
        logger.info(f"Fetched {len(lines)} transcript lines for {video_id}")
        return lines

    def _get_video_snippet(self, video_id: str) -> dict:
        videos_response = (
            self.data_client.videos().list(part="snippet", id=video_id).execute()
        )
        if not videos_response.get("items"):
            raise TranscriptNotFoundError(video_id)
        return videos_response["items"][0]["snippet"]

    async def get_video_snippet(self, video_id: str) -> dict:
        """Returns the Data API snippet (title, description, publishedAt, ...) of a video."""
        if self.data_client is None:
            return {}
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, self._get_video_snippet, video_id)
