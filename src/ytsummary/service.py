import asyncio
import logging
import weakref

from ytsummary.llm_providers import LLMProvider
from ytsummary.models import SUMMARY_TYPE, SummaryRecord
from ytsummary.rate_limit import RateLimiter
from ytsummary.store import SummaryStore, new_record_id
from ytsummary.summary_tool import (
    SYSTEM_PROMPT,
    YOUTUBE_SUMMARY_TOOL,
    parse_summary_arguments,
)
from ytsummary.text import Encoding, build_transcript_text, split_text_by_token
from ytsummary.transcripts import InvalidVideoUrlError, YoutubeClient, extract_video_id

logger = logging.getLogger(__name__)

LATEST_LIMIT = 3


class SummaryService:
    """Read-through summary cache keyed by YouTube video id."""

    def __init__(
        self,
        store: SummaryStore,
        youtube: YoutubeClient,
        llm: LLMProvider,
        rate_limiter: RateLimiter,
        chunk_size: int,
        encoding: Encoding,
    ):
        self.store = store
        self.youtube = youtube
        self.llm = llm
        self.rate_limiter = rate_limiter
        self.chunk_size = chunk_size
        self.encoding = encoding
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )

    def _lock_for(self, video_id: str) -> asyncio.Lock:
        lock = self._locks.get(video_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[video_id] = lock
        return lock

    def latest(self) -> list[SummaryRecord]:
        return self.store.list_latest(SUMMARY_TYPE, limit=LATEST_LIMIT)

    async def create(
        self, url: str, refresh: bool = False, client_key: str = "unknown"
    ) -> SummaryRecord:
        """
        Returns the summary of the video at ``url``, building it on a miss.

        Args:
            url: Any YouTube video URL.
            refresh: Rebuild and overwrite an existing summary.
            client_key: Identifies the caller for rate limiting.

        Raises:
            InvalidVideoUrlError: No video id in ``url``.
            TranscriptNotFoundError: The video has no usable transcript.
            RateLimitExceeded: The caller used up its summarization calls.
            SummaryParseError: The model answer does not match the schema.
        """
        video_id = extract_video_id(url)
        if not video_id:
            raise InvalidVideoUrlError(url)

        found = self.store.find_unique(SUMMARY_TYPE, video_id)
        if found and not refresh:
            logger.info(f"Cache hit for {video_id}")
            return found

        lock = self._lock_for(video_id)
        async with lock:
            # A concurrent request may have built it while we waited
            found = self.store.find_unique(SUMMARY_TYPE, video_id)
            if found and not refresh:
                logger.info(f"Cache hit for {video_id} after waiting")
                return found
            logger.info(f"Building summary for {video_id} (refresh={refresh})")
            return await self._build(video_id, found, client_key)

    async def _build(
        self, video_id: str, found: SummaryRecord | None, client_key: str
    ) -> SummaryRecord:
        snippet = await self.youtube.get_video_snippet(video_id)
        lines = await self.youtube.fetch_transcript(video_id)

        text = build_transcript_text(lines)
        chunked_text = split_text_by_token(text, self.chunk_size, self.encoding)[0]

        self.rate_limiter.hit(client_key)

        result = await self.llm.call_tool(
            SYSTEM_PROMPT,
            f"Youtube video transcript: {chunked_text}",
            YOUTUBE_SUMMARY_TOOL,
        )
        logger.info(f"Summarized {video_id} with {result.model}, usage: {result.usage}")
        data = parse_summary_arguments(result.arguments)

        record = SummaryRecord(
            id=found.id if found else new_record_id(),
            external_id=video_id,
            type=SUMMARY_TYPE,
            output={
                "metadata": dict(snippet),
                "en": data.model_dump(by_alias=True),
            },
            usage=result.usage,
        )
        return self.store.upsert(record)
