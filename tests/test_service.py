"""Tests for the summary orchestration."""

import asyncio

import pytest

from ytsummary.models import SUMMARY_TYPE
from ytsummary.rate_limit import RateLimitExceeded
from ytsummary.service import SummaryService
from ytsummary.store import SummaryStore
from ytsummary.summary_tool import SYSTEM_PROMPT, TOOL_NAME, SummaryParseError
from ytsummary.transcripts import InvalidVideoUrlError, TranscriptNotFoundError

from fakes import FakeLLM, FakeYoutube, make_summary_arguments

URL = "https://www.youtube.com/watch?v=dQw4w9WgXcQ"


class TestCreate:
    async def test_builds_and_persists_summary(
        self, service: SummaryService, fake_llm: FakeLLM, tmp_store: SummaryStore
    ) -> None:
        record = await service.create(URL)

        assert record.external_id == "dQw4w9WgXcQ"
        assert record.type == SUMMARY_TYPE
        assert record.output["metadata"] == {"title": "Never Gonna Give You Up"}
        assert record.output["en"]["videoSummary"] == "A summary"
        assert record.output["en"]["chapters"][0]["title"] == "Chapter 0"
        assert record.usage == {"prompt_tokens": 10, "completion_tokens": 5, "total_tokens": 15}
        assert tmp_store.find_unique(SUMMARY_TYPE, "dQw4w9WgXcQ") == record

    async def test_sends_formatted_transcript(
        self, service: SummaryService, fake_llm: FakeLLM
    ) -> None:
        await service.create(URL)

        assert len(fake_llm.calls) == 1
        call = fake_llm.calls[0]
        assert call["prompt"] == SYSTEM_PROMPT
        assert call["tool"]["name"] == TOOL_NAME
        assert call["content"] == (
            "Youtube video transcript: [0s] Intro more\n[5s] Next part"
        )

    async def test_second_call_is_cached(
        self, service: SummaryService, fake_llm: FakeLLM, fake_youtube: FakeYoutube
    ) -> None:
        first = await service.create(URL)
        second = await service.create("https://youtu.be/dQw4w9WgXcQ")

        assert second == first
        assert len(fake_llm.calls) == 1
        assert fake_youtube.transcript_calls == 1

    async def test_refresh_overwrites_output(
        self, service: SummaryService, fake_llm: FakeLLM
    ) -> None:
        first = await service.create(URL)
        fake_llm.arguments = make_summary_arguments(summary="Updated", chapters=2)

        refreshed = await service.create(URL, refresh=True)

        assert len(fake_llm.calls) == 2
        assert refreshed.id == first.id
        assert refreshed.external_id == first.external_id
        assert refreshed.type == first.type
        assert refreshed.output != first.output
        assert refreshed.output["en"]["videoSummary"] == "Updated"
        assert refreshed.created_at == first.created_at

    async def test_refresh_without_existing_record_creates_one(
        self, service: SummaryService, tmp_store: SummaryStore
    ) -> None:
        record = await service.create(URL, refresh=True)
        assert tmp_store.find_unique(SUMMARY_TYPE, "dQw4w9WgXcQ") == record

    async def test_truncates_to_chunk_size(
        self, service: SummaryService, fake_llm: FakeLLM, fake_youtube: FakeYoutube
    ) -> None:
        fake_youtube.add_video(
            "aaaaaaaaaaa", [(f"- sentence number {i}", i * 1000) for i in range(500)]
        )
        await service.create("https://www.youtube.com/watch?v=aaaaaaaaaaa")

        transcript = fake_llm.calls[0]["content"].removeprefix("Youtube video transcript: ")
        assert len(transcript) == service.chunk_size
        assert transcript.startswith("[0s] sentence number 0\n")


class TestCreateFailures:
    async def test_invalid_url(
        self, service: SummaryService, fake_llm: FakeLLM, fake_youtube: FakeYoutube
    ) -> None:
        with pytest.raises(InvalidVideoUrlError):
            await service.create("https://example.com/video")
        assert fake_youtube.transcript_calls == 0
        assert fake_llm.calls == []

    async def test_missing_transcript_writes_nothing(
        self, service: SummaryService, fake_llm: FakeLLM, tmp_store: SummaryStore
    ) -> None:
        with pytest.raises(TranscriptNotFoundError):
            await service.create("https://youtu.be/bbbbbbbbbbb")
        assert fake_llm.calls == []
        assert tmp_store.list_latest(SUMMARY_TYPE) == []

    async def test_malformed_response_writes_nothing(
        self, service: SummaryService, fake_llm: FakeLLM, tmp_store: SummaryStore
    ) -> None:
        fake_llm.arguments = '{"videoSummary": 3}'
        with pytest.raises(SummaryParseError):
            await service.create(URL)
        assert tmp_store.list_latest(SUMMARY_TYPE) == []

    async def test_rate_limit_blocks_llm_call(
        self,
        service: SummaryService,
        fake_llm: FakeLLM,
        fake_youtube: FakeYoutube,
        tmp_store: SummaryStore,
    ) -> None:
        for video_id in ["aaaaaaaaaaa", "bbbbbbbbbbb", "ccccccccccc"]:
            fake_youtube.add_video(video_id, [("- hello", 0)])

        await service.create("https://youtu.be/aaaaaaaaaaa", client_key="1.2.3.4")
        await service.create("https://youtu.be/bbbbbbbbbbb", client_key="1.2.3.4")
        with pytest.raises(RateLimitExceeded):
            await service.create("https://youtu.be/ccccccccccc", client_key="1.2.3.4")

        assert len(fake_llm.calls) == 2
        assert tmp_store.find_unique(SUMMARY_TYPE, "ccccccccccc") is None

    async def test_cache_hits_are_not_rate_limited(
        self, service: SummaryService, fake_llm: FakeLLM
    ) -> None:
        for _ in range(5):
            await service.create(URL, client_key="1.2.3.4")
        assert len(fake_llm.calls) == 1


class TestConcurrency:
    async def test_concurrent_misses_summarize_once(
        self, service: SummaryService, fake_llm: FakeLLM
    ) -> None:
        fake_llm.delay = 0.05
        first, second = await asyncio.gather(service.create(URL), service.create(URL))

        assert len(fake_llm.calls) == 1
        assert first.id == second.id


class TestLatest:
    async def test_latest_newest_first(
        self, service: SummaryService, fake_youtube: FakeYoutube
    ) -> None:
        for video_id in ["aaaaaaaaaaa", "bbbbbbbbbbb", "ccccccccccc", "ddddddddddd"]:
            fake_youtube.add_video(video_id, [("- hello", 0)])
            await service.create(f"https://youtu.be/{video_id}", client_key=video_id)

        assert [r.external_id for r in service.latest()] == [
            "ddddddddddd",
            "ccccccccccc",
            "bbbbbbbbbbb",
        ]
