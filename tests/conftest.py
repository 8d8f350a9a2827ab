"""Shared test fixtures."""

from pathlib import Path

import pytest

from ytsummary.config import Settings
from ytsummary.rate_limit import RateLimiter
from ytsummary.service import SummaryService
from ytsummary.store import SummaryStore

from fakes import CharEncoding, FakeLLM, FakeTimer, FakeYoutube


@pytest.fixture
def tmp_store(tmp_path: Path) -> SummaryStore:
    """Create a temporary database for testing."""
    store = SummaryStore(tmp_path / "test.db")
    yield store  # type: ignore[misc]
    store.close()


@pytest.fixture
def fake_timer() -> FakeTimer:
    return FakeTimer()


@pytest.fixture
def fake_youtube() -> FakeYoutube:
    youtube = FakeYoutube()
    youtube.add_video(
        "dQw4w9WgXcQ",
        [("- Intro", 0), ("more", 1200), ("- Next part", 5000)],
        title="Never Gonna Give You Up",
    )
    return youtube


@pytest.fixture
def fake_llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def service(
    tmp_store: SummaryStore,
    fake_youtube: FakeYoutube,
    fake_llm: FakeLLM,
    fake_timer: FakeTimer,
) -> SummaryService:
    return SummaryService(
        store=tmp_store,
        youtube=fake_youtube,  # type: ignore[arg-type]
        llm=fake_llm,  # type: ignore[arg-type]
        rate_limiter=RateLimiter(limit=2, window_seconds=60, timer=fake_timer),
        chunk_size=1000,
        encoding=CharEncoding(),
    )


@pytest.fixture
def settings() -> Settings:
    """Settings with an admin key, never read from the environment."""
    return Settings(openai_api_key="test-key", admin_api_keys=["admin-secret"])
