"""Data models shared across the service."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

SUMMARY_TYPE = "youtube_summary"


class TranscriptLine(BaseModel):
    """One timed caption unit; ``offset`` is in milliseconds."""

    text: str
    offset: int


class GroupedSegment(BaseModel):
    """A run of transcript lines merged into one utterance."""

    text: str
    offset: int


class YoutubeSummaryRequest(BaseModel):
    url: str = Field(min_length=1)


class SummaryRecord(BaseModel):
    """A persisted summarization result, unique per (type, external_id)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    id: str
    external_id: str
    type: str = SUMMARY_TYPE
    output: dict[str, Any]
    usage: dict[str, Any] | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)
