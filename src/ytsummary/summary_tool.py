"""The ``youtube_summary`` function-call contract the model must fulfil."""

import os

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

TOOL_NAME = "youtube_summary"

PROMPTS_DIR = os.path.join(os.path.dirname(__file__), "prompts")


def read_prompt(filename):
    """Helper function to read a prompt file."""
    filepath = os.path.join(PROMPTS_DIR, f"{filename}.md")
    if not os.path.exists(filepath):
        raise FileNotFoundError(f"Prompt file not found: {filepath}")
    with open(filepath, "r") as f:
        return f.read()


SYSTEM_PROMPT = read_prompt(TOOL_NAME)

YOUTUBE_SUMMARY_TOOL = {
    "name": TOOL_NAME,
    "description": "Create a detailed summary of a youtube video and list its chapters.",
    "parameters": {
        "type": "object",
        "properties": {
            "videoSummary": {
                "type": "string",
                "description": "Detailed summary of the video in markdown format.",
            },
            "chapters": {
                "type": "array",
                "description": "Chapters of the video in chronological order.",
                "items": {
                    "type": "object",
                    "properties": {
                        "title": {"type": "string", "description": "Chapter title."},
                        "offset": {
                            "type": "integer",
                            "description": "Start of the chapter, in seconds.",
                        },
                        "summary": {
                            "type": "string",
                            "description": "Summary of the chapter in markdown format.",
                        },
                    },
                    "required": ["title", "offset", "summary"],
                },
            },
            "thematics": {
                "type": "array",
                "description": "Main themes covered by the video.",
                "items": {"type": "string"},
            },
        },
        "required": ["videoSummary", "chapters"],
    },
}


class SummaryParseError(Exception):
    """Raised when the model's function-call arguments do not match the schema."""


class _Schema(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Chapter(_Schema):
    title: str
    offset: int = Field(ge=0)
    summary: str


class YoutubeSummary(_Schema):
    video_summary: str
    chapters: list[Chapter]
    thematics: list[str] = Field(default_factory=list)


def parse_summary_arguments(raw: str | None) -> YoutubeSummary:
    if not raw:
        raise SummaryParseError("The model did not return a youtube_summary call.")
    try:
        return YoutubeSummary.model_validate_json(raw)
    except ValidationError as e:
        raise SummaryParseError(f"Invalid youtube_summary arguments: {e}") from e
