"""Turning transcript lines into the text sent to the model."""

import functools
import logging
import math
import re
from typing import Iterable, Protocol, Sequence

import tiktoken

from ytsummary.models import GroupedSegment, TranscriptLine

logger = logging.getLogger(__name__)

# Only an exact leading "- " is dropped; "-foo" or "  - foo" keep their dash
_DASH_MARKER = re.compile(r"^- ")


class Encoding(Protocol):
    def encode(self, text: str) -> list[int]: ...

    def decode(self, tokens: list[int]) -> str: ...

    def decode_bytes(self, tokens: list[int]) -> bytes: ...


@functools.lru_cache(maxsize=None)
def get_encoding(model: str) -> tiktoken.Encoding:
    try:
        return tiktoken.encoding_for_model(model)
    except KeyError:
        logger.info(f"No tiktoken encoding registered for {model}, using cl100k_base")
        return tiktoken.get_encoding("cl100k_base")


def _starts_with_marker(text: str) -> bool:
    return text.strip().startswith("-")


def group_by_sentences(lines: Iterable[TranscriptLine]) -> list[GroupedSegment]:
    """
    Merges caption lines into utterances.

    A line whose stripped text starts with a dash opens a new group (unless it
    is the first line); any other line is appended to the current group. Each
    group keeps the offset of its first line, and a leading ``"- "`` is
    removed from the merged text.
    """
    segments: list[GroupedSegment] = []
    texts: list[str] = []
    offset = 0

    def flush():
        text = _DASH_MARKER.sub("", " ".join(texts))
        segments.append(GroupedSegment(text=text, offset=offset))

    for line in lines:
        if _starts_with_marker(line.text) and texts:
            flush()
            texts = []
        if not texts:
            offset = line.offset
        texts.append(line.text)

    if texts:
        flush()

    return segments


def format_segments(segments: Iterable[GroupedSegment]) -> str:
    """Renders segments as ``[<seconds>s] <text>`` lines, seconds rounded up."""
    return "\n".join(
        f"[{math.ceil(segment.offset / 1000)}s] {segment.text}" for segment in segments
    )


def build_transcript_text(lines: Sequence[TranscriptLine]) -> str:
    return format_segments(group_by_sentences(lines))


def _decode_window(tokens: list[int], chunk_size: int, encoding: Encoding) -> tuple[str, int]:
    """Longest prefix of ``tokens`` (at most ``chunk_size``) that decodes cleanly.

    Byte-level encodings can cut a multi-byte character in half; such a cut
    is moved back to the previous character boundary.
    """
    for end in range(min(chunk_size, len(tokens)), 0, -1):
        try:
            chunk = encoding.decode_bytes(tokens[:end]).decode("utf-8")
        except UnicodeDecodeError:
            continue
        if len(encoding.encode(chunk)) <= chunk_size:
            return chunk, end

    end = min(chunk_size, len(tokens))
    logger.warning(f"No clean character boundary within {chunk_size} tokens")
    return encoding.decode(tokens[:end]), end


def split_text_by_token(text: str, chunk_size: int, encoding: Encoding) -> list[str]:
    """
    Splits text into chunks of at most ``chunk_size`` tokens.

    Text that already fits is returned unchanged as the only chunk. Chunks
    never split a character, so joining them gives back ``text``.
    """
    if chunk_size < 1:
        raise ValueError(f"chunk_size must be positive, got: {chunk_size}")

    tokens = encoding.encode(text)
    if len(tokens) <= chunk_size:
        return [text]

    chunks = []
    start = 0
    while start < len(tokens):
        chunk, used = _decode_window(
            tokens[start : start + chunk_size], chunk_size, encoding
        )
        chunks.append(chunk)
        start += used
    logger.info(
        f"Split {len(tokens)} tokens into {len(chunks)} chunks of at most {chunk_size}"
    )
    return chunks
