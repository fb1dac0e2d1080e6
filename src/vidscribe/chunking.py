"""Transcript chunking into overlapping, sentence-bounded windows.

A chunk is built from whole sentences until adding the next sentence would
push it past ``max_words`` while it already holds at least ``min_words``.
Every chunk after the first is prefixed with the last ``overlap_words`` words
of the previous chunk's body. The output depends only on the input text and
the config, so reprocessing a transcript reproduces the same boundaries.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass

from vidscribe.models.config import ChunkingConfig
from vidscribe.models.transcript import TimedSegment

_ABBREVIATION = re.compile(r"\b(?:Dr|Mr|Mrs|Ms|Prof|Sr|Jr|vs|etc)\.|\be\.g\.|\bi\.e\.")
_SENTENCE_BREAK = re.compile(r"(?<=[.!?])\s+")
_PLACEHOLDER = "\x00"

SMALL_CHUNK_WORDS = 200


@dataclass(frozen=True)
class Chunk:
    """One chunk ready for persistence and embedding."""

    index: int
    text: str
    word_count: int
    has_overlap: bool = False
    overlap_word_count: int = 0
    sentence_count: int = 0
    start_seconds: float | None = None
    end_seconds: float | None = None


@dataclass(frozen=True)
class ChunkingStats:
    total_chunks: int
    total_words: int
    avg_words_per_chunk: int
    min_words: int
    max_words: int
    total_duration_seconds: float
    chunks_with_overlap: int


@dataclass
class _Sentence:
    text: str
    words: int
    start: float | None = None
    end: float | None = None


def split_sentences(text: str) -> list[str]:
    """Split text on sentence-ending punctuation, keeping abbreviations intact."""
    protected = _ABBREVIATION.sub(lambda m: m.group(0).replace(".", _PLACEHOLDER), text)
    sentences = []
    for part in _SENTENCE_BREAK.split(protected.strip()):
        part = part.replace(_PLACEHOLDER, ".").strip()
        if part:
            sentences.append(part)
    return sentences


def _count_words(text: str) -> int:
    return len(text.split())


def _last_words(text: str, n: int) -> str:
    return " ".join(text.split()[-n:])


class Chunker:
    """Deterministic sentence-window chunker."""

    def __init__(self, config: ChunkingConfig | None = None):
        self.config = config or ChunkingConfig()
        if self.config.min_words > self.config.max_words:
            raise ValueError(
                f"min_words ({self.config.min_words}) exceeds max_words ({self.config.max_words})"
            )

    def chunk(self, text: str) -> list[Chunk]:
        """Chunk plain transcript text. Chunks carry no timestamps."""
        sentences = [_Sentence(s, _count_words(s)) for s in split_sentences(text)]
        return self._assemble(sentences)

    def chunk_segments(self, segments: Sequence[TimedSegment]) -> list[Chunk]:
        """Chunk timed segments, attaching approximate start/end times.

        Segments are joined before sentence splitting, so boundaries match
        ``chunk`` on the joined text. Each word inherits a time spread evenly
        across its segment.
        """
        word_times: list[tuple[float, float]] = []
        for seg in segments:
            words = seg.text.split()
            if not words:
                continue
            step = seg.duration / len(words)
            for i in range(len(words)):
                start = seg.start + i * step
                word_times.append((start, start + step))

        joined = " ".join(seg.text.strip() for seg in segments if seg.text.strip())
        sentences = []
        cursor = 0
        for text in split_sentences(joined):
            n = _count_words(text)
            first, last = word_times[cursor], word_times[cursor + n - 1]
            sentences.append(_Sentence(text, n, first[0], last[1]))
            cursor += n
        return self._assemble(sentences)

    def _assemble(self, sentences: list[_Sentence]) -> list[Chunk]:
        cfg = self.config
        chunks: list[Chunk] = []
        current: list[_Sentence] = []
        current_words = 0
        previous_body = ""

        def finalize() -> None:
            nonlocal previous_body
            body = " ".join(s.text for s in current)
            text = body
            overlap = 0
            if previous_body and cfg.overlap_words > 0:
                prefix = _last_words(previous_body, cfg.overlap_words)
                overlap = _count_words(prefix)
                text = f"{prefix} {body}"
            chunks.append(
                Chunk(
                    index=len(chunks),
                    text=text,
                    word_count=_count_words(text),
                    has_overlap=overlap > 0,
                    overlap_word_count=overlap,
                    sentence_count=len(current),
                    start_seconds=current[0].start,
                    end_seconds=current[-1].end,
                )
            )
            previous_body = body

        for sentence in sentences:
            if current_words + sentence.words > cfg.max_words and current_words >= cfg.min_words:
                finalize()
                current = [sentence]
                current_words = sentence.words
            else:
                current.append(sentence)
                current_words += sentence.words

        if current:
            finalize()
        return chunks


def chunk(text: str, config: ChunkingConfig | None = None) -> list[str]:
    """Return the ordered chunk texts for a transcript."""
    return [c.text for c in Chunker(config).chunk(text)]


def validate_chunks(chunks: Sequence[Chunk]) -> list[str]:
    """Return quality warnings; an empty list means the chunk set looks healthy."""
    if not chunks:
        return ["No chunks generated"]

    warnings = []
    for c in chunks[:-1]:
        if c.word_count < SMALL_CHUNK_WORDS:
            warnings.append(f"Chunk {c.index} is very small ({c.word_count} words)")

    for prev, cur in zip(chunks, chunks[1:]):
        if prev.end_seconds is None or cur.start_seconds is None:
            continue
        if cur.start_seconds < prev.end_seconds - 1:
            warnings.append(f"Chunk {cur.index} has overlapping timestamps with previous chunk")
    return warnings


def chunking_stats(chunks: Sequence[Chunk]) -> ChunkingStats:
    if not chunks:
        return ChunkingStats(0, 0, 0, 0, 0, 0.0, 0)

    counts = [c.word_count for c in chunks]
    total = sum(counts)
    return ChunkingStats(
        total_chunks=len(chunks),
        total_words=total,
        avg_words_per_chunk=round(total / len(chunks)),
        min_words=min(counts),
        max_words=max(counts),
        total_duration_seconds=chunks[-1].end_seconds or 0.0,
        chunks_with_overlap=sum(1 for c in chunks if c.has_overlap),
    )
