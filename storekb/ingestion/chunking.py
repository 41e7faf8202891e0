from __future__ import annotations

import math
import re

from storekb.ingestion.tokens import CHARS_PER_TOKEN, estimate_tokens


# Chunking constants keep ingestion deterministic across runs.
MAX_CHUNK_TOKENS = 500
CHUNK_OVERLAP_TOKENS = 50
# Chunks at or below this many characters carry no retrievable signal.
MIN_CHUNK_CHARS = 10

_SENTENCE_BOUNDARY_RE = re.compile(r"(?<=[.!?])\s+")


def split_sentences(text: str) -> list[str]:
    # Split after terminal punctuation followed by whitespace; never mid-sentence.
    return [sentence for sentence in _SENTENCE_BOUNDARY_RE.split(text) if sentence]


def _overlap_words(chunk: str, overlap_tokens: int) -> list[str]:
    # Carry roughly half the overlap budget as whole words from the emitted chunk.
    count = math.ceil(overlap_tokens / 2)
    if count <= 0:
        return []
    return chunk.split()[-count:]


def _window_text(text: str, max_tokens: int, overlap_tokens: int) -> list[str]:
    # Fixed-width slices are a hard cap; the step is always positive after validation.
    size = max_tokens * CHARS_PER_TOKEN
    step = (max_tokens - overlap_tokens) * CHARS_PER_TOKEN
    return [text[start : start + size].strip() for start in range(0, len(text), step)]


def _validate_chunk_params(*, max_tokens: int, overlap_tokens: int) -> None:
    # Guard against invalid ranges that would cause non-terminating windowing.
    if max_tokens < 1 or overlap_tokens < 0:
        raise ValueError("max_tokens must be >= 1 and overlap_tokens must be >= 0")
    if overlap_tokens >= max_tokens:
        raise ValueError("overlap_tokens must be smaller than max_tokens")


def chunk_text(
    text: str,
    max_tokens: int = MAX_CHUNK_TOKENS,
    overlap_tokens: int = CHUNK_OVERLAP_TOKENS,
) -> list[str]:
    """Split ``text`` into overlapping, token-budgeted chunks.

    Sentences are packed greedily while the running estimate stays within
    ``max_tokens``. When the next sentence overflows, the current chunk is
    emitted and the next one starts with the trailing words of the emitted
    chunk. A sentence longer than the budget is kept whole. Text without any
    sentence boundary that exceeds the budget is sliced into fixed-width
    windows instead; periods inside prices or SKUs are not boundaries.
    """
    _validate_chunk_params(max_tokens=max_tokens, overlap_tokens=overlap_tokens)
    if not text or not text.strip():
        return []

    if _SENTENCE_BOUNDARY_RE.search(text.strip()) is None and estimate_tokens(text) > max_tokens:
        chunks = _window_text(text, max_tokens, overlap_tokens)
        return [chunk for chunk in chunks if len(chunk) > MIN_CHUNK_CHARS]

    chunks: list[str] = []
    current = ""
    current_tokens = 0
    for sentence in split_sentences(text):
        sentence_tokens = estimate_tokens(sentence)
        if current_tokens + sentence_tokens > max_tokens and current:
            chunks.append(current.strip())
            carried = _overlap_words(current, overlap_tokens)
            current = " ".join([*carried, sentence])
            current_tokens = estimate_tokens(current)
        else:
            current = f"{current} {sentence}" if current else sentence
            current_tokens += sentence_tokens

    if current.strip():
        chunks.append(current.strip())

    return [chunk for chunk in chunks if len(chunk) > MIN_CHUNK_CHARS]
