from __future__ import annotations

from collections import Counter
import hashlib
import math
import re

from storekb.core.config import EMBED_DIM


# Unicode-aware so accented Portuguese words hash as whole tokens.
_WORD_RE = re.compile(r"\w+", re.UNICODE)


def _bucket(word: str, dim: int) -> tuple[int, float]:
    # Map a word to a stable (index, signed weight) pair inside the vector.
    digest = hashlib.blake2b(word.encode("utf-8"), digest_size=12).digest()
    index = int.from_bytes(digest[:4], "big") % dim
    sign = -1.0 if digest[4] & 1 else 1.0
    weight = 0.5 + int.from_bytes(digest[5:7], "big") / 65535.0
    return index, sign * weight


def embed_text(text: str, dim: int = EMBED_DIM) -> list[float]:
    """Deterministic bag-of-words vector, L2 normalized; all zeros for wordless text."""
    vector = [0.0] * dim
    for word, count in Counter(_WORD_RE.findall(text.lower())).items():
        index, weight = _bucket(word, dim)
        vector[index] += weight * count

    norm = math.sqrt(sum(value * value for value in vector))
    if not norm:
        return vector
    return [value / norm for value in vector]


class HashEmbeddingProvider:
    """Offline embedding provider for local development and tests."""

    name = "hash"

    def __init__(self, dim: int = EMBED_DIM) -> None:
        self._dim = dim

    async def embed(self, texts: list[str]) -> list[list[float]]:
        return [embed_text(text, self._dim) for text in texts]
