from __future__ import annotations

import math


# Provider-independent heuristic calibrated for mixed Portuguese/English content.
CHARS_PER_TOKEN = 4


def estimate_tokens(text: str) -> int:
    # Deterministic and non-decreasing in length so chunk decisions are reproducible.
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)
