from __future__ import annotations

from storekb.ingestion.tokens import estimate_tokens


def test_estimate_tokens_empty_is_zero() -> None:
    assert estimate_tokens("") == 0


def test_estimate_tokens_rounds_up_quarter_length() -> None:
    assert estimate_tokens("abcd") == 1
    assert estimate_tokens("abcde") == 2
    assert estimate_tokens("x" * 2000) == 500


def test_estimate_tokens_is_non_decreasing() -> None:
    estimates = [estimate_tokens("a" * length) for length in range(0, 200)]
    assert estimates == sorted(estimates)
