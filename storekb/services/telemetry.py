from __future__ import annotations

from collections import Counter, deque
from dataclasses import dataclass, field
import time


@dataclass(frozen=True)
class ProviderCallSample:
    integration: str
    latency_ms: float
    success: bool
    recorded_at: float = field(default_factory=time.time)


# Bounded so a long-running API process keeps a recent window only.
_provider_calls: deque[ProviderCallSample] = deque(maxlen=5000)
_counters: Counter[str] = Counter()


def record_external_call(*, integration: str, latency_ms: float, success: bool) -> None:
    _provider_calls.append(
        ProviderCallSample(integration=integration, latency_ms=latency_ms, success=success)
    )


def increment_counter(name: str, value: int = 1) -> None:
    # Ingest and sync outcomes, e.g. kb.ingest.succeeded or kb.sync.failed.
    _counters[name] += value


def get_counter(name: str) -> int:
    return _counters[name]


def external_call_stats(integration: str) -> dict[str, float | int | None]:
    calls = [call for call in _provider_calls if call.integration == integration]
    if not calls:
        return {"count": 0, "error_rate": None, "avg_latency_ms": None}
    failed = len([call for call in calls if not call.success])
    return {
        "count": len(calls),
        "error_rate": failed / len(calls),
        "avg_latency_ms": sum(call.latency_ms for call in calls) / len(calls),
    }


def reset_telemetry() -> None:
    # Test isolation only.
    _provider_calls.clear()
    _counters.clear()
