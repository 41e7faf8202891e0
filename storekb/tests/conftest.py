from __future__ import annotations

import os
import tempfile

# The engine binds DATABASE_URL at import time, so point it at a throwaway database first.
_TEST_DB_DIR = tempfile.mkdtemp(prefix="storekb-tests-")
os.environ["DATABASE_URL"] = os.environ.get(
    "STOREKB_TEST_DATABASE_URL",
    f"sqlite+aiosqlite:///{os.path.join(_TEST_DB_DIR, 'storekb.db')}",
)
os.environ["EMBEDDING_PROVIDER"] = "hash"
os.environ.pop("OPENAI_API_KEY", None)

import pytest  # noqa: E402

from storekb.core.config import get_settings  # noqa: E402
from storekb.services.telemetry import reset_telemetry  # noqa: E402


@pytest.fixture(autouse=True)
def isolate_settings_and_telemetry() -> None:
    # Settings are cached per process; tests that monkeypatch env need a fresh read.
    get_settings.cache_clear()
    reset_telemetry()
    yield
    get_settings.cache_clear()
    reset_telemetry()
