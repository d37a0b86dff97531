from __future__ import annotations

import sys
from typing import Any
from pathlib import Path

import pytest


ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


def pytest_configure(config: Any) -> None:
    config.addinivalue_line(
        "markers",
        "portal: live smoke tests that require real keywordtool.io credentials",
    )


@pytest.fixture(autouse=True)
def _isolate_env(request: pytest.FixtureRequest, monkeypatch: pytest.MonkeyPatch) -> None:
    # Keep a developer's real .env values from leaking into unit tests (live portal tests need them).
    if request.node.get_closest_marker("portal") is not None:
        return
    for i in range(1, 10):
        monkeypatch.delenv(f"KEYWORDTOOL_EMAIL_{i}", raising=False)
        monkeypatch.delenv(f"KEYWORDTOOL_PASSWORD_{i}", raising=False)
        monkeypatch.delenv(f"KEYWORDTOOL_SESSION_FILE_{i}", raising=False)
    for name in (
        "HEADLESS",
        "REQUEST_TIMEOUT_MS",
        "GUEST_FALLBACK",
        "CACHE_TTL_MINUTES",
        "SESSION_DIR",
        "SEARCH_LANGUAGE",
        "SEARCH_LOCALE",
        "DELAY_SCALE",
        "SLOW_MO_MS",
        "LOG_LEVEL",
        "LOG_FILE",
        "DEBUG_DIR",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def make_account(tmp_path: Path):
    from keywordtool_scraper.config import AccountConfig

    def _make(n: int = 1, **overrides: Any) -> AccountConfig:
        data = {
            "email": f"user{n}@example.com",
            "password": f"secret-{n}",
            "session_file": str(tmp_path / "sessions" / f"kt-cookies-{n}.json"),
        }
        data.update(overrides)
        return AccountConfig(**data)

    return _make
