# tests/conftest.py
"""
Shared fixtures for maintainer API tests.

Provides a throwaway data root (colours file plus one file per locale),
settings pointing at it, and an app factory with injectable session store
and rate limiters.
"""

import copy
import json
import time
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from maintainer_api.core.config import Settings
from maintainer_api.core.logging_config import setup_logging
from maintainer_api.core.rate_limit_config import build_rate_limiters
from maintainer_api.core.security import SessionStore
from maintainer_api.main import create_app

LOCALE_CODES = ["en", "ja", "de", "fr", "ko", "zh"]

TEST_API_KEY = "test-api-key-for-maintainer-testing"

SAMPLE_DYE = {
    "itemID": 5729,
    "category": "Neutral",
    "name": "Snow White",
    "hex": "#E4DFD0",
    "acquisition": "Weaver",
    "price": 216,
    "currency": "Gil",
    "rgb": {"r": 228, "g": 223, "b": 208},
    "hsv": {"h": 45.0, "s": 8.77, "v": 89.41},
    "isMetallic": False,
    "isPastel": False,
    "isDark": False,
    "isCosmic": False,
}


def make_dye(**overrides):
    dye = copy.deepcopy(SAMPLE_DYE)
    dye.update(overrides)
    return dye


def make_locale(code: str = "en", **overrides):
    data = {
        "locale": code,
        "meta": {"version": "1.0.0", "generated": "2025-01-01T00:00:00Z", "dyeCount": 1},
        "labels": {
            "dye": f"Dye ({code})",
            "dark": "Dark",
            "metallic": "Metallic",
            "pastel": "Pastel",
            "cosmic": "Cosmic",
            "cosmicExploration": "Cosmic Exploration",
            "cosmicFortunes": "Cosmic Fortunes",
        },
        "dyeNames": {"5729": "Snow White"},
    }
    data.update(overrides)
    return data


class FakeClock:
    """Stands in for ``time.time``; the tests move it by hand"""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FixedDateTimeClock:
    """Wall clock for session expiry tests"""

    def __init__(self, start: datetime = None):
        self.now = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, delta: timedelta) -> None:
        self.now += delta


@pytest.fixture(scope="session", autouse=True)
def structured_logging(tmp_path_factory):
    """Same structlog wiring as the server, logging into a throwaway directory"""
    setup_logging("DEBUG", str(tmp_path_factory.mktemp("logs")), json_output=True)


@pytest.fixture
def dye_factory():
    return make_dye


@pytest.fixture
def locale_factory():
    return make_locale


@pytest.fixture
def datetime_clock():
    return FixedDateTimeClock()


@pytest.fixture
def data_root(tmp_path):
    """Core checkout layout with a colours file and all locale files"""
    core = tmp_path / "xivdyetools-core"
    locales = core / "src" / "data" / "locales"
    locales.mkdir(parents=True)

    (core / "src" / "data" / "colors_xiv.json").write_text(
        json.dumps([SAMPLE_DYE], indent=2) + "\n", encoding="utf-8"
    )
    for code in LOCALE_CODES:
        (locales / f"{code}.json").write_text(
            json.dumps(make_locale(code), indent=2) + "\n", encoding="utf-8"
        )
    return core


@pytest.fixture
def make_settings(data_root):
    def _make(**overrides):
        values = {
            "CORE_PATH": data_root,
            "MAINTAINER_API_KEY": None,
            "ENVIRONMENT": "development",
            "LOG_DIR": str(data_root.parent / "logs"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def settings(make_settings):
    return make_settings()


@pytest.fixture
def session_store():
    return SessionStore()


@pytest.fixture
def make_client(make_settings):
    """Build a TestClient around a fresh app; returns (client, app)"""
    def _make(session_store=None, rate_limiters=None, **setting_overrides):
        app = create_app(
            make_settings(**setting_overrides),
            session_store=session_store,
            rate_limiters=rate_limiters,
        )
        return TestClient(app), app
    return _make


@pytest.fixture
def client(make_client):
    test_client, _ = make_client()
    return test_client


@pytest.fixture
def fake_clock(monkeypatch):
    """Freeze the wall clock the rate-limit storage reads"""
    clock = FakeClock()
    monkeypatch.setattr(time, "time", clock)
    return clock


@pytest.fixture
def limiters(fake_clock):
    return build_rate_limiters()
