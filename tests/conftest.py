"""
Shared pytest fixtures for the event feed test suite.

Every test runs against a fixed clock (Saturday 2026-01-10, noon in Toronto)
so yearless dates, relative dates and the Quality Gate windows are stable.
"""

import os
from datetime import datetime
from typing import Optional

import pytest

from eventfeed.config import Settings
from eventfeed.core.dates import CIVIL_TZ
from eventfeed.core.dedupe import generate_event_id
from eventfeed.core.models import Event
from eventfeed.core.parse_log import ParseLog, RawDataLog
from eventfeed.core.quality import QualityGate

NOW = datetime(2026, 1, 10, 12, 0, tzinfo=CIVIL_TZ)

CONFIG_VARS = (
    "EVENTS_FILE",
    "PRICE_CEILING",
    "REJECT_EXPENSIVE",
    "PAST_WINDOW_DAYS",
    "FUTURE_WINDOW_DAYS",
    "BATCH_SIZE",
    "ITEM_DELAY_SECONDS",
    "BATCH_DELAY_SECONDS",
    "PAGE_FETCHER",
    "HTTP_TIMEOUT",
    "LOG_LEVEL",
    "EXCLUDED_LOCATIONS",
)


@pytest.fixture
def clock():
    """Return a clock that always reads NOW."""
    return lambda: NOW


@pytest.fixture
def settings():
    return Settings(batch_size=2, item_delay_seconds=0.5, batch_delay_seconds=5)


@pytest.fixture
def gate(settings, clock):
    return QualityGate(settings, clock=clock)


@pytest.fixture
def parse_log():
    return ParseLog()


@pytest.fixture
def raw_log():
    return RawDataLog()


@pytest.fixture
def make_event():
    """
    Return a function that creates Event objects with sensible defaults.

    The id is derived from the url, as in the pipeline. All defaults can be
    overridden via keyword arguments.

    Example:
        event = make_event(title="Jazz at the Rex", price_amount=25)
    """

    def _make_event(
        title: str = "Rooftop Salsa Night",
        url: str = "https://www.eventbrite.ca/e/rooftop-salsa-night-123",
        date: Optional[str] = "2026-02-14T20:00:00-05:00",
        **kwargs,
    ) -> Event:
        defaults = {
            "id": generate_event_id(url),
            "title": title,
            "url": url,
            "date": date,
            "source": "Eventbrite",
            "last_updated": "2026-01-01T09:00:00-05:00",
        }
        defaults.update(kwargs)
        return Event(**defaults)

    return _make_event


@pytest.fixture
def clean_env(monkeypatch):
    """Isolate os.environ so .env loading cannot leak between tests."""
    env = {k: v for k, v in os.environ.items() if k not in CONFIG_VARS}
    monkeypatch.setattr(os, "environ", env)
    return env
