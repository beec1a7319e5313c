from collections.abc import AsyncIterator, Generator
from datetime import datetime
from typing import Any, Callable

import pytest

from daotimeline.calendar.models import (
    EventSourceConfig,
    IcsMetadata,
    SourceKind,
    UnifiedEvent,
)
from daotimeline.core.http_client import close_all_clients

TIMELINE_ENV_VARS = (
    "DAO_TIMELINE_TEST_TIME",
    "DAO_TIMELINE_SOURCES",
    "DAO_CALENDAR_ICS_URL",
    "DAO_TIMELINE_EXPANSION_MONTHS",
    "DAO_TIMELINE_MAX_INSTANCES",
    "DAO_TIMELINE_DESCRIPTION_LIMIT",
    "DAO_TIMELINE_FETCH_TIMEOUT",
    "DAO_TIMELINE_PROPOSAL_LIMIT",
    "DAO_TIMELINE_LOG_LEVEL",
    "DAO_TIMELINE_DEBUG",
    "SNAPSHOT_API_URL",
)


@pytest.fixture(autouse=True)
def clean_test_environment(monkeypatch: Any) -> Generator[None, Any, None]:
    """Clear timeline environment variables so host settings never leak into tests."""
    for name in TIMELINE_ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


@pytest.fixture(autouse=True)
async def cleanup_shared_http_clients() -> AsyncIterator[None]:
    """Close shared httpx clients after every test."""
    yield
    await close_all_clients()


@pytest.fixture
def now() -> datetime:
    """Fixed reference time: Monday 2024-01-15 09:00 local wall-clock time.

    Naive on purpose: naive values are local time everywhere in the package,
    so day boundaries in tests do not depend on the host timezone.
    """
    return datetime(2024, 1, 15, 9, 0)


@pytest.fixture
def ics_source() -> EventSourceConfig:
    return EventSourceConfig(
        id="main-calendar",
        type=SourceKind.ICS,
        name="DAO Calendar",
        url="https://calendar.example.com/dao.ics",
        color="primary",
    )


@pytest.fixture
def snapshot_source() -> EventSourceConfig:
    return EventSourceConfig(
        id="snapshot-proposals",
        type=SourceKind.SNAPSHOT_PROPOSALS,
        name="Governance",
        url="mainnet.ssvnetwork.eth",
        color="secondary",
    )


@pytest.fixture
def make_event() -> Callable[..., UnifiedEvent]:
    """Factory for ICS-kind UnifiedEvents with sensible defaults."""

    def _make(
        event_id: str = "src-1",
        start: datetime = datetime(2024, 1, 15, 10, 0),
        end: Any = None,
        source_id: str = "src",
        title: str = "Test Event",
        rrule: Any = None,
        **overrides: Any,
    ) -> UnifiedEvent:
        fields: dict[str, Any] = {
            "id": event_id,
            "source_id": source_id,
            "title": title,
            "start_date": start,
            "end_date": end,
            "source_kind": SourceKind.ICS,
            "source_name": "Test Source",
            "is_recurring": rrule is not None,
            "recurrence_anchor_id": event_id if rrule else None,
            "metadata": IcsMetadata(original_uid=event_id, rrule=rrule),
        }
        fields.update(overrides)
        return UnifiedEvent(**fields)

    return _make


# ==================== ICS Test Data Fixtures ====================


@pytest.fixture
def sample_ics_simple() -> str:
    """One timed UTC event with location and description."""
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "PRODID:-//DAO Timeline Test//EN\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:simple-event-001\r\n"
        "DTSTART:20240115T100000Z\r\n"
        "DTEND:20240115T110000Z\r\n"
        "SUMMARY:Team Meeting\r\n"
        "LOCATION:Conference Room A\r\n"
        "DESCRIPTION:Weekly sync\\, agenda in doc\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )


@pytest.fixture
def sample_ics_recurring() -> str:
    """Weekly Monday meeting limited to ten occurrences."""
    return (
        "BEGIN:VCALENDAR\r\n"
        "VERSION:2.0\r\n"
        "BEGIN:VEVENT\r\n"
        "UID:weekly-standup\r\n"
        "DTSTART:20240115T100000\r\n"
        "DTEND:20240115T103000\r\n"
        "SUMMARY:Community Call\r\n"
        "RRULE:FREQ=WEEKLY;BYDAY=MO;COUNT=10\r\n"
        "END:VEVENT\r\n"
        "END:VCALENDAR\r\n"
    )
