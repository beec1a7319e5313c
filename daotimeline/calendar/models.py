"""Data models for the unified DAO timeline."""

from datetime import datetime
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from ..core.timezone_utils import to_instant
from ..exceptions import InvalidEventError

UNTITLED_EVENT = "Untitled Event"


class SourceKind(str, Enum):
    """Origin of a unified event."""

    ICS = "ics"
    SNAPSHOT_PROPOSALS = "snapshot_proposals"
    AI_EXTRACTED = "ai_extracted"


class Frequency(str, Enum):
    """Supported RRULE frequencies."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    YEARLY = "YEARLY"


class RawCalendarEvent(BaseModel):
    """One VEVENT block decoded from iCalendar text, before adaptation."""

    uid: str = Field(..., description="Event UID")
    title: str = Field(default=UNTITLED_EVENT, description="Unescaped SUMMARY")
    description: Optional[str] = Field(default=None, description="Unescaped DESCRIPTION")
    start: datetime = Field(..., description="DTSTART (aware for UTC, naive for local)")
    end: Optional[datetime] = Field(default=None, description="DTEND, or DTSTART + DURATION")
    location: Optional[str] = None
    url: Optional[str] = None
    recurrence_rule: Optional[str] = Field(default=None, description="Raw RRULE value")
    is_all_day: bool = False

    model_config = ConfigDict(frozen=True)


class RecurrenceRule(BaseModel):
    """Decoded RRULE value."""

    frequency: Frequency = Frequency.DAILY
    interval: int = Field(default=1, ge=1)
    count: Optional[int] = None
    until: Optional[datetime] = None
    by_day: Optional[frozenset[str]] = None
    by_month_day: Optional[frozenset[int]] = None
    by_month: Optional[frozenset[int]] = None

    model_config = ConfigDict(frozen=True)


# Source-specific extras, discriminated by ``kind`` (which mirrors SourceKind).


class _EventMetadata(BaseModel):
    instance_index: Optional[int] = Field(
        default=None, description="Position within an expanded recurring series"
    )

    model_config = ConfigDict(frozen=True)


class IcsMetadata(_EventMetadata):
    kind: Literal["ics"] = "ics"
    original_uid: str
    rrule: Optional[str] = None


class ProposalMetadata(_EventMetadata):
    kind: Literal["snapshot_proposals"] = "snapshot_proposals"
    state: str
    created: int
    space_id: str


DateConfidence = Literal["high", "medium", "low"]
AIEventType = Literal["milestone", "deadline", "launch", "meeting", "other"]


class AIMetadata(_EventMetadata):
    kind: Literal["ai_extracted"] = "ai_extracted"
    source_proposal_id: str
    source_proposal_title: str
    source_proposal_url: str
    excerpt: str = ""
    confidence: DateConfidence = "medium"
    event_type: AIEventType = "other"


EventMetadata = Annotated[
    Union[IcsMetadata, ProposalMetadata, AIMetadata], Field(discriminator="kind")
]


class UnifiedEvent(BaseModel):
    """Canonical representation of one timeline occurrence, whatever its origin."""

    id: str = Field(..., description="Globally unique per instance")
    source_id: str = Field(..., description="Configured source that produced the event")
    title: str
    description: Optional[str] = None
    start_date: datetime
    end_date: Optional[datetime] = None
    is_all_day: bool = False
    source_kind: SourceKind
    source_name: str
    source_url: Optional[str] = None
    location: Optional[str] = None
    is_recurring: bool = False
    recurrence_anchor_id: Optional[str] = Field(
        default=None, description="Shared by every instance of one recurring series"
    )
    metadata: EventMetadata

    model_config = ConfigDict(frozen=True, use_enum_values=True)

    @model_validator(mode="after")
    def _check_invariants(self) -> "UnifiedEvent":
        if self.end_date is not None and to_instant(self.end_date) < to_instant(self.start_date):
            raise InvalidEventError(
                f"Event {self.id!r} ends ({self.end_date}) before it starts ({self.start_date})"
            )
        if self.metadata.kind != self.source_kind:
            raise InvalidEventError(
                f"Event {self.id!r} carries {self.metadata.kind!r} metadata "
                f"for source kind {self.source_kind!r}"
            )
        return self


class SerializedEvent(BaseModel):
    """UnifiedEvent with ISO-8601 UTC strings in place of datetimes, for transport."""

    id: str
    source_id: str
    title: str
    description: Optional[str] = None
    start_date: str
    end_date: Optional[str] = None
    is_all_day: bool = False
    source_kind: SourceKind
    source_name: str
    source_url: Optional[str] = None
    location: Optional[str] = None
    is_recurring: bool = False
    recurrence_anchor_id: Optional[str] = None
    metadata: EventMetadata

    model_config = ConfigDict(frozen=True, use_enum_values=True)


class EventGroup(BaseModel):
    """Events that start on the same calendar day, with a display label."""

    date: datetime = Field(..., description="Midnight of the grouped day")
    label: str = Field(..., description='"Today", "Tomorrow" or a full date string')
    events: list[SerializedEvent] = Field(default_factory=list)


class TimelineFilters(BaseModel):
    """Query applied by the aggregation pipeline."""

    source_ids: frozenset[str] = Field(default_factory=frozenset, description="Empty means all")
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    include_past: bool = False

    model_config = ConfigDict(frozen=True)


class EventSourceConfig(BaseModel):
    """Configuration for one event source."""

    id: str
    type: SourceKind
    name: str
    enabled: bool = True
    url: str = Field(..., description="Feed URL for ICS sources, space id for Snapshot")
    color: Optional[str] = None

    model_config = ConfigDict(frozen=True, use_enum_values=True)


class ProposalRecord(BaseModel):
    """Governance proposal as returned by the Snapshot GraphQL API."""

    id: str
    title: str
    body: Optional[str] = ""
    created: int
    start: int
    end: int
    state: str
    link: Optional[str] = ""

    model_config = ConfigDict(frozen=True)


class AIExtractedEvent(BaseModel):
    """Milestone extracted from proposal text by the external AI service."""

    title: str
    date: str = Field(..., description="YYYY-MM-DD")
    date_confidence: DateConfidence = "medium"
    description: str = ""
    excerpt: str = ""
    event_type: AIEventType = "other"
    source_proposal_id: str
    source_proposal_title: str
    source_proposal_url: str

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)
