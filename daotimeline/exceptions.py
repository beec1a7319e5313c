"""Exception hierarchy for daotimeline.

Parsing is lenient and never raises for malformed feeds; these exceptions cover
programmer errors, configuration problems and the fetch collaborators.
"""

from typing import Optional


class TimelineError(Exception):
    """Base exception for all daotimeline errors."""


class ICSValueError(TimelineError, ValueError):
    """A single iCalendar value could not be decoded.

    Raised by the value decoders and caught by the block parser, which turns it
    into a dropped block or an absent optional field.
    """


class InvalidEventError(TimelineError, ValueError):
    """An event violates a model invariant (e.g. end before start).

    Raised when:
    - the exporter is handed an event whose end precedes its start
    - a UnifiedEvent is constructed with an inverted time range (pydantic
      reports it wrapped in a ``ValidationError``, itself a ``ValueError``)
    """


class ConfigError(TimelineError):
    """Configuration could not be loaded or is structurally invalid."""


class SourceFetchError(TimelineError):
    """Base exception for failures talking to an event source."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ICSFetchError(SourceFetchError):
    """ICS feed could not be fetched."""


class ProposalFetchError(SourceFetchError):
    """Governance proposals could not be fetched or the GraphQL call failed."""
