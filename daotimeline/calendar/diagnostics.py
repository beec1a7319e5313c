"""Observable drop paths for the lenient parsers.

Every place where malformed input is silently skipped reports a short reason
code to an optional sink. Callers that do not care pass nothing; tests and
telemetry pass a ``ParseDiagnostics`` (or any callable) and assert on counts.
"""

from __future__ import annotations

import logging
from collections import Counter
from typing import Callable, Optional

logger = logging.getLogger(__name__)

DiagnosticSink = Callable[[str, str], None]

# Reason codes
LINE_WITHOUT_COLON = "line_without_colon"
UNTERMINATED_COMPONENT = "unterminated_component"
MISSING_UID = "missing_uid"
MISSING_DTSTART = "missing_dtstart"
INVALID_DTSTART = "invalid_dtstart"
INVALID_DTEND = "invalid_dtend"
INVALID_DURATION = "invalid_duration"
END_BEFORE_START = "end_before_start"
UNKNOWN_RRULE_KEY = "unknown_rrule_key"
UNKNOWN_FREQUENCY = "unknown_frequency"
INVALID_RRULE_VALUE = "invalid_rrule_value"


class ParseDiagnostics:
    """Counting diagnostic sink.

    Usage:
        diagnostics = ParseDiagnostics()
        events = parse_ics(content, diagnostics=diagnostics)
        assert diagnostics.count(MISSING_UID) == 1
    """

    def __init__(self, keep_details: bool = True) -> None:
        self.counts: Counter[str] = Counter()
        self.details: list[tuple[str, str]] = []
        self._keep_details = keep_details

    def __call__(self, reason: str, detail: str = "") -> None:
        self.counts[reason] += 1
        if self._keep_details:
            self.details.append((reason, detail))

    def count(self, reason: str) -> int:
        return self.counts[reason]

    @property
    def total(self) -> int:
        return sum(self.counts.values())

    def reset(self) -> None:
        self.counts.clear()
        self.details.clear()

    def __repr__(self) -> str:
        return f"ParseDiagnostics({dict(self.counts)})"


def report(diagnostics: Optional[DiagnosticSink], reason: str, detail: str = "") -> None:
    """Send a drop reason to the sink (if any) and to the debug log."""
    logger.debug("Dropped input (%s): %s", reason, detail)
    if diagnostics is not None:
        diagnostics(reason, detail)
