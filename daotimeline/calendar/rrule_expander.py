"""RRULE parsing and bounded expansion for recurring timeline events.

Only the subset used by governance calendars is supported: FREQ, INTERVAL,
COUNT, UNTIL and BYDAY (honoured for WEEKLY rules). BYMONTHDAY and BYMONTH are
decoded into the rule but do not constrain expansion.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Iterable, Iterator, Optional

from dateutil.relativedelta import relativedelta

from ..core.timezone_utils import now_local, to_instant
from ..exceptions import ICSValueError
from .diagnostics import (
    INVALID_RRULE_VALUE,
    UNKNOWN_FREQUENCY,
    UNKNOWN_RRULE_KEY,
    DiagnosticSink,
    report,
)
from .ics_values import parse_ics_date
from .models import Frequency, RecurrenceRule, UnifiedEvent

logger = logging.getLogger(__name__)

MAX_RECURRENCE_INSTANCES = 100
DEFAULT_EXPANSION_MONTHS = 6
LOOKBACK_MONTHS = 1
# Upper bound on generated candidates per series (accepted or not).
MAX_CANDIDATE_STEPS = 100_000

WEEKDAY_CODES = ("MO", "TU", "WE", "TH", "FR", "SA", "SU")


@dataclass
class RRuleExpanderConfig:
    """Configuration for RRULE expansion.

    Consolidates all expansion limits with explicit defaults.
    """

    max_instances: int = MAX_RECURRENCE_INSTANCES
    expansion_months: int = DEFAULT_EXPANSION_MONTHS
    lookback_months: int = LOOKBACK_MONTHS
    max_candidate_steps: int = MAX_CANDIDATE_STEPS

    @classmethod
    def from_settings(cls, settings: Any) -> "RRuleExpanderConfig":
        """Extract expansion limits from a settings object (e.g. TimelineConfig).

        Args:
            settings: Object with ``max_recurrence_instances`` / ``expansion_months``

        Returns:
            RRuleExpanderConfig with values from settings or defaults
        """
        return cls(
            max_instances=getattr(settings, "max_recurrence_instances", MAX_RECURRENCE_INSTANCES),
            expansion_months=getattr(settings, "expansion_months", DEFAULT_EXPANSION_MONTHS),
        )


def _parse_int(key: str, value: str, diagnostics: Optional[DiagnosticSink]) -> Optional[int]:
    try:
        return int(value)
    except ValueError:
        report(diagnostics, INVALID_RRULE_VALUE, f"{key}={value!r}")
        return None


def _parse_int_set(
    key: str, value: str, diagnostics: Optional[DiagnosticSink]
) -> Optional[frozenset[int]]:
    numbers = set()
    for item in value.split(","):
        number = _parse_int(key, item.strip(), diagnostics)
        if number is not None:
            numbers.add(number)
    return frozenset(numbers) or None


def parse_rrule(rule: Optional[str], diagnostics: Optional[DiagnosticSink] = None) -> Optional[RecurrenceRule]:
    """Parse an RRULE value into a RecurrenceRule.

    Args:
        rule: RRULE value (e.g. "FREQ=WEEKLY;BYDAY=MO;COUNT=10"), with or
            without the leading "RRULE:" property name
        diagnostics: Optional sink for ignored keys and bad values

    Returns:
        The decoded rule, or None for empty input. Unknown keys are ignored,
        undecodable numbers fall back to defaults and an unknown FREQ falls
        back to DAILY.
    """
    if not rule or not rule.strip():
        return None

    text = rule.strip()
    if text.upper().startswith("RRULE:"):
        text = text[len("RRULE:"):]

    values: dict[str, Any] = {}
    for part in text.split(";"):
        if not part.strip():
            continue
        if "=" not in part:
            report(diagnostics, INVALID_RRULE_VALUE, part)
            continue
        key, value = part.split("=", 1)
        key = key.strip().upper()
        value = value.strip()

        if key == "FREQ":
            try:
                values["frequency"] = Frequency(value.upper())
            except ValueError:
                report(diagnostics, UNKNOWN_FREQUENCY, value)
        elif key == "INTERVAL":
            interval = _parse_int(key, value, diagnostics)
            if interval is not None and interval >= 1:
                values["interval"] = interval
        elif key == "COUNT":
            count = _parse_int(key, value, diagnostics)
            # COUNT=0 is treated as "no count"
            values["count"] = count if count and count > 0 else None
        elif key == "UNTIL":
            try:
                values["until"], _ = parse_ics_date(value)
            except ICSValueError as e:
                report(diagnostics, INVALID_RRULE_VALUE, f"UNTIL: {e}")
        elif key == "BYDAY":
            days = frozenset(day.strip().upper() for day in value.split(",") if day.strip())
            values["by_day"] = days or None
        elif key == "BYMONTHDAY":
            values["by_month_day"] = _parse_int_set(key, value, diagnostics)
        elif key == "BYMONTH":
            values["by_month"] = _parse_int_set(key, value, diagnostics)
        else:
            report(diagnostics, UNKNOWN_RRULE_KEY, key)

    return RecurrenceRule(**values)


def weekday_code(day: str) -> str:
    """Strip an ordinal prefix from a BYDAY entry ("1MO" and "-1FR" give "MO" and "FR")."""
    return day.lstrip("+-0123456789")


def matches_by_day(candidate: datetime, by_day: Iterable[str]) -> bool:
    """True when the candidate's weekday is listed in BYDAY."""
    code = WEEKDAY_CODES[candidate.weekday()]
    return any(weekday_code(day) == code for day in by_day)


def _step(frequency: Frequency, amount: int) -> relativedelta:
    if frequency == Frequency.WEEKLY:
        return relativedelta(weeks=amount)
    if frequency == Frequency.MONTHLY:
        return relativedelta(months=amount)
    if frequency == Frequency.YEARLY:
        return relativedelta(years=amount)
    return relativedelta(days=amount)


def iter_candidates(anchor: datetime, rule: RecurrenceRule, max_steps: int) -> Iterator[datetime]:
    """Yield the candidates after ``anchor``, each one interval after the previous.

    Month and year steps clamp to the last day of a shorter month and keep the
    clamped day from then on: Jan 31 gives Feb 29 then Mar 29.
    Stops after ``max_steps`` candidates or when the date leaves the supported range.
    """
    step = _step(rule.frequency, rule.interval)
    candidate = anchor
    for k in range(1, max_steps + 1):
        try:
            candidate = candidate + step
        except (OverflowError, ValueError):
            logger.debug("Recurrence from %s left the supported date range at step %d", anchor, k)
            return
        yield candidate


def default_window(now: datetime, config: RRuleExpanderConfig) -> tuple[datetime, datetime]:
    """Default expansion window: one month back to ``expansion_months`` ahead of ``now``."""
    return (
        now - relativedelta(months=config.lookback_months),
        now + relativedelta(months=config.expansion_months),
    )


def is_expanded_instance(event: UnifiedEvent) -> bool:
    """True for an occurrence produced by expansion (it carries an instance index)."""
    return getattr(event.metadata, "instance_index", None) is not None


def _instance(event: UnifiedEvent, index: int, start: datetime, duration: Optional[timedelta]) -> UnifiedEvent:
    return event.model_copy(
        update={
            "id": f"{event.id}-{index}",
            "start_date": start,
            "end_date": start + duration if duration is not None else None,
            "recurrence_anchor_id": event.id,
            "metadata": event.metadata.model_copy(update={"instance_index": index}),
        }
    )


def expand_recurring_event(
    event: UnifiedEvent,
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
    config: Optional[RRuleExpanderConfig] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[UnifiedEvent]:
    """Expand one event into its occurrences inside a window.

    Args:
        event: Parent event; only recurring events with an RRULE in their metadata expand
        range_start: Inclusive window start (defaults to ``now`` minus one month)
        range_end: Inclusive window end (defaults to ``now`` plus ``expansion_months``)
        now: Reference time for the default window (defaults to ``now_local()``)
        config: Expansion limits
        diagnostics: Optional sink for RRULE parse problems

    Returns:
        ``[event]`` for non-recurring events, otherwise the accepted instances
        in chronological order (possibly empty). Instance ids are
        ``<parent id>-<index>`` and share ``recurrence_anchor_id = parent id``.
        Instances that were already expanded are returned unchanged.
    """
    rrule_text = getattr(event.metadata, "rrule", None)
    if not event.is_recurring or not rrule_text or is_expanded_instance(event):
        return [event]

    rule = parse_rrule(rrule_text, diagnostics)
    if rule is None:
        return [event]

    config = config or RRuleExpanderConfig()
    if range_start is None or range_end is None:
        window_start, window_end = default_window(now or now_local(), config)
        range_start = range_start or window_start
        range_end = range_end or window_end

    window_start_instant = to_instant(range_start)
    window_end_instant = to_instant(range_end)
    until_instant = to_instant(rule.until) if rule.until is not None else None
    duration = event.end_date - event.start_date if event.end_date is not None else None

    instances: list[UnifiedEvent] = []
    anchor = event.start_date
    anchor_instant = to_instant(anchor)
    if window_start_instant <= anchor_instant <= window_end_instant:
        instances.append(_instance(event, 0, anchor, duration))

    if len(instances) < config.max_instances:
        for candidate in iter_candidates(anchor, rule, config.max_candidate_steps):
            instant = to_instant(candidate)
            if until_instant is not None and instant > until_instant:
                break
            if instant > window_end_instant:
                break
            if rule.count is not None and len(instances) >= rule.count:
                break
            if rule.frequency == Frequency.WEEKLY and rule.by_day and not matches_by_day(candidate, rule.by_day):
                continue
            if instant < window_start_instant:
                continue

            instances.append(_instance(event, len(instances), candidate, duration))
            if len(instances) >= config.max_instances:
                logger.debug("Recurrence cap (%d) reached for %s", config.max_instances, event.id)
                break

    logger.debug("Expanded %s (%s) into %d instance(s)", event.id, rrule_text, len(instances))
    return instances


def expand_all_recurring_events(
    events: Iterable[UnifiedEvent],
    range_start: Optional[datetime] = None,
    range_end: Optional[datetime] = None,
    *,
    now: Optional[datetime] = None,
    config: Optional[RRuleExpanderConfig] = None,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[UnifiedEvent]:
    """Expand every event and flatten the result, keeping input order."""
    now = now or now_local()
    expanded: list[UnifiedEvent] = []
    for event in events:
        expanded.extend(
            expand_recurring_event(
                event, range_start, range_end, now=now, config=config, diagnostics=diagnostics
            )
        )
    return expanded


class RRuleExpander:
    """Expander bound to one configuration and one reference time.

    Keeps running totals so callers can log how much a feed expanded.
    """

    def __init__(
        self,
        config: Optional[RRuleExpanderConfig] = None,
        now: Optional[datetime] = None,
        diagnostics: Optional[DiagnosticSink] = None,
    ) -> None:
        """Initialize expander.

        Args:
            config: Expansion limits (defaults to RRuleExpanderConfig())
            now: Reference time; read once from the clock if omitted
            diagnostics: Optional sink for RRULE parse problems
        """
        self.config = config or RRuleExpanderConfig()
        self.now = now or now_local()
        self.diagnostics = diagnostics
        self.series_expanded = 0
        self.instances_generated = 0

        logger.debug(
            "RRuleExpander initialized: max_instances=%d, expansion_months=%d",
            self.config.max_instances,
            self.config.expansion_months,
        )

    def expand(
        self,
        event: UnifiedEvent,
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[UnifiedEvent]:
        """Expand one event with the bound configuration."""
        result = expand_recurring_event(
            event,
            range_start,
            range_end,
            now=self.now,
            config=self.config,
            diagnostics=self.diagnostics,
        )
        if event.is_recurring and not is_expanded_instance(event):
            self.series_expanded += 1
            self.instances_generated += len(result)
        return result

    def expand_all(
        self,
        events: Iterable[UnifiedEvent],
        range_start: Optional[datetime] = None,
        range_end: Optional[datetime] = None,
    ) -> list[UnifiedEvent]:
        """Expand and flatten a list of events."""
        expanded: list[UnifiedEvent] = []
        for event in events:
            expanded.extend(self.expand(event, range_start, range_end))
        return expanded
