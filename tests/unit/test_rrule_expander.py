"""Unit tests for RRULE parsing and bounded expansion."""

from datetime import datetime, timedelta, timezone

import pytest

from daotimeline.calendar.diagnostics import (
    INVALID_RRULE_VALUE,
    UNKNOWN_FREQUENCY,
    UNKNOWN_RRULE_KEY,
    ParseDiagnostics,
)
from daotimeline.calendar.models import Frequency
from daotimeline.calendar.rrule_expander import (
    MAX_RECURRENCE_INSTANCES,
    RRuleExpander,
    RRuleExpanderConfig,
    expand_all_recurring_events,
    expand_recurring_event,
    matches_by_day,
    parse_rrule,
)
from daotimeline.core.config_manager import TimelineConfig

pytestmark = pytest.mark.unit


class TestParseRRule:
    """Tests for RRULE decoding."""

    def test_empty_rule(self):
        assert parse_rrule("") is None
        assert parse_rrule(None) is None

    def test_full_rule(self):
        rule = parse_rrule("FREQ=WEEKLY;INTERVAL=2;COUNT=10;BYDAY=MO,WE")
        assert rule.frequency == Frequency.WEEKLY
        assert rule.interval == 2
        assert rule.count == 10
        assert rule.by_day == frozenset({"MO", "WE"})

    def test_defaults(self):
        rule = parse_rrule("COUNT=3")
        assert rule.frequency == Frequency.DAILY
        assert rule.interval == 1
        assert rule.until is None

    def test_until_utc(self):
        rule = parse_rrule("FREQ=DAILY;UNTIL=20240120T235959Z")
        assert rule.until == datetime(2024, 1, 20, 23, 59, 59, tzinfo=timezone.utc)

    def test_until_date(self):
        assert parse_rrule("FREQ=DAILY;UNTIL=20240120").until == datetime(2024, 1, 20)

    def test_unknown_frequency_falls_back_to_daily(self):
        diagnostics = ParseDiagnostics()
        rule = parse_rrule("FREQ=HOURLY", diagnostics)
        assert rule.frequency == Frequency.DAILY
        assert diagnostics.count(UNKNOWN_FREQUENCY) == 1

    def test_bad_numbers_fall_back(self):
        diagnostics = ParseDiagnostics()
        rule = parse_rrule("FREQ=DAILY;INTERVAL=abc;COUNT=x", diagnostics)
        assert rule.interval == 1
        assert rule.count is None
        assert diagnostics.count(INVALID_RRULE_VALUE) == 2

    def test_zero_interval_and_count(self):
        rule = parse_rrule("FREQ=DAILY;INTERVAL=0;COUNT=0")
        assert rule.interval == 1
        assert rule.count is None

    def test_unknown_keys_are_ignored(self):
        diagnostics = ParseDiagnostics()
        rule = parse_rrule("FREQ=MONTHLY;WKST=SU;BYSETPOS=1", diagnostics)
        assert rule.frequency == Frequency.MONTHLY
        assert diagnostics.count(UNKNOWN_RRULE_KEY) == 2

    def test_month_constraints_are_parsed(self):
        rule = parse_rrule("FREQ=YEARLY;BYMONTH=1,7;BYMONTHDAY=15")
        assert rule.by_month == frozenset({1, 7})
        assert rule.by_month_day == frozenset({15})

    def test_rrule_prefix_accepted(self):
        assert parse_rrule("RRULE:FREQ=WEEKLY").frequency == Frequency.WEEKLY


class TestMatchesByDay:
    """Tests for BYDAY weekday matching."""

    def test_plain_code(self):
        assert matches_by_day(datetime(2024, 1, 15), ["MO"])
        assert not matches_by_day(datetime(2024, 1, 16), ["MO"])

    def test_ordinal_prefix_is_ignored(self):
        assert matches_by_day(datetime(2024, 1, 15), ["1MO"])
        assert matches_by_day(datetime(2024, 1, 26), ["-1FR"])


class TestExpandRecurringEvent:
    """Tests for instance generation."""

    def test_non_recurring_event_returned_as_is(self, make_event, now):
        event = make_event()
        assert expand_recurring_event(event, now=now) == [event]

    def test_weekly_monday_count_ten(self, make_event, now):
        event = make_event(
            "cal-standup",
            start=datetime(2024, 1, 15, 10, 0),
            end=datetime(2024, 1, 15, 10, 30),
            rrule="FREQ=WEEKLY;BYDAY=MO;COUNT=10",
        )
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 12, 31), now=now
        )
        assert len(instances) == 10
        for index, instance in enumerate(instances):
            assert instance.id == f"cal-standup-{index}"
            assert instance.start_date.weekday() == 0
            assert instance.end_date - instance.start_date == timedelta(minutes=30)
            assert instance.recurrence_anchor_id == "cal-standup"
            assert instance.metadata.instance_index == index
        for earlier, later in zip(instances, instances[1:]):
            assert later.start_date - earlier.start_date == timedelta(days=7)

    def test_unbounded_weekly_hits_hard_cap(self, make_event, now):
        event = make_event("weekly", start=datetime(2024, 1, 15, 10, 0), rrule="FREQ=WEEKLY")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2100, 1, 1), now=now
        )
        assert len(instances) == MAX_RECURRENCE_INSTANCES

    def test_cap_is_configurable(self, make_event, now):
        event = make_event("daily", rrule="FREQ=DAILY")
        config = RRuleExpanderConfig(max_instances=5)
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2025, 1, 1), now=now, config=config
        )
        assert len(instances) == 5

    def test_until_stops_expansion(self, make_event, now):
        event = make_event(
            "daily", start=datetime(2024, 1, 15, 10, 0), rrule="FREQ=DAILY;UNTIL=20240119"
        )
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 12, 31), now=now
        )
        assert [i.start_date.day for i in instances] == [15, 16, 17, 18]

    def test_range_end_stops_expansion(self, make_event, now):
        event = make_event("daily", start=datetime(2024, 1, 15, 10, 0), rrule="FREQ=DAILY")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 1, 17, 23, 0), now=now
        )
        assert len(instances) == 3

    def test_candidates_before_range_start_are_skipped(self, make_event, now):
        event = make_event("daily", start=datetime(2024, 1, 1, 10, 0), rrule="FREQ=DAILY;COUNT=3")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 10), datetime(2024, 2, 1), now=now
        )
        assert [i.start_date.day for i in instances] == [10, 11, 12]
        assert instances[0].id == "daily-0"

    def test_anchor_outside_window_is_not_emitted(self, make_event, now):
        event = make_event("old", start=datetime(2023, 1, 2, 10, 0), rrule="FREQ=WEEKLY")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 1, 31), now=now
        )
        assert instances
        assert all(i.start_date >= datetime(2024, 1, 1) for i in instances)

    def test_interval(self, make_event, now):
        event = make_event("every-other", rrule="FREQ=DAILY;INTERVAL=2;COUNT=3")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 2, 1), now=now
        )
        assert [i.start_date.day for i in instances] == [15, 17, 19]

    def test_monthly_from_month_end_steps_from_previous_occurrence(self, make_event, now):
        event = make_event("month-end", start=datetime(2024, 1, 31, 12, 0), rrule="FREQ=MONTHLY;COUNT=4")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 12, 31), now=now
        )
        assert [i.start_date.date().isoformat() for i in instances] == [
            "2024-01-31",
            "2024-02-29",
            "2024-03-29",
            "2024-04-29",
        ]

    def test_yearly_from_leap_day(self, make_event, now):
        event = make_event("leap", start=datetime(2024, 2, 29), rrule="FREQ=YEARLY;COUNT=2")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2026, 1, 1), now=now
        )
        assert [i.start_date for i in instances] == [datetime(2024, 2, 29), datetime(2025, 2, 28)]

    def test_weekly_byday_mismatch_terminates(self, make_event, now):
        """A BYDAY set that never matches the anchor's weekday yields only the anchor."""
        event = make_event("tuesday", start=datetime(2024, 1, 15, 10, 0), rrule="FREQ=WEEKLY;BYDAY=TU")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 6, 30), now=now
        )
        assert [i.id for i in instances] == ["tuesday-0"]

    def test_by_month_day_is_informational(self, make_event, now):
        event = make_event(
            "monthly", start=datetime(2024, 1, 15), rrule="FREQ=MONTHLY;BYMONTHDAY=1;COUNT=2"
        )
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 12, 31), now=now
        )
        assert [i.start_date.day for i in instances] == [15, 15]

    def test_default_window_uses_now(self, make_event, now):
        event = make_event("daily", start=datetime(2023, 1, 1, 8, 0), rrule="FREQ=DAILY")
        instances = expand_recurring_event(event, now=now, config=RRuleExpanderConfig(max_instances=1000))
        assert instances[0].start_date == datetime(2023, 12, 16, 8, 0)
        assert instances[-1].start_date == datetime(2024, 7, 15, 8, 0)

    def test_zero_length_end_kept(self, make_event, now):
        start = datetime(2024, 1, 15, 10, 0)
        event = make_event("zero", start=start, end=start, rrule="FREQ=DAILY;COUNT=2")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 2, 1), now=now
        )
        assert all(i.end_date == i.start_date for i in instances)

    def test_utc_anchor_against_naive_window(self, make_event, now):
        event = make_event(
            "utc", start=datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc), rrule="FREQ=DAILY;COUNT=3"
        )
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 2, 1), now=now
        )
        assert len(instances) == 3
        assert all(i.start_date.tzinfo is not None for i in instances)

    def test_expanded_instances_are_not_expanded_again(self, make_event, now):
        event = make_event("weekly", rrule="FREQ=WEEKLY;BYDAY=MO;COUNT=3")
        instances = expand_recurring_event(
            event, datetime(2024, 1, 1), datetime(2024, 6, 30), now=now
        )
        again = expand_all_recurring_events(
            instances, datetime(2024, 1, 1), datetime(2024, 6, 30), now=now
        )
        assert again == instances
        assert [e.id for e in again] == ["weekly-0", "weekly-1", "weekly-2"]


class TestExpandAll:
    """Tests for list expansion helpers."""

    def test_flattens_in_order(self, make_event, now):
        single = make_event("single", start=datetime(2024, 1, 20))
        recurring = make_event("rec", rrule="FREQ=DAILY;COUNT=2")
        result = expand_all_recurring_events(
            [single, recurring], datetime(2024, 1, 1), datetime(2024, 2, 1), now=now
        )
        assert [e.id for e in result] == ["single", "rec-0", "rec-1"]

    def test_expander_counts_instances(self, make_event, now):
        expander = RRuleExpander(RRuleExpanderConfig.from_settings(TimelineConfig()), now=now)
        events = [make_event("a", rrule="FREQ=DAILY;COUNT=3"), make_event("b")]
        result = expander.expand_all(events, datetime(2024, 1, 1), datetime(2024, 2, 1))
        assert len(result) == 4
        assert expander.series_expanded == 1
        assert expander.instances_generated == 3

    def test_expander_does_not_count_instances_as_series(self, make_event, now):
        expander = RRuleExpander(now=now)
        event = make_event("a", rrule="FREQ=DAILY;COUNT=2")
        instances = expander.expand(event, datetime(2024, 1, 1), datetime(2024, 2, 1))
        assert expander.expand_all(instances) == instances
        assert expander.series_expanded == 1
        assert expander.instances_generated == 2

    def test_config_from_settings(self):
        config = RRuleExpanderConfig.from_settings(
            TimelineConfig(max_recurrence_instances=7, expansion_months=2)
        )
        assert config.max_instances == 7
        assert config.expansion_months == 2
