"""Timeline processing pipeline for daotimeline.

The pipeline turns per-source event lists into day groups through a fixed
sequence of pure stages. Each stage reports what it received and emitted so a
run can be inspected afterwards.

Usage:
    pipeline = TimelinePipeline(config)
    result = pipeline.run([ics_events, proposal_events], filters)
    for group in result.groups:
        ...
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Iterable, Optional, Protocol

from ..calendar.diagnostics import DiagnosticSink
from ..calendar.models import EventGroup, TimelineFilters, UnifiedEvent
from ..calendar.rrule_expander import RRuleExpander, RRuleExpanderConfig
from ..core.config_manager import TimelineConfig
from ..core.timezone_utils import now_local
from . import aggregator

logger = logging.getLogger(__name__)


@dataclass
class TimelineContext:
    """State shared by the stages of one pipeline run."""

    now: datetime
    filters: TimelineFilters
    expander_config: RRuleExpanderConfig = field(default_factory=RRuleExpanderConfig)
    events: list[UnifiedEvent] = field(default_factory=list)
    diagnostics: Optional[DiagnosticSink] = None


@dataclass
class StageStats:
    """Event counts reported by a single stage."""

    stage_name: str
    events_in: int = 0
    events_out: int = 0
    warnings: list[str] = field(default_factory=list)

    @property
    def events_filtered(self) -> int:
        """Events removed by the stage (negative when the stage adds events)."""
        return self.events_in - self.events_out

    def add_warning(self, message: str) -> None:
        self.warnings.append(message)
        logger.warning("[%s] %s", self.stage_name, message)


@dataclass
class TimelineResult:
    """Outcome of a pipeline run."""

    success: bool = True
    groups: list[EventGroup] = field(default_factory=list)
    events: list[UnifiedEvent] = field(default_factory=list)
    stats: list[StageStats] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def total_events(self) -> int:
        return len(self.events)

    def stage(self, name: str) -> Optional[StageStats]:
        """Stats of the named stage, if it ran."""
        for stats in self.stats:
            if stats.stage_name == name:
                return stats
        return None


class TimelineStage(Protocol):
    """One step of the timeline pipeline.

    A stage reads ``context.events``, replaces it with its output and returns
    its counts.
    """

    @property
    def name(self) -> str:
        """Name of this stage for logging and stats."""
        ...

    def process(self, context: TimelineContext) -> StageStats:
        """Transform ``context.events`` in place of the previous list."""
        ...


class ExpansionStage:
    """Expand recurring events inside the default window around ``now``."""

    name = "Expansion"

    def process(self, context: TimelineContext) -> StageStats:
        stats = StageStats(self.name, events_in=len(context.events))
        expander = RRuleExpander(context.expander_config, context.now, context.diagnostics)
        context.events = expander.expand_all(context.events)
        stats.events_out = len(context.events)
        if expander.series_expanded:
            logger.debug(
                "Expanded %d recurring series into %d instance(s)",
                expander.series_expanded,
                expander.instances_generated,
            )
        return stats


class DeduplicationStage:
    """Drop repeated event ids, first occurrence wins."""

    name = "Deduplication"

    def process(self, context: TimelineContext) -> StageStats:
        stats = StageStats(self.name, events_in=len(context.events))
        context.events = aggregator.deduplicate_events(context.events)
        stats.events_out = len(context.events)
        if stats.events_filtered:
            logger.debug("Deduplication removed %d event(s)", stats.events_filtered)
        return stats


class FilterStage:
    """Apply the run's TimelineFilters."""

    name = "Filter"

    def process(self, context: TimelineContext) -> StageStats:
        stats = StageStats(self.name, events_in=len(context.events))
        context.events = aggregator.apply_filters(context.events, context.filters, context.now)
        stats.events_out = len(context.events)
        return stats


class SortStage:
    """Stable chronological sort."""

    name = "Sort"

    def process(self, context: TimelineContext) -> StageStats:
        stats = StageStats(self.name, events_in=len(context.events))
        context.events = aggregator.sort_events_by_date(context.events)
        stats.events_out = len(context.events)
        return stats


def default_stages(expand: bool = True) -> list[TimelineStage]:
    """Standard stage list; pass ``expand=False`` for events the source registry already expanded."""
    stages: list[TimelineStage] = [DeduplicationStage(), FilterStage(), SortStage()]
    if expand:
        stages.insert(0, ExpansionStage())
    return stages


class TimelinePipeline:
    """Runs merged source lists through the timeline stages and groups the result by day."""

    def __init__(
        self,
        config: Optional[TimelineConfig] = None,
        stages: Optional[list[TimelineStage]] = None,
        diagnostics: Optional[DiagnosticSink] = None,
    ) -> None:
        """Initialize pipeline.

        Args:
            config: Timeline configuration (expansion limits); defaults apply if omitted
            stages: Stage sequence (defaults to expansion, dedupe, filter, sort)
            diagnostics: Optional sink for recurrence rule problems
        """
        self.config = config or TimelineConfig()
        self.stages: list[TimelineStage] = stages if stages is not None else default_stages()
        self.diagnostics = diagnostics

    def add_stage(self, stage: TimelineStage) -> TimelinePipeline:
        """Append a stage (builder pattern)."""
        self.stages.append(stage)
        logger.debug("Added stage to pipeline: %s", stage.name)
        return self

    def run(
        self,
        source_lists: Iterable[Iterable[UnifiedEvent]],
        filters: Optional[TimelineFilters] = None,
        *,
        now: Optional[datetime] = None,
    ) -> TimelineResult:
        """Merge, process and group events from several sources.

        Args:
            source_lists: One event list per source, in configuration order
            filters: Query to apply (defaults to upcoming events from all sources)
            now: Reference time; read once from the clock if omitted

        Returns:
            TimelineResult with day groups, the final event list and per-stage stats.
            A stage that raises stops the run with ``success=False``.
        """
        context = TimelineContext(
            now=now or now_local(),
            filters=filters or aggregator.get_default_filters(),
            expander_config=RRuleExpanderConfig.from_settings(self.config),
            events=aggregator.merge_events(*source_lists),
            diagnostics=self.diagnostics,
        )
        result = TimelineResult()
        logger.debug("Starting timeline pipeline with %d events, %d stages", len(context.events), len(self.stages))

        for stage in self.stages:
            try:
                stats = stage.process(context)
            except Exception as e:
                result.success = False
                result.errors.append(f"Stage {stage.name} raised exception: {e}")
                logger.exception("Stage %s failed with exception", stage.name)
                return result
            result.stats.append(stats)
            logger.debug(
                "Stage %s completed: events_in=%d, events_out=%d",
                stats.stage_name,
                stats.events_in,
                stats.events_out,
            )

        result.events = context.events
        result.groups = aggregator.group_events_by_day(context.events, context.now)
        logger.info(
            "Timeline pipeline completed: %d events in %d day group(s)",
            result.total_events,
            len(result.groups),
        )
        return result
