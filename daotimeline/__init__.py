"""daotimeline - unified DAO event timeline.

Parses iCalendar feeds, expands recurring events, adapts governance proposals and
AI-derived milestones into one event model, and aggregates everything into a
day-grouped timeline. Imports are kept light so the package can be inspected
without pulling in the HTTP stack.
"""

__version__ = "0.1.0"

from typing import Optional


def _init_logging(level_name: Optional[str]) -> None:
    """Initialize root logging to stream to console.

    Installs a colorized console handler (via colorlog) when the root logger has
    no handlers yet, then applies the requested level. DAO_TIMELINE_DEBUG
    (truthy values: "1", "true", "yes", "on") forces DEBUG verbosity so parser
    drop diagnostics become visible without code changes.
    """
    import logging
    import os
    import sys

    from colorlog import ColoredFormatter

    debug_env = os.environ.get("DAO_TIMELINE_DEBUG", "")
    if debug_env.strip().lower() in ("1", "true", "yes", "on"):
        level_name = "DEBUG"

    root = logging.getLogger()
    # Only configure a handler if none are present to avoid duplicate output.
    if not root.handlers:
        handler = logging.StreamHandler(stream=sys.stderr)
        # HH:MM:SS  LEVEL   logger.name: message (only the level is colorized)
        fmt = "%(asctime)s %(log_color)s%(levelname)-7s%(reset)s %(name)s: %(message)s"
        log_colors = {
            "DEBUG": "cyan",
            "INFO": "green",
            "WARNING": "yellow",
            "ERROR": "red",
            "CRITICAL": "bold_red",
        }
        handler.setFormatter(ColoredFormatter(fmt, datefmt="%H:%M:%S", log_colors=log_colors))
        root.addHandler(handler)

    level = logging.INFO
    if isinstance(level_name, str):
        level = getattr(logging, level_name.upper(), logging.INFO)
        if not isinstance(level, int):
            level = logging.INFO
    root.setLevel(level)
    logging.getLogger(__name__).debug(
        "Logging initialized at level %s", logging.getLevelName(level)
    )


def run_timeline(args: Optional[object] = None) -> int:
    """Fetch every configured source once and print the day-grouped timeline.

    Args:
        args: Optional namespace with ``env_file``, ``sources``, ``include_past``,
            ``export``, ``output_dir`` and ``debug`` (see ``__main__``)

    Behavior:
    - Initialize console logging early using DAO_TIMELINE_LOG_LEVEL (env) if present.
    - Load the .env file and build the immutable configuration.
    - Fetch all sources concurrently, run the timeline pipeline with a single
      ``now`` and print the groups as JSON on stdout.
    - With ``export`` set, write that event as an .ics file into ``output_dir``.

    Returns:
        Process exit code (0 on success)
    """
    import asyncio
    import json
    import logging
    import os
    from pathlib import Path

    _init_logging(os.environ.get("DAO_TIMELINE_LOG_LEVEL"))

    from .calendar.models import TimelineFilters
    from .core.config_manager import ConfigManager
    from .core.http_client import close_all_clients
    from .core.timezone_utils import now_local
    from .domain.calendar_export import write_ics_file
    from .domain.pipeline import TimelinePipeline, default_stages
    from .exceptions import ConfigError
    from .logging_config import configure_timeline_logging
    from .sources import registry

    logger = logging.getLogger(__name__)

    env_file = getattr(args, "env_file", None)
    manager = ConfigManager(Path(env_file) if env_file else None)
    manager.load_env_file()
    try:
        config = manager.build_config(strict=bool(getattr(args, "strict", False)))
    except ConfigError as e:
        logger.error("Invalid configuration: %s", e)
        return 2
    configure_timeline_logging(debug_mode=bool(getattr(args, "debug", False)))

    if not config.sources:
        logger.error("No event sources configured; set DAO_TIMELINE_SOURCES or DAO_CALENDAR_ICS_URL")
        return 1

    now = now_local()

    async def _fetch() -> list:
        try:
            return await registry.fetch_all_events(config, now)
        finally:
            await close_all_clients()

    events = asyncio.run(_fetch())
    filters = TimelineFilters(
        source_ids=frozenset(getattr(args, "sources", None) or ()),
        include_past=bool(getattr(args, "include_past", False)),
    )
    result = TimelinePipeline(config, stages=default_stages(expand=False)).run([events], filters, now=now)
    if not result.success:
        for error in result.errors:
            logger.error(error)
        return 1

    export_id = getattr(args, "export", None)
    if export_id:
        match = next((event for event in result.events if event.id == export_id), None)
        if match is None:
            logger.error("No event with id %s in the timeline", export_id)
            return 1
        path = write_ics_file(match, Path(getattr(args, "output_dir", None) or "."), now=now)
        logger.info("Exported %s to %s", export_id, path)

    print(json.dumps([group.model_dump(mode="json") for group in result.groups], indent=2))
    return 0
