"""
Central logging configuration for daotimeline.

Keeps the timeline modules at INFO (or DEBUG on request) while quieting the
HTTP stack used by the source fetchers.
"""

import logging
import os
from typing import Optional

# Loggers owned by this package; the per-event drop diagnostics live at DEBUG.
TIMELINE_LOGGERS = (
    "daotimeline",
    "daotimeline.calendar.ics_parser",
    "daotimeline.calendar.rrule_expander",
    "daotimeline.domain.pipeline",
    "daotimeline.sources.registry",
)

NOISY_LOGGERS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "asyncio": logging.WARNING,
    "charset_normalizer": logging.WARNING,
}


def configure_timeline_logging(debug_mode: bool = False, force_debug: Optional[bool] = None) -> None:
    """
    Configure logging levels for daotimeline.

    Args:
        debug_mode: Whether to enable debug logging for daotimeline modules
        force_debug: Override debug mode setting (None to use env var detection)

    Environment Variables:
        DAO_TIMELINE_DEBUG: Set to '1', 'true', 'yes' to force debug logging
        DAO_TIMELINE_LOG_LEVEL: Override root log level (DEBUG, INFO, WARNING, ERROR)
    """
    env_debug = os.getenv("DAO_TIMELINE_DEBUG", "").lower() in ("1", "true", "yes")
    env_log_level = os.getenv("DAO_TIMELINE_LOG_LEVEL", "").upper()

    if force_debug is not None:
        final_debug = force_debug
    elif env_debug:
        final_debug = True
    else:
        final_debug = debug_mode

    root_level = logging.DEBUG if final_debug else logging.INFO
    if env_log_level in ("DEBUG", "INFO", "WARNING", "ERROR"):
        root_level = getattr(logging, env_log_level)

    # Handlers are installed by daotimeline._init_logging; only levels are set here.
    logging.getLogger().setLevel(root_level)

    for logger_name, level in NOISY_LOGGERS.items():
        logging.getLogger(logger_name).setLevel(level)

    timeline_level = logging.DEBUG if final_debug else logging.INFO
    for logger_name in TIMELINE_LOGGERS:
        logging.getLogger(logger_name).setLevel(timeline_level)

    logging.getLogger(__name__).debug(
        "Timeline logging configured: root=%s, timeline=%s",
        logging.getLevelName(root_level),
        logging.getLevelName(timeline_level),
    )


def get_logging_status() -> dict[str, str]:
    """
    Get current logging configuration status.

    Returns:
        Dictionary mapping logger names to their current levels
    """
    status = {"root": logging.getLevelName(logging.getLogger().level)}
    for logger_name in ("daotimeline", *NOISY_LOGGERS):
        status[logger_name] = logging.getLevelName(logging.getLogger(logger_name).level)
    return status
