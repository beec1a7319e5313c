"""Configuration management for daotimeline.

Configuration is read once from the environment (optionally seeded from a
``.env`` file) into an immutable ``TimelineConfig`` that is passed explicitly
to the pipeline and the source registry.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ..calendar.models import EventSourceConfig, SourceKind
from ..exceptions import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_EXPANSION_MONTHS = 6
MAX_RECURRENCE_INSTANCES = 100
MAX_DESCRIPTION_LENGTH = 500
DEFAULT_FETCH_TIMEOUT_SECONDS = 30
DEFAULT_PROPOSAL_LIMIT = 50
SNAPSHOT_API_URL = "https://hub.snapshot.org/graphql"

# Badge classes keyed by the optional ``color`` of a source
SOURCE_COLORS: dict[str, str] = {
    "primary": "bg-primary text-primary-foreground",
    "secondary": "bg-secondary text-secondary-foreground",
    "accent": "bg-accent text-accent-foreground",
}
DEFAULT_SOURCE_COLOR = "bg-muted text-muted-foreground"


class TimelineConfig(BaseModel):
    """Immutable configuration threaded through the timeline entry points."""

    sources: tuple[EventSourceConfig, ...] = Field(default_factory=tuple)
    expansion_months: int = Field(default=DEFAULT_EXPANSION_MONTHS, ge=0)
    max_recurrence_instances: int = Field(default=MAX_RECURRENCE_INSTANCES, ge=1)
    description_max_length: int = Field(default=MAX_DESCRIPTION_LENGTH, ge=1)
    fetch_timeout_seconds: float = Field(default=DEFAULT_FETCH_TIMEOUT_SECONDS, gt=0)
    proposal_limit: int = Field(default=DEFAULT_PROPOSAL_LIMIT, ge=1)
    snapshot_api_url: str = SNAPSHOT_API_URL
    log_level: str = "INFO"

    model_config = ConfigDict(frozen=True)


def parse_env_file(path: Path) -> dict[str, str]:
    """Parse a .env file and return key-value pairs.

    Args:
        path: Path to .env file

    Returns:
        Dictionary of key-value pairs from the .env file.
        Empty dict if file doesn't exist or cannot be read.

    Note:
        - Skips empty lines and comments (lines starting with #)
        - Strips quotes (both single and double) from values
        - Handles KEY=VALUE format with optional whitespace
    """
    if not path.exists():
        return {}

    result: dict[str, str] = {}
    try:
        content = path.read_text(encoding="utf-8")
    except OSError:
        logger.debug("Failed to read .env file (continuing): %s", path, exc_info=True)
        return {}

    for raw_line in content.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, val = line.split("=", 1)
        key = key.strip()
        if key:
            result[key] = val.strip().strip('"').strip("'")

    return result


def parse_sources_json(raw: str) -> list[EventSourceConfig]:
    """Parse the DAO_TIMELINE_SOURCES JSON list, keeping enabled sources only.

    Malformed JSON or entries are logged and skipped.
    """
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.error("Failed to parse DAO_TIMELINE_SOURCES JSON")
        return []
    if not isinstance(data, list):
        logger.error("DAO_TIMELINE_SOURCES must be a JSON list, got %s", type(data).__name__)
        return []

    sources: list[EventSourceConfig] = []
    for entry in data:
        try:
            source = EventSourceConfig.model_validate(entry)
        except ValidationError as e:
            logger.warning("Ignoring invalid source entry %r: %s", entry, e)
            continue
        if source.enabled:
            sources.append(source)
    return sources


class ConfigManager:
    """Builds a TimelineConfig from environment variables and an optional .env file."""

    def __init__(self, env_file_path: Optional[Path] = None, environ: Optional[dict[str, str]] = None):
        """Initialize configuration manager.

        Args:
            env_file_path: Optional path to .env file (defaults to .env in current directory)
            environ: Mapping to read from instead of ``os.environ`` (used by tests)
        """
        self.env_file_path = env_file_path or Path.cwd() / ".env"
        self.environ = environ if environ is not None else os.environ

    def load_env_file(self) -> list[str]:
        """Load .env defaults without overriding variables that are already set.

        Returns:
            List of keys that were loaded from the .env file
        """
        if not self.env_file_path.exists():
            logger.debug("No .env file found at %s", self.env_file_path)
            return []

        set_keys = []
        for key, val in parse_env_file(self.env_file_path).items():
            if key not in self.environ:
                self.environ[key] = val
                set_keys.append(key)

        if set_keys:
            logger.debug("Loaded .env defaults for keys: %s", ", ".join(set_keys))
        return set_keys

    def _int(self, name: str, default: int) -> int:
        raw = self.environ.get(name)
        if raw is None or not raw.strip():
            return default
        try:
            return int(raw)
        except ValueError:
            logger.warning("Invalid %s=%r; using default %d", name, raw, default)
            return default

    def get_event_sources(self) -> list[EventSourceConfig]:
        """Resolve configured sources.

        DAO_TIMELINE_SOURCES (JSON list) wins; otherwise DAO_CALENDAR_ICS_URL
        yields a single ICS source. No configuration means no sources.
        """
        sources_json = self.environ.get("DAO_TIMELINE_SOURCES")
        if sources_json:
            sources = parse_sources_json(sources_json)
            if sources:
                return sources

        ics_url = self.environ.get("DAO_CALENDAR_ICS_URL")
        if ics_url:
            return [
                EventSourceConfig(
                    id="main-calendar",
                    type=SourceKind.ICS,
                    name="DAO Calendar",
                    enabled=True,
                    url=ics_url,
                    color="primary",
                )
            ]
        return []

    def build_config(self, strict: bool = False) -> TimelineConfig:
        """Build the immutable configuration from the current environment.

        Args:
            strict: Raise ConfigError for out-of-range values instead of falling back to defaults

        Raises:
            ConfigError: In strict mode, when a value fails validation
        """
        values: dict[str, Any] = {
            "sources": tuple(self.get_event_sources()),
            "expansion_months": self._int("DAO_TIMELINE_EXPANSION_MONTHS", DEFAULT_EXPANSION_MONTHS),
            "max_recurrence_instances": self._int(
                "DAO_TIMELINE_MAX_INSTANCES", MAX_RECURRENCE_INSTANCES
            ),
            "description_max_length": self._int(
                "DAO_TIMELINE_DESCRIPTION_LIMIT", MAX_DESCRIPTION_LENGTH
            ),
            "fetch_timeout_seconds": self._int(
                "DAO_TIMELINE_FETCH_TIMEOUT", DEFAULT_FETCH_TIMEOUT_SECONDS
            ),
            "proposal_limit": self._int("DAO_TIMELINE_PROPOSAL_LIMIT", DEFAULT_PROPOSAL_LIMIT),
            "snapshot_api_url": self.environ.get("SNAPSHOT_API_URL") or SNAPSHOT_API_URL,
            "log_level": (self.environ.get("DAO_TIMELINE_LOG_LEVEL") or "INFO").upper(),
        }
        try:
            return TimelineConfig(**values)
        except ValidationError as e:
            if strict:
                raise ConfigError(f"Invalid timeline configuration: {e}") from e
            # Out-of-range numbers (e.g. a zero instance cap): keep the sources, reset the rest.
            logger.warning("Invalid timeline configuration, using defaults: %s", e)
            return TimelineConfig(sources=values["sources"], log_level=values["log_level"])

    def load_full_config(self, strict: bool = False) -> TimelineConfig:
        """Load the .env file, then build configuration from the environment."""
        self.load_env_file()
        return self.build_config(strict)


def get_source_color_class(color: Optional[str] = None) -> str:
    """Map a source color name to its badge class."""
    if color and color in SOURCE_COLORS:
        return SOURCE_COLORS[color]
    return DEFAULT_SOURCE_COLOR
