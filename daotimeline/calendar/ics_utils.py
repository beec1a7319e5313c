"""Line-level iCalendar utilities (RFC 5545 §3.1): folding, property lines, components."""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from .diagnostics import UNTERMINATED_COMPONENT, DiagnosticSink, report

# Content lines SHOULD NOT be longer than 75 octets excluding the line break.
FOLD_LIMIT = 75
CRLF = "\r\n"

_CONTINUATION_RE = re.compile(r"\n[ \t]")


class PropertyLine(NamedTuple):
    """A content line split into name, parameters and raw value."""

    name: str
    params: dict[str, str]
    value: str


def unfold_lines(content: str) -> str:
    """Normalize line endings to LF and join folded continuation lines.

    A continuation line starts with a single space or tab; that marker and the
    preceding line break are removed.
    """
    normalized = content.replace("\r\n", "\n").replace("\r", "\n")
    return _CONTINUATION_RE.sub("", normalized)


def fold_line(line: str, limit: int = FOLD_LIMIT) -> str:
    """Fold one logical line into CRLF-separated physical lines of at most ``limit`` chars.

    Continuation lines carry a leading space, so ``unfold_lines(fold_line(x)) == x``
    for any ``x`` without line breaks.
    """
    if limit < 2:
        raise ValueError("fold limit must leave room for the continuation marker")
    if len(line) <= limit:
        return line
    parts = [line[:limit]]
    rest = line[limit:]
    while rest:
        parts.append(" " + rest[: limit - 1])
        rest = rest[limit - 1 :]
    return CRLF.join(parts)


def _split_unquoted(text: str, separator: str) -> list[str]:
    """Split on ``separator`` except inside double-quoted parameter values."""
    parts: list[str] = []
    current: list[str] = []
    in_quotes = False
    for ch in text:
        if ch == '"':
            in_quotes = not in_quotes
        if ch == separator and not in_quotes:
            parts.append("".join(current))
            current = []
            continue
        current.append(ch)
    parts.append("".join(current))
    return parts


def _find_value_colon(line: str) -> int:
    in_quotes = False
    for index, ch in enumerate(line):
        if ch == '"':
            in_quotes = not in_quotes
        elif ch == ":" and not in_quotes:
            return index
    return -1


def parse_property_line(line: str) -> PropertyLine:
    """Parse ``NAME;PARAM1=VALUE1;PARAM2="VALUE:2":value``.

    A line without a usable colon yields an empty name and the whole line as
    value; callers treat that as unusable. Parameter tokens without ``=`` are
    omitted rather than reported.
    """
    colon_index = _find_value_colon(line)
    if colon_index == -1:
        return PropertyLine("", {}, line)

    name_part = line[:colon_index]
    value = line[colon_index + 1 :]

    segments = _split_unquoted(name_part, ";")
    name = segments[0].strip().upper()

    params: dict[str, str] = {}
    for segment in segments[1:]:
        key, sep, param_value = segment.partition("=")
        key = key.strip().upper()
        if not sep or not key:
            continue
        param_value = param_value.strip()
        if len(param_value) >= 2 and param_value.startswith('"') and param_value.endswith('"'):
            param_value = param_value[1:-1]
        params[key] = param_value

    return PropertyLine(name, params, value)


def extract_components(
    content: str,
    component_name: str,
    diagnostics: Optional[DiagnosticSink] = None,
) -> list[str]:
    """Return the text between each ``BEGIN:<name>`` / ``END:<name>`` pair, trimmed.

    Expects unfolded content. Blocks without a matching END (including one cut
    short by another BEGIN of the same name) are discarded. Other component
    types are not returned, although lines of sub-components nested inside a
    matching block remain part of that block's text.
    """
    begin_marker = f"BEGIN:{component_name}".upper()
    end_marker = f"END:{component_name}".upper()

    blocks: list[str] = []
    current: Optional[list[str]] = None

    for line in content.split("\n"):
        marker = line.strip().upper()
        if marker == begin_marker:
            if current is not None:
                report(diagnostics, UNTERMINATED_COMPONENT, component_name)
            current = []
            continue
        if current is None:
            continue
        if marker == end_marker:
            blocks.append("\n".join(current).strip())
            current = None
            continue
        current.append(line)

    if current is not None:
        report(diagnostics, UNTERMINATED_COMPONENT, component_name)

    return blocks
