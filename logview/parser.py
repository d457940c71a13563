# logview/parser.py
"""Structured parsing of log lines into labelled spans.

Recognised header grammar:

    [<ISO-8601 timestamp> <LEVEL> <target>] <free text>

LEVEL is one of ERROR, WARN, INFO, DEBUG, TRACE. Lines that deviate from
the grammar anywhere are treated as plain text. The free text after the
header can be filtered by a regular expression, in which case matches are
labelled separately and lines without a match are dropped.
"""
from __future__ import annotations
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone

import regex

from logview.layout import DisplayLineBuilder
from logview.models import DisplayLine, Span, SpanLabel

LEVEL_NAMES = ("ERROR", "WARN", "INFO", "DEBUG", "TRACE")
LEVELS = {name: code for code, name in enumerate(LEVEL_NAMES)}

_TIMESTAMP = (
    r"(?:\d{4}-\d{2}-\d{2}T\d{2}:\d{2}(?::\d{2}(?:[.,]\d+)?)?"
    r"|\d{8}T\d{4}(?:\d{2}(?:[.,]\d+)?)?)"
    r"(?:Z|[+-]\d{2}(?::?\d{2})?)?"
)

HEADER_PATTERN = re.compile(
    r"(?P<open>\[)"
    r"(?P<ts>" + _TIMESTAMP + r")"
    r"(?P<gap1>[ \t\r\n]+)"
    r"(?P<level>" + "|".join(LEVEL_NAMES) + r")"
    r"(?P<gap2>[ \t\r\n]+)"
    r"(?P<target>[^\]]*)"
    r"(?P<close>\])"
)

TIMESTAMP_PATTERN = re.compile(_TIMESTAMP)

# fromisoformat takes at most microsecond precision
_FRACTION = re.compile(r"[.,]\d+")


class TimestampError(Exception):
    """Raised when a header timestamp matches the grammar but names no real instant."""
    pass


class FilterError(Exception):
    """Raised when a filter expression does not compile."""
    pass


@dataclass
class ParsedHeader:
    spans: list[Span] = field(default_factory=list)
    level: int | None = None
    timestamp: datetime | None = None
    rest: str = ""


def parse_timestamp(token: str) -> datetime:
    """Convert a header timestamp token to an aware UTC datetime.

    Tokens without an offset are taken as UTC.
    """
    if not TIMESTAMP_PATTERN.fullmatch(token):
        raise TimestampError(f"unrecognised timestamp {token!r}")
    # Newer interpreters read hour 24 as the following midnight
    if token.partition("T")[2][:2] == "24":
        raise TimestampError(f"cannot convert timestamp {token!r}: hour 24")
    iso = _FRACTION.sub(lambda m: m.group(0)[:7], token).replace("Z", "+00:00")
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError as e:
        raise TimestampError(f"cannot convert timestamp {token!r}: {e}") from e
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_header(line: str) -> ParsedHeader:
    """Split a raw line into header spans and the remaining text.

    On any deviation from the header grammar the whole line is returned as
    the remaining text with no spans, level or timestamp.
    """
    m = HEADER_PATTERN.match(line)
    if not m:
        return ParsedHeader(rest=line)
    return ParsedHeader(
        spans=[
            Span(text=m.group("open"), label=SpanLabel.NOISE),
            Span(text=m.group("ts"), label=SpanLabel.TIMESTAMP),
            Span(text=m.group("gap1"), label=SpanLabel.NOISE),
            Span(text=m.group("level"), label=SpanLabel.LEVEL),
            Span(text=m.group("gap2"), label=SpanLabel.NOISE),
            Span(text=m.group("target"), label=SpanLabel.TARGET),
            Span(text=m.group("close"), label=SpanLabel.NOISE),
        ],
        level=LEVELS[m.group("level")],
        timestamp=parse_timestamp(m.group("ts")),
        rest=line[m.end():],
    )


def compile_filter(expression: str | None) -> regex.Pattern | None:
    if expression is None:
        return None
    try:
        return regex.compile(expression)
    except regex.error as e:
        raise FilterError(f"invalid filter {expression!r}: {e}") from e


def filter_spans(text: str, pattern: regex.Pattern | None) -> list[Span] | None:
    """Label the remaining text of a line against an optional filter.

    Returns None when a filter is given and nothing in text matches. Empty
    matches and empty gaps produce no span.
    """
    if pattern is None:
        return [Span(text=text, label=SpanLabel.TEXT)]
    spans = []
    matched = False
    last = 0
    for m in pattern.finditer(text):
        matched = True
        start, end = m.span()
        if start > last:
            spans.append(Span(text=text[last:start], label=SpanLabel.TEXT))
        if end > start:
            spans.append(Span(text=text[start:end], label=SpanLabel.TEXT_MATCH))
        last = max(last, end)
    if not matched:
        return None
    if last < len(text):
        spans.append(Span(text=text[last:], label=SpanLabel.TEXT))
    return spans


def parse_log_line(
    lln: int,
    columns: int,
    line: str,
    pattern: regex.Pattern | None = None,
) -> list[DisplayLine] | None:
    """Parse and wrap one logical line.

    Returns None when the line is filtered out, otherwise its display rows
    (none at all for an empty line).
    """
    header = parse_header(line)
    body = filter_spans(header.rest, pattern)
    if body is None:
        return None
    builder = DisplayLineBuilder(
        lln, columns, level=header.level, timestamp=header.timestamp
    )
    for span in header.spans + body:
        builder.push_span(span)
    return builder.build()
