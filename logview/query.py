# logview/query.py
from __future__ import annotations
import logging
from pathlib import Path

import regex

from logview.layout import check_columns
from logview.models import DisplayLine, LogsParams, QueryResult
from logview.parser import compile_filter, parse_log_line

logger = logging.getLogger(__name__)


class InvalidLogData(Exception):
    """Raised when a log line is not valid UTF-8."""
    pass


def decode_line(raw: bytes, lln: int) -> str:
    """Decode one line with its terminator removed, dropping a trailing CR."""
    if raw.endswith(b"\r"):
        raw = raw[:-1]
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InvalidLogData(f"line {lln} is not valid UTF-8: {e}") from e


def split_lines(data: bytes) -> tuple[list[bytes], int]:
    """Split data into its newline-terminated lines.

    Returns the lines without terminators and the number of bytes they
    covered. Bytes after the last newline are left out.
    """
    lines = []
    start = 0
    while True:
        end = data.find(b"\n", start)
        if end < 0:
            break
        lines.append(data[start:end])
        start = end + 1
    return lines, start


def scan_file(
    log_file: Path, columns: int, pattern: regex.Pattern | None = None
) -> QueryResult:
    """Parse and wrap every line of a file in one pass.

    Unlike tailing, a final line without a terminator is included.
    """
    check_columns(columns)
    display_lines: list[DisplayLine] = []
    with open(log_file, "rb") as f:
        for lln, raw in enumerate(f):
            if raw.endswith(b"\n"):
                raw = raw[:-1]
            rows = parse_log_line(lln, columns, decode_line(raw, lln), pattern)
            if rows:
                display_lines.extend(rows)
    logger.debug("scanned %s: %d display lines", log_file, len(display_lines))
    return QueryResult(
        total_display_lines=len(display_lines),
        display_lines=display_lines,
        row_offset=0,
    )


def run_query(params: LogsParams) -> QueryResult:
    """Scan params.log_file and select the requested row range."""
    result = scan_file(params.log_file, params.cols, compile_filter(params.filter))
    return result.range(params.from_ or 0, params.to)
