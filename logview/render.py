# logview/render.py
"""ANSI colouring of display lines for terminal output."""
from __future__ import annotations

from logview.models import DisplayLine, Span, SpanLabel


# ANSI color codes
class C:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"
    REVERSE = "\033[7m"

    # Level colors, indexed by level code
    ERROR = "\033[31;1m"     # bold red
    WARN = "\033[33;1m"      # bold yellow
    INFO = "\033[32m"        # green
    DEBUG = "\033[36m"       # cyan
    TRACE = "\033[34m"       # blue

    @classmethod
    def for_level(cls, level: int | None) -> str:
        return {
            0: cls.ERROR,
            1: cls.WARN,
            2: cls.INFO,
            3: cls.DEBUG,
            4: cls.TRACE,
        }.get(level, cls.RESET)

    @classmethod
    def for_span(cls, span: Span, level: int | None) -> str:
        return {
            SpanLabel.NOISE: cls.DIM,
            SpanLabel.TIMESTAMP: cls.DIM,
            SpanLabel.LEVEL: cls.for_level(level),
            SpanLabel.TARGET: cls.BOLD,
            SpanLabel.TEXT_MATCH: cls.REVERSE,
        }.get(span.label, "")


def render_line(line: DisplayLine, use_color: bool) -> str:
    if not use_color:
        return line.text
    parts = []
    for span in line.spans:
        style = C.for_span(span, line.level)
        parts.append(f"{style}{span.text}{C.RESET}" if style else span.text)
    return "".join(parts)
