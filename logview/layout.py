# logview/layout.py
"""Column-bounded wrapping of labelled spans into display lines.

Widths are measured in terminal cells per extended grapheme cluster, so
wide glyphs take two cells and combining sequences are never split.
Placement runs over an explicit work stack instead of recursing: a span
that does not fit is broken into pieces that are pushed back in order.
"""
from __future__ import annotations
from datetime import datetime

import regex
from wcwidth import wcswidth

from logview.models import DisplayLine, Span

_GRAPHEME = regex.compile(r"\X")


class LayoutError(Exception):
    """Raised when text cannot be placed within the column budget."""
    pass


def graphemes(text: str) -> list[str]:
    return _GRAPHEME.findall(text)


def grapheme_width(cluster: str) -> int:
    # wcswidth reports non-printable clusters as -1; they take no cells
    return max(wcswidth(cluster), 0)


def text_width(text: str) -> int:
    return sum(grapheme_width(g) for g in graphemes(text))


def check_columns(columns: int) -> None:
    if columns < 1:
        raise LayoutError(f"cannot lay out text in {columns} columns")


def split_soft(span: Span) -> tuple[Span, Span, Span] | None:
    """Split at the first whitespace grapheme into (left, whitespace, right).

    A span that is a single grapheme has nothing to split.
    """
    clusters = graphemes(span.text)
    if len(clusters) < 2:
        return None
    for i, cluster in enumerate(clusters):
        if cluster.isspace():
            return (
                Span(text="".join(clusters[:i]), label=span.label),
                Span(text=cluster, label=span.label),
                Span(text="".join(clusters[i + 1:]), label=span.label),
            )
    return None


def split_to_width(span: Span, width: int) -> tuple[Span, Span]:
    """Split off the longest grapheme prefix that fits in width cells."""
    clusters = graphemes(span.text)
    used = 0
    cut = 0
    for cluster in clusters:
        w = grapheme_width(cluster)
        if used + w > width:
            break
        used += w
        cut += 1
    left = "".join(clusters[:cut])
    if text_width(left) > width:
        raise LayoutError(f"impossible to break span to width {width}")
    return (
        Span(text=left, label=span.label),
        Span(text="".join(clusters[cut:]), label=span.label),
    )


class DisplayLineBuilder:
    """Accumulates the spans of one logical line into width-bounded rows.

    Usage:
        builder = DisplayLineBuilder(lln, columns, level=2, timestamp=ts)
        for span in spans:
            builder.push_span(span)
        rows = builder.build()
    """

    def __init__(
        self,
        logical_line_number: int,
        columns: int,
        level: int | None = None,
        timestamp: datetime | None = None,
    ):
        check_columns(columns)
        self.logical_line_number = logical_line_number
        self.columns = columns
        self.level = level
        self.timestamp = timestamp
        self._spans: list[Span] = []
        self._width = 0
        self._lines: list[DisplayLine] = []

    @property
    def remaining(self) -> int:
        return self.columns - self._width

    def build(self) -> list[DisplayLine]:
        if self._spans:
            self._flush()
        return self._lines

    def _flush(self) -> None:
        self._lines.append(DisplayLine(
            logical_line_number=self.logical_line_number,
            level=self.level,
            timestamp=self.timestamp,
            spans=self._spans,
        ))
        self._spans = []
        self._width = 0

    def _place(self, span: Span, width: int) -> None:
        self._spans.append(span)
        self._width += width
        if self._width == self.columns:
            self._flush()

    def push_span(self, span: Span) -> None:
        """Place a span, wrapping onto new rows as needed.

        A span that does not fit is soft-broken at its first whitespace. A
        span with no whitespace that is wider than a whole row is hard-broken
        at the grapheme boundary that fills the current row. Anything else
        moves to a fresh row.
        """
        pending = [span]
        # Steps are bounded by the grapheme count of the span
        steps_left = 8 * (len(graphemes(span.text)) + 1)
        while pending:
            steps_left -= 1
            if steps_left < 0:
                raise LayoutError(
                    f"layout of {span.text[:40]!r} did not converge in {self.columns} columns"
                )
            current = pending.pop()
            if not current.text:
                continue
            width = text_width(current.text)
            if width <= self.remaining:
                self._place(current, width)
                continue

            soft = split_soft(current)
            if soft is not None:
                # reversed so the left piece is placed first
                pending.extend(reversed(soft))
                continue

            if width > self.columns:
                left, right = split_to_width(current, self.remaining)
                if not left.text:
                    if not self._spans:
                        raise LayoutError(
                            f"grapheme {graphemes(current.text)[0]!r} is wider than {self.columns} columns"
                        )
                    self._flush()
                    pending.append(current)
                    continue
                self._spans.append(left)
                self._flush()
                pending.append(right)
                continue

            self._flush()
            pending.append(current)
