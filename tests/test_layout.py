# tests/test_layout.py
import pytest
from logview.layout import (
    DisplayLineBuilder,
    LayoutError,
    graphemes,
    split_soft,
    split_to_width,
    text_width,
)
from logview.models import Span, SpanLabel


def text(s):
    return Span(text=s, label=SpanLabel.TEXT)


def wrap(s, cols, label=SpanLabel.TEXT):
    builder = DisplayLineBuilder(0, cols)
    builder.push_span(Span(text=s, label=label))
    return [line.text for line in builder.build()]


def test_text_width_counts_wide_glyphs():
    assert text_width("abc") == 3
    assert text_width("中文") == 4
    assert text_width("e\u0301") == 1


def test_graphemes_keep_combining_marks_together():
    assert graphemes("e\u0301x") == ["e\u0301", "x"]


def test_split_soft_at_first_whitespace():
    left, ws, right = split_soft(text("hello big world"))
    assert (left.text, ws.text, right.text) == ("hello", " ", "big world")
    assert left.label == ws.label == right.label == SpanLabel.TEXT


def test_split_soft_without_whitespace():
    assert split_soft(text("hello")) is None
    assert split_soft(text(" ")) is None


def test_split_to_width_never_exceeds_width():
    left, right = split_to_width(text("中文字"), 3)
    assert left.text == "中"
    assert right.text == "文字"


def test_span_that_fits_stays_on_one_row():
    assert wrap("hello", 10) == ["hello"]


def test_exactly_full_row_is_closed():
    builder = DisplayLineBuilder(0, 5)
    builder.push_span(text("hello"))
    builder.push_span(text("ab"))
    assert [line.text for line in builder.build()] == ["hello", "ab"]


def test_soft_break_moves_words_to_next_row():
    assert wrap("hello world foo", 10) == ["hello ", "world foo"]


def test_hard_break_without_whitespace():
    assert wrap("abcdefghij", 4) == ["abcd", "efgh", "ij"]


def test_hard_break_fills_partial_row():
    builder = DisplayLineBuilder(0, 5)
    builder.push_span(text("ab"))
    builder.push_span(text("cdefghij"))
    assert [line.text for line in builder.build()] == ["abcde", "fghij"]


def test_hard_break_keeps_label_on_both_halves():
    builder = DisplayLineBuilder(0, 4)
    builder.push_span(Span(text="abcdef", label=SpanLabel.TARGET))
    rows = builder.build()
    assert [row.spans[0].label for row in rows] == [SpanLabel.TARGET, SpanLabel.TARGET]


def test_wide_glyphs_wrap_on_cell_width():
    assert wrap("中文字", 3) == ["中", "文", "字"]


def test_wide_glyph_moves_to_fresh_row():
    builder = DisplayLineBuilder(0, 3)
    builder.push_span(text("ab"))
    builder.push_span(text("中"))
    assert [line.text for line in builder.build()] == ["ab", "中"]


def test_glyph_wider_than_row_is_an_error():
    with pytest.raises(LayoutError):
        wrap("中", 1)


def test_zero_columns_fails_fast():
    with pytest.raises(LayoutError):
        DisplayLineBuilder(0, 0)


def test_combining_sequence_is_not_split():
    assert wrap("e\u0301x", 1) == ["e\u0301", "x"]


def test_all_whitespace_span_terminates():
    assert wrap("      ", 2) == ["  ", "  ", "  "]


def test_wide_whitespace_glyph_does_not_loop():
    builder = DisplayLineBuilder(0, 3)
    builder.push_span(text("ab"))
    builder.push_span(text("　"))
    assert [line.text for line in builder.build()] == ["ab", "　"]


def test_empty_span_produces_nothing():
    builder = DisplayLineBuilder(0, 10)
    builder.push_span(text(""))
    assert builder.build() == []


def test_rows_share_line_metadata():
    builder = DisplayLineBuilder(7, 3, level=2)
    builder.push_span(text("abcdefg"))
    rows = builder.build()
    assert len(rows) == 3
    assert all(row.logical_line_number == 7 and row.level == 2 for row in rows)


SAMPLES = [
    "[2024-02-25T20:49:42Z TRACE s8] Petersburg, used only by the elite",
    "A very long identifier: aaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaaa end",
    "東京の天気は晴れ、 気温は二十度です",
    "  leading and   inner   spaces  ",
]


@pytest.mark.parametrize("sample", SAMPLES)
def test_wrapping_round_trips_and_respects_width(sample):
    for cols in range(2, 90):
        rows = wrap(sample, cols)
        assert "".join(rows) == sample
        assert all(text_width(row) <= cols for row in rows)


@pytest.mark.parametrize("sample", SAMPLES)
def test_rewrapping_is_stable(sample):
    for cols in (5, 17, 40):
        rows = wrap(sample, cols)
        assert wrap("".join(rows), cols) == rows
