# tests/test_cli.py
import json
import random
import re
from datetime import datetime, timezone
import pytest
from click.testing import CliRunner
from logview.babble import babble as generate_lines
from logview.cli import main
from logview.models import DisplayLine, Span, SpanLabel
from logview.parser import parse_header
from logview.render import C, render_line

LINE = "[2024-02-25T20:49:42Z TRACE s8] Petersburg, used only by the elite"


def strip_times(output):
    return re.sub(r"\d{4}-\d\d-\d\dT\d\d:\d\d:\d\dZ", "", output)


@pytest.fixture
def runner():
    return CliRunner()


@pytest.fixture
def log_file(tmp_path):
    path = tmp_path / "app.log"
    path.write_text(LINE + "\nsecond line\n")
    return path


def test_main_shows_help(runner):
    result = runner.invoke(main, ["--help"])
    assert result.exit_code == 0
    for command in ("query", "tail", "server", "babble"):
        assert command in result.output


def test_query_requires_cols(runner, log_file):
    result = runner.invoke(main, ["query", str(log_file)])
    assert result.exit_code != 0
    assert "--cols" in result.output


def test_query_wraps_to_width(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "40", "--no-color", str(log_file)])
    assert result.exit_code == 0
    assert result.output.splitlines() == [
        "[2024-02-25T20:49:42Z TRACE s8] ",
        "Petersburg, used only by the elite",
        "second line",
    ]


def test_query_range(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "40", "--no-color", str(log_file), "1", "2"])
    assert result.exit_code == 0
    assert result.output.splitlines() == ["Petersburg, used only by the elite"]


def test_query_json(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "80", "--json", str(log_file), "0", "1"])
    assert result.exit_code == 0
    row = json.loads(result.output)
    assert row["lln"] == 0
    assert row["ll"] == 4
    assert row["ts"] == "2024-02-25T20:49:42Z"


def test_query_filter(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "80", "--no-color", "--filter", "second", str(log_file)])
    assert result.exit_code == 0
    assert result.output.splitlines() == ["second line"]


def test_query_bad_filter(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "80", "--filter", "(", str(log_file)])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_query_zero_columns(runner, log_file):
    result = runner.invoke(main, ["query", "--cols", "0", str(log_file)])
    assert result.exit_code == 1
    assert "Error:" in result.output


def test_query_missing_file(runner, tmp_path):
    result = runner.invoke(main, ["query", "--cols", "80", str(tmp_path / "missing.log")])
    assert result.exit_code != 0
    assert "does not exist" in result.output


def test_server_rejects_bad_config(runner, tmp_path):
    path = tmp_path / "server.yaml"
    path.write_text("log_level: chatty\n")
    result = runner.invoke(main, ["server", "--config", str(path)])
    assert result.exit_code == 1
    assert "Invalid config" in result.output


def test_babble_is_reproducible(runner):
    first = runner.invoke(main, ["babble", "-n", "20", "--seed", "7"])
    second = runner.invoke(main, ["babble", "-n", "20", "--seed", "7"])
    assert first.exit_code == 0
    assert strip_times(first.output) == strip_times(second.output)
    assert len(first.output.splitlines()) == 20


def test_babble_lines_parse():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    lines = list(generate_lines(200, random.Random(1), start))
    headers = [parse_header(line) for line in lines]
    with_header = [h for h in headers if h.level is not None]
    assert with_header
    assert len(with_header) < len(lines)
    assert all(h.timestamp >= start for h in with_header)


def test_render_plain_and_colored():
    line = DisplayLine(
        logical_line_number=0,
        level=0,
        spans=[Span(text="ERROR", label=SpanLabel.LEVEL), Span(text=" boom", label=SpanLabel.TEXT)],
    )
    assert render_line(line, use_color=False) == "ERROR boom"
    assert render_line(line, use_color=True) == f"{C.ERROR}ERROR{C.RESET} boom"
