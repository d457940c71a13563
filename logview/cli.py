# logview/cli.py
from __future__ import annotations
import asyncio
import json
import logging
import random
import shutil
import sys
from pathlib import Path

import click
import yaml

from logview.babble import babble as generate_lines
from logview.config import load_config
from logview.layout import LayoutError
from logview.models import LogsParams, to_wire
from logview.parser import FilterError, TimestampError
from logview.query import InvalidLogData, run_query
from logview.render import C, render_line
from logview.server import run_server
from logview.tailer import TailContext

_USER_ERRORS = (FilterError, TimestampError, LayoutError, InvalidLogData, OSError)


def _configure_logging(level: int | str) -> None:
    logging.basicConfig(
        level=level,
        stream=sys.stderr,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _verbose(ctx) -> bool:
    return bool((ctx.obj or {}).get("verbose"))


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Log debug output to stderr")
@click.pass_context
def main(ctx, verbose):
    """Structured log viewer with a live-tail websocket server."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose


@main.command()
@click.option("--cols", type=click.IntRange(min=0), required=True, help="Display width in columns")
@click.option("--filter", "filter_", default=None, help="Only show lines whose text matches this regex")
@click.option("--json", "as_json", is_flag=True, help="Print rows as JSON")
@click.option("--no-color", is_flag=True, help="Disable color output")
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.argument("start", type=click.IntRange(min=0), default=0)
@click.argument("end", type=click.IntRange(min=0), required=False)
@click.pass_context
def query(ctx, cols, filter_, as_json, no_color, log_file, start, end):
    """Print display rows START..END of LOG_FILE."""
    _configure_logging(logging.DEBUG if _verbose(ctx) else logging.WARNING)
    params = LogsParams(cols=cols, filter=filter_, log_file=log_file, from_=start, to=end)
    try:
        result = run_query(params)
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))

    use_color = not no_color and sys.stdout.isatty()
    for line in result.display_lines:
        if as_json:
            click.echo(json.dumps(to_wire(line), indent=2, ensure_ascii=False))
        else:
            click.echo(render_line(line, use_color))


async def _follow(tail: TailContext, use_color: bool) -> None:
    tail.attach()
    try:
        while True:
            new_length = await tail.next_change()
            if new_length is None:
                click.echo("-- log file removed --", err=True)
                return
            for line in tail.advance(new_length):
                click.echo(render_line(line, use_color))
    finally:
        tail.close()


@main.command()
@click.option("--cols", type=click.IntRange(min=0), default=None, help="Display width (default: terminal width)")
@click.option("--filter", "filter_", default=None, help="Only show lines whose text matches this regex")
@click.option("--no-color", is_flag=True, help="Disable color output (for piping)")
@click.argument("log_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.pass_context
def tail(ctx, cols, filter_, no_color, log_file):
    """Follow LOG_FILE, printing wrapped rows as lines are appended."""
    _configure_logging(logging.DEBUG if _verbose(ctx) else logging.WARNING)
    if cols is None:
        cols = shutil.get_terminal_size().columns
    params = LogsParams(cols=cols, filter=filter_, log_file=log_file)
    try:
        context = TailContext.from_params(params)
        asyncio.run(_follow(context, not no_color and sys.stdout.isatty()))
    except _USER_ERRORS as e:
        raise click.ClickException(str(e))
    except KeyboardInterrupt:
        click.echo(f"\n{C.DIM}Stopped.{C.RESET}" if not no_color else "\nStopped.", err=True)


@main.command()
@click.option("--config", "config_path", type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help="YAML server configuration")
@click.option("--host", default=None, help="Bind address (overrides config)")
@click.option("--port", type=int, default=None, help="Bind port (overrides config)")
@click.pass_context
def server(ctx, config_path, host, port):
    """Run the websocket log server."""
    try:
        config = load_config(config_path)
    except (ValueError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid config {config_path}: {e}")
    updates = {k: v for k, v in (("host", host), ("port", port)) if v is not None}
    config = config.model_copy(update=updates)
    _configure_logging(logging.DEBUG if _verbose(ctx) else config.log_level)
    run_server(config)


@main.command()
@click.option("--lines", "-n", default=100, help="Number of lines to generate")
@click.option("--seed", type=int, default=None, help="Random seed for reproducible output")
def babble(lines, seed):
    """Print synthetic log lines to stdout."""
    for line in generate_lines(lines, random.Random(seed)):
        click.echo(line)
