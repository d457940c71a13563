# logview/session.py
"""Per-connection protocol handling.

One Session serves one client over a duplex text channel. It owns its tail
context and its single-entry query cache outright; nothing is shared
between sessions.

Messages:
    request       {"id", "method": "list"|"logs", "params"}
    response      {"id", "result", "error"}
    notification  {"method": "tail"|"done", "params"}

A "logs" request carrying "from" is a one-shot ranged query. Without it,
the request starts tailing the file and is acknowledged with an empty
result; the file's rows then arrive as "tail" notifications.
"""
from __future__ import annotations
import asyncio
import json
import logging
from pathlib import Path
from typing import Protocol

from pydantic import BaseModel, ValidationError

from logview.config import PathNotAllowed, ServerConfig
from logview.layout import LayoutError
from logview.models import (
    ErrorBody,
    LogsParams,
    Method,
    Notification,
    QueryResult,
    Request,
    Response,
    to_wire,
)
from logview.parser import FilterError, TimestampError, compile_filter
from logview.query import InvalidLogData, scan_file
from logview.tailer import FileWatcher, TailContext, WatcherFactory

logger = logging.getLogger(__name__)

INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
IO_ERROR = -32001
TIMESTAMP_ERROR = -32002
LAYOUT_ERROR = -32003
PATH_NOT_ALLOWED = -32004

# Checked in order; InvalidLogData before OSError's catch-all
_ERROR_CODES = (
    (FilterError, INVALID_PARAMS),
    (PathNotAllowed, PATH_NOT_ALLOWED),
    (TimestampError, TIMESTAMP_ERROR),
    (LayoutError, LAYOUT_ERROR),
    (InvalidLogData, IO_ERROR),
    (OSError, IO_ERROR),
)
_REQUEST_ERRORS = tuple(exc for exc, _ in _ERROR_CODES)


class Channel(Protocol):
    async def receive(self) -> str | None:
        """Next text message, or None once the peer has gone."""
        ...

    async def send(self, text: str) -> None:
        ...


class ProtocolError(Exception):
    def __init__(self, code: int, message: str):
        super().__init__(message)
        self.code = code
        self.message = message


def _valid_id(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value >= 0


class Session:
    def __init__(
        self,
        channel: Channel,
        config: ServerConfig | None = None,
        watcher_factory: WatcherFactory = FileWatcher,
    ):
        self.channel = channel
        self.config = config or ServerConfig()
        self.watcher_factory = watcher_factory
        self.tail: TailContext | None = None
        self.cache: tuple[tuple, QueryResult] | None = None

    async def run(self) -> None:
        """Serve the channel until the peer closes it.

        Inbound messages and change notifications are raced; when both are
        ready the message goes first, so a new tail replaces the old one
        before the old one's notification is looked at.
        """
        receiving = asyncio.ensure_future(self.channel.receive())
        watching: asyncio.Future | None = None
        try:
            while True:
                if watching is None and self.tail is not None and not self.tail.ended:
                    watching = asyncio.ensure_future(self.tail.next_change())
                waiters = {receiving} if watching is None else {receiving, watching}
                done, _ = await asyncio.wait(waiters, return_when=asyncio.FIRST_COMPLETED)

                if receiving in done:
                    text = receiving.result()
                    if text is None:
                        logger.debug("peer closed the channel")
                        return
                    previous = self.tail
                    await self.handle_message(text)
                    if self.tail is not previous and watching is not None:
                        watching.cancel()
                        watching = None
                    receiving = asyncio.ensure_future(self.channel.receive())
                    continue

                new_length = watching.result()
                watching = None
                await self.handle_change(new_length)
        finally:
            receiving.cancel()
            if watching is not None:
                watching.cancel()
            if self.tail is not None:
                self.tail.close()

    async def handle_message(self, text: str) -> None:
        logger.debug("received: %s", text)
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.warning("dropping message that is not JSON: %s", e)
            return
        request_id = payload.get("id") if isinstance(payload, dict) else None
        if not _valid_id(request_id):
            logger.warning("dropping message without a usable id: %.200s", text)
            return

        try:
            result = self.dispatch(payload)
        except ProtocolError as e:
            logger.warning("request %d failed (%d): %s", request_id, e.code, e.message)
            await self.respond(Response(
                id=request_id, error=ErrorBody(code=e.code, message=e.message)
            ))
            return
        await self.respond(Response(id=request_id, result=result))

    def dispatch(self, payload: dict):
        try:
            request = Request.model_validate(payload)
        except ValidationError as e:
            raise ProtocolError(INVALID_REQUEST, f"invalid request: {e}") from e
        try:
            method = Method(request.method)
        except ValueError:
            method = None
        if method is Method.LIST:
            return self.config.list_log_files()
        if method is not Method.LOGS:
            raise ProtocolError(
                METHOD_NOT_FOUND, f"method {request.method!r} cannot be requested"
            )

        try:
            params = LogsParams.model_validate(request.params or {})
        except ValidationError as e:
            raise ProtocolError(INVALID_PARAMS, f"invalid params: {e}") from e
        try:
            canonical = self.config.check_allowed(params.log_file)
            params = params.model_copy(update={"log_file": Path(canonical)})
            if params.is_query:
                return to_wire(self.query(params))
            return to_wire(self.start_tail(params))
        except _REQUEST_ERRORS as e:
            raise ProtocolError(self._code_for(e), str(e)) from e

    @staticmethod
    def _code_for(error: Exception) -> int:
        return next(code for exc_type, code in _ERROR_CODES if isinstance(error, exc_type))

    def query(self, params: LogsParams) -> QueryResult:
        """Serve a ranged query, rescanning only when cols, filter or file change."""
        key = params.cache_key()
        if self.cache is not None and self.cache[0] == key:
            logger.debug("re-ranging cached result for %s", params.log_file)
            return self.cache[1].range(params.from_, params.to)
        result = scan_file(params.log_file, params.cols, compile_filter(params.filter))
        self.cache = (key, result)
        return result.range(params.from_, params.to)

    def start_tail(self, params: LogsParams) -> QueryResult:
        """Replace any current tail with one on params.log_file.

        A request that fails leaves the current tail in place.
        """
        tail = TailContext.from_params(params, watcher_factory=self.watcher_factory)
        if self.tail is not None:
            self.tail.close()
        self.tail = tail
        tail.attach()
        logger.info("tailing %s at %d columns", params.log_file, params.cols)
        return QueryResult.empty()

    async def handle_change(self, new_length: int | None) -> None:
        if new_length is None:
            logger.info("%s is gone, tail ended", self.tail.log_file)
            self.tail.end()
            await self.notify(Method.DONE, {})
            return
        display_lines = self.tail.advance(new_length)
        if display_lines:
            await self.notify(
                Method.TAIL, {"display_lines": [to_wire(line) for line in display_lines]}
            )

    async def respond(self, response: Response) -> None:
        await self._send(response)

    async def notify(self, method: Method, params: dict) -> None:
        await self._send(Notification(method=method, params=params))

    async def _send(self, message: BaseModel) -> None:
        await self.channel.send(message.model_dump_json(by_alias=True))
