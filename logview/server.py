# logview/server.py
"""Websocket transport: one Session per connection on route "/"."""
from __future__ import annotations
import logging

import aiohttp
from aiohttp import web

from logview.config import ServerConfig
from logview.session import Session

logger = logging.getLogger(__name__)

CONFIG_KEY = web.AppKey("config", ServerConfig)


class WebSocketChannel:
    """Text-message view of an aiohttp websocket."""

    def __init__(self, ws: web.WebSocketResponse):
        self.ws = ws

    async def receive(self) -> str | None:
        while True:
            msg = await self.ws.receive()
            if msg.type == aiohttp.WSMsgType.TEXT:
                return msg.data
            if msg.type == aiohttp.WSMsgType.ERROR:
                logger.error("websocket error: %s", self.ws.exception())
                return None
            if msg.type in (
                aiohttp.WSMsgType.CLOSE,
                aiohttp.WSMsgType.CLOSING,
                aiohttp.WSMsgType.CLOSED,
            ):
                return None
            logger.debug("ignoring %s frame", msg.type.name)

    async def send(self, text: str) -> None:
        await self.ws.send_str(text)


async def handle_websocket(request: web.Request) -> web.WebSocketResponse:
    ws = web.WebSocketResponse()
    await ws.prepare(request)
    logger.info("client connected: %s", request.remote)
    session = Session(WebSocketChannel(ws), request.app[CONFIG_KEY])
    try:
        await session.run()
    except Exception:
        logger.error("while handling websocket connection from %s", request.remote, exc_info=True)
    finally:
        await ws.close()
        logger.info("client disconnected: %s", request.remote)
    return ws


def create_app(config: ServerConfig) -> web.Application:
    app = web.Application()
    app[CONFIG_KEY] = config
    app.router.add_get("/", handle_websocket)
    return app


def run_server(config: ServerConfig) -> None:
    logger.info("serving websocket on ws://%s:%d/", config.host, config.port)
    web.run_app(create_app(config), host=config.host, port=config.port, print=None)
