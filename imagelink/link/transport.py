"""Persistent websocket session to the host link endpoint."""

from __future__ import annotations

import asyncio
import inspect
from typing import Any, Callable

import websockets
from loguru import logger

from imagelink.utils.exceptions import NotConnectedError, TransportError

MessageHandler = Callable[[str], Any]
CloseHandler = Callable[[Exception | None], Any]


class TransportSession:
    """
    Owns one websocket connection and delivers every inbound text frame to a single handler.

    There is no buffering or reconnect: once the socket drops, the session stays
    closed until `connect()` is called again.
    """

    def __init__(self, url: str, *, open_timeout: float = 10.0):
        self.url = url
        self.open_timeout = open_timeout
        self._ws: Any = None
        self._reader: asyncio.Task | None = None
        self._on_message: MessageHandler | None = None
        self._on_close: CloseHandler | None = None

    @property
    def connected(self) -> bool:
        return self._ws is not None

    def on_message(self, handler: MessageHandler) -> None:
        self._on_message = handler

    def on_close(self, handler: CloseHandler) -> None:
        self._on_close = handler

    async def connect(self) -> None:
        if self._ws is not None:
            return
        try:
            ws = await websockets.connect(self.url, open_timeout=self.open_timeout, max_size=None)
        except Exception as e:
            raise TransportError(f"Failed to connect to {self.url}: {e}") from e
        self._ws = ws
        self._reader = asyncio.create_task(self._read_loop(ws))
        logger.info(f"Connected to {self.url}")

    async def send(self, text: str) -> None:
        ws = self._ws
        if ws is None:
            raise NotConnectedError()
        try:
            await ws.send(text)
        except Exception as e:
            raise TransportError(f"Send failed: {e}") from e

    async def close(self) -> None:
        ws, self._ws = self._ws, None
        reader, self._reader = self._reader, None
        if ws is not None:
            try:
                await ws.close()
            except Exception as e:
                logger.debug(f"Error while closing websocket: {e}")
        if reader is not None and reader is not asyncio.current_task():
            reader.cancel()
            try:
                await reader
            except asyncio.CancelledError:
                pass

    async def _read_loop(self, ws: Any) -> None:
        error: Exception | None = None
        try:
            async for raw in ws:
                if isinstance(raw, bytes):
                    try:
                        raw = raw.decode("utf-8")
                    except UnicodeDecodeError:
                        logger.warning("Dropping undecodable binary frame")
                        continue
                await self._dispatch(raw)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            error = e
            logger.warning(f"Connection to {self.url} lost: {e}")
        if self._ws is ws:
            self._ws = None
            self._reader = None
            logger.info("Connection closed")
            await self._notify_close(error)

    async def _dispatch(self, text: str) -> None:
        if self._on_message is None:
            return
        try:
            result = self._on_message(text)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Message handler failed: {e}")

    async def _notify_close(self, error: Exception | None) -> None:
        if self._on_close is None:
            return
        try:
            result = self._on_close(error)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            logger.exception(f"Close handler failed: {e}")


__all__ = ["TransportSession", "MessageHandler", "CloseHandler"]
