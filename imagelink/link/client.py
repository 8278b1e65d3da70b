"""Correlated request/response client for the host link endpoint."""

from __future__ import annotations

import asyncio
import json
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any
from uuid import uuid4

from loguru import logger

from imagelink.link import protocol
from imagelink.link.protocol import Member, RemoteComponent, RemoteNode, Reply, Vector3
from imagelink.link.transport import TransportSession
from imagelink.utils.exceptions import (
    NotConnectedError,
    ProtocolError,
    RequestTimeoutError,
    TransportError,
)

DEFAULT_URL = "ws://localhost:22345"
DEFAULT_TIMEOUT_MS = 30000


@dataclass
class PendingCall:
    operation: str
    future: asyncio.Future[Reply]
    started_at: float


class LinkClient:
    """
    Multiplexes concurrent calls over one transport session.

    Every call gets a fresh message id and waits on its own future; whichever of
    {matching reply, timeout, connection loss} comes first settles it and removes
    the pending entry.
    """

    def __init__(
        self,
        url: str = DEFAULT_URL,
        *,
        request_timeout_ms: int = DEFAULT_TIMEOUT_MS,
        open_timeout: float = 10.0,
        transport: Any = None,
    ):
        self.url = url
        self.request_timeout_ms = request_timeout_ms
        self._transport = transport or TransportSession(url, open_timeout=open_timeout)
        self._transport.on_message(self._handle_message)
        self._transport.on_close(self._handle_close)
        self._pending: dict[str, PendingCall] = {}

    @property
    def is_connected(self) -> bool:
        return bool(self._transport.connected)

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def connect(self) -> None:
        await self._transport.connect()

    async def close(self) -> None:
        await self._transport.close()
        self._fail_all_pending("connection closed")

    async def __aenter__(self) -> LinkClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Correlation
    # ------------------------------------------------------------------

    async def call(self, operation: str, payload: dict[str, Any] | None = None) -> Reply:
        """Send one envelope and wait for the reply carrying its message id."""
        if not self.is_connected:
            raise NotConnectedError(operation)
        message_id = str(uuid4())
        envelope = {"$type": operation, "messageId": message_id, **(payload or {})}
        fut: asyncio.Future[Reply] = asyncio.get_running_loop().create_future()
        self._pending[message_id] = PendingCall(operation=operation, future=fut, started_at=time.monotonic())
        timeout_s = max(1, self.request_timeout_ms) / 1000.0
        try:
            try:
                await self._transport.send(json.dumps(envelope))
            except NotConnectedError:
                raise NotConnectedError(operation) from None
            except TransportError as e:
                raise TransportError(e.message, operation=operation) from e
            return await asyncio.wait_for(fut, timeout=timeout_s)
        except asyncio.TimeoutError:
            pending = self._pending.get(message_id)
            elapsed = time.monotonic() - pending.started_at if pending else timeout_s
            logger.warning(f"Request timeout: {operation} ({message_id}) after {elapsed:.2f}s")
            raise RequestTimeoutError(operation, timeout_s) from None
        finally:
            self._pending.pop(message_id, None)

    def _handle_message(self, text: str) -> None:
        try:
            reply = Reply.from_json(text)
        except ProtocolError as e:
            logger.warning(f"Failed to parse message: {e}")
            return
        pending = self._pending.pop(reply.source_message_id, None)
        if pending is None:
            logger.debug(f"Dropping unmatched reply {reply.source_message_id}")
            return
        if not pending.future.done():
            pending.future.set_result(reply)

    def _handle_close(self, error: Exception | None) -> None:
        self._fail_all_pending(f"connection closed: {error}" if error else "connection closed")

    def _fail_all_pending(self, reason: str) -> None:
        doomed = list(self._pending.items())
        self._pending.clear()
        for _, pending in doomed:
            if not pending.future.done():
                pending.future.set_exception(TransportError(reason, operation=pending.operation))

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def import_texture(self, file_path: str | Path) -> Reply:
        """Upload a local image; the reply carries the asset URL on success."""
        return await self.call(protocol.IMPORT_TEXTURE, {"filePath": str(Path(file_path).resolve())})

    async def add_node(
        self,
        name: str,
        *,
        parent_id: str | None = None,
        position: Vector3 | None = None,
        active: bool | None = None,
    ) -> Reply:
        data: dict[str, Any] = {"name": {"value": name}}
        if parent_id:
            data["parent"] = {"targetId": parent_id}
        if position is not None:
            data["position"] = {"value": position.to_wire()}
        if active is not None:
            data["isActive"] = {"value": active}
        return await self.call(protocol.ADD_SLOT, {"data": data})

    async def get_node(self, node_id: str, depth: int = 0, include_components: bool = False) -> Reply:
        return await self.call(
            protocol.GET_SLOT,
            {"slotId": node_id, "depth": depth, "includeComponentData": include_components},
        )

    async def add_component(self, node_id: str, component_type: str) -> Reply:
        return await self.call(
            protocol.ADD_COMPONENT,
            {"containerSlotId": node_id, "data": {"componentType": component_type}},
        )

    async def get_component(self, component_id: str) -> Reply:
        return await self.call(protocol.GET_COMPONENT, {"componentId": component_id})

    async def update_component(self, component_id: str, members: dict[str, Member]) -> Reply:
        """Merge the given members into a component; members not named are left alone."""
        return await self.call(
            protocol.UPDATE_COMPONENT,
            {"data": {"id": component_id, "members": protocol.members_to_wire(members)}},
        )

    async def fetch_node(
        self, node_id: str, depth: int = 0, include_components: bool = False
    ) -> RemoteNode | None:
        reply = await self.get_node(node_id, depth, include_components)
        if not reply.success:
            logger.debug(f"getSlot {node_id} failed: {reply.error_info}")
            return None
        return RemoteNode.from_wire(reply.data)

    async def fetch_component(self, component_id: str) -> RemoteComponent | None:
        reply = await self.get_component(component_id)
        if not reply.success:
            logger.debug(f"getComponent {component_id} failed: {reply.error_info}")
            return None
        return RemoteComponent.from_wire(reply.data)
