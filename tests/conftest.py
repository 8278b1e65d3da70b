"""Pytest hooks and fixtures.

`FakeHost` is an in-memory scene that answers link envelopes the way the real
endpoint does; `FakeTransport` stands in for the websocket session and feeds
replies back to the client on the next loop iteration.
"""

from __future__ import annotations

import asyncio
import itertools
import json
from typing import Any

import pytest

from imagelink.link.client import LinkClient
from imagelink.utils.exceptions import NotConnectedError, TransportError


# Members each component type starts with; everything else starts empty.
_MEMBER_TEMPLATES: dict[str, dict[str, dict[str, Any]]] = {
    "StaticTexture2D": {"URL": {"$type": "Uri", "value": None}},
    "QuadMesh": {"Size": {"$type": "float2", "value": {"x": 1, "y": 1}}},
    "BoxCollider": {
        "Size": {"$type": "float3", "value": {"x": 1, "y": 1, "z": 1}},
        "Type": {"$type": "enum", "value": "Static", "enumType": "ColliderType"},
    },
    "MeshRenderer": {
        "Mesh": {"$type": "reference", "targetId": None},
        "Materials": {"$type": "list", "elements": []},
    },
}


class FakeHost:
    def __init__(self) -> None:
        self._ids = itertools.count(1)
        self.nodes: dict[str, dict[str, Any]] = {}
        self.components: dict[str, dict[str, Any]] = {}
        self.received: list[dict[str, Any]] = []
        self.asset_urls: list[str] = []
        self.import_error: str | None = None
        self.silent: set[str] = set()
        self.rejected_types: set[str] = set()
        self._create_node("Root", parent_id=None, node_id="Root")

    # -- setup helpers --------------------------------------------------

    def new_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def _create_node(
        self,
        name: str,
        *,
        parent_id: str | None = "Root",
        node_id: str | None = None,
        position: dict[str, float] | None = None,
        active: bool = True,
    ) -> dict[str, Any]:
        node = {
            "id": node_id or self.new_id("slot"),
            "name": name,
            "position": position or {"x": 0.0, "y": 0.0, "z": 0.0},
            "isActive": active,
            "children": [],
            "components": [],
        }
        self.nodes[node["id"]] = node
        if parent_id is not None:
            self.nodes[parent_id]["children"].append(node["id"])
        return node

    def add_node(self, name: str, parent_id: str = "Root") -> dict[str, Any]:
        return self._create_node(name, parent_id=parent_id)

    def attach(self, node_id: str, component_type: str) -> dict[str, Any]:
        members = {}
        for match, template in _MEMBER_TEMPLATES.items():
            if match in component_type:
                members = json.loads(json.dumps(template))
        for member in members.values():
            member["id"] = self.new_id("member")
        component = {"id": self.new_id("comp"), "componentType": component_type, "members": members}
        self.components[component["id"]] = component
        self.nodes[node_id]["components"].append(component["id"])
        return component

    def nodes_named(self, name: str) -> list[dict[str, Any]]:
        return [n for n in self.nodes.values() if n["name"] == name]

    def component_of(self, node_id: str, match: str) -> dict[str, Any] | None:
        for comp_id in self.nodes[node_id]["components"]:
            if match in self.components[comp_id]["componentType"]:
                return self.components[comp_id]
        return None

    @property
    def operations(self) -> list[str]:
        return [env["$type"] for env in self.received]

    # -- protocol -------------------------------------------------------

    def handle(self, envelope: dict[str, Any]) -> dict[str, Any] | None:
        self.received.append(envelope)
        op = envelope["$type"]
        if op in self.silent:
            return None
        reply: dict[str, Any] = {"$type": "response", "sourceMessageId": envelope["messageId"], "success": True}
        handler = getattr(self, f"_op_{op}", None)
        if handler is None:
            reply.update(success=False, errorInfo=f"unknown operation {op}")
            return reply
        result = handler(envelope)
        if isinstance(result, str):
            reply.update(success=False, errorInfo=result)
        elif result is not None:
            reply.update(result)
        return reply

    def _op_importTexture2DFile(self, env):
        if self.import_error:
            return self.import_error
        url = self.asset_urls.pop(0) if self.asset_urls else f"res://{self.new_id('asset')}"
        return {"assetURL": url}

    def _op_addSlot(self, env):
        data = env["data"]
        parent = (data.get("parent") or {}).get("targetId") or "Root"
        if parent not in self.nodes:
            return f"parent {parent} not found"
        self._create_node(
            data["name"]["value"],
            parent_id=parent,
            position=(data.get("position") or {}).get("value"),
            active=(data.get("isActive") or {}).get("value", True),
        )
        return None

    def _serialize_node(self, node_id: str, depth: int, with_components: bool) -> dict[str, Any]:
        node = self.nodes[node_id]
        out: dict[str, Any] = {
            "id": node["id"],
            "name": {"value": node["name"]},
            "position": {"value": node["position"]},
            "isActive": {"value": node["isActive"]},
        }
        if depth > 0:
            out["children"] = [self._serialize_node(c, depth - 1, with_components) for c in node["children"]]
        if with_components:
            out["components"] = [
                {"id": c, "componentType": self.components[c]["componentType"]} for c in node["components"]
            ]
        return out

    def _op_getSlot(self, env):
        if env["slotId"] not in self.nodes:
            return f"slot {env['slotId']} not found"
        return {"data": self._serialize_node(env["slotId"], env["depth"], env["includeComponentData"])}

    def _op_addComponent(self, env):
        node_id = env["containerSlotId"]
        component_type = env["data"]["componentType"]
        if node_id not in self.nodes:
            return f"slot {node_id} not found"
        if component_type in self.rejected_types:
            return f"cannot create {component_type}"
        self.attach(node_id, component_type)
        return None

    def _op_getComponent(self, env):
        component = self.components.get(env["componentId"])
        if component is None:
            return f"component {env['componentId']} not found"
        return {"data": json.loads(json.dumps(component))}

    def _op_updateComponent(self, env):
        component = self.components.get(env["data"]["id"])
        if component is None:
            return f"component {env['data']['id']} not found"
        for name, incoming in env["data"]["members"].items():
            current = component["members"].get(name)
            if incoming.get("$type") == "list":
                if current is None:
                    current = component["members"][name] = {"$type": "list", "id": self.new_id("member"), "elements": []}
                for element in incoming["elements"]:
                    match = next((e for e in current["elements"] if element.get("id") and e["id"] == element["id"]), None)
                    if match is not None:
                        match["targetId"] = element.get("targetId")
                    elif element.get("id"):
                        return f"list element {element['id']} not found"
                    else:
                        # New elements come into existence without their target.
                        current["elements"].append({"$type": "reference", "id": self.new_id("elem"), "targetId": None})
                continue
            updated = dict(incoming)
            updated["id"] = current["id"] if current else self.new_id("member")
            component["members"][name] = updated
        return None


class FakeTransport:
    """Duck-typed stand-in for TransportSession."""

    def __init__(self, host: FakeHost | None = None) -> None:
        self.host = host
        self.connected = False
        self.fail_send = False
        self.sent: list[dict[str, Any]] = []
        self._on_message = None
        self._on_close = None

    def on_message(self, handler) -> None:
        self._on_message = handler

    def on_close(self, handler) -> None:
        self._on_close = handler

    async def connect(self) -> None:
        self.connected = True

    async def close(self) -> None:
        self.connected = False

    async def send(self, text: str) -> None:
        if not self.connected:
            raise NotConnectedError()
        if self.fail_send:
            raise TransportError("socket write failed")
        envelope = json.loads(text)
        self.sent.append(envelope)
        if self.host is None:
            return
        reply = self.host.handle(envelope)
        if reply is not None:
            asyncio.get_running_loop().call_soon(self.deliver, json.dumps(reply))

    def deliver(self, text: str) -> None:
        self._on_message(text)

    def drop(self, error: Exception | None = None) -> None:
        self.connected = False
        self._on_close(error)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def transport(host: FakeHost) -> FakeTransport:
    t = FakeTransport(host)
    t.connected = True
    return t


@pytest.fixture
def client(transport: FakeTransport) -> LinkClient:
    return LinkClient("ws://fake", request_timeout_ms=2000, transport=transport)


@pytest.fixture
def bare_transport() -> FakeTransport:
    """Connected transport that never answers; tests deliver replies by hand."""
    t = FakeTransport(None)
    t.connected = True
    return t
