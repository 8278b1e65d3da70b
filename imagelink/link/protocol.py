"""Wire shapes exchanged with the host link endpoint.

Outbound envelopes are `{"$type": <operation>, "messageId": <id>, ...fields}`;
inbound replies are `{"$type", "sourceMessageId", "success", "errorInfo"?, "data"?, "assetURL"?}`.
Component members travel as `{"$type", "value"}`, `{"$type": "reference", "targetId"}`
or `{"$type": "list", "elements": [...]}` wrappers, each optionally carrying its own `id`.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from imagelink.utils.exceptions import ProtocolError

IMPORT_TEXTURE = "importTexture2DFile"
ADD_SLOT = "addSlot"
GET_SLOT = "getSlot"
ADD_COMPONENT = "addComponent"
GET_COMPONENT = "getComponent"
UPDATE_COMPONENT = "updateComponent"


@dataclass
class Vector3:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_wire(self) -> dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_wire(cls, raw: Any) -> Vector3 | None:
        if not isinstance(raw, dict):
            return None
        try:
            return cls(float(raw.get("x", 0.0)), float(raw.get("y", 0.0)), float(raw.get("z", 0.0)))
        except (TypeError, ValueError):
            return None


@dataclass
class Reply:
    """One inbound reply, matched to its call by `source_message_id`."""

    source_message_id: str
    success: bool
    type: str = ""
    error_info: str | None = None
    data: Any = None
    asset_url: str | None = None

    @classmethod
    def from_dict(cls, raw: Any) -> Reply:
        if not isinstance(raw, dict):
            raise ProtocolError(f"reply must be a JSON object, got {type(raw).__name__}")
        source_id = raw.get("sourceMessageId")
        if not isinstance(source_id, str) or not source_id:
            raise ProtocolError("reply has no sourceMessageId")
        error_info = raw.get("errorInfo")
        asset_url = raw.get("assetURL")
        return cls(
            source_message_id=source_id,
            success=raw.get("success") is True,
            type=str(raw.get("$type") or ""),
            error_info=str(error_info) if error_info is not None else None,
            data=raw.get("data"),
            asset_url=str(asset_url) if asset_url else None,
        )

    @classmethod
    def from_json(cls, text: str | bytes) -> Reply:
        try:
            raw = json.loads(text)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise ProtocolError(f"reply is not valid JSON: {e}") from e
        return cls.from_dict(raw)


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------


@dataclass
class Field:
    """Scalar member: a literal value of some host type (Uri, float3, enum, int, ...)."""

    type: str
    value: Any = None
    id: str | None = None
    enum_type: str | None = None


@dataclass
class Reference:
    """Member pointing at another host entity by id."""

    target_id: str | None = None
    id: str | None = None


@dataclass
class ListMember:
    """Ordered collection member; every element carries its own id once the host assigns one."""

    id: str | None = None
    elements: list[Member] = field(default_factory=list)


Member = Union[Field, Reference, ListMember]


def member_to_wire(member: Member) -> dict[str, Any]:
    if isinstance(member, Reference):
        out: dict[str, Any] = {"$type": "reference", "targetId": member.target_id}
    elif isinstance(member, ListMember):
        out = {"$type": "list", "elements": [member_to_wire(el) for el in member.elements]}
    else:
        out = {"$type": member.type, "value": member.value}
        if member.enum_type:
            out["enumType"] = member.enum_type
    if member.id:
        out["id"] = member.id
    return out


def member_from_wire(raw: Any) -> Member:
    if not isinstance(raw, dict):
        return Field(type="", value=raw)
    member_id = raw.get("id")
    member_id = str(member_id) if member_id else None
    kind = str(raw.get("$type") or "")
    if kind == "reference" or ("targetId" in raw and "value" not in raw):
        target = raw.get("targetId")
        return Reference(target_id=str(target) if target else None, id=member_id)
    if kind in ("list", "syncList") or isinstance(raw.get("elements"), list):
        elements = [member_from_wire(el) for el in raw.get("elements") or []]
        return ListMember(id=member_id, elements=elements)
    enum_type = raw.get("enumType")
    return Field(type=kind, value=raw.get("value"), id=member_id, enum_type=str(enum_type) if enum_type else None)


def members_to_wire(members: dict[str, Member]) -> dict[str, Any]:
    return {name: member_to_wire(m) for name, m in members.items()}


# ---------------------------------------------------------------------------
# Scene snapshots
# ---------------------------------------------------------------------------


def _unwrap(raw: Any) -> Any:
    """Host fields may arrive as `{"value": x}` wrappers or plain values."""
    if isinstance(raw, dict) and "value" in raw:
        return raw["value"]
    return raw


@dataclass
class RemoteComponent:
    id: str
    component_type: str = ""
    members: dict[str, Member] = field(default_factory=dict)

    @classmethod
    def from_wire(cls, raw: Any) -> RemoteComponent | None:
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        members_raw = raw.get("members")
        members = {}
        if isinstance(members_raw, dict):
            members = {str(k): member_from_wire(v) for k, v in members_raw.items()}
        return cls(
            id=str(raw["id"]),
            component_type=str(_unwrap(raw.get("componentType")) or ""),
            members=members,
        )

    def member_id(self, name: str) -> str | None:
        member = self.members.get(name)
        return member.id if member is not None else None


@dataclass
class RemoteNode:
    id: str
    name: str = ""
    position: Vector3 | None = None
    active: bool = True
    children: list[RemoteNode] = field(default_factory=list)
    components: list[RemoteComponent] | None = None

    @classmethod
    def from_wire(cls, raw: Any) -> RemoteNode | None:
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        name = _unwrap(raw.get("name"))
        active = _unwrap(raw.get("isActive"))
        children = [c for c in (cls.from_wire(ch) for ch in raw.get("children") or []) if c is not None]
        components = None
        if isinstance(raw.get("components"), list):
            components = [
                c for c in (RemoteComponent.from_wire(comp) for comp in raw["components"]) if c is not None
            ]
        return cls(
            id=str(raw["id"]),
            name=str(name) if name is not None else "",
            position=Vector3.from_wire(_unwrap(raw.get("position"))),
            active=bool(active) if active is not None else True,
            children=children,
            components=components,
        )

    def find_component(self, match: str) -> RemoteComponent | None:
        """First attached component whose type contains `match`."""
        for component in self.components or []:
            if match in component.component_type:
                return component
        return None
