"""Build and refresh image objects on the host through ordered link calls."""

from __future__ import annotations

import asyncio
from enum import Enum
from typing import Callable, Union

from loguru import logger

from imagelink.link.client import LinkClient
from imagelink.link.lookup import find_node_by_name, find_node_ids_by_name
from imagelink.link.protocol import Field, Member, Reference, RemoteComponent, RemoteNode, Vector3
from imagelink.scene import catalogue
from imagelink.scene.catalogue import COMPONENT_CATALOGUE
from imagelink.scene.lists import set_list_reference
from imagelink.utils.exceptions import ConstructionError

PositionSource = Union[Vector3, Callable[[], Vector3], None]

SNAP_NORMAL = Vector3(0.0, 0.0, 1.0)
# Mesh size (float2) -> collider size (float3): X from x, Y from y, Z left unset.
SWIZZLE_AXES = {"X": 0, "Y": 1, "Z": -1}


class RefreshOutcome(str, Enum):
    UPDATED = "updated"
    CONSTRUCTED = "constructed"
    NOT_FOUND = "not_found"
    NOT_UPDATABLE = "not_updatable"
    FAILED = "failed"


def texture_url_member(asset_url: str) -> dict[str, Member]:
    return {"URL": Field(type="Uri", value=asset_url)}


def _enum(value: str, enum_type: str) -> Field:
    return Field(type="enum", value=value, enum_type=enum_type)


def _ref(target_id: str) -> Reference:
    return Reference(target_id=target_id)


class ImageSlotBuilder:
    """
    Creates the container node and component rig for one image, or retargets the
    texture of an existing one.

    Steps run strictly in sequence. The host does not return ids for created
    entities, so the container is rediscovered by name and components by type.
    A component that fails to appear only disables the wiring that needs it.
    """

    def __init__(
        self,
        client: LinkClient,
        *,
        root_id: str = "Root",
        lookup_depth: int = 5,
        refresh_depth: int = 10,
        lookup_attempts: int = 3,
        settle_delay: float = 0.1,
    ):
        self.client = client
        self.root_id = root_id
        self.lookup_depth = lookup_depth
        self.refresh_depth = refresh_depth
        self.lookup_attempts = max(1, lookup_attempts)
        self.settle_delay = settle_delay

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def construct(self, name: str, asset_url: str, position: Vector3) -> str:
        """Create a fully wired image object and return its container id."""
        logger.info(f"Spawning image slot: {name}")
        existing = await find_node_ids_by_name(
            self.client, name, root_id=self.root_id, max_depth=self.lookup_depth
        )
        reply = await self.client.add_node(name, parent_id=self.root_id, position=position, active=True)
        if not reply.success:
            raise ConstructionError(name, reply.error_info or "addSlot rejected")

        node = await self._rediscover(name, existing)
        if node is None:
            raise ConstructionError(name, "created container could not be found by name")
        logger.debug(f"Created slot: {node.id}")

        await self._attach_catalogue(node.id)

        components = await self._resolve_components(node.id)
        texture = components.get(catalogue.TEXTURE.key)
        if texture is not None:
            await self._update(texture, texture_url_member(asset_url), "texture URL")
        else:
            logger.warning(f"StaticTexture2D missing on {name}; texture wiring skipped")

        if self.settle_delay > 0:
            await asyncio.sleep(self.settle_delay)
        components = await self._resolve_components(node.id)
        await self._wire(components)

        logger.info(f"Image slot created: {name} ({node.id})")
        return node.id

    async def refresh(self, name: str, asset_url: str) -> RefreshOutcome:
        """Retarget the texture of an existing object; never creates anything."""
        node = await find_node_by_name(self.client, name, root_id=self.root_id, max_depth=self.refresh_depth)
        if node is None:
            logger.debug(f"Slot not found for update: {name}")
            return RefreshOutcome.NOT_FOUND

        snapshot = await self.client.fetch_node(node.id, depth=0, include_components=True)
        texture = snapshot.find_component(catalogue.TEXTURE.match) if snapshot else None
        if texture is None:
            logger.warning(f"StaticTexture2D not found in slot: {name}")
            return RefreshOutcome.NOT_UPDATABLE

        if not await self._update(texture, texture_url_member(asset_url), "texture URL"):
            return RefreshOutcome.FAILED
        logger.info(f"Image updated: {name}")
        return RefreshOutcome.UPDATED

    async def refresh_or_construct(
        self,
        name: str,
        asset_url: str,
        position: PositionSource = None,
    ) -> RefreshOutcome:
        """Refresh `name` if it exists on the host, otherwise construct it."""
        outcome = await self.refresh(name, asset_url)
        if outcome is not RefreshOutcome.NOT_FOUND:
            return outcome
        await self.construct(name, asset_url, self._position(position))
        return RefreshOutcome.CONSTRUCTED

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    @staticmethod
    def _position(position: PositionSource) -> Vector3:
        if callable(position):
            return position()
        return position or Vector3()

    async def _rediscover(self, name: str, existing: set[str]) -> RemoteNode | None:
        """The container named `name` that was not there before `add_node`."""
        for attempt in range(self.lookup_attempts):
            node = await find_node_by_name(
                self.client, name, root_id=self.root_id, max_depth=self.lookup_depth, exclude=existing
            )
            if node is not None:
                return node
            if attempt + 1 < self.lookup_attempts and self.settle_delay > 0:
                await asyncio.sleep(self.settle_delay)
        return None

    async def _attach_catalogue(self, node_id: str) -> None:
        for entry in COMPONENT_CATALOGUE:
            reply = await self.client.add_component(node_id, entry.type_name)
            if not reply.success:
                logger.warning(f"addComponent {entry.type_name} on {node_id} failed: {reply.error_info}")

    async def _resolve_components(self, node_id: str) -> dict[str, RemoteComponent]:
        snapshot = await self.client.fetch_node(node_id, depth=0, include_components=True)
        if snapshot is None:
            return {}
        resolved = {}
        for entry in COMPONENT_CATALOGUE:
            component = snapshot.find_component(entry.match)
            if component is not None:
                resolved[entry.key] = component
        return resolved

    async def _update(self, component: RemoteComponent, members: dict[str, Member], label: str) -> bool:
        reply = await self.client.update_component(component.id, members)
        if not reply.success:
            logger.warning(f"Updating {label} on {component.id} failed: {reply.error_info}")
        return reply.success

    async def _member_id(self, component: RemoteComponent | None, member: str) -> str | None:
        if component is None:
            return None
        details = await self.client.fetch_component(component.id)
        return details.member_id(member) if details else None

    async def _wire(self, c: dict[str, RemoteComponent]) -> None:
        texture = c.get(catalogue.TEXTURE.key)
        exporter = c.get(catalogue.EXPORTER.key)
        thumbnail = c.get(catalogue.THUMBNAIL.key)
        snap_plane = c.get(catalogue.SNAP_PLANE.key)
        reference_proxy = c.get(catalogue.REFERENCE_PROXY.key)
        asset_proxy = c.get(catalogue.ASSET_PROXY.key)
        material = c.get(catalogue.MATERIAL.key)
        mesh = c.get(catalogue.MESH.key)
        renderer = c.get(catalogue.RENDERER.key)
        size_driver = c.get(catalogue.SIZE_DRIVER.key)
        collider = c.get(catalogue.COLLIDER.key)
        swizzle = c.get(catalogue.SWIZZLE_DRIVER.key)

        if exporter and texture:
            await self._update(exporter, {"Texture": _ref(texture.id)}, "exporter texture")
        if thumbnail and texture:
            await self._update(thumbnail, {"Texture": _ref(texture.id)}, "thumbnail texture")
        if snap_plane:
            await self._update(
                snap_plane, {"Normal": Field(type="float3", value=SNAP_NORMAL.to_wire())}, "snap plane normal"
            )
        if reference_proxy and texture:
            await self._update(reference_proxy, {"Reference": _ref(texture.id)}, "reference proxy")
        if asset_proxy and texture:
            await self._update(asset_proxy, {"AssetReference": _ref(texture.id)}, "asset proxy")
        if material and texture:
            await self._update(
                material,
                {
                    "Texture": _ref(texture.id),
                    "BlendMode": _enum("Alpha", "BlendMode"),
                    "Sidedness": _enum("Double", "Sidedness"),
                },
                "material",
            )

        mesh_size_id = await self._member_id(mesh, "Size")
        collider_size_id = await self._member_id(collider, "Size")
        if collider:
            await self._update(collider, {"Type": _enum("NoCollision", "ColliderType")}, "collider type")

        if renderer and mesh and material:
            await self._update(renderer, {"Mesh": _ref(mesh.id)}, "renderer mesh")
            await set_list_reference(self.client, renderer.id, "Materials", material.id)

        if size_driver and texture and mesh_size_id:
            await self._update(
                size_driver,
                {
                    "Texture": _ref(texture.id),
                    "Target": _ref(mesh_size_id),
                    "DriveMode": _enum("Normalized", "Mode"),
                },
                "texture size driver",
            )

        if swizzle and mesh_size_id and collider_size_id:
            members: dict[str, Member] = {
                "Source": _ref(mesh_size_id),
                "Target": _ref(collider_size_id),
            }
            for axis, index in SWIZZLE_AXES.items():
                members[axis] = Field(type="int", value=index)
            await self._update(swizzle, members, "swizzle driver")
