"""Components that make up one image object, in the order they are attached."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ComponentEntry:
    key: str
    type_name: str
    match: str  # Substring identifying the component in host type strings


def _engine(name: str) -> str:
    return f"[FrooxEngine]FrooxEngine.{name}"


GRABBABLE = ComponentEntry("grabbable", _engine("Grabbable"), "Grabbable")
TEXTURE = ComponentEntry("texture", _engine("StaticTexture2D"), "StaticTexture2D")
EXPORTER = ComponentEntry("exporter", _engine("TextureExportable"), "TextureExportable")
THUMBNAIL = ComponentEntry("thumbnail", _engine("ItemTextureThumbnailSource"), "ItemTextureThumbnailSource")
SNAP_PLANE = ComponentEntry("snap_plane", _engine("SnapPlane"), "SnapPlane")
REFERENCE_PROXY = ComponentEntry("reference_proxy", _engine("ReferenceProxy"), "ReferenceProxy")
ASSET_PROXY = ComponentEntry(
    "asset_proxy", _engine(f"AssetProxy<{_engine('Texture2D')}>"), "AssetProxy"
)
MATERIAL = ComponentEntry("material", _engine("UnlitMaterial"), "UnlitMaterial")
MESH = ComponentEntry("mesh", _engine("QuadMesh"), "QuadMesh")
RENDERER = ComponentEntry("renderer", _engine("MeshRenderer"), "MeshRenderer")
SIZE_DRIVER = ComponentEntry("size_driver", _engine("TextureSizeDriver"), "TextureSizeDriver")
COLLIDER = ComponentEntry("collider", _engine("BoxCollider"), "BoxCollider")
SWIZZLE_DRIVER = ComponentEntry(
    "swizzle_driver", _engine("Float2ToFloat3SwizzleDriver"), "Float2ToFloat3SwizzleDriver"
)

COMPONENT_CATALOGUE: tuple[ComponentEntry, ...] = (
    GRABBABLE,
    TEXTURE,
    EXPORTER,
    THUMBNAIL,
    SNAP_PLANE,
    REFERENCE_PROXY,
    ASSET_PROXY,
    MATERIAL,
    MESH,
    RENDERER,
    SIZE_DRIVER,
    COLLIDER,
    SWIZZLE_DRIVER,
)
