"""Scene construction: component catalogue, list mutation and the image object builder."""

from imagelink.scene.builder import ImageSlotBuilder, RefreshOutcome
from imagelink.scene.catalogue import COMPONENT_CATALOGUE, ComponentEntry
from imagelink.scene.lists import set_list_reference

__all__ = [
    "COMPONENT_CATALOGUE",
    "ComponentEntry",
    "ImageSlotBuilder",
    "RefreshOutcome",
    "set_list_reference",
]
