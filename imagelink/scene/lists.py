"""List member mutation on remote components."""

from __future__ import annotations

from loguru import logger

from imagelink.link.client import LinkClient
from imagelink.link.protocol import ListMember, Reference


async def _read_list(client: LinkClient, component_id: str, member: str) -> ListMember | None:
    component = await client.fetch_component(component_id)
    if component is None:
        return None
    value = component.members.get(member)
    return value if isinstance(value, ListMember) else None


async def set_list_reference(
    client: LinkClient,
    component_id: str,
    member: str,
    target_id: str,
) -> str | None:
    """
    Point the first element of a reference list at `target_id`.

    An element can only be addressed by the id the host gave it, so an empty list
    is handled in two phases: append an element without an id, re-read the list
    to learn the assigned id, then update that element. A list that already has
    an element skips the append. Returns the element id, or None when the member
    is missing or the host never assigned an element.
    """
    current = await _read_list(client, component_id, member)
    if current is None:
        logger.warning(f"Component {component_id} has no list member '{member}'")
        return None

    if not current.elements:
        await client.update_component(
            component_id,
            {member: ListMember(id=current.id, elements=[Reference(target_id=target_id)])},
        )
        current = await _read_list(client, component_id, member)
        if current is None or not current.elements:
            logger.warning(f"List '{member}' on {component_id} is still empty after append")
            return None

    element_id = current.elements[0].id
    if not element_id:
        logger.warning(f"First element of '{member}' on {component_id} has no id")
        return None
    await client.update_component(
        component_id,
        {member: ListMember(id=current.id, elements=[Reference(target_id=target_id, id=element_id)])},
    )
    return element_id
