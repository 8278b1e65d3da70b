"""Name lookup over the host's node tree."""

from __future__ import annotations

from typing import TYPE_CHECKING, Collection, Iterator

from loguru import logger

from imagelink.link.protocol import RemoteNode

if TYPE_CHECKING:
    from imagelink.link.client import LinkClient


def walk_tree(node: RemoteNode) -> Iterator[RemoteNode]:
    """Depth-first walk: parent before children, children in host order."""
    stack = [node]
    while stack:
        current = stack.pop()
        yield current
        stack.extend(reversed(current.children))


def search_tree(node: RemoteNode, name: str, exclude: Collection[str] = ()) -> RemoteNode | None:
    """First node named `name` in walk order whose id is not in `exclude`."""
    for current in walk_tree(node):
        if current.name == name and current.id not in exclude:
            return current
    return None


async def _fetch_root(client: LinkClient, name: str, root_id: str, max_depth: int) -> RemoteNode | None:
    root = await client.fetch_node(root_id, depth=max_depth, include_components=False)
    if root is None:
        logger.debug(f"Lookup of '{name}' failed: could not fetch {root_id}")
    return root


async def find_node_by_name(
    client: LinkClient,
    name: str,
    *,
    root_id: str = "Root",
    max_depth: int = 10,
    exclude: Collection[str] = (),
) -> RemoteNode | None:
    """
    Resolve a node name to a live node.

    The subtree is fetched fresh on every call (no component data), since the
    host tree may have changed since the last lookup. Nodes whose ids are in
    `exclude` are passed over.
    """
    root = await _fetch_root(client, name, root_id, max_depth)
    if root is None:
        return None
    return search_tree(root, name, exclude)


async def find_node_ids_by_name(
    client: LinkClient,
    name: str,
    *,
    root_id: str = "Root",
    max_depth: int = 10,
) -> set[str]:
    """Ids of every node currently named `name` within `max_depth` of the root."""
    root = await _fetch_root(client, name, root_id, max_depth)
    if root is None:
        return set()
    return {node.id for node in walk_tree(root) if node.name == name}
