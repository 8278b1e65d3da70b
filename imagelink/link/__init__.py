"""Link layer: transport session, wire protocol, correlated RPC client and tree lookup."""

from imagelink.link.client import DEFAULT_URL, LinkClient
from imagelink.link.lookup import find_node_by_name, find_node_ids_by_name, search_tree
from imagelink.link.protocol import (
    Field,
    ListMember,
    Member,
    Reference,
    RemoteComponent,
    RemoteNode,
    Reply,
    Vector3,
)
from imagelink.link.transport import TransportSession

__all__ = [
    "DEFAULT_URL",
    "Field",
    "LinkClient",
    "ListMember",
    "Member",
    "Reference",
    "RemoteComponent",
    "RemoteNode",
    "Reply",
    "TransportSession",
    "Vector3",
    "find_node_by_name",
    "find_node_ids_by_name",
    "search_tree",
]
