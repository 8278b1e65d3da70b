import asyncio
import json

import pytest
from loguru import logger

from imagelink.link.client import LinkClient
from imagelink.link.protocol import Field, ListMember, Reference, Vector3
from imagelink.utils.exceptions import NotConnectedError, RequestTimeoutError, TransportError


def _reply(message_id: str, **extra) -> str:
    return json.dumps({"$type": "response", "sourceMessageId": message_id, "success": True, **extra})


async def _wait_sent(transport, count: int = 1) -> None:
    for _ in range(100):
        if len(transport.sent) >= count:
            return
        await asyncio.sleep(0)
    pytest.fail(f"expected {count} sent envelopes, got {len(transport.sent)}")


@pytest.mark.asyncio
async def test_call_resolves_with_matching_reply(bare_transport):
    client = LinkClient(transport=bare_transport, request_timeout_ms=2000)
    task = asyncio.create_task(client.call("getSlot", {"slotId": "Root"}))
    await _wait_sent(bare_transport)

    envelope = bare_transport.sent[0]
    assert envelope["$type"] == "getSlot"
    assert envelope["slotId"] == "Root"
    assert client.pending_count == 1

    bare_transport.deliver(_reply(envelope["messageId"], data={"id": "Root"}))
    reply = await task
    assert reply.success is True
    assert reply.data == {"id": "Root"}
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_business_failure_is_a_normal_reply(bare_transport):
    client = LinkClient(transport=bare_transport)
    task = asyncio.create_task(client.call("getComponent", {"componentId": "x"}))
    await _wait_sent(bare_transport)
    bare_transport.deliver(
        json.dumps({"sourceMessageId": bare_transport.sent[0]["messageId"], "success": False, "errorInfo": "nope"})
    )
    reply = await task
    assert reply.success is False
    assert reply.error_info == "nope"


@pytest.mark.asyncio
async def test_message_ids_are_unique(bare_transport):
    client = LinkClient(transport=bare_transport)
    tasks = [asyncio.create_task(client.call("getSlot", {"slotId": str(i)})) for i in range(20)]
    await _wait_sent(bare_transport, 20)
    ids = [env["messageId"] for env in bare_transport.sent]
    assert len(set(ids)) == 20
    for message_id in ids:
        bare_transport.deliver(_reply(message_id))
    await asyncio.gather(*tasks)
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_out_of_order_replies_reach_their_callers(bare_transport):
    client = LinkClient(transport=bare_transport)
    first = asyncio.create_task(client.call("getSlot", {"slotId": "a"}))
    second = asyncio.create_task(client.call("getSlot", {"slotId": "b"}))
    await _wait_sent(bare_transport, 2)
    by_slot = {env["slotId"]: env["messageId"] for env in bare_transport.sent}

    bare_transport.deliver(_reply(by_slot["b"], data="B"))
    bare_transport.deliver(_reply(by_slot["a"], data="A"))
    assert (await first).data == "A"
    assert (await second).data == "B"


@pytest.mark.asyncio
async def test_timeout_fails_with_operation_name_and_cleans_up(bare_transport):
    client = LinkClient(transport=bare_transport, request_timeout_ms=50)
    with pytest.raises(RequestTimeoutError) as exc_info:
        await client.call("addComponent", {})
    assert exc_info.value.operation == "addComponent"
    assert "addComponent" in str(exc_info.value)
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_timeout_warning_reports_elapsed_time(bare_transport):
    client = LinkClient(transport=bare_transport, request_timeout_ms=50)
    messages: list[str] = []
    sink_id = logger.add(lambda m: messages.append(m.record["message"]), level="WARNING")
    try:
        with pytest.raises(RequestTimeoutError):
            await client.call("getSlot", {})
    finally:
        logger.remove(sink_id)
    (warning,) = [m for m in messages if m.startswith("Request timeout: getSlot")]
    elapsed = float(warning.rsplit("after ", 1)[1].rstrip("s"))
    assert elapsed >= 0.04


@pytest.mark.asyncio
async def test_late_reply_after_timeout_is_dropped(bare_transport):
    client = LinkClient(transport=bare_transport, request_timeout_ms=50)
    with pytest.raises(RequestTimeoutError):
        await client.call("getSlot", {})
    bare_transport.deliver(_reply(bare_transport.sent[0]["messageId"]))
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_unmatched_and_malformed_messages_leave_state_unchanged(bare_transport):
    client = LinkClient(transport=bare_transport)
    task = asyncio.create_task(client.call("getSlot", {}))
    await _wait_sent(bare_transport)

    bare_transport.deliver(_reply("someone-else"))
    bare_transport.deliver("not json at all")
    bare_transport.deliver(json.dumps(["a", "list"]))
    bare_transport.deliver(json.dumps({"success": True}))
    assert client.pending_count == 1
    assert not task.done()

    bare_transport.deliver(_reply(bare_transport.sent[0]["messageId"]))
    assert (await task).success is True


@pytest.mark.asyncio
async def test_not_connected_fails_without_sending(bare_transport):
    transport = bare_transport
    transport.connected = False
    client = LinkClient(transport=transport)
    with pytest.raises(NotConnectedError):
        await client.import_texture("/tmp/cat.png")
    assert transport.sent == []
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_send_failure_fails_immediately_and_deregisters(bare_transport):
    bare_transport.fail_send = True
    client = LinkClient(transport=bare_transport)
    with pytest.raises(TransportError) as exc_info:
        await client.call("getSlot", {})
    assert exc_info.value.details["operation"] == "getSlot"
    assert client.pending_count == 0


@pytest.mark.asyncio
async def test_connection_loss_fails_pending_calls(bare_transport):
    client = LinkClient(transport=bare_transport)
    task = asyncio.create_task(client.call("getSlot", {}))
    await _wait_sent(bare_transport)
    bare_transport.drop(ConnectionResetError("reset"))
    with pytest.raises(TransportError):
        await task
    assert client.pending_count == 0
    assert client.is_connected is False


@pytest.mark.asyncio
async def test_operation_payload_shapes(client, transport):
    await client.import_texture("/tmp/images/cat.png")
    await client.add_node("cat.png", parent_id="Root", position=Vector3(0.5, 1.5, 1.5), active=True)
    await client.get_node("Root", depth=3, include_components=True)
    await client.add_component("Root", "[FrooxEngine]FrooxEngine.Grabbable")

    imp, add_slot, get_slot, add_comp = transport.sent
    assert imp["$type"] == "importTexture2DFile"
    assert imp["filePath"].endswith("cat.png")
    assert add_slot["$type"] == "addSlot"
    assert add_slot["data"] == {
        "name": {"value": "cat.png"},
        "parent": {"targetId": "Root"},
        "position": {"value": {"x": 0.5, "y": 1.5, "z": 1.5}},
        "isActive": {"value": True},
    }
    assert get_slot == {
        "$type": "getSlot",
        "messageId": get_slot["messageId"],
        "slotId": "Root",
        "depth": 3,
        "includeComponentData": True,
    }
    assert add_comp["containerSlotId"] == "Root"
    assert add_comp["data"] == {"componentType": "[FrooxEngine]FrooxEngine.Grabbable"}


@pytest.mark.asyncio
async def test_update_component_wraps_members(bare_transport):
    client = LinkClient(transport=bare_transport)
    task = asyncio.create_task(
        client.update_component(
            "c1",
            {
                "URL": Field(type="Uri", value="res://abc"),
                "Mesh": Reference(target_id="m1"),
                "BlendMode": Field(type="enum", value="Alpha", enum_type="BlendMode"),
                "Materials": ListMember(id="l1", elements=[Reference(target_id="mat", id="e1")]),
            },
        )
    )
    await _wait_sent(bare_transport)
    envelope = bare_transport.sent[0]
    assert envelope["$type"] == "updateComponent"
    assert envelope["data"]["id"] == "c1"
    assert envelope["data"]["members"] == {
        "URL": {"$type": "Uri", "value": "res://abc"},
        "Mesh": {"$type": "reference", "targetId": "m1"},
        "BlendMode": {"$type": "enum", "value": "Alpha", "enumType": "BlendMode"},
        "Materials": {
            "$type": "list",
            "id": "l1",
            "elements": [{"$type": "reference", "targetId": "mat", "id": "e1"}],
        },
    }
    bare_transport.deliver(_reply(envelope["messageId"]))
    await task


@pytest.mark.asyncio
async def test_import_texture_reply_carries_asset_url(client, host):
    host.asset_urls.append("res://abc")
    reply = await client.import_texture("/tmp/cat.png")
    assert reply.success is True
    assert reply.asset_url == "res://abc"


@pytest.mark.asyncio
async def test_fetch_helpers_parse_snapshots(client, host):
    node = host.add_node("cat.png")
    comp = host.attach(node["id"], "[FrooxEngine]FrooxEngine.QuadMesh")

    snapshot = await client.fetch_node(node["id"], include_components=True)
    assert snapshot is not None
    assert snapshot.name == "cat.png"
    assert [c.id for c in snapshot.components] == [comp["id"]]

    details = await client.fetch_component(comp["id"])
    assert details is not None
    assert details.member_id("Size") == comp["members"]["Size"]["id"]

    assert await client.fetch_component("missing") is None
