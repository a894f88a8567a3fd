"""
test_ws.py - BroadcastManager message handling and fan-out.
"""

import json

import pytest

from poolboard.ws import WELCOME_MESSAGE, BroadcastManager

from helpers import FakeSocket

pytestmark = pytest.mark.asyncio


def frames(sock):
    return [json.loads(raw) for raw in sock.sent]


async def test_connect_sends_welcome():
    mgr = BroadcastManager()
    sock = FakeSocket()
    await mgr.connect(sock)
    assert sock.accepted
    welcome, = frames(sock)
    assert welcome["type"] == "connection"
    assert welcome["message"] == WELCOME_MESSAGE
    assert mgr.connection_count() == 1


async def test_ping_pong():
    mgr = BroadcastManager()
    sock = FakeSocket()
    await mgr.handle_message(sock, json.dumps({"type": "ping"}))
    pong, = frames(sock)
    assert pong["type"] == "pong"
    assert "timestamp" in pong


async def test_subscribe_echoes_data():
    mgr = BroadcastManager()
    sock = FakeSocket()
    await mgr.handle_message(sock, json.dumps({"type": "subscribe", "data": ["pools"]}))
    reply, = frames(sock)
    assert reply["type"] == "subscription_confirmed"
    assert reply["data"] == ["pools"]


@pytest.mark.parametrize("raw", ["{not json", "[1, 2]", json.dumps({"type": "dance"})])
async def test_bad_frames_ignored(raw):
    mgr = BroadcastManager()
    sock = FakeSocket()
    await mgr.handle_message(sock, raw)
    assert sock.sent == []


async def test_broadcast_reaches_every_client():
    mgr = BroadcastManager()
    socks = [FakeSocket(), FakeSocket()]
    for s in socks:
        await mgr.connect(s)
    await mgr.broadcast_new_block({"block_number": 7})
    for s in socks:
        event = frames(s)[-1]
        assert event["type"] == "new_block"
        assert event["data"] == {"block_number": 7}
        assert event["timestamp"].endswith("Z")


async def test_broadcast_prunes_dead_clients():
    mgr = BroadcastManager()
    alive, broken = FakeSocket(), FakeSocket()
    await mgr.connect(alive)
    await mgr.connect(broken)
    broken.fail = True
    closed = FakeSocket(open_=False)
    mgr._clients.append(closed)

    await mgr.broadcast_pool_update([{"pool_id": "p1"}])
    assert mgr.connection_count() == 1
    assert frames(alive)[-1]["type"] == "pool_update"
    assert mgr.health_check() == {"status": "healthy", "connections": 1}


async def test_broadcast_without_clients():
    await BroadcastManager().broadcast_alert({"message": "nobody listening"})


async def test_disconnect_unknown_socket():
    mgr = BroadcastManager()
    await mgr.disconnect(FakeSocket())
    assert mgr.connection_count() == 0
