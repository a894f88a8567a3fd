"""
Test helpers: row factories and fakes for sockets, broadcaster and notifier.
"""

import time
from typing import Any, List, Optional, Tuple

import httpx
from starlette.websockets import WebSocketState


async def add_pool(storage, name="Ethermine", fee=1.0, payout="PPLNS", status="active"):
    return await storage.pools.create(
        name=name, api_url=f"https://api.{name.lower()}.example", fee_percentage=fee,
        payout_method=payout, status=status,
    )


async def add_stat(storage, pool_id, age_sec=0.0, hashrate=500e12, luck=100.0,
                   miners=1000, blocks=1, at=None):
    return await storage.statistics.insert(
        pool_id=pool_id, hashrate=hashrate, miners_count=miners,
        blocks_found_24h=blocks, luck_7d=luck, difficulty=1.55e16, block_time=13,
        timestamp=at if at is not None else time.time() - age_sec,
    )


async def add_block(storage, pool_id, number, age_sec=0.0, reward=2.0):
    return await storage.blocks.create(
        pool_id=pool_id, block_number=number, reward=reward, miner_count=100,
        difficulty=1.55e16, block_hash="0x" + "ab" * 32,
        timestamp=time.time() - age_sec,
    )


class FakeSocket:
    """Stands in for a starlette WebSocket in broadcast tests."""

    def __init__(self, fail: bool = False, open_: bool = True):
        self.fail = fail
        self.sent: List[str] = []
        self.accepted = False
        state = WebSocketState.CONNECTED if open_ else WebSocketState.DISCONNECTED
        self.client_state = state
        self.application_state = state

    async def accept(self):
        self.accepted = True

    async def send_text(self, text: str):
        if self.fail:
            raise RuntimeError("connection reset")
        self.sent.append(text)


class RecordingBroadcaster:
    def __init__(self):
        self.events: List[Tuple[str, Any]] = []

    async def broadcast_pool_update(self, data):
        self.events.append(("pool_update", data))

    async def broadcast_network_update(self, data):
        self.events.append(("network_update", data))

    async def broadcast_new_block(self, data):
        self.events.append(("new_block", data))

    async def broadcast_alert(self, data):
        self.events.append(("alert", data))

    def of_type(self, kind: str) -> List[Any]:
        return [data for k, data in self.events if k == kind]


class RecordingNotifier:
    def __init__(self, fail: Optional[Exception] = None):
        self.fail = fail
        self.sent: List[Tuple[str, str]] = []

    async def send(self, email, message, alert_type=None, pool_name=None):
        if self.fail is not None:
            raise self.fail
        self.sent.append((email, message))

    async def close(self):
        pass


def ok(response, status=200):
    """Assert the success envelope and return its data."""
    assert response.status_code == status, response.text
    body = response.json()
    assert body["success"] is True
    assert body["timestamp"].endswith("Z")
    return body["data"]


def failed(response, status):
    """Assert the error envelope and return its message."""
    assert response.status_code == status, response.text
    body = response.json()
    assert body["success"] is False
    return body["error"]


def upstream_down(request: httpx.Request) -> httpx.Response:
    return httpx.Response(503, json={"error": "maintenance"})


def upstream_up(request: httpx.Request) -> httpx.Response:
    host = request.url.host
    if host == "api.coingecko.com":
        return httpx.Response(200, json={"ethereum": {"usd": 3200.5}})
    if host == "api.etherscan.io":
        if request.url.params.get("module") == "gastracker":
            return httpx.Response(200, json={"result": {"ProposeGasPrice": "18"}})
        return httpx.Response(200, json={"result": {"number": "0x100", "timestamp": "0x65000000"}})
    if host == "api.ethermine.org":
        return httpx.Response(200, json={"data": {"poolHashRate": 700e12, "minersTotal": 80000}})
    if host == "flexpool.io":
        return httpx.Response(200, json={"result": {"total": 150e12}})
    if host == "eth.2miners.com":
        return httpx.Response(200, json={"hashrate": 90e12, "minersTotal": 11000})
    return httpx.Response(404)
