"""Stats router - /api/stats/* endpoints (database-backed and live upstream views)."""

import time

from fastapi import APIRouter, Query
from starlette.requests import Request

from ..deps import envelope, get_server
from ..errors import utc_now_iso
from ..fetcher import NETWORK_DIFFICULTY

router = APIRouter(prefix="/api/stats")

DEFAULT_BLOCK_TIME = 13
DEFAULT_PENDING_TRANSACTIONS = 125000
DEFAULT_GAS_PRICE = 25_000_000_000


@router.get("/dashboard")
async def dashboard(request: Request):
    srv = get_server(request)
    storage = srv.storage
    totals = await storage.pools.totals()
    recent = await storage.blocks.recent_with_pool(limit=10)
    blocks_24h = await storage.blocks.count_since(time.time() - 86400)
    latest_network = await storage.network.latest()
    return envelope({
        "total_hashrate": totals["total_hashrate"],
        "total_miners": totals["total_miners"],
        "active_pools": totals["active_pools"],
        "blocks_found_24h": blocks_24h,
        "recent_blocks": [
            {
                "block_number": b.block_number,
                "timestamp": b.timestamp,
                "reward": b.reward,
                "pool_name": b.pool_name,
            }
            for b in recent
        ],
        "network_difficulty": latest_network.difficulty if latest_network else NETWORK_DIFFICULTY,
        "last_updated": utc_now_iso(),
    })


@router.get("/network")
async def network(request: Request):
    srv = get_server(request)
    latest = await srv.storage.network.latest()
    if latest is not None:
        return envelope(latest)
    total = await srv.storage.statistics.latest_total_hashrate()
    return envelope({
        "total_hashrate": total,
        "difficulty": NETWORK_DIFFICULTY,
        "block_time": DEFAULT_BLOCK_TIME,
        "pending_transactions": DEFAULT_PENDING_TRANSACTIONS,
        "gas_price": DEFAULT_GAS_PRICE,
        "timestamp": utc_now_iso(),
    }, message="Using calculated network statistics")


@router.get("/network/history")
async def network_history(
    request: Request,
    period: str = Query(default="24h"),
    limit: int = Query(default=100, ge=1, le=10000),
):
    srv = get_server(request)
    return envelope(await srv.storage.network.history(period=period, limit=limit))


@router.get("/pools")
async def pool_stats(request: Request):
    srv = get_server(request)
    totals = await srv.storage.pools.totals()
    totals["blocks_24h"] = await srv.storage.blocks.count_since(time.time() - 86400)
    totals["top_pools"] = await srv.storage.pools.top_active(limit=5)
    return envelope(totals)


@router.get("/live")
async def live_dashboard(request: Request):
    srv = get_server(request)
    return envelope(await srv.fetcher.get_dashboard_stats())


@router.get("/live/pools")
async def live_pools(request: Request):
    srv = get_server(request)
    return envelope(await srv.fetcher.get_all_pools_data())
