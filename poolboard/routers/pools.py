"""Pools router - /api/pools/* endpoints."""

from typing import Optional

from fastapi import APIRouter, Query
from starlette.requests import Request

from ..deps import envelope, get_server, paginated
from ..errors import BadRequestError, NotFoundError
from ..models import PoolComparison, PoolStatus, PoolStatusRequest, parse_rows
from ..scoring import recommendation_score

router = APIRouter(prefix="/api/pools")

MAX_COMPARE = 5


@router.get("")
async def list_pools(request: Request):
    srv = get_server(request)
    return envelope(await srv.storage.pools.list_active_with_stats())


@router.get("/compare")
async def compare_pools(request: Request, pools: Optional[str] = Query(default=None)):
    srv = get_server(request)
    if not pools:
        raise BadRequestError("Pool IDs are required")
    pool_ids = [p for p in pools.split(",") if p][:MAX_COMPARE]
    if not pool_ids:
        raise BadRequestError("Pool IDs are required")

    rows = await srv.storage.pools.compare_rows(pool_ids)
    for row in rows:
        row["recommendation_score"] = recommendation_score(
            hashrate=row.get("hashrate"),
            fee_percentage=row["fee_percentage"],
            luck_7d=row.get("luck_7d"),
            recent_blocks=int(row.get("recent_blocks") or 0),
            payout_method=row["payout_method"],
        )
    return envelope(parse_rows(PoolComparison, rows))


@router.get("/{pool_id}")
async def get_pool(request: Request, pool_id: str):
    srv = get_server(request)
    pool = await srv.storage.pools.get_with_stats(pool_id)
    if pool is None:
        raise NotFoundError("Pool not found")
    return envelope(pool)


@router.get("/{pool_id}/history")
async def pool_history(
    request: Request,
    pool_id: str,
    period: str = Query(default="7d"),
    limit: int = Query(default=100, ge=1, le=10000),
):
    srv = get_server(request)
    return envelope(await srv.storage.statistics.history(pool_id, period=period, limit=limit))


@router.get("/{pool_id}/blocks")
async def pool_blocks(
    request: Request,
    pool_id: str,
    limit: int = Query(default=50, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
):
    srv = get_server(request)
    blocks = await srv.storage.blocks.for_pool(pool_id, limit=limit, offset=offset)
    total = await srv.storage.blocks.count_for_pool(pool_id)
    return paginated(blocks, total=total, limit=limit, offset=offset)


@router.put("/{pool_id}/status")
async def set_pool_status(request: Request, pool_id: str, body: PoolStatusRequest):
    srv = get_server(request)
    valid = [s.value for s in PoolStatus]
    if body.status not in valid:
        raise BadRequestError(f"Invalid status. Must be one of: {', '.join(valid)}")
    if not await srv.storage.pools.set_status(pool_id, body.status):
        raise NotFoundError("Pool not found")
    return envelope(await srv.storage.pools.get_with_stats(pool_id),
                    message="Pool status updated successfully")
