"""Pydantic records for persisted entities and REST request bodies."""

import logging
from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Type, TypeVar

from pydantic import BaseModel, ValidationError

logger = logging.getLogger("models")


class PayoutMethod(str, Enum):
    PPS = "PPS"
    PPLNS = "PPLNS"
    PPS_PLUS = "PPS+"


class PoolStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    MAINTENANCE = "maintenance"


class AlertType(str, Enum):
    HASHRATE_DROP = "hashrate_drop"
    POOL_OFFLINE = "pool_offline"
    LUCK_STREAK = "luck_streak"
    NEW_BLOCK = "new_block"
    PROFITABILITY_CHANGE = "profitability_change"


# ---------------------------------------------------------------------------
# Entities
# ---------------------------------------------------------------------------

class Pool(BaseModel):
    id: str
    name: str
    api_url: str
    fee_percentage: float
    payout_method: PayoutMethod
    status: PoolStatus
    minimum_payout: float = 0.01
    created_at: datetime
    updated_at: datetime


class PoolWithStats(Pool):
    """A pool joined with its most recent statistics row (if any)."""

    hashrate: Optional[float] = None
    miners_count: Optional[int] = None
    blocks_found_24h: Optional[int] = None
    luck_7d: Optional[float] = None
    last_updated: Optional[datetime] = None


class PoolComparison(PoolWithStats):
    recent_blocks: int = 0
    avg_luck_7d: float = 0.0
    avg_luck_30d: float = 0.0
    recommendation_score: int = 0


class PoolStatistic(BaseModel):
    id: str
    pool_id: str
    timestamp: datetime
    hashrate: float
    miners_count: int
    blocks_found_24h: int
    luck_7d: float
    difficulty: float
    block_time: float
    last_block_time: Optional[datetime] = None


class Block(BaseModel):
    id: str
    pool_id: str
    block_number: int
    timestamp: datetime
    reward: float
    miner_count: int
    difficulty: float
    hash: str
    uncle: bool = False
    pool_name: Optional[str] = None


class AlertSubscription(BaseModel):
    id: str
    email: str
    pool_id: Optional[str] = None
    alert_type: AlertType
    threshold: Optional[float] = None
    is_active: bool
    created_at: datetime
    updated_at: datetime
    pool_name: Optional[str] = None


class AlertHistory(BaseModel):
    id: str
    subscription_id: str
    triggered_at: datetime
    message: str
    email_sent: bool
    email_sent_at: Optional[datetime] = None
    trigger_value: Optional[float] = None
    pool_id: Optional[str] = None
    error_message: Optional[str] = None
    # joined columns for the per-email history view
    pool_name: Optional[str] = None
    alert_type: Optional[AlertType] = None
    threshold: Optional[float] = None


class NetworkStats(BaseModel):
    id: str
    timestamp: datetime
    total_hashrate: float
    difficulty: float
    block_time: float
    pending_transactions: int
    gas_price: float


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------

class SubscribeRequest(BaseModel):
    email: Optional[str] = None
    pool_id: Optional[str] = None
    alert_type: Optional[str] = None
    threshold: Optional[float] = None


class UpdateSubscriptionRequest(BaseModel):
    threshold: Optional[float] = None
    is_active: Optional[bool] = None


class AlertTestRequest(BaseModel):
    email: Optional[str] = None
    alert_type: Optional[str] = None
    message: Optional[str] = None


class PoolStatusRequest(BaseModel):
    status: str


# ---------------------------------------------------------------------------
# Row parsing
# ---------------------------------------------------------------------------

M = TypeVar("M", bound=BaseModel)


def parse_row(model: Type[M], row: Optional[dict]) -> Optional[M]:
    """Validate a single row; malformed rows raise ValidationError."""
    if row is None:
        return None
    return model.model_validate(row)


def parse_rows(model: Type[M], rows: Iterable[dict]) -> List[M]:
    """Validate rows, dropping (and logging) any that do not fit the model."""
    result: List[M] = []
    for row in rows:
        try:
            result.append(model.model_validate(row))
        except ValidationError as e:
            logger.error("Dropping malformed %s row %s: %s",
                         model.__name__, row.get("id", "?"), e.errors()[:1])
    return result


def dump(value: Any) -> Any:
    """Render models (or lists of models) as JSON-ready dicts."""
    if isinstance(value, BaseModel):
        return value.model_dump(mode="json")
    if isinstance(value, list):
        return [dump(v) for v in value]
    return value
