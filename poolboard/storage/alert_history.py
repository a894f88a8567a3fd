import time
from typing import List, Optional

from ..models import AlertHistory, parse_rows
from ._database import Database


class AlertHistoryRepo:
    """Fired alerts and their delivery outcome."""

    def __init__(self, db: Database):
        self._db = db

    async def create(self, subscription_id: str, message: str,
                     pool_id: Optional[str] = None,
                     trigger_value: Optional[float] = None,
                     triggered_at: Optional[float] = None) -> str:
        history_id = self._db.new_id()
        ts = time.time() if triggered_at is None else triggered_at
        await self._db.execute(
            "INSERT INTO alert_history (id, subscription_id, triggered_at, message, "
            "email_sent, pool_id, trigger_value) VALUES (?, ?, ?, ?, 0, ?, ?)",
            (history_id, subscription_id, ts, message, pool_id, trigger_value),
        )
        return history_id

    async def mark_sent(self, history_id: str):
        await self._db.execute(
            "UPDATE alert_history SET email_sent = 1, email_sent_at = ? WHERE id = ?",
            (time.time(), history_id),
        )

    async def mark_failed(self, history_id: str, error: str):
        await self._db.execute(
            "UPDATE alert_history SET error_message = ? WHERE id = ?",
            (error, history_id),
        )

    async def fired_since(self, subscription_id: str, since_ts: float) -> bool:
        row = await self._db.query_one(
            "SELECT id FROM alert_history WHERE subscription_id = ? AND triggered_at > ? "
            "ORDER BY triggered_at DESC LIMIT 1",
            (subscription_id, since_ts),
        )
        return row is not None

    async def for_email(self, email: str, limit: int = 50, offset: int = 0) -> List[AlertHistory]:
        rows = await self._db.query(
            "SELECT ah.*, p.name AS pool_name, s.alert_type, s.threshold "
            "FROM alert_history ah "
            "INNER JOIN alert_subscriptions s ON ah.subscription_id = s.id "
            "LEFT JOIN pools p ON ah.pool_id = p.id "
            "WHERE s.email = ? ORDER BY ah.triggered_at DESC LIMIT ? OFFSET ?",
            (email, limit, offset),
        )
        return parse_rows(AlertHistory, rows)

    async def count_for_email(self, email: str) -> int:
        value = await self._db.scalar(
            "SELECT COUNT(*) AS count FROM alert_history ah "
            "INNER JOIN alert_subscriptions s ON ah.subscription_id = s.id "
            "WHERE s.email = ?",
            (email,),
        )
        return int(value)

    async def count_since(self, since_ts: float) -> int:
        value = await self._db.scalar(
            "SELECT COUNT(*) AS count FROM alert_history WHERE triggered_at >= ?",
            (since_ts,),
        )
        return int(value)
