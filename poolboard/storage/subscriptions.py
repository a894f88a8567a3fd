import time
from typing import List, Optional

from ..models import AlertSubscription, parse_row, parse_rows
from ._database import Database


class SubscriptionRepo:
    """CRUD for alert_subscriptions.

    Rows joined with the pool name are returned where callers show them to
    users; the alert engine reads them the same way.
    """

    def __init__(self, db: Database):
        self._db = db

    async def create(self, email: str, alert_type: str, pool_id: Optional[str] = None,
                     threshold: Optional[float] = None) -> AlertSubscription:
        sub_id = self._db.new_id()
        now = time.time()
        await self._db.execute(
            "INSERT INTO alert_subscriptions (id, email, pool_id, alert_type, threshold, "
            "is_active, created_at, updated_at) VALUES (?, ?, ?, ?, ?, 1, ?, ?)",
            (sub_id, email, pool_id, alert_type, threshold, now, now),
        )
        return await self.get(sub_id)

    async def get(self, sub_id: str) -> Optional[AlertSubscription]:
        row = await self._db.query_one(
            "SELECT * FROM alert_subscriptions WHERE id = ?", (sub_id,)
        )
        return parse_row(AlertSubscription, row)

    async def find(self, email: str, alert_type: str,
                   pool_id: Optional[str] = None) -> Optional[AlertSubscription]:
        """Look up the subscription for (email, pool_id, alert_type); NULL pool matches NULL."""
        if pool_id is None:
            row = await self._db.query_one(
                "SELECT * FROM alert_subscriptions "
                "WHERE email = ? AND alert_type = ? AND pool_id IS NULL",
                (email, alert_type),
            )
        else:
            row = await self._db.query_one(
                "SELECT * FROM alert_subscriptions "
                "WHERE email = ? AND alert_type = ? AND pool_id = ?",
                (email, alert_type, pool_id),
            )
        return parse_row(AlertSubscription, row)

    async def for_email(self, email: str) -> List[AlertSubscription]:
        rows = await self._db.query(
            "SELECT s.*, p.name AS pool_name FROM alert_subscriptions s "
            "LEFT JOIN pools p ON s.pool_id = p.id "
            "WHERE s.email = ? ORDER BY s.created_at DESC",
            (email,),
        )
        return parse_rows(AlertSubscription, rows)

    async def list_active(self) -> List[AlertSubscription]:
        rows = await self._db.query(
            "SELECT s.*, p.name AS pool_name FROM alert_subscriptions s "
            "LEFT JOIN pools p ON s.pool_id = p.id "
            "WHERE s.is_active = 1 ORDER BY s.created_at"
        )
        return parse_rows(AlertSubscription, rows)

    async def update(self, sub_id: str, fields: dict) -> Optional[AlertSubscription]:
        """Apply `threshold` and/or `is_active` from fields; other keys are ignored."""
        updates = []
        values: list = []
        if "threshold" in fields:
            updates.append("threshold = ?")
            values.append(fields["threshold"])
        if "is_active" in fields:
            updates.append("is_active = ?")
            values.append(1 if fields["is_active"] else 0)
        if not updates:
            return await self.get(sub_id)
        updates.append("updated_at = ?")
        values.append(time.time())
        values.append(sub_id)
        await self._db.execute(
            f"UPDATE alert_subscriptions SET {', '.join(updates)} WHERE id = ?",
            tuple(values),
        )
        return await self.get(sub_id)

    async def delete(self, sub_id: str) -> bool:
        result = await self._db.execute(
            "DELETE FROM alert_subscriptions WHERE id = ?", (sub_id,)
        )
        return result.rows_affected > 0

    async def count_active(self) -> int:
        value = await self._db.scalar(
            "SELECT COUNT(*) AS count FROM alert_subscriptions WHERE is_active = 1"
        )
        return int(value)
