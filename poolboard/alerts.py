"""
alerts.py - Alert subscriptions and the periodic alert engine.

SubscriptionService validates and persists subscriptions for the REST layer.
AlertEngine wakes every ALERT_INTERVAL seconds, evaluates each active
subscription against the stored statistics, and fires at most one alert per
subscription per hour: a history row is written first, then the notifier is
called and the row updated with the delivery outcome.
"""

import asyncio
import logging
import re
import time
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Callable, List, Optional, Set, Tuple

from .errors import BadRequestError, ConflictError, ForbiddenError, NotFoundError
from .models import AlertHistory, AlertSubscription, AlertType
from .storage import IntegrityError

if TYPE_CHECKING:
    from .notify import Notifier
    from .storage import StorageManager
    from .ws import BroadcastManager

logger = logging.getLogger("alerts")

DEFAULT_INTERVAL = 60.0
COOLDOWN_SECONDS = 3600
OFFLINE_AFTER_MINUTES = 10
NEW_BLOCK_WINDOW_SECONDS = 120

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
ALERT_TYPES = [t.value for t in AlertType]


def validate_email(email: Optional[str]):
    if not email or not EMAIL_RE.match(email):
        raise BadRequestError("Invalid email format")


def validate_alert_type(alert_type: str):
    if alert_type not in ALERT_TYPES:
        raise BadRequestError(f"Invalid alert_type. Must be one of: {', '.join(ALERT_TYPES)}")


class SubscriptionService:
    """Subscription CRUD with the validation rules of the alerts API."""

    def __init__(self, storage: "StorageManager", notifier: Optional["Notifier"] = None):
        self._storage = storage
        self._notifier = notifier

    async def subscribe(self, email: Optional[str], alert_type: Optional[str],
                        pool_id: Optional[str] = None,
                        threshold: Optional[float] = None) -> AlertSubscription:
        if not email or not alert_type:
            raise BadRequestError("Email and alert_type are required")
        validate_email(email)
        validate_alert_type(alert_type)
        pool_id = pool_id or None
        if pool_id is not None and not await self._storage.pools.exists(pool_id):
            raise NotFoundError("Pool not found")

        duplicate = ConflictError("Alert subscription already exists for this email and pool combination")
        if await self._storage.subscriptions.find(email, alert_type, pool_id) is not None:
            raise duplicate
        try:
            sub = await self._storage.subscriptions.create(
                email=email, alert_type=alert_type, pool_id=pool_id, threshold=threshold,
            )
        except IntegrityError as e:
            raise duplicate from e
        logger.info("Subscription %s created for %s (%s)", sub.id, email, alert_type)
        return sub

    async def list_for_email(self, email: str) -> List[AlertSubscription]:
        validate_email(email)
        return await self._storage.subscriptions.for_email(email)

    async def history_for_email(self, email: str, limit: int = 50,
                                offset: int = 0) -> Tuple[List[AlertHistory], int]:
        validate_email(email)
        items = await self._storage.alert_history.for_email(email, limit=limit, offset=offset)
        total = await self._storage.alert_history.count_for_email(email)
        return items, total

    async def update(self, sub_id: str, fields: dict) -> AlertSubscription:
        if await self._storage.subscriptions.get(sub_id) is None:
            raise NotFoundError("Alert subscription not found")
        fields = {k: v for k, v in fields.items() if k in ("threshold", "is_active")}
        if "is_active" in fields and fields["is_active"] is None:
            del fields["is_active"]
        if not fields:
            raise BadRequestError("No valid fields to update")
        return await self._storage.subscriptions.update(sub_id, fields)

    async def delete(self, sub_id: str):
        if not await self._storage.subscriptions.delete(sub_id):
            raise NotFoundError("Alert subscription not found")
        logger.info("Subscription %s deleted", sub_id)

    async def send_test(self, email: Optional[str], alert_type: Optional[str],
                        message: Optional[str], production: bool = False) -> dict:
        """Record (and dispatch) a one-off alert for a global subscription of the caller."""
        if production:
            raise ForbiddenError("Test alerts not available in production")
        if not email or not alert_type or not message:
            raise BadRequestError("Email, alert_type, and message are required")
        validate_email(email)
        validate_alert_type(alert_type)

        sub = await self._storage.subscriptions.find(email, alert_type, None)
        if sub is None:
            sub = await self._storage.subscriptions.create(
                email=email, alert_type=alert_type, pool_id=None, threshold=0,
            )
        history_id = await self._storage.alert_history.create(sub.id, message)
        if self._notifier is not None:
            try:
                await self._notifier.send(email, message, alert_type=alert_type)
                await self._storage.alert_history.mark_sent(history_id)
            except Exception as e:
                logger.error("Test alert delivery to %s failed: %s", email, e)
                await self._storage.alert_history.mark_failed(history_id, str(e))
        return {"test_id": history_id, "message": "Test alert created"}


class AlertEngine:

    def __init__(self, storage: "StorageManager", notifier: "Notifier",
                 broadcaster: Optional["BroadcastManager"] = None,
                 interval: float = DEFAULT_INTERVAL,
                 clock: Callable[[], float] = time.time):
        self._storage = storage
        self._notifier = notifier
        self._broadcaster = broadcaster
        self.interval = interval
        self._clock = clock
        self._task: Optional[asyncio.Task] = None
        self._passes: Set[asyncio.Task] = set()
        self._cooldown_lock = asyncio.Lock()

    @property
    def running(self) -> bool:
        return self._task is not None

    def start(self):
        if self._task is not None:
            logger.warning("Alert processing already running")
            return
        logger.info("Starting alert processing (interval: %.0fs)", self.interval)
        self._task = asyncio.create_task(self._loop())

    def stop(self):
        if self._task is not None:
            self._task.cancel()
            self._task = None
            logger.info("Alert processing stopped")

    async def wait_idle(self):
        if self._passes:
            await asyncio.gather(*list(self._passes), return_exceptions=True)

    async def _loop(self):
        while True:
            task = asyncio.create_task(self.run_once())
            self._passes.add(task)
            task.add_done_callback(self._passes.discard)
            await asyncio.sleep(self.interval)

    async def run_once(self) -> int:
        """Evaluate every active subscription once; returns the number of alerts fired."""
        try:
            subs = await self._storage.subscriptions.list_active()
        except Exception:
            logger.exception("Failed to process alerts")
            return 0
        fired = 0
        for sub in subs:
            try:
                fired += await self.evaluate(sub)
            except Exception:
                logger.exception("Failed to check alert condition for %s (%s)",
                                 sub.alert_type.value, sub.id)
        logger.info("Processed %d alert subscriptions (%d fired)", len(subs), fired)
        return fired

    async def evaluate(self, sub: AlertSubscription) -> int:
        checks = {
            AlertType.HASHRATE_DROP: self._check_hashrate_drop,
            AlertType.POOL_OFFLINE: self._check_pool_offline,
            AlertType.LUCK_STREAK: self._check_luck_streak,
            AlertType.NEW_BLOCK: self._check_new_block,
            AlertType.PROFITABILITY_CHANGE: self._check_profitability_change,
        }
        return await checks[sub.alert_type](sub)

    async def _check_hashrate_drop(self, sub: AlertSubscription) -> int:
        if not sub.pool_id or not sub.threshold:
            return 0
        stats = await self._storage.statistics.latest(sub.pool_id, count=2)
        if len(stats) < 2:
            return 0
        current, previous = stats[0].hashrate, stats[1].hashrate
        if previous <= 0:
            return 0
        drop = (previous - current) / previous * 100
        if drop > sub.threshold:
            return await self._trigger(sub, f"Hashrate dropped by {drop:.2f}%", drop)
        return 0

    async def _check_pool_offline(self, sub: AlertSubscription) -> int:
        if not sub.pool_id:
            return 0
        latest = await self._storage.statistics.latest_one(sub.pool_id)
        if latest is None:
            return 0
        minutes = (self._clock() - latest.timestamp.timestamp()) / 60
        if minutes > OFFLINE_AFTER_MINUTES:
            return await self._trigger(sub, f"Pool offline for {int(minutes)} minutes", minutes)
        return 0

    async def _check_luck_streak(self, sub: AlertSubscription) -> int:
        if not sub.pool_id or not sub.threshold:
            return 0
        latest = await self._storage.statistics.latest_one(sub.pool_id)
        if latest is None:
            return 0
        if latest.luck_7d < sub.threshold:
            return await self._trigger(sub, f"Pool luck dropped to {latest.luck_7d:.2f}%",
                                       latest.luck_7d)
        return 0

    async def _check_new_block(self, sub: AlertSubscription) -> int:
        since = self._clock() - NEW_BLOCK_WINDOW_SECONDS
        blocks = await self._storage.blocks.since(since, pool_id=sub.pool_id)
        fired = 0
        for block in blocks:
            if sub.pool_id:
                message = f"New block found: #{block.block_number}"
            else:
                pool_name = block.pool_name or sub.pool_name or "Unknown Pool"
                message = f"New block found: #{block.block_number} by {pool_name}"
            fired += await self._trigger(sub, message, float(block.block_number))
        return fired

    async def _check_profitability_change(self, sub: AlertSubscription) -> int:
        # needs a profitability model (difficulty, price, gas); never fires for now
        logger.debug("Profitability check skipped for %s", sub.id)
        return 0

    async def _trigger(self, sub: AlertSubscription, message: str,
                       trigger_value: Optional[float] = None) -> int:
        history = self._storage.alert_history
        # check and insert must not interleave across overlapping passes
        async with self._cooldown_lock:
            now = self._clock()
            if await history.fired_since(sub.id, now - COOLDOWN_SECONDS):
                logger.debug("Alert for %s suppressed (cooldown)", sub.id)
                return 0
            history_id = await history.create(
                sub.id, message, pool_id=sub.pool_id, trigger_value=trigger_value,
                triggered_at=now,
            )
        logger.info("Alert triggered for %s: %s", sub.email, message)

        try:
            await self._notifier.send(sub.email, message, alert_type=sub.alert_type.value,
                                      pool_name=sub.pool_name)
            await history.mark_sent(history_id)
        except Exception as e:
            logger.error("Failed to deliver alert %s to %s: %s", history_id, sub.email, e)
            await history.mark_failed(history_id, str(e))

        if self._broadcaster is not None:
            await self._broadcaster.broadcast_alert({
                "id": history_id,
                "subscription_id": sub.id,
                "alert_type": sub.alert_type.value,
                "pool_id": sub.pool_id,
                "pool_name": sub.pool_name,
                "message": message,
                "trigger_value": trigger_value,
            })
        return 1

    async def status(self) -> dict:
        try:
            active = await self._storage.subscriptions.count_active()
            today = datetime.now(timezone.utc).replace(hour=0, minute=0, second=0, microsecond=0)
            processed = await self._storage.alert_history.count_since(today.timestamp())
        except Exception as e:
            logger.error("Alert engine health check failed: %s", e)
            return {"status": "error", "active_alerts": 0, "processed_today": 0}
        return {
            "status": "running" if self.running else "stopped",
            "active_alerts": active,
            "processed_today": processed,
        }
