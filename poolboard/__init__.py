"""
poolboard - Mining pool statistics dashboard backend.

Polls pool, price and network APIs (or simulates them), stores time-series
snapshots in SQLite or PostgreSQL, evaluates alert subscriptions, and serves
everything over REST and a WebSocket push channel.
"""

__version__ = "1.0.0"

__all__ = [
    "alerts",
    "cache",
    "collector",
    "config",
    "errors",
    "fetcher",
    "models",
    "notify",
    "scoring",
    "server",
    "sources",
    "storage",
    "ws",
]
