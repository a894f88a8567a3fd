"""Pool recommendation score used by the comparison endpoint."""

from typing import Optional


def recommendation_score(hashrate: Optional[float], fee_percentage: float,
                         luck_7d: Optional[float], recent_blocks: int,
                         payout_method: str) -> int:
    """Score a pool 0-100; larger, cheaper, steadier and busier pools rank higher."""
    score = 50

    hashrate = hashrate or 0
    if hashrate > 500e12:
        score += 20
    elif hashrate > 100e12:
        score += 15
    elif hashrate > 50e12:
        score += 10

    if fee_percentage <= 1.0:
        score += 15
    elif fee_percentage <= 2.0:
        score += 10
    elif fee_percentage <= 3.0:
        score += 5

    if luck_7d is not None:
        deviation = abs(100 - luck_7d)
        if deviation <= 5:
            score += 10
        elif deviation <= 15:
            score += 5

    if recent_blocks > 5:
        score += 10
    elif recent_blocks > 0:
        score += 5

    if str(getattr(payout_method, "value", payout_method)) == "PPLNS":
        score += 5

    return min(max(score, 0), 100)
