"""Trust score ledger arithmetic

A session's trust score starts at 100 and only moves down, floored at 0.
"""

MAX_TRUST_SCORE = 100
MIN_TRUST_SCORE = 0


def clamp(score: int) -> int:
    return max(MIN_TRUST_SCORE, min(MAX_TRUST_SCORE, int(score)))


def decrement(score: int, amount: int) -> int:
    """Decrease a trust score by |amount|, never below 0"""
    return clamp(score - abs(int(amount)))
