"""Completion gate scoring

Final score = trust score - checkpoint penalty - flag penalty, floored at 0.
The streamed decrements and this second penalty pass both apply, so a walker
who skips checkpoints without ever tripping a per-sample check is still caught.
"""

import math
from dataclasses import dataclass

from ..config import Settings
from . import trust


@dataclass(frozen=True)
class GateRules:
    checkpoint_penalty_max: int = 50
    flag_penalty: int = 20
    pass_threshold: int = 50

    @classmethod
    def from_settings(cls, settings: Settings) -> "GateRules":
        return cls(
            checkpoint_penalty_max=settings.checkpoint_penalty_max,
            flag_penalty=settings.flag_penalty,
            pass_threshold=settings.completion_threshold,
        )


@dataclass(frozen=True)
class ScoreBreakdown:
    trust_score: int
    checkpoint_penalty: int
    flag_penalty: int
    final_score: int
    passed: bool


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def checkpoint_penalty(unreached: int, total: int, max_penalty: int = 50) -> int:
    if total <= 0:
        return 0
    return round_half_up(unreached / total * max_penalty)


def score_completion(
    trust_score: int,
    total_checkpoints: int,
    unreached_checkpoints: int,
    flag_count: int,
    rules: GateRules | None = None,
) -> ScoreBreakdown:
    """Compute the final score and the pass/fail decision (score == threshold passes)"""
    rules = rules or GateRules()
    cp_penalty = checkpoint_penalty(
        unreached_checkpoints, total_checkpoints, rules.checkpoint_penalty_max
    )
    fl_penalty = flag_count * rules.flag_penalty
    final_score = max(0, trust.clamp(trust_score) - cp_penalty - fl_penalty)

    return ScoreBreakdown(
        trust_score=trust_score,
        checkpoint_penalty=cp_penalty,
        flag_penalty=fl_penalty,
        final_score=final_score,
        passed=final_score >= rules.pass_threshold,
    )
