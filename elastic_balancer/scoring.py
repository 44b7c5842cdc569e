"""
Balance score calculation.

The score summarises load pressure as a signed integer: negative means the
pool should shrink, zero means hold, positive means grow.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from .metrics import BalancerMetrics, SCORE_METRIC

logger = logging.getLogger(__name__)


class ScoreComputationError(Exception):
    """Raised when the balance score cannot be computed from its inputs"""
    pass


@dataclass(frozen=True)
class ScoreOutcome:
    """Result of a score calculation, either computed or substituted"""
    score: int
    fallback: bool = False
    error: Optional[str] = None

    @property
    def sign(self) -> int:
        return (self.score > 0) - (self.score < 0)


def raw_balance_score(queued_jobs: int, running_workers: int, tolerance_threshold: int) -> int:
    """
    Compute ``(queued_jobs - running_workers * threshold) / threshold``.

    Division is integer division truncating toward zero, so -7 / 5 gives -1
    and 7 / 5 gives 1.

    Raises:
        ScoreComputationError: If the threshold is not positive or an input
            is missing or not a number
    """
    try:
        if tolerance_threshold <= 0:
            raise ZeroDivisionError(f"invalid tolerance threshold {tolerance_threshold}")

        numerator = queued_jobs - running_workers * tolerance_threshold
        quotient = abs(numerator) // tolerance_threshold
        return int(-quotient if numerator < 0 else quotient)
    except (ArithmeticError, TypeError) as e:
        raise ScoreComputationError(str(e)) from e


def calculate_score(queued_jobs: int, running_workers: int, tolerance_threshold: int,
                    fallback_score: int,
                    metrics: Optional[BalancerMetrics] = None) -> ScoreOutcome:
    """
    Calculate the balance score, substituting ``fallback_score`` on failure.

    The fallback is the configured minimum container count, returned as the
    score unchanged. Only a computed score is recorded as a metric.
    """
    try:
        score = raw_balance_score(queued_jobs, running_workers, tolerance_threshold)
    except ScoreComputationError as e:
        logger.error(f"Balance score calculation failed ({e}), using fallback score {fallback_score}")
        return ScoreOutcome(score=fallback_score, fallback=True, error=str(e))

    logger.debug(f"Calculated balance score {score} "
                 f"(queued={queued_jobs}, workers={running_workers}, threshold={tolerance_threshold})")
    if metrics is not None:
        metrics.gauge(SCORE_METRIC, score)

    return ScoreOutcome(score=score)
