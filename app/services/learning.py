"""
Historical learning hooks.

A hooks object supplies multiplicative corrections that are applied to an
engine result before validation. Multipliers are unitless, 1.0 means "no
adjustment". The neutral implementation is the default until acceptance and
completion history is available.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from app.schemas.quote import PricingInput, PricingResult
from app.services.calculators import as_naive_utc
from app.services.pricing import rescale_to_total

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class QuoteOutcome:
    job_id: int
    quoted_price: float
    accepted: bool
    completed: bool


class LearningHooks(Protocol):

    def acceptance_adjustment(self, job_type: str, area_hint: Optional[str] = None) -> float:
        ...

    def seasonal_correction(self, month: int) -> float:
        ...

    def record_outcome(self, outcome: QuoteOutcome) -> None:
        ...


class NeutralLearningHooks:

    def acceptance_adjustment(self, job_type: str, area_hint: Optional[str] = None) -> float:
        return 1.0

    def seasonal_correction(self, month: int) -> float:
        return 1.0

    def record_outcome(self, outcome: QuoteOutcome) -> None:
        return None


def learning_multiplier(
    hooks: LearningHooks,
    data: PricingInput,
    area_hint: Optional[str] = None,
) -> float:
    return (
        hooks.acceptance_adjustment(data.job_type, area_hint)
        * hooks.seasonal_correction(as_naive_utc(data.preferred_date).month)
    )


def apply_learning(
    result: PricingResult,
    hooks: LearningHooks,
    data: PricingInput,
    area_hint: Optional[str] = None,
    spread: Optional[float] = None,
    step: Optional[float] = None,
) -> PricingResult:
    multiplier = learning_multiplier(hooks, data, area_hint)
    if multiplier == 1.0:
        return result

    if multiplier <= 0:
        logger.warning(f"Ignoring non-positive learning multiplier {multiplier} for {data.job_type}")
        return result

    logger.info(f"Applying learning multiplier ×{multiplier:.4f} to {data.job_type} quote")
    return rescale_to_total(
        result,
        result.total_price * multiplier,
        f"Learning adjustment (×{multiplier:.2f})",
        spread=spread,
        step=step,
    )
