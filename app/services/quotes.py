"""Quote flow: engine, then learning hooks, then optional external validation."""
import logging
from datetime import datetime, timezone
from typing import Optional

from app.core.config import Settings
from app.core.metrics import quotes_calculated
from app.schemas.quote import PricingInput, PricingItem, QuoteRequest, QuoteResponse
from app.services.learning import LearningHooks, NeutralLearningHooks, apply_learning
from app.services.pricing import PricingEngine
from app.services.rates import (
    DEFAULT_ITEM_VOLUME_M3,
    DEFAULT_ITEM_WEIGHT_KG,
    RateConfig,
    get_rate_config,
)
from app.services.validation import PriceValidator, blend_price, build_validator, validate_within

logger = logging.getLogger(__name__)


def resolve_item(
    config: RateConfig,
    name: str,
    quantity: int,
    weight_kg: Optional[float] = None,
    volume_m3: Optional[float] = None,
) -> PricingItem:
    """Fill missing measurements from the standard item catalogue, then from fixed defaults."""
    standard = config.standard_item(name)
    if weight_kg is None:
        weight_kg = standard.weight_kg if standard else DEFAULT_ITEM_WEIGHT_KG
    if volume_m3 is None:
        volume_m3 = standard.volume_m3 if standard else DEFAULT_ITEM_VOLUME_M3
    return PricingItem(name=name, quantity=quantity, weight_kg=weight_kg, volume_m3=volume_m3)


def build_pricing_input(
    req: QuoteRequest,
    config: RateConfig,
    now: Optional[datetime] = None,
) -> PricingInput:
    requested_at = req.requested_at or now or datetime.now(timezone.utc)
    return PricingInput(
        job_type=req.job_type,
        distance_miles=req.distance_miles,
        items=[
            resolve_item(config, item.name, item.quantity, item.weight_kg, item.volume_m3)
            for item in req.items
        ],
        pickup_floor=req.pickup_floor,
        pickup_has_lift=req.pickup_has_lift,
        delivery_floor=req.delivery_floor,
        delivery_has_lift=req.delivery_has_lift,
        requires_packaging=req.requires_packaging,
        requires_assembly=req.requires_assembly,
        requires_disassembly=req.requires_disassembly,
        requires_cleaning=req.requires_cleaning,
        insurance_level=req.insurance_level,
        preferred_date=req.preferred_date,
        requested_at=requested_at,
    )


class QuoteService:

    def __init__(
        self,
        engine: PricingEngine,
        validator: PriceValidator,
        hooks: Optional[LearningHooks] = None,
        validation_timeout: float = 10.0,
    ):
        self.engine = engine
        self.validator = validator
        self.hooks = hooks or NeutralLearningHooks()
        self.validation_timeout = validation_timeout

    @property
    def config(self) -> RateConfig:
        return self.engine.config

    async def quote(self, data: PricingInput, area_hint: Optional[str] = None) -> QuoteResponse:
        config = self.config
        result = self.engine.calculate(data)
        quotes_calculated.labels(profile=str(config.profile)).inc()

        result = apply_learning(
            result, self.hooks, data, area_hint,
            spread=config.range_spread, step=config.range_step,
        )

        validation = await validate_within(self.validator, data, result, self.validation_timeout)
        if validation is None:
            return QuoteResponse(pricing=result)

        result, adjusted = blend_price(
            result, validation, spread=config.range_spread, step=config.range_step
        )
        return QuoteResponse(
            pricing=result,
            ai_confidence=validation.confidence,
            ai_warnings=validation.warnings,
            ai_explanation=validation.explanation,
            ai_adjusted=adjusted,
        )


def build_quote_service(
    settings: Settings,
    hooks: Optional[LearningHooks] = None,
    validator: Optional[PriceValidator] = None,
) -> QuoteService:
    engine = PricingEngine(get_rate_config(settings.PRICING_PROFILE), include_vat=settings.ENABLE_VAT)
    return QuoteService(
        engine=engine,
        validator=validator or build_validator(settings),
        hooks=hooks,
        validation_timeout=settings.VALIDATOR_TIMEOUT,
    )
