"""Pricing quote endpoints with Redis caching"""
import json
import logging
from fastapi import APIRouter, Depends, HTTPException

from app.schemas.quote import QuickEstimateRequest, QuickEstimateResponse, QuoteRequest, QuoteResponse
from app.services.quotes import QuoteService, build_pricing_input, build_quote_service
from app.core.exceptions import InvalidPricingInputError
from app.core.metrics import cache_hits, cache_misses
from app.core.redis import get_redis
from app.core.config import settings
from app.utils.hashing import stable_digest

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/quotes", tags=["quotes"])

CACHE_LABEL = "quote"


def get_quote_service() -> QuoteService:
    return build_quote_service(settings)


def _generate_cache_key(req: QuoteRequest, service: QuoteService) -> str:
    # rate changes and VAT toggles must never serve a stale price
    config = service.config
    return stable_digest({
        "request": req.model_dump(mode="json"),
        "profile": str(config.profile),
        "rates": config.version,
        "vat": service.engine.vat_rate,
    }, prefix="price")


@router.post("/calc", response_model=QuoteResponse)
async def calc_quote(req: QuoteRequest, service: QuoteService = Depends(get_quote_service)):

    cache_key = _generate_cache_key(req, service)
    redis = get_redis()

    if redis is not None:
        try:
            cached = await redis.get(cache_key)
            if cached:
                cache_hits.labels(cache_key=CACHE_LABEL).inc()
                return QuoteResponse.model_validate(json.loads(cached))
            cache_misses.labels(cache_key=CACHE_LABEL).inc()
        except Exception as e:
            logger.warning(f"Cache retrieval failed: {e}")

    try:
        data = build_pricing_input(req, service.config)
        result = await service.quote(data, area_hint=req.area_hint)
    except InvalidPricingInputError as e:
        raise HTTPException(status_code=422, detail=str(e))

    if redis is not None:
        try:
            await redis.set(
                cache_key,
                result.model_dump_json(),
                ex=settings.PRICE_CACHE_TTL
            )
        except Exception as e:
            logger.warning(f"Cache write failed: {e}")

    return result


@router.post("/estimate", response_model=QuickEstimateResponse)
async def quick_estimate(req: QuickEstimateRequest, service: QuoteService = Depends(get_quote_service)):
    estimate = await service.validator.quick_estimate(
        req.job_type, req.distance_miles, req.item_count, req.total_weight_kg
    )
    return QuickEstimateResponse(estimate=estimate)
