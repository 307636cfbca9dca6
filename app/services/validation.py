"""
Optional external price validation and the blending policy.

The validator only ever gives an opinion. ``blend_price`` decides what to do
with it: a suggestion within 20% of the engine total is informational, a
larger disagreement is blended 60/40 in favour of the engine.
"""
import asyncio
import json
import logging
from typing import Optional, Protocol, Tuple

import httpx
from pydantic import ValidationError

from app.core.config import Settings
from app.core.enums import ValidationOutcome
from app.core.metrics import price_blends, price_validations
from app.schemas.quote import PricingInput, PricingResult, QuickEstimate
from app.schemas.validation import ValidationResult
from app.services.pricing import rescale_to_total

logger = logging.getLogger(__name__)

BLEND_THRESHOLD = 0.2
ENGINE_WEIGHT = 0.6
EXTERNAL_WEIGHT = 0.4

SYSTEM_PROMPT = """You audit prices for UK van removal and man-and-van jobs.
You receive the job details and a rules-based quote. Judge whether the quote is
fair for the current UK market, taking distance, weight, volume, floor access,
date demand and comparable services into account.
Answer with a single JSON object and nothing else:
{"isReasonable": boolean, "adjustedPrice": number or null, "confidence": number 0-100,
 "aiExplanation": "short English explanation", "warnings": ["string", ...]}
adjustedPrice, when given, is a full total including VAT."""

QUICK_ESTIMATE_PROMPT = "You estimate UK removal prices. Answer with a single JSON object only."


class PriceValidator(Protocol):

    async def validate(self, data: PricingInput, result: PricingResult) -> Optional[ValidationResult]:
        ...

    async def quick_estimate(
        self,
        job_type: str,
        distance_miles: float,
        item_count: int,
        total_weight_kg: float,
    ) -> Optional[QuickEstimate]:
        ...


class DisabledValidator:

    async def validate(self, data: PricingInput, result: PricingResult) -> Optional[ValidationResult]:
        price_validations.labels(outcome=str(ValidationOutcome.DISABLED)).inc()
        return None

    async def quick_estimate(self, job_type, distance_miles, item_count, total_weight_kg):
        return None


def build_job_summary(data: PricingInput, result: PricingResult) -> str:
    items = ", ".join(
        f"{item.name} ×{item.quantity} ({item.weight_kg}kg, {item.volume_m3}m³)" for item in data.items
    ) or "none listed"
    pickup_access = "lift" if data.pickup_has_lift else "no lift"
    delivery_access = "lift" if data.delivery_has_lift else "no lift"
    return "\n".join([
        "Validate this UK removal job price:",
        f"- Job type: {data.job_type}",
        f"- Distance: {data.distance_miles} miles",
        f"- Items: {items}",
        f"- Total weight: {result.total_weight_kg} kg",
        f"- Total volume: {result.total_volume_m3} m³",
        f"- Pickup floor: {data.pickup_floor} ({pickup_access})",
        f"- Delivery floor: {data.delivery_floor} ({delivery_access})",
        f"- Packing: {'yes' if data.requires_packaging else 'no'}",
        f"- Move date: {data.preferred_date.date().isoformat()}",
        f"- Vehicle: {result.recommended_vehicle} ×{result.number_of_vehicles}",
        f"- Estimated duration: {result.estimated_duration_hours}h",
        "",
        f"Rules-based price: £{result.total_price:.2f} "
        f"(range £{result.price_min:g}-£{result.price_max:g})",
        f"Subtotal before VAT: £{result.subtotal:.2f}",
        f"Demand multiplier: {result.demand_multiplier}",
        "",
        "Is this price fair? If not, suggest an adjusted total including VAT.",
    ])


def _message_content(payload: dict) -> str:
    content = payload["choices"][0]["message"]["content"]
    if not isinstance(content, str):
        raise TypeError("completion content is not a string")
    content = content.strip()
    if content.startswith("```"):
        content = content.strip("`")
        if content.startswith("json"):
            content = content[4:]
    return content.strip()


class GrokPriceValidator:
    """Validator backed by an OpenAI-compatible chat completions endpoint."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.x.ai/v1",
        model: str = "grok-3-mini",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.timeout = timeout
        self.transport = transport

    async def _complete(self, system: str, user: str) -> dict:
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            response = await client.post(
                f"{self.base_url}/chat/completions",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={
                    "model": self.model,
                    "messages": [
                        {"role": "system", "content": system},
                        {"role": "user", "content": user},
                    ],
                    "temperature": 0.2,
                },
            )
            response.raise_for_status()
            return response.json()

    async def validate(self, data: PricingInput, result: PricingResult) -> Optional[ValidationResult]:
        outcome = ValidationOutcome.OK
        try:
            payload = await self._complete(SYSTEM_PROMPT, build_job_summary(data, result))
            parsed = ValidationResult.model_validate(json.loads(_message_content(payload)))
            return parsed
        except httpx.TimeoutException:
            outcome = ValidationOutcome.TIMEOUT
            logger.warning(f"Price validation timed out after {self.timeout}s, skipping AI check")
        except httpx.HTTPStatusError as e:
            outcome = ValidationOutcome.HTTP_ERROR
            logger.warning(f"Price validation API error ({e.response.status_code}), skipping AI check")
        except (ValueError, KeyError, IndexError, TypeError, ValidationError) as e:
            outcome = ValidationOutcome.INVALID
            logger.warning(f"Price validation returned a malformed response: {e}")
        except httpx.HTTPError as e:
            outcome = ValidationOutcome.ERROR
            logger.warning(f"Price validation request failed: {e}")
        except Exception as e:
            outcome = ValidationOutcome.ERROR
            logger.error(f"Price validation failed unexpectedly: {e}", exc_info=True)
        finally:
            price_validations.labels(outcome=str(outcome)).inc()
        return None

    async def quick_estimate(
        self,
        job_type: str,
        distance_miles: float,
        item_count: int,
        total_weight_kg: float,
    ) -> Optional[QuickEstimate]:
        prompt = (
            f"Give a quick price estimate in GBP for a UK {job_type} job:\n"
            f"- Distance: {distance_miles} miles\n"
            f"- Items: {item_count}\n"
            f"- Weight: {total_weight_kg} kg\n"
            'Respond with JSON only: {"min": number, "max": number, "explanation": "short English text"}'
        )
        try:
            payload = await self._complete(QUICK_ESTIMATE_PROMPT, prompt)
            return QuickEstimate.model_validate(json.loads(_message_content(payload)))
        except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError, ValidationError) as e:
            logger.warning(f"Quick estimate failed: {e}")
            return None


def build_validator(settings: Settings) -> PriceValidator:
    if not settings.ENABLE_AI_PRICING or not settings.GROK_API_KEY:
        return DisabledValidator()
    return GrokPriceValidator(
        api_key=settings.GROK_API_KEY,
        base_url=settings.VALIDATOR_BASE_URL,
        model=settings.VALIDATOR_MODEL,
        timeout=settings.VALIDATOR_TIMEOUT,
    )


async def validate_within(
    validator: PriceValidator,
    data: PricingInput,
    result: PricingResult,
    timeout: float,
) -> Optional[ValidationResult]:
    """
    Run ``validator`` with a hard deadline.

    A late opinion, or one that raises, is treated as absent.
    """
    try:
        return await asyncio.wait_for(validator.validate(data, result), timeout=timeout)
    except asyncio.TimeoutError:
        price_validations.labels(outcome=str(ValidationOutcome.TIMEOUT)).inc()
        logger.warning(f"Price validation exceeded {timeout}s deadline, continuing without it")
        return None
    except Exception as e:
        price_validations.labels(outcome=str(ValidationOutcome.ERROR)).inc()
        logger.warning(f"Price validation raised {type(e).__name__}: {e}, continuing without it")
        return None


def blend_price(
    result: PricingResult,
    validation: Optional[ValidationResult],
    spread: Optional[float] = None,
    step: Optional[float] = None,
) -> Tuple[PricingResult, bool]:
    if validation is None or validation.adjusted_price is None or validation.adjusted_price <= 0:
        return result, False

    engine_total = result.total_price
    suggested = validation.adjusted_price
    if abs(suggested - engine_total) <= engine_total * BLEND_THRESHOLD:
        return result, False

    blended = ENGINE_WEIGHT * engine_total + EXTERNAL_WEIGHT * suggested
    logger.info(
        f"Blending engine total £{engine_total:.2f} with external £{suggested:.2f} "
        f"-> £{blended:.2f} (confidence {validation.confidence:g}%)"
    )
    price_blends.inc()
    return rescale_to_total(result, blended, "External validation blend", spread=spread, step=step), True
