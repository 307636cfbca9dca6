"""
Deterministic removal pricing engine.

``PricingEngine.calculate`` is a pure function of the input and the injected
``RateConfig``: base + distance + floors + extras, scaled by the vehicle and
demand multipliers, plus VAT.

Rounding policy: component costs are rounded to pence before they are summed,
multipliers to 4 decimals, and the subtotal is rounded once more after the
multipliers are applied. VAT is charged on the rounded subtotal, so
``total == subtotal + vat`` holds exactly. Range bounds are derived from the
rounded total (see ``app.utils.rounding.price_range``).
"""
import logging
from typing import List, Optional

from app.core.enums import RateProfile
from app.schemas.quote import BreakdownLine, PricingInput, PricingResult
from app.services.calculators import (
    calculate_demand_multiplier,
    calculate_distance_cost,
    calculate_extra_services,
    calculate_floor_cost,
    estimate_duration,
    recommend_vehicle,
)
from app.services.rates import RateConfig, get_rate_config
from app.utils.rounding import price_range, round2, round_half_up

logger = logging.getLogger(__name__)

def vat_line(vat_rate: float, amount: float) -> BreakdownLine:
    return BreakdownLine(label=f"VAT ({vat_rate * 100:g}%)", amount=amount)


def _settle_lines(lines: List[BreakdownLine], subtotal: float) -> None:
    """Fold the per-line rounding residual into the last line so the lines sum to ``subtotal``."""
    residual = round2(subtotal - sum(line.amount for line in lines))
    if residual and lines:
        last = lines[-1]
        lines[-1] = BreakdownLine(label=last.label, amount=round2(last.amount + residual))


class PricingEngine:

    def __init__(self, config: Optional[RateConfig] = None, include_vat: bool = True):
        self.config = config or get_rate_config()
        self.include_vat = include_vat

    @property
    def vat_rate(self) -> float:
        return self.config.vat_rate if self.include_vat else 0.0

    def calculate(self, data: PricingInput) -> PricingResult:
        config = self.config

        total_volume = sum(item.volume_m3 * item.quantity for item in data.items)
        total_weight = sum(item.weight_kg * item.quantity for item in data.items)
        total_items = sum(item.quantity for item in data.items)

        if data.job_type not in config.base_prices:
            logger.info(
                f"Unknown job type {data.job_type!r}, using {config.default_job_type} base price"
            )
        base_price = round2(config.base_price_for(data.job_type))
        distance_cost = round2(calculate_distance_cost(data.distance_miles, config.distance))
        floor_cost = round2(calculate_floor_cost(
            data.pickup_floor,
            data.pickup_has_lift,
            data.delivery_floor,
            data.delivery_has_lift,
            config.floors,
        ))
        extras_cost, extra_lines = calculate_extra_services(
            config,
            total_items,
            requires_packaging=data.requires_packaging,
            requires_assembly=data.requires_assembly,
            requires_disassembly=data.requires_disassembly,
            requires_cleaning=data.requires_cleaning,
            insurance_level=data.insurance_level,
        )
        extras_cost = round2(extras_cost)

        vehicle = recommend_vehicle(total_volume, total_weight, config.vehicles)
        vehicle_mult = round_half_up(vehicle.multiplier, 4)
        demand_mult = round_half_up(
            calculate_demand_multiplier(data.preferred_date, data.requested_at, config.demand), 4
        )

        raw_subtotal = base_price + distance_cost + floor_cost + extras_cost
        subtotal = round2(raw_subtotal * vehicle_mult * demand_mult)
        vat_rate = self.vat_rate
        vat_amount = round2(subtotal * vat_rate)
        total_price = round2(subtotal + vat_amount)
        price_min, price_max = price_range(total_price, config.range_spread, config.range_step)

        breakdown = [
            BreakdownLine(label=f"Base price ({config.label_for(data.job_type)})", amount=base_price),
            BreakdownLine(label=f"Distance ({data.distance_miles:.1f} miles)", amount=distance_cost),
        ]
        if floor_cost > 0:
            breakdown.append(BreakdownLine(label="Floor access surcharge", amount=floor_cost))
        breakdown.extend(
            BreakdownLine(label=line.label, amount=round2(line.amount)) for line in extra_lines
        )
        if vehicle_mult != 1:
            breakdown.append(BreakdownLine(
                label=f"Vehicle: {vehicle.label}",
                amount=round2(raw_subtotal * (vehicle_mult - 1)),
            ))
        if demand_mult != 1:
            breakdown.append(BreakdownLine(
                label=f"Demand adjustment (×{demand_mult:.2f})",
                amount=round2(raw_subtotal * vehicle_mult * (demand_mult - 1)),
            ))
        _settle_lines(breakdown, subtotal)
        if vat_rate > 0:
            breakdown.append(vat_line(vat_rate, vat_amount))

        return PricingResult(
            base_price=base_price,
            distance_cost=distance_cost,
            floor_cost=floor_cost,
            extra_services=extras_cost,
            vehicle_multiplier=vehicle_mult,
            demand_multiplier=demand_mult,
            subtotal=subtotal,
            vat_rate=vat_rate,
            vat_amount=vat_amount,
            total_price=total_price,
            platform_fee=round2(subtotal * config.platform_fee_rate),
            recommended_vehicle=vehicle.vehicle.label,
            number_of_vehicles=vehicle.trips,
            total_volume_m3=round2(total_volume),
            total_weight_kg=round2(total_weight),
            estimated_duration_hours=estimate_duration(
                total_items,
                data.pickup_floor,
                data.delivery_floor,
                data.distance_miles,
                config.duration,
            ),
            price_min=price_min,
            price_max=price_max,
            range_spread=config.range_spread,
            range_step=config.range_step,
            rate_version=config.version,
            breakdown=breakdown,
        )


def rescale_to_total(
    result: PricingResult,
    new_total: float,
    label: str,
    spread: Optional[float] = None,
    step: Optional[float] = None,
) -> PricingResult:
    """
    Move a result to a new total, keeping subtotal, VAT, range and breakdown consistent.

    The subtotal change is recorded as a breakdown line named ``label`` placed
    before the VAT line. The range uses the spread and step the result was
    priced with unless overridden.
    """
    if spread is None:
        spread = result.range_spread
    if step is None:
        step = result.range_step
    new_total = round2(new_total)
    subtotal = round2(new_total / (1 + result.vat_rate))
    vat_amount = round2(new_total - subtotal)

    lines = list(result.breakdown)
    if result.vat_rate > 0 and lines:
        lines = lines[:-1]
    lines.append(BreakdownLine(label=label, amount=round2(subtotal - result.subtotal)))
    _settle_lines(lines, subtotal)
    if result.vat_rate > 0:
        lines.append(vat_line(result.vat_rate, vat_amount))

    platform_fee = 0.0
    if result.subtotal:
        platform_fee = round2(result.platform_fee * subtotal / result.subtotal)
    price_min, price_max = price_range(new_total, spread, step)

    return result.model_copy(update={
        "subtotal": subtotal,
        "vat_amount": vat_amount,
        "total_price": new_total,
        "platform_fee": platform_fee,
        "price_min": price_min,
        "price_max": price_max,
        "breakdown": lines,
    })


def calculate_price(
    data: PricingInput,
    profile=RateProfile.COMPETITIVE,
    include_vat: bool = True,
) -> PricingResult:
    return PricingEngine(get_rate_config(profile), include_vat=include_vat).calculate(data)
