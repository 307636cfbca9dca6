from decimal import Decimal, ROUND_HALF_UP


def round_half_up(value: float, places: int = 2) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(value)).quantize(quantum, rounding=ROUND_HALF_UP))


def round2(value: float) -> float:
    return round_half_up(value, 2)


def round_to_step(value: float, step: float = 5.0) -> float:
    """Round to the nearest multiple of ``step``, halves away from zero."""
    units = Decimal(repr(value)) / Decimal(repr(step))
    return float(units.quantize(Decimal(1), rounding=ROUND_HALF_UP) * Decimal(repr(step)))


def price_range(total: float, spread: float = 0.15, step: float = 5.0) -> tuple[float, float]:
    """Low/high bounds around ``total``: round2 first, then ±spread, then nearest ``step``."""
    base = round2(total)
    return round_to_step(base * (1 - spread), step), round_to_step(base * (1 + spread), step)
