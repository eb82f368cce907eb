import math
from drscale.core.config import DEFAULT_RATE_PER_MINUTE, COST_PRECISION
from drscale.core.errors import InvalidInput
from drscale.models.billing import CallCostEstimate


def _check_amount(name: str, value) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise InvalidInput(f"{name} must be a number")
    if not math.isfinite(value):
        raise InvalidInput(f"{name} must be finite")
    if value < 0:
        raise InvalidInput(f"{name} must not be negative")
    return float(value)


def resolve_rate(rate_per_minute: float = None) -> float:
    """Agent-specific rate when given, the platform default otherwise."""
    if rate_per_minute is None:
        return DEFAULT_RATE_PER_MINUTE
    return _check_amount("rate_per_minute", rate_per_minute)


def estimate_cost(duration_sec: float, rate_per_minute: float = None) -> float:
    """Cost in USD of a call lasting ``duration_sec`` seconds, rounded to 4 places."""
    duration_sec = _check_amount("duration_sec", duration_sec)
    rate = resolve_rate(rate_per_minute)
    return round(duration_sec / 60 * rate, COST_PRECISION)


def build_estimate(duration_sec: float, rate_per_minute: float = None) -> CallCostEstimate:
    rate = resolve_rate(rate_per_minute)
    return CallCostEstimate(
        duration_sec=duration_sec,
        rate_per_minute=rate,
        cost=estimate_cost(duration_sec, rate),
    )


def remaining_minutes(balance: float, rate_per_minute: float = None) -> int:
    """Whole minutes of calling the balance still covers."""
    rate = resolve_rate(rate_per_minute)
    if rate <= 0:
        raise InvalidInput("rate_per_minute must be positive")
    if not math.isfinite(balance) or balance <= 0:
        return 0
    return math.floor(balance / rate)
