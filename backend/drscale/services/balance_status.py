import math
from drscale.core.config import CRITICAL_BALANCE_THRESHOLD
from drscale.core.errors import InvalidInput
from drscale.models.billing import BalanceStatus


def classify(
    balance: float,
    warning_threshold: float,
    critical_threshold: float = CRITICAL_BALANCE_THRESHOLD,
) -> BalanceStatus:
    """Derive the balance state. Blocked wins over critical, critical over low.

    Threshold comparisons are strict: a balance exactly at a threshold has
    not crossed it yet.
    """
    for name, value in (
        ("balance", balance),
        ("warning_threshold", warning_threshold),
        ("critical_threshold", critical_threshold),
    ):
        if value is None or not math.isfinite(value):
            raise InvalidInput(f"{name} must be a finite number")

    is_blocked = balance <= 0
    is_critical = not is_blocked and balance < critical_threshold
    is_low = not is_blocked and not is_critical and balance < warning_threshold

    return BalanceStatus(
        balance=balance,
        warning_threshold=warning_threshold,
        critical_threshold=critical_threshold,
        is_low=is_low,
        is_critical=is_critical,
        is_blocked=is_blocked,
    )
