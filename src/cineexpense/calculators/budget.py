"""Budget arithmetic. Pure functions, no database access."""

from __future__ import annotations

from decimal import Decimal

DEFAULT_ALERT_THRESHOLD = Decimal("0.80")


def utilization(approved_sum: Decimal, allocated: Decimal) -> Decimal:
    """Share of the allocation consumed by committed spend.

    A zero or negative allocation reports as fully consumed (1) rather than
    dividing by zero.
    """
    if allocated <= 0:
        return Decimal("1")
    return Decimal(approved_sum) / Decimal(allocated)


def is_over_budget(projected_total: Decimal, allocated: Decimal) -> bool:
    """Strictly greater than the allocation; landing exactly on it is allowed."""
    return projected_total > allocated


def is_threshold_breached(
    utilization_ratio: Decimal, threshold: Decimal = DEFAULT_ALERT_THRESHOLD
) -> bool:
    """Inclusive: a ratio equal to the threshold already counts as breached."""
    return utilization_ratio >= threshold
