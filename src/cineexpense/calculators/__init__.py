"""Budget calculation helpers."""

from cineexpense.calculators.budget import (
    DEFAULT_ALERT_THRESHOLD,
    is_over_budget,
    is_threshold_breached,
    utilization,
)

__all__ = [
    "DEFAULT_ALERT_THRESHOLD",
    "is_over_budget",
    "is_threshold_breached",
    "utilization",
]
