"""Stock depletion projection: rate estimation, projection and stock mutation.

Re-exports the public surface so callers can ``from horamed.stock import X``.
"""

from horamed.stock.cache import ScheduleCache
from horamed.stock.engine import StockProjectionEngine
from horamed.stock.projection import (
    calculate_projected_end_at,
    consumption_trend,
    days_remaining,
)
from horamed.stock.rate import (
    CONSUMPTION_WINDOW_DAYS,
    DEFAULT_DAILY_RATE,
    daily_rate,
    estimate_daily_consumption,
)

__all__ = [
    "CONSUMPTION_WINDOW_DAYS",
    "DEFAULT_DAILY_RATE",
    "ScheduleCache",
    "StockProjectionEngine",
    "calculate_projected_end_at",
    "consumption_trend",
    "daily_rate",
    "days_remaining",
    "estimate_daily_consumption",
]
