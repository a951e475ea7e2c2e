# strategy_engine/entity_performance/periods.py
"""
Period Resolver

Maps an instant and a cadence to the concrete period window a value is
tracked in. Everything is computed in UTC; naive instants are read as UTC.
"""

import calendar
from datetime import datetime, timezone
from typing import Optional

from .constants import PERIOD_MONTHLY, PERIOD_QUARTERLY, PERIOD_YEARLY, PERIOD_TYPES
from .models import PeriodWindow


def _as_utc(instant: datetime) -> datetime:
    if instant.tzinfo is None:
        return instant.replace(tzinfo=timezone.utc)
    return instant.astimezone(timezone.utc)


def _month_end(year: int, month: int) -> datetime:
    last_day = calendar.monthrange(year, month)[1]
    return datetime(year, month, last_day, 23, 59, 59, tzinfo=timezone.utc)


def resolve_period(instant: datetime, period_type: str) -> PeriodWindow:
    """
    Resolve the period window containing `instant`.

    Args:
        instant: Reference point in time
        period_type: MONTHLY, QUARTERLY or YEARLY

    Returns:
        PeriodWindow with start (00:00:00 of the first day) and end
        (23:59:59 of the last day), year and ordinal (month, quarter or 1)
    """
    cadence = str(period_type or '').upper()
    if cadence not in PERIOD_TYPES:
        raise ValueError(f"Unsupported period type: {period_type!r}")

    utc = _as_utc(instant)
    year, month = utc.year, utc.month

    if cadence == PERIOD_MONTHLY:
        start = datetime(year, month, 1, tzinfo=timezone.utc)
        end = _month_end(year, month)
        ordinal = month

    elif cadence == PERIOD_QUARTERLY:
        ordinal = (month - 1) // 3 + 1
        start_month = (ordinal - 1) * 3 + 1
        start = datetime(year, start_month, 1, tzinfo=timezone.utc)
        end = _month_end(year, start_month + 2)

    else:
        start = datetime(year, 1, 1, tzinfo=timezone.utc)
        end = _month_end(year, 12)
        ordinal = 1

    return PeriodWindow(
        period_type=cadence,
        period_start=start,
        period_end=end,
        year=year,
        ordinal=ordinal,
    )


def current_period(period_type: str, now: Optional[datetime] = None) -> PeriodWindow:
    """Window for the current instant (or `now` when given)."""
    return resolve_period(now or datetime.now(timezone.utc), period_type)


def previous_period(window: PeriodWindow) -> PeriodWindow:
    """Window immediately before `window`, same cadence."""
    start = window.period_start
    if window.period_type == PERIOD_YEARLY:
        return resolve_period(datetime(start.year - 1, 1, 1, tzinfo=timezone.utc), PERIOD_YEARLY)

    step = 1 if window.period_type == PERIOD_MONTHLY else 3
    month = start.month - step
    year = start.year
    if month < 1:
        month += 12
        year -= 1
    return resolve_period(datetime(year, month, 1, tzinfo=timezone.utc), window.period_type)
