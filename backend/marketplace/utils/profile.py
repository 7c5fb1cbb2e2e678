"""Normalization helpers for artist applications and bookings.

These run explicitly at the start of create operations; nothing here touches
the database.
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Optional

from ..core.config import settings

WEEKDAYS = ("monday", "tuesday", "wednesday", "thursday", "friday")
WEEKEND = ("saturday", "sunday")

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def default_weekly_schedule() -> Dict[str, Dict[str, Any]]:
    """Monday to Friday, 09:00 to 18:00."""
    schedule = {day: {"start": "09:00", "end": "18:00", "available": True} for day in WEEKDAYS}
    schedule.update({day: {"start": "09:00", "end": "18:00", "available": False} for day in WEEKEND})
    return schedule


def normalize_availability(value: Any) -> Dict[str, Dict[str, Any]]:
    """Coerce free-form availability into a ``{day: {...}}`` mapping.

    A descriptive string ("available for part-time work") becomes the default
    weekday schedule. Mappings keep only entries whose value is itself a
    mapping. Anything else yields an empty schedule.
    """
    if value is None:
        return {}
    if isinstance(value, str):
        return default_weekly_schedule() if value.strip() else {}
    if isinstance(value, dict):
        return {str(k): dict(v) for k, v in value.items() if isinstance(v, dict)}
    return {}


def normalize_skills(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, str):
        return [s.strip() for s in value.split(",") if s.strip()]
    if isinstance(value, (list, tuple)):
        return [s.strip() if isinstance(s, str) else s for s in value if s and (not isinstance(s, str) or s.strip())]
    return []


def normalize_hourly_rate(value: Any) -> Decimal:
    """Parse a rate; missing, unparseable or negative values become 0."""
    if value is None or value == "":
        return Decimal("0")
    try:
        rate = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal("0")
    if not rate.is_finite() or rate < 0:
        return Decimal("0")
    return rate


def normalize_pricing(pricing: Optional[Dict[str, Any]], hourly_rate: Decimal) -> Dict[str, Any]:
    data: Dict[str, Any] = {
        "amount": float(hourly_rate),
        "unit": "hour",
        "currency": settings.DEFAULT_CURRENCY,
    }
    if isinstance(pricing, dict):
        data.update({k: v for k, v in pricing.items() if v is not None})
    return data


def parse_hhmm(value: str) -> tuple[int, int]:
    match = _TIME_RE.match((value or "").strip())
    if not match:
        raise ValueError(f"Invalid time {value!r}; expected HH:MM")
    return int(match.group(1)), int(match.group(2))


def compute_end_time(start_time: str, duration_hours: float) -> str:
    """Return ``start_time + duration_hours`` as ``HH:MM``.

    Fractional hours are honoured to the minute and the result wraps past
    midnight.
    """
    hours, minutes = parse_hhmm(start_time)
    total = hours * 60 + minutes + int(round(float(duration_hours) * 60))
    total %= 24 * 60
    return f"{total // 60:02d}:{total % 60:02d}"
