from __future__ import annotations

import math
import uuid
from datetime import datetime, date, timezone
from typing import Any, Optional


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def iso_date(value: Any, default: Optional[str] = None) -> Optional[str]:
    """Normalize a caller-supplied date (date, datetime or ISO text) to ISO text."""
    if value is None or value == "":
        return default
    if isinstance(value, datetime):
        return value.replace(microsecond=0).isoformat()
    if isinstance(value, date):
        return value.isoformat()
    s = str(value).strip()
    try:
        datetime.fromisoformat(s)
    except ValueError:
        raise ValueError(f"Invalid date: {value!r}.")
    return s


def new_id() -> str:
    return uuid.uuid4().hex[:12]


def safe_div(n: float, d: float) -> float:
    return float(n) / float(d) if d else 0.0


def to_weight(value: Any, *, label: str = "Weight") -> float:
    try:
        w = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if not math.isfinite(w):
        raise ValueError(f"{label} must be a number.")
    # Stored weights carry 3 decimals, so check the rounded value.
    w = kg(w)
    if w <= 0:
        raise ValueError(f"{label} must be > 0.")
    return w


def to_price(value: Any, *, label: str = "Price per kg") -> Optional[float]:
    if value is None or value == "":
        return None
    try:
        p = float(value)
    except (TypeError, ValueError):
        raise ValueError(f"{label} must be a number.")
    if not math.isfinite(p):
        raise ValueError(f"{label} must be a number.")
    if p < 0:
        raise ValueError(f"{label} must be >= 0.")
    return p


def money(value: float) -> float:
    return round(float(value), 2)


def kg(value: float) -> float:
    return round(float(value), 3)
