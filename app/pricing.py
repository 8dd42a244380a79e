"""Weekday/weekend pricing for deals."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

WEEKEND_DAY_NAMES = frozenset({"saturday", "sunday"})


@dataclass(frozen=True)
class Quote:
    is_weekend: bool
    price: float


def is_weekend(moment: datetime) -> bool:
    """Saturday and Sunday are weekend days (``weekday()`` 5 and 6)."""
    return moment.weekday() >= 5


def is_weekend_day(day_name: str) -> bool:
    """Classify an availability-window day label such as ``"Saturday"``."""
    return (day_name or "").strip().lower() in WEEKEND_DAY_NAMES


def quote(service, moment: datetime) -> Quote:
    weekend = is_weekend(moment)
    price = service.weekend_price if weekend else service.weekday_price
    return Quote(is_weekend=weekend, price=price)


def split_windows(windows: list[dict] | None) -> dict[str, list[dict]]:
    """Group availability windows into weekday and weekend lists, keeping order."""
    grouped: dict[str, list[dict]] = {"weekday": [], "weekend": []}
    for window in windows or []:
        key = "weekend" if is_weekend_day(window.get("day", "")) else "weekday"
        grouped[key].append(window)
    return grouped
