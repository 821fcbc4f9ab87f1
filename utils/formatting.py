"""Display helpers for durations and prices."""
from __future__ import annotations

from typing import Optional


def format_duration(seconds: int) -> str:
    """125 → "2:05"."""
    seconds = max(int(seconds or 0), 0)
    mins, secs = divmod(seconds, 60)
    return f"{mins}:{secs:02d}"


def format_price(price: Optional[float], unit: str = "USD") -> str:
    if price is None:
        return ""
    return f"{abs(price):.4f} {unit or 'USD'}"
