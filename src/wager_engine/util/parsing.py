"""Shared parsing helpers for tolerant numeric/string coercion."""

from __future__ import annotations

import math
from typing import Any


def safe_float(value: Any) -> float | None:
    """Parse number-like input into a finite float, returning None when invalid."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        parsed = float(value)
    elif isinstance(value, str):
        raw = value.strip()
        if not raw:
            return None
        try:
            parsed = float(raw)
        except ValueError:
            return None
    else:
        return None
    return parsed if math.isfinite(parsed) else None


def safe_str(value: Any) -> str:
    """Return a stripped string for scalar input, empty string otherwise."""
    if value is None or isinstance(value, (dict, list)):
        return ""
    return str(value).strip()


def safe_dict(value: Any) -> dict[str, Any]:
    """Return value when it is a dict, else an empty dict."""
    return value if isinstance(value, dict) else {}
