from __future__ import annotations

import math
import re
from datetime import date, datetime
from typing import Any, List, Optional
from urllib.parse import urlparse

LEADING_FLOAT_RE = re.compile(r"[+-]?(?:\d+(?:\.\d*)?|\.\d+)")

TRUTHY = {"yes", "true", "1", "y"}

CONTACT_SPLIT_RE = re.compile(r"[,;]")

def is_http_url(url: str) -> bool:
    try:
        p = urlparse(url)
        return p.scheme in ("http", "https")
    except Exception:
        return False

def coerce_datetime(value: Any) -> Optional[datetime]:
    """
    Turn a date-like value into a datetime.
    Accepts datetime, date and ISO-8601 strings. Anything else -> None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        s = value.strip()
        if not s:
            return None
        try:
            return datetime.fromisoformat(s)
        except ValueError:
            return None
    return None

def leading_float(text: str) -> Optional[float]:
    # like JS parseFloat: read the longest numeric prefix, ignore the rest
    m = LEADING_FLOAT_RE.match(text.strip())
    if not m:
        return None
    num = float(m.group(0))
    return num if math.isfinite(num) else None

def to_float(value: Any) -> float:
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, (int, float)):
        try:
            num = float(value)
        except OverflowError:
            return 0.0
        return num if math.isfinite(num) else 0.0
    if value is None:
        return 0.0
    num = leading_float(str(value))
    return num if num is not None else 0.0

def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    return str(value).strip().lower() in TRUTHY

def split_contacts(value: Any) -> List[str]:
    if not value:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v).strip() for v in value if str(v).strip()]
    return [c.strip() for c in CONTACT_SPLIT_RE.split(str(value)) if c.strip()]
