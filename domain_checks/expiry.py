from __future__ import annotations

import re
from datetime import date, datetime, timezone, tzinfo
from typing import Any


_SLASH_DATE_RE = re.compile(r"^\d{4}/\d{1,2}/\d{1,2}$")


def parse_expiry_date(value: Any) -> date | None:
    """Accepts YYYY-MM-DD, YYYY/MM/DD and ISO datetimes (with or without a trailing Z)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    s = str(value).strip()
    if not s:
        return None
    if _SLASH_DATE_RE.match(s):
        s = s.replace("/", "-")
    try:
        return date.fromisoformat(s)
    except ValueError:
        pass
    s_iso = s[:-1] + "+00:00" if s.endswith("Z") else s
    try:
        return datetime.fromisoformat(s_iso).date()
    except ValueError:
        pass
    # Non-padded dates such as 2025-3-7.
    try:
        return datetime.strptime(s, "%Y-%m-%d").date()
    except ValueError:
        return None


def remaining_days(expiry_date: Any, *, today: date | None = None, tz: tzinfo | None = None) -> int | None:
    """
    Whole calendar days until `expiry_date`, clamped at 0.

    Returns None when the expiry date cannot be parsed.
    """
    expiry = parse_expiry_date(expiry_date)
    if expiry is None:
        return None
    if today is None:
        today = datetime.now(tz or timezone.utc).date()
    return max(0, (expiry - today).days)
