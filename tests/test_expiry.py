from __future__ import annotations

from datetime import date

import pytest

from domain_checks.expiry import parse_expiry_date, remaining_days


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        ("2025-03-07", date(2025, 3, 7)),
        ("2025/03/07", date(2025, 3, 7)),
        ("2025/3/7", date(2025, 3, 7)),
        ("2025-3-7", date(2025, 3, 7)),
        ("2025-03-07T18:30:00Z", date(2025, 3, 7)),
        ("2025-03-07T00:00:00+08:00", date(2025, 3, 7)),
        (" 2025-03-07 ", date(2025, 3, 7)),
    ],
)
def test_parse_expiry_date_accepts_common_formats(raw: str, expected: date) -> None:
    assert parse_expiry_date(raw) == expected


@pytest.mark.parametrize(
    "raw", [None, "", "   ", "never", "2025-13-40", "2025/03-07", "2025-03-07T10:00/00"]
)
def test_parse_expiry_date_rejects_garbage(raw) -> None:
    assert parse_expiry_date(raw) is None


def test_remaining_days_counts_calendar_days() -> None:
    today = date(2025, 3, 1)
    assert remaining_days("2025-03-01", today=today) == 0
    assert remaining_days("2025-03-02", today=today) == 1
    assert remaining_days("2025-03-31", today=today) == 30
    # time of day does not matter
    assert remaining_days("2025-03-02T23:59:59Z", today=today) == 1


def test_remaining_days_clamps_past_dates_to_zero() -> None:
    assert remaining_days("2024-01-01", today=date(2025, 3, 1)) == 0


def test_remaining_days_unknown_for_unparseable_dates() -> None:
    assert remaining_days("soon", today=date(2025, 3, 1)) is None
