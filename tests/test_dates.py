try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover
    import _bootstrap  # type: ignore # noqa: F401

from datetime import date, datetime, timezone

from app.utils.dates import (
    js_weekday,
    normalize_range,
    parse_timestamp,
    quarter,
    to_iso_z,
)


def test_bare_dates_expand_to_whole_days() -> None:
    window = normalize_range("2025-01-01", "2025-01-31")
    assert window.as_dict() == {
        "startDate": "2025-01-01T00:00:00.000Z",
        "endDate": "2025-01-31T23:59:59.999Z",
    }


def test_full_timestamps_pass_through() -> None:
    window = normalize_range("2025-01-01T05:00:00Z", None)
    assert window.start == "2025-01-01T05:00:00Z"
    assert window.end is None


def test_default_window_covers_last_thirty_days() -> None:
    window = normalize_range(None, None, default_to_window=True, today=date(2025, 3, 31))
    assert window.start == "2025-03-01T00:00:00.000Z"
    assert window.end == "2025-03-31T23:59:59.999Z"


def test_contains_is_inclusive_and_rejects_missing_timestamps() -> None:
    window = normalize_range("2025-03-01", "2025-03-01")
    assert window.contains(parse_timestamp("2025-03-01T00:00:00Z"))
    assert window.contains(parse_timestamp("2025-03-01T23:59:59.999Z"))
    assert not window.contains(parse_timestamp("2025-03-02T00:00:00Z"))
    assert not window.contains(None)


def test_date_columns() -> None:
    sunday = datetime(2025, 3, 2, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert to_iso_z(sunday) == "2025-03-02T10:00:00.123Z"
    assert js_weekday(sunday) == 0
    assert js_weekday(datetime(2025, 3, 3)) == 1
    assert quarter(datetime(2025, 10, 1)) == 4
