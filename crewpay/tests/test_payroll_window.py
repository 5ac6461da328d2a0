"""
Tests for payroll window calculation
"""
from datetime import datetime, timedelta

import pytest
import pytz

from crewpay.services.errors import ValidationError
from crewpay.utils.payroll_window import window_for, resolve_period


class TestWindowFor:

    def test_wednesday_reference(self):
        window = window_for(datetime(2025, 1, 8, 15, 45, 12, 345678))
        assert window.start == datetime(2025, 1, 5, 0, 0, 0, 0)
        assert window.start.weekday() == 6  # Sunday
        assert window.end == datetime(2025, 1, 10, 23, 59, 59, 999000)
        assert window.end.weekday() == 4  # Friday
        assert window.payout_date == datetime(2025, 1, 11, 9, 0, 0)
        assert window.payout_date.weekday() == 5  # Saturday

    def test_every_day_sunday_to_friday_maps_to_same_window(self):
        expected = window_for(datetime(2025, 1, 8))
        for offset in range(6):
            reference = datetime(2025, 1, 5, 23, 59) + timedelta(days=offset)
            assert window_for(reference) == expected

    def test_sunday_midnight_starts_its_own_window(self):
        window = window_for(datetime(2025, 1, 5, 0, 0, 0))
        assert window.start == datetime(2025, 1, 5)

    def test_saturday_belongs_to_window_starting_previous_sunday(self):
        window = window_for(datetime(2025, 1, 11, 8, 0))
        assert window.start == datetime(2025, 1, 5)
        assert window.payout_date == datetime(2025, 1, 11, 9, 0)

    def test_window_crossing_month_boundary(self):
        window = window_for(datetime(2025, 3, 3, 10, 0))  # Monday
        assert window.start == datetime(2025, 3, 2)
        assert window.end.date() == datetime(2025, 3, 7).date()

    def test_custom_payout_hour(self):
        window = window_for(datetime(2025, 1, 8), payout_hour=14)
        assert window.payout_date == datetime(2025, 1, 11, 14, 0)

    def test_aware_reference_keeps_its_timezone(self):
        manila = pytz.timezone('Asia/Manila')
        reference = manila.localize(datetime(2025, 1, 8, 1, 0))
        window = window_for(reference)
        assert window.start.tzinfo is not None
        assert window.start.replace(tzinfo=None) == datetime(2025, 1, 5)
        assert window.start.utcoffset() == timedelta(hours=8)
        # Sunday 00:00 in Manila is Saturday 16:00 UTC
        assert window.as_utc_naive().start == datetime(2025, 1, 4, 16, 0)

    def test_contains(self):
        window = window_for(datetime(2025, 1, 8))
        assert window.contains(datetime(2025, 1, 10, 23, 59, 59))
        assert not window.contains(datetime(2025, 1, 11, 0, 0))


def test_resolve_period_uses_explicit_bounds(app):
    start, end, window = resolve_period(datetime(2025, 2, 1), datetime(2025, 2, 28))
    assert (start, end, window) == (datetime(2025, 2, 1), datetime(2025, 2, 28), None)


def test_resolve_period_defaults_to_current_window(app, monkeypatch):
    manila = pytz.timezone('Asia/Manila')
    monkeypatch.setattr('crewpay.utils.payroll_window.display_now',
                        lambda: manila.localize(datetime(2025, 1, 8, 12, 0)))
    start, end, window = resolve_period(None, None)
    assert window is not None
    assert start == datetime(2025, 1, 4, 16, 0)
    assert end == datetime(2025, 1, 10, 15, 59, 59, 999000)


def test_resolve_period_fills_end_from_window_of_start(app):
    # 2025-01-05 00:00 UTC is Sunday 08:00 in Manila
    start, end, window = resolve_period(datetime(2025, 1, 5), None)
    assert start == datetime(2025, 1, 5)
    assert end == datetime(2025, 1, 10, 15, 59, 59, 999000)
    assert window.as_utc_naive().payout_date == datetime(2025, 1, 11, 1, 0)


def test_resolve_period_fills_start_from_window_of_end(app):
    start, end, window = resolve_period(None, datetime(2025, 1, 8))
    assert start == datetime(2025, 1, 4, 16, 0)
    assert end == datetime(2025, 1, 8)


def test_resolve_period_ignores_current_window_for_single_bound(app, monkeypatch):
    manila = pytz.timezone('Asia/Manila')
    monkeypatch.setattr('crewpay.utils.payroll_window.display_now',
                        lambda: manila.localize(datetime(2025, 3, 5, 12, 0)))
    start, end, _ = resolve_period(datetime(2025, 1, 5), None)
    assert end < datetime(2025, 1, 11)


@pytest.mark.parametrize('bounds', [
    (datetime(2025, 1, 10), datetime(2025, 1, 5)),
    # a Saturday start lies after the end of its own window
    (datetime(2025, 1, 11, 12, 0), None),
])
def test_resolve_period_rejects_inverted_period(app, bounds):
    with pytest.raises(ValidationError):
        resolve_period(*bounds)
