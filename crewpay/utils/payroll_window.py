"""
Payroll window calculation.

Crew earn from Sunday 00:00:00.000 through Friday 23:59:59.999 and are paid
on the Saturday that follows at the configured payout hour.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from crewpay.services.errors import ValidationError
from crewpay.utils.timezone_utils import convert_utc_to_display, display_now, to_utc_naive

END_OF_DAY_MICROSECOND = 999000


@dataclass(frozen=True)
class PayrollWindow:
    start: datetime
    end: datetime
    payout_date: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end

    def as_utc_naive(self) -> 'PayrollWindow':
        return PayrollWindow(
            start=to_utc_naive(self.start),
            end=to_utc_naive(self.end),
            payout_date=to_utc_naive(self.payout_date),
        )


def _on_wall_clock(reference: datetime, wall: datetime) -> datetime:
    # pytz zones must localize, a plain replace() would pin the reference's offset
    tz = reference.tzinfo
    if tz is None:
        return wall
    if hasattr(tz, 'localize'):
        return tz.normalize(tz.localize(wall))
    return wall.replace(tzinfo=tz)


def window_for(reference: datetime, payout_hour: int = 9) -> PayrollWindow:
    """
    Compute the payroll window containing ``reference``.

    The window is computed on the reference's own wall clock: naive in,
    naive out; aware in, aware (same zone) out.
    """
    wall = reference.replace(tzinfo=None)
    # datetime.weekday() is Monday=0 .. Sunday=6
    days_since_sunday = (wall.weekday() + 1) % 7
    sunday = (wall - timedelta(days=days_since_sunday)).replace(hour=0, minute=0, second=0, microsecond=0)
    friday_end = (sunday + timedelta(days=5)).replace(hour=23, minute=59, second=59, microsecond=END_OF_DAY_MICROSECOND)
    saturday_payout = (sunday + timedelta(days=6)).replace(hour=payout_hour)

    return PayrollWindow(
        start=_on_wall_clock(reference, sunday),
        end=_on_wall_clock(reference, friday_end),
        payout_date=_on_wall_clock(reference, saturday_payout),
    )


def _configured_payout_hour() -> int:
    from flask import current_app, has_app_context
    return current_app.config.get('PAYROLL_PAYOUT_HOUR', 9) if has_app_context() else 9


def current_window(payout_hour: Optional[int] = None) -> PayrollWindow:
    """The payroll window for the current instant on the display timezone's clock."""
    if payout_hour is None:
        payout_hour = _configured_payout_hour()
    return window_for(display_now(), payout_hour=payout_hour)


def resolve_period(period_start: Optional[datetime], period_end: Optional[datetime]):
    """
    Fill in a reporting period.

    With neither bound the current window is used. With one bound the other
    comes from the window containing the supplied bound. Returns
    ``(start, end, window)`` with start/end as naive UTC; ``window`` is the
    window a bound was taken from, else None.

    Raises:
        ValidationError: the resulting period ends before it starts
    """
    window = None
    if period_start is None and period_end is None:
        window = current_window()
    elif period_start is None or period_end is None:
        anchor = period_start if period_start is not None else period_end
        window = window_for(convert_utc_to_display(anchor), payout_hour=_configured_payout_hour())

    start = to_utc_naive(period_start if period_start is not None else window.start)
    end = to_utc_naive(period_end if period_end is not None else window.end)
    if end < start:
        raise ValidationError("end must not be before start.", {'end': ['Must not be before start.']})
    return start, end, window
