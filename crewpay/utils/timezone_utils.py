"""
Timezone utility functions for the payroll engine.
Timestamps are stored as naive UTC; the organization's wall clock is the
configured display timezone (default Asia/Manila).
"""

from datetime import datetime, timezone
import pytz
from flask import current_app, has_app_context
from typing import Optional, Union

DEFAULT_DISPLAY_TIMEZONE = "Asia/Manila"


def get_display_timezone() -> str:
    """Get the configured display timezone name."""
    if has_app_context():
        return current_app.config.get('DISPLAY_TIMEZONE', DEFAULT_DISPLAY_TIMEZONE)
    return DEFAULT_DISPLAY_TIMEZONE


def utc_now() -> datetime:
    """
    Get current time in UTC.

    Returns:
        Current datetime in UTC
    """
    return datetime.now(timezone.utc)


def display_now() -> datetime:
    """Current time in the display timezone (timezone-aware)."""
    return utc_now().astimezone(pytz.timezone(get_display_timezone()))


def to_utc_naive(dt: Optional[datetime]) -> Optional[datetime]:
    """
    Normalize a datetime for storage and querying.

    Aware datetimes are converted to UTC and stripped of tzinfo; naive
    datetimes are assumed to already be UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is not None:
        return dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt


def convert_utc_to_display(utc_dt: Union[datetime, str]) -> datetime:
    """
    Convert a UTC datetime to the configured display timezone.

    Args:
        utc_dt: UTC datetime object (naive values are treated as UTC) or ISO string

    Returns:
        Datetime object in the display timezone
    """
    if isinstance(utc_dt, str):
        utc_dt = datetime.fromisoformat(utc_dt.replace('Z', '+00:00'))
    if utc_dt.tzinfo is None:
        utc_dt = utc_dt.replace(tzinfo=timezone.utc)
    return utc_dt.astimezone(pytz.timezone(get_display_timezone()))


def parse_datetime_string(dt_string: str) -> Optional[datetime]:
    """
    Parse a datetime string and return a timezone-aware datetime in UTC.

    Naive strings are interpreted in the display timezone. Date-only strings
    resolve to midnight.

    Raises:
        ValueError: if the string matches none of the accepted formats
    """
    if not dt_string:
        return None

    display_tz = pytz.timezone(get_display_timezone())
    try:
        dt = datetime.fromisoformat(dt_string.strip().replace('Z', '+00:00'))
        if dt.tzinfo is None:
            dt = display_tz.localize(dt)
        return dt.astimezone(timezone.utc)
    except ValueError:
        for fmt in [
            '%Y-%m-%d %H:%M:%S',
            '%Y-%m-%dT%H:%M:%S.%fZ',
            '%d/%m/%Y %H:%M',
            '%Y/%m/%d %H:%M',
            '%d/%m/%Y',
            '%Y/%m/%d',
        ]:
            try:
                dt = datetime.strptime(dt_string.strip(), fmt)
                dt = display_tz.localize(dt, is_dst=None)
                return dt.astimezone(timezone.utc)
            except ValueError:
                continue

        raise ValueError(f"Unable to parse datetime string: {dt_string}")


def format_datetime_for_api(dt: Optional[datetime]) -> Optional[str]:
    """
    Format a datetime for API responses in ISO format.

    Naive values are treated as UTC.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    if dt.utcoffset() == timezone.utc.utcoffset(None):
        return dt.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'
    return dt.isoformat(timespec='milliseconds')


def utcnow_naive() -> datetime:
    """Current UTC time without tzinfo, the form stored in DateTime columns."""
    return utc_now().replace(tzinfo=None)
