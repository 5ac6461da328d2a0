"""
Status vocabulary and transition policy for commission entries and payouts.

Any status may move to any other unless LOCK_RELEASED_STATUS is enabled, in
which case ``released`` is terminal.
"""
from flask import current_app, has_app_context

from crewpay.models.commission_entry import COMMISSION_STATUSES, STATUS_PENDING, STATUS_RELEASED
from crewpay.services.errors import ValidationError


def normalize_status(value):
    """Lower-cased status if it is one of the known values, else None."""
    if not isinstance(value, str):
        return None
    status = value.strip().lower()
    return status if status in COMMISSION_STATUSES else None


def initial_status(value):
    """Status for a new record: unknown or missing values fall back to pending."""
    return normalize_status(value) or STATUS_PENDING


def require_status(value):
    status = normalize_status(value)
    if status is None:
        raise ValidationError(
            f"Invalid status '{value}'. Must be one of: {', '.join(COMMISSION_STATUSES)}.",
            {'status': [f"Must be one of: {', '.join(COMMISSION_STATUSES)}."]},
        )
    return status


def released_is_locked():
    return has_app_context() and bool(current_app.config.get('LOCK_RELEASED_STATUS', False))


def check_transition(current, new, what='record'):
    if current == STATUS_RELEASED and new != STATUS_RELEASED and released_is_locked():
        raise ValidationError(f"Cannot move a released {what} back to '{new}'.")
