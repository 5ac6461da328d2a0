"""
Shared helpers for the payroll blueprints: error payloads, caller identity
and query-string period parsing.
"""
import logging
import re
from datetime import timedelta

from flask import jsonify, request

from crewpay.services.errors import ServiceError, ValidationError
from crewpay.utils.timezone_utils import parse_datetime_string

DATE_ONLY = re.compile(r'^\d{4}-\d{2}-\d{2}$')


def service_error_response(error: ServiceError):
    return jsonify(error.to_dict()), error.status_code


def schema_error_response(messages):
    return jsonify({'error': 'Invalid request data.', 'kind': ValidationError.kind, 'fields': messages}), 400


def unexpected_error_response(view_name, error):
    logging.error(f"Unhandled error in {view_name}: {error}", exc_info=True)
    return jsonify({'error': 'An unexpected error occurred. Please try again later.'}), 500


def caller_identity(data=None, *keys):
    """
    Identity of the caller performing a write: the first non-blank of the
    given body keys, else the X-User-Id header.
    """
    for key in keys:
        value = (data or {}).get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    header = request.headers.get('X-User-Id', '').strip()
    if header:
        return header
    field_name = keys[0] if keys else 'X-User-Id'
    raise ValidationError("Caller identity is required.", {field_name: ['Missing data for required field.']})


def period_arg(name, end_of_day=False):
    """
    Parse a datetime query parameter. A bare date used as an upper bound
    covers the whole day.
    """
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        value = parse_datetime_string(raw)
    except ValueError:
        raise ValidationError(f"Invalid {name} format. Use YYYY-MM-DD or an ISO datetime.",
                              {name: ['Not a valid datetime.']})
    if end_of_day and DATE_ONLY.match(raw.strip()):
        value = value + timedelta(days=1) - timedelta(milliseconds=1)
    return value


def json_body():
    """The request's JSON object; an absent body is an empty object."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object.")
    return data
