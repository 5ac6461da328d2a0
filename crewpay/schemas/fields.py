from marshmallow import fields, ValidationError

from crewpay.utils.timezone_utils import format_datetime_for_api, parse_datetime_string


class UtcDateTime(fields.Field):
    """
    ISO datetime exchanged as UTC ('...Z').

    Input without an offset is read on the display timezone's clock; loaded
    values are timezone-aware UTC.
    """

    def _serialize(self, value, attr, obj, **kwargs):
        return format_datetime_for_api(value)

    def _deserialize(self, value, attr, data, **kwargs):
        if not isinstance(value, str):
            raise ValidationError("Not a valid datetime.")
        try:
            return parse_datetime_string(value)
        except ValueError:
            raise ValidationError("Not a valid datetime.")


def Money(**kwargs):
    return fields.Decimal(places=2, as_string=True, **kwargs)


def Percent(**kwargs):
    return fields.Decimal(places=2, as_string=True, **kwargs)
