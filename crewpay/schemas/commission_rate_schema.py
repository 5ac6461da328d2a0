from marshmallow import Schema, fields, validate
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field

from crewpay.models.commission_rate import CommissionRate
from crewpay.schemas.fields import Percent, UtcDateTime


class CommissionRateSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = CommissionRate
        exclude = ('created_at',)
    id = auto_field(dump_only=True)
    service_type = auto_field(data_key='serviceType')
    rate_percent = Percent(data_key='ratePercent')
    active = auto_field()
    updated_at = UtcDateTime(data_key='updatedAt', dump_only=True)


class CommissionRateUpsertSchema(Schema):
    service_type = fields.String(required=True, data_key='serviceType', validate=validate.Length(min=1, max=255))
    rate_percent = fields.Decimal(required=True, data_key='ratePercent',
                                  validate=validate.Range(min=0, max=100))
