from marshmallow import Schema, fields, validate
from marshmallow_sqlalchemy import SQLAlchemyAutoSchema, auto_field

from crewpay.models.payout import Payout
from crewpay.schemas.commission_entry_schema import CommissionEntrySchema
from crewpay.schemas.fields import Money, UtcDateTime


class PayoutSchema(SQLAlchemyAutoSchema):
    class Meta:
        model = Payout
        exclude = ('updated_at',)
    id = auto_field(dump_only=True)
    crew_user_id = auto_field(data_key='crewUserId')
    period_start = UtcDateTime(data_key='periodStart')
    period_end = UtcDateTime(data_key='periodEnd')
    total_amount = Money(data_key='totalAmount')
    status = auto_field()
    created_by = auto_field(data_key='createdBy')
    released_at = UtcDateTime(data_key='releasedAt', dump_only=True)
    created_at = UtcDateTime(data_key='createdAt', dump_only=True)


class PayoutDetailSchema(PayoutSchema):
    entries = fields.List(fields.Nested(CommissionEntrySchema), dump_only=True)


class PayoutCreateSchema(Schema):
    crew_user_id = fields.String(required=True, data_key='crewUserId', validate=validate.Length(min=1, max=64))
    period_start = UtcDateTime(required=True, data_key='periodStart')
    period_end = UtcDateTime(required=True, data_key='periodEnd')
    total_amount = fields.Decimal(required=True, data_key='totalAmount')
    created_by = fields.String(required=True, data_key='createdBy', validate=validate.Length(min=1, max=64))
    status = fields.String(allow_none=True, load_default=None)
    entry_ids = fields.List(fields.Integer(strict=False), data_key='entryIds', load_default=list)


class PayoutAuditSchema(Schema):
    payout_id = fields.Integer(data_key='payoutId')
    recorded_total = Money(data_key='recordedTotal')
    entries_total = Money(data_key='entriesTotal')
    drift = Money()
    entry_count = fields.Integer(data_key='entryCount')
    balanced = fields.Boolean()
